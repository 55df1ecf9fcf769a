"""
Immutable flair (achievement role) table.

Built once from the `flairs` block of config/scoring.yaml. Point tiers are
kept in ascending threshold order; the qualifying ("Got a First/Last") and
participation ("Racer") flairs are held separately because they are earned by
events, not by score.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from src.core.exceptions import ConfigurationError

COLOR_HEX = {
    "red": 0xE74C3C,
    "orange": 0xE67E22,
    "yellow": 0xF1C40F,
    "green": 0x2ECC71,
    "dark green": 0x1F8B4C,
    "blue": 0x3498DB,
    "purple": 0x9B59B6,
    "pink": 0xFF69B4,
    "gray": 0x95A5A6,
}

DEFAULT_ANNOUNCEMENT = (
    '<@{user_id}> got the "{tier_name}" flair in the First/Last Races server! '
    "Congratulations! [achieved {date_earned}]"
)


@dataclass(frozen=True)
class FlairTier:
    key: str
    name: str
    role_id: int
    color: str
    points: Optional[int] = None

    @property
    def color_hex(self) -> int:
        return COLOR_HEX.get(self.color.lower(), COLOR_HEX["gray"])

    @property
    def is_point_tier(self) -> bool:
        return self.points is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FlairTier":
        points = data.get("points")
        return cls(
            key=str(data["key"]),
            name=str(data["name"]),
            role_id=int(data["role_id"]),
            color=str(data.get("color", "gray")),
            points=int(points) if points is not None else None,
        )


@dataclass(frozen=True)
class FlairTable:
    """
    All flairs a user can earn.

    Attributes:
        point_tiers: Score-threshold tiers, ascending by points
        qualifying: Earned on the first day a user is first-message #1 or
            the day's last message author; gates every point tier
        participation: Earned on the first day a user posts a first message
        announcement: Format string with user_id, tier_name, date_earned
    """

    point_tiers: Tuple[FlairTier, ...]
    qualifying: FlairTier
    participation: FlairTier
    announcement: str = DEFAULT_ANNOUNCEMENT

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "point_tiers", tuple(sorted(self.point_tiers, key=lambda t: t.points))
        )

    def all_tiers(self) -> Tuple[FlairTier, ...]:
        """Every flair, lowest to highest: participation, qualifying, point tiers."""
        return (self.participation, self.qualifying) + self.point_tiers

    def by_key(self, key: str) -> Optional[FlairTier]:
        return next((t for t in self.all_tiers() if t.key == key), None)

    def tiers_reached(self, score: int) -> Tuple[FlairTier, ...]:
        return tuple(t for t in self.point_tiers if score >= t.points)

    def highest_tier(self, score: int) -> Optional[FlairTier]:
        reached = self.tiers_reached(score)
        return reached[-1] if reached else None

    def next_tier(self, score: int) -> Optional[FlairTier]:
        return next((t for t in self.point_tiers if score < t.points), None)

    def format_announcement(self, user_id: str, tier_name: str, date_earned: str) -> str:
        return self.announcement.format(
            user_id=user_id, tier_name=tier_name, date_earned=date_earned
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FlairTable":
        """
        Build from the `flairs` config block.

        Raises:
            ConfigurationError: If a tier is missing a key, name or role id
        """
        try:
            tiers = tuple(FlairTier.from_dict(t) for t in data.get("tiers") or ())
            qualifying = FlairTier.from_dict(data["qualifying"])
            participation = FlairTier.from_dict(data["participation"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError("flairs", f"Invalid flair table: {exc}") from exc

        if any(t.points is None for t in tiers):
            raise ConfigurationError("flairs.tiers", "Every point tier needs a 'points' value")

        return cls(
            point_tiers=tiers,
            qualifying=qualifying,
            participation=participation,
            announcement=str(data.get("announcement") or DEFAULT_ANNOUNCEMENT),
        )

    @classmethod
    def from_config(cls, config_manager: Optional[Any] = None) -> "FlairTable":
        if config_manager is None:
            from src.core.config.manager import ConfigManager

            config_manager = ConfigManager
        return cls.from_dict(config_manager.get("flairs", {}) or {})
