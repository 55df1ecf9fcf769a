"""
Immutable point table for daily scoring.

Built once from `scoring.points` in config/scoring.yaml and injected into the
calculator, the history builder and the flair evaluator. Never mutated at
runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from src.core.exceptions import ConfigurationError

# Production defaults; config/scoring.yaml overrides.
DEFAULT_POSITION_POINTS: Dict[int, int] = {
    1: 20,
    2: 12,
    3: 10,
    4: 7,
    5: 5,
    6: 4,
    7: 4,
    8: 4,
    9: 3,
    10: 3,
    11: 3,
    12: 3,
    13: 3,
    14: 3,
    15: 3,
}


@dataclass(frozen=True)
class PointTable:
    """
    Position weights plus the two end-of-day bonuses.

    Attributes:
        positions: 1-based finishing position -> points
        default_points: Points for positions beyond the explicit table
        last_message: Bonus for the day's last message author
        second_last_message: Bonus for the day's second-last author
    """

    positions: Mapping[int, int] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_POSITION_POINTS))
    )
    default_points: int = 2
    last_message: int = 20
    second_last_message: int = 10

    def __post_init__(self) -> None:
        if not isinstance(self.positions, MappingProxyType):
            object.__setattr__(self, "positions", MappingProxyType(dict(self.positions)))

    def position_points(self, position: int) -> int:
        """Points earned by the `position`-th (1-based) first message."""
        return self.positions.get(position, self.default_points)

    @property
    def max_explicit_position(self) -> int:
        return max(self.positions) if self.positions else 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PointTable":
        """
        Build from the `scoring.points` config block.

        Raises:
            ConfigurationError: If a position key or point value is not an int
        """
        raw_positions = data.get("positions") or DEFAULT_POSITION_POINTS
        try:
            positions = {int(k): int(v) for k, v in raw_positions.items() if k != "default"}
            default_points = int(data.get("default", raw_positions.get("default", 2)))
            return cls(
                positions=positions,
                default_points=default_points,
                last_message=int(data.get("last_message", 20)),
                second_last_message=int(data.get("second_last_message", 10)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError("scoring.points", f"Invalid point table: {exc}") from exc

    @classmethod
    def from_config(cls, config_manager: Optional[Any] = None) -> "PointTable":
        if config_manager is None:
            from src.core.config.manager import ConfigManager

            config_manager = ConfigManager
        return cls.from_dict(config_manager.get("scoring.points", {}) or {})
