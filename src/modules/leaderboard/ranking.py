"""
Ranking and snapshot value types.

Rank order is descending score, then ascending user ID string, and ranks are
the 1-based positions in that order. Every snapshot (current or dated) goes
through `rank_entries`, so equal inputs always rank identically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from src.database.models.scoring import LeaderboardSnapshot


@dataclass(frozen=True)
class RankedEntry:
    user_id: str
    username: str
    score: int
    rank: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "score": self.score,
            "rank": self.rank,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RankedEntry":
        return cls(
            user_id=str(data["user_id"]),
            username=str(data.get("username") or data["user_id"]),
            score=int(data.get("score", 0)),
            rank=int(data.get("rank", 0)),
        )


def rank_entries(
    scores: Mapping[str, int],
    usernames: Optional[Mapping[str, str]] = None,
) -> List[RankedEntry]:
    """
    Rank users by score.

    Args:
        scores: user_id -> cumulative score
        usernames: user_id -> display name (falls back to the ID)

    Returns:
        Entries ordered by rank, ranks 1..n with no gaps or repeats

    Example:
        >>> [e.user_id for e in rank_entries({"A": 20, "B": 12, "C": 10, "D": 22})]
        ['D', 'A', 'B', 'C']
    """
    names = usernames or {}
    ordered = sorted(scores.items(), key=lambda item: (-item[1], str(item[0])))
    return [
        RankedEntry(
            user_id=str(user_id),
            username=names.get(user_id) or str(user_id),
            score=int(score),
            rank=index,
        )
        for index, (user_id, score) in enumerate(ordered, start=1)
    ]


@dataclass(frozen=True)
class LeaderboardSnapshotView:
    """Read-only leaderboard under one key ("current" or MM-DD-YYYY)."""

    server_id: str
    snapshot_key: str
    rankings: Tuple[RankedEntry, ...] = field(default_factory=tuple)
    computed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, snapshot: LeaderboardSnapshot) -> "LeaderboardSnapshotView":
        return cls(
            server_id=snapshot.server_id,
            snapshot_key=snapshot.snapshot_key,
            rankings=tuple(RankedEntry.from_dict(e) for e in snapshot.rankings or ()),
            computed_at=snapshot.computed_at,
        )

    @property
    def is_empty(self) -> bool:
        return not self.rankings

    def scores(self) -> Dict[str, int]:
        return {e.user_id: e.score for e in self.rankings}

    def entry_for(self, user_id: str) -> Optional[RankedEntry]:
        return next((e for e in self.rankings if e.user_id == str(user_id)), None)

    def top(self, limit: int) -> Sequence[RankedEntry]:
        return self.rankings[:limit]

    def to_rows(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.rankings]
