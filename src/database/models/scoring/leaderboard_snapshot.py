"""
LeaderboardSnapshot — a ranked leaderboard materialized under a key.
Schema only.

`snapshot_key` is either the distinguished key "current" (overwritten on every
scoring run) or a MM-DD-YYYY date (write-once).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, utcnow

CURRENT_SNAPSHOT_KEY = "current"


class LeaderboardSnapshot(Base, IdMixin):
    __tablename__ = "leaderboard_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "server_id", "snapshot_key", name="uq_leaderboard_snapshots_server_key"
        ),
    )

    server_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    snapshot_key: Mapped[str] = mapped_column(String(10), nullable=False)

    # [{user_id, username, score, rank}, ...] ordered by rank
    rankings: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    @property
    def is_current(self) -> bool:
        return self.snapshot_key == CURRENT_SNAPSHOT_KEY

    def __repr__(self) -> str:
        return (
            f"<LeaderboardSnapshot server={self.server_id} key={self.snapshot_key} "
            f"entries={len(self.rankings or [])}>"
        )
