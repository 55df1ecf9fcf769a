"""
UserScore — cumulative score and derived rank per (server, user).
Schema only. Mutated only by LeaderboardService.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class UserScore(Base, IdMixin, TimestampMixin):
    __tablename__ = "user_scores"
    __table_args__ = (
        UniqueConstraint("server_id", "user_id", name="uq_user_scores_server_user"),
        Index("ix_user_scores_server_rank", "server_id", "rank"),
    )

    server_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)

    cumulative_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<UserScore server={self.server_id} user={self.user_id} "
            f"score={self.cumulative_score} rank={self.rank}>"
        )
