"""
ProcessedDay — at-most-once marker for folding a day into cumulative totals.
Schema only.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utcnow


class ProcessedDay(Base, IdMixin):
    __tablename__ = "processed_days"
    __table_args__ = (
        UniqueConstraint("server_id", "date_key", name="uq_processed_days_server_date"),
    )

    server_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
