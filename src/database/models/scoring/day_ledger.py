"""
DayLedger — one server's participation record for one calendar day.
Schema only.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, JSONType, TimestampMixin


class DayLedger(Base, IdMixin, TimestampMixin):
    """
    Per-day ledger keyed by (server_id, date_key).

    `first_messages` holds `{user_id, username, message_id, timestamp}` entries
    sorted by timestamp, at most one per user. `last_message` and
    `second_last_message` are written once by the daily job.
    """

    __tablename__ = "day_ledgers"
    __table_args__ = (
        UniqueConstraint("server_id", "date_key", name="uq_day_ledgers_server_date"),
        Index("ix_day_ledgers_server", "server_id"),
    )

    server_id: Mapped[str] = mapped_column(String(32), nullable=False)
    # MM-DD-YYYY in the scoring time zone
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)

    first_messages: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    last_message: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    second_last_message: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSONType, nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<DayLedger server={self.server_id} date={self.date_key} "
            f"firsts={len(self.first_messages or [])}>"
        )
