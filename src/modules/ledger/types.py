"""
Plain data types passed between the gateway adapter, the ledger and the
pure scoring functions. None of these touch the database or Discord.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from src.modules.shared.dates import parse_date_key, parse_timestamp

if TYPE_CHECKING:
    from src.database.models.scoring import DayLedger


@dataclass(frozen=True)
class ChannelMessage:
    """One message as returned by the gateway's recent-history query."""

    author_id: str
    author_username: str
    is_bot: bool
    timestamp: datetime
    message_id: str

    def to_entry(self, tz=None) -> Dict[str, Any]:
        stamp = parse_timestamp(self.timestamp)
        if tz is not None:
            stamp = stamp.astimezone(tz)
        return {
            "user_id": self.author_id,
            "username": self.author_username,
            "timestamp": stamp.isoformat(),
            "message_id": self.message_id,
        }


@dataclass(frozen=True)
class LastMessageResolution:
    last_message: Optional[Dict[str, Any]] = None
    second_last_message: Optional[Dict[str, Any]] = None
    # False when the fetched window never reached back to the start of the day,
    # i.e. the lookback limit may have hidden the true last message.
    window_covers_day: bool = True


@dataclass(frozen=True)
class DayView:
    """Read-only snapshot of one DayLedger row."""

    date_key: str
    first_messages: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)
    last_message: Optional[Dict[str, Any]] = None
    second_last_message: Optional[Dict[str, Any]] = None

    @classmethod
    def from_model(cls, ledger: DayLedger) -> "DayView":
        return cls(
            date_key=ledger.date_key,
            first_messages=tuple(ledger.first_messages or ()),
            last_message=ledger.last_message,
            second_last_message=ledger.second_last_message,
        )

    @property
    def day(self) -> date:
        return parse_date_key(self.date_key)

    def ordered_first_messages(self) -> List[Dict[str, Any]]:
        return sorted(self.first_messages, key=lambda e: parse_timestamp(e["timestamp"]))

    def first_user_ids(self) -> List[str]:
        return [str(e["user_id"]) for e in self.ordered_first_messages()]

    def position_of(self, user_id: str) -> Optional[int]:
        """1-based finishing position of `user_id`, or None."""
        for index, uid in enumerate(self.first_user_ids(), start=1):
            if uid == str(user_id):
                return index
        return None

    @property
    def first_author_id(self) -> Optional[str]:
        ids = self.first_user_ids()
        return ids[0] if ids else None

    @property
    def last_author_id(self) -> Optional[str]:
        return str(self.last_message["user_id"]) if self.last_message else None

    @property
    def second_last_author_id(self) -> Optional[str]:
        return str(self.second_last_message["user_id"]) if self.second_last_message else None

    @property
    def participant_count(self) -> int:
        return len(self.first_messages)
