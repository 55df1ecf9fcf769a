"""
Day Ledger Service
==================

Purpose
-------
Own the per-day participation record: one first-message entry per user per
day, plus the end-of-day last / second-last authors.

Domain
------
- Record a user's first message of the day (idempotent per user per day)
- Resolve the day's last and second-last authors from channel history
- Read ledgers back in chronological order

Design Notes
------------
- `record_first_message` locks the ledger row (SELECT FOR UPDATE) inside one
  transaction; the row itself is created with a conditional insert so two
  listener events racing on a brand-new day cannot both create it.
- `select_last_messages` is a pure function so it can be tested without a
  gateway or database.
- JSON columns are always reassigned, never mutated in place, so the ORM
  sees the change.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional, Sequence
from zoneinfo import ZoneInfo

from src.core.config.config import Config
from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext, get_logger
from src.database.models.scoring import DayLedger
from src.modules.ledger.types import ChannelMessage, DayView, LastMessageResolution
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.dates import (
    date_key_for,
    day_bounds,
    parse_date_key,
    parse_timestamp,
    to_local,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


# ============================================================================
# Pure selection
# ============================================================================


def select_last_messages(
    messages: Sequence[ChannelMessage],
    date_key: str,
    tz: Optional[ZoneInfo] = None,
) -> LastMessageResolution:
    """
    Pick the day's last and second-last authors from recent channel history.

    Bot messages and messages outside ``[start_of_day, end_of_day]`` are
    dropped. `last` is the newest remaining message; `second_last` is the
    newest remaining message from a different author.

    Args:
        messages: Recent channel messages in any order
        date_key: Day to resolve (MM-DD-YYYY)
        tz: Scoring time zone (defaults to the configured one)

    Returns:
        LastMessageResolution; both fields None when nothing qualifies

    Example:
        >>> res = select_last_messages(history, "06-01-2025")
        >>> res.last_message["user_id"]
        '123'
    """
    start, end = day_bounds(date_key, tz)

    in_window = [
        m
        for m in messages
        if not m.is_bot and start <= parse_timestamp(m.timestamp) <= end
    ]
    in_window.sort(key=lambda m: parse_timestamp(m.timestamp), reverse=True)

    window_covers_day = any(parse_timestamp(m.timestamp) < start for m in messages)

    if not in_window:
        return LastMessageResolution(window_covers_day=window_covers_day)

    last = in_window[0]
    second = next((m for m in in_window[1:] if m.author_id != last.author_id), None)

    zone = start.tzinfo
    return LastMessageResolution(
        last_message=last.to_entry(zone),
        second_last_message=second.to_entry(zone) if second else None,
        window_covers_day=window_covers_day,
    )


# ============================================================================
# Repository
# ============================================================================


class DayLedgerRepository(BaseRepository[DayLedger]):
    """Repository for DayLedger model."""

    async def find_day(
        self, session, server_id: str, date_key: str, for_update: bool = False
    ) -> Optional[DayLedger]:
        return await self.find_one_where(
            session,
            DayLedger.server_id == server_id,
            DayLedger.date_key == date_key,
            for_update=for_update,
        )


# ============================================================================
# DayLedgerService
# ============================================================================


class DayLedgerService(BaseService):
    """
    Service for the append-only per-day participation ledger.

    Public Methods
    --------------
    - record_first_message() -> Append a user's first message of the day
    - resolve_last_messages() -> Persist last / second-last authors
    - get_day() -> One day's ledger view
    - list_days() -> All days for a server, chronologically
    - list_server_ids() -> Servers with a ledger (optionally for one date)
    - tracked_channel_id() -> The channel scored for a server
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._ledger_repo = DayLedgerRepository(
            model_class=DayLedger,
            logger=get_logger(f"{__name__}.DayLedgerRepository"),
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def record_first_message(
        self,
        server_id: str,
        user_id: str,
        username: str,
        message_id: str,
        timestamp: datetime,
        tz: Optional[ZoneInfo] = None,
    ) -> bool:
        """
        Record a user's first message of the day.

        This is a **write operation** using get_transaction().

        Args:
            server_id: Discord guild ID
            user_id: Author's Discord ID
            username: Author's display name at posting time
            message_id: Discord message ID
            timestamp: When the message was posted
            tz: Scoring time zone override

        Returns:
            True if an entry was appended, False if the user already had one
            for that day.
        """
        server_id = self.validate_non_empty_id(server_id, "server_id")
        user_id = self.validate_non_empty_id(user_id, "user_id")
        date_key = date_key_for(timestamp, tz)

        entry = {
            "user_id": user_id,
            "username": username,
            "message_id": str(message_id),
            "timestamp": to_local(timestamp, tz).isoformat(),
        }

        async with LogContext(guild_id=server_id, user_id=user_id, date_key=date_key):
            async with DatabaseService.get_transaction() as session:
                ledger = await self._ledger_repo.find_day(
                    session, server_id, date_key, for_update=True
                )
                if ledger is None:
                    await self._ledger_repo.insert_if_absent(
                        session,
                        {
                            "server_id": server_id,
                            "date_key": date_key,
                            "first_messages": [],
                        },
                        conflict_columns=("server_id", "date_key"),
                    )
                    ledger = await self._ledger_repo.find_day(
                        session, server_id, date_key, for_update=True
                    )
                    assert ledger is not None

                existing = list(ledger.first_messages or [])
                if any(str(e.get("user_id")) == user_id for e in existing):
                    self.log.debug(
                        "First message already recorded for user today",
                        extra={"server_id": server_id, "user_id": user_id},
                    )
                    return False

                updated = sorted(
                    existing + [entry], key=lambda e: parse_timestamp(e["timestamp"])
                )
                ledger.first_messages = updated
                position = next(
                    i for i, e in enumerate(updated, start=1) if e["user_id"] == user_id
                )

            self.log_operation(
                "record_first_message",
                server_id=server_id,
                user_id=user_id,
                date_key=date_key,
                position=position,
            )

        await self.emit_event(
            "ledger.first_message_recorded",
            {
                "server_id": server_id,
                "user_id": user_id,
                "username": username,
                "date_key": date_key,
                "position": position,
            },
        )
        return True

    async def resolve_last_messages(
        self,
        server_id: str,
        date_key: str,
        channel_history: Sequence[ChannelMessage],
        tz: Optional[ZoneInfo] = None,
    ) -> LastMessageResolution:
        """
        Resolve and persist the day's last and second-last authors.

        This is a **write operation** using get_transaction(). When no ledger
        exists for the day the resolution is returned but not stored.

        Args:
            server_id: Discord guild ID
            date_key: Day to resolve (MM-DD-YYYY)
            channel_history: Recent messages from the tracked channel (bounded
                by the configured lookback limit)
            tz: Scoring time zone override

        Returns:
            LastMessageResolution
        """
        parse_date_key(date_key)
        resolution = select_last_messages(channel_history, date_key, tz)

        if not resolution.window_covers_day and channel_history:
            self.log.warning(
                "Lookback window did not reach the start of the day; "
                "last message may be inaccurate",
                extra={
                    "server_id": server_id,
                    "date_key": date_key,
                    "fetched": len(channel_history),
                },
            )

        async with DatabaseService.get_transaction() as session:
            ledger = await self._ledger_repo.find_day(
                session, server_id, date_key, for_update=True
            )
            if ledger is None:
                self.log.info(
                    "No ledger for day; last messages not persisted",
                    extra={"server_id": server_id, "date_key": date_key},
                )
                return resolution

            ledger.last_message = resolution.last_message
            ledger.second_last_message = resolution.second_last_message

        self.log_operation(
            "resolve_last_messages",
            server_id=server_id,
            date_key=date_key,
            last_user_id=(resolution.last_message or {}).get("user_id"),
            second_last_user_id=(resolution.second_last_message or {}).get("user_id"),
        )
        return resolution

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_day(self, server_id: str, date_key: str) -> Optional[DayView]:
        """One day's ledger, or None when nobody posted that day."""
        parse_date_key(date_key)
        async with DatabaseService.get_session() as session:
            ledger = await self._ledger_repo.find_day(session, str(server_id), date_key)
            return DayView.from_model(ledger) if ledger else None

    async def list_days(
        self, server_id: str, up_to: Optional[str] = None
    ) -> List[DayView]:
        """
        All ledgers for a server in chronological order.

        Args:
            server_id: Discord guild ID
            up_to: Optional inclusive upper bound (MM-DD-YYYY)
        """
        limit_day = parse_date_key(up_to) if up_to else None

        async with DatabaseService.get_session() as session:
            rows = await self._ledger_repo.find_many_where(
                session, DayLedger.server_id == str(server_id)
            )
            views = [DayView.from_model(row) for row in rows]

        if limit_day is not None:
            views = [v for v in views if v.day <= limit_day]
        views.sort(key=lambda v: v.day)
        return views

    async def list_server_ids(self, date_key: Optional[str] = None) -> List[str]:
        """Distinct server IDs with at least one ledger (optionally on `date_key`)."""
        conditions: List[Any] = []
        if date_key is not None:
            parse_date_key(date_key)
            conditions.append(DayLedger.date_key == date_key)

        async with DatabaseService.get_session() as session:
            rows = await self._ledger_repo.find_many_where(session, *conditions)
        return sorted({row.server_id for row in rows})

    # ========================================================================
    # PUBLIC API - Configuration
    # ========================================================================

    def tracked_channel_id(self, server_id: str) -> Optional[int]:
        """
        Channel whose messages count for `server_id`.

        ``scoring.channels`` maps server IDs to channel IDs; a server not
        listed there uses Config.MAIN_CHANNEL_ID. Ledgers only exist for
        servers whose messages arrived in their tracked channel, so the
        fallback never reads another server's channel.
        """
        channels = self.get_config("scoring.channels", {}) or {}
        for key, channel_id in channels.items():
            if str(key) == str(server_id):
                return int(channel_id)
        return Config.MAIN_CHANNEL_ID
