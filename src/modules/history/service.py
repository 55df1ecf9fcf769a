"""
History Service
===============

Purpose
-------
Materialize and serve leaderboards as of a past date.

Domain
------
- Return a dated snapshot if one was already persisted
- Otherwise rebuild it from every ledger up to and including that date,
  rank it, and persist it
- After each daily run, persist the snapshot of every scored day that does
  not have one yet

Design Notes
------------
- Dated snapshots are write-once. Every write is a create-if-absent insert
  followed by a re-read, so two concurrent builders for the same
  (server, date) both return the row that won.
- A snapshot's scores are always the sum of daily deltas over the ledgers
  up to its date, never a copy of the current leaderboard, so scoring days
  out of order cannot leak later points into an earlier date.
- A date is only final once every ledger day up to it has been scored
  (last / second-last resolved and folded in). Until then no snapshot is
  stored for it.
- "Today" and future dates are rejected at the boundary by
  `validate_past_date`.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Set

from src.core.database.base import utcnow
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models.scoring import CURRENT_SNAPSHOT_KEY, LeaderboardSnapshot
from src.modules.leaderboard.ranking import (
    LeaderboardSnapshotView,
    RankedEntry,
    rank_entries,
)
from src.modules.leaderboard.service import LeaderboardSnapshotRepository
from src.modules.scoring.calculator import (
    accumulate_scores,
    compute_day_deltas,
    latest_usernames,
    usernames_for_day,
)
from src.modules.scoring.point_table import PointTable
from src.modules.shared.base_service import BaseService
from src.modules.shared.dates import parse_date_key, sort_date_keys, today_key
from src.modules.shared.exceptions import InvalidDateRangeError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.leaderboard.service import LeaderboardService
    from src.modules.ledger.service import DayLedgerService
    from src.modules.ledger.types import DayView


def validate_past_date(
    date_key: str, today: Optional[str] = None, field: str = "date"
) -> date:
    """
    Validate a history lookup date.

    Raises:
        InvalidDateRangeError: If the date is malformed, today, or in the future
    """
    day = parse_date_key(date_key, field)
    current = parse_date_key(today or today_key())
    if day >= current:
        raise InvalidDateRangeError(
            field, f"{date_key} is not in the past; history is only available for completed days"
        )
    return day


class HistoryService(BaseService):
    """
    Service for dated (historical) leaderboard snapshots.

    Public Methods
    --------------
    - snapshot_as_of() -> Leaderboard as of a past date (built on demand)
    - write_final_snapshots() -> Persist snapshots for every fully scored day
    - write_snapshot_for_day() -> Persist one dated snapshot (create-if-absent)
    - get_snapshot() -> Existing dated snapshot or None
    - list_snapshot_keys() -> Persisted dated keys, chronologically
    - get_snapshots_between() -> Persisted snapshots in a date range
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger_service: DayLedgerService,
        leaderboard_service: LeaderboardService,
        point_table: Optional[PointTable] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._ledger = ledger_service
        self._leaderboard = leaderboard_service
        self._points = point_table or PointTable.from_config(config_manager)
        self._snapshot_repo = LeaderboardSnapshotRepository(
            model_class=LeaderboardSnapshot,
            logger=get_logger(f"{__name__}.LeaderboardSnapshotRepository"),
        )

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def snapshot_as_of(self, server_id: str, date_key: str) -> LeaderboardSnapshotView:
        """
        Leaderboard as of the end of `date_key`.

        Returns the persisted snapshot unchanged when one exists; otherwise
        aggregates all ledgers up to `date_key`, ranks, and persists.

        Callers validate the date with `validate_past_date` first.

        Raises:
            InvalidDateRangeError: If a day up to `date_key` has a ledger but
                has not been scored yet
        """
        server_id = str(server_id)
        parse_date_key(date_key)

        existing = await self.get_snapshot(server_id, date_key)
        if existing is not None:
            self.log.debug(
                "Dated snapshot cache hit",
                extra={"server_id": server_id, "date_key": date_key},
            )
            return existing

        days = await self._ledger.list_days(server_id, up_to=date_key)
        pending = self._unscored(days, await self._leaderboard.list_processed_days(server_id))
        if pending:
            raise InvalidDateRangeError(
                "date",
                f"{', '.join(pending)} has not been scored yet; "
                f"history for {date_key} is available after the daily run",
            )

        ranked = rank_entries(accumulate_scores(days, self._points), latest_usernames(days))

        self.log_operation(
            "snapshot_as_of.build",
            server_id=server_id,
            date_key=date_key,
            days_aggregated=len(days),
            users=len(ranked),
        )
        return await self.write_snapshot_for_day(server_id, date_key, ranked)

    async def write_final_snapshots(self, server_id: str) -> List[str]:
        """
        Persist a dated snapshot for every scored day that lacks one.

        Walks the ledgers chronologically with running totals and stops at
        the first day that has not been scored, since no later date is final
        until it is. Called by the daily pipeline after a day is folded in;
        scoring an older day late fills in the newer dates behind it.

        Returns:
            Date keys written by this call
        """
        server_id = str(server_id)
        days = await self._ledger.list_days(server_id)
        processed = await self._leaderboard.list_processed_days(server_id)
        stored = set(await self.list_snapshot_keys(server_id))

        totals: Dict[str, int] = {}
        names: Dict[str, str] = {}
        written: List[str] = []

        for day in days:
            if not day.first_messages:
                continue
            if day.date_key not in processed:
                self.log.info(
                    "Unscored day blocks later dated snapshots",
                    extra={"server_id": server_id, "date_key": day.date_key},
                )
                break

            for user_id, delta in compute_day_deltas(day, self._points).items():
                totals[user_id] = totals.get(user_id, 0) + delta
            names.update(
                usernames_for_day(day.first_messages, day.last_message, day.second_last_message)
            )

            if day.date_key in stored:
                continue
            await self.write_snapshot_for_day(server_id, day.date_key, rank_entries(dict(totals), names))
            written.append(day.date_key)

        if written:
            self.log_operation("write_final_snapshots", server_id=server_id, written=written)
        return written

    async def write_snapshot_for_day(
        self,
        server_id: str,
        date_key: str,
        rankings: Sequence[RankedEntry],
    ) -> LeaderboardSnapshotView:
        """
        Persist a dated snapshot if none exists yet.

        This is a **write operation** using get_transaction(). An existing
        snapshot for the date is never overwritten; the stored row is
        returned either way.
        """
        server_id = str(server_id)
        parse_date_key(date_key)

        async with DatabaseService.get_transaction() as session:
            created = await self._snapshot_repo.insert_if_absent(
                session,
                {
                    "server_id": server_id,
                    "snapshot_key": date_key,
                    "rankings": [e.to_dict() for e in rankings],
                    "computed_at": utcnow(),
                },
                conflict_columns=("server_id", "snapshot_key"),
            )
            stored = await self._snapshot_repo.find_key(session, server_id, date_key)
            assert stored is not None
            view = LeaderboardSnapshotView.from_model(stored)

        if not created:
            self.log.info(
                "Dated snapshot already existed; kept original",
                extra={"server_id": server_id, "date_key": date_key},
            )
        return view

    async def get_snapshot(
        self, server_id: str, date_key: str
    ) -> Optional[LeaderboardSnapshotView]:
        async with DatabaseService.get_session() as session:
            stored = await self._snapshot_repo.find_key(session, str(server_id), date_key)
            return LeaderboardSnapshotView.from_model(stored) if stored else None

    async def list_snapshot_keys(self, server_id: str) -> List[str]:
        async with DatabaseService.get_session() as session:
            rows = await self._snapshot_repo.find_many_where(
                session,
                LeaderboardSnapshot.server_id == str(server_id),
                LeaderboardSnapshot.snapshot_key != CURRENT_SNAPSHOT_KEY,
            )
        return sort_date_keys(row.snapshot_key for row in rows)

    async def get_snapshots_between(
        self, server_id: str, start_key: str, end_key: str
    ) -> Dict[str, LeaderboardSnapshotView]:
        """Persisted dated snapshots with start <= date <= end, keyed by date."""
        start, end = parse_date_key(start_key), parse_date_key(end_key)

        async with DatabaseService.get_session() as session:
            rows = await self._snapshot_repo.find_many_where(
                session,
                LeaderboardSnapshot.server_id == str(server_id),
                LeaderboardSnapshot.snapshot_key != CURRENT_SNAPSHOT_KEY,
            )
            views = {
                row.snapshot_key: LeaderboardSnapshotView.from_model(row)
                for row in rows
                if start <= parse_date_key(row.snapshot_key) <= end
            }
        return {key: views[key] for key in sort_date_keys(views)}

    @staticmethod
    def _unscored(days: Sequence[DayView], processed: Set[str]) -> List[str]:
        return [d.date_key for d in days if d.first_messages and d.date_key not in processed]
