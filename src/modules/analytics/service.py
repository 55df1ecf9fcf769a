"""
Analytics Service
=================

Purpose
-------
Load ledgers and snapshots for a server and hand them to the pure
derivations in `derivations.py`.

Domain
------
- Growth rate between two persisted dated snapshots
- Participation, heatmap, server statistics, position and rank counts
- A user's finishing position on one day
- Monthly gains and the flair-tier leaderboard

Design Notes
------------
- All methods are read-only.
- Growth rate never defaults a missing snapshot to zero: both dates must
  have been persisted, otherwise SnapshotNotFoundError is raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple

from src.modules.analytics.derivations import (
    GrowthRate,
    Heatmap,
    MonthlyGain,
    ParticipationStats,
    PositionStats,
    RankCount,
    ServerStatistics,
    UserPosition,
    compute_growth_rates,
    compute_heatmap,
    compute_monthly_gains,
    compute_participation,
    compute_position_stats,
    compute_rank_counts,
    compute_server_statistics,
    find_user_position,
    group_by_flair_tier,
)
from src.modules.flair.tiers import FlairTable, FlairTier
from src.modules.leaderboard.ranking import RankedEntry
from src.modules.shared.base_service import BaseService
from src.modules.shared.dates import days_between, format_date_key, parse_date_key
from src.modules.shared.exceptions import (
    InvalidDateRangeError,
    SnapshotNotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.history.service import HistoryService
    from src.modules.leaderboard.service import LeaderboardService
    from src.modules.ledger.service import DayLedgerService


class AnalyticsService(BaseService):
    """
    Read-only analytics over a server's ledgers and snapshots.

    Public Methods
    --------------
    - growth_rates() -> Points/day between two dated snapshots
    - participation() / heatmap() / server_statistics()
    - position_stats() / rank_counts() / user_position()
    - monthly_gains() / flair_leaderboard()
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger_service: DayLedgerService,
        history_service: HistoryService,
        leaderboard_service: LeaderboardService,
        flair_table: Optional[FlairTable] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._ledger = ledger_service
        self._history = history_service
        self._leaderboard = leaderboard_service
        self._flairs = flair_table or FlairTable.from_config(config_manager)

    # ========================================================================
    # Snapshots
    # ========================================================================

    async def growth_rates(
        self, server_id: str, date1: str, date2: str
    ) -> Tuple[str, str, List[GrowthRate]]:
        """
        Growth rate per user between two dated snapshots.

        Dates may be given in either order.

        Returns:
            (start_key, end_key, rates sorted by rate descending)

        Raises:
            InvalidDateRangeError: Malformed or identical dates
            SnapshotNotFoundError: Either date has no persisted snapshot
        """
        first = parse_date_key(date1, "date1")
        second = parse_date_key(date2, "date2")
        if first == second:
            raise InvalidDateRangeError("date2", "Dates must be different and at least one day apart")

        start_key, end_key = sorted((date1, date2), key=parse_date_key)
        start = await self._history.get_snapshot(server_id, start_key)
        if start is None:
            raise SnapshotNotFoundError(str(server_id), start_key)
        end = await self._history.get_snapshot(server_id, end_key)
        if end is None:
            raise SnapshotNotFoundError(str(server_id), end_key)

        rates = compute_growth_rates(start, end, days_between(start_key, end_key))
        self.log_operation(
            "growth_rates",
            server_id=str(server_id),
            start=start_key,
            end=end_key,
            users=len(rates),
        )
        return start_key, end_key, rates

    async def monthly_gains(self, server_id: str, month: int, year: int) -> List[MonthlyGain]:
        """
        Points gained during one calendar month.

        Raises:
            InvalidDateRangeError: If `month` is not 1..12
        """
        if not 1 <= month <= 12:
            raise InvalidDateRangeError("month", "Month must be between 1 and 12")

        keys = await self._history.list_snapshot_keys(server_id)
        in_month = [k for k in keys if (parse_date_key(k).month, parse_date_key(k).year) == (month, year)]
        if not in_month:
            return []

        before = [k for k in keys if parse_date_key(k) < parse_date_key(in_month[0])]
        baseline = await self._history.get_snapshot(server_id, before[-1]) if before else None
        snapshots = await self._history.get_snapshots_between(server_id, in_month[0], in_month[-1])
        return compute_monthly_gains(snapshots, baseline)

    async def flair_leaderboard(
        self, server_id: str
    ) -> List[Tuple[FlairTier, List[RankedEntry]]]:
        current = await self._leaderboard.get_current(server_id)
        return group_by_flair_tier(current.rankings, self._flairs)

    # ========================================================================
    # Ledger aggregations
    # ========================================================================

    async def participation(self, server_id: str) -> ParticipationStats:
        return compute_participation(await self._ledger.list_days(str(server_id)))

    async def heatmap(self, server_id: str) -> Heatmap:
        return compute_heatmap(await self._ledger.list_days(str(server_id)))

    async def server_statistics(self, server_id: str) -> ServerStatistics:
        return compute_server_statistics(await self._ledger.list_days(str(server_id)))

    async def position_stats(self, server_id: str, position: int) -> PositionStats:
        """
        Raises:
            ValidationError: If `position` is outside 1..15
        """
        days = await self._ledger.list_days(str(server_id))
        try:
            return compute_position_stats(days, position)
        except ValueError as exc:
            raise ValidationError("position", str(exc)) from exc

    async def rank_counts(self, server_id: str, user_id: str, category: str) -> RankCount:
        """
        Raises:
            ValidationError: If `category` is not a position, last or second_last
        """
        days = await self._ledger.list_days(str(server_id))
        try:
            return compute_rank_counts(days, str(user_id), category)
        except ValueError as exc:
            raise ValidationError("category", str(exc)) from exc

    async def user_position(self, server_id: str, user_id: str, date_key: str) -> UserPosition:
        day = await self._ledger.get_day(str(server_id), date_key)
        return find_user_position(day, str(user_id), format_date_key(parse_date_key(date_key)))
