"""
Daily Scoring Pipeline
======================

Purpose
-------
The once-a-day job. For each server with a ledger for the day being
closed:

1. Resolve the day's last / second-last authors from recent channel history
2. Compute point deltas from the ledger
3. Fold them into cumulative totals and re-rank (at most once per day)
4. Persist dated snapshots for every day that is now final (this day,
   plus later days scored earlier that were waiting on it)
5. Evaluate flair grants and publish them

Design Notes
------------
- A server with no ledger, or a ledger with no first messages, is skipped.
- A failed history fetch degrades to "no last messages": scoring continues
  with position points only.
- A day that was already folded in is reported as skipped, not as an error.
- Per-server isolation: `run_for_all_servers` logs a failing server and
  moves on to the next one.
- Each server reads its own tracked channel (`scoring.channels` mapping,
  falling back to Config.MAIN_CHANNEL_ID) unless the caller passes one.
- The gateway is a collaborator: the pipeline only sees a
  ``fetch_recent_messages(channel_id, limit)`` coroutine function that
  returns ChannelMessage records.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Sequence

from src.core.config.config import Config
from src.core.exceptions import get_error_severity, is_transient_error
from src.core.logging.logger import LogContext
from src.modules.ledger.types import ChannelMessage
from src.modules.scoring.calculator import compute_day_deltas, usernames_for_day
from src.modules.scoring.point_table import PointTable
from src.modules.shared.base_service import BaseService
from src.modules.shared.dates import parse_date_key
from src.modules.shared.exceptions import DayAlreadyProcessedError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.flair.service import FlairService, RoleGrantEvent
    from src.modules.history.service import HistoryService
    from src.modules.leaderboard.service import LeaderboardService
    from src.modules.ledger.service import DayLedgerService


FetchRecentMessages = Callable[[Optional[int], int], Awaitable[Sequence[ChannelMessage]]]

STATUS_SCORED = "scored"
STATUS_SKIPPED = "skipped"
STATUS_ALREADY_PROCESSED = "already_processed"
STATUS_FAILED = "failed"


@dataclass
class PipelineResult:
    server_id: str
    date_key: str
    status: str
    deltas: Dict[str, int] = field(default_factory=dict)
    grants: List["RoleGrantEvent"] = field(default_factory=list)
    last_user_id: Optional[str] = None
    second_last_user_id: Optional[str] = None
    snapshots_written: List[str] = field(default_factory=list)
    error: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != STATUS_FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server_id": self.server_id,
            "date_key": self.date_key,
            "status": self.status,
            "users_scored": len(self.deltas),
            "grants": len(self.grants),
            "last_user_id": self.last_user_id,
            "second_last_user_id": self.second_last_user_id,
            "snapshots_written": list(self.snapshots_written),
            "error": self.error,
            "duration_ms": round(self.duration_ms, 2),
        }


class DailyScoringPipeline(BaseService):
    """
    Orchestrates the daily scoring pass.

    Public Methods
    --------------
    - run_daily_scoring() -> Score one server for one day
    - run_for_all_servers() -> Score every server with a ledger for the day
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        ledger_service: DayLedgerService,
        leaderboard_service: LeaderboardService,
        history_service: HistoryService,
        flair_service: FlairService,
        point_table: Optional[PointTable] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._ledger = ledger_service
        self._leaderboard = leaderboard_service
        self._history = history_service
        self._flairs = flair_service
        self._points = point_table or PointTable.from_config(config_manager)

    async def run_daily_scoring(
        self,
        server_id: str,
        date_key: str,
        fetch_recent_messages: FetchRecentMessages,
        channel_id: Optional[int] = None,
    ) -> PipelineResult:
        """
        Score one server for one closed day.

        Args:
            server_id: Discord guild ID
            date_key: Day to close (MM-DD-YYYY), normally yesterday
            fetch_recent_messages: Gateway query for recent channel history
            channel_id: Tracked channel (defaults to the server's configured channel)

        Returns:
            PipelineResult with status scored / skipped / already_processed

        Raises:
            Any store failure from the write steps; `run_for_all_servers`
            turns these into a failed result.
        """
        server_id = str(server_id)
        parse_date_key(date_key)
        started = time.perf_counter()
        result = PipelineResult(server_id=server_id, date_key=date_key, status=STATUS_SKIPPED)

        async with LogContext(guild_id=server_id, date_key=date_key, component="pipeline"):
            day = await self._ledger.get_day(server_id, date_key)
            if day is None or not day.first_messages:
                self.log.info(
                    "No first messages for day; skipping",
                    extra={"server_id": server_id, "date_key": date_key},
                )
                return result

            if await self._leaderboard.is_day_processed(server_id, date_key):
                result.status = STATUS_ALREADY_PROCESSED
                self.log.warning(
                    "Day already processed; skipping",
                    extra={"server_id": server_id, "date_key": date_key},
                )
                return result

            history = await self._fetch_history(
                fetch_recent_messages,
                channel_id or self._ledger.tracked_channel_id(server_id),
                server_id,
            )
            resolution = await self._ledger.resolve_last_messages(server_id, date_key, history)
            result.last_user_id = (resolution.last_message or {}).get("user_id")
            result.second_last_user_id = (resolution.second_last_message or {}).get("user_id")

            day = await self._ledger.get_day(server_id, date_key)
            assert day is not None
            result.deltas = compute_day_deltas(day, self._points)
            names = usernames_for_day(
                day.first_messages, day.last_message, day.second_last_message
            )

            try:
                await self._leaderboard.apply_daily_deltas(
                    server_id, date_key, result.deltas, names
                )
            except DayAlreadyProcessedError:
                result.status = STATUS_ALREADY_PROCESSED
                self.log.warning(
                    "Day was processed concurrently; skipping",
                    extra={"server_id": server_id, "date_key": date_key},
                )
                return result

            result.snapshots_written = await self._history.write_final_snapshots(server_id)
            result.grants = await self._flairs.evaluate_role_grants(server_id, date_key)

            result.status = STATUS_SCORED
            result.duration_ms = (time.perf_counter() - started) * 1000
            self.log_operation("run_daily_scoring", **result.to_dict())

        await self.emit_event("scoring.day_completed", result.to_dict())
        return result

    async def run_for_all_servers(
        self,
        date_key: str,
        fetch_recent_messages: FetchRecentMessages,
        channel_id: Optional[int] = None,
    ) -> List[PipelineResult]:
        """Score every server that has a ledger for `date_key`; one failure never stops the rest."""
        results: List[PipelineResult] = []
        server_ids = await self._ledger.list_server_ids(date_key)

        self.log.info(
            "Daily scoring run starting",
            extra={"date_key": date_key, "servers": len(server_ids)},
        )

        for server_id in server_ids:
            try:
                results.append(
                    await self.run_daily_scoring(
                        server_id, date_key, fetch_recent_messages, channel_id
                    )
                )
            except Exception as exc:
                self.log_error(
                    "run_daily_scoring",
                    exc,
                    server_id=server_id,
                    date_key=date_key,
                    transient=is_transient_error(exc),
                    severity=get_error_severity(exc).value,
                )
                results.append(
                    PipelineResult(
                        server_id=server_id,
                        date_key=date_key,
                        status=STATUS_FAILED,
                        error=str(exc),
                    )
                )

        self.log.info(
            "Daily scoring run finished",
            extra={
                "date_key": date_key,
                "scored": sum(r.status == STATUS_SCORED for r in results),
                "failed": sum(r.status == STATUS_FAILED for r in results),
            },
        )
        return results

    async def _fetch_history(
        self,
        fetch_recent_messages: FetchRecentMessages,
        channel_id: Optional[int],
        server_id: str,
    ) -> Sequence[ChannelMessage]:
        limit = int(self.get_config("scoring.lookback_limit", Config.LOOKBACK_LIMIT))
        try:
            return list(await fetch_recent_messages(channel_id, limit))
        except Exception as exc:
            self.log.warning(
                "Channel history unavailable; last messages left empty",
                extra={
                    "server_id": server_id,
                    "channel_id": channel_id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return []
