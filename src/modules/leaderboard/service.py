"""
Leaderboard Service
===================

Purpose
-------
Fold one day's point deltas into each server's cumulative per-user totals,
re-rank every user, and overwrite the "current" leaderboard snapshot.

Domain
------
- Apply daily deltas atomically (at most once per server per day)
- Query the current leaderboard
- Query one user's score, rank and the number of ranked users

Design Notes
------------
- `apply_daily_deltas` runs in ONE transaction: processed-day marker, locked
  read of all UserScore rows, increments, re-rank, current snapshot. Any
  failure rolls everything back, so a retry from the same deltas is safe.
- The processed-day marker is a conditional insert on (server_id, date_key);
  a conflict means the day was already folded in and raises
  DayAlreadyProcessedError before anything is written.
- Ranks are unique (see `ranking.rank_entries`).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Set

from src.core.database.base import utcnow
from src.core.database.service import DatabaseService
from src.core.logging.logger import LogContext, get_logger
from src.database.models.scoring import (
    CURRENT_SNAPSHOT_KEY,
    LeaderboardSnapshot,
    ProcessedDay,
    UserScore,
)
from src.modules.leaderboard.ranking import LeaderboardSnapshotView, rank_entries
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.dates import parse_date_key
from src.modules.shared.exceptions import DayAlreadyProcessedError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


# ============================================================================
# Repositories
# ============================================================================


class UserScoreRepository(BaseRepository[UserScore]):
    """Repository for UserScore model."""

    pass


class LeaderboardSnapshotRepository(BaseRepository[LeaderboardSnapshot]):
    """Repository for LeaderboardSnapshot model."""

    async def find_key(
        self, session, server_id: str, snapshot_key: str, for_update: bool = False
    ) -> Optional[LeaderboardSnapshot]:
        return await self.find_one_where(
            session,
            LeaderboardSnapshot.server_id == server_id,
            LeaderboardSnapshot.snapshot_key == snapshot_key,
            for_update=for_update,
        )


class ProcessedDayRepository(BaseRepository[ProcessedDay]):
    """Repository for ProcessedDay model."""

    pass


# ============================================================================
# LeaderboardService
# ============================================================================


class LeaderboardService(BaseService):
    """
    Service for cumulative scores and the current leaderboard.

    Public Methods
    --------------
    - apply_daily_deltas() -> Fold one day into cumulative totals
    - get_current() -> Current leaderboard snapshot
    - get_user_standing() -> One user's score and rank
    - is_day_processed() -> Whether a day was already folded in
    - list_processed_days() -> Every day already folded in
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)

        self._score_repo = UserScoreRepository(
            model_class=UserScore,
            logger=get_logger(f"{__name__}.UserScoreRepository"),
        )
        self._snapshot_repo = LeaderboardSnapshotRepository(
            model_class=LeaderboardSnapshot,
            logger=get_logger(f"{__name__}.LeaderboardSnapshotRepository"),
        )
        self._processed_repo = ProcessedDayRepository(
            model_class=ProcessedDay,
            logger=get_logger(f"{__name__}.ProcessedDayRepository"),
        )

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def apply_daily_deltas(
        self,
        server_id: str,
        date_key: str,
        deltas: Mapping[str, int],
        usernames: Optional[Mapping[str, str]] = None,
    ) -> LeaderboardSnapshotView:
        """
        Apply one day's deltas to a server's cumulative leaderboard.

        This is a **write operation** using get_transaction().

        Args:
            server_id: Discord guild ID
            date_key: Day the deltas belong to (MM-DD-YYYY)
            deltas: user_id -> points earned that day
            usernames: user_id -> display name seen that day

        Returns:
            The new "current" snapshot

        Raises:
            DayAlreadyProcessedError: If `date_key` was already applied for
                this server (nothing is written)
            InvalidDateRangeError: If `date_key` is malformed

        Example:
            >>> view = await service.apply_daily_deltas(
            ...     "1300198974988357732", "06-01-2025", {"123": 22}, {"123": "racer"}
            ... )
            >>> view.rankings[0].rank
            1
        """
        server_id = self.validate_non_empty_id(server_id, "server_id")
        parse_date_key(date_key)
        names = dict(usernames or {})

        async with LogContext(guild_id=server_id, date_key=date_key, operation="apply_daily_deltas"):
            async with DatabaseService.get_transaction() as session:
                marked = await self._processed_repo.insert_if_absent(
                    session,
                    {"server_id": server_id, "date_key": date_key, "processed_at": utcnow()},
                    conflict_columns=("server_id", "date_key"),
                )
                if not marked:
                    raise DayAlreadyProcessedError(server_id, date_key)

                rows = await self._score_repo.find_many_where(
                    session, UserScore.server_id == server_id, for_update=True
                )
                by_user: Dict[str, UserScore] = {row.user_id: row for row in rows}

                for user_id, delta in deltas.items():
                    user_id = str(user_id)
                    row = by_user.get(user_id)
                    if row is None:
                        row = UserScore(
                            server_id=server_id,
                            user_id=user_id,
                            username=names.get(user_id) or user_id,
                            cumulative_score=0,
                            rank=0,
                        )
                        self._score_repo.add(session, row)
                        by_user[user_id] = row
                    row.cumulative_score = row.cumulative_score + int(delta)
                    if names.get(user_id):
                        row.username = names[user_id]

                ranked = rank_entries(
                    {uid: row.cumulative_score for uid, row in by_user.items()},
                    {uid: row.username for uid, row in by_user.items()},
                )
                for entry in ranked:
                    by_user[entry.user_id].rank = entry.rank

                snapshot = await self._write_current_snapshot(
                    session, server_id, [e.to_dict() for e in ranked]
                )
                view = LeaderboardSnapshotView.from_model(snapshot)

            self.log_operation(
                "apply_daily_deltas",
                server_id=server_id,
                date_key=date_key,
                users_scored=len(deltas),
                total_users=len(ranked),
            )

        await self.emit_event(
            "leaderboard.updated",
            {
                "server_id": server_id,
                "date_key": date_key,
                "total_users": len(view.rankings),
            },
        )
        return view

    async def _write_current_snapshot(
        self, session, server_id: str, rankings: list
    ) -> LeaderboardSnapshot:
        await self._snapshot_repo.insert_if_absent(
            session,
            {
                "server_id": server_id,
                "snapshot_key": CURRENT_SNAPSHOT_KEY,
                "rankings": [],
                "computed_at": utcnow(),
            },
            conflict_columns=("server_id", "snapshot_key"),
        )
        snapshot = await self._snapshot_repo.find_key(
            session, server_id, CURRENT_SNAPSHOT_KEY, for_update=True
        )
        assert snapshot is not None
        snapshot.rankings = rankings
        snapshot.computed_at = utcnow()
        return snapshot

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_current(self, server_id: str) -> LeaderboardSnapshotView:
        """
        Current leaderboard for a server.

        This is a **read-only** operation using get_session(). A server that
        has never been scored gets an empty snapshot, not an error.
        """
        server_id = str(server_id)
        async with DatabaseService.get_session() as session:
            snapshot = await self._snapshot_repo.find_key(
                session, server_id, CURRENT_SNAPSHOT_KEY
            )
            if snapshot is None:
                return LeaderboardSnapshotView(
                    server_id=server_id, snapshot_key=CURRENT_SNAPSHOT_KEY
                )
            return LeaderboardSnapshotView.from_model(snapshot)

    async def get_user_standing(
        self, server_id: str, user_id: str
    ) -> Optional[Dict[str, Any]]:
        """
        One user's cumulative score and rank.

        Returns:
            `{user_id, username, score, rank, total_users}` or None if the
            user has never scored on this server
        """
        server_id, user_id = str(server_id), str(user_id)
        async with DatabaseService.get_session() as session:
            row = await self._score_repo.find_one_where(
                session,
                UserScore.server_id == server_id,
                UserScore.user_id == user_id,
            )
            if row is None:
                return None
            total = await self._score_repo.count(session, UserScore.server_id == server_id)

        return {
            "user_id": row.user_id,
            "username": row.username,
            "score": row.cumulative_score,
            "rank": row.rank,
            "total_users": total,
        }

    async def is_day_processed(self, server_id: str, date_key: str) -> bool:
        async with DatabaseService.get_session() as session:
            return (
                await self._processed_repo.count(
                    session,
                    ProcessedDay.server_id == str(server_id),
                    ProcessedDay.date_key == date_key,
                )
                > 0
            )

    async def list_processed_days(self, server_id: str) -> Set[str]:
        """Date keys already folded into the server's totals."""
        async with DatabaseService.get_session() as session:
            rows = await self._processed_repo.find_many_where(
                session, ProcessedDay.server_id == str(server_id)
            )
        return {row.date_key for row in rows}
