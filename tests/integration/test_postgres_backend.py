"""
Integration Tests for the PostgreSQL backend
============================================

Purpose
-------
Run the write paths that compile differently per dialect against a real
PostgreSQL (testcontainers + asyncpg): conflict-ignoring inserts and
row locks (SELECT ... FOR UPDATE).

Testing Strategy
----------------
- Session-scoped PostgreSQL testcontainer, tables truncated per test
- Skipped automatically when Docker is unavailable
"""

import asyncio
from datetime import datetime

import pytest

from src.core.logging.logger import get_logger
from src.database.models import ProcessedDay
from src.modules.shared.base_repository import BaseRepository
from src.modules.shared.exceptions import DayAlreadyProcessedError

from tests.conftest import LA, SERVER_ID, history_fetcher, stamp

DAY = "06-02-2025"
NEXT_DAY = "06-03-2025"


async def post(services, user_id, username, date_key, clock):
    return await services.ledger.record_first_message(
        SERVER_ID,
        user_id,
        username,
        message_id=f"{user_id}{clock.replace(':', '')}",
        timestamp=datetime.fromisoformat(stamp(date_key, clock)),
        tz=LA,
    )


@pytest.mark.integration
@pytest.mark.database
class TestPostgresWrites:
    """Dialect-specific write paths on PostgreSQL."""

    async def test_dialect(self, postgres_database):
        assert postgres_database.dialect_name() == "postgresql"
        assert await postgres_database.health_check() is True

    async def test_insert_if_absent_ignores_conflict(self, postgres_database):
        # Arrange
        repo = BaseRepository(ProcessedDay, get_logger(__name__))
        values = {"server_id": SERVER_ID, "date_key": DAY}

        # Act
        async with postgres_database.get_transaction() as session:
            first = await repo.insert_if_absent(session, values, ("server_id", "date_key"))
        async with postgres_database.get_transaction() as session:
            second = await repo.insert_if_absent(session, values, ("server_id", "date_key"))

        # Assert
        assert first is True
        assert second is False

    async def test_concurrent_first_messages_are_all_kept(self, postgres_services):
        """Row lock on the day's ledger serializes appends from racing listeners."""
        posts = [(str(1001 + i), f"user{i}", f"07:00:{i:02d}") for i in range(5)]

        results = await asyncio.gather(
            *(post(postgres_services, uid, name, DAY, clock) for uid, name, clock in posts)
        )

        day = await postgres_services.ledger.get_day(SERVER_ID, DAY)
        assert all(results)
        assert day.first_user_ids() == [uid for uid, _, _ in posts]

    async def test_day_is_folded_in_once(self, postgres_services):
        await post(postgres_services, "1001", "ann", DAY, "07:00:00")
        leaderboard = postgres_services.leaderboard
        await leaderboard.apply_daily_deltas(SERVER_ID, DAY, {"1001": 20})

        with pytest.raises(DayAlreadyProcessedError):
            await leaderboard.apply_daily_deltas(SERVER_ID, DAY, {"1001": 20})

        assert (await leaderboard.get_current(SERVER_ID)).scores() == {"1001": 20}

    async def test_out_of_order_scoring_keeps_dated_snapshots_exact(self, postgres_services):
        await post(postgres_services, "1001", "ann", DAY, "07:00:00")
        await post(postgres_services, "1002", "bo", NEXT_DAY, "07:00:00")
        pipeline = postgres_services.pipeline

        await pipeline.run_daily_scoring(SERVER_ID, NEXT_DAY, history_fetcher([]), 555)
        await pipeline.run_daily_scoring(SERVER_ID, DAY, history_fetcher([]), 555)

        history = postgres_services.history
        assert (await history.get_snapshot(SERVER_ID, DAY)).scores() == {"1001": 20}
        assert (await history.get_snapshot(SERVER_ID, NEXT_DAY)).scores() == {"1001": 20, "1002": 20}
