"""
Integration Tests for the daily scoring pipeline and history
============================================================

Test Coverage
-------------
- End-to-end scoring of a day: last messages, deltas, totals, dated
  snapshot, flair grants
- Skips: no ledger, day already processed
- Degraded history fetch
- Per-server failure isolation
- Historical snapshots: build on demand, write-once
- Dated snapshots stay equal to the ledger sums when days are scored out of
  order, and are never stored before a day is scored
- Per-server tracked channels
- Snapshot-based analytics (growth rates, monthly gains)
"""

from datetime import datetime

import pytest

from src.core.config.config import Config
from src.core.exceptions import DatabaseError
from src.modules.history.service import validate_past_date
from src.modules.scoring.calculator import accumulate_scores, compute_day_deltas
from src.modules.scoring.pipeline import (
    STATUS_ALREADY_PROCESSED,
    STATUS_FAILED,
    STATUS_SCORED,
    STATUS_SKIPPED,
)
from src.modules.shared.exceptions import (
    InvalidDateRangeError,
    SnapshotNotFoundError,
    ValidationError,
)

from tests.conftest import (
    LA,
    OTHER_SERVER_ID,
    SERVER_ID,
    failing_fetcher,
    history_fetcher,
    stamp,
)

DAY = "06-02-2025"
NEXT_DAY = "06-03-2025"
CHANNEL_ID = 555


async def fold(services, *date_keys):
    """Fold days into the totals without the pipeline (no snapshots written)."""
    for key in date_keys:
        day = await services.ledger.get_day(SERVER_ID, key)
        await services.leaderboard.apply_daily_deltas(
            SERVER_ID, key, compute_day_deltas(day, services.point_table)
        )


async def post_firsts(services, server_id, date_key, posts):
    for user_id, username, clock in posts:
        await services.ledger.record_first_message(
            server_id,
            user_id,
            username,
            message_id=f"{user_id}{clock.replace(':', '')}",
            timestamp=datetime.fromisoformat(stamp(date_key, clock)),
            tz=LA,
        )


@pytest.fixture
def day_history(make_message):
    """1001 posts last, 1002 second-last; one message from the previous day closes the window."""
    return [
        make_message("1003", "cy", "06-01-2025", "22:00:00"),
        make_message("1002", "bo", DAY, "23:00:00"),
        make_message("1001", "ann", DAY, "23:30:00"),
        make_message("1003", "cy", NEXT_DAY, "00:05:00"),
    ]


# ============================================================================
# PIPELINE
# ============================================================================


@pytest.mark.integration
class TestDailyScoring:
    """One server, one day."""

    async def test_day_is_scored_end_to_end(self, services, day_history):
        # Arrange
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00"), ("1002", "bo", "07:00:30")])

        # Act
        result = await services.pipeline.run_daily_scoring(
            SERVER_ID, DAY, history_fetcher(day_history), CHANNEL_ID
        )

        # Assert
        assert result.status == STATUS_SCORED
        assert result.last_user_id == "1001"
        assert result.second_last_user_id == "1002"
        assert result.deltas == {"1001": 40, "1002": 22}

        current = await services.leaderboard.get_current(SERVER_ID)
        assert [(e.user_id, e.score, e.rank) for e in current.rankings] == [("1001", 40, 1), ("1002", 22, 2)]

        dated = await services.history.get_snapshot(SERVER_ID, DAY)
        assert dated.scores() == current.scores()

    async def test_flair_grants_are_published(self, services, event_bus, day_history):
        granted = []
        event_bus.subscribe("flair.granted", lambda payload: granted.append(payload))
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00"), ("1002", "bo", "07:00:30")])

        result = await services.pipeline.run_daily_scoring(
            SERVER_ID, DAY, history_fetcher(day_history), CHANNEL_ID
        )

        expected = [("1001", "RACER"), ("1001", "FIRST_LAST"), ("1002", "RACER")]
        assert [(g.user_id, g.tier_key) for g in result.grants] == expected
        assert [(p["user_id"], p["tier_key"]) for p in granted] == expected
        assert granted[0]["role_id"] == 301
        assert granted[0]["date_earned"] == DAY

    async def test_completion_event(self, services, event_bus, day_history):
        completed = []
        event_bus.subscribe("scoring.day_completed", lambda payload: completed.append(payload))
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])

        await services.pipeline.run_daily_scoring(SERVER_ID, DAY, history_fetcher(day_history), CHANNEL_ID)

        assert completed[0]["status"] == STATUS_SCORED
        assert completed[0]["users_scored"] == 2

    async def test_day_without_ledger_is_skipped(self, services, day_history):
        result = await services.pipeline.run_daily_scoring(
            SERVER_ID, DAY, history_fetcher(day_history), CHANNEL_ID
        )

        assert result.status == STATUS_SKIPPED
        assert (await services.leaderboard.get_current(SERVER_ID)).is_empty

    async def test_second_run_does_not_double_count(self, services, day_history):
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])
        fetch = history_fetcher(day_history)

        first = await services.pipeline.run_daily_scoring(SERVER_ID, DAY, fetch, CHANNEL_ID)
        second = await services.pipeline.run_daily_scoring(SERVER_ID, DAY, fetch, CHANNEL_ID)

        assert first.status == STATUS_SCORED
        assert second.status == STATUS_ALREADY_PROCESSED
        assert (await services.leaderboard.get_current(SERVER_ID)).scores() == {"1001": 40, "1002": 10}

    async def test_history_failure_scores_positions_only(self, services):
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00"), ("1002", "bo", "07:00:30")])

        result = await services.pipeline.run_daily_scoring(
            SERVER_ID, DAY, failing_fetcher(ConnectionError("gateway down")), CHANNEL_ID
        )

        assert result.status == STATUS_SCORED
        assert result.last_user_id is None
        assert result.deltas == {"1001": 20, "1002": 12}

    async def test_lookback_limit_bounds_the_fetch(self, services, day_history):
        calls = []

        async def fetch(channel_id, limit):
            calls.append((channel_id, limit))
            return day_history

        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])
        await services.pipeline.run_daily_scoring(SERVER_ID, DAY, fetch, CHANNEL_ID)

        assert calls == [(CHANNEL_ID, 100)]


@pytest.mark.integration
class TestAllServers:
    """The daily run across servers."""

    async def test_one_failing_server_does_not_stop_the_others(self, services, mocker, day_history):
        # Arrange
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])
        await post_firsts(services, OTHER_SERVER_ID, DAY, [("1002", "bo", "07:00:00")])

        original = services.leaderboard.apply_daily_deltas

        async def flaky(server_id, *args, **kwargs):
            if server_id == OTHER_SERVER_ID:
                raise DatabaseError("apply_daily_deltas")
            return await original(server_id, *args, **kwargs)

        mocker.patch.object(services.leaderboard, "apply_daily_deltas", side_effect=flaky)

        # Act
        results = await services.pipeline.run_for_all_servers(DAY, history_fetcher(day_history), CHANNEL_ID)

        # Assert
        statuses = {r.server_id: r.status for r in results}
        assert statuses == {SERVER_ID: STATUS_SCORED, OTHER_SERVER_ID: STATUS_FAILED}
        assert not (await services.leaderboard.get_current(SERVER_ID)).is_empty

    async def test_no_servers_for_day(self, services, day_history):
        assert await services.pipeline.run_for_all_servers(DAY, history_fetcher(day_history)) == []

    async def test_each_server_reads_its_own_channel(self, services, mocker):
        # Arrange
        mocker.patch.object(Config, "MAIN_CHANNEL_ID", CHANNEL_ID)
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])
        await post_firsts(services, OTHER_SERVER_ID, DAY, [("1002", "bo", "07:00:00")])
        calls = []

        async def fetch(channel_id, limit):
            calls.append((channel_id, limit))
            return []

        # Act
        await services.pipeline.run_for_all_servers(DAY, fetch)

        # Assert
        assert calls == [(CHANNEL_ID, 100), (777, 100)]
        assert services.ledger.tracked_channel_id(OTHER_SERVER_ID) == 777
        assert services.ledger.tracked_channel_id(SERVER_ID) == CHANNEL_ID


# ============================================================================
# HISTORY
# ============================================================================


@pytest.mark.integration
class TestHistoricalSnapshots:
    """Dated snapshots."""

    async def test_snapshot_as_of_sums_days_up_to_date(self, services):
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00"), ("1002", "bo", "07:01:00")])
        await post_firsts(services, SERVER_ID, NEXT_DAY, [("1002", "bo", "07:00:00")])
        await post_firsts(services, SERVER_ID, "06-04-2025", [("1001", "ann", "07:00:00")])
        await fold(services, DAY, NEXT_DAY)

        view = await services.history.snapshot_as_of(SERVER_ID, NEXT_DAY)

        assert view.scores() == {"1002": 32, "1001": 20}
        assert view.rankings[0].user_id == "1002"
        assert await services.history.list_snapshot_keys(SERVER_ID) == [NEXT_DAY]

    async def test_snapshots_are_write_once(self, services):
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])
        await fold(services, DAY)
        first = await services.history.snapshot_as_of(SERVER_ID, DAY)

        # A late ledger entry does not rewrite history
        await post_firsts(services, SERVER_ID, DAY, [("1002", "bo", "08:00:00")])
        second = await services.history.snapshot_as_of(SERVER_ID, DAY)

        assert second.scores() == first.scores() == {"1001": 20}

    async def test_unscored_day_has_no_history_yet(self, services, make_message):
        """Asking before the daily run must not freeze a snapshot without the last-message bonuses."""
        # Arrange
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])

        # Act / Assert
        with pytest.raises(InvalidDateRangeError):
            await services.history.snapshot_as_of(SERVER_ID, DAY)
        assert await services.history.get_snapshot(SERVER_ID, DAY) is None

        history = [
            make_message("1003", "cy", "06-01-2025", "22:00:00"),
            make_message("1002", "bo", DAY, "23:40:00"),
        ]
        await services.pipeline.run_daily_scoring(SERVER_ID, DAY, history_fetcher(history), CHANNEL_ID)

        view = await services.history.snapshot_as_of(SERVER_ID, DAY)
        current = await services.leaderboard.get_current(SERVER_ID)
        assert view.scores() == current.scores() == {"1001": 20, "1002": 20}

    async def test_earlier_unscored_day_blocks_later_dates(self, services):
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])
        await post_firsts(services, SERVER_ID, NEXT_DAY, [("1002", "bo", "07:00:00")])
        await fold(services, NEXT_DAY)

        with pytest.raises(InvalidDateRangeError):
            await services.history.snapshot_as_of(SERVER_ID, NEXT_DAY)

        await fold(services, DAY)
        view = await services.history.snapshot_as_of(SERVER_ID, NEXT_DAY)
        assert view.scores() == {"1001": 20, "1002": 20}

    async def test_history_requires_a_past_date(self):
        assert validate_past_date("06-01-2025", today="06-02-2025").isoformat() == "2025-06-01"
        with pytest.raises(InvalidDateRangeError):
            validate_past_date("06-02-2025", today="06-02-2025")
        with pytest.raises(InvalidDateRangeError):
            validate_past_date("13-45-2025", today="06-02-2025")


@pytest.mark.integration
class TestPipelineSnapshots:
    """Dated snapshots written by the daily run."""

    async def test_scoring_an_older_day_late(self, services):
        # Arrange
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])
        await post_firsts(services, SERVER_ID, NEXT_DAY, [("1002", "bo", "07:00:00")])
        pipeline, history = services.pipeline, services.history

        # Act
        later = await pipeline.run_daily_scoring(SERVER_ID, NEXT_DAY, history_fetcher([]), CHANNEL_ID)

        # Assert: NEXT_DAY is scored but not final while DAY is still open
        assert later.status == STATUS_SCORED
        assert later.snapshots_written == []
        assert await history.get_snapshot(SERVER_ID, NEXT_DAY) is None

        # Act
        earlier = await pipeline.run_daily_scoring(SERVER_ID, DAY, history_fetcher([]), CHANNEL_ID)

        # Assert
        assert earlier.snapshots_written == [DAY, NEXT_DAY]
        assert (await history.get_snapshot(SERVER_ID, DAY)).scores() == {"1001": 20}
        assert (await history.get_snapshot(SERVER_ID, NEXT_DAY)).scores() == {"1001": 20, "1002": 20}

    async def test_dated_snapshots_equal_ledger_sums(self, services, make_message):
        """Every stored snapshot is the sum of daily deltas up to its date, whatever the scoring order."""
        third = "06-04-2025"
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00"), ("1002", "bo", "07:01:00")])
        await post_firsts(services, SERVER_ID, NEXT_DAY, [("1003", "cy", "07:00:00")])
        await post_firsts(services, SERVER_ID, third, [("1001", "ann", "07:00:00")])
        fetch = history_fetcher(
            [
                make_message("1009", "zed", "06-01-2025", "21:00:00"),
                make_message("1001", "ann", DAY, "23:00:00"),
                make_message("1002", "bo", DAY, "23:40:00"),
                make_message("1003", "cy", NEXT_DAY, "23:50:00"),
            ]
        )

        for key in (NEXT_DAY, third, DAY):
            result = await services.pipeline.run_daily_scoring(SERVER_ID, key, fetch, CHANNEL_ID)
            assert result.status == STATUS_SCORED

        keys = await services.history.list_snapshot_keys(SERVER_ID)
        assert keys == [DAY, NEXT_DAY, third]
        for key in keys:
            days = await services.ledger.list_days(SERVER_ID, up_to=key)
            snapshot = await services.history.get_snapshot(SERVER_ID, key)
            assert snapshot.scores() == accumulate_scores(days, services.point_table)

        assert (await services.history.get_snapshot(SERVER_ID, DAY)).scores() == {"1001": 30, "1002": 32}
        current = await services.leaderboard.get_current(SERVER_ID)
        assert current.scores() == {"1001": 50, "1003": 40, "1002": 32}
        assert (await services.history.get_snapshot(SERVER_ID, third)).scores() == current.scores()


# ============================================================================
# ANALYTICS
# ============================================================================


@pytest.mark.integration
class TestSnapshotAnalytics:
    """Analytics that read persisted snapshots."""

    async def _scored_days(self, services):
        await post_firsts(services, SERVER_ID, DAY, [("1001", "ann", "07:00:00")])
        await post_firsts(services, SERVER_ID, "06-05-2025", [("1001", "ann", "07:00:00"), ("1002", "bo", "07:01:00")])
        for key in (DAY, "06-05-2025"):
            await services.pipeline.run_daily_scoring(SERVER_ID, key, history_fetcher([]), CHANNEL_ID)

    async def test_growth_rates(self, services):
        await self._scored_days(services)

        start, end, rates = await services.analytics.growth_rates(SERVER_ID, "06-05-2025", DAY)

        assert (start, end) == (DAY, "06-05-2025")
        assert [(g.user_id, g.rate) for g in rates] == [("1001", 20 / 3), ("1002", 4.0)]

    async def test_growth_rates_need_snapshots(self, services):
        await self._scored_days(services)

        with pytest.raises(SnapshotNotFoundError):
            await services.analytics.growth_rates(SERVER_ID, DAY, "06-04-2025")
        with pytest.raises(InvalidDateRangeError):
            await services.analytics.growth_rates(SERVER_ID, DAY, DAY)

    async def test_monthly_gains(self, services):
        await self._scored_days(services)

        gains = await services.analytics.monthly_gains(SERVER_ID, 6, 2025)

        assert [(g.user_id, g.gain) for g in gains] == [("1001", 40), ("1002", 12)]
        assert await services.analytics.monthly_gains(SERVER_ID, 7, 2025) == []
        with pytest.raises(InvalidDateRangeError):
            await services.analytics.monthly_gains(SERVER_ID, 13, 2025)

    async def test_position_validation(self, services):
        with pytest.raises(ValidationError):
            await services.analytics.position_stats(SERVER_ID, 16)
        with pytest.raises(ValidationError):
            await services.analytics.rank_counts(SERVER_ID, "1001", "middle")
