"""
Integration Tests for the ledger and leaderboard services
=========================================================

Test Coverage
-------------
- First-message recording: ordering, one entry per user per day, events
- Last-message resolution persisted onto the ledger
- Folding deltas into cumulative totals at most once per day
- Current leaderboard and per-user standings
"""

from datetime import datetime

import pytest

from src.modules.shared.exceptions import DayAlreadyProcessedError, ValidationError

from tests.conftest import LA, OTHER_SERVER_ID, SERVER_ID, stamp

DAY = "06-02-2025"


async def record(services, server_id, user_id, username, date_key, clock):
    return await services.ledger.record_first_message(
        server_id,
        user_id,
        username,
        message_id=f"{user_id}{clock.replace(':', '')}",
        timestamp=datetime.fromisoformat(stamp(date_key, clock)),
        tz=LA,
    )


# ============================================================================
# LEDGER
# ============================================================================


@pytest.mark.integration
class TestFirstMessages:
    """Recording first messages."""

    async def test_entries_ordered_by_timestamp(self, services):
        # Arrange / Act
        await record(services, SERVER_ID, "1002", "bo", DAY, "07:05:00")
        await record(services, SERVER_ID, "1001", "ann", DAY, "07:00:00")

        # Assert
        day = await services.ledger.get_day(SERVER_ID, DAY)
        assert day.first_user_ids() == ["1001", "1002"]
        assert day.position_of("1002") == 2

    async def test_second_message_same_day_is_ignored(self, services):
        assert await record(services, SERVER_ID, "1001", "ann", DAY, "07:00:00") is True
        assert await record(services, SERVER_ID, "1001", "ann", DAY, "09:00:00") is False

        day = await services.ledger.get_day(SERVER_ID, DAY)
        assert day.participant_count == 1
        assert day.first_messages[0]["timestamp"].startswith("2025-06-02T07:00:00")

    async def test_day_follows_scoring_time_zone(self, services):
        """23:30 in Los Angeles is already the next day in UTC."""
        await record(services, SERVER_ID, "1001", "ann", DAY, "23:30:00")

        assert await services.ledger.get_day(SERVER_ID, DAY) is not None
        assert await services.ledger.get_day(SERVER_ID, "06-03-2025") is None

    async def test_recording_publishes_position(self, services, event_bus):
        seen = []
        event_bus.subscribe("ledger.first_message_recorded", lambda payload: seen.append(payload))

        await record(services, SERVER_ID, "1001", "ann", DAY, "07:00:00")
        await record(services, SERVER_ID, "1002", "bo", DAY, "07:01:00")

        assert [(p["user_id"], p["position"]) for p in seen] == [("1001", 1), ("1002", 2)]

    async def test_non_numeric_ids_are_rejected(self, services):
        with pytest.raises(ValidationError):
            await record(services, "not-a-guild", "1001", "ann", DAY, "07:00:00")

    async def test_servers_are_independent(self, services):
        await record(services, SERVER_ID, "1001", "ann", DAY, "07:00:00")
        await record(services, OTHER_SERVER_ID, "1001", "ann", DAY, "07:00:00")
        await record(services, OTHER_SERVER_ID, "1002", "bo", "06-03-2025", "07:00:00")

        assert await services.ledger.list_server_ids(DAY) == sorted([SERVER_ID, OTHER_SERVER_ID])
        assert await services.ledger.list_server_ids("06-03-2025") == [OTHER_SERVER_ID]
        assert len(await services.ledger.list_days(OTHER_SERVER_ID, up_to=DAY)) == 1


@pytest.mark.integration
class TestLastMessages:
    """Resolving and persisting last / second-last authors."""

    async def test_resolution_is_stored_on_ledger(self, services, make_message):
        await record(services, SERVER_ID, "1001", "ann", DAY, "07:00:00")
        history = [
            make_message("1002", "bo", DAY, "23:40:00"),
            make_message("1001", "ann", DAY, "23:10:00"),
            make_message("1003", "cy", "06-01-2025", "22:00:00"),
        ]

        resolution = await services.ledger.resolve_last_messages(SERVER_ID, DAY, history, LA)

        day = await services.ledger.get_day(SERVER_ID, DAY)
        assert resolution.window_covers_day is True
        assert day.last_author_id == "1002"
        assert day.second_last_author_id == "1001"

    async def test_no_ledger_means_nothing_stored(self, services, make_message):
        resolution = await services.ledger.resolve_last_messages(
            SERVER_ID, DAY, [make_message("1002", "bo", DAY, "23:40:00")], LA
        )

        assert resolution.last_message["user_id"] == "1002"
        assert await services.ledger.get_day(SERVER_ID, DAY) is None


# ============================================================================
# LEADERBOARD
# ============================================================================


@pytest.mark.integration
class TestApplyDailyDeltas:
    """Cumulative totals."""

    async def test_deltas_accumulate_and_rerank(self, services):
        # Arrange
        leaderboard = services.leaderboard

        # Act
        await leaderboard.apply_daily_deltas(SERVER_ID, "06-02-2025", {"1001": 20, "1002": 12}, {"1001": "ann"})
        view = await leaderboard.apply_daily_deltas(SERVER_ID, "06-03-2025", {"1002": 30, "1003": 2})

        # Assert
        assert [(e.user_id, e.score, e.rank) for e in view.rankings] == [
            ("1002", 42, 1),
            ("1001", 20, 2),
            ("1003", 2, 3),
        ]
        assert view.entry_for("1001").username == "ann"
        assert (await leaderboard.get_current(SERVER_ID)).scores() == view.scores()

    async def test_same_day_cannot_be_applied_twice(self, services):
        leaderboard = services.leaderboard
        await leaderboard.apply_daily_deltas(SERVER_ID, DAY, {"1001": 20})

        with pytest.raises(DayAlreadyProcessedError):
            await leaderboard.apply_daily_deltas(SERVER_ID, DAY, {"1001": 20})

        assert (await leaderboard.get_current(SERVER_ID)).scores() == {"1001": 20}
        assert await leaderboard.is_day_processed(SERVER_ID, DAY) is True
        assert await leaderboard.is_day_processed(OTHER_SERVER_ID, DAY) is False

    async def test_user_standing(self, services):
        await services.leaderboard.apply_daily_deltas(SERVER_ID, DAY, {"1001": 20, "1002": 32}, {"1002": "bo"})

        standing = await services.leaderboard.get_user_standing(SERVER_ID, "1001")

        assert standing == {"user_id": "1001", "username": "1001", "score": 20, "rank": 2, "total_users": 2}
        assert await services.leaderboard.get_user_standing(SERVER_ID, "9999") is None

    async def test_unscored_server_has_empty_leaderboard(self, services):
        view = await services.leaderboard.get_current(OTHER_SERVER_ID)

        assert view.is_empty
        assert view.snapshot_key == "current"

    async def test_update_is_published(self, services, event_bus):
        seen = []
        event_bus.subscribe("leaderboard.updated", lambda payload: seen.append(payload))

        await services.leaderboard.apply_daily_deltas(SERVER_ID, DAY, {"1001": 20})

        assert seen == [{"server_id": SERVER_ID, "date_key": DAY, "total_users": 1}]
