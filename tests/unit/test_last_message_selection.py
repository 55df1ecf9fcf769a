"""
Unit tests for select_last_messages.

Covers bot filtering, the day window, distinct second-last authors and the
lookback coverage flag.
"""

from src.modules.ledger.service import select_last_messages

from tests.conftest import LA

DAY = "06-02-2025"


class TestSelectLastMessages:
    """Resolving the last and second-last authors of a day."""

    def test_newest_message_is_last(self, make_message):
        history = [
            make_message("1", "ann", DAY, "22:00:00"),
            make_message("2", "bo", DAY, "23:00:00"),
            make_message("3", "cy", DAY, "21:00:00"),
        ]

        result = select_last_messages(history, DAY, LA)

        assert result.last_message["user_id"] == "2"
        assert result.second_last_message["user_id"] == "1"

    def test_second_last_must_be_a_different_author(self, make_message):
        """Several trailing messages from one user count once."""
        history = [
            make_message("2", "bo", DAY, "23:00:00"),
            make_message("2", "bo", DAY, "22:59:00"),
            make_message("2", "bo", DAY, "22:58:00"),
            make_message("1", "ann", DAY, "20:00:00"),
        ]

        result = select_last_messages(history, DAY, LA)

        assert result.last_message["user_id"] == "2"
        assert result.second_last_message["user_id"] == "1"

    def test_single_author_has_no_second_last(self, make_message):
        history = [make_message("2", "bo", DAY, "23:00:00"), make_message("2", "bo", DAY, "10:00:00")]

        result = select_last_messages(history, DAY, LA)

        assert result.last_message["user_id"] == "2"
        assert result.second_last_message is None

    def test_bot_messages_are_ignored(self, make_message):
        history = [
            make_message("99", "scorebot", DAY, "23:59:00", is_bot=True),
            make_message("1", "ann", DAY, "23:00:00"),
        ]

        result = select_last_messages(history, DAY, LA)

        assert result.last_message["user_id"] == "1"

    def test_messages_from_the_next_day_are_ignored(self, make_message):
        """The job runs after midnight, so newer messages belong to the next day."""
        history = [
            make_message("5", "early", "06-03-2025", "00:01:00"),
            make_message("1", "ann", DAY, "23:00:00"),
            make_message("2", "bo", DAY, "22:00:00"),
        ]

        result = select_last_messages(history, DAY, LA)

        assert result.last_message["user_id"] == "1"
        assert result.second_last_message["user_id"] == "2"

    def test_no_messages_in_window(self, make_message):
        history = [make_message("5", "early", "06-03-2025", "00:01:00")]

        result = select_last_messages(history, DAY, LA)

        assert result.last_message is None
        assert result.second_last_message is None

    def test_window_coverage_flag(self, make_message):
        """Coverage is only known when the fetched window reaches the previous day."""
        partial = [make_message("1", "ann", DAY, "23:00:00")]
        covered = partial + [make_message("2", "bo", "06-01-2025", "23:00:00")]

        assert select_last_messages(partial, DAY, LA).window_covers_day is False
        assert select_last_messages(covered, DAY, LA).window_covers_day is True

    def test_entry_carries_local_timestamp(self, make_message):
        result = select_last_messages([make_message("1", "ann", DAY, "23:00:00")], DAY, LA)

        assert result.last_message["username"] == "ann"
        assert result.last_message["timestamp"].startswith("2025-06-02T23:00:00")
