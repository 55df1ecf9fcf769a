"""
Unit tests for daily scoring and ranking.

Covers position points, end-of-day bonuses, deterministic ordering and the
point table loaded from configuration.
"""

import pytest

from src.core.exceptions import ConfigurationError
from src.modules.leaderboard.ranking import rank_entries
from src.modules.scoring.calculator import (
    accumulate_scores,
    compute_day_deltas,
    compute_daily_deltas,
    usernames_for_day,
)
from src.modules.scoring.point_table import PointTable


class TestDailyDeltas:
    """Point deltas for a single day."""

    def test_four_users_with_last_message(self, make_day, point_table):
        """Positions 1-3 use the table, 4th gets the default plus the last bonus."""
        day = make_day(
            "06-02-2025",
            [("1", "A", "07:00:00"), ("2", "B", "07:00:05"), ("3", "C", "07:01:00"), ("4", "D", "07:02:00")],
            last=("4", "D", "23:59:00"),
        )

        deltas = compute_day_deltas(day, point_table)

        assert deltas == {"1": 20, "2": 12, "3": 10, "4": 22}

    def test_positions_follow_timestamps_not_storage_order(self, make_day, point_table):
        """Entries stored out of order are ranked by timestamp."""
        day = make_day(
            "06-02-2025",
            [("2", "B", "08:00:00"), ("1", "A", "07:00:00")],
        )

        assert compute_day_deltas(day, point_table) == {"1": 20, "2": 12}

    def test_bonuses_stack_with_position_points(self, make_day, point_table):
        """The first poster can also take the second-last bonus."""
        day = make_day(
            "06-02-2025",
            [("1", "A", "07:00:00"), ("2", "B", "07:05:00")],
            last=("2", "B", "23:00:00"),
            second_last=("1", "A", "22:00:00"),
        )

        assert compute_day_deltas(day, point_table) == {"1": 30, "2": 32}

    def test_bonus_applies_to_non_participant(self, make_day, point_table):
        """A last-message author without a first-message entry still scores."""
        day = make_day(
            "06-02-2025",
            [("1", "A", "07:00:00")],
            last=("9", "Z", "23:30:00"),
        )

        assert compute_day_deltas(day, point_table) == {"1": 20, "9": 20}

    def test_empty_day_scores_nothing(self, point_table):
        assert compute_daily_deltas([], None, None, point_table) == {}

    def test_same_input_same_output(self, make_day, point_table):
        """Re-running a day gives identical deltas."""
        day = make_day(
            "06-02-2025",
            [("1", "A", "07:00:00"), ("2", "B", "07:00:01")],
            last=("1", "A", "23:00:00"),
        )

        assert compute_day_deltas(day, point_table) == compute_day_deltas(day, point_table)


class TestAccumulation:
    """Cumulative totals over several days."""

    def test_accumulate_sums_daily_deltas(self, make_day, point_table):
        days = [
            make_day("06-02-2025", [("1", "A", "07:00:00"), ("2", "B", "07:10:00")]),
            make_day("06-03-2025", [("2", "B", "06:00:00"), ("1", "A", "06:30:00")], last=("1", "A", "23:00:00")),
        ]

        assert accumulate_scores(days, point_table) == {"1": 20 + 12 + 20, "2": 12 + 20}

    def test_usernames_prefer_latest_entry(self, make_day):
        day = make_day(
            "06-02-2025",
            [("1", "old_name", "07:00:00")],
            last=("1", "new_name", "23:00:00"),
        )

        names = usernames_for_day(day.first_messages, day.last_message, day.second_last_message)

        assert names == {"1": "new_name"}


class TestRanking:
    """Leaderboard ordering."""

    def test_scenario_ranks_d_a_b_c(self):
        ranked = rank_entries({"A": 20, "B": 12, "C": 10, "D": 22})

        assert [(e.user_id, e.rank) for e in ranked] == [("D", 1), ("A", 2), ("B", 3), ("C", 4)]

    def test_ties_break_by_user_id(self):
        """Equal scores get distinct ranks in ascending user ID order."""
        ranked = rank_entries({"300": 10, "100": 10, "200": 10})

        assert [e.user_id for e in ranked] == ["100", "200", "300"]
        assert [e.rank for e in ranked] == [1, 2, 3]

    def test_rank_is_monotonic_in_score(self):
        ranked = rank_entries({str(i): (i * 7) % 13 for i in range(1, 30)})

        for higher, lower in zip(ranked, ranked[1:]):
            assert higher.score >= lower.score
            assert higher.rank < lower.rank

    def test_username_falls_back_to_id(self):
        assert rank_entries({"42": 5})[0].username == "42"


class TestPointTable:
    """Point table construction."""

    def test_position_beyond_table_uses_default(self, point_table):
        assert point_table.position_points(1) == 20
        assert point_table.position_points(15) == 2

    def test_from_dict_accepts_string_keys(self):
        table = PointTable.from_dict({"positions": {"1": 30, "2": 5}, "default": 1, "last_message": 7})

        assert table.position_points(1) == 30
        assert table.position_points(3) == 1
        assert table.last_message == 7
        assert table.second_last_message == 10

    def test_invalid_points_raise_configuration_error(self):
        with pytest.raises(ConfigurationError):
            PointTable.from_dict({"positions": {"first": 20}})

    def test_table_is_immutable(self, point_table):
        with pytest.raises(TypeError):
            point_table.positions[1] = 99
