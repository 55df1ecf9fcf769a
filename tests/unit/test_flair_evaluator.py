"""
Unit tests for streaks and flair dating.
"""

import pytest

from src.core.exceptions import ConfigurationError
from src.modules.flair.evaluator import (
    LAST,
    SECOND_LAST,
    compute_all_streaks,
    compute_flair_dates,
    compute_streak,
    flairs_earned_on,
    qualifying_date,
)
from src.modules.flair.tiers import FlairTable

U = "500"
OTHER = "600"
THIRD = "700"


class TestStreaks:
    """Consecutive-day streaks."""

    def test_gap_resets_current_but_keeps_longest(self, make_day):
        """Hits on days 1, 2 and 4 give longest 2, current 1."""
        days = [
            make_day("06-01-2025", [(U, "u", "07:00:00")]),
            make_day("06-02-2025", [(U, "u", "07:00:00")]),
            make_day("06-03-2025", [(OTHER, "o", "07:00:00")]),
            make_day("06-04-2025", [(U, "u", "07:00:00")]),
        ]

        result = compute_streak(days, U, 0)

        assert result.longest == 2
        assert result.current == 1
        assert result.last_hit.isoformat() == "2025-06-04"

    def test_missed_recorded_day_drops_current(self, make_day):
        days = [
            make_day("06-01-2025", [(U, "u", "07:00:00")]),
            make_day("06-02-2025", [(U, "u", "07:00:00")]),
            make_day("06-03-2025", [(OTHER, "o", "07:00:00")]),
            make_day("06-04-2025", [(OTHER, "o", "07:00:00")]),
        ]

        result = compute_streak(days, U, 0)

        assert result.current == 0
        assert result.longest == 2

    def test_last_and_second_last_categories(self, make_day):
        days = [
            make_day("06-01-2025", [(OTHER, "o", "07:00:00")], last=(U, "u", "23:00:00")),
            make_day(
                "06-02-2025",
                [(OTHER, "o", "07:00:00")],
                last=(U, "u", "23:00:00"),
                second_last=(OTHER, "o", "22:00:00"),
            ),
        ]

        assert compute_streak(days, U, LAST).current == 2
        assert compute_streak(days, OTHER, SECOND_LAST).current == 1

    def test_unknown_category_raises(self, make_day):
        with pytest.raises(ValueError):
            compute_streak([make_day("06-01-2025", [(U, "u", "07:00:00")])], U, "middle")

    def test_all_streaks_drop_empty_categories(self, make_day):
        days = [
            make_day("06-01-2025", [(OTHER, "o", "07:00:00"), (U, "u", "07:01:00")]),
            make_day("06-02-2025", [(OTHER, "o", "07:00:00"), (U, "u", "07:01:00")]),
        ]

        streaks = compute_all_streaks(days, U)

        assert list(streaks) == [1]
        assert streaks[1].current == 2


class TestFlairDates:
    """Dating participation, qualifying and point-tier flairs."""

    @pytest.fixture
    def runner_up_days(self, make_day):
        """U is 2nd and second-last for four days (22/day), then first on day five."""
        days = [
            make_day(
                key,
                [(OTHER, "o", "07:00:00"), (U, "u", "07:01:00")],
                last=(OTHER, "o", "23:00:00"),
                second_last=(U, "u", "22:00:00"),
            )
            for key in ("06-02-2025", "06-03-2025", "06-04-2025", "06-05-2025")
        ]
        days.append(make_day("06-06-2025", [(U, "u", "06:00:00"), (OTHER, "o", "06:01:00")]))
        return days

    def test_point_tiers_wait_for_qualifying_day(self, runner_up_days, point_table, flair_table):
        """66 points by day 3 is not enough without a first/last finish."""
        records = compute_flair_dates(runner_up_days, U, point_table, flair_table)

        assert [(r.tier.key, r.date_earned) for r in records] == [
            ("RACER", "06-02-2025"),
            ("FIRST_LAST", "06-06-2025"),
            ("ORANGE", "06-06-2025"),
            ("YELLOW", "06-06-2025"),
        ]

    def test_no_qualifying_day_means_no_point_tiers(self, runner_up_days, point_table, flair_table):
        records = compute_flair_dates(runner_up_days[:4], U, point_table, flair_table)

        assert [r.tier.key for r in records] == ["RACER"]

    def test_thresholds_after_qualifying_use_their_own_day(self, make_day, point_table, flair_table):
        days = [
            make_day(key, [(U, "u", "07:00:00")], last=(U, "u", "23:00:00"))
            for key in ("06-02-2025", "06-03-2025", "06-04-2025")
        ]

        records = compute_flair_dates(days, U, point_table, flair_table)

        # 40 points per day: ORANGE on day 2, YELLOW on day 3
        dated = {r.tier.key: r.date_earned for r in records}
        assert dated["FIRST_LAST"] == "06-02-2025"
        assert dated["ORANGE"] == "06-03-2025"
        assert dated["YELLOW"] == "06-04-2025"

    def test_last_message_alone_qualifies(self, make_day):
        days = [
            make_day("06-02-2025", [(OTHER, "o", "07:00:00")]),
            make_day("06-03-2025", [(OTHER, "o", "07:00:00")], last=(U, "u", "23:00:00")),
        ]

        assert qualifying_date(days, U).isoformat() == "2025-06-03"
        assert qualifying_date(days, THIRD) is None

    def test_flairs_earned_on_filters_by_day(self, runner_up_days, point_table, flair_table):
        records = compute_flair_dates(runner_up_days, U, point_table, flair_table)

        assert [r.tier.key for r in flairs_earned_on(records, "06-06-2025")] == [
            "FIRST_LAST",
            "ORANGE",
            "YELLOW",
        ]


class TestFlairTable:
    """Tier lookups and config parsing."""

    def test_tier_lookups(self, flair_table):
        assert flair_table.highest_tier(49) is None
        assert flair_table.highest_tier(50).key == "ORANGE"
        assert flair_table.next_tier(50).key == "YELLOW"
        assert flair_table.next_tier(150) is None
        assert [t.key for t in flair_table.tiers_reached(120)] == ["ORANGE", "YELLOW"]
        assert flair_table.by_key("RACER").role_id == 301

    def test_tiers_are_sorted_by_points(self):
        table = FlairTable.from_dict(
            {
                "tiers": [
                    {"key": "B", "name": "B", "role_id": 2, "points": 200},
                    {"key": "A", "name": "A", "role_id": 1, "points": 100},
                ],
                "qualifying": {"key": "Q", "name": "Q", "role_id": 3},
                "participation": {"key": "P", "name": "P", "role_id": 4},
            }
        )

        assert [t.key for t in table.point_tiers] == ["A", "B"]

    def test_missing_qualifying_raises(self):
        with pytest.raises(ConfigurationError):
            FlairTable.from_dict({"tiers": [], "participation": {"key": "P", "name": "P", "role_id": 4}})

    def test_announcement_text(self, flair_table):
        text = flair_table.format_announcement("42", "50 Points", "06-06-2025")

        assert text.startswith("<@42> got the \"50 Points\" flair")
        assert "[achieved 06-06-2025]" in text

    def test_color_hex_from_name(self, flair_table):
        assert flair_table.by_key("ORANGE").color_hex == 0xE67E22
        assert flair_table.by_key("FIRST_LAST").color_hex == 0xE74C3C
