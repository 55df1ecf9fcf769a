"""
Unit tests for spreadsheet row shaping.
"""

from src.modules.leaderboard.ranking import rank_entries
from src.modules.sheets.rows import (
    GreyCalendar,
    build_cumulative_score_columns,
    build_history_rows,
    group_rows_by_sheet,
    history_header,
    is_grey_date,
    sheet_name_for,
)

from tests.conftest import LA, TEST_CONFIG


class TestGreyCalendar:
    """Weekend and configured no-school days."""

    def test_configured_calendar(self, config_manager):
        calendar = GreyCalendar.from_config(config_manager)

        assert calendar.is_grey("2025-06-04")  # explicit date
        assert calendar.is_grey("06-07-2025")  # Saturday
        assert calendar.is_grey("2025-06-11")  # inside a range
        assert calendar.is_grey("2025-06-12")  # range end is inclusive
        assert not calendar.is_grey("2025-06-05")
        assert not calendar.is_grey("06-13-2025")

    def test_module_helper_reads_config(self):
        assert is_grey_date("2025-06-04")
        assert not is_grey_date("2025-06-03")

    def test_empty_calendar_only_greys_weekends(self):
        calendar = GreyCalendar()

        assert calendar.is_grey("06-08-2025")
        assert not calendar.is_grey("06-04-2025")


class TestHistoryRows:
    """Per-day history rows."""

    def test_header_layout(self):
        assert history_header(3) == ["Date", "Start Time", "1st", "2nd", "3rd", "2nd-Last", "Last", "End Time"]

    def test_row_pads_positions_and_formats_times(self, make_day):
        day = make_day(
            "06-02-2025",
            [("2", "bo", "07:01:12"), ("1", "ann", "07:00:05")],
            last=("2", "bo", "23:58:00"),
        )

        header, row = build_history_rows([day], max_positions=3, tz=LA)

        assert header[:3] == ["Date", "Start Time", "1st"]
        assert row == ["2025-06-02", "07:00:05", "ann", "bo", "NONE", "NONE", "bo", "23:58:00"]

    def test_days_without_first_messages_are_skipped(self, make_day):
        rows = build_history_rows(
            [make_day("06-03-2025", [("1", "ann", "07:00:00")]), make_day("06-02-2025")],
            tz=LA,
        )

        assert len(rows) == 2
        assert rows[1][0] == "2025-06-03"
        assert len(rows[0]) == len(history_header(1))

    def test_rows_grouped_by_month(self, make_day):
        days = [
            make_day("05-30-2025", [("1", "ann", "07:00:00")]),
            make_day("06-02-2025", [("1", "ann", "07:00:00")]),
            make_day("06-03-2025", [("2", "bo", "07:00:00")]),
        ]

        sheets = group_rows_by_sheet(days, max_positions=2, tz=LA)

        assert set(sheets) == {"May 2025", "June 2025"}
        assert len(sheets["June 2025"]) == 3

    def test_sheet_name(self):
        assert sheet_name_for("06-02-2025") == "June 2025"
        assert sheet_name_for("2024-12-31") == "December 2024"


class TestCumulativeColumns:
    """Cumulative score export."""

    def test_filters_below_minimum_and_keeps_rank_order(self):
        rankings = rank_entries({"1": 19, "2": 40, "3": 20}, {"1": "ann", "2": "bo", "3": "cy"})

        columns = build_cumulative_score_columns(rankings, TEST_CONFIG["sheets"]["cumulative_min_score"])

        assert columns.as_values() == [["Username", "Cumulative Score"], ["bo", 40], ["cy", 20]]
