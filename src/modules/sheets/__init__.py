"""
Sheets Module
=============

Domain: Spreadsheet-ready rows for the history and cumulative tabs
"""

from .rows import (
    GreyCalendar,
    build_cumulative_score_columns,
    build_history_rows,
    is_grey_date,
    sheet_name_for,
)

__all__ = [
    "GreyCalendar",
    "build_cumulative_score_columns",
    "build_history_rows",
    "is_grey_date",
    "sheet_name_for",
]
