"""
Free-form date input for commands.

Accepts what people actually type and normalises it to a ``MM-DD-YYYY`` day
key:

- ``today``, ``yesterday``, ``tomorrow``
- ``3 days ago``, ``2 weeks ago``
- ``June 1st``, ``jun 1``, ``Sept 30th 2024``
- ``6/1``, ``6/1/2024``, ``6-1``, ``6-1-2024``, ``06-01-2024``

A missing year means the current year.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Optional

from src.modules.shared.dates import format_date_key, parse_date_key, today_key
from src.modules.shared.exceptions import InvalidDateRangeError

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

_DAYS_AGO = re.compile(r"^(\d+)\s*days?\s*ago$")
_WEEKS_AGO = re.compile(r"^(\d+)\s*weeks?\s*ago$")
_MONTH_DAY = re.compile(
    r"^(" + "|".join(sorted(MONTHS, key=len, reverse=True)) + r")\s+(\d{1,2})(?:st|nd|rd|th)?,?\s*(\d{4})?$"
)
_NUMERIC = re.compile(r"^(\d{1,2})([/-])(\d{1,2})(?:\2(\d{4}))?$")


def _build(year: int, month: int, day: int, raw: str) -> date:
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidDateRangeError("date", f"'{raw}' is not a real calendar date") from exc


def parse_date_input(text: str, today: Optional[date] = None) -> str:
    """
    Normalise free-form date text to a ``MM-DD-YYYY`` key.

    Args:
        text: User input
        today: Reference day (defaults to today in the scoring time zone)

    Raises:
        InvalidDateRangeError: If the text matches no supported format

    Example:
        >>> parse_date_input("June 1st 2025")
        '06-01-2025'
    """
    if not text or not text.strip():
        raise InvalidDateRangeError("date", "A date is required")

    raw = text.strip().lower()
    current = today or parse_date_key(today_key())

    if raw == "today":
        return format_date_key(current)
    if raw == "yesterday":
        return format_date_key(current - timedelta(days=1))
    if raw == "tomorrow":
        return format_date_key(current + timedelta(days=1))

    match = _DAYS_AGO.match(raw)
    if match:
        return format_date_key(current - timedelta(days=int(match.group(1))))

    match = _WEEKS_AGO.match(raw)
    if match:
        return format_date_key(current - timedelta(weeks=int(match.group(1))))

    match = _MONTH_DAY.match(raw)
    if match:
        year = int(match.group(3)) if match.group(3) else current.year
        return format_date_key(_build(year, MONTHS[match.group(1)], int(match.group(2)), text))

    match = _NUMERIC.match(raw)
    if match:
        year = int(match.group(4)) if match.group(4) else current.year
        return format_date_key(_build(year, int(match.group(1)), int(match.group(3)), text))

    raise InvalidDateRangeError(
        "date",
        f"Couldn't understand '{text}'. Try MM-DD-YYYY, 'June 1st', '6/1' or 'yesterday'.",
    )


def ordinal_suffix(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_date_for_display(date_key: str) -> str:
    """``06-01-2025`` -> ``June 1st``."""
    day = parse_date_key(date_key)
    return f"{MONTH_NAMES[day.month - 1]} {day.day}{ordinal_suffix(day.day)}"
