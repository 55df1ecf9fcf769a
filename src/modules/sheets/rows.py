"""
Spreadsheet-ready rows.

The spreadsheet sink is an outside consumer: it pulls these rows and writes
them wherever it likes. This module only shapes ledger and leaderboard data
into plain lists of strings/ints.

History sheet layout (one tab per month, e.g. "June 2025")::

    Date | Start Time | 1st | 2nd | ... | Nth | 2nd-Last | Last | End Time

Grey rows mark days with no school (weekends, configured grey dates and
grey ranges); the sink decides how to shade them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from src.modules.analytics.date_input import MONTH_NAMES, ordinal_suffix
from src.modules.leaderboard.ranking import RankedEntry
from src.modules.ledger.types import DayView
from src.modules.shared.dates import parse_date_key, to_local

NONE_CELL = "NONE"
TIME_FORMAT = "%H:%M:%S"
SHEET_DATE_FORMAT = "%Y-%m-%d"

DateLike = Union[date, str]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return datetime.strptime(text, SHEET_DATE_FORMAT).date()
    except ValueError:
        return parse_date_key(text)


# ============================================================================
# Grey dates
# ============================================================================


@dataclass(frozen=True)
class GreyCalendar:
    """Configured no-school days: explicit dates plus inclusive ranges."""

    dates: FrozenSet[date] = frozenset()
    ranges: Tuple[Tuple[date, date], ...] = ()

    def is_grey(self, value: DateLike) -> bool:
        day = _as_date(value)
        if day.weekday() >= 5 or day in self.dates:
            return True
        return any(start <= day <= end for start, end in self.ranges)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GreyCalendar":
        return cls(
            dates=frozenset(_as_date(d) for d in data.get("grey_dates") or ()),
            ranges=tuple(
                (_as_date(start), _as_date(end)) for start, end in data.get("grey_ranges") or ()
            ),
        )

    @classmethod
    def from_config(cls, config_manager: Optional[Any] = None) -> "GreyCalendar":
        if config_manager is None:
            from src.core.config.manager import ConfigManager

            config_manager = ConfigManager
        return cls.from_dict(config_manager.get("sheets", {}) or {})


def is_grey_date(value: DateLike, calendar: Optional[GreyCalendar] = None) -> bool:
    """True for weekends and configured grey dates (``YYYY-MM-DD``, day key or date)."""
    return (calendar or GreyCalendar.from_config()).is_grey(value)


# ============================================================================
# History rows
# ============================================================================


def sheet_name_for(value: DateLike) -> str:
    day = _as_date(value)
    return f"{MONTH_NAMES[day.month - 1]} {day.year}"


def position_header(position: int) -> str:
    return f"{position}{ordinal_suffix(position)}"


def history_header(max_positions: int) -> List[str]:
    return (
        ["Date", "Start Time"]
        + [position_header(i) for i in range(1, max_positions + 1)]
        + ["2nd-Last", "Last", "End Time"]
    )


def build_history_row(day: DayView, max_positions: int, tz=None) -> List[str]:
    ordered = day.ordered_first_messages()
    names = [str(e.get("username") or e["user_id"]) for e in ordered[:max_positions]]
    names += [NONE_CELL] * (max_positions - len(names))

    start_time = to_local(ordered[0]["timestamp"], tz).strftime(TIME_FORMAT) if ordered else ""
    last, second_last = day.last_message, day.second_last_message
    end_time = (
        to_local(last["timestamp"], tz).strftime(TIME_FORMAT)
        if last and last.get("timestamp")
        else ""
    )

    return (
        [day.day.strftime(SHEET_DATE_FORMAT), start_time]
        + names
        + [
            str(second_last.get("username") or NONE_CELL) if second_last else NONE_CELL,
            str(last.get("username") or NONE_CELL) if last else NONE_CELL,
            end_time,
        ]
    )


def build_history_rows(
    days: Iterable[DayView], max_positions: Optional[int] = None, tz=None
) -> List[List[str]]:
    """
    Header plus one row per day with at least one first message.

    Args:
        days: Ledger views in any order
        max_positions: Position columns; defaults to the most participants
            seen on any of `days`

    Example:
        >>> build_history_rows([day])[1]
        ['2025-06-02', '07:01:12', 'ann', 'bo', 'NONE', 'bo']...
    """
    ordered = sorted((d for d in days if d.first_messages), key=lambda d: d.day)
    width = max_positions if max_positions is not None else max(
        (d.participant_count for d in ordered), default=0
    )
    return [history_header(width)] + [build_history_row(d, width, tz) for d in ordered]


def group_rows_by_sheet(
    days: Iterable[DayView], max_positions: Optional[int] = None, tz=None
) -> Dict[str, List[List[str]]]:
    """Monthly tabs: sheet name -> header plus that month's rows."""
    by_sheet: Dict[str, List[DayView]] = {}
    for day in days:
        by_sheet.setdefault(sheet_name_for(day.day), []).append(day)
    return {
        name: build_history_rows(group, max_positions, tz) for name, group in by_sheet.items()
    }


# ============================================================================
# Cumulative scores
# ============================================================================


@dataclass(frozen=True)
class CumulativeColumns:
    header: Tuple[str, str] = ("Username", "Cumulative Score")
    rows: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)

    def as_values(self) -> List[List[Any]]:
        return [list(self.header)] + [list(row) for row in self.rows]


def build_cumulative_score_columns(
    rankings: Sequence[RankedEntry], min_score: int = 20
) -> CumulativeColumns:
    """``{username, cumulative score}`` for users at or above `min_score`, by rank."""
    kept = sorted((e for e in rankings if e.score >= min_score), key=lambda e: e.rank)
    return CumulativeColumns(rows=tuple((e.username, e.score) for e in kept))
