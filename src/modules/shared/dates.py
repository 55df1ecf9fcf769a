"""
Day-key helpers shared by every scoring module.

A scoring "day" is a calendar date in the configured scoring time zone
(`Config.SCORING_TIMEZONE`), keyed as ``MM-DD-YYYY``. Everything that turns
a timestamp into a day, or a day back into a time window, goes through here.

Timestamps are stored as ISO-8601 strings with an offset; naive datetimes
are treated as UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from src.core.config.config import Config
from src.modules.shared.exceptions import InvalidDateRangeError

DATE_KEY_FORMAT = "%m-%d-%Y"

TimestampLike = Union[str, datetime]


def _zone(tz: Optional[ZoneInfo]) -> ZoneInfo:
    return tz or Config.scoring_zone()


# ============================================================================
# Day keys
# ============================================================================


def format_date_key(day: date) -> str:
    return day.strftime(DATE_KEY_FORMAT)


def parse_date_key(date_key: str, field: str = "date") -> date:
    """
    Parse a ``MM-DD-YYYY`` key.

    Raises:
        InvalidDateRangeError: If the key is malformed or not a real date
    """
    try:
        return datetime.strptime(str(date_key).strip(), DATE_KEY_FORMAT).date()
    except ValueError as exc:
        raise InvalidDateRangeError(
            field, f"'{date_key}' is not a valid MM-DD-YYYY date"
        ) from exc


def is_valid_date_key(date_key: str) -> bool:
    try:
        parse_date_key(date_key)
    except InvalidDateRangeError:
        return False
    return True


def sort_date_keys(date_keys: Iterable[str]) -> List[str]:
    """Chronological order (string order is wrong across years)."""
    return sorted(date_keys, key=parse_date_key)


def days_between(start_key: str, end_key: str) -> int:
    return (parse_date_key(end_key) - parse_date_key(start_key)).days


def shift_date_key(date_key: str, days: int) -> str:
    return format_date_key(parse_date_key(date_key) + timedelta(days=days))


# ============================================================================
# Timestamps
# ============================================================================


def parse_timestamp(value: TimestampLike) -> datetime:
    """Return an aware datetime from an ISO string or datetime."""
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_local(value: TimestampLike, tz: Optional[ZoneInfo] = None) -> datetime:
    return parse_timestamp(value).astimezone(_zone(tz))


def date_key_for(value: TimestampLike, tz: Optional[ZoneInfo] = None) -> str:
    """Day key of a timestamp in the scoring time zone."""
    return format_date_key(to_local(value, tz).date())


def today_key(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> str:
    return date_key_for(now or datetime.now(timezone.utc), tz)


def yesterday_key(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> str:
    return shift_date_key(today_key(now, tz), -1)


def day_bounds(
    date_key: str, tz: Optional[ZoneInfo] = None
) -> Tuple[datetime, datetime]:
    """
    Inclusive ``[start_of_day, end_of_day]`` window for a day key.

    Both ends are aware datetimes in the scoring zone; the end is the last
    representable microsecond of the day.
    """
    zone = _zone(tz)
    day = parse_date_key(date_key)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day, time.max, tzinfo=zone)
    return start, end
