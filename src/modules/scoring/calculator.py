"""
Daily score calculation.

Purpose
-------
Pure functions mapping a day's ledger to per-user point deltas. No database,
no config lookups: the point table is passed in.

Design Notes
------------
- First messages are ordered by timestamp before positions are assigned;
  equal timestamps keep their stored order.
- The last / second-last bonuses apply whether or not the author also has a
  first-message entry that day, and stack with position points.
- Same input, same output: re-running a day never changes its deltas.

Usage
-----
    from src.modules.scoring.calculator import compute_daily_deltas

    deltas = compute_daily_deltas(firsts, last, second_last, point_table)
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from src.modules.ledger.types import DayView
from src.modules.scoring.point_table import PointTable
from src.modules.shared.dates import parse_timestamp


def order_first_messages(
    first_messages: Iterable[Mapping[str, Any]],
) -> List[Mapping[str, Any]]:
    return sorted(first_messages, key=lambda e: parse_timestamp(e["timestamp"]))


def compute_daily_deltas(
    first_messages: Sequence[Mapping[str, Any]],
    last_message: Optional[Mapping[str, Any]],
    second_last_message: Optional[Mapping[str, Any]],
    point_table: PointTable,
) -> Dict[str, int]:
    """
    Compute each user's points for one day.

    Args:
        first_messages: `{user_id, username, timestamp, ...}` entries
        last_message: Day's last message author entry, if resolved
        second_last_message: Day's second-last author entry, if resolved
        point_table: Immutable position / bonus weights

    Returns:
        user_id -> points earned that day

    Example:
        >>> table = PointTable(positions={1: 20, 2: 12, 3: 10}, default_points=2)
        >>> compute_daily_deltas([a, b, c, d], {"user_id": "D"}, None, table)
        {'A': 20, 'B': 12, 'C': 10, 'D': 22}
    """
    deltas: Dict[str, int] = {}

    for position, entry in enumerate(order_first_messages(first_messages), start=1):
        user_id = str(entry["user_id"])
        deltas[user_id] = deltas.get(user_id, 0) + point_table.position_points(position)

    if last_message:
        user_id = str(last_message["user_id"])
        deltas[user_id] = deltas.get(user_id, 0) + point_table.last_message

    if second_last_message:
        user_id = str(second_last_message["user_id"])
        deltas[user_id] = deltas.get(user_id, 0) + point_table.second_last_message

    return deltas


def compute_day_deltas(day: DayView, point_table: PointTable) -> Dict[str, int]:
    return compute_daily_deltas(
        day.first_messages, day.last_message, day.second_last_message, point_table
    )


def usernames_for_day(
    first_messages: Sequence[Mapping[str, Any]],
    last_message: Optional[Mapping[str, Any]] = None,
    second_last_message: Optional[Mapping[str, Any]] = None,
) -> Dict[str, str]:
    """user_id -> most recent username seen on that day."""
    names: Dict[str, str] = {}
    for entry in list(order_first_messages(first_messages)) + [
        second_last_message,
        last_message,
    ]:
        if entry and entry.get("username"):
            names[str(entry["user_id"])] = str(entry["username"])
    return names


def accumulate_scores(
    days: Iterable[DayView], point_table: PointTable
) -> Dict[str, int]:
    """Cumulative score per user: the sum of daily deltas over `days`."""
    totals: Dict[str, int] = {}
    for day in days:
        for user_id, delta in compute_day_deltas(day, point_table).items():
            totals[user_id] = totals.get(user_id, 0) + delta
    return totals


def latest_usernames(days: Iterable[DayView]) -> Dict[str, str]:
    names: Dict[str, str] = {}
    for day in days:
        names.update(
            usernames_for_day(day.first_messages, day.last_message, day.second_last_message)
        )
    return names
