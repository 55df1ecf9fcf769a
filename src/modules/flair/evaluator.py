"""
Streak and flair evaluation.

Pure functions over a server's chronologically ordered `DayView`s. Nothing
here reads the database; services load the days and pass them in.

Streak categories
-----------------
- ``int``: a 0-based finishing position in the day's first messages
- ``"last"``: the day's last message author
- ``"second_last"``: the day's second-last message author
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Union

from src.modules.flair.tiers import FlairTable, FlairTier
from src.modules.ledger.types import DayView
from src.modules.scoring.calculator import compute_day_deltas
from src.modules.scoring.point_table import PointTable
from src.modules.shared.dates import format_date_key

StreakCategory = Union[int, str]

LAST = "last"
SECOND_LAST = "second_last"
MAX_STREAK_POSITIONS = 20


# ============================================================================
# Streaks
# ============================================================================


@dataclass(frozen=True)
class StreakResult:
    current: int = 0
    longest: int = 0
    last_hit: Optional[date] = None

    @property
    def is_active(self) -> bool:
        return self.current > 0 or self.longest > 0


def _satisfies(day: DayView, user_id: str, category: StreakCategory) -> bool:
    if category == LAST:
        return day.last_author_id == user_id
    if category == SECOND_LAST:
        return day.second_last_author_id == user_id
    if isinstance(category, int):
        ids = day.first_user_ids()
        return 0 <= category < len(ids) and ids[category] == user_id
    raise ValueError(f"Unknown streak category: {category!r}")


def compute_streak(
    days: Iterable[DayView], user_id: str, category: StreakCategory
) -> StreakResult:
    """
    Current and longest consecutive-day streak for one category.

    A hit exactly one calendar day after the previous hit extends the
    streak; any other hit starts a new streak of 1. A recorded day more
    than one day after the last hit without a hit drops `current` to 0.

    Example:
        >>> compute_streak(days_with_hits_on_1_2_4, "123", 0)
        StreakResult(current=1, longest=2, ...)
    """
    user_id = str(user_id)
    current = longest = 0
    last_hit: Optional[date] = None

    for view in sorted(days, key=lambda v: v.day):
        today = view.day
        if _satisfies(view, user_id, category):
            if last_hit is not None and (today - last_hit).days == 1:
                current += 1
            else:
                current = 1
            longest = max(longest, current)
            last_hit = today
        elif last_hit is not None and (today - last_hit).days > 1:
            current = 0

    return StreakResult(current=current, longest=longest, last_hit=last_hit)


def compute_all_streaks(
    days: Sequence[DayView],
    user_id: str,
    max_positions: int = MAX_STREAK_POSITIONS,
) -> Dict[StreakCategory, StreakResult]:
    """Streaks for positions 0..max_positions-1 plus last and second-last; empty ones dropped."""
    categories: List[StreakCategory] = list(range(max_positions)) + [LAST, SECOND_LAST]
    results = {c: compute_streak(days, user_id, c) for c in categories}
    return {c: r for c, r in results.items() if r.is_active}


# ============================================================================
# Flairs
# ============================================================================


@dataclass(frozen=True)
class FlairRecord:
    tier: FlairTier
    date_earned: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "tier": self.tier.key,
            "tier_name": self.tier.name,
            "role_id": self.tier.role_id,
            "date_earned": self.date_earned,
        }


def qualifying_date(days: Iterable[DayView], user_id: str) -> Optional[date]:
    """First day the user was first-message #1 or the day's last message author."""
    user_id = str(user_id)
    for view in sorted(days, key=lambda v: v.day):
        if view.first_author_id == user_id or view.last_author_id == user_id:
            return view.day
    return None


def compute_flair_dates(
    days: Sequence[DayView],
    user_id: str,
    point_table: PointTable,
    flair_table: FlairTable,
) -> List[FlairRecord]:
    """
    Every flair the user has earned and the day it was earned.

    Point tiers need both the threshold reached and the qualifying flair
    held; a threshold crossed before qualifying is dated to the qualifying
    day. Without a qualifying day no point tier is earned at any score.

    Returns:
        Records ordered by date earned, then tier order
    """
    user_id = str(user_id)
    ordered = sorted(days, key=lambda v: v.day)
    qualified_on = qualifying_date(ordered, user_id)

    records: List[FlairRecord] = []
    participated = False
    score = 0
    pending = list(flair_table.point_tiers)

    for view in ordered:
        day_key = format_date_key(view.day)

        if not participated and user_id in view.first_user_ids():
            participated = True
            records.append(FlairRecord(flair_table.participation, day_key))

        if qualified_on == view.day:
            records.append(FlairRecord(flair_table.qualifying, day_key))

        score += compute_day_deltas(view, point_table).get(user_id, 0)

        if qualified_on is None or view.day < qualified_on:
            continue
        while pending and score >= pending[0].points:
            records.append(FlairRecord(pending.pop(0), day_key))

    return records


def flairs_earned_on(records: Iterable[FlairRecord], date_key: str) -> List[FlairRecord]:
    return [r for r in records if r.date_earned == date_key]


def highest_point_tier(score: int, flair_table: FlairTable) -> Optional[FlairTier]:
    return flair_table.highest_tier(score)
