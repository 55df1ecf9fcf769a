"""
Analytics derivations.

Pure aggregations over `DayView`s and `LeaderboardSnapshotView`s. Nothing
here mutates or loads data, and "no data" always produces an empty or
zeroed result rather than an error.

User ordering in every top-N list is count descending, then user ID, so
results are stable across runs.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from src.modules.flair.tiers import FlairTable, FlairTier
from src.modules.leaderboard.ranking import LeaderboardSnapshotView, RankedEntry
from src.modules.ledger.types import DayView
from src.modules.scoring.calculator import latest_usernames
from src.modules.shared.dates import format_date_key, sort_date_keys, to_local

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MAX_TRACKED_POSITION = 15
PEAK_THRESHOLD = 0.7


def _ordered(days: Iterable[DayView]) -> List[DayView]:
    return sorted(days, key=lambda v: v.day)


def _top(counter: Mapping[str, int], limit: int) -> List[Tuple[str, int]]:
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))[:limit]


# ============================================================================
# Growth rate
# ============================================================================


@dataclass(frozen=True)
class GrowthRate:
    user_id: str
    username: str
    start_score: int
    end_score: int
    rate: float


def compute_growth_rates(
    start: LeaderboardSnapshotView,
    end: LeaderboardSnapshotView,
    days_between: int,
) -> List[GrowthRate]:
    """
    Points per day between two snapshots for every user in either.

    Users missing from a snapshot count as 0 there.

    Raises:
        ValueError: If `days_between` is not positive

    Example:
        >>> [g.rate for g in compute_growth_rates(s1, s2, 3)]   # X: 10 -> 40
        [10.0]
    """
    if days_between <= 0:
        raise ValueError("days_between must be positive")

    start_scores, end_scores = start.scores(), end.scores()
    names = {e.user_id: e.username for e in start.rankings}
    names.update({e.user_id: e.username for e in end.rankings})

    rates = [
        GrowthRate(
            user_id=user_id,
            username=names.get(user_id, user_id),
            start_score=start_scores.get(user_id, 0),
            end_score=end_scores.get(user_id, 0),
            rate=(end_scores.get(user_id, 0) - start_scores.get(user_id, 0)) / days_between,
        )
        for user_id in set(start_scores) | set(end_scores)
    ]
    rates.sort(key=lambda g: (-g.rate, g.user_id))
    return rates


# ============================================================================
# Participation
# ============================================================================


@dataclass(frozen=True)
class UserParticipation:
    user_id: str
    username: str
    days: int
    first_places: int


@dataclass(frozen=True)
class ParticipationStats:
    total_days: int = 0
    unique_participants: int = 0
    users: Tuple[UserParticipation, ...] = ()
    busiest_days: Tuple[Tuple[str, int], ...] = ()
    weekday_averages: Dict[str, float] = field(default_factory=dict)

    @property
    def best_weekday(self) -> Optional[str]:
        if not self.weekday_averages:
            return None
        return max(self.weekday_averages.items(), key=lambda item: item[1])[0]


def compute_participation(days: Sequence[DayView], top_days: int = 5) -> ParticipationStats:
    """Per-user participation and first-place counts, busiest days, weekday averages."""
    ordered = _ordered(days)
    if not ordered:
        return ParticipationStats()

    names = latest_usernames(ordered)
    participation: Counter = Counter()
    firsts: Counter = Counter()
    weekday_totals: Dict[int, int] = defaultdict(int)
    weekday_counts: Dict[int, int] = defaultdict(int)

    for view in ordered:
        participation.update(set(view.first_user_ids()))
        if view.first_author_id:
            firsts[view.first_author_id] += 1
        weekday_totals[view.day.weekday()] += view.participant_count
        weekday_counts[view.day.weekday()] += 1

    users = tuple(
        UserParticipation(uid, names.get(uid, uid), count, firsts.get(uid, 0))
        for uid, count in _top(participation, len(participation))
    )
    busiest = sorted(ordered, key=lambda v: (-v.participant_count, v.day))[:top_days]

    return ParticipationStats(
        total_days=len(ordered),
        unique_participants=len(participation),
        users=users,
        busiest_days=tuple((v.date_key, v.participant_count) for v in busiest),
        weekday_averages={
            WEEKDAY_NAMES[wd]: weekday_totals[wd] / weekday_counts[wd]
            for wd in sorted(weekday_counts)
        },
    )


# ============================================================================
# Heatmap
# ============================================================================


@dataclass(frozen=True)
class Heatmap:
    hourly: Tuple[int, ...]
    weekday: Tuple[int, ...]

    @staticmethod
    def intensity(value: int, maximum: int) -> int:
        """Band 0 (none) .. 5 (>80 % of max)."""
        if value == 0 or maximum == 0:
            return 0
        ratio = value / maximum
        for band, ceiling in enumerate((0.2, 0.4, 0.6, 0.8), start=1):
            if ratio <= ceiling:
                return band
        return 5

    @property
    def peak_hours(self) -> List[int]:
        top = max(self.hourly, default=0)
        return [h for h, count in enumerate(self.hourly) if count and count > top * PEAK_THRESHOLD]

    @property
    def peak_weekdays(self) -> List[str]:
        top = max(self.weekday, default=0)
        return [
            WEEKDAY_NAMES[d]
            for d, count in enumerate(self.weekday)
            if count and count > top * PEAK_THRESHOLD
        ]


def compute_heatmap(days: Iterable[DayView], tz: Optional[ZoneInfo] = None) -> Heatmap:
    """Hour-of-day and weekday buckets over every recorded message timestamp."""
    hourly = [0] * 24
    weekday = [0] * 7

    for view in days:
        entries = list(view.first_messages)
        entries += [e for e in (view.last_message, view.second_last_message) if e]
        for entry in entries:
            stamp = entry.get("timestamp")
            if not stamp:
                continue
            local = to_local(stamp, tz)
            hourly[local.hour] += 1
            weekday[local.weekday()] += 1

    return Heatmap(hourly=tuple(hourly), weekday=tuple(weekday))


# ============================================================================
# Server statistics
# ============================================================================


@dataclass(frozen=True)
class ServerStatistics:
    total_days: int = 0
    unique_participants: int = 0
    average_participants: float = 0.0
    perfect_days: int = 0
    top_first: Tuple[Tuple[str, int], ...] = ()
    top_last: Tuple[Tuple[str, int], ...] = ()
    top_second_last: Tuple[Tuple[str, int], ...] = ()
    top_three_finishes: Tuple[Tuple[str, int], ...] = ()
    most_active_weekday: Optional[Tuple[str, float]] = None
    least_active_weekday: Optional[Tuple[str, float]] = None
    longest_first_streak: Optional[Tuple[str, int]] = None
    usernames: Dict[str, str] = field(default_factory=dict)


def compute_server_statistics(days: Sequence[DayView], limit: int = 3) -> ServerStatistics:
    """
    Server-wide records.

    A perfect day is one where the first-message author is also the day's
    last message author. The first-place streak counts consecutive calendar
    days held by the same user.
    """
    ordered = _ordered(days)
    if not ordered:
        return ServerStatistics()

    participants = set()
    total_messages = perfect = 0
    firsts: Counter = Counter()
    lasts: Counter = Counter()
    second_lasts: Counter = Counter()
    top_three: Counter = Counter()
    weekday_totals: Dict[int, int] = defaultdict(int)
    weekday_counts: Dict[int, int] = defaultdict(int)

    best_streak: Optional[Tuple[str, int]] = None
    run_user: Optional[str] = None
    run_length = 0
    run_last_day = None

    for view in ordered:
        ids = view.first_user_ids()
        participants.update(ids)
        total_messages += len(ids)
        top_three.update(ids[:3])
        weekday_totals[view.day.weekday()] += len(ids)
        weekday_counts[view.day.weekday()] += 1

        if view.last_author_id:
            lasts[view.last_author_id] += 1
        if view.second_last_author_id:
            second_lasts[view.second_last_author_id] += 1

        first = view.first_author_id
        if first is None:
            continue
        firsts[first] += 1
        if view.last_author_id == first:
            perfect += 1

        if (
            run_user == first
            and run_last_day is not None
            and (view.day - run_last_day).days == 1
        ):
            run_length += 1
        else:
            run_user, run_length = first, 1
        run_last_day = view.day
        if best_streak is None or run_length > best_streak[1]:
            best_streak = (first, run_length)

    averages = sorted(
        ((WEEKDAY_NAMES[wd], weekday_totals[wd] / weekday_counts[wd]) for wd in weekday_counts),
        key=lambda item: (-item[1], item[0]),
    )

    return ServerStatistics(
        total_days=len(ordered),
        unique_participants=len(participants),
        average_participants=total_messages / len(ordered),
        perfect_days=perfect,
        top_first=tuple(_top(firsts, limit)),
        top_last=tuple(_top(lasts, limit)),
        top_second_last=tuple(_top(second_lasts, limit)),
        top_three_finishes=tuple(_top(top_three, limit)),
        most_active_weekday=averages[0],
        least_active_weekday=averages[-1],
        longest_first_streak=best_streak,
        usernames=latest_usernames(ordered),
    )


# ============================================================================
# Positions
# ============================================================================


@dataclass(frozen=True)
class PositionStats:
    position: int
    days_filled: int
    total_days: int
    top_users: Tuple[Tuple[str, int], ...] = ()

    @property
    def percentage(self) -> float:
        return (self.days_filled / self.total_days * 100) if self.total_days else 0.0


def compute_position_stats(
    days: Sequence[DayView], position: int, limit: int = 5
) -> PositionStats:
    """
    How often the 1-based `position` was filled, and by whom.

    Raises:
        ValueError: If `position` is outside 1..15
    """
    if not 1 <= position <= MAX_TRACKED_POSITION:
        raise ValueError(f"position must be between 1 and {MAX_TRACKED_POSITION}")

    days = list(days)
    holders: Counter = Counter()
    filled = 0
    for view in days:
        ids = view.first_user_ids()
        if len(ids) >= position:
            filled += 1
            holders[ids[position - 1]] += 1

    return PositionStats(
        position=position,
        days_filled=filled,
        total_days=len(days),
        top_users=tuple(_top(holders, limit)),
    )


@dataclass(frozen=True)
class RankCount:
    category: str
    count: int
    recent_dates: Tuple[str, ...] = ()


def compute_rank_counts(
    days: Sequence[DayView], user_id: str, category: str, recent: int = 5
) -> RankCount:
    """
    Times a user held a category.

    Args:
        category: ``"1"``..``"15"`` (finishing position), ``"last"`` or
            ``"second_last"``

    Raises:
        ValueError: For an unknown category
    """
    user_id = str(user_id)
    if category == "last":
        hit = lambda v: v.last_author_id == user_id  # noqa: E731
    elif category == "second_last":
        hit = lambda v: v.second_last_author_id == user_id  # noqa: E731
    elif category.isdigit() and 1 <= int(category) <= MAX_TRACKED_POSITION:
        hit = lambda v: v.position_of(user_id) == int(category)  # noqa: E731
    else:
        raise ValueError(f"Unknown rank category: {category!r}")

    dates = [format_date_key(v.day) for v in _ordered(days) if hit(v)]
    return RankCount(
        category=category,
        count=len(dates),
        recent_dates=tuple(reversed(dates[-recent:])),
    )


@dataclass(frozen=True)
class UserPosition:
    date_key: str
    position: Optional[int]
    is_last: bool
    is_second_last: bool
    participants: int

    @property
    def found(self) -> bool:
        return self.position is not None or self.is_last or self.is_second_last


def find_user_position(day: Optional[DayView], user_id: str, date_key: str = "") -> UserPosition:
    """Where a user finished on one day; an absent day yields an empty result."""
    if day is None:
        return UserPosition(date_key, None, False, False, 0)
    user_id = str(user_id)
    return UserPosition(
        date_key=day.date_key,
        position=day.position_of(user_id),
        is_last=day.last_author_id == user_id,
        is_second_last=day.second_last_author_id == user_id,
        participants=day.participant_count,
    )


# ============================================================================
# Monthly gains and flair grouping
# ============================================================================


@dataclass(frozen=True)
class MonthlyGain:
    user_id: str
    username: str
    gain: int
    rank: int


def compute_monthly_gains(
    snapshots: Mapping[str, LeaderboardSnapshotView],
    baseline: Optional[LeaderboardSnapshotView] = None,
) -> List[MonthlyGain]:
    """
    Points gained across a month of dated snapshots.

    Gains are summed day over day; the first snapshot is compared with
    `baseline` (the last snapshot before the month) or with zero when there
    is none.

    Args:
        snapshots: date_key -> snapshot, already limited to one month
    """
    previous: Dict[str, int] = baseline.scores() if baseline else {}
    names: Dict[str, str] = {}
    gains: Dict[str, int] = defaultdict(int)

    for key in sort_date_keys(snapshots):
        current = snapshots[key].scores()
        names.update({e.user_id: e.username for e in snapshots[key].rankings})
        for user_id in set(previous) | set(current):
            gains[user_id] += current.get(user_id, previous.get(user_id, 0)) - previous.get(user_id, 0)
        previous = {**previous, **current}

    ordered = sorted(gains.items(), key=lambda item: (-item[1], item[0]))
    return [
        MonthlyGain(user_id=uid, username=names.get(uid, uid), gain=gain, rank=index)
        for index, (uid, gain) in enumerate(ordered, start=1)
    ]


def group_by_flair_tier(
    rankings: Iterable[RankedEntry], flair_table: FlairTable
) -> List[Tuple[FlairTier, List[RankedEntry]]]:
    """Users grouped under their highest reached point tier, highest tier first."""
    groups: Dict[str, List[RankedEntry]] = defaultdict(list)
    for entry in rankings:
        tier = flair_table.highest_tier(entry.score)
        if tier is not None:
            groups[tier.key].append(entry)

    return [
        (tier, sorted(groups[tier.key], key=lambda e: (-e.score, e.user_id)))
        for tier in reversed(flair_table.point_tiers)
        if groups.get(tier.key)
    ]
