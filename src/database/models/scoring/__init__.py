"""
Scoring domain models: day ledgers, cumulative user scores, leaderboard
snapshots and the processed-day marker.
"""

from .day_ledger import DayLedger
from .leaderboard_snapshot import CURRENT_SNAPSHOT_KEY, LeaderboardSnapshot
from .processed_day import ProcessedDay
from .user_score import UserScore

__all__ = [
    "DayLedger",
    "UserScore",
    "LeaderboardSnapshot",
    "ProcessedDay",
    "CURRENT_SNAPSHOT_KEY",
]
