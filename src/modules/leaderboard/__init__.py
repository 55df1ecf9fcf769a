"""
Leaderboard Module
==================

Domain: Cumulative scores, unique ranks and the "current" snapshot

Services:
- LeaderboardService: Fold daily deltas and query standings
"""

from .ranking import LeaderboardSnapshotView, RankedEntry, rank_entries
from .service import LeaderboardService

__all__ = [
    "LeaderboardService",
    "LeaderboardSnapshotView",
    "RankedEntry",
    "rank_entries",
]
