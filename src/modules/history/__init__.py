"""
History Module
==============

Domain: Write-once leaderboards as of a past date

Services:
- HistoryService: Build, cache and list dated snapshots
"""

from .service import HistoryService, validate_past_date

__all__ = [
    "HistoryService",
    "validate_past_date",
]
