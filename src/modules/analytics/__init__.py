"""
Analytics Module
================

Domain: Read-only statistics over ledgers and dated snapshots

Services:
- AnalyticsService: Growth rates, participation, heatmaps, records
"""

from .date_input import format_date_for_display, parse_date_input
from .service import AnalyticsService

__all__ = [
    "AnalyticsService",
    "format_date_for_display",
    "parse_date_input",
]
