"""
Ledger Module
=============

Domain: Per-day first-message order and end-of-day last messages

Services:
- DayLedgerService: Record first messages, resolve last messages, read days
"""

from .service import DayLedgerService, select_last_messages
from .types import ChannelMessage, DayView, LastMessageResolution

__all__ = [
    "DayLedgerService",
    "select_last_messages",
    "ChannelMessage",
    "DayView",
    "LastMessageResolution",
]
