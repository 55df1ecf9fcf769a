"""
Flair Module
============

Domain: Achievement roles earned from score thresholds and first/last events

Services:
- FlairService: Role-grant evaluation and per-user flair / streak queries
"""

from .service import FlairService, RoleGrantEvent
from .tiers import FlairTable, FlairTier

__all__ = [
    "FlairService",
    "RoleGrantEvent",
    "FlairTable",
    "FlairTier",
]
