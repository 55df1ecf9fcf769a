"""
Database Models Package
========================

SQLAlchemy ORM models for the First/Last scoring engine, grouped by domain.

All models:
- Are schema-only, with no business logic
- Use Mapped[] syntax with mapped_column()
- Inherit from the shared mixins (IdMixin, TimestampMixin)
- Use JSON (JSONB on PostgreSQL) for nested per-day records

Domain Organization:
--------------------
- scoring: DayLedger, UserScore, LeaderboardSnapshot, ProcessedDay
"""

from src.core.database.base import Base

from .scoring import (
    CURRENT_SNAPSHOT_KEY,
    DayLedger,
    LeaderboardSnapshot,
    ProcessedDay,
    UserScore,
)

__all__ = [
    "Base",
    "DayLedger",
    "UserScore",
    "LeaderboardSnapshot",
    "ProcessedDay",
    "CURRENT_SNAPSHOT_KEY",
]
