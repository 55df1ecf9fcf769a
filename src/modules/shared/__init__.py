"""
Shared Module

Purpose
-------
Provides domain-level foundations for all scoring modules:
- Domain exceptions and error handling
- Base service and repository patterns
- Day-key and timestamp helpers

This module keeps domain concerns (scoring rules, day boundaries) apart from
infrastructure concerns (database engine, Discord integration).

Architecture
------------
- BaseService: Foundation for service classes (logging, config, events)
- BaseRepository: Type-safe database access patterns
- Domain exceptions: Caller-facing errors and business rule violations
- dates: ``MM-DD-YYYY`` day keys in the scoring time zone

Usage
-----
    from src.modules.shared import (
        BaseService,
        BaseRepository,
        DayAlreadyProcessedError,
    )
"""

from __future__ import annotations

# Base patterns
from .base_repository import BaseRepository
from .base_service import BaseService

# Domain exceptions
from .exceptions import (
    DayAlreadyProcessedError,
    FirstLastDomainException,
    InvalidDateRangeError,
    InvalidOperationError,
    NotFoundError,
    SnapshotNotFoundError,
    ValidationError,
)

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "FirstLastDomainException",
    "NotFoundError",
    "SnapshotNotFoundError",
    "ValidationError",
    "InvalidDateRangeError",
    "DayAlreadyProcessedError",
    "InvalidOperationError",
]
