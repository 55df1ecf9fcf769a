"""
Database subsystem.

Exports the declarative base, column mixins and the `DatabaseService`
facade that owns the async engine and transaction discipline.
"""

from src.core.database.base import (
    Base,
    IdMixin,
    JSONType,
    TimestampMixin,
    utcnow,
)
from src.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    # ORM Base & Mixins
    "Base",
    "IdMixin",
    "TimestampMixin",
    "JSONType",
    "utcnow",
    # Main service
    "DatabaseService",
    # Exceptions
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
