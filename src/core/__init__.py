"""
Core infrastructure layer.

Re-exports the infrastructure primitives services reach for most often:
configuration, the database facade, logging and the infrastructure
exception hierarchy. Feature modules still import domain types from their
own packages.
"""

from __future__ import annotations

from src.core.config import Config, ConfigManager
from src.core.database import DatabaseService
from src.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorSeverity,
    EventBusError,
    FirstLastInfrastructureException,
)
from src.core.logging import get_logger, setup_logging

__all__ = [
    # Configuration
    "Config",
    "ConfigManager",
    # Database
    "DatabaseService",
    # Logging
    "setup_logging",
    "get_logger",
    # Infrastructure Exceptions
    "FirstLastInfrastructureException",
    "ConfigurationError",
    "DatabaseError",
    "EventBusError",
    "ErrorSeverity",
]
