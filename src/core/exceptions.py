"""
Infrastructure exceptions for the First/Last bot.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
database failures, configuration errors and event bus failures that require
technical attention rather than a user-facing explanation.

Design Notes
------------
- All infrastructure exceptions inherit from `FirstLastInfrastructureException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling decisions for both this hierarchy and
  the domain hierarchy in `src.modules.shared.exceptions`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError, OperationalError


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., retryable errors)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class FirstLastInfrastructureException(Exception):
    """
    Base exception for all infrastructure-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class ConfigurationError(FirstLastInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(FirstLastInfrastructureException):
    """
    Raised when a store operation fails for infrastructure reasons
    (connection loss, transaction contention, timeouts).

    Args:
        operation: Name of the operation that failed
        original_error: The underlying driver/ORM exception, if any
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(
        self, operation: str, original_error: Optional[Exception] = None
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        message = f"Database operation failed: {operation}"
        if original_error is not None:
            message = f"{message} ({type(original_error).__name__})"
        super().__init__(
            message,
            details={
                "operation": operation,
                "original_error": str(original_error) if original_error else None,
            },
            error_code="DATABASE_ERROR",
        )


class EventBusError(FirstLastInfrastructureException):
    """Raised when event publication itself fails (not a listener error)."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, event_name: str, message: str) -> None:
        self.event_name = event_name
        super().__init__(
            f"Event bus error for '{event_name}': {message}",
            details={"event_name": event_name},
            error_code="EVENT_BUS_ERROR",
        )


# ============================================================================
# Helpers
# ============================================================================


def is_transient_error(exc: Exception) -> bool:
    """
    Whether an exception is worth retrying.

    Structured exceptions answer via `is_retryable`; raw SQLAlchemy
    operational errors (lost connections, lock timeouts) count as transient.
    """
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, DBAPIError):
        return bool(exc.connection_invalidated)
    return bool(getattr(exc, "is_retryable", False))


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity for logging; unstructured exceptions are treated as ERROR."""
    severity = getattr(exc, "severity", None)
    if isinstance(severity, ErrorSeverity):
        return severity
    if isinstance(severity, Enum):
        return ErrorSeverity(severity.value)
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """Whether an exception should page someone (ERROR and above)."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
