"""
Domain exceptions for the First/Last scoring engine.

Purpose
-------
Define the structured, domain-specific exception hierarchy raised by services
for business rule violations and caller-visible input problems. Cogs translate
these into user-friendly Discord embeds; the daily pipeline logs them per
server and moves on.

Design Notes
------------
- All domain exceptions inherit from `FirstLastDomainException`.
- Each exception carries `message`, `details`, `severity`, `is_retryable`
  and `error_code` (see `src.core.exceptions` for the shared severity enum).
- "No data" is never an exception: services return empty results instead.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from src.core.exceptions import ErrorSeverity


class FirstLastDomainException(Exception):
    """
    Base exception for all domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise FirstLastDomainException(
        ...     "Scoring failed",
        ...     {"server_id": "123"}
        ... )
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

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class NotFoundError(FirstLastDomainException):
    """
    Raised when a requested resource cannot be found.

    Args:
        resource_type: Type of resource (e.g., "DayLedger", "User")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class SnapshotNotFoundError(NotFoundError):
    """
    Raised when an analytics query needs a persisted dated leaderboard
    snapshot that does not exist. Never defaulted to zero.
    """

    def __init__(self, server_id: str, date_key: str) -> None:
        self.server_id = server_id
        self.date_key = date_key
        super().__init__("LeaderboardSnapshot", date_key)
        self.details["server_id"] = server_id


class ValidationError(FirstLastDomainException):
    """
    Raised when caller input fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class InvalidDateRangeError(ValidationError):
    """
    Raised for malformed dates, today/future dates on history lookups, and
    identical start/end dates for growth rates.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(field, message)
        self.error_code = "INVALID_DATE_RANGE"


class DayAlreadyProcessedError(FirstLastDomainException):
    """
    Raised when a day's deltas are applied to a server's cumulative totals a
    second time. The transaction is rolled back so nothing is double counted.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, server_id: str, date_key: str) -> None:
        self.server_id = server_id
        self.date_key = date_key
        super().__init__(
            f"Day {date_key} was already folded into server {server_id}'s leaderboard",
            details={"server_id": server_id, "date_key": date_key},
            error_code="DAY_ALREADY_PROCESSED",
        )


class InvalidOperationError(FirstLastDomainException):
    """
    Raised when an action cannot be performed in the current state.

    Args:
        action: The action that was attempted
        reason: Why the action is not allowed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Cannot {action}: {reason}",
            details={"action": action, "reason": reason},
            error_code="INVALID_OPERATION",
        )
