"""
Exception message template registry.

Purpose
-------
Single source of truth for exception-to-message mappings. Cogs never build
error text by hand: they hand the exception to ErrorResponseService, which
looks the template up here and interpolates the exception's `details`.

Design Notes
------------
Each template contains:
- title: Short, clear error title for embed
- template: Message template with {placeholder} interpolation
- help_text: Optional guidance for the user
- severity: ErrorSeverity level for visual styling

Lookup walks the exception's MRO, so a subclass without its own entry uses
its parent's template.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from src.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    EventBusError,
    FirstLastInfrastructureException,
)
from src.modules.shared.exceptions import (
    DayAlreadyProcessedError,
    ErrorSeverity,
    FirstLastDomainException,
    InvalidDateRangeError,
    InvalidOperationError,
    NotFoundError,
    SnapshotNotFoundError,
    ValidationError,
)


class ExceptionTemplate:
    """Template for formatting exception messages."""

    def __init__(
        self,
        title: str,
        template: str,
        help_text: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ):
        self.title = title
        self.template = template
        self.help_text = help_text
        self.severity = severity

    def format(self, exception: Exception) -> Dict[str, Any]:
        """
        Format exception using template.

        Args:
            exception: Exception instance to format

        Returns:
            Dict with 'title', 'description', 'help_text', 'severity'
        """
        details = {}
        if isinstance(exception, (FirstLastDomainException, FirstLastInfrastructureException)):
            details = exception.details.copy()

        try:
            description = self.template.format(**details)
        except (KeyError, IndexError, ValueError):
            description = str(exception)

        return {
            "title": self.title,
            "description": description,
            "help_text": self.help_text,
            "severity": self.severity,
        }


# ============================================================================
# EXCEPTION TEMPLATE REGISTRY
# ============================================================================

EXCEPTION_TEMPLATES: Dict[type, ExceptionTemplate] = {
    # Domain Exceptions
    NotFoundError: ExceptionTemplate(
        title="Not Found",
        template="{resource_type} not found.",
        help_text=None,
        severity=ErrorSeverity.INFO,
    ),
    SnapshotNotFoundError: ExceptionTemplate(
        title="No Leaderboard For That Date",
        template="There is no saved leaderboard for **{identifier}**.",
        help_text="Snapshots exist only for days that have already been scored.",
        severity=ErrorSeverity.INFO,
    ),
    ValidationError: ExceptionTemplate(
        title="Invalid Input",
        template="{validation_message}",
        help_text="Check the command arguments and try again.",
        severity=ErrorSeverity.INFO,
    ),
    InvalidDateRangeError: ExceptionTemplate(
        title="Invalid Date",
        template="{validation_message}",
        help_text="Dates look like `06-01-2025`, `June 1st`, `6/1` or `yesterday`.",
        severity=ErrorSeverity.INFO,
    ),
    DayAlreadyProcessedError: ExceptionTemplate(
        title="Already Scored",
        template="**{date_key}** has already been added to the leaderboard.",
        help_text="Each day is scored once; scores were not changed.",
        severity=ErrorSeverity.WARNING,
    ),
    InvalidOperationError: ExceptionTemplate(
        title="Can't Do That",
        template="Cannot {action}: {reason}",
        help_text=None,
        severity=ErrorSeverity.INFO,
    ),
    # Infrastructure Exceptions
    DatabaseError: ExceptionTemplate(
        title="Storage Unavailable",
        template="Scores could not be read or saved right now.",
        help_text="Please try again in a moment.",
        severity=ErrorSeverity.ERROR,
    ),
    ConfigurationError: ExceptionTemplate(
        title="Configuration Error",
        template="The bot is misconfigured (`{config_key}`).",
        help_text="Ask a server admin to check the bot configuration.",
        severity=ErrorSeverity.CRITICAL,
    ),
    EventBusError: ExceptionTemplate(
        title="Something Went Wrong",
        template="A background update could not be delivered.",
        help_text="Your command was processed; follow-up actions may be delayed.",
        severity=ErrorSeverity.WARNING,
    ),
}


def get_exception_template(exception: Exception) -> Optional[ExceptionTemplate]:
    """
    Get the most specific template for an exception type.

    Args:
        exception: Exception instance

    Returns:
        ExceptionTemplate if found, None otherwise
    """
    for exception_type in type(exception).__mro__:
        template = EXCEPTION_TEMPLATES.get(exception_type)
        if template is not None:
            return template
    return None
