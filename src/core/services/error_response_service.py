"""
Error Response Service.

Purpose
-------
Turn domain and infrastructure exceptions into user-facing response dicts
that EmbedFactory renders.

Responsibilities
----------------
- Format known exceptions using the EXCEPTION_TEMPLATES registry
- Give infrastructure failures a generic message that leaks no internals
- Fall back to a generic "something went wrong" for anything else

Non-Responsibilities
--------------------
- Logging (handled by cogs/services)
- Discord embed creation (delegated to EmbedFactory)
"""

from __future__ import annotations

from typing import Any, Dict

from src.core.exceptions import FirstLastInfrastructureException
from src.domain.exceptions.registry import get_exception_template
from src.modules.shared.exceptions import ErrorSeverity, FirstLastDomainException


class ErrorResponseService:
    """Formats exceptions into {title, description, help_text, severity}."""

    async def format_error(self, error: Exception) -> Dict[str, Any]:
        """
        Format an exception into a user-friendly response structure.

        Example:
            >>> await service.format_error(SnapshotNotFoundError("1", "06-01-2025"))
            {'title': 'No Leaderboard For That Date',
             'description': 'There is no saved leaderboard for **06-01-2025**.', ...}
        """
        return self.format_error_sync(error)

    def format_error_sync(self, error: Exception) -> Dict[str, Any]:
        template = get_exception_template(error)
        if template is not None:
            return template.format(error)
        return self._format_fallback_error(error)

    def _format_fallback_error(self, error: Exception) -> Dict[str, Any]:
        if isinstance(error, FirstLastDomainException):
            severity = error.severity
            description = error.message
        elif isinstance(error, FirstLastInfrastructureException):
            severity = error.severity
            description = "A system error occurred. Please try again in a moment."
        else:
            severity = ErrorSeverity.ERROR
            description = "An unexpected error occurred."

        return {
            "title": "Something Went Wrong",
            "description": description,
            "help_text": "The issue has been logged. If this persists, contact a server admin.",
            "severity": severity,
        }
