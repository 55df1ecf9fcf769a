"""
Unit tests for exception templates and user-facing error responses.
"""

import pytest

from src.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorSeverity,
    FirstLastInfrastructureException,
    get_error_severity,
    is_transient_error,
    should_alert,
)
from src.core.services.error_response_service import ErrorResponseService
from src.domain.exceptions.registry import get_exception_template
from src.modules.shared.exceptions import (
    DayAlreadyProcessedError,
    FirstLastDomainException,
    InvalidDateRangeError,
    SnapshotNotFoundError,
    ValidationError,
)


@pytest.fixture
def service():
    return ErrorResponseService()


@pytest.mark.unit
class TestExceptionTemplates:
    """Registry lookup."""

    def test_most_specific_template_wins(self):
        assert get_exception_template(InvalidDateRangeError("date", "bad")).title == "Invalid Date"
        assert get_exception_template(ValidationError("position", "bad")).title == "Invalid Input"

    def test_unknown_exception_has_no_template(self):
        assert get_exception_template(KeyError("x")) is None


@pytest.mark.unit
class TestErrorResponseService:
    """Formatting exceptions for users."""

    def test_snapshot_not_found(self, service):
        response = service.format_error_sync(SnapshotNotFoundError("1", "06-01-2025"))

        assert response["title"] == "No Leaderboard For That Date"
        assert response["description"] == "There is no saved leaderboard for **06-01-2025**."
        assert response["severity"] is ErrorSeverity.INFO

    def test_invalid_date_shows_the_reason(self, service):
        response = service.format_error_sync(InvalidDateRangeError("date", "Pick a day before today"))

        assert response["description"] == "Pick a day before today"

    def test_already_processed(self, service):
        response = service.format_error_sync(DayAlreadyProcessedError("1", "06-02-2025"))

        assert "**06-02-2025**" in response["description"]
        assert response["severity"] is ErrorSeverity.WARNING

    def test_configuration_error_names_the_key(self, service):
        response = service.format_error_sync(ConfigurationError("flairs.tiers", "missing points"))

        assert "`flairs.tiers`" in response["description"]

    async def test_async_format_matches_sync(self, service):
        error = DatabaseError("apply_daily_deltas")

        assert await service.format_error(error) == service.format_error_sync(error)

    @pytest.mark.parametrize(
        "error,description",
        [
            (FirstLastDomainException("Scoring failed"), "Scoring failed"),
            (FirstLastInfrastructureException("pool exhausted"), "A system error occurred. Please try again in a moment."),
            (RuntimeError("secret internals"), "An unexpected error occurred."),
        ],
    )
    def test_fallback_never_leaks_internals(self, service, error, description):
        response = service.format_error_sync(error)

        assert response["title"] == "Something Went Wrong"
        assert response["description"] == description


@pytest.mark.unit
class TestErrorClassification:
    """Severity and retry helpers."""

    def test_database_errors_are_transient(self):
        assert is_transient_error(DatabaseError("get_day")) is True
        assert is_transient_error(ValidationError("x", "y")) is False

    def test_severity_and_alerting(self):
        assert get_error_severity(RuntimeError()) is ErrorSeverity.ERROR
        assert get_error_severity(DayAlreadyProcessedError("1", "06-02-2025")) is ErrorSeverity.WARNING
        assert should_alert(DatabaseError("get_day")) is True
        assert should_alert(SnapshotNotFoundError("1", "06-01-2025")) is False

    def test_error_codes(self):
        assert InvalidDateRangeError("date", "x").error_code == "INVALID_DATE_RANGE"
        assert SnapshotNotFoundError("1", "06-01-2025").details["server_id"] == "1"
