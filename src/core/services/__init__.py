"""Service container and presentation services."""

from src.core.services.container import ServiceContainer
from src.core.services.error_response_service import ErrorResponseService

__all__ = ["ServiceContainer", "ErrorResponseService"]
