"""
Service Container
=================

Purpose
-------
Centralized dependency injection container for the scoring services.
Provides single instances with their collaborators wired in.

Responsibilities
----------------
- Build the shared PointTable and FlairTable once from configuration
- Initialize every domain service with (config_manager, event_bus, logger)
  plus the collaborators it needs
- Provide access to services for cogs and the scheduler

Non-Responsibilities
--------------------
- Application-level lifecycle orchestration (delegated to ApplicationContext)
- Bot initialization (delegated to FirstLastBot)
- Database initialization (delegated to ApplicationContext)

Architecture Notes
------------------
Dependency order::

    ledger, leaderboard
    history    <- ledger, leaderboard
    flair      <- ledger
    analytics  <- ledger, history, leaderboard
    pipeline   <- ledger, leaderboard, history, flair
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.config.manager import ConfigManager
from src.core.logging.logger import get_logger
from src.core.services.error_response_service import ErrorResponseService
from src.modules.analytics.service import AnalyticsService
from src.modules.flair.service import FlairService
from src.modules.flair.tiers import FlairTable
from src.modules.history.service import HistoryService
from src.modules.leaderboard.service import LeaderboardService
from src.modules.ledger.service import DayLedgerService
from src.modules.scoring.pipeline import DailyScoringPipeline
from src.modules.scoring.point_table import PointTable

if TYPE_CHECKING:
    from logging import Logger

    from src.core.event.bus import EventBus

logger = get_logger(__name__)

_NOT_INITIALIZED = "ServiceContainer not initialized. Call initialize() first."
SERVICE_COUNT = 6


class ServiceContainer:
    """
    Dependency injection container for the domain services.

    Usage:
        container = ServiceContainer(config_manager, event_bus, logger)
        await container.initialize()

        leaderboard = container.leaderboard
        pipeline = container.pipeline
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        """
        Initialize service container with required dependencies.

        Args:
            config_manager: Application configuration manager
            event_bus: Event bus for cross-module communication
            logger: Structured logger instance
        """
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger

        # Shared tables
        self._point_table: Optional[PointTable] = None
        self._flair_table: Optional[FlairTable] = None

        # Domain services
        self._ledger: Optional[DayLedgerService] = None
        self._leaderboard: Optional[LeaderboardService] = None
        self._history: Optional[HistoryService] = None
        self._flair: Optional[FlairService] = None
        self._analytics: Optional[AnalyticsService] = None
        self._pipeline: Optional[DailyScoringPipeline] = None

        # Presentation
        self._error_responses = ErrorResponseService()

        self._initialized = False

        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """
        Initialize all services.

        Call this during application startup after ConfigManager and the
        database are ready.
        """
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            self._point_table = PointTable.from_config(self._config_manager)
            self._flair_table = FlairTable.from_config(self._config_manager)

            self._ledger = self._create_service("ledger", DayLedgerService)
            self._leaderboard = self._create_service("leaderboard", LeaderboardService)
            self._history = self._create_service(
                "history",
                HistoryService,
                ledger_service=self._ledger,
                leaderboard_service=self._leaderboard,
                point_table=self._point_table,
            )
            self._flair = self._create_service(
                "flair",
                FlairService,
                ledger_service=self._ledger,
                point_table=self._point_table,
                flair_table=self._flair_table,
            )
            self._analytics = self._create_service(
                "analytics",
                AnalyticsService,
                ledger_service=self._ledger,
                history_service=self._history,
                leaderboard_service=self._leaderboard,
                flair_table=self._flair_table,
            )
            self._pipeline = self._create_service(
                "pipeline",
                DailyScoringPipeline,
                ledger_service=self._ledger,
                leaderboard_service=self._leaderboard,
                history_service=self._history,
                flair_service=self._flair,
                point_table=self._point_table,
            )

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
            }
            if self._service_init_times:
                slowest = max(
                    self._service_init_times,
                    key=self._service_init_times.__getitem__,
                )
                extra_data["slowest_service"] = slowest
                extra_data["slowest_duration"] = round(self._service_init_times[slowest], 3)

            self._logger.info("Service container initialized successfully", extra=extra_data)

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed - bot cannot start",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        """
        Construct one service with timing.

        Args:
            name: Service name for logging and tracking
            cls: Service class to instantiate
            **dependencies: Collaborators passed through to the constructor
        """
        start = time.perf_counter()

        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")

        return instance

    async def shutdown(self) -> None:
        """Release services. Safe to call more than once."""
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, bool | float | int | None]:
        """Health snapshot for the admin status command."""
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
            "all_services_available": self._initialized
            and len(self._service_init_times) == SERVICE_COUNT,
        }

    # ========================================================================
    # Shared Tables
    # ========================================================================

    @property
    def point_table(self) -> PointTable:
        if not self._initialized or self._point_table is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._point_table

    @property
    def flair_table(self) -> FlairTable:
        if not self._initialized or self._flair_table is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._flair_table

    # ========================================================================
    # Domain Services
    # ========================================================================

    @property
    def ledger(self) -> DayLedgerService:
        if not self._initialized or self._ledger is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._ledger

    @property
    def leaderboard(self) -> LeaderboardService:
        if not self._initialized or self._leaderboard is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._leaderboard

    @property
    def history(self) -> HistoryService:
        if not self._initialized or self._history is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._history

    @property
    def flair(self) -> FlairService:
        if not self._initialized or self._flair is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._flair

    @property
    def analytics(self) -> AnalyticsService:
        if not self._initialized or self._analytics is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._analytics

    @property
    def pipeline(self) -> DailyScoringPipeline:
        if not self._initialized or self._pipeline is None:
            raise RuntimeError(_NOT_INITIALIZED)
        return self._pipeline

    # ========================================================================
    # Utility
    # ========================================================================

    @property
    def error_responses(self) -> ErrorResponseService:
        return self._error_responses

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def is_initialized(self) -> bool:
        """Check if container is initialized."""
        return self._initialized
