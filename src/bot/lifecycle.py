"""
Bot Lifecycle Management

Purpose
-------
Handle bot startup metrics, background health monitoring and graceful
shutdown of bot-owned tasks. This separates lifecycle concerns from Discord
integration logic.

Non-Responsibilities
--------------------
- Discord event handling (handled by FirstLastBot)
- Cog loading (handled by loader module)
- Database/service initialization (handled by ApplicationContext)

Architecture Notes
------------------
- ServiceHealth, StartupMetrics and BotMetrics are dataclasses for clear
  state modeling.
- Background health monitoring runs as an asyncio Task.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger

if TYPE_CHECKING:
    from discord.ext import commands

logger = get_logger(__name__)


@dataclass
class ServiceHealth:
    """Health status for a single service."""

    name: str
    healthy: bool
    degraded: bool
    error: Optional[str] = None
    latency_ms: Optional[float] = None


@dataclass
class StartupMetrics:
    """Metrics collected during bot setup."""

    total_time_ms: float
    cogs_time_ms: float
    cogs_loaded: int
    cogs_failed: int


@dataclass
class BotMetrics:
    """Runtime metrics for bot operations."""

    commands_executed: int = 0
    commands_failed: int = 0
    errors_handled: int = 0
    messages_recorded: int = 0
    scoring_runs: int = 0
    health_checks_performed: int = 0
    health_checks_failed: int = 0
    services_healthy: int = 0
    services_degraded: int = 0
    services_unhealthy: int = 0
    last_health_check: Optional[float] = None
    service_health: Dict[str, ServiceHealth] = field(default_factory=dict)


class BotLifecycle:
    """
    Manages bot lifecycle: startup summary, health monitoring and shutdown.
    """

    def __init__(self, bot: "commands.Bot", config_manager: Optional[ConfigManager] = None) -> None:
        self.bot = bot
        self._config_manager = config_manager or ConfigManager
        self.metrics = BotMetrics()
        self._health_task: Optional[asyncio.Task[None]] = None
        self._is_shutting_down = False

        self._health_check_interval: float = float(
            self._config_manager.get("bot.health_check_interval_seconds", 60)
        )
        self._db_degraded_latency_ms: float = float(
            self._config_manager.get("bot.database_degraded_latency_ms", 250.0)
        )
        self._slow_startup_threshold_ms: float = float(
            self._config_manager.get("bot.startup_slow_threshold_ms", 10_000.0)
        )

        logger.info(
            "BotLifecycle initialized",
            extra={
                "health_check_interval_seconds": self._health_check_interval,
                "db_degraded_latency_ms": self._db_degraded_latency_ms,
                "slow_startup_threshold_ms": self._slow_startup_threshold_ms,
            },
        )

    # ════════════════════════════════════════════════════════════════════════
    # STARTUP
    # ════════════════════════════════════════════════════════════════════════

    def log_startup_summary(self, startup_metrics: StartupMetrics) -> None:
        logger.info(
            "Bot startup complete",
            extra={
                "total_time_ms": round(startup_metrics.total_time_ms, 2),
                "cogs_time_ms": round(startup_metrics.cogs_time_ms, 2),
                "cogs_loaded": startup_metrics.cogs_loaded,
                "cogs_failed": startup_metrics.cogs_failed,
            },
        )

        if startup_metrics.total_time_ms > self._slow_startup_threshold_ms:
            logger.warning(
                "Slow startup detected",
                extra={
                    "total_time_ms": round(startup_metrics.total_time_ms, 2),
                    "threshold_ms": self._slow_startup_threshold_ms,
                },
            )

    # ════════════════════════════════════════════════════════════════════════
    # HEALTH MONITORING
    # ════════════════════════════════════════════════════════════════════════

    def start_health_monitoring(self) -> None:
        """Start background health monitoring task."""
        if self._health_task is not None:
            logger.warning("Health monitoring already running")
            return

        self._health_task = asyncio.create_task(self._health_monitor_loop())
        logger.info(
            "Health monitoring started",
            extra={"interval_seconds": self._health_check_interval},
        )

    async def _health_monitor_loop(self) -> None:
        logger.debug("Health monitor loop started")

        while not self._is_shutting_down:
            try:
                await self.check_service_health()
                await asyncio.sleep(self._health_check_interval)

            except asyncio.CancelledError:
                logger.debug("Health monitor loop cancelled")
                break

            except Exception as exc:
                self.metrics.health_checks_failed += 1
                logger.error(
                    "Error in health monitor loop",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                await asyncio.sleep(self._health_check_interval)

    async def check_service_health(self) -> List[ServiceHealth]:
        """
        Check health of critical services.

        Updates metrics and logs unhealthy or degraded services.
        """
        self.metrics.health_checks_performed += 1
        self.metrics.last_health_check = time.time()

        services_checked = [await self._check_database_health()]

        self.metrics.services_healthy = sum(1 for s in services_checked if s.healthy)
        self.metrics.services_degraded = sum(1 for s in services_checked if s.degraded)
        self.metrics.services_unhealthy = sum(
            1 for s in services_checked if not s.healthy and not s.degraded
        )

        for service in services_checked:
            self.metrics.service_health[service.name] = service
            if not service.healthy or service.degraded:
                logger.warning(
                    "Service unhealthy",
                    extra={
                        "service": service.name,
                        "degraded": service.degraded,
                        "error": service.error,
                        "latency_ms": service.latency_ms,
                    },
                )

        return services_checked

    async def _check_database_health(self) -> ServiceHealth:
        start_time = time.perf_counter()

        try:
            is_healthy = await DatabaseService.health_check()
            latency_ms = (time.perf_counter() - start_time) * 1000

            return ServiceHealth(
                name="database",
                healthy=is_healthy,
                degraded=is_healthy and latency_ms > self._db_degraded_latency_ms,
                latency_ms=latency_ms,
            )
        except Exception as exc:
            latency_ms = (time.perf_counter() - start_time) * 1000
            return ServiceHealth(
                name="database",
                healthy=False,
                degraded=False,
                error=str(exc),
                latency_ms=latency_ms,
            )

    # ════════════════════════════════════════════════════════════════════════
    # SHUTDOWN
    # ════════════════════════════════════════════════════════════════════════

    async def shutdown(self) -> None:
        """Stop health monitoring. Safe to call more than once."""
        if self._is_shutting_down:
            logger.warning("Shutdown already in progress")
            return

        self._is_shutting_down = True
        logger.info("Stopping bot lifecycle")

        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None
            logger.debug("Health monitoring stopped")

    # ════════════════════════════════════════════════════════════════════════
    # METRICS
    # ════════════════════════════════════════════════════════════════════════

    def get_metrics_snapshot(self) -> Dict[str, Any]:
        """Snapshot of current metrics and service health."""
        return {
            "commands_executed": self.metrics.commands_executed,
            "commands_failed": self.metrics.commands_failed,
            "errors_handled": self.metrics.errors_handled,
            "messages_recorded": self.metrics.messages_recorded,
            "scoring_runs": self.metrics.scoring_runs,
            "health_checks_performed": self.metrics.health_checks_performed,
            "health_checks_failed": self.metrics.health_checks_failed,
            "services_healthy": self.metrics.services_healthy,
            "services_degraded": self.metrics.services_degraded,
            "services_unhealthy": self.metrics.services_unhealthy,
            "last_health_check": self.metrics.last_health_check,
            "service_health": {
                name: {
                    "healthy": health.healthy,
                    "degraded": health.degraded,
                    "error": health.error,
                    "latency_ms": health.latency_ms,
                }
                for name, health in self.metrics.service_health.items()
            },
        }
