"""
Application Context - infrastructure orchestration
==================================================

Creates the long-lived pieces in dependency order and tears them down in
reverse:

Initialization:
    1. Config.validate()
    2. ConfigManager (YAML point table, flair tiers, sheet settings)
    3. DatabaseService + schema
    4. ServiceContainer (ledger, leaderboard, history, flair, analytics, pipeline)
    5. FirstLastBot (cogs are discovered and loaded in its setup_hook)

Shutdown:
    1. FirstLastBot.close()
    2. ServiceContainer.shutdown()
    3. DatabaseService.shutdown()
"""

from __future__ import annotations

import time
from typing import Optional

from src.bot.first_last_bot import FirstLastBot
from src.core.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event import event_bus
from src.core.logging.logger import get_logger
from src.core.services.container import ServiceContainer

logger = get_logger(__name__)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class ApplicationContext:
    """
    Owns the config, database, services and bot for one process.

    Usage:
        context = ApplicationContext()
        await context.initialize()
        await context.run_bot()  # Blocks until shutdown
        await context.shutdown()
    """

    def __init__(self) -> None:
        self._service_container: Optional[ServiceContainer] = None
        self._bot: Optional[FirstLastBot] = None
        self._initialized: bool = False

    # ========================================================================
    # INITIALIZATION
    # ========================================================================

    async def initialize(self) -> None:
        """
        Initialize every component in dependency order.

        Raises:
            RuntimeError: If already initialized or any step fails
        """
        if self._initialized:
            raise RuntimeError("ApplicationContext already initialized")

        logger.info("=" * 70)
        logger.info("APPLICATION CONTEXT INITIALIZATION")
        logger.info("=" * 70)

        start_time = time.perf_counter()

        try:
            Config.validate()
            logger.info("✓ Configuration validated")

            step = time.perf_counter()
            await ConfigManager.initialize()
            logger.info("✓ ConfigManager initialized (%.2fms)", _elapsed_ms(step))

            step = time.perf_counter()
            await DatabaseService.initialize()
            await DatabaseService.create_schema()
            logger.info(
                "✓ Database ready (%.2fms)",
                _elapsed_ms(step),
                extra={"dialect": DatabaseService.dialect_name()},
            )

            step = time.perf_counter()
            self._service_container = ServiceContainer(
                config_manager=ConfigManager,
                event_bus=event_bus,
                logger=get_logger("src.core.services.container"),
            )
            await self._service_container.initialize()
            logger.info("✓ ServiceContainer initialized (%.2fms)", _elapsed_ms(step))

            self._bot = FirstLastBot(
                config_manager=ConfigManager,
                service_container=self._service_container,
                event_bus=event_bus,
            )
            logger.info("✓ FirstLastBot created")

            self._initialized = True
            logger.info("=" * 70)
            logger.info("✓ Application context initialized in %.2fms", _elapsed_ms(start_time))
            logger.info("=" * 70)

        except Exception as exc:
            logger.critical(
                "Application context initialization failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            await self._teardown()
            raise RuntimeError("Failed to initialize application context") from exc

    # ========================================================================
    # BOT EXECUTION
    # ========================================================================

    async def run_bot(self) -> None:
        """Run the Discord bot; blocks until the connection closes."""
        if not self._initialized or self._bot is None:
            raise RuntimeError("Cannot run bot: ApplicationContext not initialized")

        logger.info("Starting Discord bot...")
        await self._bot.start(Config.DISCORD_TOKEN)

    # ========================================================================
    # SHUTDOWN
    # ========================================================================

    async def shutdown(self) -> None:
        """Shut everything down in reverse dependency order."""
        if not self._initialized:
            logger.warning("ApplicationContext not initialized, nothing to shut down")
            return

        logger.info("=" * 70)
        logger.info("APPLICATION CONTEXT SHUTDOWN")
        logger.info("=" * 70)

        await self._teardown()
        self._initialized = False

        logger.info("✓ Application context shutdown complete")

    async def _teardown(self) -> None:
        """Close whatever was created so far; each step logs and continues on failure."""
        if self._bot and not self._bot.is_closed():
            try:
                await self._bot.close()
                logger.info("✓ FirstLastBot closed")
            except Exception as exc:
                logger.error(
                    "Error closing bot",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

        if self._service_container:
            try:
                await self._service_container.shutdown()
                logger.info("✓ ServiceContainer shut down")
            except Exception as exc:
                logger.error(
                    "Error shutting down service container",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )

        try:
            await DatabaseService.shutdown()
            logger.info("✓ DatabaseService shut down")
        except Exception as exc:
            logger.error(
                "Error shutting down database",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def bot(self) -> FirstLastBot:
        if not self._initialized or self._bot is None:
            raise RuntimeError("Bot not available: ApplicationContext not initialized")
        return self._bot

    @property
    def service_container(self) -> ServiceContainer:
        if not self._initialized or self._service_container is None:
            raise RuntimeError("ServiceContainer not available: ApplicationContext not initialized")
        return self._service_container

    @property
    def is_initialized(self) -> bool:
        return self._initialized
