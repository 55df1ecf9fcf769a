"""
First/Last Discord Bot - Main Bot Class

Purpose
-------
Discord integration for the scoring engine, with dependency injection.

Responsibilities
----------------
- Discord integration (events, prefix commands, presence)
- Bot-level lifecycle (via BotLifecycle)
- Feature loading (via FeatureLoader)
- Global error handling for prefix commands

Non-Responsibilities
--------------------
- Infrastructure initialization (delegated to ApplicationContext)
- Service initialization (delegated to ServiceContainer)
- Scoring rules (the cogs call services; the bot holds no domain logic)
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Dict, List, Optional

import discord
from discord.ext import commands

from src.bot.lifecycle import BotLifecycle, StartupMetrics
from src.bot.loader import load_all_features
from src.core.config.config import Config
from src.core.logging.logger import LogContext, get_logger
from src.core.services.error_response_service import ErrorResponseService
from src.domain.exceptions.registry import get_exception_template
from src.modules.shared.exceptions import ErrorSeverity, FirstLastDomainException
from src.ui.embeds import EmbedBuilder

if TYPE_CHECKING:
    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.core.services.container import ServiceContainer

logger = get_logger(__name__)


class FirstLastBot(commands.Bot):
    """
    First/Last Discord bot.

    Dependencies (Injected):
    - config_manager: Application configuration
    - service_container: Domain services
    - event_bus: Event system shared with the services
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        service_container: ServiceContainer,
        event_bus: EventBus,
    ) -> None:
        self._config_manager = config_manager
        self._service_container = service_container
        self._event_bus = event_bus

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        intents.guilds = True

        super().__init__(
            command_prefix=self._get_prefix,
            intents=intents,
            case_insensitive=True,
            strip_after_prefix=True,
            description=Config.BOT_DESCRIPTION,
        )

        self.lifecycle = BotLifecycle(self, config_manager)
        self.error_response_service = service_container.error_responses

        self.startup_metrics: Optional[StartupMetrics] = None
        self.bot_ready: bool = False
        self.errors_by_type: Dict[str, int] = {}

        logger.debug("FirstLastBot initialized with dependency injection")

    # --------------------------------------------------------------- #
    # Prefix Handling
    # --------------------------------------------------------------- #

    def _get_prefix(self, bot: commands.Bot, message: discord.Message) -> List[str]:
        return commands.when_mentioned_or(Config.COMMAND_PREFIX)(bot, message)

    # --------------------------------------------------------------- #
    # Startup and Initialization
    # --------------------------------------------------------------- #

    async def setup_hook(self) -> None:
        """
        Load feature cogs and start health monitoring.

        Infrastructure initialization is handled by ApplicationContext.
        """
        startup_start = time.perf_counter()
        logger.info("=" * 60)
        logger.info("FIRST/LAST BOT SETUP")
        logger.info("=" * 60)

        try:
            cogs_start = time.perf_counter()
            cog_stats = await load_all_features(self)
            cogs_time = (time.perf_counter() - cogs_start) * 1000
            logger.info("✓ Feature cogs loaded (%.2fms)", cogs_time)

            await self._event_bus.publish("bot.setup_complete", {"bot_name": Config.BOT_NAME})

            self.startup_metrics = StartupMetrics(
                total_time_ms=(time.perf_counter() - startup_start) * 1000,
                cogs_time_ms=cogs_time,
                cogs_loaded=int(cog_stats.get("loaded", 0)),
                cogs_failed=int(cog_stats.get("failed", 0)),
            )

            self.lifecycle.log_startup_summary(self.startup_metrics)
            self.lifecycle.start_health_monitoring()

            logger.info("✓ Bot setup complete")

        except Exception as exc:
            logger.critical(
                "Bot setup failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            raise

    # --------------------------------------------------------------- #
    # Discord Events
    # --------------------------------------------------------------- #

    async def on_ready(self) -> None:
        self.bot_ready = True

        logger.info("=" * 60)
        logger.info("Bot is ONLINE as %s", self.user)
        logger.info("Guilds: %d", len(self.guilds))
        logger.info("Tracked channel: %s", Config.MAIN_CHANNEL_ID)
        logger.info("=" * 60)

    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info(
            "Joined guild",
            extra={"guild_name": guild.name, "guild_id": guild.id},
        )

    async def on_guild_remove(self, guild: discord.Guild) -> None:
        logger.info(
            "Removed from guild",
            extra={"guild_name": guild.name, "guild_id": guild.id},
        )

    # --------------------------------------------------------------- #
    # Error Handling - Prefix Commands
    # --------------------------------------------------------------- #

    async def on_command_error(self, ctx: commands.Context, error: Exception) -> None:
        """
        Global error handler for prefix commands.

        Domain and infrastructure exceptions are rendered from the exception
        registry; framework errors get short fixed messages.
        """
        async with LogContext(
            user_id=ctx.author.id,
            guild_id=ctx.guild.id if ctx.guild else None,
            command=f"prefix:{ctx.command}" if ctx.command else "unknown",
        ):
            if isinstance(error, commands.CommandNotFound):
                return

            self.lifecycle.metrics.commands_failed += 1
            original = getattr(error, "original", error)
            error_type = type(original).__name__
            self.lifecycle.metrics.errors_handled += 1
            self.errors_by_type[error_type] = self.errors_by_type.get(error_type, 0) + 1

            if get_exception_template(original) is not None:
                if isinstance(original, FirstLastDomainException):
                    logger.warning("Domain exception in command handler", extra=original.to_dict())
                else:
                    logger.error(
                        "Infrastructure exception in command handler",
                        extra={"error_type": error_type, "error": str(original)},
                        exc_info=original,
                    )
                await ctx.send(embed=self._embed_for(original, self.error_response_service))
                return

            if isinstance(error, commands.MissingRequiredArgument):
                embed = EmbedBuilder.error(
                    title="Missing Argument",
                    description=f"Missing required argument: `{error.param.name}`",
                    help_text=f"Use `{Config.COMMAND_PREFIX}help {ctx.command}` for usage.",
                )
                await ctx.send(embed=embed)
                return

            if isinstance(error, commands.BadArgument):
                embed = EmbedBuilder.error(title="Invalid Argument", description=str(error))
                await ctx.send(embed=embed)
                return

            if isinstance(error, commands.CommandOnCooldown):
                embed = EmbedBuilder.warning(
                    title="Cooldown Active",
                    description=f"Please wait **{error.retry_after:.1f}s**.",
                )
                await ctx.send(embed=embed)
                return

            if isinstance(error, commands.CheckFailure):
                embed = EmbedBuilder.error(
                    title="Permission Denied",
                    description="You lack permission to use this command.",
                )
                await ctx.send(embed=embed)
                return

            logger.error(
                "Unhandled command error",
                extra={
                    "command": str(ctx.command),
                    "error": str(error),
                    "error_type": error_type,
                },
                exc_info=original,
            )
            embed = EmbedBuilder.error(
                title="Unexpected Error",
                description="Something went wrong while processing your command.",
                help_text="The issue has been logged.",
            )
            await ctx.send(embed=embed)

    @staticmethod
    def _embed_for(error: Exception, responses: ErrorResponseService) -> discord.Embed:
        response = responses.format_error_sync(error)
        if response["severity"] in (ErrorSeverity.DEBUG, ErrorSeverity.INFO):
            return EmbedBuilder.warning(title=response["title"], description=response["description"])
        return EmbedBuilder.error(
            title=response["title"],
            description=response["description"],
            help_text=response.get("help_text"),
        )

    async def on_command_completion(self, ctx: commands.Context) -> None:
        self.lifecycle.metrics.commands_executed += 1

    # --------------------------------------------------------------- #
    # Graceful Shutdown
    # --------------------------------------------------------------- #

    async def close(self) -> None:
        """
        Close bot-specific resources.

        Application-level shutdown is handled by ApplicationContext.
        """
        logger.info("=" * 60)
        logger.info("FIRST/LAST BOT SHUTDOWN")
        logger.info("=" * 60)

        metrics = self.lifecycle.get_metrics_snapshot()
        total_commands = metrics["commands_executed"] + metrics["commands_failed"]
        if total_commands > 0:
            logger.info("Final command statistics:")
            logger.info("  Commands Executed: %d", metrics["commands_executed"])
            logger.info("  Commands Failed:   %d", metrics["commands_failed"])
            logger.info("  Messages Recorded: %d", metrics["messages_recorded"])
            logger.info("  Scoring Runs:      %d", metrics["scoring_runs"])

        await self._event_bus.drain()
        await self.lifecycle.shutdown()
        await super().close()

        logger.info("✓ Bot shutdown complete")

    # --------------------------------------------------------------- #
    # Dependency Access
    # --------------------------------------------------------------- #

    @property
    def config_manager(self) -> ConfigManager:
        return self._config_manager

    @property
    def service_container(self) -> ServiceContainer:
        return self._service_container

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus
