"""
Base cog for all feature cogs.

Purpose
-------
Shared plumbing so feature cogs stay thin: they parse arguments, call one
service method and render the result.

Responsibilities
----------------
- Accept dependencies via constructor injection (ServiceContainer, ErrorResponseService)
- Standardized feedback embeds (error/success/info)
- Domain-aware error handling via ErrorResponseService
- Structured command logging

Example
-------
>>> class StatsCog(BaseCog):
...     def __init__(self, bot):
...         super().__init__(bot, self.__class__.__name__)
...
...     @commands.command(name="stats")
...     async def stats(self, ctx):
...         standing = await self.services.leaderboard.get_user_standing(...)
...         await self.send_info(ctx, "Stats", f"Rank #{standing['rank']}")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import discord
from discord.ext import commands

from src.core.logging.logger import LogContext, get_logger
from src.core.services.error_response_service import ErrorResponseService
from src.domain.exceptions.registry import get_exception_template
from src.modules.shared.exceptions import ErrorSeverity, FirstLastDomainException
from src.ui.embeds import EmbedBuilder

if TYPE_CHECKING:
    from src.core.services.container import ServiceContainer


class BaseCog(commands.Cog):
    """
    Base class for all feature cogs (prefix commands).

    Attributes
    ----------
    bot : commands.Bot
        Discord bot instance
    cog_name : str
        Name of the cog for logging
    logger : Logger
        Structured logger for this cog
    service_container : Optional[ServiceContainer]
        Domain service container
    error_response_service : ErrorResponseService
        Service for formatting error responses
    """

    def __init__(
        self,
        bot: commands.Bot,
        cog_name: str,
        service_container: Optional[ServiceContainer] = None,
        error_response_service: Optional[ErrorResponseService] = None,
    ) -> None:
        """
        Args:
            bot: Discord bot instance
            cog_name: Name of the cog (e.g., "LeaderboardCog")
            service_container: Domain services; defaults to bot.service_container
            error_response_service: Error formatter; defaults to a new instance
        """
        self.bot = bot
        self.cog_name = cog_name
        self.logger = get_logger(cog_name)

        self.service_container = service_container or getattr(bot, "service_container", None)
        self.error_response_service = error_response_service or ErrorResponseService()

    @property
    def services(self) -> ServiceContainer:
        if self.service_container is None:
            raise RuntimeError(f"{self.cog_name} has no ServiceContainer")
        return self.service_container

    @staticmethod
    def guild_id_of(ctx: commands.Context) -> Optional[str]:
        return str(ctx.guild.id) if ctx.guild else None

    # ========================================================================
    # USER FEEDBACK UTILITIES
    # ========================================================================

    async def defer(self, ctx: commands.Context) -> None:
        """Show the typing indicator while a slow command runs."""
        try:
            await ctx.typing()
        except Exception as exc:
            self.logger.warning(
                "Failed to start typing indicator",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )

    async def send_error(
        self,
        ctx: commands.Context,
        title: str,
        description: str,
        help_text: Optional[str] = None,
    ) -> None:
        embed = EmbedBuilder.error(title=title, description=description, help_text=help_text)
        await self.send_embed(ctx, embed)

    async def send_success(
        self,
        ctx: commands.Context,
        title: str,
        description: str,
        footer: Optional[str] = None,
    ) -> None:
        embed = EmbedBuilder.success(title=title, description=description, footer=footer)
        await self.send_embed(ctx, embed)

    async def send_info(
        self,
        ctx: commands.Context,
        title: str,
        description: str,
        footer: Optional[str] = None,
    ) -> None:
        embed = EmbedBuilder.info(title=title, description=description, footer=footer)
        await self.send_embed(ctx, embed)

    async def send_embed(self, ctx: commands.Context, embed: discord.Embed) -> None:
        """Reply when possible, fall back to a plain send."""
        try:
            if ctx.message:
                await ctx.reply(embed=embed, mention_author=False)
            else:
                await ctx.send(embed=embed)
        except discord.HTTPException as exc:
            self.logger.error(
                "Failed to send embed",
                extra={
                    "cog_name": self.cog_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )

    # ========================================================================
    # STANDARDIZED ERROR HANDLING
    # ========================================================================

    async def handle_standard_errors(self, ctx: commands.Context, error: Exception) -> bool:
        """
        Answer known domain/infrastructure exceptions with their template.

        Returns:
            True if a response was sent, False for unknown exception types.
        """
        if get_exception_template(error) is None:
            return False

        response = await self.error_response_service.format_error(error)
        if response["severity"] in (ErrorSeverity.DEBUG, ErrorSeverity.INFO):
            embed = EmbedBuilder.warning(title=response["title"], description=response["description"])
            if response.get("help_text"):
                embed.set_footer(text=response["help_text"])
        else:
            embed = EmbedBuilder.error(
                title=response["title"],
                description=response["description"],
                help_text=response.get("help_text"),
            )
        await self.send_embed(ctx, embed)
        return True

    async def respond_to_error(
        self,
        ctx: commands.Context,
        operation: str,
        error: Exception,
        fallback_title: str,
        **context: Any,
    ) -> None:
        """Log the failure, then answer with the registry template or a generic error."""
        self.log_cog_error(
            operation,
            error,
            user_id=ctx.author.id,
            guild_id=ctx.guild.id if ctx.guild else None,
            **context,
        )
        if not await self.handle_standard_errors(ctx, error):
            await self.send_error(
                ctx,
                fallback_title,
                "An unexpected error occurred.",
                help_text="Please try again in a moment.",
            )

    # ========================================================================
    # LOGGING UTILITIES
    # ========================================================================

    def log_command_use(
        self,
        command_name: str,
        user_id: int,
        guild_id: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        with LogContext(
            user_id=user_id,
            guild_id=guild_id,
            command=command_name,
            component=self.cog_name,
        ):
            self.logger.info("Command used", extra={"command_name": command_name, **kwargs})

    def log_cog_error(
        self,
        operation: str,
        error: Exception,
        user_id: Optional[int] = None,
        guild_id: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        """
        Log cog-level errors with context.

        Domain exceptions are expected outcomes and log at warning without a
        traceback.
        """
        with LogContext(
            user_id=user_id,
            guild_id=guild_id,
            operation=operation,
            component=self.cog_name,
        ):
            if isinstance(error, FirstLastDomainException):
                self.logger.warning(
                    f"{self.cog_name}.{operation} rejected: {error}",
                    extra={"error_type": type(error).__name__, **kwargs},
                )
            else:
                self.logger.error(
                    f"{self.cog_name}.{operation} failed: {error}",
                    exc_info=error,
                    extra={"error_type": type(error).__name__, **kwargs},
                )
