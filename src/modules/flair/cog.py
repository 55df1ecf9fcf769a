"""
Flair Cog - Discord commands and role grants for flairs
=======================================================

Commands:
- flair [member]: earned flairs with dates and progress to the next tier
- streak [member]: active position / last / second-last streaks
- flairboard: users grouped by their highest point flair

Listens for ``flair.granted`` events from the daily pipeline, adds the
role and posts the announcement.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import discord
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.core.config.config import Config
from src.core.event.types import ListenerPriority
from src.modules.flair.evaluator import LAST, SECOND_LAST
from src.modules.flair.service import FLAIR_GRANTED_EVENT
from src.modules.analytics.date_input import format_date_for_display, ordinal_suffix
from src.ui.embeds import EmbedBuilder
from src.ui.emojis import Emojis

ROLE_GRANT_LISTENER_ID = "flair_cog.role_grants"


def streak_label(category: Any) -> str:
    if category == LAST:
        return f"{Emojis.LAST} Last"
    if category == SECOND_LAST:
        return f"{Emojis.SECOND_LAST} 2nd-Last"
    position = int(category) + 1
    return f"{Emojis.FIRST if position == 1 else Emojis.SUNRISE} {position}{ordinal_suffix(position)}"


class FlairCog(BaseCog):
    """Flair commands and the role-grant listener."""

    def __init__(self, bot: commands.Bot):
        super().__init__(bot, self.__class__.__name__)

    async def cog_load(self) -> None:
        self.bot.event_bus.subscribe(
            FLAIR_GRANTED_EVENT,
            self.on_flair_granted,
            priority=ListenerPriority.HIGH,
            identifier=ROLE_GRANT_LISTENER_ID,
        )

    async def cog_unload(self) -> None:
        self.bot.event_bus.unsubscribe(FLAIR_GRANTED_EVENT, ROLE_GRANT_LISTENER_ID)

    # ========================================================================
    # Role grants
    # ========================================================================

    async def on_flair_granted(self, payload: Dict[str, Any]) -> None:
        """Add the flair role and announce it; a user who already has the role is skipped."""
        guild = self.bot.get_guild(int(payload["server_id"]))
        if guild is None:
            self.logger.warning("Flair grant for unknown guild", extra=payload)
            return

        role = guild.get_role(int(payload["role_id"]))
        if role is None:
            self.logger.warning("Flair role missing from guild", extra=payload)
            return

        try:
            member = guild.get_member(int(payload["user_id"])) or await guild.fetch_member(
                int(payload["user_id"])
            )
            if role in member.roles:
                return
            await member.add_roles(role, reason=f"Earned {payload['tier_name']} on {payload['date_earned']}")
        except (discord.NotFound, discord.Forbidden) as exc:
            self.logger.warning(
                "Flair role not granted",
                extra={**payload, "error_type": type(exc).__name__, "error": str(exc)},
            )
            return

        self.logger.info("Flair role granted", extra=payload)
        await self._announce(payload)

    async def _announce(self, payload: Dict[str, Any]) -> None:
        if Config.FLAIR_ANNOUNCEMENT_CHANNEL_ID is None:
            return
        channel = self.bot.get_channel(Config.FLAIR_ANNOUNCEMENT_CHANNEL_ID)
        if not isinstance(channel, discord.abc.Messageable):
            self.logger.warning(
                "Flair announcement channel unavailable",
                extra={"channel_id": Config.FLAIR_ANNOUNCEMENT_CHANNEL_ID},
            )
            return

        text = self.services.flair_table.format_announcement(
            payload["user_id"], payload["tier_name"], payload["date_earned"]
        )
        try:
            await channel.send(text)
        except discord.HTTPException as exc:
            self.logger.warning(
                "Flair announcement failed",
                extra={**payload, "error_type": type(exc).__name__, "error": str(exc)},
            )

    # ========================================================================
    # Commands
    # ========================================================================

    @commands.command(name="flair", aliases=["flairs"], description="Show earned flairs")
    @commands.guild_only()
    async def flair(self, ctx: commands.Context, member: Optional[discord.Member] = None):
        """Earned flairs for you or another member."""
        start_time = time.perf_counter()
        target = member or ctx.author

        try:
            standing = await self.services.flair.get_user_flairs(self.guild_id_of(ctx), str(target.id))

            lines = [
                f"{Emojis.FLAIR} **{r.tier.name}** ({format_date_for_display(r.date_earned)})"
                for r in standing["records"]
            ]
            next_tier = standing["next_tier"]
            if next_tier is not None:
                lines.append(
                    f"\n{Emojis.POINTS} {standing['score']:,} pts • "
                    f"{next_tier.points - standing['score']:,} to **{next_tier.name}**"
                )
            else:
                lines.append(f"\n{Emojis.POINTS} {standing['score']:,} pts • every point flair earned")

            highest = standing["highest_tier"]
            await self.send_embed(
                ctx,
                EmbedBuilder.line_list(
                    f"{Emojis.FLAIR} {target.display_name}'s Flairs",
                    lines if standing["records"] else [],
                    empty_text="No flairs yet. Post early to earn the Racer flair!",
                    color=highest.color_hex if highest else None,
                ),
            )

            self.log_command_use(
                "flair",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                target=target.id,
            )

        except Exception as e:
            await self.respond_to_error(ctx, "flair", e, "Flairs Unavailable")

    @commands.command(name="streak", aliases=["streaks"], description="Show active streaks")
    @commands.guild_only()
    async def streak(self, ctx: commands.Context, member: Optional[discord.Member] = None):
        """Active streaks for you or another member."""
        target = member or ctx.author

        try:
            streaks = await self.services.flair.get_user_streaks(self.guild_id_of(ctx), str(target.id))
            lines = [
                f"{streak_label(category)}: **{result.current}** day(s) (best {result.longest})"
                for category, result in streaks.items()
            ]
            await self.send_embed(
                ctx,
                EmbedBuilder.line_list(
                    f"{Emojis.STREAK} {target.display_name}'s Streaks",
                    lines,
                    empty_text="No active streaks.",
                ),
            )

            self.log_command_use(
                "streak", ctx.author.id, guild_id=ctx.guild.id if ctx.guild else None, target=target.id
            )

        except Exception as e:
            await self.respond_to_error(ctx, "streak", e, "Streaks Unavailable")

    @commands.command(name="flairboard", aliases=["fb"], description="Users by highest point flair")
    @commands.guild_only()
    async def flairboard(self, ctx: commands.Context):
        """Flair leaderboard: users grouped by their highest point flair."""
        try:
            groups = await self.services.analytics.flair_leaderboard(self.guild_id_of(ctx))

            embed = EmbedBuilder.info(f"{Emojis.FLAIR} Flair Leaderboard", "Highest point flair per user")
            EmbedBuilder.add_fields_safe(
                embed,
                [
                    {
                        "name": f"{tier.name} ({tier.points:,}+)",
                        "value": ", ".join(e.username for e in entries),
                        "inline": False,
                    }
                    for tier, entries in groups
                    if entries
                ],
            )
            if not embed.fields:
                embed.description = "Nobody has reached a point flair yet."
            await self.send_embed(ctx, embed)

            self.log_command_use("flairboard", ctx.author.id, guild_id=ctx.guild.id if ctx.guild else None)

        except Exception as e:
            await self.respond_to_error(ctx, "flairboard", e, "Flair Leaderboard Unavailable")


async def setup(bot: commands.Bot):
    """Load the FlairCog."""
    await bot.add_cog(FlairCog(bot))
