"""
Message Listener Cog
====================

Feeds the day ledger: every human message in the tracked channel is offered
to DayLedgerService.record_first_message, which keeps only each user's first
message of the day.

Commands:
- day: show a day's first-message order and last / second-last authors
"""

from __future__ import annotations

import time
from typing import Optional

import discord
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.modules.analytics.date_input import format_date_for_display, parse_date_input
from src.modules.shared.dates import today_key
from src.ui.embeds import EmbedBuilder
from src.ui.emojis import Emojis


class MessageListenerCog(BaseCog):
    """Records first messages of the day from the tracked channel."""

    def __init__(self, bot: commands.Bot):
        super().__init__(bot, self.__class__.__name__)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        tracked = self.services.ledger.tracked_channel_id(str(message.guild.id))
        if tracked is None or message.channel.id != tracked:
            return

        try:
            recorded = await self.services.ledger.record_first_message(
                server_id=str(message.guild.id),
                user_id=str(message.author.id),
                username=message.author.name,
                message_id=str(message.id),
                timestamp=message.created_at,
            )
        except Exception as e:
            self.log_cog_error(
                "record_first_message",
                e,
                user_id=message.author.id,
                guild_id=message.guild.id,
                message_id=message.id,
            )
            return

        if recorded:
            lifecycle = getattr(self.bot, "lifecycle", None)
            if lifecycle is not None:
                lifecycle.metrics.messages_recorded += 1

    @commands.command(
        name="day",
        aliases=["today", "order"],
        description="Show the first-message order for a day",
    )
    @commands.guild_only()
    async def day(self, ctx: commands.Context, *, date: Optional[str] = None):
        """Show a day's first-message order (defaults to today)."""
        start_time = time.perf_counter()

        try:
            date_key = parse_date_input(date) if date else today_key()
            view = await self.services.ledger.get_day(self.guild_id_of(ctx), date_key)

            lines = []
            if view is not None:
                for position, entry in enumerate(view.ordered_first_messages(), start=1):
                    lines.append(f"`{position:>2}.` **{entry.get('username') or entry['user_id']}**")
                if view.second_last_message:
                    lines.append(f"\n{Emojis.SECOND_LAST} 2nd-Last: **{view.second_last_message.get('username')}**")
                if view.last_message:
                    lines.append(f"{Emojis.LAST} Last: **{view.last_message.get('username')}**")

            await self.send_embed(
                ctx,
                EmbedBuilder.line_list(
                    f"{Emojis.CALENDAR} {format_date_for_display(date_key)}",
                    lines,
                    empty_text="Nobody has posted in the tracked channel that day.",
                ),
            )

            self.log_command_use(
                "day",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                date_key=date_key,
            )

        except Exception as e:
            await self.respond_to_error(ctx, "day", e, "Day Lookup Failed", date=date)


async def setup(bot: commands.Bot):
    """Load the MessageListenerCog."""
    await bot.add_cog(MessageListenerCog(bot))
