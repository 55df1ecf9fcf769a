"""
Leaderboard Cog - Discord commands for leaderboards
====================================================

Commands:
- leaderboard [page]: current cumulative leaderboard
- history <date>: leaderboard as of the end of a past day
- stats [member]: a user's score and rank
- firstpost [member] [date]: a user's finishing position on a day
- trends <date1> <date2>: points-per-day growth between two dated snapshots
- monthly [month] [year]: points gained during a month
"""

from __future__ import annotations

import re
import time
from typing import Optional, Tuple

import discord
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.modules.analytics.date_input import (
    MONTH_NAMES,
    MONTHS,
    format_date_for_display,
    ordinal_suffix,
    parse_date_input,
)
from src.modules.history.service import validate_past_date
from src.modules.leaderboard.ranking import RankedEntry
from src.modules.shared.dates import parse_date_key, today_key
from src.modules.shared.exceptions import InvalidDateRangeError
from src.ui.embeds import EmbedBuilder
from src.ui.emojis import Emojis

PAGE_SIZE = 10
_DATE_PAIR_SEPARATORS = (
    re.compile(r"\s+(?:to|and|-)\s+", re.IGNORECASE),
    re.compile(r"\s*,\s*"),
)


def split_date_pair(text: str) -> Tuple[str, str]:
    """
    Split two dates typed as one argument.

    ``06-01-2025 06-10-2025``, ``june 1 to june 10`` and ``6/1, 6/10`` all work.
    """
    for separator in _DATE_PAIR_SEPARATORS:
        parts = [p for p in separator.split(text.strip()) if p]
        if len(parts) == 2:
            return parts[0], parts[1]
    tokens = text.split()
    if len(tokens) == 2:
        return tokens[0], tokens[1]
    raise InvalidDateRangeError("dates", "Give two dates, e.g. `06-01-2025 to 06-10-2025`")


class LeaderboardCog(BaseCog):
    """Cumulative and historical leaderboard commands."""

    def __init__(self, bot: commands.Bot):
        super().__init__(bot, self.__class__.__name__)

    @commands.command(
        name="leaderboard",
        aliases=["lb", "top"],
        description="Show the cumulative leaderboard",
    )
    @commands.guild_only()
    async def leaderboard(self, ctx: commands.Context, page: int = 1):
        """Show the cumulative leaderboard, 10 users per page."""
        start_time = time.perf_counter()

        try:
            current = await self.services.leaderboard.get_current(self.guild_id_of(ctx))
            total_pages = max(1, -(-len(current.rankings) // PAGE_SIZE))
            page = min(max(page, 1), total_pages)
            shown = current.rankings[(page - 1) * PAGE_SIZE : page * PAGE_SIZE]

            embed = EmbedBuilder.leaderboard(
                "Leaderboard",
                shown,
                user_entry=current.entry_for(str(ctx.author.id)),
                footer=f"Page {page}/{total_pages} • {len(current.rankings)} users",
            )
            await self.send_embed(ctx, embed)

            self.log_command_use(
                "leaderboard",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                page=page,
            )

        except Exception as e:
            await self.respond_to_error(ctx, "leaderboard", e, "Leaderboard Unavailable")

    @commands.command(
        name="history",
        aliases=["asof"],
        description="Show the leaderboard as of a past date",
    )
    @commands.guild_only()
    async def history(self, ctx: commands.Context, *, date: str):
        """Leaderboard at the end of a past day (e.g. `history June 1st`)."""
        start_time = time.perf_counter()
        await self.defer(ctx)

        try:
            date_key = parse_date_input(date)
            validate_past_date(date_key)
            snapshot = await self.services.history.snapshot_as_of(self.guild_id_of(ctx), date_key)

            embed = EmbedBuilder.leaderboard(
                f"Leaderboard as of {format_date_for_display(date_key)}",
                snapshot.top(PAGE_SIZE),
                user_entry=snapshot.entry_for(str(ctx.author.id)),
                footer=f"{date_key} • {len(snapshot.rankings)} users",
            )
            await self.send_embed(ctx, embed)

            self.log_command_use(
                "history",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                date_key=date_key,
            )

        except Exception as e:
            await self.respond_to_error(ctx, "history", e, "History Unavailable", date=date)

    @commands.command(
        name="stats",
        aliases=["rank", "score"],
        description="Show a user's score and rank",
    )
    @commands.guild_only()
    async def stats(self, ctx: commands.Context, member: Optional[discord.Member] = None):
        """Score and rank for you or another member."""
        target = member or ctx.author

        try:
            standing = await self.services.leaderboard.get_user_standing(
                self.guild_id_of(ctx), str(target.id)
            )
            if standing is None:
                await self.send_info(
                    ctx,
                    f"{Emojis.STATS} {target.display_name}",
                    "No points yet. Be one of the first messages of the day to get on the board!",
                )
                return

            await self.send_info(
                ctx,
                f"{Emojis.STATS} {target.display_name}",
                f"**Score:** {standing['score']:,} pts\n"
                f"**Rank:** #{standing['rank']} of {standing['total_users']}",
            )

            self.log_command_use(
                "stats", ctx.author.id, guild_id=ctx.guild.id if ctx.guild else None, target=target.id
            )

        except Exception as e:
            await self.respond_to_error(ctx, "stats", e, "Stats Unavailable")

    @commands.command(
        name="firstpost",
        aliases=["fp", "where"],
        description="Show where a user finished on a day",
    )
    @commands.guild_only()
    async def firstpost(
        self,
        ctx: commands.Context,
        member: Optional[discord.Member] = None,
        *,
        date: Optional[str] = None,
    ):
        """Finishing position for you or another member (defaults to today)."""
        target = member or ctx.author

        try:
            date_key = parse_date_input(date) if date else today_key()
            result = await self.services.analytics.user_position(
                self.guild_id_of(ctx), str(target.id), date_key
            )

            when = format_date_for_display(date_key)
            if not result.found:
                await self.send_info(ctx, f"{Emojis.CALENDAR} {when}", f"{target.mention} didn't post that day.")
                return

            lines = []
            if result.position is not None:
                lines.append(
                    f"{target.mention} was **{result.position}{ordinal_suffix(result.position)}** "
                    f"of {result.participants}."
                )
            if result.is_last:
                lines.append(f"{Emojis.LAST} Sent the **last** message of the day.")
            if result.is_second_last:
                lines.append(f"{Emojis.SECOND_LAST} Sent the **second-to-last** message of the day.")
            await self.send_info(ctx, f"{Emojis.CALENDAR} {when}", "\n".join(lines))

            self.log_command_use(
                "firstpost",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                target=target.id,
                date_key=date_key,
            )

        except Exception as e:
            await self.respond_to_error(ctx, "firstpost", e, "Lookup Failed", date=date)

    @commands.command(
        name="trends",
        aliases=["growth"],
        description="Points per day between two dated leaderboards",
    )
    @commands.guild_only()
    async def trends(self, ctx: commands.Context, *, dates: str):
        """Growth rate between two dates (e.g. `trends 06-01-2025 to 06-10-2025`)."""
        start_time = time.perf_counter()

        try:
            first, second = split_date_pair(dates)
            start_key, end_key, rates = await self.services.analytics.growth_rates(
                self.guild_id_of(ctx), parse_date_input(first), parse_date_input(second)
            )

            lines = [
                f"`{i:>2}.` **{rate.username}** {Emojis.GROWTH if rate.rate >= 0 else Emojis.DECLINE} "
                f"{rate.rate:+.2f}/day ({rate.start_score:,} → {rate.end_score:,})"
                for i, rate in enumerate(rates[:PAGE_SIZE], start=1)
            ]
            await self.send_embed(
                ctx,
                EmbedBuilder.line_list(
                    f"{Emojis.GROWTH} Growth {format_date_for_display(start_key)} → "
                    f"{format_date_for_display(end_key)}",
                    lines,
                    empty_text="Nobody has points in either snapshot.",
                ),
            )

            self.log_command_use(
                "trends",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                start=start_key,
                end=end_key,
            )

        except Exception as e:
            await self.respond_to_error(ctx, "trends", e, "Trends Unavailable", dates=dates)

    @commands.command(
        name="monthly",
        aliases=["month"],
        description="Points gained during a month",
    )
    @commands.guild_only()
    async def monthly(self, ctx: commands.Context, month: Optional[str] = None, year: Optional[int] = None):
        """Monthly gains leaderboard (defaults to the current month)."""
        try:
            today = parse_date_key(today_key())
            if month is None:
                month_number = today.month
            elif month.isdigit():
                month_number = int(month)
            else:
                month_number = MONTHS.get(month.lower(), 0)
            gains = await self.services.analytics.monthly_gains(
                self.guild_id_of(ctx), month_number, year or today.year
            )

            entries = [
                RankedEntry(user_id=g.user_id, username=g.username, score=g.gain, rank=g.rank)
                for g in gains[:PAGE_SIZE]
            ]
            embed = EmbedBuilder.leaderboard(
                f"{MONTH_NAMES[month_number - 1]} {year or today.year} Gains",
                entries,
                value_label="pts gained",
            )
            await self.send_embed(ctx, embed)

            self.log_command_use(
                "monthly", ctx.author.id, guild_id=ctx.guild.id if ctx.guild else None, month=month_number
            )

        except Exception as e:
            await self.respond_to_error(ctx, "monthly", e, "Monthly Gains Unavailable", month=month)


async def setup(bot: commands.Bot):
    """Load the LeaderboardCog."""
    await bot.add_cog(LeaderboardCog(bot))
