"""
Stats Cog - Discord commands for server analytics
=================================================

Commands:
- statistics: server-wide totals and top finishers
- participation: per-user days, busiest days and weekday averages
- heatmap: hour-of-day and weekday activity
- position <n>: how often a finishing position was filled, and by whom
- rankcount [member] <category>: how often a user held a position, last or second-last
"""

from __future__ import annotations

import time
from typing import Dict, Optional, Sequence, Tuple

import discord
from discord.ext import commands

from src.bot.base_cog import BaseCog
from src.modules.analytics.date_input import format_date_for_display, ordinal_suffix
from src.modules.analytics.derivations import Heatmap
from src.ui.embeds import EmbedBuilder
from src.ui.emojis import Emojis

_CATEGORY_ALIASES = {
    "last": "last",
    "2ndlast": "second_last",
    "second_last": "second_last",
    "secondlast": "second_last",
    "2nd-last": "second_last",
}


def normalize_category(text: str) -> str:
    """``1st``/``3`` -> ``"1"``/``"3"``; ``2ndlast`` and friends -> ``"second_last"``."""
    cleaned = text.strip().lower()
    if cleaned in _CATEGORY_ALIASES:
        return _CATEGORY_ALIASES[cleaned]
    for suffix in ("st", "nd", "rd", "th"):
        if cleaned.endswith(suffix) and cleaned[: -len(suffix)].isdigit():
            return cleaned[: -len(suffix)]
    return cleaned


def heat_row(values: Sequence[int]) -> str:
    top = max(values, default=0)
    return "".join(Emojis.INTENSITY[Heatmap.intensity(v, top)] for v in values)


def _ranked_names(pairs: Sequence[Tuple[str, int]], names: Dict[str, str], unit: str) -> str:
    if not pairs:
        return "None yet"
    return "\n".join(
        f"{Emojis.medal(i)} {names.get(uid, uid)}: {count} {unit}" for i, (uid, count) in enumerate(pairs, 1)
    )


class StatsCog(BaseCog):
    """Server analytics commands."""

    def __init__(self, bot: commands.Bot):
        super().__init__(bot, self.__class__.__name__)

    @commands.command(name="statistics", aliases=["serverstats"], description="Server-wide statistics")
    @commands.guild_only()
    async def statistics(self, ctx: commands.Context):
        """Totals, averages and the most frequent finishers."""
        start_time = time.perf_counter()
        await self.defer(ctx)

        try:
            stats = await self.services.analytics.server_statistics(self.guild_id_of(ctx))
            if stats.total_days == 0:
                await self.send_info(ctx, f"{Emojis.STATS} Server Statistics", "No days recorded yet.")
                return

            names = stats.usernames
            embed = EmbedBuilder.info(
                f"{Emojis.STATS} Server Statistics",
                f"**Days tracked:** {stats.total_days}\n"
                f"**Unique participants:** {stats.unique_participants}\n"
                f"**Average per day:** {stats.average_participants:.1f}\n"
                f"**Perfect days:** {stats.perfect_days}",
            )
            fields = [
                {"name": f"{Emojis.FIRST} Most 1st", "value": _ranked_names(stats.top_first, names, "days"), "inline": True},
                {"name": f"{Emojis.LAST} Most Last", "value": _ranked_names(stats.top_last, names, "days"), "inline": True},
                {
                    "name": f"{Emojis.SECOND_LAST} Most 2nd-Last",
                    "value": _ranked_names(stats.top_second_last, names, "days"),
                    "inline": True,
                },
                {
                    "name": f"{Emojis.LEADERBOARD} Most Top 3",
                    "value": _ranked_names(stats.top_three_finishes, names, "days"),
                    "inline": True,
                },
            ]
            if stats.most_active_weekday and stats.least_active_weekday:
                busiest, quietest = stats.most_active_weekday, stats.least_active_weekday
                fields.append(
                    {
                        "name": f"{Emojis.CALENDAR} Weekdays",
                        "value": f"Busiest: {busiest[0]} ({busiest[1]:.1f})\nQuietest: {quietest[0]} ({quietest[1]:.1f})",
                        "inline": True,
                    }
                )
            if stats.longest_first_streak:
                uid, length = stats.longest_first_streak
                fields.append(
                    {
                        "name": f"{Emojis.STREAK} Longest 1st Streak",
                        "value": f"{names.get(uid, uid)}: {length} days",
                        "inline": True,
                    }
                )
            EmbedBuilder.add_fields_safe(embed, fields)
            await self.send_embed(ctx, embed)

            self.log_command_use(
                "statistics",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )

        except Exception as e:
            await self.respond_to_error(ctx, "statistics", e, "Statistics Unavailable")

    @commands.command(name="participation", aliases=["activity"], description="Participation by user and weekday")
    @commands.guild_only()
    async def participation(self, ctx: commands.Context):
        """Days posted per user, busiest days and weekday averages."""
        start_time = time.perf_counter()
        await self.defer(ctx)

        try:
            stats = await self.services.analytics.participation(self.guild_id_of(ctx))
            if stats.total_days == 0:
                await self.send_info(ctx, f"{Emojis.STATS} Participation", "No days recorded yet.")
                return

            embed = EmbedBuilder.info(
                f"{Emojis.STATS} Participation",
                f"{stats.unique_participants} users over {stats.total_days} days",
            )
            users = "\n".join(
                f"`{i:>2}.` **{u.username}** {u.days} days ({u.first_places} {Emojis.FIRST})"
                for i, u in enumerate(stats.users[:10], 1)
            )
            busiest = "\n".join(
                f"{format_date_for_display(date_key)}: {count}" for date_key, count in stats.busiest_days
            )
            weekdays = "\n".join(
                f"{'**' if day == stats.best_weekday else ''}{day}: {avg:.1f}{'**' if day == stats.best_weekday else ''}"
                for day, avg in stats.weekday_averages.items()
            )
            EmbedBuilder.add_fields_safe(
                embed,
                [
                    {"name": "Most Active", "value": users or "None", "inline": False},
                    {"name": f"{Emojis.CALENDAR} Busiest Days", "value": busiest or "None", "inline": True},
                    {"name": "Weekday Averages", "value": weekdays or "None", "inline": True},
                ],
            )
            await self.send_embed(ctx, embed)

            self.log_command_use(
                "participation",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )

        except Exception as e:
            await self.respond_to_error(ctx, "participation", e, "Participation Unavailable")

    @commands.command(name="heatmap", aliases=["heat"], description="Activity by hour and weekday")
    @commands.guild_only()
    async def heatmap(self, ctx: commands.Context):
        """Hour-of-day and weekday heatmap of recorded messages."""
        try:
            heat = await self.services.analytics.heatmap(self.guild_id_of(ctx))
            if not any(heat.hourly):
                await self.send_info(ctx, f"{Emojis.HEATMAP} Heatmap", "No messages recorded yet.")
                return

            embed = EmbedBuilder.info(f"{Emojis.HEATMAP} Activity Heatmap", "")
            EmbedBuilder.add_fields_safe(
                embed,
                [
                    {"name": "00-11h", "value": heat_row(heat.hourly[:12]), "inline": False},
                    {"name": "12-23h", "value": heat_row(heat.hourly[12:]), "inline": False},
                    {
                        "name": "Mon-Sun",
                        "value": heat_row(heat.weekday),
                        "inline": False,
                    },
                    {
                        "name": "Peaks",
                        "value": (
                            f"Hours: {', '.join(f'{h:02d}:00' for h in heat.peak_hours) or 'none'}\n"
                            f"Days: {', '.join(heat.peak_weekdays) or 'none'}"
                        ),
                        "inline": False,
                    },
                ],
            )
            await self.send_embed(ctx, embed)

            self.log_command_use("heatmap", ctx.author.id, guild_id=ctx.guild.id if ctx.guild else None)

        except Exception as e:
            await self.respond_to_error(ctx, "heatmap", e, "Heatmap Unavailable")

    @commands.command(name="position", aliases=["pos"], description="How often a finishing position was filled")
    @commands.guild_only()
    async def position(self, ctx: commands.Context, position: int):
        """Fill rate and top holders of a finishing position (e.g. `position 3`)."""
        try:
            stats = await self.services.analytics.position_stats(self.guild_id_of(ctx), position)
            title = f"{Emojis.SUNRISE} {position}{ordinal_suffix(position)} Place"

            lines = [
                f"Filled on **{stats.days_filled}** of {stats.total_days} days ({stats.percentage:.1f}%)",
                "",
            ]
            for i, (user_id, count) in enumerate(stats.top_users, 1):
                lines.append(f"{Emojis.medal(i)} <@{user_id}>: {count} days")
            await self.send_info(ctx, title, "\n".join(lines))

            self.log_command_use(
                "position", ctx.author.id, guild_id=ctx.guild.id if ctx.guild else None, position=position
            )

        except Exception as e:
            await self.respond_to_error(ctx, "position", e, "Position Stats Unavailable", position=position)

    @commands.command(name="rankcount", aliases=["rc"], description="How often a user held a position")
    @commands.guild_only()
    async def rankcount(self, ctx: commands.Context, member: Optional[discord.Member] = None, category: str = "1"):
        """Times you or another member finished in a position (e.g. `rankcount @user 2nd`, `rankcount last`)."""
        target = member or ctx.author

        try:
            normalized = normalize_category(category)
            result = await self.services.analytics.rank_counts(self.guild_id_of(ctx), str(target.id), normalized)

            if normalized == "last":
                label = "last"
            elif normalized == "second_last":
                label = "second-to-last"
            else:
                label = f"{normalized}{ordinal_suffix(int(normalized))}"

            lines = [f"{target.mention} finished **{label}** {result.count} time(s)."]
            if result.recent_dates:
                lines.append(
                    "Most recent: " + ", ".join(format_date_for_display(d) for d in result.recent_dates)
                )
            await self.send_info(ctx, f"{Emojis.STATS} Rank Count", "\n".join(lines))

            self.log_command_use(
                "rankcount",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                target=target.id,
                category=normalized,
            )

        except Exception as e:
            await self.respond_to_error(ctx, "rankcount", e, "Rank Count Unavailable", category=category)


async def setup(bot: commands.Bot):
    """Load the StatsCog."""
    await bot.add_cog(StatsCog(bot))
