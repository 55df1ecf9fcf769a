"""
Scheduler Cog
=============

Runs the daily scoring pass at the configured local time for the day that
just ended, and exposes the admin controls around it.

Commands:
- process <date>: score one day for this server now (admin)
- sheet [month]: export the history and cumulative-score sheets as CSV (admin)
- status: container and bot health (admin)
"""

from __future__ import annotations

import csv
import datetime as dt
import io
import time
from typing import List, Optional, Sequence

import discord
from discord.ext import commands, tasks

from src.bot.base_cog import BaseCog
from src.bot.gateway import make_history_fetcher
from src.core.config.config import Config
from src.modules.analytics.date_input import MONTHS, parse_date_input
from src.modules.scoring.pipeline import STATUS_ALREADY_PROCESSED, STATUS_SCORED, PipelineResult
from src.modules.sheets.rows import (
    GreyCalendar,
    build_cumulative_score_columns,
    build_history_rows,
    sheet_name_for,
)
from src.modules.shared.dates import parse_date_key, today_key, yesterday_key
from src.modules.shared.exceptions import InvalidDateRangeError
from src.ui.embeds import EmbedBuilder
from src.ui.emojis import Emojis


def _csv_file(rows: Sequence[Sequence[object]], filename: str) -> discord.File:
    buffer = io.StringIO()
    csv.writer(buffer).writerows(rows)
    return discord.File(io.BytesIO(buffer.getvalue().encode("utf-8")), filename=filename)


def _parse_month(text: Optional[str], today: dt.date) -> dt.date:
    """``June``, ``june 2025`` or nothing (current month) -> first day of that month."""
    if not text:
        return today.replace(day=1)
    parts = text.strip().lower().replace(",", " ").split()
    month = MONTHS.get(parts[0])
    if month is None:
        raise InvalidDateRangeError("month", f"'{parts[0]}' is not a month name")
    year = today.year
    if len(parts) > 1:
        if not parts[1].isdigit():
            raise InvalidDateRangeError("year", f"'{parts[1]}' is not a year")
        year = int(parts[1])
    return dt.date(year, month, 1)


class SchedulerCog(BaseCog):
    """Daily scoring loop and admin controls."""

    def __init__(self, bot: commands.Bot):
        super().__init__(bot, self.__class__.__name__)
        self.last_results: List[PipelineResult] = []

    async def cog_load(self) -> None:
        run_at = dt.time(
            hour=Config.SCORING_HOUR,
            minute=Config.SCORING_MINUTE,
            tzinfo=Config.scoring_zone(),
        )
        self.daily_scoring.change_interval(time=run_at)
        self.daily_scoring.start()
        self.logger.info(
            "Daily scoring scheduled",
            extra={"run_at": run_at.isoformat(), "timezone": Config.SCORING_TIMEZONE},
        )

    async def cog_unload(self) -> None:
        self.daily_scoring.cancel()

    # ========================================================================
    # Scheduled job
    # ========================================================================

    @tasks.loop(time=dt.time(hour=0, minute=5))
    async def daily_scoring(self) -> None:
        date_key = yesterday_key()
        start_time = time.perf_counter()

        self.last_results = await self.services.pipeline.run_for_all_servers(
            date_key, make_history_fetcher(self.bot)
        )

        lifecycle = getattr(self.bot, "lifecycle", None)
        if lifecycle is not None:
            lifecycle.metrics.scoring_runs += 1

        self.logger.info(
            "Scheduled scoring finished",
            extra={
                "date_key": date_key,
                "servers": len(self.last_results),
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )

    @daily_scoring.before_loop
    async def before_daily_scoring(self) -> None:
        await self.bot.wait_until_ready()

    @daily_scoring.error
    async def daily_scoring_error(self, error: BaseException) -> None:
        self.logger.error(
            "Scheduled scoring crashed",
            exc_info=error,
            extra={"error_type": type(error).__name__},
        )

    # ========================================================================
    # Admin commands
    # ========================================================================

    @commands.command(
        name="process",
        aliases=["rescore"],
        description="Score a finished day for this server now",
    )
    @commands.guild_only()
    @commands.has_permissions(administrator=True)
    async def process(self, ctx: commands.Context, *, date: str):
        """Score one finished day now (e.g. `process yesterday`)."""
        start_time = time.perf_counter()
        await self.defer(ctx)

        try:
            date_key = parse_date_input(date)
            if parse_date_key(date_key) >= parse_date_key(today_key()):
                raise InvalidDateRangeError("date", "Only days that have already ended can be scored")

            result = await self.services.pipeline.run_daily_scoring(
                self.guild_id_of(ctx),
                date_key,
                make_history_fetcher(self.bot),
            )

            if result.status == STATUS_SCORED:
                lines = [
                    f"**Users scored:** {len(result.deltas)}",
                    f"**Last:** {f'<@{result.last_user_id}>' if result.last_user_id else 'NONE'}",
                    f"**2nd-Last:** {f'<@{result.second_last_user_id}>' if result.second_last_user_id else 'NONE'}",
                    f"**Flairs granted:** {len(result.grants)}",
                ]
                await self.send_success(ctx, f"{Emojis.SUCCESS} Scored {date_key}", "\n".join(lines))
            elif result.status == STATUS_ALREADY_PROCESSED:
                await self.send_info(ctx, "Already Scored", f"**{date_key}** was already added to the leaderboard.")
            else:
                await self.send_info(ctx, "Nothing To Score", f"Nobody posted in the tracked channel on **{date_key}**.")

            self.log_command_use(
                "process",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                **result.to_dict(),
            )

        except Exception as e:
            await self.respond_to_error(ctx, "process", e, "Scoring Failed", date=date)

    @commands.command(
        name="sheet",
        aliases=["export"],
        description="Export a month's history sheet and the cumulative scores as CSV",
    )
    @commands.guild_only()
    @commands.has_permissions(administrator=True)
    async def sheet(self, ctx: commands.Context, *, month: Optional[str] = None):
        """Export spreadsheet rows (e.g. `sheet june 2025`)."""
        start_time = time.perf_counter()
        await self.defer(ctx)

        try:
            first_day = _parse_month(month, parse_date_key(today_key()))
            server_id = self.guild_id_of(ctx)
            max_positions = int(self.bot.config_manager.get("sheets.max_positions", 15))
            min_score = int(self.bot.config_manager.get("sheets.cumulative_min_score", 20))
            calendar = GreyCalendar.from_config(self.bot.config_manager)

            days = [
                d
                for d in await self.services.ledger.list_days(server_id)
                if (d.day.year, d.day.month) == (first_day.year, first_day.month)
            ]
            history = build_history_rows(days, max_positions, Config.scoring_zone())
            history = [history[0] + ["Grey"]] + [
                row + ["yes" if calendar.is_grey(row[0]) else "no"] for row in history[1:]
            ]

            current = await self.services.leaderboard.get_current(server_id)
            cumulative = build_cumulative_score_columns(current.rankings, min_score)

            name = sheet_name_for(first_day)
            files = [
                _csv_file(history, f"{name.replace(' ', '_')}_history.csv"),
                _csv_file(cumulative.as_values(), "cumulative_scores.csv"),
            ]
            await ctx.send(
                embed=EmbedBuilder.info(
                    f"{Emojis.STATS} {name}",
                    f"{len(history) - 1} day(s) of history, {len(cumulative.rows)} user(s) at "
                    f"{min_score}+ points.",
                ),
                files=files,
            )

            self.log_command_use(
                "sheet",
                ctx.author.id,
                guild_id=ctx.guild.id if ctx.guild else None,
                latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
                sheet=name,
            )

        except Exception as e:
            await self.respond_to_error(ctx, "sheet", e, "Export Failed", month=month)

    @commands.command(name="status", description="Show bot and service health")
    @commands.has_permissions(administrator=True)
    async def status(self, ctx: commands.Context):
        """Bot, database and scheduler health."""
        try:
            health = await self.services.health_check()
            lifecycle = getattr(self.bot, "lifecycle", None)
            metrics = lifecycle.get_metrics_snapshot() if lifecycle else {}
            next_run = self.daily_scoring.next_iteration

            embed = EmbedBuilder.info(f"{Emojis.STATS} Status", f"{Config.BOT_NAME} v{Config.BOT_VERSION}")
            EmbedBuilder.add_fields_safe(
                embed,
                [
                    {"name": "Services", "value": f"{health['service_count']} ready", "inline": True},
                    {
                        "name": "Database",
                        "value": "healthy" if metrics.get("services_unhealthy", 0) == 0 else "unhealthy",
                        "inline": True,
                    },
                    {
                        "name": "Next scoring run",
                        "value": discord.utils.format_dt(next_run, "R") if next_run else "not scheduled",
                        "inline": True,
                    },
                    {"name": "Messages recorded", "value": str(metrics.get("messages_recorded", 0)), "inline": True},
                    {"name": "Scoring runs", "value": str(metrics.get("scoring_runs", 0)), "inline": True},
                    {
                        "name": "Last run",
                        "value": ", ".join(f"{r.server_id}: {r.status}" for r in self.last_results) or "none yet",
                        "inline": False,
                    },
                ],
            )
            await self.send_embed(ctx, embed)

        except Exception as e:
            await self.respond_to_error(ctx, "status", e, "Status Unavailable")


async def setup(bot: commands.Bot):
    """Load the SchedulerCog."""
    await bot.add_cog(SchedulerCog(bot))
