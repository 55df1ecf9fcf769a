# src/ui/embeds.py
"""
Embed factory for Discord embeds.

Features:
- Consistent branding and colors (from Config.EMBED_COLOR_*)
- Automatic Discord limits enforcement
- Specialized builders for leaderboards and paged line lists

Usage:
    >>> from src.ui.embeds import EmbedFactory
    >>> embed = EmbedFactory.success("Scored", "06-01-2025 added to the leaderboard")
    >>> embed = EmbedFactory.leaderboard("Leaderboard", view.top(10))
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import discord

from src.core.config.config import Config
from src.modules.leaderboard.ranking import RankedEntry
from src.ui.emojis import Emojis

EMBED_TITLE_LIMIT = 256
EMBED_DESCRIPTION_LIMIT = 4096
EMBED_FIELD_NAME_LIMIT = 256
EMBED_FIELD_LIMIT = 1024
EMBED_FOOTER_LIMIT = 2048
EMBED_MAX_FIELDS = 25


def truncate_text(text: str, limit: int) -> str:
    """Clip `text` to `limit` characters, ending with an ellipsis when clipped."""
    text = str(text)
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)] + "..."


def default_footer() -> str:
    return f"{Config.BOT_NAME} v{Config.BOT_VERSION}"


class EmbedFactory:
    """
    Factory for standardized Discord embeds.

    All embeds include a timestamp and enforce Discord limits.
    """

    @staticmethod
    def _base_embed(
        title: str,
        description: str,
        color: int,
        footer: Optional[str] = None
    ) -> discord.Embed:
        """
        Create base embed with automatic limit enforcement.

        Args:
            title: Embed title (max 256 chars)
            description: Embed description (max 4096 chars)
            color: Discord color integer
            footer: Optional footer text (max 2048 chars)
        """
        embed = discord.Embed(
            title=truncate_text(title, EMBED_TITLE_LIMIT),
            description=truncate_text(description, EMBED_DESCRIPTION_LIMIT),
            color=color,
            timestamp=datetime.now(timezone.utc),
        )

        if footer:
            embed.set_footer(text=truncate_text(footer, EMBED_FOOTER_LIMIT))

        return embed

    # =========================================================================
    # CORE TYPES
    # =========================================================================

    @staticmethod
    def primary(
        title: str,
        description: str,
        footer: Optional[str] = None
    ) -> discord.Embed:
        """Default embed for neutral/system messages."""
        return EmbedFactory._base_embed(
            title, description, Config.EMBED_COLOR_PRIMARY, footer or default_footer()
        )

    @staticmethod
    def success(
        title: str,
        description: str,
        footer: Optional[str] = None
    ) -> discord.Embed:
        return EmbedFactory._base_embed(
            title, description, Config.EMBED_COLOR_SUCCESS, footer or default_footer()
        )

    @staticmethod
    def error(
        title: str,
        description: str,
        help_text: Optional[str] = None
    ) -> discord.Embed:
        """
        Error embeds with optional help text.

        Args:
            title: Error title
            description: Error description
            help_text: Optional helpful suggestion for user
        """
        desc = description
        if help_text:
            desc += f"\n\n{Emojis.TIP} **Help:** {help_text}"
        return EmbedFactory._base_embed(title, desc, Config.EMBED_COLOR_ERROR)

    @staticmethod
    def warning(
        title: str,
        description: str,
        footer: Optional[str] = None
    ) -> discord.Embed:
        """For recoverable issues or alerts."""
        return EmbedFactory._base_embed(
            title, description, Config.EMBED_COLOR_WARNING, footer or default_footer()
        )

    @staticmethod
    def info(
        title: str,
        description: str,
        footer: Optional[str] = None
    ) -> discord.Embed:
        return EmbedFactory._base_embed(
            title, description, Config.EMBED_COLOR_INFO, footer or default_footer()
        )

    # =========================================================================
    # SCORING TYPES
    # =========================================================================

    @staticmethod
    def leaderboard(
        title: str,
        rankings: Sequence[RankedEntry],
        user_entry: Optional[RankedEntry] = None,
        description: Optional[str] = None,
        footer: Optional[str] = None,
        value_label: str = "pts",
    ) -> discord.Embed:
        """
        Create leaderboard embed.

        Args:
            title: Leaderboard title
            rankings: Entries to list, already ordered by rank
            user_entry: Invoking user's standing, shown when not in `rankings`
            description: Optional text above the list
            footer: Optional footer (defaults to branding)
            value_label: Unit after each score
        """
        if rankings:
            lines = [
                f"{Emojis.medal(entry.rank)} **{entry.username}** - {entry.score:,} {value_label}"
                for entry in rankings
            ]
            body = "\n".join(lines)
        else:
            body = "No rankings available yet"

        if description:
            body = f"{description}\n\n{body}"

        embed = EmbedFactory._base_embed(
            f"{Emojis.LEADERBOARD} {title}",
            body,
            Config.EMBED_COLOR_PRIMARY,
            footer or default_footer(),
        )

        shown = {entry.user_id for entry in rankings}
        if user_entry is not None and user_entry.user_id not in shown:
            embed.add_field(
                name=f"{Emojis.POINTS} Your Rank",
                value=f"**#{user_entry.rank}** - {user_entry.score:,} {value_label}",
                inline=False,
            )

        return embed

    @staticmethod
    def line_list(
        title: str,
        lines: Sequence[str],
        empty_text: str = "Nothing to show yet",
        footer: Optional[str] = None,
        color: Optional[int] = None,
    ) -> discord.Embed:
        """Plain ``title`` + newline-joined lines, clipped to the description limit."""
        return EmbedFactory._base_embed(
            title,
            "\n".join(lines) if lines else empty_text,
            color if color is not None else Config.EMBED_COLOR_INFO,
            footer or default_footer(),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def add_fields_safe(
        embed: discord.Embed,
        fields: List[Dict[str, Any]],
        max_fields: int = EMBED_MAX_FIELDS
    ) -> int:
        """
        Safely add fields to embed with limit checking.

        Args:
            embed: Discord embed to add fields to
            fields: List of dicts with 'name', 'value', 'inline' keys
            max_fields: Maximum fields to add (Discord limit is 25)

        Returns:
            Number of fields actually added
        """
        added = 0
        for field in fields:
            if len(embed.fields) >= max_fields:
                break

            embed.add_field(
                name=truncate_text(field.get("name", "Field"), EMBED_FIELD_NAME_LIMIT),
                value=truncate_text(field.get("value", "No value"), EMBED_FIELD_LIMIT),
                inline=field.get("inline", False),
            )
            added += 1

        return added


EmbedBuilder = EmbedFactory
