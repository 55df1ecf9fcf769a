"""
Gateway adapters.

Translate discord.py objects into the plain records the scoring core
consumes, so nothing under src/modules/*/service.py imports discord.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

import discord

from src.core.logging.logger import get_logger
from src.modules.ledger.types import ChannelMessage

if TYPE_CHECKING:
    from discord.ext import commands

    from src.modules.scoring.pipeline import FetchRecentMessages

logger = get_logger(__name__)


def to_channel_message(message: discord.Message) -> ChannelMessage:
    return ChannelMessage(
        author_id=str(message.author.id),
        author_username=message.author.name,
        is_bot=message.author.bot,
        timestamp=message.created_at,
        message_id=str(message.id),
    )


def make_history_fetcher(bot: "commands.Bot") -> "FetchRecentMessages":
    """
    Build the ``fetch_recent_messages(channel_id, limit)`` collaborator.

    Returns messages newest first, as Discord's history endpoint does.
    Raises when the channel is unknown or unreadable; the pipeline treats
    that as "no last messages".
    """

    async def fetch_recent_messages(channel_id: Optional[int], limit: int) -> Sequence[ChannelMessage]:
        if channel_id is None:
            raise ValueError("No tracked channel configured")

        channel = bot.get_channel(channel_id) or await bot.fetch_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise TypeError(f"Channel {channel_id} has no message history")

        messages: List[ChannelMessage] = [
            to_channel_message(message) async for message in channel.history(limit=limit)
        ]
        logger.debug(
            "Fetched channel history",
            extra={"channel_id": channel_id, "limit": limit, "fetched": len(messages)},
        )
        return messages

    return fetch_recent_messages
