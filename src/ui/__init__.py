"""
UI subsystem: emoji constants and the embed factory.

Usage:
    >>> from src.ui import EmbedFactory, Emojis
    >>> embed = EmbedFactory.info(f"{Emojis.STATS} Statistics", "...")
"""

from src.ui.embeds import EmbedBuilder, EmbedFactory
from src.ui.emojis import Emojis

__all__ = ["EmbedBuilder", "EmbedFactory", "Emojis"]
