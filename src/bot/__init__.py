"""
Bot infrastructure and Discord integration layer.

Exports
-------
- FirstLastBot: the commands.Bot subclass
- BaseCog: shared base for feature cogs
- BotLifecycle, BotMetrics, ServiceHealth, StartupMetrics: lifecycle and health state
"""

from __future__ import annotations

from src.bot.base_cog import BaseCog
from src.bot.first_last_bot import FirstLastBot
from src.bot.lifecycle import BotLifecycle, BotMetrics, ServiceHealth, StartupMetrics

__all__ = [
    "FirstLastBot",
    "BaseCog",
    "BotLifecycle",
    "BotMetrics",
    "ServiceHealth",
    "StartupMetrics",
]
