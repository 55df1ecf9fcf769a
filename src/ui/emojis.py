"""
Centralized emoji definitions for bot UI.

Usage:
    from src.ui.emojis import Emojis

    title = f"{Emojis.LEADERBOARD} Leaderboard"

Standards:
    - All emojis are Unicode (no custom Discord emojis)
    - SCREAMING_SNAKE_CASE naming convention
"""


class Emojis:
    """Centralized emoji constants."""

    # ═══════════════════════════════════════════════════════════════
    # LEADERBOARD MEDALS
    # ═══════════════════════════════════════════════════════════════
    FIRST_PLACE = "🥇"
    SECOND_PLACE = "🥈"
    THIRD_PLACE = "🥉"
    LEADERBOARD = "🏆"

    # ═══════════════════════════════════════════════════════════════
    # DAY ORDER
    # ═══════════════════════════════════════════════════════════════
    SUNRISE = "🌅"
    NIGHT = "🌙"
    FIRST = "☀️"
    LAST = "🌙"
    SECOND_LAST = "🌘"
    CALENDAR = "📅"
    CLOCK = "🕒"

    # ═══════════════════════════════════════════════════════════════
    # PROGRESSION
    # ═══════════════════════════════════════════════════════════════
    STREAK = "🔥"
    FLAIR = "🎖️"
    GROWTH = "📈"
    DECLINE = "📉"
    STATS = "📊"
    HEATMAP = "🗺️"
    POINTS = "⭐"

    # ═══════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════
    SUCCESS = "✅"
    ERROR = "❌"
    WARNING = "⚠️"
    INFO = "ℹ️"
    TIP = "💡"

    # Heatmap intensity, bands 0..5
    INTENSITY = ("⬛", "🟦", "🟩", "🟨", "🟧", "🟥")

    @classmethod
    def medal(cls, rank: int) -> str:
        """Medal for ranks 1-3, otherwise ``#rank``."""
        return {1: cls.FIRST_PLACE, 2: cls.SECOND_PLACE, 3: cls.THIRD_PLACE}.get(rank, f"#{rank}")
