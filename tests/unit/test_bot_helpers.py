"""
Unit tests for the Discord layer: argument helpers, cog discovery, the
flair role-grant listener and the message listener's channel check.
"""

import discord
import pytest

from src.bot.loader import FeatureLoader
from src.core.config.config import Config
from src.modules.analytics.cog import heat_row, normalize_category
from src.modules.flair.cog import FlairCog, streak_label
from src.modules.leaderboard.cog import split_date_pair
from src.modules.ledger.cog import MessageListenerCog
from src.modules.shared.exceptions import InvalidDateRangeError
from src.ui.emojis import Emojis

FEATURE_COGS = [
    "src.modules.analytics.cog",
    "src.modules.flair.cog",
    "src.modules.leaderboard.cog",
    "src.modules.ledger.cog",
    "src.modules.scoring.cog",
]


@pytest.mark.unit
class TestArgumentHelpers:
    """Parsing command arguments."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("06-01-2025 06-10-2025", ("06-01-2025", "06-10-2025")),
            ("june 1 to june 10", ("june 1", "june 10")),
            ("6/1, 6/10", ("6/1", "6/10")),
            ("06-01-2025 - 06-10-2025", ("06-01-2025", "06-10-2025")),
        ],
    )
    def test_split_date_pair(self, text, expected):
        assert split_date_pair(text) == expected

    def test_split_date_pair_needs_two_dates(self):
        with pytest.raises(InvalidDateRangeError):
            split_date_pair("yesterday")

    @pytest.mark.parametrize(
        "text,expected",
        [("1st", "1"), ("3", "3"), ("12th", "12"), ("LAST", "last"), ("2ndlast", "second_last"), ("2nd-last", "second_last")],
    )
    def test_normalize_category(self, text, expected):
        assert normalize_category(text) == expected

    def test_streak_labels(self):
        assert streak_label(0) == f"{Emojis.FIRST} 1st"
        assert streak_label(2) == f"{Emojis.SUNRISE} 3rd"
        assert streak_label("last").endswith("Last")
        assert streak_label("second_last").endswith("2nd-Last")

    def test_heat_row(self):
        assert heat_row([0, 10, 5]) == Emojis.INTENSITY[0] + Emojis.INTENSITY[5] + Emojis.INTENSITY[3]


@pytest.mark.unit
class TestFeatureLoader:
    """Cog discovery and loading."""

    def test_discovers_feature_cogs(self, mock_bot):
        assert FeatureLoader(mock_bot).discover_cogs() == FEATURE_COGS

    async def test_load_all_features(self, mocker, mock_bot):
        mock_bot.load_extension = mocker.AsyncMock()

        stats = await FeatureLoader(mock_bot).load_all_features()

        assert stats["loaded"] == len(FEATURE_COGS)
        assert stats["failed"] == 0

    async def test_one_failing_cog_does_not_stop_the_rest(self, mocker, mock_bot):
        async def load(name):
            if name.endswith("analytics.cog"):
                raise RuntimeError("bad cog")

        mock_bot.load_extension = mocker.AsyncMock(side_effect=load)

        stats = await FeatureLoader(mock_bot).load_all_features()

        assert stats["failed"] == 1
        assert stats["loaded"] == len(FEATURE_COGS) - 1
        assert stats["error_breakdown"] == {"RuntimeError": 1}


@pytest.mark.unit
class TestFlairRoleGrants:
    """The flair.granted listener."""

    @pytest.fixture
    def payload(self):
        return {
            "server_id": "1300198974988357732",
            "user_id": "42",
            "tier_key": "ORANGE",
            "tier_name": "50 Points",
            "role_id": 101,
            "date_earned": "06-06-2025",
        }

    @pytest.fixture
    def guild(self, mocker, mock_bot):
        guild = mocker.MagicMock()
        role = mocker.MagicMock()
        member = mocker.MagicMock()
        member.roles = []
        member.add_roles = mocker.AsyncMock()
        guild.get_role.return_value = role
        guild.get_member.return_value = member
        mock_bot.get_guild.return_value = guild
        return guild

    @pytest.fixture
    def cog(self, mocker, mock_bot, flair_table):
        mock_bot.service_container = mocker.MagicMock()
        mock_bot.service_container.flair_table = flair_table
        return FlairCog(mock_bot)

    async def test_grants_role_and_announces(self, mocker, mock_bot, cog, guild, payload):
        # Arrange
        channel = mocker.MagicMock(spec=discord.TextChannel)
        channel.send = mocker.AsyncMock()
        mock_bot.get_channel.return_value = channel
        mocker.patch.object(Config, "FLAIR_ANNOUNCEMENT_CHANNEL_ID", 555)

        # Act
        await cog.on_flair_granted(payload)

        # Assert
        member = guild.get_member.return_value
        member.add_roles.assert_awaited_once()
        assert member.add_roles.await_args.args[0] is guild.get_role.return_value
        channel.send.assert_awaited_once()
        assert channel.send.await_args.args[0].startswith('<@42> got the "50 Points" flair')

    async def test_member_with_role_is_skipped(self, mocker, mock_bot, cog, guild, payload):
        member = guild.get_member.return_value
        member.roles = [guild.get_role.return_value]
        mocker.patch.object(Config, "FLAIR_ANNOUNCEMENT_CHANNEL_ID", 555)

        await cog.on_flair_granted(payload)

        member.add_roles.assert_not_awaited()
        mock_bot.get_channel.assert_not_called()

    async def test_missing_permissions_are_logged_not_raised(self, mocker, cog, guild, payload):
        member = guild.get_member.return_value
        member.add_roles.side_effect = discord.Forbidden(
            mocker.MagicMock(status=403, reason="Forbidden"), "Missing Permissions"
        )

        await cog.on_flair_granted(payload)

        member.add_roles.assert_awaited_once()

    async def test_unknown_guild_is_ignored(self, mock_bot, cog, payload):
        mock_bot.get_guild.return_value = None

        await cog.on_flair_granted(payload)

    async def test_listener_registered_on_load(self, mocker, mock_bot, cog):
        mock_bot.event_bus = mocker.MagicMock()

        await cog.cog_load()
        await cog.cog_unload()

        mock_bot.event_bus.subscribe.assert_called_once()
        mock_bot.event_bus.unsubscribe.assert_called_once_with("flair.granted", "flair_cog.role_grants")


@pytest.mark.unit
class TestMessageListener:
    """Only messages in the server's own tracked channel reach the ledger."""

    @pytest.fixture
    def cog(self, mocker, mock_bot):
        mock_bot.service_container = mocker.MagicMock()
        ledger = mock_bot.service_container.ledger
        ledger.tracked_channel_id.side_effect = lambda server_id: {"10": 777}.get(server_id)
        ledger.record_first_message = mocker.AsyncMock(return_value=True)
        mock_bot.lifecycle = None
        return MessageListenerCog(mock_bot)

    @pytest.fixture
    def message(self, mocker):
        message = mocker.MagicMock()
        message.author.bot = False
        message.author.id = 42
        message.author.name = "ann"
        message.guild.id = 10
        message.id = 9001
        return message

    async def test_tracked_channel_is_recorded(self, mock_bot, cog, message):
        message.channel.id = 777

        await cog.on_message(message)

        ledger = mock_bot.service_container.ledger
        ledger.record_first_message.assert_awaited_once()
        assert ledger.record_first_message.await_args.kwargs["server_id"] == "10"

    async def test_other_channel_is_ignored(self, mock_bot, cog, message):
        message.channel.id = 555

        await cog.on_message(message)

        mock_bot.service_container.ledger.record_first_message.assert_not_awaited()

    async def test_server_without_channel_is_ignored(self, mock_bot, cog, message):
        message.guild.id = 11
        message.channel.id = 777

        await cog.on_message(message)

        mock_bot.service_container.ledger.record_first_message.assert_not_awaited()
