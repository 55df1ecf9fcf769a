"""
Pytest Configuration and Fixtures for the First/Last Tests
==========================================================

Purpose
-------
Centralized fixtures for the test suite: configuration, an in-memory
database, the event bus, ledger day factories and Discord mocks.

Architecture Notes
------------------
- Unit tests use plain DayView values and mocks (fast, isolated)
- Integration tests run the real services against in-memory SQLite
  (aiosqlite + StaticPool), schema created per test
- `database`-marked Postgres tests run the same services against a
  PostgreSQL testcontainer (asyncpg); they skip when Docker is unavailable
- ConfigManager is loaded from TEST_CONFIG for every test so point and
  flair tables are small and predictable
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SCORING_TIMEZONE", "America/Los_Angeles")

from datetime import datetime
from typing import Any, AsyncGenerator, Dict, Generator, Iterable, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from sqlalchemy import text
from testcontainers.postgres import PostgresContainer

from src.core.config.manager import ConfigManager
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger
from src.core.services.container import ServiceContainer
from src.modules.flair.tiers import FlairTable
from src.modules.ledger.types import ChannelMessage, DayView
from src.modules.scoring.point_table import PointTable
from src.modules.shared.dates import parse_date_key

logger = get_logger(__name__)

LA = ZoneInfo("America/Los_Angeles")
SERVER_ID = "1300198974988357732"
OTHER_SERVER_ID = "1300198974988357999"

TEST_CONFIG: Dict[str, Any] = {
    "scoring": {
        "channels": {OTHER_SERVER_ID: 777},
        "lookback_limit": 100,
        "points": {
            "positions": {1: 20, 2: 12, 3: 10},
            "default": 2,
            "last_message": 20,
            "second_last_message": 10,
        },
    },
    "flairs": {
        "tiers": [
            {"key": "ORANGE", "points": 50, "role_id": 101, "name": "50 Points", "color": "orange"},
            {"key": "YELLOW", "points": 100, "role_id": 102, "name": "100 Points", "color": "yellow"},
        ],
        "qualifying": {"key": "FIRST_LAST", "role_id": 201, "name": "Got a First/Last", "color": "red"},
        "participation": {"key": "RACER", "role_id": 301, "name": "Racer", "color": "gray"},
    },
    "sheets": {
        "max_positions": 5,
        "cumulative_min_score": 20,
        "grey_dates": ["2025-06-04"],
        "grey_ranges": [["2025-06-10", "2025-06-12"]],
    },
}

Post = Tuple[str, str, str]  # (user_id, username, "HH:MM:SS")


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def config_manager():
    """
    Load TEST_CONFIG into ConfigManager for every test.

    Scope: function (reset afterwards so no test sees another's overrides)
    """
    ConfigManager.load_from_dict(TEST_CONFIG)
    yield ConfigManager
    ConfigManager.reset()


@pytest.fixture
def point_table(config_manager) -> PointTable:
    return PointTable.from_config(config_manager)


@pytest.fixture
def flair_table(config_manager) -> FlairTable:
    return FlairTable.from_config(config_manager)


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh EventBus per test."""
    return EventBus(listener_timeout_seconds=2.0)


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[type, None]:
    """
    In-memory SQLite database with the full schema.

    Scope: function (clean slate per test)
    """
    await DatabaseService.initialize("sqlite+aiosqlite:///:memory:")
    await DatabaseService.create_schema()
    yield DatabaseService
    await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def services(database, config_manager, event_bus) -> AsyncGenerator[ServiceContainer, None]:
    """
    Fully wired ServiceContainer on the in-memory database.

    Scope: function
    """
    container = ServiceContainer(config_manager, event_bus, logger)
    await container.initialize()
    yield container
    await container.shutdown()
    await event_bus.drain()


# ============================================================================
# TESTCONTAINERS FIXTURES (PostgreSQL)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL testcontainer for the Postgres backend tests.

    Scope: session (container persists across all tests)
    Skips the requesting tests when Docker cannot be reached.
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")

    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest_asyncio.fixture
async def postgres_database(postgres_container) -> AsyncGenerator[type, None]:
    """
    DatabaseService on the PostgreSQL testcontainer.

    Scope: function (tables truncated after each test)
    """
    url = postgres_container.get_connection_url().replace("psycopg2", "asyncpg")
    await DatabaseService.initialize(url)
    await DatabaseService.create_schema()
    yield DatabaseService
    async with DatabaseService.get_transaction() as session:
        await session.execute(
            text("TRUNCATE day_ledgers, user_scores, leaderboard_snapshots, processed_days")
        )
    await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def postgres_services(
    postgres_database, config_manager, event_bus
) -> AsyncGenerator[ServiceContainer, None]:
    """ServiceContainer wired to the PostgreSQL testcontainer."""
    container = ServiceContainer(config_manager, event_bus, logger)
    await container.initialize()
    yield container
    await container.shutdown()
    await event_bus.drain()


# ============================================================================
# LEDGER FACTORIES
# ============================================================================


def stamp(date_key: str, clock: str) -> str:
    """ISO timestamp for a wall-clock time on a day in the scoring zone."""
    day = parse_date_key(date_key)
    hour, minute, second = (int(p) for p in clock.split(":"))
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=LA).isoformat()


def entry(date_key: str, post: Post) -> Dict[str, Any]:
    user_id, username, clock = post
    return {
        "user_id": user_id,
        "username": username,
        "timestamp": stamp(date_key, clock),
        "message_id": f"{user_id}{clock.replace(':', '')}",
    }


@pytest.fixture
def make_day():
    """
    Build a DayView.

    Usage:
        day = make_day("06-02-2025", [("1", "ann", "07:00:00")], last=("2", "bo", "23:10:00"))
    """

    def _make(
        date_key: str,
        firsts: Iterable[Post] = (),
        last: Optional[Post] = None,
        second_last: Optional[Post] = None,
    ) -> DayView:
        return DayView(
            date_key=date_key,
            first_messages=tuple(entry(date_key, p) for p in firsts),
            last_message=entry(date_key, last) if last else None,
            second_last_message=entry(date_key, second_last) if second_last else None,
        )

    return _make


@pytest.fixture
def make_message():
    """Build a ChannelMessage as the gateway would."""

    def _make(
        user_id: str, username: str, date_key: str, clock: str, is_bot: bool = False
    ) -> ChannelMessage:
        return ChannelMessage(
            author_id=user_id,
            author_username=username,
            is_bot=is_bot,
            timestamp=datetime.fromisoformat(stamp(date_key, clock)),
            message_id=f"{user_id}{date_key.replace('-', '')}{clock.replace(':', '')}",
        )

    return _make


def history_fetcher(messages: Sequence[ChannelMessage]):
    """A fetch_recent_messages stand-in returning `messages` newest first."""

    async def fetch(channel_id, limit):
        ordered = sorted(messages, key=lambda m: m.timestamp, reverse=True)
        return ordered[:limit]

    return fetch


def failing_fetcher(exc: Exception):
    async def fetch(channel_id, limit):
        raise exc

    return fetch


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock()
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_bot(mocker):
    """
    Mock Discord bot for cog testing.

    Scope: function
    """
    mock_bot = mocker.MagicMock()
    mock_bot.user = mocker.MagicMock()
    mock_bot.user.id = 123456789
    mock_bot.user.name = "TestBot"
    return mock_bot
