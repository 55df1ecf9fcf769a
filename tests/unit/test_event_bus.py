"""
Unit Tests for EventBus
=======================

Test Coverage
-------------
- Subscription, duplicate prevention and unsubscribe
- Callback signature validation
- Priority ordering and wildcard patterns
- Listener failure isolation and error counters
- LOW-priority background listeners
"""

import asyncio

import pytest

from src.core.event.bus import EventBus
from src.core.event.types import ListenerPriority


@pytest.mark.unit
class TestSubscription:
    """Listener registration."""

    def test_duplicate_identifier_is_ignored(self, event_bus):
        async def listener(payload):
            return None

        first = event_bus.subscribe("flair.granted", listener, identifier="x")
        second = event_bus.subscribe("flair.granted", listener, identifier="x")

        assert first == second == "x"
        assert event_bus.get_listener_count("flair.granted") == 1

    def test_callback_must_take_one_parameter(self, event_bus):
        async def no_args():
            return None

        def two_args(payload, extra):
            return None

        with pytest.raises(ValueError):
            event_bus.subscribe("flair.granted", no_args)
        with pytest.raises(ValueError):
            event_bus.subscribe("flair.granted", two_args)

    def test_unsubscribe(self, event_bus):
        event_bus.subscribe("leaderboard.updated", lambda payload: None, identifier="a")

        assert event_bus.unsubscribe("leaderboard.updated", "a") is True
        assert event_bus.unsubscribe("leaderboard.updated", "a") is False
        assert event_bus.get_listener_count() == 0

    def test_clear_removes_everything(self, event_bus):
        event_bus.subscribe("a.one", lambda payload: None)
        event_bus.subscribe("b.two", lambda payload: None)

        event_bus.clear()

        assert event_bus.get_listener_count() == 0


@pytest.mark.unit
class TestPublish:
    """Dispatch order and isolation."""

    async def test_priority_order(self, event_bus):
        # Arrange
        calls = []

        async def normal(payload):
            calls.append("normal")

        async def critical(payload):
            calls.append("critical")

        async def high(payload):
            calls.append("high")

        event_bus.subscribe("scoring.day_completed", normal)
        event_bus.subscribe("scoring.day_completed", high, priority=ListenerPriority.HIGH)
        event_bus.subscribe("scoring.day_completed", critical, priority=ListenerPriority.CRITICAL)

        # Act
        await event_bus.publish("scoring.day_completed", {"server_id": "1"})

        # Assert
        assert calls == ["critical", "high", "normal"]

    async def test_wildcard_subscription(self, event_bus):
        seen = []
        event_bus.subscribe("ledger.*", lambda payload: seen.append(payload["n"]))

        await event_bus.publish("ledger.first_message_recorded", {"n": 1})
        await event_bus.publish("leaderboard.updated", {"n": 2})

        assert seen == [1]

    async def test_failing_listener_does_not_block_others(self, event_bus):
        # Arrange
        delivered = []

        async def broken(payload):
            raise RuntimeError("discord is down")

        async def healthy(payload):
            delivered.append(payload["user_id"])
            return "ok"

        event_bus.subscribe("flair.granted", broken, priority=ListenerPriority.HIGH)
        event_bus.subscribe("flair.granted", healthy)

        # Act
        results = await event_bus.publish("flair.granted", {"user_id": "42"})

        # Assert
        assert results == [None, "ok"]
        assert delivered == ["42"]
        assert event_bus.errors_by_event["flair.granted"] == 1

    async def test_high_priority_listener_times_out(self):
        bus = EventBus(listener_timeout_seconds=0.01)

        async def slow(payload):
            await asyncio.sleep(1)

        bus.subscribe("flair.granted", slow, priority=ListenerPriority.HIGH)

        assert await bus.publish("flair.granted", {}) == [None]
        assert bus.errors_by_event["flair.granted"] == 1

    async def test_low_priority_runs_in_background(self, event_bus):
        seen = []

        async def background(payload):
            seen.append(payload["x"])

        event_bus.subscribe("leaderboard.updated", background, priority=ListenerPriority.LOW)

        results = await event_bus.publish("leaderboard.updated", {"x": 1})
        await event_bus.drain()

        assert results == []
        assert seen == [1]

    async def test_publish_without_listeners(self, event_bus):
        assert await event_bus.publish("nobody.listens", {}) == []
