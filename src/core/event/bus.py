"""
EventBus: async pub/sub with tiered listener execution.

Purpose
-------
Decouple the scoring engine from its outbound collaborators. Services publish
plain-dict events (`flair.granted`, `scoring.day_processed`,
`ledger.first_message_recorded`); the Discord layer subscribes and turns them
into role grants and announcements.

Responsibilities
----------------
- Register/unregister listeners per event name (plus `"prefix.*"` wildcards)
- Execute listeners by priority tier:
  * CRITICAL / HIGH: sequential, awaited with timeout
  * NORMAL: concurrent (gather), awaited
  * LOW: fire-and-forget background tasks
- Error isolation: one failing listener never blocks the others, and never
  propagates back into the publishing service

Design Decisions
----------------
- Instance-based so tests can build a private bus; `src.core.event.event_bus`
  is the process-wide instance.
- Sync callbacks are supported and run inline.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Optional

from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("flair.granted", on_flair_granted, priority=ListenerPriority.HIGH)
    >>> await bus.publish("flair.granted", {"user_id": "123", "tier_name": "50 Points"})
    """

    def __init__(self, *, listener_timeout_seconds: float = 10.0) -> None:
        self._listeners: dict[str, list[EventListener]] = {}
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._timeout = listener_timeout_seconds
        self.errors_by_event: dict[str, int] = {}

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = [
            p
            for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
        if len(params) != 1:
            name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
    ) -> str:
        """
        Subscribe a callback to an event or wildcard pattern.

        Returns the listener identifier. Subscribing the same identifier
        twice for one event is ignored.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
        )

        bucket = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        bucket.sort(key=lambda item: item.priority.value)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        bucket = self._listeners.get(event_name, [])
        remaining = [item for item in bucket if item.identifier != identifier]
        self._listeners[event_name] = remaining
        return len(remaining) != len(bucket)

    def clear(self) -> None:
        total = sum(len(bucket) for bucket in self._listeners.values())
        self._listeners.clear()
        logger.info("EventBus: cleared all listeners", extra={"previous_listener_count": total})

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is not None:
            return len(self._matching_listeners(event_name))
        return sum(len(bucket) for bucket in self._listeners.values())

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def _matching_listeners(self, event_name: str) -> list[EventListener]:
        matched: list[EventListener] = list(self._listeners.get(event_name, []))
        for pattern, bucket in self._listeners.items():
            if pattern.endswith(".*") and event_name.startswith(pattern[:-1]):
                matched.extend(bucket)
        matched.sort(key=lambda item: item.priority.value)
        return matched

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all subscribed listeners.

        Returns results from CRITICAL/HIGH/NORMAL listeners; failed listeners
        contribute `None`. LOW listeners are not awaited.
        """
        listeners = self._matching_listeners(event_name)

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )

        if not listeners:
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority in (ListenerPriority.CRITICAL, ListenerPriority.HIGH):
                results.append(
                    await self._run_listener(event_name, listener, data, timeout=self._timeout)
                )

        normal = [item for item in listeners if item.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *(self._run_listener(event_name, item, data) for item in normal)
                )
            )

        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                task = asyncio.get_running_loop().create_task(
                    self._run_listener(event_name, listener, data)
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_listener(
        self,
        event_name: str,
        listener: EventListener,
        data: EventPayload,
        timeout: Optional[float] = None,
    ) -> Any:
        try:
            outcome = listener.callback(data)
            if inspect.isawaitable(outcome):
                if timeout is not None:
                    return await asyncio.wait_for(outcome, timeout=timeout)
                return await outcome
            return outcome

        except asyncio.TimeoutError:
            self.errors_by_event[event_name] = self.errors_by_event.get(event_name, 0) + 1
            logger.error(
                "EventBus: listener timed out",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "timeout_seconds": timeout,
                },
            )
            return None

        except Exception as exc:
            self.errors_by_event[event_name] = self.errors_by_event.get(event_name, 0) + 1
            logger.error(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    async def drain(self) -> None:
        """Wait for outstanding LOW-priority background listeners."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
