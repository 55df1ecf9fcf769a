"""
Core event types for the EventBus.

- EventPayload: plain dict, JSON-serializable by convention
- ListenerPriority: execution tier; lower value runs earlier
- CallbackType: sync or async callable taking one payload
- EventListener: immutable registration record
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """
    Priority levels for event listeners.

    CRITICAL / HIGH: sequential, awaited, timeout-protected.
    NORMAL: concurrent (asyncio.gather), awaited.
    LOW: fire-and-forget background tasks.
    """

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(slots=True, frozen=True)
class EventListener:
    callback: CallbackType
    priority: ListenerPriority
    identifier: str

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
    ) -> "EventListener":
        if identifier is None:
            qualname = getattr(callback, "__qualname__", None) or repr(callback)
            module = getattr(callback, "__module__", "unknown")
            identifier = f"{module}.{qualname}@{event_name}"
        return cls(callback=callback, priority=priority, identifier=identifier)
