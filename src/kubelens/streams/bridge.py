"""Event bridge: delivers stream output to the presentation layer.

A sink raises ``DeliveryError`` once its consumer is gone; producing
tasks treat that as their signal to stop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


class DeliveryError(Exception):
    """Raised when an event cannot be delivered (consumer gone)."""


@runtime_checkable
class EventSink(Protocol):
    """Protocol for event consumers."""

    def emit(self, event: str, payload: Any) -> None: ...


class QueueEventSink:
    """Buffers ``(event, payload)`` pairs on an ``asyncio.Queue``.

    Must be used from the event loop thread. After ``close()`` every emit
    raises ``DeliveryError``.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: str, payload: Any) -> None:
        if self._closed:
            raise DeliveryError(f"Consumer closed; dropped {event}")
        try:
            self._queue.put_nowait((event, payload))
        except asyncio.QueueFull as exc:
            raise DeliveryError(f"Consumer queue full; dropped {event}") from exc

    async def get(self) -> tuple[str, Any]:
        return await self._queue.get()

    def get_nowait(self) -> tuple[str, Any]:
        return self._queue.get_nowait()

    def drain(self) -> list[tuple[str, Any]]:
        items: list[tuple[str, Any]] = []
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
        return items

    def close(self) -> None:
        self._closed = True


class CallbackEventSink:
    """Forwards events to a callable; any exception means the consumer is gone."""

    def __init__(self, callback: Callable[[str, Any], None]) -> None:
        self._callback = callback

    def emit(self, event: str, payload: Any) -> None:
        try:
            self._callback(event, payload)
        except Exception as exc:
            raise DeliveryError(f"Failed to emit {event}: {exc}") from exc
