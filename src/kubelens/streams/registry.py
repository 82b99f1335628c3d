"""At-most-one background task per stream key.

Subscribing under a key that already has a task cancels the old task
(without waiting for it) and installs the new one. Every task removes its
own entry when it finishes, however it finishes.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)

StreamFactory = Callable[[], Coroutine[Any, Any, None]]


def pod_watch_key(cluster_id: str, namespace: str) -> str:
    return f"pod_watch:{cluster_id}:{namespace}"


def log_stream_key(stream_id: str) -> str:
    return f"logs:{stream_id}"


class StreamRegistry:
    """Maps stream keys to their running ``asyncio.Task``.

    The map lock is held only for the mutation itself, never across an
    await.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._lock = threading.Lock()

    def subscribe(self, key: str, factory: StreamFactory) -> asyncio.Task[None]:
        """Start ``factory()`` under *key*, replacing any task already there.

        The replaced task is sent ``cancel()`` and is not awaited: it may
        still be unwinding when this returns.
        """
        with self._lock:
            previous = self._tasks.pop(key, None)
        if previous is not None and not previous.done():
            logger.debug("Replacing stream %s", key)
            previous.cancel()

        task = asyncio.get_running_loop().create_task(factory(), name=key)
        with self._lock:
            self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._discard(k, t))
        logger.debug("Subscribed stream %s", key)
        return task

    def _discard(self, key: str, task: asyncio.Task[None]) -> None:
        with self._lock:
            # A replaced task finishing late must not evict its successor.
            if self._tasks.get(key) is task:
                del self._tasks[key]
        if task.cancelled():
            logger.debug("Stream %s cancelled", key)
        elif task.exception() is not None:
            logger.warning("Stream %s failed: %s", key, task.exception())
        else:
            logger.debug("Stream %s ended", key)

    def get(self, key: str) -> asyncio.Task[None] | None:
        with self._lock:
            return self._tasks.get(key)

    def is_active(self, key: str) -> bool:
        task = self.get(key)
        return task is not None and not task.done()

    def active_keys(self) -> list[str]:
        with self._lock:
            return sorted(k for k, t in self._tasks.items() if not t.done())

    def cancel_all(self) -> None:
        """Cancel every task (shutdown only)."""
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.cancel()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
