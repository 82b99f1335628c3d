"""Long-running producers: pod watches and container log tails.

The kubernetes client is synchronous, so each blocking ``next()`` on the
upstream iterator runs on a per-stream daemon thread while the coroutine
awaits it. Items are emitted one at a time, in the order the server produced them.

A producer stops when the upstream stream ends, when the sink reports
that its consumer is gone, or when it is cancelled. Cancellation returns at
once: the upstream source is stopped in ``finally`` and the reader thread
exits after its pending read, without holding up loop shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import queue
import threading
from collections.abc import Callable, Iterator
from typing import Any

from kubelens.models import ResourceEvent, ResourceEventType
from kubelens.resources import ALL_NAMESPACES, summarize
from kubelens.streams.bridge import DeliveryError, EventSink

logger = logging.getLogger(__name__)

POD_EVENT = "pod_event"

_WATCH_TYPES = {
    "ADDED": ResourceEventType.ADDED,
    "MODIFIED": ResourceEventType.MODIFIED,
    "DELETED": ResourceEventType.DELETED,
}

_END = object()

READER_THREAD_NAME = "kubelens-stream-reader"


def log_event_name(stream_id: str) -> str:
    return f"container_logs_{stream_id}"


class _BlockingReader:
    """Advances a blocking iterator on its own daemon thread.

    One item is read per ``next()`` request, so the reader never runs
    ahead of the consumer. The thread is not part of any executor: a
    cancelled stream leaves no pool worker behind, and an idle upstream
    does not hold up loop or interpreter shutdown.
    """

    def __init__(self, source: Iterator[Any], name: str) -> None:
        self._source = source
        self._requests: queue.SimpleQueue[asyncio.Future[Any] | None] = queue.SimpleQueue()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    async def next(self) -> Any:
        future = asyncio.get_running_loop().create_future()
        self._requests.put(future)
        return await future

    def close(self) -> None:
        """Ask the thread to exit once its pending read returns."""
        self._requests.put(None)

    def _run(self) -> None:
        while True:
            future = self._requests.get()
            if future is None:
                return
            try:
                item = next(self._source, _END)
            except Exception as exc:
                self._deliver(future, exc=exc)
                return
            self._deliver(future, item)
            if item is _END:
                return

    @staticmethod
    def _deliver(
        future: asyncio.Future[Any], item: Any = None, exc: Exception | None = None,
    ) -> None:
        def _set() -> None:
            if future.done():
                return
            if exc is not None:
                future.set_exception(exc)
            else:
                future.set_result(item)

        try:
            future.get_loop().call_soon_threadsafe(_set)
        except RuntimeError:
            # Loop already closed; nobody is waiting for this item.
            logger.debug("Dropping stream item after loop shutdown")


async def _pump(source: Iterator[Any], handle: Callable[[Any], None]) -> None:
    """Feed items from a blocking iterator to *handle* until exhausted."""
    reader = _BlockingReader(source, name=READER_THREAD_NAME)
    try:
        while True:
            item = await reader.next()
            if item is _END:
                return
            handle(item)
    finally:
        reader.close()


def to_resource_event(raw: dict[str, Any]) -> ResourceEvent | None:
    """Map a raw watch event; ``None`` for ERROR/BOOKMARK and unknown types."""
    event_type = _WATCH_TYPES.get(raw.get("type", ""))
    if event_type is None:
        return None
    return ResourceEvent(type=event_type, payload=summarize(raw.get("object")))


async def run_pod_watch(api_client: Any, namespace: str, sink: EventSink) -> None:
    """Watch pods in *namespace* (or every namespace for ``"all"``)."""
    from kubernetes import client, watch

    core = client.CoreV1Api(api_client)
    w = watch.Watch()
    if namespace == ALL_NAMESPACES:
        source = w.stream(core.list_pod_for_all_namespaces)
    else:
        source = w.stream(core.list_namespaced_pod, namespace=namespace)

    def _handle(raw: dict[str, Any]) -> None:
        event = to_resource_event(raw)
        if event is None:
            logger.debug("Ignoring %s watch event", raw.get("type"))
            return
        sink.emit(POD_EVENT, event.model_dump(mode="json"))

    try:
        await _pump(source, _handle)
        logger.debug("Pod watch for %s ended", namespace)
    except DeliveryError as exc:
        logger.debug("Stopping pod watch for %s: %s", namespace, exc)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("Pod watch for %s failed: %s", namespace, exc)
    finally:
        w.stop()


async def run_log_tail(
    api_client: Any,
    namespace: str,
    pod: str,
    container: str,
    stream_id: str,
    sink: EventSink,
    tail_lines: int = 1000,
) -> None:
    """Follow a container's log, emitting one event per line."""
    from kubernetes import client

    core = client.CoreV1Api(api_client)
    event_name = log_event_name(stream_id)
    try:
        response = await asyncio.to_thread(
            core.read_namespaced_pod_log,
            name=pod,
            namespace=namespace,
            container=container,
            follow=True,
            tail_lines=tail_lines,
            _preload_content=False,
        )
    except Exception as exc:
        logger.warning("Failed to open log stream %s: %s", stream_id, exc)
        return

    def _handle(raw: bytes) -> None:
        sink.emit(event_name, raw.decode("utf-8", errors="replace").rstrip("\r\n"))

    try:
        await _pump(iter(response.readline, b""), _handle)
        logger.debug("Log stream %s ended", stream_id)
    except DeliveryError as exc:
        logger.debug("Stopping log stream %s: %s", stream_id, exc)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("Error reading log stream %s: %s", stream_id, exc)
    finally:
        with contextlib.suppress(Exception):
            response.close()
        with contextlib.suppress(Exception):
            response.release_conn()
