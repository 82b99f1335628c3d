"""Tests for pod watch and log tail producers, with fake upstream sources."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from kubelens.models import ResourceEventType
from kubelens.streams.bridge import CallbackEventSink, QueueEventSink
from kubelens.streams.watchers import (
    POD_EVENT,
    READER_THREAD_NAME,
    log_event_name,
    run_log_tail,
    run_pod_watch,
    to_resource_event,
)

# --- Helpers ---


@contextmanager
def _mock_kubernetes_modules():
    """Inject a mock ``kubernetes`` package; yields (client, watch) mocks."""
    mock_k8s = MagicMock()
    modules = {
        "kubernetes": mock_k8s,
        "kubernetes.client": mock_k8s.client,
        "kubernetes.watch": mock_k8s.watch,
    }
    with patch.dict(sys.modules, modules):
        yield mock_k8s.client, mock_k8s.watch


def _pod(name: str, phase: str = "Running", namespace: str = "default") -> SimpleNamespace:
    return SimpleNamespace(
        metadata=SimpleNamespace(
            uid=f"uid-{name}",
            name=name,
            namespace=namespace,
            labels={"app": name},
            creation_timestamp=datetime(2024, 1, 1, tzinfo=UTC),
            deletion_timestamp=None,
        ),
        status=SimpleNamespace(phase=phase),
        spec=SimpleNamespace(containers=[SimpleNamespace(image=f"{name}:1.0")]),
    )


class _ApiException(Exception):
    def __init__(self, status: int, reason: str) -> None:
        super().__init__(f"({status}) {reason}")
        self.status = status
        self.reason = reason


_ApiException.__name__ = "ApiException"


# --- Event mapping ---


class TestToResourceEvent:
    @pytest.mark.parametrize(
        ("raw_type", "expected"),
        [
            ("ADDED", ResourceEventType.ADDED),
            ("MODIFIED", ResourceEventType.MODIFIED),
            ("DELETED", ResourceEventType.DELETED),
        ],
    )
    def test_known_types(self, raw_type: str, expected: ResourceEventType):
        event = to_resource_event({"type": raw_type, "object": _pod("web")})
        assert event.type == expected
        assert event.payload.name == "web"
        assert event.payload.images == ["web:1.0"]

    @pytest.mark.parametrize("raw_type", ["ERROR", "BOOKMARK", "SOMETHING"])
    def test_other_types_skipped(self, raw_type: str):
        assert to_resource_event({"type": raw_type, "object": {}}) is None

    def test_serialized_shape(self):
        event = to_resource_event({"type": "ADDED", "object": _pod("web")})
        dumped = event.model_dump(mode="json")
        assert dumped["type"] == "Added"
        assert dumped["payload"]["status"] == "Running"


# --- run_pod_watch ---


class TestRunPodWatch:
    def test_emits_events_in_order(self):
        sink = QueueEventSink()
        events = [
            {"type": "ADDED", "object": _pod("a")},
            {"type": "BOOKMARK", "object": {}},
            {"type": "MODIFIED", "object": _pod("a", "Succeeded")},
            {"type": "DELETED", "object": _pod("a")},
        ]
        with _mock_kubernetes_modules() as (mock_client, mock_watch):
            w = mock_watch.Watch.return_value
            w.stream.return_value = iter(events)

            async def scenario():
                await run_pod_watch(MagicMock(), "default", sink)
                return sink.drain()

            emitted = asyncio.run(scenario())

        assert [e for e, _ in emitted] == [POD_EVENT] * 3
        assert [p["type"] for _, p in emitted] == ["Added", "Modified", "Deleted"]
        assert emitted[1][1]["payload"]["status"] == "Succeeded"
        core = mock_client.CoreV1Api.return_value
        w.stream.assert_called_once_with(core.list_namespaced_pod, namespace="default")
        w.stop.assert_called_once()

    def test_all_namespaces(self):
        with _mock_kubernetes_modules() as (mock_client, mock_watch):
            w = mock_watch.Watch.return_value
            w.stream.return_value = iter([])
            asyncio.run(run_pod_watch(MagicMock(), "all", QueueEventSink()))
        core = mock_client.CoreV1Api.return_value
        w.stream.assert_called_once_with(core.list_pod_for_all_namespaces)

    def test_delivery_failure_stops_watch(self):
        consumed: list[int] = []

        def source() -> Iterator[dict[str, Any]]:
            for i in range(5):
                consumed.append(i)
                yield {"type": "ADDED", "object": _pod(f"p{i}")}

        def closed_after_one(event: str, payload: Any) -> None:
            if len(consumed) > 1:
                raise RuntimeError("window closed")

        with _mock_kubernetes_modules() as (_, mock_watch):
            w = mock_watch.Watch.return_value
            w.stream.return_value = source()
            asyncio.run(run_pod_watch(MagicMock(), "default", CallbackEventSink(closed_after_one)))

        assert consumed == [0, 1]
        w.stop.assert_called_once()

    def test_upstream_error_logged_and_ends(self, caplog: pytest.LogCaptureFixture):
        def source() -> Iterator[dict[str, Any]]:
            yield {"type": "ADDED", "object": _pod("a")}
            raise _ApiException(403, "Forbidden")

        sink = QueueEventSink()
        with _mock_kubernetes_modules() as (_, mock_watch):
            w = mock_watch.Watch.return_value
            w.stream.return_value = source()
            with caplog.at_level(logging.WARNING, logger="kubelens.streams.watchers"):
                asyncio.run(run_pod_watch(MagicMock(), "default", sink))

        assert len(sink.drain()) == 1
        assert "Forbidden" in caplog.text
        w.stop.assert_called_once()

    def test_cancel_stops_watch(self):
        release = threading.Event()

        def source() -> Iterator[dict[str, Any]]:
            yield {"type": "ADDED", "object": _pod("a")}
            release.wait(timeout=5)

        sink = QueueEventSink()
        with _mock_kubernetes_modules() as (_, mock_watch):
            w = mock_watch.Watch.return_value
            w.stream.return_value = source()

            async def scenario():
                task = asyncio.create_task(run_pod_watch(MagicMock(), "default", sink))
                await sink.get()
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                cancelled = task.cancelled()
                # Let the reader thread finish its pending read.
                release.set()
                return cancelled

            assert asyncio.run(scenario())
        w.stop.assert_called_once()

    def test_cancel_idle_watch_returns_promptly(self):
        release = threading.Event()
        started = threading.Event()

        def source() -> Iterator[dict[str, Any]]:
            started.set()
            release.wait(timeout=3)
            yield {"type": "ADDED", "object": _pod("late")}

        sink = QueueEventSink()
        with _mock_kubernetes_modules() as (_, mock_watch):
            w = mock_watch.Watch.return_value
            w.stream.return_value = source()

            async def scenario():
                task = asyncio.create_task(run_pod_watch(MagicMock(), "default", sink))
                await asyncio.sleep(0.2)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

            begin = time.monotonic()
            try:
                asyncio.run(scenario())
                elapsed = time.monotonic() - begin
            finally:
                release.set()

        assert started.is_set()
        assert elapsed < 1.5
        assert sink.drain() == []
        w.stop.assert_called_once()

    def test_reader_thread_is_daemon(self):
        release = threading.Event()
        seen: list[threading.Thread] = []

        def source() -> Iterator[dict[str, Any]]:
            seen.append(threading.current_thread())
            release.wait(timeout=3)
            yield from ()

        with _mock_kubernetes_modules() as (_, mock_watch):
            mock_watch.Watch.return_value.stream.return_value = source()

            async def scenario():
                task = asyncio.create_task(run_pod_watch(MagicMock(), "all", QueueEventSink()))
                await asyncio.sleep(0.1)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

            try:
                asyncio.run(scenario())
            finally:
                release.set()

        assert len(seen) == 1
        assert seen[0].daemon
        assert seen[0].name == READER_THREAD_NAME
        seen[0].join(timeout=5)
        assert not seen[0].is_alive()


# --- run_log_tail ---


class TestRunLogTail:
    def test_emits_lines_without_newlines(self):
        sink = QueueEventSink()
        response = MagicMock()
        response.readline.side_effect = [b"first\n", b"second\r\n", "café\n".encode(), b""]
        with _mock_kubernetes_modules() as (mock_client, _):
            core = mock_client.CoreV1Api.return_value
            core.read_namespaced_pod_log.return_value = response

            async def scenario():
                await run_log_tail(MagicMock(), "ns", "web-0", "app", "s1", sink, tail_lines=10)
                return sink.drain()

            emitted = asyncio.run(scenario())

        assert emitted == [
            ("container_logs_s1", "first"),
            ("container_logs_s1", "second"),
            ("container_logs_s1", "café"),
        ]
        core.read_namespaced_pod_log.assert_called_once_with(
            name="web-0",
            namespace="ns",
            container="app",
            follow=True,
            tail_lines=10,
            _preload_content=False,
        )
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_invalid_utf8_replaced(self):
        sink = QueueEventSink()
        response = MagicMock()
        response.readline.side_effect = [b"bad \xff byte\n", b""]
        with _mock_kubernetes_modules() as (mock_client, _):
            mock_client.CoreV1Api.return_value.read_namespaced_pod_log.return_value = response

            async def scenario():
                await run_log_tail(MagicMock(), "ns", "p", "c", "s", sink)
                return sink.drain()

            emitted = asyncio.run(scenario())
        assert emitted == [("container_logs_s", "bad � byte")]

    def test_open_failure_emits_nothing(self, caplog: pytest.LogCaptureFixture):
        sink = QueueEventSink()
        with _mock_kubernetes_modules() as (mock_client, _):
            core = mock_client.CoreV1Api.return_value
            core.read_namespaced_pod_log.side_effect = _ApiException(404, "Not Found")
            with caplog.at_level(logging.WARNING, logger="kubelens.streams.watchers"):
                asyncio.run(run_log_tail(MagicMock(), "ns", "gone", "c", "s", sink))
        assert sink.drain() == []
        assert "Not Found" in caplog.text

    def test_delivery_failure_releases_response(self):
        response = MagicMock()
        response.readline.side_effect = [b"a\n", b"b\n", b""]
        sink = QueueEventSink()
        sink.close()
        with _mock_kubernetes_modules() as (mock_client, _):
            mock_client.CoreV1Api.return_value.read_namespaced_pod_log.return_value = response
            asyncio.run(run_log_tail(MagicMock(), "ns", "p", "c", "s", sink))
        assert response.readline.call_count == 1
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_log_event_name(self):
        assert log_event_name("abc") == "container_logs_abc"
