"""Long-running watches and log tails, keyed so each key has at most one task."""

from __future__ import annotations

from kubelens.streams.bridge import (
    CallbackEventSink,
    DeliveryError,
    EventSink,
    QueueEventSink,
)
from kubelens.streams.registry import StreamRegistry, log_stream_key, pod_watch_key
from kubelens.streams.service import StreamService
from kubelens.streams.watchers import POD_EVENT, log_event_name

__all__ = [
    "POD_EVENT",
    "CallbackEventSink",
    "DeliveryError",
    "EventSink",
    "QueueEventSink",
    "StreamRegistry",
    "StreamService",
    "log_event_name",
    "log_stream_key",
    "pod_watch_key",
]
