"""Starts pod watches and log tails under their stream keys."""

from __future__ import annotations

import logging

from kubelens.client.factory import ClientFactory
from kubelens.streams.bridge import EventSink
from kubelens.streams.registry import StreamRegistry, log_stream_key, pod_watch_key
from kubelens.streams.watchers import run_log_tail, run_pod_watch

logger = logging.getLogger(__name__)


class StreamService:
    """Builds the cluster client, then hands the producer to the registry.

    The client is built before subscribing, so credential and connection
    errors reach the caller instead of dying inside a background task.
    """

    def __init__(
        self,
        factory: ClientFactory,
        streams: StreamRegistry,
        sink: EventSink,
        *,
        log_tail_lines: int = 1000,
    ) -> None:
        self._factory = factory
        self._streams = streams
        self._sink = sink
        self._log_tail_lines = log_tail_lines

    @property
    def streams(self) -> StreamRegistry:
        return self._streams

    async def start_pod_watch(self, cluster_id: str, namespace: str) -> str:
        api_client = await self._factory.for_cluster(cluster_id)
        key = pod_watch_key(cluster_id, namespace)
        self._streams.subscribe(
            key, lambda: run_pod_watch(api_client, namespace, self._sink),
        )
        logger.info("Started pod watch %s", key)
        return key

    async def stream_container_logs(
        self,
        cluster_id: str,
        namespace: str,
        pod: str,
        container: str,
        stream_id: str,
    ) -> str:
        api_client = await self._factory.for_cluster(cluster_id)
        key = log_stream_key(stream_id)
        self._streams.subscribe(
            key,
            lambda: run_log_tail(
                api_client, namespace, pod, container, stream_id, self._sink,
                tail_lines=self._log_tail_lines,
            ),
        )
        logger.info("Started log stream %s for %s/%s/%s", key, namespace, pod, container)
        return key
