"""KubeLens command facade: the single entry point for a presentation layer.

Wires the registry, credential handling, client factory and stream
registry together. Every public command returns a ``CommandResult``:
known failures become ``success=False`` with a human-readable message
instead of propagating.

Usage::

    from kubelens import KubeLens, load_config

    lens = KubeLens(load_config())
    result = lens.list_clusters()
    if result.success:
        for cluster in result.data:
            print(cluster.name)
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable, Coroutine, Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from kubelens.client.factory import ClientFactory, ClientFactoryError
from kubelens.config import KubeLensConfig, init_directories
from kubelens.credentials.bundle import KubeconfigError
from kubelens.credentials.discovery import (
    discover_contexts_in_file,
    discover_contexts_in_folder,
    to_import_candidates,
)
from kubelens.credentials.importer import import_context
from kubelens.credentials.migration import migrate_legacy_configs
from kubelens.credentials.paths import remove_managed_file, validate_managed_path
from kubelens.fswatch import KubeconfigDirWatcher
from kubelens.models import ClusterPatch, CommandResult
from kubelens.registry import open_registry
from kubelens.registry.store import RegistryError
from kubelens.resources import (
    ResourceError,
    delete_resource,
    list_namespaces,
    list_resources,
)
from kubelens.streams.bridge import DeliveryError, EventSink, QueueEventSink
from kubelens.streams.registry import StreamRegistry
from kubelens.streams.service import StreamService
from kubelens.validation import InputValidationError

logger = logging.getLogger(__name__)

# Failures a command reports instead of raising.
COMMAND_ERRORS: tuple[type[Exception], ...] = (
    InputValidationError,
    RegistryError,
    KubeconfigError,
    ClientFactoryError,
    ResourceError,
    DeliveryError,
)


class CleanupWarning(UserWarning):
    """Emitted when a deleted cluster's credential file cannot be removed."""


def _fail(exc: Exception) -> CommandResult:
    if isinstance(exc, ValidationError):
        messages = [err["msg"] for err in exc.errors()]
        return CommandResult.fail("; ".join(messages))
    return CommandResult.fail(str(exc))


class KubeLens:
    """Public API for kubelens.

    Opens the registry database (running migrations), creates the
    managed kubeconfig directory, and exposes the cluster, import,
    resource and streaming commands.
    """

    def __init__(
        self,
        config: KubeLensConfig,
        *,
        sink: EventSink | None = None,
        env: dict[str, str] | None = None,
        home: str | Path | None = None,
    ) -> None:
        """Initialize KubeLens.

        Args:
            config: Resolved settings (see ``load_config()``).
            sink: Receiver for watch and log events. Defaults to an
                unbounded ``QueueEventSink``.
            env: Environment used to locate ``$KUBECONFIG`` on the legacy
                context path (default: ``os.environ``).
            home: Home directory used to locate ``~/.kube/config``.
        """
        self._config = config
        init_directories(config)
        self._registry = open_registry(config.db_path, lock_timeout=config.lock_timeout)
        self._factory = ClientFactory(
            self._registry, config.kubeconfigs_dir, env=env, home=home,
        )
        self._sink: EventSink = sink if sink is not None else QueueEventSink()
        self._streams = StreamRegistry()
        self._stream_service = StreamService(
            self._factory,
            self._streams,
            self._sink,
            log_tail_lines=config.log_tail_lines,
        )

    @property
    def config(self) -> KubeLensConfig:
        return self._config

    @property
    def sink(self) -> EventSink:
        return self._sink

    @property
    def streams(self) -> StreamRegistry:
        return self._streams

    def close(self) -> None:
        """Cancel running streams and release the database and executor."""
        self._streams.cancel_all()
        self._factory.close()
        self._registry.close()

    def __enter__(self) -> KubeLens:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> CommandResult:
        try:
            return CommandResult.ok(fn(*args, **kwargs))
        except (*COMMAND_ERRORS, ValidationError) as exc:
            logger.debug("%s failed: %s", getattr(fn, "__name__", fn), exc)
            return _fail(exc)

    async def _run_async(self, coro: Coroutine[Any, Any, Any]) -> CommandResult:
        try:
            return CommandResult.ok(await coro)
        except (*COMMAND_ERRORS, ValidationError) as exc:
            logger.debug("Async command failed: %s", exc)
            return _fail(exc)

    # ------------------------------------------------------------------
    # Cluster registry
    # ------------------------------------------------------------------

    def add_cluster(
        self,
        name: str,
        context_name: str,
        config_path: str | Path,
        icon: str | None = None,
        description: str | None = None,
        tags: Iterable[str] = (),
    ) -> CommandResult:
        """Register a kubeconfig that already lives in the managed directory.

        Files elsewhere are refused; bring those in with ``import_cluster``.
        """

        def _add() -> Any:
            path = validate_managed_path(config_path, self._config.kubeconfigs_dir)
            return self._registry.add(
                name,
                context_name,
                path,
                icon=icon,
                description=description,
                tags=tags,
            )

        return self._run(_add)

    def list_clusters(self) -> CommandResult:
        return self._run(self._registry.list)

    def get_cluster(self, cluster_id: str) -> CommandResult:
        """Data is ``None`` when no cluster has this id."""
        return self._run(self._registry.get, cluster_id)

    def update_cluster(self, cluster_id: str, **fields: Any) -> CommandResult:
        """Apply a partial update.

        Only the keyword arguments actually passed are written; passing
        ``icon=None`` or ``description=None`` clears that field. Data is
        the updated cluster, or ``None`` if the id is unknown.
        """

        def _update() -> Any:
            patch = ClusterPatch.model_validate(fields)
            return self._registry.update(cluster_id, patch)

        return self._run(_update)

    def touch_cluster(self, cluster_id: str) -> CommandResult:
        return self._run(self._registry.touch, cluster_id)

    def delete_cluster(self, cluster_id: str) -> CommandResult:
        """Remove a cluster and its isolated kubeconfig.

        Data is ``True`` if a cluster was removed. The row is removed even
        when its credential file cannot be.
        """
        return self._run(self._delete_cluster, cluster_id)

    def _delete_cluster(self, cluster_id: str) -> bool:
        cluster = self._registry.get(cluster_id)
        if cluster is None:
            return False
        removed = self._registry.delete(cluster_id)
        try:
            remove_managed_file(cluster.config_path, self._config.kubeconfigs_dir)
        except KubeconfigError as exc:
            warnings.warn(
                f"Could not remove credentials for cluster {cluster_id}: {exc}",
                CleanupWarning,
                stacklevel=4,
            )
        logger.info("Deleted cluster %s (%s)", cluster_id, cluster.name)
        return removed

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def migrate_legacy_configs(self) -> CommandResult:
        """Data is the list of migrated context names."""
        return self._run(
            migrate_legacy_configs, self._registry, self._config.kubeconfigs_dir,
        )

    def discover_file(self, path: str | Path) -> CommandResult:
        def _discover() -> Any:
            return to_import_candidates(discover_contexts_in_file(path))

        return self._run(_discover)

    def discover_folder(self, path: str | Path) -> CommandResult:
        def _discover() -> Any:
            return to_import_candidates(
                discover_contexts_in_folder(path), include_source=True,
            )

        return self._run(_discover)

    def import_cluster(
        self,
        source_file: str | Path,
        context_name: str,
        name: str,
        icon: str | None = None,
        description: str | None = None,
        tags: Iterable[str] = (),
    ) -> CommandResult:
        return self._run(
            import_context,
            self._registry,
            source_file,
            context_name,
            name,
            self._config.kubeconfigs_dir,
            icon=icon,
            description=description,
            tags=tags,
        )

    def list_contexts(self) -> CommandResult:
        return self._run(self._factory.list_contexts)

    def watch_kubeconfigs(self, on_change: Callable[[], None]) -> KubeconfigDirWatcher:
        """Start a debounced watcher on the managed kubeconfig directory.

        The caller owns the returned watcher and must ``stop()`` it.
        """
        watcher = KubeconfigDirWatcher(
            self._config.kubeconfigs_dir,
            on_change,
            debounce_ms=self._config.watch_debounce_ms,
        )
        watcher.start()
        return watcher

    # ------------------------------------------------------------------
    # Live cluster operations
    # ------------------------------------------------------------------

    async def list_namespaces(self, cluster_id: str) -> CommandResult:
        async def _list() -> list[str]:
            return await list_namespaces(await self._factory.for_cluster(cluster_id))

        return await self._run_async(_list())

    async def list_context_namespaces(self, context_name: str) -> CommandResult:
        """Namespaces for a context found in ``$KUBECONFIG`` or ``~/.kube/config``."""

        async def _list() -> list[str]:
            return await list_namespaces(await self._factory.for_context(context_name))

        return await self._run_async(_list())

    async def list_resources(
        self, cluster_id: str, kind: str, namespace: str | None = None,
    ) -> CommandResult:
        async def _list() -> Any:
            api_client = await self._factory.for_cluster(cluster_id)
            return await list_resources(api_client, kind, namespace)

        return await self._run_async(_list())

    async def delete_resource(
        self, cluster_id: str, kind: str, name: str, namespace: str | None = None,
    ) -> CommandResult:
        async def _delete() -> None:
            api_client = await self._factory.for_cluster(cluster_id)
            await delete_resource(api_client, kind, name, namespace)

        return await self._run_async(_delete())

    async def start_pod_watch(self, cluster_id: str, namespace: str) -> CommandResult:
        """Data is the stream key; events arrive on the sink as ``pod_event``."""
        return await self._run_async(
            self._stream_service.start_pod_watch(cluster_id, namespace)
        )

    async def stream_container_logs(
        self,
        cluster_id: str,
        namespace: str,
        pod: str,
        container: str,
        stream_id: str,
    ) -> CommandResult:
        """Data is the stream key; lines arrive as ``container_logs_<stream_id>``."""
        return await self._run_async(
            self._stream_service.stream_container_logs(
                cluster_id, namespace, pod, container, stream_id,
            )
        )
