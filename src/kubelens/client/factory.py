"""Build authenticated Kubernetes API sessions.

Two entry points:

- ``for_context(name)``: legacy path. Scans ``$KUBECONFIG``,
  ``~/.kube/config`` and the managed directory for a context by name.
- ``for_cluster(id)``: registry path. Reads the cluster's isolated
  kubeconfig, which must live in the managed directory and hold only
  the cluster's own context.

Construction is split in two phases. Registry and file I/O run on a
dedicated blocking executor; building the ``ApiClient`` from the parsed
config (which may run auth plugins) runs on the loop's default executor.
The blocking pool never services API calls.

Requires: ``pip install kubernetes``
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from kubelens.credentials.bundle import KubeconfigError, context_names, load_kubeconfig
from kubelens.credentials.paths import validate_managed_path
from kubelens.registry.store import ClusterRegistry

logger = logging.getLogger(__name__)

BLOCKING_THREAD_PREFIX = "kubelens-blocking"


class ClientFactoryError(Exception):
    """Raised when an API session cannot be constructed."""


class ClientFactory:
    """Resolves credentials and constructs ``kubernetes.client.ApiClient``s."""

    def __init__(
        self,
        registry: ClusterRegistry,
        kubeconfigs_dir: str | Path,
        *,
        blocking_executor: ThreadPoolExecutor | None = None,
        env: Mapping[str, str] | None = None,
        home: str | Path | None = None,
    ) -> None:
        self._registry = registry
        self._kubeconfigs_dir = Path(kubeconfigs_dir)
        self._owns_executor = blocking_executor is None
        self._blocking = blocking_executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix=BLOCKING_THREAD_PREFIX,
        )
        self._env = env
        self._home = Path(home) if home is not None else None

    @property
    def registry(self) -> ClusterRegistry:
        return self._registry

    def close(self) -> None:
        if self._owns_executor:
            self._blocking.shutdown(wait=False, cancel_futures=True)

    # --- Legacy path: context name ---

    def candidate_kubeconfig_paths(self) -> list[Path]:
        """Files to search for a context, in priority order."""
        env = os.environ if self._env is None else self._env
        home = self._home if self._home is not None else Path.home()

        paths: list[Path] = []
        kubeconfig_env = env.get("KUBECONFIG")
        if kubeconfig_env:
            paths.extend(Path(p) for p in kubeconfig_env.split(os.pathsep) if p)
        paths.append(home / ".kube" / "config")
        if self._kubeconfigs_dir.is_dir():
            paths.extend(sorted(p for p in self._kubeconfigs_dir.iterdir() if p.is_file()))
        return paths

    def find_kubeconfig_for_context(self, context_name: str) -> Path | None:
        """First candidate file containing *context_name*, or ``None``."""
        for path in self.candidate_kubeconfig_paths():
            if not path.exists():
                continue
            try:
                data = load_kubeconfig(path)
            except KubeconfigError:
                continue
            if context_name in context_names(data):
                return path
        return None

    def list_contexts(self) -> list[str]:
        """Sorted, de-duplicated context names across all candidate files."""
        names: set[str] = set()
        for path in self.candidate_kubeconfig_paths():
            if not path.exists():
                continue
            try:
                names.update(context_names(load_kubeconfig(path)))
            except KubeconfigError:
                continue
        return sorted(names)

    async def for_context(self, context_name: str) -> Any:
        """Build a client for a context found in any known kubeconfig."""
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(
            self._blocking, self._load_context_kubeconfig, context_name,
        )
        return await asyncio.to_thread(self._negotiate, data, context_name)

    def _load_context_kubeconfig(self, context_name: str) -> dict[str, Any]:
        path = self.find_kubeconfig_for_context(context_name)
        if path is None:
            raise ClientFactoryError(
                f"Context '{context_name}' not found in any kubeconfig file"
            )
        try:
            return load_kubeconfig(path)
        except KubeconfigError as exc:
            raise ClientFactoryError(f"Failed to read kubeconfig {path}: {exc}") from exc

    # --- Registry path: cluster id ---

    async def for_cluster(self, cluster_id: str) -> Any:
        """Build a client from a registered cluster's isolated kubeconfig.

        Touches the cluster's ``last_accessed`` on success.
        """
        loop = asyncio.get_running_loop()
        data, context_name = await loop.run_in_executor(
            self._blocking, self._load_cluster_kubeconfig, cluster_id,
        )
        api_client = await asyncio.to_thread(self._negotiate, data, context_name)
        await loop.run_in_executor(self._blocking, self._registry.touch, cluster_id)
        return api_client

    def _load_cluster_kubeconfig(self, cluster_id: str) -> tuple[dict[str, Any], str]:
        cluster = self._registry.get(cluster_id)
        if cluster is None:
            raise ClientFactoryError(f"Cluster '{cluster_id}' not found")

        try:
            config_path = validate_managed_path(cluster.config_path, self._kubeconfigs_dir)
        except KubeconfigError as exc:
            raise ClientFactoryError(str(exc)) from exc
        if not config_path.exists():
            raise ClientFactoryError(f"Config file not found: {config_path}")

        try:
            data = load_kubeconfig(config_path)
        except KubeconfigError as exc:
            raise ClientFactoryError(
                f"Failed to read kubeconfig {config_path}: {exc}"
            ) from exc

        # The file must hold the cluster's own context and nothing else.
        names = context_names(data)
        if cluster.context_name not in names:
            raise ClientFactoryError(
                f"Context '{cluster.context_name}' not found in {config_path}"
            )
        if len(names) != 1:
            raise ClientFactoryError(
                f"Kubeconfig {config_path} holds {len(names)} contexts, expected one"
            )
        return data, cluster.context_name

    # --- Negotiation ---

    @staticmethod
    def _negotiate(data: dict[str, Any], context_name: str) -> Any:
        from kubernetes import config

        try:
            return config.new_client_from_config_dict(data, context=context_name)
        except Exception as exc:
            raise ClientFactoryError(f"Failed to load config: {exc}") from exc
