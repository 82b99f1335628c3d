"""List and delete Kubernetes resources for a registered cluster.

Each supported kind maps to a kubernetes client API class and the method
names used to list and delete it. Objects are flattened into a generic
``ResourceSummary`` from their metadata; richer per-kind projections are
left to the presentation layer.

Requires: ``pip install kubernetes``
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from kubelens.models import ResourceSummary

ALL_NAMESPACES = "all"


class ResourceError(Exception):
    """Raised when a resource operation fails upstream or is unsupported."""


@dataclass(frozen=True)
class ResourceKind:
    """Maps a resource kind to kubernetes client API calls."""

    api_class: str
    list_method: str
    delete_method: str
    list_all_method: str = ""
    namespaced: bool = True


def _namespaced(api_class: str, suffix: str) -> ResourceKind:
    return ResourceKind(
        api_class=api_class,
        list_method=f"list_namespaced_{suffix}",
        list_all_method=f"list_{suffix}_for_all_namespaces",
        delete_method=f"delete_namespaced_{suffix}",
    )


def _cluster_scoped(api_class: str, suffix: str) -> ResourceKind:
    return ResourceKind(
        api_class=api_class,
        list_method=f"list_{suffix}",
        delete_method=f"delete_{suffix}",
        namespaced=False,
    )


RESOURCE_KINDS: dict[str, ResourceKind] = {
    "pods": _namespaced("CoreV1Api", "pod"),
    "deployments": _namespaced("AppsV1Api", "deployment"),
    "statefulsets": _namespaced("AppsV1Api", "stateful_set"),
    "daemonsets": _namespaced("AppsV1Api", "daemon_set"),
    "replicasets": _namespaced("AppsV1Api", "replica_set"),
    "jobs": _namespaced("BatchV1Api", "job"),
    "cronjobs": _namespaced("BatchV1Api", "cron_job"),
    "services": _namespaced("CoreV1Api", "service"),
    "configmaps": _namespaced("CoreV1Api", "config_map"),
    "secrets": _namespaced("CoreV1Api", "secret"),
    "ingresses": _namespaced("NetworkingV1Api", "ingress"),
    "persistentvolumeclaims": _namespaced("CoreV1Api", "persistent_volume_claim"),
    "namespaces": _cluster_scoped("CoreV1Api", "namespace"),
    "nodes": _cluster_scoped("CoreV1Api", "node"),
    "persistentvolumes": _cluster_scoped("CoreV1Api", "persistent_volume"),
    "storageclasses": _cluster_scoped("StorageV1Api", "storage_class"),
}


def get_kind(kind: str) -> ResourceKind:
    mapping = RESOURCE_KINDS.get(kind.lower())
    if mapping is None:
        raise ResourceError(f"Unsupported resource kind: {kind}")
    return mapping


def _api_instance(api_class_name: str, api_client: Any) -> Any:
    from kubernetes import client

    return getattr(client, api_class_name)(api_client)


def _upstream_error(operation: str, kind: str, exc: Exception) -> ResourceError:
    # Detect kubernetes ApiException by class name to avoid import
    if type(exc).__name__ == "ApiException":
        return ResourceError(
            f"Failed to {operation} {kind}: ({exc.status}) {exc.reason}"
        )
    return ResourceError(f"Failed to {operation} {kind}: {exc}")


# --- Summaries ---


def format_age(created: datetime | None, now: datetime | None = None) -> str:
    if created is None:
        return "-"
    now = now or datetime.now(tz=UTC)
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    seconds = max(int((now - created).total_seconds()), 0)
    if seconds >= 86400:
        return f"{seconds // 86400}d"
    if seconds >= 3600:
        return f"{seconds // 3600}h"
    if seconds >= 60:
        return f"{seconds // 60}m"
    return f"{seconds}s"


def _containers(obj: Any) -> list[Any]:
    spec = getattr(obj, "spec", None)
    for path in (
        ("containers",),
        ("template", "spec", "containers"),
        ("job_template", "spec", "template", "spec", "containers"),
    ):
        node = spec
        for attr in path:
            node = getattr(node, attr, None)
            if node is None:
                break
        if isinstance(node, list):
            return node
    return []


def _status(obj: Any) -> str:
    meta = getattr(obj, "metadata", None)
    if getattr(meta, "deletion_timestamp", None) is not None:
        return "Terminating"
    status = getattr(obj, "status", None)
    phase = getattr(status, "phase", None)
    if isinstance(phase, str):
        return phase
    return ""


def summarize(obj: Any) -> ResourceSummary:
    """Generic metadata projection of a kubernetes client object."""
    meta = getattr(obj, "metadata", None)
    created = getattr(meta, "creation_timestamp", None)
    if not isinstance(created, datetime):
        created = None
    return ResourceSummary(
        id=getattr(meta, "uid", None) or "",
        name=getattr(meta, "name", None) or "",
        namespace=getattr(meta, "namespace", None) or "",
        age=format_age(created),
        labels=dict(getattr(meta, "labels", None) or {}),
        status=_status(obj),
        images=[c.image for c in _containers(obj) if getattr(c, "image", None)],
        created_at=int(created.timestamp()) if created else 0,
    )


# --- Operations ---


async def list_resources(
    api_client: Any,
    kind: str,
    namespace: str | None = None,
) -> list[ResourceSummary]:
    """List *kind*, across all namespaces when *namespace* is empty or ``"all"``."""
    mapping = get_kind(kind)
    api = _api_instance(mapping.api_class, api_client)

    if not mapping.namespaced:
        method, kwargs = getattr(api, mapping.list_method), {}
    elif namespace and namespace != ALL_NAMESPACES:
        method, kwargs = getattr(api, mapping.list_method), {"namespace": namespace}
    else:
        method, kwargs = getattr(api, mapping.list_all_method), {}

    try:
        result = await asyncio.to_thread(method, **kwargs)
    except Exception as exc:
        raise _upstream_error("list", kind, exc) from exc
    return [summarize(item) for item in result.items or []]


async def delete_resource(
    api_client: Any,
    kind: str,
    name: str,
    namespace: str | None = None,
) -> None:
    mapping = get_kind(kind)
    api = _api_instance(mapping.api_class, api_client)
    kwargs: dict[str, Any] = {"name": name}
    if mapping.namespaced:
        if not namespace or namespace == ALL_NAMESPACES:
            raise ResourceError(f"Deleting {kind} requires a namespace")
        kwargs["namespace"] = namespace

    try:
        await asyncio.to_thread(getattr(api, mapping.delete_method), **kwargs)
    except Exception as exc:
        raise _upstream_error("delete", kind, exc) from exc


async def list_namespaces(api_client: Any) -> list[str]:
    return [s.name for s in await list_resources(api_client, "namespaces")]
