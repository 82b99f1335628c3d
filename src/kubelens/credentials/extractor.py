"""Extract a single context into its own isolated kubeconfig.

The output holds exactly one cluster, one user and one context, so a
registered cluster's file never carries credentials for anything else.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

from kubelens.credentials.bundle import (
    KubeconfigError,
    find_named,
    load_kubeconfig,
    write_kubeconfig,
)
from kubelens.credentials.paths import kubeconfig_path_for

_CARRIED_KEYS = ("preferences", "extensions")


def build_single_context(data: dict[str, Any], context_name: str) -> dict[str, Any]:
    """Return a new kubeconfig dict containing only *context_name*."""
    context = find_named(data.get("contexts", []), context_name)
    if context is None:
        raise KubeconfigError(f"Context '{context_name}' not found")

    ctx = context.get("context")
    if not isinstance(ctx, dict):
        raise KubeconfigError(f"Context '{context_name}' has no context field")

    cluster_name = ctx.get("cluster")
    cluster = find_named(data.get("clusters", []), cluster_name) if cluster_name else None
    if cluster is None:
        raise KubeconfigError(f"Cluster '{cluster_name}' not found")

    user_name = ctx.get("user")
    if not user_name:
        raise KubeconfigError(f"Context '{context_name}' has no user")
    user = find_named(data.get("users", []), user_name)
    if user is None:
        raise KubeconfigError(f"User '{user_name}' not found")

    isolated: dict[str, Any] = {
        "apiVersion": data.get("apiVersion", "v1"),
        "kind": data.get("kind", "Config"),
        "clusters": [copy.deepcopy(cluster)],
        "users": [copy.deepcopy(user)],
        "contexts": [copy.deepcopy(context)],
        "current-context": context_name,
    }
    for key in _CARRIED_KEYS:
        if key in data:
            isolated[key] = copy.deepcopy(data[key])
    return isolated


def extract_context(
    source_path: str | Path,
    context_name: str,
    cluster_id: str,
    kubeconfigs_dir: str | Path,
) -> Path:
    """Write ``<kubeconfigs_dir>/<cluster_id>.yaml`` holding only *context_name*."""
    data = load_kubeconfig(source_path)
    isolated = build_single_context(data, context_name)
    return write_kubeconfig(isolated, kubeconfig_path_for(cluster_id, kubeconfigs_dir))
