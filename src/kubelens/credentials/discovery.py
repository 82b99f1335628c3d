"""Discover contexts inside kubeconfig files and folders."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from kubelens.credentials.bundle import KubeconfigError, load_kubeconfig
from kubelens.models import DiscoveredContext, ImportCandidate

logger = logging.getLogger(__name__)


def discover_contexts_in_file(path: str | Path) -> list[DiscoveredContext]:
    """Every context in *path* bound to both a cluster and a user.

    Parse errors propagate as ``KubeconfigError``.
    """
    path = Path(path)
    data = load_kubeconfig(path)
    source_file = str(path)

    discovered: list[DiscoveredContext] = []
    for entry in data["contexts"]:
        if not isinstance(entry, dict):
            continue
        ctx = entry.get("context")
        if not isinstance(ctx, dict) or entry.get("name") is None:
            continue
        if not ctx.get("cluster") or not ctx.get("user"):
            logger.debug("Skipping unbound context %s in %s", entry["name"], path)
            continue
        discovered.append(
            DiscoveredContext(
                context_name=str(entry["name"]),
                cluster_name=str(ctx["cluster"]),
                user_name=str(ctx["user"]),
                namespace=ctx.get("namespace"),
                source_file=source_file,
            )
        )
    return discovered


def discover_contexts_in_folder(path: str | Path) -> list[DiscoveredContext]:
    """Recursively collect contexts from every parsable kubeconfig under *path*.

    Files that are not kubeconfigs are skipped silently; a missing path or
    a non-directory is an error.
    """
    root = Path(path)
    if not root.exists():
        raise KubeconfigError(f"Path does not exist: {root}")
    if not root.is_dir():
        raise KubeconfigError(f"Path is not a directory: {root}")

    contexts: list[DiscoveredContext] = []
    for candidate in sorted(root.rglob("*")):
        if not candidate.is_file():
            continue
        try:
            contexts.extend(discover_contexts_in_file(candidate))
        except KubeconfigError as exc:
            logger.debug("Skipping %s: %s", candidate, exc)
    return contexts


def to_import_candidates(
    contexts: Iterable[DiscoveredContext],
    *,
    include_source: bool = False,
) -> list[ImportCandidate]:
    candidates: list[ImportCandidate] = []
    for ctx in contexts:
        description = f"Cluster: {ctx.cluster_name}, User: {ctx.user_name}"
        if include_source:
            description += f", File: {ctx.source_file}"
        candidates.append(
            ImportCandidate(
                context=ctx,
                suggested_name=ctx.context_name,
                description=description,
            )
        )
    return candidates
