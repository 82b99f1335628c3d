"""One-time migration of legacy multi-context kubeconfigs into the registry."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from kubelens.credentials.bundle import KubeconfigError
from kubelens.credentials.discovery import discover_contexts_in_folder
from kubelens.credentials.extractor import extract_context
from kubelens.credentials.paths import remove_managed_file
from kubelens.registry.store import ClusterRegistry, RegistryError
from kubelens.validation import (
    InputValidationError,
    validate_cluster_name,
    validate_context_name,
)

logger = logging.getLogger(__name__)


def migrate_legacy_configs(
    registry: ClusterRegistry,
    kubeconfigs_dir: str | Path,
) -> list[str]:
    """Register every not-yet-registered context found in *kubeconfigs_dir*.

    Each context is extracted into its own ``<id>.yaml`` and registered
    under its context name. Contexts that are already registered are
    skipped, so running the sweep twice migrates nothing the second time.
    A context that fails validation or extraction is logged and skipped.

    Returns the context names that were migrated.
    """
    root = Path(kubeconfigs_dir)
    if not root.exists():
        return []

    owned = {Path(p).resolve() for p in registry.config_paths()}
    discovered = [
        ctx
        for ctx in discover_contexts_in_folder(root)
        if Path(ctx.source_file).resolve() not in owned
    ]

    migrated: list[str] = []
    for ctx in discovered:
        try:
            context_name = validate_context_name(ctx.context_name)
            name = validate_cluster_name(ctx.context_name)
        except InputValidationError as exc:
            logger.warning("Skipping invalid context name '%s': %s", ctx.context_name, exc)
            continue

        if registry.exists_context(context_name):
            continue

        cluster_id = str(uuid.uuid4())
        try:
            config_path = extract_context(ctx.source_file, ctx.context_name, cluster_id, root)
        except KubeconfigError as exc:
            logger.warning("Failed to extract context %s: %s", ctx.context_name, exc)
            continue

        try:
            registry.add(name, context_name, config_path, cluster_id=cluster_id)
        except (RegistryError, InputValidationError):
            remove_managed_file(config_path, root)
            raise

        logger.info("Migrated context %s from %s", context_name, ctx.source_file)
        migrated.append(context_name)

    return migrated
