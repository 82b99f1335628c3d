"""Import a discovered context as a new registered cluster."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from pathlib import Path

from kubelens.credentials.extractor import extract_context
from kubelens.credentials.paths import remove_managed_file
from kubelens.models import Cluster
from kubelens.registry.store import ClusterRegistry, RegistryError
from kubelens.validation import (
    InputValidationError,
    validate_cluster_name,
    validate_context_name,
    validate_description,
    validate_tags,
)


def import_context(
    registry: ClusterRegistry,
    source_file: str | Path,
    context_name: str,
    name: str,
    kubeconfigs_dir: str | Path,
    icon: str | None = None,
    description: str | None = None,
    tags: Iterable[str] = (),
) -> Cluster:
    """Extract *context_name* from *source_file* and register it.

    Metadata is validated before anything touches disk. If registration
    fails after extraction, the extracted file is removed again.
    """
    tags = list(tags)
    validate_cluster_name(name)
    validate_context_name(context_name)
    validate_description(description)
    validate_tags(tags)

    cluster_id = str(uuid.uuid4())
    config_path = extract_context(source_file, context_name, cluster_id, kubeconfigs_dir)
    try:
        return registry.add(
            name,
            context_name,
            config_path,
            icon=icon,
            description=description,
            tags=tags,
            cluster_id=cluster_id,
        )
    except (RegistryError, InputValidationError):
        remove_managed_file(config_path, kubeconfigs_dir)
        raise
