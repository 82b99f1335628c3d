"""Locations inside the managed kubeconfig directory."""

from __future__ import annotations

import logging
from pathlib import Path

from kubelens.credentials.bundle import KubeconfigError

logger = logging.getLogger(__name__)


def kubeconfig_path_for(cluster_id: str, kubeconfigs_dir: str | Path) -> Path:
    """Deterministic location of a cluster's isolated kubeconfig."""
    return Path(kubeconfigs_dir) / f"{cluster_id}.yaml"


def validate_managed_path(path: str | Path, kubeconfigs_dir: str | Path) -> Path:
    """Resolve *path* and require it to live inside *kubeconfigs_dir*.

    Symlinks and ``..`` segments are resolved first, so a stored path
    cannot point a delete outside the managed directory.
    """
    root = Path(kubeconfigs_dir).expanduser().resolve()
    resolved = Path(path).expanduser().resolve()
    if resolved == root or not resolved.is_relative_to(root):
        raise KubeconfigError(f"Path {path} is outside the managed directory {root}")
    return resolved


def remove_managed_file(path: str | Path, kubeconfigs_dir: str | Path) -> bool:
    """Delete a cluster-owned kubeconfig.

    Returns ``False`` if the file was already gone. Raises
    ``KubeconfigError`` for paths outside the managed directory and for
    any other filesystem failure.
    """
    validated = validate_managed_path(path, kubeconfigs_dir)
    try:
        validated.unlink()
    except FileNotFoundError:
        logger.debug("Kubeconfig %s already removed", validated)
        return False
    except OSError as exc:
        raise KubeconfigError(f"Failed to delete config file {validated}: {exc}") from exc
    return True
