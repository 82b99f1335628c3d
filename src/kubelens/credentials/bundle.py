"""Reading and writing kubeconfig credential bundles.

Bundles are handled as plain dicts in the standard kubeconfig layout
(``clusters``, ``users``, ``contexts``, ``current-context``) so unknown
keys such as ``preferences`` and ``extensions`` survive a round trip.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

_LIST_KEYS = ("clusters", "users", "contexts")


class KubeconfigError(Exception):
    """Raised when a kubeconfig cannot be read, parsed, or extracted from."""


def load_kubeconfig(path: str | Path) -> dict[str, Any]:
    """Parse *path* as a kubeconfig.

    Raises ``KubeconfigError`` for unreadable files, invalid YAML, or YAML
    that does not have the shape of a kubeconfig.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise KubeconfigError(f"Failed to read kubeconfig from {path}: {exc}") from exc
    return parse_kubeconfig(text, source=str(path))


def parse_kubeconfig(text: str, source: str = "<string>") -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise KubeconfigError(f"Failed to parse kubeconfig from {source}: {exc}") from exc

    if not isinstance(data, dict):
        raise KubeconfigError(
            f"Expected a YAML mapping in {source}, got {type(data).__name__}"
        )
    if not any(key in data for key in _LIST_KEYS):
        raise KubeconfigError(f"{source} is not a kubeconfig (no clusters, users or contexts)")

    for key in _LIST_KEYS:
        value = data.get(key)
        if value is None:
            data[key] = []
        elif not isinstance(value, list):
            raise KubeconfigError(f"'{key}' in {source} must be a list")
    return data


def find_named(entries: list[Any], name: str) -> dict[str, Any] | None:
    """Return the first ``{"name": name, ...}`` entry, or ``None``."""
    for entry in entries:
        if isinstance(entry, dict) and entry.get("name") == name:
            return entry
    return None


def context_names(data: dict[str, Any]) -> list[str]:
    return [
        str(entry["name"])
        for entry in data.get("contexts", [])
        if isinstance(entry, dict) and entry.get("name") is not None
    ]


def write_kubeconfig(data: dict[str, Any], path: str | Path) -> Path:
    """Write *data* as YAML, readable only by the owner (atomic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    try:
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        tmp_path.replace(path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise KubeconfigError(f"Failed to write kubeconfig {path}: {exc}") from exc
    return path
