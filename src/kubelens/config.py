"""Config file loading for kubelens.

Reads ``kubelens.yaml`` (explicit path, ``$KUBELENS_CONFIG``, or the app
directory), resolves relative paths against the config file's location,
then applies ``KUBELENS_*`` environment overrides.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "kubelens.yaml"
ENV_PREFIX = "KUBELENS_"
DEFAULT_APP_DIRNAME = ".kubelens"


@dataclass(frozen=True)
class KubeLensConfig:
    """Resolved kubelens settings."""

    app_dir: Path
    kubeconfigs_dir: Path
    db_path: Path
    log_tail_lines: int = 1000
    watch_debounce_ms: int = 500
    lock_timeout: float = 10.0
    config_path: Path | None = None

    @classmethod
    def defaults(cls, app_dir: str | Path | None = None) -> KubeLensConfig:
        base = Path(app_dir) if app_dir is not None else Path.home() / DEFAULT_APP_DIRNAME
        return cls(
            app_dir=base,
            kubeconfigs_dir=base / "kubeconfigs",
            db_path=base / "clusters.db",
        )


_PATH_FIELDS = ("app_dir", "kubeconfigs_dir", "db_path")
_INT_FIELDS = ("log_tail_lines", "watch_debounce_ms")
_FLOAT_FIELDS = ("lock_timeout",)


def find_config(env: Mapping[str, str] | None = None) -> Path | None:
    """Return ``$KUBELENS_CONFIG`` or ``~/.kubelens/kubelens.yaml`` if present."""
    env = os.environ if env is None else env
    explicit = env.get(f"{ENV_PREFIX}CONFIG")
    if explicit:
        candidate = Path(explicit).expanduser()
        return candidate if candidate.is_file() else None
    app_dir = env.get(f"{ENV_PREFIX}APP_DIR")
    base = Path(app_dir).expanduser() if app_dir else Path.home() / DEFAULT_APP_DIRNAME
    candidate = base / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
    env: Mapping[str, str] | None = None,
) -> KubeLensConfig:
    """Load kubelens settings.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover via ``find_config()``.
    3. Built-in defaults.

    ``KUBELENS_*`` environment variables override whatever was loaded.
    """
    env = os.environ if env is None else env
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser().resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config(env)

    values: dict[str, Any] = {}
    if config_path is not None:
        values = _parse_config(config_path)
        values["config_path"] = config_path

    values.update(_env_overrides(env))
    return _build(values)


def _parse_config(config_path: Path) -> dict[str, Any]:
    """Read and parse a YAML config file, resolving relative paths."""
    text = config_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ValueError(msg)

    base = config_path.parent
    values: dict[str, Any] = {}
    for key in _PATH_FIELDS:
        if data.get(key) is not None:
            values[key] = (base / Path(str(data[key])).expanduser()).resolve()
    for key in _INT_FIELDS:
        if data.get(key) is not None:
            values[key] = int(data[key])
    for key in _FLOAT_FIELDS:
        if data.get(key) is not None:
            values[key] = float(data[key])
    return values


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key in _PATH_FIELDS:
        val = env.get(f"{ENV_PREFIX}{key.upper()}")
        if val:
            values[key] = Path(val).expanduser()
    for key in _INT_FIELDS:
        val = env.get(f"{ENV_PREFIX}{key.upper()}")
        if val:
            values[key] = int(val)
    for key in _FLOAT_FIELDS:
        val = env.get(f"{ENV_PREFIX}{key.upper()}")
        if val:
            values[key] = float(val)
    return values


def _build(values: dict[str, Any]) -> KubeLensConfig:
    # Derived paths follow app_dir unless they were set explicitly.
    base = KubeLensConfig.defaults(values.get("app_dir"))
    return dataclasses.replace(base, **values)


def init_directories(config: KubeLensConfig) -> None:
    """Create the app and managed kubeconfig directories if missing."""
    config.app_dir.mkdir(parents=True, exist_ok=True)
    config.kubeconfigs_dir.mkdir(parents=True, exist_ok=True)
