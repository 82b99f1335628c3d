"""Durable cluster registry backed by a single SQLite file."""

from __future__ import annotations

from pathlib import Path

from kubelens.registry.db import Database, DatabaseLockError
from kubelens.registry.migrations import run_migrations
from kubelens.registry.store import ClusterRegistry, RegistryError


def open_registry(db_path: str | Path, lock_timeout: float = 10.0) -> ClusterRegistry:
    """Open (creating if needed) the registry database and migrate it."""
    db = Database(db_path, lock_timeout=lock_timeout)
    run_migrations(db)
    return ClusterRegistry(db)


__all__ = [
    "ClusterRegistry",
    "Database",
    "DatabaseLockError",
    "RegistryError",
    "open_registry",
    "run_migrations",
]
