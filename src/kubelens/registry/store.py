"""Cluster registry: the durable store of registered clusters."""

from __future__ import annotations

import json
import sqlite3
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from kubelens.models import Cluster, ClusterPatch
from kubelens.registry.db import Database, DatabaseLockError
from kubelens.validation import (
    InputValidationError,
    validate_cluster_name,
    validate_context_name,
    validate_description,
    validate_tags,
)

_COLUMNS = (
    "id, name, context_name, config_path, icon, description, tags, "
    "created_at, last_accessed"
)

# One fixed statement per patchable column; values are always bound.
_UPDATE_SQL = {
    "name": "UPDATE clusters SET name = ? WHERE id = ?",
    "icon": "UPDATE clusters SET icon = ? WHERE id = ?",
    "description": "UPDATE clusters SET description = ? WHERE id = ?",
    "tags": "UPDATE clusters SET tags = ? WHERE id = ?",
}


class RegistryError(Exception):
    """Raised when the registry cannot read or write its storage."""


def _now() -> int:
    return int(time.time())


@contextmanager
def _storage(operation: str) -> Iterator[None]:
    try:
        yield
    except DatabaseLockError as exc:
        raise RegistryError(str(exc)) from exc
    except sqlite3.Error as exc:
        raise RegistryError(f"Failed to {operation}: {exc}") from exc


class ClusterRegistry:
    """Create, list, get, update, touch and delete cluster records.

    Deleting a record does not touch its kubeconfig file; that is the
    caller's job (see ``kubelens.credentials.paths.remove_managed_file``).
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def close(self) -> None:
        self._db.close()

    # ------------------------------------------------------------------
    # Cluster CRUD
    # ------------------------------------------------------------------

    def add(
        self,
        name: str,
        context_name: str,
        config_path: str | Path,
        icon: str | None = None,
        description: str | None = None,
        tags: Iterable[str] = (),
        *,
        cluster_id: str | None = None,
    ) -> Cluster:
        """Validate and insert a new cluster. Nothing is written on failure."""
        now = _now()
        cluster = Cluster(
            id=cluster_id or str(uuid.uuid4()),
            name=validate_cluster_name(name),
            context_name=validate_context_name(context_name),
            config_path=str(config_path),
            icon=icon,
            description=validate_description(description),
            tags=validate_tags(tags),
            created_at=now,
            last_accessed=now,
        )

        with _storage("insert cluster"):
            self._db.write(
                f"INSERT INTO clusters ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",  # noqa: S608
                (
                    cluster.id,
                    cluster.name,
                    cluster.context_name,
                    cluster.config_path,
                    cluster.icon,
                    cluster.description,
                    json.dumps(cluster.tags),
                    cluster.created_at,
                    cluster.last_accessed,
                ),
            )
        return cluster

    def list(self) -> list[Cluster]:
        """All clusters, most recently accessed first."""
        with _storage("query clusters"):
            rows = self._db.fetchall(
                f"SELECT {_COLUMNS} FROM clusters ORDER BY last_accessed DESC, rowid DESC"  # noqa: S608
            )
        return [self._row_to_cluster(r) for r in rows]

    def get(self, cluster_id: str) -> Cluster | None:
        """Get a single cluster by ID, or ``None`` if it does not exist."""
        with _storage("query cluster"):
            row = self._db.fetchone(
                f"SELECT {_COLUMNS} FROM clusters WHERE id = ?",  # noqa: S608
                (cluster_id,),
            )
        if row is None:
            return None
        return self._row_to_cluster(row)

    def exists_context(self, context_name: str) -> bool:
        with _storage("query cluster"):
            row = self._db.fetchone(
                "SELECT COUNT(*) AS cnt FROM clusters WHERE context_name = ?",
                (context_name,),
            )
        return bool(row and row["cnt"])

    def config_paths(self) -> set[str]:
        """Every ``config_path`` currently referenced by a cluster."""
        with _storage("query clusters"):
            rows = self._db.fetchall("SELECT config_path FROM clusters")
        return {r["config_path"] for r in rows}

    def update(self, cluster_id: str, patch: ClusterPatch) -> Cluster | None:
        """Apply a partial update.

        Every supplied field is validated before anything is written, so a
        rejected field leaves the record unchanged. Returns the updated
        record, or ``None`` if the cluster does not exist.
        """
        values: dict[str, Any] = {}
        fields = patch.model_fields_set
        if "name" in fields:
            if patch.name is None:
                raise InputValidationError("Cluster name cannot be empty")
            values["name"] = validate_cluster_name(patch.name)
        if "icon" in fields:
            values["icon"] = patch.icon
        if "description" in fields:
            values["description"] = validate_description(patch.description)
        if "tags" in fields:
            values["tags"] = json.dumps(validate_tags(patch.tags or []))

        if values:
            with _storage("update cluster"), self._db.transaction() as conn:
                for column, value in values.items():
                    conn.execute(_UPDATE_SQL[column], (value, cluster_id))
        return self.get(cluster_id)

    def touch(self, cluster_id: str) -> None:
        """Mark the cluster as accessed now."""
        with _storage("update last_accessed"):
            self._db.write(
                "UPDATE clusters SET last_accessed = ? WHERE id = ?",
                (_now(), cluster_id),
            )

    def delete(self, cluster_id: str) -> bool:
        """Remove the row. Returns ``True`` if a row was deleted."""
        with _storage("delete cluster"):
            return self._db.write("DELETE FROM clusters WHERE id = ?", (cluster_id,)) > 0

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_cluster(row: Any) -> Cluster:
        return Cluster(
            id=row["id"],
            name=row["name"],
            context_name=row["context_name"],
            config_path=row["config_path"],
            icon=row["icon"],
            description=row["description"],
            tags=json.loads(row["tags"]) if row["tags"] else [],
            created_at=row["created_at"],
            last_accessed=row["last_accessed"],
        )
