"""Version-tracked SQLite schema migrations."""

from __future__ import annotations

from kubelens.registry.db import Database

MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS clusters (
            id            TEXT PRIMARY KEY,
            name          TEXT NOT NULL,
            context_name  TEXT NOT NULL,
            config_path   TEXT NOT NULL,
            icon          TEXT,
            description   TEXT,
            tags          TEXT NOT NULL DEFAULT '[]',
            created_at    INTEGER NOT NULL,
            last_accessed INTEGER NOT NULL
        );
        """,
    ),
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_clusters_context_name
            ON clusters(context_name);
        """,
    ),
]


def get_schema_version(db: Database) -> int:
    """Return the current schema version (0 if fresh)."""
    row = db.fetchone(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    if row is None:
        return 0
    row = db.fetchone("SELECT version FROM schema_version")
    return row["version"] if row else 0


def run_migrations(db: Database) -> int:
    """Apply pending migrations. Returns the final schema version."""
    db.write_script(
        """
        CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL);
        INSERT INTO schema_version (version)
            SELECT 0 WHERE NOT EXISTS (SELECT 1 FROM schema_version);
        """
    )
    current = get_schema_version(db)
    for version, sql in MIGRATIONS:
        if version <= current:
            continue
        db.write_script(sql)
        db.write("UPDATE schema_version SET version = ?", (version,))
        current = version
    return current
