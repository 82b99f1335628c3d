"""SQLite connection wrapper with a single, lock-guarded connection."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path


class DatabaseLockError(RuntimeError):
    """Raised when the connection lock cannot be acquired in time."""


class Database:
    """Owns exactly one sqlite3 connection for the whole process.

    Every statement runs under the same lock, so reads and writes are
    strictly serialized. ``lock_timeout`` bounds how long a caller waits
    before failing instead of hanging.
    """

    def __init__(self, db_path: str | Path, lock_timeout: float = 10.0) -> None:
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

    @property
    def path(self) -> str:
        return self._db_path

    @contextmanager
    def _locked(self) -> Iterator[sqlite3.Connection]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise DatabaseLockError(
                f"Database lock unavailable after {self._lock_timeout}s"
            )
        try:
            yield self._conn
        finally:
            self._lock.release()

    def fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._locked() as conn:
            return conn.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._locked() as conn:
            return conn.execute(sql, params).fetchall()

    def write(self, sql: str, params: tuple = ()) -> int:
        """Execute a single write and commit. Returns the affected row count."""
        with self._locked() as conn:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock across several statements; commit or roll back."""
        with self._locked() as conn:
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def write_script(self, sql: str) -> None:
        """Execute a multi-statement SQL script."""
        with self._locked() as conn:
            conn.executescript(sql)

    def close(self) -> None:
        with self._locked() as conn:
            conn.close()
