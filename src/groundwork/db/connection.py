"""Knowledge-base database file: SQLite with sqlite-vec loaded.

Connections are short-lived and owned by the caller. Independent processes
may ingest and query the same file concurrently: WAL mode lets readers run
while a chunk batch commits, and writers wait up to ``busy_timeout_ms`` for
each other instead of failing immediately.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from groundwork.db.migrations import run_migrations

MEMORY = ":memory:"
DEFAULT_BUSY_TIMEOUT_MS = 5_000


class Database:
    """Opens connections to one knowledge-base file."""

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        """
        Args:
            db_path: Path to the SQLite database file (created on first
                connect), or ``":memory:"``.
            busy_timeout_ms: How long a writer waits for a competing lock.
        """
        self.db_path = db_path if db_path == MEMORY else Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    @property
    def in_memory(self) -> bool:
        return self.db_path == MEMORY

    def exists(self) -> bool:
        """True if the database file is already on disk."""
        return not self.in_memory and self.db_path.is_file()

    def connect(self, *, migrate: bool = False) -> sqlite3.Connection:
        """Open a connection with sqlite-vec loaded and foreign keys enforced.

        Args:
            migrate: Apply pending schema migrations before returning.
        """
        conn = sqlite3.connect(self.db_path)
        try:
            conn.row_factory = sqlite3.Row
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            if not self.in_memory:
                conn.execute("PRAGMA journal_mode = WAL")
            if migrate:
                run_migrations(conn)
        except Exception:
            conn.close()
            raise
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect(migrate=True)
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
