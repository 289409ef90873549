"""Tests for Database connection layer."""

from __future__ import annotations

from pathlib import Path

import pytest

from groundwork.db.connection import DEFAULT_BUSY_TIMEOUT_MS, MEMORY, Database


def test_connect_creates_file(tmp_path):
    db_path = tmp_path / ".groundwork.db"
    db = Database(db_path)
    conn = db.connect()
    conn.close()
    assert db_path.exists()


def test_sqlite_vec_loads(tmp_path):
    db = Database(tmp_path / ".groundwork.db")
    conn = db.connect()
    version = conn.execute("SELECT vec_version()").fetchone()[0]
    conn.close()
    assert version.startswith("v")


def test_foreign_keys_enabled(tmp_path):
    db = Database(tmp_path / ".groundwork.db")
    conn = db.connect()
    result = conn.execute("PRAGMA foreign_keys").fetchone()[0]
    conn.close()
    assert result == 1


def test_wal_journal_mode(tmp_path):
    db = Database(tmp_path / ".groundwork.db")
    conn = db.connect()
    mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    conn.close()
    assert mode == "wal"


def test_in_memory_database():
    db = Database(":memory:")
    assert db.db_path == ":memory:"
    with db as conn:
        assert conn.execute("SELECT vec_version()").fetchone()[0]


def test_row_factory_set(tmp_path):
    db = Database(tmp_path / ".groundwork.db")
    conn = db.connect()
    conn.execute("CREATE TABLE t (x INTEGER)")
    conn.execute("INSERT INTO t VALUES (42)")
    row = conn.execute("SELECT x FROM t").fetchone()
    conn.close()
    assert row["x"] == 42


def test_context_manager_closes_connection(tmp_path):
    db = Database(tmp_path / ".groundwork.db")
    with db as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
    # Closed connection raises ProgrammingError on use
    with pytest.raises(Exception):
        conn.execute("SELECT 1")


def test_context_manager_accepts_path_str(tmp_path):
    db = Database(str(tmp_path / ".groundwork.db"))
    assert isinstance(db.db_path, Path)
    with db as conn:
        result = conn.execute("SELECT 1").fetchone()[0]
    assert result == 1


def test_busy_timeout_applied(tmp_path):
    conn = Database(tmp_path / ".groundwork.db", busy_timeout_ms=1234).connect()
    timeout = conn.execute("PRAGMA busy_timeout").fetchone()[0]
    conn.close()
    assert timeout == 1234


def test_default_busy_timeout(tmp_path):
    assert Database(tmp_path / ".groundwork.db").busy_timeout_ms == DEFAULT_BUSY_TIMEOUT_MS


def test_exists(tmp_path):
    db = Database(tmp_path / ".groundwork.db")
    assert not db.exists()
    db.connect().close()
    assert db.exists()
    assert not Database(MEMORY).exists()


def test_connect_without_migrate_leaves_schema_empty(tmp_path):
    conn = Database(tmp_path / ".groundwork.db").connect()
    tables = conn.execute("SELECT name FROM sqlite_master WHERE name = 'knowledge_sources'").fetchall()
    conn.close()
    assert tables == []


def test_context_manager_migrates():
    with Database(MEMORY) as conn:
        row = conn.execute("SELECT name FROM sqlite_master WHERE name = 'document_chunks'").fetchone()
    assert row is not None
