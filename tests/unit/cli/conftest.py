"""Fixtures for CLI tests: isolated cwd/config and a patched embedder."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from groundwork.db.connection import Database
from groundwork.db.repository import Repository


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch):
    """Run every command from tmp_path with no global config and no env overrides."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GROUNDWORK_EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("GROUNDWORK_LOG_LEVEL", raising=False)
    monkeypatch.setattr("groundwork.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / ".groundwork.db"


@pytest.fixture
def patched_embedder(fake_embedder):
    """Make every command that builds an embedder get the fake one."""
    with (
        patch("groundwork.cli.ingest.make_embedder", return_value=fake_embedder),
        patch("groundwork.cli.query.make_embedder", return_value=fake_embedder),
        patch("groundwork.cli.reprocess.make_embedder", return_value=fake_embedder),
    ):
        yield fake_embedder


@pytest.fixture
def open_repo(db_path: Path):
    """Open the test database (creating it) and yield a Repository."""
    conn = Database(db_path).connect(migrate=True)
    yield Repository(conn)
    conn.close()
