"""Shared pytest fixtures."""

from __future__ import annotations

import re
import zlib

import pytest

from groundwork.db.connection import Database
from groundwork.db.repository import Repository


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with migrations applied, closed after test."""
    conn = Database(tmp_path / ".groundwork.db").connect(migrate=True)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


class FakeEmbedder:
    """Deterministic bag-of-words embedder: each word bumps one of 16 dimensions."""

    model = "test/fake-embedder"
    dims = 16

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        vec = [0.001] * self.dims
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            vec[zlib.crc32(word.encode()) % self.dims] += 1.0
        return vec

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_query(self, text: str) -> list[float]:
        return self.embed(text)


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()
