"""Repository pattern for all knowledge-base database operations.

Single interface for: knowledge sources, document chunks, FTS5 search and
vec embeddings. Vec tables are model-managed (ensure_vec_table); the
repository handles read + write.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass

from groundwork.db.models import DocumentChunk, KnowledgeSource, SourceStatus, SourceType
from groundwork.db.vectors import list_vec_tables

_CHUNK_COLUMNS = (
    "c.rowid AS rowid, c.id AS id, c.knowledge_source_id AS knowledge_source_id, "
    "c.chunk_index AS chunk_index, c.content AS content, c.metadata AS metadata, "
    "c.created_at AS created_at"
)


class SourceNotFoundError(LookupError):
    """Raised when a knowledge source id does not exist."""


@dataclass
class SearchHit:
    """One row returned by a search leg.

    Attributes:
        chunk: The matching chunk.
        source_name: Name of the owning knowledge source.
        score: Leg-specific relevance, higher is better (cosine similarity
            for the vector leg, negated bm25 for the keyword leg).
    """

    chunk: DocumentChunk
    source_name: str
    score: float


class Repository:
    """Data access layer for knowledge sources and their chunks.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                migrated (see Database.connect).
        """
        self._conn = conn

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Knowledge sources
    # ------------------------------------------------------------------

    def add_source(self, source: KnowledgeSource) -> None:
        """Insert a new knowledge source record."""
        self._conn.execute(
            """
            INSERT INTO knowledge_sources (id, name, type, status, metadata)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                source.id,
                source.name,
                SourceType(source.type).value,
                SourceStatus(source.status).value,
                json.dumps(source.metadata),
            ),
        )
        self._conn.commit()

    def get_source(self, source_id: str) -> KnowledgeSource | None:
        """Return a knowledge source by ID, or None if not found."""
        row = self._conn.execute(
            "SELECT id, name, type, status, metadata, created_at, updated_at "
            "FROM knowledge_sources WHERE id = ?",
            (source_id,),
        ).fetchone()
        return _row_to_source(row) if row else None

    def require_source(self, source_id: str) -> KnowledgeSource:
        """Return a knowledge source by ID.

        Raises:
            SourceNotFoundError: If no source has *source_id*.
        """
        source = self.get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Knowledge source not found: {source_id}")
        return source

    def list_sources(self, status: SourceStatus | None = None) -> list[KnowledgeSource]:
        """Return sources ordered by creation time (oldest first), optionally by status."""
        sql = (
            "SELECT id, name, type, status, metadata, created_at, updated_at "
            "FROM knowledge_sources"
        )
        params: tuple = ()
        if status is not None:
            sql += " WHERE status = ?"
            params = (SourceStatus(status).value,)
        rows = self._conn.execute(sql + " ORDER BY created_at, rowid", params).fetchall()
        return [_row_to_source(r) for r in rows]

    def update_source(
        self,
        source_id: str,
        *,
        status: SourceStatus | None = None,
        name: str | None = None,
        metadata: dict | None = None,
    ) -> KnowledgeSource:
        """Update status/name and merge *metadata* into the stored metadata.

        A key mapped to None in *metadata* is removed from the stored metadata.

        Returns:
            The updated source.

        Raises:
            SourceNotFoundError: If no source has *source_id*.
        """
        source = self.require_source(source_id)
        merged = {**source.metadata, **(metadata or {})}
        merged = {k: v for k, v in merged.items() if v is not None}
        new_status = SourceStatus(status) if status is not None else source.status
        self._conn.execute(
            """
            UPDATE knowledge_sources
            SET status = ?, name = ?, metadata = ?, updated_at = datetime('now')
            WHERE id = ?
            """,
            (new_status.value, name or source.name, json.dumps(merged), source_id),
        )
        self._conn.commit()
        return self.require_source(source_id)

    def delete_source(self, source_id: str) -> int:
        """Delete a source together with its chunks, FTS rows and embeddings.

        Returns:
            Number of chunks removed.
        """
        with self._conn:
            removed = self._delete_chunk_rows(source_id)
            self._conn.execute("DELETE FROM knowledge_sources WHERE id = ?", (source_id,))
        return removed

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]] | None = None,
        vec_table: str | None = None,
    ) -> list[int]:
        """Insert a chunk batch with its FTS rows and embeddings in one transaction.

        Either every chunk (and embedding) is stored or none is.

        Returns:
            The new rowids, in input order.
        """
        if embeddings is not None:
            if vec_table is None:
                raise ValueError("vec_table is required when embeddings are given")
            if len(embeddings) != len(chunks):
                raise ValueError(
                    f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
                )

        rowids: list[int] = []
        with self._conn:
            for i, chunk in enumerate(chunks):
                if not chunk.id:
                    chunk.id = f"chunk_{uuid.uuid4().hex[:12]}"
                cur = self._conn.execute(
                    """
                    INSERT INTO document_chunks (id, knowledge_source_id, chunk_index, content, metadata)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        chunk.id,
                        chunk.knowledge_source_id,
                        chunk.chunk_index,
                        chunk.content,
                        chunk.metadata_json,
                    ),
                )
                rowid = cur.lastrowid
                # Keep FTS5 in sync with explicit rowid mapping
                self._conn.execute(
                    "INSERT INTO chunks_fts(rowid, content) VALUES (?, ?)",
                    (rowid, chunk.content),
                )
                if embeddings is not None:
                    self._conn.execute(
                        f"INSERT INTO {vec_table}(rowid, embedding) VALUES (?, ?)",
                        (rowid, json.dumps(embeddings[i])),
                    )
                chunk.rowid = rowid
                rowids.append(rowid)
        return rowids

    def list_chunks(self, source_id: str) -> list[DocumentChunk]:
        """Return the chunks of *source_id* ordered by chunk_index."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM document_chunks c "
            "WHERE c.knowledge_source_id = ? ORDER BY c.chunk_index",
            (source_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks_by_source(self, source_id: str) -> int:
        """Return the number of chunks belonging to *source_id*."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM document_chunks WHERE knowledge_source_id = ?",
            (source_id,),
        ).fetchone()[0]

    def count_chunks(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM document_chunks").fetchone()[0]

    def delete_chunks_by_source(self, source_id: str) -> int:
        """Delete chunks + FTS entries + embeddings for a source.

        Returns:
            Number of chunks removed.
        """
        with self._conn:
            return self._delete_chunk_rows(source_id)

    def _delete_chunk_rows(self, source_id: str) -> int:
        # Virtual tables do not cascade, so FTS and vec rows go first.
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT rowid FROM document_chunks WHERE knowledge_source_id = ?",
                (source_id,),
            ).fetchall()
        ]
        if not rowids:
            return 0

        placeholders = ",".join("?" * len(rowids))
        self._conn.execute(
            f"DELETE FROM chunks_fts WHERE rowid IN ({placeholders})", rowids
        )
        for table in list_vec_tables(self._conn):
            self._conn.execute(
                f"DELETE FROM [{table}] WHERE rowid IN ({placeholders})",  # noqa: S608
                rowids,
            )
        self._conn.execute(
            "DELETE FROM document_chunks WHERE knowledge_source_id = ?", (source_id,)
        )
        return len(rowids)

    # ------------------------------------------------------------------
    # Vector search
    # ------------------------------------------------------------------

    def search_vec(
        self, table: str, embedding: list[float], limit: int = 20
    ) -> list[SearchHit]:
        """Nearest-neighbour search over chunks of ``ready`` sources.

        Exact cosine ranking (nearest first). ``SearchHit.score`` is the
        cosine similarity, ``1 - distance``.
        """
        rows = self._conn.execute(
            f"""
            SELECT {_CHUNK_COLUMNS}, s.name AS source_name,
                   vec_distance_cosine(v.embedding, ?) AS distance
            FROM {table} v
            JOIN document_chunks c ON c.rowid = v.rowid
            JOIN knowledge_sources s ON s.id = c.knowledge_source_id
            WHERE s.status = 'ready'
            ORDER BY distance
            LIMIT ?
            """,
            (json.dumps(embedding), limit),
        ).fetchall()
        return [
            SearchHit(
                chunk=_row_to_chunk(row),
                source_name=row["source_name"],
                score=1.0 - row["distance"],
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # FTS5 / BM25 search
    # ------------------------------------------------------------------

    def search_fts(self, fts_query: str, limit: int = 20) -> list[SearchHit]:
        """BM25 full-text search over chunks of ``ready`` sources, best-first.

        *fts_query* must already be a valid FTS5 expression (see
        groundwork.rag.query.build_fts_query). An empty expression
        matches nothing.

        bm25() returns negative values; lower (more negative) = better match.
        ``SearchHit.score`` is the negated value so that higher is better.

        Raises:
            sqlite3.OperationalError: If the FTS index is unavailable.
        """
        if not fts_query.strip():
            return []
        rows = self._conn.execute(
            f"""
            SELECT {_CHUNK_COLUMNS}, s.name AS source_name,
                   bm25(chunks_fts) AS rank_score
            FROM chunks_fts
            JOIN document_chunks c ON c.rowid = chunks_fts.rowid
            JOIN knowledge_sources s ON s.id = c.knowledge_source_id
            WHERE chunks_fts MATCH ? AND s.status = 'ready'
            ORDER BY rank_score
            LIMIT ?
            """,
            (fts_query, limit),
        ).fetchall()
        return [
            SearchHit(
                chunk=_row_to_chunk(row),
                source_name=row["source_name"],
                score=-row["rank_score"],
            )
            for row in rows
        ]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_source(row: sqlite3.Row) -> KnowledgeSource:
    return KnowledgeSource(
        id=row["id"],
        name=row["name"],
        type=SourceType(row["type"]),
        status=SourceStatus(row["status"]),
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> DocumentChunk:
    return DocumentChunk(
        rowid=row["rowid"],
        id=row["id"],
        knowledge_source_id=row["knowledge_source_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
    )
