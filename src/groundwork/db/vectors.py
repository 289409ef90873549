"""Embedding storage: one sqlite-vec table per embedding model.

Vectors produced by different models live in different spaces, so each
model gets its own ``vec_chunks_<slug>`` vec0 table keyed by chunk rowid.
Changing the configured model leaves the old table in place; retrieval only
reads the table of the model that embeds the query.
"""

from __future__ import annotations

import re
import sqlite3

VEC_TABLE_PREFIX = "vec_chunks_"

_DIMENSIONS_RE = re.compile(r"float\[(\d+)\]")


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
        "ollama/nomic-embed-text"       -> "ollama_nomic_embed_text"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_for_model(model: str) -> str:
    """Name of the vec table holding embeddings of *model*."""
    return f"{VEC_TABLE_PREFIX}{model_to_slug(model)}"


def _create_sql(conn: sqlite3.Connection, table: str) -> str | None:
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row[0] if row else None


def vec_table_exists(conn: sqlite3.Connection, table: str) -> bool:
    return _create_sql(conn, table) is not None


def vec_table_dimensions(conn: sqlite3.Connection, table: str) -> int | None:
    """Vector width declared by *table*, or None if the table does not exist."""
    match = _DIMENSIONS_RE.search(_create_sql(conn, table) or "")
    return int(match.group(1)) if match else None


def list_vec_tables(conn: sqlite3.Connection) -> list[str]:
    """All per-model vec tables, sorted by name.

    vec0 keeps its data in ordinary shadow tables that share the prefix; only
    the virtual tables themselves are returned.
    """
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE ? "
        "AND sql LIKE 'CREATE VIRTUAL TABLE%' ORDER BY name",
        (f"{VEC_TABLE_PREFIX}%",),
    ).fetchall()
    return [r[0] for r in rows]


def vec_table_counts(conn: sqlite3.Connection) -> list[tuple[str, int]]:
    """``(table, stored vectors)`` for every vec table."""
    return [
        (table, conn.execute(f"SELECT COUNT(*) FROM [{table}]").fetchone()[0])  # noqa: S608
        for table in list_vec_tables(conn)
    ]


def ensure_vec_table(conn: sqlite3.Connection, model: str, dimensions: int) -> str:
    """Create the vec table for *model* if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model: Embedding model identifier, e.g. ``openai/text-embedding-3-small``.
        dimensions: Width of the model's vectors.

    Returns:
        The table name.

    Raises:
        ValueError: If *dimensions* < 1, or the table exists with a different
            width (the model was reconfigured with other dimensions).
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_for_model(model)
    existing = vec_table_dimensions(conn, table)
    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])"
        )
        conn.commit()
    elif existing != dimensions:
        raise ValueError(
            f"{table} stores {existing}-dimensional vectors but '{model}' returned "
            f"{dimensions}. Remove and re-ingest the sources embedded with the old settings."
        )

    return table
