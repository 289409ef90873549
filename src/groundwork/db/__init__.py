"""Groundwork database layer."""

from groundwork.db.connection import Database
from groundwork.db.migrations import CURRENT_VERSION, MIGRATIONS, run_migrations, schema_version
from groundwork.db.repository import Repository, SearchHit, SourceNotFoundError
from groundwork.db.vectors import ensure_vec_table, list_vec_tables, model_to_slug, vec_table_for_model

__all__ = [
    "Database",
    "run_migrations",
    "schema_version",
    "CURRENT_VERSION",
    "MIGRATIONS",
    "Repository",
    "SearchHit",
    "SourceNotFoundError",
    "ensure_vec_table",
    "list_vec_tables",
    "model_to_slug",
    "vec_table_for_model",
]
