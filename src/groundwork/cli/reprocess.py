"""groundwork reprocess — fetch a URL source again and rebuild its chunks."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from groundwork.cli.common import DEFAULT_DB, console, load_settings, make_embedder, open_db
from groundwork.cli.errors import (
    err_cannot_reprocess,
    err_no_db,
    err_processing_failed,
    err_source_not_found,
)
from groundwork.db.repository import Repository
from groundwork.ingest.processor import (
    REPROCESSABLE_TYPES,
    ProcessingOptions,
    reprocess_knowledge_source,
)
from groundwork.ingest.scraper import FetchOptions


def reprocess_cmd(
    source_id: Annotated[
        str,
        typer.Option("--id", help="ID of the URL source to reprocess."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db."),
    ] = DEFAULT_DB,
) -> None:
    """Re-fetch a URL source and replace its chunks."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    cfg = load_settings()
    embedder = make_embedder(cfg)

    conn = open_db(db)
    try:
        repo = Repository(conn)
        source = repo.get_source(source_id)
        if source is None:
            console.print(err_source_not_found(source_id))
            raise typer.Exit(1)

        if source.type not in REPROCESSABLE_TYPES or not source.metadata.get("url"):
            console.print(
                err_cannot_reprocess(source_id, "Cannot reprocess: original file not stored")
            )
            raise typer.Exit(1)

        result = reprocess_knowledge_source(
            repo,
            embedder,
            source_id,
            ProcessingOptions.from_config(cfg.chunking),
            FetchOptions.from_config(cfg.scraper),
        )
        if not result.success:
            console.print(err_processing_failed(source.name, result.error or "Unknown error"))
            raise typer.Exit(1)

        console.print(f"[green]✓[/] Reprocessed {source.name}: {result.chunk_count} chunks stored")
    finally:
        conn.close()
