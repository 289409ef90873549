"""groundwork remove — delete a knowledge source and everything derived from it.

Removes:
  - chunks (+ FTS5 index entries)
  - embeddings (all vec tables)
  - source record

Usage:
  groundwork remove --id 3f2a...
  groundwork remove --id 3f2a... --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from groundwork.cli.common import DEFAULT_DB, console, open_db
from groundwork.cli.errors import err_no_db, err_source_not_found
from groundwork.db.repository import Repository


def remove_cmd(
    source_id: Annotated[
        str,
        typer.Option("--id", help="ID of the source to remove (see groundwork status)."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db."),
    ] = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a source and all its chunks from the knowledge base."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = open_db(db)
    repo = Repository(conn)

    try:
        existing = repo.get_source(source_id)
        if existing is None:
            console.print(err_source_not_found(source_id))
            raise typer.Exit(0)

        chunk_count = repo.count_chunks_by_source(existing.id)
        console.print(f"\nRemove source: [bold]{existing.name}[/] [dim]({existing.type.value})[/]")
        console.print(f"  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        removed = repo.delete_source(existing.id)
        console.print(f"\n[green]✓[/] Removed: {existing.name}")
        console.print(f"  {removed} chunks deleted")
    finally:
        conn.close()
