"""groundwork status — overview of the knowledge base.

Shows database stats (sources, chunks, vec tables) and one row per source
with its lifecycle status, chunk count and last error.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from groundwork.cli.common import DEFAULT_DB, console, open_db
from groundwork.db.models import SourceStatus
from groundwork.db.repository import Repository
from groundwork.db.vectors import vec_table_counts

_STATUS_STYLE = {
    SourceStatus.PENDING: "[dim]pending[/]",
    SourceStatus.PROCESSING: "[yellow]processing[/]",
    SourceStatus.READY: "[green]ready[/]",
    SourceStatus.ERROR: "[red]error[/]",
}


def status_cmd(
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db."),
    ] = DEFAULT_DB,
) -> None:
    """Show knowledge sources and their processing status."""
    if not db.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  groundwork ingest --file PATH",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    conn = open_db(db)
    try:
        repo = Repository(conn)
        _show_summary_panel(db, conn, repo)
        _show_sources_table(repo)
    finally:
        conn.close()


def _show_summary_panel(db: Path, conn: sqlite3.Connection, repo: Repository) -> None:
    sources = repo.list_sources()
    ready = sum(1 for s in sources if s.status == SourceStatus.READY)
    size_mb = db.stat().st_size / (1024 * 1024)

    lines = [
        f"Database:  {db} ({size_mb:.1f} MB)",
        f"Sources: [bold]{len(sources)}[/] ({ready} ready)  |  "
        f"Chunks: [bold]{repo.count_chunks():,}[/]",
    ]
    for name, count in vec_table_counts(conn):
        lines.append(f"  [dim]{name}[/] ({count:,} vectors)")

    console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))


def _show_sources_table(repo: Repository) -> None:
    sources = repo.list_sources()
    if not sources:
        console.print("[dim]No sources ingested yet.[/]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Chunks", justify="right")
    table.add_column("Error", style="red")

    for source in sources:
        error = source.metadata.get("error_message", "") if source.status == SourceStatus.ERROR else ""
        table.add_row(
            source.id,
            source.name,
            source.type.value,
            _STATUS_STYLE[source.status],
            str(repo.count_chunks_by_source(source.id)),
            error,
        )
    console.print(table)
