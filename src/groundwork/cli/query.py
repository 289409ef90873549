"""groundwork query — run hybrid retrieval against the knowledge base.

Usage:
  groundwork query "What is the phone number for 15 Henry St?"
  groundwork query "How does billing work?" --mode vector --top-k 3
  groundwork query "Opening hours?" --prompt
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from groundwork.cli.common import DEFAULT_DB, console, load_settings, make_embedder, open_db
from groundwork.cli.errors import err_no_db, warn_no_results
from groundwork.db.repository import Repository
from groundwork.rag.context import format_context_for_prompt
from groundwork.rag.retriever import SEARCH_MODES, RetrieverConfig, retrieve_context


def query_cmd(
    question: Annotated[str, typer.Argument(help="The question to retrieve context for.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Number of chunks to return."),
    ] = None,
    mode: Annotated[
        str | None,
        typer.Option("--mode", "-m", help="hybrid | vector | keyword"),
    ] = None,
    prompt: Annotated[
        bool,
        typer.Option("--prompt", help="Print the formatted prompt context block instead of a table."),
    ] = False,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db."),
    ] = DEFAULT_DB,
) -> None:
    """Retrieve the chunks most relevant to QUESTION."""
    if mode is not None and mode not in SEARCH_MODES:
        console.print(f"[red]Error:[/] Unknown mode '{mode}'.\n  Use one of: {', '.join(SEARCH_MODES)}")
        raise typer.Exit(1)
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    cfg = load_settings()
    embedder = make_embedder(cfg)
    config = RetrieverConfig.from_config(cfg.retrieval, top_k=top_k, mode=mode)

    conn = open_db(db)
    try:
        context = retrieve_context(question, Repository(conn), embedder, config)
    finally:
        conn.close()

    if not context.chunks:
        console.print(warn_no_results())
        return

    if prompt:
        typer.echo(format_context_for_prompt(context, cfg.retrieval.max_context_tokens))
        return

    query_type = context.query.query_type if context.query else "unknown"
    table = Table(title=f"{len(context.chunks)} chunks · {query_type} query · ~{context.total_tokens_estimate} tokens")
    table.add_column("#", style="dim", width=3)
    table.add_column("Score", justify="right")
    table.add_column("Source", style="bold")
    table.add_column("Page", justify="right", style="dim")
    table.add_column("Content")

    for i, chunk in enumerate(context.chunks, start=1):
        preview = chunk.content.replace("\n", " ")
        if len(preview) > 120:
            preview = preview[:117] + "..."
        table.add_row(
            str(i),
            f"{chunk.score:.4f}",
            chunk.knowledge_source_name,
            str(chunk.page_number or ""),
            preview,
        )
    console.print(table)
