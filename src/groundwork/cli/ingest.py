"""groundwork ingest — add a knowledge source and run it through the pipeline.

Source kinds (exactly one per call):
  --file PATH                      → pdf / txt / md upload (max 10 MB)
  --url URL                        → tiered page fetch (Firecrawl → Jina → static)
  --text TEXT [--name NAME]        → pasted text
  --qa-question Q --qa-answer A    → one Q&A entry (+ --qa-variation, repeatable)
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from groundwork.cli.common import DEFAULT_DB, console, load_settings, make_embedder, open_db
from groundwork.cli.errors import (
    err_file_missing,
    err_file_too_large,
    err_invalid_url,
    err_no_input,
    err_processing_failed,
    err_ssrf_blocked,
    err_unsupported_file,
)
from groundwork.db.models import KnowledgeSource, SourceType
from groundwork.db.repository import Repository
from groundwork.ingest.parser import (
    FileTooLargeError,
    UnsupportedFileTypeError,
    get_source_type,
    validate_file,
)
from groundwork.ingest.processor import (
    ProcessingOptions,
    format_qa_content,
    process_document,
    process_text,
    process_url,
)
from groundwork.ingest.scraper import FetchOptions, SsrfError, check_ssrf, validate_url


def ingest_cmd(
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="PDF, TXT or Markdown file to ingest."),
    ] = None,
    url: Annotated[
        str | None,
        typer.Option("--url", "-u", help="Web page URL to ingest."),
    ] = None,
    text: Annotated[
        str | None,
        typer.Option("--text", "-t", help="Pasted text to ingest."),
    ] = None,
    qa_question: Annotated[
        str | None,
        typer.Option("--qa-question", help="Question of a Q&A entry."),
    ] = None,
    qa_answer: Annotated[
        str | None,
        typer.Option("--qa-answer", help="Answer of a Q&A entry."),
    ] = None,
    qa_variation: Annotated[
        list[str] | None,
        typer.Option("--qa-variation", help="Alternative phrasing of the question (repeatable)."),
    ] = None,
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Display name for the source."),
    ] = None,
    static: Annotated[
        bool,
        typer.Option("--static", help="Skip JS-rendering providers for --url."),
    ] = False,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .groundwork.db (created if missing)."),
    ] = DEFAULT_DB,
) -> None:
    """Ingest a file, web page, pasted text or Q&A entry into the knowledge base."""
    given = [x is not None for x in (file, url, text, qa_question)]
    if sum(given) != 1 or (qa_question is not None and not qa_answer):
        console.print(err_no_input())
        raise typer.Exit(1)

    # ---- Input validation (nothing is created on failure) ----
    data: bytes | None = None
    if file is not None:
        if not file.is_file():
            console.print(err_file_missing(str(file)))
            raise typer.Exit(1)
        try:
            validate_file(file.name, file.stat().st_size)
        except FileTooLargeError:
            console.print(err_file_too_large(str(file), file.stat().st_size))
            raise typer.Exit(1)
        except UnsupportedFileTypeError:
            console.print(err_unsupported_file(str(file)))
            raise typer.Exit(1)
        data = file.read_bytes()

    if url is not None:
        try:
            validate_url(url)
            check_ssrf(url)
        except SsrfError:
            console.print(err_ssrf_blocked(url))
            raise typer.Exit(1)
        except ValueError as exc:
            console.print(err_invalid_url(url, str(exc)))
            raise typer.Exit(1)

    cfg = load_settings()
    embedder = make_embedder(cfg)
    options = ProcessingOptions.from_config(cfg.chunking)

    metadata: dict = {}
    if file is not None:
        source_type, display = get_source_type(file.name), name or file.name
    elif url is not None:
        source_type, display = SourceType.URL, name or url
        metadata["url"] = url
    elif text is not None:
        source_type, display = SourceType.TEXT, name or "Pasted text"
    else:
        source_type, display = SourceType.QA, name or qa_question[:80]
        metadata["qa_data"] = {
            "question": qa_question,
            "answer": qa_answer,
            "variations": list(qa_variation or []),
        }

    conn = open_db(db)
    repo = Repository(conn)
    try:
        source = KnowledgeSource(
            id=str(uuid.uuid4()), name=display, type=source_type, metadata=metadata
        )
        repo.add_source(source)
        console.print(f"\n[bold]→ {display}[/] [dim]({source_type.value})[/]")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Parsing, chunking and embedding…", total=None)
            if data is not None:
                result = process_document(repo, embedder, source.id, data, file.name, options)
            elif url is not None:
                fetch_options = FetchOptions.from_config(cfg.scraper, force_static=static)
                result = process_url(repo, embedder, source.id, url, options, fetch_options)
            elif text is not None:
                result = process_text(repo, embedder, source.id, text, options=options)
            else:
                content = format_qa_content(qa_question, qa_answer, qa_variation)
                result = process_text(repo, embedder, source.id, content, options=options)

        if not result.success:
            console.print(err_processing_failed(display, result.error or "Unknown error"))
            raise typer.Exit(1)

        console.print(f"  [green]✓[/] {result.chunk_count} chunks stored")
        console.print(f"  [dim]Source id: {source.id}[/]")
    finally:
        conn.close()

