"""Groundwork rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from groundwork.cli.errors import err_no_db
    console.print(err_no_db(".groundwork.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from groundwork.ingest.parser import MAX_FILE_SIZE


def err_no_api_key(provider: str, env_var: str) -> str:
    """No API key for the embedding *provider*."""
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".groundwork.db") -> str:
    """No knowledge base database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  groundwork ingest --file PATH  to create it."
    )


def err_config(message: str) -> str:
    """groundwork.yaml or the global config is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix groundwork.yaml (or ~/.groundwork/config.yaml) and retry."
    )


def err_no_input() -> str:
    """ingest was called without any source option."""
    return (
        "[red]Error:[/] Nothing to ingest.\n"
        "  Use one of:  --file PATH  |  --url URL  |  --text TEXT  |  --qa-question Q --qa-answer A"
    )


def err_file_missing(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'\n"
        "  Check the path and retry."
    )


def err_file_too_large(path: str, size: int) -> str:
    """File exceeds the upload limit."""
    limit_mb = MAX_FILE_SIZE // (1024 * 1024)
    return (
        f"[red]Error:[/] File exceeds {limit_mb} MB limit: '{path}' ({size / (1024 * 1024):.1f} MB)\n"
        "  Split the document into smaller files and ingest them separately."
    )


def err_unsupported_file(path: str) -> str:
    return (
        f"[red]Error:[/] Unsupported file type: '{path}'\n"
        "  Supported:  .pdf  .txt  .md  .markdown"
    )


def err_invalid_url(url: str, reason: str) -> str:
    return (
        f"[red]Error:[/] Invalid URL '{url}': {reason}\n"
        "  Use a full http:// or https:// URL."
    )


def err_ssrf_blocked(url: str) -> str:
    """URL resolves to a private/reserved address."""
    return (
        f"[red]Error:[/] URL resolves to private address (SSRF protection): '{url}'\n"
        "  Use a publicly reachable URL."
    )


def err_processing_failed(name: str, message: str) -> str:
    """Ingestion failed; the source is left in ``error`` status."""
    return (
        f"[red]✗ Processing failed:[/] {name}\n"
        f"  {message}\n"
        "  Run:  groundwork status  to inspect the source, then fix the input and re-ingest."
    )


def err_source_not_found(source_id: str) -> str:
    """Source not found in database."""
    return (
        f"[yellow]Source not found:[/] '{source_id}' is not in the knowledge base.\n"
        "  Run:  groundwork status  to see all sources."
    )


def err_cannot_reprocess(source_id: str, message: str) -> str:
    return (
        f"[red]Error:[/] {message} ('{source_id}').\n"
        "  Only URL sources can be reprocessed; remove the source and ingest the file again."
    )


def warn_no_results() -> str:
    """Retrieval returned nothing."""
    return (
        "[yellow]No relevant context found.[/]\n"
        "  Check  groundwork status  for sources in 'ready' state, or rephrase the question."
    )
