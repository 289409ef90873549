"""groundwork discover — list the pages of a website that can be ingested.

Usage:
  groundwork discover example.com
  groundwork discover https://example.com --mode crawl
  groundwork discover https://example.com --mode sitemap
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from groundwork.cli.common import console, load_settings
from groundwork.ingest.discovery import DISCOVERY_MODES, discover_urls
from groundwork.ingest.scraper import FetchOptions


def discover_cmd(
    url: Annotated[str, typer.Argument(help="Website URL or bare domain.")],
    mode: Annotated[
        str,
        typer.Option("--mode", "-m", help="single | crawl | sitemap"),
    ] = "single",
) -> None:
    """Discover crawlable URLs of a website."""
    if mode not in DISCOVERY_MODES:
        console.print(
            f"[red]Error:[/] Invalid mode '{mode}'.\n  Use one of: {', '.join(DISCOVERY_MODES)}"
        )
        raise typer.Exit(1)

    cfg = load_settings()
    try:
        result = discover_urls(url, mode, FetchOptions.from_config(cfg.scraper))
    except ValueError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1) from exc

    table = Table(title=f"{result.domain} · {len(result.urls)} URLs ({mode})")
    table.add_column("Depth", justify="right", style="dim")
    table.add_column("URL")
    table.add_column("Title", style="dim")
    for item in result.urls:
        table.add_row(str(item.depth), item.url, item.title or "")
    console.print(table)

    for error in result.errors:
        console.print(f"[yellow]⚠[/] {error}")
    if result.urls:
        console.print("\n  Ingest a page:  groundwork ingest --url URL")
