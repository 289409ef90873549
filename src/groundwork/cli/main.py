"""Groundwork CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from groundwork.cli.discover import discover_cmd
from groundwork.cli.ingest import ingest_cmd
from groundwork.cli.query import query_cmd
from groundwork.cli.remove import remove_cmd
from groundwork.cli.reprocess import reprocess_cmd
from groundwork.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("groundwork")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"groundwork {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="groundwork",
    help=(
        "Groundwork — knowledge ingestion and hybrid retrieval for grounded chat.\n\n"
        "  groundwork ingest  Add a file, web page, text or Q&A entry.\n"
        "  groundwork query   Retrieve grounded context for a question."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Groundwork — knowledge ingestion and hybrid retrieval."""


app.command("ingest")(ingest_cmd)
app.command("query")(query_cmd)
app.command("status")(status_cmd)
app.command("remove")(remove_cmd)
app.command("reprocess")(reprocess_cmd)
app.command("discover")(discover_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Groundwork version."""
    typer.echo(f"groundwork {_installed_version()}")


if __name__ == "__main__":
    app()
