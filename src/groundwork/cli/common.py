"""Helpers shared by the CLI commands: database, configuration, embedder."""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from groundwork.cli.errors import err_config, err_no_api_key
from groundwork.config import ConfigError, GroundworkConfig, load_config
from groundwork.db.connection import Database
from groundwork.ingest.embedder import Embedder, api_key_env, provider_of
from groundwork.log import configure_logging

console = Console()

DEFAULT_DB = Path(".groundwork.db")


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the knowledge base database and run migrations."""
    return Database(db_path).connect(migrate=True)


def load_settings() -> GroundworkConfig:
    """Load the layered config and configure logging; exit 1 on a config error."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    configure_logging(cfg.logging.level)
    return cfg


def make_embedder(cfg: GroundworkConfig) -> Embedder:
    """Build the embedder; exit 1 when the provider's API key is missing."""
    env_var = api_key_env(cfg.embedding.model)
    if env_var and not os.getenv(env_var):
        console.print(err_no_api_key(provider_of(cfg.embedding.model), env_var))
        raise typer.Exit(1)
    return Embedder.from_config(cfg.embedding)
