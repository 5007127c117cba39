"""Shared helpers for commands that need configuration or the store."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from docingest.cli.errors import err_from_exception, err_missing_config
from docingest.config import ENV_STORE_KEY, ENV_STORE_URL, ServiceConfig, load_config
from docingest.db.schema import open_store
from docingest.errors import IngestError


def load_cli_config(console: Console, db: Path | None = None) -> ServiceConfig:
    """Load configuration and apply the ``--db`` override. Exits 1 on error."""
    try:
        cfg = load_config()
    except IngestError as exc:
        console.print(err_from_exception(exc))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.store.url = str(db)
    return cfg


def open_cli_store(console: Console, cfg: ServiceConfig) -> sqlite3.Connection:
    """Open the configured store for a read or delete command. Exits 1 on error."""
    missing = [n for n in cfg.missing_credentials() if n in (ENV_STORE_URL, ENV_STORE_KEY)]
    if missing:
        console.print(err_missing_config(missing))
        raise typer.Exit(1)
    try:
        conn, _ = open_store(
            cfg.store.url, cfg.store.key, cfg.embedding.model, cfg.embedding.dimensions
        )
    except IngestError as exc:
        console.print(err_from_exception(exc))
        raise typer.Exit(1) from exc
    return conn
