"""docingest remove — delete a document and all its chunks.

Removes, in one transaction:
  - chunk rows
  - embeddings (all vec tables)
  - the document record

Usage:
  docingest remove --document-id handbook
  docingest remove --document-id handbook --yes
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from docingest.cli.context import load_cli_config, open_cli_store
from docingest.cli.errors import err_document_not_found, err_store
from docingest.db.repository import Repository

console = Console()


def remove_cmd(
    document_id: Annotated[
        str,
        typer.Option("--document-id", "-d", help="Document to remove."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="SQLite store path (overrides DOCINGEST_STORE_URL)."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a document and all its data from the store."""
    cfg = load_cli_config(console, db)
    conn = open_cli_store(console, cfg)
    repo = Repository(conn)

    try:
        existing = repo.get_document(document_id)
        if existing is None:
            console.print(err_document_not_found(document_id))
            raise typer.Exit(0)

        chunk_count = repo.count_chunks(document_id)
        console.print(f"\nRemove document: [bold]{document_id}[/]")
        console.print(f"  Source: {existing.source_url}  |  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        try:
            removed = repo.delete_document(document_id)
        except sqlite3.Error as exc:
            console.print(err_store(f"Failed to remove '{document_id}': {exc}"))
            raise typer.Exit(1) from exc

        console.print(f"\n[green]✓[/] Removed: {document_id}")
        console.print(f"  {removed} chunks deleted")
    finally:
        conn.close()
