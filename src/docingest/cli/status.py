"""docingest status — show processing state of stored documents."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docingest.cli.context import load_cli_config, open_cli_store
from docingest.cli.errors import err_document_not_found, err_store
from docingest.db.models import Document
from docingest.db.repository import Repository

console = Console()

_STATUS_STYLE = {
    "completed": "green",
    "failed": "red",
    "pending": "dim",
}


def status_cmd(
    document_id: Annotated[
        str | None,
        typer.Option("--document-id", "-d", help="Show one document (default: all)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="SQLite store path (overrides DOCINGEST_STORE_URL)."),
    ] = None,
) -> None:
    """Show document status, chunk counts and last update."""
    cfg = load_cli_config(console, db)
    conn = open_cli_store(console, cfg)
    repo = Repository(conn)

    try:
        if document_id is not None:
            doc = repo.get_document(document_id)
            if doc is None:
                console.print(err_document_not_found(document_id))
                raise typer.Exit(1)
            _show_document_panel(doc, repo.count_chunks(doc.id))
        else:
            _show_documents_table(repo)
    except sqlite3.Error as exc:
        console.print(err_store(f"Cannot read the store: {exc}"))
        raise typer.Exit(1) from exc
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _styled(status: str) -> str:
    style = _STATUS_STYLE.get(status, "yellow")
    return f"[{style}]{status}[/]"


def _show_document_panel(doc: Document, chunk_count: int) -> None:
    detail = doc.detail_dict
    lines = [
        f"Document:  [bold]{doc.id}[/]",
        f"Source:    {doc.source_url}",
        f"Status:    {_styled(doc.status)}",
        f"Chunks:    [bold]{chunk_count:,}[/]",
        f"Updated:   [dim]{doc.updated_at or '-'}[/]",
    ]
    if "processing_time_ms" in detail:
        lines.append(f"Took:      {detail['processing_time_ms']} ms")
    if "word_count" in detail:
        lines.append(f"Words:     {detail['word_count']:,}")
    if doc.status == "failed" and detail.get("error"):
        lines.append(f"Error:     [red]{detail['error']}[/]")
    console.print(Panel("\n".join(lines), title="[bold]Document[/]", expand=False))


def _show_documents_table(repo: Repository) -> None:
    docs = repo.list_documents()
    if not docs:
        console.print("[dim]No documents ingested yet.[/]")
        return

    table = Table(box=None, padding=(0, 1))
    table.add_column("Document", style="bold")
    table.add_column("Status")
    table.add_column("Chunks", justify="right")
    table.add_column("Updated", style="dim")
    for doc in docs:
        table.add_row(
            doc.id, _styled(doc.status), f"{repo.count_chunks(doc.id):,}", doc.updated_at or ""
        )
    console.print(
        Panel(table, title=f"[bold]Documents[/] [dim]({len(docs)})[/]", expand=False)
    )
