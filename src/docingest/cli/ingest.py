"""docingest ingest — run one ingestion locally.

Fetches ``--url``, extracts and chunks its text, embeds every chunk and
replaces the stored chunk set of ``--document-id``. Configuration comes
from docingest.yaml and the environment; ``--db`` overrides the store URL.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from docingest.cli.context import load_cli_config
from docingest.cli.errors import err_ingest_failed
from docingest.ingest.pipeline import IngestionPipeline, IngestRequest

console = Console()


def ingest_cmd(
    url: Annotated[
        str,
        typer.Option("--url", "-u", help="Source document URL (http or https)."),
    ],
    document_id: Annotated[
        str,
        typer.Option("--document-id", "-d", help="Identifier the chunks are stored under."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="SQLite store path (overrides DOCINGEST_STORE_URL)."),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option("--workers", min=1, help="Concurrent embedding requests."),
    ] = None,
) -> None:
    """Fetch, chunk and embed one document into the store."""
    cfg = load_cli_config(console, db)
    if workers is not None:
        cfg.embedding.workers = workers

    pipeline = IngestionPipeline(cfg)
    console.print(f"\n[bold]→ {url}[/]  [dim]({document_id})[/]")

    with Progress(
        SpinnerColumn(),
        TextColumn("  Embedding"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("embed", total=None)

        def _on_progress(stage: str, done: int, total: int) -> None:
            progress.update(task, completed=done, total=total)

        result = pipeline.run(IngestRequest(source_url=url, document_id=document_id), _on_progress)

    if not result.success:
        console.print(err_ingest_failed(result.error_type, result.error, result.index_unchanged))
        raise typer.Exit(1)

    console.print(f"  [green]✓[/] {result.message}")
    console.print(f"  [dim]{result.chunks_count} chunks in {result.processing_time_ms} ms[/]")
