"""docingest serve — run the HTTP ingestion service under uvicorn."""

from __future__ import annotations

from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from docingest.cli.context import load_cli_config
from docingest.cli.errors import err_missing_config
from docingest.logging_utils import configure_logging
from docingest.service.app import create_app

console = Console()


def serve_cmd(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (default: service.host)."),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", help="Bind port (default: service.port)."),
    ] = None,
) -> None:
    """Serve POST /ingest, GET /health and GET /documents/{id}."""
    cfg = load_cli_config(console)
    if host is not None:
        cfg.service.host = host
    if port is not None:
        cfg.service.port = port

    missing = cfg.missing_credentials()
    if missing:
        # every request would fail with configuration_error
        console.print(err_missing_config(missing))
        raise typer.Exit(1)

    configure_logging(cfg.service.log_level)
    console.print(
        f"[bold]docingest[/] listening on http://{cfg.service.host}:{cfg.service.port}"
    )
    uvicorn.run(
        create_app(cfg),
        host=cfg.service.host,
        port=cfg.service.port,
        log_level=cfg.service.log_level.lower(),
        log_config=None,
    )
