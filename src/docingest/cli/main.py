"""docingest CLI entry point."""

from __future__ import annotations

from typing import Annotated

import typer

from docingest.cli.ingest import ingest_cmd
from docingest.cli.remove import remove_cmd
from docingest.cli.serve import serve_cmd
from docingest.cli.status import status_cmd
from docingest.config import package_version
from docingest.logging_utils import configure_logging


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docingest {package_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docingest",
    help=(
        "docingest — document ingestion into a vector store.\n\n"
        "  docingest ingest  Fetch, chunk and embed one document.\n"
        "  docingest serve   Run the HTTP ingestion service."
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
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log pipeline progress at INFO level."),
    ] = False,
) -> None:
    """docingest — document ingestion into a vector store."""
    configure_logging("INFO" if verbose else "WARNING")


app.command("ingest")(ingest_cmd)
app.command("status")(status_cmd)
app.command("remove")(remove_cmd)
app.command("serve")(serve_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docingest version."""
    typer.echo(f"docingest {package_version()}")


if __name__ == "__main__":
    app()
