"""docingest rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from docingest.cli.errors import err_missing_config
    console.print(err_missing_config(["DOCINGEST_STORE_URL"]))
    raise typer.Exit(1)
"""

from __future__ import annotations

from docingest.config import ENV_STORE_KEY, ENV_STORE_URL
from docingest.errors import IngestError

_ENV_EXAMPLES = {
    ENV_STORE_URL: "sqlite:///docingest.db",
    ENV_STORE_KEY: "<store secret>",
}


def err_missing_config(names: list[str]) -> str:
    """Required settings are unset.

    Example:
        Missing required configuration: DOCINGEST_STORE_KEY
          Set:  export DOCINGEST_STORE_KEY=<store secret>
    """
    exports = "\n".join(
        f"  Set:  export {name}={_ENV_EXAMPLES.get(name, 'sk-...')}" for name in names
    )
    return f"[red]Error:[/] Missing required configuration: {', '.join(names)}\n{exports}"


def err_config_file(message: str) -> str:
    """A config file could not be used."""
    return (
        f"[red]Error:[/] {message}\n"
        "  Fix docingest.yaml (or ~/.docingest/config.yaml) and retry."
    )


def err_store(message: str) -> str:
    """The store could not be opened or rejected the credential."""
    return (
        f"[red]Error:[/] {message}\n"
        f"  Check {ENV_STORE_URL} points at a writable SQLite file and that\n"
        f"  {ENV_STORE_KEY} is the key the store was created with."
    )


def err_document_not_found(document_id: str) -> str:
    """Document id is unknown to the store."""
    return (
        f"[yellow]Document not found:[/] '{document_id}' is not in the store.\n"
        "  Run:  docingest ingest --url URL --document-id ID  to add it."
    )


def err_ingest_failed(error_type: str, error: str, index_unchanged: bool) -> str:
    """An ingestion run failed; hint depends on the failing stage."""
    hints = {
        "validation_error": "Pass an absolute http(s) --url and a non-empty --document-id.",
        "configuration_error": "Set the missing environment variables and retry.",
        "fetch_error": "Check that the URL is publicly reachable and returns the document.",
        "embedding_service_error": (
            "Check the embedding API key, the model name and its dimensions setting."
        ),
        "storage_error": f"Check {ENV_STORE_URL} and {ENV_STORE_KEY}.",
    }
    state = (
        "The previously indexed chunks are unchanged."
        if index_unchanged
        else "[yellow]The stored chunk set may be incomplete; re-run the ingestion.[/]"
    )
    hint = hints.get(error_type, "See the log output above for details.")
    return f"[red]Error ({error_type}):[/] {error}\n  {hint}\n  {state}"


def err_from_exception(exc: IngestError) -> str:
    """Render any IngestError raised outside a pipeline run."""
    if exc.error_type == "configuration_error":
        return err_config_file(exc.message)
    if exc.error_type == "storage_error":
        return err_store(exc.message)
    return f"[red]Error:[/] {exc.message}"
