"""Tests for the docingest CLI commands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from docingest.cli.main import app
from docingest.db.models import Chunk
from docingest.db.repository import Repository
from docingest.db.schema import open_store
from docingest.errors import FetchError
from docingest.ingest.fetcher import FetchedDocument

runner = CliRunner()

_URL = "https://example.com/handbook.txt"
_EMBED = "docingest.ingest.embedding_client.litellm.embedding"
_FETCH = "docingest.ingest.pipeline.Fetcher.fetch"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _embedding():
    resp = MagicMock()
    resp.data = [{"embedding": [0.1, 0.2, 0.3]}]
    return patch(_EMBED, return_value=resp)


def _fetched(body: bytes = b"Hello world. This is a test. Short."):
    return patch(
        _FETCH, return_value=FetchedDocument(url=_URL, body=body, content_type="text/plain")
    )


def _seed(env: dict[str, str], document_id: str = "handbook", n: int = 2) -> None:
    conn, table = open_store(
        env["DOCINGEST_STORE_URL"], env["DOCINGEST_STORE_KEY"], "openai/text-embedding-3-small", 3
    )
    repo = Repository(conn)
    repo.upsert_document(document_id, _URL)
    repo.set_status(document_id, "completed", {"chunks_count": n, "word_count": 10})
    repo.replace_chunks(
        document_id,
        [Chunk(document_id, i, f"chunk {i}", embedding=[0.1, 0.2, 0.3]) for i in range(n)],
        table,
    )
    conn.close()


def _count(env: dict[str, str], document_id: str = "handbook") -> int:
    conn, _ = open_store(
        env["DOCINGEST_STORE_URL"], env["DOCINGEST_STORE_KEY"], "openai/text-embedding-3-small", 3
    )
    try:
        return Repository(conn).count_chunks(document_id)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("docingest ")


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "docingest" in result.output


# ---------------------------------------------------------------------------
# ingest
# ---------------------------------------------------------------------------


def test_ingest_success(store_env) -> None:
    with _fetched(), _embedding():
        result = runner.invoke(
            app, ["ingest", "--url", _URL, "--document-id", "handbook"], env=store_env
        )
    assert result.exit_code == 0, result.output
    assert "3 chunks" in result.output
    assert _count(store_env) == 3


def test_ingest_db_option_overrides_store_url(store_env, tmp_path: Path) -> None:
    env = dict(store_env)
    del env["DOCINGEST_STORE_URL"]
    db = tmp_path / "override.db"
    with _fetched(), _embedding():
        result = runner.invoke(
            app, ["ingest", "--url", _URL, "--document-id", "d", "--db", str(db)], env=env
        )
    assert result.exit_code == 0, result.output
    assert db.exists()


def test_ingest_missing_credentials_exits_1() -> None:
    with _fetched() as fetch:
        result = runner.invoke(app, ["ingest", "--url", _URL, "--document-id", "handbook"])
    assert result.exit_code == 1
    assert "DOCINGEST_STORE_URL" in result.output
    fetch.assert_not_called()


def test_ingest_fetch_failure_exits_1(store_env) -> None:
    with patch(_FETCH, side_effect=FetchError("Source returned HTTP 404", status_code=404)):
        result = runner.invoke(
            app, ["ingest", "--url", _URL, "--document-id", "handbook"], env=store_env
        )
    assert result.exit_code == 1
    assert "fetch_error" in result.output
    assert "unchanged" in result.output


def test_ingest_broken_config_file_exits_1(cli_env: Path) -> None:
    (cli_env / "docingest.yaml").write_text("embedding: {dimensions: [\n", encoding="utf-8")
    result = runner.invoke(app, ["ingest", "--url", _URL, "--document-id", "handbook"])
    assert result.exit_code == 1
    assert "YAML" in result.output
    assert isinstance(result.exception, SystemExit)


def test_ingest_requires_url() -> None:
    result = runner.invoke(app, ["ingest", "--document-id", "handbook"])
    assert result.exit_code != 0


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


def test_status_single_document(store_env) -> None:
    _seed(store_env)
    result = runner.invoke(app, ["status", "--document-id", "handbook"], env=store_env)
    assert result.exit_code == 0, result.output
    assert "handbook" in result.output
    assert "completed" in result.output


def test_status_lists_documents(store_env) -> None:
    _seed(store_env, "a")
    _seed(store_env, "b")
    result = runner.invoke(app, ["status"], env=store_env)
    assert result.exit_code == 0, result.output
    assert "a" in result.output and "b" in result.output
    assert "(2)" in result.output


def test_status_unknown_document_exits_1(store_env) -> None:
    result = runner.invoke(app, ["status", "--document-id", "nope"], env=store_env)
    assert result.exit_code == 1
    assert "not found" in result.output.lower()


def test_status_without_store_key_exits_1(store_env) -> None:
    env = dict(store_env)
    del env["DOCINGEST_STORE_KEY"]
    result = runner.invoke(app, ["status"], env=env)
    assert result.exit_code == 1
    assert "DOCINGEST_STORE_KEY" in result.output


def test_status_wrong_key_exits_1(store_env) -> None:
    _seed(store_env)
    env = dict(store_env, DOCINGEST_STORE_KEY="wrong")
    result = runner.invoke(app, ["status"], env=env)
    assert result.exit_code == 1
    assert "credential rejected" in result.output


# ---------------------------------------------------------------------------
# remove
# ---------------------------------------------------------------------------


def test_remove_with_yes(store_env) -> None:
    _seed(store_env, n=3)
    result = runner.invoke(app, ["remove", "--document-id", "handbook", "--yes"], env=store_env)
    assert result.exit_code == 0, result.output
    assert "3 chunks deleted" in result.output
    assert _count(store_env) == 0


def test_remove_cancelled(store_env) -> None:
    _seed(store_env)
    result = runner.invoke(
        app, ["remove", "--document-id", "handbook"], env=store_env, input="n\n"
    )
    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert _count(store_env) == 2


def test_remove_unknown_document(store_env) -> None:
    result = runner.invoke(app, ["remove", "--document-id", "nope", "--yes"], env=store_env)
    assert result.exit_code == 0
    assert "not found" in result.output.lower()


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


def test_serve_runs_uvicorn(store_env) -> None:
    with patch("docingest.cli.serve.uvicorn.run") as run, \
         patch("docingest.cli.serve.configure_logging"):
        result = runner.invoke(app, ["serve", "--port", "9001"], env=store_env)
    assert result.exit_code == 0, result.output
    assert run.call_args.kwargs["port"] == 9001
    assert run.call_args.kwargs["host"] == "127.0.0.1"


def test_serve_refuses_without_credentials() -> None:
    with patch("docingest.cli.serve.uvicorn.run") as run:
        result = runner.invoke(app, ["serve"])
    assert result.exit_code == 1
    run.assert_not_called()
