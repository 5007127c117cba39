"""Fixtures for CLI tests: isolated config, environment and store."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

_SECRET_ENV = ("DOCINGEST_STORE_URL", "DOCINGEST_STORE_KEY", "DOCINGEST_EMBEDDING_MODEL",
               "DOCINGEST_CHUNK_SIZE", "OPENAI_API_KEY")


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch):
    """Run every CLI test in tmp_path with a 3-dim embedding config and no global config."""
    for name in _SECRET_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    (tmp_path / "docingest.yaml").write_text(
        yaml.dump({"embedding": {"dimensions": 3}, "chunking": {"chunk_size": 20}}),
        encoding="utf-8",
    )
    monkeypatch.setattr("docingest.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    with patch("docingest.cli.main.configure_logging"):
        yield tmp_path


@pytest.fixture
def store_env(tmp_path: Path) -> dict[str, str]:
    """Environment for a fully configured run against tmp_path/store.db."""
    return {
        "DOCINGEST_STORE_URL": f"sqlite:///{tmp_path / 'store.db'}",
        "DOCINGEST_STORE_KEY": "cli-key",
        "OPENAI_API_KEY": "sk-test",
    }
