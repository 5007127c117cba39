"""Tests for docingest config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from docingest.config import (
    ConfigError,
    EmbeddingCfg,
    ServiceConfig,
    load_config,
)
from docingest.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path, environ: dict | None = None, global_data: dict | None = None):
    global_path = tmp_path / "global" / "config.yaml"
    if global_data is not None:
        global_path.parent.mkdir(parents=True, exist_ok=True)
        _write_yaml(global_path, global_data)
    return load_config(
        project_dir=tmp_path, global_config_path=global_path, environ=environ or {}
    )


# ---------------------------------------------------------------------------
# Defaults, no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = _load(tmp_path)

    assert cfg.store.url == ""
    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.dimensions == 1536
    assert cfg.embedding.workers == 1
    assert cfg.embedding.max_input_chars == 8_000
    assert cfg.chunking.chunk_size == 1_000
    assert cfg.extraction.max_chars == 10_000
    assert cfg.fetch.block_private_hosts is True
    assert cfg.service.cors_origins == ["*"]


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_project_config_overrides_global(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "docingest.yaml", {"chunking": {"chunk_size": 500}})
    cfg = _load(tmp_path, global_data={"chunking": {"chunk_size": 200}, "embedding": {"workers": 4}})
    assert cfg.chunking.chunk_size == 500
    assert cfg.embedding.workers == 4


def test_env_overrides_project(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "docingest.yaml",
        {"store": {"url": "sqlite:///file.db"}, "chunking": {"chunk_size": 500}},
    )
    cfg = _load(
        tmp_path,
        environ={
            "DOCINGEST_STORE_URL": "sqlite:///env.db",
            "DOCINGEST_CHUNK_SIZE": "250",
            "DOCINGEST_EMBEDDING_MODEL": "cohere/embed-english-v3.0",
        },
    )
    assert cfg.store.url == "sqlite:///env.db"
    assert cfg.chunking.chunk_size == 250
    assert cfg.embedding.model == "cohere/embed-english-v3.0"


def test_secrets_read_from_env(tmp_path: Path) -> None:
    cfg = _load(tmp_path, environ={"DOCINGEST_STORE_KEY": "s3cret", "OPENAI_API_KEY": "sk-1"})
    assert cfg.store.key == "s3cret"
    assert cfg.embedding.api_key == "sk-1"


def test_provider_key_follows_model(tmp_path: Path) -> None:
    cfg = _load(
        tmp_path,
        environ={
            "DOCINGEST_EMBEDDING_MODEL": "mistral/mistral-embed",
            "OPENAI_API_KEY": "sk-openai",
            "MISTRAL_API_KEY": "sk-mistral",
        },
    )
    assert cfg.embedding.api_key == "sk-mistral"


def test_cors_origins_comma_string(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "docingest.yaml",
        {"service": {"cors_origins": "https://a.example, https://b.example"}},
    )
    cfg = _load(tmp_path)
    assert cfg.service.cors_origins == ["https://a.example", "https://b.example"]


def test_secrets_not_in_repr() -> None:
    cfg = ServiceConfig()
    cfg.store.key = "topsecret"
    cfg.embedding.api_key = "sk-topsecret"
    assert "topsecret" not in repr(cfg)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "OPENAI_API_KEY", "password", "key", "token"])
def test_secret_key_in_global_config_rejected(tmp_path: Path, key: str) -> None:
    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_data={"store": {key: "x"}})


def test_secret_key_in_project_config_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "docingest.yaml", {"embedding": {"api_key": "sk-x"}})
    with pytest.raises(ConfigError):
        _load(tmp_path)


def test_legitimate_keys_not_flagged(tmp_path: Path) -> None:
    cfg = _load(
        tmp_path,
        global_data={"fetch": {"max_bytes": 1024}, "extraction": {"max_chars": 50}},
    )
    assert cfg.fetch.max_bytes == 1024
    assert cfg.extraction.max_chars == 50


def test_invalid_chunk_size_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "docingest.yaml", {"chunking": {"chunk_size": 0}})
    with pytest.raises(ConfigError, match="chunking.chunk_size"):
        _load(tmp_path)


def test_invalid_yaml_is_config_error(tmp_path: Path) -> None:
    (tmp_path / "docingest.yaml").write_text("chunking: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid YAML"):
        _load(tmp_path)


def test_non_mapping_config_file_rejected(tmp_path: Path) -> None:
    (tmp_path / "docingest.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping at the top level"):
        _load(tmp_path)


def test_non_mapping_section_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "docingest.yaml", {"fetch": 5})
    with pytest.raises(ConfigError, match="'fetch' must be a mapping"):
        _load(tmp_path)


@pytest.mark.parametrize("value", ["many", -1])
def test_invalid_max_redirects_rejected(tmp_path: Path, value) -> None:
    _write_yaml(tmp_path / "docingest.yaml", {"fetch": {"max_redirects": value}})
    with pytest.raises(ConfigError, match="fetch.max_redirects"):
        _load(tmp_path)


def test_zero_max_redirects_allowed(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "docingest.yaml", {"fetch": {"max_redirects": 0}})
    assert _load(tmp_path).fetch.max_redirects == 0


def test_invalid_env_chunk_size_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="DOCINGEST_CHUNK_SIZE"):
        _load(tmp_path, environ={"DOCINGEST_CHUNK_SIZE": "lots"})


def test_config_error_is_configuration_error() -> None:
    assert issubclass(ConfigError, ConfigurationError)


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "docingest.yaml", {"retrieval": {"top_k": 3}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)
    assert any("retrieval" in str(w.message) for w in caught)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def test_missing_credentials_lists_all(tmp_path: Path) -> None:
    cfg = _load(tmp_path)
    assert cfg.missing_credentials() == [
        "DOCINGEST_STORE_URL",
        "DOCINGEST_STORE_KEY",
        "OPENAI_API_KEY",
    ]


def test_require_credentials_raises(tmp_path: Path) -> None:
    cfg = _load(tmp_path, environ={"DOCINGEST_STORE_URL": "sqlite:///x.db"})
    with pytest.raises(ConfigurationError, match="DOCINGEST_STORE_KEY, OPENAI_API_KEY"):
        cfg.require_credentials()


def test_require_credentials_passes(tmp_path: Path) -> None:
    cfg = _load(
        tmp_path,
        environ={
            "DOCINGEST_STORE_URL": "sqlite:///x.db",
            "DOCINGEST_STORE_KEY": "k",
            "OPENAI_API_KEY": "sk",
        },
    )
    cfg.require_credentials()


def test_require_store_ignores_embedding_key(tmp_path: Path) -> None:
    cfg = _load(
        tmp_path, environ={"DOCINGEST_STORE_URL": "sqlite:///x.db", "DOCINGEST_STORE_KEY": "k"}
    )
    cfg.require_store()


def test_keyless_provider() -> None:
    cfg = EmbeddingCfg(model="ollama/nomic-embed-text")
    assert cfg.api_key_env is None


@pytest.mark.parametrize("model,env", [
    ("openai/text-embedding-3-small", "OPENAI_API_KEY"),
    ("text-embedding-3-small", "OPENAI_API_KEY"),
    ("cohere/embed-english-v3.0", "COHERE_API_KEY"),
    ("acme/embed-1", "ACME_API_KEY"),
])
def test_api_key_env(model: str, env: str) -> None:
    assert EmbeddingCfg(model=model).api_key_env == env
