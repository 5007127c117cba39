"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from docingest.config import ServiceConfig
from docingest.db.connection import Database
from docingest.db.schema import initialize

TEST_DIMS = 3


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "docingest.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def service_config(tmp_path):
    """Fully credentialed ServiceConfig pointing at a store in tmp_path."""
    cfg = ServiceConfig()
    cfg.store.url = f"sqlite:///{tmp_path / 'store.db'}"
    cfg.store.key = "test-store-key"
    cfg.embedding.api_key = "sk-test"
    cfg.embedding.dimensions = TEST_DIMS
    cfg.chunking.chunk_size = 20
    return cfg
