"""Tests for the per-model chunk vector index."""

from __future__ import annotations

import json

import pytest

from docingest.db.models import Chunk
from docingest.db.repository import Repository
from docingest.db.schema import open_store
from docingest.db.vectors import VecIndex, vec_tables
from docingest.errors import StorageError


def test_table_name_follows_model():
    index = VecIndex.for_model("openai/text-embedding-3-small", 1536)
    assert index.table == "vec_chunks_openai_text_embedding_3_small"
    assert index.dimensions == 1536


def test_table_name_ignores_case_and_punctuation():
    assert (
        VecIndex.for_model("local/all-MiniLM-L6-v2", 3).table
        == VecIndex.for_model("local/all_minilm_l6_v2", 3).table
    )


def test_zero_dimensions_rejected():
    with pytest.raises(ValueError, match="dimensions"):
        VecIndex.for_model("openai/text-embedding-3-small", 0)


def test_ensure_creates_table_once(tmp_db):
    index = VecIndex.for_model("openai/text-embedding-3-small", 3)
    assert index.ensure(tmp_db) == index.table
    assert index.ensure(tmp_db) == index.table
    assert vec_tables(tmp_db) == {index.table: 3}


def test_vec_tables_skips_shadow_tables(tmp_db):
    VecIndex.for_model("model-a", 3).ensure(tmp_db)
    VecIndex.for_model("model-b", 5).ensure(tmp_db)
    shadow = tmp_db.execute(
        "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name LIKE 'vec_chunks_model_a_%'"
    ).fetchone()[0]
    assert shadow > 0
    assert vec_tables(tmp_db) == {"vec_chunks_model_a": 3, "vec_chunks_model_b": 5}


def test_vec_tables_empty_store(tmp_db):
    assert vec_tables(tmp_db) == {}


def test_dimension_change_rejected(tmp_db):
    VecIndex.for_model("openai/text-embedding-3-small", 3).ensure(tmp_db)
    with pytest.raises(StorageError, match="3-dimension"):
        VecIndex.for_model("openai/text-embedding-3-small", 4).ensure(tmp_db)


def test_reopen_store_with_other_dimensions_fails(tmp_path):
    url = f"sqlite:///{tmp_path / 'store.db'}"
    conn, _ = open_store(url, "k", "openai/text-embedding-3-small", 3)
    conn.close()
    with pytest.raises(StorageError, match="embedding.dimensions"):
        open_store(url, "k", "openai/text-embedding-3-small", 8)


def test_model_switch_keeps_both_tables_and_delete_clears_both(tmp_path):
    url = f"sqlite:///{tmp_path / 'store.db'}"
    conn, old_table = open_store(url, "k", "openai/text-embedding-3-small", 3)
    repo = Repository(conn)
    repo.upsert_document("doc-1", "https://example.com/a")
    repo.replace_chunks("doc-1", [Chunk("doc-1", 0, "Old.", embedding=[0.1, 0.2, 0.3])], old_table)
    conn.close()

    conn, new_table = open_store(url, "k", "cohere/embed-english-v3.0", 2)
    try:
        repo = Repository(conn)
        assert set(vec_tables(conn)) == {old_table, new_table}
        repo.replace_chunks("doc-1", [Chunk("doc-1", 0, "New.", embedding=[1.0, 0.0])], new_table)
        rowid = conn.execute("SELECT rowid FROM chunks WHERE document_id='doc-1'").fetchone()[0]
        assert json.loads(
            conn.execute(f"SELECT vec_to_json(embedding) FROM {new_table} WHERE rowid=?", (rowid,))
            .fetchone()[0]
        ) == pytest.approx([1.0, 0.0])
        assert conn.execute(f"SELECT COUNT(*) FROM {old_table}").fetchone()[0] == 0
    finally:
        conn.close()
