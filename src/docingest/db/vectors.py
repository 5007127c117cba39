"""Chunk vector index: one sqlite-vec ``vec0`` table per embedding model.

Vector rows share their rowid with ``chunks``. A store may hold tables for
several models over its lifetime, but a run only writes the table of the
model it is configured with.
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass

from docingest.errors import StorageError

_PREFIX = "vec_chunks_"
_DIMS = re.compile(r"float\[(\d+)\]")


@dataclass(frozen=True)
class VecIndex:
    """The vec table an embedding model writes to, and its vector width."""

    table: str
    dimensions: int

    @classmethod
    def for_model(cls, model: str, dimensions: int) -> VecIndex:
        """``openai/text-embedding-3-small`` -> ``vec_chunks_openai_text_embedding_3_small``."""
        if dimensions < 1:
            raise ValueError(f"dimensions must be >= 1, got {dimensions}")
        return cls(_PREFIX + re.sub(r"[^a-z0-9]", "_", model.lower()), dimensions)

    def ensure(self, conn: sqlite3.Connection) -> str:
        """Create the table on first use and return its name.

        Raises:
            StorageError: If the table already exists with a different
                vector width, e.g. after ``embedding.dimensions`` changed.
        """
        existing = vec_tables(conn).get(self.table)
        if existing is None:
            conn.execute(
                f"CREATE VIRTUAL TABLE {self.table} USING vec0(embedding float[{self.dimensions}])"
            )
            conn.commit()
        elif existing != self.dimensions:
            raise StorageError(
                f"Vector table '{self.table}' stores {existing}-dimension embeddings, "
                f"but {self.dimensions} are configured. Set embedding.dimensions to "
                f"{existing} or use a new store."
            )
        return self.table


def vec_tables(conn: sqlite3.Connection) -> dict[str, int]:
    """Map every chunk vec table to its declared width.

    vec0 also creates ordinary shadow tables (``*_chunks``, ``*_rowids``, ...)
    under the same prefix; only the virtual tables themselves are returned.
    """
    rows = conn.execute(
        "SELECT name, sql FROM sqlite_master WHERE type='table' AND name LIKE ? "
        "AND sql LIKE 'CREATE VIRTUAL TABLE%'",
        (_PREFIX + "%",),
    ).fetchall()
    tables: dict[str, int] = {}
    for name, sql in rows:
        match = _DIMS.search(sql)
        if match:
            tables[name] = int(match.group(1))
    return tables
