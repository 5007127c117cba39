"""Repository pattern for all docingest store operations.

Single interface for: documents, chunks, vec embeddings, nearest-neighbour search.
Vec tables are created by VecIndex; the repository reads and writes them.
"""

from __future__ import annotations

import json
import sqlite3

from docingest.db.models import Chunk, Document
from docingest.db.vectors import vec_tables


class Repository:
    """Data access layer for documents and their chunks.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. Single-row writes commit immediately;
    ``replace_chunks`` and ``delete_document`` run in one transaction.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see docingest.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upsert_document(self, document_id: str, source_url: str) -> None:
        """Create the document row, or point an existing one at *source_url*."""
        self._conn.execute(
            """
            INSERT INTO documents (id, source_url)
            VALUES (?, ?)
            ON CONFLICT(id) DO UPDATE SET
                source_url = excluded.source_url,
                updated_at = datetime('now')
            """,
            (document_id, source_url),
        )
        self._conn.commit()

    def get_document(self, document_id: str) -> Document | None:
        """Return a document by ID, or None if not found."""
        row = self._conn.execute(
            "SELECT id, source_url, status, status_detail, updated_at FROM documents WHERE id = ?",
            (document_id,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        """Return all documents, most recently updated first."""
        rows = self._conn.execute(
            "SELECT id, source_url, status, status_detail, updated_at "
            "FROM documents ORDER BY updated_at DESC, id"
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def set_status(self, document_id: str, status: str, detail: dict | None = None) -> None:
        """Record the processing *status* of a document, with optional JSON detail."""
        self._conn.execute(
            """
            UPDATE documents
            SET status = ?, status_detail = ?, updated_at = datetime('now')
            WHERE id = ?
            """,
            (status, json.dumps(detail or {}), document_id),
        )
        self._conn.commit()

    def delete_document(self, document_id: str) -> int:
        """Delete a document with its chunks and embeddings. Returns chunks removed."""
        try:
            self._conn.execute("BEGIN IMMEDIATE")
            removed = self._delete_chunks(document_id)
            self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            self._conn.commit()
        except sqlite3.Error:
            self._conn.rollback()
            raise
        return removed

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def replace_chunks(self, document_id: str, chunks: list[Chunk], vec_table: str) -> int:
        """Atomically swap the chunk set of *document_id* for *chunks*.

        Deletes every existing chunk row and embedding for the document, then
        inserts *chunks* in ``chunk_index`` order, all in one transaction.
        On any error the transaction is rolled back and the previous chunk
        set stays visible. Returns the number of chunks inserted.
        """
        ordered = sorted(chunks, key=lambda c: c.chunk_index)
        try:
            self._conn.execute("BEGIN IMMEDIATE")
            self._delete_chunks(document_id)
            for chunk in ordered:
                if chunk.document_id != document_id:
                    raise ValueError(
                        f"Chunk {chunk.chunk_index} belongs to '{chunk.document_id}', "
                        f"not '{document_id}'."
                    )
                if chunk.embedding is None:
                    raise ValueError(f"Chunk {chunk.chunk_index} has no embedding.")
                cur = self._conn.execute(
                    "INSERT INTO chunks (document_id, chunk_index, text) VALUES (?, ?, ?)",
                    (document_id, chunk.chunk_index, chunk.text),
                )
                self._conn.execute(
                    f"INSERT INTO {vec_table}(rowid, embedding) VALUES (?, ?)",
                    (cur.lastrowid, json.dumps(chunk.embedding)),
                )
                chunk.rowid = cur.lastrowid
            self._conn.commit()
        except (sqlite3.Error, ValueError):
            self._conn.rollback()
            raise
        return len(ordered)

    def list_chunks(self, document_id: str) -> list[Chunk]:
        """Return the chunks of *document_id* in index order (without embeddings)."""
        rows = self._conn.execute(
            """
            SELECT rowid, document_id, chunk_index, text, created_at
            FROM chunks WHERE document_id = ? ORDER BY chunk_index
            """,
            (document_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def get_chunk_by_rowid(self, rowid: int) -> Chunk | None:
        """Return a chunk by its SQLite rowid, or None if not found."""
        row = self._conn.execute(
            """
            SELECT rowid, document_id, chunk_index, text, created_at
            FROM chunks WHERE rowid = ?
            """,
            (rowid,),
        ).fetchone()
        return _row_to_chunk(row) if row else None

    @property
    def in_transaction(self) -> bool:
        """True while a write transaction is still open on the connection."""
        return self._conn.in_transaction

    def count_chunks(self, document_id: str) -> int:
        """Return the number of committed chunks for *document_id*."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
        ).fetchone()[0]

    def _delete_chunks(self, document_id: str) -> int:
        """Delete chunk rows and vec entries for a document. Caller owns the transaction."""
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT rowid FROM chunks WHERE document_id = ?", (document_id,)
            ).fetchall()
        ]
        if rowids:
            placeholders = ",".join("?" * len(rowids))
            for table in vec_tables(self._conn):
                self._conn.execute(
                    f"DELETE FROM [{table}] WHERE rowid IN ({placeholders})",  # noqa: S608
                    rowids,
                )
        self._conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
        return len(rowids)

    # ------------------------------------------------------------------
    # Vec embeddings
    # ------------------------------------------------------------------

    def get_embedding(self, table: str, rowid: int) -> list[float] | None:
        """Return the stored vector for chunk *rowid*, or None."""
        row = self._conn.execute(
            f"SELECT vec_to_json(embedding) AS embedding FROM {table} WHERE rowid = ?",
            (rowid,),
        ).fetchone()
        return json.loads(row["embedding"]) if row else None

    def search_vec(
        self,
        table: str,
        embedding: list[float],
        limit: int = 10,
        document_id: str | None = None,
    ) -> list[tuple[Chunk, float]]:
        """Nearest-neighbour search. Returns (chunk, distance) sorted by distance.

        With *document_id* the search is an exact scan over that document's
        chunks; without it, the vec0 KNN index is used across all documents.
        """
        query = json.dumps(embedding)
        if document_id is not None:
            rows = self._conn.execute(
                f"""
                SELECT c.rowid AS rowid, vec_distance_l2(v.embedding, ?) AS distance
                FROM chunks c JOIN {table} v ON v.rowid = c.rowid
                WHERE c.document_id = ?
                ORDER BY distance LIMIT ?
                """,
                (query, document_id, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT rowid, distance FROM {table} WHERE embedding MATCH ? ORDER BY distance LIMIT ?",
                (query, limit),
            ).fetchall()

        results: list[tuple[Chunk, float]] = []
        for vec_row in rows:
            chunk = self.get_chunk_by_rowid(vec_row["rowid"])
            if chunk is not None:
                results.append((chunk, vec_row["distance"]))
        return results


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        source_url=row["source_url"],
        status=row["status"],
        status_detail=row["status_detail"],
        updated_at=row["updated_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        rowid=row["rowid"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        text=row["text"],
        created_at=row["created_at"],
    )
