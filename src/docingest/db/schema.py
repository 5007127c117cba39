"""Database initialization and store credential check."""

from __future__ import annotations

import hashlib
import hmac
import sqlite3

from docingest.errors import StorageError

_KEY_DIGEST = "store_key_sha256"


def _digest(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def initialize(conn: sqlite3.Connection, store_key: str | None = None) -> None:
    """Initialize the schema (idempotent) and check the store credential.

    The first connection that presents a key records its SHA-256 digest;
    every later connection must present the same key.

    Raises:
        StorageError: If *store_key* does not match the recorded digest.
    """
    from docingest.db.migrations import run_migrations

    run_migrations(conn)

    if store_key is None:
        return

    row = conn.execute(
        "SELECT value FROM store_meta WHERE name = ?", (_KEY_DIGEST,)
    ).fetchone()
    if row is None:
        conn.execute(
            "INSERT INTO store_meta (name, value) VALUES (?, ?)",
            (_KEY_DIGEST, _digest(store_key)),
        )
        conn.commit()
        return

    if not hmac.compare_digest(row["value"], _digest(store_key)):
        raise StorageError("Store credential rejected.")


def open_store(
    url: str,
    store_key: str | None,
    embedding_model: str,
    dimensions: int,
) -> tuple[sqlite3.Connection, str]:
    """Open the store at *url*, initialise it, and ensure the model's vec table.

    Returns:
        (connection, vec table name). The caller closes the connection.

    Raises:
        ConfigurationError: If *url* is not a supported store URL.
        StorageError: If the database cannot be opened, the credential is
            rejected, or the model's vec table has a different width.
    """
    from docingest.db.connection import Database
    from docingest.db.vectors import VecIndex

    db = Database.from_url(url)
    try:
        conn = db.connect()
    except (sqlite3.Error, OSError) as exc:
        raise StorageError(f"Cannot open store at '{db.db_path}': {exc}") from exc

    try:
        initialize(conn, store_key)
        vec_table = VecIndex.for_model(embedding_model, dimensions).ensure(conn)
    except sqlite3.Error as exc:
        conn.close()
        raise StorageError(f"Cannot initialise store at '{db.db_path}': {exc}") from exc
    except StorageError:
        conn.close()
        raise
    return conn, vec_table
