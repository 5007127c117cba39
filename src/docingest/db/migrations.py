"""Forward-only schema migrations for the chunk store.

The applied version is kept in ``store_meta`` under ``schema_version``.
Each step runs inside ``BEGIN IMMEDIATE`` and re-reads the version once it
holds the write lock, so a CLI run and the service opening a fresh store at
the same time apply every step exactly once. Vec tables are not migrated
here; see ``VecIndex.ensure()``.
"""

from __future__ import annotations

import sqlite3

from docingest.errors import StorageError

_VERSION_KEY = "schema_version"

_CREATE_STORE_META = """
CREATE TABLE IF NOT EXISTS store_meta (
    name        TEXT PRIMARY KEY,
    value       TEXT NOT NULL
)
"""

_V1 = (
    """
    CREATE TABLE documents (
        id              TEXT PRIMARY KEY,
        source_url      TEXT NOT NULL,
        status          TEXT NOT NULL DEFAULT 'pending',
        status_detail   TEXT NOT NULL DEFAULT '{}',
        updated_at      DATETIME NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE chunks (
        document_id     TEXT NOT NULL,
        chunk_index     INTEGER NOT NULL,
        text            TEXT NOT NULL,
        created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
        PRIMARY KEY (document_id, chunk_index)
    )
    """,
)

# Append-only: (version, statements). Statements run in one transaction.
MIGRATIONS: list[tuple[int, tuple[str, ...]]] = [
    (1, _V1),
]

CURRENT_VERSION = MIGRATIONS[-1][0]


def schema_version(conn: sqlite3.Connection) -> int:
    """Return the applied schema version, 0 for an empty store."""
    row = conn.execute(
        "SELECT value FROM store_meta WHERE name = ?", (_VERSION_KEY,)
    ).fetchone()
    return int(row[0]) if row is not None else 0


def run_migrations(conn: sqlite3.Connection) -> None:
    """Bring the store up to ``CURRENT_VERSION``.

    Raises:
        StorageError: If the store was written by a newer schema.
    """
    conn.execute(_CREATE_STORE_META)
    conn.commit()

    found = schema_version(conn)
    if found > CURRENT_VERSION:
        raise StorageError(
            f"Store schema version {found} is newer than this docingest "
            f"supports ({CURRENT_VERSION}). Upgrade docingest."
        )

    for version, statements in MIGRATIONS:
        if version <= found:
            continue
        conn.execute("BEGIN IMMEDIATE")
        try:
            if schema_version(conn) >= version:
                conn.rollback()
                continue
            for sql in statements:
                conn.execute(sql)
            conn.execute(
                "INSERT OR REPLACE INTO store_meta (name, value) VALUES (?, ?)",
                (_VERSION_KEY, str(version)),
            )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
