"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from docingest.errors import ConfigurationError

_SQLITE_PREFIX = "sqlite:///"


def path_from_url(url: str) -> Path:
    """Resolve a store URL to a database file path.

    Accepts ``sqlite:///relative.db``, ``sqlite:////abs/path.db`` or a bare path.

    Raises:
        ConfigurationError: If the URL is empty or uses another scheme.
    """
    if not url:
        raise ConfigurationError("Store URL is empty.")
    if url.startswith(_SQLITE_PREFIX):
        return Path(url[len(_SQLITE_PREFIX):])
    if "://" in url:
        scheme = url.split("://", 1)[0]
        raise ConfigurationError(
            f"Unsupported store URL scheme '{scheme}'. Use sqlite:///path/to.db"
        )
    return Path(url)


class Database:
    """Per-deployment SQLite database with sqlite-vec vector search support."""

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing).
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    @classmethod
    def from_url(cls, url: str) -> Database:
        return cls(path_from_url(url))

    def connect(self) -> sqlite3.Connection:
        """Open a connection, load sqlite-vec, and return the connection.

        One connection per ingestion run; the 30 s busy timeout lets
        concurrent runs wait on SQLite's write lock instead of failing.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None
