"""docingest store layer."""

from docingest.db.connection import Database, path_from_url
from docingest.db.migrations import MIGRATIONS, run_migrations
from docingest.db.repository import Repository
from docingest.db.schema import initialize, open_store
from docingest.db.vectors import VecIndex, vec_tables

__all__ = [
    "Database",
    "Repository",
    "VecIndex",
    "initialize",
    "open_store",
    "path_from_url",
    "run_migrations",
    "MIGRATIONS",
    "vec_tables",
]
