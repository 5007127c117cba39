"""Index writer. Swaps a document's chunk set in one transaction."""

from __future__ import annotations

import logging
import sqlite3

from docingest.db.models import Chunk
from docingest.db.repository import Repository
from docingest.errors import StorageError

logger = logging.getLogger(__name__)


class IndexWriter:
    """Replace all stored chunks of a document with a freshly embedded set.

    Args:
        repo:      Open Repository instance.
        vec_table: Name of the vec table for the active embedding model.
    """

    def __init__(self, repo: Repository, vec_table: str) -> None:
        self._repo = repo
        self._vec_table = vec_table

    def replace(self, document_id: str, chunks: list[Chunk]) -> int:
        """Delete every chunk of *document_id*, then insert *chunks* in index order.

        Both steps share a single transaction: on failure nothing changes and
        the previously committed chunk set remains visible.

        Returns:
            Number of chunks committed.

        Raises:
            StorageError: If the delete or any insert fails.
        """
        try:
            count = self._repo.replace_chunks(document_id, chunks, self._vec_table)
        except (sqlite3.Error, ValueError) as exc:
            raise StorageError(
                f"Failed to replace chunks for document '{document_id}': {exc}",
                index_unchanged=not self._repo.in_transaction,
            ) from exc
        logger.info("Committed %d chunks for document %s", count, document_id)
        return count
