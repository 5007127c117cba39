"""Base chunker interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from docingest.db.models import Chunk


class BaseChunker(ABC):
    """Abstract base for chunkers.

    Subclasses implement ``split()``; ``chunk()`` turns the resulting text
    fragments into sequentially indexed Chunk objects. Sizes are measured in
    characters.
    """

    def __init__(self, chunk_size: int = 1000) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.chunk_size = chunk_size

    @abstractmethod
    def split(self, text: str) -> list[str]:
        """Split *text* into an ordered list of non-empty fragments."""

    def chunk(self, document_id: str, text: str) -> list[Chunk]:
        """Split *text* into Chunk objects for *document_id*.

        Returns:
            Ordered list of Chunk objects with sequential ``chunk_index``.
        """
        return self._make_chunks(document_id, self.split(text))

    @staticmethod
    def _make_chunks(document_id: str, texts: list[str]) -> list[Chunk]:
        """Convert a list of text strings into sequentially indexed Chunks."""
        return [
            Chunk(document_id=document_id, chunk_index=i, text=t)
            for i, t in enumerate(texts)
        ]
