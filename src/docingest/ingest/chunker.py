"""Sentence chunker: accumulate sentences up to a character budget."""

from __future__ import annotations

import re

from docingest.ingest.base import BaseChunker

# A sentence is any run of non-terminators followed by one or more of . ! ?
# A trailing fragment without a terminator is a sentence of its own.
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")
_SEPARATOR = " "


def split_sentences(text: str) -> list[str]:
    """Return the stripped, non-empty sentence units of *text* in order."""
    return [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip()]


class SentenceChunker(BaseChunker):
    """Group whole sentences into chunks of at most ``chunk_size`` characters.

    Sentences are appended to a buffer joined by a single space. When adding
    the next sentence would push the buffer past ``chunk_size`` and the buffer
    already holds something, the buffer is emitted and a new one starts with
    that sentence.

    A sentence longer than ``chunk_size`` is never split: it becomes an
    oversized chunk of its own.
    """

    def split(self, text: str) -> list[str]:
        if not text or not text.strip():
            return []

        chunks: list[str] = []
        buffer = ""
        for sentence in split_sentences(text):
            if buffer and len(buffer) + len(_SEPARATOR) + len(sentence) > self.chunk_size:
                chunks.append(buffer)
                buffer = sentence
            elif buffer:
                buffer = f"{buffer}{_SEPARATOR}{sentence}"
            else:
                buffer = sentence

        if buffer.strip():
            chunks.append(buffer.strip())
        return chunks
