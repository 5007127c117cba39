"""Ingestion orchestrator.

One ``IngestionPipeline.run`` call is one sequential ingestion of one
document. Every failure is caught at this boundary and turned into a
uniform ``IngestResult``; nothing is retried.
"""

from __future__ import annotations

import logging
import sqlite3
import time
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from docingest.config import ServiceConfig
from docingest.db.repository import Repository
from docingest.db.schema import open_store
from docingest.errors import IngestError, StorageError, ValidationError
from docingest.ingest.base import BaseChunker
from docingest.ingest.chunker import SentenceChunker
from docingest.ingest.embedding_client import EmbeddingClient
from docingest.ingest.extractor import BaseExtractor, select_extractor
from docingest.ingest.fetcher import Fetcher
from docingest.ingest.index_writer import IndexWriter
from docingest.ingest.locks import DocumentLocks

logger = logging.getLogger(__name__)

ExtractorFactory = Callable[[str, bytes, int], BaseExtractor]

# Document status values, in pipeline order
STATUS_FETCHING = "fetching"
STATUS_EXTRACTING = "extracting"
STATUS_CHUNKING = "chunking"
STATUS_EMBEDDING = "embedding"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------


@dataclass
class IngestRequest:
    source_url: str
    document_id: str

    @classmethod
    def from_payload(cls, payload: Any) -> IngestRequest:
        """Build a request from a decoded JSON body (``sourceUrl``, ``documentId``).

        Raises:
            ValidationError: If *payload* is not an object or a field is not a string.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object.")
        source_url = payload.get("sourceUrl")
        document_id = payload.get("documentId")
        for name, value in (("sourceUrl", source_url), ("documentId", document_id)):
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{name} must be a string.")
        return cls(source_url=source_url or "", document_id=document_id or "")

    def validate(self) -> None:
        """Raise ValidationError unless both fields are usable."""
        missing = [
            name
            for name, value in (("sourceUrl", self.source_url), ("documentId", self.document_id))
            if not value or not value.strip()
        ]
        if missing:
            raise ValidationError("Missing required fields: " + ", ".join(missing))

        parsed = urllib.parse.urlparse(self.source_url.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(
                f"sourceUrl must be an absolute http(s) URL, got '{self.source_url}'."
            )


@dataclass
class IngestResult:
    success: bool
    document_id: str
    processing_time_ms: int
    chunks_count: int = 0
    message: str = ""
    error: str = ""
    error_type: str = ""
    index_unchanged: bool = True
    http_status: int = 200

    @classmethod
    def failure(
        cls,
        exc: IngestError,
        document_id: str,
        processing_time_ms: int,
        *,
        index_unchanged: bool = True,
    ) -> IngestResult:
        return cls(
            success=False,
            document_id=document_id,
            processing_time_ms=processing_time_ms,
            error=str(exc),
            error_type=exc.error_type,
            index_unchanged=index_unchanged,
            http_status=exc.http_status,
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire representation (camelCase keys)."""
        if self.success:
            return {
                "success": True,
                "chunksCount": self.chunks_count,
                "message": self.message,
                "documentId": self.document_id,
                "processingTimeMs": self.processing_time_ms,
            }
        return {
            "success": False,
            "error": self.error,
            "errorType": self.error_type,
            "indexUnchanged": self.index_unchanged,
            "processingTimeMs": self.processing_time_ms,
        }


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class IngestionPipeline:
    """Run ingestion requests against the store named in *config*.

    Collaborators default to the production implementations built from
    *config*; pass replacements to swap the fetcher, chunker, embedder or
    extractor selection. One pipeline may serve many threads: runs for the
    same document are serialised by *locks*, and every run opens its own
    store connection.

    Args:
        config:            Fully loaded ServiceConfig.
        fetcher:           Source downloader.
        chunker:           Text splitter.
        embedder:          Embedding client.
        extractor_factory: ``(content_type, data, max_chars) -> BaseExtractor``.
        locks:             Per-document lock table, shared across pipelines
                           that write the same store.
    """

    def __init__(
        self,
        config: ServiceConfig,
        *,
        fetcher: Fetcher | None = None,
        chunker: BaseChunker | None = None,
        embedder: EmbeddingClient | None = None,
        extractor_factory: ExtractorFactory = select_extractor,
        locks: DocumentLocks | None = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher or Fetcher(config.fetch)
        self._chunker = chunker or SentenceChunker(config.chunking.chunk_size)
        self._embedder = embedder or EmbeddingClient(config.embedding)
        self._extractor_factory = extractor_factory
        self._locks = locks or DocumentLocks()

    @property
    def config(self) -> ServiceConfig:
        return self._config

    def run(
        self,
        request: IngestRequest,
        on_progress: Callable[[str, int, int], None] | None = None,
    ) -> IngestResult:
        """Ingest one document and return the outcome. Never raises IngestError.

        *on_progress* receives ``(stage, done, total)``; during embedding
        ``done`` counts vectors produced so far.
        """
        start = time.monotonic()
        document_id = (request.document_id or "").strip()

        try:
            request.validate()
            self._config.require_credentials()
        except IngestError as exc:
            logger.warning("Rejected ingestion request: %s", exc)
            return IngestResult.failure(exc, document_id, _elapsed_ms(start))

        source_url = request.source_url.strip()
        with self._locks.hold(document_id):
            return self._run_locked(document_id, source_url, start, on_progress)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_locked(
        self,
        document_id: str,
        source_url: str,
        start: float,
        on_progress: Callable[[str, int, int], None] | None,
    ) -> IngestResult:
        conn: sqlite3.Connection | None = None
        repo: Repository | None = None
        committed = False
        try:
            conn, vec_table = open_store(
                self._config.store.url,
                self._config.store.key,
                self._config.embedding.model,
                self._config.embedding.dimensions,
            )
            repo = Repository(conn)
            try:
                repo.upsert_document(document_id, source_url)
            except sqlite3.Error as exc:
                raise StorageError(f"Cannot record document '{document_id}': {exc}") from exc

            count, words = self._process(repo, vec_table, document_id, source_url, on_progress)
            committed = True

            elapsed = _elapsed_ms(start)
            self._set_status(
                repo,
                document_id,
                STATUS_COMPLETED,
                {"chunks_count": count, "processing_time_ms": elapsed, "word_count": words},
            )
            if count == 0:
                message = f"No text extracted from '{source_url}'; document has no chunks."
            else:
                message = f"Document processed: {count} chunks indexed."
            logger.info("Ingested %s: %d chunks in %d ms", document_id, count, elapsed)
            return IngestResult(
                success=True,
                document_id=document_id,
                processing_time_ms=elapsed,
                chunks_count=count,
                message=message,
            )
        except IngestError as exc:
            logger.error("Ingestion of %s failed (%s): %s", document_id, exc.error_type, exc)
            return self._fail(
                repo,
                document_id,
                exc,
                start,
                index_unchanged=not committed and getattr(exc, "index_unchanged", True),
            )
        except Exception as exc:
            logger.exception("Unexpected failure ingesting %s", document_id)
            return self._fail(
                repo,
                document_id,
                IngestError(f"Unexpected {type(exc).__name__}: {exc}"),
                start,
                index_unchanged=not committed and (repo is None or not repo.in_transaction),
            )
        finally:
            if conn is not None:
                conn.close()

    def _fail(
        self,
        repo: Repository | None,
        document_id: str,
        exc: IngestError,
        start: float,
        *,
        index_unchanged: bool,
    ) -> IngestResult:
        if repo is not None:
            self._set_status(
                repo,
                document_id,
                STATUS_FAILED,
                {"error": str(exc), "error_type": exc.error_type},
            )
        return IngestResult.failure(
            exc, document_id, _elapsed_ms(start), index_unchanged=index_unchanged
        )

    def _process(
        self,
        repo: Repository,
        vec_table: str,
        document_id: str,
        source_url: str,
        on_progress: Callable[[str, int, int], None] | None,
    ) -> tuple[int, int]:
        """Fetch → extract → chunk → embed → replace. Returns (chunks, words)."""
        self._set_status(repo, document_id, STATUS_FETCHING)
        fetched = self._fetcher.fetch(source_url)

        self._set_status(repo, document_id, STATUS_EXTRACTING)
        extractor = self._extractor_factory(
            fetched.content_type, fetched.body, self._config.extraction.max_chars
        )
        text = extractor.extract(fetched.body)
        logger.debug(
            "Extracted %d chars from %s with %s",
            len(text), source_url, type(extractor).__name__,
        )

        self._set_status(repo, document_id, STATUS_CHUNKING)
        chunks = self._chunker.chunk(document_id, text)

        self._set_status(repo, document_id, STATUS_EMBEDDING, {"chunks_total": len(chunks)})
        total = len(chunks)
        if on_progress is not None:
            on_progress(STATUS_EMBEDDING, 0, total)
        vectors = self._embedder.embed_all(
            [c.text for c in chunks],
            on_progress=(lambda i: on_progress(STATUS_EMBEDDING, i + 1, total))
            if on_progress is not None
            else None,
        )
        for chunk, vector in zip(chunks, vectors):
            chunk.embedding = vector

        count = IndexWriter(repo, vec_table).replace(document_id, chunks)
        return count, len(text.split())

    @staticmethod
    def _set_status(
        repo: Repository, document_id: str, status: str, detail: dict | None = None
    ) -> None:
        try:
            repo.set_status(document_id, status, detail)
        except sqlite3.Error as exc:
            logger.warning("Could not record status %r for %s: %s", status, document_id, exc)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
