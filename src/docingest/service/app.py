"""FastAPI application exposing the ingestion pipeline as a REST API."""

from __future__ import annotations

import json
import logging
import sqlite3
import time

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docingest.config import ServiceConfig, load_config, package_version
from docingest.db.repository import Repository
from docingest.db.schema import open_store
from docingest.errors import IngestError, StorageError, ValidationError
from docingest.ingest.pipeline import IngestionPipeline, IngestRequest, IngestResult

logger = logging.getLogger(__name__)


def create_app(
    config: ServiceConfig | None = None,
    pipeline: IngestionPipeline | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config:   Loaded configuration. Defaults to ``load_config()``.
        pipeline: Pipeline to serve. Defaults to one built from *config*.

    Returns:
        FastAPI: Configured application instance.
    """
    if config is None:
        config = pipeline.config if pipeline is not None else load_config()
    if pipeline is None:
        pipeline = IngestionPipeline(config)

    app = FastAPI(
        title="docingest",
        description="Fetch, chunk and embed documents into a vector store.",
        version=package_version(),
    )
    app.state.config = config
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.service.cors_origins,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Routes ────────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "ok", "version": package_version()}

    @app.post("/ingest")
    @app.post("/")
    async def ingest(request: Request) -> JSONResponse:
        """Ingest ``{"sourceUrl", "documentId"}`` and report the outcome."""
        start = time.monotonic()
        try:
            payload = json.loads(await request.body() or b"null")
            ingest_request = IngestRequest.from_payload(payload)
        except (ValueError, ValidationError) as exc:
            error = exc if isinstance(exc, ValidationError) else ValidationError(
                f"Request body is not valid JSON: {exc}"
            )
            result = IngestResult.failure(error, "", int((time.monotonic() - start) * 1000))
            return JSONResponse(result.to_dict(), status_code=result.http_status)

        result = await run_in_threadpool(pipeline.run, ingest_request)
        return JSONResponse(result.to_dict(), status_code=result.http_status)

    @app.get("/documents/{document_id}")
    async def document_status(document_id: str) -> JSONResponse:
        """Report the processing status and committed chunk count of a document."""
        try:
            return await run_in_threadpool(_document_status, config, document_id)
        except IngestError as exc:
            logger.error("Status lookup for %s failed: %s", document_id, exc)
            return JSONResponse(
                {"success": False, "error": str(exc), "errorType": exc.error_type},
                status_code=exc.http_status,
            )

    return app


def _document_status(config: ServiceConfig, document_id: str) -> JSONResponse:
    config.require_store()
    conn, _ = open_store(
        config.store.url,
        config.store.key,
        config.embedding.model,
        config.embedding.dimensions,
    )
    try:
        repo = Repository(conn)
        try:
            doc = repo.get_document(document_id)
            chunks_count = repo.count_chunks(document_id)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot read document '{document_id}': {exc}") from exc
        if doc is None:
            return JSONResponse(
                {
                    "success": False,
                    "error": f"Document '{document_id}' not found.",
                    "errorType": "not_found",
                },
                status_code=404,
            )
        return JSONResponse(
            {
                "success": True,
                "documentId": doc.id,
                "sourceUrl": doc.source_url,
                "status": doc.status,
                "detail": doc.detail_dict,
                "chunksCount": chunks_count,
                "updatedAt": doc.updated_at,
            }
        )
    finally:
        conn.close()
