"""Ingestion error taxonomy.

Every failure the pipeline can report maps to exactly one subclass of
``IngestError``. The subclass decides the wire ``errorType`` and the HTTP
status the service answers with; none of them are retried.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for all errors surfaced by an ingestion run."""

    error_type: str = "ingest_error"
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(IngestError):
    """Required configuration (store URL, credentials) is missing or invalid."""

    error_type = "configuration_error"


class ValidationError(IngestError):
    """The ingestion request is malformed. Raised before any side effect."""

    error_type = "validation_error"
    http_status = 400


class FetchError(IngestError):
    """The source document could not be downloaded."""

    error_type = "fetch_error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SsrfError(FetchError):
    """The source URL resolves to a private or reserved address."""


class EmbeddingServiceError(IngestError):
    """The embedding provider rejected a request or returned a bad vector.

    ``status_code`` and ``body`` carry whatever the provider reported so the
    failure can be diagnosed from the logs alone.
    """

    error_type = "embedding_service_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        chunk_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.chunk_index = chunk_index

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.body:
            parts.append(f"body={self.body[:500]}")
        return " | ".join(parts)


class StorageError(IngestError):
    """A read, delete or insert against the chunk store failed.

    ``index_unchanged`` is False when a failed write could not be confirmed
    as rolled back.
    """

    error_type = "storage_error"

    def __init__(self, message: str, index_unchanged: bool = True) -> None:
        super().__init__(message)
        self.index_unchanged = index_unchanged
