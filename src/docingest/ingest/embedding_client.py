"""Embedding client: one LiteLLM embedding call per chunk.

Chunks are embedded in ``chunk_index`` order. With ``workers > 1`` calls fan
out over a bounded thread pool; results pass through a reorder buffer keyed
by index so callers always get vectors (and progress callbacks) in index
order regardless of completion order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed

import litellm

from docingest.config import EmbeddingCfg
from docingest.errors import EmbeddingServiceError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Turn text fragments into fixed-length vectors via ``litellm.embedding()``.

    Args:
        config: Embedding configuration (model, dimensions, workers, api_key).
    """

    def __init__(self, config: EmbeddingCfg | None = None) -> None:
        self._config = config or EmbeddingCfg()

    @property
    def dimensions(self) -> int:
        return self._config.dimensions

    @property
    def model(self) -> str:
        return self._config.model

    def embed(self, text: str) -> list[float]:
        """Embed a single fragment.

        Raises:
            EmbeddingServiceError: If the provider call fails or the vector
                does not have the configured dimensionality.
        """
        kwargs = {"model": self._config.model, "input": [text[: self._config.max_input_chars]]}
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key
        try:
            response = litellm.embedding(**kwargs)
        except Exception as exc:
            raise _to_service_error(exc) from exc

        try:
            vector = list(response.data[0]["embedding"])
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            raise EmbeddingServiceError(
                f"Malformed embedding response from '{self._config.model}'."
            ) from exc

        if len(vector) != self._config.dimensions:
            raise EmbeddingServiceError(
                f"Embedding has {len(vector)} dimensions, expected {self._config.dimensions} "
                f"for '{self._config.model}'."
            )
        return vector

    def embed_all(
        self,
        texts: list[str],
        on_progress: Callable[[int], None] | None = None,
    ) -> list[list[float]]:
        """Embed *texts*, returning vectors in the same order.

        *on_progress* is called with each zero-based index, in index order,
        once that vector and all before it are available.

        Raises:
            EmbeddingServiceError: The lowest-index failure; no partial list
                is returned.
        """
        workers = min(self._config.workers, len(texts))
        if workers <= 1:
            vectors: list[list[float]] = []
            for i, text in enumerate(texts):
                vectors.append(self._embed_indexed(i, text))
                if on_progress is not None:
                    on_progress(i)
            return vectors
        return self._embed_pooled(texts, workers, on_progress)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _embed_indexed(self, index: int, text: str) -> list[float]:
        try:
            return self.embed(text)
        except EmbeddingServiceError as exc:
            exc.chunk_index = index
            logger.error("Embedding failed for chunk %d: %s", index, exc)
            raise

    def _embed_pooled(
        self,
        texts: list[str],
        workers: int,
        on_progress: Callable[[int], None] | None,
    ) -> list[list[float]]:
        results: dict[int, list[float]] = {}
        failures: dict[int, EmbeddingServiceError] = {}
        next_index = 0

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._embed_indexed, i, text): i for i, text in enumerate(texts)
            }
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                index = futures[future]
                try:
                    results[index] = future.result()
                except EmbeddingServiceError as exc:
                    failures[index] = exc
                    for pending in futures:
                        pending.cancel()
                    continue
                # Release the contiguous prefix that is now complete.
                while next_index in results:
                    if on_progress is not None and not failures:
                        on_progress(next_index)
                    next_index += 1

        if failures:
            raise failures[min(failures)]
        return [results[i] for i in range(len(texts))]


def _to_service_error(exc: Exception) -> EmbeddingServiceError:
    """Wrap a provider exception, keeping its status code and body."""
    status = getattr(exc, "status_code", None)
    body = getattr(exc, "body", None)
    if body is None:
        response = getattr(exc, "response", None)
        body = getattr(response, "text", None)
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    return EmbeddingServiceError(
        f"Embedding service call failed: {message}",
        status_code=status if isinstance(status, int) else None,
        body=str(body) if body is not None else None,
    )
