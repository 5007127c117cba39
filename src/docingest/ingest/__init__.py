"""docingest ingest pipeline."""

from docingest.ingest.base import BaseChunker
from docingest.ingest.chunker import SentenceChunker, split_sentences
from docingest.ingest.embedding_client import EmbeddingClient
from docingest.ingest.extractor import (
    BaseExtractor,
    HtmlExtractor,
    LineFilterExtractor,
    PdfExtractor,
    PlainTextExtractor,
    select_extractor,
)
from docingest.ingest.fetcher import FetchedDocument, Fetcher
from docingest.ingest.index_writer import IndexWriter
from docingest.ingest.locks import DocumentLocks
from docingest.ingest.pipeline import IngestionPipeline, IngestRequest, IngestResult

__all__ = [
    "BaseChunker",
    "BaseExtractor",
    "DocumentLocks",
    "EmbeddingClient",
    "FetchedDocument",
    "Fetcher",
    "HtmlExtractor",
    "IndexWriter",
    "IngestRequest",
    "IngestResult",
    "IngestionPipeline",
    "LineFilterExtractor",
    "PdfExtractor",
    "PlainTextExtractor",
    "SentenceChunker",
    "select_extractor",
    "split_sentences",
]
