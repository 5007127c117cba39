"""Domain models for the docingest store."""

from __future__ import annotations

import json
from dataclasses import dataclass, field


@dataclass
class Document:
    id: str
    source_url: str
    status: str = "pending"
    status_detail: str = field(default_factory=lambda: "{}")
    updated_at: str | None = None

    @property
    def detail_dict(self) -> dict:
        return json.loads(self.status_detail or "{}")


@dataclass
class Chunk:
    document_id: str
    chunk_index: int
    text: str
    embedding: list[float] | None = None
    created_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks
