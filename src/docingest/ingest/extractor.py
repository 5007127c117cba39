"""Text extractors: bytes in, best-effort plain text out.

Extraction never aborts a run: malformed input produces empty or
low-quality text and the chunker turns that into zero chunks. Output is
truncated to ``max_chars`` to bound embedding cost.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from io import BytesIO

import html2text
import pypdf
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_PDF_MAGIC = b"%PDF"

# shared html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0  # no line wrapping


class BaseExtractor(ABC):
    """Abstract base for all extractors."""

    def __init__(self, max_chars: int = 10_000) -> None:
        if max_chars < 1:
            raise ValueError("max_chars must be >= 1")
        self.max_chars = max_chars

    def extract(self, data: bytes) -> str:
        """Return the text content of *data*, truncated to ``max_chars``."""
        if not data:
            return ""
        return self._extract(data)[: self.max_chars]

    @abstractmethod
    def _extract(self, data: bytes) -> str:
        """Convert *data* to text. Must not raise on malformed input."""


class PdfExtractor(BaseExtractor):
    """Page-by-page text extraction via pypdf.

    Pages that yield no text (scanned images, etc.) are skipped; a page that
    fails to parse is skipped with a warning. An unreadable file yields "".
    """

    def _extract(self, data: bytes) -> str:
        try:
            reader = pypdf.PdfReader(BytesIO(data))
            pages = list(reader.pages)
        except Exception as exc:
            logger.warning("PDF could not be opened, extracting nothing: %s", exc)
            return ""

        parts: list[str] = []
        total = 0
        for number, page in enumerate(pages, start=1):
            try:
                page_text = page.extract_text() or ""
            except Exception as exc:
                logger.warning("Skipping unreadable PDF page %d: %s", number, exc)
                continue
            stripped = page_text.strip()
            if stripped:
                parts.append(stripped)
                total += len(stripped)
            if total >= self.max_chars:
                break
        return "\n\n".join(parts)


class HtmlExtractor(BaseExtractor):
    """Strip non-content tags with BeautifulSoup, then convert via html2text."""

    def _extract(self, data: bytes) -> str:
        try:
            soup = BeautifulSoup(data.decode("utf-8", errors="replace"), "html.parser")
            for tag in soup.find_all(["script", "style", "nav", "footer", "head"]):
                tag.decompose()
            return _h2t.handle(str(soup)).strip()
        except Exception as exc:
            logger.warning("HTML could not be converted, extracting nothing: %s", exc)
            return ""


class PlainTextExtractor(BaseExtractor):
    """UTF-8 decode with replacement characters for invalid bytes."""

    def _extract(self, data: bytes) -> str:
        return data.decode("utf-8", errors="replace").strip()


class LineFilterExtractor(BaseExtractor):
    """Last-resort heuristic for unknown binary formats.

    Decodes leniently and keeps lines that do not look like PDF object
    syntax, joined by spaces. Only used when nothing better matches.
    """

    def _extract(self, data: bytes) -> str:
        text = data.decode("utf-8", errors="replace")
        kept = [
            line.strip()
            for line in text.split("\n")
            if line.strip()
            and not line.startswith("%")
            and "obj" not in line  # also catches endobj
        ]
        return " ".join(kept)


def select_extractor(content_type: str, data: bytes, max_chars: int = 10_000) -> BaseExtractor:
    """Pick an extractor from the declared *content_type* and the payload's magic bytes."""
    ct = (content_type or "").split(";")[0].strip().lower()
    if data[:1024].lstrip().startswith(_PDF_MAGIC) or ct == "application/pdf":
        return PdfExtractor(max_chars=max_chars)
    if ct in ("text/html", "application/xhtml+xml"):
        return HtmlExtractor(max_chars=max_chars)
    if ct.startswith("text/") or ct in ("application/json", "application/xml"):
        return PlainTextExtractor(max_chars=max_chars)
    return LineFilterExtractor(max_chars=max_chars)
