"""Plain-text sources.

Binary document formats are handled by external extractors; anything implementing
:class:`TextSource` can feed the orchestrator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from docreview.errors import NoExtractableText
from docreview.logging import get_logger

logger = get_logger(__name__)

_PAGE_BREAK_RE = re.compile(r"\f|\n\n\n")


class TextSource(Protocol):
    """Text extraction interface."""

    def extract_text(self, data: bytes) -> str:
        """Return the document's plain text, raising ``NoExtractableText`` when empty."""


@dataclass(frozen=True)
class PlainTextSource:
    """Decode already-extracted text and label its pages.

    Form feeds and triple newlines are treated as page breaks; every page is prefixed with a
    ``[Page N]`` marker so the model can refer to locations.
    """

    encoding: str = "utf-8"

    def extract_text(self, data: bytes) -> str:
        text = data.decode(self.encoding, errors="replace").strip()
        if not text:
            raise NoExtractableText()
        return label_pages(text)


def label_pages(text: str) -> str:
    """Prefix each page of ``text`` with a ``[Page N]`` marker."""

    text = text.strip()
    if not text:
        raise NoExtractableText()

    if "\f" in text or "\n\n\n" in text:
        pages = [p.strip() for p in _PAGE_BREAK_RE.split(text) if p.strip()]
        logger.info("Page breaks detected", extra={"pages": len(pages)})
    else:
        pages = [text]

    return "\n\n".join(f"[Page {i}]\n{page}" for i, page in enumerate(pages, start=1))
