"""Naive text chunking used by the degraded pipeline."""

from __future__ import annotations

import re

from docreview.logging import get_logger
from docreview.models.dimension import Category, DimensionKey
from docreview.models.outline import DocumentType, Outline, OutlineMetadata, Section

logger = get_logger(__name__)

DEFAULT_CHUNK_CHARS = 1200
NEUTRAL_RELEVANCE = 4.0

_SENTENCE_END_RE = re.compile(r"(?<=[.!?。！？])\s*")
_MIN_PARAGRAPH_CHARS = 30
_MIN_SENTENCE_CHARS = 50
_SINGLE_SECTION_CHARS = 2000


def split_pieces(text: str) -> list[str]:
    """Split text on blank lines, then single newlines, then sentence terminators.

    Each strategy is only tried when the previous one yields fewer than two pieces. Very short
    fragments (headers, page markers) are dropped.
    """

    pieces = [p.strip() for p in text.split("\n\n") if len(p.strip()) > _MIN_PARAGRAPH_CHARS]
    if len(pieces) < 2:
        pieces = [p.strip() for p in text.split("\n") if len(p.strip()) > _MIN_PARAGRAPH_CHARS]
    if len(pieces) < 2:
        pieces = [p.strip() for p in _SENTENCE_END_RE.split(text) if len(p.strip()) > _MIN_SENTENCE_CHARS]
    return pieces


def chunk_text(text: str, max_chars: int = DEFAULT_CHUNK_CHARS) -> list[str]:
    """Group pieces into buckets of at most ``max_chars`` characters.

    A bucket is flushed when appending the next piece would exceed the cap; pieces longer than
    the cap are sliced first.
    """

    stripped = text.strip()
    if not stripped:
        return []

    pieces = split_pieces(stripped)
    if len(pieces) < 2 and len(stripped) > max_chars:
        pieces = [stripped]

    buckets: list[str] = []
    current = ""
    for piece in pieces:
        for part in _slice(piece, max_chars):
            if current and len(current) + 2 + len(part) > max_chars:
                buckets.append(current)
                current = part
            else:
                current = f"{current}\n\n{part}" if current else part
    if current:
        buckets.append(current)

    if not buckets:
        buckets = [stripped[:_SINGLE_SECTION_CHARS]]
    return buckets


def fallback_outline(text: str, max_chars: int = DEFAULT_CHUNK_CHARS) -> Outline:
    """Build a synthetic outline from chunked text with neutral relevance for every dimension."""

    buckets = chunk_text(text, max_chars)
    sections = [
        Section(
            id=f"fallback_{i}",
            title=f"Document part {i}",
            content=bucket,
            category=Category.DOCUMENT_CONTENT,
            hierarchy_level=1,
            word_count=len(bucket.split()),
            tags=frozenset({Category.DOCUMENT_CONTENT.value}),
            relevance={key: NEUTRAL_RELEVANCE for key in DimensionKey},
        )
        for i, bucket in enumerate(buckets, start=1)
    ]
    logger.info("Fallback chunking", extra={"sections": len(sections), "chars": len(text)})

    if sections:
        summary = f"Split the document into {len(sections)} sections by chunking"
    else:
        summary = "Document text was parsed, but no clear section structure was found"

    return Outline(
        document_summary=summary,
        document_type=DocumentType.DOCUMENT,
        sections=sections,
        metadata=OutlineMetadata(
            total_sections=len(sections),
            total_length=len(text),
            structure_kind="chunked",
            complexity="medium",
        ),
    )


def _slice(piece: str, max_chars: int) -> list[str]:
    return [piece[i : i + max_chars] for i in range(0, len(piece), max_chars)]
