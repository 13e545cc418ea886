"""Document tools: text sources, outline repair, chunking and section selection."""

from __future__ import annotations

from docreview.tools.chunker import chunk_text, fallback_outline
from docreview.tools.outline_validator import validate_outline
from docreview.tools.selector import render_sections, select_sections
from docreview.tools.text_source import PlainTextSource, TextSource, label_pages

__all__ = [
    "PlainTextSource",
    "TextSource",
    "chunk_text",
    "fallback_outline",
    "label_pages",
    "render_sections",
    "select_sections",
    "validate_outline",
]
