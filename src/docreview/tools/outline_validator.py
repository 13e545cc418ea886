"""Outline validation and repair.

The outline stage's JSON is whatever the model produced. :func:`validate_outline` turns it into
an :class:`~docreview.models.outline.Outline`, filling every missing field with a default so the
later stages always have something to work with.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from docreview.logging import get_logger
from docreview.models.dimension import Category, DimensionKey
from docreview.models.outline import DocumentType, Outline, OutlineMetadata, Section
from docreview.tools.chunker import fallback_outline

logger = get_logger(__name__)

NEUTRAL_RELEVANCE = 5.0

_COMPLEXITY = {"low": "low", "medium": "medium", "mid": "medium", "high": "high"}


def validate_outline(value: Any, original_text: str) -> Outline:
    """Validate and repair an extracted outline.

    Args:
        value: Extracted JSON (or an existing :class:`Outline`).
        original_text: The analysed document text, used for totals and chunking.

    Returns:
        A complete outline. Values that are not objects at all are replaced by the chunked
        fallback outline; objects are repaired field by field.
    """

    if isinstance(value, Outline):
        value = value.model_dump(mode="json")
    if not isinstance(value, dict):
        logger.warning("Outline is not an object, chunking instead", extra={"type": type(value).__name__})
        return fallback_outline(original_text)

    raw_sections = value.get("sections")
    if not isinstance(raw_sections, list):
        raw_sections = []

    sections: list[Section] = []
    seen: set[str] = set()
    recovered = 0
    for index, raw in enumerate(raw_sections, start=1):
        section = _repair_section(raw, index)
        if section is None:
            section = _stub_section(index)
            recovered += 1
        if section.id in seen:
            section = section.model_copy(update={"id": _unique_id(section.id, index, seen)})
        seen.add(section.id)
        sections.append(section)

    if recovered:
        logger.warning("Recovered malformed sections", extra={"recovered": recovered, "total": len(sections)})

    summary = value.get("document_summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = (
            f"Identified {len(sections)} main sections"
            if sections
            else "Document structure analysis complete"
        )

    raw_type = value.get("document_type")
    document_type = DocumentType.coerce(raw_type) if raw_type else DocumentType.PRODUCT_DOCUMENT

    raw_meta = value.get("metadata") if isinstance(value.get("metadata"), dict) else {}
    structure_kind = _first(raw_meta, "structure_kind", "document_structure")
    complexity = _first(raw_meta, "complexity", "estimated_complexity")
    metadata = OutlineMetadata(
        total_sections=len(sections),
        total_length=len(original_text),
        structure_kind=str(structure_kind) if structure_kind else "modular",
        complexity=_COMPLEXITY.get(str(complexity).strip().lower(), "medium"),  # type: ignore[arg-type]
    )

    return Outline(
        document_summary=summary,
        document_type=document_type,
        sections=sections,
        metadata=metadata,
    )


def _repair_section(raw: Any, index: int) -> Section | None:
    if not isinstance(raw, dict):
        return None

    content = raw.get("content")
    content = content if isinstance(content, str) else ("" if content is None else str(content))

    raw_count = _first(raw, "word_count", "wordCount")
    word_count = _as_int(raw_count) if raw_count is not None else len(content.split())

    tags = raw.get("tags")
    deps = raw.get("dependencies")

    try:
        return Section(
            id=str(raw.get("id") or f"section_{index}"),
            title=str(raw.get("title") or f"Section {index}"),
            content=content,
            category=Category.coerce(raw.get("category")),
            hierarchy_level=min(5, max(1, _as_int(_first(raw, "hierarchy_level", "hierarchyLevel")) or 1)),
            word_count=max(0, word_count),
            tags=frozenset(str(t) for t in tags) if isinstance(tags, list) else frozenset(),
            relevance=_repair_relevance(raw.get("relevance")),
            dependencies=tuple(str(d) for d in deps) if isinstance(deps, list) else (),
        )
    except ValidationError:
        return None


def _stub_section(index: int) -> Section:
    return Section(
        id=f"recovered_{index}",
        title=f"Recovered section {index}",
        content="Content unavailable",
        category=Category.OTHER,
        hierarchy_level=1,
        word_count=0,
        relevance={key: NEUTRAL_RELEVANCE for key in DimensionKey},
    )


def _repair_relevance(raw: Any) -> dict[DimensionKey, float]:
    """Score every dimension, defaulting missing or unreadable scores to the neutral value."""

    if not isinstance(raw, dict):
        return {key: NEUTRAL_RELEVANCE for key in DimensionKey}

    out: dict[DimensionKey, float] = {}
    for key in DimensionKey:
        score = _first(raw, key.value, key.value.replace("-", "_"), key.name.lower())
        try:
            out[key] = min(10.0, max(0.0, float(score)))
        except (TypeError, ValueError):
            out[key] = NEUTRAL_RELEVANCE
    return out


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _unique_id(base: str, index: int, seen: set[str]) -> str:
    candidate = f"{base}_{index}"
    while candidate in seen:
        candidate += "_"
    return candidate
