"""Relevance-ranked section selection.

Each dimension stage only sees a handful of sections so its prompt stays within budget.
"""

from __future__ import annotations

from collections.abc import Sequence

from docreview.logging import get_logger
from docreview.models.dimension import DimensionKey, get_dimension
from docreview.models.outline import Outline, Section

logger = get_logger(__name__)

SECTION_DELIMITER = "\n\n---\n\n"
TRUNCATION_MARKER = "\n\n[Content truncated to control token usage]"

CATEGORY_BOOST = 2.0
TOP_K = 3
MIN_SECTIONS = 2
MAX_SECTIONS = 4


def select_sections(outline: Outline, dimension: DimensionKey | str) -> list[Section]:
    """Pick the sections most relevant to ``dimension``.

    Sections with a positive score come first, highest score first. When fewer than three
    qualify, sections whose category has an affinity with the dimension join the pool with a
    +2 boost. The top three are extended with the sections they declare as dependencies, then
    backfilled with the longest remaining sections up to two, and capped at four.

    Args:
        outline: Validated outline (section ids are unique).
        dimension: Analysis dimension.

    Returns:
        Between 2 and 4 distinct sections, fewer only when the outline itself has fewer.
    """

    spec = get_dimension(dimension)
    key = spec.key

    scored = [(s, s.score(key)) for s in outline.sections if s.score(key) > 0]
    scored.sort(key=lambda pair: pair[1], reverse=True)

    if len(scored) < TOP_K:
        taken = {s.id for s, _ in scored}
        boosted = [
            (s, s.score(key) + CATEGORY_BOOST)
            for s in outline.sections
            if s.id not in taken and s.category in spec.category_affinity
        ]
        scored = sorted(scored + boosted, key=lambda pair: pair[1], reverse=True)

    top = [s for s, _ in scored[:TOP_K]]
    selected = list(top)
    seen = {s.id for s in selected}

    for section in top:
        for dep_id in section.dependencies:
            dep = outline.find(dep_id)
            if dep is not None and dep.id not in seen:
                selected.append(dep)
                seen.add(dep.id)

    if len(selected) < MIN_SECTIONS:
        remaining = sorted(
            (s for s in outline.sections if s.id not in seen),
            key=lambda s: s.word_count,
            reverse=True,
        )
        selected.extend(remaining[: MIN_SECTIONS - len(selected)])

    selected = selected[:MAX_SECTIONS]
    logger.debug(
        "Sections selected",
        extra={"dimension": key.value, "ids": [s.id for s in selected], "pool": len(scored)},
    )
    return selected


def render_sections(sections: Sequence[Section], max_chars: int) -> str:
    """Concatenate ``[title]\\ncontent`` blocks, truncated to ``max_chars``.

    When truncation is needed the text is cut at the last section delimiter if that lies past 70%
    of the budget, otherwise at the raw limit; a truncation marker is appended either way.
    """

    combined = SECTION_DELIMITER.join(f"[{s.title}]\n{s.content}" for s in sections)
    if len(combined) <= max_chars:
        return combined

    truncated = combined[:max_chars]
    cut = truncated.rfind(SECTION_DELIMITER)
    if cut > max_chars * 0.7:
        return truncated[:cut] + TRUNCATION_MARKER
    return truncated + TRUNCATION_MARKER
