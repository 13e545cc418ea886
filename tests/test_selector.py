"""Tests for per-dimension section selection and rendering."""

from __future__ import annotations

import itertools

from docreview.models.dimension import Category, DimensionKey
from docreview.models.outline import Outline, Section
from docreview.tools.selector import (
    SECTION_DELIMITER,
    TRUNCATION_MARKER,
    render_sections,
    select_sections,
)

DESIGN = DimensionKey.DESIGN_DEFECTS


def _section(
    sid: str,
    design: float = 0.0,
    *,
    category: Category = Category.OTHER,
    words: int = 10,
    deps: tuple[str, ...] = (),
) -> Section:
    return Section(
        id=sid,
        title=sid.upper(),
        content=f"content of {sid}",
        category=category,
        word_count=words,
        relevance={DESIGN: design, DimensionKey.LOGICAL_CONSISTENCY: 0, DimensionKey.RISK_ASSESSMENT: 0},
        dependencies=deps,
    )


def _outline(*sections: Section) -> Outline:
    return Outline(document_summary="test", sections=list(sections))


def _ids(sections: list[Section]) -> list[str]:
    return [s.id for s in sections]


def test_top_three_by_score() -> None:
    """With enough relevant sections the three best are chosen, best first."""

    outline = _outline(_section("c", 5), _section("a", 9), _section("e"), _section("b", 7), _section("d", 3))
    assert _ids(select_sections(outline, DESIGN)) == ["a", "b", "c"]


def test_category_boost_when_too_few_relevant() -> None:
    """Affinity categories join the pool with +2 and can outrank weak relevant sections."""

    outline = _outline(
        _section("a", 6),
        _section("x", 1),
        _section("b", 0, category=Category.DESIGN_SPEC),
        _section("c", 0, category=Category.SECURITY),
    )
    assert _ids(select_sections(outline, DESIGN)) == ["a", "b", "x"]


def test_dependencies_are_appended() -> None:
    outline = _outline(
        _section("a", 9, deps=("z",)),
        _section("b", 8),
        _section("c", 7),
        _section("z"),
    )
    assert _ids(select_sections(outline, DESIGN)) == ["a", "b", "c", "z"]


def test_selection_capped_at_four() -> None:
    outline = _outline(
        _section("a", 9, deps=("y", "z")),
        _section("b", 8),
        _section("c", 7),
        _section("y"),
        _section("z"),
    )
    assert _ids(select_sections(outline, DESIGN)) == ["a", "b", "c", "y"]


def test_backfill_with_longest_sections() -> None:
    """Fewer than two picks are topped up with the longest remaining section."""

    outline = _outline(
        _section("a", 5),
        _section("s1", words=10),
        _section("s2", words=500),
        _section("s3", words=50),
    )
    assert _ids(select_sections(outline, DESIGN)) == ["a", "s2"]


def test_dependency_already_selected_is_not_duplicated() -> None:
    outline = _outline(_section("a", 9, deps=("b", "missing")), _section("b", 8), _section("c", 7))
    assert _ids(select_sections(outline, DESIGN)) == ["a", "b", "c"]


def test_single_section_outline() -> None:
    outline = _outline(_section("only"))
    assert _ids(select_sections(outline, DESIGN)) == ["only"]


def test_selection_size_and_uniqueness_bounds() -> None:
    """Any outline with at least two sections yields 2-4 distinct sections."""

    categories = [Category.OTHER, Category.DESIGN_SPEC, Category.SECURITY]
    for scores, category in itertools.product(
        [(0, 0, 0), (3, 0, 0), (5, 4, 0), (1, 2, 3), (0, 0, 9)],
        categories,
    ):
        sections = [
            _section(f"s{i}", score, category=category, deps=("s0",) if i == 2 else ())
            for i, score in enumerate(scores)
        ]
        picked = select_sections(_outline(*sections), DESIGN)
        assert 2 <= len(picked) <= 4
        assert len(set(_ids(picked))) == len(picked)


def test_accepts_string_dimension() -> None:
    outline = _outline(_section("a", 9), _section("b", 8))
    assert _ids(select_sections(outline, "design-defects")) == ["a", "b"]


def _block_section(sid: str, size: int) -> Section:
    # renders as "[A]\n" + content, i.e. size + 4 characters
    return Section(id=sid, title=sid.upper(), content="x" * size)


def test_render_without_truncation() -> None:
    text = render_sections([_block_section("a", 10), _block_section("b", 10)], 1000)
    assert text == f"[A]\n{'x' * 10}{SECTION_DELIMITER}[B]\n{'x' * 10}"


def test_render_cuts_at_delimiter_past_seventy_percent() -> None:
    sections = [_block_section("a", 100), _block_section("b", 100)]
    # first block ends at 104 > 0.7 * 140
    assert render_sections(sections, 140) == f"[A]\n{'x' * 100}" + TRUNCATION_MARKER


def test_render_cuts_at_raw_limit_otherwise() -> None:
    sections = [_block_section("a", 100), _block_section("b", 100)]
    # first block ends at 104 < 0.7 * 150
    text = render_sections(sections, 150)
    assert text.endswith(TRUNCATION_MARKER)
    assert len(text) == 150 + len(TRUNCATION_MARKER)
