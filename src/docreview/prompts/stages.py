"""Prompt templates for the analysis stages."""

from __future__ import annotations

from docreview.models.dimension import Category, DimensionKey, DimensionSpec

ANALYSIS_SYSTEM_PROMPT = (
    "You are a professional product documentation quality analyst. Analyse the document stage by "
    "stage and provide detailed, accurate results."
)

DEGRADED_SYSTEM_PROMPT = (
    "You are a product documentation review assistant. Output plain JSON only, without any "
    "markdown code fences."
)

_CATEGORIES = "|".join(c.value for c in Category if c is not Category.DOCUMENT_CONTENT)
_DIMENSION_HINTS = {
    DimensionKey.DESIGN_DEFECTS: "how much the section involves UI/UX design, interaction logic or usability (0-10)",
    DimensionKey.LOGICAL_CONSISTENCY: "how much the section involves business logic, data flow or rule consistency (0-10)",
    DimensionKey.RISK_ASSESSMENT: "how much the section involves technical risk, business risk or security issues (0-10)",
}


def outline_prompt(text: str, *, max_chars: int) -> str:
    """Stage 1 prompt: break the document into scored, categorized sections."""

    relevance = ",\n".join(
        f'        "{key.value}": "{hint}"' for key, hint in _DIMENSION_HINTS.items()
    )
    return f"""Stage 1: document structure analysis

As a professional product documentation analyst, analyse the document below in depth to prepare for the quality analysis that follows. Focus on its logical structure, completeness and potential problem areas.

Requirements:
1. Identify the core chapters and their logical hierarchy
2. Divide the content into meaningful functional modules or topic sections
3. Give every section an accurate category
4. Score each section's relevance to each quality dimension (0-10)
5. Take context and dependencies between sections into account

Document:
{text[:max_chars]}

Return this exact JSON structure:
{{
  "document_summary": "overall summary (at most 150 words: document type, main features, key characteristics)",
  "document_type": "product-requirements|technical-design|user-manual|other",
  "sections": [
    {{
      "id": "section_1",
      "title": "precise section title",
      "content": "the section's full original text",
      "category": "{_CATEGORIES}",
      "hierarchy_level": 1,
      "word_count": 0,
      "relevance": {{
{relevance}
      }},
      "tags": ["tag1", "tag2"],
      "dependencies": ["ids of sections this one relies on"]
    }}
  ],
  "metadata": {{
    "total_sections": 0,
    "total_length": 0,
    "structure_kind": "hierarchical|modular|linear",
    "complexity": "low|medium|high"
  }}
}}

Make sure that:
- sections are logically complete and not cut arbitrarily
- categories reflect the actual content of each section
- relevance scores are based on the content, not on guesses
- the document's completeness and context are respected"""


def stage_prompt(spec: DimensionSpec, *, stage_number: int, content: str) -> str:
    """Prompt for one dimension stage, building on the conversation so far."""

    focus = "\n".join(f"{i}. {point}" for i, point in enumerate(spec.focus, start=1))
    return f"""Stage {stage_number}: {spec.title}

Building on all previous analysis results, analyse the document for this dimension in depth.

Content to analyse:
{content}

Focus on:
{focus}

Return JSON:
{{
  "result": "{spec.expected_output}"
}}"""


def degraded_prompt(spec: DimensionSpec, *, content: str) -> str:
    """Single-turn prompt used by the degraded pipeline."""

    return f'{spec.degraded_prompt}\n\nDocument excerpt:\n{content}\n\nReturn: {{"result": "detailed analysis"}}'
