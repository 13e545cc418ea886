"""Analysis dimensions.

Each dimension drives one stage after the outline: it names the stage, carries its prompt focus,
its output and content budgets and the section categories that are boosted when too few sections
score as relevant.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DimensionKey(str, Enum):
    """Fixed analysis dimensions."""

    DESIGN_DEFECTS = "design-defects"
    LOGICAL_CONSISTENCY = "logical-consistency"
    RISK_ASSESSMENT = "risk-assessment"


class Category(str, Enum):
    """Domain tags assigned to outline sections."""

    FUNCTIONAL_REQUIREMENT = "functional-requirement"
    DESIGN_SPEC = "design-spec"
    TECHNICAL_ARCHITECTURE = "technical-architecture"
    USER_EXPERIENCE = "user-experience"
    DATA_MODEL = "data-model"
    BUSINESS_LOGIC = "business-logic"
    SECURITY = "security"
    PERFORMANCE = "performance"
    TEST_CASE = "test-case"
    DEPLOYMENT = "deployment"
    MAINTENANCE = "maintenance"
    DOCUMENT_CONTENT = "document-content"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: object) -> "Category":
        """Map loosely formatted model output onto a category, defaulting to ``OTHER``."""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.OTHER
        slug = value.strip().lower().replace("_", "-").replace(" ", "-")
        try:
            return cls(slug)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class DimensionSpec:
    """Static configuration of one analysis dimension."""

    key: DimensionKey
    stage: str
    title: str
    focus: tuple[str, ...]
    expected_output: str
    max_tokens: int
    content_chars: int
    category_affinity: frozenset[Category]
    degraded_prompt: str


DIMENSIONS: tuple[DimensionSpec, ...] = (
    DimensionSpec(
        key=DimensionKey.DESIGN_DEFECTS,
        stage="design",
        title="Design defect review",
        focus=(
            "UI/UX design problems",
            "Interaction logic defects",
            "User experience issues",
            "Interface consistency issues",
        ),
        expected_output="Detailed design defect analysis, including the problems found and suggested improvements",
        max_tokens=3000,
        content_chars=3000,
        category_affinity=frozenset(
            {Category.FUNCTIONAL_REQUIREMENT, Category.DESIGN_SPEC, Category.USER_EXPERIENCE}
        ),
        degraded_prompt=(
            "Analyse design defects in the document excerpt below, "
            "focusing on UI/UX and interaction logic problems."
        ),
    ),
    DimensionSpec(
        key=DimensionKey.LOGICAL_CONSISTENCY,
        stage="logic",
        title="Logical consistency review",
        focus=(
            "Coherence of the business logic",
            "Consistency of data flows",
            "Uniformity of rules and constraints",
            "Consistency of concept definitions",
        ),
        expected_output="Detailed logical consistency analysis, including contradictions and inconsistencies found",
        max_tokens=2500,
        content_chars=2500,
        category_affinity=frozenset(
            {Category.FUNCTIONAL_REQUIREMENT, Category.DATA_MODEL, Category.BUSINESS_LOGIC}
        ),
        degraded_prompt=(
            "Analyse the logical consistency of the document excerpt below "
            "and point out any contradictions or inconsistencies."
        ),
    ),
    DimensionSpec(
        key=DimensionKey.RISK_ASSESSMENT,
        stage="risk",
        title="Risk assessment",
        focus=(
            "Technical implementation risks",
            "Business logic risks",
            "Security and compliance risks",
            "Performance and scalability risks",
            "Maintenance and operations risks",
        ),
        expected_output="Detailed risk assessment, including risk levels, concrete risk descriptions and mitigations",
        max_tokens=2000,
        content_chars=2000,
        category_affinity=frozenset(
            {Category.SECURITY, Category.PERFORMANCE, Category.TECHNICAL_ARCHITECTURE}
        ),
        degraded_prompt="Assess the potential risks and technical debt in the document excerpt below.",
    ),
)


def get_dimension(key: DimensionKey | str) -> DimensionSpec:
    """Look up a dimension spec by key."""

    key = DimensionKey(key)
    for spec in DIMENSIONS:
        if spec.key == key:
            return spec
    raise KeyError(key)
