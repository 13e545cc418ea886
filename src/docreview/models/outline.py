"""Outline models.

An outline is the structured breakdown of a document into scored, categorized sections. It is
produced once per analysis run (by the outline stage or by the degraded chunker) and is read-only
afterwards.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docreview.models.dimension import Category, DimensionKey


class DocumentType(str, Enum):
    PRODUCT_REQUIREMENTS = "product-requirements"
    TECHNICAL_DESIGN = "technical-design"
    USER_MANUAL = "user-manual"
    PRODUCT_DOCUMENT = "product-document"
    DOCUMENT = "document"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: object) -> "DocumentType":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.OTHER
        slug = value.strip().lower().replace("_", "-").replace(" ", "-")
        try:
            return cls(slug)
        except ValueError:
            return cls.OTHER


class Section(BaseModel):
    """A scored, categorized document section."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str = ""
    category: Category = Category.OTHER
    hierarchy_level: int = Field(default=1, ge=1, le=5)
    word_count: int = Field(default=0, ge=0)
    tags: frozenset[str] = Field(default_factory=frozenset)
    relevance: dict[DimensionKey, float] = Field(default_factory=dict)
    dependencies: tuple[str, ...] = ()

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: object) -> Category:
        return Category.coerce(value)

    def score(self, dimension: DimensionKey) -> float:
        """Relevance score for ``dimension`` (0 when absent)."""

        return self.relevance.get(dimension, 0.0)


class OutlineMetadata(BaseModel):
    total_sections: int = Field(default=0, ge=0)
    total_length: int = Field(default=0, ge=0)
    structure_kind: str = "modular"
    complexity: Literal["low", "medium", "high"] = "medium"


class Outline(BaseModel):
    """Structured breakdown of one document."""

    document_summary: str
    document_type: DocumentType = DocumentType.PRODUCT_DOCUMENT
    sections: list[Section] = Field(default_factory=list)
    metadata: OutlineMetadata = Field(default_factory=OutlineMetadata)

    @field_validator("document_type", mode="before")
    @classmethod
    def _coerce_document_type(cls, value: object) -> DocumentType:
        return DocumentType.coerce(value)

    def find(self, section_id: str) -> Section | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def summary_text(self, *, preview: int = 5) -> str:
        """Human-readable digest of the outline used in reports."""

        count = len(self.sections)
        lines = [
            f"Document summary: {self.document_summary}",
            "",
            f"Analysis result: {count} sections identified",
            "",
            "Main sections:",
        ]
        lines.extend(f"• {s.title} ({s.category.value})" for s in self.sections[:preview])
        if count > preview:
            lines.append(f"... and {count - preview} more sections")
        return "\n".join(lines)
