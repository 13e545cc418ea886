"""Pydantic models used across the project."""

from __future__ import annotations

from docreview.models.dimension import DIMENSIONS, Category, DimensionKey, DimensionSpec, get_dimension
from docreview.models.outline import DocumentType, Outline, OutlineMetadata, Section
from docreview.models.report import AnalysisReport, StageResult, Usage

__all__ = [
    "DIMENSIONS",
    "AnalysisReport",
    "Category",
    "DimensionKey",
    "DimensionSpec",
    "DocumentType",
    "Outline",
    "OutlineMetadata",
    "Section",
    "StageResult",
    "Usage",
    "get_dimension",
]
