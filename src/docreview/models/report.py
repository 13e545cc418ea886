"""Stage results and the final analysis report."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docreview.models.dimension import DimensionKey
from docreview.models.outline import Outline


class Usage(BaseModel):
    """Token accounting reported by the backend."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @staticmethod
    def combine(a: "Usage | None", b: "Usage | None") -> "Usage | None":
        """Sum two usages; ``None`` counts as nothing."""

        if a is None:
            return b
        if b is None:
            return a
        return Usage(
            prompt_tokens=a.prompt_tokens + b.prompt_tokens,
            completion_tokens=a.completion_tokens + b.completion_tokens,
            total_tokens=a.total_tokens + b.total_tokens,
        )


class StageResult(BaseModel):
    """Outcome of one dimension stage."""

    model_config = ConfigDict(frozen=True)

    dimension: DimensionKey
    raw_text: str
    extracted: dict[str, Any] | list[Any] | None = None
    usage: Usage | None = None

    @property
    def summary(self) -> str:
        """The extracted ``result`` text, or the raw model text when there is none."""

        if isinstance(self.extracted, dict):
            result = self.extracted.get("result")
            if isinstance(result, str) and result.strip():
                return result
        return self.raw_text


class AnalysisReport(BaseModel):
    """Terminal artifact of one analysis run."""

    outline: Outline
    results: dict[DimensionKey, StageResult] = Field(default_factory=dict)
    usage: Usage | None = None
    degraded: bool = False

    @property
    def document_structure(self) -> str:
        return self.outline.summary_text()

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready representation delivered to consumers."""

        payload = self.model_dump(mode="json")
        payload["document_structure"] = self.document_structure
        payload["summaries"] = {key.value: result.summary for key, result in self.results.items()}
        return payload
