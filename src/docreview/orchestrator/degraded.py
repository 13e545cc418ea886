"""Degraded analysis pipeline.

Used when the outline cannot be extracted or a staged run fails. The document is chunked
naively, and every dimension gets one independent single-turn call whose raw text is accepted
as-is. A failing dimension becomes an inline error string and never blocks the others.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from docreview.config import Settings
from docreview.events import EventKind, EventSink, ProgressEmitter
from docreview.llm.client import ChatMessage, ModelGateway
from docreview.logging import get_logger, set_step
from docreview.models.dimension import DIMENSIONS, DimensionKey, DimensionSpec
from docreview.models.report import AnalysisReport, StageResult, Usage
from docreview.prompts import DEGRADED_SYSTEM_PROMPT, degraded_prompt
from docreview.tools.chunker import fallback_outline
from docreview.tools.selector import render_sections, select_sections

logger = get_logger(__name__)

DEGRADED_MAX_TOKENS = 3000


class DegradedPipeline:
    """Extraction-free fallback analysis."""

    def __init__(self, gateway: ModelGateway, settings: Settings) -> None:
        self._gateway = gateway
        self._settings = settings

    def run(
        self,
        text: str,
        dimensions: Sequence[DimensionSpec] = DIMENSIONS,
        *,
        sink: EventSink | None = None,
        emitter: ProgressEmitter | None = None,
    ) -> AnalysisReport:
        """Analyse ``text`` with one buffered call per dimension.

        Args:
            text: Document text.
            dimensions: Dimensions to analyse, in order.
            sink: Progress sink, used when no ``emitter`` is given.
            emitter: Emitter of an enclosing run, so event numbering continues.

        Returns:
            A report flagged as degraded.
        """

        if emitter is None:
            emitter = ProgressEmitter(uuid.uuid4().hex[:12], sink)

        outline = fallback_outline(text, self._settings.fallback_chunk_chars)
        logger.info("Degraded analysis started", extra={"sections": len(outline.sections)})

        results: dict[DimensionKey, StageResult] = {}
        usage: Usage | None = None
        for spec in dimensions:
            set_step(f"degraded:{spec.stage}")
            emitter.emit(EventKind.STAGE_STARTING, spec.stage, message=spec.title)
            try:
                sections = select_sections(outline, spec.key)
                content = render_sections(sections, spec.content_chars)
                messages = [
                    ChatMessage(role="system", content=DEGRADED_SYSTEM_PROMPT),
                    ChatMessage(role="user", content=degraded_prompt(spec, content=content)),
                ]
                completion = self._gateway.call(messages, DEGRADED_MAX_TOKENS)
                results[spec.key] = StageResult(
                    dimension=spec.key,
                    raw_text=completion.text,
                    usage=completion.usage,
                )
                usage = Usage.combine(usage, completion.usage)
            except Exception as e:
                logger.warning(
                    "Degraded dimension failed",
                    extra={"dimension": spec.key.value, "error_type": type(e).__name__, "error": str(e)},
                )
                results[spec.key] = StageResult(dimension=spec.key, raw_text=f"Analysis failed: {e}")
            emitter.emit(EventKind.STAGE_COMPLETE, spec.stage, message=f"{spec.title} complete (degraded)")

        return AnalysisReport(outline=outline, results=results, usage=usage, degraded=True)

