"""Staged multi-turn analysis.

A run walks ``outline -> design -> logic -> risk -> complete``. Every stage sends the whole
conversation so far plus freshly selected sections, and its raw answer becomes the next assistant
turn. Any failure after the text is available drains the run into :class:`DegradedPipeline`,
which re-analyses the document from scratch; only a missing text is fatal.
"""

from __future__ import annotations

import uuid

from docreview.config import Settings
from docreview.errors import DocReviewError, NoExtractableText
from docreview.events import EventKind, EventSink, FanoutSink, ProgressEmitter
from docreview.llm.client import Completion, ModelGateway
from docreview.logging import get_logger, log_exception, run_context, set_step
from docreview.models.dimension import DIMENSIONS
from docreview.models.report import AnalysisReport, StageResult
from docreview.orchestrator.degraded import DegradedPipeline
from docreview.orchestrator.state import RunState, Stage
from docreview.prompts import outline_prompt, stage_prompt
from docreview.recording.file_recorder import FileEventRecorder
from docreview.tools.outline_validator import validate_outline
from docreview.tools.selector import render_sections, select_sections
from docreview.tools.text_source import TextSource
from docreview.utils.extract import extract_json, is_fallback

logger = get_logger(__name__)

OUTLINE_MAX_TOKENS = 3000


class OutlineExtractionError(DocReviewError):
    """The outline stage produced nothing structured."""


class StageOrchestrator:
    """Sequence the outline stage and the dimension stages of one analysis."""

    def __init__(
        self,
        gateway: ModelGateway,
        settings: Settings,
        *,
        degraded: DegradedPipeline | None = None,
    ) -> None:
        self._gateway = gateway
        self._settings = settings
        self._dimensions = DIMENSIONS
        self._degraded = degraded or DegradedPipeline(gateway, settings)

    def run_document(
        self,
        data: bytes,
        source: TextSource,
        *,
        sink: EventSink | None = None,
        stream: bool = False,
    ) -> AnalysisReport:
        """Extract text from ``data`` and analyse it.

        Raises:
            NoExtractableText: The document has no text; this is the only fatal failure.
        """

        text = source.extract_text(data)
        logger.info("Text extracted", extra={"bytes": len(data), "chars": len(text)})
        return self.run(text, sink=sink, stream=stream)

    def run(
        self,
        text: str,
        *,
        sink: EventSink | None = None,
        stream: bool = False,
        run_id: str | None = None,
    ) -> AnalysisReport:
        """Analyse ``text``.

        Args:
            text: Plain document text.
            sink: Optional progress sink.
            stream: Use streaming model calls and emit one ``chunk`` event per delta.
            run_id: Identifier for logs and events (generated when omitted).

        Returns:
            The staged report, or a degraded one when any stage fails.

        Raises:
            NoExtractableText: ``text`` is empty.
        """

        if not text or not text.strip():
            raise NoExtractableText()

        run_id = run_id or uuid.uuid4().hex[:12]
        if self._settings.record_events:
            recorder = FileEventRecorder(self._settings.artifacts_dir / run_id / "events.jsonl")
            sink = FanoutSink(sink, recorder) if sink is not None else recorder
        emitter = ProgressEmitter(run_id, sink)
        state = RunState(run_id=run_id, text=text)

        with run_context(run_id=run_id, step=Stage.OUTLINE.value):
            logger.info("Analysis started", extra={"chars": len(text), "stream": stream})
            try:
                report = self._run_staged(state, emitter, stream=stream)
            except Exception as e:
                log_exception(logger, "Staged analysis failed, switching to degraded pipeline", **state.snapshot())
                state.fail()
                emitter.emit(EventKind.DEGRADED, Stage.DEGRADED.value, message=str(e))
                state.degrade()
                report = self._degraded.run(text, self._dimensions, emitter=emitter)

            logger.info(
                "Analysis finished",
                extra={
                    "degraded": report.degraded,
                    "sections": len(report.outline.sections),
                    "total_tokens": report.usage.total_tokens if report.usage else None,
                },
            )
            return report

    def _run_staged(self, state: RunState, emitter: ProgressEmitter, *, stream: bool) -> AnalysisReport:
        # Stage 1: outline
        set_step(Stage.OUTLINE.value)
        state.append("user", outline_prompt(state.text, max_chars=self._settings.outline_input_chars))
        emitter.emit(EventKind.STAGE_STARTING, Stage.OUTLINE.value, message="Document structure analysis")
        completion = self._invoke(state, Stage.OUTLINE.value, OUTLINE_MAX_TOKENS, emitter, stream=stream)

        extracted = extract_json(completion.text)
        if is_fallback(extracted):
            raise OutlineExtractionError("outline response could not be parsed")
        outline = validate_outline(extracted, state.text)
        if not outline.sections:
            raise OutlineExtractionError("outline has no sections")

        state.outline = outline
        state.record_usage(completion.usage)
        state.append("assistant", completion.text)
        emitter.emit(
            EventKind.STAGE_COMPLETE,
            Stage.OUTLINE.value,
            message=f"Document structure analysis complete, {len(outline.sections)} sections identified",
            data={"sections": len(outline.sections), "document_type": outline.document_type.value},
        )
        logger.info("Outline stage complete", extra={"sections": len(outline.sections)})
        state.advance()

        # Stages 2..n: one per dimension
        for number, spec in enumerate(self._dimensions, start=2):
            set_step(spec.stage)
            sections = select_sections(outline, spec.key)
            content = render_sections(sections, spec.content_chars)
            state.append("user", stage_prompt(spec, stage_number=number, content=content))
            emitter.emit(EventKind.STAGE_STARTING, spec.stage, message=spec.title)

            completion = self._invoke(state, spec.stage, spec.max_tokens, emitter, stream=stream)
            extracted = extract_json(completion.text)
            result = StageResult(
                dimension=spec.key,
                raw_text=completion.text,
                extracted=None if is_fallback(extracted) else extracted,
                usage=completion.usage,
            )
            state.results[spec.key] = result
            state.record_usage(completion.usage)
            state.append("assistant", completion.text)
            emitter.emit(
                EventKind.STAGE_COMPLETE,
                spec.stage,
                message=f"{spec.title} complete",
                data={"sections": [s.id for s in sections], "structured": result.extracted is not None},
            )
            logger.info(
                "Dimension stage complete",
                extra={"dimension": spec.key.value, "sections": len(sections), "structured": result.extracted is not None},
            )
            state.advance()

        return AnalysisReport(outline=outline, results=dict(state.results), usage=state.usage)

    def _invoke(
        self,
        state: RunState,
        stage: str,
        max_tokens: int,
        emitter: ProgressEmitter,
        *,
        stream: bool,
    ) -> Completion:
        if not stream:
            return self._gateway.call(state.history, max_tokens)

        def on_delta(delta: str, _accumulated: str) -> None:
            emitter.emit(EventKind.CHUNK, stage, chunk=delta)

        return self._gateway.call_streaming(state.history, max_tokens, on_delta=on_delta)
