"""Tests for SSE framing, keep-alives and failure handling of streamed runs."""

from __future__ import annotations

import asyncio
import json
import threading
import time

from conftest import ScriptedUpstream, make_gateway, make_settings, outline_json, sse_response
from docreview.api.stream import (
    DONE_FRAME,
    KEEPALIVE_FRAME,
    KEEPALIVE_TASK_NAME,
    StreamFrame,
    encode_frame,
    frame_for_event,
    stream_analysis,
)
from docreview.errors import NoExtractableText
from docreview.events import EventKind, ProgressEvent
from docreview.models.outline import Outline
from docreview.models.report import AnalysisReport
from docreview.orchestrator.runner import StageOrchestrator

REPORT = AnalysisReport(outline=Outline(document_summary="stub"))


def _data(frames: list[str]) -> list[dict]:
    return [json.loads(f[len("data: ") :]) for f in frames if f.startswith("data: {")]


async def _collect(text: str, orchestrator, keepalive_s: float = 30.0) -> list[str]:
    return [frame async for frame in stream_analysis(text, orchestrator, keepalive_s=keepalive_s)]


def _event(kind: EventKind, stage: str, **kwargs) -> ProgressEvent:
    return ProgressEvent(run_id="r", seq=1, kind=kind, stage=stage, **kwargs)


class SlowOrchestrator:
    def __init__(self, delay_s: float) -> None:
        self.delay_s = delay_s

    def run(self, text, *, sink=None, stream=False):
        time.sleep(self.delay_s)
        return REPORT


class FailingOrchestrator:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def run(self, text, *, sink=None, stream=False):
        raise self.exc


class PausingOrchestrator:
    """Emits one event, then blocks until released and keeps writing."""

    def __init__(self) -> None:
        self.resume = threading.Event()
        self.finished = threading.Event()
        self.closed_seen: bool | None = None

    def run(self, text, *, sink=None, stream=False):
        sink.emit(_event(EventKind.STAGE_STARTING, "outline", message="start"))
        self.resume.wait(5)
        self.closed_seen = sink.closed
        sink.emit(_event(EventKind.CHUNK, "outline", chunk="late"))
        self.finished.set()
        return REPORT


def test_full_stream_frame_order() -> None:
    answers = [outline_json(), '{"result": "d"}', '{"result": "l"}', '{"result": "r"}']
    upstream = ScriptedUpstream(*[sse_response([a[:10], a[10:]]) for a in answers])
    orchestrator = StageOrchestrator(make_gateway(upstream), make_settings())

    frames = asyncio.run(_collect("A short product document about checkout.", orchestrator))

    assert frames[-1] == DONE_FRAME
    data = _data(frames)
    assert data[0]["stage"] == "outline" and "message" in data[0]
    assert data[1] == {"stage": "outline", "chunk": outline_json()[:10], "timestamp": data[1]["timestamp"]}
    stages = [d["stage"] for d in data]
    for done in ("outline_complete", "design_complete", "logic_complete", "risk_complete"):
        assert done in stages
    assert stages.index("outline_complete") < stages.index("design") < stages.index("design_complete")
    assert data[-1]["stage"] == "complete"
    assert data[-1]["results"]["summaries"]["risk-assessment"] == "r"
    assert all(d.get("completed") is True for d in data if d["stage"].endswith("_complete"))


def test_keepalive_frames_while_idle() -> None:
    async def main():
        frames = await _collect("text", SlowOrchestrator(0.3), keepalive_s=0.05)
        await asyncio.sleep(0.01)
        pending = [t for t in asyncio.all_tasks() if t.get_name() == KEEPALIVE_TASK_NAME and not t.done()]
        return frames, pending

    frames, pending = asyncio.run(main())

    assert frames.count(KEEPALIVE_FRAME) >= 2
    assert frames[-1] == DONE_FRAME
    assert _data(frames)[-1]["stage"] == "complete"
    assert pending == []


def test_fatal_error_yields_single_error_frame() -> None:
    async def main():
        frames = await _collect("text", FailingOrchestrator(NoExtractableText()), keepalive_s=0.01)
        await asyncio.sleep(0.01)
        pending = [t for t in asyncio.all_tasks() if t.get_name() == KEEPALIVE_TASK_NAME and not t.done()]
        return frames, pending

    frames, pending = asyncio.run(main())

    assert DONE_FRAME not in frames
    assert _data(frames) == [
        {"stage": "error", "error": "No extractable text found in the document", "timestamp": _data(frames)[0]["timestamp"]}
    ]
    assert pending == []


def test_unexpected_error_message() -> None:
    frames = asyncio.run(_collect("text", FailingOrchestrator(RuntimeError("boom"))))
    assert _data(frames)[0]["error"] == "Document analysis failed: boom"


def test_consumer_disconnect_turns_writes_into_noops() -> None:
    orchestrator = PausingOrchestrator()

    async def main():
        gen = stream_analysis("text", orchestrator, keepalive_s=30.0)
        first = await gen.__anext__()
        await gen.aclose()
        pending = [t for t in asyncio.all_tasks() if t.get_name() == KEEPALIVE_TASK_NAME and not t.done()]
        orchestrator.resume.set()
        await asyncio.to_thread(orchestrator.finished.wait, 5)
        return first, pending

    first, pending = asyncio.run(main())

    assert json.loads(first[len("data: ") :])["message"] == "start"
    assert orchestrator.finished.is_set()
    assert orchestrator.closed_seen is True
    assert all(t.cancelling() or t.done() for t in pending)


def test_frame_for_event_mapping() -> None:
    chunk = frame_for_event(_event(EventKind.CHUNK, "design", chunk="abc"))
    assert (chunk.stage, chunk.chunk, chunk.message) == ("design", "abc", None)

    done = frame_for_event(_event(EventKind.STAGE_COMPLETE, "design", message="Design defect review complete"))
    assert (done.stage, done.completed) == ("design_complete", True)

    starting = frame_for_event(_event(EventKind.STAGE_STARTING, "logic", message="Logical consistency review"))
    assert (starting.stage, starting.message, starting.completed) == ("logic", "Logical consistency review", None)


def test_encode_frame_omits_empty_fields() -> None:
    encoded = encode_frame(StreamFrame(stage="design", chunk="x"))
    assert encoded.startswith("data: {") and encoded.endswith("}\n\n")
    assert set(json.loads(encoded[len("data: ") :])) == {"stage", "chunk", "timestamp"}
