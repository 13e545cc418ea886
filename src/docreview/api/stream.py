"""Server-sent-event transport for analysis runs.

The orchestrator runs in a worker thread and reports through a :class:`QueueSink`; frames reach
the consumer in emission order. A keep-alive task independently writes an SSE comment on a fixed
interval so idle proxies do not drop the connection while the model is thinking.
"""

from __future__ import annotations

import asyncio
import json
import threading
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from docreview.errors import DocReviewError, UpstreamError
from docreview.events import EventKind, ProgressEvent
from docreview.logging import get_logger, log_exception
from docreview.orchestrator.runner import StageOrchestrator

logger = get_logger(__name__)

DONE_FRAME = "data: [DONE]\n\n"
KEEPALIVE_FRAME = ": keep-alive\n\n"
KEEPALIVE_TASK_NAME = "docreview-keepalive"


class StreamFrame(BaseModel):
    """One consumer-facing SSE payload."""

    stage: str
    chunk: str | None = None
    completed: bool | None = None
    message: str | None = None
    results: dict[str, Any] | None = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


def encode_frame(frame: StreamFrame) -> str:
    payload = json.dumps(frame.model_dump(mode="json", exclude_none=True), ensure_ascii=False)
    return f"data: {payload}\n\n"


def frame_for_event(event: ProgressEvent) -> StreamFrame:
    """Translate a progress event into its consumer frame."""

    if event.kind is EventKind.CHUNK:
        return StreamFrame(stage=event.stage, chunk=event.chunk, timestamp=event.ts)
    if event.kind is EventKind.STAGE_COMPLETE:
        return StreamFrame(
            stage=f"{event.stage}_complete",
            completed=True,
            message=event.message,
            timestamp=event.ts,
        )
    return StreamFrame(stage=event.stage, message=event.message, timestamp=event.ts)


class QueueSink:
    """Event sink feeding an asyncio queue from a worker thread.

    Once closed (the consumer went away) every write is a no-op.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue[str | None]) -> None:
        self._loop = loop
        self._queue = queue
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def emit(self, event: ProgressEvent) -> None:
        self.put(encode_frame(frame_for_event(event)))

    def put(self, item: str | None) -> None:
        if self._closed.is_set():
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # event loop already closed
            logger.warning("Stream consumer gone, dropping further writes")
            self._closed.set()

    def close(self) -> None:
        if not self._closed.is_set():
            self._closed.set()
            logger.info("Stream closed; further writes are ignored")


def error_message(exc: BaseException) -> str:
    if isinstance(exc, UpstreamError):
        return str(exc)
    if isinstance(exc, DocReviewError):
        return getattr(exc, "user_message", None) or str(exc)
    return f"Document analysis failed: {exc}"


async def _keepalive(queue: asyncio.Queue[str | None], interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        queue.put_nowait(KEEPALIVE_FRAME)


async def stream_analysis(
    text: str,
    orchestrator: StageOrchestrator,
    *,
    keepalive_s: float = 15.0,
) -> AsyncIterator[str]:
    """Run a streaming analysis and yield encoded SSE frames.

    Frames arrive as: stage and chunk frames in order, then one ``complete`` frame carrying the
    report and ``[DONE]``. A fatal failure yields a single ``error`` frame instead.
    """

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[str | None] = asyncio.Queue()
    sink = QueueSink(loop, queue)

    def work() -> None:
        try:
            report = orchestrator.run(text, sink=sink, stream=True)
            sink.put(encode_frame(StreamFrame(stage="complete", results=report.to_payload())))
            sink.put(DONE_FRAME)
        except Exception as e:
            log_exception(logger, "Streaming analysis failed", chars=len(text))
            sink.put(encode_frame(StreamFrame(stage="error", error=error_message(e))))
        finally:
            sink.put(None)

    keepalive = asyncio.create_task(_keepalive(queue, keepalive_s), name=KEEPALIVE_TASK_NAME)
    worker = asyncio.create_task(asyncio.to_thread(work))
    finished = False
    try:
        while True:
            frame = await queue.get()
            if frame is None:
                finished = True
                break
            yield frame
    finally:
        sink.close()
        try:
            keepalive.cancel()
        except Exception:
            logger.warning("Keep-alive cancellation failed", exc_info=True)
        if not finished:
            logger.info("Stream consumer disconnected before completion")

    await worker
