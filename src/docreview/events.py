"""Progress events emitted by an analysis run.

The orchestrator reports progress through an :class:`EventSink`. Sinks are a pure side channel:
whether anything listens never changes the computed report.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, Field

from docreview.logging import get_logger

logger = get_logger(__name__)


class EventKind(str, Enum):
    """Progress event categories."""

    STAGE_STARTING = "stage-starting"
    CHUNK = "chunk"
    STAGE_COMPLETE = "stage-complete"
    DEGRADED = "degraded"


class ProgressEvent(BaseModel):
    """A single progress event in a run."""

    run_id: str
    seq: int = Field(ge=1)
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC))

    kind: EventKind
    stage: str
    chunk: str | None = None
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class EventSink(Protocol):
    """Anything that accepts progress events."""

    def emit(self, event: ProgressEvent) -> None:
        """Deliver one event."""


class NullSink:
    """Sink that drops every event."""

    def emit(self, event: ProgressEvent) -> None:
        return None


class ListSink:
    """Sink that keeps events in memory, in emission order."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)


class FanoutSink:
    """Forward each event to several sinks in order."""

    def __init__(self, *sinks: EventSink) -> None:
        self._sinks = sinks

    def emit(self, event: ProgressEvent) -> None:
        for sink in self._sinks:
            sink.emit(event)


class ProgressEmitter:
    """Number events for one run and hand them to a sink.

    Sink failures are logged and dropped so that progress reporting never changes the outcome
    of the run it reports on.
    """

    def __init__(self, run_id: str, sink: EventSink | None = None) -> None:
        self.run_id = run_id
        self._sink: EventSink = sink if sink is not None else NullSink()
        self._seq = 0

    def emit(
        self,
        kind: EventKind,
        stage: str,
        *,
        chunk: str | None = None,
        message: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> ProgressEvent:
        self._seq += 1
        event = ProgressEvent(
            run_id=self.run_id,
            seq=self._seq,
            kind=kind,
            stage=stage,
            chunk=chunk,
            message=message,
            data=dict(data or {}),
        )
        try:
            self._sink.emit(event)
        except Exception:
            logger.warning("Progress sink failed", exc_info=True, extra={"kind": kind.value, "stage": stage})
        return event
