"""File-based event recorder.

Records progress events to `events.jsonl` so a run can be inspected after the fact.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from docreview.events import ProgressEvent


@dataclass
class FileEventRecorder:
    """Append-only JSONL recorder usable as an event sink."""

    path: Path

    def __post_init__(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: ProgressEvent) -> None:
        """Append an event."""

        line = json.dumps(event.model_dump(mode="json"), ensure_ascii=False)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


def iter_events(path: Path) -> list[ProgressEvent]:
    """Load all events from a JSONL file."""

    events: list[ProgressEvent] = []
    if not path.exists():
        return events
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        events.append(ProgressEvent.model_validate_json(line))
    return events
