"""Recording utilities for progress events."""

from __future__ import annotations

from docreview.recording.file_recorder import FileEventRecorder, iter_events

__all__ = ["FileEventRecorder", "iter_events"]
