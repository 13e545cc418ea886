"""Logging setup for analysis runs.

Records are rendered through rich. Every line is prefixed with the current run id and stage,
taken from context variables so the worker thread of a streamed run and the orchestrator share
them, and any ``extra=`` fields are appended as ``key=value`` pairs.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from typing import Any, Iterator, Mapping

from rich.logging import RichHandler

_NO_CONTEXT = ("-", "-")

_context: contextvars.ContextVar[tuple[str, str]] = contextvars.ContextVar(
    "docreview_log_context", default=_NO_CONTEXT
)

# attributes every LogRecord carries; anything else on a record came from ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "run_id",
    "step",
    "taskName",
}

_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


def _pairs(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={value!r}" if isinstance(value, str) else f"{key}={value}" for key, value in fields.items())


class _RunContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id, record.step = _context.get()  # type: ignore[attr-defined]
        return True


class _RunFormatter(logging.Formatter):
    """``[run/step] logger: message key=value ...``; time and level are left to RichHandler."""

    def formatMessage(self, record: logging.LogRecord) -> str:  # noqa: N802
        run_id = getattr(record, "run_id", "-")
        step = getattr(record, "step", "-")
        line = f"[{run_id}/{step}] {record.name}: {record.getMessage()}"
        fields = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if fields:
            line = f"{line} {_pairs(fields)}"
        return line


@contextlib.contextmanager
def run_context(*, run_id: str, step: str | None = None) -> Iterator[None]:
    """Bind ``run_id`` (and optionally the starting stage) for the duration of the block."""

    token = _context.set((run_id, step or _context.get()[1]))
    try:
        yield
    finally:
        _context.reset(token)


def set_step(step: str) -> None:
    """Record the stage the current run has moved to."""

    _context.set((_context.get()[0], step))


def current_context() -> tuple[str, str]:
    return _context.get()


def configure_logging(level: str = "INFO") -> None:
    """Install one rich handler on the root logger.

    Safe to call more than once: the CLI and the API factory both call it, and an existing rich
    handler is reconfigured instead of a second one being added.
    """

    root = logging.getLogger()
    root.setLevel(level)

    handler = next((h for h in root.handlers if isinstance(h, RichHandler)), None)
    if handler is None:
        handler = RichHandler(rich_tracebacks=True, show_path=False)
        root.addHandler(handler)
    if not any(isinstance(f, _RunContextFilter) for f in handler.filters):
        handler.addFilter(_RunContextFilter())
    handler.setFormatter(_RunFormatter())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log the active exception with its traceback, ``context`` rendered as ``key=value`` pairs."""

    if context:
        logger.exception("%s | %s", msg, _pairs(context))
    else:
        logger.exception("%s", msg)
