"""Structured data extraction from free-form model output.

Models wrap JSON in code fences, prepend prose, append commentary, truncate mid-value and emit
trailing commas. :func:`extract_json` tolerates all of that and never raises: when nothing can be
recovered it returns :func:`fallback_result`, which downstream code treats as a usable value.

Strategy (strict to lenient):
    1. Strip code fences, language tags included.
    2. From the first ``{`` or ``[`` on, scan for the end of the top-level value with string and
       escape awareness, and parse it.
    3. Otherwise repair the candidate (trailing commas, unterminated strings, missing closers,
       trailing garbage) and parse again.
"""

from __future__ import annotations

import json
import re
from typing import Any

from docreview.logging import get_logger

logger = get_logger(__name__)

FALLBACK_NOTICE = (
    "The model response could not be parsed as structured data, but the analysis may have "
    "completed. Please check the raw model response."
)

_FENCE_RE = re.compile(r"```[A-Za-z0-9_+.-]*[ \t]*\r?\n?")
_CLOSERS = {"{": "}", "[": "]"}
_CONTEXT_CHARS = 50
_MAX_CANDIDATE_CHARS = 200_000
_MAX_START_CANDIDATES = 8


def fallback_result() -> dict[str, Any]:
    """Sentinel returned when extraction is not recoverable."""

    return {"result": FALLBACK_NOTICE}


def is_fallback(value: Any) -> bool:
    return isinstance(value, dict) and value.get("result") == FALLBACK_NOTICE


def strip_code_fences(text: str) -> str:
    """Remove every ```` ``` ```` marker together with an optional language tag."""

    return _FENCE_RE.sub("", text).strip()


def scan_json_end(text: str) -> int | None:
    """Return the index just past the top-level value opening at ``text[0]``.

    Depth only changes outside string literals; a quote preceded by an unescaped backslash does
    not end a string. Returns ``None`` when the value never closes.
    """

    if not text or text[0] not in _CLOSERS:
        return None

    depth = 0
    in_string = False
    escape = False
    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def repair_json(candidate: str) -> str:
    """Best-effort repair of a JSON candidate.

    Removes trailing commas before closers, terminates an unterminated string, closes every
    unmatched opener in nesting order, fills a dangling key with ``null`` and cuts trailing
    garbage after the first complete value. A closer of the wrong kind stands in for the
    expected one.
    """

    out: list[str] = []
    stack: list[str] = []
    in_string = False
    escape = False

    for ch in candidate:
        if in_string:
            out.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
            out.append(ch)
        elif ch in "}]":
            if ch not in stack:
                # stray closer
                continue
            # a wrong closer stands in for the expected one
            _close(out, stack.pop())
        else:
            out.append(ch)

    if in_string:
        if escape:
            out.pop()
        out.append('"')

    while stack:
        _close(out, stack.pop())

    repaired = "".join(out).strip()
    end = scan_json_end(repaired)
    if end is not None and end < len(repaired):
        repaired = repaired[:end]
    return repaired


def extract_json(text: str | None) -> dict[str, Any] | list[Any]:
    """Extract a JSON object or array from model output.

    Args:
        text: Raw model output.

    Returns:
        The parsed value, or :func:`fallback_result` when nothing is recoverable.
    """

    if not text or not text.strip():
        return fallback_result()

    cleaned = strip_code_fences(text)
    starts = [i for i, ch in enumerate(cleaned) if ch in _CLOSERS]
    if not starts:
        logger.warning("No JSON value in model output", extra={"chars": len(text)})
        return fallback_result()

    first = starts[0]
    if first > 0:
        logger.debug(
            "Discarding %d leading chars before JSON, context=%r",
            first,
            cleaned[max(0, first - _CONTEXT_CHARS) : first],
        )

    # Only top-level candidates are tried: starts nested inside an earlier candidate are skipped.
    failed: list[str] = []
    skip_until = 0
    for start in starts:
        if start < skip_until:
            continue
        if len(failed) >= _MAX_START_CANDIDATES:
            break
        body = cleaned[start:]
        end = scan_json_end(body)
        if end is None:
            # unclosed, so every later start lies inside it
            failed.append(body[:_MAX_CANDIDATE_CHARS])
            break
        try:
            return json.loads(body[:end], strict=False)
        except (ValueError, RecursionError):
            failed.append(body[:end])
            skip_until = start + end

    last_error: Exception | None = None
    for candidate in failed:
        repaired = repair_json(candidate)
        try:
            value = json.loads(repaired, strict=False)
        except (ValueError, RecursionError) as e:
            last_error = e
            continue
        logger.info("JSON recovered by repair", extra={"chars": len(text), "repaired_chars": len(repaired)})
        return value

    logger.warning(
        "JSON extraction failed",
        extra={"chars": len(text), "candidates": len(failed), "error": str(last_error)},
    )
    return fallback_result()


def _close(out: list[str], closer: str) -> None:
    _drop_trailing_comma(out)
    if _last_significant(out) == ":":
        out.append(" null")
    out.append(closer)


def _drop_trailing_comma(out: list[str]) -> None:
    i = len(out) - 1
    while i >= 0 and out[i].isspace():
        i -= 1
    if i >= 0 and out[i] == ",":
        del out[i]


def _last_significant(out: list[str]) -> str | None:
    for piece in reversed(out):
        if not piece.isspace():
            return piece[-1]
    return None
