"""Error taxonomy.

Upstream failures are normalised into a small set of classes, each carrying a user-facing
message. ``NoExtractableText`` is the only fatal error of an analysis run; everything else is
absorbed by the orchestrator's degraded path.
"""

from __future__ import annotations

import json

import httpx
import openai


class DocReviewError(RuntimeError):
    pass


class NoExtractableText(DocReviewError):
    """The document holds no text to analyse."""

    user_message = "No extractable text found in the document"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.user_message)


class UpstreamError(DocReviewError):
    """Base class for model backend failures."""

    user_message = "Model service request failed"
    retryable = True

    def __init__(self, detail: str | None = None, *, status_code: int | None = None) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(self.user_message if detail is None else f"{self.user_message}: {detail}")


class AuthFailure(UpstreamError):
    user_message = "API key is invalid or expired"
    retryable = False


class RateLimited(UpstreamError):
    user_message = "Too many requests, please try again later"


class UpstreamUnavailable(UpstreamError):
    user_message = "Model service is temporarily unavailable, please try again later"


class UpstreamTimeout(UpstreamError):
    user_message = "Model request timed out, please check the network connection"


class MalformedUpstreamResponse(UpstreamError):
    user_message = "Model service returned an unreadable response"


class UnclassifiedUpstream(UpstreamError):
    user_message = "Model service error"


def classify_error(exc: BaseException) -> UpstreamError:
    """Map a transport or SDK exception onto the upstream taxonomy.

    Args:
        exc: The raised exception.

    Returns:
        An ``UpstreamError`` instance (``exc`` itself when it already is one).
    """

    if isinstance(exc, UpstreamError):
        return exc

    if isinstance(exc, openai.APIStatusError):
        status = exc.status_code
        if status == 401:
            return AuthFailure(status_code=status)
        if status == 403:
            return AuthFailure("insufficient permissions", status_code=status)
        if status == 429:
            return RateLimited(status_code=status)
        if status in {500, 502, 503, 504}:
            return UpstreamUnavailable(f"status {status}", status_code=status)
        return UnclassifiedUpstream(f"status {status}", status_code=status)

    # APITimeoutError subclasses APIConnectionError, so test it first
    if isinstance(exc, (openai.APITimeoutError, httpx.TimeoutException)):
        return UpstreamTimeout()
    if isinstance(exc, (openai.APIConnectionError, httpx.TransportError)):
        return UpstreamUnavailable(str(exc) or type(exc).__name__)
    if isinstance(exc, (json.JSONDecodeError, openai.APIResponseValidationError)):
        return MalformedUpstreamResponse(str(exc))

    return UnclassifiedUpstream(str(exc) or type(exc).__name__)
