"""Shared fixtures: a scripted OpenAI-compatible upstream served through httpx.MockTransport."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from docreview.config import Settings
from docreview.llm.client import Backend, ModelGateway

USAGE = {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}


def chat_response(content: str | None, *, usage: dict[str, int] | None = USAGE) -> httpx.Response:
    """A buffered chat completion body."""

    body: dict[str, Any] = {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 0,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }
    if usage is not None:
        body["usage"] = usage
    return httpx.Response(200, json=body)


def sse_frame(delta: str) -> str:
    """One SSE frame carrying a content delta."""

    chunk = {
        "id": "chatcmpl-test",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "test-model",
        "choices": [{"index": 0, "delta": {"content": delta}, "finish_reason": None}],
    }
    return f"data: {json.dumps(chunk)}\n\n"


def sse_body(frames: list[str]) -> httpx.Response:
    """A streamed response made of raw frames, terminated by ``[DONE]``."""

    return httpx.Response(
        200,
        headers={"content-type": "text/event-stream"},
        content=("".join(frames) + "data: [DONE]\n\n").encode("utf-8"),
    )


def sse_response(deltas: list[str]) -> httpx.Response:
    """A streamed chat completion, one SSE frame per delta."""

    return sse_body([sse_frame(d) for d in deltas])


def error_response(status: int, message: str = "upstream error") -> httpx.Response:
    return httpx.Response(status, json={"error": {"message": message, "type": "test"}})


class ScriptedUpstream:
    """MockTransport handler replaying a fixed list of responses.

    Items may be an ``httpx.Response``, an exception to raise, or a callable taking the request.
    Decoded request bodies are kept in ``requests``.
    """

    def __init__(self, *responses: httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]):
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if not self.responses:
            raise AssertionError("upstream called more often than scripted")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {"api_key": "sk-test", "retry_backoff_s": 0.0}
    values.update(overrides)
    return Settings(**values)


def make_gateway(
    upstream: ScriptedUpstream,
    settings: Settings | None = None,
    *,
    provider: str = "custom",
    sleep: Callable[[float], None] | None = None,
) -> ModelGateway:
    settings = settings or make_settings()
    backend = Backend.resolve(
        provider,
        "sk-test",
        base_url="https://llm.test/v1",
        model="test-model",
    )
    kwargs: dict[str, Any] = {"http_client": httpx.Client(transport=httpx.MockTransport(upstream))}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return ModelGateway(backend, settings, **kwargs)


def outline_json(sections: list[dict[str, Any]] | None = None) -> str:
    """A well-formed outline answer wrapped the way models usually wrap it."""

    if sections is None:
        sections = [
            {
                "id": "section_1",
                "title": "Login flow",
                "content": "Users sign in with a phone number and a one-time code.",
                "category": "functional-requirement",
                "relevance": {"design-defects": 8, "logical-consistency": 6, "risk-assessment": 3},
                "dependencies": ["section_3"],
            },
            {
                "id": "section_2",
                "title": "Order states",
                "content": "An order moves from created to paid to shipped; refunds reopen it.",
                "category": "business-logic",
                "relevance": {"design-defects": 2, "logical-consistency": 9, "risk-assessment": 5},
            },
            {
                "id": "section_3",
                "title": "Session storage",
                "content": "Sessions are kept in a shared cache for thirty days.",
                "category": "security",
                "relevance": {"design-defects": 1, "logical-consistency": 4, "risk-assessment": 9},
            },
        ]
    body = {
        "document_summary": "Requirements for a small shop app",
        "document_type": "product-requirements",
        "sections": sections,
        "metadata": {"structure_kind": "modular", "complexity": "low"},
    }
    return "Here is the outline:\n```json\n" + json.dumps(body) + "\n```"


@pytest.fixture
def settings() -> Settings:
    return make_settings()
