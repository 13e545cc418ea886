"""HTTP surface: connection test, buffered analysis and the SSE endpoint."""

from __future__ import annotations

import json

from fastapi.testclient import TestClient

from conftest import ScriptedUpstream, chat_response, error_response, make_gateway, make_settings, outline_json, sse_response
from docreview.api.app import create_app
from docreview.api.stream import DONE_FRAME

DOC = "Checkout requirements.\n\nUsers pay by card. Refunds are issued within five days of a request."


def _client(upstream: ScriptedUpstream, **settings) -> TestClient:
    cfg = make_settings(**settings)
    return TestClient(create_app(cfg, gateway=make_gateway(upstream, cfg)))


def _answers() -> list[str]:
    return [outline_json(), '{"result": "design"}', '{"result": "logic"}', '{"result": "risk"}']


def test_connection_ok() -> None:
    resp = _client(ScriptedUpstream(chat_response("Hi"))).post("/api/test-connection", json={})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Connection test succeeded"}


def test_connection_rejected_key() -> None:
    resp = _client(ScriptedUpstream(error_response(401))).post("/api/test-connection", json={})
    assert resp.json()["success"] is False


def test_missing_api_key_is_a_bad_request() -> None:
    client = TestClient(create_app(make_settings(api_key=None)))
    resp = client.post("/api/analyze", json={"document": DOC})

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "Missing API key" in body["message"]
    assert "timestamp" in body


def test_analyze_buffered() -> None:
    upstream = ScriptedUpstream(*[chat_response(a) for a in _answers()])
    resp = _client(upstream).post("/api/analyze", json={"document": DOC})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["degraded"] is False
    assert body["data"]["summaries"] == {
        "design-defects": "design",
        "logical-consistency": "logic",
        "risk-assessment": "risk",
    }
    assert body["data"]["document_structure"].startswith("Document summary:")


def test_analyze_without_document() -> None:
    client = _client(ScriptedUpstream())
    for payload in ({}, {"document": "   "}):
        resp = client.post("/api/analyze", json=payload)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Please provide a document"


def test_request_overrides_reach_the_backend() -> None:
    upstream = ScriptedUpstream(*[chat_response(a) for a in _answers()])
    _client(upstream).post("/api/analyze", json={"document": DOC, "model": "override-model"})
    assert {r["model"] for r in upstream.requests} == {"override-model"}


def test_analyze_stream() -> None:
    upstream = ScriptedUpstream(*[sse_response([a]) for a in _answers()])
    resp = _client(upstream).post("/api/analyze/stream", json={"document": DOC})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.text.endswith(DONE_FRAME)
    frames = [json.loads(line[len("data: ") :]) for line in resp.text.split("\n\n") if line.startswith("data: {")]
    assert frames[-1]["stage"] == "complete"
    assert frames[-1]["results"]["summaries"]["logical-consistency"] == "logic"
