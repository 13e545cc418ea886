"""FastAPI app exposing buffered and SSE-streamed document analysis."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from docreview import __version__
from docreview.api.stream import stream_analysis
from docreview.config import Settings, load_settings
from docreview.errors import NoExtractableText
from docreview.llm.client import Backend, ModelGateway
from docreview.logging import configure_logging, get_logger
from docreview.orchestrator.runner import StageOrchestrator
from docreview.tools.text_source import PlainTextSource


class BackendRequest(BaseModel):
    """Optional per-request backend overrides."""

    provider: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None


class AnalyzeRequest(BackendRequest):
    """Analysis request carrying already-extracted document text."""

    document: str = ""


class RequestError(ValueError):
    pass


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "timestamp": _now()},
    )


def create_app(settings: Settings | None = None, *, gateway: ModelGateway | None = None) -> FastAPI:
    """Create FastAPI app.

    Args:
        settings: Settings to use (loaded from the environment when omitted).
        gateway: Process-wide gateway; built from settings when an API key is configured.
    """

    settings = settings or load_settings()
    configure_logging(settings.log_level)
    logger = get_logger(__name__)

    if gateway is None and settings.api_key:
        gateway = ModelGateway.from_settings(settings)
    source = PlainTextSource()

    app = FastAPI(title="docreview", version=__version__)

    def resolve_gateway(req: BackendRequest) -> ModelGateway:
        try:
            if gateway is not None:
                return gateway.with_overrides(
                    provider=req.provider,
                    api_key=req.api_key,
                    base_url=req.base_url,
                    model=req.model,
                )
            backend = Backend.resolve(
                req.provider or settings.provider,
                req.api_key,
                base_url=req.base_url or settings.base_url,
                model=req.model or settings.model,
            )
        except ValueError as e:
            raise RequestError(str(e)) from e
        return ModelGateway(backend, settings)

    def prepare(req: AnalyzeRequest) -> tuple[StageOrchestrator, str]:
        if not req.document.strip():
            raise RequestError("Please provide a document")
        orchestrator = StageOrchestrator(resolve_gateway(req), settings)
        text = source.extract_text(req.document.encode("utf-8"))
        return orchestrator, text

    @app.post("/api/test-connection")
    def test_connection(req: BackendRequest) -> Any:
        try:
            ok = resolve_gateway(req).ping()
        except RequestError as e:
            return _error(400, str(e))
        return {
            "success": ok,
            "message": "Connection test succeeded" if ok else "Connection test failed",
        }

    @app.post("/api/analyze")
    def analyze(req: AnalyzeRequest) -> Any:
        try:
            orchestrator, text = prepare(req)
        except RequestError as e:
            return _error(400, str(e))
        except NoExtractableText as e:
            return _error(422, e.user_message)

        logger.info("API analysis requested", extra={"chars": len(text)})
        report = orchestrator.run(text)
        return {"success": True, "data": report.to_payload(), "timestamp": _now()}

    @app.post("/api/analyze/stream")
    def analyze_stream(req: AnalyzeRequest) -> Any:
        try:
            orchestrator, text = prepare(req)
        except RequestError as e:
            return _error(400, str(e))
        except NoExtractableText as e:
            return _error(422, e.user_message)

        logger.info("API streaming analysis requested", extra={"chars": len(text)})
        return StreamingResponse(
            stream_analysis(text, orchestrator, keepalive_s=settings.keepalive_interval_s),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    return app
