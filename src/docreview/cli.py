"""CLI entrypoints for docreview."""

from __future__ import annotations

import json
from pathlib import Path

import typer
import uvicorn

from docreview.config import load_settings
from docreview.errors import NoExtractableText
from docreview.events import EventKind, ProgressEvent
from docreview.llm.client import ModelGateway
from docreview.logging import configure_logging, get_logger
from docreview.orchestrator.runner import StageOrchestrator
from docreview.tools.text_source import PlainTextSource

app = typer.Typer(add_completion=False, help="Staged LLM quality analysis of product documents")
logger = get_logger(__name__)


class ConsoleSink:
    """Echo streamed model output and stage boundaries to the terminal."""

    def emit(self, event: ProgressEvent) -> None:
        if event.kind is EventKind.CHUNK and event.chunk:
            typer.echo(event.chunk, nl=False, err=True)
        elif event.message:
            typer.echo(f"\n[{event.stage}] {event.message}", err=True)


@app.command()
def analyze(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="UTF-8 text file to analyse"),
    output: Path = typer.Option(Path("report.json"), "--output", "-o", help="Output JSON report"),
    stream: bool = typer.Option(False, "--stream", help="Stream model output to stderr while analysing"),
    record: bool = typer.Option(False, "--record", help="Record progress events under the artifacts dir"),
) -> None:
    """Analyse a document and write the JSON report."""

    settings = load_settings()
    if record:
        settings.record_events = True
    configure_logging(settings.log_level)

    try:
        gateway = ModelGateway.from_settings(settings)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    orchestrator = StageOrchestrator(gateway, settings)
    logger.info("CLI analysis requested", extra={"document": str(document)})
    try:
        report = orchestrator.run_document(
            document.read_bytes(),
            PlainTextSource(),
            sink=ConsoleSink() if stream else None,
            stream=stream,
        )
    except NoExtractableText as e:
        typer.echo(e.user_message, err=True)
        raise typer.Exit(code=1) from e

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(report.to_payload(), ensure_ascii=False, indent=2), encoding="utf-8")
    typer.echo(str(output))


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8000, help="Bind port"),
    reload: bool = typer.Option(False, help="Enable auto-reload (dev)"),
) -> None:
    """Start the docreview API server."""

    uvicorn.run(
        "docreview.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    app()
