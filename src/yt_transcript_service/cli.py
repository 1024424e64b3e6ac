"""
cli.py — Command-line interface for yt-transcript-service.

Provides the `yt-transcript-service` command group (registered as a
console script in pyproject.toml):

    get     Produce a transcript for a URL (cache → captions → audio).
    saved   Print a stored transcript by its identifier.
    search  Search stored transcript segments for a keyword/phrase.
    serve   Run the HTTP API with uvicorn.

Usage examples:
    yt-transcript-service get "https://youtu.be/dQw4w9WgXcQ"
    yt-transcript-service get dQw4w9WgXcQ --format json
    yt-transcript-service saved 3f2a... --format doc
    yt-transcript-service search "never gonna give you up"
    yt-transcript-service serve --port 8000
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from yt_transcript_service.config import Settings
from yt_transcript_service.errors import TranscriptError
from yt_transcript_service.extractor import format_doc, format_json, format_text
from yt_transcript_service.models import Transcript
from yt_transcript_service.orchestrator import TranscriptOrchestrator, TranscriptOutcome
from yt_transcript_service.storage import TranscriptStore
from yt_transcript_service.transcription import DeepgramClient

_FORMATS = click.Choice(["text", "json", "doc"], case_sensitive=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _settings(db: str | None) -> Settings:
    settings = Settings.from_env()
    if db:
        settings.db_path = db
    return settings


def _render(transcript: Transcript, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(format_json(transcript), indent=2, ensure_ascii=False)
    if fmt == "doc":
        return format_doc(transcript.segments)
    return format_text(transcript.segments)


def _emit(text: str, output: str | None) -> None:
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.write("\n")
        click.echo(f"Transcript written to {output}", err=True)
    else:
        click.echo(text)


async def _run_once(settings: Settings, url: str) -> TranscriptOutcome:
    settings.ensure_dirs()
    transcriber = DeepgramClient.from_settings(settings) if settings.ai_enabled else None
    try:
        with TranscriptStore(settings.db_path) as store:
            orchestrator = TranscriptOrchestrator(store, settings, transcriber)
            return await orchestrator.run(url)
    finally:
        if transcriber is not None:
            await transcriber.close()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
def main(verbose: bool) -> None:
    """
    YouTube Transcript Service — cached, scraped, or transcribed transcripts.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.argument("url", metavar="URL_OR_ID")
@click.option("--format", "-f", "fmt", type=_FORMATS, default="text", show_default=True,
              help="Output format: plain text, JSON with timestamps, or markdown document.")
@click.option("--output", "-o", type=click.Path(), default=None,
              help="Write output to a file instead of stdout.")
@click.option("--db", default=None, help="DuckDB file (defaults to $TRANSCRIPT_DB).")
def get(url: str, fmt: str, output: str | None, db: str | None) -> None:
    """
    Produce a transcript for a YouTube URL or 11-character video ID.

    Returns the cached transcript when one exists; otherwise tries captions
    and then audio transcription (requires DEEPGRAM_API_KEY).
    """
    try:
        outcome = asyncio.run(_run_once(_settings(db), url))
    except TranscriptError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)

    if outcome.transcript is None:
        click.echo(outcome.message or "No transcript produced.", err=True)
        return

    click.echo(f"Source: {outcome.source} (id {outcome.transcript.transcript_id})", err=True)
    _emit(_render(outcome.transcript, fmt), output)


@main.command()
@click.argument("transcript_id")
@click.option("--format", "-f", "fmt", type=_FORMATS, default="text", show_default=True,
              help="Output format: plain text, JSON with timestamps, or markdown document.")
@click.option("--output", "-o", type=click.Path(), default=None,
              help="Write output to a file instead of stdout.")
@click.option("--db", default=None, help="DuckDB file (defaults to $TRANSCRIPT_DB).")
def saved(transcript_id: str, fmt: str, output: str | None, db: str | None) -> None:
    """
    Print a stored transcript.  Never contacts YouTube.
    """
    try:
        with TranscriptStore(_settings(db).db_path) as store:
            transcript = store.get(transcript_id)
    except TranscriptError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)

    if transcript is None:
        click.echo(f"Error: Transcript {transcript_id} not found in database.", err=True)
        sys.exit(1)

    _emit(_render(transcript, fmt), output)


@main.command()
@click.argument("query")
@click.option("--db", default=None, help="DuckDB file (defaults to $TRANSCRIPT_DB).")
def search(query: str, db: str | None) -> None:
    """
    Search stored transcripts for a case-insensitive substring.
    """
    try:
        with TranscriptStore(_settings(db).db_path) as store:
            results = store.search_segments(query)
    except TranscriptError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)

    if not results:
        click.echo(f"No results found for '{query}'.")
        return

    current_video = None
    for r in results:
        if r["videoId"] != current_video:
            current_video = r["videoId"]
            click.echo(f"\n{r['title'] or current_video}")
            click.echo(f"  Video ID: {current_video}")

        minutes, seconds = divmod(r["offsetMs"] // 1000, 60)
        click.echo(f"  [{minutes:02d}:{seconds:02d}] {r['text']}")


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("yt_transcript_service.api:app", host=host, port=port)
