"""
api.py — FastAPI REST API for yt-transcript-service.

Endpoints:
    POST /transcript              — Produce (or return the cached) transcript for a URL.
    GET  /transcript/{id}         — Retrieve a stored transcript by its identifier.
    GET  /search                  — Search across stored transcript segments.
    GET  /health                  — Simple health-check for load balancers / monitoring.

Run with:
    uv run uvicorn yt_transcript_service.api:app

Every JSON body carries a `success` flag.  The global exception handler
catches any TranscriptError and converts it to an HTTP response using the
status code stored on the exception, with the message under `error`.
Malformed request input (a non-string `url`, a missing body, a bad query
parameter) is answered with 400 and the same envelope.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from yt_transcript_service.config import Settings
from yt_transcript_service.errors import TranscriptError, TranscriptNotFoundError
from yt_transcript_service.orchestrator import TranscriptOrchestrator
from yt_transcript_service.storage import TranscriptStore
from yt_transcript_service.transcription import DeepgramClient

logger = logging.getLogger(__name__)


class TranscriptRequest(BaseModel):
    """Body of POST /transcript."""

    url: str | None = None


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    where = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid request: {where}: {first.get('msg', 'invalid value')}"


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    The store and the speech client are created once in the lifespan and
    closed on shutdown.  Without a credential the audio tier is disabled.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or Settings.from_env()
        cfg.ensure_dirs()
        store = TranscriptStore(cfg.db_path)
        transcriber = DeepgramClient.from_settings(cfg) if cfg.ai_enabled else None
        if transcriber is None:
            logger.warning("DEEPGRAM_API_KEY is not set; audio transcription fallback is disabled")
        app.state.settings = cfg
        app.state.orchestrator = TranscriptOrchestrator(store, cfg, transcriber)
        try:
            yield
        finally:
            if transcriber is not None:
                await transcriber.close()
            store.close()

    app = FastAPI(
        title="YouTube Transcript Service",
        description="Time-aligned YouTube transcripts: cached, scraped from captions, "
                    "or transcribed from audio as a fallback.",
        version="0.3.0",
        lifespan=lifespan,
    )

    # -----------------------------------------------------------------------
    # Global error handler
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request input is a client error with the usual envelope."""
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": _describe_validation_error(exc)},
        )

    @app.exception_handler(TranscriptError)
    async def transcript_error_handler(request: Request, exc: TranscriptError) -> JSONResponse:
        """Translate any TranscriptError (or subclass) into an HTTP error response."""
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(
            status_code=exc.http_status,
            content={"success": False, "error": exc.message},
        )

    # -----------------------------------------------------------------------
    # Endpoints
    # -----------------------------------------------------------------------

    @app.post("/transcript")
    async def create_transcript(body: TranscriptRequest, request: Request) -> JSONResponse:
        """
        Produce a transcript for a YouTube URL.

        The `source` field reports which tier answered: `cache`, `scrape`
        or `ai`.  When the audio tier finds no speech the response is still
        200, with empty `segments`, a null `transcriptId` and a `message`.
        """
        orchestrator: TranscriptOrchestrator = request.app.state.orchestrator
        outcome = await orchestrator.run(body.url)
        return JSONResponse(content=outcome.to_dict())

    @app.get("/transcript/{transcript_id}")
    async def get_transcript(transcript_id: str, request: Request) -> JSONResponse:
        """Retrieve a stored transcript by its identifier."""
        orchestrator: TranscriptOrchestrator = request.app.state.orchestrator
        transcript = await orchestrator.get(transcript_id)
        if transcript is None:
            raise TranscriptNotFoundError(transcript_id)
        return JSONResponse(content={"success": True, **transcript.to_dict()})

    @app.get("/search")
    async def search_transcripts(
        request: Request,
        q: str = Query(
            min_length=1,
            description="Case-insensitive search term to match against segment text.",
        ),
        limit: int = Query(default=100, ge=1, le=1000),
    ) -> JSONResponse:
        """Search across all stored transcripts for matching segments."""
        orchestrator: TranscriptOrchestrator = request.app.state.orchestrator
        results = await asyncio.to_thread(orchestrator.store.search_segments, q, limit)
        return JSONResponse(content={
            "success": True,
            "query": q,
            "result_count": len(results),
            "results": results,
        })

    @app.get("/health")
    async def health() -> dict:
        """Returns HTTP 200 with {"status": "ok"}."""
        return {"status": "ok"}

    return app


app = create_app()
