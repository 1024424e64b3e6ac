"""
orchestrator.py — The tiered transcript pipeline.

    resolve id ─► cache ─► hit ────────────────────────────────► done
                        └► miss ─► captions ─► ok ─► persist ──► done
                                            └► unavailable
                                                 └► download ─► transcribe ─► normalize
                                                        ─► segments ─► persist ─► done
                                                        └► none ─────► done ("no speech")

Invalid input fails before any external call.  A caption failure always
falls through to the audio tier.  A download or transcription failure is
fatal because there is no tier after audio.

Concurrency: each request is one asyncio task; blocking library calls
(DuckDB, youtube-transcript-api, yt-dlp) run in worker threads.  Runs for
the same video are serialized so only the first does external work, and
the download + transcribe stages share a semaphore.  The store's unique
video_id backs this up across processes.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

from yt_transcript_service.audio import acquire_audio
from yt_transcript_service.config import Settings
from yt_transcript_service.errors import (
    CaptionsUnavailableError,
    DuplicateTranscriptError,
    MetadataFetchError,
    StorageError,
    TranscriptionNotConfiguredError,
)
from yt_transcript_service.extractor import fetch_captions, require_video_id
from yt_transcript_service.metadata import default_title, fetch_video_metadata
from yt_transcript_service.models import Segment, SourceKind, Transcript
from yt_transcript_service.normalizer import (
    build_full_text,
    normalize_cues,
    normalize_recognition,
)
from yt_transcript_service.storage import TranscriptStore
from yt_transcript_service.transcription import DeepgramClient, TranscriptionOptions

logger = logging.getLogger(__name__)

NO_SPEECH_MESSAGE = "No speech detected in this video."


@dataclass
class TranscriptOutcome:
    """
    Result of one orchestration run.

    Attributes:
        video_id:   Canonical video ID.
        source:     "cache", "scrape" or "ai".
        transcript: The stored record; None when no speech was detected.
        message:    Informational text for the caller, if any.
    """

    video_id: str
    source: str
    transcript: Transcript | None
    message: str | None = None

    @property
    def no_speech(self) -> bool:
        return self.transcript is None

    def to_dict(self) -> dict[str, Any]:
        transcript = self.transcript
        return {
            "success": True,
            "transcriptId": transcript.transcript_id if transcript else None,
            "videoId": self.video_id,
            "title": transcript.title if transcript else None,
            "transcript": transcript.full_text if transcript else "",
            "segments": [seg.to_dict() for seg in transcript.segments] if transcript else [],
            "source": self.source,
            "message": self.message,
        }


class _Flight:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class TranscriptOrchestrator:
    """
    Sequences cache → captions → audio transcription → persist.

    Args:
        store:       The transcript cache store.
        settings:    Runtime configuration.
        transcriber: Speech client; None disables the audio tier.
    """

    def __init__(
        self,
        store: TranscriptStore,
        settings: Settings,
        transcriber: DeepgramClient | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.transcriber = transcriber
        self._flights: dict[str, _Flight] = {}
        self._heavy = asyncio.Semaphore(max(1, settings.max_concurrent_transcriptions))
        self._options = TranscriptionOptions(
            model=settings.deepgram_model,
            language=settings.deepgram_language,
        )

    # -- public -------------------------------------------------------------

    async def run(self, url: str) -> TranscriptOutcome:
        """
        Produce a transcript for a YouTube URL or bare video ID.

        Raises:
            InvalidVideoUrlError: Unresolvable input; nothing was called.
            AudioDownloadError:   The audio tier could not download.
            TranscriptionError:   The provider failed, or no credential is set.
            StorageError:         The cache store is unavailable.
        """
        video_id = require_video_id(url)

        cached = await asyncio.to_thread(self.store.get_by_video_id, video_id)
        if cached is not None:
            logger.info(f"Cache hit for {video_id}")
            return TranscriptOutcome(video_id, "cache", cached)

        async with self._single_flight(video_id):
            # Another run for this video may have finished while we waited.
            cached = await asyncio.to_thread(self.store.get_by_video_id, video_id)
            if cached is not None:
                logger.info(f"Cache hit for {video_id} after waiting on an in-flight run")
                return TranscriptOutcome(video_id, "cache", cached)

            try:
                return await self._scrape(url, video_id)
            except CaptionsUnavailableError as exc:
                logger.warning(f"{exc.message}; falling back to audio transcription")

            return await self._transcribe(url, video_id)

    async def get(self, transcript_id: str) -> Transcript | None:
        return await asyncio.to_thread(self.store.get, transcript_id)

    # -- tiers --------------------------------------------------------------

    async def _scrape(self, url: str, video_id: str) -> TranscriptOutcome:
        cues = await asyncio.to_thread(
            fetch_captions, video_id, self.settings.caption_languages
        )
        segments = normalize_cues(cues)
        if not segments:
            raise CaptionsUnavailableError(video_id, "captions contained no text")

        logger.info(f"Scraped {len(segments)} caption segments for {video_id}")
        title = await self._lookup_title(video_id)
        return await self._persist(url, video_id, title, segments, SourceKind.SCRAPE)

    async def _transcribe(self, url: str, video_id: str) -> TranscriptOutcome:
        if self.transcriber is None:
            logger.error(f"Audio tier needed for {video_id} but no transcription credential is set")
            raise TranscriptionNotConfiguredError()

        watch_url = f"https://www.youtube.com/watch?v={video_id}"
        async with self._heavy:
            async with acquire_audio(watch_url, video_id, self.settings.scratch_dir) as audio:
                result = await self.transcriber.transcribe(audio.path, self._options)
                title = audio.metadata.title or default_title(video_id)

        segments = normalize_recognition(result)
        if not segments:
            logger.info(f"No speech detected for {video_id}")
            return TranscriptOutcome(video_id, SourceKind.AI.value, None, NO_SPEECH_MESSAGE)

        logger.info(f"Transcribed {len(segments)} segments for {video_id}")
        return await self._persist(
            url, video_id, title, segments, SourceKind.AI,
            supplied_text=result.transcript_text(),
        )

    # -- helpers ------------------------------------------------------------

    async def _persist(
        self,
        url: str,
        video_id: str,
        title: str | None,
        segments: list[Segment],
        kind: SourceKind,
        supplied_text: str | None = None,
    ) -> TranscriptOutcome:
        try:
            stored = await asyncio.to_thread(
                lambda: self.store.create(
                    video_id=video_id,
                    source_url=url,
                    title=title,
                    full_text=build_full_text(segments, supplied_text),
                    segments=segments,
                    source_kind=kind,
                )
            )
        except DuplicateTranscriptError:
            existing = await asyncio.to_thread(self.store.get_by_video_id, video_id)
            if existing is None:
                raise StorageError(f"Transcript for {video_id} vanished after a duplicate insert")
            logger.warning(f"Transcript for {video_id} was stored by another run; using it")
            return TranscriptOutcome(video_id, "cache", existing)

        logger.info(f"Stored transcript {stored.transcript_id} for {video_id} ({kind.value})")
        return TranscriptOutcome(video_id, kind.value, stored)

    async def _lookup_title(self, video_id: str) -> str:
        if not self.settings.fetch_titles:
            return default_title(video_id)
        try:
            metadata = await asyncio.to_thread(fetch_video_metadata, video_id)
        except MetadataFetchError as exc:
            logger.warning(f"Title lookup failed: {exc.message}")
            return default_title(video_id)
        return metadata.title or default_title(video_id)

    @asynccontextmanager
    async def _single_flight(self, video_id: str) -> AsyncIterator[None]:
        flight = self._flights.get(video_id)
        if flight is None:
            flight = self._flights[video_id] = _Flight()
        flight.users += 1
        try:
            async with flight.lock:
                yield
        finally:
            flight.users -= 1
            if flight.users == 0:
                self._flights.pop(video_id, None)
