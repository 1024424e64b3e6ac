"""
yt_transcript_service — Tiered, time-aligned YouTube transcripts.

Public API:
    TranscriptOrchestrator  Cache → caption scrape → audio transcription → persist.
    TranscriptOutcome       Result of one orchestration run.
    parse_video_id()        Resolve a YouTube URL or bare ID (None if malformed).
    fetch_captions()        Scrape caption cues for a video ID.
    acquire_audio()         Scoped audio download (file removed on exit).
    DeepgramClient          Speech-to-text client.
    normalize()             Convert cues or recognition results to Segments.
    TranscriptStore         DuckDB-backed transcript cache store.
    Settings                Environment-driven configuration.
    Segment, Transcript     Data model.

Exception hierarchy (all importable from this package):
    TranscriptError                    Base exception for all transcript errors.
    ├── InvalidVideoUrlError           No video ID could be resolved (400).
    ├── TranscriptNotFoundError        Unknown transcript id (404).
    ├── CaptionsUnavailableError       Scrape tier failed; always recovered.
    ├── AudioDownloadError             yt-dlp download failed (500).
    ├── TranscriptionError             Speech provider failed (500).
    │   └── TranscriptionNotConfiguredError   No credential set.
    ├── MetadataFetchError             Title lookup failed; logged only.
    └── StorageError                   DuckDB operation failed (500).
        └── DuplicateTranscriptError   Video already has a transcript.

Usage:
    import asyncio
    from yt_transcript_service import Settings, TranscriptOrchestrator, TranscriptStore

    settings = Settings.from_env()
    with TranscriptStore(settings.db_path) as store:
        outcome = asyncio.run(TranscriptOrchestrator(store, settings).run(
            "https://youtu.be/dQw4w9WgXcQ"
        ))
"""

from yt_transcript_service.audio import AudioFile, acquire_audio
from yt_transcript_service.config import Settings
from yt_transcript_service.errors import (
    AudioDownloadError,
    CaptionsUnavailableError,
    DuplicateTranscriptError,
    InvalidVideoUrlError,
    MetadataFetchError,
    StorageError,
    TranscriptError,
    TranscriptionError,
    TranscriptionNotConfiguredError,
    TranscriptNotFoundError,
)
from yt_transcript_service.extractor import fetch_captions, parse_video_id
from yt_transcript_service.models import (
    RawCue,
    RecognitionResult,
    Segment,
    SourceKind,
    TimeUnit,
    Transcript,
)
from yt_transcript_service.normalizer import normalize
from yt_transcript_service.orchestrator import TranscriptOrchestrator, TranscriptOutcome
from yt_transcript_service.storage import TranscriptStore
from yt_transcript_service.transcription import DeepgramClient, TranscriptionOptions

__all__ = [
    "TranscriptOrchestrator",
    "TranscriptOutcome",
    "parse_video_id",
    "fetch_captions",
    "acquire_audio",
    "AudioFile",
    "DeepgramClient",
    "TranscriptionOptions",
    "normalize",
    "TranscriptStore",
    "Settings",
    "RawCue",
    "RecognitionResult",
    "Segment",
    "SourceKind",
    "TimeUnit",
    "Transcript",
    "TranscriptError",
    "InvalidVideoUrlError",
    "TranscriptNotFoundError",
    "CaptionsUnavailableError",
    "AudioDownloadError",
    "TranscriptionError",
    "TranscriptionNotConfiguredError",
    "MetadataFetchError",
    "StorageError",
    "DuplicateTranscriptError",
]
