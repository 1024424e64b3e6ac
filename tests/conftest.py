"""
conftest.py — Shared fixtures and fakes for the orchestrator, API and CLI tests.

    settings         Settings pointing at a tmp DuckDB file and scratch dir.
    store            An open TranscriptStore on that file.
    fake_ydl         Patches yt_dlp.YoutubeDL with a fake that writes a file.
    FakeTranscriber  Stands in for DeepgramClient; records what it was given.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from yt_transcript_service.config import Settings
from yt_transcript_service.models import RawCue, RecognitionResult, TimeUnit
from yt_transcript_service.storage import TranscriptStore

VIDEO_ID = "abcdefghijk"

SAMPLE_CUES = [
    RawCue("Welcome to the course", 0.0, 2.5),
    RawCue("today we cover caching", 2.5, 3.0),
    RawCue("and fallbacks", 5.5, 1.75),
]


def deepgram_payload(paragraphs: list[tuple[str, float, float]]) -> dict:
    """A Deepgram-shaped body with one sentence per paragraph."""
    return {"results": {"channels": [{"alternatives": [{
        "transcript": " ".join(text for text, _, _ in paragraphs),
        "paragraphs": {"paragraphs": [
            {"start": start, "end": end, "sentences": [{"text": text, "start": start, "end": end}]}
            for text, start, end in paragraphs
        ]},
    }]}]}}


SPEECH_RESULT = RecognitionResult(
    payload=deepgram_payload([("Hello from the audio tier.", 0.5, 2.0), ("Second paragraph.", 3.0, 4.5)]),
    unit=TimeUnit.SECONDS,
)

SILENT_RESULT = RecognitionResult(
    payload={"results": {"channels": [{"alternatives": [{"transcript": "", "words": []}]}]}},
    unit=TimeUnit.SECONDS,
)


class FakeTranscriber:
    """
    Async stand-in for DeepgramClient.

    Records each audio path and whether it existed at call time, then
    returns `result` or raises `error`.
    """

    def __init__(self, result: RecognitionResult | None = None, error: Exception | None = None) -> None:
        self.result = result if result is not None else SPEECH_RESULT
        self.error = error
        self.calls: list[tuple[Path, bool]] = []
        self.closed = False

    async def transcribe(self, audio_path, options=None) -> RecognitionResult:
        path = Path(audio_path)
        self.calls.append((path, path.exists()))
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self) -> None:
        self.closed = True


class FakeYoutubeDL:
    """Writes `{outtmpl}` with an .m4a extension when asked to download."""

    instances: list["FakeYoutubeDL"] = []
    fail_with: Exception | None = None

    def __init__(self, opts: dict) -> None:
        self.opts = opts
        FakeYoutubeDL.instances.append(self)

    def __enter__(self) -> "FakeYoutubeDL":
        return self

    def __exit__(self, *exc_info) -> bool:
        return False

    def extract_info(self, url: str, download: bool = True) -> dict:
        if FakeYoutubeDL.fail_with is not None:
            raise FakeYoutubeDL.fail_with
        info = {"id": VIDEO_ID, "title": "Caching 101", "channel": "Course Channel", "duration": 60}
        if download:
            target = Path(self.opts["outtmpl"].replace("%(ext)s", "m4a"))
            target.write_bytes(b"\x00" * 512)
            info["requested_downloads"] = [{"filepath": str(target)}]
        return info

    def prepare_filename(self, info: dict) -> str:
        return self.opts["outtmpl"].replace("%(ext)s", "m4a")


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        deepgram_api_key="",
        db_path=str(tmp_path / "transcripts.duckdb"),
        scratch_dir=tmp_path / "temp",
        fetch_titles=False,
    )


@pytest.fixture()
def store(settings):
    with TranscriptStore(settings.db_path) as opened:
        yield opened


@pytest.fixture()
def fake_ydl():
    FakeYoutubeDL.instances = []
    FakeYoutubeDL.fail_with = None
    with patch("yt_dlp.YoutubeDL", FakeYoutubeDL):
        yield FakeYoutubeDL
    FakeYoutubeDL.fail_with = None


def count_for_video(store: TranscriptStore, video_id: str) -> int:
    """Number of stored records for a video, read straight from the table."""
    row = store.conn.execute(
        "SELECT COUNT(*) FROM transcripts WHERE video_id = ?", [video_id]
    ).fetchone()
    return int(row[0])
