"""
audio.py — Audio acquisition for the speech-to-text tier.

acquire_audio() is an async context manager: it downloads the best
audio-only stream with yt-dlp into the scratch directory and removes the
file (and any partial download) when the block exits, whether the block
returned, raised, or was cancelled.

    async with acquire_audio(url, video_id, scratch_dir) as audio:
        result = await client.transcribe(audio.path)
    # audio.path no longer exists here
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

import yt_dlp

from yt_transcript_service.errors import AudioDownloadError
from yt_transcript_service.metadata import VideoMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioFile:
    """A downloaded audio track owned by a single orchestration run."""

    path: Path
    video_id: str
    metadata: VideoMetadata

    @property
    def size_bytes(self) -> int:
        return self.path.stat().st_size


def _artifact_stem(video_id: str) -> str:
    # Nanosecond timestamp keeps concurrent runs on one video from colliding.
    return f"{video_id}-{time.time_ns()}"


def _download(url: str, video_id: str, scratch_dir: Path, stem: str) -> AudioFile:
    """Blocking yt-dlp download; runs in a worker thread."""
    ydl_opts = {
        "format": "bestaudio/best",
        "outtmpl": str(scratch_dir / f"{stem}.%(ext)s"),
        "quiet": True,
        "no_warnings": True,
        "noplaylist": True,
        "noprogress": True,
        "retries": 3,
        "fragment_retries": 3,
    }

    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(url, download=True)
            if info is None:
                raise AudioDownloadError(video_id, "yt-dlp returned no info")
            downloads = info.get("requested_downloads") or []
            filepath = downloads[0].get("filepath") if downloads else None
            path = Path(filepath or ydl.prepare_filename(info))
    except yt_dlp.utils.DownloadError as exc:
        raise AudioDownloadError(video_id, str(exc)) from exc
    except OSError as exc:
        raise AudioDownloadError(video_id, f"could not write audio: {exc}") from exc

    if not path.exists():
        raise AudioDownloadError(video_id, f"download finished but {path.name} is missing")

    return AudioFile(path=path, video_id=video_id, metadata=VideoMetadata.from_info(video_id, info))


def remove_artifacts(scratch_dir: Path, stem: str) -> list[Path]:
    """Delete every file in scratch_dir named `{stem}.*`; return what was removed."""
    removed = []
    for candidate in scratch_dir.glob(f"{stem}.*"):
        try:
            candidate.unlink()
            removed.append(candidate)
        except FileNotFoundError:
            continue
    return removed


@asynccontextmanager
async def acquire_audio(url: str, video_id: str, scratch_dir: Path) -> AsyncIterator[AudioFile]:
    """
    Download the best audio-only stream and yield it as an AudioFile.

    The scratch directory is created if absent.  The file is named
    `{video_id}-{timestamp}.<ext>`.

    Raises:
        AudioDownloadError: Network failure, geo/consent or age restriction,
                            or an unsupported stream.
    """
    scratch_dir = Path(scratch_dir)
    scratch_dir.mkdir(parents=True, exist_ok=True)
    stem = _artifact_stem(video_id)

    logger.info(f"Downloading audio for {video_id}")
    download = asyncio.ensure_future(
        asyncio.to_thread(_download, url, video_id, scratch_dir, stem)
    )
    try:
        try:
            audio = await asyncio.shield(download)
        except asyncio.CancelledError:
            # The worker thread can't be interrupted and may still write
            # {stem}.*; wait for it so the cleanup below sees every file.
            logger.info(f"Audio download for {video_id} cancelled; waiting for it to stop")
            await asyncio.wait({download})
            if not download.cancelled():
                download.exception()
            raise
        logger.info(f"Downloaded {audio.path.name} ({audio.size_bytes} bytes)")
        yield audio
    finally:
        removed = remove_artifacts(scratch_dir, stem)
        if removed:
            logger.debug(f"Removed {', '.join(p.name for p in removed)}")
