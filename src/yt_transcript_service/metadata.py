"""
metadata.py — Best-effort video metadata via yt-dlp.

The caption scraper returns cues but no title.  This module asks yt-dlp for
the page metadata only (no media download) so stored transcripts can carry
a display title.  Callers treat every failure here as non-fatal.
"""

from __future__ import annotations

from dataclasses import dataclass

import yt_dlp

from yt_transcript_service.errors import MetadataFetchError


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VideoMetadata:
    """
    The subset of yt-dlp's info_dict the service keeps.

    Attributes:
        video_id: The 11-character YouTube video identifier.
        title:    The video title, or None when YouTube gave none.
    """
    video_id: str
    title: str | None

    @classmethod
    def from_info(cls, video_id: str, info: dict) -> "VideoMetadata":
        """Build from a yt-dlp info_dict, tolerating a missing title."""
        return cls(video_id=video_id, title=info.get("title") or None)


def default_title(video_id: str) -> str:
    """Placeholder title used when no real title could be looked up."""
    return f"YouTube Video {video_id}"


# ---------------------------------------------------------------------------
# Metadata fetching
# ---------------------------------------------------------------------------

def fetch_video_metadata(video_id: str) -> VideoMetadata:
    """
    Fetch metadata for a YouTube video without downloading the video itself.

    Args:
        video_id: The 11-character YouTube video ID.

    Returns:
        A VideoMetadata with whatever fields yt-dlp provided.

    Raises:
        MetadataFetchError: If yt-dlp can't retrieve the video info.
    """
    ydl_opts = {
        "skip_download": True,
        "quiet": True,
        "no_warnings": True,
        "noplaylist": True,
    }

    url = f"https://www.youtube.com/watch?v={video_id}"

    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(url, download=False)
    except yt_dlp.utils.DownloadError as exc:
        raise MetadataFetchError(video_id, reason=str(exc)) from exc

    if info is None:
        raise MetadataFetchError(video_id, reason="yt-dlp returned no info")

    return VideoMetadata.from_info(video_id, info)
