"""
extractor.py — Video ID resolution and the caption scrape tier.

This module wraps the `youtube-transcript-api` library and exposes:

    1. Parsing YouTube URLs / IDs   → parse_video_id(), require_video_id()
    2. Fetching publisher captions  → fetch_captions()
    3. Formatting stored segments   → format_text(), format_json(), format_doc()

The scrape tier never downloads media: it only asks YouTube for caption
tracks, which makes it free and fast but unreliable.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlsplit

from youtube_transcript_api import YouTubeTranscriptApi
import youtube_transcript_api as yta_errors  # exception classes live here

from yt_transcript_service.errors import (
    CaptionsUnavailableError,
    InvalidVideoUrlError,
)
from yt_transcript_service.models import RawCue, Segment, TimeUnit, Transcript

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# The 11-character base64url alphabet used by YouTube video IDs.  The
# trailing lookahead stops a longer token from being truncated to 11 chars.
_ID = r"(?P<id>[A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"

# Regex patterns that cover the common YouTube URL shapes:
#   - https://www.youtube.com/watch?v=VIDEO_ID   (also m., music.)
#   - https://youtu.be/VIDEO_ID
#   - https://www.youtube.com/embed/VIDEO_ID     (also youtube-nocookie.com)
#   - https://www.youtube.com/shorts/VIDEO_ID
#   - https://www.youtube.com/v/VIDEO_ID
_URL_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?:https?://)?(?:(?:www|m|music)\.)?youtube\.com/watch\?(?:.*&)?v=" + _ID),
    re.compile(r"(?:https?://)?youtu\.be/" + _ID),
    re.compile(
        r"(?:https?://)?(?:(?:www|m)\.)?youtube(?:-nocookie)?\.com/(?:embed|shorts|v|live)/" + _ID
    ),
]

# A bare video ID is exactly 11 characters from the base64url alphabet.
_BARE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")

_DEFAULT_LANGUAGES = ["en"]


# ---------------------------------------------------------------------------
# URL / ID parsing
# ---------------------------------------------------------------------------

def parse_video_id(url_or_id: str | None) -> str | None:
    """
    Resolve the canonical 11-character video ID from a URL or bare ID.

    Tries the known URL shapes first, then a bare ID, then the last path
    segment of whatever URL was given.  Malformed input is a normal outcome
    here, not an error.

    Args:
        url_or_id: A YouTube URL or a raw video ID.

    Returns:
        The video ID, or None when nothing resolvable was found.
    """
    if not isinstance(url_or_id, str):
        return None
    candidate = url_or_id.strip()
    if not candidate:
        return None

    for pattern in _URL_PATTERNS:
        match = pattern.search(candidate)
        if match:
            return match.group("id")

    if _BARE_ID_PATTERN.match(candidate):
        return candidate

    # Last resort: the final path segment of a URL-shaped input.
    if "/" in candidate:
        try:
            path = urlsplit(candidate if "//" in candidate else f"//{candidate}").path
        except ValueError:
            return None
        segments = [part for part in path.split("/") if part]
        if segments and _BARE_ID_PATTERN.match(segments[-1]):
            return segments[-1]

    return None


def require_video_id(url_or_id: str | None) -> str:
    """
    Like parse_video_id(), but raise for unresolvable input.

    Raises:
        InvalidVideoUrlError: If no video ID can be resolved.
    """
    video_id = parse_video_id(url_or_id)
    if video_id is None:
        raise InvalidVideoUrlError(str(url_or_id))
    return video_id


# ---------------------------------------------------------------------------
# Caption scrape tier
# ---------------------------------------------------------------------------

def fetch_captions(
    video_id: str,
    languages: list[str] | None = None,
) -> list[RawCue]:
    """
    Fetch publisher or auto-generated captions for a single video.

    Every failure mode (captions disabled, none in the requested languages,
    video unavailable, YouTube changing its page shape) is reported the same
    way, because the caller's only response is to fall back to audio.

    Args:
        video_id:  The 11-character YouTube video ID (NOT a full URL).
        languages: Caption language codes in descending priority.

    Returns:
        A non-empty list of RawCue, times in seconds.

    Raises:
        CaptionsUnavailableError: On any failure, or when the track is empty.
    """
    langs = languages if languages else _DEFAULT_LANGUAGES

    try:
        api = YouTubeTranscriptApi()
        fetched = api.fetch(video_id, languages=langs)
        cues = [
            RawCue(
                text=snippet.text,
                start=float(snippet.start),
                duration=float(snippet.duration),
                unit=TimeUnit.SECONDS,
            )
            for snippet in fetched
        ]
    except yta_errors.TranscriptsDisabled as exc:
        raise CaptionsUnavailableError(video_id, "captions are disabled") from exc
    except yta_errors.NoTranscriptFound as exc:
        raise CaptionsUnavailableError(
            video_id, f"no captions in {', '.join(langs)}"
        ) from exc
    except yta_errors.CouldNotRetrieveTranscript as exc:
        raise CaptionsUnavailableError(video_id, type(exc).__name__) from exc
    except Exception as exc:
        # Anything else means the upstream client no longer understands
        # YouTube's response; still a fallback, not a failure.
        raise CaptionsUnavailableError(video_id, f"scraper error: {exc}") from exc

    if not cues:
        raise CaptionsUnavailableError(video_id, "caption track is empty")

    logger.debug(f"Fetched {len(cues)} caption cues for {video_id}")
    return cues


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_text(segments: list[Segment]) -> str:
    """
    Convert segments into plain text, one line per segment.

    Args:
        segments: Chronological segments.

    Returns:
        A single string with one transcript line per segment.
    """
    return "\n".join(seg.text for seg in segments)


def format_json(transcript: Transcript) -> dict:
    """
    Build a JSON-serialisable dict for a stored transcript.

    Returns:
        The transcript's dict form plus a segment_count key.
    """
    data = transcript.to_dict()
    data["segment_count"] = len(transcript.segments)
    return data


# Segments are grouped into flowing paragraphs; a new paragraph starts
# whenever the segment's start crosses this many seconds past the
# paragraph start.
_DOC_PARAGRAPH_INTERVAL_SECS = 30


def _seconds_to_mmss(seconds: float) -> str:
    """
    Convert a float timestamp (in seconds) to a MM:SS string.

    Values above 59:59 wrap naturally (e.g. 3661.0 → "61:01").
    """
    total = int(seconds)
    mins, secs = divmod(total, 60)
    return f"{mins:02d}:{secs:02d}"


def format_doc(segments: list[Segment]) -> str:
    """
    Convert segments into a readable markdown document.

    Segments are joined with spaces into flowing paragraphs, with a new
    paragraph starting every ~30 seconds.  Each paragraph is prefixed with
    a bold **[MM:SS]** timestamp marking the start of that time window.

    Args:
        segments: Chronological segments.

    Returns:
        A markdown string with timestamped paragraphs.  Returns an empty
        string if there are no segments.
    """
    paragraphs: list[str] = []
    current_texts: list[str] = []
    paragraph_start: float | None = None

    for seg in segments:
        start = seg.start_seconds
        if paragraph_start is None:
            paragraph_start = start
            current_texts.append(seg.text)
        elif start - paragraph_start >= _DOC_PARAGRAPH_INTERVAL_SECS:
            timestamp = _seconds_to_mmss(paragraph_start)
            paragraphs.append(f"**[{timestamp}]** {' '.join(current_texts)}")
            paragraph_start = start
            current_texts = [seg.text]
        else:
            current_texts.append(seg.text)

    # Flush the last paragraph.
    if current_texts and paragraph_start is not None:
        timestamp = _seconds_to_mmss(paragraph_start)
        paragraphs.append(f"**[{timestamp}]** {' '.join(current_texts)}")

    return "\n\n".join(paragraphs)
