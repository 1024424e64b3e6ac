"""
errors.py — Custom exception hierarchy for yt-transcript-service.

Every exception carries an `http_status` attribute so the FastAPI error
handler can translate library-level errors directly into the correct HTTP
response code without a separate mapping table.

Hierarchy:
    TranscriptError (base, 500)
    ├── InvalidVideoUrlError (400)
    ├── TranscriptNotFoundError (404)
    ├── CaptionsUnavailableError (404)
    ├── AudioDownloadError (500)
    ├── TranscriptionError (500)
    │   └── TranscriptionNotConfiguredError (500)
    ├── MetadataFetchError (502)
    └── StorageError (500)
        └── DuplicateTranscriptError (409)
"""


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class TranscriptError(Exception):
    """
    Root exception for all transcript-related errors.

    Attributes:
        message:     Human-readable description of what went wrong.
        http_status: Suggested HTTP status code for the API layer.
    """

    def __init__(self, message: str, http_status: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.http_status = http_status


# ---------------------------------------------------------------------------
# Client-input errors
# ---------------------------------------------------------------------------

class InvalidVideoUrlError(TranscriptError):
    """
    Raised when no YouTube video ID can be resolved from the request input.

    Reported before any external call is made.  Maps to HTTP 400.
    """

    def __init__(self, url: str) -> None:
        super().__init__(
            message=f"Invalid YouTube URL: could not resolve a video ID from {url!r}",
            http_status=400,
        )
        self.url = url


class TranscriptNotFoundError(TranscriptError):
    """Raised when a stored transcript is looked up by an unknown id (404)."""

    def __init__(self, transcript_id: str) -> None:
        super().__init__(
            message=f"Transcript not found: {transcript_id}",
            http_status=404,
        )
        self.transcript_id = transcript_id


# ---------------------------------------------------------------------------
# Tier failures
# ---------------------------------------------------------------------------

class CaptionsUnavailableError(TranscriptError):
    """
    Raised when the caption scrape tier can't produce cues for a video.

    Covers videos without captions, restricted captions, and upstream
    client breakage alike.  The orchestrator always recovers from this by
    falling through to the audio tier, so it never reaches an HTTP caller.
    """

    def __init__(self, video_id: str, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(
            message=f"No captions available for video {video_id}{detail}",
            http_status=404,
        )
        self.video_id = video_id


class AudioDownloadError(TranscriptError):
    """
    Raised when yt-dlp fails to download an audio track.

    Network failures, geo/consent restrictions, age gates and unsupported
    streams all land here.  There is no tier after the audio tier, so this
    is fatal for the run.  Maps to HTTP 500.
    """

    def __init__(self, video_id: str, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(
            message=f"Failed to download audio for video {video_id}{detail}",
            http_status=500,
        )
        self.video_id = video_id


class TranscriptionError(TranscriptError):
    """
    Raised when the speech-to-text provider rejects or fails a request.

    Authentication, quota, malformed audio and timeouts all map here, after
    any bounded retries for transient network errors are exhausted.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, http_status=500)


class TranscriptionNotConfiguredError(TranscriptionError):
    """Raised when the audio tier is needed but no provider credential is set."""

    def __init__(self) -> None:
        super().__init__(
            "Speech-to-text fallback is disabled: DEEPGRAM_API_KEY is not set"
        )


class MetadataFetchError(TranscriptError):
    """
    Raised when yt-dlp fails to retrieve video metadata from YouTube.

    Only used for the best-effort title lookup, so callers log it and move
    on.  Maps to HTTP 502 because the failure is upstream.
    """

    def __init__(self, video_id: str, reason: str = "") -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(
            message=f"Failed to fetch metadata for video {video_id}{detail}",
            http_status=502,
        )
        self.video_id = video_id


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class StorageError(TranscriptError):
    """
    Raised when a DuckDB database operation fails unexpectedly.

    The request fails closed: skipping the cache would repeat paid
    transcription work.  Maps to HTTP 500.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            http_status=500,
        )


class DuplicateTranscriptError(StorageError):
    """
    Raised when a transcript for the video ID has already been stored.

    The cache store's create path is an atomic create-if-absent; losing the
    race is reported with this error so the caller can re-read the winner.
    """

    def __init__(self, video_id: str) -> None:
        super().__init__(f"A transcript for video {video_id} already exists")
        self.http_status = 409
        self.video_id = video_id
