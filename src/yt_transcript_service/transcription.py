"""
transcription.py — Deepgram speech-to-text client.

Sends a local audio file to Deepgram's pre-recorded `/v1/listen` endpoint
and returns the decoded response as a RecognitionResult (times in seconds).

Transient network errors and 429/5xx responses are retried by a tenacity
policy with a bounded number of attempts and exponential backoff.
Timeouts are not retried: the request timeout already scales with the
file size.  Everything else (auth, quota, malformed audio) fails
immediately with TranscriptionError.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import httpx
import tenacity

from yt_transcript_service.config import Settings
from yt_transcript_service.errors import (
    TranscriptionError,
    TranscriptionNotConfiguredError,
)
from yt_transcript_service.models import RecognitionResult, TimeUnit

logger = logging.getLogger(__name__)

DEEPGRAM_LISTEN_URL = "https://api.deepgram.com/v1/listen"

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

_CONTENT_TYPES = {
    ".m4a": "audio/mp4",
    ".mp4": "audio/mp4",
    ".webm": "audio/webm",
    ".opus": "audio/ogg",
    ".ogg": "audio/ogg",
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
}


class _TransientStatus(Exception):
    """A 429/5xx response, raised so the retry policy can see it."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TimeoutException):
        return False
    return isinstance(exc, (_TransientStatus, httpx.TransportError))


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    exc = retry_state.outcome.exception()
    logger.warning(
        f"Transient transcription error ({exc}); "
        f"retry {retry_state.attempt_number} after {retry_state.next_action.sleep:.1f}s"
    )


@dataclass(frozen=True)
class TranscriptionOptions:
    """Recognition features requested from the provider."""

    model: str = "nova-2"
    language: str = "en"
    punctuate: bool = True
    smart_format: bool = True
    paragraphs: bool = True

    def to_params(self) -> dict[str, str]:
        def flag(value: bool) -> str:
            return "true" if value else "false"

        return {
            "model": self.model,
            "language": self.language,
            "punctuate": flag(self.punctuate),
            "smart_format": flag(self.smart_format),
            "paragraphs": flag(self.paragraphs),
        }


class DeepgramClient:
    """
    Async Deepgram client holding one pooled httpx.AsyncClient.

    Build once per process and close() on shutdown.

    Args:
        api_key:         Deepgram API key.
        max_retries:     Retries for transient failures (0 = single attempt).
        timeout_base:    Fixed part of the per-request timeout, seconds.
        timeout_per_mb:  Extra seconds per MB of audio.
        timeout_max:     Timeout ceiling, seconds.
        backoff:         First retry delay, doubled per attempt.
        http_client:     Injected client (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str,
        *,
        max_retries: int = 2,
        timeout_base: float = 30.0,
        timeout_per_mb: float = 10.0,
        timeout_max: float = 600.0,
        backoff: float = 1.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise TranscriptionNotConfiguredError()
        self._api_key = api_key
        self.max_retries = max(0, max_retries)
        self.timeout_base = timeout_base
        self.timeout_per_mb = timeout_per_mb
        self.timeout_max = timeout_max
        self.backoff = backoff
        self._http = http_client or httpx.AsyncClient()

    @classmethod
    def from_settings(cls, settings: Settings) -> "DeepgramClient":
        return cls(
            settings.deepgram_api_key,
            max_retries=settings.transcription_max_retries,
            timeout_base=settings.transcription_timeout_base,
            timeout_per_mb=settings.transcription_timeout_per_mb,
            timeout_max=settings.transcription_timeout_max,
        )

    async def close(self) -> None:
        await self._http.aclose()

    def timeout_for(self, size_bytes: int) -> float:
        """Request timeout in seconds for an upload of `size_bytes`."""
        megabytes = size_bytes / (1024 * 1024)
        return min(self.timeout_max, self.timeout_base + self.timeout_per_mb * megabytes)

    async def transcribe(
        self,
        audio_path: Path,
        options: TranscriptionOptions | None = None,
    ) -> RecognitionResult:
        """
        Transcribe one audio file.

        Raises:
            TranscriptionError: Provider rejection, timeout, or retries exhausted.
        """
        options = options or TranscriptionOptions()
        audio_path = Path(audio_path)
        try:
            audio = await asyncio.to_thread(audio_path.read_bytes)
        except OSError as exc:
            raise TranscriptionError(f"Could not read audio file {audio_path.name}: {exc}") from exc

        headers = {
            "Authorization": f"Token {self._api_key}",
            "Content-Type": _CONTENT_TYPES.get(audio_path.suffix.lower(), "application/octet-stream"),
        }
        timeout = self.timeout_for(len(audio))

        try:
            response = await self.retry_policy()(
                self._post, audio, options.to_params(), headers, timeout
            )
        except httpx.TimeoutException as exc:
            raise TranscriptionError(
                f"Transcription timed out after {timeout:.0f}s"
            ) from exc
        except httpx.TransportError as exc:
            raise TranscriptionError(f"Transcription request failed: {exc}") from exc
        except _TransientStatus as exc:
            raise TranscriptionError(self._describe_failure(exc.response)) from exc

        if response.status_code >= 400:
            raise TranscriptionError(self._describe_failure(response))
        return self._decode(response)

    def retry_policy(self) -> tenacity.AsyncRetrying:
        """
        Bounded exponential backoff for transient failures only.

        Connection errors and 429/5xx responses are retried; timeouts and
        every other status go straight back to the caller.
        """
        return tenacity.AsyncRetrying(
            stop=tenacity.stop_after_attempt(self.max_retries + 1),
            wait=tenacity.wait_exponential(multiplier=self.backoff),
            retry=tenacity.retry_if_exception(_is_transient),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def _post(
        self,
        audio: bytes,
        params: dict[str, str],
        headers: dict[str, str],
        timeout: float,
    ) -> httpx.Response:
        response = await self._http.post(
            DEEPGRAM_LISTEN_URL,
            params=params,
            headers=headers,
            content=audio,
            timeout=timeout,
        )
        if response.status_code in _RETRYABLE_STATUS:
            raise _TransientStatus(response)
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> RecognitionResult:
        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("Transcription service returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise TranscriptionError("Transcription service returned an unexpected body")
        return RecognitionResult(payload=payload, unit=TimeUnit.SECONDS)

    @staticmethod
    def _describe_failure(response: httpx.Response) -> str:
        status = response.status_code
        if status in (401, 403):
            return f"Transcription service rejected the credential (HTTP {status})"
        if status == 402:
            return "Transcription service quota exhausted (HTTP 402)"
        detail = ""
        try:
            body = response.json()
            if isinstance(body, dict):
                detail = body.get("err_msg") or body.get("message") or ""
        except ValueError:
            detail = response.text[:200]
        suffix = f": {detail}" if detail else ""
        return f"Transcription failed (HTTP {status}){suffix}"
