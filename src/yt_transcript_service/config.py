"""
config.py — Configuration loaded from the environment.

Values come from real environment variables first and a local `.env` file
second.  The service reads one Settings instance at startup; tests build
their own with explicit values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Don't override variables that are already set in the process environment.
load_dotenv(override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name, "")
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or list(default)


@dataclass
class Settings:
    """
    Runtime configuration for the transcript service.

    Attributes:
        deepgram_api_key:  Speech-to-text credential.  Empty disables the
                           audio fallback tier entirely.
        deepgram_model:    Recognition model name sent to the provider.
        deepgram_language: Recognition language code.
        db_path:           DuckDB file backing the transcript cache store.
        scratch_dir:       Directory for temporary audio downloads.
        max_concurrent_transcriptions:
                           How many download + transcribe runs may execute
                           at once; further runs wait their turn.
        transcription_max_retries:
                           Retries for transient network errors per request.
        transcription_timeout_base / _per_mb / _max:
                           Request timeout = base + per_mb * size, capped.
        caption_languages: Caption language codes in priority order.
        fetch_titles:      Look up the video title on the caption tier.
    """

    deepgram_api_key: str = ""
    deepgram_model: str = "nova-2"
    deepgram_language: str = "en"
    db_path: str = "transcripts.duckdb"
    scratch_dir: Path = Path("temp")
    max_concurrent_transcriptions: int = 2
    transcription_max_retries: int = 2
    transcription_timeout_base: float = 30.0
    transcription_timeout_per_mb: float = 10.0
    transcription_timeout_max: float = 600.0
    caption_languages: list[str] = field(default_factory=lambda: ["en"])
    fetch_titles: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Build Settings from environment variables (and `.env`)."""
        return cls(
            deepgram_api_key=os.getenv("DEEPGRAM_API_KEY", ""),
            deepgram_model=os.getenv("DEEPGRAM_MODEL", "nova-2"),
            deepgram_language=os.getenv("DEEPGRAM_LANGUAGE", "en"),
            db_path=os.getenv("TRANSCRIPT_DB", "transcripts.duckdb"),
            scratch_dir=Path(os.getenv("SCRATCH_DIR", "temp")).resolve(),
            max_concurrent_transcriptions=int(os.getenv("MAX_CONCURRENT_TRANSCRIPTIONS", "2")),
            transcription_max_retries=int(os.getenv("TRANSCRIPTION_MAX_RETRIES", "2")),
            transcription_timeout_base=float(os.getenv("TRANSCRIPTION_TIMEOUT_BASE", "30")),
            transcription_timeout_per_mb=float(os.getenv("TRANSCRIPTION_TIMEOUT_PER_MB", "10")),
            transcription_timeout_max=float(os.getenv("TRANSCRIPTION_TIMEOUT_MAX", "600")),
            caption_languages=_env_list("CAPTION_LANGUAGES", ["en"]),
            fetch_titles=_env_bool("FETCH_TITLES", True),
        )

    @property
    def ai_enabled(self) -> bool:
        """True when a speech-to-text credential is configured."""
        return bool(self.deepgram_api_key)

    def ensure_dirs(self) -> None:
        """Create the scratch directory if it doesn't exist."""
        Path(self.scratch_dir).mkdir(parents=True, exist_ok=True)
