"""
models.py — Data structures shared across the transcript pipeline.

    RawCue             One caption cue from the scrape tier (tagged unit).
    RecognitionResult  A speech provider payload (tagged unit).
    Segment            The canonical timed span: text + offset_ms + duration_ms.
    Transcript         The persisted record, one per video ID.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TimeUnit(str, Enum):
    """Unit a producer reports its time values in."""

    SECONDS = "seconds"
    MILLISECONDS = "milliseconds"


class SourceKind(str, Enum):
    """Which tier produced a stored transcript."""

    SCRAPE = "scrape"
    AI = "ai"


@dataclass(frozen=True)
class RawCue:
    """A caption cue as scraped from YouTube."""

    text: str
    start: float
    duration: float
    unit: TimeUnit = TimeUnit.SECONDS


@dataclass
class RecognitionResult:
    """
    A speech-to-text response, kept in the provider's own shape.

    Attributes:
        payload: The decoded JSON body from the provider.
        unit:    Unit of every start/end value inside the payload.
    """

    payload: dict[str, Any]
    unit: TimeUnit = TimeUnit.SECONDS

    def alternative(self) -> dict[str, Any]:
        """
        Return the top hypothesis, or an empty dict when there is none.

        Deepgram nests it at results.channels[0].alternatives[0]; the
        OpenAI verbose_json shape keeps text/segments at the top level.
        """
        payload = self.payload or {}
        results = payload.get("results")
        if isinstance(results, dict):
            channels = results.get("channels") or []
            if channels and isinstance(channels[0], dict):
                alternatives = channels[0].get("alternatives") or []
                if alternatives and isinstance(alternatives[0], dict):
                    return alternatives[0]
            return {}
        return payload

    def transcript_text(self) -> str:
        """The provider's own full-text rendering, or "" when absent."""
        alt = self.alternative()
        text = alt.get("transcript") or alt.get("text") or ""
        return text.strip() if isinstance(text, str) else ""


@dataclass(frozen=True)
class Segment:
    """One timed span of transcript text, in integer milliseconds."""

    text: str
    offset_ms: int
    duration_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "offsetMs": self.offset_ms,
            "durationMs": self.duration_ms,
        }

    @property
    def start_seconds(self) -> float:
        return self.offset_ms / 1000.0


def join_segment_text(segments: list[Segment]) -> str:
    """Space-join segment texts, skipping blanks."""
    return " ".join(seg.text.strip() for seg in segments if seg.text.strip())


@dataclass
class Transcript:
    """
    A stored transcript.  Created once per video ID and never mutated.

    Attributes:
        transcript_id: Storage identifier returned to API callers.
        video_id:      Canonical 11-character YouTube ID (natural key).
        source_url:    The URL from the request that created the record.
        title:         Best-effort display title.
        full_text:     Space-joined segment texts.
        segments:      Chronologically ordered segments.
        source_kind:   Tier that produced the transcript.
        created_at:    Creation time (UTC).
    """

    transcript_id: str
    video_id: str
    source_url: str
    title: str | None
    full_text: str
    segments: list[Segment] = field(default_factory=list)
    source_kind: SourceKind = SourceKind.SCRAPE
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "transcriptId": self.transcript_id,
            "videoId": self.video_id,
            "sourceUrl": self.source_url,
            "title": self.title,
            "transcript": self.full_text,
            "segments": [seg.to_dict() for seg in self.segments],
            "sourceKind": self.source_kind.value,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
