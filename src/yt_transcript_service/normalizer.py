"""
normalizer.py — Convert tier output into canonical Segments.

Both tiers speak different dialects: the caption scraper returns cues with
start/duration, while speech providers return paragraphs, words, or
utterance segments with start/end.  Everything funnels into
Segment(text, offset_ms, duration_ms), converted by the unit tag the
producer attached.

Recognition shapes, in order of preference:
    1. paragraphs  → one segment per paragraph (sentence texts joined)
    2. words       → greedy buckets closed at 10 s or at . ! ?
    3. segments    → one segment per provider segment (OpenAI verbose_json)
"""

from __future__ import annotations

from typing import Any, Iterable

from yt_transcript_service.models import (
    RawCue,
    RecognitionResult,
    Segment,
    TimeUnit,
    join_segment_text,
)

# A word bucket is closed once it spans this many milliseconds.
WORD_BUCKET_MAX_MS = 10_000

_SENTENCE_ENDINGS = (".", "!", "?")


# ---------------------------------------------------------------------------
# Time conversion
# ---------------------------------------------------------------------------

def to_milliseconds(value: Any, unit: TimeUnit) -> int:
    """
    Convert a raw time value to non-negative integer milliseconds.

    Missing or non-numeric values become 0.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:  # NaN
        return 0
    if unit is TimeUnit.SECONDS:
        number *= 1000.0
    return max(0, int(round(number)))


def _span_ms(start: Any, end: Any, unit: TimeUnit) -> tuple[int, int]:
    offset = to_milliseconds(start, unit)
    finish = to_milliseconds(end, unit)
    return offset, max(0, finish - offset)


def _clean(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    return " ".join(text.split())


def _in_order(segments: list[Segment]) -> list[Segment]:
    # sorted() is stable, so equal offsets keep their input order.
    return sorted(segments, key=lambda seg: seg.offset_ms)


# ---------------------------------------------------------------------------
# Scrape tier
# ---------------------------------------------------------------------------

def normalize_cues(cues: Iterable[RawCue]) -> list[Segment]:
    """Convert caption cues to segments, dropping cues with no text."""
    segments = []
    for cue in cues or []:
        text = _clean(cue.text)
        if not text:
            continue
        segments.append(Segment(
            text=text,
            offset_ms=to_milliseconds(cue.start, cue.unit),
            duration_ms=to_milliseconds(cue.duration, cue.unit),
        ))
    return _in_order(segments)


# ---------------------------------------------------------------------------
# AI tier
# ---------------------------------------------------------------------------

def _paragraph_list(alt: dict[str, Any]) -> list[dict[str, Any]]:
    # Deepgram nests paragraphs as {"transcript": ..., "paragraphs": [...]}.
    container = alt.get("paragraphs")
    if isinstance(container, dict):
        container = container.get("paragraphs")
    if not isinstance(container, list):
        return []
    return [p for p in container if isinstance(p, dict)]


def _from_paragraphs(paragraphs: list[dict[str, Any]], unit: TimeUnit) -> list[Segment]:
    segments = []
    for paragraph in paragraphs:
        sentences = [s for s in paragraph.get("sentences") or [] if isinstance(s, dict)]
        text = " ".join(t for t in (_clean(s.get("text")) for s in sentences) if t)
        if not text:
            continue
        start = paragraph.get("start")
        end = paragraph.get("end")
        if start is None and sentences:
            start = sentences[0].get("start")
        if end is None and sentences:
            end = sentences[-1].get("end")
        offset, duration = _span_ms(start, end, unit)
        segments.append(Segment(text=text, offset_ms=offset, duration_ms=duration))
    return segments


def _from_words(words: list[dict[str, Any]], unit: TimeUnit) -> list[Segment]:
    """
    Greedy, single-pass word bucketing.

    A bucket closes when it spans WORD_BUCKET_MAX_MS from its first word's
    start to the current word's end, or when the current word ends a
    sentence.  A trailing partial bucket is flushed at the end.
    """
    segments: list[Segment] = []
    texts: list[str] = []
    bucket_start = 0
    bucket_end = 0

    for word in words:
        text = _clean(word.get("punctuated_word") or word.get("word"))
        if not text:
            continue
        start = to_milliseconds(word.get("start"), unit)
        end = max(start, to_milliseconds(word.get("end"), unit))
        if not texts:
            bucket_start = start
        texts.append(text)
        bucket_end = max(bucket_end, end)

        if bucket_end - bucket_start >= WORD_BUCKET_MAX_MS or text.endswith(_SENTENCE_ENDINGS):
            segments.append(Segment(" ".join(texts), bucket_start, bucket_end - bucket_start))
            texts = []
            bucket_end = 0

    if texts:
        segments.append(Segment(" ".join(texts), bucket_start, max(0, bucket_end - bucket_start)))
    return segments


def _from_provider_segments(items: list[dict[str, Any]], unit: TimeUnit) -> list[Segment]:
    segments = []
    for item in items:
        text = _clean(item.get("text"))
        if not text:
            continue
        offset, duration = _span_ms(item.get("start"), item.get("end"), unit)
        segments.append(Segment(text=text, offset_ms=offset, duration_ms=duration))
    return segments


def normalize_recognition(result: RecognitionResult | None) -> list[Segment]:
    """
    Convert a speech provider result to segments.

    Returns an empty list, never raises, when the result carries no
    paragraphs, words or segments; the caller reads that as "no speech".
    """
    if result is None:
        return []
    alt = result.alternative()
    if not isinstance(alt, dict):
        return []

    paragraphs = _paragraph_list(alt)
    if paragraphs:
        segments = _from_paragraphs(paragraphs, result.unit)
        if segments:
            return _in_order(segments)

    words = [w for w in alt.get("words") or [] if isinstance(w, dict)]
    if words:
        return _in_order(_from_words(words, result.unit))

    items = [s for s in alt.get("segments") or [] if isinstance(s, dict)]
    return _in_order(_from_provider_segments(items, result.unit))


def normalize(source: RecognitionResult | Iterable[RawCue] | None) -> list[Segment]:
    """Dispatch on the producer: a RecognitionResult or a sequence of cues."""
    if source is None:
        return []
    if isinstance(source, RecognitionResult):
        return normalize_recognition(source)
    return normalize_cues(source)


# ---------------------------------------------------------------------------
# Full text
# ---------------------------------------------------------------------------

def build_full_text(segments: list[Segment], supplied: str | None = None) -> str:
    """
    Return the transcript's full text.

    The provider's own rendering is kept only when it has exactly the same
    words as the joined segment texts; otherwise the join is used so the
    record stays derivable from its segments.
    """
    joined = join_segment_text(segments)
    if supplied and supplied.split() == joined.split():
        return supplied.strip()
    return joined
