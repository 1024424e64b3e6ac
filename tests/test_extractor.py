"""
test_extractor.py — Tests for video ID resolution, caption scraping and formatters.

All tests are offline: youtube-transcript-api is mocked.

Integration tests (need network, marked with @pytest.mark.integration):
    - Fetching captions from a real YouTube video
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import youtube_transcript_api as yta_errors

from yt_transcript_service.errors import CaptionsUnavailableError, InvalidVideoUrlError
from yt_transcript_service.extractor import (
    fetch_captions,
    format_doc,
    format_text,
    parse_video_id,
    require_video_id,
)
from yt_transcript_service.models import Segment, TimeUnit


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class FakeSnippet:
    """Mimics FetchedTranscriptSnippet with .text, .start, .duration."""

    def __init__(self, text: str, start: float, duration: float) -> None:
        self.text = text
        self.start = start
        self.duration = duration


def _mock_api(mock_cls: MagicMock, snippets: list[FakeSnippet]) -> MagicMock:
    instance = MagicMock()
    instance.fetch.return_value = snippets
    mock_cls.return_value = instance
    return instance


# ---------------------------------------------------------------------------
# parse_video_id — URL parsing
# ---------------------------------------------------------------------------

class TestParseVideoId:
    """Every supported URL shape resolves to the same canonical ID."""

    @pytest.mark.parametrize("url", [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ&list=PLrAXtmErZgOeiKm4sgNOknGvNjby9efdf&t=42",
        "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
        "https://m.youtube.com/watch?v=dQw4w9WgXcQ",
        "http://youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ?t=10",
        "https://www.youtube.com/embed/dQw4w9WgXcQ",
        "https://www.youtube.com/shorts/dQw4w9WgXcQ",
        "https://www.youtube.com/v/dQw4w9WgXcQ",
        "dQw4w9WgXcQ",
        "  dQw4w9WgXcQ  ",
    ])
    def test_all_shapes_resolve_to_same_id(self, url: str) -> None:
        assert parse_video_id(url) == "dQw4w9WgXcQ"

    def test_last_path_segment_fallback(self) -> None:
        """An unknown host still resolves when its last path segment is ID-shaped."""
        assert parse_video_id("https://example.com/videos/dQw4w9WgXcQ") == "dQw4w9WgXcQ"

    def test_id_with_hyphens_and_underscores(self) -> None:
        assert parse_video_id("Ab_Cd-Ef_12") == "Ab_Cd-Ef_12"

    @pytest.mark.parametrize("bad", [
        "not-a-url",
        "",
        "   ",
        "dQw4w9WgXc",                                   # 10 chars
        "dQw4w9WgXcQQ",                                 # 12 chars
        "https://www.youtube.com/watch?v=dQw4w9WgXcQQ",  # ID too long
        "https://www.youtube.com/watch?v=short",
        "https://example.com/",
        "hello world",
        None,
    ])
    def test_malformed_input_returns_none(self, bad) -> None:
        """Malformed input is a normal outcome, never an exception."""
        assert parse_video_id(bad) is None

    def test_require_video_id_raises_client_error(self) -> None:
        with pytest.raises(InvalidVideoUrlError) as exc_info:
            require_video_id("not-a-url")
        assert exc_info.value.http_status == 400


# ---------------------------------------------------------------------------
# fetch_captions — scrape tier
# ---------------------------------------------------------------------------

class TestFetchCaptions:
    """Tests for fetch_captions() with a mocked YouTubeTranscriptApi."""

    @patch("yt_transcript_service.extractor.YouTubeTranscriptApi")
    def test_returns_cues_tagged_in_seconds(self, mock_cls: MagicMock) -> None:
        instance = _mock_api(mock_cls, [
            FakeSnippet("Hello world", 0.0, 1.5),
            FakeSnippet("Second line", 1.5, 2.0),
        ])

        cues = fetch_captions("dQw4w9WgXcQ", languages=["de", "en"])

        assert [c.text for c in cues] == ["Hello world", "Second line"]
        assert cues[1].start == 1.5
        assert all(c.unit is TimeUnit.SECONDS for c in cues)
        instance.fetch.assert_called_once_with("dQw4w9WgXcQ", languages=["de", "en"])

    @patch("yt_transcript_service.extractor.YouTubeTranscriptApi")
    def test_default_language_is_english(self, mock_cls: MagicMock) -> None:
        instance = _mock_api(mock_cls, [FakeSnippet("Hi", 0.0, 1.0)])
        fetch_captions("dQw4w9WgXcQ")
        instance.fetch.assert_called_once_with("dQw4w9WgXcQ", languages=["en"])

    @patch("yt_transcript_service.extractor.YouTubeTranscriptApi")
    def test_disabled_captions_raise_unavailable(self, mock_cls: MagicMock) -> None:
        mock_cls.return_value.fetch.side_effect = yta_errors.TranscriptsDisabled("dQw4w9WgXcQ")

        with pytest.raises(CaptionsUnavailableError) as exc_info:
            fetch_captions("dQw4w9WgXcQ")
        assert "disabled" in exc_info.value.message

    @patch("yt_transcript_service.extractor.YouTubeTranscriptApi")
    def test_client_breakage_is_reported_the_same_way(self, mock_cls: MagicMock) -> None:
        """An unexpected error from the scraper still means 'fall back'."""
        mock_cls.return_value.fetch.side_effect = KeyError("captions")

        with pytest.raises(CaptionsUnavailableError):
            fetch_captions("dQw4w9WgXcQ")

    @patch("yt_transcript_service.extractor.YouTubeTranscriptApi")
    def test_empty_track_raises_unavailable(self, mock_cls: MagicMock) -> None:
        _mock_api(mock_cls, [])
        with pytest.raises(CaptionsUnavailableError):
            fetch_captions("dQw4w9WgXcQ")


@pytest.mark.integration
def test_fetch_real_captions() -> None:
    cues = fetch_captions("dQw4w9WgXcQ")
    assert cues


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

class TestFormatters:
    """Tests for format_text() and format_doc()."""

    def test_format_text_one_line_per_segment(self) -> None:
        segments = [Segment("Hello world", 0, 1500), Segment("Second line", 1500, 2000)]
        assert format_text(segments) == "Hello world\nSecond line"

    def test_format_text_empty(self) -> None:
        assert format_text([]) == ""

    def test_format_doc_groups_by_thirty_seconds(self) -> None:
        segments = [
            Segment("First.", 0, 5000),
            Segment("Still first.", 10_000, 5000),
            Segment("Second paragraph.", 31_000, 5000),
            Segment("Past a minute.", 62_000, 5000),
        ]

        doc = format_doc(segments)

        assert doc.split("\n\n") == [
            "**[00:00]** First. Still first.",
            "**[00:31]** Second paragraph.",
            "**[01:02]** Past a minute.",
        ]

    def test_format_doc_empty(self) -> None:
        assert format_doc([]) == ""
