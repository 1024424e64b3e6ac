"""
test_storage.py — Tests for the DuckDB transcript cache store.

Uses real DuckDB databases in pytest's tmp_path, so every test gets a fresh
isolated database.  No mocking needed — we test the actual SQL operations.

Covers:
    - Schema creation and re-opening an existing DB
    - create / get round-trip (by video ID and by transcript ID)
    - Atomic create-if-absent (duplicate video IDs rejected)
    - Segment search
    - Empty database edge cases
"""

from __future__ import annotations

import threading

import pytest

from conftest import count_for_video
from yt_transcript_service.errors import DuplicateTranscriptError, StorageError
from yt_transcript_service.models import Segment, SourceKind
from yt_transcript_service.storage import TranscriptStore


_SAMPLE_SEGMENTS = [
    Segment("Never gonna give you up", 0, 2500),
    Segment("Never gonna let you down", 2500, 2500),
    Segment("Never gonna run around and desert you", 5000, 3000),
]


def _create(store: TranscriptStore, video_id: str = "dQw4w9WgXcQ", **overrides):
    fields = dict(
        video_id=video_id,
        source_url=f"https://youtu.be/{video_id}",
        title="Never Gonna Give You Up",
        full_text=" ".join(s.text for s in _SAMPLE_SEGMENTS),
        segments=_SAMPLE_SEGMENTS,
        source_kind=SourceKind.SCRAPE,
    )
    fields.update(overrides)
    return store.create(**fields)


# ---------------------------------------------------------------------------
# Schema and lifecycle
# ---------------------------------------------------------------------------

class TestTranscriptStoreLifecycle:
    """Tests for database creation, schema, and context manager behavior."""

    def test_creates_new_database(self, tmp_path) -> None:
        db_path = str(tmp_path / "test.duckdb")
        with TranscriptStore(db_path) as store:
            assert store.get_by_video_id("dQw4w9WgXcQ") is None

    def test_reopen_existing_database(self, tmp_path) -> None:
        """Opening an existing database doesn't lose data or error."""
        db_path = str(tmp_path / "test.duckdb")
        with TranscriptStore(db_path) as store:
            created = _create(store)

        with TranscriptStore(db_path) as store:
            loaded = store.get(created.transcript_id)
            assert loaded is not None
            assert loaded.video_id == "dQw4w9WgXcQ"

    def test_double_close_is_safe(self, tmp_path) -> None:
        store = TranscriptStore(str(tmp_path / "test.duckdb"))
        store.close()
        store.close()

    def test_unopenable_path_raises_storage_error(self, tmp_path) -> None:
        with pytest.raises(StorageError):
            TranscriptStore(str(tmp_path / "missing-dir" / "test.duckdb"))


# ---------------------------------------------------------------------------
# Create and read back
# ---------------------------------------------------------------------------

class TestCreateAndGet:
    def test_round_trip_by_video_id(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            created = _create(store, source_kind=SourceKind.AI)

            loaded = store.get_by_video_id("dQw4w9WgXcQ")

            assert loaded.transcript_id == created.transcript_id
            assert loaded.segments == _SAMPLE_SEGMENTS
            assert loaded.full_text == created.full_text
            assert loaded.title == "Never Gonna Give You Up"
            assert loaded.source_url == "https://youtu.be/dQw4w9WgXcQ"
            assert loaded.source_kind is SourceKind.AI
            assert loaded.created_at is not None

    def test_get_by_transcript_id(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            created = _create(store)
            assert store.get(created.transcript_id).video_id == "dQw4w9WgXcQ"

    def test_segment_order_is_preserved(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            _create(store)
            offsets = [s.offset_ms for s in store.get_by_video_id("dQw4w9WgXcQ").segments]
            assert offsets == sorted(offsets)

    def test_transcript_without_segments(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            _create(store, segments=[], full_text="", title=None)
            loaded = store.get_by_video_id("dQw4w9WgXcQ")
            assert loaded.segments == []
            assert loaded.title is None


# ---------------------------------------------------------------------------
# Create-if-absent
# ---------------------------------------------------------------------------

class TestCreateIfAbsent:
    """The store keeps at most one transcript per video ID."""

    def test_duplicate_video_is_rejected(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            first = _create(store)

            with pytest.raises(DuplicateTranscriptError) as exc_info:
                _create(store, source_kind=SourceKind.AI)

            assert exc_info.value.video_id == "dQw4w9WgXcQ"
            assert count_for_video(store, "dQw4w9WgXcQ") == 1
            assert store.get_by_video_id("dQw4w9WgXcQ").transcript_id == first.transcript_id

    def test_rejected_insert_leaves_no_orphan_segments(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            _create(store)
            with pytest.raises(DuplicateTranscriptError):
                _create(store)
            count = store.conn.execute("SELECT COUNT(*) FROM segments").fetchone()[0]
            assert count == len(_SAMPLE_SEGMENTS)

    def test_store_still_usable_after_rejection(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            _create(store)
            with pytest.raises(DuplicateTranscriptError):
                _create(store)
            _create(store, video_id="oHg5SJYRHA0")
            assert count_for_video(store, "oHg5SJYRHA0") == 1

    def test_concurrent_creates_keep_one_record(self, tmp_path) -> None:
        """Threads racing to create the same video leave exactly one record."""
        outcomes: list[str] = []
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            def worker() -> None:
                try:
                    _create(store)
                    outcomes.append("created")
                except DuplicateTranscriptError:
                    outcomes.append("duplicate")

            threads = [threading.Thread(target=worker) for _ in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            assert outcomes.count("created") == 1
            assert outcomes.count("duplicate") == 7
            assert count_for_video(store, "dQw4w9WgXcQ") == 1


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class TestSearch:
    def test_search_finds_matching_segments(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            _create(store)
            results = store.search_segments("let you down")
            assert len(results) == 1
            assert results[0]["text"] == "Never gonna let you down"
            assert results[0]["videoId"] == "dQw4w9WgXcQ"
            assert results[0]["offsetMs"] == 2500

    def test_search_case_insensitive(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            _create(store)
            assert len(store.search_segments("NEVER GONNA")) == 3

    def test_search_respects_limit(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            _create(store)
            assert len(store.search_segments("never", limit=2)) == 2

    def test_search_empty_database(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            assert store.search_segments("anything") == []


# ---------------------------------------------------------------------------
# Empty database edge cases
# ---------------------------------------------------------------------------

class TestEmptyDatabase:
    def test_get_missing_transcript(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            assert store.get("no-such-id") is None

    def test_get_missing_video(self, tmp_path) -> None:
        with TranscriptStore(str(tmp_path / "test.duckdb")) as store:
            assert store.get_by_video_id("nonexistent1") is None
