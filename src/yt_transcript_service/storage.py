"""
storage.py — DuckDB-backed transcript cache store.

One row per video in `transcripts` (video_id is UNIQUE, which makes
create() an atomic create-if-absent) and one row per segment in
`segments`, keyed by the transcript id and the segment's position.

    get_by_video_id()   Read-through cache lookup.
    get()               Lookup by storage identifier.
    create()            Insert a new transcript, or raise DuplicateTranscriptError.
    search_segments()   Case-insensitive substring search over segment text.

The connection is shared, and the service calls in from worker threads, so
every operation runs under one lock.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

import duckdb

from yt_transcript_service.errors import DuplicateTranscriptError, StorageError
from yt_transcript_service.models import Segment, SourceKind, Transcript

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS transcripts (
        transcript_id VARCHAR PRIMARY KEY,
        video_id      VARCHAR NOT NULL UNIQUE,
        source_url    VARCHAR NOT NULL,
        title         VARCHAR,
        full_text     VARCHAR NOT NULL,
        source_kind   VARCHAR NOT NULL,
        created_at    TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS segments (
        transcript_id VARCHAR NOT NULL,
        position      INTEGER NOT NULL,
        text          VARCHAR NOT NULL,
        offset_ms     BIGINT NOT NULL,
        duration_ms   BIGINT NOT NULL,
        PRIMARY KEY (transcript_id, position)
    )
    """,
]

_TRANSCRIPT_COLUMNS = (
    "transcript_id, video_id, source_url, title, full_text, source_kind, created_at"
)


class TranscriptStore:
    """
    Persistent mapping from video ID to its transcript.

    Usable as a context manager; close() is idempotent.

    Args:
        db_path: DuckDB file path, or ":memory:".
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self.conn = duckdb.connect(db_path)
            for statement in _SCHEMA:
                self.conn.execute(statement)
        except duckdb.Error as exc:
            raise StorageError(f"Failed to open transcript database {db_path}: {exc}") from exc
        self._closed = False

    # -- lifecycle ----------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.conn.close()

    def __enter__(self) -> "TranscriptStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- reads --------------------------------------------------------------

    def get_by_video_id(self, video_id: str) -> Transcript | None:
        """Return the cached transcript for a video, or None."""
        return self._fetch_one("video_id", video_id)

    def get(self, transcript_id: str) -> Transcript | None:
        """Return a transcript by its storage identifier, or None."""
        return self._fetch_one("transcript_id", transcript_id)

    def search_segments(self, query: str, limit: int = 100) -> list[dict]:
        """
        Find stored segments whose text contains `query` (case-insensitive).

        Returns:
            Dicts with transcript_id, video_id, title, text, offsetMs and
            durationMs, ordered by video then position.
        """
        pattern = f"%{query}%"
        with self._lock:
            try:
                rows = self.conn.execute(
                    """
                    SELECT t.transcript_id, t.video_id, t.title,
                           s.text, s.offset_ms, s.duration_ms
                    FROM segments s
                    JOIN transcripts t ON t.transcript_id = s.transcript_id
                    WHERE s.text ILIKE ?
                    ORDER BY t.video_id, s.position
                    LIMIT ?
                    """,
                    [pattern, limit],
                ).fetchall()
            except duckdb.Error as exc:
                raise StorageError(f"Transcript search failed: {exc}") from exc

        return [
            {
                "transcriptId": row[0],
                "videoId": row[1],
                "title": row[2],
                "text": row[3],
                "offsetMs": row[4],
                "durationMs": row[5],
            }
            for row in rows
        ]

    # -- writes -------------------------------------------------------------

    def create(
        self,
        *,
        video_id: str,
        source_url: str,
        title: str | None,
        full_text: str,
        segments: list[Segment],
        source_kind: SourceKind,
    ) -> Transcript:
        """
        Store a new transcript for a video that has none yet.

        The transcript row and its segments are written in one transaction.

        Raises:
            DuplicateTranscriptError: A transcript for this video exists.
            StorageError:             Any other database failure.
        """
        transcript = Transcript(
            transcript_id=uuid.uuid4().hex,
            video_id=video_id,
            source_url=source_url,
            title=title,
            full_text=full_text,
            segments=list(segments),
            source_kind=source_kind,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )

        with self._lock:
            try:
                self.conn.execute("BEGIN TRANSACTION")
                self.conn.execute(
                    f"INSERT INTO transcripts ({_TRANSCRIPT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    [
                        transcript.transcript_id,
                        transcript.video_id,
                        transcript.source_url,
                        transcript.title,
                        transcript.full_text,
                        transcript.source_kind.value,
                        transcript.created_at,
                    ],
                )
                if transcript.segments:
                    self.conn.executemany(
                        "INSERT INTO segments VALUES (?, ?, ?, ?, ?)",
                        [
                            [transcript.transcript_id, i, seg.text, seg.offset_ms, seg.duration_ms]
                            for i, seg in enumerate(transcript.segments)
                        ],
                    )
                self.conn.execute("COMMIT")
            except duckdb.ConstraintException as exc:
                self._rollback()
                raise DuplicateTranscriptError(video_id) from exc
            except duckdb.Error as exc:
                self._rollback()
                raise StorageError(f"Failed to save transcript for {video_id}: {exc}") from exc

        return transcript

    # -- internals ----------------------------------------------------------

    def _rollback(self) -> None:
        try:
            self.conn.execute("ROLLBACK")
        except duckdb.Error:
            # No transaction left to roll back.
            pass

    def _fetch_one(self, column: str, value: str) -> Transcript | None:
        with self._lock:
            try:
                row = self.conn.execute(
                    f"SELECT {_TRANSCRIPT_COLUMNS} FROM transcripts WHERE {column} = ?",
                    [value],
                ).fetchone()
                if row is None:
                    return None
                segment_rows = self.conn.execute(
                    """
                    SELECT text, offset_ms, duration_ms
                    FROM segments
                    WHERE transcript_id = ?
                    ORDER BY position
                    """,
                    [row[0]],
                ).fetchall()
            except duckdb.Error as exc:
                raise StorageError(f"Failed to read transcript ({column}={value}): {exc}") from exc

        return Transcript(
            transcript_id=row[0],
            video_id=row[1],
            source_url=row[2],
            title=row[3],
            full_text=row[4],
            segments=[Segment(text=s[0], offset_ms=int(s[1]), duration_ms=int(s[2])) for s in segment_rows],
            source_kind=SourceKind(row[5]),
            created_at=row[6],
        )
