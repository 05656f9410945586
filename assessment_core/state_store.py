"""
SQLite State Store for the assessment core.

Provides portable persistence for:
- Flashcard scheduling state per (learner, item)
- Review history log
- Learner mastery profiles
- Integrity violation log per attempt

Database location: ~/.assessment/state.db (see Settings.state_db_path)
"""

from __future__ import annotations

import json
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from assessment_core.core.models import LearnerProfile
from assessment_core.integrity.events import EventType, ViolationEvent
from assessment_core.review.scheduler import FlashcardRecord, ReviewRating

# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ReviewLogRecord:
    """A single review event."""

    id: int
    learner_id: str
    item_id: str
    reviewed_at_ms: int
    rating: int
    interval_days: int
    ease_factor: float
    time_spent_ms: int | None = None


@dataclass
class ViolationRecord:
    """A persisted integrity event."""

    id: int
    learner_id: str
    assessment_id: str
    attempt_id: str
    event_type: str
    severity: str
    timestamp_ms: int
    metadata: dict[str, Any]


# =============================================================================
# State Store
# =============================================================================


class StateStore:
    """
    SQLite-backed state persistence.

    Handles:
    - Flashcard records (due date, interval, ease factor)
    - Review log with timing
    - Learner profiles (topic mastery, stored as JSON)
    - Violation log per attempt
    """

    DEFAULT_DB_PATH = Path.home() / ".assessment" / "state.db"

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the state store.

        Args:
            db_path: Custom database path (defaults to ~/.assessment/state.db).
                ":memory:" keeps everything in process.
        """
        if db_path == ":memory:":
            self.db_path: Path | None = None
        else:
            self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._write_lock = threading.Lock()
        self._init_schema()

        logger.info("StateStore initialized at {}", self.db_path or ":memory:")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            target = str(self.db_path) if self.db_path else ":memory:"
            # Monitor timers log from their own threads
            self._conn = sqlite3.connect(target, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> StateStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS flashcards (
                learner_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                due_at_ms INTEGER NOT NULL,
                interval_days INTEGER NOT NULL DEFAULT 0,
                ease_factor REAL NOT NULL DEFAULT 2.5,
                last_reviewed_at_ms INTEGER NOT NULL,
                last_rating INTEGER NOT NULL,
                total_reviews INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (learner_id, item_id)
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS review_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                learner_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                reviewed_at_ms INTEGER NOT NULL,
                rating INTEGER NOT NULL,
                interval_days INTEGER NOT NULL,
                ease_factor REAL NOT NULL,
                time_spent_ms INTEGER
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS learner_profiles (
                learner_id TEXT PRIMARY KEY,
                topic_mastery TEXT NOT NULL,
                updated_at_ms INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS violations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                learner_id TEXT NOT NULL,
                assessment_id TEXT NOT NULL,
                attempt_id TEXT NOT NULL,
                event_type TEXT NOT NULL,
                severity TEXT NOT NULL,
                timestamp_ms INTEGER NOT NULL,
                metadata TEXT
            )
        """)

        # Index for fast due-date queries
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_flashcards_due
            ON flashcards(learner_id, due_at_ms)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_review_log_item
            ON review_log(learner_id, item_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_violations_attempt
            ON violations(attempt_id)
        """)

        self.conn.commit()

    # =========================================================================
    # Flashcard Operations
    # =========================================================================

    def get_flashcard(self, learner_id: str, item_id: str) -> FlashcardRecord | None:
        """
        Get the scheduling record for an item.

        Returns:
            FlashcardRecord, or None if the learner never reviewed the item
        """
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM flashcards WHERE learner_id = ? AND item_id = ?",
            (learner_id, item_id),
        )
        row = cursor.fetchone()

        if row is None:
            return None

        return FlashcardRecord(
            item_id=row["item_id"],
            due_at_ms=row["due_at_ms"],
            interval_days=row["interval_days"],
            ease_factor=row["ease_factor"],
            last_reviewed_at_ms=row["last_reviewed_at_ms"],
            last_rating=ReviewRating(row["last_rating"]),
            total_reviews=row["total_reviews"],
        )

    def save_flashcard(self, learner_id: str, record: FlashcardRecord) -> None:
        """Insert or update the scheduling record for (learner, item)."""
        with self._write_lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO flashcards (
                    learner_id, item_id, due_at_ms, interval_days, ease_factor,
                    last_reviewed_at_ms, last_rating, total_reviews
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(learner_id, item_id) DO UPDATE SET
                    due_at_ms = excluded.due_at_ms,
                    interval_days = excluded.interval_days,
                    ease_factor = excluded.ease_factor,
                    last_reviewed_at_ms = excluded.last_reviewed_at_ms,
                    last_rating = excluded.last_rating,
                    total_reviews = excluded.total_reviews
            """,
                (
                    learner_id,
                    record.item_id,
                    record.due_at_ms,
                    record.interval_days,
                    record.ease_factor,
                    record.last_reviewed_at_ms,
                    int(record.last_rating),
                    record.total_reviews,
                ),
            )
            self.conn.commit()

    def get_due_item_ids(self, learner_id: str, now_ms: int, limit: int = 100) -> list[str]:
        """
        Get item IDs due for review.

        Returns:
            Item IDs due at or before now_ms, most overdue first
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT item_id FROM flashcards
            WHERE learner_id = ? AND due_at_ms <= ?
            ORDER BY due_at_ms ASC, interval_days ASC
            LIMIT ?
        """,
            (learner_id, now_ms, limit),
        )
        return [row["item_id"] for row in cursor.fetchall()]

    def count_due_items(self, learner_id: str, now_ms: int) -> int:
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT COUNT(*) AS cnt FROM flashcards WHERE learner_id = ? AND due_at_ms <= ?",
            (learner_id, now_ms),
        )
        return cursor.fetchone()["cnt"]

    # =========================================================================
    # Review Log Operations
    # =========================================================================

    def log_review(
        self,
        learner_id: str,
        record: FlashcardRecord,
        time_spent_ms: int | None = None,
    ) -> int:
        """
        Append the outcome of a review to the log.

        Returns:
            Review log row ID
        """
        with self._write_lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO review_log (
                    learner_id, item_id, reviewed_at_ms, rating,
                    interval_days, ease_factor, time_spent_ms
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    learner_id,
                    record.item_id,
                    record.last_reviewed_at_ms,
                    int(record.last_rating),
                    record.interval_days,
                    record.ease_factor,
                    time_spent_ms,
                ),
            )
            self.conn.commit()
            return cursor.lastrowid

    def get_review_history(
        self, learner_id: str, item_id: str, limit: int = 10
    ) -> list[ReviewLogRecord]:
        """Review history for one item, most recent first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM review_log
            WHERE learner_id = ? AND item_id = ?
            ORDER BY reviewed_at_ms DESC, id DESC
            LIMIT ?
        """,
            (learner_id, item_id, limit),
        )

        return [
            ReviewLogRecord(
                id=row["id"],
                learner_id=row["learner_id"],
                item_id=row["item_id"],
                reviewed_at_ms=row["reviewed_at_ms"],
                rating=row["rating"],
                interval_days=row["interval_days"],
                ease_factor=row["ease_factor"],
                time_spent_ms=row["time_spent_ms"],
            )
            for row in cursor.fetchall()
        ]

    # =========================================================================
    # Learner Profile Operations
    # =========================================================================

    def get_learner_profile(self, learner_id: str) -> LearnerProfile | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM learner_profiles WHERE learner_id = ?", (learner_id,))
        row = cursor.fetchone()
        if row is None:
            return None
        return LearnerProfile(
            topic_mastery=json.loads(row["topic_mastery"]),
            updated_at=row["updated_at_ms"],
        )

    def save_learner_profile(self, learner_id: str, profile: LearnerProfile) -> None:
        with self._write_lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO learner_profiles (learner_id, topic_mastery, updated_at_ms)
                VALUES (?, ?, ?)
                ON CONFLICT(learner_id) DO UPDATE SET
                    topic_mastery = excluded.topic_mastery,
                    updated_at_ms = excluded.updated_at_ms
            """,
                (learner_id, json.dumps(dict(profile.topic_mastery)), profile.updated_at),
            )
            self.conn.commit()

    # =========================================================================
    # Violation Log Operations
    # =========================================================================

    def record_violation(
        self,
        learner_id: str,
        assessment_id: str,
        attempt_id: str,
        event: ViolationEvent,
        severity: str,
    ) -> int:
        with self._write_lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO violations (
                    learner_id, assessment_id, attempt_id, event_type,
                    severity, timestamp_ms, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    learner_id,
                    assessment_id,
                    attempt_id,
                    event.type.value,
                    severity,
                    event.timestamp_ms,
                    json.dumps(dict(event.metadata), default=str),
                ),
            )
            self.conn.commit()
            return cursor.lastrowid

    def list_violations(
        self, attempt_id: str, event_type: EventType | str | None = None
    ) -> list[ViolationRecord]:
        """Violations of one attempt in recording order."""
        query = "SELECT * FROM violations WHERE attempt_id = ?"
        params: list[Any] = [attempt_id]
        if event_type is not None:
            query += " AND event_type = ?"
            params.append(EventType(event_type).value)
        query += " ORDER BY id ASC"

        cursor = self.conn.cursor()
        cursor.execute(query, params)
        return [
            ViolationRecord(
                id=row["id"],
                learner_id=row["learner_id"],
                assessment_id=row["assessment_id"],
                attempt_id=row["attempt_id"],
                event_type=row["event_type"],
                severity=row["severity"],
                timestamp_ms=row["timestamp_ms"],
                metadata=json.loads(row["metadata"] or "{}"),
            )
            for row in cursor.fetchall()
        ]
