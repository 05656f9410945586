"""
Review persistence around the pure scheduler.

The scheduler takes the previous record as an argument, so two concurrent
reviews of the same card must be serialized or one update is lost. The
service holds one lock per (learner, item) for the read-schedule-write cycle.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from .scheduler import FlashcardRecord, ReviewRating, SM2Config, next_review_state

if TYPE_CHECKING:
    from assessment_core.state_store import StateStore


@dataclass
class DueItem:
    item_id: str
    record: FlashcardRecord
    days_overdue: int


class ReviewService:
    """
    Records reviews and lists due items for one state store.

    Usage:
        service = ReviewService(StateStore())
        record = service.review("learner-1", "q-42", ReviewRating.GOOD)
    """

    def __init__(self, store: StateStore, config: SM2Config | None = None):
        self.store = store
        self.config = config or SM2Config()
        # (learner, item) -> [lock, holders]; an entry is dropped when its last holder leaves
        self._locks: dict[tuple[str, str], list] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _card_lock(self, learner_id: str, item_id: str) -> Iterator[None]:
        key = (learner_id, item_id)
        with self._locks_guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def review(
        self,
        learner_id: str,
        item_id: str,
        rating: ReviewRating | int | str,
        time_spent_ms: int | None = None,
        now_ms: int | None = None,
    ) -> FlashcardRecord:
        """
        Record one review and persist the next scheduling state.

        Raises:
            InvalidRatingError: If rating is not 0-3; nothing is written
        """
        rating = ReviewRating.parse(rating)
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)

        with self._card_lock(learner_id, item_id):
            prev = self.store.get_flashcard(learner_id, item_id)
            record = next_review_state(prev, rating, now_ms, item_id=item_id, config=self.config)
            self.store.save_flashcard(learner_id, record)
            self.store.log_review(learner_id, record, time_spent_ms)

        logger.debug(
            "Recorded review for {}/{}: rating={}, interval={}d, ease={:.2f}",
            learner_id,
            item_id,
            rating.name,
            record.interval_days,
            record.ease_factor,
        )
        return record

    def due_items(self, learner_id: str, now_ms: int | None = None, limit: int = 100) -> list[DueItem]:
        """Items due at now_ms, most overdue first."""
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        due: list[DueItem] = []
        for item_id in self.store.get_due_item_ids(learner_id, now_ms, limit=limit):
            record = self.store.get_flashcard(learner_id, item_id)
            if record is not None:
                due.append(DueItem(item_id, record, record.days_overdue(now_ms)))
        return due
