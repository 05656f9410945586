"""
Unit tests for the SQLite state store and the review service on top of it.
"""

import threading

import pytest

from assessment_core.core.models import LearnerProfile
from assessment_core.integrity.events import EventType, ViolationEvent
from assessment_core.integrity.sinks import StoreViolationSink
from assessment_core.review.scheduler import (
    MS_PER_DAY,
    InvalidRatingError,
    ReviewRating,
    next_review_state,
)
from assessment_core.review.service import ReviewService
from assessment_core.rules.types import Severity, ViolationSeverityMap
from assessment_core.state_store import StateStore

NOW = 1_700_000_000_000


@pytest.fixture
def store(tmp_path):
    store = StateStore(tmp_path / "nested" / "state.db")
    yield store
    store.close()


@pytest.fixture
def service(store):
    return ReviewService(store)


class TestFlashcards:

    def test_missing_card_is_none(self, store):
        assert store.get_flashcard("u1", "q1") is None

    def test_save_and_load(self, store):
        record = next_review_state(None, ReviewRating.GOOD, NOW, item_id="q1")
        store.save_flashcard("u1", record)

        assert store.get_flashcard("u1", "q1") == record
        assert store.get_flashcard("u2", "q1") is None

    def test_upsert(self, store):
        first = next_review_state(None, ReviewRating.GOOD, NOW, item_id="q1")
        second = next_review_state(first, ReviewRating.EASY, NOW)
        store.save_flashcard("u1", first)
        store.save_flashcard("u1", second)

        assert store.get_flashcard("u1", "q1").interval_days == 6

    def test_due_items_most_overdue_first(self, store):
        for item_id, offset_days in [("late", -3), ("later", -10), ("future", 5)]:
            record = next_review_state(None, ReviewRating.AGAIN, NOW + offset_days * MS_PER_DAY, item_id=item_id)
            store.save_flashcard("u1", record)

        assert store.get_due_item_ids("u1", NOW) == ["later", "late"]
        assert store.count_due_items("u1", NOW) == 2
        assert store.get_due_item_ids("u1", NOW, limit=1) == ["later"]

    def test_in_memory_store(self):
        with StateStore(":memory:") as store:
            record = next_review_state(None, 1, NOW, item_id="q1")
            store.save_flashcard("u1", record)
            assert store.get_flashcard("u1", "q1") == record


class TestLearnerProfiles:

    def test_round_trip(self, store):
        profile = LearnerProfile(topic_mastery={"algebra": 0.35, "geometry": 0.8}, updated_at=NOW)
        store.save_learner_profile("u1", profile)

        loaded = store.get_learner_profile("u1")

        assert loaded.topic_mastery == {"algebra": 0.35, "geometry": 0.8}
        assert loaded.updated_at == NOW

    def test_missing_profile(self, store):
        assert store.get_learner_profile("nobody") is None


class TestViolationLog:

    def test_store_sink_records_severity(self, store):
        sink = StoreViolationSink(
            store, "u1", "exam-1", "attempt-1", ViolationSeverityMap(tab_switch=Severity.HIGH)
        )

        sink(ViolationEvent(EventType.TAB_HIDDEN, NOW))
        sink(ViolationEvent(EventType.WINDOW_BLUR, NOW + 1))
        sink(ViolationEvent(EventType.NETWORK_CHANGE, NOW + 2, {"online": False}))

        records = store.list_violations("attempt-1")
        assert [r.event_type for r in records] == ["TAB_HIDDEN", "WINDOW_BLUR", "NETWORK_CHANGE"]
        assert [r.severity for r in records] == ["high", "low", "low"]
        assert records[2].metadata == {"online": False}

    def test_filter_by_type(self, store):
        sink = StoreViolationSink(store, "u1", "exam-1", "attempt-1")
        sink(ViolationEvent(EventType.TAB_HIDDEN, NOW))
        sink(ViolationEvent(EventType.PASTE_ATTEMPT, NOW))

        records = store.list_violations("attempt-1", EventType.PASTE_ATTEMPT)

        assert len(records) == 1
        assert records[0].severity == "medium"


class TestReviewService:

    def test_first_review_creates_card(self, service, store):
        record = service.review("u1", "q1", ReviewRating.GOOD, time_spent_ms=4200, now_ms=NOW)

        assert record.interval_days == 1
        assert store.get_flashcard("u1", "q1") == record
        history = store.get_review_history("u1", "q1")
        assert len(history) == 1
        assert history[0].time_spent_ms == 4200
        assert history[0].rating == 2

    def test_reviews_build_on_previous_state(self, service):
        service.review("u1", "q1", "good", now_ms=NOW)
        second = service.review("u1", "q1", "good", now_ms=NOW + MS_PER_DAY)
        third = service.review("u1", "q1", "good", now_ms=NOW + 7 * MS_PER_DAY)

        assert (second.interval_days, third.interval_days) == (6, 15)
        assert third.total_reviews == 3

    def test_invalid_rating_writes_nothing(self, service, store):
        with pytest.raises(InvalidRatingError):
            service.review("u1", "q1", 7, now_ms=NOW)

        assert store.get_flashcard("u1", "q1") is None
        assert store.get_review_history("u1", "q1") == []

    def test_due_items(self, service):
        service.review("u1", "q1", ReviewRating.AGAIN, now_ms=NOW)
        service.review("u1", "q2", ReviewRating.EASY, now_ms=NOW)

        due = service.due_items("u1", now_ms=NOW + 2 * MS_PER_DAY)

        assert [d.item_id for d in due] == ["q1", "q2"]
        assert due[0].days_overdue == 2
        assert due[1].days_overdue == 1
        assert service.due_items("u1", now_ms=NOW - 1) == []

    def test_concurrent_reviews_are_not_lost(self, service, store):
        threads = [
            threading.Thread(target=service.review, args=("u1", "q1", ReviewRating.GOOD), kwargs={"now_ms": NOW})
            for _ in range(10)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert store.get_flashcard("u1", "q1").total_reviews == 10
        assert len(store.get_review_history("u1", "q1", limit=50)) == 10
        assert service._locks == {}

    def test_card_locks_released_after_review(self, service):
        for i in range(25):
            service.review("u1", f"q{i}", ReviewRating.GOOD, now_ms=NOW)

        assert service._locks == {}

    def test_card_lock_released_when_rating_invalid(self, service, store):
        store.save_flashcard("u1", next_review_state(None, 2, NOW, item_id="q1"))

        with pytest.raises(InvalidRatingError):
            service.review("u1", "q1", "great", now_ms=NOW)
        service.review("u1", "q1", "good", now_ms=NOW)

        assert service._locks == {}
