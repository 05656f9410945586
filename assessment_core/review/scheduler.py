"""
SM-2 Spaced Repetition Scheduler.

Four-point recall scale:
0 - Again: forgotten, the card restarts
1 - Hard: recalled with serious difficulty
2 - Good: recalled after some hesitation
3 - Easy: perfect recall

The scheduler is a pure function of (previous record, rating, now). Reading
the previous record and writing the result back is the caller's job, see
ReviewService.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any

MS_PER_DAY = 24 * 60 * 60 * 1000


class InvalidRatingError(ValueError):
    """A rating outside 0..3; never clamped."""


class ReviewRating(IntEnum):
    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3

    @classmethod
    def parse(cls, value: Any) -> ReviewRating:
        """
        Validate a rating at the boundary.

        Accepts ints 0-3 (and ReviewRating members) or their names
        ("again", "Hard"). Booleans, floats and out-of-range values raise.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            if name.isdigit():
                value = int(name)
            else:
                raise InvalidRatingError(f"Unknown rating: {value!r}")
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidRatingError(f"Rating must be an integer 0-3, got {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise InvalidRatingError(f"Rating must be between 0 and 3, got {value}") from None


# =============================================================================
# Card State
# =============================================================================


@dataclass(frozen=True)
class SM2Config:
    """Configuration for the SM-2 variant."""

    initial_ease: float = 2.5
    minimum_ease: float = 1.3
    again_penalty: float = 0.2
    first_interval: int = 1  # Days after the first success
    second_interval: int = 6  # Days after the second success
    maximum_interval: int = 365


@dataclass(frozen=True)
class FlashcardRecord:
    """Scheduling state of one item for one learner."""

    item_id: str
    due_at_ms: int
    interval_days: int
    ease_factor: float
    last_reviewed_at_ms: int
    last_rating: ReviewRating
    total_reviews: int

    def is_due(self, now_ms: int) -> bool:
        return now_ms >= self.due_at_ms

    def days_overdue(self, now_ms: int) -> int:
        return max(0, (now_ms - self.due_at_ms) // MS_PER_DAY)

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "dueAt": self.due_at_ms,
            "intervalDays": self.interval_days,
            "easeFactor": self.ease_factor,
            "lastReviewedAt": self.last_reviewed_at_ms,
            "lastRating": int(self.last_rating),
            "totalReviews": self.total_reviews,
        }


# =============================================================================
# SM-2 Algorithm
# =============================================================================


def _next_interval(interval_days: int, ease_factor: float, config: SM2Config) -> int:
    if interval_days == 0:
        return config.first_interval
    if interval_days == config.first_interval:
        return config.second_interval
    return math.ceil(interval_days * ease_factor)


def next_review_state(
    prev: FlashcardRecord | None,
    rating: ReviewRating | int,
    now_ms: int,
    item_id: str | None = None,
    config: SM2Config | None = None,
) -> FlashcardRecord:
    """
    Calculate the next review state of a card.

    Args:
        prev: Current record, or None for a card never reviewed
        rating: Recall rating 0-3
        now_ms: Review time in epoch milliseconds
        item_id: Item id for a new card (ignored when prev is given)
        config: Custom configuration (uses defaults if None)

    Returns:
        New FlashcardRecord; prev is left untouched

    Raises:
        InvalidRatingError: If rating is not an integer in 0..3
    """
    rating = ReviewRating.parse(rating)
    config = config or SM2Config()

    if prev is None:
        prev = FlashcardRecord(
            item_id=item_id or "",
            due_at_ms=now_ms,
            interval_days=0,
            ease_factor=config.initial_ease,
            last_reviewed_at_ms=now_ms,
            last_rating=ReviewRating.AGAIN,
            total_reviews=0,
        )

    ease = prev.ease_factor
    if rating == ReviewRating.AGAIN:
        # Forgotten - restart the card
        interval = 0
        ease = max(config.minimum_ease, ease - config.again_penalty)
    else:
        # Interval grows with the ease factor held before this review
        interval = _next_interval(prev.interval_days, ease, config)

        # EF' = EF + (0.1 - (3 - q) * (0.08 + (3 - q) * 0.02))
        miss = 3 - int(rating)
        ease = max(config.minimum_ease, ease + (0.1 - miss * (0.08 + miss * 0.02)))

    interval = min(interval, config.maximum_interval)

    return replace(
        prev,
        due_at_ms=now_ms + interval * MS_PER_DAY,
        interval_days=interval,
        ease_factor=ease,
        last_reviewed_at_ms=now_ms,
        last_rating=rating,
        total_reviews=prev.total_reviews + 1,
    )
