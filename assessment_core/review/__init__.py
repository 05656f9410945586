"""
Review Scheduler.

SM-2 variant on a four-point recall scale, plus the service that persists
its results.
"""

from assessment_core.review.scheduler import (
    MS_PER_DAY,
    FlashcardRecord,
    InvalidRatingError,
    ReviewRating,
    SM2Config,
    next_review_state,
)
from assessment_core.review.service import DueItem, ReviewService

__all__ = [
    "MS_PER_DAY",
    "FlashcardRecord",
    "InvalidRatingError",
    "ReviewRating",
    "SM2Config",
    "next_review_state",
    "ReviewService",
    "DueItem",
]
