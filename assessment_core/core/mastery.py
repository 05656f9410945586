"""
Core Mastery Module.

Keeps the per-topic mastery snapshot that adaptive selection reads, and the
weak-topic ranking shown to learners after graded attempts.

Design:
- MasteryLevel: Enum for categorizing mastery scores
- GradedItem: One graded question from a finished attempt
- update_topic_mastery: Incremental profile update after grading
- compute_weak_topics: Weakness ranking from behavioral data
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from .models import LearnerProfile, Question

BASE_MASTERY = 0.2
CORRECT_BASE_BOOST = 0.05
CONFIDENCE_BOOST = 0.033  # per confidence step, max ~0.15 at "sure"
WRONG_PENALTY = 0.1

# Weak-topic scoring weights
ACCURACY_WEIGHT = 0.6
TIME_WEIGHT = 0.2
CONFIDENCE_WEIGHT = 0.2
SLOW_ANSWER_SECONDS = 90.0  # considered "struggling" for a standard MCQ


class MasteryLevel(str, Enum):
    """
    Mastery level categorization.

    Aligned with learning science research on skill acquisition stages.
    """

    NOT_STARTED = "not_started"  # 0%
    NOVICE = "novice"  # 1-39%
    DEVELOPING = "developing"  # 40-69%
    PROFICIENT = "proficient"  # 70-89%
    MASTERED = "mastered"  # 90-100%

    @classmethod
    def from_score(cls, score: float) -> MasteryLevel:
        """
        Convert a 0-1 mastery score to a level.

        Args:
            score: Mastery score between 0 and 1

        Returns:
            Corresponding MasteryLevel
        """
        if score <= 0:
            return cls.NOT_STARTED
        elif score < 0.4:
            return cls.NOVICE
        elif score < 0.7:
            return cls.DEVELOPING
        elif score < 0.9:
            return cls.PROFICIENT
        else:
            return cls.MASTERED

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryLevel.NOT_STARTED: "dim",
            MasteryLevel.NOVICE: "red",
            MasteryLevel.DEVELOPING: "yellow",
            MasteryLevel.PROFICIENT: "cyan",
            MasteryLevel.MASTERED: "green",
        }[self]


@dataclass(frozen=True)
class GradedItem:
    """A single graded question from a finished attempt."""

    question_id: str
    is_correct: bool
    topic_id: str | None = None
    selected_option: str | None = None  # None = skipped
    confidence_level: int | None = None  # 0 (low) .. 3 (sure)
    time_spent_seconds: float = 0.0


@dataclass(frozen=True)
class WeakTopic:
    """Aggregated performance for one topic."""

    topic_id: str
    attempted_count: int
    correct_count: int
    accuracy: int  # percent
    avg_time_seconds: int
    low_confidence_rate: int  # percent
    weak_score: float  # 0 (strong) .. 1 (very weak)


def update_topic_mastery(
    profile: LearnerProfile | None,
    items: Iterable[GradedItem],
    now_ms: int,
) -> LearnerProfile:
    """
    Fold a graded attempt into a learner profile.

    The profile is created lazily when `profile` is None. Topics never seen
    before start from BASE_MASTERY; skipped items leave mastery unchanged.

    Args:
        profile: Current profile, or None for a learner's first graded attempt
        items: Graded items of the attempt
        now_ms: Timestamp recorded as the profile's update time

    Returns:
        A new LearnerProfile; the input is never mutated
    """
    mastery = dict(profile.topic_mastery) if profile else {}

    for item in items:
        if not item.topic_id:
            continue

        prev = mastery.get(item.topic_id, BASE_MASTERY)
        delta = 0.0
        if item.is_correct:
            delta = CORRECT_BASE_BOOST + (item.confidence_level or 0) * CONFIDENCE_BOOST
        elif item.selected_option:
            delta = -WRONG_PENALTY

        mastery[item.topic_id] = max(0.0, min(1.0, prev + delta))

    logger.debug("Updated mastery for {} topics", len(mastery))
    return LearnerProfile(topic_mastery=mastery, updated_at=now_ms)


def compute_weak_topics(
    items: Iterable[GradedItem],
    questions: Mapping[str, Question],
    top_n: int = 5,
) -> list[WeakTopic]:
    """
    Rank topics by weakness score.

    Score = (1 - accuracy) * 0.6 + normalized time * 0.2 + low-confidence rate * 0.2,
    where time is normalized against a 90 second "struggling" answer.
    Items whose question is unknown or has no topic are skipped.
    """
    stats: dict[str, dict[str, float]] = {}

    for item in items:
        question = questions.get(item.question_id)
        if question is None or not question.topic_id:
            continue

        s = stats.setdefault(
            question.topic_id,
            {"count": 0, "correct": 0, "time": 0.0, "low_conf": 0},
        )
        s["count"] += 1
        if item.is_correct:
            s["correct"] += 1
        s["time"] += item.time_spent_seconds or 0.0
        # Low confidence is level 0 (low) or 1 (medium)
        if item.confidence_level is not None and item.confidence_level <= 1:
            s["low_conf"] += 1

    results = []
    for topic_id, s in stats.items():
        accuracy = s["correct"] / s["count"]
        avg_time = s["time"] / s["count"]
        low_conf_rate = s["low_conf"] / s["count"]
        normalized_time = min(1.0, avg_time / SLOW_ANSWER_SECONDS)

        weak_score = (
            (1 - accuracy) * ACCURACY_WEIGHT
            + normalized_time * TIME_WEIGHT
            + low_conf_rate * CONFIDENCE_WEIGHT
        )
        results.append(
            WeakTopic(
                topic_id=topic_id,
                attempted_count=int(s["count"]),
                correct_count=int(s["correct"]),
                accuracy=round(accuracy * 100),
                avg_time_seconds=round(avg_time),
                low_confidence_rate=round(low_conf_rate * 100),
                weak_score=weak_score,
            )
        )

    results.sort(key=lambda t: t.weak_score, reverse=True)
    return results[:top_n]
