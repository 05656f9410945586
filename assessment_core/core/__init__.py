"""
Core Module - Shared domain models.

Components:
- models: Question, Difficulty, LearnerProfile
- mastery: Topic mastery bookkeeping and weak-topic ranking
"""

from assessment_core.core.mastery import (
    GradedItem,
    MasteryLevel,
    WeakTopic,
    compute_weak_topics,
    update_topic_mastery,
)
from assessment_core.core.models import Difficulty, LearnerProfile, Question

__all__ = [
    "Difficulty",
    "Question",
    "LearnerProfile",
    "GradedItem",
    "MasteryLevel",
    "WeakTopic",
    "compute_weak_topics",
    "update_topic_mastery",
]
