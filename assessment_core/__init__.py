"""
Adaptive Assessment Core.

Four cooperating policy engines for exam delivery:

1. Rule Resolver - tiered policy merge with non-overridable hard constraints
2. Adaptive Selection Engine - difficulty-mix and mastery-weighted sampling
3. Integrity Monitor - proctoring state machine with threshold escalation
4. Review Scheduler - SM-2 spaced repetition on a four-point rating
"""

from assessment_core.core import LearnerProfile, Question
from assessment_core.integrity import IntegrityMonitor, ProctoredAttempt
from assessment_core.review import FlashcardRecord, ReviewRating, next_review_state
from assessment_core.rules import QuizControls, RuleResolver, SelectionRules
from assessment_core.scoring import ScoreBreakdown, score_attempt
from assessment_core.selection import select_questions

__version__ = "1.0.0"

__all__ = [
    "Question",
    "LearnerProfile",
    "RuleResolver",
    "SelectionRules",
    "QuizControls",
    "select_questions",
    "IntegrityMonitor",
    "ProctoredAttempt",
    "FlashcardRecord",
    "ReviewRating",
    "next_review_state",
    "score_attempt",
    "ScoreBreakdown",
]
