"""
Attempt scoring with optional negative marking.

Each correct answer is worth one mark. With negative marking enabled the
penalty is wrong x per_wrong + skipped x per_skipped; the final score may go
below zero.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from assessment_core.core.models import Question
from assessment_core.rules.types import NegativeMarking


@dataclass(frozen=True)
class ScoreBreakdown:
    total: int
    correct: int
    wrong: int
    skipped: int
    raw_score: float
    penalty: float
    final_score: float

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return round(100.0 * self.final_score / self.total, 2)


def score_attempt(
    questions: Sequence[Question],
    answers: Mapping[str, str | None],
    negative_marking: NegativeMarking | None = None,
) -> ScoreBreakdown:
    """
    Score one attempt.

    Args:
        questions: Questions delivered in the attempt
        answers: Selected option per question id; missing or None is a skip
        negative_marking: Penalty settings (no penalty if None or disabled)
    """
    correct = wrong = skipped = 0
    for question in questions:
        selected = answers.get(question.id)
        if selected is None or selected == "":
            skipped += 1
        elif selected == question.correct_answer:
            correct += 1
        else:
            wrong += 1

    penalty = 0.0
    if negative_marking is not None and negative_marking.enabled:
        penalty = wrong * negative_marking.per_wrong + skipped * negative_marking.per_skipped

    raw = float(correct)
    return ScoreBreakdown(
        total=len(questions),
        correct=correct,
        wrong=wrong,
        skipped=skipped,
        raw_score=raw,
        penalty=round(penalty, 4),
        final_score=round(raw - penalty, 4),
    )
