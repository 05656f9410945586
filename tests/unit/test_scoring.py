"""
Unit tests for attempt scoring.
"""

import pytest

from assessment_core.core.models import Question
from assessment_core.rules.types import NegativeMarking
from assessment_core.scoring import score_attempt


@pytest.fixture
def questions():
    return [Question(id=f"q{i}", options=("a", "b"), correct_answer="a") for i in range(5)]


def test_plain_scoring(questions):
    answers = {"q0": "a", "q1": "a", "q2": "b", "q3": None}

    result = score_attempt(questions, answers)

    assert (result.correct, result.wrong, result.skipped) == (2, 1, 2)
    assert result.penalty == 0.0
    assert result.final_score == 2.0
    assert result.percentage == 40.0


def test_negative_marking_disabled_by_default(questions):
    result = score_attempt(questions, {"q0": "b"}, NegativeMarking())
    assert result.penalty == 0.0


def test_negative_marking(questions):
    marking = NegativeMarking(enabled=True, per_wrong=0.25, per_skipped=0.1)
    answers = {"q0": "a", "q1": "b", "q2": "b", "q3": ""}

    result = score_attempt(questions, answers, marking)

    # 2 wrong, 2 skipped (q3 empty, q4 missing)
    assert result.penalty == pytest.approx(0.7)
    assert result.final_score == pytest.approx(0.3)


def test_score_can_go_negative(questions):
    marking = NegativeMarking(enabled=True, per_wrong=1.0)

    result = score_attempt(questions, {q.id: "b" for q in questions}, marking)

    assert result.final_score == -5.0


def test_empty_attempt():
    result = score_attempt([], {})
    assert result.total == 0
    assert result.percentage == 0.0
