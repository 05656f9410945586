"""
Adaptive Question Selection.

Samples a question set from a larger pool under:
- Hard filters (published only, not archived, repeat avoidance)
- A difficulty mix, optionally shifted by the adaptive difficulty target
- Mastery-weighted scoring that favors a learner's weak topics

The engine is pure: no I/O, no shared state. Given a seeded RNG the result
is deterministic. An under-sized pool never raises; callers compare
len(result) with the requested count themselves.
"""

from __future__ import annotations

import hashlib
import math
import random
from collections.abc import Collection, Iterable
from dataclasses import dataclass

from loguru import logger

from assessment_core.core.models import Difficulty, LearnerProfile, Question
from assessment_core.rules.types import DifficultyMix, DifficultyTarget, SelectionRules

DEFAULT_TOPIC_MASTERY = 0.2
MAX_ADAPTIVE_SHIFT = 10  # percentage points moved from each donor bucket


@dataclass(frozen=True)
class BucketTargets:
    """How many questions to draw from each difficulty bucket."""

    easy: int
    medium: int
    hard: int

    @property
    def total(self) -> int:
        return self.easy + self.medium + self.hard


def create_seed(seed: str | int) -> int:
    """Create a reproducible integer seed from string or int."""
    if isinstance(seed, int):
        return seed

    # Hash string to create seed
    hash_bytes = hashlib.sha256(str(seed).encode()).digest()
    return int.from_bytes(hash_bytes[:8], byteorder="big")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def effective_difficulty_mix(rules: SelectionRules, adaptive_active: bool) -> DifficultyMix:
    """
    Apply the adaptive difficulty target to the configured mix.

    remedial moves up to 10 points each from hard and medium into easy;
    stretch moves up to 10 points each from easy and medium into hard.
    """
    mix = rules.difficulty_mix
    if not adaptive_active or rules.adaptive is None:
        return mix

    easy, medium, hard = mix.easy, mix.medium, mix.hard
    target = rules.adaptive.difficulty_target

    if target == DifficultyTarget.REMEDIAL:
        shift_h = min(hard, MAX_ADAPTIVE_SHIFT)
        shift_m = min(medium, MAX_ADAPTIVE_SHIFT)
        easy += shift_h + shift_m
        hard -= shift_h
        medium -= shift_m
    elif target == DifficultyTarget.STRETCH:
        shift_e = min(easy, MAX_ADAPTIVE_SHIFT)
        shift_m = min(medium, MAX_ADAPTIVE_SHIFT)
        hard += shift_e + shift_m
        easy -= shift_e
        medium -= shift_m

    return DifficultyMix.model_construct(easy=easy, medium=medium, hard=hard)


def plan_bucket_targets(mix: DifficultyMix, count: int) -> BucketTargets:
    """
    Convert mix percentages into per-bucket draw counts.

    Easy and medium are rounded half-up; hard takes whatever remains so the
    targets sum to exactly `count` (never more, even if the mix overshoots 100).
    """
    count = max(0, count)
    easy = min(count, _round_half_up(mix.easy / 100 * count))
    medium = min(count - easy, _round_half_up(mix.medium / 100 * count))
    hard = count - easy - medium
    return BucketTargets(easy=easy, medium=medium, hard=hard)


def filter_pool(
    pool: Iterable[Question],
    rules: SelectionRules,
    avoid_ids: Collection[str] = (),
) -> list[Question]:
    """Drop unpublished, archived and recently seen questions per the rules."""
    avoid = set(avoid_ids) if rules.avoid_repeats else set()
    result = []
    for q in pool:
        if rules.force_published_only and not q.is_published:
            continue
        if rules.exclude_archived and q.is_archived:
            continue
        if q.id in avoid:
            continue
        result.append(q)
    return result


class _Scorer:
    """Per-question selection score: weak topics first, blended with noise."""

    def __init__(
        self,
        rules: SelectionRules,
        mastery: LearnerProfile | None,
        rng: random.Random,
        default_mastery: float,
    ):
        self.rng = rng
        self.mastery = mastery
        self.default_mastery = default_mastery
        self.adaptive = rules.adaptive_enabled and mastery is not None
        if self.adaptive:
            self.intensity = rules.adaptive.intensity / 100
            self.bias = rules.adaptive.weak_topic_bias / 100

    def __call__(self, question: Question) -> float:
        if not self.adaptive:
            return self.rng.random()

        mastery = self.mastery.mastery_for(question.topic_id, self.default_mastery)
        mastery_weight = (1 - mastery) * self.bias
        noise = self.rng.random()
        return self.intensity * mastery_weight + (1 - self.intensity) * noise


def _take_top(bucket: list[Question], target: int, scorer: _Scorer) -> list[Question]:
    if target <= 0:
        return []
    scored = [(scorer(q), q) for q in bucket]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [q for _, q in scored[:target]]


def select_questions(
    pool: Iterable[Question],
    rules: SelectionRules,
    count: int,
    avoid_ids: Collection[str] = (),
    mastery: LearnerProfile | None = None,
    rng: random.Random | None = None,
    seed: str | int | None = None,
    default_mastery: float = DEFAULT_TOPIC_MASTERY,
) -> list[Question]:
    """
    Select up to `count` questions from a pool.

    Args:
        pool: Candidate questions
        rules: Effective selection rules
        count: Requested number of questions
        avoid_ids: Recently seen question IDs (honored when rules.avoid_repeats)
        mastery: Learner mastery snapshot; adaptive scoring needs it
        rng: Random source; takes precedence over `seed`
        seed: Reproducible seed (e.g. learner_id + attempt number)
        default_mastery: Mastery assumed for topics without a record

    Returns:
        At most `count` questions; fewer when the pool runs short
    """
    if rng is None:
        rng = random.Random(create_seed(seed)) if seed is not None else random.Random()

    filtered = filter_pool(pool, rules, avoid_ids)

    adaptive_active = rules.adaptive_enabled and mastery is not None
    mix = effective_difficulty_mix(rules, adaptive_active)
    targets = plan_bucket_targets(mix, count)

    easy_pool = [q for q in filtered if q.difficulty == Difficulty.EASY]
    medium_pool = [q for q in filtered if q.difficulty == Difficulty.MEDIUM]
    hard_pool = [
        q for q in filtered if q.difficulty == Difficulty.HARD or q.difficulty is None
    ]

    scorer = _Scorer(rules, mastery, rng, default_mastery)
    selected: list[Question] = []
    selected.extend(_take_top(easy_pool, targets.easy, scorer))
    selected.extend(_take_top(medium_pool, targets.medium, scorer))
    selected.extend(_take_top(hard_pool, targets.hard, scorer))

    if len(selected) < targets.total:
        logger.debug(
            "Pool exhausted: selected {} of {} (easy={}/{}, medium={}/{}, hard={}/{})",
            len(selected),
            targets.total,
            len(easy_pool),
            targets.easy,
            len(medium_pool),
            targets.medium,
            len(hard_pool),
            targets.hard,
        )

    # Final shuffle to avoid difficulty clustering
    if rules.randomize_order:
        rng.shuffle(selected)

    return selected
