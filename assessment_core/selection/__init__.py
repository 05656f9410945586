"""
Adaptive Selection Engine.

Pure, synchronous question sampling under difficulty-mix, repeat-avoidance
and mastery-weighted constraints.
"""

from assessment_core.selection.engine import (
    BucketTargets,
    create_seed,
    effective_difficulty_mix,
    filter_pool,
    plan_bucket_targets,
    select_questions,
)

__all__ = [
    "BucketTargets",
    "create_seed",
    "effective_difficulty_mix",
    "filter_pool",
    "plan_bucket_targets",
    "select_questions",
]
