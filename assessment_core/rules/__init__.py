"""
Rule Resolver.

Merges platform defaults, the global policy and per-assessment overrides
into one effective SelectionRules and one QuizControls.
"""

from assessment_core.rules.config_store import (
    ConfigStore,
    ConfigStoreError,
    HttpConfigStore,
    JsonDirectoryConfigStore,
    MemoryConfigStore,
)
from assessment_core.rules.policy_reader import PolicyReader, TTLCache
from assessment_core.rules.resolver import RuleResolver, merge_tiers
from assessment_core.rules.types import (
    DEFAULT_QUIZ_CONTROLS,
    DEFAULT_SELECTION_RULES,
    AdaptiveRules,
    DifficultyMix,
    DifficultyTarget,
    NegativeMarking,
    ProctoringConfig,
    QuizControls,
    SelectionRules,
    Severity,
    ThresholdAction,
)

__all__ = [
    # Stores
    "ConfigStore",
    "ConfigStoreError",
    "MemoryConfigStore",
    "JsonDirectoryConfigStore",
    "HttpConfigStore",
    # Caching
    "PolicyReader",
    "TTLCache",
    # Resolution
    "RuleResolver",
    "merge_tiers",
    # Policy types
    "SelectionRules",
    "QuizControls",
    "ProctoringConfig",
    "DifficultyMix",
    "NegativeMarking",
    "AdaptiveRules",
    "DifficultyTarget",
    "ThresholdAction",
    "Severity",
    "DEFAULT_SELECTION_RULES",
    "DEFAULT_QUIZ_CONTROLS",
]
