"""
Tiered policy resolution.

Effective policy = compiled-in defaults <- global policy <- per-assessment
override. Object-valued fields merge key-by-key one level deep; scalars and
arrays replace wholesale; None never overwrites. Hard constraints are applied
after the merge so no tier can relax them.
"""

from __future__ import annotations

from typing import Any, TypeVar

from loguru import logger
from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from assessment_core.config import Settings

from .config_store import (
    ConfigStore,
    HttpConfigStore,
    JsonDirectoryConfigStore,
    MemoryConfigStore,
)
from .policy_reader import PolicyReader, TTLCache
from .types import (
    DEFAULT_QUIZ_CONTROLS,
    DEFAULT_SELECTION_RULES,
    PolicyModel,
    QuizControls,
    SelectionRules,
)

PolicyT = TypeVar("PolicyT", bound=PolicyModel)

ADMIN_CONFIG_PATH = "adminConfig"
SELECTION_RULES_KEY = "selectionRules"
QUIZ_CONTROLS_KEY = "quizControls"
SELECTION_OVERRIDES_PATH = "adminConfig/selectionRulesOverrides/exams"
QUIZ_CONTROLS_OVERRIDES_PATH = "adminConfig/quizControlsOverrides/exams"


def _document_key(key: str) -> str:
    return to_camel(key) if "_" in key else key


def _normalize(source: dict[str, Any]) -> dict[str, Any]:
    """Map snake_case keys to the stored camelCase form, one level deep."""
    normalized: dict[str, Any] = {}
    for key, value in source.items():
        if isinstance(value, dict):
            value = {_document_key(k): v for k, v in value.items()}
        normalized[_document_key(key)] = value
    return normalized


def merge_tiers(base: dict[str, Any], *sources: dict[str, Any] | None) -> dict[str, Any]:
    """
    Merge policy tiers in priority order (later sources win).

    Args:
        base: Lowest tier, usually the dumped defaults
        sources: Higher tiers; None or empty tiers are skipped

    Returns:
        A new merged dict; inputs are not mutated
    """
    result = _normalize(base)
    for source in sources:
        if not source:
            continue
        for key, value in _normalize(source).items():
            if isinstance(value, dict):
                merged = dict(result.get(key) or {})
                merged.update({k: v for k, v in value.items() if v is not None})
                result[key] = merged
            elif value is not None:
                result[key] = value
    return result


def _extract_tier(document: dict[str, Any] | None, field: str, label: str) -> dict[str, Any] | None:
    if not document:
        return None
    tier = document.get(field)
    if tier is None:
        return None
    if not isinstance(tier, dict):
        logger.warning("Ignoring {} policy tier: '{}' is not an object", label, field)
        return None
    return tier


class RuleResolver:
    """
    Resolves effective SelectionRules and QuizControls per assessment.

    Usage:
        resolver = RuleResolver(PolicyReader(store))
        rules = await resolver.resolve_selection_rules("exam-42")
    """

    def __init__(self, reader: PolicyReader):
        self.reader = reader

    @classmethod
    def from_store(cls, store: ConfigStore, ttl_seconds: float = 60.0) -> RuleResolver:
        return cls(PolicyReader(store, TTLCache(ttl_seconds=ttl_seconds)))

    @classmethod
    def from_settings(cls, settings: Settings) -> RuleResolver:
        """
        Build a resolver over the store named by settings.

        Prefers the HTTP store, then the JSON directory; with neither
        configured every lookup falls through to compiled-in defaults.
        """
        store: ConfigStore
        if settings.config_store_url:
            store = HttpConfigStore(
                settings.config_store_url,
                timeout_seconds=settings.config_store_timeout_seconds,
            )
        elif settings.config_dir:
            store = JsonDirectoryConfigStore(settings.config_dir)
        else:
            logger.info("No configuration store configured - using defaults only")
            store = MemoryConfigStore()
        return cls.from_store(store, ttl_seconds=settings.config_cache_ttl_seconds)

    async def close(self) -> None:
        """Release the store's connections, if it holds any."""
        close = getattr(self.reader.store, "close", None)
        if close is not None:
            await close()

    async def _load_tiers(
        self, global_key: str, overrides_path: str, assessment_id: str | None
    ) -> list[dict[str, Any]]:
        tiers = []

        global_doc = await self.reader.fetch(ADMIN_CONFIG_PATH, global_key)
        global_tier = _extract_tier(global_doc, "global", "global")
        if global_tier:
            tiers.append(global_tier)

        if assessment_id:
            override_doc = await self.reader.fetch(overrides_path, assessment_id)
            override_tier = _extract_tier(override_doc, "overrides", f"override[{assessment_id}]")
            if override_tier:
                tiers.append(override_tier)

        return tiers

    @staticmethod
    def _validate(model: type[PolicyT], defaults: PolicyT, tiers: list[dict[str, Any]]) -> PolicyT:
        """
        Merge and parse; a tier that fails validation is dropped.

        The highest-priority tier is discarded first, so an invalid override
        falls back to the global policy, and an invalid global policy to the
        defaults.
        """
        tiers = list(tiers)
        while True:
            merged = merge_tiers(defaults.to_document(), *tiers)
            try:
                return model.model_validate(merged)
            except ValidationError as e:
                if not tiers:
                    raise
                logger.warning(
                    "Discarding invalid {} policy tier ({} errors): {}",
                    model.__name__,
                    e.error_count(),
                    e.errors()[0]["msg"],
                )
                tiers.pop()

    async def resolve_selection_rules(self, assessment_id: str | None = None) -> SelectionRules:
        """
        Resolve effective selection rules.

        Args:
            assessment_id: Optional assessment whose override tier applies

        Returns:
            Frozen SelectionRules with hard constraints enforced
        """
        tiers = await self._load_tiers(SELECTION_RULES_KEY, SELECTION_OVERRIDES_PATH, assessment_id)
        rules = self._validate(SelectionRules, DEFAULT_SELECTION_RULES, tiers)

        # Hard constraints
        return rules.model_copy(update={"force_published_only": True, "exclude_archived": True})

    async def resolve_quiz_controls(self, assessment_id: str | None = None) -> QuizControls:
        """
        Resolve effective quiz controls.

        Args:
            assessment_id: Optional assessment whose override tier applies

        Returns:
            Frozen QuizControls with the time limit clamped to >= 0
        """
        tiers = await self._load_tiers(QUIZ_CONTROLS_KEY, QUIZ_CONTROLS_OVERRIDES_PATH, assessment_id)
        controls = self._validate(QuizControls, DEFAULT_QUIZ_CONTROLS, tiers)

        return controls.model_copy(
            update={"default_time_limit_minutes": max(0, controls.default_time_limit_minutes)}
        )
