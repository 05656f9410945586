"""
Unit tests for tiered policy resolution.
"""

import pytest

from assessment_core.config import Settings
from assessment_core.rules.config_store import (
    ConfigStoreError,
    HttpConfigStore,
    JsonDirectoryConfigStore,
    MemoryConfigStore,
)
from assessment_core.rules.policy_reader import PolicyReader, TTLCache
from assessment_core.rules.resolver import (
    ADMIN_CONFIG_PATH,
    QUIZ_CONTROLS_KEY,
    QUIZ_CONTROLS_OVERRIDES_PATH,
    SELECTION_OVERRIDES_PATH,
    SELECTION_RULES_KEY,
    RuleResolver,
    merge_tiers,
)
from assessment_core.rules.types import DifficultyTarget, ThresholdAction


class FailingStore:
    """Store whose every fetch fails."""

    def __init__(self):
        self.calls = 0

    async def get(self, path, key):
        self.calls += 1
        raise ConfigStoreError("store unavailable")


@pytest.fixture
def store():
    return MemoryConfigStore()


@pytest.fixture
def resolver(store):
    return RuleResolver.from_store(store)


def put_global_rules(store, doc):
    store.put(ADMIN_CONFIG_PATH, SELECTION_RULES_KEY, {"global": doc})


def put_rules_override(store, assessment_id, doc):
    store.put(SELECTION_OVERRIDES_PATH, assessment_id, {"overrides": doc})


class TestMergeTiers:
    """Tests for the one-level-deep merge."""

    def test_scalars_replace(self):
        merged = merge_tiers({"randomizeOrder": True}, {"randomizeOrder": False})
        assert merged["randomizeOrder"] is False

    def test_none_never_overwrites(self):
        merged = merge_tiers(
            {"avoidRepeats": True, "difficultyMix": {"easy": 30}},
            {"avoidRepeats": None, "difficultyMix": {"easy": None}},
        )
        assert merged["avoidRepeats"] is True
        assert merged["difficultyMix"]["easy"] == 30

    def test_objects_merge_key_by_key(self):
        merged = merge_tiers(
            {"difficultyMix": {"easy": 30, "medium": 50, "hard": 20}},
            {"difficultyMix": {"hard": 40}},
        )
        assert merged["difficultyMix"] == {"easy": 30, "medium": 50, "hard": 40}

    def test_arrays_replace_wholesale(self):
        merged = merge_tiers({"sourcePriority": ["hierarchy", "tags", "set"]}, {"sourcePriority": ["set"]})
        assert merged["sourcePriority"] == ["set"]

    def test_later_tier_wins(self):
        merged = merge_tiers({"avoidRepeats": True}, {"avoidRepeats": False}, {"avoidRepeats": True})
        assert merged["avoidRepeats"] is True

    def test_snake_case_keys_are_normalized(self):
        merged = merge_tiers(
            {"difficultyMix": {"easy": 30}},
            {"difficulty_mix": {"easy": 60}, "avoid_repeats": False},
        )
        assert merged["difficultyMix"]["easy"] == 60
        assert merged["avoidRepeats"] is False

    def test_inputs_not_mutated(self):
        base = {"difficultyMix": {"easy": 30}}
        merge_tiers(base, {"difficultyMix": {"easy": 60}})
        assert base == {"difficultyMix": {"easy": 30}}


class TestSelectionRules:
    """Tests for resolve_selection_rules."""

    @pytest.mark.asyncio
    async def test_defaults_without_documents(self, resolver):
        rules = await resolver.resolve_selection_rules()

        assert rules.randomize_order is True
        assert rules.difficulty_mix.easy == 30
        assert rules.difficulty_mix.medium == 50
        assert rules.difficulty_mix.hard == 20
        assert rules.negative_marking.per_wrong == 0.25
        assert rules.adaptive_enabled is False

    @pytest.mark.asyncio
    async def test_global_then_override(self, store, resolver):
        put_global_rules(store, {"difficultyMix": {"easy": 50, "medium": 30}, "avoidRepeats": False})
        put_rules_override(store, "exam-1", {"difficultyMix": {"hard": 40}})

        global_rules = await resolver.resolve_selection_rules()
        exam_rules = await resolver.resolve_selection_rules("exam-1")

        assert global_rules.difficulty_mix.easy == 50
        assert global_rules.difficulty_mix.hard == 20
        assert exam_rules.difficulty_mix.easy == 50
        assert exam_rules.difficulty_mix.medium == 30
        assert exam_rules.difficulty_mix.hard == 40
        assert exam_rules.avoid_repeats is False

    @pytest.mark.asyncio
    async def test_override_for_other_assessment_ignored(self, store, resolver):
        put_rules_override(store, "exam-2", {"randomizeOrder": False})

        rules = await resolver.resolve_selection_rules("exam-1")

        assert rules.randomize_order is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "global_doc,override_doc",
        [
            ({"forcePublishedOnly": False}, {}),
            ({}, {"excludeArchived": False}),
            ({"forcePublishedOnly": False, "excludeArchived": False}, {"forcePublishedOnly": False}),
            ({"force_published_only": False}, {"exclude_archived": False}),
        ],
    )
    async def test_hard_constraints_survive_any_override(self, store, resolver, global_doc, override_doc):
        put_global_rules(store, global_doc)
        put_rules_override(store, "exam-1", override_doc)

        rules = await resolver.resolve_selection_rules("exam-1")

        assert rules.force_published_only is True
        assert rules.exclude_archived is True

    @pytest.mark.asyncio
    async def test_adaptive_section_parsed(self, store, resolver):
        put_global_rules(
            store,
            {"adaptive": {"enabled": True, "intensity": 80, "difficultyTarget": "stretch"}},
        )

        rules = await resolver.resolve_selection_rules()

        assert rules.adaptive_enabled is True
        assert rules.adaptive.intensity == 80
        assert rules.adaptive.weak_topic_bias == 50
        assert rules.adaptive.difficulty_target == DifficultyTarget.STRETCH

    @pytest.mark.asyncio
    async def test_invalid_override_falls_back_to_global(self, store, resolver):
        put_global_rules(store, {"avoidRepeats": False})
        put_rules_override(store, "exam-1", {"difficultyMix": {"easy": "lots"}})

        rules = await resolver.resolve_selection_rules("exam-1")

        assert rules.avoid_repeats is False
        assert rules.difficulty_mix.easy == 30

    @pytest.mark.asyncio
    async def test_non_object_tier_ignored(self, store, resolver):
        store.put(ADMIN_CONFIG_PATH, SELECTION_RULES_KEY, {"global": "nope"})

        rules = await resolver.resolve_selection_rules()

        assert rules.randomize_order is True

    @pytest.mark.asyncio
    async def test_rules_are_frozen(self, resolver):
        rules = await resolver.resolve_selection_rules()

        with pytest.raises(Exception):
            rules.avoid_repeats = False


class TestQuizControls:
    """Tests for resolve_quiz_controls."""

    @pytest.mark.asyncio
    async def test_defaults(self, resolver):
        controls = await resolver.resolve_quiz_controls()

        assert controls.default_time_limit_minutes == 60
        assert controls.proctoring.enabled is False
        assert controls.proctoring.violation_threshold == 10
        assert controls.proctoring.action_on_threshold == ThresholdAction.WARN

    @pytest.mark.asyncio
    async def test_proctoring_merges_one_level(self, store, resolver):
        store.put(
            ADMIN_CONFIG_PATH,
            QUIZ_CONTROLS_KEY,
            {"global": {"proctoring": {"enabled": True, "violationThreshold": 5}}},
        )
        store.put(
            QUIZ_CONTROLS_OVERRIDES_PATH,
            "exam-1",
            {"overrides": {"proctoring": {"actionOnThreshold": "autosubmit"}}},
        )

        controls = await resolver.resolve_quiz_controls("exam-1")

        assert controls.proctoring.enabled is True
        assert controls.proctoring.violation_threshold == 5
        assert controls.proctoring.action_on_threshold == ThresholdAction.AUTOSUBMIT

    @pytest.mark.asyncio
    async def test_negative_time_limit_clamped(self, store, resolver):
        store.put(ADMIN_CONFIG_PATH, QUIZ_CONTROLS_KEY, {"global": {"defaultTimeLimitMinutes": -15}})

        controls = await resolver.resolve_quiz_controls()

        assert controls.default_time_limit_minutes == 0

    @pytest.mark.asyncio
    async def test_unknown_threshold_action_rejected_at_merge(self, store, resolver):
        store.put(
            ADMIN_CONFIG_PATH,
            QUIZ_CONTROLS_KEY,
            {"global": {"proctoring": {"enabled": True, "actionOnThreshold": "explode"}}},
        )

        controls = await resolver.resolve_quiz_controls()

        # The whole global tier is discarded
        assert controls.proctoring.enabled is False
        assert controls.proctoring.action_on_threshold == ThresholdAction.WARN


class TestFailOpen:
    """Store failures fall back to the next tier."""

    @pytest.mark.asyncio
    async def test_failing_store_yields_defaults(self):
        store = FailingStore()
        resolver = RuleResolver.from_store(store)

        rules = await resolver.resolve_selection_rules("exam-1")
        controls = await resolver.resolve_quiz_controls("exam-1")

        assert rules.difficulty_mix.easy == 30
        assert rules.force_published_only is True
        assert controls.default_time_limit_minutes == 60
        assert store.calls == 4

    @pytest.mark.asyncio
    async def test_failing_override_keeps_global(self, store):
        class OverrideFails:
            async def get(self, path, key):
                if path == SELECTION_OVERRIDES_PATH:
                    raise ConfigStoreError("timeout")
                return await store.get(path, key)

        put_global_rules(store, {"randomizeOrder": False})
        resolver = RuleResolver.from_store(OverrideFails())

        rules = await resolver.resolve_selection_rules("exam-1")

        assert rules.randomize_order is False


class TestCaching:
    """Each document fetch is cached for the TTL."""

    @pytest.mark.asyncio
    async def test_fetches_are_cached(self, store, resolver):
        put_global_rules(store, {"randomizeOrder": False})

        await resolver.resolve_selection_rules()
        await resolver.resolve_selection_rules()

        assert store.fetch_count == 1

    @pytest.mark.asyncio
    async def test_refetch_after_ttl(self, store):
        now = [0.0]
        resolver = RuleResolver(PolicyReader(store, TTLCache(ttl_seconds=60, clock=lambda: now[0])))
        put_global_rules(store, {"randomizeOrder": False})

        first = await resolver.resolve_selection_rules()
        put_global_rules(store, {"randomizeOrder": True})
        now[0] = 59.0
        cached = await resolver.resolve_selection_rules()
        now[0] = 61.0
        fresh = await resolver.resolve_selection_rules()

        assert first.randomize_order is False
        assert cached.randomize_order is False
        assert fresh.randomize_order is True
        assert store.fetch_count == 2


class TestFromSettings:
    """Store selection from Settings."""

    def test_prefers_http_store(self, tmp_path):
        settings = Settings(config_store_url="http://config.local", config_dir=tmp_path)
        resolver = RuleResolver.from_settings(settings)
        assert isinstance(resolver.reader.store, HttpConfigStore)

    def test_json_directory_store(self, tmp_path):
        settings = Settings(config_dir=tmp_path)
        resolver = RuleResolver.from_settings(settings)
        assert isinstance(resolver.reader.store, JsonDirectoryConfigStore)

    def test_memory_store_without_configuration(self):
        resolver = RuleResolver.from_settings(Settings())
        assert isinstance(resolver.reader.store, MemoryConfigStore)

    def test_cache_ttl_from_settings(self):
        resolver = RuleResolver.from_settings(Settings(config_cache_ttl_seconds=5))
        assert resolver.reader.cache.ttl_seconds == 5
