"""
Policy types for question selection and quiz delivery.

Both policies are immutable once resolved. Stored policy documents use
camelCase keys; the models accept either camelCase or snake_case input and
dump camelCase so defaults and stored tiers merge key-for-key.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DifficultyTarget(str, Enum):
    """Direction adaptive mode pushes the difficulty mix."""

    BALANCED = "balanced"
    STRETCH = "stretch"  # Shift toward Hard
    REMEDIAL = "remedial"  # Shift toward Easy


class ThresholdAction(str, Enum):
    """What the session host does once the violation threshold is reached."""

    WARN = "warn"  # Show a notice, session continues
    FLAG = "flag"  # Mark the attempt for review, session continues
    AUTOSUBMIT = "autosubmit"  # Close and submit the attempt immediately


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SourcePriority(str, Enum):
    HIERARCHY = "hierarchy"
    TAGS = "tags"
    SET = "set"


class PolicyModel(BaseModel):
    """Base for frozen policy objects with camelCase document aliases."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> dict:
        """Dump in stored-document form (camelCase keys, enum values)."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# Selection Rules
# =============================================================================


class DifficultyMix(PolicyModel):
    """Target share of each difficulty, in percent. Advisory, not exact."""

    easy: float = Field(default=30, ge=0, le=100)
    medium: float = Field(default=50, ge=0, le=100)
    hard: float = Field(default=20, ge=0, le=100)


class NegativeMarking(PolicyModel):
    enabled: bool = False
    per_wrong: float = Field(default=0.25, ge=0)
    per_skipped: float = Field(default=0.0, ge=0)


class AdaptiveRules(PolicyModel):
    """Mastery-weighted selection knobs (0-100 scales)."""

    enabled: bool = False
    intensity: float = Field(default=50, ge=0, le=100)
    weak_topic_bias: float = Field(default=50, ge=0, le=100)
    difficulty_target: DifficultyTarget = DifficultyTarget.BALANCED


class SelectionRules(PolicyModel):
    """Effective question-selection policy for one assessment."""

    randomize_order: bool = True
    difficulty_mix: DifficultyMix = Field(default_factory=DifficultyMix)
    source_priority: tuple[SourcePriority, ...] = (
        SourcePriority.HIERARCHY,
        SourcePriority.TAGS,
        SourcePriority.SET,
    )
    avoid_repeats: bool = True
    negative_marking: NegativeMarking = Field(default_factory=NegativeMarking)
    allow_section_overrides: bool = True
    # Hard constraints: re-applied by the resolver after every merge
    force_published_only: bool = True
    exclude_archived: bool = True
    adaptive: AdaptiveRules | None = Field(default_factory=AdaptiveRules)

    @property
    def adaptive_enabled(self) -> bool:
        return bool(self.adaptive and self.adaptive.enabled)


# =============================================================================
# Quiz Controls
# =============================================================================


class ProctoringConfig(PolicyModel):
    """Unified proctoring switches for monitored (mock exam) sessions."""

    enabled: bool = False
    fullscreen_required: bool = False
    block_back_navigation: bool = False
    disable_copy_paste: bool = False
    disable_right_click: bool = False
    disable_text_selection: bool = False
    detect_tab_switch: bool = False
    max_tab_switches: int = Field(default=3, ge=0)
    detect_window_blur: bool = False
    max_window_blurs: int = Field(default=3, ge=0)
    detect_network_change: bool = True
    detect_clock_skew: bool = True
    detect_devtools: bool = True
    hide_explanation_until_submit: bool = False
    lock_question_navigation: bool = False
    one_question_at_a_time: bool = False
    action_on_threshold: ThresholdAction = ThresholdAction.WARN
    violation_threshold: int = Field(default=10, ge=1)
    allow_user_screenshot_capture: bool = False


class ViolationSeverityMap(PolicyModel):
    tab_switch: Severity = Severity.MEDIUM
    blur: Severity = Severity.LOW
    fullscreen_exit: Severity = Severity.HIGH
    clipboard: Severity = Severity.MEDIUM


class QuizControls(PolicyModel):
    """Effective delivery policy for one assessment."""

    # Timer controls
    default_time_limit_minutes: float = 60
    per_section_timing_enabled: bool = False
    auto_submit_on_time_up: bool = True

    # Navigation controls
    allow_back_navigation: bool = True
    allow_question_skipping: bool = True
    show_progress_bar: bool = True
    show_question_numbers: bool = True
    randomize_options: bool = False

    # Attempts & access
    attempts_allowed_default: int = Field(default=1, ge=0)
    cooldown_minutes_between_attempts: float = Field(default=0, ge=0)
    require_login: bool = True
    allow_resume_paused_attempt: bool = True

    # Anti-cheat controls
    block_copy_paste: bool = False
    block_right_click: bool = False
    fullscreen_required: bool = False
    blur_detection: bool = True
    tab_switch_limit: int = Field(default=3, ge=0)
    webcam_proctoring_enabled: bool = False

    proctoring: ProctoringConfig = Field(default_factory=ProctoringConfig)

    # Logging controls
    log_violations: bool = True
    violation_severity_map: ViolationSeverityMap = Field(
        default_factory=ViolationSeverityMap
    )


DEFAULT_SELECTION_RULES = SelectionRules()
DEFAULT_QUIZ_CONTROLS = QuizControls()
