"""
Integrity event types and the monitor's summary snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class EventType(str, Enum):
    """Every event the integrity monitor can record."""

    SESSION_START = "SESSION_START"
    SESSION_END = "SESSION_END"
    FULLSCREEN_EXIT = "FULLSCREEN_EXIT"
    TAB_HIDDEN = "TAB_HIDDEN"
    WINDOW_BLUR = "WINDOW_BLUR"
    COPY_ATTEMPT = "COPY_ATTEMPT"
    PASTE_ATTEMPT = "PASTE_ATTEMPT"
    RIGHT_CLICK = "RIGHT_CLICK"
    TEXT_SELECTION = "TEXT_SELECTION"
    BACK_NAV_ATTEMPT = "BACK_NAV_ATTEMPT"
    FOCUS_LOST = "FOCUS_LOST"
    FOCUS_GAINED = "FOCUS_GAINED"
    THRESHOLD_REACHED = "THRESHOLD_REACHED"
    USER_SCREENSHOT = "USER_SCREENSHOT"
    NETWORK_CHANGE = "NETWORK_CHANGE"
    CLOCK_SKEW = "CLOCK_SKEW"
    DEVTOOLS_SUSPECTED = "DEVTOOLS_SUSPECTED"


# Event types that count toward the violation total. Everything else is
# informational.
VIOLATION_TYPES: frozenset[EventType] = frozenset(
    {
        EventType.FULLSCREEN_EXIT,
        EventType.TAB_HIDDEN,
        EventType.WINDOW_BLUR,
        EventType.COPY_ATTEMPT,
        EventType.PASTE_ATTEMPT,
        EventType.RIGHT_CLICK,
        EventType.TEXT_SELECTION,
        EventType.BACK_NAV_ATTEMPT,
        EventType.DEVTOOLS_SUSPECTED,
        EventType.CLOCK_SKEW,
        EventType.NETWORK_CHANGE,
    }
)


class MonitorState(str, Enum):
    """Lifecycle of an integrity monitor. STOPPED is terminal."""

    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ViolationEvent:
    """A single recorded integrity event."""

    type: EventType
    timestamp_ms: int
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_violation(self) -> bool:
        return self.type in VIOLATION_TYPES

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type.value,
            "timestampMs": self.timestamp_ms,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class IntegritySummary:
    """
    Immutable snapshot of a monitor's accounting.

    `integrity_flagged` is true when the threshold was reached OR any
    violation occurred at all.
    """

    total_violations: int
    per_type_counts: Mapping[EventType, int]
    integrity_flagged: bool
    threshold_reached: bool
    started_at: int | None
    ended_at: int | None

    @classmethod
    def capture(
        cls,
        total_violations: int,
        counts: dict[EventType, int],
        threshold_reached: bool,
        started_at: int | None,
        ended_at: int | None,
    ) -> IntegritySummary:
        return cls(
            total_violations=total_violations,
            per_type_counts=MappingProxyType(dict(counts)),
            integrity_flagged=threshold_reached or total_violations > 0,
            threshold_reached=threshold_reached,
            started_at=started_at,
            ended_at=ended_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalViolations": self.total_violations,
            "perTypeCounts": {t.value: n for t, n in self.per_type_counts.items()},
            "integrityFlagged": self.integrity_flagged,
            "thresholdReached": self.threshold_reached,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
        }
