"""
Violation log sinks.

A sink is any callable taking a ViolationEvent. Sinks are fire-and-forget:
the monitor logs and ignores their failures so a broken sink never blocks
the monitored session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from assessment_core.rules.types import Severity, ViolationSeverityMap

from .events import EventType, ViolationEvent

if TYPE_CHECKING:
    from assessment_core.state_store import StateStore


def severity_for(event_type: EventType, severity_map: ViolationSeverityMap) -> Severity:
    """Map an event type onto the configured severity categories."""
    if event_type == EventType.TAB_HIDDEN:
        return severity_map.tab_switch
    if event_type in (EventType.WINDOW_BLUR, EventType.FOCUS_LOST, EventType.BACK_NAV_ATTEMPT):
        return severity_map.blur
    if event_type == EventType.FULLSCREEN_EXIT:
        return severity_map.fullscreen_exit
    if event_type in (EventType.COPY_ATTEMPT, EventType.PASTE_ATTEMPT):
        return severity_map.clipboard
    return Severity.LOW


@dataclass
class MemoryViolationSink:
    """Keeps every event in order; handy for hosts that flush in batches."""

    events: list[ViolationEvent] = field(default_factory=list)

    def __call__(self, event: ViolationEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[ViolationEvent]:
        return [e for e in self.events if e.type == event_type]

    def types(self) -> list[EventType]:
        return [e.type for e in self.events]


class LoggingViolationSink:
    """Writes events to the application log, one line per event."""

    def __init__(self, attempt_id: str, severity_map: ViolationSeverityMap | None = None):
        self.attempt_id = attempt_id
        self.severity_map = severity_map or ViolationSeverityMap()

    def __call__(self, event: ViolationEvent) -> None:
        if event.is_violation:
            logger.warning(
                "[{}] {} severity={} {}",
                self.attempt_id,
                event.type.value,
                severity_for(event.type, self.severity_map).value,
                dict(event.metadata),
            )
        else:
            logger.info("[{}] {} {}", self.attempt_id, event.type.value, dict(event.metadata))


class StoreViolationSink:
    """Appends events to the StateStore violation log."""

    def __init__(
        self,
        store: StateStore,
        learner_id: str,
        assessment_id: str,
        attempt_id: str,
        severity_map: ViolationSeverityMap | None = None,
    ):
        self.store = store
        self.learner_id = learner_id
        self.assessment_id = assessment_id
        self.attempt_id = attempt_id
        self.severity_map = severity_map or ViolationSeverityMap()

    def __call__(self, event: ViolationEvent) -> None:
        self.store.record_violation(
            learner_id=self.learner_id,
            assessment_id=self.assessment_id,
            attempt_id=self.attempt_id,
            event=event,
            severity=severity_for(event.type, self.severity_map).value,
        )
