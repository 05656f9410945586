"""
Proctored attempt host.

Owns the integrity monitor of one attempt and turns its advisory signals
into session decisions:

- warn: a notice is recorded, the attempt continues
- flag: the attempt is marked for review, the attempt continues
- autosubmit: the attempt is closed and submitted

Every path that ends a session (manual submit, time-up, threshold
autosubmit, per-type limits) goes through close(), which
stops the monitor and submits exactly once.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from assessment_core.rules.types import QuizControls, ThresholdAction

from .events import EventType, IntegritySummary, ViolationEvent
from .monitor import IntegrityMonitor, MonitorTiming, ViolationSink, now_ms
from .signals import SignalSource
from .sinks import LoggingViolationSink
from .timers import TimerFactory, start_recurring_timer


class CloseReason(str, Enum):
    MANUAL_SUBMIT = "manual_submit"
    TIME_UP = "time_up"
    THRESHOLD_AUTOSUBMIT = "threshold_autosubmit"
    TAB_SWITCH_LIMIT = "tab_switch_limit"
    BLUR_LIMIT = "blur_limit"


@dataclass(frozen=True)
class AttemptOutcome:
    """What the host persists alongside the graded attempt."""

    attempt_id: str
    reason: CloseReason
    summary: IntegritySummary
    flagged_for_review: bool
    notices: tuple[str, ...]


class ProctoredAttempt:
    """
    Session host for one proctored attempt.

    Usage:
        attempt = ProctoredAttempt("attempt-1", controls, source, on_submit=save)
        attempt.start()
        ...
        attempt.submit()
    """

    def __init__(
        self,
        attempt_id: str,
        controls: QuizControls,
        source: SignalSource,
        on_submit: Callable[[AttemptOutcome], None] | None = None,
        sink: ViolationSink | None = None,
        clock: Callable[[], int] = now_ms,
        timer_factory: TimerFactory = start_recurring_timer,
        timing: MonitorTiming | None = None,
    ):
        self.attempt_id = attempt_id
        self.controls = controls
        self.on_submit = on_submit
        self.sink = sink or LoggingViolationSink(attempt_id, controls.violation_severity_map)

        self._close_lock = threading.Lock()
        self._closing = False
        # Guards counters, notices and the review flag. Monitor callbacks may
        # arrive on timer threads; close() is always called after release.
        self._state_lock = threading.Lock()
        self._outcome: AttemptOutcome | None = None
        self._flagged = False
        self._notices: list[str] = []
        self._tab_switches = 0
        self._window_blurs = 0

        self.monitor = IntegrityMonitor(
            controls.proctoring,
            source,
            self._on_event,
            on_threshold=self._on_threshold,
            clock=clock,
            timer_factory=timer_factory,
            timing=timing,
            attempt_id=attempt_id,
        )

    @property
    def closed(self) -> bool:
        return self._closing

    @property
    def outcome(self) -> AttemptOutcome | None:
        return self._outcome

    @property
    def flagged_for_review(self) -> bool:
        with self._state_lock:
            return self._flagged

    @property
    def notices(self) -> list[str]:
        with self._state_lock:
            return list(self._notices)

    def _note(self, message: str, flag: bool = False) -> None:
        with self._state_lock:
            self._notices.append(message)
            if flag:
                self._flagged = True

    def start(self) -> bool:
        return self.monitor.start()

    def submit(self) -> AttemptOutcome | None:
        return self.close(CloseReason.MANUAL_SUBMIT)

    def time_up(self) -> AttemptOutcome | None:
        """Timer expiry; closes only when the controls auto-submit on time-up."""
        if not self.controls.auto_submit_on_time_up:
            self._note("Time is up.")
            return None
        return self.close(CloseReason.TIME_UP)

    def close(self, reason: CloseReason) -> AttemptOutcome | None:
        """
        End the attempt. Only the first call has any effect.

        Returns:
            The outcome if this call closed the attempt, otherwise None
        """
        with self._close_lock:
            if self._closing:
                return None
            self._closing = True

        # Outside the close lock: stop() takes the monitor lock, which signal
        # threads hold while delivering events to _on_event
        self.monitor.stop()
        summary = self.monitor.get_summary()
        with self._state_lock:
            flagged = self._flagged
            notices = tuple(self._notices)
        outcome = AttemptOutcome(
            attempt_id=self.attempt_id,
            reason=reason,
            summary=summary,
            flagged_for_review=flagged or summary.integrity_flagged,
            notices=notices,
        )
        self._outcome = outcome

        logger.info("Attempt {} closed: {}", self.attempt_id, reason.value)
        if self.on_submit is not None:
            self.on_submit(outcome)
        return outcome

    # -- monitor callbacks --------------------------------------------------

    def _on_event(self, event: ViolationEvent) -> None:
        if self.controls.log_violations:
            try:
                self.sink(event)
            except Exception as e:
                logger.warning("Violation sink failed for {}: {}", event.type.value, e)

        proctoring = self.controls.proctoring
        limit_reason: CloseReason | None = None
        with self._state_lock:
            if event.type == EventType.TAB_HIDDEN and proctoring.detect_tab_switch:
                self._tab_switches += 1
                if self._tab_switches > proctoring.max_tab_switches:
                    self._notices.append("Maximum tab switches exceeded.")
                    self._flagged = True
                    limit_reason = CloseReason.TAB_SWITCH_LIMIT
            elif event.type == EventType.WINDOW_BLUR and proctoring.detect_window_blur:
                self._window_blurs += 1
                if self._window_blurs > proctoring.max_window_blurs:
                    self._notices.append("Maximum window switches exceeded.")
                    self._flagged = True
                    limit_reason = CloseReason.BLUR_LIMIT
            elif event.type == EventType.BACK_NAV_ATTEMPT and event.metadata.get("subtype") == "unload":
                self._notices.append("Navigation is locked during the examination.")

        if limit_reason is not None:
            self.close(limit_reason)

    def _on_threshold(self, action: ThresholdAction) -> None:
        if action == ThresholdAction.WARN:
            self._note("Integrity warning: unusual activity was detected.")
        elif action == ThresholdAction.FLAG:
            self._note("This attempt has been flagged for review.", flag=True)
        elif action == ThresholdAction.AUTOSUBMIT:
            self.close(CloseReason.THRESHOLD_AUTOSUBMIT)
