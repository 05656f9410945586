"""
Integrity Monitor (Proctoring State Machine).

Supervises one proctored attempt:

    IDLE --start()--> ACTIVE --stop()--> STOPPED (terminal)

While ACTIVE it observes the signal classes enabled in the proctoring config,
records every observation through a single logging path, keeps a running
violation count plus a per-type histogram, and escalates exactly once when
the count reaches the configured threshold. Escalation is advisory: the
monitor calls the host's callback and never submits anything itself.

Observers are wired from a table of (signal class, enabled, attach) entries.
Each attach returns the closure that undoes it; stop() runs all of them, so
there is no separate detach bookkeeping per listener.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from loguru import logger

from assessment_core.config import Settings
from assessment_core.rules.types import ProctoringConfig, ThresholdAction

from .events import VIOLATION_TYPES, EventType, IntegritySummary, MonitorState, ViolationEvent
from .signals import ClipboardAction, Detach, KeyPress, NavigationKind, NetworkStatus, SignalSource
from .timers import TimerFactory, start_recurring_timer

ViolationSink = Callable[[ViolationEvent], None]
EscalationCallback = Callable[[ThresholdAction], None]

CLOCK_SKEW_TIMER = "clock-skew"
DEVTOOLS_TIMER = "devtools"
CLIPBOARD_HOTKEYS = {"c", "v", "x"}


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class MonitorTiming:
    """Periods and tolerances of the two polling checks."""

    clock_skew_interval_seconds: float = 15.0
    clock_skew_threshold_ms: int = 120_000
    devtools_interval_seconds: float = 10.0
    devtools_size_threshold_px: int = 160

    @classmethod
    def from_settings(cls, settings: Settings) -> MonitorTiming:
        return cls(
            clock_skew_interval_seconds=settings.clock_skew_interval_seconds,
            clock_skew_threshold_ms=settings.clock_skew_threshold_ms,
            devtools_interval_seconds=settings.devtools_interval_seconds,
            devtools_size_threshold_px=settings.devtools_size_threshold_px,
        )


class IntegrityMonitor:
    """
    One monitor per attempt; holds no cross-session state.

    Args:
        config: Proctoring section of the effective QuizControls
        source: Environment signal source to observe
        sink: Receives every recorded event (fire-and-forget)
        on_threshold: Escalation callback, invoked at most once
        clock: Wall clock in epoch milliseconds
        timer_factory: Creates the recurring clock-skew and devtools checks
        timing: Check periods and tolerances
        attempt_id: Only used to label log lines
    """

    def __init__(
        self,
        config: ProctoringConfig,
        source: SignalSource,
        sink: ViolationSink,
        on_threshold: EscalationCallback | None = None,
        clock: Callable[[], int] = now_ms,
        timer_factory: TimerFactory = start_recurring_timer,
        timing: MonitorTiming | None = None,
        attempt_id: str | None = None,
    ):
        self.config = config
        self.source = source
        self.sink = sink
        self.on_threshold = on_threshold
        self.clock = clock
        self.timer_factory = timer_factory
        self.timing = timing or MonitorTiming()
        self.attempt_id = attempt_id or "attempt"

        self._lock = threading.RLock()
        self._state = MonitorState.IDLE
        self._started_at: int | None = None
        self._ended_at: int | None = None
        self._last_event_at: int | None = None
        self._violation_count = 0
        self._counts: dict[EventType, int] = {}
        self._threshold_triggered = False
        self._detachers: list[tuple[str, Detach]] = []
        self._last_clock_check: int = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is MonitorState.ACTIVE

    @property
    def violation_count(self) -> int:
        return self._violation_count

    @property
    def threshold_reached(self) -> bool:
        return self._threshold_triggered

    @property
    def last_event_at(self) -> int | None:
        return self._last_event_at

    @property
    def attached_signals(self) -> list[str]:
        return [name for name, _ in self._detachers]

    def start(self) -> bool:
        """
        Begin observing. No-op unless proctoring is enabled and the monitor is IDLE.

        Returns:
            True if this call started the monitor
        """
        with self._lock:
            if not self.config.enabled or self._state is not MonitorState.IDLE:
                return False

            self._state = MonitorState.ACTIVE
            self._started_at = self.clock()
            self._last_clock_check = self._started_at

        self._log(EventType.SESSION_START, {"time": self._started_at}, counts_as_violation=False)

        for name, enabled, attach in self._signal_table():
            if not enabled:
                continue
            try:
                detach = attach()
            except Exception as e:
                # Degraded proctoring: other signal classes keep running
                logger.warning("Integrity monitor {}: could not attach {}: {}", self.attempt_id, name, e)
                continue
            with self._lock:
                self._detachers.append((name, detach))

        logger.info(
            "Integrity monitor {} started (signals: {})",
            self.attempt_id,
            ", ".join(self.attached_signals) or "none",
        )
        return True

    def stop(self) -> bool:
        """
        Stop observing and cancel periodic checks. No-op unless ACTIVE.

        Returns:
            True if this call stopped the monitor
        """
        with self._lock:
            if self._state is not MonitorState.ACTIVE:
                return False

            ended_at = self.clock()
            self._log(
                EventType.SESSION_END,
                {"duration": ended_at - (self._started_at or ended_at)},
                counts_as_violation=False,
            )
            self._state = MonitorState.STOPPED
            self._ended_at = ended_at
            detachers, self._detachers = self._detachers, []

        for name, detach in reversed(detachers):
            try:
                detach()
            except Exception as e:
                logger.warning("Integrity monitor {}: detaching {} failed: {}", self.attempt_id, name, e)

        logger.info(
            "Integrity monitor {} stopped ({} violations)", self.attempt_id, self._violation_count
        )
        return True

    # =========================================================================
    # Recording
    # =========================================================================

    def log_manual_event(
        self,
        event_type: EventType | str,
        metadata: dict[str, Any] | None = None,
        counts_as_violation: bool = False,
    ) -> bool:
        """
        Record an out-of-band event (e.g. a user-triggered integrity snapshot).

        Ignored unless the monitor is ACTIVE.
        """
        if not self.active:
            return False
        self._log(EventType(event_type), metadata, counts_as_violation=counts_as_violation)
        return True

    def get_summary(self) -> IntegritySummary:
        with self._lock:
            return IntegritySummary.capture(
                total_violations=self._violation_count,
                counts=self._counts,
                threshold_reached=self._threshold_triggered,
                started_at=self._started_at,
                ended_at=self._ended_at,
            )

    def _log(
        self,
        event_type: EventType,
        metadata: dict[str, Any] | None = None,
        counts_as_violation: bool = True,
    ) -> None:
        """The single recording path for every observed signal."""
        escalate = False
        with self._lock:
            # A signal thread can pass the active check in _observe and then
            # wait here while stop() runs
            if self._state is not MonitorState.ACTIVE:
                return
            pending = [self._record(event_type, metadata)]

            if counts_as_violation and event_type in VIOLATION_TYPES:
                self._violation_count += 1
                threshold = self.config.violation_threshold
                if self._violation_count >= threshold and not self._threshold_triggered:
                    self._threshold_triggered = True
                    escalate = True
                    pending.append(self._record(EventType.THRESHOLD_REACHED, {"threshold": threshold}))

            # Accounting is complete before any sink sees the events
            for event in pending:
                self._emit(event)

        if escalate:
            self._escalate()

    def _record(self, event_type: EventType, metadata: dict[str, Any] | None) -> ViolationEvent:
        now = self.clock()
        self._last_event_at = now
        self._counts[event_type] = self._counts.get(event_type, 0) + 1
        return ViolationEvent(
            type=event_type,
            timestamp_ms=now,
            metadata=MappingProxyType(dict(metadata or {})),
        )

    def _emit(self, event: ViolationEvent) -> None:
        try:
            self.sink(event)
        except Exception as e:
            logger.warning("Violation sink failed for {}: {}", event.type.value, e)

    def _escalate(self) -> None:
        action = self.config.action_on_threshold
        logger.info(
            "Integrity monitor {}: threshold {} reached, action={}",
            self.attempt_id,
            self.config.violation_threshold,
            action.value,
        )
        if self.on_threshold is None:
            return
        try:
            self.on_threshold(action)
        except Exception as e:
            logger.exception("Escalation callback failed: {}", e)

    def _observe(self, event_type: EventType, metadata: dict[str, Any] | None = None) -> None:
        """Signal handlers route through here; late signals after stop() are dropped."""
        if self.active:
            self._log(event_type, metadata)

    # =========================================================================
    # Signal table
    # =========================================================================

    def _signal_table(self) -> list[tuple[str, bool, Callable[[], Detach]]]:
        c = self.config
        return [
            ("fullscreen", c.fullscreen_required, self._attach_fullscreen),
            ("visibility", c.detect_tab_switch, self._attach_visibility),
            ("focus", c.detect_window_blur, self._attach_focus),
            ("context_menu", c.disable_right_click, self._attach_context_menu),
            ("clipboard", c.disable_copy_paste, self._attach_clipboard),
            ("text_selection", c.disable_text_selection, self._attach_text_selection),
            ("navigation", c.block_back_navigation, self._attach_navigation),
            ("network", c.detect_network_change, self._attach_network),
            ("clock_skew", c.detect_clock_skew, self._attach_clock_skew),
            ("devtools", c.detect_devtools, self._attach_devtools),
        ]

    def _attach_fullscreen(self) -> Detach:
        try:
            self.source.request_fullscreen()
        except Exception as e:
            logger.warning("Fullscreen request failed (needs user gesture?): {}", e)

        def handle(is_fullscreen: bool) -> None:
            if not is_fullscreen:
                self._observe(EventType.FULLSCREEN_EXIT)

        return self.source.on_fullscreen_change(handle)

    def _attach_visibility(self) -> Detach:
        def handle(hidden: bool) -> None:
            if hidden:
                self._observe(EventType.TAB_HIDDEN)

        return self.source.on_visibility_change(handle)

    def _attach_focus(self) -> Detach:
        def handle(focused: bool) -> None:
            if focused:
                self._observe(EventType.FOCUS_GAINED)
            else:
                self._observe(EventType.WINDOW_BLUR)
                self._observe(EventType.FOCUS_LOST)

        return self.source.on_focus_change(handle)

    def _attach_context_menu(self) -> Detach:
        return self.source.on_context_menu(lambda: self._observe(EventType.RIGHT_CLICK))

    def _attach_clipboard(self) -> Detach:
        def handle_clipboard(action: ClipboardAction) -> None:
            event_type = (
                EventType.PASTE_ATTEMPT if action == ClipboardAction.PASTE else EventType.COPY_ATTEMPT
            )
            self._observe(event_type, {"action": action.value})

        def handle_key(press: KeyPress) -> None:
            key = press.key.lower()
            if (press.ctrl or press.meta) and key in CLIPBOARD_HOTKEYS:
                event_type = EventType.PASTE_ATTEMPT if key == "v" else EventType.COPY_ATTEMPT
                self._observe(event_type, {"key": press.key})

        detach_clipboard = self.source.on_clipboard(handle_clipboard)
        detach_keys = self.source.on_key_down(handle_key)

        def detach() -> None:
            detach_clipboard()
            detach_keys()

        return detach

    def _attach_text_selection(self) -> Detach:
        detach_select = self.source.on_selection_start(
            lambda: self._observe(EventType.TEXT_SELECTION)
        )
        self.source.set_text_selection(False)

        def detach() -> None:
            detach_select()
            self.source.set_text_selection(True)

        return detach

    def _attach_navigation(self) -> Detach:
        def handle(kind: NavigationKind) -> None:
            self._observe(EventType.BACK_NAV_ATTEMPT, {"subtype": kind.value})

        return self.source.on_navigation(handle)

    def _attach_network(self) -> Detach:
        def handle(status: NetworkStatus) -> None:
            self._observe(EventType.NETWORK_CHANGE, status.to_dict())

        return self.source.on_network_change(handle)

    def _attach_clock_skew(self) -> Detach:
        timer = self.timer_factory(
            self.timing.clock_skew_interval_seconds, self._check_clock_skew, CLOCK_SKEW_TIMER
        )
        return timer.cancel

    def _attach_devtools(self) -> Detach:
        timer = self.timer_factory(
            self.timing.devtools_interval_seconds, self._check_devtools, DEVTOOLS_TIMER
        )
        return timer.cancel

    # =========================================================================
    # Periodic checks
    # =========================================================================

    def _check_clock_skew(self) -> None:
        """Flag wall-clock drift beyond tolerance from the expected tick advance."""
        if not self.active:
            return
        now = self.clock()
        expected = self._last_clock_check + int(self.timing.clock_skew_interval_seconds * 1000)
        skew = abs(now - expected)
        self._last_clock_check = now

        if skew > self.timing.clock_skew_threshold_ms:
            self._observe(EventType.CLOCK_SKEW, {"skew": skew, "expected": expected, "actual": now})

    def _check_devtools(self) -> None:
        """Viewport-vs-window size heuristic for docked developer tools."""
        if not self.active:
            return
        delta = self.source.viewport().max_delta()
        if delta > self.timing.devtools_size_threshold_px:
            self._observe(EventType.DEVTOOLS_SUSPECTED, {"delta": delta})
