"""
Integrity Monitor.

Observes environment signals during a proctored attempt, keeps violation
accounting and escalates once when the configured threshold is reached.
"""

from assessment_core.integrity.attempt import AttemptOutcome, CloseReason, ProctoredAttempt
from assessment_core.integrity.events import (
    VIOLATION_TYPES,
    EventType,
    IntegritySummary,
    MonitorState,
    ViolationEvent,
)
from assessment_core.integrity.monitor import IntegrityMonitor, MonitorTiming
from assessment_core.integrity.signals import (
    ClipboardAction,
    FullscreenRequestError,
    KeyPress,
    NavigationKind,
    NetworkStatus,
    ScriptedSignalSource,
    SignalSource,
    ViewportMetrics,
)
from assessment_core.integrity.sinks import (
    LoggingViolationSink,
    MemoryViolationSink,
    StoreViolationSink,
    severity_for,
)
from assessment_core.integrity.timers import ManualTimerFactory, RecurringTimer

__all__ = [
    # Monitor
    "IntegrityMonitor",
    "MonitorTiming",
    "MonitorState",
    # Events
    "EventType",
    "VIOLATION_TYPES",
    "ViolationEvent",
    "IntegritySummary",
    # Signals
    "SignalSource",
    "ScriptedSignalSource",
    "ClipboardAction",
    "KeyPress",
    "NavigationKind",
    "NetworkStatus",
    "ViewportMetrics",
    "FullscreenRequestError",
    # Sinks
    "MemoryViolationSink",
    "LoggingViolationSink",
    "StoreViolationSink",
    "severity_for",
    # Timers
    "RecurringTimer",
    "ManualTimerFactory",
    # Session host
    "ProctoredAttempt",
    "AttemptOutcome",
    "CloseReason",
]
