"""
Recurring timers for the monitor's periodic checks.

The monitor asks a TimerFactory for each recurring check and keeps the
returned handle so stop() can cancel it. RecurringTimer runs the callback on
a daemon thread; ManualTimerFactory never runs anything on its own and lets
the caller fire ticks explicitly.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol

from loguru import logger


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def active(self) -> bool: ...


TimerFactory = Callable[[float, Callable[[], None], str], TimerHandle]


class RecurringTimer:
    """
    Runs a callback every `interval_seconds` on a background thread.

    Usage:
        timer = RecurringTimer(15.0, check, name="clock-skew")
        timer.start()
        # ... session runs ...
        timer.cancel()
    """

    def __init__(self, interval_seconds: float, callback: Callable[[], None], name: str = "timer"):
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def active(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def start(self) -> RecurringTimer:
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Stop the loop; safe to call more than once."""
        self._stop_event.set()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            # Wait for interval or stop event
            if self._stop_event.wait(timeout=self.interval_seconds):
                break

            try:
                self.callback()
            except Exception as exc:
                logger.warning("Timer {} callback failed: {}", self.name, exc)


def start_recurring_timer(
    interval_seconds: float, callback: Callable[[], None], name: str
) -> RecurringTimer:
    """Default TimerFactory: a started RecurringTimer."""
    return RecurringTimer(interval_seconds, callback, name=name).start()


class ManualTimer:
    def __init__(self, interval_seconds: float, callback: Callable[[], None], name: str):
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.name = name
        self.cancelled = False

    @property
    def active(self) -> bool:
        return not self.cancelled

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimerFactory:
    """TimerFactory whose timers only fire when `tick` is called."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(
        self, interval_seconds: float, callback: Callable[[], None], name: str
    ) -> ManualTimer:
        timer = ManualTimer(interval_seconds, callback, name)
        self.timers.append(timer)
        return timer

    def active_timers(self) -> list[ManualTimer]:
        return [t for t in self.timers if t.active]

    def tick(self, name: str | None = None) -> int:
        """Fire every active timer (or only those named `name`); returns how many fired."""
        fired = 0
        for timer in self.active_timers():
            if name is None or timer.name == name:
                timer.callback()
                fired += 1
        return fired
