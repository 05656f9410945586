"""
Environment signal sources for the integrity monitor.

The monitor never touches a UI environment directly. It subscribes through a
SignalSource, which exposes one subscription method per signal class; each
subscription returns the closure that detaches it.

ScriptedSignalSource is an in-process source whose signals are fired by
calling its emit helpers. The CLI drill command and the test suite drive the
monitor through it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Protocol

Detach = Callable[[], None]


class ClipboardAction(str, Enum):
    COPY = "copy"
    CUT = "cut"
    PASTE = "paste"


class NavigationKind(str, Enum):
    BACK = "back"
    UNLOAD = "unload"


@dataclass(frozen=True)
class KeyPress:
    key: str
    ctrl: bool = False
    meta: bool = False


@dataclass(frozen=True)
class NetworkStatus:
    online: bool
    effective_type: str | None = None
    downlink: float | None = None
    rtt: int | None = None
    save_data: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ViewportMetrics:
    """Outer (window chrome) and inner (content) sizes, in pixels."""

    outer_width: int
    outer_height: int
    inner_width: int
    inner_height: int

    def max_delta(self) -> int:
        return max(self.outer_width - self.inner_width, self.outer_height - self.inner_height)


class FullscreenRequestError(Exception):
    """The host refused to enter fullscreen (e.g. no user gesture)."""


class SignalSource(Protocol):
    """One subscription method per observable signal class."""

    def request_fullscreen(self) -> None: ...

    def on_fullscreen_change(self, handler: Callable[[bool], None]) -> Detach: ...

    def on_visibility_change(self, handler: Callable[[bool], None]) -> Detach: ...

    def on_focus_change(self, handler: Callable[[bool], None]) -> Detach: ...

    def on_clipboard(self, handler: Callable[[ClipboardAction], None]) -> Detach: ...

    def on_key_down(self, handler: Callable[[KeyPress], None]) -> Detach: ...

    def on_context_menu(self, handler: Callable[[], None]) -> Detach: ...

    def on_selection_start(self, handler: Callable[[], None]) -> Detach: ...

    def set_text_selection(self, enabled: bool) -> None: ...

    def on_navigation(self, handler: Callable[[NavigationKind], None]) -> Detach: ...

    def on_network_change(self, handler: Callable[[NetworkStatus], None]) -> Detach: ...

    def viewport(self) -> ViewportMetrics: ...


class ScriptedSignalSource:
    """
    Signal source driven by explicit emit calls.

    Usage:
        source = ScriptedSignalSource()
        monitor = IntegrityMonitor(config, source, sink)
        monitor.start()
        source.hide_tab()
    """

    CHANNELS = (
        "fullscreen",
        "visibility",
        "focus",
        "clipboard",
        "keydown",
        "contextmenu",
        "selectstart",
        "navigation",
        "network",
    )

    def __init__(
        self,
        viewport: ViewportMetrics | None = None,
        reject_fullscreen: bool = False,
    ):
        self._handlers: dict[str, list[Callable[..., None]]] = {c: [] for c in self.CHANNELS}
        self.current_viewport = viewport or ViewportMetrics(1280, 800, 1280, 720)
        self.reject_fullscreen = reject_fullscreen
        self.fullscreen = False
        self.text_selection_enabled = True

    # -- subscription -------------------------------------------------------

    def _subscribe(self, channel: str, handler: Callable[..., None]) -> Detach:
        handlers = self._handlers[channel]
        handlers.append(handler)

        def detach() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return detach

    def request_fullscreen(self) -> None:
        if self.reject_fullscreen:
            raise FullscreenRequestError("Fullscreen request needs a user gesture")
        self.fullscreen = True

    def on_fullscreen_change(self, handler: Callable[[bool], None]) -> Detach:
        return self._subscribe("fullscreen", handler)

    def on_visibility_change(self, handler: Callable[[bool], None]) -> Detach:
        return self._subscribe("visibility", handler)

    def on_focus_change(self, handler: Callable[[bool], None]) -> Detach:
        return self._subscribe("focus", handler)

    def on_clipboard(self, handler: Callable[[ClipboardAction], None]) -> Detach:
        return self._subscribe("clipboard", handler)

    def on_key_down(self, handler: Callable[[KeyPress], None]) -> Detach:
        return self._subscribe("keydown", handler)

    def on_context_menu(self, handler: Callable[[], None]) -> Detach:
        return self._subscribe("contextmenu", handler)

    def on_selection_start(self, handler: Callable[[], None]) -> Detach:
        return self._subscribe("selectstart", handler)

    def set_text_selection(self, enabled: bool) -> None:
        self.text_selection_enabled = enabled

    def on_navigation(self, handler: Callable[[NavigationKind], None]) -> Detach:
        return self._subscribe("navigation", handler)

    def on_network_change(self, handler: Callable[[NetworkStatus], None]) -> Detach:
        return self._subscribe("network", handler)

    def viewport(self) -> ViewportMetrics:
        return self.current_viewport

    # -- emitters -----------------------------------------------------------

    def emit(self, channel: str, *args: Any) -> None:
        for handler in list(self._handlers[channel]):
            handler(*args)

    def handler_count(self, channel: str | None = None) -> int:
        """Attached handlers on one channel, or across all channels."""
        if channel is not None:
            return len(self._handlers[channel])
        return sum(len(h) for h in self._handlers.values())

    def exit_fullscreen(self) -> None:
        self.fullscreen = False
        self.emit("fullscreen", False)

    def hide_tab(self) -> None:
        self.emit("visibility", True)

    def show_tab(self) -> None:
        self.emit("visibility", False)

    def blur(self) -> None:
        self.emit("focus", False)

    def focus(self) -> None:
        self.emit("focus", True)

    def clipboard(self, action: ClipboardAction | str) -> None:
        self.emit("clipboard", ClipboardAction(action))

    def key(self, key: str, ctrl: bool = False, meta: bool = False) -> None:
        self.emit("keydown", KeyPress(key=key, ctrl=ctrl, meta=meta))

    def context_menu(self) -> None:
        self.emit("contextmenu")

    def select_text(self) -> None:
        self.emit("selectstart")

    def navigate(self, kind: NavigationKind | str = NavigationKind.BACK) -> None:
        self.emit("navigation", NavigationKind(kind))

    def network(self, online: bool, **details: Any) -> None:
        self.emit("network", NetworkStatus(online=online, **details))

    def resize(self, outer: tuple[int, int], inner: tuple[int, int]) -> None:
        self.current_viewport = ViewportMetrics(outer[0], outer[1], inner[0], inner[1])
