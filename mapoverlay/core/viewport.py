# mapoverlay/core/viewport.py
"""
Host-map boundary: the ViewportProvider protocol, a normalized ViewportChanged
event stream with disposable subscriptions, and SimulatedViewport, an in-process
map used by tests, the CLI and the Streamlit page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Protocol

from mapoverlay.core.projection import require_projection, to_geo, to_pixel
from mapoverlay.core.types import GeoPoint, PixelPoint, ViewportGesture, ViewportState

logger = logging.getLogger(__name__)


class ViewportEventKind(str, Enum):
    """Host-map events, normalized into one stream."""
    BOUNDS_CHANGED = "bounds_changed"
    ZOOM_CHANGED = "zoom_changed"
    CENTER_CHANGED = "center_changed"
    DRAG_START = "dragstart"
    DRAG = "drag"
    DRAG_END = "dragend"
    IDLE = "idle"
    RESIZE = "resize"


@dataclass(frozen=True)
class ViewportChanged:
    kind: ViewportEventKind
    viewport: ViewportState | None


class Subscription:
    """Disposable handle for one subscriber. dispose() is idempotent."""

    def __init__(self, on_dispose: Callable[[], None]) -> None:
        self._on_dispose: Callable[[], None] | None = on_dispose

    @property
    def active(self) -> bool:
        return self._on_dispose is not None

    def dispose(self) -> None:
        cb, self._on_dispose = self._on_dispose, None
        if cb is not None:
            cb()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.dispose()


class ViewportEventBus:
    """
    One subscription manager for pan/zoom/drag/idle. Each subscriber gets a single
    Subscription; the bus also tracks the global ViewportGesture.
    """

    def __init__(self) -> None:
        self._handlers: dict[int, Callable[[ViewportChanged], None]] = {}
        self._next_id = 0
        self._gesture = ViewportGesture.IDLE

    @property
    def gesture(self) -> ViewportGesture:
        return self._gesture

    @property
    def listener_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Callable[[ViewportChanged], None]) -> Subscription:
        key = self._next_id
        self._next_id += 1
        self._handlers[key] = handler
        return Subscription(lambda: self._handlers.pop(key, None))

    def emit(self, kind: ViewportEventKind, viewport: ViewportState | None) -> None:
        if kind in (ViewportEventKind.DRAG_START, ViewportEventKind.DRAG):
            self._gesture = ViewportGesture.PANNING
        elif kind == ViewportEventKind.ZOOM_CHANGED:
            self._gesture = ViewportGesture.ZOOMING
        elif kind in (ViewportEventKind.DRAG_END, ViewportEventKind.IDLE):
            self._gesture = ViewportGesture.IDLE
        event = ViewportChanged(kind=kind, viewport=viewport)
        # Handlers may dispose themselves (or others) while we iterate.
        for key, handler in list(self._handlers.items()):
            if key in self._handlers:
                handler(event)


class ViewportProvider(Protocol):
    """What the engine needs from the host map widget."""

    @property
    def events(self) -> ViewportEventBus: ...

    def viewport(self) -> ViewportState | None: ...

    def set_panning_enabled(self, enabled: bool) -> None: ...

    def set_view(self, center: GeoPoint, zoom: float) -> None: ...


class SimulatedViewport:
    """
    In-process host map. Holds a ViewportState and emits the same event
    sequences the real widget does (bounds/center changed, drag, zoom, idle).
    ready=False models a map whose projection is not available yet.
    """

    def __init__(
        self,
        center: GeoPoint,
        zoom: float,
        width_px: float,
        height_px: float,
        ready: bool = True,
    ) -> None:
        self._state = ViewportState(center=center, zoom=zoom, width_px=width_px, height_px=height_px)
        self._ready = ready
        self._events = ViewportEventBus()
        self.panning_enabled = True

    @property
    def events(self) -> ViewportEventBus:
        return self._events

    @property
    def ready(self) -> bool:
        return self._ready

    def viewport(self) -> ViewportState | None:
        return self._state if self._ready else None

    def set_ready(self, ready: bool = True) -> None:
        """Projection becomes available; emits idle so deferred work retries."""
        self._ready = ready
        if ready:
            self._events.emit(ViewportEventKind.IDLE, self.viewport())

    def set_panning_enabled(self, enabled: bool) -> None:
        self.panning_enabled = enabled

    def set_view(self, center: GeoPoint, zoom: float) -> None:
        self._state = replace(self._state, center=center, zoom=zoom)
        self._events.emit(ViewportEventKind.CENTER_CHANGED, self.viewport())
        self._events.emit(ViewportEventKind.ZOOM_CHANGED, self.viewport())
        self._events.emit(ViewportEventKind.BOUNDS_CHANGED, self.viewport())
        self._events.emit(ViewportEventKind.IDLE, self.viewport())

    def drag(self, dx_px: float, dy_px: float, steps: int = 1) -> None:
        """Pan by dragging the map dx/dy pixels, in steps drag frames. Ignored when panning is disabled."""
        if not self.panning_enabled:
            logger.debug("Map drag ignored: panning disabled by a panel gesture")
            return
        vp = require_projection(self.viewport())
        self._events.emit(ViewportEventKind.DRAG_START, vp)
        steps = max(1, steps)
        for _ in range(steps):
            self._shift_center(dx_px / steps, dy_px / steps)
            self._events.emit(ViewportEventKind.CENTER_CHANGED, self.viewport())
            self._events.emit(ViewportEventKind.DRAG, self.viewport())
        self._events.emit(ViewportEventKind.DRAG_END, self.viewport())
        self._events.emit(ViewportEventKind.BOUNDS_CHANGED, self.viewport())

    def pan_by(self, dx_px: float, dy_px: float) -> None:
        """Programmatic pan (no drag events)."""
        self._shift_center(dx_px, dy_px)
        self._events.emit(ViewportEventKind.CENTER_CHANGED, self.viewport())
        self._events.emit(ViewportEventKind.BOUNDS_CHANGED, self.viewport())

    def zoom_to(self, zoom: float) -> None:
        self._state = replace(self._state, zoom=max(0.0, zoom))
        self._events.emit(ViewportEventKind.ZOOM_CHANGED, self.viewport())
        self._events.emit(ViewportEventKind.BOUNDS_CHANGED, self.viewport())

    def resize(self, width_px: float, height_px: float) -> None:
        self._state = replace(self._state, width_px=width_px, height_px=height_px)
        self._events.emit(ViewportEventKind.RESIZE, self.viewport())
        self._events.emit(ViewportEventKind.BOUNDS_CHANGED, self.viewport())

    def settle(self) -> None:
        """Post-animation idle."""
        self._events.emit(ViewportEventKind.IDLE, self.viewport())

    def _shift_center(self, dx_px: float, dy_px: float) -> None:
        # Dragging the map right moves the center west.
        vp = require_projection(self._state)
        c = to_pixel(vp.center, vp)
        new_center = to_geo(PixelPoint(c.x - dx_px, c.y - dy_px), vp)
        self._state = replace(self._state, center=new_center)


def current_viewport(provider: ViewportProvider) -> ViewportState:
    """Provider's viewport, or ProjectionUnavailable if it cannot project yet."""
    return require_projection(provider.viewport())
