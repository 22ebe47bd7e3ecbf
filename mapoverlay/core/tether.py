# mapoverlay/core/tether.py
"""
Tether renderer: keeps one panel's tether attached to its marker while the map moves.

Reacts to viewport events and to registry changes of its own panel, recomputes marker
and panel pixel positions, and hands an OverlayFrame to a sink (matplotlib, Streamlit,
tests). During a panel drag the panel pixel comes from the gesture controller's live
position. During zoom a frame loop runs on a FrameScheduler until a settle timer,
re-armed by every zoom event, clears the zooming flag.

The renderer only reads the registry; it never writes a floating position.
"""

from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass
from typing import Callable, Protocol

from mapoverlay.core.bounds import effective_size
from mapoverlay.core.config import OVERLAY_DEBUG, ZOOM_SETTLE_S
from mapoverlay.core.error_codes import ProjectionUnavailable
from mapoverlay.core.gestures import PanelGestureController
from mapoverlay.core.projection import pixel_distance, to_pixel
from mapoverlay.core.registry import PanelRegistry, RegistryChange
from mapoverlay.core.types import GestureState, PanelSize, PixelPoint
from mapoverlay.core.viewport import (
    Subscription,
    ViewportChanged,
    ViewportEventKind,
    ViewportProvider,
    current_viewport,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TetherGeometry:
    """Screen segment from marker to panel center."""
    start: PixelPoint
    end: PixelPoint
    length_px: float
    angle_deg: float


def compute_tether(marker_px: PixelPoint, panel_px: PixelPoint) -> TetherGeometry:
    dx = panel_px.x - marker_px.x
    dy = panel_px.y - marker_px.y
    return TetherGeometry(
        start=marker_px,
        end=panel_px,
        length_px=pixel_distance(marker_px, panel_px),
        angle_deg=math.degrees(math.atan2(dy, dx)),
    )


@dataclass(frozen=True)
class OverlayFrame:
    """Everything a sink needs to draw one panel and its tether."""
    marker_id: str
    marker_px: PixelPoint
    panel_center_px: PixelPoint
    panel_size: PanelSize
    tether: TetherGeometry
    minimized: bool
    dragging: bool

    @property
    def panel_top_left_px(self) -> PixelPoint:
        return self.panel_center_px.offset(-self.panel_size.width / 2.0, -self.panel_size.height / 2.0)


# ----- Scheduling -----

class ScheduledCall:
    """Handle for a requested frame or timer."""

    def __init__(self, callback: Callable[[], None], due: float = 0.0) -> None:
        self.callback = callback
        self.due = due
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FrameScheduler(Protocol):
    """Animation-frame and timer source (requestAnimationFrame / setTimeout)."""

    def request_frame(self, callback: Callable[[], None]) -> ScheduledCall: ...

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall: ...


class ManualScheduler:
    """Deterministic scheduler: frames run on run_frames(), timers on advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self._frames: list[ScheduledCall] = []
        self._timers: list[tuple[float, int, ScheduledCall]] = []
        self._seq = 0

    def request_frame(self, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(callback, self.now)
        self._frames.append(call)
        return call

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(callback, self.now + delay_s)
        heapq.heappush(self._timers, (call.due, self._seq, call))
        self._seq += 1
        return call

    @property
    def pending_frames(self) -> int:
        return sum(1 for c in self._frames if not c.cancelled)

    @property
    def pending_timers(self) -> int:
        return sum(1 for _, _, c in self._timers if not c.cancelled)

    def run_frames(self, max_frames: int = 1) -> int:
        """Run up to max_frames animation frames. Frames requested during a frame run on the next one."""
        ran = 0
        for _ in range(max_frames):
            batch, self._frames = self._frames, []
            live = [c for c in batch if not c.cancelled]
            if not live:
                break
            for call in live:
                call.callback()
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in order. Returns the number fired."""
        self.now += seconds
        fired = 0
        while self._timers and self._timers[0][0] <= self.now + 1e-12:
            _, _, call = heapq.heappop(self._timers)
            if call.cancelled:
                continue
            call.callback()
            fired += 1
        return fired


# ----- Renderer -----

_REDRAW_EVENTS = frozenset({
    ViewportEventKind.BOUNDS_CHANGED,
    ViewportEventKind.CENTER_CHANGED,
    ViewportEventKind.DRAG,
    ViewportEventKind.DRAG_END,
    ViewportEventKind.IDLE,
    ViewportEventKind.RESIZE,
})


class TetherRenderer:
    """Reactive tether/panel recomputation for one marker id."""

    def __init__(
        self,
        marker_id: str,
        registry: PanelRegistry,
        provider: ViewportProvider,
        scheduler: FrameScheduler,
        sink: Callable[[OverlayFrame], None],
        gesture: PanelGestureController | None = None,
        minimized_size: PanelSize | None = None,
    ) -> None:
        self.marker_id = marker_id
        self.registry = registry
        self.provider = provider
        self.scheduler = scheduler
        self.sink = sink
        self.gesture = gesture
        self.minimized_size = minimized_size
        self.last_frame: OverlayFrame | None = None
        self.frames_drawn = 0
        self.pending = False
        self._zooming = False
        self._frame_call: ScheduledCall | None = None
        self._settle_call: ScheduledCall | None = None
        self._subscriptions: list[Subscription] = [
            provider.events.subscribe(self._on_viewport),
            registry.subscribe(self._on_registry),
        ]

    @property
    def zooming(self) -> bool:
        return self._zooming

    @property
    def disposed(self) -> bool:
        return not self._subscriptions

    def redraw(self) -> OverlayFrame | None:
        """Recompute and emit one frame. Defers (pending) when the projection is unavailable."""
        if self.disposed:
            return None
        panel = self.registry.get(self.marker_id)
        if panel is None:
            return None
        try:
            viewport = current_viewport(self.provider)
            marker_px = to_pixel(panel.anchor, viewport)
            dragging = self.registry.gesture_state(self.marker_id) == GestureState.DRAGGING
            live = self.gesture.live_center_px if (dragging and self.gesture is not None) else None
            panel_px = live if live is not None else to_pixel(panel.floating, viewport)
        except ProjectionUnavailable:
            self.pending = True
            logger.debug("Tether redraw for %s deferred: projection unavailable", self.marker_id)
            return None

        size = effective_size(panel, self.minimized_size)
        if self.gesture is not None and self.gesture.live_size is not None and not panel.minimized:
            size = self.gesture.live_size
        frame = OverlayFrame(
            marker_id=self.marker_id,
            marker_px=marker_px,
            panel_center_px=panel_px,
            panel_size=size,
            tether=compute_tether(marker_px, panel_px),
            minimized=panel.minimized,
            dragging=dragging,
        )
        self.pending = False
        self.last_frame = frame
        self.frames_drawn += 1
        if OVERLAY_DEBUG:
            logger.debug(
                "Tether %s: len=%.1fpx angle=%.1fdeg",
                self.marker_id, frame.tether.length_px, frame.tether.angle_deg,
            )
        self.sink(frame)
        return frame

    def _on_viewport(self, event: ViewportChanged) -> None:
        if event.kind == ViewportEventKind.ZOOM_CHANGED:
            self._start_zoom_loop()
            self.redraw()
        elif event.kind in _REDRAW_EVENTS:
            self.redraw()

    def _on_registry(self, change: RegistryChange) -> None:
        if self.marker_id not in change.ids:
            return
        if not self.registry.has(self.marker_id):
            self.dispose()
            return
        self.redraw()

    def _start_zoom_loop(self) -> None:
        self._zooming = True
        if self._frame_call is None:
            self._frame_call = self.scheduler.request_frame(self._on_frame)
        if self._settle_call is not None:
            self._settle_call.cancel()
        self._settle_call = self.scheduler.call_later(ZOOM_SETTLE_S, self._on_zoom_settled)

    def _on_frame(self) -> None:
        self._frame_call = None
        if self.disposed:
            return
        self.redraw()
        if self._zooming:
            self._frame_call = self.scheduler.request_frame(self._on_frame)

    def _on_zoom_settled(self) -> None:
        self._settle_call = None
        self._zooming = False
        self.redraw()

    def dispose(self) -> None:
        """Drop every subscription and cancel the frame loop and settle timer. Idempotent."""
        subs, self._subscriptions = self._subscriptions, []
        for sub in subs:
            sub.dispose()
        if self._frame_call is not None:
            self._frame_call.cancel()
            self._frame_call = None
        if self._settle_call is not None:
            self._settle_call.cancel()
            self._settle_call = None
        self._zooming = False
