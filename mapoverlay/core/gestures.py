# mapoverlay/core/gestures.py
"""
Manual placement controller: per-panel drag and resize state machines.

While a gesture is active only pixel state changes; the registry is written once,
at the end, through commit_position (pixel -> geo) or set_size. Host-map panning is
disabled for the duration of a gesture and always re-enabled when it ends.
"""

from __future__ import annotations

import logging

from mapoverlay.core.bounds import clamp_size, clamp_size_keep_ratio, effective_size
from mapoverlay.core.error_codes import ProjectionUnavailable
from mapoverlay.core.projection import to_geo, to_pixel
from mapoverlay.core.registry import PanelRegistry
from mapoverlay.core.strategies import snap_to_nearest_edge
from mapoverlay.core.types import GeoPoint, GestureState, PanelSize, PixelPoint, ViewportState
from mapoverlay.core.viewport import ViewportProvider, current_viewport

logger = logging.getLogger(__name__)


def commit_position(center_px: PixelPoint, viewport: ViewportState | None) -> GeoPoint:
    """The single pixel -> geo conversion at gesture end. Raises ProjectionUnavailable."""
    return to_geo(center_px, viewport)


class PanelGestureController:
    """Drag / resize state machine for one panel. Independent of other panels' controllers."""

    def __init__(
        self,
        marker_id: str,
        registry: PanelRegistry,
        provider: ViewportProvider,
        snap_to_edge: bool = False,
        minimized_size: PanelSize | None = None,
    ) -> None:
        self.marker_id = marker_id
        self.registry = registry
        self.provider = provider
        self.snap_to_edge = snap_to_edge
        self.minimized_size = minimized_size
        self._state = GestureState.IDLE
        self._grab_offset = PixelPoint(0.0, 0.0)
        self._live_center: PixelPoint | None = None
        self._resize_origin: PixelPoint | None = None
        self._start_size: PanelSize | None = None
        self._live_size: PanelSize | None = None

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def live_center_px(self) -> PixelPoint | None:
        """Panel center in viewport pixels while dragging; None otherwise."""
        return self._live_center if self._state == GestureState.DRAGGING else None

    @property
    def live_top_left_px(self) -> PixelPoint | None:
        center = self.live_center_px
        state = self.registry.get(self.marker_id)
        if center is None or state is None:
            return None
        size = effective_size(state, self.minimized_size)
        return center.offset(-size.width / 2.0, -size.height / 2.0)

    @property
    def live_size(self) -> PanelSize | None:
        """Panel size while resizing; None otherwise."""
        return self._live_size if self._state == GestureState.RESIZING else None

    def _begin(self, gesture: GestureState) -> bool:
        if not self.registry.begin_gesture(self.marker_id, gesture):
            return False
        self.provider.set_panning_enabled(False)
        self._state = gesture
        return True

    def _end(self) -> None:
        self._state = GestureState.IDLE
        self._live_center = None
        self._resize_origin = None
        self._start_size = None
        self._live_size = None
        self.registry.end_gesture(self.marker_id)
        self.provider.set_panning_enabled(True)

    # ----- drag -----

    def pointer_down(self, pointer_px: PixelPoint) -> bool:
        """Idle -> Dragging. Stays Idle when the panel is closed or the map cannot project yet."""
        if self._state != GestureState.IDLE:
            return False
        panel = self.registry.get(self.marker_id)
        if panel is None:
            logger.warning("pointer_down on unknown panel id %s ignored", self.marker_id)
            return False
        try:
            center = to_pixel(panel.floating, current_viewport(self.provider))
        except ProjectionUnavailable:
            logger.debug("pointer_down deferred for %s: projection unavailable", self.marker_id)
            return False
        if not self._begin(GestureState.DRAGGING):
            return False
        self._grab_offset = PixelPoint(pointer_px.x - center.x, pointer_px.y - center.y)
        self._live_center = center
        return True

    def pointer_move(self, pointer_px: PixelPoint) -> PixelPoint | None:
        """Track the pointer in pixel space. Returns the live panel center."""
        if self._state != GestureState.DRAGGING:
            return None
        self._live_center = PixelPoint(pointer_px.x - self._grab_offset.x, pointer_px.y - self._grab_offset.y)
        return self._live_center

    def pointer_up(self, pointer_px: PixelPoint | None = None) -> GeoPoint | None:
        """Dragging -> Idle. Commits the final position; returns it (None if nothing was committed)."""
        if self._state != GestureState.DRAGGING:
            return None
        if pointer_px is not None:
            self.pointer_move(pointer_px)
        return self._finish_drag()

    def pointer_leave(self) -> GeoPoint | None:
        """Pointer lost without a release (blur, cancel): commit at the last known position."""
        return self.pointer_up(None)

    def _finish_drag(self) -> GeoPoint | None:
        committed: GeoPoint | None = None
        try:
            viewport = current_viewport(self.provider)
            if self._live_center is None:
                return None
            geo = commit_position(self._live_center, viewport)
            if self.snap_to_edge:
                panel = self.registry.get(self.marker_id)
                if panel is not None:
                    geo = snap_to_nearest_edge(geo, effective_size(panel, self.minimized_size), viewport)
            if self.registry.set_floating(self.marker_id, geo, user_positioned=True) is not None:
                committed = geo
        except ProjectionUnavailable:
            logger.warning("Drag of %s ended without a projection; keeping previous position", self.marker_id)
        finally:
            self._end()
        return committed

    # ----- resize -----

    def resize_down(self, pointer_px: PixelPoint) -> bool:
        """Idle -> Resizing from the bottom-right handle."""
        if self._state != GestureState.IDLE:
            return False
        panel = self.registry.get(self.marker_id)
        if panel is None:
            logger.warning("resize_down on unknown panel id %s ignored", self.marker_id)
            return False
        if not self._begin(GestureState.RESIZING):
            return False
        self._resize_origin = pointer_px
        self._start_size = panel.size
        self._live_size = panel.size
        return True

    def resize_move(self, pointer_px: PixelPoint, lock_aspect: bool = False) -> PanelSize | None:
        """
        New size from the pointer delta since resize_down. With lock_aspect the height
        follows the width at the ratio captured when the gesture started, and the size
        limits scale both axes together so the ratio survives clamping.
        """
        if self._state != GestureState.RESIZING or self._resize_origin is None or self._start_size is None:
            return None
        start = self._start_size
        width = start.width + (pointer_px.x - self._resize_origin.x)
        height = start.height + (pointer_px.y - self._resize_origin.y)
        if lock_aspect and start.height > 0:
            height = width / (start.width / start.height)
            self._live_size = clamp_size_keep_ratio(PanelSize(width, height))
        else:
            self._live_size = clamp_size(PanelSize(width, height))
        return self._live_size

    def resize_up(self, pointer_px: PixelPoint | None = None, lock_aspect: bool = False) -> PanelSize | None:
        """Resizing -> Idle. Commits the size; the floating center does not move."""
        if self._state != GestureState.RESIZING:
            return None
        if pointer_px is not None:
            self.resize_move(pointer_px, lock_aspect=lock_aspect)
        size = self._live_size
        try:
            if size is not None and self.registry.set_size(self.marker_id, size) is not None:
                return size
            return None
        finally:
            self._end()

    def resize_leave(self) -> PanelSize | None:
        return self.resize_up(None)

    def abort(self) -> None:
        """Drop any gesture without committing; the registry keeps whatever it holds now."""
        if self._state == GestureState.IDLE:
            return
        logger.debug("Gesture %s on %s aborted", self._state.value, self.marker_id)
        self._end()

    def cancel(self) -> None:
        """End any gesture: commit if the panel is still open, else just release panning."""
        if self._state == GestureState.IDLE:
            return
        if not self.registry.has(self.marker_id):
            self._end()
        elif self._state == GestureState.DRAGGING:
            self.pointer_leave()
        elif self._state == GestureState.RESIZING:
            self.resize_leave()
