# mapoverlay/core/session.py
"""
Map page facade: wires the registry, gesture controllers, tether renderers,
arrangement, category filter, persistence and snapshots around one ViewportProvider.

One MapSession per mounted map. dispose() tears down every subscription it created.
Storage failures become user-facing notifications, never exceptions.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from mapoverlay.core.bounds import minimize_preset_size
from mapoverlay.core.config import DEFAULT_MINIMIZE_PRESET
from mapoverlay.core.error_codes import (
    PROJECTION_UNAVAILABLE,
    SNAPSHOT_NOT_FOUND,
    STORAGE_WRITE_FAILED,
    ProjectionUnavailable,
    StorageUnavailable,
    user_message,
)
from mapoverlay.core.gestures import PanelGestureController
from mapoverlay.core.layout import ARRANGE_MODES, LayoutSummary, place_new_panel, run_auto_arrange
from mapoverlay.core.markers import CATEGORY_IDS, MarkerData, visible_marker_ids
from mapoverlay.core.projection import is_projectable, to_pixel
from mapoverlay.core.registry import PanelRegistry, RegistryChange
from mapoverlay.core.snapshots import SnapshotStore
from mapoverlay.core.storage import (
    KeyValueStore,
    MemoryStore,
    PanelSizeSettings,
    load_category_filter,
    load_registry,
    load_size_settings,
    save_category_filter,
    save_registry,
    save_size_settings,
)
from mapoverlay.core.tether import FrameScheduler, ManualScheduler, OverlayFrame, TetherRenderer
from mapoverlay.core.types import GeoPoint, GestureState, PanelSize, PanelState, PixelPoint, Snapshot
from mapoverlay.core.viewport import Subscription, ViewportProvider, current_viewport

logger = logging.getLogger(__name__)


class MapSession:
    """Everything the map page needs to manage info windows for one set of markers."""

    def __init__(
        self,
        provider: ViewportProvider,
        markers: Iterable[MarkerData],
        store: KeyValueStore | None = None,
        scheduler: FrameScheduler | None = None,
        sink: Callable[[OverlayFrame], None] | None = None,
        snap_to_edge: bool = False,
        minimize_preset: str = DEFAULT_MINIMIZE_PRESET,
        snapshot_store: SnapshotStore | None = None,
    ) -> None:
        self.provider = provider
        self.markers: dict[str, MarkerData] = {m.id: m for m in markers}
        self.store = store if store is not None else MemoryStore()
        self.scheduler = scheduler if scheduler is not None else ManualScheduler()
        self.snap_to_edge = snap_to_edge
        self.minimized_size: PanelSize = minimize_preset_size(minimize_preset)
        self.snapshots = snapshot_store if snapshot_store is not None else SnapshotStore(self.store)
        self.notifications: list[str] = []
        self.frames: dict[str, OverlayFrame] = {}
        self._external_sink = sink

        self.size_settings = load_size_settings(self.store)
        self.active_categories: list[str] = load_category_filter(self.store, list(CATEGORY_IDS))
        self.registry = PanelRegistry(default_size=self.size_settings.default_size)
        self._controllers: dict[str, PanelGestureController] = {}
        self._renderers: dict[str, TetherRenderer] = {}

        restored = load_registry(self.store)
        if restored:
            self.registry.replace_all(restored)
            logger.info("Restored %d open panel(s) from storage", len(restored))
        self._registry_sub: Subscription | None = self.registry.subscribe(self._on_registry_change)
        self._sync_panels()

    # ----- notifications -----

    def notify(self, error_key: str) -> None:
        msg = user_message(error_key)
        if not self.notifications or self.notifications[-1] != msg:
            self.notifications.append(msg)

    def drain_notifications(self) -> list[str]:
        out, self.notifications = self.notifications, []
        return out

    def _persist(self, action: Callable[[], None]) -> bool:
        try:
            action()
            return True
        except StorageUnavailable as e:
            logger.warning("Storage write failed: %s", e)
            self.notify(STORAGE_WRITE_FAILED)
            return False

    # ----- registry wiring -----

    def _sink(self, frame: OverlayFrame) -> None:
        self.frames[frame.marker_id] = frame
        if self._external_sink is not None:
            self._external_sink(frame)

    def _sync_panels(self) -> None:
        """Create controllers/renderers for open panels; drop those of closed ones."""
        open_ids = set(self.registry.ids())
        for pid in list(self._renderers):
            if pid not in open_ids:
                self._renderers.pop(pid).dispose()
                self._controllers.pop(pid).cancel()
                self.frames.pop(pid, None)
        for pid in self.registry.ids():
            if pid in self._renderers:
                continue
            controller = PanelGestureController(
                pid,
                self.registry,
                self.provider,
                snap_to_edge=self.snap_to_edge,
                minimized_size=self.minimized_size,
            )
            self._controllers[pid] = controller
            renderer = TetherRenderer(
                pid,
                self.registry,
                self.provider,
                self.scheduler,
                self._sink,
                gesture=controller,
                minimized_size=self.minimized_size,
            )
            self._renderers[pid] = renderer
            renderer.redraw()

    def _on_registry_change(self, change: RegistryChange) -> None:
        if change.kind == "gesture":
            return
        if change.kind in ("opened", "closed", "replaced"):
            self._sync_panels()
        if change.kind == "replaced":
            # Restored state wins over any gesture that was in flight
            for controller in self._controllers.values():
                if controller.state != GestureState.IDLE:
                    controller.abort()
        self._persist(lambda: save_registry(self.store, self.registry.states()))

    # ----- panels -----

    def visible_ids(self) -> set[str]:
        """Open panels whose marker passes the category filter."""
        shown = visible_marker_ids(self.markers.values(), self.active_categories)
        return {pid for pid in self.registry.ids() if pid in shown or pid not in self.markers}

    def open_panel(self, marker_id: str) -> PanelState | None:
        marker = self.markers.get(marker_id)
        if marker is None:
            logger.warning("open_panel: unknown marker id %s", marker_id)
            return None
        return place_new_panel(
            self.registry,
            self.provider,
            marker_id,
            marker.position,
            visible_ids=self.visible_ids(),
            minimized_size=self.minimized_size,
        )

    def close_panel(self, marker_id: str) -> bool:
        return self.registry.close(marker_id)

    def close_all(self) -> list[str]:
        return self.registry.close_all()

    def set_minimized(self, marker_id: str, minimized: bool) -> PanelState | None:
        return self.registry.set_minimized(marker_id, minimized)

    def toggle_minimized(self, marker_id: str) -> PanelState | None:
        state = self.registry.get(marker_id)
        if state is None:
            return None
        return self.registry.set_minimized(marker_id, not state.minimized)

    def controller(self, marker_id: str) -> PanelGestureController | None:
        return self._controllers.get(marker_id)

    def renderer(self, marker_id: str) -> TetherRenderer | None:
        return self._renderers.get(marker_id)

    def drag_panel(self, marker_id: str, dx_px: float, dy_px: float, steps: int = 1) -> GeoPoint | None:
        """Grab the panel at its center and drop it dx/dy pixels away."""
        controller = self._controllers.get(marker_id)
        state = self.registry.get(marker_id)
        if controller is None or state is None:
            return None
        try:
            viewport = current_viewport(self.provider)
        except ProjectionUnavailable as e:
            logger.warning("drag_panel(%s) skipped: %s", marker_id, e)
            self.notify(PROJECTION_UNAVAILABLE)
            return None
        start = to_pixel(state.floating, viewport)
        if not controller.pointer_down(start):
            return None
        steps = max(1, steps)
        for i in range(1, steps + 1):
            controller.pointer_move(PixelPoint(start.x + dx_px * i / steps, start.y + dy_px * i / steps))
        return controller.pointer_up()

    def resize_panel(self, marker_id: str, dw_px: float, dh_px: float, lock_aspect: bool = False) -> PanelSize | None:
        controller = self._controllers.get(marker_id)
        if controller is None or not controller.resize_down(PixelPoint(0.0, 0.0)):
            return None
        return controller.resize_up(PixelPoint(dw_px, dh_px), lock_aspect=lock_aspect)

    def arrange(self, mode: str) -> LayoutSummary | None:
        summary = run_auto_arrange(
            self.registry,
            self.provider,
            mode,
            visible_ids=self.visible_ids(),
            minimized_size=self.minimized_size,
        )
        if summary is None and mode in ARRANGE_MODES:
            self.notify(PROJECTION_UNAVAILABLE)
        return summary

    # ----- categories -----

    def set_category_filter(self, category_ids: Iterable[str]) -> list[str]:
        known = set(CATEGORY_IDS)
        self.active_categories = [c for c in dict.fromkeys(category_ids) if c in known]
        self._persist(lambda: save_category_filter(self.store, self.active_categories))
        return self.active_categories

    def toggle_category(self, category_id: str) -> list[str]:
        if category_id in self.active_categories:
            return self.set_category_filter([c for c in self.active_categories if c != category_id])
        return self.set_category_filter(self.active_categories + [category_id])

    # ----- size settings -----

    def update_size_settings(self, settings: PanelSizeSettings) -> PanelSizeSettings:
        """Persist new defaults; with auto_apply_to_existing every open panel takes the new size."""
        stored = settings
        try:
            stored = save_size_settings(self.store, settings)
        except StorageUnavailable as e:
            logger.warning("Storage write failed: %s", e)
            self.notify(STORAGE_WRITE_FAILED)
        self.size_settings = stored
        self.registry.default_size = stored.default_size
        if stored.auto_apply_to_existing:
            for pid in self.registry.ids():
                self.registry.set_size(pid, stored.default_size)
        return stored

    # ----- snapshots -----

    def save_snapshot(self, title: str = "") -> Snapshot | None:
        viewport = self.provider.viewport()
        if viewport is None or not is_projectable(viewport):
            self.notify(PROJECTION_UNAVAILABLE)
            return None
        try:
            return self.snapshots.save(
                title,
                self.registry.states(),
                viewport.center,
                viewport.zoom,
                list(self.active_categories),
            )
        except StorageUnavailable as e:
            logger.warning("Snapshot save failed: %s", e)
            self.notify(STORAGE_WRITE_FAILED)
            return None

    def restore_snapshot(self, snapshot_id: str) -> bool:
        """Restore viewport, category filter and registry. The registry is replaced, not merged."""
        snap = self.snapshots.get(snapshot_id)
        if snap is None:
            self.notify(SNAPSHOT_NOT_FOUND)
            return False
        self.provider.set_view(snap.viewport_center, snap.viewport_zoom)
        self.set_category_filter(snap.active_category_filters)
        self.registry.replace_all(snap.panels)
        logger.info("Restored snapshot %s (%d panels)", snap.id, snap.panel_count)
        return True

    def list_snapshots(self) -> list[Snapshot]:
        return self.snapshots.list()

    def rename_snapshot(self, snapshot_id: str, title: str) -> Snapshot | None:
        try:
            return self.snapshots.update_title(snapshot_id, title)
        except StorageUnavailable:
            self.notify(STORAGE_WRITE_FAILED)
            return None

    def delete_snapshot(self, snapshot_id: str) -> bool:
        try:
            return self.snapshots.delete(snapshot_id)
        except StorageUnavailable:
            self.notify(STORAGE_WRITE_FAILED)
            return False

    def clear_snapshots(self) -> bool:
        try:
            self.snapshots.clear_all()
        except StorageUnavailable as e:
            logger.warning("Clearing snapshots failed: %s", e)
            self.notify(STORAGE_WRITE_FAILED)
            return False
        return True

    # ----- rendering -----

    def visible_frames(self) -> list[OverlayFrame]:
        """Latest frames of visible panels, in opening order."""
        shown = self.visible_ids()
        return [self.frames[pid] for pid in self.registry.ids() if pid in shown and pid in self.frames]

    def redraw_all(self) -> None:
        for renderer in self._renderers.values():
            renderer.redraw()

    def dispose(self) -> None:
        """Tear down every renderer, gesture and registry subscription. Idempotent."""
        for controller in self._controllers.values():
            controller.cancel()
        for renderer in self._renderers.values():
            renderer.dispose()
        self._controllers.clear()
        self._renderers.clear()
        if self._registry_sub is not None:
            self._registry_sub.dispose()
            self._registry_sub = None
