# tests/test_viewport.py
"""
Viewport event stream: disposable subscriptions, gesture tracking,
panning lock and the simulated host map.
"""

from __future__ import annotations

import pytest

from mapoverlay.core.error_codes import ProjectionUnavailable
from mapoverlay.core.projection import to_pixel
from mapoverlay.core.types import GeoPoint, ViewportGesture
from mapoverlay.core.viewport import (
    SimulatedViewport,
    ViewportChanged,
    ViewportEventBus,
    ViewportEventKind,
    current_viewport,
)


def _map(ready: bool = True) -> SimulatedViewport:
    return SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 1200, 800, ready=ready)


def test_subscription_dispose_is_idempotent() -> None:
    bus = ViewportEventBus()
    seen: list[ViewportChanged] = []
    sub = bus.subscribe(seen.append)
    bus.emit(ViewportEventKind.IDLE, None)
    sub.dispose()
    sub.dispose()
    bus.emit(ViewportEventKind.IDLE, None)
    assert len(seen) == 1
    assert not sub.active
    assert bus.listener_count == 0


def test_subscription_context_manager() -> None:
    bus = ViewportEventBus()
    with bus.subscribe(lambda e: None):
        assert bus.listener_count == 1
    assert bus.listener_count == 0


def test_handler_may_dispose_during_emit() -> None:
    bus = ViewportEventBus()
    calls: list[str] = []
    subs = {}

    def first(_: ViewportChanged) -> None:
        calls.append("first")
        subs["second"].dispose()

    subs["first"] = bus.subscribe(first)
    subs["second"] = bus.subscribe(lambda e: calls.append("second"))
    bus.emit(ViewportEventKind.DRAG, None)
    assert calls == ["first"]


def test_gesture_tracking() -> None:
    bus = ViewportEventBus()
    assert bus.gesture == ViewportGesture.IDLE
    bus.emit(ViewportEventKind.DRAG_START, None)
    assert bus.gesture == ViewportGesture.PANNING
    bus.emit(ViewportEventKind.DRAG_END, None)
    assert bus.gesture == ViewportGesture.IDLE
    bus.emit(ViewportEventKind.ZOOM_CHANGED, None)
    assert bus.gesture == ViewportGesture.ZOOMING
    bus.emit(ViewportEventKind.IDLE, None)
    assert bus.gesture == ViewportGesture.IDLE


def test_drag_moves_center_and_emits_sequence() -> None:
    vm = _map()
    kinds: list[ViewportEventKind] = []
    vm.events.subscribe(lambda e: kinds.append(e.kind))
    before = vm.viewport()
    vm.drag(100, 0, steps=2)
    after = vm.viewport()
    assert after.center.lng < before.center.lng
    assert kinds[0] == ViewportEventKind.DRAG_START
    assert kinds.count(ViewportEventKind.DRAG) == 2
    assert ViewportEventKind.DRAG_END in kinds
    # The old center now sits 100px right of the middle
    assert to_pixel(before.center, after).x == pytest.approx(700.0)


def test_drag_ignored_when_panning_disabled() -> None:
    vm = _map()
    vm.set_panning_enabled(False)
    before = vm.viewport()
    vm.drag(100, 100)
    assert vm.viewport() == before


def test_not_ready_map_has_no_viewport() -> None:
    vm = _map(ready=False)
    assert vm.viewport() is None
    with pytest.raises(ProjectionUnavailable):
        current_viewport(vm)
    kinds: list[ViewportEventKind] = []
    vm.events.subscribe(lambda e: kinds.append(e.kind))
    vm.set_ready()
    assert kinds == [ViewportEventKind.IDLE]
    assert current_viewport(vm).zoom == 10.0


def test_set_view_and_zoom() -> None:
    vm = _map()
    vm.set_view(GeoPoint(34.0, 138.0), 12.0)
    assert vm.viewport().center == GeoPoint(34.0, 138.0)
    vm.zoom_to(-3)
    assert vm.viewport().zoom == 0.0
