# tests/test_tether.py
"""
Tether renderer: segment geometry, redraw triggers, live drag position,
zoom frame loop with settle timer, deferred redraw, teardown.
"""

from __future__ import annotations

import pytest

from mapoverlay.core.gestures import PanelGestureController
from mapoverlay.core.projection import to_geo, to_pixel
from mapoverlay.core.registry import PanelRegistry
from mapoverlay.core.tether import ManualScheduler, OverlayFrame, TetherRenderer, compute_tether
from mapoverlay.core.types import GeoPoint, PixelPoint
from mapoverlay.core.viewport import SimulatedViewport


def _setup(ready: bool = True):
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 1200, 800, ready=ready)
    reg = PanelRegistry()
    anchor = GeoPoint(35.0, 139.0)
    reg.open("m1", anchor)
    sched = ManualScheduler()
    frames: list[OverlayFrame] = []
    ctl = PanelGestureController("m1", reg, vm)
    renderer = TetherRenderer("m1", reg, vm, sched, frames.append, gesture=ctl)
    return vm, reg, sched, frames, ctl, renderer


def test_compute_tether_length_and_angle() -> None:
    t = compute_tether(PixelPoint(0, 0), PixelPoint(3, 4))
    assert t.length_px == pytest.approx(5.0)
    assert t.angle_deg == pytest.approx(53.130102, rel=1e-6)
    assert compute_tether(PixelPoint(1, 1), PixelPoint(1, 1)).length_px == 0.0


def test_fresh_panel_has_zero_length_tether() -> None:
    _, _, _, frames, _, renderer = _setup()
    frame = renderer.redraw()
    assert frame is not None
    assert frame.tether.length_px == pytest.approx(0.0, abs=1e-9)
    assert frames[-1] is frame


def test_redraw_follows_pan_and_position_change() -> None:
    vm, reg, _, frames, _, _ = _setup()
    vm.pan_by(100, 0)
    assert frames, "pan must trigger a redraw"
    assert frames[-1].marker_px.x == pytest.approx(600.0 + 100.0, abs=1e-6)
    target = to_geo(PixelPoint(700, 200), vm.viewport())
    reg.set_floating("m1", target)
    last = frames[-1]
    assert last.panel_center_px.x == pytest.approx(700.0, abs=1e-6)
    assert last.panel_center_px.y == pytest.approx(200.0, abs=1e-6)
    assert last.tether.length_px > 0


def test_drag_uses_live_position_and_never_writes_registry() -> None:
    vm, reg, _, frames, ctl, _ = _setup()
    before = reg.get("m1")
    start = to_pixel(before.floating, vm.viewport())
    ctl.pointer_down(start)
    ctl.pointer_move(start.offset(150, -50))
    vm.settle()
    frame = frames[-1]
    assert frame.dragging
    assert frame.panel_center_px == start.offset(150, -50)
    assert frame.tether.length_px == pytest.approx((150 ** 2 + 50 ** 2) ** 0.5)
    assert reg.get("m1") == before


def test_zoom_loop_stops_after_settle() -> None:
    vm, _, sched, _, _, renderer = _setup()
    vm.zoom_to(11.0)
    assert renderer.zooming
    assert sched.pending_frames == 1
    drawn = renderer.frames_drawn
    assert sched.run_frames(3) == 3
    assert renderer.frames_drawn == drawn + 3
    assert sched.advance(0.2) == 1
    assert not renderer.zooming
    # The one frame already requested runs, then the loop ends
    assert sched.run_frames(5) == 1
    assert sched.pending_frames == 0


def test_zoom_settle_timer_is_rearmed() -> None:
    vm, _, sched, _, _, renderer = _setup()
    vm.zoom_to(11.0)
    sched.advance(0.15)
    vm.zoom_to(12.0)
    sched.advance(0.1)
    assert renderer.zooming
    sched.advance(0.1)
    assert not renderer.zooming
    assert sched.pending_timers == 0


def test_projection_unavailable_defers_until_idle() -> None:
    vm, _, _, frames, _, renderer = _setup(ready=False)
    assert renderer.redraw() is None
    assert renderer.pending
    assert frames == []
    vm.set_ready()
    assert not renderer.pending
    assert len(frames) == 1


def test_dispose_tears_down_everything() -> None:
    vm, reg, sched, frames, _, renderer = _setup()
    vm.zoom_to(11.0)
    renderer.dispose()
    renderer.dispose()
    assert renderer.disposed
    assert vm.events.listener_count == 0
    assert reg.listener_count == 0
    assert sched.pending_frames == 0
    assert sched.pending_timers == 0
    n = len(frames)
    vm.pan_by(10, 10)
    assert len(frames) == n


def test_closing_panel_disposes_renderer() -> None:
    vm, reg, _, _, _, renderer = _setup()
    reg.close("m1")
    assert renderer.disposed
    assert vm.events.listener_count == 0
