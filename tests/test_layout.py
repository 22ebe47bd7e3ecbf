# tests/test_layout.py
"""
Applying arrangement plans: readiness no-op, busy and hidden panels left alone,
organized-edge bookkeeping, and new-panel overlap avoidance.
"""

from __future__ import annotations

from mapoverlay.core.bounds import compute_bounds
from mapoverlay.core.config import BOUNDS_PADDING_PX
from mapoverlay.core.geometry import overlaps
from mapoverlay.core.layout import place_new_panel, run_auto_arrange
from mapoverlay.core.projection import to_geo
from mapoverlay.core.registry import PanelRegistry
from mapoverlay.core.types import GeoPoint, GestureState, PixelPoint
from mapoverlay.core.viewport import SimulatedViewport


def _open_at(reg: PanelRegistry, vm: SimulatedViewport, pixels: dict[str, tuple[float, float]]) -> None:
    vp = vm.viewport()
    for pid, (x, y) in pixels.items():
        reg.open(pid, to_geo(PixelPoint(x, y), vp))


def _setup() -> tuple[PanelRegistry, SimulatedViewport]:
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 1200, 800)
    reg = PanelRegistry()
    _open_at(reg, vm, {"m1": (560, 150), "m2": (1000, 300), "m3": (200, 500), "m4": (700, 700)})
    return reg, vm


def test_arrange_without_viewport_is_noop() -> None:
    reg = PanelRegistry()
    reg.open("m1", GeoPoint(35.0, 139.0))
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 1200, 800, ready=False)
    before = reg.states()
    assert run_auto_arrange(reg, vm, "edge") is None
    assert reg.states() == before


def test_unknown_mode_is_noop() -> None:
    reg, vm = _setup()
    before = reg.states()
    assert run_auto_arrange(reg, vm, "spiral") is None
    assert reg.states() == before


def test_edge_arrange_records_edges_and_diagnostics() -> None:
    reg, vm = _setup()
    summary = run_auto_arrange(reg, vm, "edge")
    assert summary is not None
    assert summary.moved_ids == ["m1", "m2", "m3", "m4"]
    assert summary.crossings == 0
    assert summary.overlaps == 0
    assert summary.outside_viewport == 0
    for pid, s in reg.states().items():
        assert s.user_positioned
        assert s.organized_edge == summary.edges[pid]


def test_radial_arrange_clears_organized_edge() -> None:
    reg, vm = _setup()
    run_auto_arrange(reg, vm, "edge")
    summary = run_auto_arrange(reg, vm, "radial")
    assert summary is not None and summary.edges == {}
    assert all(s.organized_edge is None for s in reg.states().values())


def test_busy_panels_are_skipped() -> None:
    reg, vm = _setup()
    before = reg.get("m2")
    reg.begin_gesture("m2", GestureState.DRAGGING)
    summary = run_auto_arrange(reg, vm, "radial")
    assert summary is not None
    assert summary.skipped_busy == ["m2"]
    assert "m2" not in summary.moved_ids
    assert reg.get("m2") == before


def test_hidden_panels_keep_positions() -> None:
    reg, vm = _setup()
    hidden = reg.get("m4")
    summary = run_auto_arrange(reg, vm, "edge", visible_ids={"m1", "m2", "m3"})
    assert summary is not None
    assert summary.n_panels == 3
    assert reg.get("m4") == hidden


def test_place_new_panel_avoids_existing() -> None:
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 1200, 800)
    reg = PanelRegistry()
    reg.open("m1", vm.viewport().center)
    placed = place_new_panel(reg, vm, "m2", vm.viewport().center)
    assert placed.floating != placed.anchor
    assert not placed.user_positioned
    vp = vm.viewport()
    first = compute_bounds("m1", reg.get("m1").floating, reg.get("m1").size, vp, padding_px=BOUNDS_PADDING_PX)
    start = compute_bounds("m2", placed.anchor, placed.size, vp, padding_px=BOUNDS_PADDING_PX)
    assert overlaps(first, start)


def test_place_new_panel_without_conflict_stays_at_anchor() -> None:
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 1200, 800)
    reg = PanelRegistry()
    _open_at(reg, vm, {"m1": (200, 200)})
    anchor = to_geo(PixelPoint(900, 500), vm.viewport())
    placed = place_new_panel(reg, vm, "m2", anchor)
    assert placed.floating == anchor


def test_reopening_does_not_move_panel() -> None:
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 1200, 800)
    reg = PanelRegistry()
    center = vm.viewport().center
    reg.open("m1", center)
    reg.open("m2", center)
    assert place_new_panel(reg, vm, "m2", center).floating == center


def test_place_new_panel_without_viewport_still_opens() -> None:
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 1200, 800, ready=False)
    reg = PanelRegistry()
    reg.open("m1", GeoPoint(35.0, 139.0))
    placed = place_new_panel(reg, vm, "m2", GeoPoint(35.0, 139.0))
    assert reg.has("m2")
    assert placed.floating == GeoPoint(35.0, 139.0)
