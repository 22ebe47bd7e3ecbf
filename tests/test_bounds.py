# tests/test_bounds.py
"""
Bounds calculator: geo boxes from pixel sizes, padding, minimized sizes, size clamping.
"""

from __future__ import annotations

import pytest

from mapoverlay.core.bounds import (
    clamp_size,
    clamp_size_keep_ratio,
    compute_bounds,
    effective_size,
    minimize_preset_size,
    panel_bounds,
)
from mapoverlay.core.config import MINIMIZE_PRESETS
from mapoverlay.core.error_codes import ViewportBoundsUnavailable
from mapoverlay.core.projection import degrees_per_pixel
from mapoverlay.core.types import GeoPoint, PanelSize, PanelState, ViewportState


def _viewport() -> ViewportState:
    return ViewportState(center=GeoPoint(35.0, 139.0), zoom=10.0, width_px=1200, height_px=800)


def test_bounds_centered_and_sized_from_pixels() -> None:
    vp = _viewport()
    lat_pp, lng_pp = degrees_per_pixel(vp)
    b = compute_bounds("p", vp.center, PanelSize(240, 320), vp)
    assert b.panel_id == "p"
    assert b.center_lat == vp.center.lat
    assert b.center_lng == vp.center.lng
    assert b.width == pytest.approx(240 * lng_pp)
    assert b.height == pytest.approx(320 * lat_pp)
    assert (b.north + b.south) / 2 == pytest.approx(vp.center.lat)
    assert (b.east + b.west) / 2 == pytest.approx(vp.center.lng)


def test_padding_grows_box() -> None:
    vp = _viewport()
    plain = compute_bounds("p", vp.center, PanelSize(100, 100), vp)
    padded = compute_bounds("p", vp.center, PanelSize(100, 100), vp, padding_px=20)
    assert padded.width == pytest.approx(plain.width * 1.2)
    assert padded.height == pytest.approx(plain.height * 1.2)


def test_bounds_shrink_when_zooming_in() -> None:
    vp = _viewport()
    zoomed = ViewportState(vp.center, vp.zoom + 1, vp.width_px, vp.height_px)
    a = compute_bounds("p", vp.center, PanelSize(240, 320), vp)
    b = compute_bounds("p", vp.center, PanelSize(240, 320), zoomed)
    assert b.width == pytest.approx(a.width / 2, rel=1e-6)


def test_no_viewport_raises_bounds_unavailable() -> None:
    with pytest.raises(ViewportBoundsUnavailable):
        compute_bounds("p", GeoPoint(0, 0), PanelSize(10, 10), None)


def test_effective_size_uses_minimized_preset() -> None:
    state = PanelState("m1", GeoPoint(35, 139), GeoPoint(35, 139), size=PanelSize(300, 400))
    assert effective_size(state) == PanelSize(300, 400)
    mini = PanelState("m1", GeoPoint(35, 139), GeoPoint(35, 139), minimized=True, size=PanelSize(300, 400))
    assert effective_size(mini) == PanelSize(*MINIMIZE_PRESETS["small"])
    assert effective_size(mini, PanelSize(100, 160)) == PanelSize(100, 160)


def test_panel_bounds_follow_floating_position() -> None:
    vp = _viewport()
    state = PanelState("m1", vp.center, GeoPoint(35.05, 139.05))
    b = panel_bounds(state, vp)
    assert b.center_lat == 35.05
    assert b.center_lng == 139.05


def test_minimize_preset_unknown_falls_back() -> None:
    assert minimize_preset_size("tiny") == PanelSize(100, 160)
    assert minimize_preset_size("nope") == PanelSize(*MINIMIZE_PRESETS["small"])


def test_clamp_size() -> None:
    assert clamp_size(PanelSize(50, 50)) == PanelSize(120, 100)
    assert clamp_size(PanelSize(1000, 1000)) == PanelSize(600, 500)
    assert clamp_size(PanelSize(240, 320)) == PanelSize(240, 320)


def test_clamp_size_keep_ratio() -> None:
    big = clamp_size_keep_ratio(PanelSize(1000, 1000))
    assert (big.width, big.height) == pytest.approx((500, 500))
    small = clamp_size_keep_ratio(PanelSize(50, 50))
    assert (small.width, small.height) == pytest.approx((120, 120))
    assert clamp_size_keep_ratio(PanelSize(240, 320)) == PanelSize(240, 320)
    # No single factor fits a 20:1 panel into both ranges
    assert clamp_size_keep_ratio(PanelSize(1000, 50)) == PanelSize(600, 100)
