# mapoverlay/core/bounds.py
"""
Panel bounding boxes in geographic space, sized from the panel's current pixel size.
Bounds are a function of the current viewport; recompute after any zoom.
"""

from __future__ import annotations

from mapoverlay.core.config import (
    DEFAULT_MINIMIZE_PRESET,
    MAX_PANEL_HEIGHT_PX,
    MAX_PANEL_WIDTH_PX,
    MINIMIZE_PRESETS,
    MIN_PANEL_HEIGHT_PX,
    MIN_PANEL_WIDTH_PX,
)
from mapoverlay.core.error_codes import ProjectionUnavailable, ViewportBoundsUnavailable
from mapoverlay.core.projection import degrees_per_pixel
from mapoverlay.core.types import GeoPoint, PanelBounds, PanelSize, PanelState, ViewportState


def minimize_preset_size(preset: str = DEFAULT_MINIMIZE_PRESET) -> PanelSize:
    """Size of a minimized panel for the named preset; unknown names use the default preset."""
    w, h = MINIMIZE_PRESETS.get(preset, MINIMIZE_PRESETS[DEFAULT_MINIMIZE_PRESET])
    return PanelSize(w, h)


def clamp_size(size: PanelSize) -> PanelSize:
    """Clamp a user size to the allowed width/height range."""
    return PanelSize(
        width=max(MIN_PANEL_WIDTH_PX, min(MAX_PANEL_WIDTH_PX, size.width)),
        height=max(MIN_PANEL_HEIGHT_PX, min(MAX_PANEL_HEIGHT_PX, size.height)),
    )


def clamp_size_keep_ratio(size: PanelSize) -> PanelSize:
    """
    Scale width and height by one factor so both land in the allowed range.
    When no single factor fits both ranges (extreme ratios), falls back to clamp_size.
    """
    if size.width <= 0 or size.height <= 0:
        return clamp_size(size)
    lowest = max(MIN_PANEL_WIDTH_PX / size.width, MIN_PANEL_HEIGHT_PX / size.height)
    highest = min(MAX_PANEL_WIDTH_PX / size.width, MAX_PANEL_HEIGHT_PX / size.height)
    if lowest > highest:
        return clamp_size(size)
    factor = min(max(1.0, lowest), highest)
    return PanelSize(size.width * factor, size.height * factor)


def effective_size(state: PanelState, minimized_size: PanelSize | None = None) -> PanelSize:
    """Current on-screen size: minimized preset when minimized, otherwise the panel's own size."""
    if state.minimized:
        return minimized_size if minimized_size is not None else minimize_preset_size()
    return state.size


def half_extent_deg(size_px: PanelSize, viewport: ViewportState | None, padding_px: float = 0.0) -> tuple[float, float]:
    """(half_height_lat, half_width_lng) of a panel of size_px at the current zoom."""
    try:
        lat_per_px, lng_per_px = degrees_per_pixel(viewport)
    except ProjectionUnavailable as e:
        raise ViewportBoundsUnavailable(str(e)) from e
    return (
        (size_px.height + padding_px) / 2.0 * lat_per_px,
        (size_px.width + padding_px) / 2.0 * lng_per_px,
    )


def compute_bounds(
    panel_id: str,
    center: GeoPoint,
    size_px: PanelSize,
    viewport: ViewportState | None,
    padding_px: float = 0.0,
) -> PanelBounds:
    """
    Bounding box of a panel centered at center with size_px (+ padding_px) at the current zoom.
    Raises ViewportBoundsUnavailable when the viewport cannot project.
    """
    half_lat, half_lng = half_extent_deg(size_px, viewport, padding_px)
    return PanelBounds(
        panel_id=panel_id,
        north=center.lat + half_lat,
        south=center.lat - half_lat,
        east=center.lng + half_lng,
        west=center.lng - half_lng,
        center_lat=center.lat,
        center_lng=center.lng,
    )


def panel_bounds(
    state: PanelState,
    viewport: ViewportState | None,
    minimized_size: PanelSize | None = None,
    padding_px: float = 0.0,
) -> PanelBounds:
    """Bounds of a registry entry at its floating position and current size."""
    return compute_bounds(
        state.marker_id,
        state.floating,
        effective_size(state, minimized_size),
        viewport,
        padding_px=padding_px,
    )
