# mapoverlay/core/projection.py
"""
Coordinate bridge: geographic <-> viewport pixel coordinates.
Web Mercator world plane (TILE_SIZE_PX at zoom 0), scaled by 2**zoom and
centered on the viewport center. Pure functions; no state.
"""

from __future__ import annotations

import math

from mapoverlay.core.config import MAX_MERCATOR_SIN, TILE_SIZE_PX
from mapoverlay.core.error_codes import ProjectionUnavailable
from mapoverlay.core.types import GeoPoint, PixelPoint, ViewportState


def require_projection(viewport: ViewportState | None) -> ViewportState:
    """Return viewport if it can project; raise ProjectionUnavailable otherwise."""
    if viewport is None:
        raise ProjectionUnavailable("No viewport yet")
    values = (viewport.zoom, viewport.width_px, viewport.height_px, viewport.center.lat, viewport.center.lng)
    if not all(math.isfinite(v) for v in values):
        raise ProjectionUnavailable("Viewport has non-finite values")
    if viewport.zoom < 0 or viewport.width_px <= 0 or viewport.height_px <= 0:
        raise ProjectionUnavailable(
            f"Degenerate viewport: zoom={viewport.zoom} size={viewport.width_px}x{viewport.height_px}"
        )
    return viewport


def is_projectable(viewport: ViewportState | None) -> bool:
    try:
        require_projection(viewport)
    except ProjectionUnavailable:
        return False
    return True


def geo_to_world(geo: GeoPoint) -> tuple[float, float]:
    """Web Mercator world coordinates at zoom 0 (same math as the host map's fromLatLngToPoint)."""
    siny = math.sin(math.radians(geo.lat))
    siny = min(max(siny, -MAX_MERCATOR_SIN), MAX_MERCATOR_SIN)
    x = TILE_SIZE_PX * (0.5 + geo.lng / 360.0)
    y = TILE_SIZE_PX * (0.5 - math.log((1.0 + siny) / (1.0 - siny)) / (4.0 * math.pi))
    return x, y


def world_to_geo(x: float, y: float) -> GeoPoint:
    """Inverse of geo_to_world."""
    lng = (x / TILE_SIZE_PX - 0.5) * 360.0
    n = math.pi * (1.0 - 2.0 * y / TILE_SIZE_PX)
    lat = math.degrees(2.0 * math.atan(math.exp(n)) - math.pi / 2.0)
    return GeoPoint(lat=lat, lng=lng)


def to_pixel(geo: GeoPoint, viewport: ViewportState | None) -> PixelPoint:
    """Geo -> viewport pixel. Raises ProjectionUnavailable on a degenerate viewport."""
    vp = require_projection(viewport)
    scale = 2.0 ** vp.zoom
    cx, cy = geo_to_world(vp.center)
    wx, wy = geo_to_world(geo)
    return PixelPoint(
        x=(wx - cx) * scale + vp.width_px / 2.0,
        y=(wy - cy) * scale + vp.height_px / 2.0,
    )


def to_geo(pixel: PixelPoint, viewport: ViewportState | None) -> GeoPoint:
    """Viewport pixel -> geo. Raises ProjectionUnavailable on a degenerate viewport."""
    vp = require_projection(viewport)
    scale = 2.0 ** vp.zoom
    cx, cy = geo_to_world(vp.center)
    wx = (pixel.x - vp.width_px / 2.0) / scale + cx
    wy = (pixel.y - vp.height_px / 2.0) / scale + cy
    return world_to_geo(wx, wy)


def viewport_geo_bounds(viewport: ViewportState | None) -> tuple[float, float, float, float]:
    """Return (north, south, east, west) of the visible area."""
    vp = require_projection(viewport)
    nw = to_geo(PixelPoint(0.0, 0.0), vp)
    se = to_geo(PixelPoint(vp.width_px, vp.height_px), vp)
    return (nw.lat, se.lat, se.lng, nw.lng)


def degrees_per_pixel(viewport: ViewportState | None) -> tuple[float, float]:
    """
    (lat_per_px, lng_per_px) averaged over the visible span.
    Linear approximation used for pixel sizes and margins in geo space.
    """
    vp = require_projection(viewport)
    north, south, east, west = viewport_geo_bounds(vp)
    return ((north - south) / vp.height_px, (east - west) / vp.width_px)


def contains(viewport: ViewportState | None, geo: GeoPoint) -> bool:
    """True if geo lies inside the visible area (boundary included)."""
    north, south, east, west = viewport_geo_bounds(viewport)
    return south <= geo.lat <= north and west <= geo.lng <= east


def pixel_distance(a: PixelPoint, b: PixelPoint) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)
