# mapoverlay/core/geometry.py
"""
Overlap and intersection predicates: panel box overlap, overlap area,
tether segment intersection and crossing counts. Pure functions.
"""

from __future__ import annotations

from itertools import combinations
from typing import Iterable, Sequence

from shapely.geometry import Polygon, box

from mapoverlay.core.config import PARALLEL_EPSILON
from mapoverlay.core.types import GeoPoint, PanelBounds, PixelPoint, TetherSegment


PointLike = GeoPoint | PixelPoint | tuple[float, float]


def _xy(p: PointLike) -> tuple[float, float]:
    """Planar (x, y) for a point: (lng, lat) for GeoPoint."""
    if isinstance(p, GeoPoint):
        return (p.lng, p.lat)
    if isinstance(p, PixelPoint):
        return (p.x, p.y)
    return (float(p[0]), float(p[1]))


def bounds_to_polygon(b: PanelBounds) -> Polygon:
    """Shapely box (x = lng, y = lat) for a panel bounds."""
    return box(b.west, b.south, b.east, b.north)


def _axis_overlaps(a: PanelBounds, b: PanelBounds) -> tuple[float, float]:
    horizontal = max(0.0, min(a.east, b.east) - max(a.west, b.west))
    vertical = max(0.0, min(a.north, b.north) - max(a.south, b.south))
    return horizontal, vertical


def overlaps(a: PanelBounds, b: PanelBounds) -> bool:
    """
    True iff both the horizontal and vertical projections intersect with positive length.
    Boxes that only touch along an edge do not overlap.
    """
    horizontal, vertical = _axis_overlaps(a, b)
    return horizontal > 0 and vertical > 0


def overlap_area(a: PanelBounds, b: PanelBounds) -> float:
    """Intersection area (deg²) of two panel boxes."""
    if not overlaps(a, b):
        return 0.0
    inter = bounds_to_polygon(a).intersection(bounds_to_polygon(b))
    return float(inter.area) if not inter.is_empty else 0.0


def total_overlap_area(target: PanelBounds, others: Iterable[PanelBounds]) -> float:
    """Sum of pairwise overlap areas of target against others (same id skipped)."""
    return sum(overlap_area(target, o) for o in others if o.panel_id != target.panel_id)


def overlapping_pairs(bounds_list: Sequence[PanelBounds]) -> list[tuple[str, str]]:
    """Ids of every overlapping pair, in placement order (earlier id first)."""
    return [(a.panel_id, b.panel_id) for a, b in combinations(bounds_list, 2) if overlaps(a, b)]


def count_overlaps(bounds_list: Sequence[PanelBounds]) -> int:
    return len(overlapping_pairs(bounds_list))


def segments_intersect(p1: PointLike, p2: PointLike, q1: PointLike, q2: PointLike) -> bool:
    """
    Segment p1-p2 vs q1-q2 via the determinant / parametric method.
    Parallel or near-parallel segments (|det| < PARALLEL_EPSILON) never intersect.
    """
    x1, y1 = _xy(p1)
    x2, y2 = _xy(p2)
    x3, y3 = _xy(q1)
    x4, y4 = _xy(q2)

    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if abs(denom) < PARALLEL_EPSILON:
        return False

    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / denom
    return 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0


def tethers_cross(a: TetherSegment, b: TetherSegment) -> bool:
    return segments_intersect(a.marker_pos, a.panel_pos, b.marker_pos, b.panel_pos)


def crossing_ids(segment: TetherSegment, others: Iterable[TetherSegment]) -> list[str]:
    """Ids of the tethers in others that segment crosses."""
    return [o.panel_id for o in others if o.panel_id != segment.panel_id and tethers_cross(segment, o)]


def count_crossings(segments: Sequence[TetherSegment]) -> int:
    """Pairwise crossings over all C(n, 2) tether pairs. Diagnostic only."""
    return sum(1 for a, b in combinations(segments, 2) if tethers_cross(a, b))
