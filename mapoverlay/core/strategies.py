# mapoverlay/core/strategies.py
"""
Auto-arrangement planners. Pure functions: (panel states, viewport) -> positions.
Nothing here touches the registry; layout.run_auto_arrange applies the result.

Radial: panels on a circle around the viewport center.
Edge: each panel goes to a viewport edge picked greedily to avoid tether crossings
against tethers already placed in the same pass (a heuristic, not a global optimum),
then panels are spread along their edge and nudged apart if they still overlap.
Panels that overlap even after that are moved to a free slot (find_free_position),
and every panel ends EDGE_MARGIN_PX inside the viewport.
Overlap fallback: 9 fixed candidates around a new panel's default position.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from mapoverlay.core.bounds import compute_bounds, effective_size
from mapoverlay.core.config import (
    CROSSING_CHECK_MAX_PANELS,
    EDGE_MARGIN_PX,
    FREE_SLOT_MAX_ATTEMPTS,
    GLOBAL_FIX_ATTEMPTS,
    MAX_SHIFT_LOOPS,
    MIN_SEPARATION_PX,
    RADIAL_RADIUS_RATIO,
    SHIFT_STEP_RATIO,
)
from mapoverlay.core.geometry import count_crossings, count_overlaps, crossing_ids, overlaps, total_overlap_area
from mapoverlay.core.projection import contains, degrees_per_pixel, viewport_geo_bounds
from mapoverlay.core.types import (
    EDGES,
    Edge,
    GeoPoint,
    PanelBounds,
    PanelSize,
    PanelState,
    TetherSegment,
    ViewportState,
)

logger = logging.getLogger(__name__)

# 8 unit directions (dx, dy) in screen terms; dy > 0 is south.
_FALLBACK_DIRECTIONS: tuple[tuple[int, int], ...] = (
    (0, -1), (0, 1), (1, 0), (-1, 0),
    (1, -1), (-1, -1), (1, 1), (-1, 1),
)


@dataclass(frozen=True)
class _Frame:
    """Visible geo extent plus degrees-per-pixel for one viewport."""
    north: float
    south: float
    east: float
    west: float
    lat_per_px: float
    lng_per_px: float

    @classmethod
    def of(cls, viewport: ViewportState) -> _Frame:
        north, south, east, west = viewport_geo_bounds(viewport)
        lat_pp, lng_pp = degrees_per_pixel(viewport)
        return cls(north, south, east, west, lat_pp, lng_pp)

    def inset_lat(self, size: PanelSize, margin_px: float = 0.0) -> tuple[float, float]:
        """(min_lat, max_lat) a panel center may take so the panel body stays inside."""
        d = (margin_px + size.height / 2.0) * self.lat_per_px
        return self.south + d, self.north - d

    def inset_lng(self, size: PanelSize, margin_px: float = 0.0) -> tuple[float, float]:
        d = (margin_px + size.width / 2.0) * self.lng_per_px
        return self.west + d, self.east - d


def _clamp(v: float, lo: float, hi: float) -> float:
    if lo > hi:
        return (lo + hi) / 2.0
    return max(lo, min(hi, v))


# ----- Radial -----

def plan_radial(states: Sequence[PanelState], viewport: ViewportState) -> dict[str, GeoPoint]:
    """
    Place panel k of n at angle k·2π/n on a circle around the viewport center.
    Radius is RADIAL_RADIUS_RATIO of the smaller viewport dimension in degrees.
    n == 0 gives {}; n == 1 puts the panel exactly at the center.
    """
    n = len(states)
    if n == 0:
        return {}
    center = viewport.center
    if n == 1:
        return {states[0].marker_id: center}

    north, south, east, west = viewport_geo_bounds(viewport)
    radius = RADIAL_RADIUS_RATIO * min(east - west, north - south)
    step = 2.0 * math.pi / n
    return {
        s.marker_id: GeoPoint(
            lat=center.lat + radius * math.sin(k * step),
            lng=center.lng + radius * math.cos(k * step),
        )
        for k, s in enumerate(states)
    }


# ----- Edge -----

@dataclass
class EdgePlan:
    """Result of plan_edges: target centers, chosen edges and final diagnostics."""
    positions: dict[str, GeoPoint] = field(default_factory=dict)
    edges: dict[str, Edge] = field(default_factory=dict)
    crossings: int = 0
    overlaps: int = 0


def edge_distances(anchor: GeoPoint, viewport: ViewportState) -> dict[Edge, float]:
    """Distance (degrees) from a marker to each viewport edge."""
    north, south, east, west = viewport_geo_bounds(viewport)
    return {
        "north": north - anchor.lat,
        "south": anchor.lat - south,
        "east": east - anchor.lng,
        "west": anchor.lng - west,
    }


def edges_by_distance(anchor: GeoPoint, viewport: ViewportState) -> list[Edge]:
    """Edges nearest-first; ties keep north, south, east, west order."""
    dist = edge_distances(anchor, viewport)
    return sorted(EDGES, key=lambda e: dist[e])


def _edge_slot(frame: _Frame, edge: Edge, size: PanelSize, along: float) -> GeoPoint:
    """Center of a panel on `edge`, `along` the edge (lng or lat), clamped so the body stays inside."""
    if edge in ("north", "south"):
        lat_lo, lat_hi = frame.inset_lat(size, EDGE_MARGIN_PX)
        lng_lo, lng_hi = frame.inset_lng(size, EDGE_MARGIN_PX)
        lat = lat_hi if edge == "north" else lat_lo
        return GeoPoint(lat=lat, lng=_clamp(along, lng_lo, lng_hi))
    lat_lo, lat_hi = frame.inset_lat(size, EDGE_MARGIN_PX)
    lng_lo, lng_hi = frame.inset_lng(size, EDGE_MARGIN_PX)
    lng = lng_hi if edge == "east" else lng_lo
    return GeoPoint(lat=_clamp(along, lat_lo, lat_hi), lng=lng)


def _opposite_slot(frame: _Frame, edge: Edge, size: PanelSize, anchor: GeoPoint) -> GeoPoint:
    """Panel on `edge` directly opposite its marker's coordinate."""
    along = anchor.lng if edge in ("north", "south") else anchor.lat
    return _edge_slot(frame, edge, size, along)


def choose_edges(
    states: Sequence[PanelState],
    viewport: ViewportState,
    minimized_size: PanelSize | None = None,
) -> dict[str, Edge]:
    """
    Greedy single pass in the given order: first edge (nearest-first) whose simulated
    tether crosses none of the tethers committed so far, else the nearest edge.
    Crossing checks are skipped above CROSSING_CHECK_MAX_PANELS panels.
    """
    frame = _Frame.of(viewport)
    check = len(states) <= CROSSING_CHECK_MAX_PANELS
    committed: list[TetherSegment] = []
    chosen: dict[str, Edge] = {}
    for s in states:
        size = effective_size(s, minimized_size)
        ordered = edges_by_distance(s.anchor, viewport)
        pick = ordered[0]
        if check:
            for edge in ordered:
                seg = TetherSegment(s.marker_id, s.anchor, _opposite_slot(frame, edge, size, s.anchor))
                if not crossing_ids(seg, committed):
                    pick = edge
                    break
        chosen[s.marker_id] = pick
        committed.append(TetherSegment(s.marker_id, s.anchor, _opposite_slot(frame, pick, size, s.anchor)))
    return chosen


def _distribute(
    frame: _Frame,
    edge: Edge,
    group: list[PanelState],
    minimized_size: PanelSize | None,
) -> dict[str, GeoPoint]:
    """
    Spread one edge's group along the edge, sorted by the marker coordinate along it.
    The first and last panels sit at the margin inset; the rest are evenly spaced between.
    A lone panel stays opposite its marker.
    """
    if len(group) == 1:
        s = group[0]
        return {s.marker_id: _opposite_slot(frame, edge, effective_size(s, minimized_size), s.anchor)}

    horizontal = edge in ("north", "south")
    if horizontal:
        ordered = sorted(group, key=lambda s: s.anchor.lng)
    else:
        ordered = sorted(group, key=lambda s: -s.anchor.lat)
    k = len(ordered)
    out: dict[str, GeoPoint] = {}
    for i, s in enumerate(ordered):
        size = effective_size(s, minimized_size)
        if horizontal:
            start, end = frame.inset_lng(size, EDGE_MARGIN_PX)
        else:
            # North end first, matching the marker order
            end, start = frame.inset_lat(size, EDGE_MARGIN_PX)
        along = start + (end - start) * i / (k - 1)
        out[s.marker_id] = _edge_slot(frame, edge, size, along)
    return out


def _shift_residual_overlaps(
    frame: _Frame,
    order: list[str],
    positions: dict[str, GeoPoint],
    edges: Mapping[str, Edge],
    sizes: Mapping[str, PanelSize],
    viewport: ViewportState,
) -> None:
    """Nudge later panels along their edge while they overlap an earlier one (MAX_SHIFT_LOOPS rounds)."""
    for _ in range(MAX_SHIFT_LOOPS):
        moved = False
        for i, a_id in enumerate(order):
            for b_id in order[i + 1:]:
                a = compute_bounds(a_id, positions[a_id], sizes[a_id], viewport)
                b = compute_bounds(b_id, positions[b_id], sizes[b_id], viewport)
                if not overlaps(a, b):
                    continue
                p = positions[b_id]
                if edges[b_id] in ("north", "south"):
                    step = SHIFT_STEP_RATIO * sizes[b_id].width * frame.lng_per_px
                    positions[b_id] = GeoPoint(lat=p.lat, lng=p.lng + step)
                else:
                    step = SHIFT_STEP_RATIO * sizes[b_id].height * frame.lat_per_px
                    positions[b_id] = GeoPoint(lat=p.lat - step, lng=p.lng)
                moved = True
        if not moved:
            break


def _clamp_all(
    frame: _Frame,
    order: list[str],
    positions: dict[str, GeoPoint],
    sizes: Mapping[str, PanelSize],
) -> None:
    """Pull every panel back inside the viewport, EDGE_MARGIN_PX from each side."""
    for pid in order:
        p = positions[pid]
        lat_lo, lat_hi = frame.inset_lat(sizes[pid], EDGE_MARGIN_PX)
        lng_lo, lng_hi = frame.inset_lng(sizes[pid], EDGE_MARGIN_PX)
        positions[pid] = GeoPoint(lat=_clamp(p.lat, lat_lo, lat_hi), lng=_clamp(p.lng, lng_lo, lng_hi))


def _overlapping_later_ids(
    order: list[str],
    positions: Mapping[str, GeoPoint],
    sizes: Mapping[str, PanelSize],
    viewport: ViewportState,
) -> list[str]:
    """Ids that overlap an earlier panel in order, each listed once."""
    bounds = [compute_bounds(pid, positions[pid], sizes[pid], viewport) for pid in order]
    out: list[str] = []
    for i, a in enumerate(bounds):
        for b in bounds[i + 1:]:
            if b.panel_id not in out and overlaps(a, b):
                out.append(b.panel_id)
    return out


def _refix_residual_overlaps(
    order: list[str],
    positions: dict[str, GeoPoint],
    sizes: Mapping[str, PanelSize],
    viewport: ViewportState,
) -> None:
    """Move panels still overlapping an earlier one to a free slot, GLOBAL_FIX_ATTEMPTS rounds at most."""
    for attempt in range(GLOBAL_FIX_ATTEMPTS):
        pending = _overlapping_later_ids(order, positions, sizes, viewport)
        if not pending:
            return
        logger.debug("Re-fix round %d: %d overlapping panels", attempt + 1, len(pending))
        for pid in pending:
            others = [
                compute_bounds(oid, positions[oid], sizes[oid], viewport)
                for oid in order if oid != pid
            ]
            positions[pid] = find_free_position(pid, positions[pid], sizes[pid], others, viewport)
    remaining = _overlapping_later_ids(order, positions, sizes, viewport)
    if remaining:
        logger.info("Edge plan: %d panels still overlap after re-fix", len(remaining))


def find_free_position(
    panel_id: str,
    center: GeoPoint,
    size_px: PanelSize,
    existing: Sequence[PanelBounds],
    viewport: ViewportState,
    max_attempts: int = FREE_SLOT_MAX_ATTEMPTS,
    margin_px: float = EDGE_MARGIN_PX,
) -> GeoPoint:
    """
    Search outward from center for a spot where the panel overlaps nothing in existing and
    stays margin_px inside the viewport. Tries center, then 12 directions (1.2x the panel
    size per step, doubled steps for the last four) at multiplier 1, 2, 3...
    Returns center when every attempt fails.
    """
    frame = _Frame.of(viewport)
    step_lng = SHIFT_STEP_RATIO * size_px.width * frame.lng_per_px
    step_lat = SHIFT_STEP_RATIO * size_px.height * frame.lat_per_px
    directions = [(0.0, step_lng), (0.0, -step_lng), (step_lat, 0.0), (-step_lat, 0.0)]
    directions += [(dlat, dlng) for dlat in (step_lat, -step_lat) for dlng in (step_lng, -step_lng)]
    directions += [(0.0, 2 * step_lng), (0.0, -2 * step_lng), (2 * step_lat, 0.0), (-2 * step_lat, 0.0)]

    lat_lo, lat_hi = frame.inset_lat(size_px, margin_px)
    lng_lo, lng_hi = frame.inset_lng(size_px, margin_px)
    tol = 1e-9
    for attempt in range(max_attempts):
        if attempt == 0:
            cand = center
        else:
            dlat, dlng = directions[(attempt - 1) % len(directions)]
            mult = (attempt - 1) // len(directions) + 1
            cand = GeoPoint(lat=center.lat + dlat * mult, lng=center.lng + dlng * mult)
        if not (lat_lo - tol <= cand.lat <= lat_hi + tol and lng_lo - tol <= cand.lng <= lng_hi + tol):
            continue
        b = compute_bounds(panel_id, cand, size_px, viewport)
        if not any(overlaps(b, o) for o in existing if o.panel_id != panel_id):
            return cand
    logger.debug("find_free_position: no free slot for %s in %d attempts", panel_id, max_attempts)
    return center


def plan_edges(
    states: Sequence[PanelState],
    viewport: ViewportState,
    minimized_size: PanelSize | None = None,
) -> EdgePlan:
    """
    Edge-aligned arrangement. Returns target centers for every panel, the edge chosen
    for each, and the number of tether crossings / overlapping pairs in the final layout.
    """
    if not states:
        return EdgePlan()
    frame = _Frame.of(viewport)
    edges = choose_edges(states, viewport, minimized_size)
    sizes = {s.marker_id: effective_size(s, minimized_size) for s in states}

    positions: dict[str, GeoPoint] = {}
    for edge in EDGES:
        group = [s for s in states if edges[s.marker_id] == edge]
        if group:
            positions.update(_distribute(frame, edge, group, minimized_size))

    order = [s.marker_id for s in states]
    _shift_residual_overlaps(frame, order, positions, edges, sizes, viewport)
    _clamp_all(frame, order, positions, sizes)
    _refix_residual_overlaps(order, positions, sizes, viewport)
    _clamp_all(frame, order, positions, sizes)

    segments = [TetherSegment(s.marker_id, s.anchor, positions[s.marker_id]) for s in states]
    final_bounds = [compute_bounds(pid, positions[pid], sizes[pid], viewport) for pid in order]
    plan = EdgePlan(
        positions={pid: positions[pid] for pid in order},
        edges=dict(edges),
        crossings=count_crossings(segments),
        overlaps=count_overlaps(final_bounds),
    )
    logger.debug("Edge plan: %d panels, %d crossings, %d overlaps", len(order), plan.crossings, plan.overlaps)
    return plan


# ----- Overlap-avoidance fallback -----

def avoid_overlap(
    panel_id: str,
    center: GeoPoint,
    size_px: PanelSize,
    existing: Sequence[PanelBounds],
    viewport: ViewportState,
    padding_px: float = 0.0,
) -> GeoPoint:
    """
    Pick a center for a new panel among the original point and its 8 neighbours one
    MIN_SEPARATION_PX step away. Candidates outside the viewport are dropped; the first
    with zero overlap wins, else the one with least total overlap area.
    Returns center unchanged when every candidate lies outside the viewport.
    """
    lat_pp, lng_pp = degrees_per_pixel(viewport)
    candidates = [center] + [
        GeoPoint(
            lat=center.lat - dy * MIN_SEPARATION_PX * lat_pp,
            lng=center.lng + dx * MIN_SEPARATION_PX * lng_pp,
        )
        for dx, dy in _FALLBACK_DIRECTIONS
    ]

    best: GeoPoint | None = None
    best_area = math.inf
    for cand in candidates:
        if not contains(viewport, cand):
            continue
        b = compute_bounds(panel_id, cand, size_px, viewport, padding_px=padding_px)
        area = total_overlap_area(b, existing)
        if area == 0.0:
            return cand
        if area < best_area:
            best, best_area = cand, area
    if best is None:
        logger.debug("avoid_overlap: no candidate for %s inside the viewport", panel_id)
        return center
    return best


# ----- Post-drag snap -----

def snap_to_nearest_edge(geo: GeoPoint, size_px: PanelSize, viewport: ViewportState) -> GeoPoint:
    """Move a dropped panel flush to its nearest viewport edge, EDGE_MARGIN_PX inside."""
    frame = _Frame.of(viewport)
    edge = edges_by_distance(geo, viewport)[0]
    along = geo.lng if edge in ("north", "south") else geo.lat
    return _edge_slot(frame, edge, size_px, along)
