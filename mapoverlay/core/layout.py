# mapoverlay/core/layout.py
"""
Apply arrangement plans to the registry.
Excludes panels mid-gesture, writes all positions in one batch, and summarizes the
result (crossings, overlaps, panels outside the viewport). Never raises into callers:
an unavailable viewport makes every call a no-op that can simply be retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Literal

from mapoverlay.core.bounds import compute_bounds, effective_size, panel_bounds
from mapoverlay.core.config import BOUNDS_PADDING_PX
from mapoverlay.core.error_codes import ProjectionUnavailable, ViewportBoundsUnavailable
from mapoverlay.core.geometry import count_crossings, count_overlaps, overlaps
from mapoverlay.core.projection import viewport_geo_bounds
from mapoverlay.core.registry import PanelRegistry, visible_states
from mapoverlay.core.strategies import avoid_overlap, plan_edges, plan_radial
from mapoverlay.core.types import GeoPoint, PanelBounds, PanelSize, PanelState, TetherSegment, ViewportState
from mapoverlay.core.viewport import ViewportProvider, current_viewport

logger = logging.getLogger(__name__)

ArrangeMode = Literal["radial", "edge"]
ARRANGE_MODES: tuple[str, ...] = ("radial", "edge")


@dataclass
class LayoutSummary:
    """Summary of one auto-arrange run."""
    mode: str
    n_panels: int
    moved_ids: list[str] = field(default_factory=list)
    skipped_busy: list[str] = field(default_factory=list)
    crossings: int = 0
    overlaps: int = 0
    outside_viewport: int = 0
    edges: dict[str, str] = field(default_factory=dict)


def count_outside(bounds_list: Iterable[PanelBounds], viewport: ViewportState) -> int:
    """Panels whose body extends past the visible area."""
    north, south, east, west = viewport_geo_bounds(viewport)
    tol = 1e-9
    return sum(
        1 for b in bounds_list
        if b.north > north + tol or b.south < south - tol or b.east > east + tol or b.west < west - tol
    )


def layout_diagnostics(
    states: Iterable[PanelState],
    viewport: ViewportState,
    minimized_size: PanelSize | None = None,
) -> tuple[int, int, int]:
    """(crossings, overlaps, outside_viewport) for the panels as they stand."""
    states = list(states)
    segments = [TetherSegment(s.marker_id, s.anchor, s.floating) for s in states]
    bounds = [panel_bounds(s, viewport, minimized_size) for s in states]
    return count_crossings(segments), count_overlaps(bounds), count_outside(bounds, viewport)


def run_auto_arrange(
    registry: PanelRegistry,
    provider: ViewportProvider,
    mode: str,
    visible_ids: Iterable[str] | None = None,
    minimized_size: PanelSize | None = None,
) -> LayoutSummary | None:
    """
    Arrange the visible, idle panels with the given mode ("radial" or "edge").
    Returns None (no-op) when the viewport cannot be obtained yet.
    """
    if mode not in ARRANGE_MODES:
        logger.warning("Unknown arrange mode %r; expected one of %s", mode, ", ".join(ARRANGE_MODES))
        return None
    try:
        viewport = current_viewport(provider)
    except ProjectionUnavailable:
        logger.info("Auto-arrange (%s) skipped: viewport not ready", mode)
        return None

    busy = registry.busy_ids()
    candidates = visible_states(registry, visible_ids)
    skipped = [pid for pid in candidates if pid in busy]
    states = [s for pid, s in candidates.items() if pid not in busy]

    try:
        if mode == "radial":
            positions = plan_radial(states, viewport)
            moved = registry.bulk_set_floating(positions, user_positioned=True)
            edges: dict[str, str] = {}
        else:
            plan = plan_edges(states, viewport, minimized_size)
            moved = registry.bulk_set_floating(plan.positions, user_positioned=True, organized_edges=plan.edges)
            edges = dict(plan.edges)
    except (ProjectionUnavailable, ViewportBoundsUnavailable):
        logger.info("Auto-arrange (%s) skipped: viewport bounds unavailable", mode)
        return None

    moved_set = set(moved)
    arranged = [s for pid, s in registry.states().items() if pid in moved_set]
    crossings, n_overlaps, outside = layout_diagnostics(arranged, viewport, minimized_size)
    summary = LayoutSummary(
        mode=mode,
        n_panels=len(states),
        moved_ids=moved,
        skipped_busy=skipped,
        crossings=crossings,
        overlaps=n_overlaps,
        outside_viewport=outside,
        edges=edges,
    )
    logger.info(
        "Auto-arrange %s: %d panels moved, %d busy skipped, %d crossings, %d overlaps",
        mode, len(moved), len(skipped), crossings, n_overlaps,
    )
    return summary


def place_new_panel(
    registry: PanelRegistry,
    provider: ViewportProvider,
    marker_id: str,
    anchor: GeoPoint,
    visible_ids: Iterable[str] | None = None,
    minimized_size: PanelSize | None = None,
) -> PanelState:
    """
    Open a panel at its marker; if its padded box collides with other visible panels,
    move it to the best overlap-avoidance candidate. Re-opening an open panel does not move it.
    """
    already_open = registry.has(marker_id)
    state = registry.open(marker_id, anchor)
    if already_open:
        return state
    try:
        viewport = current_viewport(provider)
        others = [
            panel_bounds(s, viewport, minimized_size, padding_px=BOUNDS_PADDING_PX)
            for pid, s in visible_states(registry, visible_ids).items()
            if pid != marker_id
        ]
        size = effective_size(state, minimized_size)
        own = compute_bounds(marker_id, state.floating, size, viewport, padding_px=BOUNDS_PADDING_PX)
        if not any(overlaps(own, o) for o in others):
            return state
        target = avoid_overlap(marker_id, state.floating, size, others, viewport, padding_px=BOUNDS_PADDING_PX)
    except (ProjectionUnavailable, ViewportBoundsUnavailable):
        logger.debug("Overlap check for %s skipped: viewport not ready", marker_id)
        return state
    if target == state.floating:
        return state
    moved = registry.set_floating(marker_id, target, user_positioned=False)
    return moved if moved is not None else state
