# mapoverlay/core/types.py
"""
Dataclasses for geo/pixel points, viewport, panel state, bounds, tethers and snapshots.
Panel state is immutable: every mutation replaces the whole entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from mapoverlay.core.config import DEFAULT_PANEL_HEIGHT_PX, DEFAULT_PANEL_WIDTH_PX


Edge = Literal["north", "south", "east", "west"]
EDGES: tuple[Edge, ...] = ("north", "south", "east", "west")


@dataclass(frozen=True)
class GeoPoint:
    """WGS84-style coordinate (degrees)."""
    lat: float
    lng: float


@dataclass(frozen=True)
class PixelPoint:
    """Viewport-relative screen coordinate (px, origin top-left). Never persisted."""
    x: float
    y: float

    def offset(self, dx: float, dy: float) -> PixelPoint:
        return PixelPoint(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class ViewportState:
    """Center, zoom and pixel size supplied by the host map. Read-only for the engine."""
    center: GeoPoint
    zoom: float
    width_px: float
    height_px: float


@dataclass(frozen=True)
class PanelSize:
    """Panel size in pixels."""
    width: float
    height: float


DEFAULT_PANEL_SIZE = PanelSize(DEFAULT_PANEL_WIDTH_PX, DEFAULT_PANEL_HEIGHT_PX)


@dataclass(frozen=True)
class PanelState:
    """
    One open info window, keyed by marker id.
    anchor is the marker position and is never moved by the engine;
    floating is the panel's own center.
    """
    marker_id: str
    anchor: GeoPoint
    floating: GeoPoint
    minimized: bool = False
    user_positioned: bool = False
    size: PanelSize = DEFAULT_PANEL_SIZE
    organized_edge: Edge | None = None


@dataclass(frozen=True)
class PanelBounds:
    """Axis-aligned panel box in geographic space. Derived from the current viewport; never cached."""
    panel_id: str
    north: float
    south: float
    east: float
    west: float
    center_lat: float
    center_lng: float

    @property
    def width(self) -> float:
        return self.east - self.west

    @property
    def height(self) -> float:
        return self.north - self.south

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


@dataclass(frozen=True)
class TetherSegment:
    """Line from a marker to its panel center, used by the crossing oracle."""
    panel_id: str
    marker_pos: GeoPoint
    panel_pos: GeoPoint


class GestureState(str, Enum):
    """Per-panel pointer gesture state."""
    IDLE = "idle"
    DRAGGING = "dragging"
    RESIZING = "resizing"


class ViewportGesture(str, Enum):
    """Global host-map gesture state."""
    IDLE = "idle"
    PANNING = "panning"
    ZOOMING = "zooming"


@dataclass(frozen=True)
class Snapshot:
    """
    Named, timestamped copy of the registry, viewport and category filters.
    Immutable once created except for title edits (which replace the record).
    """
    id: str
    title: str
    timestamp: float
    panels: dict[str, PanelState]
    viewport_center: GeoPoint
    viewport_zoom: float
    active_category_filters: list[str] = field(default_factory=list)
    panel_count: int = 0
