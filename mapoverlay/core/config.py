# mapoverlay/core/config.py
"""
Central configuration for info-window overlay placement.
All tunable values live here; no magic numbers in other modules.
"""

from __future__ import annotations
import os

# ----- Paths (repo-relative) -----
REPORTS_DIR: str = "reports"
STORAGE_DIR: str = ".mapoverlay"
"""Directory used by JsonFileStore when no explicit path is given."""

# ----- Projection -----
TILE_SIZE_PX: float = 256.0
"""World size (px) of the Web Mercator plane at zoom 0."""

MAX_MERCATOR_SIN: float = 0.9999
"""Clamp for sin(lat) so the poles do not project to infinity."""

ROUNDTRIP_TOLERANCE_DEG: float = 1e-6
"""Accepted geo -> pixel -> geo error (degrees)."""

# ----- Panel sizes (px) -----
DEFAULT_PANEL_WIDTH_PX: float = 240.0
DEFAULT_PANEL_HEIGHT_PX: float = 320.0

MINIMIZE_PRESETS: dict[str, tuple[float, float]] = {
    "tiny": (100.0, 160.0),
    "small": (120.0, 180.0),
    "medium": (160.0, 210.0),
    "large": (200.0, 280.0),
    "custom": (150.0, 300.0),
}
"""Minimized panel sizes (width, height) by preset name."""

DEFAULT_MINIMIZE_PRESET: str = "small"

MIN_PANEL_WIDTH_PX: float = 120.0
MAX_PANEL_WIDTH_PX: float = 600.0
MIN_PANEL_HEIGHT_PX: float = 100.0
MAX_PANEL_HEIGHT_PX: float = 500.0

# ----- Bounds / overlap -----
BOUNDS_PADDING_PX: float = 20.0
"""Safety margin (px) added around a panel when testing a newly opened panel for collisions."""

MIN_SEPARATION_PX: float = 30.0
"""Step (px) between candidates of the overlap-avoidance fallback."""

PARALLEL_EPSILON: float = 1e-10
"""Determinant magnitude below which two tethers are treated as parallel."""

# ----- Arrangement -----
RADIAL_RADIUS_RATIO: float = 0.3
"""Radial arrangement radius as a fraction of min(viewport width, height) in degrees."""

EDGE_MARGIN_PX: float = 10.0
"""Inset (px) from the viewport boundary for edge-aligned panels."""

CROSSING_CHECK_MAX_PANELS: int = 50
"""Above this many panels the edge strategy skips tether crossing checks."""

MAX_SHIFT_LOOPS: int = 5
"""Rounds of the residual overlap pass after edge arrangement."""

SHIFT_STEP_RATIO: float = 1.2
"""Residual overlap shift, as a multiple of the panel dimension along its edge."""

GLOBAL_FIX_ATTEMPTS: int = 3
"""Rounds of the free-slot search for panels still overlapping after the shift pass."""

FREE_SLOT_MAX_ATTEMPTS: int = 30
"""Candidates tried by the free-slot search (start point, then 12 directions at growing multiples)."""

# ----- Tether rendering -----
ZOOM_SETTLE_S: float = 0.2
"""Seconds the zoom redraw loop keeps running after the last zoom event."""

TETHER_COLOR: str = "#6B7280"
TETHER_WIDTH_PX: float = 4.0

# ----- Persistence -----
REGISTRY_STORAGE_KEY: str = "map-infowindows-v14"
CATEGORY_FILTER_STORAGE_KEY: str = "map-category-filter-v1"
SNAPSHOTS_STORAGE_KEY: str = "map-snapshots-v2"
SETTINGS_STORAGE_KEY: str = "infowindow-settings-v1"

MAX_SNAPSHOTS: int = 50
"""Snapshots kept in the store; oldest evicted first."""

# ----- Demo / rendering -----
DEFAULT_CENTER_LAT: float = 34.9756
DEFAULT_CENTER_LNG: float = 138.3828
DEFAULT_ZOOM: float = 9.0
DEFAULT_VIEWPORT_WIDTH_PX: int = 1200
DEFAULT_VIEWPORT_HEIGHT_PX: int = 800
DEFAULT_MARKER_COUNT: int = 8
SEED: int | None = 42
"""Random seed for demo marker generation; None for non-deterministic."""

# ----- Logging / debug flags -----
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()
OVERLAY_DEBUG: bool = os.environ.get("OVERLAY_DEBUG", "").lower() in ("1", "true", "yes")
"""Log per-frame tether geometry. Set env OVERLAY_DEBUG=1 to enable."""
