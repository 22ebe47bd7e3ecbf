# mapoverlay/core/reporting.py
"""
Create reports/<run_name>/ and write layout.json (panels, tethers, diagnostics)
and run_metadata.json (inputs and config snapshot).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Sequence

from mapoverlay.core.config import (
    BOUNDS_PADDING_PX,
    CROSSING_CHECK_MAX_PANELS,
    EDGE_MARGIN_PX,
    FREE_SLOT_MAX_ATTEMPTS,
    GLOBAL_FIX_ATTEMPTS,
    MAX_SHIFT_LOOPS,
    MIN_SEPARATION_PX,
    RADIAL_RADIUS_RATIO,
    REPORTS_DIR,
    SEED,
    SHIFT_STEP_RATIO,
)
from mapoverlay.core.layout import LayoutSummary
from mapoverlay.core.storage import geo_to_dict, panel_state_to_dict
from mapoverlay.core.tether import OverlayFrame
from mapoverlay.core.types import PanelState, ViewportState


def frame_to_dict(frame: OverlayFrame) -> dict:
    return {
        "marker_px": {"x": frame.marker_px.x, "y": frame.marker_px.y},
        "panel_center_px": {"x": frame.panel_center_px.x, "y": frame.panel_center_px.y},
        "panel_size_px": {"width": frame.panel_size.width, "height": frame.panel_size.height},
        "tether": {"length_px": frame.tether.length_px, "angle_deg": frame.tether.angle_deg},
        "minimized": frame.minimized,
    }


def summary_to_dict(summary: LayoutSummary | None) -> dict | None:
    if summary is None:
        return None
    return {
        "mode": summary.mode,
        "n_panels": summary.n_panels,
        "moved_ids": list(summary.moved_ids),
        "skipped_busy": list(summary.skipped_busy),
        "crossings": summary.crossings,
        "overlaps": summary.overlaps,
        "outside_viewport": summary.outside_viewport,
        "edges": dict(summary.edges),
    }


def layout_to_dict(
    viewport: ViewportState,
    states: Mapping[str, PanelState],
    frames: Sequence[OverlayFrame],
    summary: LayoutSummary | None,
) -> dict:
    """Structure for layout.json."""
    by_id = {f.marker_id: f for f in frames}
    panels = []
    for pid, s in states.items():
        entry = panel_state_to_dict(s)
        if pid in by_id:
            entry["screen"] = frame_to_dict(by_id[pid])
        panels.append(entry)
    return {
        "viewport": {
            "center": geo_to_dict(viewport.center),
            "zoom": viewport.zoom,
            "width_px": viewport.width_px,
            "height_px": viewport.height_px,
        },
        "panels": panels,
        "summary": summary_to_dict(summary),
    }


def run_metadata_dict(
    run_name: str,
    mode: str,
    markers_path: str | None,
    n_markers: int,
    seed: int | None,
) -> dict:
    """Timestamp and config snapshot for run_metadata.json."""
    return {
        "run_name": run_name,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "mode": mode,
        "markers_path": markers_path,
        "n_markers": n_markers,
        "seed": seed,
        "config": {
            "BOUNDS_PADDING_PX": BOUNDS_PADDING_PX,
            "MIN_SEPARATION_PX": MIN_SEPARATION_PX,
            "RADIAL_RADIUS_RATIO": RADIAL_RADIUS_RATIO,
            "EDGE_MARGIN_PX": EDGE_MARGIN_PX,
            "CROSSING_CHECK_MAX_PANELS": CROSSING_CHECK_MAX_PANELS,
            "MAX_SHIFT_LOOPS": MAX_SHIFT_LOOPS,
            "SHIFT_STEP_RATIO": SHIFT_STEP_RATIO,
            "GLOBAL_FIX_ATTEMPTS": GLOBAL_FIX_ATTEMPTS,
            "FREE_SLOT_MAX_ATTEMPTS": FREE_SLOT_MAX_ATTEMPTS,
            "SEED": SEED,
        },
    }


def ensure_report_dir(
    repo_root: Path,
    run_name: str,
    output_dir: str | None = None,
) -> Path:
    """Create output_dir/<run_name>/ under repo_root; return path. Default output_dir from config."""
    base = output_dir if output_dir is not None else REPORTS_DIR
    out = (repo_root / base).resolve() / run_name
    out.mkdir(parents=True, exist_ok=True)
    return out


def write_layout_json(
    report_dir: Path,
    viewport: ViewportState,
    states: Mapping[str, PanelState],
    frames: Sequence[OverlayFrame],
    summary: LayoutSummary | None,
) -> Path:
    """Write layout.json to report_dir. Returns path to file."""
    path = report_dir / "layout.json"
    data = layout_to_dict(viewport, states, frames, summary)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def write_run_metadata_json(
    report_dir: Path,
    run_name: str,
    mode: str,
    markers_path: str | None,
    n_markers: int,
    seed: int | None,
) -> Path:
    """Write run_metadata.json to report_dir."""
    path = report_dir / "run_metadata.json"
    data = run_metadata_dict(run_name, mode, markers_path, n_markers, seed)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path
