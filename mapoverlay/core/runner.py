# mapoverlay/core/runner.py
"""
CLI entrypoint: load or generate markers, open their info windows on a simulated
viewport, auto-arrange (radial or edge), then write layout.json, run_metadata.json,
before.png and after.png under reports/<run_name>/.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from mapoverlay.core.config import (
    DEFAULT_CENTER_LAT,
    DEFAULT_CENTER_LNG,
    DEFAULT_MARKER_COUNT,
    DEFAULT_VIEWPORT_HEIGHT_PX,
    DEFAULT_VIEWPORT_WIDTH_PX,
    DEFAULT_ZOOM,
    LOG_LEVEL,
    SEED,
)
from mapoverlay.core.layout import ARRANGE_MODES
from mapoverlay.core.markers import generate_markers, load_markers
from mapoverlay.core.render import render_after, render_before
from mapoverlay.core.reporting import ensure_report_dir, write_layout_json, write_run_metadata_json
from mapoverlay.core.session import MapSession
from mapoverlay.core.storage import JsonFileStore, MemoryStore
from mapoverlay.core.types import GeoPoint
from mapoverlay.core.viewport import SimulatedViewport

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Info-window overlay placement on a simulated map.")
    p.add_argument("--mode", type=str, default="edge", choices=ARRANGE_MODES + ("none",), help="Auto-arrange mode")
    p.add_argument("--markers", type=str, default=None, help="Markers JSON path (repo-relative); default: generate")
    p.add_argument("--n-markers", type=int, default=DEFAULT_MARKER_COUNT, dest="n_markers", help="Generated marker count")
    p.add_argument("--seed", type=int, default=SEED, help="Random seed for generated markers")
    p.add_argument("--center-lat", type=float, default=DEFAULT_CENTER_LAT, dest="center_lat")
    p.add_argument("--center-lng", type=float, default=DEFAULT_CENTER_LNG, dest="center_lng")
    p.add_argument("--zoom", type=float, default=DEFAULT_ZOOM)
    p.add_argument("--width", type=int, default=DEFAULT_VIEWPORT_WIDTH_PX, help="Viewport width (px)")
    p.add_argument("--height", type=int, default=DEFAULT_VIEWPORT_HEIGHT_PX, help="Viewport height (px)")
    p.add_argument("--open", type=str, default="all", help="Marker ids to open: 'all' or 'm1,m3'")
    p.add_argument("--categories", type=str, default="", help="Active categories, comma-separated (default: all)")
    p.add_argument("--snapshot", type=str, default=None, help="Save a snapshot with this title after arranging")
    p.add_argument("--storage-dir", type=str, default=None, dest="storage_dir", help="Persist state as JSON files here")
    p.add_argument("--run-name", type=str, default="run", dest="run_name", help="Reports subdir name")
    p.add_argument("--output-dir", type=str, default="reports", dest="output_dir", help="Output directory (repo-relative)")
    p.add_argument("--repo-root", type=str, default=None, dest="repo_root", help="Repo root (default: cwd)")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    args = _parse_args(argv)
    repo_root = Path(args.repo_root).resolve() if args.repo_root else Path.cwd().resolve()

    provider = SimulatedViewport(
        center=GeoPoint(args.center_lat, args.center_lng),
        zoom=args.zoom,
        width_px=args.width,
        height_px=args.height,
    )
    viewport = provider.viewport()
    if args.markers:
        markers_path = Path(args.markers)
        if not markers_path.is_absolute():
            markers_path = repo_root / markers_path
        markers = load_markers(markers_path)
    else:
        markers = generate_markers(viewport, n=args.n_markers, seed=args.seed)

    store = JsonFileStore(repo_root / args.storage_dir) if args.storage_dir else MemoryStore()
    session = MapSession(provider, markers, store=store)
    if args.categories:
        session.set_category_filter([c.strip() for c in args.categories.split(",") if c.strip()])

    wanted = [m.id for m in markers] if args.open == "all" else [s.strip() for s in args.open.split(",") if s.strip()]
    for marker_id in wanted:
        session.open_panel(marker_id)

    summary = session.arrange(args.mode) if args.mode != "none" else None
    if args.snapshot is not None:
        session.save_snapshot(args.snapshot)

    report_dir = ensure_report_dir(repo_root, args.run_name, output_dir=args.output_dir)
    viewport = provider.viewport()
    frames = session.visible_frames()
    layout_path = write_layout_json(report_dir, viewport, session.registry.states(), frames, summary)
    meta_path = write_run_metadata_json(report_dir, args.run_name, args.mode, args.markers, len(markers), args.seed)
    before_path = report_dir / "before.png"
    after_path = report_dir / "after.png"
    render_before(markers, viewport, before_path)
    render_after(markers, frames, viewport, after_path)

    for msg in session.drain_notifications():
        logger.warning(msg)
    session.dispose()

    for p in (layout_path, meta_path, before_path, after_path):
        print(p)
    if summary is not None:
        print(f"Mode used: {summary.mode} ({summary.crossings} crossings, {summary.overlaps} overlaps)")


if __name__ == "__main__":
    main()
