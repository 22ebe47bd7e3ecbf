#!/usr/bin/env python3
"""
Generate demo disaster-report markers for the CLI (mapoverlay.core.runner --markers).

Markers are scattered over the default viewport (or the one given on the command line)
with seeded numpy sampling, so the same seed always yields the same file.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from mapoverlay.core.config import (
    DEFAULT_CENTER_LAT,
    DEFAULT_CENTER_LNG,
    DEFAULT_MARKER_COUNT,
    DEFAULT_VIEWPORT_HEIGHT_PX,
    DEFAULT_VIEWPORT_WIDTH_PX,
    DEFAULT_ZOOM,
    SEED,
)
from mapoverlay.core.markers import generate_markers, write_markers
from mapoverlay.core.types import GeoPoint, ViewportState

# Output path (repo-relative default)
OUTPUT_PATH = Path(__file__).parent.parent / "docs" / "assets" / "markers.json"


def main() -> None:
    p = argparse.ArgumentParser(description="Write a markers JSON file.")
    p.add_argument("--n", type=int, default=DEFAULT_MARKER_COUNT, help="Number of markers")
    p.add_argument("--seed", type=int, default=SEED)
    p.add_argument("--center-lat", type=float, default=DEFAULT_CENTER_LAT, dest="center_lat")
    p.add_argument("--center-lng", type=float, default=DEFAULT_CENTER_LNG, dest="center_lng")
    p.add_argument("--zoom", type=float, default=DEFAULT_ZOOM)
    p.add_argument("--out", type=str, default=str(OUTPUT_PATH))
    args = p.parse_args()

    viewport = ViewportState(
        center=GeoPoint(args.center_lat, args.center_lng),
        zoom=args.zoom,
        width_px=DEFAULT_VIEWPORT_WIDTH_PX,
        height_px=DEFAULT_VIEWPORT_HEIGHT_PX,
    )
    markers = generate_markers(viewport, n=args.n, seed=args.seed)
    write_markers(args.out, markers)
    print(f"Created: {args.out} ({len(markers)} markers)")


if __name__ == "__main__":
    main()
