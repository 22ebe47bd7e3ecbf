# mapoverlay/core/markers.py
"""
Disaster-report markers as the overlay receives them, the category catalogue,
and seeded demo marker generation. Marker data arrives already resolved; nothing
here validates report content.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterable, Literal, Mapping

import numpy as np

from mapoverlay.core.config import DEFAULT_MARKER_COUNT, SEED
from mapoverlay.core.projection import require_projection, to_geo
from mapoverlay.core.types import GeoPoint, PixelPoint, ViewportState

Severity = Literal["low", "medium", "high", "critical"]
Status = Literal["reported", "investigating", "in_progress", "resolved"]

SEVERITIES: tuple[str, ...] = ("low", "medium", "high", "critical")
STATUSES: tuple[str, ...] = ("reported", "investigating", "in_progress", "resolved")


@dataclass(frozen=True)
class DisasterCategory:
    id: str
    name: str
    color: str
    description: str


DISASTER_CATEGORIES: tuple[DisasterCategory, ...] = (
    DisasterCategory("road", "Road", "#7E57C2", "Road collapse, road damage"),
    DisasterCategory("bridge", "Bridge", "#5D4037", "Bridge damage, collapsed spans"),
    DisasterCategory("river", "River", "#4FC3F7", "River flooding, levee breaches"),
    DisasterCategory("coast", "Coast", "#26A69A", "Storm surge, tsunami damage"),
    DisasterCategory("flood", "Flooding", "#03A9F4", "Inland flooding, inundation"),
    DisasterCategory("sediment", "Sediment control", "#8D6E63", "Debris flows, cliff failures"),
    DisasterCategory("steep_slope", "Steep slope", "#FF5722", "Steep slope collapse"),
    DisasterCategory("landslide", "Landslide", "#FF7043", "Landslides, hillside failures"),
    DisasterCategory("harbor_coast", "Coast (harbor)", "#42A5F5", "Coastal damage inside harbor areas"),
    DisasterCategory("harbor", "Harbor", "#5C6BC0", "Harbor facility damage"),
    DisasterCategory("fishing_port", "Fishing port", "#29B6F6", "Fishing port facility damage"),
    DisasterCategory("sewage", "Sewerage", "#9CCC65", "Broken sewer pipes, treatment plant damage"),
    DisasterCategory("park", "Park", "#66BB6A", "Park facility damage"),
    DisasterCategory("other", "Other", "#78909C", "Other public facility damage"),
)

CATEGORY_IDS: tuple[str, ...] = tuple(c.id for c in DISASTER_CATEGORIES)


def category_color(category_id: str) -> str:
    """Marker color for a category; unknown ids use the "other" color."""
    by_id = {c.id: c.color for c in DISASTER_CATEGORIES}
    return by_id.get(category_id, by_id["other"])


@dataclass(frozen=True)
class MarkerData:
    """One resolved disaster report."""
    id: str
    position: GeoPoint
    title: str
    description: str
    category: str
    severity: Severity
    status: Status
    report_date: str = ""
    city: str = ""


def visible_marker_ids(markers: Iterable[MarkerData], active_categories: Iterable[str]) -> set[str]:
    """Ids of markers whose category is in the active filter set."""
    active = set(active_categories)
    return {m.id for m in markers if m.category in active}


def generate_markers(
    viewport: ViewportState,
    n: int = DEFAULT_MARKER_COUNT,
    seed: int | None = SEED,
    inset_frac: float = 0.1,
) -> list[MarkerData]:
    """
    n demo markers scattered uniformly over the visible area, inset by inset_frac
    of the viewport on every side. Deterministic for a given seed.
    """
    vp = require_projection(viewport)
    rng = np.random.default_rng(seed)
    xs = rng.uniform(vp.width_px * inset_frac, vp.width_px * (1.0 - inset_frac), size=n)
    ys = rng.uniform(vp.height_px * inset_frac, vp.height_px * (1.0 - inset_frac), size=n)
    cats = rng.choice(len(CATEGORY_IDS), size=n)
    sevs = rng.choice(len(SEVERITIES), size=n)
    stats = rng.choice(len(STATUSES), size=n)
    out: list[MarkerData] = []
    for i in range(n):
        category = DISASTER_CATEGORIES[int(cats[i])]
        out.append(
            MarkerData(
                id=f"m{i + 1}",
                position=to_geo(PixelPoint(float(xs[i]), float(ys[i])), vp),
                title=f"{category.name} report #{i + 1}",
                description=category.description,
                category=category.id,
                severity=SEVERITIES[int(sevs[i])],  # type: ignore[arg-type]
                status=STATUSES[int(stats[i])],  # type: ignore[arg-type]
            )
        )
    return out


def marker_to_dict(m: MarkerData) -> dict:
    d = asdict(m)
    d["position"] = {"lat": m.position.lat, "lng": m.position.lng}
    return d


def marker_from_dict(d: Mapping) -> MarkerData:
    pos = d["position"]
    return MarkerData(
        id=str(d["id"]),
        position=GeoPoint(lat=float(pos["lat"]), lng=float(pos["lng"])),
        title=str(d.get("title", "")),
        description=str(d.get("description", "")),
        category=str(d.get("category", "other")),
        severity=d.get("severity", "low"),
        status=d.get("status", "reported"),
        report_date=str(d.get("report_date", "")),
        city=str(d.get("city", "")),
    )


def load_markers(path: str | Path) -> list[MarkerData]:
    """Read a markers JSON file ({"markers": [...]}) as written by scripts/generate_markers.py."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Markers file not found: {p}")
    data = json.loads(p.read_text(encoding="utf-8"))
    return [marker_from_dict(d) for d in data.get("markers", [])]


def write_markers(path: str | Path, markers: Iterable[MarkerData]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps({"markers": [marker_to_dict(m) for m in markers]}, indent=2), encoding="utf-8")
