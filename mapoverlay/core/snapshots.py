# mapoverlay/core/snapshots.py
"""
Named snapshots of the panel registry, viewport and category filters.
Kept under one key as a JSON array, most recent first, capped at MAX_SNAPSHOTS.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

import numpy as np

from mapoverlay.core.config import MAX_SNAPSHOTS, SNAPSHOTS_STORAGE_KEY
from mapoverlay.core.error_codes import CorruptedPersistedState
from mapoverlay.core.storage import (
    KeyValueStore,
    geo_from_dict,
    geo_to_dict,
    panels_from_dict,
    panels_to_dict,
    read_json,
    require_number,
    write_json,
)
from mapoverlay.core.types import GeoPoint, PanelState, Snapshot

logger = logging.getLogger(__name__)

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def default_title(timestamp: float) -> str:
    return "Snapshot " + datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def snapshot_to_dict(s: Snapshot) -> dict[str, Any]:
    return {
        "id": s.id,
        "title": s.title,
        "timestamp": s.timestamp,
        "panels": panels_to_dict(s.panels),
        "viewport": {"center": geo_to_dict(s.viewport_center), "zoom": s.viewport_zoom},
        "activeCategoryFilters": list(s.active_category_filters),
        "panelCount": s.panel_count,
    }


def snapshot_from_dict(d: Any) -> Snapshot:
    if not isinstance(d, dict):
        raise CorruptedPersistedState("Snapshot: expected an object")
    if not isinstance(d.get("id"), str) or not isinstance(d.get("title"), str):
        raise CorruptedPersistedState("Snapshot: id and title must be strings")
    vp = d.get("viewport")
    if not isinstance(vp, dict):
        raise CorruptedPersistedState(f"Snapshot {d['id']}: missing viewport")
    filters = d.get("activeCategoryFilters", [])
    if not isinstance(filters, list) or not all(isinstance(c, str) for c in filters):
        raise CorruptedPersistedState(f"Snapshot {d['id']}: bad category filters")
    panels = panels_from_dict(d.get("panels", {}))
    return Snapshot(
        id=d["id"],
        title=d["title"],
        timestamp=require_number(d, "timestamp"),
        panels=panels,
        viewport_center=geo_from_dict(vp.get("center")),
        viewport_zoom=require_number(vp, "zoom"),
        active_category_filters=list(filters),
        panel_count=len(panels),
    )


class SnapshotStore:
    """CRUD over the persisted snapshot list. Every call reads and rewrites the whole list."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        seed: int | None = None,
        max_snapshots: int = MAX_SNAPSHOTS,
    ) -> None:
        self.store = store
        self.clock = clock
        self.max_snapshots = max_snapshots
        self._rng = np.random.default_rng(seed)

    def _new_id(self, timestamp: float) -> str:
        suffix = "".join(self._rng.choice(list(_ID_ALPHABET), size=9))
        return f"snapshot_{int(timestamp * 1000)}_{suffix}"

    def _load(self) -> list[Snapshot]:
        try:
            data = read_json(self.store, SNAPSHOTS_STORAGE_KEY)
        except CorruptedPersistedState as e:
            logger.warning("Discarding corrupted snapshot list: %s", e)
            return []
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Discarding snapshot list with unexpected shape (%s)", type(data).__name__)
            return []
        out: list[Snapshot] = []
        for raw in data:
            try:
                out.append(snapshot_from_dict(raw))
            except CorruptedPersistedState as e:
                logger.warning("Skipping corrupted snapshot: %s", e)
        return out

    def _write(self, snapshots: list[Snapshot]) -> None:
        write_json(self.store, SNAPSHOTS_STORAGE_KEY, [snapshot_to_dict(s) for s in snapshots])

    def save(
        self,
        title: str,
        panels: Mapping[str, PanelState],
        viewport_center: GeoPoint,
        viewport_zoom: float,
        active_category_filters: list[str] | None = None,
    ) -> Snapshot:
        """Record a new snapshot at the head of the list; evicts the oldest beyond max_snapshots."""
        ts = self.clock()
        title = title.strip() or default_title(ts)
        snap = Snapshot(
            id=self._new_id(ts),
            title=title,
            timestamp=ts,
            panels=dict(panels),
            viewport_center=viewport_center,
            viewport_zoom=viewport_zoom,
            active_category_filters=list(active_category_filters or []),
            panel_count=len(panels),
        )
        snapshots = [snap] + self._load()
        if len(snapshots) > self.max_snapshots:
            logger.info("Evicting %d oldest snapshot(s)", len(snapshots) - self.max_snapshots)
            snapshots = snapshots[: self.max_snapshots]
        self._write(snapshots)
        logger.info("Saved snapshot %s (%d panels)", snap.id, snap.panel_count)
        return snap

    def list(self) -> list[Snapshot]:
        """Most recent first."""
        return self._load()

    def get(self, snapshot_id: str) -> Snapshot | None:
        return next((s for s in self._load() if s.id == snapshot_id), None)

    def delete(self, snapshot_id: str) -> bool:
        snapshots = self._load()
        kept = [s for s in snapshots if s.id != snapshot_id]
        if len(kept) == len(snapshots):
            return False
        self._write(kept)
        return True

    def update_title(self, snapshot_id: str, title: str) -> Snapshot | None:
        """Rename a snapshot. Blank titles are rejected (returns None)."""
        title = title.strip()
        if not title:
            return None
        snapshots = self._load()
        for i, s in enumerate(snapshots):
            if s.id == snapshot_id:
                snapshots[i] = replace(s, title=title)
                self._write(snapshots)
                return snapshots[i]
        return None

    def clear_all(self) -> None:
        self.store.remove(SNAPSHOTS_STORAGE_KEY)
