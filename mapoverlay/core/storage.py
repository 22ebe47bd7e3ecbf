# mapoverlay/core/storage.py
"""
Key-value persistence of the overlay state as JSON.

Stores: MemoryStore (tests, Streamlit session) and JsonFileStore (one JSON file per key
under a directory). Decoders validate shape and raise CorruptedPersistedState; the
load_* helpers catch it, log a warning and fall back to defaults. Writes that the store
rejects surface as StorageUnavailable so the caller can show a non-blocking notice.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol

from mapoverlay.core.bounds import clamp_size
from mapoverlay.core.config import (
    CATEGORY_FILTER_STORAGE_KEY,
    REGISTRY_STORAGE_KEY,
    SETTINGS_STORAGE_KEY,
    STORAGE_DIR,
)
from mapoverlay.core.error_codes import CorruptedPersistedState, StorageUnavailable
from mapoverlay.core.types import DEFAULT_PANEL_SIZE, EDGES, GeoPoint, PanelSize, PanelState

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """String-keyed string store (the browser's localStorage shape)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-memory store. quota_bytes, when set, makes oversized writes fail like a full disk."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.data: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(v) for k, v in self.data.items() if k != key)
            if used + len(value) > self.quota_bytes:
                raise StorageUnavailable(f"Quota exceeded writing {key!r}")
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """One <key>.json file per key under root."""

    def __init__(self, root: str | Path = STORAGE_DIR) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> str | None:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            return p.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptedPersistedState(f"{key}: not UTF-8 text ({e.reason})") from e

    def set(self, key: str, value: str) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self._path(key).write_text(value, encoding="utf-8")
        except OSError as e:
            raise StorageUnavailable(f"Could not write {key!r}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Could not remove {key!r}: {e}") from e


# ----- JSON helpers -----

def read_json(store: KeyValueStore, key: str) -> Any | None:
    """Parsed JSON under key, or None when absent. Raises CorruptedPersistedState on bad JSON."""
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptedPersistedState(f"{key}: {e}") from e


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Serialize and write. Raises StorageUnavailable when the store rejects the write."""
    try:
        store.set(key, json.dumps(value))
    except StorageUnavailable:
        raise
    except OSError as e:
        raise StorageUnavailable(f"Could not write {key!r}: {e}") from e


def require_number(d: Mapping[str, Any], name: str) -> float:
    v = d.get(name)
    if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
        raise CorruptedPersistedState(f"Expected a finite number for {name!r}, got {v!r}")
    return float(v)


def _bool(d: Mapping[str, Any], name: str, default: bool = False) -> bool:
    v = d.get(name, default)
    if not isinstance(v, bool):
        raise CorruptedPersistedState(f"Expected a boolean for {name!r}, got {v!r}")
    return v


def geo_to_dict(p: GeoPoint) -> dict[str, float]:
    return {"lat": p.lat, "lng": p.lng}


def geo_from_dict(d: Any) -> GeoPoint:
    if not isinstance(d, dict):
        raise CorruptedPersistedState(f"Expected a position object, got {type(d).__name__}")
    return GeoPoint(lat=require_number(d, "lat"), lng=require_number(d, "lng"))


def panel_state_to_dict(s: PanelState) -> dict[str, Any]:
    return {
        "markerId": s.marker_id,
        "anchor": geo_to_dict(s.anchor),
        "floating": geo_to_dict(s.floating),
        "minimized": s.minimized,
        "userPositioned": s.user_positioned,
        "size": {"width": s.size.width, "height": s.size.height},
        "organizedEdge": s.organized_edge,
    }


def panel_state_from_dict(marker_id: str, d: Any) -> PanelState:
    """Validate one persisted entry. Missing optional fields take their defaults."""
    if not isinstance(d, dict):
        raise CorruptedPersistedState(f"Panel {marker_id!r}: expected an object")
    size_raw = d.get("size")
    if size_raw is None:
        size = DEFAULT_PANEL_SIZE
    elif isinstance(size_raw, dict):
        size = PanelSize(require_number(size_raw, "width"), require_number(size_raw, "height"))
    else:
        raise CorruptedPersistedState(f"Panel {marker_id!r}: bad size {size_raw!r}")
    edge = d.get("organizedEdge")
    if edge is not None and edge not in EDGES:
        raise CorruptedPersistedState(f"Panel {marker_id!r}: bad edge {edge!r}")
    anchor = geo_from_dict(d.get("anchor"))
    return PanelState(
        marker_id=marker_id,
        anchor=anchor,
        floating=geo_from_dict(d["floating"]) if "floating" in d else anchor,
        minimized=_bool(d, "minimized"),
        user_positioned=_bool(d, "userPositioned"),
        size=size,
        organized_edge=edge,
    )


def panels_to_dict(states: Mapping[str, PanelState]) -> dict[str, dict[str, Any]]:
    return {pid: panel_state_to_dict(s) for pid, s in states.items()}


def panels_from_dict(d: Any) -> dict[str, PanelState]:
    if not isinstance(d, dict):
        raise CorruptedPersistedState("Panel registry: expected an object keyed by marker id")
    return {str(pid): panel_state_from_dict(str(pid), v) for pid, v in d.items()}


# ----- Registry -----

def save_registry(store: KeyValueStore, states: Mapping[str, PanelState]) -> None:
    write_json(store, REGISTRY_STORAGE_KEY, panels_to_dict(states))


def load_registry(store: KeyValueStore) -> dict[str, PanelState]:
    """Persisted registry, or {} when absent or corrupted."""
    try:
        data = read_json(store, REGISTRY_STORAGE_KEY)
        return {} if data is None else panels_from_dict(data)
    except CorruptedPersistedState as e:
        logger.warning("Discarding corrupted panel registry: %s", e)
        return {}


# ----- Category filter -----

def save_category_filter(store: KeyValueStore, category_ids: list[str]) -> None:
    write_json(store, CATEGORY_FILTER_STORAGE_KEY, list(category_ids))


def load_category_filter(store: KeyValueStore, default: list[str]) -> list[str]:
    """Persisted filter selection, or default when absent or corrupted."""
    try:
        data = read_json(store, CATEGORY_FILTER_STORAGE_KEY)
    except CorruptedPersistedState as e:
        logger.warning("Discarding corrupted category filter: %s", e)
        return list(default)
    if data is None:
        return list(default)
    if not isinstance(data, list) or not all(isinstance(c, str) for c in data):
        logger.warning("Discarding category filter with unexpected shape: %r", data)
        return list(default)
    return data


# ----- Size settings -----

@dataclass(frozen=True)
class PanelSizeSettings:
    """Default size for newly opened panels, optionally applied to all open panels."""
    default_size: PanelSize = DEFAULT_PANEL_SIZE
    auto_apply_to_existing: bool = False


def save_size_settings(store: KeyValueStore, settings: PanelSizeSettings) -> PanelSizeSettings:
    """Clamp and persist. Returns the settings actually stored."""
    clamped = PanelSizeSettings(clamp_size(settings.default_size), settings.auto_apply_to_existing)
    write_json(
        store,
        SETTINGS_STORAGE_KEY,
        {
            "defaultSize": {"width": clamped.default_size.width, "height": clamped.default_size.height},
            "autoApplyToExisting": clamped.auto_apply_to_existing,
        },
    )
    return clamped


def load_size_settings(store: KeyValueStore) -> PanelSizeSettings:
    try:
        data = read_json(store, SETTINGS_STORAGE_KEY)
        if data is None:
            return PanelSizeSettings()
        if not isinstance(data, dict) or not isinstance(data.get("defaultSize"), dict):
            raise CorruptedPersistedState("Size settings: expected {defaultSize: {...}}")
        size = data["defaultSize"]
        return PanelSizeSettings(
            default_size=clamp_size(PanelSize(require_number(size, "width"), require_number(size, "height"))),
            auto_apply_to_existing=_bool(data, "autoApplyToExisting"),
        )
    except CorruptedPersistedState as e:
        logger.warning("Discarding corrupted size settings: %s", e)
        return PanelSizeSettings()
