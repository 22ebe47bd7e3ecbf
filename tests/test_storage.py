# tests/test_storage.py
"""
Persistence: registry round-trip, corrupted data falls back to defaults,
category filter, size settings clamp, file store and quota failures.
"""

from __future__ import annotations

import json
import logging

import pytest

from mapoverlay.core.config import CATEGORY_FILTER_STORAGE_KEY, REGISTRY_STORAGE_KEY
from mapoverlay.core.error_codes import CorruptedPersistedState, StorageUnavailable
from mapoverlay.core.storage import (
    JsonFileStore,
    MemoryStore,
    PanelSizeSettings,
    load_category_filter,
    load_registry,
    load_size_settings,
    panel_state_from_dict,
    save_category_filter,
    save_registry,
    save_size_settings,
)
from mapoverlay.core.types import DEFAULT_PANEL_SIZE, GeoPoint, PanelSize, PanelState


def _states() -> dict[str, PanelState]:
    return {
        "m1": PanelState("m1", GeoPoint(35.0, 139.0), GeoPoint(35.2, 139.3), user_positioned=True,
                         organized_edge="north"),
        "m2": PanelState("m2", GeoPoint(34.9, 138.8), GeoPoint(34.9, 138.8), minimized=True,
                         size=PanelSize(300, 200)),
    }


def test_registry_round_trip() -> None:
    store = MemoryStore()
    save_registry(store, _states())
    raw = json.loads(store.get(REGISTRY_STORAGE_KEY))
    assert raw["m1"]["userPositioned"] is True
    assert raw["m1"]["organizedEdge"] == "north"
    assert load_registry(store) == _states()


def test_missing_registry_is_empty() -> None:
    assert load_registry(MemoryStore()) == {}


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[1, 2, 3]",
        json.dumps({"m1": {"anchor": {"lat": "35", "lng": 139}}}),
        json.dumps({"m1": {"anchor": {"lat": 35, "lng": 139}, "organizedEdge": "up"}}),
    ],
)
def test_corrupted_registry_falls_back(raw: str, caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryStore()
    store.set(REGISTRY_STORAGE_KEY, raw)
    with caplog.at_level(logging.WARNING):
        assert load_registry(store) == {}
    assert "corrupted" in caplog.text


def test_panel_entry_defaults() -> None:
    s = panel_state_from_dict("m1", {"anchor": {"lat": 35, "lng": 139}})
    assert s.floating == s.anchor
    assert s.size == DEFAULT_PANEL_SIZE
    assert not s.minimized and not s.user_positioned
    with pytest.raises(CorruptedPersistedState):
        panel_state_from_dict("m1", {"anchor": {"lat": 35, "lng": 139}, "minimized": "yes"})


def test_category_filter_default_and_round_trip() -> None:
    store = MemoryStore()
    assert load_category_filter(store, ["a", "b"]) == ["a", "b"]
    save_category_filter(store, ["flood"])
    assert load_category_filter(store, ["a"]) == ["flood"]
    store.set(CATEGORY_FILTER_STORAGE_KEY, json.dumps({"flood": True}))
    assert load_category_filter(store, ["a"]) == ["a"]


def test_size_settings_are_clamped() -> None:
    store = MemoryStore()
    assert load_size_settings(store) == PanelSizeSettings()
    stored = save_size_settings(store, PanelSizeSettings(PanelSize(2000, 10), True))
    assert stored.default_size == PanelSize(600, 100)
    assert load_size_settings(store) == stored


def test_json_file_store(tmp_path) -> None:
    store = JsonFileStore(tmp_path / "state")
    assert store.get("k") is None
    save_registry(store, _states())
    assert (tmp_path / "state" / f"{REGISTRY_STORAGE_KEY}.json").exists()
    assert load_registry(JsonFileStore(tmp_path / "state")) == _states()
    store.remove(REGISTRY_STORAGE_KEY)
    store.remove(REGISTRY_STORAGE_KEY)
    assert load_registry(store) == {}


def test_non_utf8_file_is_treated_as_corrupted(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    (tmp_path / f"{REGISTRY_STORAGE_KEY}.json").write_bytes(b"\xff\xfe{bad")
    store = JsonFileStore(tmp_path)
    with pytest.raises(CorruptedPersistedState):
        store.get(REGISTRY_STORAGE_KEY)
    with caplog.at_level(logging.WARNING):
        assert load_registry(store) == {}
    assert "corrupted" in caplog.text


def test_file_store_remove_failure_is_storage_unavailable(tmp_path) -> None:
    # A directory where the file should be cannot be unlinked
    (tmp_path / "k.json").mkdir()
    with pytest.raises(StorageUnavailable):
        JsonFileStore(tmp_path).remove("k")


def test_memory_store_quota() -> None:
    store = MemoryStore(quota_bytes=64)
    with pytest.raises(StorageUnavailable):
        save_registry(store, _states())
    assert store.get(REGISTRY_STORAGE_KEY) is None
