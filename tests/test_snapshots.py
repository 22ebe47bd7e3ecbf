# tests/test_snapshots.py
"""
Snapshot history: ordering, default titles, id format, eviction, rename/delete/clear,
and tolerance of corrupted records.
"""

from __future__ import annotations

import itertools
import json
import re

from mapoverlay.core.config import SNAPSHOTS_STORAGE_KEY
from mapoverlay.core.snapshots import SnapshotStore, default_title
from mapoverlay.core.storage import MemoryStore
from mapoverlay.core.types import GeoPoint, PanelState

CENTER = GeoPoint(35.0, 139.0)
PANELS = {"m1": PanelState("m1", CENTER, GeoPoint(35.1, 139.1), user_positioned=True)}


def _store(max_snapshots: int = 50) -> tuple[MemoryStore, SnapshotStore]:
    clock = itertools.count(1_700_000_000, 60)
    kv = MemoryStore()
    return kv, SnapshotStore(kv, clock=lambda: float(next(clock)), seed=0, max_snapshots=max_snapshots)


def test_save_lists_newest_first() -> None:
    _, snaps = _store()
    a = snaps.save("first", PANELS, CENTER, 10.0, ["flood"])
    b = snaps.save("second", {}, CENTER, 11.0)
    assert [s.id for s in snaps.list()] == [b.id, a.id]
    got = snaps.get(a.id)
    assert got == a
    assert got.panel_count == 1
    assert got.active_category_filters == ["flood"]


def test_default_title_and_id_format() -> None:
    _, snaps = _store()
    s = snaps.save("   ", PANELS, CENTER, 10.0)
    assert s.title == default_title(1_700_000_000)
    assert s.title == "Snapshot 2023-11-14 22:13"
    assert re.fullmatch(r"snapshot_1700000000000_[0-9a-z]{9}", s.id)


def test_oldest_snapshots_are_evicted() -> None:
    _, snaps = _store(max_snapshots=3)
    ids = [snaps.save(f"s{i}", {}, CENTER, 10.0).id for i in range(5)]
    assert [s.id for s in snaps.list()] == ids[:1:-1]


def test_rename_delete_and_clear() -> None:
    kv, snaps = _store()
    s = snaps.save("old", PANELS, CENTER, 10.0)
    assert snaps.update_title(s.id, "  ") is None
    assert snaps.update_title("missing", "x") is None
    renamed = snaps.update_title(s.id, "new")
    assert renamed.title == "new"
    assert renamed.timestamp == s.timestamp
    assert snaps.get(s.id).title == "new"
    assert not snaps.delete("missing")
    assert snaps.delete(s.id)
    assert snaps.get(s.id) is None
    snaps.save("again", {}, CENTER, 10.0)
    snaps.clear_all()
    assert snaps.list() == []
    assert kv.get(SNAPSHOTS_STORAGE_KEY) is None


def test_corrupted_records_are_skipped() -> None:
    kv, snaps = _store()
    good = snaps.save("good", PANELS, CENTER, 10.0)
    raw = json.loads(kv.get(SNAPSHOTS_STORAGE_KEY))
    raw.append({"id": "bad", "title": "bad"})
    kv.set(SNAPSHOTS_STORAGE_KEY, json.dumps(raw))
    assert [s.id for s in snaps.list()] == [good.id]
    kv.set(SNAPSHOTS_STORAGE_KEY, "{oops")
    assert snaps.list() == []
