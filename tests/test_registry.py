# tests/test_registry.py
"""
Panel registry: fresh and idempotent open, close semantics, unknown-id no-ops,
batch updates, wholesale replacement, gesture bookkeeping and change listeners.
"""

from __future__ import annotations

import logging

import pytest

from mapoverlay.core.error_codes import UnknownPanelId
from mapoverlay.core.registry import PanelRegistry, RegistryChange, visible_states
from mapoverlay.core.types import DEFAULT_PANEL_SIZE, GeoPoint, GestureState, PanelSize, PanelState

A = GeoPoint(35.0, 139.0)
B = GeoPoint(35.1, 139.1)


def test_fresh_open_floats_at_anchor() -> None:
    reg = PanelRegistry()
    s = reg.open("m1", A)
    assert s.floating == A
    assert s.anchor == A
    assert not s.user_positioned
    assert not s.minimized
    assert s.size == DEFAULT_PANEL_SIZE
    assert reg.has("m1") and "m1" in reg and len(reg) == 1


def test_open_is_idempotent() -> None:
    reg = PanelRegistry()
    reg.open("m1", A)
    reg.set_floating("m1", B)
    reg.set_minimized("m1", True)
    reg.set_size("m1", PanelSize(300, 300))
    again = reg.open("m1", A)
    assert again.user_positioned
    assert again.minimized
    assert again.floating == B
    assert again.size == PanelSize(300, 300)
    assert len(reg) == 1


def test_close_then_reopen_is_fresh() -> None:
    reg = PanelRegistry()
    reg.open("m1", A)
    reg.set_floating("m1", B)
    assert reg.close("m1")
    assert not reg.has("m1")
    s = reg.open("m1", A)
    assert not s.user_positioned
    assert s.floating == A


def test_close_unknown_is_noop() -> None:
    reg = PanelRegistry()
    assert reg.close("nope") is False
    assert len(reg) == 0


def test_unknown_id_mutation_logs_and_returns_none(caplog: pytest.LogCaptureFixture) -> None:
    reg = PanelRegistry()
    with caplog.at_level(logging.WARNING):
        assert reg.set_floating("ghost", A) is None
        assert reg.set_minimized("ghost", True) is None
    assert "ghost" in caplog.text
    assert not reg.has("ghost")


def test_require_raises_unknown_panel() -> None:
    reg = PanelRegistry()
    with pytest.raises(UnknownPanelId):
        reg.require("ghost")


def test_set_floating_clears_organized_edge() -> None:
    reg = PanelRegistry()
    reg.open("m1", A)
    reg.bulk_set_floating({"m1": B}, organized_edges={"m1": "north"})
    assert reg.get("m1").organized_edge == "north"
    reg.set_floating("m1", A)
    assert reg.get("m1").organized_edge is None


def test_bulk_set_floating_skips_unknown() -> None:
    reg = PanelRegistry()
    reg.open("m1", A)
    reg.open("m2", A)
    moved = reg.bulk_set_floating({"m1": B, "ghost": B, "m2": B})
    assert moved == ["m1", "m2"]
    assert all(s.floating == B and s.user_positioned for s in reg.states().values())
    assert not reg.has("ghost")


def test_replace_all_is_not_a_merge() -> None:
    reg = PanelRegistry()
    reg.open("m1", A)
    reg.open("m2", A)
    reg.replace_all({"m3": PanelState("m3", B, B, minimized=True)})
    assert reg.ids() == ["m3"]
    assert reg.get("m3").minimized


def test_states_is_a_copy() -> None:
    reg = PanelRegistry()
    reg.open("m1", A)
    snapshot = reg.states()
    reg.close("m1")
    assert "m1" in snapshot
    assert not reg.has("m1")


def test_gesture_bookkeeping() -> None:
    reg = PanelRegistry()
    reg.open("m1", A)
    reg.open("m2", A)
    assert reg.begin_gesture("m1", GestureState.DRAGGING)
    assert not reg.begin_gesture("ghost", GestureState.RESIZING)
    assert reg.busy_ids() == {"m1"}
    assert reg.gesture_state("m2") == GestureState.IDLE
    reg.end_gesture("m1")
    assert reg.busy_ids() == set()
    reg.begin_gesture("m2", GestureState.RESIZING)
    reg.close("m2")
    assert reg.busy_ids() == set()


def test_listeners_receive_changes_until_disposed() -> None:
    reg = PanelRegistry()
    seen: list[RegistryChange] = []
    sub = reg.subscribe(seen.append)
    reg.open("m1", A)
    reg.set_minimized("m1", True)
    reg.close("m1")
    assert [c.kind for c in seen] == ["opened", "updated", "closed"]
    assert all(c.ids == ("m1",) for c in seen)
    sub.dispose()
    sub.dispose()
    reg.open("m2", A)
    assert len(seen) == 3
    assert reg.listener_count == 0


def test_visible_states_filters_in_opening_order() -> None:
    reg = PanelRegistry()
    for pid in ("m1", "m2", "m3"):
        reg.open(pid, A)
    assert list(visible_states(reg, {"m3", "m1"})) == ["m1", "m3"]
    assert list(visible_states(reg, None)) == ["m1", "m2", "m3"]
