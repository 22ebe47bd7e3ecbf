# mapoverlay/core/registry.py
"""
Panel registry: the single source of truth for open info windows, keyed by marker id.

Single-writer discipline: every mutation builds the replacement entries first and
swaps them in under one lock, so readers never see a half-updated entry and a batch
(auto-arrange, snapshot restore) cannot interleave with a drag commit. Listeners are
notified after the swap, outside the lock.
Unknown ids are logged and ignored, never raised.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Literal, Mapping

from mapoverlay.core.error_codes import UnknownPanelId
from mapoverlay.core.types import (
    DEFAULT_PANEL_SIZE,
    Edge,
    GeoPoint,
    GestureState,
    PanelSize,
    PanelState,
)
from mapoverlay.core.viewport import Subscription

logger = logging.getLogger(__name__)

ChangeKind = Literal["opened", "closed", "updated", "replaced", "gesture"]


@dataclass(frozen=True)
class RegistryChange:
    """Notification of a committed mutation. ids lists every affected marker id."""
    kind: ChangeKind
    ids: tuple[str, ...]


class PanelRegistry:
    """Map of marker id -> PanelState plus per-panel gesture bookkeeping."""

    def __init__(self, default_size: PanelSize = DEFAULT_PANEL_SIZE) -> None:
        self.default_size = default_size
        self._panels: dict[str, PanelState] = {}
        self._gestures: dict[str, GestureState] = {}
        self._listeners: dict[int, Callable[[RegistryChange], None]] = {}
        self._next_listener = 0
        self._lock = threading.RLock()

    # ----- read API -----

    def has(self, marker_id: str) -> bool:
        with self._lock:
            return marker_id in self._panels

    def __contains__(self, marker_id: object) -> bool:
        return isinstance(marker_id, str) and self.has(marker_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._panels)

    def get(self, marker_id: str) -> PanelState | None:
        with self._lock:
            return self._panels.get(marker_id)

    def require(self, marker_id: str) -> PanelState:
        """Strict lookup for callers that must not proceed on a closed panel."""
        state = self.get(marker_id)
        if state is None:
            raise UnknownPanelId(marker_id)
        return state

    def ids(self) -> list[str]:
        """Open marker ids in opening order."""
        with self._lock:
            return list(self._panels)

    def states(self) -> dict[str, PanelState]:
        """Copy of the registry; entries are immutable so the copy is safe to keep."""
        with self._lock:
            return dict(self._panels)

    # ----- mutations -----

    def open(self, marker_id: str, anchor: GeoPoint, size: PanelSize | None = None) -> PanelState:
        """
        Open a panel at its marker. Re-opening an open id is idempotent: floating position,
        minimized, user_positioned and size are kept; only the anchor is refreshed.
        """
        with self._lock:
            existing = self._panels.get(marker_id)
            if existing is not None:
                state = replace(existing, anchor=anchor)
                kind: ChangeKind = "updated"
            else:
                state = PanelState(
                    marker_id=marker_id,
                    anchor=anchor,
                    floating=anchor,
                    size=size or self.default_size,
                )
                kind = "opened"
            self._panels[marker_id] = state
        self._notify(RegistryChange(kind, (marker_id,)))
        return state

    def close(self, marker_id: str) -> bool:
        """Remove a panel. No-op (False) for unknown ids."""
        with self._lock:
            if marker_id not in self._panels:
                logger.debug("close() on unknown panel id %s ignored", marker_id)
                return False
            del self._panels[marker_id]
            self._gestures.pop(marker_id, None)
        self._notify(RegistryChange("closed", (marker_id,)))
        return True

    def close_all(self) -> list[str]:
        with self._lock:
            closed = list(self._panels)
            self._panels.clear()
            self._gestures.clear()
        if closed:
            self._notify(RegistryChange("closed", tuple(closed)))
        return closed

    def _update(self, marker_id: str, **changes: object) -> PanelState | None:
        with self._lock:
            existing = self._panels.get(marker_id)
            if existing is None:
                logger.warning("Ignoring update of unknown panel id %s (%s)", marker_id, ", ".join(changes))
                return None
            state = replace(existing, **changes)
            self._panels[marker_id] = state
        self._notify(RegistryChange("updated", (marker_id,)))
        return state

    def set_floating(self, marker_id: str, geo: GeoPoint, user_positioned: bool = True) -> PanelState | None:
        """Move a panel; a deliberate move also clears its edge-arrangement tag."""
        return self._update(marker_id, floating=geo, user_positioned=user_positioned, organized_edge=None)

    def set_minimized(self, marker_id: str, minimized: bool) -> PanelState | None:
        return self._update(marker_id, minimized=minimized)

    def set_size(self, marker_id: str, size: PanelSize) -> PanelState | None:
        return self._update(marker_id, size=size)

    def bulk_set_floating(
        self,
        positions: Mapping[str, GeoPoint],
        user_positioned: bool = True,
        organized_edges: Mapping[str, Edge] | None = None,
    ) -> list[str]:
        """
        Move many panels in one atomic swap. Unknown ids are skipped and logged.
        Returns the ids actually moved.
        """
        edges = organized_edges or {}
        with self._lock:
            updated: dict[str, PanelState] = {}
            for marker_id, geo in positions.items():
                existing = self._panels.get(marker_id)
                if existing is None:
                    logger.warning("bulk_set_floating: skipping unknown panel id %s", marker_id)
                    continue
                updated[marker_id] = replace(
                    existing,
                    floating=geo,
                    user_positioned=user_positioned,
                    organized_edge=edges.get(marker_id),
                )
            self._panels.update(updated)
        if updated:
            self._notify(RegistryChange("updated", tuple(updated)))
        return list(updated)

    def replace_all(self, states: Mapping[str, PanelState]) -> None:
        """Wholesale replacement (snapshot restore / load). Not a merge."""
        with self._lock:
            previous = list(self._panels)
            self._panels = {
                marker_id: (state if state.marker_id == marker_id else replace(state, marker_id=marker_id))
                for marker_id, state in states.items()
            }
            self._gestures.clear()
            affected = tuple(dict.fromkeys(previous + list(self._panels)))
        self._notify(RegistryChange("replaced", affected))

    # ----- gestures -----

    def begin_gesture(self, marker_id: str, gesture: GestureState) -> bool:
        with self._lock:
            if marker_id not in self._panels:
                logger.warning("Gesture %s on unknown panel id %s ignored", gesture.value, marker_id)
                return False
            self._gestures[marker_id] = gesture
        self._notify(RegistryChange("gesture", (marker_id,)))
        return True

    def end_gesture(self, marker_id: str) -> None:
        with self._lock:
            had = self._gestures.pop(marker_id, None)
        if had is not None:
            self._notify(RegistryChange("gesture", (marker_id,)))

    def gesture_state(self, marker_id: str) -> GestureState:
        with self._lock:
            return self._gestures.get(marker_id, GestureState.IDLE)

    def busy_ids(self) -> set[str]:
        """Panels in Dragging or Resizing; arrangement must leave them alone."""
        with self._lock:
            return {k for k, g in self._gestures.items() if g != GestureState.IDLE}

    # ----- listeners -----

    def subscribe(self, listener: Callable[[RegistryChange], None]) -> Subscription:
        with self._lock:
            key = self._next_listener
            self._next_listener += 1
            self._listeners[key] = listener
        return Subscription(lambda: self._remove_listener(key))

    def _remove_listener(self, key: int) -> None:
        with self._lock:
            self._listeners.pop(key, None)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _notify(self, change: RegistryChange) -> None:
        with self._lock:
            listeners = list(self._listeners.items())
        for key, listener in listeners:
            with self._lock:
                still_subscribed = key in self._listeners
            if still_subscribed:
                listener(change)


def visible_states(registry: PanelRegistry, visible_ids: Iterable[str] | None) -> dict[str, PanelState]:
    """Registry entries filtered to visible_ids (None = all), in opening order."""
    states = registry.states()
    if visible_ids is None:
        return states
    wanted = set(visible_ids)
    return {k: v for k, v in states.items() if k in wanted}
