"""
Structured error codes and recoverable conditions for the overlay engine.
Use the keys in return values and notifications; map to user-facing messages in the UI.
"""

# Known error keys
PROJECTION_UNAVAILABLE = "projection_unavailable"
VIEWPORT_BOUNDS_UNAVAILABLE = "viewport_bounds_unavailable"
UNKNOWN_PANEL_ID = "unknown_panel_id"
CORRUPTED_PERSISTED_STATE = "corrupted_persisted_state"
STORAGE_WRITE_FAILED = "storage_write_failed"
SNAPSHOT_NOT_FOUND = "snapshot_not_found"

# User-facing messages (short, actionable)
USER_MESSAGES: dict[str, str] = {
    PROJECTION_UNAVAILABLE: "The map is still loading. Try again in a moment.",
    VIEWPORT_BOUNDS_UNAVAILABLE: "The map has no visible area yet. Try again once it has rendered.",
    UNKNOWN_PANEL_ID: "That info window is no longer open.",
    CORRUPTED_PERSISTED_STATE: "Saved map state could not be read and was reset.",
    STORAGE_WRITE_FAILED: "Could not save map state. Storage may be full.",
    SNAPSHOT_NOT_FOUND: "That snapshot no longer exists.",
}


def user_message(error_key: str | None, fallback: str = "Something went wrong.") -> str:
    """Return a user-facing message for the given error key."""
    if not error_key:
        return fallback
    return USER_MESSAGES.get(error_key, fallback)


class OverlayError(Exception):
    """Base class for engine conditions. `code` is one of the keys above."""

    code: str = ""

    def user_message(self) -> str:
        return user_message(self.code)


class ProjectionUnavailable(OverlayError):
    """Viewport projection not ready yet; defer and retry on the next idle event."""

    code = PROJECTION_UNAVAILABLE


class ViewportBoundsUnavailable(OverlayError):
    """The map has no current bounds; bounds and arrangement short-circuit to no-op."""

    code = VIEWPORT_BOUNDS_UNAVAILABLE


class UnknownPanelId(OverlayError, KeyError):
    """Mutation or lookup referencing a closed or never-opened panel."""

    code = UNKNOWN_PANEL_ID


class CorruptedPersistedState(OverlayError, ValueError):
    """Stored JSON failed to parse or failed shape validation."""

    code = CORRUPTED_PERSISTED_STATE


class StorageUnavailable(OverlayError):
    """The key-value store rejected a write (e.g. quota exceeded)."""

    code = STORAGE_WRITE_FAILED
