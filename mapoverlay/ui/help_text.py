# mapoverlay/ui/help_text.py
"""
Reusable help strings for UI tooltips and glossary.
"""

# Short one-liners for widget help=
TOOLTIP_RADIAL = "Place every visible info window on a circle around the map center."
TOOLTIP_EDGE = "Move each visible info window to its nearest map edge, avoiding crossing tethers where possible."
TOOLTIP_CLOSE_ALL = "Close every open info window."
TOOLTIP_SNAP = "After a drag, snap the info window flush to the nearest map edge."
TOOLTIP_MINIMIZE_PRESET = "Size used for minimized info windows."
TOOLTIP_AUTO_APPLY = "Apply the default size to every open info window, not only new ones."
TOOLTIP_SNAPSHOT_TITLE = "Leave blank to use the current date and time."
TOOLTIP_DRAG = "Move the selected info window by this many pixels (x right, y down)."
TOOLTIP_PAN = "Pan the map by this many pixels. Info windows keep their geographic position."

# Full glossary for Help & glossary expander
GLOSSARY_MD = """
### Info window
The floating detail card opened by clicking a marker.

### Anchor
The marker's fixed geographic position. Arranging or dragging never moves it.

### Tether
The dashed line from a marker to the center of its info window. It is redrawn whenever the map pans or zooms.

### Radial arrangement
Info windows are spread evenly on a circle around the viewport center. One window sits exactly at the center.

### Edge arrangement
Each info window goes to a viewport edge, nearest first, skipping edges whose tether would cross one already placed.
Windows sharing an edge are spread evenly along it and kept fully inside the map.

### Snapshot
A saved copy of the open info windows, map center, zoom and category filter. Restoring replaces the current windows.
"""

QUICK_TROUBLESHOOT_MD = """
- **Nothing moves on Arrange**: the map is not ready yet, or every open window is hidden by the category filter.
- **Tethers cross after Edge arrange**: the edge choice is greedy; many markers near one edge can still produce crossings.
- **"Could not save map state"**: the storage directory is not writable. Layout changes still apply for this session.
"""
