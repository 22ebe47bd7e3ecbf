# mapoverlay/ui/components.py
"""
Shared UI blocks for the map page: map figure, panel table, layout metrics, notifications,
snapshot history. The page assembles these with minimal extra logic.
"""

from __future__ import annotations

from datetime import datetime, timezone

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from mapoverlay.core.layout import LayoutSummary
from mapoverlay.core.markers import DISASTER_CATEGORIES, MarkerData
from mapoverlay.core.render import figure_for_frames
from mapoverlay.core.session import MapSession


def render_map(session: MapSession) -> None:
    """Matplotlib view of markers, tethers and info windows."""
    viewport = session.provider.viewport()
    if viewport is None:
        st.info("Map is loading.")
        return
    shown = {m.id for m in session.markers.values() if m.category in session.active_categories}
    markers = [m for m in session.markers.values() if m.id in shown]
    fig = figure_for_frames(markers, session.visible_frames(), viewport)
    st.pyplot(fig, clear_figure=False)
    plt.close(fig)


def panels_dataframe(session: MapSession) -> pd.DataFrame:
    """One row per open info window. All values as string for Arrow compatibility."""
    visible = session.visible_ids()
    rows = []
    for pid, s in session.registry.states().items():
        marker: MarkerData | None = session.markers.get(pid)
        rows.append({
            "Marker": pid,
            "Title": marker.title if marker else "",
            "Category": marker.category if marker else "",
            "Lat": f"{s.floating.lat:.5f}",
            "Lng": f"{s.floating.lng:.5f}",
            "Size": f"{s.size.width:.0f}×{s.size.height:.0f}",
            "Minimized": str(s.minimized),
            "Moved": str(s.user_positioned),
            "Edge": s.organized_edge or "",
            "Visible": str(pid in visible),
        })
    return pd.DataFrame(rows).astype(str)


def render_panels_table(session: MapSession) -> None:
    df = panels_dataframe(session)
    if df.empty:
        st.caption("No info windows open. Click a marker in the list to open one.")
        return
    st.dataframe(df, width="stretch", hide_index=True)


def render_metrics(summary: LayoutSummary | None) -> None:
    """DataFrame of the last arrangement's diagnostics."""
    if summary is None:
        return
    metrics = {
        "Mode": summary.mode,
        "Panels arranged": len(summary.moved_ids),
        "Skipped (mid-gesture)": len(summary.skipped_busy),
        "Tether crossings": summary.crossings,
        "Overlapping pairs": summary.overlaps,
        "Outside viewport": summary.outside_viewport,
    }
    df = pd.DataFrame([{"Metric": k, "Value": str(v)} for k, v in metrics.items()]).astype(str)
    st.dataframe(df, width="stretch", hide_index=True)


def render_notifications(session: MapSession) -> None:
    """Non-blocking notices (e.g. storage failures). Each shown once."""
    for msg in session.drain_notifications():
        st.warning(msg)


def render_category_legend() -> None:
    rows = [{"Id": c.id, "Name": c.name, "Color": c.color} for c in DISASTER_CATEGORIES]
    st.dataframe(pd.DataFrame(rows), width="stretch", hide_index=True)


def render_snapshot_history(session: MapSession, key_prefix: str = "snap") -> None:
    """Snapshot list with restore / rename / delete."""
    snapshots = session.list_snapshots()
    if not snapshots:
        st.caption("No snapshots yet.")
        return
    for snap in snapshots:
        when = datetime.fromtimestamp(snap.timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
        with st.expander(f"{snap.title} · {snap.panel_count} window(s) · {when}"):
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Restore", key=f"{key_prefix}_restore_{snap.id}"):
                    session.restore_snapshot(snap.id)
                    st.rerun()
            with c2:
                if st.button("Delete", key=f"{key_prefix}_delete_{snap.id}"):
                    session.delete_snapshot(snap.id)
                    st.rerun()
            new_title = st.text_input("Title", value=snap.title, key=f"{key_prefix}_title_{snap.id}")
            if new_title != snap.title and st.button("Rename", key=f"{key_prefix}_rename_{snap.id}"):
                session.rename_snapshot(snap.id, new_title)
                st.rerun()
