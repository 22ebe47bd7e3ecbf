# mapoverlay/ui/app.py
"""
Streamlit map page: simulated map with disaster markers, info windows tethered to them,
drag / minimize / resize controls, radial and edge auto-arrange, category filter and
snapshot history. State lives in one MapSession kept in st.session_state.

Run from the repo root: streamlit run mapoverlay/ui/app.py
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

# Configure logging from env (e.g. LOG_LEVEL=DEBUG for development)
_log_level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, _log_level_name, logging.INFO))

# Ensure repo root is on path when Streamlit loads this file
_repo_root = Path(__file__).resolve().parent.parent.parent
if not (_repo_root / "mapoverlay" / "__init__.py").exists():
    _repo_root = Path.cwd().resolve()
    if not (_repo_root / "mapoverlay" / "__init__.py").exists():
        raise RuntimeError(
            f"Cannot find repo root. Run from repo root directory.\n"
            f"Expected 'mapoverlay/__init__.py' in: {_repo_root}\n"
            f"Current working directory: {Path.cwd()}"
        )
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import streamlit as st

from mapoverlay.core.config import (
    DEFAULT_CENTER_LAT,
    DEFAULT_CENTER_LNG,
    DEFAULT_MARKER_COUNT,
    DEFAULT_MINIMIZE_PRESET,
    DEFAULT_VIEWPORT_HEIGHT_PX,
    DEFAULT_VIEWPORT_WIDTH_PX,
    DEFAULT_ZOOM,
    MINIMIZE_PRESETS,
    SEED,
    STORAGE_DIR,
)
from mapoverlay.core.markers import DISASTER_CATEGORIES, generate_markers
from mapoverlay.core.session import MapSession
from mapoverlay.core.storage import JsonFileStore, PanelSizeSettings
from mapoverlay.core.types import GeoPoint, PanelSize
from mapoverlay.core.viewport import SimulatedViewport
from mapoverlay.ui import components as ui_components
from mapoverlay.ui.help_text import (
    GLOSSARY_MD,
    QUICK_TROUBLESHOOT_MD,
    TOOLTIP_AUTO_APPLY,
    TOOLTIP_CLOSE_ALL,
    TOOLTIP_DRAG,
    TOOLTIP_EDGE,
    TOOLTIP_MINIMIZE_PRESET,
    TOOLTIP_PAN,
    TOOLTIP_RADIAL,
    TOOLTIP_SNAP,
    TOOLTIP_SNAPSHOT_TITLE,
)


def _new_session(snap_to_edge: bool, minimize_preset: str) -> MapSession:
    provider = SimulatedViewport(
        center=GeoPoint(DEFAULT_CENTER_LAT, DEFAULT_CENTER_LNG),
        zoom=DEFAULT_ZOOM,
        width_px=DEFAULT_VIEWPORT_WIDTH_PX,
        height_px=DEFAULT_VIEWPORT_HEIGHT_PX,
    )
    markers = generate_markers(provider.viewport(), n=DEFAULT_MARKER_COUNT, seed=SEED)
    store = JsonFileStore(_repo_root / STORAGE_DIR)
    return MapSession(provider, markers, store=store, snap_to_edge=snap_to_edge, minimize_preset=minimize_preset)


def _session() -> MapSession:
    snap = st.session_state.get("snap_to_edge", False)
    preset = st.session_state.get("minimize_preset", DEFAULT_MINIMIZE_PRESET)
    current: MapSession | None = st.session_state.get("map_session")
    if current is None or st.session_state.get("session_opts") != (snap, preset):
        if current is not None:
            current.dispose()
        current = _new_session(snap, preset)
        st.session_state["map_session"] = current
        st.session_state["session_opts"] = (snap, preset)
    return current


st.set_page_config(page_title="Map info windows", layout="wide")
st.title("Disaster report map")

with st.sidebar:
    st.header("Options")
    st.checkbox("Snap to edge after drag", key="snap_to_edge", help=TOOLTIP_SNAP)
    st.selectbox(
        "Minimized size",
        options=list(MINIMIZE_PRESETS),
        index=list(MINIMIZE_PRESETS).index(DEFAULT_MINIMIZE_PRESET),
        key="minimize_preset",
        help=TOOLTIP_MINIMIZE_PRESET,
    )

session = _session()

with st.sidebar:
    st.header("Categories")
    active = st.multiselect(
        "Show categories",
        options=[c.id for c in DISASTER_CATEGORIES],
        default=session.active_categories,
        format_func=lambda cid: next(c.name for c in DISASTER_CATEGORIES if c.id == cid),
    )
    if active != session.active_categories:
        session.set_category_filter(active)

    st.header("Info window size")
    settings = session.size_settings
    w = st.number_input("Default width (px)", value=int(settings.default_size.width), step=10)
    h = st.number_input("Default height (px)", value=int(settings.default_size.height), step=10)
    auto_apply = st.checkbox("Apply to open windows", value=settings.auto_apply_to_existing, help=TOOLTIP_AUTO_APPLY)
    if st.button("Save size settings"):
        session.update_size_settings(PanelSizeSettings(PanelSize(float(w), float(h)), auto_apply))

    st.header("Snapshots")
    title = st.text_input("Snapshot title", value="", help=TOOLTIP_SNAPSHOT_TITLE)
    if st.button("Save snapshot", type="primary"):
        session.save_snapshot(title)
    ui_components.render_snapshot_history(session)
    if st.button("Clear all snapshots"):
        session.clear_snapshots()

tab_map, tab_help = st.tabs(["Map", "Help & glossary"])

with tab_map:
    c1, c2, c3 = st.columns(3)
    with c1:
        if st.button("Arrange: radial", help=TOOLTIP_RADIAL):
            st.session_state["last_summary"] = session.arrange("radial")
    with c2:
        if st.button("Arrange: edges", help=TOOLTIP_EDGE):
            st.session_state["last_summary"] = session.arrange("edge")
    with c3:
        if st.button("Close all", help=TOOLTIP_CLOSE_ALL):
            session.close_all()

    left, right = st.columns([3, 1])
    with right:
        st.subheader("Markers")
        for marker in session.markers.values():
            if marker.category not in session.active_categories:
                continue
            is_open = session.registry.has(marker.id)
            label = f"{'Close' if is_open else 'Open'} {marker.id}: {marker.title}"
            if st.button(label, key=f"toggle_{marker.id}"):
                if is_open:
                    session.close_panel(marker.id)
                else:
                    session.open_panel(marker.id)

        st.subheader("Move window")
        open_ids = sorted(session.visible_ids())
        if open_ids:
            target = st.selectbox("Info window", options=open_ids)
            dx = st.number_input("dx (px)", value=50, step=10, help=TOOLTIP_DRAG)
            dy = st.number_input("dy (px)", value=50, step=10, help=TOOLTIP_DRAG)
            if st.button("Drag"):
                session.drag_panel(target, float(dx), float(dy), steps=5)
            if st.button("Minimize / restore"):
                session.toggle_minimized(target)
            if st.button("Grow +40px"):
                session.resize_panel(target, 40.0, 40.0, lock_aspect=True)

        st.subheader("Map")
        pan_x = st.number_input("Pan x (px)", value=0, step=50, help=TOOLTIP_PAN)
        pan_y = st.number_input("Pan y (px)", value=0, step=50, help=TOOLTIP_PAN)
        if st.button("Pan"):
            session.provider.drag(float(pan_x), float(pan_y), steps=5)
        z1, z2 = st.columns(2)
        with z1:
            if st.button("Zoom in"):
                vp = session.provider.viewport()
                session.provider.zoom_to(vp.zoom + 1 if vp else DEFAULT_ZOOM)
        with z2:
            if st.button("Zoom out"):
                vp = session.provider.viewport()
                session.provider.zoom_to(vp.zoom - 1 if vp else DEFAULT_ZOOM)
        # Let the zoom loop and settle timer run to completion between reruns.
        session.scheduler.run_frames(10)
        session.scheduler.advance(1.0)
        session.scheduler.run_frames(1)

    with left:
        ui_components.render_notifications(session)
        ui_components.render_map(session)
        ui_components.render_metrics(st.session_state.get("last_summary"))
        ui_components.render_panels_table(session)

with tab_help:
    st.markdown(GLOSSARY_MD)
    st.markdown("#### Quick troubleshooting")
    st.markdown(QUICK_TROUBLESHOOT_MD)
    st.markdown("#### Categories")
    ui_components.render_category_legend()
