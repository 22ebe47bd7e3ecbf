# mapoverlay/core/render.py
"""
Matplotlib PNG rendering of the viewport in pixel space: before.png (markers only)
and after.png (markers, dashed tethers, panel boxes).
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Iterable, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Rectangle

from mapoverlay.core.config import TETHER_COLOR, TETHER_WIDTH_PX
from mapoverlay.core.markers import MarkerData, category_color
from mapoverlay.core.projection import require_projection, to_pixel
from mapoverlay.core.tether import OverlayFrame
from mapoverlay.core.types import ViewportState


def _new_fig(width_px: float, height_px: float) -> tuple[plt.Figure, plt.Axes]:
    fig = plt.figure(
        figsize=(width_px / 100.0, height_px / 100.0),
        dpi=100,
        constrained_layout=False,
    )
    ax = fig.add_axes([0, 0, 1, 1])  # full-canvas axes
    return fig, ax


def _set_axes_to_viewport(ax: plt.Axes, viewport: ViewportState) -> None:
    """Pixel axes with the origin top-left, like the screen."""
    ax.set_xlim(0, viewport.width_px)
    ax.set_ylim(viewport.height_px, 0)
    ax.set_aspect("equal", adjustable="box")
    ax.set_facecolor("#F3F4F6")
    ax.set_xticks([])
    ax.set_yticks([])


def _draw_markers(ax: plt.Axes, markers: Iterable[MarkerData], viewport: ViewportState) -> None:
    markers = list(markers)
    if not markers:
        return
    pts = np.array([(p.x, p.y) for p in (to_pixel(m.position, viewport) for m in markers)])
    colors = [category_color(m.category) for m in markers]
    ax.scatter(pts[:, 0], pts[:, 1], s=60, c=colors, edgecolors="white", linewidths=1.5, zorder=3)


def _draw_frames(ax: plt.Axes, frames: Sequence[OverlayFrame], show_ids: bool = True) -> None:
    for f in frames:
        ax.plot(
            [f.tether.start.x, f.tether.end.x],
            [f.tether.start.y, f.tether.end.y],
            linestyle="--",
            color=TETHER_COLOR,
            linewidth=TETHER_WIDTH_PX / 2.0,
            zorder=2,
        )
        tl = f.panel_top_left_px
        ax.add_patch(
            Rectangle(
                (tl.x, tl.y),
                f.panel_size.width,
                f.panel_size.height,
                facecolor="white",
                edgecolor="#374151" if not f.dragging else "#2563EB",
                linewidth=1.5,
                alpha=0.9 if not f.minimized else 0.7,
                zorder=4,
            )
        )
        if show_ids:
            ax.text(
                f.panel_center_px.x,
                f.panel_center_px.y,
                f.marker_id,
                ha="center",
                va="center",
                fontsize=9,
                color="#111827",
                zorder=5,
            )


def _save(fig: plt.Figure, output_path: str | Path) -> None:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message=".*constrained_layout.*", category=UserWarning)
        fig.savefig(output_path, dpi=100, facecolor="white")
    plt.close(fig)


def render_before(
    markers: Iterable[MarkerData],
    viewport: ViewportState,
    output_path: str | Path,
    scale: int = 1,
) -> None:
    """Render markers only. scale multiplies output resolution (1x, 2x)."""
    vp = require_projection(viewport)
    fig, ax = _new_fig(vp.width_px * scale, vp.height_px * scale)
    _set_axes_to_viewport(ax, vp)
    _draw_markers(ax, markers, vp)
    _save(fig, output_path)


def render_after(
    markers: Iterable[MarkerData],
    frames: Sequence[OverlayFrame],
    viewport: ViewportState,
    output_path: str | Path,
    scale: int = 1,
) -> None:
    """Render markers, tethers and panel boxes from the renderers' latest frames."""
    vp = require_projection(viewport)
    fig, ax = _new_fig(vp.width_px * scale, vp.height_px * scale)
    _set_axes_to_viewport(ax, vp)
    _draw_frames(ax, frames)
    _draw_markers(ax, markers, vp)
    _save(fig, output_path)


def figure_for_frames(
    markers: Iterable[MarkerData],
    frames: Sequence[OverlayFrame],
    viewport: ViewportState,
) -> plt.Figure:
    """Same drawing as render_after, returned as a Figure (for st.pyplot). Caller closes it."""
    vp = require_projection(viewport)
    fig, ax = _new_fig(vp.width_px, vp.height_px)
    _set_axes_to_viewport(ax, vp)
    _draw_frames(ax, frames)
    _draw_markers(ax, markers, vp)
    return fig
