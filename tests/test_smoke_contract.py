# tests/test_smoke_contract.py
"""
Report contract: layout.json and run_metadata.json carry the required keys; the CLI
run writes both JSON files and the before/after PNGs. Generated markers only, no fixtures.
"""

from __future__ import annotations

import json

import pytest

from mapoverlay.core.markers import generate_markers, load_markers, write_markers
from mapoverlay.core.render import render_after, render_before
from mapoverlay.core.reporting import ensure_report_dir, layout_to_dict, write_layout_json
from mapoverlay.core.runner import main
from mapoverlay.core.session import MapSession
from mapoverlay.core.types import GeoPoint
from mapoverlay.core.viewport import SimulatedViewport

REQUIRED_PANEL_KEYS = ["markerId", "anchor", "floating", "minimized", "userPositioned", "size", "organizedEdge"]
REQUIRED_SUMMARY_KEYS = ["mode", "n_panels", "moved_ids", "skipped_busy", "crossings", "overlaps", "edges"]


def _arranged_session() -> tuple[SimulatedViewport, MapSession]:
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 800, 600)
    markers = generate_markers(vm.viewport(), n=5, seed=1)
    session = MapSession(vm, markers)
    for m in markers:
        session.open_panel(m.id)
    return vm, session


def test_layout_dict_shape() -> None:
    vm, session = _arranged_session()
    summary = session.arrange("edge")
    data = layout_to_dict(vm.viewport(), session.registry.states(), session.visible_frames(), summary)
    assert data["viewport"]["width_px"] == 800
    assert len(data["panels"]) == 5
    for entry in data["panels"]:
        for key in REQUIRED_PANEL_KEYS:
            assert key in entry, f"missing panel key {key}"
        assert "tether" in entry["screen"]
    for key in REQUIRED_SUMMARY_KEYS:
        assert key in data["summary"]
    assert data["summary"]["mode"] == "edge"
    json.dumps(data)


def test_layout_json_and_renders(tmp_path) -> None:
    vm, session = _arranged_session()
    summary = session.arrange("radial")
    report_dir = ensure_report_dir(tmp_path, "unit", output_dir="reports")
    assert report_dir == (tmp_path / "reports" / "unit").resolve()
    path = write_layout_json(report_dir, vm.viewport(), session.registry.states(), session.visible_frames(), summary)
    assert json.loads(path.read_text(encoding="utf-8"))["summary"]["mode"] == "radial"
    markers = list(session.markers.values())
    render_before(markers, vm.viewport(), report_dir / "before.png")
    render_after(markers, session.visible_frames(), vm.viewport(), report_dir / "after.png", scale=2)
    assert (report_dir / "before.png").stat().st_size > 0
    assert (report_dir / "after.png").stat().st_size > 0


def test_generated_markers_are_deterministic_and_inside(tmp_path) -> None:
    vm = SimulatedViewport(GeoPoint(35.0, 139.0), 10.0, 800, 600)
    a = generate_markers(vm.viewport(), n=6, seed=9)
    b = generate_markers(vm.viewport(), n=6, seed=9)
    assert a == b
    assert [m.id for m in a] == [f"m{i}" for i in range(1, 7)]
    path = tmp_path / "markers.json"
    write_markers(path, a)
    assert load_markers(path) == a


@pytest.mark.parametrize("mode", ["edge", "radial", "none"])
def test_runner_writes_reports(tmp_path, mode: str, capsys: pytest.CaptureFixture[str]) -> None:
    main([
        "--mode", mode,
        "--n-markers", "4",
        "--seed", "3",
        "--repo-root", str(tmp_path),
        "--run-name", f"smoke_{mode}",
        "--snapshot", "smoke",
        "--storage-dir", "state",
    ])
    out_dir = tmp_path / "reports" / f"smoke_{mode}"
    for name in ("layout.json", "run_metadata.json", "before.png", "after.png"):
        assert (out_dir / name).exists(), name
    meta = json.loads((out_dir / "run_metadata.json").read_text(encoding="utf-8"))
    assert meta["mode"] == mode
    assert meta["n_markers"] == 4
    layout = json.loads((out_dir / "layout.json").read_text(encoding="utf-8"))
    assert len(layout["panels"]) == 4
    assert (layout["summary"] is None) == (mode == "none")
    assert any((tmp_path / "state").glob("*.json"))
    assert "layout.json" in capsys.readouterr().out
