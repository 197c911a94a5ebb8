"""Tests for PNG export and the metadata sidecar."""
import json

import plotly.graph_objects as go
import pytest

from mh_comm_analysis.app.context import FilterState
from mh_comm_analysis.app.report_presets import REPORT_PRESETS, build_context
from mh_comm_analysis.app.report_store import figure_to_png_bytes, save_report_png


@pytest.fixture
def simple_figure():
    return go.Figure(go.Scatter(x=[1, 2, 3], y=[3, 1, 2]))


def test_png_dimensions_follow_inches_and_dpi(stub_png_export, simple_figure):
    figure_to_png_bytes(simple_figure, width_in=10, height_in=8, dpi=150)

    call = stub_png_export[-1]
    assert call["format"] == "png"
    assert (call["width"], call["height"]) == (1000, 800)
    assert call["scale"] == pytest.approx(1.5)
    # 1500 x 1200 pixels once scaled.
    assert call["width"] * call["scale"] == pytest.approx(1500)


def test_save_report_png_writes_file_and_sidecar(stub_png_export, simple_figure, tmp_path):
    preset = REPORT_PRESETS["case_length_correlation"]
    ctx = build_context("case_length_correlation", FilterState("Adult", "Metro"))

    path = save_report_png("abc123", simple_figure, preset, ctx, output_dir=tmp_path / "output")

    assert path == tmp_path / "output" / "adult_comm_corr_p.png"
    assert path.stat().st_size > 0
    meta = json.loads(path.with_suffix(".json").read_text())
    assert meta["report_id"] == "abc123"
    assert meta["label"] == preset.label
    assert meta["filename"] == "adult_comm_corr_p.png"
    assert meta["filters"] == {"mh_group": "Adult", "mh_subgroup": "Metro"}
    assert (meta["width_in"], meta["height_in"], meta["dpi"]) == (10.0, 12.0, 150)
    assert stub_png_export[-1]["height"] == 1200


def test_unwritable_destination_raises_os_error(stub_png_export, simple_figure, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    preset = REPORT_PRESETS["new_case_rate_trend"]
    ctx = build_context("new_case_rate_trend", FilterState())

    with pytest.raises(OSError):
        save_report_png("abc123", simple_figure, preset, ctx, output_dir=blocker / "output")


def test_presets_match_export_sizes():
    assert REPORT_PRESETS["new_case_rate_trend"].height_in == 8.0
    assert REPORT_PRESETS["kpi_correlogram"].height_in == 12.0
    assert {p.width_in for p in REPORT_PRESETS.values()} == {10.0}
    assert {p.dpi for p in REPORT_PRESETS.values()} == {150}
