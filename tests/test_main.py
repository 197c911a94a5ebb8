"""End-to-end run of the analysis with PNG rendering stubbed out."""
import logging

import pytest

from mh_comm_analysis.app.config import ENV_DATA_PATH, ENV_OUTPUT_DIR
from mh_comm_analysis.app.data_loader import SchemaError
from mh_comm_analysis.main import main, run_analysis


def test_run_analysis_exports_three_pngs(stub_png_export, kpi_csv, tmp_path):
    output_dir = tmp_path / "output"

    exported = run_analysis(data_path=str(kpi_csv), output_dir=output_dir)

    assert set(exported) == {"new_case_rate_trend", "case_length_correlation", "kpi_correlogram"}
    expected = {"adult_comm_qtr_nc_p.png", "adult_comm_corr_p.png", "adult_comm_corr_mat_p.png"}
    assert {p.name for p in exported.values()} == expected
    for path in exported.values():
        assert path.parent == output_dir
        assert path.stat().st_size > 0
        assert path.with_suffix(".json").exists()
    assert len(stub_png_export) == 3


def test_run_analysis_missing_input_is_fatal(stub_png_export, tmp_path):
    with pytest.raises(FileNotFoundError):
        run_analysis(data_path=str(tmp_path / "missing.csv"), output_dir=tmp_path / "output")

    assert not (tmp_path / "output").exists()


def test_main_reads_environment_overrides(stub_png_export, kpi_csv, tmp_path, monkeypatch):
    output_dir = tmp_path / "env-output"
    monkeypatch.setenv(ENV_DATA_PATH, str(kpi_csv))
    monkeypatch.setenv(ENV_OUTPUT_DIR, str(output_dir))

    assert main() == 0
    assert (output_dir / "adult_comm_qtr_nc_p.png").stat().st_size > 0


def test_run_analysis_logs_missing_schema_before_failing(stub_png_export, kpi_frame, tmp_path, caplog):
    path = tmp_path / "no_catchment.csv"
    kpi_frame.drop(columns=["catchment"]).to_csv(path, index=False)

    with caplog.at_level(logging.WARNING, logger="mh_comm_analysis.main"):
        with pytest.raises(SchemaError, match="catchment"):
            run_analysis(data_path=str(path), output_dir=tmp_path / "output")

    assert "KPI table is missing: catchment" in caplog.text
