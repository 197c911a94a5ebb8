"""
Adult mental health community services: new case rate trend, length of
case correlation and KPI correlograms.

Reads the extracted VAHI KPI table (data/mh_comm_data.csv), builds three
charts for Adult metropolitan services and writes them as PNGs to output/.

Usage:
    python -m mh_comm_analysis.main
"""

import logging
import os
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Sequence

from mh_comm_analysis.app import FilterState
from mh_comm_analysis.app.charts import case_length_correlation, kpi_correlogram, new_case_rate_trend
from mh_comm_analysis.app.config import (
    DEFAULT_OUTPUT_DIR,
    ENV_LOG_LEVEL,
    ENV_OUTPUT_DIR,
    HIGHLIGHT_SERVICES,
)
from mh_comm_analysis.app.data_loader import load_kpi_table, resolve_data_path, validate_kpi_table
from mh_comm_analysis.app.narrative import NarrativeRenderer
from mh_comm_analysis.app.report_presets import REPORT_PRESETS, build_context
from mh_comm_analysis.app.report_store import save_report_png
from mh_comm_analysis.app.transforms import (
    build_kpi_view,
    build_service_scatter_view,
    build_service_trend_view,
)

LOGGER = logging.getLogger(__name__)


def resolve_output_dir() -> Path:
    env_dir = os.getenv(ENV_OUTPUT_DIR, "").strip()
    return Path(env_dir) if env_dir else DEFAULT_OUTPUT_DIR


def run_analysis(
    data_path: Optional[str] = None,
    output_dir: Optional[Path] = None,
    filters: FilterState = FilterState(),
    highlight: Sequence[str] = HIGHLIGHT_SERVICES,
) -> Dict[str, Path]:
    """Load, filter, chart and export. Returns report type -> PNG path."""
    mh_comm_data = load_kpi_table(data_path or resolve_data_path())
    unavailable = [part for part, ok in validate_kpi_table(mh_comm_data).items() if not ok]
    if unavailable:
        LOGGER.warning("KPI table is missing: %s", ", ".join(unavailable))
    output_dir = output_dir or resolve_output_dir()
    renderer = NarrativeRenderer()
    issued_at = datetime.now(timezone.utc).isoformat()

    # Trend: per-service rows, metro aggregate kept as "Total Metro"
    trend_ctx = build_context("new_case_rate_trend", filters)
    trend_fig = new_case_rate_trend(
        build_service_trend_view(mh_comm_data, filters), trend_ctx, highlight=highlight, renderer=renderer
    )

    # Length of case vs new case rate, one panel per quarter
    corr_ctx = build_context("case_length_correlation", filters)
    corr_fig = case_length_correlation(
        build_service_scatter_view(mh_comm_data, filters), corr_ctx, renderer=renderer
    )

    # Correlograms over the anonymised KPI measures
    corr_mat_ctx = build_context("kpi_correlogram", filters)
    selection = build_kpi_view(mh_comm_data, filters)
    LOGGER.info("KPI measures: %s", "; ".join(f"{k}: {v}" for k, v in selection.labels.items()))
    corr_mat_fig = kpi_correlogram(selection, corr_mat_ctx, renderer=renderer)

    exported: Dict[str, Path] = {}
    for ctx, fig in ((trend_ctx, trend_fig), (corr_ctx, corr_fig), (corr_mat_ctx, corr_mat_fig)):
        preset = REPORT_PRESETS[ctx.preset]
        exported[ctx.report_type] = save_report_png(
            ctx.cache_key(), fig, preset, replace(ctx, issued_at=issued_at), output_dir=output_dir
        )
    return exported


def main() -> int:
    logging.basicConfig(
        level=os.getenv(ENV_LOG_LEVEL, "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    exported = run_analysis()
    for report_type, path in exported.items():
        LOGGER.info("%s -> %s", report_type, path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
