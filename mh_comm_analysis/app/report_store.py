import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import plotly.graph_objects as go
import plotly.io as pio

from .config import BASE_DPI, DEFAULT_OUTPUT_DIR
from .context import ReportContext
from .report_presets import ReportPreset

LOGGER = logging.getLogger(__name__)


def figure_to_png_bytes(fig: go.Figure, width_in: float, height_in: float, dpi: int) -> bytes:
    """
    Rasterise a figure with kaleido. Layout is laid out at BASE_DPI units per
    inch and scaled up, so 10 x 8 in at 150 dpi gives a 1500 x 1200 px PNG.
    """
    return pio.to_image(
        fig,
        format="png",
        width=int(round(width_in * BASE_DPI)),
        height=int(round(height_in * BASE_DPI)),
        scale=dpi / BASE_DPI,
    )


def save_report_png(
    report_id: str,
    fig: go.Figure,
    preset: ReportPreset,
    ctx: ReportContext,
    output_dir: Optional[Path] = None,
) -> Path:
    """
    Persist a chart as PNG plus a small metadata sidecar.
    Returns the PNG path. Write failures on the PNG propagate.
    """
    output_dir = Path(output_dir or DEFAULT_OUTPUT_DIR)
    output_dir.mkdir(parents=True, exist_ok=True)
    png_path = output_dir / preset.filename
    meta_path = png_path.with_suffix(".json")

    png_bytes = figure_to_png_bytes(fig, preset.width_in, preset.height_in, preset.dpi)
    png_path.write_bytes(png_bytes)
    LOGGER.info("Wrote %s (%d bytes)", png_path, len(png_bytes))

    metadata = {
        "report_id": report_id,
        "report_type": ctx.report_type,
        "title": ctx.title,
        "label": ctx.extra.get("label"),
        "filename": ctx.extra.get("filename", preset.filename),
        "filters": asdict(ctx.filters),
        "generated_at": ctx.issued_at or datetime.now(timezone.utc).isoformat(),
        "width_in": preset.width_in,
        "height_in": preset.height_in,
        "dpi": preset.dpi,
        "path": str(png_path),
    }
    try:
        meta_path.write_text(json.dumps(metadata, indent=2))
    except OSError as exc:
        # Metadata failures should not block PNG saving.
        LOGGER.warning("Could not write metadata sidecar %s: %s", meta_path, exc)
    return png_path
