import logging
import math
from itertools import cycle
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
import plotly.graph_objects as go
from plotly.colors import qualitative
from plotly.subplots import make_subplots

from .config import (
    CASE_LENGTH_COL,
    CORRELOGRAM_COLORSCALE,
    HIGHLIGHT_PALETTE,
    HIGHLIGHT_SERVICES,
    LABEL_THRESHOLD,
    MUTED_LINE_COLOR,
    NEW_CASE_RATE_COL,
    PERIOD_COL,
    PLOTLY_TEMPLATE,
    SERVICE_COL,
    SIGNIFICANCE_LEVEL,
)
from .context import ReportContext
from .data_loader import require_columns
from .metrics import CorrelationMatrix, MetricResult, correlation_matrix, median_centre, pearson_correlation
from .narrative import NarrativeRenderer, to_plotly_text
from .transforms import KpiSelection, period_order, variable_legend_lines

LOGGER = logging.getLogger(__name__)

NOT_COMPUTABLE = "n/c"
NOT_SIGNIFICANT_MARK = "×"


def apply_layout(fig: go.Figure, ctx: ReportContext, caption: str = "", showlegend: bool = True) -> go.Figure:
    """Centralize title, caption and theme so every exported chart matches."""
    title = f"<b>{ctx.title}</b>"
    if ctx.subtitle:
        title += f"<br><sup><b>{ctx.subtitle}</b></sup>"

    caption_text = to_plotly_text(caption) if caption else ""
    caption_lines = caption_text.count("<br>") + 1 if caption_text else 0

    fig.update_layout(
        template=PLOTLY_TEMPLATE,
        title=dict(text=title, x=0.01, xanchor="left"),
        showlegend=showlegend,
        margin=dict(l=70, r=30, t=110, b=80 + 16 * caption_lines),
        font=dict(size=11, color="#1f2933"),
        paper_bgcolor="white",
        plot_bgcolor="white",
    )
    if caption_text:
        fig.add_annotation(
            text=caption_text,
            xref="paper",
            yref="paper",
            x=0,
            y=0,
            xanchor="left",
            yanchor="top",
            yshift=-50,
            showarrow=False,
            align="left",
            font=dict(size=9, color="#52606d"),
        )
    fig.update_xaxes(automargin=True, showline=True, linecolor="#444", mirror=True)
    fig.update_yaxes(automargin=True, showline=True, linecolor="#444", mirror=True)
    return fig


def _empty_figure(ctx: ReportContext, message: str) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(text=message, x=0.5, y=0.5, xref="paper", yref="paper", showarrow=False)
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    return apply_layout(fig, ctx, showlegend=False)


def _grid(panels: int, max_cols: int = 2) -> Tuple[int, int, float]:
    cols = 1 if panels <= 1 else max_cols
    rows = max(1, math.ceil(panels / cols))
    vspace = 0.1 if rows == 1 else min(0.1, 0.5 / (rows - 1))
    return rows, cols, vspace


def _panel_position(idx: int, cols: int) -> Tuple[int, int]:
    return idx // cols + 1, idx % cols + 1


def service_colors(services: Iterable[str]) -> Dict[str, str]:
    """One colour per service, stable across every panel of a figure."""
    palette = cycle(qualitative.Plotly + qualitative.D3 + qualitative.Set2)
    return {service: next(palette) for service in sorted(set(services))}


def _with_period_labels(df: pd.DataFrame, numeric: Sequence[str] = ()) -> pd.DataFrame:
    """Drop rows without a period, cast periods to str and coerce numeric columns."""
    out = df.dropna(subset=[PERIOD_COL])
    out = out.assign(**{PERIOD_COL: out[PERIOD_COL].astype(str)})
    for col in numeric:
        out[col] = pd.to_numeric(out[col], errors="coerce")
    return out


def _ordered_by_period(df: pd.DataFrame, periods: Sequence[str]) -> pd.DataFrame:
    rank = {p: i for i, p in enumerate(periods)}
    return df.assign(_order=df[PERIOD_COL].map(rank)).sort_values("_order").drop(columns="_order")


# ---------------------------------------------------------------------------
# New case rate across quarters
# ---------------------------------------------------------------------------
def new_case_rate_trend(
    view: pd.DataFrame,
    ctx: ReportContext,
    highlight: Sequence[str] = HIGHLIGHT_SERVICES,
    renderer: Optional[NarrativeRenderer] = None,
) -> go.Figure:
    """
    One line per health service. Services in ``highlight`` (exact names) are
    coloured and labelled; everything else is drawn as thin grey context.
    """
    require_columns(view, (SERVICE_COL, PERIOD_COL, NEW_CASE_RATE_COL), "trend chart")
    renderer = renderer or NarrativeRenderer()
    data = _with_period_labels(view.dropna(subset=[SERVICE_COL]), numeric=(NEW_CASE_RATE_COL,))
    data[SERVICE_COL] = data[SERVICE_COL].astype(str)
    periods = period_order(data[PERIOD_COL])
    if data.empty:
        return _empty_figure(ctx, "No service rows for this selection.")

    services = sorted(data[SERVICE_COL].unique())
    highlighted = [s for s in highlight if s in services]
    missing = [s for s in highlight if s not in services]
    if missing:
        LOGGER.warning("Highlighted services not in view: %s", ", ".join(missing))

    fig = go.Figure()
    # Context lines first so highlighted lines are drawn on top.
    for service in services:
        if service in highlighted:
            continue
        rows = _ordered_by_period(data[data[SERVICE_COL] == service], periods)
        fig.add_trace(
            go.Scatter(
                x=rows[PERIOD_COL],
                y=rows[NEW_CASE_RATE_COL],
                mode="lines",
                name=service,
                line=dict(color=MUTED_LINE_COLOR, width=1),
                showlegend=False,
                hovertemplate=f"{service}<br>%{{x}}: %{{y:.1f}}%<extra></extra>",
            )
        )

    palette = cycle(HIGHLIGHT_PALETTE)
    for service in highlighted:
        color = next(palette)
        rows = _ordered_by_period(data[data[SERVICE_COL] == service], periods)
        fig.add_trace(
            go.Scatter(
                x=rows[PERIOD_COL],
                y=rows[NEW_CASE_RATE_COL],
                mode="lines",
                name=service,
                line=dict(color=color, width=2.5),
                hovertemplate=f"{service}<br>%{{x}}: %{{y:.1f}}%<extra></extra>",
            )
        )
        last = rows.dropna(subset=[NEW_CASE_RATE_COL]).tail(1)
        if not last.empty:
            fig.add_annotation(
                x=last[PERIOD_COL].iloc[0],
                y=float(last[NEW_CASE_RATE_COL].iloc[0]),
                text=service,
                showarrow=False,
                xanchor="left",
                xshift=6,
                font=dict(size=10, color=color),
            )

    fig.update_xaxes(title_text="Period", categoryorder="array", categoryarray=periods)
    fig.update_yaxes(title_text="New Case Rate (%)")
    caption = renderer.trend_caption(ctx, list(highlight))
    return apply_layout(fig, ctx, caption=caption, showlegend=bool(highlighted))


# ---------------------------------------------------------------------------
# Length of case vs new case rate, one panel per period
# ---------------------------------------------------------------------------
def describe_correlation(result: MetricResult) -> str:
    n = int(result.extra.get("n") or 0)
    if not result.computable:
        return f"r not computable ({result.notes.rstrip('.')}), n = {n}"
    extra = result.extra
    parts = [
        f"t({extra['df']:.0f}) = {extra['t_statistic']:.2f}",
        f"p = {extra['p_value']:.3g}",
        f"r = {result.value:.2f}",
    ]
    if extra.get("ci_low") is not None and extra.get("ci_high") is not None:
        parts.append(f"CI95% [{extra['ci_low']:.2f}, {extra['ci_high']:.2f}]")
    parts.append(f"n = {n}")
    return ", ".join(parts)


def correlation_by_period(view: pd.DataFrame) -> Dict[str, MetricResult]:
    require_columns(view, (PERIOD_COL, NEW_CASE_RATE_COL, CASE_LENGTH_COL), "scatter correlation")
    periods = period_order(view[PERIOD_COL])
    labels = view[PERIOD_COL].astype(str)
    return {
        p: pearson_correlation(
            view.loc[labels == p, NEW_CASE_RATE_COL],
            view.loc[labels == p, CASE_LENGTH_COL],
        )
        for p in periods
    }


def case_length_correlation(
    view: pd.DataFrame,
    ctx: ReportContext,
    label_threshold: float = LABEL_THRESHOLD,
    renderer: Optional[NarrativeRenderer] = None,
) -> go.Figure:
    require_columns(view, (SERVICE_COL, PERIOD_COL, NEW_CASE_RATE_COL, CASE_LENGTH_COL), "scatter correlation")
    renderer = renderer or NarrativeRenderer()
    data = _with_period_labels(view, numeric=(NEW_CASE_RATE_COL, CASE_LENGTH_COL))
    results = correlation_by_period(data)
    periods = list(results)
    if not periods:
        return _empty_figure(ctx, "No rows with a reporting period.")

    rows, cols, vspace = _grid(len(periods))
    titles = [f"Period: {p}<br><sup>{describe_correlation(results[p])}</sup>" for p in periods]
    fig = make_subplots(
        rows=rows,
        cols=cols,
        subplot_titles=titles,
        vertical_spacing=vspace,
        horizontal_spacing=0.08,
    )
    colors = service_colors(data[SERVICE_COL].dropna().astype(str))
    shown = set()

    for idx, period in enumerate(periods):
        row, col = _panel_position(idx, cols)
        part = data[data[PERIOD_COL] == period]
        for service, grp in part.groupby(SERVICE_COL, sort=True):
            service = str(service)
            text = [service if v > label_threshold else "" for v in grp[NEW_CASE_RATE_COL].fillna(float("-inf"))]
            fig.add_trace(
                go.Scatter(
                    x=grp[NEW_CASE_RATE_COL],
                    y=grp[CASE_LENGTH_COL],
                    mode="markers+text",
                    text=text,
                    textposition="top center",
                    textfont=dict(size=9),
                    name=service,
                    legendgroup=service,
                    showlegend=service not in shown,
                    marker=dict(color=colors[service], size=9, opacity=0.5),
                    hovertemplate=f"{service}<br>New case rate: %{{x:.1f}}%<br>Length of case: %{{y:.1f}} days<extra></extra>",
                ),
                row=row,
                col=col,
            )
            shown.add(service)

        x_median = median_centre(part[NEW_CASE_RATE_COL])
        y_median = median_centre(part[CASE_LENGTH_COL])
        if x_median is not None:
            fig.add_vline(x=x_median, line_dash="dash", line_color="#7b8794", line_width=1, row=row, col=col)
        if y_median is not None:
            fig.add_hline(y=y_median, line_dash="dash", line_color="#7b8794", line_width=1, row=row, col=col)

    fig.update_xaxes(title_text="New Case Rate (%)")
    fig.update_yaxes(title_text="Avg. Length of Case (Days)")
    fig.update_annotations(font_size=11)
    caption = renderer.scatter_caption(ctx, label_threshold)
    return apply_layout(fig, ctx, caption=caption)


# ---------------------------------------------------------------------------
# KPI correlograms, one panel per period
# ---------------------------------------------------------------------------
def correlogram_cells(
    matrix: CorrelationMatrix,
    matrix_type: str = "upper",
    alpha: float = SIGNIFICANCE_LEVEL,
) -> Tuple[List[List[Optional[float]]], List[List[str]]]:
    """
    Heatmap values and cell labels. Cells outside the requested triangle and
    non-computable pairs get None, so no NaN reaches the renderer.
    """
    variables = matrix.variables
    z: List[List[Optional[float]]] = []
    text: List[List[str]] = []
    for i, a in enumerate(variables):
        z_row: List[Optional[float]] = []
        t_row: List[str] = []
        for j, b in enumerate(variables):
            if (matrix_type == "upper" and j < i) or (matrix_type == "lower" and j > i):
                z_row.append(None)
                t_row.append("")
                continue
            if not matrix.computable.loc[a, b]:
                z_row.append(None)
                t_row.append(NOT_COMPUTABLE)
                continue
            r = float(matrix.coefficients.loc[a, b])
            label = f"{r:.2f}"
            if i != j and float(matrix.adjusted_p_values.loc[a, b]) >= alpha:
                label += NOT_SIGNIFICANT_MARK
            z_row.append(r)
            t_row.append(label)
        z.append(z_row)
        text.append(t_row)
    return z, text


def kpi_correlogram(
    selection: KpiSelection,
    ctx: ReportContext,
    matrix_type: str = "upper",
    alpha: float = SIGNIFICANCE_LEVEL,
    renderer: Optional[NarrativeRenderer] = None,
) -> go.Figure:
    renderer = renderer or NarrativeRenderer()
    frame = selection.frame
    variables = selection.variables
    periods = period_order(frame[PERIOD_COL])
    if not variables or not periods:
        return _empty_figure(ctx, "No KPI measures with values for this selection.")

    rows, cols, vspace = _grid(len(periods))
    fig = make_subplots(
        rows=rows,
        cols=cols,
        subplot_titles=[f"Period: {p}" for p in periods],
        vertical_spacing=vspace,
        horizontal_spacing=0.1,
    )
    labels = frame[PERIOD_COL].astype(str)

    for idx, period in enumerate(periods):
        row, col = _panel_position(idx, cols)
        matrix = correlation_matrix(frame[labels == period], variables)
        z, text = correlogram_cells(matrix, matrix_type=matrix_type, alpha=alpha)
        fig.add_trace(
            go.Heatmap(
                z=z,
                x=variables,
                y=variables,
                text=text,
                texttemplate="%{text}",
                textfont=dict(size=8),
                zmin=-1,
                zmax=1,
                colorscale=CORRELOGRAM_COLORSCALE,
                showscale=idx == 0,
                colorbar=dict(title="r", len=0.5),
                hoverongaps=False,
                xgap=1,
                ygap=1,
                name=f"Period {period}",
            ),
            row=row,
            col=col,
        )

    fig.update_xaxes(showgrid=False, tickangle=-45)
    fig.update_yaxes(showgrid=False, autorange="reversed")
    caption = renderer.correlogram_caption(ctx, variable_legend_lines(selection.labels))
    return apply_layout(fig, ctx, caption=caption, showlegend=False)
