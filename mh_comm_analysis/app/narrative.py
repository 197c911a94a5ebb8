from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from .config import ANALYST_CREDIT, DEFAULT_TEMPLATE_DIR, SOURCE_CREDIT
from .context import ReportContext


def _build_env(template_dir: Path) -> Environment:
    return Environment(
        loader=FileSystemLoader(template_dir),
        autoescape=select_autoescape(enabled_extensions=("html", "j2")),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
    )


def to_plotly_text(text: str) -> str:
    """Plotly annotations break lines on <br>, not newlines."""
    return "<br>".join(line.strip() for line in text.strip().splitlines())


class NarrativeRenderer:
    """
    Thin wrapper around Jinja2 so every chart caption shares the same
    attribution block. If a template is missing, render a minimal fallback
    string with the context.
    """

    def __init__(self, template_dir: Optional[Path] = None):
        self.template_dir = template_dir or DEFAULT_TEMPLATE_DIR
        self.env = _build_env(self.template_dir)

    def render(self, template_name: str, payload: Dict[str, Any]) -> str:
        payload = {"source_credit": SOURCE_CREDIT, "analyst_credit": ANALYST_CREDIT, **payload}
        try:
            template = self.env.get_template(template_name)
            return template.render(**payload)
        except TemplateNotFound:
            return f"[Missing template: {template_name}]\n{SOURCE_CREDIT}\n{ANALYST_CREDIT}"

    def trend_caption(self, ctx: ReportContext, highlight: List[str]) -> str:
        payload = {"ctx": ctx, "highlight": highlight}
        return self.render("new_case_rate_trend.txt", payload)

    def scatter_caption(self, ctx: ReportContext, label_threshold: float) -> str:
        payload = {"ctx": ctx, "label_threshold": label_threshold}
        return self.render("case_length_correlation.txt", payload)

    def correlogram_caption(self, ctx: ReportContext, legend_lines: List[str]) -> str:
        payload = {"ctx": ctx, "legend_lines": legend_lines}
        return self.render("kpi_correlogram.txt", payload)
