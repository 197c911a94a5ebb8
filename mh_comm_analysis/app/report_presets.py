from dataclasses import dataclass
from typing import Dict

from .context import FilterState, ReportContext


@dataclass(frozen=True)
class ReportPreset:
    label: str
    filename: str
    title: str
    subtitle: str = ""
    width_in: float = 10.0
    height_in: float = 8.0
    dpi: int = 150


REPORT_PRESETS: Dict[str, ReportPreset] = {
    "new_case_rate_trend": ReportPreset(
        label="New case rate across quarters",
        filename="adult_comm_qtr_nc_p.png",
        title="New case rate (%) by Adult mental health community service across quarters",
        subtitle="2019 20 Q3 and Q4 approximately covered the Victorian COVID-19 outbreaks",
        height_in=8.0,
    ),
    "case_length_correlation": ReportPreset(
        label="Length of case vs new case rate",
        filename="adult_comm_corr_p.png",
        title="Relationship between length of case days and new case rate (%)",
        subtitle="Data for Adult Victorian metropolitan community mental health services",
        height_in=12.0,
    ),
    "kpi_correlogram": ReportPreset(
        label="KPI correlograms",
        filename="adult_comm_corr_mat_p.png",
        title="Correlograms between Adult mental health community KPIs across quarters",
        subtitle="Data for Adult Victorian metropolitan community mental health services",
        height_in=12.0,
    ),
}


def build_context(report_type: str, filters: FilterState) -> ReportContext:
    preset = REPORT_PRESETS.get(report_type)
    if not preset:
        return ReportContext(report_type=report_type, filters=filters, preset="custom")
    return ReportContext(
        report_type=report_type,
        filters=filters,
        preset=report_type,
        title=preset.title,
        subtitle=preset.subtitle,
        extra={
            "label": preset.label,
            "filename": preset.filename,
        },
    )
