import hashlib
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class FilterState:
    """Categorical selectors shared by every view derived from the KPI table."""

    mh_group: str = "Adult"
    mh_subgroup: str = "Metro"

    @property
    def label(self) -> str:
        return f"{self.mh_group} / {self.mh_subgroup}"

    def cache_key(self) -> str:
        """Stable identifier for artifacts derived from this filter set."""
        return hashlib.sha256(repr(self).encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class ReportContext:
    """
    Immutable description of one report in a run. Builders, caption
    renderers and the exporter all receive the same object so every
    artifact carries the same provenance.
    """

    report_type: str
    filters: FilterState
    preset: str = "custom"
    title: str = ""
    subtitle: str = ""
    issued_at: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    def cache_key(self) -> str:
        stem = f"{self.report_type}|{self.filters.cache_key()}|{self.preset}"
        return hashlib.sha256(stem.encode("utf-8")).hexdigest()[:16]
