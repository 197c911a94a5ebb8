"""
Row filtering and column reshaping for the KPI views.

Subtotal handling is an ordered rule list rather than inline conditionals:
rules are evaluated top to bottom and the first rule that matches a row
decides whether it is dropped or relabelled. A relabelled row is settled,
so a generic "contains total" exclusion further down cannot remove it.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .config import (
    CATCHMENT_COL,
    GROUP_COL,
    KPI_FIRST_COL,
    KPI_LAST_COL,
    MAX_KPI_VARS,
    METRO_AGGREGATE_LABEL,
    METRO_AGGREGATE_MARKER,
    PERIOD_COL,
    SERVICE_COL,
    STATEWIDE_CATCHMENTS,
    SUBGROUP_COL,
    TOTAL_SERVICE,
    TOTAL_SUBSTRING,
)
from .context import FilterState
from .data_loader import require_columns

LOGGER = logging.getLogger(__name__)

EXCLUDE = "exclude"
RELABEL = "relabel"
MATCH_MODES = ("exact", "contains")


@dataclass(frozen=True)
class RowRule:
    column: str
    pattern: str
    action: str = EXCLUDE
    match: str = "exact"
    label: Optional[str] = None

    def __post_init__(self):
        if self.action not in (EXCLUDE, RELABEL):
            raise ValueError(f"Unknown rule action: {self.action}")
        if self.match not in MATCH_MODES:
            raise ValueError(f"Unknown match mode: {self.match}")
        if self.action == RELABEL and not self.label:
            raise ValueError("Relabel rules need a label.")

    def matches(self, values: pd.Series) -> pd.Series:
        """Case-insensitive match; missing values never match."""
        text = values.astype("string").str.strip().str.lower()
        pattern = self.pattern.strip().lower()
        if self.match == "contains":
            hit = text.str.contains(pattern, regex=False)
        else:
            hit = text == pattern
        return hit.fillna(False).astype(bool)


_STATEWIDE_RULES = tuple(RowRule(CATCHMENT_COL, c) for c in STATEWIDE_CATCHMENTS)

METRO_SERVICE_RULES: Tuple[RowRule, ...] = _STATEWIDE_RULES + (
    RowRule(SERVICE_COL, TOTAL_SERVICE),
    RowRule(
        SERVICE_COL,
        METRO_AGGREGATE_MARKER,
        action=RELABEL,
        match="contains",
        label=METRO_AGGREGATE_LABEL,
    ),
    RowRule(SERVICE_COL, TOTAL_SUBSTRING, match="contains"),
)

# Same sentinels, but the metro aggregate is dropped too: every remaining row
# is a single health service.
SERVICE_ONLY_RULES: Tuple[RowRule, ...] = _STATEWIDE_RULES + (
    RowRule(SERVICE_COL, TOTAL_SERVICE),
    RowRule(SERVICE_COL, METRO_AGGREGATE_MARKER, match="contains"),
    RowRule(SERVICE_COL, TOTAL_SUBSTRING, match="contains"),
)


@dataclass
class KpiSelection:
    """Anonymised KPI measures plus the VarN -> original column mapping."""

    frame: pd.DataFrame
    labels: Dict[str, str] = field(default_factory=dict)

    @property
    def variables(self) -> List[str]:
        return list(self.labels)


def select_group(df: pd.DataFrame, filters: FilterState) -> pd.DataFrame:
    require_columns(df, (GROUP_COL, SUBGROUP_COL), "group selection")
    mask = (df[GROUP_COL] == filters.mh_group) & (df[SUBGROUP_COL] == filters.mh_subgroup)
    out = df.loc[mask].reset_index(drop=True)
    LOGGER.info("Selected %s: %d of %d rows", filters.label, len(out), len(df))
    return out


def apply_row_rules(df: pd.DataFrame, rules: Sequence[RowRule]) -> pd.DataFrame:
    """
    Apply an ordered rule list to a copy of ``df``.
    Each row is decided by the first rule that matches it; unmatched rows are kept.
    """
    require_columns(df, sorted({r.column for r in rules}), "row rules")
    out = df.copy()
    decided = pd.Series(False, index=out.index)
    keep = pd.Series(True, index=out.index)

    for rule in rules:
        hit = rule.matches(out[rule.column]) & ~decided
        if not hit.any():
            continue
        if rule.action == RELABEL:
            out[rule.column] = out[rule.column].astype(object)
            out.loc[hit, rule.column] = rule.label
            LOGGER.info("Relabelled %d row(s) on %s ~ %r as %r", int(hit.sum()), rule.column, rule.pattern, rule.label)
        else:
            keep &= ~hit
            LOGGER.info("Excluded %d row(s) on %s %s %r", int(hit.sum()), rule.column, rule.match, rule.pattern)
        decided |= hit

    return out.loc[keep].reset_index(drop=True)


def build_service_trend_view(
    df: pd.DataFrame,
    filters: FilterState,
    rules: Sequence[RowRule] = METRO_SERVICE_RULES,
) -> pd.DataFrame:
    """Per-service rows for the trend chart, with the metro aggregate relabelled."""
    return apply_row_rules(select_group(df, filters), rules)


def build_service_scatter_view(
    df: pd.DataFrame,
    filters: FilterState,
    rules: Sequence[RowRule] = SERVICE_ONLY_RULES,
) -> pd.DataFrame:
    return apply_row_rules(select_group(df, filters), rules)


def select_kpi_columns(
    df: pd.DataFrame,
    first: str = KPI_FIRST_COL,
    last: str = KPI_LAST_COL,
    max_vars: int = MAX_KPI_VARS,
    period_col: str = PERIOD_COL,
) -> KpiSelection:
    """
    Take the inclusive positional column range ``first``..``last``, drop the
    measures with no values in ``df`` and rename the rest Var1..VarK.
    """
    require_columns(df, (period_col, first, last), "KPI selection")
    cols = list(df.columns)
    start, stop = sorted((cols.index(first), cols.index(last)))

    measures = df[cols[start:stop + 1]].apply(pd.to_numeric, errors="coerce")
    empty = [c for c in measures.columns if measures[c].isna().all()]
    if empty:
        LOGGER.info("Dropping %d all-null KPI column(s): %s", len(empty), ", ".join(empty))
    measures = measures.drop(columns=empty)

    if len(measures.columns) > max_vars:
        LOGGER.warning(
            "%d KPI columns have values; keeping the first %d",
            len(measures.columns),
            max_vars,
        )
        measures = measures.iloc[:, :max_vars]

    labels = {f"Var{i}": name for i, name in enumerate(measures.columns, start=1)}
    renamed = measures.rename(columns={name: var for var, name in labels.items()})
    frame = pd.concat(
        [df[[period_col]].reset_index(drop=True), renamed.reset_index(drop=True)],
        axis=1,
    )
    return KpiSelection(frame=frame, labels=labels)


def build_kpi_view(
    df: pd.DataFrame,
    filters: FilterState,
    rules: Sequence[RowRule] = SERVICE_ONLY_RULES,
) -> KpiSelection:
    return select_kpi_columns(apply_row_rules(select_group(df, filters), rules))


def period_order(values: Iterable) -> List[str]:
    """Sorted unique period labels; fiscal quarter labels sort chronologically."""
    return sorted({str(v) for v in values if not pd.isna(v)})


def variable_legend_lines(labels: Dict[str, str], per_line: int = 3) -> List[str]:
    entries = [f"{var}: {name}" for var, name in labels.items()]
    return ["; ".join(entries[i:i + per_line]) for i in range(0, len(entries), per_line)]
