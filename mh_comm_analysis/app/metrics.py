import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats

LOGGER = logging.getLogger(__name__)

MIN_PAIRS = 3


class CorrelationUndefined(ValueError):
    """Pearson correlation cannot be computed for the given inputs."""


@dataclass
class MetricResult:
    value: Optional[float]
    notes: str = ""
    extra: Dict[str, Optional[float]] = field(default_factory=dict)

    @property
    def computable(self) -> bool:
        return self.value is not None


@dataclass
class CorrelationMatrix:
    """
    Pairwise Pearson results; non-computable pairs are NaN and flagged False.
    adjusted_p_values holds Holm-adjusted p values over the off-diagonal pairs.
    """

    coefficients: pd.DataFrame
    p_values: pd.DataFrame
    computable: pd.DataFrame
    adjusted_p_values: pd.DataFrame

    @property
    def variables(self) -> list:
        return list(self.coefficients.columns)


def _complete_pairs(x, y) -> Tuple[np.ndarray, np.ndarray]:
    xs = pd.to_numeric(pd.Series(x), errors="coerce").to_numpy(dtype=float)
    ys = pd.to_numeric(pd.Series(y), errors="coerce").to_numpy(dtype=float)
    if len(xs) != len(ys):
        raise ValueError(f"Length mismatch: {len(xs)} vs {len(ys)}")
    mask = ~(np.isnan(xs) | np.isnan(ys))
    return xs[mask], ys[mask]


def _pearson(xs: np.ndarray, ys: np.ndarray):
    if len(xs) < MIN_PAIRS:
        raise CorrelationUndefined(f"Only {len(xs)} complete pair(s); need at least {MIN_PAIRS}.")
    if np.ptp(xs) == 0 or np.ptp(ys) == 0:
        raise CorrelationUndefined("Zero variance in at least one variable.")
    return stats.pearsonr(xs, ys)


def pearson_correlation(x, y, confidence: float = 0.95) -> MetricResult:
    """
    Pearson correlation on pairwise complete observations.

    extra carries n, df, t_statistic, p_value, ci_low and ci_high. When the
    coefficient is undefined (too few pairs or a constant variable) the
    result has value=None and notes explaining why.
    """
    xs, ys = _complete_pairs(x, y)
    n = len(xs)
    try:
        res = _pearson(xs, ys)
    except CorrelationUndefined as exc:
        LOGGER.debug("Correlation not computable: %s", exc)
        return MetricResult(value=None, notes=str(exc), extra={"n": float(n)})

    r = float(res.statistic)
    dof = n - 2
    if abs(r) < 1.0:
        t_stat = r * np.sqrt(dof / (1.0 - r**2))
    else:
        t_stat = np.copysign(np.inf, r)

    ci_low = ci_high = None
    if n > 3:
        ci = res.confidence_interval(confidence_level=confidence)
        ci_low, ci_high = float(ci.low), float(ci.high)

    return MetricResult(
        value=r,
        notes="Pearson product-moment correlation.",
        extra={
            "n": float(n),
            "df": float(dof),
            "t_statistic": float(t_stat),
            "p_value": float(res.pvalue),
            "ci_low": ci_low,
            "ci_high": ci_high,
        },
    )


def correlation_matrix(frame: pd.DataFrame, columns: Sequence[str]) -> CorrelationMatrix:
    """Symmetric matrix of pairwise Pearson coefficients and p values."""
    columns = list(columns)
    coefficients = pd.DataFrame(np.nan, index=columns, columns=columns)
    p_values = pd.DataFrame(np.nan, index=columns, columns=columns)
    computable = pd.DataFrame(False, index=columns, columns=columns)

    for i, a in enumerate(columns):
        for b in columns[i:]:
            res = pearson_correlation(frame[a], frame[b])
            if not res.computable:
                LOGGER.debug("Pair %s/%s not computable: %s", a, b, res.notes)
                continue
            for row, col in ((a, b), (b, a)):
                coefficients.loc[row, col] = res.value
                p_values.loc[row, col] = res.extra["p_value"]
                computable.loc[row, col] = True

    pairs = [
        (a, b)
        for i, a in enumerate(columns)
        for b in columns[i + 1:]
        if computable.loc[a, b]
    ]
    adjusted_p_values = pd.DataFrame(np.nan, index=columns, columns=columns)
    adjusted = holm_adjust([p_values.loc[a, b] for a, b in pairs])
    for (a, b), p in zip(pairs, adjusted):
        adjusted_p_values.loc[a, b] = adjusted_p_values.loc[b, a] = p

    return CorrelationMatrix(
        coefficients=coefficients,
        p_values=p_values,
        computable=computable,
        adjusted_p_values=adjusted_p_values,
    )


def holm_adjust(p_values: Sequence[float]) -> list:
    """
    Holm step-down adjustment. Returns adjusted p values in input order:
    the k-th smallest p is multiplied by (m - k + 1), made monotone and capped at 1.
    """
    p = np.asarray(p_values, dtype=float)
    m = len(p)
    if m == 0:
        return []
    order = np.argsort(p, kind="mergesort")
    stepped = np.maximum.accumulate((m - np.arange(m)) * p[order])
    adjusted = np.empty(m)
    adjusted[order] = np.minimum(stepped, 1.0)
    return adjusted.tolist()


def median_centre(values) -> Optional[float]:
    series = pd.to_numeric(pd.Series(values), errors="coerce").dropna()
    if series.empty:
        return None
    return float(series.median())
