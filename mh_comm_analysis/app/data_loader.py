import logging
import os
from pathlib import Path
from typing import Dict, Iterable

import pandas as pd

from .config import (
    CORE_COLUMNS,
    DEFAULT_DATA_FILENAME,
    ENV_DATA_PATH,
    KPI_FIRST_COL,
    KPI_LAST_COL,
)

LOGGER = logging.getLogger(__name__)


class DataParseError(ValueError):
    """The KPI file exists but could not be parsed as a header-row CSV."""


class SchemaError(KeyError):
    """An expected column is absent from the KPI table."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


def _default_candidates(default_filename: str) -> list[Path]:
    here = Path(__file__).resolve().parent
    return [
        Path.cwd() / "data" / default_filename,
        Path.cwd() / default_filename,
        here.parent / "data" / default_filename,
        here.parent.parent / "data" / default_filename,
    ]


def resolve_data_path(default_filename: str = DEFAULT_DATA_FILENAME) -> str:
    """
    Resolve the KPI CSV path from env or common locations.
    Returns an empty string if nothing is found so callers can handle gracefully.
    """
    env_path = os.getenv(ENV_DATA_PATH, "").strip()
    if env_path:
        return env_path

    for candidate in _default_candidates(default_filename):
        if candidate.exists():
            return str(candidate)
    return ""


def load_kpi_table(data_path) -> pd.DataFrame:
    """
    Read the extracted KPI CSV. Column names are preserved and pandas
    infers numeric versus string dtypes per column.
    """
    if not data_path:
        raise FileNotFoundError(
            f"Data path is empty. Set {ENV_DATA_PATH} or place {DEFAULT_DATA_FILENAME} in ./data."
        )
    path = Path(data_path)
    if not path.is_file():
        raise FileNotFoundError(f"KPI data file not found: {path}")

    try:
        df = pd.read_csv(path)
    except pd.errors.EmptyDataError as exc:
        raise DataParseError(f"KPI data file is empty: {path}") from exc
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise DataParseError(f"Could not parse {path}: {exc}") from exc

    LOGGER.info("Loaded %s (%d rows, %d columns)", path.name, len(df), len(df.columns))
    return df


def require_columns(df: pd.DataFrame, required: Iterable[str], label: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaError(f"{label}: missing expected columns {', '.join(missing)}")


def validate_kpi_table(df: pd.DataFrame) -> Dict[str, bool]:
    """
    Report which parts of the expected schema are present.

    Returns:
        Dict mapping each core column plus the KPI range bounds to availability.
    """
    status = {col: col in df.columns for col in CORE_COLUMNS}
    status["kpi_range"] = KPI_FIRST_COL in df.columns and KPI_LAST_COL in df.columns
    return status
