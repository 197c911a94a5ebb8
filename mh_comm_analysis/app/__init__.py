"""
Building blocks for the Adult mental health community KPI analysis.

Data access, row filtering, statistics, chart builders and PNG export live
in separate modules so each step can be tested in isolation.
"""

from .config import (
    DEFAULT_DATA_FILENAME,
    DEFAULT_OUTPUT_DIR,
    ENV_DATA_PATH,
)
from .context import FilterState, ReportContext

__all__ = [
    "DEFAULT_DATA_FILENAME",
    "DEFAULT_OUTPUT_DIR",
    "ENV_DATA_PATH",
    "FilterState",
    "ReportContext",
]
