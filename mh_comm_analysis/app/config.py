from pathlib import Path

# Defaults for locating the extracted KPI table and generated artifacts.
DEFAULT_DATA_FILENAME = "mh_comm_data.csv"
ENV_DATA_PATH = "MH_COMM_DATA_PATH"
ENV_OUTPUT_DIR = "MH_COMM_OUTPUT_DIR"
ENV_LOG_LEVEL = "MH_COMM_LOG_LEVEL"

# Output locations for PNGs and caption templates.
DEFAULT_OUTPUT_DIR = Path("output")
DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

# Column names produced by the document extraction step.
GROUP_COL = "mh_group"
SUBGROUP_COL = "mh_subgroup"
SERVICE_COL = "health_service"
CATCHMENT_COL = "catchment"
PERIOD_COL = "period"
NEW_CASE_RATE_COL = "new_case_rate"
CASE_LENGTH_COL = "average_length_of_case_days"

CORE_COLUMNS = (
    GROUP_COL,
    SUBGROUP_COL,
    SERVICE_COL,
    CATCHMENT_COL,
    PERIOD_COL,
    NEW_CASE_RATE_COL,
    CASE_LENGTH_COL,
)

# Inclusive positional range of KPI measures fed to the correlogram.
KPI_FIRST_COL = "pre_admission_contact_by_resp_amhs"
KPI_LAST_COL = "average_change_in_clinically_significant_ho_nos_items"
MAX_KPI_VARS = 10

# Subtotal sentinels in the source tables.
STATEWIDE_CATCHMENTS = ("TOTAL STATEWIDE*", "TOTAL STATEWIDE")
TOTAL_SERVICE = "TOTAL"
TOTAL_SUBSTRING = "total"
METRO_AGGREGATE_MARKER = "excl ory"
METRO_AGGREGATE_LABEL = "Total Metro"

# Services with the highest metropolitan new case rates, plus the metro aggregate.
HIGHLIGHT_SERVICES = (
    "Total Metro",
    "South West (Werribee)",
    "North East (Austin)",
    "Casey",
    "Peninsula",
)
LABEL_THRESHOLD = 40.0
SIGNIFICANCE_LEVEL = 0.05

# Layout units per inch; raster scale is dpi / BASE_DPI.
BASE_DPI = 100

# Shared Plotly defaults so every exported chart looks the same.
PLOTLY_TEMPLATE = "plotly_white"
MUTED_LINE_COLOR = "#c7c7c7"
HIGHLIGHT_PALETTE = (
    "#1b9e77",
    "#d95f02",
    "#7570b3",
    "#e7298a",
    "#66a61e",
    "#e6ab02",
    "#a6761d",
)
CORRELOGRAM_COLORSCALE = "RdBu"

SOURCE_CREDIT = "Source: Victorian Agency for Health Information (VAHI)"
ANALYST_CREDIT = "Analysis: Hung Vo, An Evaluator Analytics"
