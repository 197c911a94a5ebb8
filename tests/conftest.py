"""Pytest configuration and shared fixtures."""
import numpy as np
import pandas as pd
import plotly.io as pio
import pytest

PERIODS = ("2019 20 Q1", "2019 20 Q2")

COLUMNS = [
    "mh_group",
    "mh_subgroup",
    "health_service",
    "catchment",
    "period",
    "new_case_rate",
    "average_length_of_case_days",
    "pre_admission_contact_by_resp_amhs",
    "post_discharge_follow_up",
    "kpi_all_null",
    "kpi_rural_only",
    "kpi_constant",
    "seclusion_rate",
    "average_change_in_clinically_significant_ho_nos_items",
    "comments",
]

# service: (new_case_rate, length_of_case, pre_admission, post_discharge, seclusion, honos)
METRO_SERVICES = {
    "Casey": (42.0, 80.0, 55.0, 81.0, 12.0, 1.5),
    "Peninsula": (38.0, 95.0, 60.0, 77.0, 9.0, 2.0),
    "North East (Austin)": (30.0, 120.0, 48.0, 85.0, 15.0, 1.1),
    "South West (Werribee)": (45.5, 70.0, 65.0, 79.0, 10.0, 2.4),
}

# Aggregate rows: (health_service, catchment, new_case_rate)
METRO_AGGREGATES = (
    ("Metro (excl ORY)", "Metro", 35.0),
    ("TOTAL", "Metro", 36.0),
    ("Metro total", "Metro", 37.0),
    ("Statewide", "TOTAL STATEWIDE*", 33.0),
    ("All services", "TOTAL STATEWIDE", 34.0),
)


def _row(group, subgroup, service, catchment, period, values, rural_only=np.nan):
    rate, length, pre_adm, post_dis, seclusion, honos = values
    return {
        "mh_group": group,
        "mh_subgroup": subgroup,
        "health_service": service,
        "catchment": catchment,
        "period": period,
        "new_case_rate": rate,
        "average_length_of_case_days": length,
        "pre_admission_contact_by_resp_amhs": pre_adm,
        "post_discharge_follow_up": post_dis,
        "kpi_all_null": np.nan,
        "kpi_rural_only": rural_only,
        "kpi_constant": 7.0,
        "seclusion_rate": seclusion,
        "average_change_in_clinically_significant_ho_nos_items": honos,
        "comments": "extracted",
    }


@pytest.fixture
def kpi_frame() -> pd.DataFrame:
    """Adult Metro services across two quarters, with subtotal rows mixed in."""
    rows = []
    for offset, period in enumerate(PERIODS):
        for service, values in METRO_SERVICES.items():
            rate, length, pre_adm, post_dis, seclusion, honos = values
            shifted = (rate + 2 * offset, length - 5 * offset, pre_adm + offset, post_dis, seclusion, honos)
            rows.append(_row("Adult", "Metro", service, service, period, shifted))
        for service, catchment, rate in METRO_AGGREGATES:
            rows.append(_row("Adult", "Metro", service, catchment, period, (rate, 90.0, 57.0, 80.0, 11.0, 1.7)))
        rows.append(_row("Adult", "Rural", "Ballarat", "Ballarat", period, (25.0, 110.0, 50.0, 70.0, 8.0, 1.2), rural_only=3.0))
        rows.append(_row("Child", "Metro", "Casey", "Casey", period, (50.0, 60.0, 40.0, 90.0, 5.0, 1.0)))
    return pd.DataFrame(rows, columns=COLUMNS)


@pytest.fixture
def kpi_csv(tmp_path, kpi_frame):
    path = tmp_path / "data" / "mh_comm_data.csv"
    path.parent.mkdir()
    kpi_frame.to_csv(path, index=False)
    return path


@pytest.fixture
def stub_png_export(monkeypatch):
    """
    Replace kaleido rendering with a fixed PNG payload so exports do not
    need a headless browser. Returns the list of captured calls.
    """
    calls = []

    def fake_to_image(fig, format=None, width=None, height=None, scale=None, **kwargs):
        calls.append({"format": format, "width": width, "height": height, "scale": scale})
        return b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

    monkeypatch.setattr(pio, "to_image", fake_to_image)
    return calls
