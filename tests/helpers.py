"""Shared in-memory inputs for the test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from conflict_emissions.core.data_loader import DataLoader
from conflict_emissions.core.parameter_matrix import build_parameter_matrix
from conflict_emissions.models.parameters import (
    ParameterMatrixRow,
    ParameterValue,
    VehicleClass,
)

PARAMETER_ROWS = [
    # scenario A: single truck fleet over one week
    ("A", "global", "duration_days", "7", None, None),
    ("A", "truck", "fuel_type", "diesel", None, None),
    ("A", "truck", "fleet_size", "20", None, None),
    ("A", "truck", "duty_cycle", "1", None, None),
    ("A", "truck", "km_day_min", "20", None, None),
    ("A", "truck", "km_day_max", "60", None, None),
    ("A", "truck", "fuel_eff_l_per_km", "0.38", "0.25", "0.60"),
    # scenario B: mixed fleet
    ("B", "global", "duration_days", "10", None, None),
    ("B", "truck", "fuel_type", "diesel", None, None),
    ("B", "truck", "fleet_size", "50", None, None),
    ("B", "truck", "km_day_min", "30", None, None),
    ("B", "truck", "km_day_max", "80", None, None),
    ("B", "truck", "fuel_eff_l_per_km", "0.40", "0.30", "0.55"),
    ("B", "tank", "fuel_type", "diesel", None, None),
    ("B", "tank", "fleet_size", "12", None, None),
    ("B", "tank", "duty_cycle", "0.5", None, None),
    ("B", "tank", "km_day_min", "10", None, None),
    ("B", "tank", "km_day_max", "30", None, None),
    ("B", "tank", "fuel_eff_l_per_km", "4.0", "3.0", "5.0"),
    ("B", "tank", "idle_l_per_hr", "10", "8", "12"),
    ("B", "aircraft", "fuel_type", "jet", None, None),
    ("B", "aircraft", "fleet_size", "4", None, None),
    ("B", "aircraft", "hr_day_min", "1", None, None),
    ("B", "aircraft", "hr_day_max", "3", None, None),
    ("B", "aircraft", "fuel_eff_l_per_hr", "3500", "3000", "4000"),
]


def parameters_frame(rows: Optional[List[tuple]] = None) -> pd.DataFrame:
    return pd.DataFrame(
        rows if rows is not None else PARAMETER_ROWS,
        columns=["scenario", "class", "param", "value", "low", "high"],
    )


def emission_factors_frame() -> pd.DataFrame:
    return pd.DataFrame({"fuel_type": ["diesel", "jet"], "co2_per_unit": [2.63, 2.52]})


def phases_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "scenario": ["B", "B", "B"],
            "phase": [1, 2, 3],
            "share_nominal": [0.3, 0.5, 0.2],
            "mult_truck": [1.5, 1.0, 0.5],
            "mult_tank": [2.0, 1.0, 0.3],
            "mult_aircraft": [3.0, 1.0, 0.2],
        }
    )


def load_example(rows: Optional[List[tuple]] = None):
    loader = DataLoader()
    params = loader.parameters_from_dataframe(parameters_frame(rows))
    efs = loader.emission_factors_from_dataframe(emission_factors_frame())
    return params, efs


def example_matrix(rows: Optional[List[tuple]] = None) -> List[ParameterMatrixRow]:
    params, efs = load_example(rows)
    return build_parameter_matrix(params, efs)


def matrix_row(
    vehicle_class: VehicleClass = VehicleClass.TRUCK,
    *,
    scenario: str = "S",
    duration_days: int = 3,
    co2_per_unit: float = 2.5,
    **values: object,
) -> ParameterMatrixRow:
    """Build a matrix row directly; tuple values are (value, low, high)."""
    params: Dict[str, ParameterValue] = {}
    for name, entry in values.items():
        if isinstance(entry, tuple):
            value, low, high = entry
            params[name] = ParameterValue(value=value, low=low, high=high)
        else:
            params[name] = ParameterValue(value=entry)
    return ParameterMatrixRow(
        scenario=scenario,
        vehicle_class=vehicle_class,
        fuel_type="diesel",
        co2_per_unit=co2_per_unit,
        duration_days=duration_days,
        params=params,
    )


def write_inputs(directory: Path, *, with_phases: bool = True) -> Dict[str, Path]:
    paths = {
        "parameters": directory / "parameters.csv",
        "emission_factors": directory / "emission_factors.csv",
    }
    parameters_frame().to_csv(paths["parameters"], index=False)
    emission_factors_frame().to_csv(paths["emission_factors"], index=False)
    if with_phases:
        paths["phases"] = directory / "phases.csv"
        phases_frame().to_csv(paths["phases"], index=False)
    return paths
