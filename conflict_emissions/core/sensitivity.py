"""One-at-a-time sensitivity of deterministic scenario totals."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from ..models.parameters import EmissionFactor, ScenarioParameter
from ..models.results import SensitivityResult
from .emissions import scenario_total_midpoint
from .parameter_matrix import build_parameter_matrix, group_by_scenario
from .validator import coerce_float

LOGGER = logging.getLogger(__name__)

SENSITIVITY_TARGETS = (
    "fuel_eff_l_per_km",
    "fuel_eff_l_per_hr",
    "km_day_min",
    "km_day_max",
    "hr_day_min",
    "hr_day_max",
    "idle_l_per_hr",
    "duty_cycle",
)
DEFAULT_SCALES = (0.8, 1.2)

COLUMNS = ["scenario", "class", "param", "scale", "total_kgCO2", "base_total_kgCO2", "pct_change"]


def _scenario_totals(
    params: Sequence[ScenarioParameter], efs: Sequence[EmissionFactor]
) -> Dict[str, float]:
    matrix = build_parameter_matrix(params, efs)
    return {
        scenario: scenario_total_midpoint(rows)
        for scenario, rows in group_by_scenario(matrix).items()
    }


def scale_parameter(
    params: Sequence[ScenarioParameter], index: int, scale: float
) -> List[ScenarioParameter]:
    """Copy of ``params`` with the point value of row ``index`` multiplied by ``scale``."""
    scaled = list(params)
    row = scaled[index]
    value = coerce_float(row.value)
    if value is not None:
        scaled[index] = row.model_copy(update={"value": repr(value * scale)})
    return scaled


def run_sensitivity(
    params: Sequence[ScenarioParameter],
    efs: Sequence[EmissionFactor],
    *,
    targets: Sequence[str] = SENSITIVITY_TARGETS,
    scales: Sequence[float] = DEFAULT_SCALES,
    top_n: int = 8,
) -> SensitivityResult:
    """Scale each targeted input in turn and report the change in its scenario total."""
    base_totals = _scenario_totals(params, efs)
    records = []
    for index, row in enumerate(params):
        if row.is_global or row.param not in targets:
            continue
        base = base_totals.get(row.scenario, 0.0)
        for scale in scales:
            total = _scenario_totals(scale_parameter(params, index, scale), efs).get(
                row.scenario, 0.0
            )
            records.append(
                {
                    "scenario": row.scenario,
                    "class": row.vehicle_class,
                    "param": row.param,
                    "scale": float(scale),
                    "total_kgCO2": total,
                    "base_total_kgCO2": base,
                    "pct_change": 100.0 * (total - base) / base if base else np.nan,
                }
            )
    table = pd.DataFrame(records, columns=COLUMNS)
    LOGGER.info("Sensitivity analysis produced %d rows", len(table))
    return SensitivityResult(table=table, tornado=tornado_table(table, top_n=top_n))


def tornado_table(frame: pd.DataFrame, top_n: int = 8) -> pd.DataFrame:
    """Largest absolute percentage change per (class, param), top ``top_n`` per scenario."""
    columns = ["scenario", "class", "param", "effect"]
    if frame.empty:
        return pd.DataFrame(columns=columns)
    effects = (
        frame.assign(effect=frame["pct_change"].abs())
        .groupby(["scenario", "class", "param"], sort=True)["effect"]
        .max()
        .reset_index()
    )
    effects = effects.sort_values(
        ["scenario", "effect"], ascending=[True, False], kind="mergesort"
    )
    return effects.groupby("scenario", sort=True).head(top_n).reset_index(drop=True)[columns]


__all__ = ["DEFAULT_SCALES", "SENSITIVITY_TARGETS", "run_sensitivity", "scale_parameter", "tornado_table"]
