"""Daily fuel and CO2 emission models for duration- and distance-based classes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..config import SimulationConfig
from ..models.parameters import ParameterMatrixRow
from .samplers import (
    SamplingDiagnostics,
    bounded_uniform,
    broaden,
    triangular,
    truncated_normal,
)
from .validator import ConfigurationError

# Values used when a numeric input is absent from the parameter table.
DEFAULTS: Dict[str, float] = {
    "fleet_size": 0.0,
    "duty_cycle": 1.0,
    "idle_l_per_hr": 0.0,
    "fuel_eff_l_per_km": 0.0,
    "fuel_eff_l_per_hr": 0.0,
}

DAILY_COLUMNS = ["scenario", "class", "day", "emissions_kgCO2"]


def param_or_default(row: ParameterMatrixRow, name: str) -> float:
    """Return the point value of ``name`` or its documented default."""
    value = row.value(name)
    if value is None:
        return DEFAULTS.get(name, 0.0)
    return float(value)


def _midpoint(low: Optional[float], high: Optional[float]) -> float:
    present = [v for v in (low, high) if v is not None]
    if not present:
        return 0.0
    return float(sum(present) / len(present))


def _non_negative(value: Optional[float]) -> float:
    if value is None:
        return 0.0
    return max(float(value), 0.0)


@dataclass(frozen=True)
class SampledValues:
    """One realisation of the uncertain inputs for a (scenario, class, draw)."""

    fleet_size: float
    emission_factor: float
    activity_per_day: float  # hours flown (aircraft) or km driven (ground)
    fuel_rate: float         # L/hr (aircraft) or L/km (ground)
    idle_l_per_hr: float = 0.0
    duty_cycle: float = 1.0


def daily_fuel_litres(row: ParameterMatrixRow, values: SampledValues) -> float:
    """Litres burned per day by the whole fleet of a class."""
    fleet = _non_negative(values.fleet_size)
    duty = _non_negative(values.duty_cycle)
    if row.vehicle_class.duration_based:
        return fleet * duty * _non_negative(values.activity_per_day) * _non_negative(values.fuel_rate)
    idle = _non_negative(values.idle_l_per_hr)
    idle_hours = 1.0 if idle > 0 else 0.0
    return fleet * (
        duty * _non_negative(values.activity_per_day) * _non_negative(values.fuel_rate)
        + idle_hours * idle
    )


def compute_daily_emissions(
    row: ParameterMatrixRow,
    values: SampledValues,
    disruption: Optional[np.ndarray] = None,
) -> np.ndarray:
    """kg CO2 per day across ``row.duration_days``, optionally modulated per day."""
    days = int(row.duration_days)
    daily = daily_fuel_litres(row, values) * _non_negative(values.emission_factor)
    emissions = np.full(days, daily, dtype=float)
    if disruption is not None:
        if len(disruption) != days:
            raise ValueError("disruption series length must equal duration_days")
        emissions = emissions * np.asarray(disruption, dtype=float)
    return emissions


def daily_frame(
    row: ParameterMatrixRow, emissions: np.ndarray, draw: Optional[int] = None
) -> pd.DataFrame:
    """Wrap a day vector as DailyEmissionRecord rows."""
    frame = pd.DataFrame(
        {
            "scenario": row.scenario,
            "class": row.vehicle_class.value,
            "day": np.arange(1, len(emissions) + 1),
            "emissions_kgCO2": emissions,
        }
    )
    if draw is not None:
        frame["draw"] = int(draw)
    return frame


# ----------------------------------------------------------------- sampling
def _sample_range(
    row: ParameterMatrixRow,
    name: str,
    broaden_pct: float,
    rng: np.random.Generator,
    diagnostics: Optional[SamplingDiagnostics],
) -> Optional[float]:
    """Triangular draw over the broadened literature range of ``name``, mode at its value."""
    param = row.param(name)
    low, high = param.range_or_point()
    a, b = broaden(low, high, broaden_pct)
    return triangular(a, b, param.value, rng, diagnostics=diagnostics)


def sample_class_values(
    row: ParameterMatrixRow,
    config: SimulationConfig,
    rng: np.random.Generator,
    *,
    diagnostics: Optional[SamplingDiagnostics] = None,
) -> SampledValues:
    """Draw fleet, emission factor and activity for one class in one draw.

    Stream order: fleet, EF, activity, fuel rate, idle rate.
    """
    fleet = bounded_uniform(param_or_default(row, "fleet_size"), config.fleet_var_pct, rng)

    mu = float(row.co2_per_unit)
    ef = truncated_normal(
        mu,
        config.ef_sd_frac * mu,
        mu * (1.0 - config.ef_trunc_frac),
        mu * (1.0 + config.ef_trunc_frac),
        rng,
        max_attempts=config.max_rejection_attempts,
        diagnostics=diagnostics,
    )

    if row.vehicle_class.duration_based:
        lo, hi = row.value("hr_day_min"), row.value("hr_day_max")
        rate_name = "fuel_eff_l_per_hr"
    else:
        lo, hi = row.value("km_day_min"), row.value("km_day_max")
        rate_name = "fuel_eff_l_per_km"
    a, b = broaden(lo, hi, config.broaden_pct)
    activity = triangular(a, b, _midpoint(lo, hi), rng, diagnostics=diagnostics)
    rate = _sample_range(row, rate_name, config.broaden_pct, rng, diagnostics)

    idle = 0.0
    if not row.vehicle_class.duration_based:
        idle_low, idle_high = row.param("idle_l_per_hr").range_or_point()
        if idle_low is not None and idle_high is not None and idle_high > 0:
            idle = _non_negative(
                _sample_range(row, "idle_l_per_hr", config.broaden_pct, rng, diagnostics)
            )

    return SampledValues(
        fleet_size=_non_negative(fleet),
        emission_factor=ef,
        activity_per_day=_non_negative(activity),
        fuel_rate=_non_negative(rate),
        idle_l_per_hr=idle,
        duty_cycle=param_or_default(row, "duty_cycle"),
    )


# ------------------------------------------------------------ deterministic
def midpoint_values(row: ParameterMatrixRow) -> SampledValues:
    """Point estimates: midpoint activity, point fuel rates and the nominal EF."""
    if row.vehicle_class.duration_based:
        activity = _midpoint(row.value("hr_day_min"), row.value("hr_day_max"))
        rate = param_or_default(row, "fuel_eff_l_per_hr")
    else:
        activity = _midpoint(row.value("km_day_min"), row.value("km_day_max"))
        rate = param_or_default(row, "fuel_eff_l_per_km")
    return SampledValues(
        fleet_size=param_or_default(row, "fleet_size"),
        emission_factor=float(row.co2_per_unit),
        activity_per_day=activity,
        fuel_rate=rate,
        idle_l_per_hr=param_or_default(row, "idle_l_per_hr"),
        duty_cycle=param_or_default(row, "duty_cycle"),
    )


def compute_deterministic_daily(matrix: Sequence[ParameterMatrixRow]) -> pd.DataFrame:
    """Constant midpoint daily emissions for every (scenario, class, day)."""
    frames: List[pd.DataFrame] = []
    for row in matrix:
        if int(row.duration_days) <= 0:
            raise ConfigurationError(f"Invalid duration_days for scenario {row.scenario!r}")
        frames.append(daily_frame(row, compute_daily_emissions(row, midpoint_values(row))))
    if not frames:
        return pd.DataFrame(columns=DAILY_COLUMNS)
    return pd.concat(frames, ignore_index=True)[DAILY_COLUMNS]


def scenario_total_midpoint(rows: Sequence[ParameterMatrixRow]) -> float:
    """Deterministic campaign total (kg CO2) for the rows of one scenario."""
    total = 0.0
    for row in rows:
        if int(row.duration_days) <= 0:
            continue
        total += float(compute_daily_emissions(row, midpoint_values(row)).sum())
    return total


def summarize_deterministic(daily: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """Totals by (scenario, class) and by scenario."""
    by_class = (
        daily.groupby(["scenario", "class"], sort=True)["emissions_kgCO2"]
        .sum()
        .reset_index()
        .rename(columns={"emissions_kgCO2": "total_kgCO2"})
    )
    by_scenario = (
        by_class.groupby("scenario", sort=True)["total_kgCO2"].sum().reset_index()
    )
    return {"by_class": by_class, "by_scenario": by_scenario}


__all__ = [
    "DEFAULTS",
    "SampledValues",
    "compute_daily_emissions",
    "compute_deterministic_daily",
    "daily_frame",
    "daily_fuel_litres",
    "midpoint_values",
    "param_or_default",
    "sample_class_values",
    "scenario_total_midpoint",
    "summarize_deterministic",
]
