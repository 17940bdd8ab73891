"""Build the wide per-(scenario, class) parameter matrix from long-format inputs."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from ..models.parameters import (
    CLASS_PARAMS,
    DURATION_PARAM,
    FUEL_TYPE_PARAM,
    GLOBAL_PARAMS,
    NUMERIC_PARAMS,
    EmissionFactor,
    ParameterMatrixRow,
    ParameterValue,
    ScenarioParameter,
    VehicleClass,
)
from .validator import ConfigurationError, coerce_duration, coerce_float, validate_unique_keys

LOGGER = logging.getLogger(__name__)

_CLASS_NAMES = {member.value for member in VehicleClass}


def _validate_schema(params: Sequence[ScenarioParameter]) -> None:
    """Reject unknown classes, unknown parameter keys and duplicate rows."""
    problems: List[str] = []
    for row in params:
        if row.is_global:
            if row.param not in GLOBAL_PARAMS:
                problems.append(f"{row.scenario}/global: unrecognised parameter {row.param!r}")
        elif row.vehicle_class not in _CLASS_NAMES:
            problems.append(f"{row.scenario}: unrecognised class {row.vehicle_class!r}")
        elif row.param not in CLASS_PARAMS:
            problems.append(
                f"{row.scenario}/{row.vehicle_class}: unrecognised parameter {row.param!r}"
            )
    if problems:
        raise ConfigurationError("Invalid parameter table: " + "; ".join(problems))
    validate_unique_keys(
        ((row.scenario, row.vehicle_class, row.param) for row in params),
        what="(scenario, class, param) rows",
    )


def _emission_factor_lookup(efs: Iterable[EmissionFactor]) -> Dict[str, float]:
    lookup: Dict[str, float] = {}
    for factor in efs:
        if factor.co2_per_unit <= 0:
            raise ConfigurationError(
                f"Emission factor for {factor.fuel_type!r} must be positive"
            )
        existing = lookup.get(factor.fuel_type)
        if existing is not None and existing != factor.co2_per_unit:
            raise ConfigurationError(
                f"Conflicting emission factors for fuel type {factor.fuel_type!r}"
            )
        lookup[factor.fuel_type] = float(factor.co2_per_unit)
    return lookup


def scenario_durations(params: Iterable[ScenarioParameter]) -> Dict[str, Optional[int]]:
    """Return duration_days per scenario (``None`` when present but invalid)."""
    durations: Dict[str, Optional[int]] = {}
    for row in params:
        if row.is_global and row.param == DURATION_PARAM:
            durations[row.scenario] = coerce_duration(row.value)
    return durations


def build_parameter_matrix(
    params: Sequence[ScenarioParameter],
    efs: Sequence[EmissionFactor],
) -> List[ParameterMatrixRow]:
    """Pivot long-format parameters into one row per (scenario, class).

    Raises ``ConfigurationError`` when any referenced scenario lacks a valid
    duration, a class lacks a fuel type, or a fuel type has no emission
    factor. The build either succeeds for every row or fails as a whole.
    """
    _validate_schema(params)
    ef_lookup = _emission_factor_lookup(efs)
    durations = scenario_durations(params)

    fuel_map: Dict[Tuple[str, str], str] = {}
    numeric: Dict[Tuple[str, str], Dict[str, ParameterValue]] = {}
    order: List[Tuple[str, str]] = []
    for row in params:
        if row.is_global:
            continue
        key = (row.scenario, row.vehicle_class)
        if key not in numeric:
            numeric[key] = {}
            order.append(key)
        if row.param == FUEL_TYPE_PARAM:
            if row.value:
                fuel_map[key] = row.value
            continue
        numeric[key][row.param] = ParameterValue(
            value=coerce_float(row.value),
            low=coerce_float(row.low),
            high=coerce_float(row.high),
        )

    problems: List[str] = []
    matrix: List[ParameterMatrixRow] = []
    for scenario, vehicle_class in order:
        label = f"{scenario}/{vehicle_class}"
        if scenario not in durations:
            problems.append(f"{label}: scenario has no global duration_days")
            continue
        duration = durations[scenario]
        if duration is None:
            problems.append(f"{label}: duration_days must be a positive integer")
            continue
        fuel_type = fuel_map.get((scenario, vehicle_class))
        if fuel_type is None:
            problems.append(f"{label}: missing fuel_type")
            continue
        co2_per_unit = ef_lookup.get(fuel_type)
        if co2_per_unit is None:
            problems.append(f"{label}: Missing EF for fuel_type {fuel_type!r}")
            continue
        matrix.append(
            ParameterMatrixRow(
                scenario=scenario,
                vehicle_class=VehicleClass(vehicle_class),
                fuel_type=fuel_type,
                co2_per_unit=co2_per_unit,
                duration_days=duration,
                params=numeric[(scenario, vehicle_class)],
            )
        )

    if problems:
        raise ConfigurationError("Parameter matrix build failed: " + "; ".join(problems))
    LOGGER.info(
        "Built parameter matrix with %d rows across %d scenarios",
        len(matrix),
        len({row.scenario for row in matrix}),
    )
    return matrix


def matrix_to_frame(matrix: Sequence[ParameterMatrixRow]) -> pd.DataFrame:
    """Flatten the matrix into a dataframe with ``<param>``, ``<param>__low``, ``<param>__high`` columns."""
    records = []
    for row in matrix:
        record: Dict[str, object] = {
            "scenario": row.scenario,
            "class": row.vehicle_class.value,
            "fuel_type": row.fuel_type,
            "co2_per_unit": row.co2_per_unit,
            "duration_days": row.duration_days,
        }
        for name in NUMERIC_PARAMS:
            value = row.param(name)
            record[name] = value.value
            record[f"{name}__low"] = value.low
            record[f"{name}__high"] = value.high
        records.append(record)
    return pd.DataFrame(records)


def group_by_scenario(
    matrix: Sequence[ParameterMatrixRow],
) -> Dict[str, List[ParameterMatrixRow]]:
    """Group matrix rows by scenario, preserving input order."""
    grouped: Dict[str, List[ParameterMatrixRow]] = {}
    for row in matrix:
        grouped.setdefault(row.scenario, []).append(row)
    return grouped
