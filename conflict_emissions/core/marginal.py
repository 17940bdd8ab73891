"""Emissions attributable to one additional vehicle of each class."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..models.parameters import ParameterMatrixRow
from ..models.results import MarginalResult
from .aggregate import percentile_table
from .validator import ConfigurationError, validate_required_columns

LOGGER = logging.getLogger(__name__)


def _fleet_lookup(matrix: Sequence[ParameterMatrixRow]) -> Dict[Tuple[str, str], float]:
    fleets: Dict[Tuple[str, str], float] = {}
    for row in matrix:
        fleets[(row.scenario, row.vehicle_class.value)] = row.value("fleet_size") or 0.0
    return fleets


def _attach_fleet(
    frame: pd.DataFrame, matrix: Sequence[ParameterMatrixRow]
) -> pd.DataFrame:
    fleets = _fleet_lookup(matrix)
    durations = {row.scenario: int(row.duration_days) for row in matrix}
    keys = list(zip(frame["scenario"].astype(str), frame["class"].astype(str)))
    bad: List[str] = sorted({f"{sc}/{cls}" for sc, cls in keys if not fleets.get((sc, cls))})
    if bad:
        raise ConfigurationError("Missing or zero fleet_size for: " + ", ".join(bad))
    frame = frame.copy()
    frame["fleet_size"] = [fleets[key] for key in keys]
    frame["duration_days"] = frame["scenario"].map(durations)
    return frame


def marginal_deterministic(
    daily: pd.DataFrame, matrix: Sequence[ParameterMatrixRow]
) -> pd.DataFrame:
    """Per-vehicle kg per day, per-vehicle campaign kg and tonnes per (scenario, class)."""
    validate_required_columns(daily, ("scenario", "class", "emissions_kgCO2"), table="daily")
    totals = (
        daily.groupby(["scenario", "class"], sort=True)["emissions_kgCO2"]
        .mean()
        .reset_index()
        .rename(columns={"emissions_kgCO2": "per_day_kg"})
    )
    totals = _attach_fleet(totals, matrix)
    table = totals[["scenario", "class"]].copy()
    table["per_vehicle_per_day_kg"] = totals["per_day_kg"] / totals["fleet_size"]
    table["per_vehicle_total_kg"] = (
        totals["per_day_kg"] * totals["duration_days"] / totals["fleet_size"]
    )
    table["per_vehicle_total_tonnes"] = table["per_vehicle_total_kg"] / 1000.0
    return table


def marginal_monte_carlo(
    totals_by_class: pd.DataFrame, matrix: Sequence[ParameterMatrixRow]
) -> pd.DataFrame:
    """Median/p5/p95 of per-vehicle campaign and per-day kg across draws."""
    validate_required_columns(
        totals_by_class, ("scenario", "class", "draw", "total_kgCO2"), table="per-draw class totals"
    )
    frame = _attach_fleet(totals_by_class, matrix)
    frame["per_vehicle_total_kg"] = frame["total_kgCO2"] / frame["fleet_size"]
    frame["per_vehicle_per_day_kg"] = frame["per_vehicle_total_kg"] / frame["duration_days"]

    tables = []
    for column in ("per_vehicle_total_kg", "per_vehicle_per_day_kg"):
        tables.append(
            percentile_table(frame, ["scenario", "class"], column).rename(
                columns={q: f"{column}_{q}" for q in ("med", "p5", "p95")}
            )
        )
    return tables[0].merge(tables[1], on=["scenario", "class"], how="outer")


def _without_classes(frame: pd.DataFrame, labels: Sequence[str]) -> pd.DataFrame:
    keys = frame["scenario"].astype(str) + "/" + frame["class"].astype(str)
    return frame[~keys.isin(labels)].reset_index(drop=True)


def compute_marginal(
    daily: pd.DataFrame,
    matrix: Sequence[ParameterMatrixRow],
    totals_by_class: Optional[pd.DataFrame] = None,
    *,
    skip_missing_fleet: bool = False,
) -> MarginalResult:
    """Deterministic marginal table, plus the Monte Carlo one when draws are supplied.

    A class without a positive fleet size raises ``ConfigurationError`` unless
    ``skip_missing_fleet`` is set, in which case it is left out of both tables
    and listed in ``MarginalResult.skipped``.
    """
    skipped: List[str] = []
    if skip_missing_fleet:
        fleets = _fleet_lookup(matrix)
        skipped = sorted(f"{sc}/{cls}" for (sc, cls), fleet in fleets.items() if not fleet)
        if skipped:
            LOGGER.warning("Marginal emissions skip classes without fleet_size: %s", skipped)
            daily = _without_classes(daily, skipped)
            if totals_by_class is not None:
                totals_by_class = _without_classes(totals_by_class, skipped)
    return MarginalResult(
        deterministic=marginal_deterministic(daily, matrix),
        monte_carlo=(
            marginal_monte_carlo(totals_by_class, matrix)
            if totals_by_class is not None
            else None
        ),
        skipped=skipped,
    )


__all__ = ["compute_marginal", "marginal_deterministic", "marginal_monte_carlo"]
