"""Convert per-draw emissions back to fuel volumes and tanker trip requirements."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..config import LogisticsConfig
from ..models.parameters import ParameterMatrixRow
from ..models.results import LogisticsResult
from .aggregate import percentile_table
from .monte_carlo import draw_rng
from .validator import ConfigurationError, validate_required_columns

LOGGER = logging.getLogger(__name__)

DRAW_COLUMNS = [
    "scenario",
    "draw",
    "litres_total",
    "tanker_capacity_l",
    "load_factor",
    "trips_total",
    "trips_per_day",
]


def sample_tanker_capacity(config: LogisticsConfig, draw: int) -> Tuple[float, float]:
    """Return (capacity_l, load_factor) for one draw, shared by every scenario and class."""
    rng = draw_rng(config.seed, None, draw)
    mean = config.tanker_capacity_mean_l
    capacity = float(rng.normal(mean, config.tanker_capacity_sd_l))
    capacity = min(
        max(capacity, mean * (1.0 - config.capacity_clip_frac)),
        mean * (1.0 + config.capacity_clip_frac),
    )
    load_factor = float(rng.uniform(config.load_factor_min, config.load_factor_max))
    return capacity, load_factor


def _matrix_lookup(
    matrix: Sequence[ParameterMatrixRow],
) -> Tuple[Dict[Tuple[str, str], float], Dict[str, int]]:
    efs: Dict[Tuple[str, str], float] = {}
    durations: Dict[str, int] = {}
    for row in matrix:
        efs[(row.scenario, row.vehicle_class.value)] = float(row.co2_per_unit)
        durations[row.scenario] = int(row.duration_days)
    return efs, durations


def run_logistics(
    totals_by_class: pd.DataFrame,
    matrix: Sequence[ParameterMatrixRow],
    config: Optional[LogisticsConfig] = None,
) -> LogisticsResult:
    """Tanker trips per (scenario, draw) and their median/p5/p95 per scenario.

    ``totals_by_class`` has columns (scenario, class, draw, total_kgCO2).
    """
    config = config or LogisticsConfig()
    validate_required_columns(
        totals_by_class, ("scenario", "class", "draw", "total_kgCO2"), table="per-draw class totals"
    )
    efs, durations = _matrix_lookup(matrix)

    frame = totals_by_class.copy()
    keys = list(zip(frame["scenario"].astype(str), frame["class"].astype(str)))
    missing = sorted({f"{sc}/{cls}" for sc, cls in keys if (sc, cls) not in efs})
    if missing:
        raise ConfigurationError("Missing EF for: " + ", ".join(missing))
    frame["co2_per_unit"] = [efs[key] for key in keys]
    frame["litres"] = frame["total_kgCO2"].astype(float) / frame["co2_per_unit"]

    draws = sorted(int(d) for d in frame["draw"].unique())
    capacity = pd.DataFrame(
        [(draw, *sample_tanker_capacity(config, draw)) for draw in draws],
        columns=["draw", "tanker_capacity_l", "load_factor"],
    )
    frame = frame.merge(capacity, on="draw", how="left")
    frame["trips"] = frame["litres"] / (frame["tanker_capacity_l"] * frame["load_factor"])

    per_draw = (
        frame.groupby(["scenario", "draw"], sort=True)
        .agg(
            litres_total=("litres", "sum"),
            tanker_capacity_l=("tanker_capacity_l", "first"),
            load_factor=("load_factor", "first"),
            trips_total=("trips", "sum"),
        )
        .reset_index()
    )
    per_draw["trips_per_day"] = per_draw["trips_total"] / per_draw["scenario"].map(durations)
    per_draw = per_draw[DRAW_COLUMNS]

    totals = percentile_table(per_draw, ["scenario"], "trips_total").rename(
        columns={"med": "trips_total_med", "p5": "trips_total_p5", "p95": "trips_total_p95"}
    )
    per_day = percentile_table(per_draw, ["scenario"], "trips_per_day").rename(
        columns={"med": "trips_day_med", "p5": "trips_day_p5", "p95": "trips_day_p95"}
    )
    summary = totals.merge(per_day, on="scenario", how="outer")
    LOGGER.info("Fuel logistics computed for %d scenarios", len(summary))
    return LogisticsResult(
        draws=per_draw,
        summary=summary,
        metadata={"config": config.to_metadata()},
    )


__all__ = ["run_logistics", "sample_tanker_capacity"]
