"""Phase timing and intensity Monte Carlo layered over baseline daily emissions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..config import PhasingConfig
from ..models.parameters import Phase, VehicleClass
from ..models.results import PhasingResult
from .aggregate import summarize
from .monte_carlo import MC_COLUMNS, draw_rng
from .samplers import lognormal_multiplier, phase_day_index, sample_phase_lengths
from .validator import ConfigurationError, validate_required_columns

LOGGER = logging.getLogger(__name__)

SHARE_TOLERANCE = 1e-6
PHASED_CLASSES = (VehicleClass.TRUCK, VehicleClass.TANK, VehicleClass.AIRCRAFT)
PHASE_LENGTH_COLUMNS = ["scenario", "draw", "phase", "days"]


@dataclass(frozen=True)
class PhasePlan:
    """Nominal phase timing for one scenario, ordered by phase index."""

    scenario: str
    total_days: int
    phases: np.ndarray        # phase ids
    nominal_days: np.ndarray
    sd_days: np.ndarray
    multipliers: np.ndarray   # shape (n_phases, len(PHASED_CLASSES))


def _group_phases(phases: Sequence[Phase]) -> Dict[str, List[Phase]]:
    grouped: Dict[str, List[Phase]] = {}
    for phase in phases:
        grouped.setdefault(phase.scenario, []).append(phase)
    for scenario, rows in grouped.items():
        ids = [row.phase for row in rows]
        if len(set(ids)) != len(ids):
            raise ConfigurationError(f"Duplicate phase index in scenario {scenario!r}")
        rows.sort(key=lambda row: row.phase)
    return grouped


def validate_phases(phases: Sequence[Phase]) -> None:
    """Reject share sets not summing to 1, non-positive multipliers and negative timings."""
    for scenario, rows in _group_phases(phases).items():
        for row in rows:
            for vehicle_class in PHASED_CLASSES:
                if row.multiplier(vehicle_class.value) <= 0:
                    raise ConfigurationError(
                        f"Phase multipliers must be > 0 ({scenario} phase {row.phase})"
                    )
            if row.share_nominal is None and row.mean_duration_days is None:
                raise ConfigurationError(
                    f"Phase {row.phase} of {scenario!r} needs share_nominal or mean_duration_days"
                )
            for name in ("share_nominal", "mean_duration_days", "sd_duration_days"):
                value = getattr(row, name)
                if value is not None and value < 0:
                    raise ConfigurationError(
                        f"{name} must be non-negative ({scenario} phase {row.phase})"
                    )
        shares = [row.share_nominal for row in rows]
        if all(share is not None for share in shares) and abs(sum(shares) - 1.0) > SHARE_TOLERANCE:
            raise ConfigurationError(
                f"share_nominal must sum to 1 for scenario {scenario!r} (got {sum(shares):.6f})"
            )


def build_phase_plan(
    scenario: str, rows: Sequence[Phase], total_days: int, config: PhasingConfig
) -> PhasePlan:
    """Resolve nominal durations and sds; explicit means take precedence over shares."""
    if int(config.min_phase_days) * len(rows) > total_days:
        raise ConfigurationError(
            f"{len(rows)} phases of at least {config.min_phase_days} days "
            f"do not fit in {total_days} days for scenario {scenario!r}"
        )
    nominal = []
    sd = []
    for row in rows:
        if row.mean_duration_days is not None:
            mean = float(row.mean_duration_days)
        else:
            mean = float(row.share_nominal) * total_days
        nominal.append(mean)
        sd.append(
            float(row.sd_duration_days)
            if row.sd_duration_days is not None
            else config.cv_duration * mean
        )
    multipliers = np.array(
        [[row.multiplier(cls.value) for cls in PHASED_CLASSES] for row in rows], dtype=float
    )
    return PhasePlan(
        scenario=scenario,
        total_days=int(total_days),
        phases=np.array([row.phase for row in rows]),
        nominal_days=np.array(nominal, dtype=float),
        sd_days=np.array(sd, dtype=float),
        multipliers=multipliers,
    )


def sample_phase_multipliers(
    plan: PhasePlan, sdlog: float, rng: np.random.Generator
) -> np.ndarray:
    """Lognormal multipliers around the nominal ones, class-major (truck, tank, aircraft)."""
    sampled = np.empty_like(plan.multipliers)
    for col in range(plan.multipliers.shape[1]):
        for idx in range(plan.multipliers.shape[0]):
            sampled[idx, col] = lognormal_multiplier(plan.multipliers[idx, col], sdlog, rng)
    return sampled


def simulate_phased_scenario(
    plan: PhasePlan, baseline: pd.DataFrame, config: PhasingConfig
) -> Dict[str, pd.DataFrame]:
    """Reweight one scenario's baseline by sampled phase timing and intensity."""
    days = baseline["day"].to_numpy(dtype=np.int64)
    if days.min() < 1 or days.max() > plan.total_days:
        raise ConfigurationError(
            f"Baseline days for {plan.scenario!r} fall outside 1..{plan.total_days}"
        )
    class_pos = {cls.value: idx for idx, cls in enumerate(PHASED_CLASSES)}
    columns = baseline["class"].map(class_pos).fillna(-1).to_numpy(dtype=np.int64)
    phased = columns >= 0
    base = baseline["emissions_kgCO2"].to_numpy(dtype=float)

    n_draws = int(config.n_draws)
    adjusted = np.empty((n_draws, base.size), dtype=float)
    lengths = np.empty((n_draws, plan.phases.size), dtype=np.int64)
    for draw in range(1, n_draws + 1):
        rng = draw_rng(config.seed, plan.scenario, draw)
        counts = sample_phase_lengths(
            plan.nominal_days, plan.sd_days, plan.total_days, config.min_phase_days, rng
        )
        sampled = sample_phase_multipliers(plan, config.sdlog_mult, rng)
        rows_pos = phase_day_index(np.arange(plan.phases.size), counts)[days - 1]
        factor = np.ones(base.size, dtype=float)
        factor[phased] = sampled[rows_pos[phased], columns[phased]]
        adjusted[draw - 1] = base * factor
        lengths[draw - 1] = counts

    daily = pd.DataFrame(
        {
            "scenario": plan.scenario,
            "class": np.tile(baseline["class"].to_numpy(), n_draws),
            "day": np.tile(days, n_draws),
            "draw": np.repeat(np.arange(1, n_draws + 1), base.size),
            "emissions_kgCO2": adjusted.reshape(-1),
        }
    )
    phase_lengths = pd.DataFrame(
        {
            "scenario": plan.scenario,
            "draw": np.repeat(np.arange(1, n_draws + 1), plan.phases.size),
            "phase": np.tile(plan.phases, n_draws),
            "days": lengths.reshape(-1),
        }
    )
    return {"daily": daily[MC_COLUMNS], "phase_lengths": phase_lengths}


def run_phasing(
    baseline_daily: pd.DataFrame,
    phases: Sequence[Phase],
    durations: Mapping[str, Optional[int]],
    config: Optional[PhasingConfig] = None,
    *,
    n_draws: Optional[int] = None,
    seed: Optional[int] = None,
    progress_callback: Optional[Callable[[int, int, str], None]] = None,
) -> PhasingResult:
    """Sample phase lengths and intensity multipliers per draw over deterministic daily emissions.

    Only scenarios present in both ``baseline_daily`` and ``phases`` are
    simulated. Invalid phase tables raise ``ConfigurationError`` before any
    sampling starts.
    """
    config = (config or PhasingConfig()).with_overrides(n_draws=n_draws, seed=seed)
    validate_required_columns(
        baseline_daily, ("scenario", "class", "day", "emissions_kgCO2"), table="baseline daily"
    )
    validate_phases(phases)
    grouped = _group_phases(phases)

    baseline_scenarios = list(dict.fromkeys(baseline_daily["scenario"].astype(str)))
    scenarios = [sc for sc in baseline_scenarios if sc in grouped]
    skipped: Dict[str, str] = {}
    for scenario in baseline_scenarios:
        if scenario not in grouped:
            skipped[scenario] = "no phase definition"
    for scenario in grouped:
        if scenario not in baseline_daily["scenario"].astype(str).values:
            skipped[scenario] = "no baseline emissions"
    for scenario, reason in skipped.items():
        LOGGER.info("Phasing skips scenario %s: %s", scenario, reason)

    plans = []
    for scenario in scenarios:
        total_days = durations.get(scenario)
        if total_days is None or int(total_days) <= 0:
            raise ConfigurationError(f"Missing or invalid duration_days for scenario {scenario!r}")
        plans.append(build_phase_plan(scenario, grouped[scenario], int(total_days), config))

    LOGGER.info(
        "Starting phasing Monte Carlo: %d scenarios x %d draws (seed=%d)",
        len(plans),
        config.n_draws,
        config.seed,
    )
    daily_frames: List[pd.DataFrame] = []
    length_frames: List[pd.DataFrame] = []
    for step, plan in enumerate(plans, start=1):
        base_sc = baseline_daily[baseline_daily["scenario"].astype(str) == plan.scenario]
        base_sc = base_sc.sort_values(["day", "class"], kind="mergesort").reset_index(drop=True)
        tables = simulate_phased_scenario(plan, base_sc, config)
        daily_frames.append(tables["daily"])
        length_frames.append(tables["phase_lengths"])
        if progress_callback:
            progress_callback(step, len(plans), f"Phased scenario {plan.scenario}")

    daily = (
        pd.concat(daily_frames, ignore_index=True)
        if daily_frames
        else pd.DataFrame(columns=MC_COLUMNS)
    )
    phase_lengths = (
        pd.concat(length_frames, ignore_index=True)
        if length_frames
        else pd.DataFrame(columns=PHASE_LENGTH_COLUMNS)
    )
    LOGGER.info("Phasing Monte Carlo finished: %d rows", len(daily))
    return PhasingResult(
        daily=daily,
        phase_lengths=phase_lengths,
        summary=summarize(daily),
        skipped_scenarios=skipped,
        metadata={"config": config.to_metadata(), "scenarios": scenarios},
    )


__all__ = [
    "PhasePlan",
    "build_phase_plan",
    "run_phasing",
    "sample_phase_multipliers",
    "simulate_phased_scenario",
    "validate_phases",
]
