"""Monte Carlo orchestration for per-class daily emissions."""

from __future__ import annotations

import hashlib
import logging
from concurrent.futures import ProcessPoolExecutor
from multiprocessing import get_context
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..config import SimulationConfig
from ..models.parameters import ParameterMatrixRow
from ..models.results import MonteCarloResult
from .aggregate import summarize
from .emissions import compute_daily_emissions, sample_class_values
from .parameter_matrix import group_by_scenario
from .samplers import SamplingDiagnostics, disruption_series
from .validator import ScenarioSkipped

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]

MC_COLUMNS = ["scenario", "class", "day", "draw", "emissions_kgCO2"]


def stable_key(label: str) -> int:
    """64-bit key derived from ``label``; identical across processes and runs."""
    return int(hashlib.sha1(label.encode("utf-8")).hexdigest()[:16], 16)


def draw_rng(seed: int, scenario: Optional[str], draw: int) -> np.random.Generator:
    """Independent generator for one (scenario, draw) pair.

    ``scenario=None`` keys the stream on the draw alone, for quantities shared
    by every scenario within a draw.
    """
    spawn_key: Tuple[int, ...] = (int(draw),) if scenario is None else (stable_key(scenario), int(draw))
    return np.random.default_rng(np.random.SeedSequence(entropy=int(seed), spawn_key=spawn_key))


def _check_scenario(scenario: str, rows: Sequence[ParameterMatrixRow]) -> int:
    if not rows:
        raise ScenarioSkipped(scenario, "no parameter rows")
    durations = {int(row.duration_days) for row in rows}
    if len(durations) != 1:
        raise ScenarioSkipped(scenario, f"inconsistent duration_days {sorted(durations)}")
    duration = durations.pop()
    if duration <= 0:
        raise ScenarioSkipped(scenario, f"invalid duration_days {duration}")
    return duration


def simulate_scenario(
    scenario: str,
    rows: Sequence[ParameterMatrixRow],
    config: SimulationConfig,
) -> Tuple[pd.DataFrame, SamplingDiagnostics]:
    """Run every draw for one scenario.

    Each draw samples every class row, then one disruption series that is
    shared by all classes in that draw.
    """
    duration = _check_scenario(scenario, rows)
    diagnostics = SamplingDiagnostics()
    n_draws = int(config.n_draws)
    days = np.arange(1, duration + 1)

    emissions = np.empty((n_draws, len(rows), duration), dtype=float)
    for draw in range(1, n_draws + 1):
        rng = draw_rng(config.seed, scenario, draw)
        sampled = [
            sample_class_values(row, config, rng, diagnostics=diagnostics) for row in rows
        ]
        disruption = disruption_series(
            duration, config.disrupt_prob, config.disrupt_factor, rng
        )
        for idx, (row, values) in enumerate(zip(rows, sampled)):
            emissions[draw - 1, idx, :] = compute_daily_emissions(row, values, disruption)

    # draw-major, then class, then day
    frame = pd.DataFrame(
        {
            "scenario": scenario,
            "class": np.tile(
                np.repeat([row.vehicle_class.value for row in rows], duration), n_draws
            ),
            "day": np.tile(days, n_draws * len(rows)),
            "draw": np.repeat(np.arange(1, n_draws + 1), len(rows) * duration),
            "emissions_kgCO2": emissions.reshape(-1),
        }
    )
    return frame[MC_COLUMNS], diagnostics


def _scenario_task(
    args: Tuple[str, List[ParameterMatrixRow], SimulationConfig]
) -> Tuple[str, Optional[pd.DataFrame], Optional[SamplingDiagnostics], Optional[str]]:
    scenario, rows, config = args
    try:
        frame, diagnostics = simulate_scenario(scenario, rows, config)
    except ScenarioSkipped as exc:
        return scenario, None, None, exc.reason
    return scenario, frame, diagnostics, None


def run_monte_carlo(
    matrix: Sequence[ParameterMatrixRow],
    config: Optional[SimulationConfig] = None,
    *,
    n_draws: Optional[int] = None,
    seed: Optional[int] = None,
    max_workers: Optional[int] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> MonteCarloResult:
    """Simulate ``n_draws`` realisations of every scenario in the matrix.

    Output does not depend on ``max_workers``: every (scenario, draw) pair
    reads its own generator derived from ``seed``. Scenarios that cannot be
    simulated yield no rows and are listed in ``skipped_scenarios``.
    """
    config = (config or SimulationConfig()).with_overrides(n_draws=n_draws, seed=seed)
    grouped = group_by_scenario(matrix)
    tasks = [(scenario, rows, config) for scenario, rows in grouped.items()]
    total = len(tasks)
    LOGGER.info(
        "Starting Monte Carlo run: %d scenarios x %d draws (seed=%d)",
        total,
        config.n_draws,
        config.seed,
    )

    if max_workers and max_workers > 1 and total > 1:
        with ProcessPoolExecutor(
            max_workers=max_workers, mp_context=get_context("spawn")
        ) as executor:
            outcomes = list(executor.map(_scenario_task, tasks))
    else:
        outcomes = []
        for task in tasks:
            outcomes.append(_scenario_task(task))
            if progress_callback:
                progress_callback(len(outcomes), total, f"Simulated scenario {task[0]}")

    frames: List[pd.DataFrame] = []
    diagnostics = SamplingDiagnostics()
    skipped: Dict[str, str] = {}
    for scenario, frame, scenario_diagnostics, reason in outcomes:
        if reason is not None:
            LOGGER.warning("Scenario %s skipped: %s", scenario, reason)
            skipped[scenario] = reason
            continue
        frames.append(frame)
        diagnostics.merge(scenario_diagnostics)
    if progress_callback and max_workers and max_workers > 1 and total > 1:
        progress_callback(total, total, "Monte Carlo complete")

    daily = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=MC_COLUMNS)
    if diagnostics.rejection_exhausted:
        LOGGER.warning(
            "Truncated-normal sampling hit the attempt cap %d times; values were clamped",
            diagnostics.rejection_exhausted,
        )
    if diagnostics.degenerate_triangular:
        LOGGER.info(
            "%d triangular draws had undefined or degenerate bounds and contributed 0",
            diagnostics.degenerate_triangular,
        )
    LOGGER.info(
        "Monte Carlo run finished: %d rows, %d scenarios skipped", len(daily), len(skipped)
    )
    return MonteCarloResult(
        daily=daily,
        summary=summarize(daily),
        diagnostics=diagnostics.to_dict(),
        skipped_scenarios=skipped,
        metadata={"config": config.to_metadata(), "scenarios": list(grouped)},
    )


__all__ = ["draw_rng", "run_monte_carlo", "simulate_scenario", "stable_key"]
