"""High-level orchestration for the conflict emissions engine."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from .config import RunConfig
from .core.data_loader import DataLoader, InputTables, PathLike
from .core.emissions import compute_deterministic_daily, summarize_deterministic
from .core.logistics import run_logistics
from .core.marginal import compute_marginal
from .core.monte_carlo import run_monte_carlo
from .core.monte_carlo_validation import ValidationResult, validate_emission_draws
from .core.parameter_matrix import build_parameter_matrix, scenario_durations
from .core.phasing import run_phasing
from .core.sensitivity import DEFAULT_SCALES, run_sensitivity
from .core.validator import ConfigurationError
from .models.parameters import EmissionFactor, ParameterMatrixRow, Phase, ScenarioParameter
from .models.results import (
    DeterministicResult,
    EngineResults,
    LogisticsResult,
    MarginalResult,
    MonteCarloResult,
    PhasingResult,
    SensitivityResult,
)

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


class EmissionsEngine:
    """Primary entry point for loading scenario inputs and running every analysis."""

    def __init__(self, config: Optional[RunConfig] = None) -> None:
        self.config = config or RunConfig()
        self.parameters: List[ScenarioParameter] = []
        self.emission_factors: List[EmissionFactor] = []
        self.phases: Optional[List[Phase]] = None
        self._matrix: Optional[List[ParameterMatrixRow]] = None
        self.results = EngineResults()

    # --------------------------------------------------------------------- Data
    def load_data(
        self,
        parameters_path: PathLike,
        emission_factors_path: PathLike,
        phases_path: Optional[PathLike] = None,
    ) -> InputTables:
        """Load the input tables from CSV files."""
        tables = DataLoader().load_inputs(parameters_path, emission_factors_path, phases_path)
        self._set_inputs(tables)
        return tables

    def load_dataframes(
        self,
        parameters: pd.DataFrame,
        emission_factors: pd.DataFrame,
        phases: Optional[pd.DataFrame] = None,
    ) -> InputTables:
        """Load the input tables from existing dataframes."""
        loader = DataLoader()
        tables = InputTables(
            parameters=loader.parameters_from_dataframe(parameters),
            emission_factors=loader.emission_factors_from_dataframe(emission_factors),
            phases=loader.phases_from_dataframe(phases) if phases is not None else None,
        )
        self._set_inputs(tables)
        return tables

    def _set_inputs(self, tables: InputTables) -> None:
        self.parameters = list(tables.parameters)
        self.emission_factors = list(tables.emission_factors)
        self.phases = list(tables.phases) if tables.phases is not None else None
        self._matrix = None
        self.results = EngineResults()

    @property
    def matrix(self) -> List[ParameterMatrixRow]:
        """Parameter matrix, built on first use."""
        if self._matrix is None:
            if not self.parameters:
                raise ConfigurationError("No scenario parameters loaded.")
            self._matrix = build_parameter_matrix(self.parameters, self.emission_factors)
        return self._matrix

    def durations(self) -> Dict[str, Optional[int]]:
        return scenario_durations(self.parameters)

    # ----------------------------------------------------------------- Analyses
    def run_deterministic(self) -> DeterministicResult:
        daily = compute_deterministic_daily(self.matrix)
        totals = summarize_deterministic(daily)
        result = DeterministicResult(
            daily=daily, by_class=totals["by_class"], by_scenario=totals["by_scenario"]
        )
        self.results.deterministic = result
        return result

    def run_monte_carlo(
        self,
        *,
        n_draws: Optional[int] = None,
        seed: Optional[int] = None,
        max_workers: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> MonteCarloResult:
        result = run_monte_carlo(
            self.matrix,
            self.config.simulation,
            n_draws=n_draws,
            seed=seed,
            max_workers=max_workers,
            progress_callback=progress_callback,
        )
        self.results.monte_carlo = result
        return result

    def run_phasing(
        self,
        *,
        n_draws: Optional[int] = None,
        seed: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> PhasingResult:
        if not self.phases:
            raise ConfigurationError("No phase definitions loaded.")
        baseline = self._deterministic().daily
        result = run_phasing(
            baseline,
            self.phases,
            self.durations(),
            self.config.phasing,
            n_draws=n_draws,
            seed=seed,
            progress_callback=progress_callback,
        )
        self.results.phasing = result
        return result

    def run_logistics(self) -> LogisticsResult:
        mc = self._monte_carlo()
        result = run_logistics(
            mc.summary.totals_draws_by_class, self.matrix, self.config.logistics
        )
        self.results.logistics = result
        return result

    def run_marginal(self, *, skip_missing_fleet: bool = False) -> MarginalResult:
        mc = self.results.monte_carlo
        result = compute_marginal(
            self._deterministic().daily,
            self.matrix,
            mc.summary.totals_draws_by_class if mc is not None else None,
            skip_missing_fleet=skip_missing_fleet,
        )
        self.results.marginal = result
        return result

    def run_sensitivity(
        self, *, scales: Sequence[float] = DEFAULT_SCALES, top_n: int = 8
    ) -> SensitivityResult:
        result = run_sensitivity(self.parameters, self.emission_factors, scales=scales, top_n=top_n)
        self.results.sensitivity = result
        return result

    def validate_monte_carlo(self) -> ValidationResult:
        mc = self._monte_carlo()
        return validate_emission_draws(mc.daily, mc.summary)

    def run_all(
        self,
        *,
        max_workers: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> EngineResults:
        """Run every analysis; phasing is skipped when no phase table is loaded."""
        steps = ["deterministic", "monte_carlo", "phasing", "logistics", "marginal", "sensitivity"]
        if not self.phases:
            steps.remove("phasing")
        total = len(steps)

        def emit_progress(step: int, message: str) -> None:
            if progress_callback:
                progress_callback(step, total, message)

        for index, step in enumerate(steps, start=1):
            emit_progress(index - 1, f"Running {step.replace('_', ' ')}")
            if step == "monte_carlo":
                self.run_monte_carlo(max_workers=max_workers)
            elif step == "marginal":
                self.run_marginal(skip_missing_fleet=True)
            else:
                getattr(self, f"run_{step}")()
        emit_progress(total, "Complete")

        validation = self.validate_monte_carlo()
        if validation.status != "PASS":
            LOGGER.warning("Monte Carlo validation failed: %s", list(validation.failed_checks))
        self.results.metadata = self.run_metadata(validation)
        return self.results

    def run_metadata(self, validation: Optional[ValidationResult] = None) -> Dict[str, object]:
        """Configuration, input sizes, diagnostics and skipped scenarios of the current run."""
        metadata: Dict[str, object] = {
            "config": self.config.to_metadata(),
            "inputs": {
                "parameter_rows": len(self.parameters),
                "emission_factors": len(self.emission_factors),
                "phase_rows": len(self.phases or []),
                "scenarios": sorted({row.scenario for row in self.matrix}),
            },
        }
        mc = self.results.monte_carlo
        if mc is not None:
            metadata["monte_carlo"] = {
                "diagnostics": mc.diagnostics,
                "skipped_scenarios": mc.skipped_scenarios,
            }
        if self.results.marginal is not None:
            metadata["marginal"] = {"skipped": self.results.marginal.skipped}
        if self.results.phasing is not None:
            metadata["phasing"] = {"skipped_scenarios": self.results.phasing.skipped_scenarios}
        if validation is not None:
            metadata["validation"] = validation.to_dict()
        return metadata

    # ----------------------------------------------------------------- Helpers
    def _deterministic(self) -> DeterministicResult:
        return self.results.deterministic or self.run_deterministic()

    def _monte_carlo(self) -> MonteCarloResult:
        return self.results.monte_carlo or self.run_monte_carlo()


__all__ = ["EmissionsEngine"]
