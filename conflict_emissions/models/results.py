"""Result data models for reporting."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field


class EmissionSummary(BaseModel):
    """Percentile summaries and per-draw totals for a draw ensemble."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    by_day: pd.DataFrame = Field(
        ..., description="Columns ['scenario', 'day', 'med', 'p5', 'p95']"
    )
    totals: pd.DataFrame = Field(
        ..., description="Columns ['scenario', 'med', 'p5', 'p95']"
    )
    totals_draws: pd.DataFrame = Field(
        ..., description="Columns ['scenario', 'draw', 'total']"
    )
    totals_draws_by_class: pd.DataFrame = Field(
        ..., description="Columns ['scenario', 'class', 'draw', 'total_kgCO2']"
    )


class DeterministicResult(BaseModel):
    """Midpoint daily emissions and their totals."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    daily: pd.DataFrame = Field(
        ..., description="Columns ['scenario', 'class', 'day', 'emissions_kgCO2']"
    )
    by_class: pd.DataFrame = Field(
        ..., description="Columns ['scenario', 'class', 'total_kgCO2']"
    )
    by_scenario: pd.DataFrame = Field(..., description="Columns ['scenario', 'total_kgCO2']")


class MonteCarloResult(BaseModel):
    """Per-draw daily emissions plus their summary."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    daily: pd.DataFrame = Field(
        ..., description="Columns ['scenario', 'class', 'day', 'draw', 'emissions_kgCO2']"
    )
    summary: EmissionSummary
    diagnostics: Dict[str, int] = Field(default_factory=dict)
    skipped_scenarios: Dict[str, str] = Field(
        default_factory=dict, description="Scenario id -> reason it produced no rows"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PhasingResult(BaseModel):
    """Phase-adjusted daily emissions, sampled phase lengths and summaries."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    daily: pd.DataFrame
    phase_lengths: pd.DataFrame = Field(
        ..., description="Columns ['scenario', 'draw', 'phase', 'days']"
    )
    summary: EmissionSummary
    skipped_scenarios: Dict[str, str] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class LogisticsResult(BaseModel):
    """Tanker trip requirements per draw and summarised per scenario."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    draws: pd.DataFrame = Field(
        ...,
        description="Columns ['scenario', 'draw', 'litres_total', 'trips_total', 'trips_per_day']",
    )
    summary: pd.DataFrame
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MarginalResult(BaseModel):
    """Emissions attributable to a single vehicle of each class."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    deterministic: pd.DataFrame
    monte_carlo: Optional[pd.DataFrame] = None
    skipped: List[str] = Field(
        default_factory=list, description="scenario/class labels left out for lack of a fleet size"
    )


class SensitivityResult(BaseModel):
    """One-at-a-time sensitivity table and its tornado ranking."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    table: pd.DataFrame
    tornado: pd.DataFrame


class EngineResults(BaseModel):
    """Everything produced by a full run, for reporting."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    deterministic: Optional[DeterministicResult] = None
    monte_carlo: Optional[MonteCarloResult] = None
    phasing: Optional[PhasingResult] = None
    logistics: Optional[LogisticsResult] = None
    marginal: Optional[MarginalResult] = None
    sensitivity: Optional[SensitivityResult] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def summary_frame(self) -> pd.DataFrame:
        """Scenario totals side by side: deterministic, MC median/p5/p95, phased median."""
        frame: Optional[pd.DataFrame] = None
        if self.deterministic is not None:
            frame = self.deterministic.by_scenario.rename(
                columns={"total_kgCO2": "deterministic_kgCO2"}
            )
        for label, result in (("mc", self.monte_carlo), ("phasing", self.phasing)):
            if result is None:
                continue
            totals = result.summary.totals.rename(
                columns={col: f"{label}_{col}" for col in ("med", "p5", "p95")}
            )
            frame = totals if frame is None else frame.merge(totals, on="scenario", how="outer")
        if frame is None:
            return pd.DataFrame()
        return frame.sort_values("scenario").reset_index(drop=True)
