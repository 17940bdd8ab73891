"""Validation helpers for Monte Carlo emission ensembles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np
import pandas as pd

from ..models.results import EmissionSummary


@dataclass
class ValidationResult:
    """Basic container for validation outcomes."""

    status: str
    failed_checks: Sequence[str]
    warnings: Sequence[str]

    def to_dict(self) -> Dict[str, object]:
        return {
            "status": self.status,
            "failed_checks": list(self.failed_checks),
            "warnings": list(self.warnings),
        }


def _ordered(table: pd.DataFrame) -> bool:
    if table.empty:
        return True
    p5 = table["p5"].astype(float)
    med = table["med"].astype(float)
    p95 = table["p95"].astype(float)
    return bool(((p5 <= med) & (med <= p95)).all())


def validate_emission_draws(
    daily: pd.DataFrame,
    summary: EmissionSummary,
    *,
    cv_warning: float = 0.5,
) -> ValidationResult:
    """Run sanity checks on per-draw daily emissions and their summary."""
    failed: list[str] = []
    warnings: list[str] = []
    if daily.empty:
        warnings.append("no_draws")
        return ValidationResult(status="PASS", failed_checks=failed, warnings=warnings)

    values = daily["emissions_kgCO2"].to_numpy(dtype=float)
    if np.any(~np.isfinite(values)):
        failed.append("nan_or_inf_emissions")
    if np.any(values < 0):
        failed.append("negative_emissions")

    if not _ordered(summary.by_day) or not _ordered(summary.totals):
        failed.append("percentile_ordering")

    recomputed = daily.groupby(["scenario", "draw"], sort=True)["emissions_kgCO2"].sum()
    reported = summary.totals_draws.set_index(["scenario", "draw"])["total"].astype(float)
    recomputed, reported = recomputed.align(reported, join="outer")
    if recomputed.isna().any() or reported.isna().any() or not np.allclose(
        recomputed.to_numpy(), reported.to_numpy(), rtol=1e-9, atol=1e-6
    ):
        failed.append("totals_mismatch")

    for scenario, totals in summary.totals_draws.groupby("scenario"):
        series = totals["total"].astype(float)
        mean = float(series.mean())
        if len(series) > 1 and mean > 0 and float(series.std(ddof=1)) / mean > cv_warning:
            warnings.append(f"high_dispersion:{scenario}")

    status = "PASS" if not failed else "FAIL"
    return ValidationResult(status=status, failed_checks=failed, warnings=warnings)


__all__ = ["ValidationResult", "validate_emission_draws"]
