"""Reduce per-draw daily emissions to percentile summaries."""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from ..models.results import EmissionSummary

QUANTILES = {"med": 0.50, "p5": 0.05, "p95": 0.95}
VALUE_COLUMN = "emissions_kgCO2"


def percentile_table(frame: pd.DataFrame, by: Sequence[str], value: str) -> pd.DataFrame:
    """Median, 5th and 95th percentile of ``value`` per group.

    Quantiles use linear interpolation between order statistics (R type 7).
    """
    columns = list(by) + list(QUANTILES)
    if frame.empty:
        return pd.DataFrame(columns=columns)
    grouped = frame.groupby(list(by), sort=True)[value]
    table = pd.concat(
        {name: grouped.quantile(q, interpolation="linear") for name, q in QUANTILES.items()},
        axis=1,
    )
    return table.reset_index()[columns]


def draw_totals(daily: pd.DataFrame) -> pd.DataFrame:
    """Per-(scenario, draw) totals summed over every day and class."""
    if daily.empty:
        return pd.DataFrame(columns=["scenario", "draw", "total"])
    return (
        daily.groupby(["scenario", "draw"], sort=True)[VALUE_COLUMN]
        .sum()
        .reset_index()
        .rename(columns={VALUE_COLUMN: "total"})
    )


def draw_totals_by_class(daily: pd.DataFrame) -> pd.DataFrame:
    """Per-(scenario, class, draw) totals summed over days."""
    if daily.empty:
        return pd.DataFrame(columns=["scenario", "class", "draw", "total_kgCO2"])
    return (
        daily.groupby(["scenario", "class", "draw"], sort=True)[VALUE_COLUMN]
        .sum()
        .reset_index()
        .rename(columns={VALUE_COLUMN: "total_kgCO2"})
    )


def summarize(daily: pd.DataFrame) -> EmissionSummary:
    """Summaries at the (scenario, day) and scenario grain plus raw per-draw totals."""
    if daily.empty:
        per_day = pd.DataFrame(columns=["scenario", "draw", "day", VALUE_COLUMN])
    else:
        per_day = (
            daily.groupby(["scenario", "draw", "day"], sort=True)[VALUE_COLUMN]
            .sum()
            .reset_index()
        )
    totals_draws = draw_totals(daily)
    return EmissionSummary(
        by_day=percentile_table(per_day, ["scenario", "day"], VALUE_COLUMN),
        totals=percentile_table(totals_draws, ["scenario"], "total"),
        totals_draws=totals_draws,
        totals_draws_by_class=draw_totals_by_class(daily),
    )


__all__ = ["draw_totals", "draw_totals_by_class", "percentile_table", "summarize"]
