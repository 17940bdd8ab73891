"""Error taxonomy and input validation utilities."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional

import pandas as pd


class ConfigurationError(ValueError):
    """Fatal configuration problem that aborts the whole run."""


class ScenarioSkipped(Exception):
    """Recoverable per-scenario failure; the run continues with other scenarios."""

    def __init__(self, scenario: str, reason: str) -> None:
        super().__init__(f"Scenario {scenario!r} skipped: {reason}")
        self.scenario = scenario
        self.reason = reason


def validate_required_columns(
    dataframe: pd.DataFrame, required: Iterable[str], *, table: str
) -> None:
    """Ensure the dataframe carries every required column."""
    missing = [column for column in required if column not in dataframe.columns]
    if missing:
        raise ConfigurationError(
            f"{table} table is missing required column(s): {', '.join(missing)}"
        )


def coerce_float(value: object) -> Optional[float]:
    """Return ``value`` as a finite float, or ``None`` when it is blank, non-numeric or infinite."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def coerce_duration(value: object) -> Optional[int]:
    """Coerce a duration value to a positive integer or ``None``."""
    number = coerce_float(value)
    if number is None or number <= 0 or not number.is_integer():
        return None
    return int(number)


def validate_unique_keys(keys: Iterable[tuple], *, what: str) -> None:
    """Ensure composite keys are unique."""
    seen = set()
    duplicates: List[str] = []
    for key in keys:
        if key in seen:
            duplicates.append("/".join(str(part) for part in key))
        else:
            seen.add(key)
    if duplicates:
        raise ConfigurationError(
            f"Duplicate {what} detected: " + ", ".join(sorted(set(duplicates)))
        )
