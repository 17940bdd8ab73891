"""Random samplers used by the Monte Carlo engines.

Every sampler takes an explicit ``numpy.random.Generator`` so that a run is
reproducible from its seed and draws can be computed on independent
sub-streams.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import exp, log, sqrt
from typing import Optional, Sequence, Tuple

import numpy as np

from .validator import ConfigurationError


@dataclass
class SamplingDiagnostics:
    """Counters for silently resolved sampling conditions."""

    degenerate_triangular: int = 0
    rejection_exhausted: int = 0

    def merge(self, other: "SamplingDiagnostics") -> None:
        self.degenerate_triangular += other.degenerate_triangular
        self.rejection_exhausted += other.rejection_exhausted

    def to_dict(self) -> dict:
        return {
            "degenerate_triangular": self.degenerate_triangular,
            "rejection_exhausted": self.rejection_exhausted,
        }


def broaden(
    minv: Optional[float], maxv: Optional[float], pct: float = 0.20
) -> Tuple[Optional[float], Optional[float]]:
    """Inflate a literature range to ``[min * (1 - pct), max * (1 + pct)]``."""
    if minv is None or maxv is None:
        return None, None
    return minv * (1.0 - pct), maxv * (1.0 + pct)


def triangular(
    a: Optional[float],
    b: Optional[float],
    mode: Optional[float],
    rng: np.random.Generator,
    *,
    diagnostics: Optional[SamplingDiagnostics] = None,
) -> Optional[float]:
    """Inverse-CDF triangular draw on ``[a, b]``.

    Returns ``None`` for undefined or degenerate bounds (``b <= a``) without
    consuming the random stream. A missing mode defaults to the midpoint and
    a mode outside the bounds is clamped onto them.
    """
    if a is None or b is None or b <= a:
        if diagnostics is not None:
            diagnostics.degenerate_triangular += 1
        return None
    m = (a + b) / 2.0 if mode is None else min(max(mode, a), b)
    u = float(rng.random())
    cut = (m - a) / (b - a)
    if u < cut:
        return a + sqrt(u * (b - a) * (m - a))
    return b - sqrt((1.0 - u) * (b - a) * (b - m))


def truncated_normal(
    mean: float,
    sd: float,
    lower: float,
    upper: float,
    rng: np.random.Generator,
    *,
    max_attempts: int = 1000,
    diagnostics: Optional[SamplingDiagnostics] = None,
) -> float:
    """Rejection-sample ``Normal(mean, sd)`` until it lands in ``[lower, upper]``.

    The first draw is followed by at most ``max_attempts`` redraws; a value
    still outside the bounds is then clamped to the nearest bound.
    """
    if sd <= 0:
        return min(max(mean, lower), upper)
    value = float(rng.normal(mean, sd))
    attempts = 0
    while (value < lower or value > upper) and attempts < max_attempts:
        value = float(rng.normal(mean, sd))
        attempts += 1
    if value < lower or value > upper:
        if diagnostics is not None:
            diagnostics.rejection_exhausted += 1
        value = min(max(value, lower), upper)
    return value


def bounded_uniform(mean: float, pct: float, rng: np.random.Generator) -> float:
    """Return ``mean * U(1 - pct, 1 + pct)``."""
    return mean * float(rng.uniform(1.0 - pct, 1.0 + pct))


def lognormal_multiplier(nominal: float, sdlog: float, rng: np.random.Generator) -> float:
    """Return ``exp(Normal(log(nominal), sdlog))``; always strictly positive."""
    if nominal <= 0:
        raise ConfigurationError(f"Lognormal nominal value must be positive (got {nominal}).")
    return exp(float(rng.normal(log(nominal), sdlog)))


def disruption_series(
    n_days: int, prob: float, factor: float, rng: np.random.Generator
) -> np.ndarray:
    """Per-day multipliers: ``factor`` on Bernoulli(prob) disrupted days, else 1."""
    if n_days <= 0:
        return np.ones(0, dtype=float)
    if prob <= 0:
        return np.ones(n_days, dtype=float)
    hits = rng.random(n_days) < prob
    return np.where(hits, factor, 1.0)


def allocate_integer_counts(real_counts: Sequence[float], total: int) -> np.ndarray:
    """Largest-remainder apportionment of ``real_counts`` to integers summing to ``total``.

    Ties on the fractional part go to the lower phase index.
    """
    values = np.asarray(real_counts, dtype=float)
    counts = np.floor(values).astype(np.int64)
    remainder = int(total) - int(counts.sum())
    if remainder > 0:
        fractions = values - np.floor(values)
        order = np.argsort(-fractions, kind="stable")
        for step in range(remainder):
            counts[order[step % len(order)]] += 1
    elif remainder < 0:
        order = np.argsort(values - np.floor(values), kind="stable")
        for step in range(-remainder):
            idx = order[step % len(order)]
            counts[idx] = max(counts[idx] - 1, 0)
    return counts


def _enforce_floor(counts: np.ndarray, min_days: int) -> np.ndarray:
    """Move single days from the largest phases into any phase below ``min_days``."""
    counts = counts.copy()
    for idx in range(len(counts)):
        while counts[idx] < min_days:
            donor = int(np.argmax(np.where(counts > min_days, counts, -1)))
            if counts[donor] <= min_days:
                break
            counts[donor] -= 1
            counts[idx] += 1
    return counts


def sample_phase_lengths(
    nominal_days: Sequence[float],
    sd_days: Sequence[float],
    total_days: int,
    min_days: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Sample integer phase lengths that sum exactly to ``total_days``.

    Draw ``Normal(nominal, sd)`` per phase, floor at ``min_days``, rescale to
    the total, floor and rescale once more, then apportion with the
    largest-remainder method. A final integer pass keeps every phase at or
    above ``min_days``.
    """
    nominal = np.asarray(nominal_days, dtype=float)
    sd = np.asarray(sd_days, dtype=float)
    n_phases = nominal.size
    total_days = int(total_days)
    if n_phases == 0:
        raise ConfigurationError("At least one phase is required.")
    if sd.size != n_phases:
        raise ConfigurationError("nominal_days and sd_days must have the same length.")
    if np.any(~np.isfinite(nominal)) or np.any(~np.isfinite(sd)) or np.any(sd < 0):
        raise ConfigurationError("Phase means and standard deviations must be finite, sd >= 0.")
    if total_days <= 0:
        raise ConfigurationError("total_days must be positive.")
    if min_days * n_phases > total_days:
        raise ConfigurationError(
            f"{n_phases} phases of at least {min_days} days cannot fit in {total_days} days."
        )

    raw = rng.normal(nominal, sd)
    raw = np.maximum(raw, min_days)
    scaled = _rescale(raw, total_days)
    scaled = np.maximum(scaled, min_days)
    scaled = _rescale(scaled, total_days)

    counts = allocate_integer_counts(scaled, total_days)
    counts = _enforce_floor(counts, int(min_days))
    return counts


def _rescale(values: np.ndarray, total: int) -> np.ndarray:
    current = float(values.sum())
    if current <= 0:
        return np.full(values.size, total / values.size, dtype=float)
    return values * (total / current)


def phase_day_index(phases: Sequence[int], counts: Sequence[int]) -> np.ndarray:
    """Day-to-phase lookup: ``counts[i]`` consecutive copies of ``phases[i]``."""
    return np.repeat(np.asarray(phases), np.asarray(counts, dtype=np.int64))


__all__ = [
    "SamplingDiagnostics",
    "allocate_integer_counts",
    "bounded_uniform",
    "broaden",
    "disruption_series",
    "lognormal_multiplier",
    "phase_day_index",
    "sample_phase_lengths",
    "triangular",
    "truncated_normal",
]
