"""Run configuration bundles for the emissions simulations."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .core.validator import ConfigurationError


def _check_fraction(name: str, value: float, *, upper: float = 1.0) -> None:
    if not 0.0 <= value <= upper:
        raise ConfigurationError(f"{name} must be between 0 and {upper} (got {value}).")


def _filter_known(cls: type, metadata: Dict[str, Any], section: str) -> Dict[str, Any]:
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(metadata) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown {section} option(s): {', '.join(unknown)}"
        )
    return dict(metadata)


@dataclass(frozen=True)
class SimulationConfig:
    """Uncertainty settings for the base Monte Carlo emissions run."""

    n_draws: int = 400
    seed: int = 42
    broaden_pct: float = 0.20     # expand literature min/max by this fraction
    fleet_var_pct: float = 0.10   # fleet size varies uniformly by this fraction
    ef_sd_frac: float = 0.03      # emission factor sd as fraction of mean
    ef_trunc_frac: float = 0.10   # emission factor truncated at mean +/- this fraction
    disrupt_prob: float = 0.10
    disrupt_factor: float = 0.50
    max_rejection_attempts: int = 1000

    def __post_init__(self) -> None:
        if int(self.n_draws) <= 0:
            raise ConfigurationError("n_draws must be positive")
        if int(self.seed) < 0:
            raise ConfigurationError("seed must be non-negative")
        if int(self.max_rejection_attempts) <= 0:
            raise ConfigurationError("max_rejection_attempts must be positive")
        _check_fraction("broaden_pct", self.broaden_pct)
        _check_fraction("fleet_var_pct", self.fleet_var_pct)
        _check_fraction("ef_sd_frac", self.ef_sd_frac)
        _check_fraction("ef_trunc_frac", self.ef_trunc_frac)
        _check_fraction("disrupt_prob", self.disrupt_prob)
        if self.disrupt_factor < 0:
            raise ConfigurationError("disrupt_factor must be non-negative")

    def with_overrides(self, **overrides: Any) -> "SimulationConfig":
        """Return a copy with the supplied fields replaced (``None`` values ignored)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_metadata(self) -> Dict[str, object]:
        """Serialise into a plain dict for run metadata."""
        return asdict(self)

    @classmethod
    def from_metadata(cls, metadata: Dict[str, Any]) -> "SimulationConfig":
        """Rehydrate from a plain dict; missing keys take defaults."""
        return cls(**_filter_known(cls, metadata, "simulation"))


@dataclass(frozen=True)
class PhasingConfig:
    """Settings for the phase timing and intensity Monte Carlo."""

    n_draws: int = 400
    seed: int = 123
    min_phase_days: int = 2
    sdlog_mult: float = 0.12    # lognormal sd around nominal phase multipliers
    cv_duration: float = 0.20   # sd as fraction of mean when a phase gives none

    def __post_init__(self) -> None:
        if int(self.n_draws) <= 0:
            raise ConfigurationError("n_draws must be positive")
        if int(self.seed) < 0:
            raise ConfigurationError("seed must be non-negative")
        if int(self.min_phase_days) < 0:
            raise ConfigurationError("min_phase_days must be non-negative")
        if self.sdlog_mult < 0:
            raise ConfigurationError("sdlog_mult must be non-negative")
        if self.cv_duration < 0:
            raise ConfigurationError("cv_duration must be non-negative")

    def with_overrides(self, **overrides: Any) -> "PhasingConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_metadata(self) -> Dict[str, object]:
        return asdict(self)

    @classmethod
    def from_metadata(cls, metadata: Dict[str, Any]) -> "PhasingConfig":
        return cls(**_filter_known(cls, metadata, "phasing"))


@dataclass(frozen=True)
class LogisticsConfig:
    """Tanker capacity and load-factor uncertainty."""

    seed: int = 7
    tanker_capacity_mean_l: float = 30_000.0  # typical 30 m3 road tanker
    tanker_capacity_sd_l: float = 1_500.0
    capacity_clip_frac: float = 0.15
    load_factor_min: float = 0.90
    load_factor_max: float = 1.00

    def __post_init__(self) -> None:
        if int(self.seed) < 0:
            raise ConfigurationError("seed must be non-negative")
        if self.tanker_capacity_mean_l <= 0:
            raise ConfigurationError("tanker_capacity_mean_l must be positive")
        if self.tanker_capacity_sd_l < 0:
            raise ConfigurationError("tanker_capacity_sd_l must be non-negative")
        _check_fraction("capacity_clip_frac", self.capacity_clip_frac)
        if not 0.0 < self.load_factor_min <= self.load_factor_max <= 1.0:
            raise ConfigurationError(
                "load factors must satisfy 0 < load_factor_min <= load_factor_max <= 1"
            )

    def with_overrides(self, **overrides: Any) -> "LogisticsConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_metadata(self) -> Dict[str, object]:
        return asdict(self)

    @classmethod
    def from_metadata(cls, metadata: Dict[str, Any]) -> "LogisticsConfig":
        return cls(**_filter_known(cls, metadata, "logistics"))


@dataclass(frozen=True)
class RunConfig:
    """Bundle of every configuration section used by a full run."""

    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    phasing: PhasingConfig = field(default_factory=PhasingConfig)
    logistics: LogisticsConfig = field(default_factory=LogisticsConfig)

    def to_metadata(self) -> Dict[str, object]:
        return {
            "simulation": self.simulation.to_metadata(),
            "phasing": self.phasing.to_metadata(),
            "logistics": self.logistics.to_metadata(),
        }

    @classmethod
    def from_metadata(cls, metadata: Optional[Dict[str, Any]]) -> "RunConfig":
        metadata = dict(metadata or {})
        unknown = sorted(set(metadata) - {"simulation", "phasing", "logistics"})
        if unknown:
            raise ConfigurationError(f"Unknown configuration section(s): {', '.join(unknown)}")
        return cls(
            simulation=SimulationConfig.from_metadata(dict(metadata.get("simulation") or {})),
            phasing=PhasingConfig.from_metadata(dict(metadata.get("phasing") or {})),
            logistics=LogisticsConfig.from_metadata(dict(metadata.get("logistics") or {})),
        )


def load_config(path: Optional[Union[str, Path]]) -> RunConfig:
    """Load a YAML configuration file; ``None`` returns the defaults."""
    if path is None:
        return RunConfig()
    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            payload = yaml.safe_load(fh) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Unable to parse configuration file: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError("Configuration file must contain a mapping at the top level.")
    return RunConfig.from_metadata(payload)
