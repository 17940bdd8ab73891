"""Scenario input and parameter matrix data models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

GLOBAL_CLASS = "global"
DURATION_PARAM = "duration_days"
FUEL_TYPE_PARAM = "fuel_type"


class VehicleClass(str, Enum):
    """Vehicle and logistics categories with their own activity model."""

    TRUCK = "truck"
    TANK = "tank"
    AIRCRAFT = "aircraft"

    @property
    def duration_based(self) -> bool:
        """Aircraft burn fuel per hour flown; ground classes per km driven."""
        return self is VehicleClass.AIRCRAFT


# Recognised numeric parameter keys for non-global classes.
NUMERIC_PARAMS: Tuple[str, ...] = (
    "fleet_size",
    "duty_cycle",
    "km_day_min",
    "km_day_max",
    "hr_day_min",
    "hr_day_max",
    "fuel_eff_l_per_km",
    "fuel_eff_l_per_hr",
    "idle_l_per_hr",
)
CLASS_PARAMS: Tuple[str, ...] = NUMERIC_PARAMS + (FUEL_TYPE_PARAM,)
GLOBAL_PARAMS: Tuple[str, ...] = (DURATION_PARAM,)


def _strip(value: Any) -> str:
    if value is None:
        raise ValueError("value cannot be null")
    text = str(value).strip()
    if not text:
        raise ValueError("value cannot be empty")
    return text


class ScenarioParameter(BaseModel):
    """One long-format input row: (scenario, class, param, value, low, high)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    scenario: str = Field(..., description="Scenario identifier")
    vehicle_class: str = Field(..., alias="class", description="Vehicle class or 'global'")
    param: str = Field(..., description="Parameter name")
    value: Optional[str] = Field(None, description="Raw value, kept as text until coerced")
    low: Optional[str] = Field(None, description="Optional lower bound (raw text)")
    high: Optional[str] = Field(None, description="Optional upper bound (raw text)")

    @field_validator("scenario", "vehicle_class", "param", mode="before")
    @classmethod
    def _normalise_key(cls, value: Any) -> str:
        return _strip(value)

    @field_validator("vehicle_class")
    @classmethod
    def _lower_class(cls, value: str) -> str:
        return value.lower()

    @field_validator("value", "low", "high", mode="before")
    @classmethod
    def _normalise_optional(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, float) and value != value:
            return None
        text = str(value).strip()
        return text or None

    @property
    def is_global(self) -> bool:
        return self.vehicle_class == GLOBAL_CLASS


class EmissionFactor(BaseModel):
    """CO2 emitted per unit of fuel burned."""

    model_config = ConfigDict(frozen=True)

    fuel_type: str = Field(..., description="Fuel identifier, e.g. 'diesel'")
    co2_per_unit: float = Field(..., description="kg CO2 per litre (or per kg) of fuel")

    @field_validator("fuel_type", mode="before")
    @classmethod
    def _strip_fuel(cls, value: Any) -> str:
        return _strip(value)


class ParameterValue(BaseModel):
    """A numeric parameter with optional literature bounds."""

    model_config = ConfigDict(frozen=True)

    value: Optional[float] = None
    low: Optional[float] = None
    high: Optional[float] = None

    def range_or_point(self) -> Tuple[Optional[float], Optional[float]]:
        """Return (low, high), falling back to the point value for a missing bound."""
        low = self.low if self.low is not None else self.value
        high = self.high if self.high is not None else self.value
        return low, high


class ParameterMatrixRow(BaseModel):
    """Wide per-(scenario, class) record joined with EF and campaign duration.

    Every numeric field may be absent; the emissions engine applies the
    documented defaults (see ``core.emissions.DEFAULTS``).
    """

    model_config = ConfigDict(frozen=True)

    scenario: str
    vehicle_class: VehicleClass
    fuel_type: str
    co2_per_unit: float
    duration_days: int
    params: Dict[str, ParameterValue] = Field(default_factory=dict)

    def param(self, name: str) -> ParameterValue:
        """Return the named parameter, or an empty value when absent."""
        return self.params.get(name) or ParameterValue()

    def value(self, name: str) -> Optional[float]:
        return self.param(name).value


class Phase(BaseModel):
    """One campaign phase with nominal timing and per-class intensity."""

    model_config = ConfigDict(frozen=True)

    scenario: str
    phase: int
    share_nominal: Optional[float] = None
    mean_duration_days: Optional[float] = None
    sd_duration_days: Optional[float] = None
    mult_truck: float = 1.0
    mult_tank: float = 1.0
    mult_aircraft: float = 1.0

    def multiplier(self, vehicle_class: str) -> float:
        """Nominal intensity multiplier for a class (1.0 for unlisted classes)."""
        return {
            VehicleClass.TRUCK.value: self.mult_truck,
            VehicleClass.TANK.value: self.mult_tank,
            VehicleClass.AIRCRAFT.value: self.mult_aircraft,
        }.get(str(vehicle_class), 1.0)
