"""Data ingestion routines for scenario, emission factor and phase tables."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
from pydantic import ValidationError as PydanticValidationError

from ..models.parameters import EmissionFactor, Phase, ScenarioParameter
from .validator import ConfigurationError, coerce_float, validate_required_columns

PathLike = Union[str, Path]

PARAMETER_COLUMNS = ("scenario", "class", "param", "value")
EMISSION_FACTOR_COLUMNS = ("fuel_type",)
PHASE_COLUMNS = ("scenario", "phase", "mult_truck", "mult_tank", "mult_aircraft")


@dataclass
class InputTables:
    """The three input tables consumed by the engine."""

    parameters: List[ScenarioParameter]
    emission_factors: List[EmissionFactor]
    phases: Optional[List[Phase]] = None


def _cell(row: pd.Series, column: str) -> Optional[object]:
    if column not in row.index:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    return value


class DataLoader:
    """Load long-format scenario inputs from CSV files or dataframes."""

    def _read_csv(self, file_path: PathLike, *, as_text: bool = False) -> pd.DataFrame:
        """Read the CSV file into a dataframe."""
        try:
            return pd.read_csv(file_path, dtype=str if as_text else None)
        except FileNotFoundError as exc:
            raise ConfigurationError(f"File not found: {file_path}") from exc
        except pd.errors.ParserError as exc:
            raise ConfigurationError(f"Unable to parse CSV {file_path}: {exc}") from exc
        except pd.errors.EmptyDataError as exc:
            raise ConfigurationError(f"CSV file is empty: {file_path}") from exc

    # ---------------------------------------------------------------- parameters
    def load_parameters(self, file_path: PathLike) -> List[ScenarioParameter]:
        """Load the (scenario, class, param, value, low, high) table."""
        return self.parameters_from_dataframe(self._read_csv(file_path, as_text=True))

    def parameters_from_dataframe(self, dataframe: pd.DataFrame) -> List[ScenarioParameter]:
        validate_required_columns(dataframe, PARAMETER_COLUMNS, table="parameters")
        rows: List[ScenarioParameter] = []
        for index, row in dataframe.iterrows():
            try:
                rows.append(
                    ScenarioParameter(
                        scenario=_cell(row, "scenario"),
                        vehicle_class=_cell(row, "class"),
                        param=_cell(row, "param"),
                        value=_cell(row, "value"),
                        low=_cell(row, "low"),
                        high=_cell(row, "high"),
                    )
                )
            except PydanticValidationError as exc:
                raise ConfigurationError(f"Invalid parameter row {index}: {exc}") from exc
        return rows

    # ---------------------------------------------------------- emission factors
    def load_emission_factors(self, file_path: PathLike) -> List[EmissionFactor]:
        """Load the (fuel_type, co2_per_unit) table; a ``value`` column is accepted too."""
        return self.emission_factors_from_dataframe(self._read_csv(file_path))

    def emission_factors_from_dataframe(self, dataframe: pd.DataFrame) -> List[EmissionFactor]:
        validate_required_columns(dataframe, EMISSION_FACTOR_COLUMNS, table="emission factor")
        if "co2_per_unit" in dataframe.columns:
            value_column = "co2_per_unit"
        elif "value" in dataframe.columns:
            value_column = "value"
        else:
            raise ConfigurationError(
                "emission factor table needs a 'co2_per_unit' or 'value' column"
            )
        factors: List[EmissionFactor] = []
        for index, row in dataframe.iterrows():
            coefficient = coerce_float(_cell(row, value_column))
            if coefficient is None or coefficient <= 0:
                raise ConfigurationError(
                    f"Emission factor row {index} must have a positive numeric value"
                )
            try:
                factors.append(
                    EmissionFactor(fuel_type=_cell(row, "fuel_type"), co2_per_unit=coefficient)
                )
            except PydanticValidationError as exc:
                raise ConfigurationError(f"Invalid emission factor row {index}: {exc}") from exc
        return factors

    # -------------------------------------------------------------------- phases
    def load_phases(self, file_path: PathLike) -> List[Phase]:
        """Load the phase definition table."""
        return self.phases_from_dataframe(self._read_csv(file_path))

    def phases_from_dataframe(self, dataframe: pd.DataFrame) -> List[Phase]:
        validate_required_columns(dataframe, PHASE_COLUMNS, table="phases")
        if (
            "share_nominal" not in dataframe.columns
            and "mean_duration_days" not in dataframe.columns
        ):
            raise ConfigurationError(
                "phases table must include either 'share_nominal' or 'mean_duration_days'."
            )
        phases: List[Phase] = []
        for index, row in dataframe.iterrows():
            phase_index = coerce_float(_cell(row, "phase"))
            if phase_index is None or not phase_index.is_integer():
                raise ConfigurationError(f"Phase row {index} needs an integer 'phase' value")
            scenario = _cell(row, "scenario")
            if scenario is None or not str(scenario).strip():
                raise ConfigurationError(f"Phase row {index} is missing its scenario")
            multipliers = {}
            for column in ("mult_truck", "mult_tank", "mult_aircraft"):
                number = coerce_float(_cell(row, column))
                if number is None:
                    raise ConfigurationError(f"Phase row {index} is missing {column}")
                multipliers[column] = number
            phases.append(
                Phase(
                    scenario=str(scenario).strip(),
                    phase=int(phase_index),
                    share_nominal=coerce_float(_cell(row, "share_nominal")),
                    mean_duration_days=coerce_float(_cell(row, "mean_duration_days")),
                    sd_duration_days=coerce_float(_cell(row, "sd_duration_days")),
                    **multipliers,
                )
            )
        return phases

    # ----------------------------------------------------------------- bundles
    def load_inputs(
        self,
        parameters_path: PathLike,
        emission_factors_path: PathLike,
        phases_path: Optional[PathLike] = None,
    ) -> InputTables:
        """Load every input table from disk."""
        return InputTables(
            parameters=self.load_parameters(parameters_path),
            emission_factors=self.load_emission_factors(emission_factors_path),
            phases=self.load_phases(phases_path) if phases_path else None,
        )
