import unittest

import numpy as np

from conflict_emissions.core.emissions import compute_deterministic_daily
from conflict_emissions.core.parameter_matrix import (
    build_parameter_matrix,
    group_by_scenario,
    matrix_to_frame,
)
from conflict_emissions.core.validator import ConfigurationError, coerce_float
from conflict_emissions.models.parameters import VehicleClass

from tests.helpers import PARAMETER_ROWS, example_matrix, load_example


def _replace(rows, key, value):
    """Copy of ``rows`` with the (scenario, class, param) row's value replaced."""
    return [row[:3] + (value,) + row[4:] if row[:3] == key else row for row in rows]


class ParameterMatrixTests(unittest.TestCase):
    def test_one_row_per_scenario_class(self) -> None:
        matrix = example_matrix()
        keys = [(row.scenario, row.vehicle_class) for row in matrix]
        self.assertEqual(
            keys,
            [
                ("A", VehicleClass.TRUCK),
                ("B", VehicleClass.TRUCK),
                ("B", VehicleClass.TANK),
                ("B", VehicleClass.AIRCRAFT),
            ],
        )
        aircraft = matrix[-1]
        self.assertEqual(aircraft.fuel_type, "jet")
        self.assertAlmostEqual(aircraft.co2_per_unit, 2.52)
        self.assertEqual(aircraft.duration_days, 10)
        self.assertAlmostEqual(aircraft.param("fuel_eff_l_per_hr").low, 3000.0)

    def test_missing_emission_factor_aborts_build(self) -> None:
        rows = _replace(PARAMETER_ROWS, ("B", "aircraft", "fuel_type"), "avgas")
        params, efs = load_example(rows)
        with self.assertRaises(ConfigurationError) as ctx:
            build_parameter_matrix(params, efs)
        self.assertIn("Missing EF", str(ctx.exception))

    def test_missing_duration_aborts_build(self) -> None:
        rows = [row for row in PARAMETER_ROWS if row[:3] != ("A", "global", "duration_days")]
        params, efs = load_example(rows)
        with self.assertRaises(ConfigurationError):
            build_parameter_matrix(params, efs)

    def test_invalid_durations_abort_build(self) -> None:
        for bad in ("0", "-3", "7.5", "seven"):
            rows = _replace(PARAMETER_ROWS, ("A", "global", "duration_days"), bad)
            params, efs = load_example(rows)
            with self.assertRaises(ConfigurationError, msg=bad):
                build_parameter_matrix(params, efs)

    def test_integer_valued_duration_accepted(self) -> None:
        rows = _replace(PARAMETER_ROWS, ("A", "global", "duration_days"), "7.0")
        self.assertEqual(example_matrix(rows)[0].duration_days, 7)

    def test_unknown_class_and_param_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            example_matrix(PARAMETER_ROWS + [("A", "ship", "fleet_size", "2", None, None)])
        with self.assertRaises(ConfigurationError):
            example_matrix(PARAMETER_ROWS + [("A", "truck", "fleet", "2", None, None)])

    def test_duplicate_rows_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            example_matrix(PARAMETER_ROWS + [("A", "truck", "fleet_size", "25", None, None)])

    def test_missing_fuel_type_rejected(self) -> None:
        rows = [row for row in PARAMETER_ROWS if row[:3] != ("A", "truck", "fuel_type")]
        with self.assertRaises(ConfigurationError):
            example_matrix(rows)

    def test_non_numeric_value_becomes_missing(self) -> None:
        rows = _replace(PARAMETER_ROWS, ("A", "truck", "duty_cycle"), "n/a")
        truck = example_matrix(rows)[0]
        self.assertIsNone(truck.value("duty_cycle"))
        self.assertEqual(truck.value("fleet_size"), 20.0)

    def test_infinite_value_becomes_missing(self) -> None:
        for huge in ("inf", "1e400", "-inf"):
            rows = _replace(PARAMETER_ROWS, ("A", "truck", "fleet_size"), huge)
            rows = _replace(rows, ("A", "truck", "duty_cycle"), "0")
            matrix = example_matrix(rows)
            self.assertIsNone(matrix[0].value("fleet_size"), huge)
            daily = compute_deterministic_daily(matrix)
            scenario_a = daily.loc[daily["scenario"] == "A", "emissions_kgCO2"]
            self.assertTrue(np.isfinite(scenario_a).all(), huge)
            self.assertTrue((scenario_a == 0.0).all(), huge)

    def test_infinite_duration_rejected(self) -> None:
        rows = _replace(PARAMETER_ROWS, ("A", "global", "duration_days"), "inf")
        with self.assertRaises(ConfigurationError):
            example_matrix(rows)

    def test_coerce_float_finite_only(self) -> None:
        self.assertEqual(coerce_float(" 2.5 "), 2.5)
        for text in ("inf", "1e400", "nan", "", None):
            self.assertIsNone(coerce_float(text), text)

    def test_frame_and_grouping(self) -> None:
        matrix = example_matrix()
        frame = matrix_to_frame(matrix)
        self.assertEqual(len(frame), 4)
        self.assertIn("fuel_eff_l_per_km__low", frame.columns)
        self.assertEqual(list(group_by_scenario(matrix)), ["A", "B"])
        self.assertEqual(len(group_by_scenario(matrix)["B"]), 3)


if __name__ == "__main__":
    unittest.main()
