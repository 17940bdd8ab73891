import unittest

import numpy as np
import pandas as pd

from conflict_emissions.config import SimulationConfig
from conflict_emissions.core.monte_carlo import draw_rng, run_monte_carlo, stable_key

from tests.helpers import PARAMETER_ROWS, example_matrix, matrix_row


class MonteCarloTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.matrix = example_matrix()
        cls.config = SimulationConfig(n_draws=60, seed=42)
        cls.result = run_monte_carlo(cls.matrix, cls.config)

    def test_output_shape(self) -> None:
        daily = self.result.daily
        self.assertEqual(
            list(daily.columns), ["scenario", "class", "day", "draw", "emissions_kgCO2"]
        )
        # A: 1 class x 7 days, B: 3 classes x 10 days
        self.assertEqual(len(daily), 60 * (7 + 30))
        self.assertEqual(sorted(daily["draw"].unique()), list(range(1, 61)))

    def test_determinism(self) -> None:
        again = run_monte_carlo(self.matrix, self.config)
        pd.testing.assert_frame_equal(self.result.daily, again.daily)
        pd.testing.assert_frame_equal(self.result.summary.totals, again.summary.totals)

    def test_seed_changes_output(self) -> None:
        other = run_monte_carlo(self.matrix, self.config, seed=7)
        self.assertFalse(
            np.array_equal(
                self.result.daily["emissions_kgCO2"].to_numpy(),
                other.daily["emissions_kgCO2"].to_numpy(),
            )
        )

    def test_scenario_independence(self) -> None:
        only_b = [row for row in self.matrix if row.scenario == "B"]
        result_b = run_monte_carlo(only_b, self.config)
        full_b = self.result.daily[self.result.daily["scenario"] == "B"].reset_index(drop=True)
        pd.testing.assert_frame_equal(full_b, result_b.daily)

    def test_parallel_matches_serial(self) -> None:
        parallel = run_monte_carlo(self.matrix, self.config, max_workers=2)
        pd.testing.assert_frame_equal(self.result.daily, parallel.daily)

    def test_total_decomposition(self) -> None:
        daily = self.result.daily
        expected = daily.groupby(["scenario", "draw"])["emissions_kgCO2"].sum()
        reported = self.result.summary.totals_draws.set_index(["scenario", "draw"])["total"]
        np.testing.assert_allclose(reported.to_numpy(), expected.loc[reported.index].to_numpy())
        by_class = self.result.summary.totals_draws_by_class
        summed = by_class.groupby(["scenario", "draw"])["total_kgCO2"].sum()
        np.testing.assert_allclose(summed.loc[reported.index].to_numpy(), reported.to_numpy())

    def test_non_negative(self) -> None:
        self.assertTrue((self.result.daily["emissions_kgCO2"] >= 0).all())

    def test_percentile_ordering(self) -> None:
        for table in (self.result.summary.by_day, self.result.summary.totals):
            self.assertTrue((table["p5"] <= table["med"]).all())
            self.assertTrue((table["med"] <= table["p95"]).all())

    def test_disruption_shared_across_classes(self) -> None:
        daily = self.result.daily
        draw = daily[(daily["scenario"] == "B") & (daily["draw"] == 1)]
        pivot = draw.pivot(index="day", columns="class", values="emissions_kgCO2")
        ratios = pivot.div(pivot.max(axis=0), axis=1)
        # every class sees the same day pattern of full and half tempo
        np.testing.assert_allclose(ratios["truck"], ratios["tank"])
        np.testing.assert_allclose(ratios["truck"], ratios["aircraft"])

    def test_progress_callback(self) -> None:
        calls = []
        run_monte_carlo(
            self.matrix,
            self.config,
            n_draws=2,
            progress_callback=lambda step, total, message: calls.append((step, total)),
        )
        self.assertEqual(calls, [(1, 2), (2, 2)])


class ScenarioFailureTests(unittest.TestCase):
    def test_invalid_scenario_is_skipped(self) -> None:
        good = matrix_row(scenario="good", fleet_size=5, km_day_min=10, km_day_max=20,
                          fuel_eff_l_per_km=0.4)
        bad = matrix_row(scenario="bad", duration_days=0, fleet_size=5)
        with self.assertLogs("conflict_emissions.core.monte_carlo", level="WARNING"):
            result = run_monte_carlo([bad, good], SimulationConfig(n_draws=10))
        self.assertIn("bad", result.skipped_scenarios)
        self.assertEqual(set(result.daily["scenario"]), {"good"})
        alone = run_monte_carlo([good], SimulationConfig(n_draws=10))
        pd.testing.assert_frame_equal(result.daily, alone.daily)

    def test_inconsistent_durations_skip_scenario(self) -> None:
        rows = [
            matrix_row(scenario="S", duration_days=3, fleet_size=1),
            matrix_row(scenario="S", duration_days=4, fleet_size=1),
        ]
        result = run_monte_carlo(rows, SimulationConfig(n_draws=3))
        self.assertTrue(result.daily.empty)
        self.assertIn("S", result.skipped_scenarios)


class ExampleScenarioTests(unittest.TestCase):
    def test_single_truck_week(self) -> None:
        rows = [row for row in PARAMETER_ROWS if row[0] == "A"]
        result = run_monte_carlo(example_matrix(rows), SimulationConfig(n_draws=400, seed=42))
        totals = result.summary.totals.set_index("scenario").loc["A"]
        # 20 trucks x 40 km x 0.38 L/km x 2.63 kg/L x 7 days ~ 5,600 kg before broadening
        self.assertTrue(4500 <= totals["med"] <= 8000, totals["med"])
        self.assertLess(totals["p5"], totals["med"])
        self.assertLess(totals["med"], totals["p95"])
        self.assertEqual(len(result.summary.totals_draws), 400)


class RandomStreamTests(unittest.TestCase):
    def test_stable_key_is_deterministic(self) -> None:
        self.assertEqual(stable_key("A"), stable_key("A"))
        self.assertNotEqual(stable_key("A"), stable_key("B"))

    def test_draw_streams_are_distinct(self) -> None:
        a1 = draw_rng(42, "A", 1).random(3)
        self.assertTrue(np.array_equal(a1, draw_rng(42, "A", 1).random(3)))
        self.assertFalse(np.array_equal(a1, draw_rng(42, "A", 2).random(3)))
        self.assertFalse(np.array_equal(a1, draw_rng(42, "B", 1).random(3)))
        self.assertFalse(np.array_equal(a1, draw_rng(42, None, 1).random(3)))


if __name__ == "__main__":
    unittest.main()
