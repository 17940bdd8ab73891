import unittest

import numpy as np

from conflict_emissions.core.samplers import (
    SamplingDiagnostics,
    allocate_integer_counts,
    bounded_uniform,
    broaden,
    disruption_series,
    lognormal_multiplier,
    phase_day_index,
    sample_phase_lengths,
    triangular,
    truncated_normal,
)
from conflict_emissions.core.validator import ConfigurationError


class SamplerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.rng = np.random.default_rng(2024)

    def test_broaden(self) -> None:
        low, high = broaden(10.0, 20.0, 0.2)
        self.assertAlmostEqual(low, 8.0)
        self.assertAlmostEqual(high, 24.0)
        self.assertEqual(broaden(None, 20.0), (None, None))

    def test_triangular_within_bounds(self) -> None:
        draws = [triangular(2.0, 5.0, 3.0, self.rng) for _ in range(2000)]
        self.assertTrue(all(2.0 <= d <= 5.0 for d in draws))
        self.assertAlmostEqual(float(np.mean(draws)), (2.0 + 5.0 + 3.0) / 3, delta=0.1)

    def test_triangular_degenerate_is_undefined(self) -> None:
        diagnostics = SamplingDiagnostics()
        state = self.rng.bit_generator.state
        self.assertIsNone(triangular(5.0, 5.0, 5.0, self.rng, diagnostics=diagnostics))
        self.assertIsNone(triangular(6.0, 5.0, None, self.rng, diagnostics=diagnostics))
        self.assertIsNone(triangular(None, 5.0, None, self.rng, diagnostics=diagnostics))
        self.assertEqual(diagnostics.degenerate_triangular, 3)
        self.assertEqual(self.rng.bit_generator.state, state)

    def test_triangular_mode_clamped(self) -> None:
        draws = [triangular(0.0, 1.0, 4.0, self.rng) for _ in range(200)]
        self.assertTrue(all(0.0 <= d <= 1.0 for d in draws))

    def test_truncated_normal_stays_in_bounds(self) -> None:
        draws = [truncated_normal(2.63, 0.08, 2.37, 2.89, self.rng) for _ in range(1000)]
        self.assertTrue(all(2.37 <= d <= 2.89 for d in draws))

    def test_truncated_normal_clamps_after_attempt_cap(self) -> None:
        diagnostics = SamplingDiagnostics()
        value = truncated_normal(
            0.0, 1000.0, -0.001, 0.001, self.rng, max_attempts=1, diagnostics=diagnostics
        )
        self.assertIn(value, (-0.001, 0.001))
        self.assertEqual(diagnostics.rejection_exhausted, 1)

    def test_truncated_normal_redraws_after_first_draw(self) -> None:
        # an unreachable window uses the first draw plus max_attempts redraws
        rng = np.random.default_rng(11)
        value = truncated_normal(0.0, 1.0, 100.0, 101.0, rng, max_attempts=3)
        self.assertEqual(value, 100.0)
        reference = np.random.default_rng(11)
        for _ in range(4):
            reference.normal(0.0, 1.0)
        self.assertEqual(rng.random(), reference.random())

    def test_bounded_uniform(self) -> None:
        draws = [bounded_uniform(100.0, 0.1, self.rng) for _ in range(500)]
        self.assertTrue(all(90.0 <= d <= 110.0 for d in draws))

    def test_lognormal_multiplier_positive(self) -> None:
        draws = [lognormal_multiplier(0.2, 0.5, self.rng) for _ in range(500)]
        self.assertTrue(all(d > 0 for d in draws))
        with self.assertRaises(ConfigurationError):
            lognormal_multiplier(0.0, 0.12, self.rng)

    def test_disruption_series(self) -> None:
        series = disruption_series(1000, 0.1, 0.5, self.rng)
        self.assertEqual(series.shape, (1000,))
        self.assertTrue(set(np.unique(series)) <= {0.5, 1.0})
        self.assertAlmostEqual(float((series == 0.5).mean()), 0.1, delta=0.04)
        self.assertTrue(np.all(disruption_series(5, 0.0, 0.5, self.rng) == 1.0))

    def test_allocate_integer_counts_largest_remainder(self) -> None:
        counts = allocate_integer_counts([2.6, 3.3, 4.1], 10)
        self.assertEqual(counts.tolist(), [3, 3, 4])
        self.assertEqual(int(counts.sum()), 10)

    def test_allocate_integer_counts_ties_go_to_lower_index(self) -> None:
        counts = allocate_integer_counts([2.5, 2.5, 5.0], 10)
        self.assertEqual(counts.tolist(), [3, 2, 5])

    def test_phase_lengths_sum_exactly_and_respect_floor(self) -> None:
        cases = [
            ([3.0, 5.0, 2.0], [0.6, 1.0, 0.4], 10, 2),
            ([10.0, 40.0, 50.0], [5.0, 20.0, 30.0], 100, 2),
            ([1.0, 1.0, 30.0, 1.0], [3.0, 3.0, 10.0, 3.0], 31, 3),
            ([7.0], [2.0], 7, 2),
            ([4.0, 4.0], [0.0, 0.0], 9, 2),
        ]
        for seed in range(150):
            rng = np.random.default_rng(seed)
            for nominal, sd, total, min_days in cases:
                counts = sample_phase_lengths(nominal, sd, total, min_days, rng)
                self.assertEqual(int(counts.sum()), total)
                self.assertTrue(np.all(counts >= min_days), (seed, nominal, counts))

    def test_phase_lengths_reject_impossible_floor(self) -> None:
        with self.assertRaises(ConfigurationError):
            sample_phase_lengths([2.0, 2.0, 2.0], [0.1, 0.1, 0.1], 5, 2, self.rng)

    def test_phase_day_index(self) -> None:
        self.assertEqual(phase_day_index([1, 2, 3], [2, 1, 3]).tolist(), [1, 1, 2, 3, 3, 3])


if __name__ == "__main__":
    unittest.main()
