import unittest

import numpy as np
import pandas as pd

from conflict_emissions.core.aggregate import (
    draw_totals,
    draw_totals_by_class,
    percentile_table,
    summarize,
)


def _daily() -> pd.DataFrame:
    records = []
    for draw in range(1, 6):
        for day in (1, 2):
            records.append(("S", "truck", day, draw, 10.0 * draw))
            records.append(("S", "tank", day, draw, 1.0 * draw))
    return pd.DataFrame(records, columns=["scenario", "class", "day", "draw", "emissions_kgCO2"])


class PercentileTableTests(unittest.TestCase):
    def test_linear_interpolation_between_order_statistics(self) -> None:
        frame = pd.DataFrame({"scenario": ["S"] * 5, "total": [50.0, 10.0, 40.0, 20.0, 30.0]})
        table = percentile_table(frame, ["scenario"], "total")
        row = table.iloc[0]
        self.assertAlmostEqual(row["med"], 30.0)
        self.assertAlmostEqual(row["p5"], 12.0)
        self.assertAlmostEqual(row["p95"], 48.0)

    def test_single_draw_collapses_percentiles(self) -> None:
        frame = pd.DataFrame({"scenario": ["S"], "total": [7.0]})
        row = percentile_table(frame, ["scenario"], "total").iloc[0]
        self.assertEqual((row["p5"], row["med"], row["p95"]), (7.0, 7.0, 7.0))

    def test_empty_frame_keeps_columns(self) -> None:
        table = percentile_table(pd.DataFrame(columns=["scenario", "total"]), ["scenario"], "total")
        self.assertTrue(table.empty)
        self.assertEqual(list(table.columns), ["scenario", "med", "p5", "p95"])


class SummarizeTests(unittest.TestCase):
    def test_draw_totals(self) -> None:
        totals = draw_totals(_daily())
        self.assertEqual(list(totals.columns), ["scenario", "draw", "total"])
        # two days of (10 + 1) * draw
        np.testing.assert_allclose(totals["total"], [22.0, 44.0, 66.0, 88.0, 110.0])

    def test_draw_totals_by_class(self) -> None:
        by_class = draw_totals_by_class(_daily())
        truck = by_class[by_class["class"] == "truck"]
        np.testing.assert_allclose(truck["total_kgCO2"], [20.0, 40.0, 60.0, 80.0, 100.0])

    def test_by_day_sums_classes_before_percentiles(self) -> None:
        summary = summarize(_daily())
        self.assertEqual(len(summary.by_day), 2)
        day_one = summary.by_day.iloc[0]
        # per-draw day totals are 11, 22, 33, 44, 55
        self.assertAlmostEqual(day_one["med"], 33.0)
        self.assertAlmostEqual(day_one["p5"], 13.2)
        self.assertAlmostEqual(day_one["p95"], 52.8)

    def test_totals_quantiles(self) -> None:
        totals = summarize(_daily()).totals.iloc[0]
        self.assertAlmostEqual(totals["med"], 66.0)
        self.assertLessEqual(totals["p5"], totals["med"])
        self.assertLessEqual(totals["med"], totals["p95"])

    def test_empty_input(self) -> None:
        summary = summarize(
            pd.DataFrame(columns=["scenario", "class", "day", "draw", "emissions_kgCO2"])
        )
        self.assertTrue(summary.totals.empty)
        self.assertTrue(summary.by_day.empty)
        self.assertEqual(list(summary.totals_draws.columns), ["scenario", "draw", "total"])


if __name__ == "__main__":
    unittest.main()
