"""Report generation utilities."""

from __future__ import annotations

import json
import logging
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd

from ..models.results import (
    DeterministicResult,
    EngineResults,
    LogisticsResult,
    MarginalResult,
    MonteCarloResult,
    PhasingResult,
    SensitivityResult,
)

LOGGER = logging.getLogger(__name__)


def _json_default(obj: object) -> object:
    """JSON serializer that handles numpy/pandas/path objects gracefully."""
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, (np.ndarray,)):
        return obj.tolist()
    if isinstance(obj, (datetime,)):
        return obj.isoformat()
    if isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, set):
        return sorted(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class ReportGenerator:
    """Persist emissions engine outputs to disk as CSV tables plus run metadata."""

    def __init__(
        self,
        output_dir: str | Path = "outputs",
        *,
        timestamped: bool = False,
        run_label: Optional[str] = None,
    ) -> None:
        base_dir = Path(output_dir)
        base_dir.mkdir(parents=True, exist_ok=True)
        if timestamped:
            run_label = run_label or datetime.now(timezone.utc).strftime("run_%Y%m%d_%H%M%S")
            self.output_dir = base_dir / run_label
        else:
            self.output_dir = base_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.base_dir = base_dir
        self.run_label = self.output_dir.name

    # ------------------------------------------------------------------ helpers
    def _write_json(self, payload: Dict[str, object], filename: str) -> Path:
        path = self.output_dir / filename
        with path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, default=_json_default)
        return path

    def _export_tables(
        self, tables: Optional[Dict[str, Optional[pd.DataFrame]]], prefix: str = ""
    ) -> Dict[str, Path]:
        output: Dict[str, Path] = {}
        if not tables:
            return output
        for key, table in tables.items():
            if table is None or not isinstance(table, pd.DataFrame):
                continue
            filename = f"{prefix}{key}.csv"
            path = self.output_dir / filename
            table.to_csv(path, index=False)
            output[f"{prefix}{key}"] = path
        return output

    def _create_archive(self, files: Iterable[Path], filename: str = "outputs_bundle.zip") -> Path:
        archive_path = self.output_dir / filename
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for file_path in files:
                file_path = Path(file_path)
                if not file_path.exists() or file_path == archive_path:
                    continue
                arcname = file_path.relative_to(self.output_dir)
                zf.write(file_path, arcname=str(arcname))
        return archive_path

    # ------------------------------------------------------------------- exports
    def export_deterministic(self, result: DeterministicResult) -> Dict[str, Path]:
        return self._export_tables(
            {
                "daily_emissions": result.daily,
                "total_emissions_by_class": result.by_class,
                "total_emissions_by_scenario": result.by_scenario,
            }
        )

    def export_monte_carlo(self, result: MonteCarloResult) -> Dict[str, Path]:
        summary = result.summary
        return self._export_tables(
            {
                "daily_draws": result.daily,
                "summary_by_day": summary.by_day,
                "totals": summary.totals,
                "totals_draws": summary.totals_draws,
                "totals_draws_by_class": summary.totals_draws_by_class,
            },
            prefix="mc_",
        )

    def export_phasing(self, result: PhasingResult) -> Dict[str, Path]:
        summary = result.summary
        return self._export_tables(
            {
                "by_day": summary.by_day,
                "totals": summary.totals,
                "totals_draws": summary.totals_draws,
                "phase_lengths": result.phase_lengths,
            },
            prefix="phasing_mc_",
        )

    def export_logistics(self, result: LogisticsResult) -> Dict[str, Path]:
        return self._export_tables(
            {"summary": result.summary, "draws": result.draws}, prefix="fuel_logistics_mc_"
        )

    def export_marginal(self, result: MarginalResult) -> Dict[str, Path]:
        return self._export_tables(
            {"deterministic": result.deterministic, "mc": result.monte_carlo},
            prefix="marginal_per_vehicle_",
        )

    def export_sensitivity(self, result: SensitivityResult) -> Dict[str, Path]:
        return self._export_tables({"sensitivity": result.table, "sensitivity_tornado": result.tornado})

    def export_summary(self, results: EngineResults, filename: str = "summary.csv") -> Path:
        path = self.output_dir / filename
        results.summary_frame().to_csv(path, index=False)
        return path

    def export_metadata(
        self, metadata: Dict[str, object], filename: str = "run_metadata.json"
    ) -> Path:
        payload = dict(metadata)
        payload.setdefault("generated_at", datetime.now(timezone.utc))
        return self._write_json(payload, filename)

    def export_all(self, results: EngineResults, *, archive: bool = False) -> Dict[str, object]:
        """Write every available table and the run metadata; return artifact paths."""
        exported: Dict[str, Path] = {}
        if results.deterministic is not None:
            exported.update(self.export_deterministic(results.deterministic))
        if results.monte_carlo is not None:
            exported.update(self.export_monte_carlo(results.monte_carlo))
        if results.phasing is not None:
            exported.update(self.export_phasing(results.phasing))
        if results.logistics is not None:
            exported.update(self.export_logistics(results.logistics))
        if results.marginal is not None:
            exported.update(self.export_marginal(results.marginal))
        if results.sensitivity is not None:
            exported.update(self.export_sensitivity(results.sensitivity))
        if results.deterministic is not None or results.monte_carlo is not None:
            exported["summary"] = self.export_summary(results)
        exported["run_metadata"] = self.export_metadata(results.metadata)

        all_files = sorted({Path(p) for p in exported.values()})
        archive_path = self._create_archive(all_files) if archive else None
        LOGGER.info("Wrote %d output files to %s", len(all_files), self.output_dir)
        return {
            "output_dir": self.output_dir,
            "files": all_files,
            "archive": archive_path,
            "artifacts": exported,
        }


__all__ = ["ReportGenerator"]
