"""Typer-based command line interface for the emissions analyses."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional, TypeVar

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from ..config import load_config
from ..core.validator import ConfigurationError
from ..engine import EmissionsEngine
from ..reporting.report_generator import ReportGenerator

app = typer.Typer(help="Fuel-use CO2 emissions for armed-conflict scenarios")
console = Console()

T = TypeVar("T")

PARAMETERS_OPTION = typer.Option(
    Path("data/parameters.csv"), "--parameters", "-p", help="Scenario parameter table (CSV)"
)
EMISSION_FACTORS_OPTION = typer.Option(
    Path("data/emission_factors.csv"), "--emission-factors", "-e", help="Emission factor table (CSV)"
)
PHASES_OPTION = typer.Option(None, "--phases", help="Phase definition table (CSV)")
OUTPUT_OPTION = typer.Option(Path("outputs"), "--output-dir", "-o", help="Directory for CSV outputs")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="YAML run configuration")
LOG_LEVEL_OPTION = typer.Option("WARNING", "--log-level", help="Logging level")
DRAWS_OPTION = typer.Option(None, "--n-draws", help="Override the number of draws")
SEED_OPTION = typer.Option(None, "--seed", help="Override the random seed")
WORKERS_OPTION = typer.Option(None, "--workers", help="Worker processes for the Monte Carlo run")


def _configure_logging(level: str) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _build_engine(
    parameters: Path,
    emission_factors: Path,
    phases: Optional[Path],
    config: Optional[Path],
    log_level: str,
) -> EmissionsEngine:
    _configure_logging(log_level)
    engine = EmissionsEngine(load_config(config))
    engine.load_data(parameters, emission_factors, phases)
    return engine


def _guarded(action: Callable[[], T]) -> T:
    """Run ``action``, turning configuration errors into a non-zero exit."""
    try:
        return action()
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _render_table(frame: pd.DataFrame, title: str, *, max_rows: int = 20) -> None:
    table = Table(title=title, show_lines=False)
    for column in frame.columns:
        table.add_column(str(column))
    for _, row in frame.head(max_rows).iterrows():
        table.add_row(*[_format_value(value) for value in row])
    console.print(table)


def _format_value(value: object) -> str:
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)


def _report_paths(paths: Dict[str, Path]) -> None:
    for name, path in paths.items():
        console.print(f"  - {name}: {path}")


def _progress(step: int, total: int, message: str) -> None:
    console.print(f"[cyan][{step}/{total}][/cyan] {message}")


@app.command()
def deterministic(
    parameters: Path = PARAMETERS_OPTION,
    emission_factors: Path = EMISSION_FACTORS_OPTION,
    output_dir: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Midpoint daily emissions per scenario and class."""
    engine = _guarded(lambda: _build_engine(parameters, emission_factors, None, config, log_level))
    result = _guarded(engine.run_deterministic)
    _render_table(result.by_scenario, "Deterministic totals (kg CO2)")
    _report_paths(ReportGenerator(output_dir).export_deterministic(result))


@app.command("monte-carlo")
def monte_carlo(
    parameters: Path = PARAMETERS_OPTION,
    emission_factors: Path = EMISSION_FACTORS_OPTION,
    output_dir: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    n_draws: Optional[int] = DRAWS_OPTION,
    seed: Optional[int] = SEED_OPTION,
    workers: Optional[int] = WORKERS_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Monte Carlo uncertainty run with per-day and total percentiles."""
    engine = _guarded(lambda: _build_engine(parameters, emission_factors, None, config, log_level))
    result = _guarded(
        lambda: engine.run_monte_carlo(
            n_draws=n_draws, seed=seed, max_workers=workers, progress_callback=_progress
        )
    )
    _render_table(result.summary.totals, "Monte Carlo totals (kg CO2)")
    for scenario, reason in result.skipped_scenarios.items():
        console.print(f"[yellow]Skipped {scenario}: {reason}[/yellow]")
    _report_paths(ReportGenerator(output_dir).export_monte_carlo(result))


@app.command()
def phasing(
    parameters: Path = PARAMETERS_OPTION,
    emission_factors: Path = EMISSION_FACTORS_OPTION,
    phases: Path = typer.Option(Path("data/phases.csv"), "--phases", help="Phase definition table (CSV)"),
    output_dir: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    n_draws: Optional[int] = DRAWS_OPTION,
    seed: Optional[int] = SEED_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Phase timing and intensity Monte Carlo over the deterministic baseline."""
    engine = _guarded(lambda: _build_engine(parameters, emission_factors, phases, config, log_level))
    result = _guarded(
        lambda: engine.run_phasing(n_draws=n_draws, seed=seed, progress_callback=_progress)
    )
    _render_table(result.summary.totals, "Phased totals (kg CO2)")
    _report_paths(ReportGenerator(output_dir).export_phasing(result))


@app.command()
def logistics(
    parameters: Path = PARAMETERS_OPTION,
    emission_factors: Path = EMISSION_FACTORS_OPTION,
    output_dir: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    n_draws: Optional[int] = DRAWS_OPTION,
    seed: Optional[int] = SEED_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Tanker trips implied by the Monte Carlo fuel use."""
    engine = _guarded(lambda: _build_engine(parameters, emission_factors, None, config, log_level))

    def run():
        engine.run_monte_carlo(n_draws=n_draws, seed=seed)
        return engine.run_logistics()

    result = _guarded(run)
    _render_table(result.summary, "Tanker trips")
    _report_paths(ReportGenerator(output_dir).export_logistics(result))


@app.command()
def marginal(
    parameters: Path = PARAMETERS_OPTION,
    emission_factors: Path = EMISSION_FACTORS_OPTION,
    output_dir: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    n_draws: Optional[int] = DRAWS_OPTION,
    seed: Optional[int] = SEED_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Per-vehicle emissions, deterministic and Monte Carlo."""
    engine = _guarded(lambda: _build_engine(parameters, emission_factors, None, config, log_level))

    def run():
        engine.run_monte_carlo(n_draws=n_draws, seed=seed)
        return engine.run_marginal()

    result = _guarded(run)
    _render_table(result.deterministic, "Marginal emissions per vehicle")
    _report_paths(ReportGenerator(output_dir).export_marginal(result))


@app.command()
def sensitivity(
    parameters: Path = PARAMETERS_OPTION,
    emission_factors: Path = EMISSION_FACTORS_OPTION,
    output_dir: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    top_n: int = typer.Option(8, "--top-n", help="Parameters kept per scenario in the tornado table"),
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """One-at-a-time sensitivity of deterministic totals (x0.8 and x1.2)."""
    engine = _guarded(lambda: _build_engine(parameters, emission_factors, None, config, log_level))
    result = _guarded(lambda: engine.run_sensitivity(top_n=top_n))
    _render_table(result.tornado, "Largest effects (% change)")
    _report_paths(ReportGenerator(output_dir).export_sensitivity(result))


@app.command("run-all")
def run_all(
    parameters: Path = PARAMETERS_OPTION,
    emission_factors: Path = EMISSION_FACTORS_OPTION,
    phases: Optional[Path] = PHASES_OPTION,
    output_dir: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    workers: Optional[int] = WORKERS_OPTION,
    archive: bool = typer.Option(False, "--archive", help="Also write a zip of every output"),
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Run every analysis and write all output tables."""
    engine = _guarded(lambda: _build_engine(parameters, emission_factors, phases, config, log_level))
    results = _guarded(lambda: engine.run_all(max_workers=workers, progress_callback=_progress))
    _render_table(results.summary_frame(), "Scenario totals (kg CO2)")
    exported = ReportGenerator(output_dir).export_all(results, archive=archive)
    console.print("\n[bold green]Analysis complete![/bold green]")
    _report_paths(exported["artifacts"])
    validation = results.metadata.get("validation", {})
    if validation.get("status") == "FAIL":
        console.print(f"[red]Validation failed: {validation.get('failed_checks')}[/red]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
