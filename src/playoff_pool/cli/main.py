"""Typer CLI application for playoff pool simulations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from playoff_pool.registry import RegistryValidationError
from playoff_pool.simulation import SimulationConfig, SimulationError, most_likely_scenario
from playoff_pool.utils.logger import VERBOSITY, configure_logging

app = typer.Typer(help="Playoff pool Monte Carlo simulator")
console = Console()


@app.callback()
def _callback() -> None:
    """Playoff pool CLI: win probabilities and scenarios for a betting pool."""


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error: {escape(message)}[/red]")
    return typer.Exit(code=1)


def _build_config(
    config_path: Path | None,
    *,
    trials: int | None,
    seed: int | None,
    workers: int | None,
    missing_as_zero: bool,
) -> SimulationConfig:
    """Build the run config from a JSON override file plus explicit flags.

    Flags given on the command line take precedence over the file.
    """
    override: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise _fail(f"Config file not found: {config_path}")
        try:
            override = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise _fail(f"Config file {config_path} is not valid JSON ({exc})") from exc
        if not isinstance(override, dict):
            raise _fail(f"Config file {config_path} must contain a JSON object")

    flags = {"target_trials": trials, "seed": seed, "n_workers": workers}
    override.update({k: v for k, v in flags.items() if v is not None})
    if missing_as_zero:
        override["missing_probability_as_zero"] = True

    try:
        return SimulationConfig(**override)
    except ValidationError as exc:
        raise _fail(f"Invalid configuration: {exc}") from exc


@app.command()
def simulate(  # noqa: PLR0913
    teams: Path = typer.Option(..., "--teams", help="JSON pick list (one object per team)"),
    probabilities: Path | None = typer.Option(None, "--probabilities", help="JSON probability table"),
    trials: int | None = typer.Option(None, "--trials", help="Target number of trials"),
    seed: int | None = typer.Option(None, "--seed", help="Root seed for a reproducible run"),
    workers: int | None = typer.Option(None, "--workers", help="Worker pool size (default: CPUs - 1)"),
    config: Path | None = typer.Option(None, "--config", help="Path to JSON config override"),
    output: Path | None = typer.Option(None, "--output", help="Write standings to a .csv or .json file"),
    missing_as_zero: bool = typer.Option(
        False, "--missing-as-zero", help="Treat missing probabilities as zero instead of failing"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help=f"One of {', '.join(VERBOSITY)}"),
) -> None:
    """Simulate the pool and print each participant's standing."""
    try:
        configure_logging(log_level)
    except ValueError as exc:
        raise _fail(str(exc)) from exc

    from playoff_pool.cli.simulate import OUTPUT_SUFFIXES, load_registry, run_pool_simulation, write_standings

    if output is not None and output.suffix.lower() not in OUTPUT_SUFFIXES:
        raise _fail(f"--output must end in one of {', '.join(OUTPUT_SUFFIXES)}, got {output.name!r}")

    run_config = _build_config(
        config,
        trials=trials,
        seed=seed,
        workers=workers,
        missing_as_zero=missing_as_zero,
    )

    try:
        registry = load_registry(
            teams,
            probabilities,
            missing_probability_as_zero=run_config.missing_probability_as_zero,
        )
        run, standings = run_pool_simulation(registry, run_config, console=console)
    except (RegistryValidationError, SimulationError) as exc:
        raise _fail(str(exc)) from exc

    console.print(f"Root entropy: {run.entropy} (replay with --seed {run.entropy})")
    if output is not None:
        write_standings(standings, run, output)
        console.print(f"Standings written to [bold]{output}[/bold]")


@app.command()
def scenario(
    teams: Path = typer.Option(..., "--teams", help="JSON pick list (one object per team)"),
    probabilities: Path | None = typer.Option(None, "--probabilities", help="JSON probability table"),
    missing_as_zero: bool = typer.Option(
        False, "--missing-as-zero", help="Treat missing probabilities as zero instead of failing"
    ),
) -> None:
    """Print the single most likely set of qualifiers."""
    from playoff_pool.cli.simulate import load_registry, render_scenario

    try:
        registry = load_registry(teams, probabilities, missing_probability_as_zero=missing_as_zero)
    except RegistryValidationError as exc:
        raise _fail(str(exc)) from exc

    console.print(render_scenario(registry, most_likely_scenario(registry)))
