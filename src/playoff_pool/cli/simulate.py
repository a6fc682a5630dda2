"""Simulation pipeline orchestration.

Assembles input loading, registry construction, the simulation run and the
standings join into functions consumed by the Typer CLI entry point.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from playoff_pool.registry import (
    RegistryValidationError,
    TeamRegistry,
    build_registry,
    load_probabilities,
    load_team_records,
    merge_probabilities,
)
from playoff_pool.simulation import (
    PERCENTILE_KEYS,
    ConvergenceController,
    MostLikelyScenario,
    ParticipantStanding,
    RunResult,
    SimulationConfig,
    build_standings,
    standings_frame,
)

OUTPUT_SUFFIXES: tuple[str, ...] = (".csv", ".json")


def load_registry(
    teams_path: Path,
    probabilities_path: Path | None = None,
    *,
    missing_probability_as_zero: bool = False,
) -> TeamRegistry:
    """Load a pick list (and optional probability table) into a registry.

    Raises:
        RegistryValidationError: If a file is missing or the input is
            inconsistent.
    """
    for path in (teams_path, probabilities_path):
        if path is not None and not path.exists():
            msg = f"File not found: {path}"
            raise RegistryValidationError(msg)

    records = load_team_records(teams_path)
    if probabilities_path is not None:
        records = merge_probabilities(
            records,
            load_probabilities(probabilities_path),
            missing_probability_as_zero=missing_probability_as_zero,
        )
    return build_registry(records, missing_probability_as_zero=missing_probability_as_zero)


def run_pool_simulation(
    registry: TeamRegistry,
    config: SimulationConfig,
    *,
    console: Console | None = None,
) -> tuple[RunResult, list[ParticipantStanding]]:
    """Run the simulation behind a progress bar and build the standings.

    Args:
        registry: Validated team registry.
        config: Run configuration.
        console: Rich Console for terminal output.  Defaults to a fresh
            ``Console()``; pass ``Console(quiet=True)`` to suppress output.

    Returns:
        The raw run result and the sorted standings.
    """
    _console = console or Console()

    with Progress(console=_console, transient=True) as progress:
        task = progress.add_task("Simulating...", total=config.target_trials)

        def _advance(completed: int, target: int) -> None:
            progress.update(task, completed=completed, total=target)

        controller = ConvergenceController(registry, config, progress_callback=_advance)
        run = controller.run()

    standings = build_standings(registry, run)
    _console.print(render_standings(standings, run))
    return run, standings


def _points(value: float | None) -> str:
    return "-" if value is None else f"{value:g}"


def render_standings(standings: Sequence[ParticipantStanding], run: RunResult) -> Table:
    """Return a rich table of the standings."""
    table = Table(title=f"Pool Standings ({run.completed_trials:,} trials)")
    table.add_column("Participant", style="cyan")
    table.add_column("Win %", justify="right", style="green")
    table.add_column("Expected", justify="right")
    table.add_column("Most likely", justify="right")
    table.add_column("Min", justify="right")
    for key in PERCENTILE_KEYS:
        table.add_column(f"P{key}", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Mode", justify="right")

    for s in standings:
        table.add_row(
            s.participant,
            f"{100.0 * s.win_probability:.2f}",
            f"{s.expected_points:.2f}",
            _points(s.most_likely_points),
            _points(s.min_points),
            *(_points(s.percentile(key)) for key in PERCENTILE_KEYS),
            _points(s.max_points),
            "-" if s.mode is None else ", ".join(_points(m) for m in s.mode),
        )
    return table


def render_scenario(registry: TeamRegistry, scenario: MostLikelyScenario) -> Table:
    """Return a rich table of the most-likely qualifier set."""
    table = Table(title="Most Likely Qualifiers")
    table.add_column("Team", style="cyan")
    table.add_column("Division")
    table.add_column("Qualifies as", style="green")
    table.add_column("P(qualify)", justify="right")
    for team_id in (*scenario.division_winners, *scenario.wildcards):
        team = registry.team(team_id)
        table.add_row(
            team_id,
            team.division,
            scenario.qualifier_type(team_id) or "",
            f"{registry.probability_qualify[registry.team_index_map[team_id]]:.3f}",
        )
    return table


def write_standings(standings: Sequence[ParticipantStanding], run: RunResult, path: Path) -> None:
    """Persist standings as CSV or JSON, chosen by the file suffix.

    The JSON form also records the trial count and root entropy so the run
    can be replayed with ``--seed``.

    Raises:
        ValueError: If the suffix is not ``.csv`` or ``.json``.
    """
    suffix = path.suffix.lower()
    if suffix not in OUTPUT_SUFFIXES:
        msg = f"Unsupported output format {path.suffix!r}; use one of {', '.join(OUTPUT_SUFFIXES)}"
        raise ValueError(msg)

    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".csv":
        standings_frame(standings).to_csv(path)
        return

    payload = {
        "completed_trials": run.completed_trials,
        "entropy": str(run.entropy),
        "n_batches": run.n_batches,
        "n_retries": run.n_retries,
        "standings": [s.to_dict() for s in standings],
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
