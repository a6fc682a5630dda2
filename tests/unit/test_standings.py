"""Unit tests for the analytical standings columns and the standings join."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pytest

from playoff_pool.registry import TeamRecord, TeamRegistry, build_registry
from playoff_pool.simulation.config import SimulationConfig
from playoff_pool.simulation.controller import ConvergenceController, RunResult
from playoff_pool.simulation.distribution import PERCENTILE_KEYS
from playoff_pool.simulation.standings import (
    DIVISION_WINNER,
    WILDCARD,
    ParticipantStanding,
    build_standings,
    compute_expected_points,
    compute_point_bounds,
    most_likely_scenario,
    standings_frame,
)

TeamFactory = Callable[..., TeamRecord]


def _run(registry: TeamRegistry, *, trials: int = 2_000, percentile_trials: int = 1_000) -> RunResult:
    config = SimulationConfig(
        target_trials=trials,
        percentile_trials=percentile_trials,
        n_workers=1,
        backend="sequential",
        seed=99,
    )
    return ConvergenceController(registry, config).run()


class TestMostLikelyScenario:
    @pytest.mark.smoke
    def test_favourites_and_top_residuals(self, league_registry: TeamRegistry) -> None:
        scenario = most_likely_scenario(league_registry)
        assert scenario.division_winners == tuple(f"{d.name} 1" for d in league_registry.divisions)
        assert scenario.wildcards == (
            "AFC East 2",
            "AFC North 2",
            "AFC South 2",
            "NFC East 2",
            "NFC North 2",
            "NFC South 2",
        )
        assert scenario.outcome.n_qualifiers == 14

    def test_labels(self, league_registry: TeamRegistry) -> None:
        scenario = most_likely_scenario(league_registry)
        assert scenario.qualifier_type("AFC West 1") == DIVISION_WINNER
        assert scenario.qualifier_type("NFC South 2") == WILDCARD
        assert scenario.qualifier_type("NFC West 2") is None

    def test_first_listed_wins_ties(self, team_factory: TeamFactory) -> None:
        registry = build_registry(
            [
                team_factory("X", "AFC East", 0.5, 0.5),
                team_factory("Y", "AFC East", 0.5, 0.9),
            ]
        )
        scenario = most_likely_scenario(registry)
        assert scenario.division_winners == ("X",)
        assert scenario.wildcards == ("Y",)


class TestAnalyticalColumns:
    def test_expected_points(self, league_registry: TeamRegistry) -> None:
        # alice: 8 × 0.8; carol: 8 × 0.6 × 2; bob: 8 × (1 - 0.2)
        np.testing.assert_allclose(compute_expected_points(league_registry), [6.4, 9.6, 6.4])

    def test_point_bounds_open_outcomes(self, league_registry: TeamRegistry) -> None:
        low, high = compute_point_bounds(league_registry)
        assert low.tolist() == [0.0, 0.0, 0.0]
        assert high.tolist() == [8.0, 16.0, 8.0]

    def test_point_bounds_respect_certain_outcomes(self, guaranteed_registry: TeamRegistry) -> None:
        low, high = compute_point_bounds(guaranteed_registry)
        assert low.tolist() == [6.0, 3.0]
        assert high.tolist() == [6.0, 3.0]

    def test_point_bounds_pick_better_side(self, team_factory: TeamFactory) -> None:
        registry = build_registry(
            [team_factory("X", "AFC East", 0.5, 0.5, make=("alice",), miss=("alice",), points_make=2, points_miss=5)]
        )
        low, high = compute_point_bounds(registry)
        assert (low.tolist(), high.tolist()) == ([2.0], [5.0])


class TestBuildStandings:
    @pytest.mark.smoke
    def test_sorted_by_win_probability(self, league_registry: TeamRegistry) -> None:
        standings = build_standings(league_registry, _run(league_registry))
        probabilities = [s.win_probability for s in standings]
        assert probabilities == sorted(probabilities, reverse=True)
        assert sum(probabilities) == pytest.approx(1.0)
        assert {s.participant for s in standings} == {"alice", "bob", "carol"}

    def test_percentiles_within_bounds(self, league_registry: TeamRegistry) -> None:
        for standing in build_standings(league_registry, _run(league_registry)):
            values = [standing.percentile(k) for k in PERCENTILE_KEYS]
            assert None not in values
            ordered = [standing.min_points, *values, standing.max_points]
            assert ordered == sorted(ordered)
            assert standing.mode is not None

    def test_analytical_columns_joined(self, league_registry: TeamRegistry) -> None:
        by_name = {s.participant: s for s in build_standings(league_registry, _run(league_registry))}
        assert by_name["carol"].expected_points == pytest.approx(9.6)
        assert by_name["carol"].most_likely_points == 12.0
        assert by_name["alice"].most_likely_points == 8.0
        assert by_name["bob"].most_likely_points == 8.0

    def test_bounds_widened_by_observed_scores(self, team_factory: TeamFactory) -> None:
        # Four certain wildcards compete for three slots, so X misses in some
        # trials even though its qualification probability is 1.
        registry = build_registry(
            [
                team_factory("W", "AFC East", 1.0, 1.0),
                team_factory("X", "AFC East", 0.0, 1.0, make=("alice",), points_make=4.0),
                team_factory("U", "AFC East", 0.0, 1.0),
                team_factory("V", "AFC East", 0.0, 1.0),
                team_factory("T", "AFC East", 0.0, 1.0),
            ]
        )
        low, high = compute_point_bounds(registry)
        assert (low.tolist(), high.tolist()) == ([4.0], [4.0])

        (alice,) = build_standings(registry, _run(registry, trials=400))
        assert alice.min_points == 0.0
        assert alice.max_points == 4.0
        assert alice.percentile(5) == 0.0

    def test_without_distributions(self, guaranteed_registry: TeamRegistry) -> None:
        standings = build_standings(guaranteed_registry, _run(guaranteed_registry, trials=100, percentile_trials=0))
        assert standings[0].participant == "alice"
        assert standings[0].win_probability == 1.0
        assert standings[0].percentiles is None
        assert standings[0].percentile(50) is None
        assert standings[0].mode is None


class TestStandingsFrame:
    def test_columns_and_index(self, guaranteed_registry: TeamRegistry) -> None:
        frame = standings_frame(build_standings(guaranteed_registry, _run(guaranteed_registry, trials=100)))
        assert frame.index.name == "participant"
        assert list(frame.index) == ["alice", "bob"]
        assert "percentile_50" in frame.columns
        assert frame.loc["alice", "win_probability"] == 1.0
        assert frame.loc["bob", "percentile_95"] == 3.0

    def test_empty(self) -> None:
        assert standings_frame([]).empty

    def test_to_dict_round_values(self) -> None:
        standing = ParticipantStanding(
            participant="alice",
            win_probability=0.25,
            expected_points=3.5,
            most_likely_points=4.0,
            min_points=0.0,
            max_points=8.0,
            percentiles={5: 1.0, 25: 2.0, 50: 3.0, 75: 5.0, 95: 7.0},
            mode=(3.0, 5.0),
        )
        row = standing.to_dict()
        assert row["percentile_05"] == 1.0
        assert row["percentile_95"] == 7.0
        assert row["mode"] == [3.0, 5.0]
