"""Monte Carlo simulation: sampling, scoring, aggregation and scheduling."""

from __future__ import annotations

from playoff_pool.simulation.aggregator import TrialAggregator, exact_win_counts, win_counts_from_ties
from playoff_pool.simulation.batch import (
    BatchFailure,
    BatchRequest,
    BatchResult,
    RunTotals,
    execute_batch,
    run_batch,
)
from playoff_pool.simulation.config import SimulationConfig, default_worker_count
from playoff_pool.simulation.controller import (
    ConvergenceController,
    ParticipantStats,
    RunResult,
    SimulationError,
    plan_batch_size,
    run_simulation,
)
from playoff_pool.simulation.distribution import (
    PERCENTILE_KEYS,
    ScoreDistribution,
    compute_participant_distributions,
    compute_score_distribution,
    percentile_index,
)
from playoff_pool.simulation.sampler import BracketSampler, SimulationOutcome, sample_outcome, weighted_draw
from playoff_pool.simulation.scoring import ScoringEvaluator, score_outcome
from playoff_pool.simulation.standings import (
    DIVISION_WINNER,
    WILDCARD,
    MostLikelyScenario,
    ParticipantStanding,
    build_standings,
    compute_expected_points,
    compute_point_bounds,
    most_likely_scenario,
    standings_frame,
)

__all__ = [
    "DIVISION_WINNER",
    "PERCENTILE_KEYS",
    "WILDCARD",
    "BatchFailure",
    "BatchRequest",
    "BatchResult",
    "BracketSampler",
    "ConvergenceController",
    "MostLikelyScenario",
    "ParticipantStanding",
    "ParticipantStats",
    "RunResult",
    "RunTotals",
    "ScoreDistribution",
    "ScoringEvaluator",
    "SimulationConfig",
    "SimulationError",
    "SimulationOutcome",
    "TrialAggregator",
    "build_standings",
    "compute_expected_points",
    "compute_participant_distributions",
    "compute_point_bounds",
    "compute_score_distribution",
    "default_worker_count",
    "exact_win_counts",
    "execute_batch",
    "most_likely_scenario",
    "percentile_index",
    "plan_batch_size",
    "run_batch",
    "run_simulation",
    "sample_outcome",
    "score_outcome",
    "standings_frame",
    "weighted_draw",
    "win_counts_from_ties",
]
