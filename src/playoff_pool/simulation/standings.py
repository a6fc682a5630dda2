"""Pool standings: simulation results joined with analytical columns.

The analytical columns need no sampling:

* **expected points** — each bet weighted by its team's qualification
  probability;
* **most-likely points** — the score under :func:`most_likely_scenario`,
  the single deterministic outcome that takes the favourite in every
  division and the three strongest residual candidates per conference;
* **point bounds** — the best and worst attainable payoff per team (a team
  can qualify when ``p > 0`` and miss when ``p < 1``), summed per
  participant and widened by the simulated extremes.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import numpy.typing as npt
import pandas as pd  # type: ignore[import-untyped]

from playoff_pool.registry.team_registry import WILDCARDS_PER_CONFERENCE, TeamRegistry
from playoff_pool.simulation.controller import RunResult
from playoff_pool.simulation.distribution import PERCENTILE_KEYS
from playoff_pool.simulation.sampler import SimulationOutcome
from playoff_pool.simulation.scoring import ScoringEvaluator

DIVISION_WINNER: str = "Division Winner"
WILDCARD: str = "Wildcard"


@dataclass(frozen=True)
class MostLikelyScenario:
    """The deterministic highest-probability qualifier set.

    Attributes:
        outcome: The scenario as a :class:`SimulationOutcome`.
        division_winners: Division winners, in division order.
        wildcards: Wildcards, per conference in descending residual
            probability.
    """

    outcome: SimulationOutcome
    division_winners: tuple[str, ...]
    wildcards: tuple[str, ...]

    def qualifier_type(self, team_id: str) -> str | None:
        """Return ``"Division Winner"``, ``"Wildcard"`` or ``None``."""
        if team_id in self.division_winners:
            return DIVISION_WINNER
        if team_id in self.wildcards:
            return WILDCARD
        return None


def most_likely_scenario(
    registry: TeamRegistry,
    wildcards_per_conference: int = WILDCARDS_PER_CONFERENCE,
) -> MostLikelyScenario:
    """Return the deterministic most-likely qualifier set.

    Each division is won by its team with the highest division-win
    probability (first listed on ties).  Per conference, the remaining teams
    are ranked by ``probability_qualify - probability_division_win`` and the
    top *wildcards_per_conference* qualify.
    """
    p_division = registry.probability_division_win
    residual = registry.probability_qualify - p_division
    qualified = np.zeros(registry.n_teams, dtype=np.bool_)

    winners: list[str] = []
    for division in registry.divisions:
        best = int(division.team_indices[int(np.argmax(p_division[division.team_indices]))])
        qualified[best] = True
        winners.append(registry.team_ids[best])

    wildcards: list[str] = []
    for indices in registry.conference_indices.values():
        remaining = [int(i) for i in indices if not qualified[i]]
        ranked = sorted(remaining, key=lambda i: -residual[i])
        for i in ranked[:wildcards_per_conference]:
            qualified[i] = True
            wildcards.append(registry.team_ids[i])

    return MostLikelyScenario(
        outcome=SimulationOutcome(qualified=qualified),
        division_winners=tuple(winners),
        wildcards=tuple(wildcards),
    )


def compute_expected_points(
    registry: TeamRegistry,
    evaluator: ScoringEvaluator | None = None,
) -> npt.NDArray[np.float64]:
    """Return expected points per participant, shape ``(n_participants,)``."""
    evaluator = evaluator or ScoringEvaluator.from_registry(registry)
    return evaluator.evaluate_probabilities(registry.probability_qualify)


def compute_point_bounds(
    registry: TeamRegistry,
    evaluator: ScoringEvaluator | None = None,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Return attainable ``(min_points, max_points)`` per participant.

    Teams are treated independently: each contributes its worst (best)
    payoff among the outcomes it can still reach.
    """
    evaluator = evaluator or ScoringEvaluator.from_registry(registry)
    can_qualify = registry.probability_qualify > 0.0
    can_miss = registry.probability_qualify < 1.0
    q = evaluator.qualify_points
    m = evaluator.miss_points

    both = can_qualify & can_miss
    high = np.where(both, np.maximum(q, m), np.where(can_qualify, q, m))
    low = np.where(both, np.minimum(q, m), np.where(can_qualify, q, m))
    return low.sum(axis=1), high.sum(axis=1)


@dataclass(frozen=True)
class ParticipantStanding:
    """Final per-participant output row.

    Attributes:
        participant: Participant identifier.
        win_probability: Probability of finishing with the top score.
        expected_points: Probability-weighted score.
        most_likely_points: Score under the most-likely scenario.
        min_points: Lowest attainable score.
        max_points: Highest attainable score.
        percentiles: Mapping of percentile key → score, or ``None`` when no
            distribution was computed.
        mode: Modal score(s), or ``None`` when no distribution was computed.
    """

    participant: str
    win_probability: float
    expected_points: float
    most_likely_points: float
    min_points: float
    max_points: float
    percentiles: dict[int, float] | None
    mode: tuple[float, ...] | None

    def percentile(self, key: int) -> float | None:
        """Return the score at percentile *key*, if computed."""
        if self.percentiles is None:
            return None
        return self.percentiles.get(key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat dictionary for JSON serialisation."""
        row: dict[str, Any] = {
            "participant": self.participant,
            "win_probability": self.win_probability,
            "expected_points": self.expected_points,
            "most_likely_points": self.most_likely_points,
            "min_points": self.min_points,
            "max_points": self.max_points,
        }
        for key in PERCENTILE_KEYS:
            row[f"percentile_{key:02d}"] = self.percentile(key)
        row["mode"] = list(self.mode) if self.mode is not None else None
        return row


def build_standings(registry: TeamRegistry, run: RunResult) -> list[ParticipantStanding]:
    """Join a run's results with the analytical columns.

    Reported bounds are the analytical bounds widened by the simulated
    extremes, so ``min_points <= percentile_05`` and
    ``percentile_95 <= max_points`` always hold.

    Returns:
        Standings sorted by win probability, then expected points
        (descending), then participant name.
    """
    evaluator = ScoringEvaluator.from_registry(registry)
    expected = compute_expected_points(registry, evaluator)
    most_likely = evaluator.evaluate(most_likely_scenario(registry).outcome.qualified)
    low, high = compute_point_bounds(registry, evaluator)
    stats = run.participant_stats()

    standings: list[ParticipantStanding] = []
    for i, participant in enumerate(registry.participants):
        entry = stats[participant]
        min_points = float(low[i])
        max_points = float(high[i])
        if entry.min_observed is not None and entry.max_observed is not None:
            min_points = min(min_points, entry.min_observed)
            max_points = max(max_points, entry.max_observed)
        distribution = entry.distribution
        standings.append(
            ParticipantStanding(
                participant=participant,
                win_probability=entry.win_probability,
                expected_points=float(expected[i]),
                most_likely_points=float(most_likely[i]),
                min_points=min_points,
                max_points=max_points,
                percentiles=dict(distribution.percentiles) if distribution is not None else None,
                mode=distribution.mode if distribution is not None else None,
            )
        )

    standings.sort(key=lambda s: (-s.win_probability, -s.expected_points, s.participant))
    return standings


def standings_frame(standings: Sequence[ParticipantStanding]) -> pd.DataFrame:
    """Return standings as a DataFrame indexed by participant."""
    rows = [s.to_dict() for s in standings]
    columns = list(rows[0]) if rows else ["participant"]
    return pd.DataFrame(rows, columns=columns).set_index("participant")
