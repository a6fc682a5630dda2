"""Per-trial scoring of pool participants.

A participant earns ``points_if_qualify`` for every team they backed to
qualify that did, and ``points_if_not_qualify`` for every team they backed to
miss that did.  :class:`ScoringEvaluator` stores both payoffs as
participant × team matrices, so scoring one outcome is two matrix-vector
products.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from playoff_pool.registry.team_registry import TeamRegistry
from playoff_pool.simulation.sampler import SimulationOutcome


@dataclass(frozen=True)
class ScoringEvaluator:
    """Payoff matrices for a registry.

    Attributes:
        qualify_points: ``[p, t]`` = points participant *p* earns if team *t*
            qualifies, shape ``(n_participants, n_teams)``.
        miss_points: ``[p, t]`` = points participant *p* earns if team *t*
            misses, same shape.
    """

    qualify_points: npt.NDArray[np.float64]
    miss_points: npt.NDArray[np.float64]

    @classmethod
    def from_registry(cls, registry: TeamRegistry) -> ScoringEvaluator:
        """Build the payoff matrices from each team's bettor lists."""
        shape = (registry.n_participants, registry.n_teams)
        qualify = np.zeros(shape, dtype=np.float64)
        miss = np.zeros(shape, dtype=np.float64)
        index = registry.participant_index_map
        for t, team in enumerate(registry.teams):
            for participant in team.bettors_if_qualify:
                qualify[index[participant], t] += team.points_if_qualify
            for participant in team.bettors_if_not_qualify:
                miss[index[participant], t] += team.points_if_not_qualify
        qualify.setflags(write=False)
        miss.setflags(write=False)
        return cls(qualify_points=qualify, miss_points=miss)

    def evaluate(self, qualified: npt.NDArray[np.bool_]) -> npt.NDArray[np.float64]:
        """Score one outcome.

        Args:
            qualified: Boolean qualification mask, shape ``(n_teams,)``.

        Returns:
            Scores per participant, shape ``(n_participants,)``.
        """
        made = qualified.astype(np.float64)
        result: npt.NDArray[np.float64] = self.qualify_points @ made + self.miss_points @ (1.0 - made)
        return result

    def evaluate_probabilities(self, probability_qualify: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Return expected scores under independent per-team probabilities."""
        result: npt.NDArray[np.float64] = self.qualify_points @ probability_qualify + self.miss_points @ (
            1.0 - probability_qualify
        )
        return result


def score_outcome(registry: TeamRegistry, outcome: SimulationOutcome) -> dict[str, float]:
    """Return ``{participant → score}`` for a single outcome."""
    scores = ScoringEvaluator.from_registry(registry).evaluate(outcome.qualified)
    return {participant: float(scores[i]) for i, participant in enumerate(registry.participants)}
