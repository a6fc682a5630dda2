"""Two-stage bracket sampler.

Draws one league-consistent qualification outcome per trial:

1. **Division winners** — one team per division, drawn with probability
   proportional to ``probability_division_win`` (weights normalised per
   division).
2. **Wildcards** — per conference, up to
   :data:`~playoff_pool.registry.team_registry.WILDCARDS_PER_CONFERENCE`
   sequential draws without replacement among the remaining teams, weighted
   by the residual mass ``max(0, probability_qualify - probability_division_win)``.

A pool whose total weight is zero leaves its slot(s) unfilled.  That is a
data-quality signal, not an error: the outcome records how many slots went
unfilled and the aggregator counts them.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from playoff_pool.registry.team_registry import WILDCARDS_PER_CONFERENCE, TeamRegistry


@dataclass(frozen=True)
class SimulationOutcome:
    """Qualifiers of a single trial.

    Attributes:
        qualified: Boolean mask over registry teams, shape ``(n_teams,)``.
        unfilled_slots: Division or wildcard slots left empty because their
            candidate pool had no remaining weight.
    """

    qualified: npt.NDArray[np.bool_]
    unfilled_slots: int = 0

    @property
    def n_qualifiers(self) -> int:
        """Return the number of qualifying teams."""
        return int(self.qualified.sum())

    def qualifier_ids(self, registry: TeamRegistry) -> frozenset[str]:
        """Return the identifiers of the qualifying teams."""
        return frozenset(registry.team_ids[i] for i in np.flatnonzero(self.qualified))


def weighted_draw(weights: npt.NDArray[np.float64], rng: np.random.Generator) -> int | None:
    """Draw one index with probability proportional to *weights*.

    Zero-weight entries are never drawn.

    Args:
        weights: Non-negative weights.
        rng: Random source.

    Returns:
        The drawn index, or ``None`` if the total weight is not positive.
    """
    cumulative = np.cumsum(weights)
    if cumulative.size == 0 or cumulative[-1] <= 0.0:
        return None
    target = rng.random() * cumulative[-1]
    index = int(np.searchsorted(cumulative, target, side="right"))
    # Floating-point round-off can land past the last positive weight.
    last_positive = int(np.flatnonzero(weights > 0.0)[-1])
    return min(index, last_positive)


class BracketSampler:
    """Samples :class:`SimulationOutcome` objects from a registry.

    Division and conference pools are resolved once at construction so each
    trial only performs the weighted draws.

    Args:
        registry: Team registry to sample from.
        wildcards_per_conference: Wildcard slots per conference.
    """

    def __init__(
        self,
        registry: TeamRegistry,
        wildcards_per_conference: int = WILDCARDS_PER_CONFERENCE,
    ) -> None:
        self._n_teams = registry.n_teams
        self._wildcards = wildcards_per_conference
        self._division_pools: list[tuple[npt.NDArray[np.intp], npt.NDArray[np.float64]]] = []
        for division in registry.divisions:
            weights = registry.probability_division_win[division.team_indices]
            total = float(weights.sum())
            normalised = weights / total if total > 0.0 else np.zeros_like(weights)
            self._division_pools.append((division.team_indices, normalised))
        residual = registry.wildcard_weights
        self._conference_pools: list[tuple[npt.NDArray[np.intp], npt.NDArray[np.float64]]] = [
            (indices, residual[indices]) for indices in registry.conference_indices.values()
        ]

    def sample(self, rng: np.random.Generator) -> SimulationOutcome:
        """Draw one outcome.

        Args:
            rng: Random source for this trial.

        Returns:
            The sampled :class:`SimulationOutcome`.
        """
        qualified = np.zeros(self._n_teams, dtype=np.bool_)
        unfilled = 0

        for indices, weights in self._division_pools:
            pick = weighted_draw(weights, rng)
            if pick is None:
                unfilled += 1
                continue
            qualified[indices[pick]] = True

        for indices, residual in self._conference_pools:
            candidates = indices[~qualified[indices]]
            weights = residual[~qualified[indices]].copy()
            drawn = 0
            while drawn < min(self._wildcards, candidates.size):
                pick = weighted_draw(weights, rng)
                if pick is None:
                    break
                qualified[candidates[pick]] = True
                weights[pick] = 0.0
                drawn += 1
            unfilled += min(self._wildcards, candidates.size) - drawn

        return SimulationOutcome(qualified=qualified, unfilled_slots=unfilled)


def sample_outcome(registry: TeamRegistry, rng: np.random.Generator) -> SimulationOutcome:
    """Draw a single outcome from *registry* (convenience wrapper)."""
    return BracketSampler(registry).sample(rng)
