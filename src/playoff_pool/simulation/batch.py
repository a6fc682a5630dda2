"""Batch worker and its dispatch / result messages.

A batch is the unit of work handed to one worker: run ``n_trials`` trials
with an independent random stream and return the aggregated tallies.  Workers
never share state; :class:`BatchResult` values are folded into
:class:`RunTotals` by the controller alone.  :func:`execute_batch` is the
entry point dispatched through joblib; it reports a worker fault as a
:class:`BatchFailure` value so the controller can re-dispatch the batch.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

from playoff_pool.registry.team_registry import TeamRegistry
from playoff_pool.simulation.aggregator import TrialAggregator, win_counts_from_ties
from playoff_pool.simulation.distribution import ScoreDistribution, compute_participant_distributions
from playoff_pool.simulation.sampler import BracketSampler
from playoff_pool.simulation.scoring import ScoringEvaluator


@dataclass(frozen=True)
class BatchRequest:
    """Dispatch message for one batch.

    Attributes:
        batch_id: Dispatch-order identifier, unique within a run.
        n_trials: Trials to run.
        seed: Seed sequence for this batch's random stream.
        compute_percentiles: Record score histories and summarise them.
        attempt: Zero-based dispatch attempt (incremented on re-dispatch).
    """

    batch_id: int
    n_trials: int
    seed: np.random.SeedSequence
    compute_percentiles: bool = False
    attempt: int = 0


@dataclass(frozen=True)
class BatchResult:
    """Result message for one completed batch.

    Attributes:
        batch_id: Identifier of the originating :class:`BatchRequest`.
        n_trials: Trials completed.
        tie_counts: Tie-size tallies, shape ``(n_participants, n_participants)``.
        min_scores: Lowest observed score per participant.
        max_scores: Highest observed score per participant.
        unfilled_slots: Unfilled slots summed over trials.
        short_trials: Trials with at least one unfilled slot.
        distributions: Per-participant score distributions when requested.
        elapsed_seconds: Wall-clock time spent in the worker.
    """

    batch_id: int
    n_trials: int
    tie_counts: npt.NDArray[np.int64]
    min_scores: npt.NDArray[np.float64]
    max_scores: npt.NDArray[np.float64]
    unfilled_slots: int
    short_trials: int
    distributions: dict[str, ScoreDistribution | None] | None
    elapsed_seconds: float


@dataclass(frozen=True)
class BatchFailure:
    """A batch whose worker raised instead of returning a result."""

    request: BatchRequest
    error: str


BatchFn = Callable[[TeamRegistry, BatchRequest], BatchResult]


def run_batch(registry: TeamRegistry, request: BatchRequest) -> BatchResult:
    """Run one batch of trials.

    Args:
        registry: Team registry snapshot.
        request: Batch dispatch message.

    Returns:
        The aggregated :class:`BatchResult`.
    """
    start = time.perf_counter()
    rng = np.random.default_rng(request.seed)
    sampler = BracketSampler(registry)
    evaluator = ScoringEvaluator.from_registry(registry)
    aggregator = TrialAggregator(
        registry.n_participants,
        record_history=request.compute_percentiles,
        capacity=request.n_trials,
    )

    for _ in range(request.n_trials):
        outcome = sampler.sample(rng)
        aggregator.record(evaluator.evaluate(outcome.qualified), outcome.unfilled_slots)

    distributions = None
    history = aggregator.history
    if history is not None:
        distributions = compute_participant_distributions(registry.participants, history)

    return BatchResult(
        batch_id=request.batch_id,
        n_trials=aggregator.n_trials,
        tie_counts=aggregator.tie_counts,
        min_scores=aggregator.min_scores,
        max_scores=aggregator.max_scores,
        unfilled_slots=aggregator.unfilled_slots,
        short_trials=aggregator.short_trials,
        distributions=distributions,
        elapsed_seconds=time.perf_counter() - start,
    )


def execute_batch(
    registry: TeamRegistry,
    request: BatchRequest,
    batch_fn: BatchFn = run_batch,
) -> BatchResult | BatchFailure:
    """Run *batch_fn* and convert a raised exception into a :class:`BatchFailure`."""
    try:
        return batch_fn(registry, request)
    except Exception as exc:  # noqa: BLE001
        return BatchFailure(request=request, error=f"{type(exc).__name__}: {exc}")


@dataclass(frozen=True)
class RunTotals:
    """Running totals merged from batch results.

    Merging adds integer tallies and takes element-wise bounds, so it is
    commutative and associative; the merged win counts do not depend on
    arrival order or batch sizes.
    """

    n_trials: int
    tie_counts: npt.NDArray[np.int64]
    min_scores: npt.NDArray[np.float64]
    max_scores: npt.NDArray[np.float64]
    unfilled_slots: int = 0
    short_trials: int = 0

    @classmethod
    def empty(cls, n_participants: int) -> RunTotals:
        """Return totals with no trials."""
        return cls(
            n_trials=0,
            tie_counts=np.zeros((n_participants, n_participants), dtype=np.int64),
            min_scores=np.full(n_participants, np.inf, dtype=np.float64),
            max_scores=np.full(n_participants, -np.inf, dtype=np.float64),
        )

    @classmethod
    def from_result(cls, result: BatchResult) -> RunTotals:
        """Return the totals contributed by a single batch."""
        return cls(
            n_trials=result.n_trials,
            tie_counts=result.tie_counts,
            min_scores=result.min_scores,
            max_scores=result.max_scores,
            unfilled_slots=result.unfilled_slots,
            short_trials=result.short_trials,
        )

    def merge(self, other: RunTotals) -> RunTotals:
        """Return the combination of these totals and *other*."""
        return RunTotals(
            n_trials=self.n_trials + other.n_trials,
            tie_counts=self.tie_counts + other.tie_counts,
            min_scores=np.minimum(self.min_scores, other.min_scores),
            max_scores=np.maximum(self.max_scores, other.max_scores),
            unfilled_slots=self.unfilled_slots + other.unfilled_slots,
            short_trials=self.short_trials + other.short_trials,
        )

    @property
    def win_counts(self) -> npt.NDArray[np.float64]:
        """Return fractional win counts per participant."""
        return win_counts_from_ties(self.tie_counts)
