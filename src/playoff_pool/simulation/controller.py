"""Adaptive batch scheduling and result merging.

:class:`ConvergenceController` drives a run from a small initial batch size
towards the configured trial target.  Work proceeds in rounds: every worker
slot receives at most one batch per round, batches run concurrently through
``joblib.Parallel``, and the single controlling thread folds their results
into :class:`~playoff_pool.simulation.batch.RunTotals`.

Scheduling policy (per slot)::

    next_size = min(2 * previous_size, ceil(outstanding / n_workers))

where *outstanding* is the target minus completed trials minus the trials
being retried, fixed at the start of the round.  Sizes are further clipped
so a round never schedules past the target.  Slot 0's first batch is the
dedicated percentile batch: it records full score histories and is the only
source of distribution statistics.

A batch whose worker raises is re-dispatched with the same seed, on the same
slot, in the next round.  A worker process that dies outright breaks the
pool; the whole round is then re-dispatched on a new pool.  After
``max_retries`` failed attempts the run aborts with :class:`SimulationError`.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass

import joblib  # type: ignore[import-untyped]
import numpy as np
from joblib.externals.loky.process_executor import TerminatedWorkerError  # type: ignore[import-untyped]

from playoff_pool.registry.team_registry import TeamRegistry
from playoff_pool.simulation.batch import (
    BatchFailure,
    BatchFn,
    BatchRequest,
    BatchResult,
    RunTotals,
    execute_batch,
    run_batch,
)
from playoff_pool.simulation.config import SimulationConfig
from playoff_pool.simulation.distribution import ScoreDistribution
from playoff_pool.utils.logger import VERBOSE

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class SimulationError(RuntimeError):
    """Raised when a batch keeps failing after all retries."""


def plan_batch_size(
    previous: int | None,
    *,
    initial: int,
    outstanding: int,
    n_workers: int,
) -> int:
    """Return the next batch size for one worker slot.

    Args:
        previous: The slot's previous batch size (``None`` before its first).
        initial: Initial batch size.
        outstanding: Trials outstanding at the start of the round.
        n_workers: Size of the worker pool.

    Returns:
        ``min(2 * previous, ceil(outstanding / n_workers))`` (``initial``
        in place of the doubled size on the first dispatch); ``0`` when
        nothing is outstanding.
    """
    if outstanding <= 0:
        return 0
    proposed = initial if previous is None else 2 * previous
    return max(1, min(proposed, math.ceil(outstanding / n_workers)))


@dataclass(frozen=True)
class ParticipantStats:
    """Merged simulation statistics for one participant.

    Attributes:
        participant: Participant identifier.
        win_count: Fractional number of trials won (ties split credit).
        completed_trials: Trials completed in the run.
        min_observed: Lowest simulated score (``None`` without trials).
        max_observed: Highest simulated score (``None`` without trials).
        distribution: Statistics from the percentile batch, if any.
    """

    participant: str
    win_count: float
    completed_trials: int
    min_observed: float | None
    max_observed: float | None
    distribution: ScoreDistribution | None

    @property
    def win_probability(self) -> float:
        """Return ``win_count / completed_trials`` (0.0 without trials)."""
        if self.completed_trials == 0:
            return 0.0
        return self.win_count / self.completed_trials


@dataclass(frozen=True)
class RunResult:
    """Outcome of a full simulation run.

    Attributes:
        participants: Participant identifiers, aligned with totals.
        totals: Merged tallies of every completed batch.
        distributions: Per-participant statistics from the percentile
            batch, or ``None`` when disabled.
        entropy: Root seed entropy; replaying with ``seed=entropy`` and the
            same config reproduces the run.
        seed_schedule: ``(batch_id, spawn_key)`` for every dispatched batch.
        n_batches: Batches merged.
        n_retries: Re-dispatches caused by worker failures.
        elapsed_seconds: Wall-clock time of the run.
    """

    participants: tuple[str, ...]
    totals: RunTotals
    distributions: dict[str, ScoreDistribution | None] | None
    entropy: int
    seed_schedule: tuple[tuple[int, tuple[int, ...]], ...]
    n_batches: int
    n_retries: int
    elapsed_seconds: float

    @property
    def completed_trials(self) -> int:
        """Return the total number of completed trials."""
        return self.totals.n_trials

    def win_probabilities(self) -> dict[str, float]:
        """Return ``{participant → win probability}``."""
        if self.completed_trials == 0:
            return {p: 0.0 for p in self.participants}
        counts = self.totals.win_counts
        return {p: float(counts[i]) / self.completed_trials for i, p in enumerate(self.participants)}

    def participant_stats(self) -> dict[str, ParticipantStats]:
        """Return merged :class:`ParticipantStats` per participant."""
        counts = self.totals.win_counts
        stats: dict[str, ParticipantStats] = {}
        for i, participant in enumerate(self.participants):
            observed = self.completed_trials > 0
            stats[participant] = ParticipantStats(
                participant=participant,
                win_count=float(counts[i]),
                completed_trials=self.completed_trials,
                min_observed=float(self.totals.min_scores[i]) if observed else None,
                max_observed=float(self.totals.max_scores[i]) if observed else None,
                distribution=(self.distributions or {}).get(participant),
            )
        return stats


class ConvergenceController:
    """Schedules batches until the trial target is reached.

    Args:
        registry: Team registry shared by every batch.
        config: Run configuration (defaults to :class:`SimulationConfig`).
        batch_fn: Worker function; must be picklable for process backends.
        progress_callback: Called with ``(completed, target)`` after each
            round.
    """

    def __init__(
        self,
        registry: TeamRegistry,
        config: SimulationConfig | None = None,
        *,
        batch_fn: BatchFn = run_batch,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or SimulationConfig()
        self._batch_fn = batch_fn
        self._progress = progress_callback
        self._n_workers = self._config.resolved_workers

    @property
    def n_workers(self) -> int:
        """Return the size of the worker pool."""
        return self._n_workers

    def _dispatch(self, requests: list[BatchRequest]) -> list[BatchResult | BatchFailure]:
        """Run one round of batches on a fresh ``joblib.Parallel`` call.

        A worker process that dies takes the pool down with it; every batch
        of the round is then reported as failed so it is re-dispatched.
        """
        if self._config.backend == "sequential" or self._n_workers == 1:
            parallel = joblib.Parallel(n_jobs=1, backend="sequential")
        else:
            parallel = joblib.Parallel(n_jobs=self._n_workers, backend=self._config.backend)
        try:
            outcomes: list[BatchResult | BatchFailure] = parallel(
                joblib.delayed(execute_batch)(self._registry, request, self._batch_fn) for request in requests
            )
        except (TerminatedWorkerError, BrokenProcessPool) as exc:
            error = f"worker pool lost ({type(exc).__name__}: {exc})"
            return [BatchFailure(request=request, error=error) for request in requests]
        return outcomes

    def run(self) -> RunResult:  # noqa: C901
        """Execute the run.

        Returns:
            The merged :class:`RunResult`.

        Raises:
            SimulationError: If a batch fails more than ``max_retries`` times.
        """
        config = self._config
        target = config.target_trials
        n_workers = self._n_workers
        start = time.perf_counter()

        root = np.random.SeedSequence(config.seed)
        totals = RunTotals.empty(self._registry.n_participants)
        distributions: dict[str, ScoreDistribution | None] | None = None
        slot_sizes: list[int | None] = [None] * n_workers
        slot_of: dict[int, int] = {}
        retries: list[BatchRequest] = []
        schedule: list[tuple[int, tuple[int, ...]]] = []
        percentile_pending = config.percentile_trials > 0
        next_id = 0
        n_batches = 0
        n_retries = 0
        round_index = 0

        logger.info(
            "Simulating %d trials for %d participants on %d worker(s)",
            target,
            self._registry.n_participants,
            n_workers,
        )

        while totals.n_trials < target or retries:
            # one batch per slot per round, so last round's retries never collide
            placed = {slot_of[request.batch_id]: request for request in retries}
            retries = []

            outstanding = target - totals.n_trials - sum(r.n_trials for r in placed.values())
            remaining = outstanding

            requests = list(placed.values())
            for slot in range(n_workers):
                if slot in placed or remaining <= 0:
                    continue
                if percentile_pending:
                    size = min(config.percentile_trials, remaining)
                    flagged = True
                    percentile_pending = False
                else:
                    share = plan_batch_size(
                        slot_sizes[slot],
                        initial=config.initial_batch_size,
                        outstanding=outstanding,
                        n_workers=n_workers,
                    )
                    size = min(share, remaining)
                    flagged = False
                seed = root.spawn(1)[0]
                schedule.append((next_id, tuple(seed.spawn_key)))
                requests.append(BatchRequest(batch_id=next_id, n_trials=size, seed=seed, compute_percentiles=flagged))
                slot_sizes[slot] = size
                slot_of[next_id] = slot
                next_id += 1
                remaining -= size

            if not requests:
                break

            outcomes = self._dispatch(requests)
            for outcome in outcomes:
                if not isinstance(outcome, BatchFailure):
                    continue
                failed = outcome.request
                if failed.attempt >= config.max_retries:
                    msg = (
                        f"Batch {failed.batch_id} ({failed.n_trials} trials) failed "
                        f"{failed.attempt + 1} time(s); last error: {outcome.error}"
                    )
                    raise SimulationError(msg)
                logger.warning(
                    "Batch %d failed (attempt %d): %s; re-dispatching",
                    failed.batch_id,
                    failed.attempt + 1,
                    outcome.error,
                )
                retries.append(
                    BatchRequest(
                        batch_id=failed.batch_id,
                        n_trials=failed.n_trials,
                        seed=failed.seed,
                        compute_percentiles=failed.compute_percentiles,
                        attempt=failed.attempt + 1,
                    )
                )
                n_retries += 1

            results = sorted((o for o in outcomes if isinstance(o, BatchResult)), key=lambda r: r.batch_id)
            for result in results:
                totals = totals.merge(RunTotals.from_result(result))
                logger.debug(
                    "Batch %d merged: %d trials in %.3fs", result.batch_id, result.n_trials, result.elapsed_seconds
                )
                if result.distributions is not None:
                    distributions = result.distributions
                n_batches += 1

            round_index += 1
            logger.log(
                VERBOSE,
                "Round %d: %d batch(es) merged, %d/%d trials complete",
                round_index,
                len(results),
                totals.n_trials,
                target,
            )
            if self._progress is not None:
                self._progress(min(totals.n_trials, target), target)

        elapsed = time.perf_counter() - start
        if totals.short_trials:
            logger.warning(
                "%d of %d trials left %d qualifier slot(s) unfilled in total; "
                "check for divisions or conferences with zero probability mass",
                totals.short_trials,
                totals.n_trials,
                totals.unfilled_slots,
            )
        logger.info("Simulation complete: %d trials in %d batch(es), %.2fs", totals.n_trials, n_batches, elapsed)

        return RunResult(
            participants=self._registry.participants,
            totals=totals,
            distributions=distributions,
            entropy=int(root.entropy),  # type: ignore[arg-type]
            seed_schedule=tuple(schedule),
            n_batches=n_batches,
            n_retries=n_retries,
            elapsed_seconds=elapsed,
        )


def run_simulation(
    registry: TeamRegistry,
    config: SimulationConfig | None = None,
    *,
    progress_callback: ProgressCallback | None = None,
) -> RunResult:
    """Run a full simulation with the default batch worker."""
    return ConvergenceController(registry, config, progress_callback=progress_callback).run()
