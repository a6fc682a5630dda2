"""Per-batch trial aggregation.

:class:`TrialAggregator` consumes one score vector per trial and keeps:

* **tie-size tallies** — ``tie_counts[p, k - 1]`` counts the trials in which
  participant *p* shared the top score with exactly *k* participants.  The
  fractional win count ``sum_k tie_counts[p, k - 1] / k`` is derived on
  demand, so tallies from different batches merge by integer addition and
  the sum of win counts over participants equals the trial count exactly;
* observed per-participant score bounds;
* optionally, the full score history (one row per trial) for percentile
  computation;
* data-quality counters for outcomes with unfilled slots.
"""

from __future__ import annotations

from fractions import Fraction

import numpy as np
import numpy.typing as npt

TIE_TOLERANCE: float = 1e-9
"""Scores within this relative (and absolute) distance of the top score tie."""


def win_counts_from_ties(tie_counts: npt.NDArray[np.int64]) -> npt.NDArray[np.float64]:
    """Return fractional win counts from tie-size tallies.

    Args:
        tie_counts: Tallies, shape ``(n_participants, n_participants)``.

    Returns:
        Win count per participant, shape ``(n_participants,)``.
    """
    if tie_counts.size == 0:
        return np.zeros(tie_counts.shape[0], dtype=np.float64)
    shares = 1.0 / np.arange(1, tie_counts.shape[1] + 1, dtype=np.float64)
    result: npt.NDArray[np.float64] = tie_counts @ shares
    return result


def exact_win_counts(tie_counts: npt.NDArray[np.int64]) -> list[Fraction]:
    """Return win counts as exact fractions (for invariant checks)."""
    return [
        sum((Fraction(int(count), k + 1) for k, count in enumerate(row) if count), start=Fraction(0))
        for row in tie_counts
    ]


class TrialAggregator:
    """Accumulates trial results for one batch.

    Args:
        n_participants: Number of participants scored per trial.
        record_history: Keep every trial's score vector.
        capacity: Maximum trials whose history can be stored; required
            (and pre-allocated) when *record_history* is set.

    Raises:
        ValueError: If *record_history* is set without a positive capacity.
    """

    def __init__(self, n_participants: int, *, record_history: bool = False, capacity: int = 0) -> None:
        if record_history and capacity <= 0:
            msg = f"record_history requires a positive capacity, got {capacity}"
            raise ValueError(msg)
        self._n = n_participants
        self._tie_counts = np.zeros((n_participants, n_participants), dtype=np.int64)
        self._min = np.full(n_participants, np.inf, dtype=np.float64)
        self._max = np.full(n_participants, -np.inf, dtype=np.float64)
        self._history: npt.NDArray[np.float64] | None = (
            np.empty((capacity, n_participants), dtype=np.float64) if record_history else None
        )
        self._n_trials = 0
        self._unfilled_slots = 0
        self._short_trials = 0

    def record(self, scores: npt.NDArray[np.float64], unfilled_slots: int = 0) -> None:
        """Fold one trial's scores into the tallies.

        Every participant within :data:`TIE_TOLERANCE` of the trial's maximum
        score is a winner, so totals summed from fractional points in a
        different order still tie; each winner's tally for the tie size is
        incremented.

        Args:
            scores: Per-participant scores, shape ``(n_participants,)``.
            unfilled_slots: Slots the sampler could not fill this trial.

        Raises:
            ValueError: If the history buffer is full.
        """
        if self._history is not None:
            if self._n_trials >= self._history.shape[0]:
                msg = f"history capacity of {self._history.shape[0]} trials exceeded"
                raise ValueError(msg)
            self._history[self._n_trials] = scores

        if self._n:
            winners = np.isclose(scores, scores.max(), rtol=TIE_TOLERANCE, atol=TIE_TOLERANCE)
            self._tie_counts[winners, int(winners.sum()) - 1] += 1
            np.minimum(self._min, scores, out=self._min)
            np.maximum(self._max, scores, out=self._max)

        self._n_trials += 1
        if unfilled_slots:
            self._unfilled_slots += unfilled_slots
            self._short_trials += 1

    @property
    def n_trials(self) -> int:
        """Return the number of recorded trials."""
        return self._n_trials

    @property
    def tie_counts(self) -> npt.NDArray[np.int64]:
        """Return a copy of the tie-size tallies."""
        return self._tie_counts.copy()

    @property
    def win_counts(self) -> npt.NDArray[np.float64]:
        """Return fractional win counts per participant."""
        return win_counts_from_ties(self._tie_counts)

    @property
    def min_scores(self) -> npt.NDArray[np.float64]:
        """Return the lowest observed score per participant (``inf`` if none)."""
        return self._min.copy()

    @property
    def max_scores(self) -> npt.NDArray[np.float64]:
        """Return the highest observed score per participant (``-inf`` if none)."""
        return self._max.copy()

    @property
    def unfilled_slots(self) -> int:
        """Return the total number of unfilled slots across trials."""
        return self._unfilled_slots

    @property
    def short_trials(self) -> int:
        """Return the number of trials with at least one unfilled slot."""
        return self._short_trials

    @property
    def history(self) -> npt.NDArray[np.float64] | None:
        """Return recorded scores, shape ``(n_trials, n_participants)``, or ``None``."""
        if self._history is None:
            return None
        return self._history[: self._n_trials]
