"""Percentile and mode statistics from a recorded score history.

Percentiles use the nearest-rank-below rule ``sorted[floor(p * N)]`` (index
clamped to ``N - 1``) rather than interpolation, so every reported value is a
score that actually occurred.  The mode is multi-valued when several scores
share the top frequency.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

#: Reported percentile keys (in percent).
PERCENTILE_KEYS: tuple[int, ...] = (5, 25, 50, 75, 95)


@dataclass(frozen=True)
class ScoreDistribution:
    """Distribution summary of one participant's simulated scores.

    Attributes:
        n_samples: Number of scores summarised.
        minimum: Lowest score.
        maximum: Highest score.
        percentiles: Mapping of percentile key → score for
            :data:`PERCENTILE_KEYS`.
        mode: All scores with the highest frequency, ascending.
        mode_frequency: Occurrences of each modal score.
    """

    n_samples: int
    minimum: float
    maximum: float
    percentiles: dict[int, float]
    mode: tuple[float, ...]
    mode_frequency: int


def percentile_index(percent: int, n_samples: int) -> int:
    """Return ``floor(percent / 100 * n_samples)`` clamped to ``n_samples - 1``."""
    return min((percent * n_samples) // 100, n_samples - 1)


def compute_score_distribution(
    scores: npt.NDArray[np.float64] | Sequence[float],
    percentile_keys: Sequence[int] = PERCENTILE_KEYS,
) -> ScoreDistribution | None:
    """Summarise one participant's score history.

    Args:
        scores: Per-trial scores.
        percentile_keys: Percentiles to report, in percent.

    Returns:
        The :class:`ScoreDistribution`, or ``None`` for an empty history.
    """
    values = np.sort(np.asarray(scores, dtype=np.float64))
    n = int(values.size)
    if n == 0:
        return None

    percentiles = {k: float(values[percentile_index(k, n)]) for k in percentile_keys}

    unique, counts = np.unique(values, return_counts=True)
    top = int(counts.max())
    mode = tuple(float(v) for v in unique[counts == top])

    return ScoreDistribution(
        n_samples=n,
        minimum=float(values[0]),
        maximum=float(values[-1]),
        percentiles=percentiles,
        mode=mode,
        mode_frequency=top,
    )


def compute_participant_distributions(
    participants: Sequence[str],
    history: npt.NDArray[np.float64],
) -> dict[str, ScoreDistribution | None]:
    """Summarise every participant's column of a score history.

    Args:
        participants: Participant identifiers, aligned with history columns.
        history: Score history, shape ``(n_trials, n_participants)``.

    Returns:
        Mapping of participant → distribution (``None`` for no trials).
    """
    return {participant: compute_score_distribution(history[:, i]) for i, participant in enumerate(participants)}
