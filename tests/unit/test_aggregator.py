"""Unit tests for per-batch trial aggregation."""

from __future__ import annotations

from fractions import Fraction

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from playoff_pool.simulation.aggregator import TrialAggregator, exact_win_counts, win_counts_from_ties


class TestTrialAggregator:
    @pytest.mark.smoke
    def test_single_winner_gets_full_credit(self) -> None:
        agg = TrialAggregator(3)
        agg.record(np.array([5.0, 2.0, 1.0]))
        assert agg.win_counts.tolist() == [1.0, 0.0, 0.0]
        assert agg.tie_counts[0].tolist() == [1, 0, 0]

    def test_ties_split_credit(self) -> None:
        agg = TrialAggregator(3)
        agg.record(np.array([4.0, 4.0, 1.0]))
        agg.record(np.array([2.0, 2.0, 2.0]))
        assert exact_win_counts(agg.tie_counts) == [Fraction(5, 6), Fraction(5, 6), Fraction(1, 3)]
        assert agg.tie_counts[2].tolist() == [0, 0, 1]
        np.testing.assert_allclose(agg.win_counts, [5 / 6, 5 / 6, 1 / 3])

    def test_rounding_noise_still_ties(self) -> None:
        scores = np.array([0.1 + 0.2, 0.3, 0.25])
        assert scores[0] != scores[1]
        agg = TrialAggregator(3)
        agg.record(scores)
        assert agg.win_counts.tolist() == [0.5, 0.5, 0.0]

    def test_small_real_margin_is_not_a_tie(self) -> None:
        agg = TrialAggregator(2)
        agg.record(np.array([10.001, 10.0]))
        assert agg.win_counts.tolist() == [1.0, 0.0]

    def test_bounds_track_extremes(self) -> None:
        agg = TrialAggregator(2)
        agg.record(np.array([3.0, 1.0]))
        agg.record(np.array([1.0, 6.0]))
        agg.record(np.array([2.0, 2.0]))
        assert agg.min_scores.tolist() == [1.0, 1.0]
        assert agg.max_scores.tolist() == [3.0, 6.0]
        assert agg.n_trials == 3

    def test_bounds_start_infinite(self) -> None:
        agg = TrialAggregator(2)
        assert np.isinf(agg.min_scores).all()
        assert (agg.max_scores < 0).all()

    def test_history_recorded_in_order(self) -> None:
        agg = TrialAggregator(2, record_history=True, capacity=3)
        agg.record(np.array([1.0, 2.0]))
        agg.record(np.array([3.0, 4.0]))
        history = agg.history
        assert history is not None
        assert history.tolist() == [[1.0, 2.0], [3.0, 4.0]]

    def test_history_disabled_by_default(self) -> None:
        agg = TrialAggregator(2)
        agg.record(np.array([1.0, 2.0]))
        assert agg.history is None

    def test_history_capacity_enforced(self) -> None:
        agg = TrialAggregator(1, record_history=True, capacity=1)
        agg.record(np.array([1.0]))
        with pytest.raises(ValueError, match="capacity"):
            agg.record(np.array([1.0]))

    def test_history_requires_capacity(self) -> None:
        with pytest.raises(ValueError, match="positive capacity"):
            TrialAggregator(2, record_history=True)

    def test_unfilled_slots_counted(self) -> None:
        agg = TrialAggregator(1)
        agg.record(np.array([0.0]), unfilled_slots=2)
        agg.record(np.array([0.0]))
        agg.record(np.array([0.0]), unfilled_slots=1)
        assert agg.unfilled_slots == 3
        assert agg.short_trials == 2

    def test_no_participants(self) -> None:
        agg = TrialAggregator(0)
        agg.record(np.zeros(0))
        assert agg.n_trials == 1
        assert agg.win_counts.shape == (0,)

    def test_returned_arrays_are_copies(self) -> None:
        agg = TrialAggregator(1)
        agg.record(np.array([1.0]))
        agg.tie_counts[0, 0] = 99
        assert agg.tie_counts[0, 0] == 1


def test_win_counts_from_empty_tallies() -> None:
    assert win_counts_from_ties(np.zeros((0, 0), dtype=np.int64)).shape == (0,)


@pytest.mark.property
@settings(max_examples=80, deadline=None)
@given(
    trials=st.lists(
        st.lists(st.integers(min_value=0, max_value=4), min_size=4, max_size=4),
        min_size=1,
        max_size=60,
    )
)
def test_win_counts_sum_to_trial_count(trials: list[list[int]]) -> None:
    """Fractional win counts always add up to the number of trials exactly."""
    agg = TrialAggregator(4)
    for scores in trials:
        agg.record(np.array(scores, dtype=np.float64))
    assert sum(exact_win_counts(agg.tie_counts)) == len(trials)
    assert float(agg.win_counts.sum()) == pytest.approx(len(trials))
