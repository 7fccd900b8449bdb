"""
Tests for rating-based move selection.

Frequency tests use a seeded generator so results are reproducible.
"""

import numpy as np
import pytest

from chess_study.evaluation.base import CandidateMove, Score
from chess_study.selection.selector import (
    JITTER,
    MAX_RATING,
    MIN_TEMPERATURE,
    base_temperature,
    centipawn_losses,
    select_move,
)


def candidate(uci, centipawns=None, mate_in=None):
    return CandidateMove.from_uci(uci, Score(centipawns=centipawns, mate_in=mate_in))


@pytest.fixture
def opening_moves():
    """1. e4 / Nf3 / d4 from the starting position."""
    return [candidate("e2e4", 32), candidate("g1f3", 20), candidate("d2d4", 5)]


def top_move_rate(moves, rating, trials=2000, seed=1):
    rng = np.random.default_rng(seed)
    hits = sum(select_move(moves, rating, rng).is_engine_move for _ in range(trials))
    return hits / trials


class TestBaseTemperature:
    """Test the rating to temperature curve."""

    def test_decreasing(self):
        """Test that higher ratings give lower temperatures."""
        temperatures = [base_temperature(r) for r in (800, 1200, 1600, 2000, 2400)]

        assert temperatures == sorted(temperatures, reverse=True)

    def test_base_value(self):
        """Test the anchor of the curve."""
        assert base_temperature(800) == pytest.approx(200.0)

    def test_floor(self):
        """Test that the temperature never drops below the minimum."""
        assert base_temperature(MAX_RATING) == MIN_TEMPERATURE
        assert base_temperature(10000) == MIN_TEMPERATURE

    def test_rating_clamped(self):
        """Test that ratings below the supported range are clamped."""
        assert base_temperature(0) == base_temperature(400)


class TestCentipawnLosses:
    """Test loss computation."""

    def test_losses(self, opening_moves):
        """Test losses relative to the top move."""
        assert list(centipawn_losses(opening_moves)) == [0.0, 12.0, 27.0]

    def test_mate_clamped(self):
        """Test that a mate is treated as the clamped centipawn value."""
        moves = [candidate("e2e4", 100), candidate("f2f3", mate_in=-2)]

        assert list(centipawn_losses(moves)) == [0.0, 10100.0]


class TestSelectMove:
    """Test select_move behaviour."""

    def test_empty(self):
        """Test that an empty list selects nothing."""
        result = select_move([], 1500)

        assert result.selected is None
        assert result.engine_best is None

    def test_single_move(self):
        """Test that a single move is returned for every rating."""
        only = candidate("e1e2", -300)

        for rating in (800, 1600, 2400):
            result = select_move([only], rating, np.random.default_rng(0))
            assert result.selected == only
            assert result.probabilities == (1.0,)

    def test_engine_best_is_top(self, opening_moves):
        """Test that engine_best is always the first input move."""
        rng = np.random.default_rng(3)

        for _ in range(50):
            assert select_move(opening_moves, 1200, rng).engine_best == opening_moves[0]

    @pytest.mark.parametrize("rating", [800, 1200, 1600, 2000, 2400])
    def test_mate_always_played(self, rating):
        """Test that a forced mate on the top move is never passed up."""
        moves = [candidate("h5f7", mate_in=1), candidate("c4f7", 300), candidate("d2d3", 50)]
        rng = np.random.default_rng(rating)

        for _ in range(100):
            result = select_move(moves, rating, rng)
            assert result.selected == moves[0]

    def test_strong_rating_plays_engine_move(self, opening_moves):
        """Test that 2400 plays the top move more than 90% of the time."""
        assert top_move_rate(opening_moves, 2400) > 0.9

    def test_weak_rating_spreads_choices(self, opening_moves):
        """Test that 1200 plays the top move less than half the time."""
        rate = top_move_rate(opening_moves, 1200)

        assert rate < 0.5
        assert rate > 0.25

    def test_every_move_possible_at_low_rating(self, opening_moves):
        """Test that all near-equal moves get picked at a low rating."""
        rng = np.random.default_rng(5)

        picked = {select_move(opening_moves, 800, rng).selected.uci for _ in range(500)}

        assert picked == {"e2e4", "g1f3", "d2d4"}

    def test_probabilities(self, opening_moves):
        """Test that probabilities sum to one and fall with loss."""
        result = select_move(opening_moves, 1500, np.random.default_rng(0))

        assert sum(result.probabilities) == pytest.approx(1.0)
        assert list(result.probabilities) == sorted(result.probabilities, reverse=True)

    def test_temperature_jitter(self, opening_moves):
        """Test that the realized temperature stays within the jitter band and varies."""
        rng = np.random.default_rng(11)
        base = base_temperature(1500)

        temperatures = [select_move(opening_moves, 1500, rng).temperature for _ in range(50)]

        for temperature in temperatures:
            assert base * (1 - JITTER) <= temperature <= base * (1 + JITTER)
        assert len(set(temperatures)) > 1

    def test_reproducible(self, opening_moves):
        """Test that the same seed gives the same sequence of picks."""
        def picks(seed):
            rng = np.random.default_rng(seed)
            return [select_move(opening_moves, 1200, rng).selected.uci for _ in range(20)]

        assert picks(42) == picks(42)
