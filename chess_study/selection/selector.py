"""
Human-Plausible Move Selection

Picks one move among the evaluator's ranked candidates with a softmax over
centipawn loss. The softmax temperature falls as the target rating rises,
so strong settings nearly always play the engine move while weaker ones
spread their choices over near-equal alternatives.

    loss_i   = |score_top - score_i|               (centipawns, top move = 0)
    T        = base_temperature(rating) * U(0.85, 1.15)
    p_i      = exp(-loss_i / T) / sum_j exp(-loss_j / T)

Forced mates are always played, and single-move lists are passed through.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from chess_study.evaluation.base import CandidateMove

logger = logging.getLogger(__name__)

MIN_RATING = 400
MAX_RATING = 3200

# Temperature curve: TEMPERATURE_AT_BASE at BASE_RATING, divided by e every
# RATING_SCALE points, never below MIN_TEMPERATURE
BASE_RATING = 800
TEMPERATURE_AT_BASE = 200.0
RATING_SCALE = 400.0
MIN_TEMPERATURE = 2.0

JITTER = 0.15


@dataclass(frozen=True)
class SelectionResult:
    """
    Outcome of one selection.

    Attributes:
        selected: Move to recommend (None for an empty input)
        engine_best: Evaluator's top move (None for an empty input)
        all_moves: The full ranked input
        temperature: Realized sampling temperature (0.0 when no sampling)
        probabilities: Selection probability of each move in all_moves
    """

    selected: Optional[CandidateMove]
    engine_best: Optional[CandidateMove]
    all_moves: Tuple[CandidateMove, ...] = ()
    temperature: float = 0.0
    probabilities: Tuple[float, ...] = ()

    @property
    def is_engine_move(self) -> bool:
        return self.selected is not None and self.selected == self.engine_best


def base_temperature(target_rating: int) -> float:
    """
    Sampling temperature for a rating, before jitter.

    Decreasing in rating, floored at MIN_TEMPERATURE.
    """
    rating = max(MIN_RATING, min(MAX_RATING, target_rating))
    temperature = TEMPERATURE_AT_BASE * math.exp(-(rating - BASE_RATING) / RATING_SCALE)
    return max(MIN_TEMPERATURE, temperature)


def centipawn_losses(ranked_moves: Sequence[CandidateMove]) -> np.ndarray:
    """Loss of every move relative to the first one (first = 0)."""
    top = ranked_moves[0].score.to_centipawns()
    return np.array(
        [abs(top - move.score.to_centipawns()) for move in ranked_moves],
        dtype=np.float64,
    )


def softmax_probabilities(losses: np.ndarray, temperature: float) -> np.ndarray:
    """Normalized exp(-loss / temperature)."""
    weights = np.exp(-(losses - losses.min()) / temperature)
    return weights / weights.sum()


def select_move(
    ranked_moves: Sequence[CandidateMove],
    target_rating: int,
    rng: Optional[np.random.Generator] = None,
) -> SelectionResult:
    """
    Choose a move the way a player of `target_rating` plausibly would.

    Args:
        ranked_moves: Evaluator candidates, best first
        target_rating: Skill rating to imitate (typically 800-2400)
        rng: Random source; a fresh unseeded generator when None

    Returns:
        SelectionResult; selected is None only for an empty input
    """
    moves = tuple(ranked_moves)

    if not moves:
        return SelectionResult(selected=None, engine_best=None)

    best = moves[0]

    if len(moves) == 1:
        return SelectionResult(selected=best, engine_best=best, all_moves=moves, probabilities=(1.0,))

    if best.score.is_mate:
        logger.debug(f"Forced mate {best.score}, playing {best.uci}")
        certain = (1.0,) + (0.0,) * (len(moves) - 1)
        return SelectionResult(selected=best, engine_best=best, all_moves=moves, probabilities=certain)

    if rng is None:
        rng = np.random.default_rng()

    temperature = base_temperature(target_rating) * rng.uniform(1.0 - JITTER, 1.0 + JITTER)
    probabilities = softmax_probabilities(centipawn_losses(moves), temperature)

    draw = rng.random()
    index = len(moves) - 1
    cumulative = 0.0
    for i, p in enumerate(probabilities):
        cumulative += p
        if draw < cumulative:
            index = i
            break

    selected = moves[index]
    logger.debug(
        f"Rating {target_rating}, T={temperature:.1f}: picked {selected.uci} "
        f"(p={probabilities[index]:.3f}, engine {best.uci})"
    )

    return SelectionResult(
        selected=selected,
        engine_best=best,
        all_moves=moves,
        temperature=float(temperature),
        probabilities=tuple(float(p) for p in probabilities),
    )
