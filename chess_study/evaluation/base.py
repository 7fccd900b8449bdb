"""
Move Evaluation Types and Collaborator Interfaces

The engine never evaluates moves itself. It consumes ranked candidate
moves from an external evaluator through one of two interfaces:

    - PrimaryEvaluator: multi-variation analysis, may throttle
    - FallbackEvaluator: single best move at a fixed search depth

Convention:
    - Scores are stored in centipawns (1/100th of a pawn)
    - A mate score replaces the centipawn score; positive = side to move mates
    - Candidate moves are ranked best-first by the evaluator
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import chess

from chess_study.board.position import Square

# Wire limits of the primary evaluator
MAX_DEPTH = 18
MAX_VARIANTS = 5
DEFAULT_THINKING_TIME_MS = 100

MATE_CLAMP = 10000


@dataclass(frozen=True)
class Score:
    """Evaluation of a move: centipawns, or a forced mate distance."""

    centipawns: Optional[int] = None  # None if mate score
    mate_in: Optional[int] = None  # None if centipawn score

    def __post_init__(self):
        if (self.centipawns is None) == (self.mate_in is None):
            raise ValueError("Score needs exactly one of centipawns or mate_in")

    @classmethod
    def from_pawns(cls, pawns: float) -> "Score":
        return cls(centipawns=int(round(pawns * 100)))

    @property
    def is_mate(self) -> bool:
        """Check if evaluation is a mate score."""
        return self.mate_in is not None

    def to_centipawns(self, clamp: int = MATE_CLAMP) -> int:
        """
        Convert evaluation to centipawns with clamping.

        Mate scores are converted to ±clamp.

        Args:
            clamp: Maximum absolute centipawn value

        Returns:
            Centipawn evaluation
        """
        if self.mate_in is not None:
            return clamp if self.mate_in > 0 else -clamp
        return max(-clamp, min(clamp, self.centipawns))

    def __str__(self) -> str:
        if self.mate_in is not None:
            return f"#{self.mate_in}"
        return f"{self.centipawns / 100:+.2f}"


@dataclass(frozen=True)
class CandidateMove:
    """
    One engine-ranked move.

    Attributes:
        from_square: Origin square
        to_square: Destination square
        score: Evaluation after this move
        promotion: Promotion piece letter ("q", "r", "b", "n") or None
        pv: Principal variation as UCI strings, starting with this move
        san: Standard algebraic notation, if the evaluator supplied it
        depth: Search depth reported by the evaluator
        win_chance: Win percentage reported by the evaluator
    """

    from_square: Square
    to_square: Square
    score: Score
    promotion: Optional[str] = None
    pv: Tuple[str, ...] = ()
    san: Optional[str] = None
    depth: int = 0
    win_chance: Optional[float] = None

    @classmethod
    def from_uci(cls, uci: str, score: Score, **kwargs) -> "CandidateMove":
        """
        Build from a UCI move string such as "e2e4" or "e7e8q".

        Raises:
            ValueError: If the string is not a valid UCI move
        """
        move = chess.Move.from_uci(uci)
        promotion = chess.piece_symbol(move.promotion) if move.promotion else None
        return cls(
            from_square=Square.from_index(move.from_square),
            to_square=Square.from_index(move.to_square),
            score=score,
            promotion=promotion,
            **kwargs,
        )

    @property
    def uci(self) -> str:
        return f"{self.from_square.name}{self.to_square.name}{self.promotion or ''}"

    @property
    def move(self) -> chess.Move:
        """python-chess Move."""
        return chess.Move.from_uci(self.uci)

    @property
    def principal_variation(self) -> Tuple[Tuple[Square, Square], ...]:
        """The PV as (from, to) square pairs."""
        pairs = []
        for uci in self.pv:
            move = chess.Move.from_uci(uci)
            pairs.append((Square.from_index(move.from_square), Square.from_index(move.to_square)))
        return tuple(pairs)

    def __str__(self) -> str:
        return f"{self.san or self.uci} ({self.score})"


@dataclass(frozen=True)
class EvaluationRequest:
    """Request for the primary evaluator."""

    fen: str
    variants: int = MAX_VARIANTS
    depth: int = MAX_DEPTH
    max_thinking_time: int = DEFAULT_THINKING_TIME_MS

    def to_payload(self) -> Dict[str, Any]:
        """JSON body, with depth and variation count capped to the wire limits."""
        return {
            "fen": self.fen,
            "depth": min(self.depth, MAX_DEPTH),
            "variants": max(1, min(self.variants, MAX_VARIANTS)),
            "maxThinkingTime": self.max_thinking_time,
        }


@dataclass(frozen=True)
class RawResponse:
    """Undecoded reply of the primary evaluator: HTTP status plus JSON body."""

    status: int
    body: Any


class PrimaryEvaluator(ABC):
    """
    Multi-variation move evaluator (a network service in production).

    Implementations raise any exception on transport failure; the gateway
    reports it as EngineUnavailable.
    """

    @abstractmethod
    async def analyse(self, request: EvaluationRequest) -> RawResponse:
        pass


class FallbackEvaluator(ABC):
    """Lower-fidelity evaluator returning only a single best move."""

    @abstractmethod
    async def best_move(self, fen: str, depth: int) -> Optional[CandidateMove]:
        """
        Best move for the side to move.

        Returns:
            CandidateMove, or None if the position has no legal moves
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
