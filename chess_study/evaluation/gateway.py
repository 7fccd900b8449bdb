"""
Rate-Limited Evaluation Gateway

Every request to the primary evaluator goes through EvaluationGateway,
which owns the only RateLimiterState in the process.

Pacing rules:
    - Inside a cool-down window: fail fast with RateLimited, no request
    - Closer than min_interval to the previous request: sleep, then send
    - Throttling reply: start a cool-down of `cooldown` seconds and, on the
      first attempt of a cycle, fall back to the single-move evaluator

Time is read from an injectable clock so tests can drive it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

import chess

from chess_study.errors import EngineUnavailable, RateLimited
from chess_study.evaluation.adapters import (
    EvaluationLines,
    EvaluatorError,
    Throttled,
    UnrecognizedResponse,
    parse_primary_response,
)
from chess_study.evaluation.base import (
    CandidateMove,
    EvaluationRequest,
    FallbackEvaluator,
    PrimaryEvaluator,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 1.0
DEFAULT_COOLDOWN = 60.0

PRIMARY = "primary"
FALLBACK = "fallback"


@dataclass
class RateLimiterState:
    """Timestamps (clock seconds) of the last request and end of cool-down."""

    last_request_at: Optional[float] = None
    backoff_until: float = 0.0


class RateLimiter:
    """
    Request pacing for one evaluator.

    Attributes:
        min_interval: Minimum seconds between two requests
        cooldown: Seconds to back off after a throttling reply
        state: Mutable RateLimiterState
    """

    def __init__(self, min_interval: float = DEFAULT_MIN_INTERVAL, cooldown: float = DEFAULT_COOLDOWN):
        if min_interval < 0 or cooldown < 0:
            raise ValueError("min_interval and cooldown must be non-negative")
        self.min_interval = min_interval
        self.cooldown = cooldown
        self.state = RateLimiterState()

    def can_proceed(self, now: float) -> bool:
        """False while a cool-down window is open."""
        return now >= self.state.backoff_until

    def retry_after(self, now: float) -> float:
        """Seconds left in the cool-down window (0 if none)."""
        return max(0.0, self.state.backoff_until - now)

    def delay_before_request(self, now: float) -> float:
        """Seconds to wait so that min_interval is respected."""
        if self.state.last_request_at is None:
            return 0.0
        return max(0.0, self.state.last_request_at + self.min_interval - now)

    def record_request(self, now: float):
        self.state.last_request_at = now

    def record_throttled(self, now: float):
        self.state.backoff_until = now + self.cooldown
        logger.warning(f"Evaluator throttled us, backing off for {self.cooldown:.0f}s")


@dataclass(frozen=True)
class EvaluationResult:
    """Ranked moves and which evaluator produced them."""

    moves: Tuple[CandidateMove, ...]
    source: str = PRIMARY

    @property
    def best(self) -> Optional[CandidateMove]:
        return self.moves[0] if self.moves else None


class EvaluationGateway:
    """
    Paced access to the primary evaluator with a single-move fallback.

    Args:
        primary: Multi-variation evaluator
        fallback: Single-move evaluator used after a throttling reply
        limiter: RateLimiter (default: 1s interval, 60s cool-down)
        clock: Returns the current time in seconds
        sleep: Coroutine function used to wait out the request interval
    """

    def __init__(
        self,
        primary: PrimaryEvaluator,
        fallback: Optional[FallbackEvaluator] = None,
        limiter: Optional[RateLimiter] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.primary = primary
        self.fallback = fallback
        self.limiter = limiter or RateLimiter()
        self.clock = clock
        self.sleep = sleep

    async def evaluate(
        self,
        request: EvaluationRequest,
        attempt: int = 1,
        fallback_depth: int = 12,
    ) -> EvaluationResult:
        """
        Ranked candidate moves for a position.

        Args:
            request: Position and search parameters
            attempt: Attempt number within the caller's cycle; only the
                first attempt may fall back after throttling
            fallback_depth: Search depth for the fallback evaluator

        Raises:
            RateLimited: Inside a cool-down window, or throttled with no
                fallback available
            EngineUnavailable: Transport failure, evaluator error or an
                unrecognized reply
        """
        now = self.clock()
        if not self.limiter.can_proceed(now):
            retry_after = self.limiter.retry_after(now)
            logger.info(f"Request refused locally, cool-down has {retry_after:.1f}s left")
            raise RateLimited(retry_after)

        delay = self.limiter.delay_before_request(now)
        if delay > 0:
            logger.debug(f"Pacing request, sleeping {delay:.2f}s")
            await self.sleep(delay)

        self.limiter.record_request(self.clock())
        logger.info(f"Requesting {request.variants} lines at depth {request.depth}")
        logger.debug(f"Request payload: {request.to_payload()}")

        try:
            raw = await self.primary.analyse(request)
        except Exception as e:
            logger.error(f"Primary evaluator failed: {e}")
            raise EngineUnavailable(f"Evaluator unreachable: {e}") from e

        try:
            response = parse_primary_response(raw)
        except UnrecognizedResponse as e:
            logger.error(f"Unrecognized evaluator reply: {e}")
            raise EngineUnavailable(f"Unrecognized evaluator reply: {e}") from e

        if isinstance(response, EvaluationLines):
            if not response.moves:
                logger.warning("Evaluator returned no moves")
            return EvaluationResult(moves=response.moves, source=PRIMARY)

        if isinstance(response, EvaluatorError):
            logger.error(f"Evaluator error: {response.message}")
            raise EngineUnavailable(f"{response.message}\nFEN: {request.fen}")

        # Throttled
        now = self.clock()
        self.limiter.record_throttled(now)
        if attempt == 1 and self.fallback is not None:
            logger.info(f"Falling back to {self.fallback!r} at depth {fallback_depth}")
            return await self._evaluate_fallback(request.fen, fallback_depth)

        raise RateLimited(self.limiter.retry_after(now), response.message)

    async def _evaluate_fallback(self, fen: str, depth: int) -> EvaluationResult:
        try:
            move = await self.fallback.best_move(fen, depth)
        except Exception as e:
            logger.error(f"Fallback evaluator failed: {e}")
            raise EngineUnavailable(f"Fallback evaluator failed: {e}") from e

        moves = (move,) if move is not None else ()
        return EvaluationResult(moves=moves, source=FALLBACK)

    async def health_check(self) -> Tuple[bool, str]:
        """
        Evaluate the starting position with one variation at depth 10.

        Returns:
            (True, best move) on success, (False, error message) otherwise
        """
        request = EvaluationRequest(fen=chess.STARTING_FEN, variants=1, depth=10)
        try:
            result = await self.evaluate(request, attempt=2)
        except (EngineUnavailable, RateLimited) as e:
            return False, str(e)

        best = result.best
        return True, (best.san or best.uci) if best else "OK"
