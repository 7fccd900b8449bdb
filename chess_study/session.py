"""
Analysis Session

Runs one capture end to end:

    page read / vision → PositionResolver → EvaluationGateway → select_move

Escaping failures never discard earlier results: the report keeps the
resolved position when evaluation fails, and the last diagnostic when
resolution fails.
"""

import asyncio
import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import numpy as np

from chess_study.config import StudyConfig
from chess_study.errors import (
    ChessStudyError,
    EngineUnavailable,
    NoCandidateAvailable,
    RateLimited,
    RecoveryExhausted,
)
from chess_study.evaluation.adapters import moves_to_table
from chess_study.evaluation.base import EvaluationRequest, FallbackEvaluator, PrimaryEvaluator
from chess_study.evaluation.gateway import EvaluationGateway, RateLimiter
from chess_study.evaluation.stockfish import StockfishEvaluator
from chess_study.resolver.resolver import PageReadFn, PositionResolver, ResolvedPosition, VisionFn
from chess_study.selection.selector import SelectionResult, select_move

logger = logging.getLogger(__name__)


def setup_logger(debug: bool = False, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure the chess_study package logger.

    Args:
        debug: If True, log at DEBUG level; otherwise INFO level
        log_file: Write to this file (truncated) instead of stderr

    Returns:
        Configured logger instance
    """
    package_logger = logging.getLogger("chess_study")
    package_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    package_logger.handlers.clear()

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, mode='w')
    else:
        handler = logging.StreamHandler(sys.stderr)

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    )
    handler.setFormatter(formatter)
    package_logger.addHandler(handler)

    return package_logger


@dataclass
class AnalysisReport:
    """Everything one capture produced, including partial results."""

    resolved: Optional[ResolvedPosition] = None
    evaluation_source: Optional[str] = None
    selection: Optional[SelectionResult] = None
    error: Optional[ChessStudyError] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and self.selection is not None

    def to_dict(self) -> Dict[str, Any]:
        """Plain data for display."""
        data: Dict[str, Any] = {"diagnostics": list(self.diagnostics)}

        if self.resolved is not None:
            data.update(
                fen=self.resolved.fen,
                turn=self.resolved.position.turn,
                source=self.resolved.source_used.value,
                recovery=self.resolved.recovery_method.value if self.resolved.recovery_method else None,
                turnAdjusted=self.resolved.turn_adjusted,
            )

        if self.selection is not None:
            data.update(
                evaluationSource=self.evaluation_source,
                moves=moves_to_table(list(self.selection.all_moves)),
                selected=self.selection.selected.uci if self.selection.selected else None,
                engineBest=self.selection.engine_best.uci if self.selection.engine_best else None,
                temperature=self.selection.temperature,
            )

        if self.error is not None:
            data["error"] = str(self.error)
            if isinstance(self.error, RateLimited):
                data["retryAfter"] = self.error.retry_after_seconds

        return data


class AnalysisSession:
    """
    Long-lived analysis pipeline.

    Owns the evaluation gateway (and so the rate limiter state) for the
    lifetime of the process, plus the selection random generator.
    """

    def __init__(
        self,
        primary: PrimaryEvaluator,
        fallback: Optional[FallbackEvaluator] = None,
        config: Optional[StudyConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize analysis session.

        Args:
            primary: Multi-variation evaluator
            fallback: Single-move evaluator used while throttled
            config: Session settings (default: StudyConfig())
            clock: Time source for the rate limiter
            sleep: Coroutine function used for request pacing
        """
        self.config = config or StudyConfig()
        self.logger = setup_logger(debug=self.config.debug, log_file=self.config.log_file)

        limiter = RateLimiter(
            min_interval=self.config.min_request_interval,
            cooldown=self.config.throttle_cooldown,
        )
        self.gateway = EvaluationGateway(primary, fallback, limiter, clock=clock, sleep=sleep)
        self.resolver = PositionResolver(known_turn=self.config.known_turn)
        self.rng = np.random.default_rng(self.config.random_seed)

        logger.info(f"Session ready: {self.config!r}")

    @classmethod
    def with_local_fallback(cls, primary: PrimaryEvaluator, config: Optional[StudyConfig] = None, **kwargs) -> "AnalysisSession":
        """Session using local Stockfish as fallback, if it can be found."""
        config = config or StudyConfig()
        try:
            fallback = StockfishEvaluator(stockfish_path=config.stockfish_path)
        except FileNotFoundError as e:
            logger.warning(f"No fallback evaluator: {e}")
            fallback = None
        return cls(primary, fallback, config, **kwargs)

    async def analyze(self, page_read: Optional[PageReadFn], vision: VisionFn) -> AnalysisReport:
        """
        Resolve, evaluate and select for one capture.

        Args:
            page_read: Page-reading collaborator, or None when not applicable
            vision: Vision collaborator (instruction text -> reply)

        Returns:
            AnalysisReport; `error` is set when a stage failed, with every
            earlier result kept
        """
        report = AnalysisReport()
        start_time = time.time()

        try:
            report.resolved = await self.resolver.resolve(page_read, vision)
        except RecoveryExhausted as e:
            logger.error(f"Position recovery failed: {e.diagnostic}")
            report.error = e
            report.diagnostics.append(e.diagnostic)
            return report
        except NoCandidateAvailable as e:
            logger.error(f"No position found: {e}")
            report.error = e
            report.diagnostics.append(str(e))
            return report

        report.diagnostics.extend(report.resolved.diagnostics)
        fen = report.resolved.fen
        logger.info(f"Position: {fen}")

        request = EvaluationRequest(
            fen=fen,
            variants=self.config.num_moves,
            depth=self.config.depth,
            max_thinking_time=self.config.max_thinking_time,
        )

        try:
            result = await self.gateway.evaluate(request, fallback_depth=self.config.fallback_depth)
        except (EngineUnavailable, RateLimited) as e:
            logger.error(f"Evaluation failed: {e}")
            report.error = e
            return report

        report.evaluation_source = result.source
        report.selection = select_move(result.moves, self.config.target_rating, self.rng)

        elapsed_ms = int((time.time() - start_time) * 1000)
        selected = report.selection.selected
        logger.info(
            f"Analysis complete: selected={selected.uci if selected else 'None'}, "
            f"source={result.source}, time={elapsed_ms}ms"
        )
        return report
