"""
Evaluation Module

Ranked candidate moves from external evaluators, behind a rate-limited
gateway.

Key Components:
    - Score / CandidateMove: evaluator-independent move types
    - adapters: strict parsing of evaluator and vision replies
    - EvaluationGateway: request pacing, cool-down and fallback
    - StockfishEvaluator: local single-move fallback
"""

from chess_study.evaluation.base import (
    CandidateMove,
    EvaluationRequest,
    FallbackEvaluator,
    PrimaryEvaluator,
    RawResponse,
    Score,
)
from chess_study.evaluation.gateway import (
    EvaluationGateway,
    EvaluationResult,
    RateLimiter,
    RateLimiterState,
)
from chess_study.evaluation.stockfish import StockfishEvaluator

__all__ = [
    'CandidateMove',
    'EvaluationRequest',
    'FallbackEvaluator',
    'PrimaryEvaluator',
    'RawResponse',
    'Score',
    'EvaluationGateway',
    'EvaluationResult',
    'RateLimiter',
    'RateLimiterState',
    'StockfishEvaluator',
]
