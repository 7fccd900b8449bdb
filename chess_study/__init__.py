"""
Chess Study

Recognizes a chess position from imperfect, multi-source input and
recommends a move that is strong but plays like a human of a chosen
rating.

## Architecture

1. **board**: Position model and validation
   - Run-length (FEN) and explicit piece-list encodings
   - Rule-ordered diagnostics for rejected readings

2. **resolver**: Multi-source position resolution
   - Page read first, then one vision call yielding two independent fields
   - Cross-check, piece-list recovery and one diagnostic-guided retry

3. **evaluation**: Engine-ranked candidate moves
   - Strict adapters for evaluator and vision replies
   - Rate-limited gateway with cool-down and a local Stockfish fallback

4. **selection**: Skill-calibrated move sampling
   - Softmax over centipawn loss, temperature driven by rating

5. **session**: Resolve → evaluate → select for one capture

## Quick Start

```python
import numpy as np
from chess_study.selection import select_move

result = select_move(ranked_moves, target_rating=1500, rng=np.random.default_rng(7))
print(f"Play {result.selected.uci} (engine: {result.engine_best.uci})")
```

## Version

0.1.0
"""

__version__ = "0.1.0"
__license__ = "MIT"

from chess_study.errors import (
    ChessStudyError,
    EngineUnavailable,
    NoCandidateAvailable,
    PositionInvalid,
    RateLimited,
    RecoveryExhausted,
)
from chess_study.resolver import ResolvedPosition, resolve_position
from chess_study.selection import SelectionResult, select_move

__all__ = [
    'ChessStudyError',
    'EngineUnavailable',
    'NoCandidateAvailable',
    'PositionInvalid',
    'RateLimited',
    'RecoveryExhausted',
    'ResolvedPosition',
    'resolve_position',
    'SelectionResult',
    'select_move',
]
