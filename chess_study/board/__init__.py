"""
Board Module

Canonical position model and the validator that turns untrusted board
readings into it.

Key Components:
    - Square / Position: immutable board types
    - validate / normalize: run-length encoding checks and field defaults
    - from_piece_list / piece_list_from_encoding: explicit piece lists

Data Flow:
    raw FEN or piece list → validate() → ValidationResult.position → evaluation
"""

from chess_study.board.position import Position, Square
from chess_study.board.validator import (
    DiagnosticKind,
    ValidationResult,
    from_piece_list,
    infer_castling_rights,
    normalize,
    piece_list_from_encoding,
    validate,
    validate_piece_list,
)

__all__ = [
    'Position',
    'Square',
    'DiagnosticKind',
    'ValidationResult',
    'validate',
    'validate_piece_list',
    'normalize',
    'from_piece_list',
    'piece_list_from_encoding',
    'infer_castling_rights',
]
