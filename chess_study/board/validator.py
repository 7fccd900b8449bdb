"""
Board encoding validation and normalization.

Checks are applied in a fixed order and the first failing rule wins, so
every rejection carries exactly one diagnostic:

    1. Exactly 8 ranks
    2. Every rank sums to 8 squares (piece letters + empty-run digits)
    3. Only the 12 piece letters and digits 1-8
    4. Exactly one king per colour
    5. At most 8 pawns per colour, no pawn on rank 1 or 8
    6. At most 16 pieces per colour

Fields after the placement are optional. Missing or garbled fields are
filled in by normalization (see _build_position).
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import chess

from chess_study.board.position import (
    BLACK,
    DEFAULT_FULLMOVE,
    DEFAULT_HALFMOVE,
    DEFAULT_TURN,
    PIECE_SYMBOLS,
    WHITE,
    Position,
    Square,
)
from chess_study.errors import PositionInvalid

logger = logging.getLogger(__name__)

EMPTY_RUN_DIGITS = "12345678"
MAX_PAWNS = 8
MAX_PIECES = 16

EN_PASSANT_PATTERN = re.compile(r"^[a-h][36]$")

# Castling right -> (king square, rook square, king symbol, rook symbol)
CASTLING_HOME_SQUARES = {
    "K": (chess.E1, chess.H1, "K", "R"),
    "Q": (chess.E1, chess.A1, "K", "R"),
    "k": (chess.E8, chess.H8, "k", "r"),
    "q": (chess.E8, chess.A8, "k", "r"),
}


class DiagnosticKind(Enum):
    """Which rule rejected a candidate."""

    EMPTY = "empty"
    UNPARSEABLE = "unparseable"
    RANK_COUNT = "rank_count"
    RANK_SUM = "rank_sum"
    INVALID_SYMBOL = "invalid_symbol"
    KING_COUNT = "king_count"
    PAWN_COUNT = "pawn_count"
    PAWN_RANK = "pawn_rank"
    PIECE_COUNT = "piece_count"
    MALFORMED_SQUARE = "malformed_square"
    MALFORMED_PIECE = "malformed_piece"
    DUPLICATE_SQUARE = "duplicate_square"


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating one board encoding or piece list.

    Attributes:
        valid: Whether every rule passed
        reason: Diagnostic of the first failing rule (None when valid)
        kind: DiagnosticKind of the first failing rule (None when valid)
        position: Normalized position (None when invalid)
    """

    valid: bool
    reason: Optional[str] = None
    kind: Optional[DiagnosticKind] = None
    position: Optional[Position] = None

    @classmethod
    def failure(cls, kind: DiagnosticKind, reason: str) -> "ValidationResult":
        logger.debug(f"Rejected ({kind.value}): {reason}")
        return cls(valid=False, reason=reason, kind=kind)

    def raise_for_invalid(self) -> Position:
        """Return the position, or raise PositionInvalid with the diagnostic."""
        if not self.valid or self.position is None:
            raise PositionInvalid(self.reason or "Invalid position", self.kind)
        return self.position


def _count_squares(rank: str) -> int:
    return sum(int(ch) if ch in "0123456789" else 1 for ch in rank)


def _expand_rank(rank: str) -> List[Optional[str]]:
    squares: List[Optional[str]] = []
    for ch in rank:
        if ch in EMPTY_RUN_DIGITS:
            squares.extend([None] * int(ch))
        else:
            squares.append(ch)
    return squares


def _canonical_rank(rank: str) -> str:
    """Rank text with adjacent empty runs merged ("44" -> "8")."""
    text = ""
    empty = 0
    for symbol in _expand_rank(rank):
        if symbol is None:
            empty += 1
            continue
        if empty:
            text += str(empty)
            empty = 0
        text += symbol
    if empty:
        text += str(empty)
    return text


def validate(encoding: Optional[str]) -> ValidationResult:
    """
    Validate a run-length board encoding.

    Args:
        encoding: Piece placement, optionally followed by the remaining
            FEN fields

    Returns:
        ValidationResult; when valid, `position` holds the normalized
        Position
    """
    if not isinstance(encoding, str) or not encoding.strip():
        return ValidationResult.failure(DiagnosticKind.EMPTY, "Board encoding is empty")

    fields = encoding.split()
    placement = fields[0]
    ranks = placement.split("/")

    if len(ranks) != 8:
        return ValidationResult.failure(
            DiagnosticKind.RANK_COUNT, f"Board should have 8 ranks, got {len(ranks)}"
        )

    for i, rank in enumerate(ranks):
        squares = _count_squares(rank)
        if squares != 8:
            return ValidationResult.failure(
                DiagnosticKind.RANK_SUM,
                f"Rank {8 - i} has {squares} squares, should have 8",
            )

    for i, rank in enumerate(ranks):
        for ch in rank:
            if ch not in PIECE_SYMBOLS and ch not in EMPTY_RUN_DIGITS:
                return ValidationResult.failure(
                    DiagnosticKind.INVALID_SYMBOL,
                    f"Invalid character '{ch}' in rank {8 - i}",
                )

    counts = Counter(ch for ch in placement if ch in PIECE_SYMBOLS)

    for symbol, colour in (("K", "white"), ("k", "black")):
        if counts[symbol] != 1:
            return ValidationResult.failure(
                DiagnosticKind.KING_COUNT,
                f"Must have exactly 1 {colour} king, found {counts[symbol]}",
            )

    for symbol, colour in (("P", "White"), ("p", "Black")):
        if counts[symbol] > MAX_PAWNS:
            return ValidationResult.failure(
                DiagnosticKind.PAWN_COUNT,
                f"{colour} has {counts[symbol]} pawns, maximum is {MAX_PAWNS}",
            )

    # ranks[0] is rank 8, ranks[7] is rank 1
    for row in (0, 7):
        for col, symbol in enumerate(_expand_rank(ranks[row])):
            if symbol in ("P", "p"):
                square = chess.square_name(chess.square(col, 7 - row))
                return ValidationResult.failure(
                    DiagnosticKind.PAWN_RANK,
                    f"Pawn on rank {8 - row} at {square} is impossible",
                )

    for symbols, colour in (("PNBRQK", "White"), ("pnbrqk", "Black")):
        total = sum(counts[s] for s in symbols)
        if total > MAX_PIECES:
            return ValidationResult.failure(
                DiagnosticKind.PIECE_COUNT,
                f"{colour} has {total} pieces, maximum is {MAX_PIECES}",
            )

    # python-chess rejects split empty runs such as "44", so rebuild every rank
    placement = "/".join(_canonical_rank(rank) for rank in ranks)
    return ValidationResult(valid=True, position=_build_position(placement, fields[1:]))


def infer_castling_rights(placement: str) -> str:
    """
    Guess castling rights from king and rook placement.

    A right is granted only when the king and the matching rook both sit on
    their starting squares. Move history is unknown, so a king or rook that
    moved and came back is still granted the right.

    Args:
        placement: Valid run-length piece placement

    Returns:
        Subset of "KQkq" in canonical order, or "-"
    """
    board = chess.BaseBoard(placement)
    rights = ""
    for right, (king_sq, rook_sq, king, rook) in CASTLING_HOME_SQUARES.items():
        king_piece = board.piece_at(king_sq)
        rook_piece = board.piece_at(rook_sq)
        if (
            king_piece is not None
            and rook_piece is not None
            and king_piece.symbol() == king
            and rook_piece.symbol() == rook
        ):
            rights += right
    return rights or "-"


def _build_position(placement: str, fields: Sequence[str]) -> Position:
    if len(fields) > 0 and fields[0] in (WHITE, BLACK):
        turn = fields[0]
    else:
        turn = DEFAULT_TURN
        logger.debug(f"Active colour missing or invalid, defaulting to '{DEFAULT_TURN}'")

    possible = infer_castling_rights(placement)
    if len(fields) > 1:
        # Keep only declared rights that the placement still allows
        declared = fields[1]
        castling = "".join(r for r in "KQkq" if r in declared and r in possible) or "-"
    else:
        castling = possible
        logger.debug(f"Castling field missing, inferred '{castling}' from placement")

    en_passant = None
    if len(fields) > 2 and EN_PASSANT_PATTERN.match(fields[2]):
        # White to move captures onto rank 6, Black onto rank 3
        if fields[2][1] == ("6" if turn == WHITE else "3"):
            en_passant = fields[2]

    halfmove = int(fields[3]) if len(fields) > 3 and fields[3].isdecimal() else DEFAULT_HALFMOVE
    fullmove = int(fields[4]) if len(fields) > 4 and fields[4].isdecimal() else DEFAULT_FULLMOVE
    if fullmove < 1:
        fullmove = DEFAULT_FULLMOVE

    return Position(
        placement=placement,
        turn=turn,
        castling=castling,
        en_passant=en_passant,
        halfmove=halfmove,
        fullmove=fullmove,
    )


def normalize(encoding: str) -> str:
    """
    Canonical six-field FEN for a board encoding.

    Fills a missing active colour with "w", infers castling rights from the
    placement when the field is absent, defaults en passant to "-" and the
    move counters to 0 and 1.

    Raises:
        PositionInvalid: If the encoding fails validation
    """
    return validate(encoding).raise_for_invalid().fen()


def _piece_entries(pieces: Iterable[Any]) -> Iterable[Tuple[Any, Any]]:
    for entry in pieces:
        if isinstance(entry, dict):
            yield entry.get("square"), entry.get("piece")
        elif isinstance(entry, (tuple, list)) and len(entry) == 2:
            yield entry[0], entry[1]
        else:
            yield None, entry


def validate_piece_list(
    pieces: Optional[Iterable[Any]], active_color: Optional[str] = None
) -> ValidationResult:
    """
    Validate an explicit piece list.

    Args:
        pieces: Entries of {"square": "e4", "piece": "P"} or
            (square, piece) pairs, where square is a name or Square
        active_color: Side to move ("w"/"b"); defaults to "w"

    Returns:
        ValidationResult for the board built from the list
    """
    entries = list(_piece_entries(pieces or []))
    if not entries:
        return ValidationResult.failure(DiagnosticKind.EMPTY, "Piece list is empty")

    board = chess.BaseBoard.empty()
    seen: Dict[Square, str] = {}

    for raw_square, symbol in entries:
        if isinstance(raw_square, Square):
            square = raw_square
        else:
            try:
                square = Square.parse(raw_square)
            except ValueError:
                return ValidationResult.failure(
                    DiagnosticKind.MALFORMED_SQUARE, f"Malformed square name {raw_square!r}"
                )

        if not isinstance(symbol, str) or len(symbol) != 1 or symbol not in PIECE_SYMBOLS:
            return ValidationResult.failure(
                DiagnosticKind.MALFORMED_PIECE,
                f"Invalid piece {symbol!r} on {square.name}",
            )

        if square in seen:
            return ValidationResult.failure(
                DiagnosticKind.DUPLICATE_SQUARE,
                f"Square {square.name} listed more than once",
            )

        seen[square] = symbol
        board.set_piece_at(square.index, chess.Piece.from_symbol(symbol))

    turn = active_color if active_color in (WHITE, BLACK) else DEFAULT_TURN
    return validate(f"{board.board_fen()} {turn}")


def from_piece_list(pieces: Iterable[Any], active_color: Optional[str] = None) -> str:
    """
    Board encoding for an explicit piece list.

    Unlike the run-length form, every piece carries its own coordinates,
    so a miscounted empty run cannot shift pieces along a rank.

    Returns:
        Normalized six-field FEN

    Raises:
        PositionInvalid: On malformed or duplicate squares, unknown piece
            letters, or any board rule violation
    """
    return validate_piece_list(pieces, active_color).raise_for_invalid().fen()


def piece_list_from_encoding(encoding: str) -> List[Dict[str, str]]:
    """
    Explicit piece list for a board encoding, ordered a1..h8.

    Raises:
        PositionInvalid: If the encoding fails validation
    """
    position = validate(encoding).raise_for_invalid()
    return [
        {"square": square.name, "piece": symbol}
        for square, symbol in position.pieces()
    ]
