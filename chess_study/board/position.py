"""
Position Model

Canonical, immutable board representation shared by the validator, the
resolver and the evaluation gateway.

Board Orientation (same as FEN):
    - Row 0 = Rank 8 (Black's back rank)
    - Row 7 = Rank 1 (White's back rank)
    - Column 0 = A-file
    - Column 7 = H-file

Piece identifiers are FEN letters: uppercase for White, lowercase for
Black (P N B R Q K / p n b r q k).
"""

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import chess

PIECE_SYMBOLS = "PNBRQKpnbrqk"
WHITE = "w"
BLACK = "b"

DEFAULT_TURN = WHITE
DEFAULT_HALFMOVE = 0
DEFAULT_FULLMOVE = 1


@dataclass(frozen=True, order=True)
class Square:
    """
    A board square as explicit coordinates.

    Attributes:
        file: 0-7 for files a-h
        rank: 0-7 for ranks 1-8
    """

    file: int
    rank: int

    def __post_init__(self):
        if not (0 <= self.file <= 7 and 0 <= self.rank <= 7):
            raise ValueError(f"Square out of range: file={self.file}, rank={self.rank}")

    @classmethod
    def parse(cls, name: str) -> "Square":
        """
        Parse an algebraic square name such as "e4".

        Raises:
            ValueError: If the name is not exactly a file letter a-h
                followed by a rank digit 1-8
        """
        if not isinstance(name, str):
            raise ValueError(f"Square name must be a string, got {type(name).__name__}")

        text = name.strip().lower()
        if len(text) != 2 or text[0] not in "abcdefgh" or text[1] not in "12345678":
            raise ValueError(f"Malformed square name: {name!r}")

        return cls(file=ord(text[0]) - ord("a"), rank=int(text[1]) - 1)

    @classmethod
    def from_index(cls, square: int) -> "Square":
        """Build from a python-chess square index (0=A1, 63=H8)."""
        return cls(file=chess.square_file(square), rank=chess.square_rank(square))

    @property
    def index(self) -> int:
        """python-chess square index."""
        return chess.square(self.file, self.rank)

    @property
    def name(self) -> str:
        return chess.square_name(self.index)

    def to_coordinates(self) -> Tuple[int, int]:
        """(row, col) with row 0 = rank 8, col 0 = A-file."""
        return 7 - self.rank, self.file

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Position:
    """
    A fully specified chess position.

    Only built by the validator, so every instance satisfies the board
    invariants (8 ranks of 8 squares, one king per colour, pawn limits).

    Attributes:
        placement: Canonical run-length piece placement (FEN field 1)
        turn: Active colour, "w" or "b"
        castling: Subset of "KQkq" in that order, or "-"
        en_passant: Target square name or None
        halfmove: Halfmove clock
        fullmove: Fullmove number
    """

    placement: str
    turn: str = DEFAULT_TURN
    castling: str = "-"
    en_passant: Optional[str] = None
    halfmove: int = DEFAULT_HALFMOVE
    fullmove: int = DEFAULT_FULLMOVE

    def fen(self) -> str:
        """Full six-field FEN."""
        return (
            f"{self.placement} {self.turn} {self.castling} "
            f"{self.en_passant or '-'} {self.halfmove} {self.fullmove}"
        )

    def piece_map(self) -> Dict[Square, str]:
        """Map of occupied squares to piece symbols."""
        board = chess.BaseBoard(self.placement)
        return {
            Square.from_index(square): piece.symbol()
            for square, piece in board.piece_map().items()
        }

    def pieces(self) -> List[Tuple[Square, str]]:
        """Occupied squares as (square, symbol) pairs, sorted a1..h8."""
        return sorted(self.piece_map().items(), key=lambda item: item[0].index)

    def grid(self) -> Tuple[Tuple[Optional[str], ...], ...]:
        """8x8 grid of piece symbols (None for empty), row 0 = rank 8."""
        rows: List[List[Optional[str]]] = [[None] * 8 for _ in range(8)]
        for square, symbol in self.piece_map().items():
            row, col = square.to_coordinates()
            rows[row][col] = symbol
        return tuple(tuple(row) for row in rows)

    def same_board(self, other: "Position") -> bool:
        """True if both positions hold the same piece on every square."""
        return self.piece_map() == other.piece_map()

    def with_turn(self, turn: str) -> "Position":
        """Copy of this position with a different side to move."""
        if turn not in (WHITE, BLACK):
            raise ValueError(f"Invalid turn '{turn}', should be 'w' or 'b'")
        if turn == self.turn:
            return self
        # An en-passant square only makes sense for the original mover
        return replace(self, turn=turn, en_passant=None)

    def to_board(self) -> chess.Board:
        """python-chess Board for this position."""
        return chess.Board(self.fen())

    def __str__(self) -> str:
        return self.fen()
