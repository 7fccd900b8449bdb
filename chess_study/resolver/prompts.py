"""
Instruction text for the vision collaborator.

Two variants: the initial reading, and a retry that quotes the validation
diagnostic of the failed reading together with guidance aimed at that
kind of mistake.
"""

from typing import Optional

from chess_study.board.validator import DiagnosticKind

INITIAL_INSTRUCTION = """You are a chess position analyzer. Look at this screenshot and find any chess board visible.

Your task:
1. Locate the chess board in the image (it could be from any website, app, or even a physical board)
2. Carefully identify every piece and its exact square
3. Determine whose turn it is (look for visual cues like clocks, highlights, or turn indicators)
4. Report the position twice: as FEN, and as an explicit list of pieces with their squares

PIECE IDENTIFICATION:
- White pieces: K (King), Q (Queen), R (Rook), B (Bishop), N (Knight), P (Pawn) - usually lighter colored
- Black pieces: k, q, r, b, n, p - usually darker colored
- Be careful to distinguish between Bishops and Pawns, and between Knights and other pieces

BOARD ORIENTATION:
- Standard view: White pieces start on ranks 1-2, Black on ranks 7-8
- If viewing from Black's side, mentally flip the board
- The a1 square is always dark (from White's perspective, bottom-left)

FEN FORMAT REQUIREMENTS:
The FEN string MUST have exactly 6 space-separated parts:
1. Piece placement (8 ranks separated by /, using letters for pieces and numbers 1-8 for empty squares)
2. Active color: "w" or "b"
3. Castling availability: combination of "K", "Q", "k", "q" or "-" if none
4. En passant target square: like "e3" or "-" if none
5. Halfmove clock: a number (use "0" if unknown)
6. Fullmove number: a number (use "1" if unknown)

PIECE LIST REQUIREMENTS:
- One entry per piece on the board, nothing for empty squares
- "square" is a file letter a-h followed by a rank digit 1-8
- "piece" is a single FEN letter as above

OUTPUT FORMAT (JSON only, no other text):
{
  "fen": "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1",
  "turn": "b",
  "pieces": [{"square": "e4", "piece": "P"}, {"square": "e8", "piece": "k"}],
  "description": "King's Pawn Opening after 1.e4",
  "confidence": "high"
}

If NO chess board is found:
{
  "fen": null,
  "pieces": [],
  "error": "No chess board detected in screenshot"
}

CRITICAL: Each rank in the FEN must sum to exactly 8 (pieces + empty squares).
Example: "rnbqkbnr" = 8 pieces, "4P3" = 4+1+3 = 8, "8" = 8 empty squares."""

GUIDANCE = {
    DiagnosticKind.KING_COUNT: (
        "Each side has exactly one king. Look again at every crowned piece and "
        "check its color; a queen is easily mistaken for a king."
    ),
    DiagnosticKind.PAWN_COUNT: (
        "A side can never have more than 8 pawns. Some of the pieces you read "
        "as pawns are probably bishops; compare their heights carefully."
    ),
    DiagnosticKind.PAWN_RANK: (
        "Pawns can never stand on rank 1 or rank 8. Check the board orientation "
        "and whether that piece is really a pawn."
    ),
    DiagnosticKind.PIECE_COUNT: (
        "A side can have at most 16 pieces. Check the color of each piece again."
    ),
    DiagnosticKind.RANK_SUM: (
        "Count the empty squares in every rank again, one square at a time, "
        "and make sure each rank adds up to exactly 8."
    ),
    DiagnosticKind.RANK_COUNT: (
        "The board has exactly 8 ranks separated by 7 slashes."
    ),
    DiagnosticKind.INVALID_SYMBOL: (
        "Use only the letters KQRBNP / kqrbnp and the digits 1-8 in the FEN."
    ),
    DiagnosticKind.MALFORMED_SQUARE: (
        "Square names are a file letter a-h followed by a rank digit 1-8."
    ),
    DiagnosticKind.MALFORMED_PIECE: (
        "Piece entries use a single FEN letter: KQRBNP for White, kqrbnp for Black."
    ),
    DiagnosticKind.DUPLICATE_SQUARE: (
        "Each square can hold at most one piece; list every square only once."
    ),
}

DEFAULT_GUIDANCE = "Read the board again carefully, square by square."


def initial_instruction() -> str:
    return INITIAL_INSTRUCTION


def retry_instruction(diagnostic: str, kind: Optional[DiagnosticKind] = None) -> str:
    """
    Instruction for the second reading of the same image.

    Args:
        diagnostic: Validation diagnostic of the first reading
        kind: DiagnosticKind used to pick targeted guidance
    """
    guidance = GUIDANCE.get(kind, DEFAULT_GUIDANCE)
    return (
        f"{INITIAL_INSTRUCTION}\n\n"
        "YOUR PREVIOUS READING OF THIS IMAGE WAS INVALID:\n"
        f"- {diagnostic}\n"
        f"- {guidance}\n"
        "Produce a corrected reading in the same JSON format."
    )
