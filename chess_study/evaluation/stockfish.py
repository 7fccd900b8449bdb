"""
Local Stockfish as the fallback evaluator.

Runs the Stockfish binary over UCI at a fixed depth and reports its best
move with the score and principal variation of the last info line. Used
by the gateway when the primary evaluator throttles.
"""

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Optional

import chess

from chess_study.evaluation.base import CandidateMove, FallbackEvaluator, Score

logger = logging.getLogger(__name__)


def parse_uci_output(lines: Iterable[str]) -> Optional[CandidateMove]:
    """
    Best move from the output of a UCI `go` command.

    Args:
        lines: Engine output lines up to and including "bestmove"

    Returns:
        CandidateMove, or None for "bestmove (none)" (no legal moves)

    Raises:
        ValueError: If no bestmove line or no score was seen
    """
    centipawn_score = None
    mate_in = None
    depth = 0
    pv = ()

    for line in lines:
        line = line.strip()

        if line.startswith("info") and "score" in line:
            parts = line.split()

            if "depth" in parts:
                depth_idx = parts.index("depth") + 1
                depth = int(parts[depth_idx])

            score_idx = parts.index("score") + 1
            score_type = parts[score_idx]

            if score_type == "cp":
                centipawn_score = int(parts[score_idx + 1])
                mate_in = None
            elif score_type == "mate":
                mate_in = int(parts[score_idx + 1])
                centipawn_score = None

            if "pv" in parts:
                pv = tuple(parts[parts.index("pv") + 1:])

        if line.startswith("bestmove"):
            parts = line.split()
            if len(parts) < 2 or parts[1] == "(none)":
                return None
            if centipawn_score is None and mate_in is None:
                raise ValueError("Engine reported a best move without a score")

            score = Score(centipawns=centipawn_score, mate_in=mate_in)
            if not pv or pv[0] != parts[1]:
                pv = (parts[1],)
            return CandidateMove.from_uci(parts[1], score, pv=pv, depth=depth)

    raise ValueError("Engine output ended without a bestmove line")


class StockfishEvaluator(FallbackEvaluator):
    """Single best move from a local Stockfish binary."""

    def __init__(self, stockfish_path: Optional[str] = None, threads: int = 1):
        """
        Initialize Stockfish evaluator.

        Args:
            stockfish_path: Path to Stockfish binary (None = auto-detect)
            threads: Number of threads for Stockfish

        Raises:
            FileNotFoundError: If Stockfish binary not found
        """
        self.threads = threads

        if stockfish_path is None:
            stockfish_path = self._find_stockfish()

        self.stockfish_path = stockfish_path

        if not Path(stockfish_path).exists():
            raise FileNotFoundError(
                f"Stockfish binary not found at: {stockfish_path}\n"
                "Install with: brew install stockfish (macOS) or apt install stockfish (Linux)"
            )

        logger.info(f"Initialized Stockfish fallback: {stockfish_path}")

    def _find_stockfish(self) -> str:
        """
        Auto-detect Stockfish binary location.

        Raises:
            FileNotFoundError: If Stockfish not found
        """
        candidates = [
            "stockfish",
            "/usr/local/bin/stockfish",
            "/usr/bin/stockfish",
            "/usr/games/stockfish",
            "/opt/homebrew/bin/stockfish",
        ]

        for candidate in candidates:
            path = shutil.which(candidate)
            if path:
                return path

        raise FileNotFoundError(
            "Stockfish not found. Install with: brew install stockfish (macOS) "
            "or apt install stockfish (Linux)"
        )

    def search(self, fen: str, depth: int) -> Optional[CandidateMove]:
        """
        Blocking search of one position.

        Args:
            fen: Full FEN of the position
            depth: Search depth

        Returns:
            Best move, or None if the side to move has no legal moves
        """
        chess.Board(fen)  # reject malformed FEN before starting a process

        process = subprocess.Popen(
            [self.stockfish_path],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
        )

        commands = [
            "uci",
            f"setoption name Threads value {self.threads}",
            "isready",
            f"position fen {fen}",
            f"go depth {depth}",
        ]

        try:
            for cmd in commands:
                process.stdin.write(cmd + "\n")
                process.stdin.flush()

            output = []
            for line in process.stdout:
                output.append(line)
                if line.startswith("bestmove"):
                    break

            process.stdin.write("quit\n")
            process.stdin.flush()
            process.wait(timeout=1.0)
        finally:
            if process.poll() is None:
                process.kill()

        move = parse_uci_output(output)
        logger.debug(f"Stockfish depth {depth}: {move}")
        return move

    async def best_move(self, fen: str, depth: int) -> Optional[CandidateMove]:
        return await asyncio.to_thread(self.search, fen, depth)

    def __repr__(self) -> str:
        return f"StockfishEvaluator({self.stockfish_path})"
