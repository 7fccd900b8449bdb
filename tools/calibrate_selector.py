#!/usr/bin/env python3
"""
Move Selector Calibration

Runs many selections per rating on a fixed list of ranked moves and
reports how often the engine's top move was chosen, so the temperature
curve can be checked against the intended playing strength.

Usage:
    python tools/calibrate_selector.py [--ratings 800,1200,1600,2000,2400] [--trials 5000] [--seed 7]
"""

import sys
import argparse
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
from tqdm import tqdm

from chess_study.evaluation.base import CandidateMove, Score
from chess_study.selection.selector import base_temperature, select_move

# 1. e4 / Nf3 / d4 from the starting position, scores in centipawns
DEFAULT_MOVES = [
    ("e2e4", 32),
    ("g1f3", 20),
    ("d2d4", 5),
]


def parse_moves(spec: str) -> list[CandidateMove]:
    """Parse "e2e4:32,g1f3:20" into ranked candidate moves."""
    moves = []
    for item in spec.split(","):
        uci, centipawns = item.split(":")
        moves.append(CandidateMove.from_uci(uci.strip(), Score(centipawns=int(centipawns))))
    return moves


def calibrate(moves: list[CandidateMove], ratings: list[int], trials: int, seed: int):
    """
    Measure selection frequencies per rating.

    Args:
        moves: Ranked candidate moves, best first
        ratings: Ratings to test
        trials: Selections per rating
        seed: Seed for the random generator

    Returns:
        List of per-rating result dicts
    """
    rng = np.random.default_rng(seed)
    results = []

    for rating in ratings:
        counts = np.zeros(len(moves), dtype=np.int64)
        temperatures = []

        for _ in tqdm(range(trials), desc=f"Rating {rating}", leave=False):
            result = select_move(moves, rating, rng)
            counts[moves.index(result.selected)] += 1
            temperatures.append(result.temperature)

        results.append({
            'rating': rating,
            'base_temperature': base_temperature(rating),
            'mean_temperature': float(np.mean(temperatures)),
            'frequencies': counts / trials,
        })

    return results


def main():
    parser = argparse.ArgumentParser(description="Calibrate the move selector")
    parser.add_argument("--ratings", default="800,1200,1600,2000,2400",
                        help="Comma-separated ratings to test")
    parser.add_argument("--trials", type=int, default=5000,
                        help="Selections per rating")
    parser.add_argument("--seed", type=int, default=7,
                        help="Random seed")
    parser.add_argument("--moves", default=None,
                        help='Ranked moves as "uci:centipawns,..." (default: e4/Nf3/d4)')
    args = parser.parse_args()

    ratings = [int(r) for r in args.ratings.split(",")]
    if args.moves:
        moves = parse_moves(args.moves)
    else:
        moves = [CandidateMove.from_uci(uci, Score(centipawns=cp)) for uci, cp in DEFAULT_MOVES]

    print("=" * 80)
    print("MOVE SELECTOR CALIBRATION")
    print("=" * 80)
    print(f"Moves: {', '.join(f'{m.uci} ({m.score})' for m in moves)}")
    print(f"Trials per rating: {args.trials}")
    print("=" * 80)

    results = calibrate(moves, ratings, args.trials, args.seed)

    header = f"{'Rating':<8} {'Base T':<10} {'Mean T':<10}" + "".join(f"{m.uci:<10}" for m in moves)
    print(header)
    print("-" * len(header))
    for r in results:
        row = f"{r['rating']:<8} {r['base_temperature']:<10.1f} {r['mean_temperature']:<10.1f}"
        row += "".join(f"{f * 100:<10.1f}" for f in r['frequencies'])
        print(row)


if __name__ == "__main__":
    main()
