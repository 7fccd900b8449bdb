"""
Response adapters for external collaborators.

Each collaborator reply is mapped to exactly one tagged variant. Shapes
that are not recognised raise UnrecognizedResponse instead of being
guessed at.

Primary evaluator reply (JSON):
    - list of line objects, or a single line object
    - line: {"type": "move"|"bestmove"|"info", "from": "e2", "to": "e4",
             "promotion": null, "eval": 0.32, "mate": null,
             "continuationArr": [...], "san": "e4", "depth": 18,
             "winChance": 54.1}
    - error: {"type": "ERROR...", "text": "..."} or {"error": "..."}
    - HTTP 429 or {"type": "RATE_LIMIT"}: throttled

Vision reply: free text containing one JSON object
    {"fen": str|null, "turn": "w"|"b", "pieces": [{"square", "piece"}],
     "error": str, "description": str, "confidence": str}
"""

import json
import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple, Union

from chess_study.board.position import BLACK, WHITE, Square
from chess_study.evaluation.base import CandidateMove, RawResponse, Score

logger = logging.getLogger(__name__)

THROTTLED_STATUS = 429
LINE_TYPES = ("move", "bestmove", "info")


class UnrecognizedResponse(ValueError):
    """A collaborator reply did not match its expected shape."""


@dataclass(frozen=True)
class EvaluationLines:
    """Ranked candidate moves, best first."""

    moves: Tuple[CandidateMove, ...]


@dataclass(frozen=True)
class Throttled:
    """The evaluator asked us to slow down."""

    message: str = "Too many requests"


@dataclass(frozen=True)
class EvaluatorError:
    """The evaluator answered with an error."""

    message: str


PrimaryResponse = Union[EvaluationLines, Throttled, EvaluatorError]


def _parse_score(line: Dict[str, Any]) -> Score:
    mate = line.get("mate")
    if mate is not None:
        if isinstance(mate, bool) or not isinstance(mate, (int, float)):
            raise UnrecognizedResponse(f"Invalid mate value: {mate!r}")
        if isinstance(mate, float) and not math.isfinite(mate):
            raise UnrecognizedResponse(f"Invalid mate value: {mate!r}")
        return Score(mate_in=int(mate))

    centipawns = line.get("centipawns")
    if centipawns is not None:
        try:
            return Score(centipawns=int(centipawns))
        except (TypeError, ValueError, OverflowError):
            raise UnrecognizedResponse(f"Invalid centipawns value: {centipawns!r}")

    pawns = line.get("eval")
    if isinstance(pawns, (int, float)) and not isinstance(pawns, bool):
        # json.loads accepts NaN and Infinity
        try:
            if math.isfinite(pawns):
                return Score.from_pawns(pawns)
        except OverflowError:
            pass
        raise UnrecognizedResponse(f"Invalid eval value: {pawns!r}")

    raise UnrecognizedResponse("Move line has no mate, centipawns or eval field")


def parse_move_line(line: Any) -> CandidateMove:
    """
    Map one evaluator line object to a CandidateMove.

    Raises:
        UnrecognizedResponse: If the object lacks usable move or score fields
    """
    if not isinstance(line, dict):
        raise UnrecognizedResponse(f"Expected a move object, got {type(line).__name__}")

    score = _parse_score(line)

    continuation = line.get("continuationArr") or []
    if not isinstance(continuation, list) or not all(isinstance(m, str) for m in continuation):
        raise UnrecognizedResponse("continuationArr must be a list of UCI strings")

    depth = line.get("depth")
    win_chance = line.get("winChance")
    extras = {
        "pv": tuple(continuation),
        "san": line.get("san") if isinstance(line.get("san"), str) else None,
        "depth": depth if isinstance(depth, int) else 0,
        "win_chance": float(win_chance) if isinstance(win_chance, (int, float)) else None,
    }

    try:
        if "from" in line and "to" in line:
            promotion = line.get("promotion")
            if promotion is not None:
                if not isinstance(promotion, str) or promotion.lower() not in ("q", "r", "b", "n"):
                    raise UnrecognizedResponse(f"Invalid promotion piece: {promotion!r}")
                promotion = promotion.lower()
            move = CandidateMove(
                from_square=Square.parse(line["from"]),
                to_square=Square.parse(line["to"]),
                score=score,
                promotion=promotion,
                **extras,
            )
        elif isinstance(line.get("move"), str):
            move = CandidateMove.from_uci(line["move"], score, **extras)
        else:
            raise UnrecognizedResponse("Move line has neither from/to nor move field")
    except UnrecognizedResponse:
        raise
    except ValueError as e:
        raise UnrecognizedResponse(f"Malformed move in line: {e}")

    if not move.pv:
        move = replace(move, pv=(move.uci,))

    return move


def _error_text(body: Dict[str, Any]) -> Optional[str]:
    kind = body.get("type")
    if isinstance(kind, str) and "ERROR" in kind.upper():
        return str(body.get("text") or kind)
    if body.get("error"):
        return str(body["error"])
    return None


def parse_primary_response(response: RawResponse) -> PrimaryResponse:
    """
    Classify a primary evaluator reply.

    Returns:
        EvaluationLines, Throttled or EvaluatorError

    Raises:
        UnrecognizedResponse: If the body matches none of the known shapes
    """
    body = response.body

    if response.status == THROTTLED_STATUS:
        text = body.get("text") if isinstance(body, dict) else None
        return Throttled(message=str(text or "Too many requests"))

    if isinstance(body, dict):
        if str(body.get("type", "")).upper() == "RATE_LIMIT":
            return Throttled(message=str(body.get("text") or "Too many requests"))
        error = _error_text(body)
        if error is not None:
            return EvaluatorError(message=error)

    if response.status >= 400:
        return EvaluatorError(message=f"Evaluator error: HTTP {response.status}")

    if isinstance(body, dict):
        if body.get("type") not in LINE_TYPES:
            raise UnrecognizedResponse(f"Unknown response type: {body.get('type')!r}")
        lines = [body]
    elif isinstance(body, list):
        lines = body
    else:
        raise UnrecognizedResponse(f"Unexpected response body: {type(body).__name__}")

    moves = tuple(parse_move_line(line) for line in lines)
    logger.debug(f"Parsed {len(moves)} candidate moves")
    return EvaluationLines(moves=moves)


@dataclass(frozen=True)
class VisionReading:
    """
    Decoded vision reply.

    Attributes:
        fen: Run-length board string (None if the model gave none)
        turn: Claimed side to move ("w"/"b") or None
        pieces: Explicit piece list entries, unvalidated
        error: Error text reported by the model
        description: Free-text description of the position
        confidence: Model's self-reported confidence
    """

    fen: Optional[str] = None
    turn: Optional[str] = None
    pieces: Tuple[Any, ...] = ()
    error: Optional[str] = None
    description: Optional[str] = None
    confidence: Optional[str] = None

    @property
    def found_board(self) -> bool:
        return bool(self.fen) or bool(self.pieces)


def _extract_json_object(text: str) -> Dict[str, Any]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise UnrecognizedResponse("No JSON object in vision reply")
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise UnrecognizedResponse(f"Vision reply is not valid JSON: {e.msg}")
    if not isinstance(data, dict):
        raise UnrecognizedResponse("Vision reply JSON is not an object")
    return data


def parse_vision_response(reply: Union[str, Dict[str, Any]]) -> VisionReading:
    """
    Decode a vision reply into a VisionReading.

    Args:
        reply: Raw model text, or an already decoded JSON object

    Raises:
        UnrecognizedResponse: If no JSON object can be decoded, or a field
            has the wrong type
    """
    data = reply if isinstance(reply, dict) else _extract_json_object(str(reply))

    fen = data.get("fen")
    if fen is not None and not isinstance(fen, str):
        raise UnrecognizedResponse(f"fen must be a string or null, got {type(fen).__name__}")

    turn = data.get("turn")
    if turn not in (WHITE, BLACK):
        turn = None

    pieces = data.get("pieces")
    if pieces is None:
        pieces = []
    if not isinstance(pieces, list):
        raise UnrecognizedResponse(f"pieces must be a list, got {type(pieces).__name__}")

    error = data.get("error")
    return VisionReading(
        fen=(fen.strip() or None) if fen else None,
        turn=turn,
        pieces=tuple(pieces),
        error=str(error) if error else None,
        description=data.get("description") if isinstance(data.get("description"), str) else None,
        confidence=data.get("confidence") if isinstance(data.get("confidence"), str) else None,
    )


def moves_to_table(moves: List[CandidateMove]) -> List[Dict[str, Any]]:
    """Plain dicts for display or JSON output."""
    return [
        {
            "move": move.uci,
            "san": move.san,
            "evaluation": str(move.score),
            "depth": move.depth,
            "continuation": list(move.pv),
            "winChance": move.win_chance,
        }
        for move in moves
    ]
