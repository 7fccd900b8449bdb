"""
Multi-Source Position Resolver

Reconciles untrusted readings of the same board into one legal position.

State flow:
    Start → page read → resolved
                      ↘ vision (attempt 1) → validate both fields → resolved
                                           ↘ vision (attempt 2, with diagnostic) → resolved | failed

Decision table for one vision reply (FEN field vs piece list):
    - both valid, same board        → FEN field, no recovery tag
    - both valid, boards differ     → piece list, "piece-list-preferred"
    - only FEN field valid          → FEN field
    - only piece list valid         → piece list, "piece-list-only"
    - neither valid                 → retry once, then RecoveryExhausted

Explicit coordinates are preferred over the run-length string because
miscounted empty runs are by far the most common reading error.
"""

import inspect
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

from chess_study.board.position import BLACK, WHITE, Position
from chess_study.board.validator import (
    DiagnosticKind,
    ValidationResult,
    validate,
    validate_piece_list,
)
from chess_study.errors import NoCandidateAvailable, RecoveryExhausted
from chess_study.evaluation.adapters import (
    UnrecognizedResponse,
    parse_vision_response,
)
from chess_study.resolver.prompts import initial_instruction, retry_instruction

logger = logging.getLogger(__name__)

MAX_VISION_ATTEMPTS = 2

# Lower value = more useful for a targeted retry
DIAGNOSTIC_PRIORITY = {
    DiagnosticKind.KING_COUNT: 0,
    DiagnosticKind.PAWN_COUNT: 0,
    DiagnosticKind.PAWN_RANK: 1,
    DiagnosticKind.PIECE_COUNT: 1,
    DiagnosticKind.DUPLICATE_SQUARE: 2,
    DiagnosticKind.MALFORMED_SQUARE: 2,
    DiagnosticKind.MALFORMED_PIECE: 2,
    DiagnosticKind.INVALID_SYMBOL: 3,
    DiagnosticKind.RANK_SUM: 4,
    DiagnosticKind.RANK_COUNT: 4,
    DiagnosticKind.UNPARSEABLE: 5,
    DiagnosticKind.EMPTY: 6,
}


class SourceKind(Enum):
    PAGE_READ = "page-read"
    VISION_FEN_FIELD = "vision-fen-field"
    VISION_PIECE_LIST = "vision-piece-list"


class RecoveryMethod(Enum):
    PIECE_LIST_PREFERRED = "piece-list-preferred"
    PIECE_LIST_ONLY = "piece-list-only"
    RETRY = "retry"


@dataclass(frozen=True)
class PageReading:
    """What the page-reading collaborator returns when it can read the board."""

    board_encoding: Optional[str] = None
    piece_list: Tuple[Any, ...] = ()
    active_color_guess: Optional[str] = None
    provenance: str = ""


@dataclass(frozen=True)
class Candidate:
    """
    One unvalidated reading of the position.

    Attributes:
        source_kind: Which source/field produced it
        payload: Run-length board string, or a tuple of piece entries
        declared_turn: Side to move claimed by the source, if any
    """

    source_kind: SourceKind
    payload: Union[str, Tuple[Any, ...], None]
    declared_turn: Optional[str] = None

    def validate(self) -> ValidationResult:
        if isinstance(self.payload, tuple):
            if not self.payload:
                return ValidationResult.failure(
                    DiagnosticKind.EMPTY, f"{self.source_kind.value}: piece list is empty"
                )
            return validate_piece_list(self.payload, self.declared_turn)

        encoding = self.payload
        if isinstance(encoding, str) and len(encoding.split()) == 1 and self.declared_turn:
            encoding = f"{encoding} {self.declared_turn}"
        return validate(encoding)


@dataclass(frozen=True)
class ResolvedPosition:
    """
    The single position chosen for one capture.

    Attributes:
        position: Normalized, valid position
        source_used: Source of the chosen candidate
        recovery_method: How it was recovered, None for a clean reading
        turn_adjusted: True if the side to move was overridden
        attempts: Number of vision calls made (0 for page reads)
        diagnostics: Validation diagnostics of rejected candidates
    """

    position: Position
    source_used: SourceKind
    recovery_method: Optional[RecoveryMethod] = None
    turn_adjusted: bool = False
    attempts: int = 0
    diagnostics: Tuple[str, ...] = ()

    @property
    def fen(self) -> str:
        return self.position.fen()


PageReadFn = Callable[[], Union[Optional[PageReading], Awaitable[Optional[PageReading]]]]
VisionFn = Callable[[str], Awaitable[Union[str, dict]]]


def _turn_field(encoding: Optional[str]) -> Optional[str]:
    fields = encoding.split() if encoding else []
    if len(fields) > 1 and fields[1] in (WHITE, BLACK):
        return fields[1]
    return None


def _most_informative(*results: ValidationResult) -> ValidationResult:
    """Failure whose diagnostic gives the most targeted retry guidance."""
    failures = [r for r in results if not r.valid]
    return min(failures, key=lambda r: DIAGNOSTIC_PRIORITY.get(r.kind, 99))


class PositionResolver:
    """
    Resolves one capture into a ResolvedPosition.

    Args:
        known_turn: Side the caller is interested in ("w"/"b"); overrides
            whatever side to move the sources report
    """

    def __init__(self, known_turn: Optional[str] = None):
        if known_turn not in (None, WHITE, BLACK):
            raise ValueError(f"Invalid turn '{known_turn}', should be 'w' or 'b'")
        self.known_turn = known_turn

    async def resolve(self, page_read: Optional[PageReadFn], vision: VisionFn) -> ResolvedPosition:
        """
        Resolve the position, page read first, then vision.

        Args:
            page_read: Page-reading collaborator, or None when it does not
                apply to the current context
            vision: Coroutine function taking the instruction text and
                returning the model reply (text or decoded JSON)

        Raises:
            NoCandidateAvailable: Vision reported (with an error text) that it
                saw no chess board
            RecoveryExhausted: Both vision readings were invalid
        """
        diagnostics: List[str] = []

        resolved = await self._try_page_read(page_read, diagnostics)
        if resolved is None:
            resolved = await self._try_vision(vision, diagnostics)

        return self._reconcile_turn(resolved)

    async def _try_page_read(
        self, page_read: Optional[PageReadFn], diagnostics: List[str]
    ) -> Optional[ResolvedPosition]:
        if page_read is None:
            logger.debug("Page reading not applicable, going straight to vision")
            return None

        try:
            reading = page_read()
            if inspect.isawaitable(reading):
                reading = await reading
        except Exception as e:
            logger.warning(f"Page reading failed, falling back to vision: {e}")
            diagnostics.append(f"page-read: {e}")
            return None

        if reading is None:
            logger.debug("Page reading returned nothing")
            return None

        candidates = []
        if reading.board_encoding:
            candidates.append(Candidate(SourceKind.PAGE_READ, reading.board_encoding, reading.active_color_guess))
        if reading.piece_list:
            candidates.append(Candidate(SourceKind.PAGE_READ, tuple(reading.piece_list), reading.active_color_guess))

        for candidate in candidates:
            result = candidate.validate()
            if result.valid:
                logger.info(f"Resolved from page read ({reading.provenance or 'unknown'})")
                return ResolvedPosition(
                    position=result.position,
                    source_used=SourceKind.PAGE_READ,
                    diagnostics=tuple(diagnostics),
                )
            logger.warning(f"Page read candidate rejected: {result.reason}")
            diagnostics.append(f"page-read: {result.reason}")

        return None

    async def _read_vision(self, vision: VisionFn, instruction: str, attempt: int):
        logger.info(f"Vision attempt {attempt}")
        reply = await vision(instruction)
        logger.debug(f"Vision reply: {reply}")

        try:
            reading = parse_vision_response(reply)
        except UnrecognizedResponse as e:
            failure = ValidationResult.failure(DiagnosticKind.UNPARSEABLE, str(e))
            return failure, failure, None

        if not reading.found_board and reading.error:
            raise NoCandidateAvailable(reading.error)

        claimed_turn = reading.turn or _turn_field(reading.fen)
        fen_candidate = Candidate(SourceKind.VISION_FEN_FIELD, reading.fen, claimed_turn)
        pieces_candidate = Candidate(SourceKind.VISION_PIECE_LIST, tuple(reading.pieces), claimed_turn)
        return fen_candidate.validate(), pieces_candidate.validate(), reading

    async def _try_vision(self, vision: VisionFn, diagnostics: List[str]) -> ResolvedPosition:
        instruction = initial_instruction()

        for attempt in range(1, MAX_VISION_ATTEMPTS + 1):
            fen_result, pieces_result, reading = await self._read_vision(vision, instruction, attempt)

            for name, result in (("fen", fen_result), ("pieces", pieces_result)):
                if not result.valid:
                    diagnostics.append(f"vision {attempt} {name}: {result.reason}")

            decision = self._decide(fen_result, pieces_result)
            if decision is not None:
                position, source, recovery = decision
                if recovery is None and attempt > 1:
                    recovery = RecoveryMethod.RETRY
                logger.info(
                    f"Resolved from {source.value} on attempt {attempt}"
                    + (f" ({recovery.value})" if recovery else "")
                )
                return ResolvedPosition(
                    position=position,
                    source_used=source,
                    recovery_method=recovery,
                    attempts=attempt,
                    diagnostics=tuple(diagnostics),
                )

            failure = _most_informative(fen_result, pieces_result)
            logger.warning(f"Both vision candidates invalid on attempt {attempt}: {failure.reason}")

            if attempt == MAX_VISION_ATTEMPTS:
                logger.error(f"Giving up after {attempt} vision attempts")
                raise RecoveryExhausted(failure.reason, attempts=attempt)

            instruction = retry_instruction(failure.reason, failure.kind)

    def _decide(
        self, fen_result: ValidationResult, pieces_result: ValidationResult
    ) -> Optional[Tuple[Position, SourceKind, Optional[RecoveryMethod]]]:
        if fen_result.valid and pieces_result.valid:
            if fen_result.position.same_board(pieces_result.position):
                return fen_result.position, SourceKind.VISION_FEN_FIELD, None
            logger.warning("FEN field and piece list disagree, preferring the piece list")
            return pieces_result.position, SourceKind.VISION_PIECE_LIST, RecoveryMethod.PIECE_LIST_PREFERRED

        if fen_result.valid:
            return fen_result.position, SourceKind.VISION_FEN_FIELD, None

        if pieces_result.valid:
            return pieces_result.position, SourceKind.VISION_PIECE_LIST, RecoveryMethod.PIECE_LIST_ONLY

        return None

    def _reconcile_turn(self, resolved: ResolvedPosition) -> ResolvedPosition:
        if self.known_turn is None or resolved.position.turn == self.known_turn:
            return resolved

        logger.info(f"Overriding side to move: {resolved.position.turn} -> {self.known_turn}")
        return replace(
            resolved,
            position=resolved.position.with_turn(self.known_turn),
            turn_adjusted=True,
        )


async def resolve_position(
    page_read: Optional[PageReadFn],
    vision: VisionFn,
    known_turn: Optional[str] = None,
) -> ResolvedPosition:
    """Resolve one capture. See PositionResolver.resolve."""
    return await PositionResolver(known_turn=known_turn).resolve(page_read, vision)
