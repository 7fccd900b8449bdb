"""
Tests for the multi-source position resolver.

Collaborators are scripted: the vision stand-in records every instruction
it receives and replays queued replies.
"""

import asyncio

import chess
import pytest

from chess_study.board.validator import piece_list_from_encoding
from chess_study.errors import NoCandidateAvailable, RecoveryExhausted
from chess_study.resolver import (
    PageReading,
    PositionResolver,
    RecoveryMethod,
    SourceKind,
    resolve_position,
)
from chess_study.resolver.prompts import DEFAULT_GUIDANCE, GUIDANCE, INITIAL_INSTRUCTION
from chess_study.board.validator import DiagnosticKind

BARE_KINGS = "4k3/8/8/8/8/8/8/4K3 w - - 0 1"
KINGS_AND_PAWN = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"

# Rank 4 sums to 9 squares
BAD_RANK_SUM = "rnbqkbnr/pppppppp/8/8/4P4/8/PPPP1PPP/RNBQKBNR w KQkq - 0 1"


class ScriptedVision:
    """Replays queued replies and records the instructions it was given."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.instructions = []

    async def __call__(self, instruction):
        self.instructions.append(instruction)
        return self.replies.pop(0)

    @property
    def calls(self):
        return len(self.instructions)


def reply(fen=None, pieces=None, turn=None, **extra):
    """Vision reply dict; pieces default to the FEN's placement."""
    if pieces is None:
        pieces = piece_list_from_encoding(fen) if fen else []
    data = {"fen": fen, "pieces": pieces}
    if turn:
        data["turn"] = turn
    data.update(extra)
    return data


def resolve(page_read, vision, known_turn=None):
    return asyncio.run(resolve_position(page_read, vision, known_turn=known_turn))


class TestPageRead:
    """Tests for the page-read path."""

    def test_valid_page_read(self):
        """Test that a valid page read never calls vision."""
        vision = ScriptedVision()

        resolved = resolve(lambda: PageReading(board_encoding=chess.STARTING_FEN, provenance="dom"), vision)

        assert resolved.fen == chess.STARTING_FEN
        assert resolved.source_used == SourceKind.PAGE_READ
        assert resolved.recovery_method is None
        assert resolved.attempts == 0
        assert vision.calls == 0

    def test_placement_uses_color_guess(self):
        """Test that a placement-only read takes the guessed side to move."""
        reading = PageReading(board_encoding="4k3/8/8/8/8/8/8/4K3", active_color_guess="b")

        resolved = resolve(lambda: reading, ScriptedVision())

        assert resolved.position.turn == "b"

    def test_async_page_read(self):
        """Test that a coroutine page reader is awaited."""
        async def page_read():
            return PageReading(board_encoding=BARE_KINGS)

        resolved = resolve(page_read, ScriptedVision())

        assert resolved.fen == BARE_KINGS

    def test_piece_list_page_read(self):
        """Test that a page read with only a piece list is accepted."""
        reading = PageReading(piece_list=tuple(piece_list_from_encoding(KINGS_AND_PAWN)))

        resolved = resolve(lambda: reading, ScriptedVision())

        assert resolved.fen == KINGS_AND_PAWN

    def test_not_applicable(self):
        """Test that a missing page reader goes straight to vision."""
        vision = ScriptedVision(reply(BARE_KINGS))

        resolved = resolve(None, vision)

        assert resolved.source_used == SourceKind.VISION_FEN_FIELD
        assert vision.calls == 1

    def test_returns_nothing(self):
        """Test that an empty page read falls through to vision."""
        vision = ScriptedVision(reply(BARE_KINGS))

        resolve(lambda: None, vision)

        assert vision.calls == 1

    def test_reader_raises(self):
        """Test that a failing page reader falls through to vision."""
        def page_read():
            raise RuntimeError("board element not found")

        vision = ScriptedVision(reply(BARE_KINGS))

        resolved = resolve(page_read, vision)

        assert resolved.source_used == SourceKind.VISION_FEN_FIELD
        assert any("board element not found" in d for d in resolved.diagnostics)

    def test_invalid_page_read(self):
        """Test that an invalid page read is rejected and recorded."""
        vision = ScriptedVision(reply(BARE_KINGS))

        resolved = resolve(lambda: PageReading(board_encoding=BAD_RANK_SUM), vision)

        assert resolved.source_used == SourceKind.VISION_FEN_FIELD
        assert "page-read: Rank 4 has 9 squares, should have 8" in resolved.diagnostics


class TestVisionDecision:
    """Tests for choosing between the FEN field and the piece list."""

    def test_fields_agree(self):
        """Test that agreeing fields resolve from the FEN field."""
        vision = ScriptedVision(reply(BARE_KINGS))

        resolved = resolve(None, vision)

        assert resolved.source_used == SourceKind.VISION_FEN_FIELD
        assert resolved.recovery_method is None
        assert resolved.attempts == 1
        assert vision.instructions == [INITIAL_INSTRUCTION]

    def test_fields_disagree(self):
        """Test that the piece list wins when both are valid but differ."""
        pieces = piece_list_from_encoding(KINGS_AND_PAWN)
        vision = ScriptedVision(reply(BARE_KINGS, pieces=pieces))

        resolved = resolve(None, vision)

        assert resolved.source_used == SourceKind.VISION_PIECE_LIST
        assert resolved.recovery_method == RecoveryMethod.PIECE_LIST_PREFERRED
        assert resolved.position.placement == KINGS_AND_PAWN.split()[0]

    def test_only_piece_list_valid(self):
        """Test recovery from a miscounted FEN using the piece list, without a retry."""
        pieces = piece_list_from_encoding(BAD_RANK_SUM.replace("4P4", "4P3"))
        vision = ScriptedVision(reply(BAD_RANK_SUM, pieces=pieces, turn="b"))

        resolved = resolve(None, vision)

        assert resolved.source_used == SourceKind.VISION_PIECE_LIST
        assert resolved.recovery_method == RecoveryMethod.PIECE_LIST_ONLY
        assert resolved.position.turn == "b"
        assert vision.calls == 1

    def test_only_fen_valid(self):
        """Test that a valid FEN with a broken piece list is used as is."""
        vision = ScriptedVision(reply(BARE_KINGS, pieces=[{"square": "e1", "piece": "K"}]))

        resolved = resolve(None, vision)

        assert resolved.source_used == SourceKind.VISION_FEN_FIELD
        assert resolved.recovery_method is None

    def test_placement_only_fen_takes_turn(self):
        """Test that the reply's turn completes a placement-only FEN."""
        vision = ScriptedVision(reply("4k3/8/8/8/8/8/8/4K3", turn="b"))

        resolved = resolve(None, vision)

        assert resolved.position.turn == "b"

    def test_split_empty_runs_in_fen(self):
        """Test that a FEN with a split empty run still resolves from the FEN field."""
        pieces = [{"square": "e8", "piece": "k"}, {"square": "e1", "piece": "K"}]
        vision = ScriptedVision(reply("4k3/8/8/44/8/8/8/4K3 w - - 0 1", pieces=pieces))

        resolved = resolve(None, vision)

        assert resolved.source_used == SourceKind.VISION_FEN_FIELD
        assert resolved.fen == BARE_KINGS
        assert vision.calls == 1

    def test_split_empty_runs_with_disagreeing_pieces(self):
        """Test that the piece list still wins over a split-run FEN that differs."""
        pieces = piece_list_from_encoding(KINGS_AND_PAWN)
        vision = ScriptedVision(reply("4k3/8/8/44/8/8/8/4K3 w - - 0 1", pieces=pieces))

        resolved = resolve(None, vision)

        assert resolved.recovery_method == RecoveryMethod.PIECE_LIST_PREFERRED
        assert resolved.fen == KINGS_AND_PAWN

    def test_broken_fen_with_split_runs_uses_piece_list(self):
        """Test piece-list recovery when the split-run FEN also miscounts a rank."""
        pieces = [{"square": "e8", "piece": "k"}, {"square": "e1", "piece": "K"}]
        vision = ScriptedVision(reply("4k3/8/8/45/8/8/8/4K3 w - - 0 1", pieces=pieces))

        resolved = resolve(None, vision)

        assert resolved.recovery_method == RecoveryMethod.PIECE_LIST_ONLY
        assert resolved.fen == BARE_KINGS
        assert vision.calls == 1


class TestVisionRetry:
    """Tests for the single diagnostic-guided retry."""

    def test_retry_succeeds(self):
        """Test that a valid second reading is tagged as a retry."""
        broken_pieces = [{"square": "e1", "piece": "K"}]
        vision = ScriptedVision(reply(BAD_RANK_SUM, pieces=broken_pieces), reply(BARE_KINGS))

        resolved = resolve(None, vision)

        assert resolved.recovery_method == RecoveryMethod.RETRY
        assert resolved.attempts == 2
        assert vision.calls == 2

    def test_retry_quotes_most_useful_diagnostic(self):
        """Test that a missing king is reported rather than a rank sum."""
        broken_pieces = [{"square": "e1", "piece": "K"}]
        vision = ScriptedVision(reply(BAD_RANK_SUM, pieces=broken_pieces), reply(BARE_KINGS))

        resolve(None, vision)

        retry = vision.instructions[1]
        assert retry.startswith(INITIAL_INSTRUCTION)
        assert "YOUR PREVIOUS READING OF THIS IMAGE WAS INVALID" in retry
        assert "Must have exactly 1 black king, found 0" in retry
        assert GUIDANCE[DiagnosticKind.KING_COUNT] in retry
        assert "Rank 4 has 9 squares" not in retry

    def test_retry_after_unparseable_reply(self):
        """Test that prose without JSON counts as a failed reading."""
        vision = ScriptedVision("I think this is the Sicilian.", reply(BARE_KINGS))

        resolved = resolve(None, vision)

        assert resolved.recovery_method == RecoveryMethod.RETRY
        assert DEFAULT_GUIDANCE in vision.instructions[1]

    def test_retry_can_recover_with_piece_list(self):
        """Test that a piece-list recovery on attempt two keeps its tag."""
        pieces = piece_list_from_encoding(BARE_KINGS)
        vision = ScriptedVision("garbage", reply(BAD_RANK_SUM, pieces=pieces))

        resolved = resolve(None, vision)

        assert resolved.recovery_method == RecoveryMethod.PIECE_LIST_ONLY
        assert resolved.attempts == 2

    def test_exhausted(self):
        """Test that two invalid readings give up with the last diagnostic."""
        broken_pieces = [{"square": "e1", "piece": "K"}]
        vision = ScriptedVision(
            reply(BAD_RANK_SUM, pieces=broken_pieces),
            reply(BAD_RANK_SUM, pieces=[]),
        )

        with pytest.raises(RecoveryExhausted) as excinfo:
            resolve(None, vision)

        assert excinfo.value.diagnostic == "Rank 4 has 9 squares, should have 8"
        assert excinfo.value.attempts == 2
        assert vision.calls == 2

    def test_exhausted_unparseable(self):
        """Test that two unparseable replies give up after two calls."""
        vision = ScriptedVision("no board here", "still nothing")

        with pytest.raises(RecoveryExhausted):
            resolve(None, vision)

        assert vision.calls == 2

    def test_no_board(self):
        """Test that a no-board reply stops without a retry."""
        vision = ScriptedVision(reply(None, error="No chess board detected in screenshot"))

        with pytest.raises(NoCandidateAvailable, match="No chess board"):
            resolve(None, vision)

        assert vision.calls == 1

    def test_empty_reading_without_error_is_retried(self):
        """Test that a null FEN and empty piece list without error text use the retry."""
        empty = {"fen": None, "turn": "w", "pieces": []}
        vision = ScriptedVision(empty, dict(empty))

        with pytest.raises(RecoveryExhausted) as excinfo:
            resolve(None, vision)

        assert excinfo.value.attempts == 2
        assert vision.calls == 2

    def test_empty_reading_then_valid(self):
        """Test that a board found on the retry after an empty reading resolves."""
        vision = ScriptedVision({"fen": None, "pieces": []}, reply(BARE_KINGS))

        resolved = resolve(None, vision)

        assert resolved.recovery_method == RecoveryMethod.RETRY
        assert resolved.fen == BARE_KINGS

    def test_vision_failure_propagates(self):
        """Test that a transport error from vision is not swallowed."""
        async def vision(instruction):
            raise ConnectionError("vision service down")

        with pytest.raises(ConnectionError):
            resolve(None, vision)


class TestTurnReconciliation:
    """Tests for the caller-supplied side to move."""

    def test_known_turn_overrides(self):
        """Test that the known side to move replaces the reported one."""
        en_passant = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"

        resolved = resolve(lambda: PageReading(board_encoding=en_passant), ScriptedVision(), known_turn="w")

        assert resolved.position.turn == "w"
        assert resolved.position.en_passant is None
        assert resolved.turn_adjusted

    def test_known_turn_matches(self):
        """Test that a matching side to move is not flagged."""
        resolved = resolve(lambda: PageReading(board_encoding=BARE_KINGS), ScriptedVision(), known_turn="w")

        assert not resolved.turn_adjusted

    def test_invalid_known_turn(self):
        """Test that only "w" or "b" are accepted."""
        with pytest.raises(ValueError):
            PositionResolver(known_turn="white")
