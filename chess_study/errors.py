"""
Error Taxonomy

Only RecoveryExhausted, NoCandidateAvailable, EngineUnavailable and
RateLimited are expected to reach callers of the public operations.
PositionInvalid is raised by the validator helpers and is normally
recovered by the resolver.
"""

from typing import Optional


class ChessStudyError(Exception):
    """Base class for all errors raised by chess_study."""


class PositionInvalid(ChessStudyError):
    """
    A board encoding or piece list failed validation.

    Attributes:
        reason: Human-readable diagnostic (one per validation rule)
        kind: DiagnosticKind of the failed rule, if known
    """

    def __init__(self, reason: str, kind=None):
        super().__init__(reason)
        self.reason = reason
        self.kind = kind


class NoCandidateAvailable(ChessStudyError):
    """No source produced any usable position data."""


class RecoveryExhausted(ChessStudyError):
    """
    Every candidate was invalid after the single retry.

    Attributes:
        diagnostic: Last validation diagnostic, verbatim
        attempts: Number of vision calls made
    """

    def __init__(self, diagnostic: str, attempts: int = 2):
        super().__init__(f"Could not recover a valid position: {diagnostic}")
        self.diagnostic = diagnostic
        self.attempts = attempts


class EngineUnavailable(ChessStudyError):
    """The move-evaluation collaborator was unreachable or errored."""


class RateLimited(ChessStudyError):
    """
    The move-evaluation collaborator is throttling us.

    Attributes:
        retry_after_seconds: Remaining cool-down before a request may be sent
    """

    def __init__(self, retry_after_seconds: float, message: Optional[str] = None):
        super().__init__(
            message or f"Rate limited, retry in {retry_after_seconds:.1f}s"
        )
        self.retry_after_seconds = retry_after_seconds
