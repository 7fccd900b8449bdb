"""
Resolver Module

Turns page reads and vision replies into one validated position, with a
single diagnostic-guided retry.
"""

from chess_study.resolver.resolver import (
    Candidate,
    PageReading,
    PositionResolver,
    RecoveryMethod,
    ResolvedPosition,
    SourceKind,
    resolve_position,
)

__all__ = [
    'Candidate',
    'PageReading',
    'PositionResolver',
    'RecoveryMethod',
    'ResolvedPosition',
    'SourceKind',
    'resolve_position',
]
