"""
Configuration for position analysis.
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from chess_study.evaluation.base import MAX_DEPTH, MAX_VARIANTS
from chess_study.selection.selector import MAX_RATING, MIN_RATING

# Persisted setting names -> field names
SETTING_ALIASES = {
    "targetRating": "target_rating",
    "numMoves": "num_moves",
    "depth": "depth",
    "maxThinkingTime": "max_thinking_time",
    "fallbackDepth": "fallback_depth",
    "stockfishPath": "stockfish_path",
    "knownTurn": "known_turn",
}


@dataclass
class StudyConfig:
    """Settings for one analysis session.

    Provider credentials are not part of this config; they belong to the
    collaborators that need them.
    """

    # Move selection
    target_rating: int = 1500
    """Skill rating the selected move should look like (typically 800-2400)"""

    random_seed: Optional[int] = None
    """Seed for the selection generator (None for fresh entropy)"""

    # Evaluation
    num_moves: int = MAX_VARIANTS
    """Principal variations to request"""

    depth: int = MAX_DEPTH
    """Primary evaluator search depth"""

    max_thinking_time: int = 100
    """Primary evaluator thinking time in milliseconds"""

    fallback_depth: int = 12
    """Search depth of the local fallback engine"""

    stockfish_path: Optional[str] = None
    """Path to the Stockfish binary (None = auto-detect)"""

    # Rate limiting
    min_request_interval: float = 1.0
    """Minimum seconds between evaluator requests"""

    throttle_cooldown: float = 60.0
    """Seconds to back off after a throttling reply"""

    # Position
    known_turn: Optional[str] = None
    """Side the user plays ("w"/"b"); overrides the side to move read from the board"""

    # Logging
    debug: bool = False
    """Log at DEBUG level"""

    log_file: Optional[Path] = None
    """Log to this file instead of stderr"""

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.log_file is not None:
            self.log_file = Path(self.log_file)

        if not MIN_RATING <= self.target_rating <= MAX_RATING:
            raise ValueError(
                f"target_rating must be between {MIN_RATING} and {MAX_RATING}, got {self.target_rating}"
            )

        if self.num_moves <= 0:
            raise ValueError(f"num_moves must be positive, got {self.num_moves}")

        if self.depth <= 0 or self.fallback_depth <= 0:
            raise ValueError(f"depths must be positive, got {self.depth}/{self.fallback_depth}")

        if self.max_thinking_time <= 0:
            raise ValueError(f"max_thinking_time must be positive, got {self.max_thinking_time}")

        if self.min_request_interval < 0 or self.throttle_cooldown < 0:
            raise ValueError("min_request_interval and throttle_cooldown must be non-negative")

        if self.known_turn not in (None, "w", "b"):
            raise ValueError(f"known_turn should be 'w', 'b' or None, got {self.known_turn!r}")

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "StudyConfig":
        """
        Build from persisted settings.

        Accepts the stored camelCase names and the field names; anything
        else (credentials, UI preferences) is ignored.
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in settings.items():
            name = SETTING_ALIASES.get(key, key)
            if name in known and value is not None:
                values[name] = value
        return cls(**values)

    def __repr__(self) -> str:
        """String representation of config."""
        return (
            f"StudyConfig(\n"
            f"  Selection: rating={self.target_rating}, seed={self.random_seed}\n"
            f"  Evaluation: moves={self.num_moves}, depth={self.depth}, fallback_depth={self.fallback_depth}\n"
            f"  Pacing: interval={self.min_request_interval}s, cooldown={self.throttle_cooldown}s\n"
            f"  Turn: {self.known_turn or 'from board'}\n"
            f")"
        )
