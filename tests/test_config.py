"""Tests for StudyConfig."""

from pathlib import Path

import pytest

from chess_study.config import StudyConfig


class TestStudyConfig:
    """Test configuration defaults and checks."""

    def test_defaults(self):
        """Test default values."""
        config = StudyConfig()

        assert config.target_rating == 1500
        assert config.num_moves == 5
        assert config.depth == 18
        assert config.max_thinking_time == 100
        assert config.min_request_interval == 1.0
        assert config.throttle_cooldown == 60.0
        assert config.known_turn is None

    @pytest.mark.parametrize("kwargs", [
        {"target_rating": 100},
        {"target_rating": 5000},
        {"num_moves": 0},
        {"depth": 0},
        {"fallback_depth": -1},
        {"max_thinking_time": 0},
        {"min_request_interval": -0.5},
        {"throttle_cooldown": -1},
        {"known_turn": "white"},
    ])
    def test_invalid_values(self, kwargs):
        """Test that out-of-range values are rejected."""
        with pytest.raises(ValueError):
            StudyConfig(**kwargs)

    def test_log_file_path(self):
        """Test that a string log file becomes a Path."""
        assert StudyConfig(log_file="study.log").log_file == Path("study.log")

    def test_from_settings(self):
        """Test loading persisted camelCase settings."""
        config = StudyConfig.from_settings({
            "targetRating": 1200,
            "numMoves": 3,
            "depth": 14,
            "knownTurn": "b",
            "apiKey": "sk-not-used",
            "theme": "dark",
        })

        assert config.target_rating == 1200
        assert config.num_moves == 3
        assert config.depth == 14
        assert config.known_turn == "b"

    def test_from_settings_field_names(self):
        """Test that field names are accepted too and None means default."""
        config = StudyConfig.from_settings({"throttle_cooldown": 30.0, "fallbackDepth": None})

        assert config.throttle_cooldown == 30.0
        assert config.fallback_depth == 12

    def test_repr(self):
        """Test that the repr summarizes the settings."""
        text = repr(StudyConfig(target_rating=2000))

        assert "rating=2000" in text
