"""
Unit Tests for Chess Study

This package contains unit tests for all chess_study components.

Running Tests:
    # Run all tests
    pytest tests/

    # Run specific test file
    pytest tests/test_resolver.py

    # Run with coverage
    pytest tests/ --cov=chess_study --cov-report=html

Dependencies:
    - pytest: Test framework
    - pytest-cov: Coverage reporting
    - Stockfish binary (optional): integration tests skip without it
"""
