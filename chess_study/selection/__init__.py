"""
Selection Module

Skill-calibrated sampling among engine-ranked moves.
"""

from chess_study.selection.selector import SelectionResult, base_temperature, select_move

__all__ = ['SelectionResult', 'base_temperature', 'select_move']
