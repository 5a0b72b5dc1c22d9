"""
native_vrf.puzzle
=================

The fulfiller-side signature puzzle: find an input whose signed
keccak(seed, input) lands on a multiple of the difficulty.
"""

from __future__ import annotations

from .solver import PuzzleSolver, Solution, check_difficulty, meets_difficulty, verify_solution

__all__ = ["PuzzleSolver", "Solution", "check_difficulty", "meets_difficulty", "verify_solution"]
