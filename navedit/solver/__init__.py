"""Sparse least-squares solver used by the inversion model."""
from __future__ import annotations

from navedit.solver.chebyshev import SolverSettings, SparseRows, solve

__all__ = ["SolverSettings", "SparseRows", "solve"]
