"""Sparse least squares by Richardson iteration with Chebyshev acceleration.

The solver minimises ``||A x - d||`` for a sparse, generally over-determined
matrix ``A`` stored as packed rows of at most ``max_nonzero`` entries. It runs
in two phases:

1. An upper bound on the largest eigenvalue of the normal matrix ``A'A`` is
   estimated with a shifted power iteration whose shifts are themselves
   Chebyshev nodes, followed by a pessimistic bisection on the bound.
2. Chebyshev step weights spread over ``[bound / bandwidth, bound]`` drive a
   fixed number of Richardson updates ``x += A'(d - A x) / sigma_k``.

The weights are reordered pairwise so that partial products stay bounded,
which keeps the iteration numerically stable for long cycles.

Reference: Olson, A. H., A Chebyshev condition for accelerating convergence
of iterative tomographic methods, Phys. Earth Planet. Inter., 47, 333-345,
1987.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

logger = logging.getLogger(__name__)

_EIGEN_EPS = 1.0e-6


class SparseRows:
    """Row-packed sparse matrix with a right-hand side.

    Each row holds up to ``max_nonzero`` ``(column, value)`` pairs; unused
    slots are padded with column 0 and value 0 so they never contribute.
    """

    def __init__(self, ncols: int, max_nonzero: int = 3) -> None:
        if ncols < 0:
            raise ValueError(f"ncols must be non-negative, got {ncols}")
        self._ncols = ncols
        self._max_nonzero = max_nonzero
        self._cols: list[list[int]] = []
        self._vals: list[list[float]] = []
        self._rhs: list[float] = []
        self._packed: tuple[np.ndarray, np.ndarray, np.ndarray] | None = None

    @property
    def ncols(self) -> int:
        return self._ncols

    @property
    def nrows(self) -> int:
        return len(self._rhs)

    @property
    def rhs(self) -> np.ndarray:
        return np.asarray(self._rhs, dtype=float)

    def add_row(
        self, columns: Sequence[int], values: Sequence[float], rhs: float = 0.0
    ) -> None:
        if len(columns) != len(values):
            raise ValueError("columns and values must have the same length")
        if not columns or len(columns) > self._max_nonzero:
            raise ValueError(
                f"a row needs between 1 and {self._max_nonzero} entries, got {len(columns)}"
            )
        for column in columns:
            if column < 0 or column >= self._ncols:
                raise ValueError(f"column {column} outside [0, {self._ncols})")
        self._cols.append([int(c) for c in columns])
        self._vals.append([float(v) for v in values])
        self._rhs.append(float(rhs))
        self._packed = None

    def row(self, index: int) -> tuple[list[int], list[float]]:
        return list(self._cols[index]), list(self._vals[index])

    def _pack(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        if self._packed is None:
            nrows = self.nrows
            cols = np.zeros((nrows, self._max_nonzero), dtype=np.intp)
            vals = np.zeros((nrows, self._max_nonzero), dtype=float)
            for i, (row_cols, row_vals) in enumerate(zip(self._cols, self._vals)):
                cols[i, : len(row_cols)] = row_cols
                vals[i, : len(row_vals)] = row_vals
            self._packed = (cols, vals, self.rhs)
        return self._packed

    def matvec(self, x: np.ndarray) -> np.ndarray:
        """Return ``A x``."""
        cols, vals, _rhs = self._pack()
        return (vals * x[cols]).sum(axis=1)

    def rmatvec(self, r: np.ndarray) -> np.ndarray:
        """Return ``A' r``."""
        cols, vals, _rhs = self._pack()
        return np.bincount(
            cols.ravel(), weights=(vals * r[:, None]).ravel(), minlength=self._ncols
        )

    def normal_matvec(self, x: np.ndarray) -> np.ndarray:
        return self.rmatvec(self.matvec(x))

    def residual(self, x: np.ndarray) -> np.ndarray:
        _cols, _vals, rhs = self._pack()
        return rhs - self.matvec(x)


@dataclass(frozen=True)
class SolverSettings:
    ncycle: int = 512
    bandwidth: float = 10000.0
    eigen_passes: int = 4
    eigen_cycles: int = 16

    def __post_init__(self) -> None:
        for name in ("ncycle", "eigen_cycles"):
            value = getattr(self, name)
            if value < 1 or value & (value - 1):
                raise ValueError(f"{name} must be a power of two, got {value}")
        if self.bandwidth <= 1.0:
            raise ValueError(f"bandwidth must exceed 1, got {self.bandwidth}")
        if self.eigen_passes < 0:
            raise ValueError(f"eigen_passes must be non-negative, got {self.eigen_passes}")


def _split_pairs(values: np.ndarray) -> None:
    """Interleave even/odd entries in place, reversing the lower half."""

    n = len(values)
    shuffled = np.concatenate((values[0::2], values[1::2]))
    half = n // 2
    if half >= 2:
        values[:half] = shuffled[half - 1 :: -1]
        values[half:] = shuffled[half:]
    else:
        values[:] = shuffled


def chebyshev_weights(ncycle: int, shi: float, slo: float) -> np.ndarray:
    """Return Chebyshev step weights distributed over ``[slo, shi]``.

    ``ncycle`` must be a power of two. The weights are ordered so that after
    any even number of steps the used weights are spread uniformly over the
    interval.
    """

    index = np.arange(ncycle)
    sigma = -np.cos((2 * (index + 1) - 1) * math.pi / 2 / ncycle)
    sigma = (sigma * (shi - slo) + (shi + slo)) / 2
    length = ncycle
    while length > 2:
        for start in range(0, ncycle, length):
            _split_pairs(sigma[start : start + length])
        length //= 2
    return sigma


def theoretical_error(sigma: np.ndarray, shi: float, slo: float) -> float:
    """Upper limit of the relative error left after applying ``sigma``."""

    delta = 0.25 * (shi - slo)
    with np.errstate(over="ignore", under="ignore"):
        return float(2.0 * np.prod(delta / sigma))


def error_ratio(x1: float, x2: float, sigma: np.ndarray) -> float:
    """Ratio of the iteration error at eigenvalue ``x1`` to that at ``x2``."""

    with np.errstate(divide="ignore", invalid="ignore", over="ignore", under="ignore"):
        factors = (x1 / x2) * (1.0 - sigma / x1) / (1.0 - sigma / x2)
        return float(abs(np.prod(factors)))


class EigenvalueEstimate:
    """Iterative estimate of the largest eigenvalue of ``A'A`` with error bounds.

    The first call to :meth:`iterate` (``ncyc=0``) seeds the eigenvector by
    accumulating the matrix rows with signs chosen so the vector keeps growing,
    then performs a single power step. Later calls run ``ncyc + 1`` shifted
    power steps using Chebyshev shifts below the current estimate.
    """

    def __init__(self, rows: SparseRows, capacity: int) -> None:
        self._rows = rows
        self._x = np.zeros(rows.ncols)
        self._sigma = np.zeros(capacity)
        self._nsig = 0
        self.smax = 0.0
        self.err = 0.0
        self.sup = 0.0

    @property
    def iterations(self) -> int:
        return self._nsig

    @property
    def upper_bound(self) -> float:
        return max(self.smax + self.err, self.sup)

    def _seed_vector(self) -> None:
        x = self._x
        x[:] = 0.0
        columns, values = self._rows.row(0)
        x[columns] = values
        for index in range(1, self._rows.nrows):
            columns, values = self._rows.row(index)
            vals = np.asarray(values)
            res = float(np.dot(x[columns], vals))
            res = 1.0 if abs(res) <= 1.0e-30 else math.copysign(1.0, res)
            np.add.at(x, columns, res * vals)
        norm = math.sqrt(float(np.dot(x, x)))
        if norm > 0.0:
            x /= norm
        else:
            x[:] = 1.0 / math.sqrt(len(x))

    def iterate(self, ncyc: int) -> None:
        if ncyc == 0:
            self._seed_vector()
        else:
            self._sigma[self._nsig : self._nsig + ncyc] = chebyshev_weights(
                ncyc, self.smax, 0.0
            )

        first = self._nsig
        self._nsig = first + 1 + ncyc
        self._sigma[self._nsig - 1] = 0.0
        x = self._x
        for icyc in range(first, self._nsig):
            dx = self._rows.normal_matvec(x) - self._sigma[icyc] * x
            self.smax = float(np.linalg.norm(dx))
            if icyc == self._nsig - 1:
                self.err = float(np.linalg.norm(dx - self.smax * x))
            if self.smax > 0.0:
                x[:] = dx / self.smax

        sigma = self._sigma[: self._nsig]
        slo = self.smax
        self.sup = (1.0 + _EIGEN_EPS) * self.smax * _EIGEN_EPS ** (-1.0 / self._nsig)
        if slo <= 0.0:
            return
        res = 1.0
        for _ in range(25):
            if res <= _EIGEN_EPS:
                break
            smp = 0.5 * (self.sup + slo)
            if error_ratio(self.smax, smp, sigma) > _EIGEN_EPS:
                slo = smp
            else:
                self.sup = smp
            res = (self.sup - slo) / slo


def eigenvalue_upper_bound(rows: SparseRows, passes: int = 4, cycles: int = 16) -> float:
    """Return a safe upper bound on the largest eigenvalue of ``A'A``."""

    estimate = EigenvalueEstimate(rows, capacity=1 + passes * (cycles + 1))
    estimate.iterate(0)
    bound = estimate.upper_bound
    logger.debug(
        "Initial eigenvalue estimate: sup=%g smax=%g err=%g bound=%g",
        estimate.sup,
        estimate.smax,
        estimate.err,
        bound,
    )
    for index in range(passes):
        estimate.iterate(cycles)
        bound = estimate.upper_bound
        logger.debug(
            "Eigenvalue pass %d: sup=%g smax=%g err=%g bound=%g",
            index,
            estimate.sup,
            estimate.smax,
            estimate.err,
            bound,
        )
    return bound


def richardson_iterate(
    rows: SparseRows,
    x: np.ndarray,
    sigma: np.ndarray,
    fixed: Mapping[int, float] | None = None,
) -> np.ndarray:
    """Apply ``len(sigma)`` Chebyshev-weighted Richardson updates to ``x`` in place."""

    for weight in sigma:
        x += rows.rmatvec(rows.residual(x)) / weight
        if fixed:
            for column, value in fixed.items():
                x[column] = value
    return x


def solve(
    rows: SparseRows,
    settings: SolverSettings | None = None,
    fixed: Mapping[int, float] | None = None,
) -> np.ndarray:
    """Solve ``rows`` in the least-squares sense and return the solution vector.

    Columns no row touches stay at zero (or at their ``fixed`` value).
    """

    settings = settings or SolverSettings()
    x = np.zeros(rows.ncols)
    if rows.nrows == 0 or rows.ncols == 0:
        return x

    bound = eigenvalue_upper_bound(
        rows, passes=settings.eigen_passes, cycles=settings.eigen_cycles
    )
    slo = bound / settings.bandwidth
    sigma = chebyshev_weights(settings.ncycle, bound, slo)
    logger.debug(
        "Chebyshev solve %dx%d: bound=%g slo=%g theoretical error=%g",
        rows.ncols,
        rows.nrows,
        bound,
        slo,
        theoretical_error(sigma, bound, slo),
    )
    return richardson_iterate(rows, x, sigma, fixed)
