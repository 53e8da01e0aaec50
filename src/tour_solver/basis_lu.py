"""LU helper for refactoring the simplex basis."""

from __future__ import annotations

import warnings
from dataclasses import dataclass

import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve

from .exceptions import NumericalInstabilityError

SINGULAR_PIVOT = 1e-12  # Smallest |U_ii| accepted before the basis is declared singular.


@dataclass
class LUFactors:
    dense_matrix: np.ndarray
    lu: np.ndarray
    pivots: np.ndarray


def build_lu(matrix: np.ndarray) -> LUFactors:
    """Construct LU factors for the square matrix of basis columns.

    Args:
        matrix: Dense numpy array whose columns are the basic columns of the
                original constraint matrix, in basis-row order.

    Returns:
        LUFactors holding a copy of the matrix and its partial-pivoting factors.

    Raises:
        NumericalInstabilityError: If the matrix is not square or is singular.
    """
    dense_matrix = np.array(matrix, dtype=float, copy=True)
    if dense_matrix.ndim != 2 or dense_matrix.shape[0] != dense_matrix.shape[1]:
        raise NumericalInstabilityError(
            f"Basis matrix must be square, got shape {dense_matrix.shape}."
        )
    if dense_matrix.size == 0:
        return LUFactors(dense_matrix=dense_matrix, lu=dense_matrix, pivots=np.zeros(0, int))

    # Singular input is reported below rather than through a LinAlgWarning.
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", LinAlgWarning)
        lu, pivots = lu_factor(dense_matrix, check_finite=True)
    diagonal = np.abs(np.diag(lu))
    if diagonal.min() <= SINGULAR_PIVOT:
        raise NumericalInstabilityError(
            "Basis matrix is singular: cannot refactor the tableau.",
            condition_number=float(np.linalg.cond(dense_matrix)),
        )
    return LUFactors(dense_matrix=dense_matrix, lu=lu, pivots=pivots)


def solve_lu(factors: LUFactors, rhs: np.ndarray) -> np.ndarray:
    """Solve ``B X = rhs`` for a vector or a matrix of right-hand sides."""
    mat = np.asarray(rhs, dtype=float)
    if mat.shape[0] != factors.dense_matrix.shape[0]:
        raise ValueError("Right-hand side dimension does not match factor dimensions.")
    if factors.dense_matrix.size == 0:
        return mat.copy()
    result: np.ndarray = lu_solve((factors.lu, factors.pivots), mat, check_finite=False)
    return result
