"""Unit tests for basis_lu module."""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from tour_solver.basis_lu import LUFactors, build_lu, solve_lu  # noqa: E402
from tour_solver.exceptions import NumericalInstabilityError  # noqa: E402


def test_build_lu_copies_input_matrix():
    matrix = np.array([[4.0, 3.0], [6.0, 3.0]])

    factors = build_lu(matrix)
    matrix[0, 0] = 100.0

    assert isinstance(factors, LUFactors)
    assert factors.dense_matrix[0, 0] == 4.0


def test_solve_lu_vector_and_matrix_rhs():
    matrix = np.array([[2.0, 1.0, 0.0], [1.0, 3.0, 1.0], [0.0, 1.0, 4.0]])
    factors = build_lu(matrix)

    vector = np.array([1.0, 2.0, 3.0])
    np.testing.assert_allclose(matrix @ solve_lu(factors, vector), vector)

    block = np.eye(3)
    np.testing.assert_allclose(matrix @ solve_lu(factors, block), block, atol=1e-12)


def test_singular_matrix_raises_with_condition_number():
    singular = np.array([[1.0, 2.0], [2.0, 4.0]])

    with pytest.raises(NumericalInstabilityError) as exc_info:
        build_lu(singular)

    assert exc_info.value.condition_number is not None
    assert exc_info.value.condition_number > 1e12


def test_non_square_matrix_raises():
    with pytest.raises(NumericalInstabilityError, match="square"):
        build_lu(np.ones((2, 3)))


def test_empty_basis_is_trivial():
    factors = build_lu(np.zeros((0, 0)))
    result = solve_lu(factors, np.zeros(0))
    assert result.shape == (0,)


def test_rhs_dimension_mismatch_raises():
    factors = build_lu(np.eye(2))
    with pytest.raises(ValueError, match="dimension"):
        solve_lu(factors, np.ones(3))
