"""Tests for SolverOptions configuration."""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from tour_solver import SolverConfigurationError, SolverOptions  # noqa: E402


def test_solver_options_defaults():
    """Test that SolverOptions has sensible default values."""
    options = SolverOptions()
    assert options.pivot_rule == "greedy_then_bland"
    assert options.stall_window == 200
    assert options.refactor_interval is None
    assert options.tolerance == 1e-5
    assert options.separate_blossoms is True


def test_solver_options_custom_values():
    """Test that SolverOptions accepts custom values."""
    options = SolverOptions(
        pivot_rule="devex",
        stall_window=10,
        refactor_interval=25,
        tolerance=1e-6,
        separate_blossoms=False,
    )
    assert options.pivot_rule == "devex"
    assert options.stall_window == 10
    assert options.refactor_interval == 25
    assert options.tolerance == 1e-6
    assert options.separate_blossoms is False


@pytest.mark.parametrize("tolerance", [0.0, -1e-6])
def test_solver_options_invalid_tolerance(tolerance):
    with pytest.raises(SolverConfigurationError, match="Tolerance must be positive"):
        SolverOptions(tolerance=tolerance)


def test_solver_options_invalid_pivot_rule():
    with pytest.raises(SolverConfigurationError, match="Invalid pivot rule"):
        SolverOptions(pivot_rule="dantzig")


def test_solver_options_invalid_stall_window():
    with pytest.raises(SolverConfigurationError, match="Stall window must be positive"):
        SolverOptions(stall_window=0)


def test_solver_options_invalid_refactor_interval():
    with pytest.raises(SolverConfigurationError, match="Refactor interval"):
        SolverOptions(refactor_interval=0)
