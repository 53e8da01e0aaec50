"""Custom exceptions for the tour solver library."""

from __future__ import annotations


class TourSolverError(Exception):
    """Base exception for all tour solver errors.

    All custom exceptions in the tour_solver package inherit from this class,
    allowing users to catch all solver-related errors with a single except clause.

    Example:
        try:
            tour = branch_and_cut_tsp(graph, edge_cost)
        except TourSolverError as e:
            print(f"Solver error: {e}")
    """


class InvalidProblemError(TourSolverError):
    """Raised when the caller breaks a precondition of the solver.

    This includes:
    - Constraints whose width does not match the objective length
    - A graph that is not complete when a tour is requested
    - Non-finite edge costs
    - A seed basic variable that cannot be pivoted into the basis
    - Eliminating a variable index that is out of range

    Example:
        InvalidProblemError("Constraint 3 has 5 coefficients, but the objective has 4 variables")
    """


class SolverInvariantError(TourSolverError):
    """Raised when an internal invariant of the solver is violated.

    These conditions are never expected for a well-formed input and point at a
    modeling defect or malformed edge costs rather than an ordinary negative
    outcome. Infeasible and unbounded linear programs are reported as values,
    never through this exception.

    The invariants checked are:
    - Stage 1 of the simplex method reporting an unbounded objective
    - A TSP relaxation reporting an unbounded objective
    - The branch-and-cut search finishing without any integral tour
    - An accepted edge set that is not a single Hamiltonian cycle

    Example:
        SolverInvariantError("Stage 1 reported an unbounded objective", stage=1)
    """

    def __init__(self, message: str, stage: int | None = None):
        """Initialize with message and the simplex stage, when one applies."""
        super().__init__(message)
        self.stage = stage


class NumericalInstabilityError(TourSolverError):
    """Raised when numerical issues prevent reliable computation.

    This occurs when the basis columns gathered for a refactorization are
    singular, so the tableau cannot be rebuilt from the original constraints.

    When this error is raised, consider:
    - Using a longer refactor interval (or none)
    - Removing redundant or nearly parallel constraints
    - Rescaling the constraint coefficients

    Example:
        NumericalInstabilityError(
            "Basis matrix is singular: cannot refactor the tableau",
            condition_number=1e17
        )
    """

    def __init__(self, message: str, condition_number: float | None = None):
        """Initialize with message and optional condition number."""
        super().__init__(message)
        self.condition_number = condition_number


class SolverConfigurationError(TourSolverError):
    """Raised when solver configuration or options are invalid.

    This includes:
    - Unknown pivot rule names
    - Non-positive stall windows or refactor intervals
    - Non-positive tolerances

    Example:
        SolverConfigurationError("Unknown pivot rule 'steepest'")
    """
