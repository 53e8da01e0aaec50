"""Public LP solver entrypoints.

The tour searches depend only on the ``LPSolver`` boundary, so any conforming
backend can be substituted: the tableau simplex in this package or the
SciPy/HiGHS reference backend used for cross-validation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

import numpy as np
from scipy.optimize import linprog

from .data import Constraint, Infeasible, Solution, Solved, Unbounded
from .exceptions import SolverInvariantError
from .simplex import minimize as simplex_minimize
from .simplex_pricing import DEFAULT_STALL_WINDOW, PricingStrategy, resolve_pivot_rule
from .validation import validate_constraints

logger = logging.getLogger(__name__)


class LPSolver(ABC):
    """Minimizes ``objective . x`` subject to equality constraints and ``x >= 0``."""

    @abstractmethod
    def minimize(self, objective: Sequence[float], constraints: Sequence[Constraint]) -> Solution:
        """Solve the program, returning Solved, Unbounded, or Infeasible."""


class SimplexLPSolver(LPSolver):
    """LP solver backed by the two-phase tableau simplex.

    Attributes:
        pivot_rule: PricingStrategy used for every solve.
        seed_basic: Variables pivoted into the basis before stage 1.
        refactor_interval: Pivots between tableau refactorizations (None disables).

    Examples:
        >>> from tour_solver import DenseConstraint, SimplexLPSolver
        >>> solver = SimplexLPSolver(pivot_rule="greedy_then_bland", stall_window=50)
        >>> result = solver.minimize([1.0, 1.0], [DenseConstraint((1.0, -1.0), 3.0)])
        >>> result.cost
        3.0
    """

    def __init__(
        self,
        pivot_rule: str | PricingStrategy = "bland",
        seed_basic: Iterable[int] = (),
        refactor_interval: int | None = None,
        stall_window: int = DEFAULT_STALL_WINDOW,
    ):
        self.pivot_rule = resolve_pivot_rule(pivot_rule, stall_window=stall_window)
        self.seed_basic = frozenset(seed_basic)
        self.refactor_interval = refactor_interval

    def minimize(self, objective: Sequence[float], constraints: Sequence[Constraint]) -> Solution:
        return simplex_minimize(
            objective,
            constraints,
            pivot_rule=self.pivot_rule,
            seed_basic=self.seed_basic,
            refactor_interval=self.refactor_interval,
        )

    def __repr__(self) -> str:
        return (
            f"SimplexLPSolver(pivot_rule={self.pivot_rule!r}, "
            f"refactor_interval={self.refactor_interval})"
        )


class ScipyLPSolver(LPSolver):
    """Reference LP solver delegating to ``scipy.optimize.linprog`` (HiGHS).

    It is slower to set up than the tableau for tiny programs, but it is
    independent of this package's pivoting code, which makes it useful for
    cross-validating results.
    """

    def __init__(self, method: str = "highs"):
        self.method = method

    def minimize(self, objective: Sequence[float], constraints: Sequence[Constraint]) -> Solution:
        c = np.asarray(objective, dtype=float).reshape(-1)
        validate_constraints(c.shape[0], constraints)
        if constraints:
            a_eq = np.vstack([constraint.coeffs() for constraint in constraints])
            b_eq = np.array([constraint.equals for constraint in constraints], dtype=float)
        else:
            a_eq = None
            b_eq = None
        result = linprog(c, A_eq=a_eq, b_eq=b_eq, bounds=(0, None), method=self.method)

        if result.status == 0:
            return Solved(solution=np.asarray(result.x, dtype=float), cost=float(result.fun))
        if result.status == 2:
            # HiGHS presolve can report "infeasible or unbounded"; a zero
            # objective tells the two apart.
            if "unbounded" in str(result.message).lower():
                check = linprog(
                    np.zeros_like(c), A_eq=a_eq, b_eq=b_eq, bounds=(0, None), method=self.method
                )
                if check.status == 0:
                    return Unbounded()
            return Infeasible()
        if result.status == 3:
            return Unbounded()
        logger.error(
            "linprog failed to solve the program",
            extra={"status": result.status, "message": result.message},
        )
        raise SolverInvariantError(f"linprog failed: {result.message}")

    def __repr__(self) -> str:
        return f"ScipyLPSolver(method={self.method!r})"


def minimize(
    objective: Sequence[float],
    constraints: Sequence[Constraint],
    pivot_rule: str | PricingStrategy = "bland",
    seed_basic: Iterable[int] = (),
    refactor_interval: int | None = None,
) -> Solution:
    """Minimize a linear objective subject to equality constraints and x >= 0.

    This is the main LP entry point. It runs the two-phase tableau simplex
    method with the requested pivot rule.

    Args:
        objective: Cost coefficient for every variable.
        constraints: DenseConstraint or SparseConstraint rows of matching width.
        pivot_rule: "bland" (default), "greedy", "devex", "greedy_then_bland",
                    or a PricingStrategy instance.
        seed_basic: Variables to pivot into the starting basis.
        refactor_interval: Pivots between refactorizations (None disables).

    Returns:
        Solved(solution, cost), Unbounded(), or Infeasible().

    Raises:
        InvalidProblemError: If constraint widths mismatch the objective length.
        SolverInvariantError: If stage 1 reports an unbounded objective.
        NumericalInstabilityError: If a refactorization meets a singular basis.

    See Also:
        - SimplexLPSolver: The same solver behind the LPSolver boundary.
        - ScipyLPSolver: Reference backend for cross-validation.
    """
    return simplex_minimize(
        objective,
        constraints,
        pivot_rule=pivot_rule,
        seed_basic=seed_basic,
        refactor_interval=refactor_interval,
    )
