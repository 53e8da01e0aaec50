"""Two-phase tableau simplex for ``minimize c.x subject to A x = b, x >= 0``."""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Sequence

import numpy as np

from .basis_lu import build_lu, solve_lu
from .data import Constraint, Infeasible, Solution, Solved, Unbounded
from .exceptions import InvalidProblemError, SolverInvariantError
from .simplex_pricing import PricingStrategy, resolve_pivot_rule

EPSILON = 1e-8

logger = logging.getLogger(__name__)


class StepResult(enum.Enum):
    SUCCESS = "success"
    UNBOUNDED = "unbounded"
    CONVERGED = "converged"


class Tableau:
    """Dense simplex tableau in canonical form.

    The tableau is stored row major as::

        [A b]
        [d -z]

    where ``d`` holds the reduced costs, ``z`` is the current objective value
    and each constraint row has exactly one basic column (a column of the
    identity) recorded in ``basic_cols``.

    Attributes:
        values: ``(constraints + 1) x (variables + 1)`` matrix.
        basic_cols: For each constraint row, the column that is basic in it.
        cost_history: Objective value after every pivot (stall detection).
        switched_to_bland: Set once greedy-then-Bland has given up on greedy.
        devex_weights: Devex reference weights, created on first use.
    """

    def __init__(self, values: np.ndarray, basic_cols: Sequence[int]):
        rows, cols = values.shape
        if len(basic_cols) + 1 != rows:
            raise SolverInvariantError(
                f"Tableau has {rows - 1} constraint rows but {len(basic_cols)} basic columns."
            )
        if len(set(basic_cols)) != len(basic_cols) or not all(
            0 <= col < cols - 1 for col in basic_cols
        ):
            raise SolverInvariantError(f"Basic columns {list(basic_cols)} are invalid.")
        self.values = values
        self.basic_cols = list(basic_cols)
        self.cost_history: list[float] = []
        self.switched_to_bland = False
        self.devex_weights: np.ndarray | None = None

    @property
    def rows(self) -> int:
        return int(self.values.shape[0])

    @property
    def cols(self) -> int:
        return int(self.values.shape[1])

    @property
    def cost(self) -> float:
        return float(-self.values[-1, -1])

    @property
    def reduced_costs(self) -> np.ndarray:
        return self.values[-1, :-1]

    @property
    def solution(self) -> np.ndarray:
        result = np.zeros(self.cols - 1, dtype=float)
        for row, col in enumerate(self.basic_cols):
            result[col] = self.values[row, -1]
        return result

    def copy(self) -> Tableau:
        return Tableau(self.values.copy(), self.basic_cols)

    def ensure_devex_weights(self) -> np.ndarray:
        if self.devex_weights is None or self.devex_weights.shape[0] != self.cols - 1:
            self.devex_weights = np.ones(self.cols - 1, dtype=float)
        return self.devex_weights

    # ============================================================================
    # Construction
    # ============================================================================

    @classmethod
    def stage1(
        cls,
        var_count: int,
        constraints: Sequence[Constraint],
        seed_basic: Iterable[int] = (),
    ) -> Tableau:
        """Create the stage-1 tableau with one artificial variable per constraint.

        Every row is normalised by its infinity norm and negated if its
        right-hand side is negative, so the artificial variables form a feasible
        starting basis. The stage-1 objective is the sum of the artificials.
        """
        count = len(constraints)
        values = np.zeros((count + 1, var_count + count + 1), dtype=float)
        for i, constraint in enumerate(constraints):
            coeffs = constraint.coeffs()
            if coeffs.shape[0] != var_count:
                raise InvalidProblemError(
                    f"Constraint {i} has {coeffs.shape[0]} coefficients, but the objective "
                    f"has {var_count} variables. Every constraint must cover every variable."
                )
            equals = constraint.equals
            divisor = max(abs(equals), float(np.max(np.abs(coeffs))) if var_count else 0.0)
            mult = (1.0 if equals > 0 else -1.0) / (divisor if divisor != 0 else 1.0)
            values[i, :var_count] = coeffs * mult
            values[i, -1] = equals * mult
            values[i, var_count + i] = 1.0

        table = cls(values, list(range(var_count, var_count + count)))

        seed_basic = sorted(set(seed_basic))
        for var in seed_basic:
            if not 0 <= var < var_count:
                raise InvalidProblemError(
                    f"Seed basic variable {var} is outside the {var_count} variables."
                )
            open_rows = [row for row in range(count) if table.basic_cols[row] >= var_count]
            if not open_rows:
                raise InvalidProblemError(
                    f"Seed basic variable {var} cannot be made basic: no artificial row left."
                )
            row = max(open_rows, key=lambda r: abs(values[r, var]))
            if abs(values[row, var]) <= EPSILON:
                raise InvalidProblemError(
                    f"Seed basic variable {var} cannot be made basic: its column is zero "
                    f"in every remaining artificial row."
                )
            table.pivot(entering=var, row=row, clip=False)

        if seed_basic:
            # Artificial rows must start non-negative again after the seed pivots.
            for row, col in enumerate(table.basic_cols):
                if col >= var_count and values[row, -1] < 0:
                    values[row, :] *= -1.0
                    values[row, col] = 1.0
                elif col < var_count and values[row, -1] < -EPSILON:
                    raise InvalidProblemError(
                        f"Seed basic variable {col} takes the negative value "
                        f"{values[row, -1]:.6g}; the seed basis is not primal feasible."
                    )
            table.clip_rhs()

        values[-1, :] = 0.0
        values[-1, var_count:-1] = 1.0
        table.eliminate_basic_costs()
        return table

    def stage2(self, objective: np.ndarray) -> Tableau | None:
        """Extract the stage-2 tableau for this finished stage-1 tableau.

        Returns None if stage 1 could not drive every artificial variable to zero,
        meaning the constraints are infeasible.
        """
        constraint_count = self.rows - 1
        original_var_count = self.cols - 1 - constraint_count
        if objective.shape[0] != original_var_count:
            raise InvalidProblemError(
                f"Objective has {objective.shape[0]} entries, expected {original_var_count}."
            )

        delete_rows: set[int] = set()
        for row, col in enumerate(self.basic_cols):
            if col < original_var_count:
                continue
            # A remaining artificial must be zero, and then its row is all zero
            # over the real columns (finish_stage1 pivoted out every other one).
            if abs(self.values[row, -1]) > EPSILON:
                return None
            if np.any(np.abs(self.values[row, :original_var_count]) > EPSILON):
                raise SolverInvariantError(
                    "Found a zero basic artificial variable without a zero row; "
                    "a pivot should have been performed.",
                    stage=1,
                )
            delete_rows.add(row)

        keep_rows = [row for row in range(self.rows) if row not in delete_rows]
        keep_cols = list(range(original_var_count)) + [self.cols - 1]
        values = self.values[np.ix_(keep_rows, keep_cols)].copy()
        basic_cols = [self.basic_cols[row] for row in keep_rows[:-1]]

        result = Tableau(values, basic_cols)
        result.values[-1, :-1] = objective
        result.values[-1, -1] = 0.0
        result.eliminate_basic_costs()
        return result

    # ============================================================================
    # Pivot Operations
    # ============================================================================

    def step(self, strategy: PricingStrategy) -> StepResult:
        entering = strategy.select_entering(self, EPSILON)
        if entering is None:
            return StepResult.CONVERGED
        row = self.choose_leaving(entering)
        if row is None:
            return StepResult.UNBOUNDED
        strategy.before_pivot(self, entering, row)
        self.pivot(entering=entering, row=row)
        self.cost_history.append(self.cost)
        return StepResult.SUCCESS

    def choose_leaving(self, entering: int) -> int | None:
        """Minimum ratio test; ties go to the row with the smallest basic column."""
        min_ratio = np.inf
        best_row: int | None = None
        column = self.values[:-1, entering]
        rhs = self.values[:-1, -1]
        for row in np.flatnonzero(column > EPSILON):
            ratio = rhs[row] / column[row]
            if ratio < min_ratio - EPSILON or (
                abs(ratio - min_ratio) <= EPSILON
                and best_row is not None
                and self.basic_cols[row] < self.basic_cols[best_row]
            ):
                min_ratio = ratio
                best_row = int(row)
        return best_row

    def pivot(self, entering: int, row: int, clip: bool = True) -> None:
        values = self.values
        self.basic_cols[row] = entering
        values[row, :] /= values[row, entering]

        pivot_row = values[row, :].copy()
        scale_per_row = -values[:, entering].copy()
        scale_per_row[row] = 0.0
        values += np.outer(scale_per_row, pivot_row)

        if clip:
            self.clip_rhs()
        values[:, entering] = 0.0
        values[row, entering] = 1.0

    def clip_rhs(self) -> None:
        np.maximum(self.values[:-1, -1], 0.0, out=self.values[:-1, -1])

    def eliminate_basic_costs(self) -> None:
        for row, col in enumerate(self.basic_cols):
            self.values[-1, :] -= self.values[-1, col] * self.values[row, :]
            self.values[-1, col] = 0.0

    def finish_stage1(self) -> None:
        """Pivot out artificial variables that remain basic at value zero."""
        original_var_count = self.cols - 1 - (self.rows - 1)
        for row in range(self.rows - 1):
            col = self.basic_cols[row]
            if col < original_var_count or abs(self.values[row, -1]) >= EPSILON:
                continue
            nonzero = np.flatnonzero(np.abs(self.values[row, :original_var_count]) > EPSILON)
            if nonzero.size:
                entering = int(nonzero[0])
                self.pivot(entering=entering, row=row)

    def refactor(self, original: Tableau) -> None:
        """Rebuild this tableau from the stage's starting tableau.

        The current basis columns are gathered from ``original`` and LU factored;
        every non-basic column and the right-hand side are re-derived from the
        original matrix, and the reduced costs are re-eliminated.
        """
        constraint_count = self.rows - 1
        if constraint_count == 0:
            return
        basis_matrix = original.values[:-1, self.basic_cols]
        factors = build_lu(basis_matrix)

        basic_set = set(self.basic_cols)
        nonbasic = [col for col in range(self.cols) if col not in basic_set]
        self.values[:-1, nonbasic] = solve_lu(factors, original.values[:-1, nonbasic])
        self.values[:-1, self.basic_cols] = 0.0
        for row, col in enumerate(self.basic_cols):
            self.values[row, col] = 1.0

        self.values[-1, :] = original.values[-1, :]
        self.eliminate_basic_costs()
        # LU rounding can leave tiny negative right-hand sides.
        self.clip_rhs()


def _run_stage(
    table: Tableau,
    strategy: PricingStrategy,
    refactor_interval: int | None,
    stage: int,
) -> tuple[StepResult, int, int]:
    start = table.copy()
    pivots = 0
    refactors = 0
    while True:
        result = table.step(strategy)
        if result is not StepResult.SUCCESS:
            return result, pivots, refactors
        pivots += 1
        if refactor_interval and pivots % refactor_interval == 0:
            table.refactor(start)
            refactors += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    f"Refactored stage {stage} tableau",
                    extra={"pivots": pivots, "cost": table.cost},
                )


def minimize(
    objective: Sequence[float] | np.ndarray,
    constraints: Sequence[Constraint],
    pivot_rule: str | PricingStrategy = "bland",
    seed_basic: Iterable[int] = (),
    refactor_interval: int | None = None,
) -> Solution:
    """Minimize an objective subject to equality constraints and x >= 0.

    Args:
        objective: Cost coefficient for every variable.
        constraints: Equality rows, each covering exactly ``len(objective)`` variables.
        pivot_rule: Rule name ("bland", "greedy", "devex", "greedy_then_bland") or a
                    PricingStrategy instance such as ``GreedyThenBlandPricing(window=50)``.
        seed_basic: Variables to pivot into the basis before stage 1 starts.
        refactor_interval: Rebuild the tableau from the original constraints every
                           this many pivots (None to disable).

    Returns:
        Solved(solution, cost), Unbounded(), or Infeasible().

    Raises:
        InvalidProblemError: If a constraint width mismatches the objective length or
                             a seed variable cannot be made basic.
        SolverInvariantError: If stage 1 reports an unbounded objective.
        NumericalInstabilityError: If a refactorization meets a singular basis.

    Examples:
        >>> from tour_solver.data import DenseConstraint
        >>> rows = [DenseConstraint((-3.0, 4.0), 5.0), DenseConstraint((-1.0, 2.0), 6.0)]
        >>> result = minimize([1.0, 1.0], rows)
        >>> result.solution, result.cost
        (array([7. , 6.5]), 13.5)
    """
    strategy = resolve_pivot_rule(pivot_rule)
    objective_vec = np.asarray(objective, dtype=float).reshape(-1)
    var_count = objective_vec.shape[0]

    table = Tableau.stage1(var_count, constraints, seed_basic=seed_basic)
    result, pivots, refactors = _run_stage(table, strategy, refactor_interval, stage=1)
    if result is StepResult.UNBOUNDED:
        raise SolverInvariantError("Stage 1 reported an unbounded objective.", stage=1)
    logger.debug(
        "Stage 1 complete",
        extra={
            "constraints": len(constraints),
            "variables": var_count,
            "pivots": pivots,
            "refactors": refactors,
            "artificial_cost": table.cost,
            "pivot_rule": repr(strategy),
        },
    )

    table.finish_stage1()
    table2 = table.stage2(objective_vec)
    if table2 is None:
        logger.debug("Constraints are infeasible", extra={"artificial_cost": table.cost})
        return Infeasible()

    result, pivots, refactors = _run_stage(table2, strategy, refactor_interval, stage=2)
    logger.debug(
        "Stage 2 complete",
        extra={"status": result.value, "pivots": pivots, "refactors": refactors},
    )
    if result is StepResult.UNBOUNDED:
        return Unbounded()
    return Solved(solution=table2.solution, cost=table2.cost)
