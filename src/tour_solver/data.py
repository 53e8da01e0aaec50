"""Core data structures for linear programs and cut computations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import ClassVar, NamedTuple, Union

import numpy as np

from .exceptions import InvalidProblemError, SolverConfigurationError


class Constraint(ABC):
    """An equality row ``a . x = b`` over a fixed number of variables."""

    @property
    @abstractmethod
    def coeff_count(self) -> int:
        """Number of variables the row is defined over."""

    @property
    @abstractmethod
    def equals(self) -> float:
        """Right-hand side of the row."""

    @abstractmethod
    def coeffs(self) -> np.ndarray:
        """Return the dense coefficient vector of the row."""

    def _check_index(self, idx: int) -> None:
        if not 0 <= idx < self.coeff_count:
            raise InvalidProblemError(
                f"Cannot eliminate variable {idx}: constraint only has "
                f"{self.coeff_count} variables."
            )


@dataclass(frozen=True)
class DenseConstraint(Constraint):
    """Equality constraint storing every coefficient explicitly.

    Attributes:
        values: Coefficient for each variable, in variable order.
        rhs: Right-hand side of the row.

    Examples:
        >>> # -3x + 4y = 5
        >>> row = DenseConstraint(values=(-3.0, 4.0), rhs=5.0)
        >>> row.setting_variable(0, 1.0)
        DenseConstraint(values=(4.0,), rhs=8.0)
    """

    values: tuple[float, ...]
    rhs: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))
        object.__setattr__(self, "rhs", float(self.rhs))

    @property
    def coeff_count(self) -> int:
        return len(self.values)

    @property
    def equals(self) -> float:
        return self.rhs

    def coeffs(self) -> np.ndarray:
        return np.array(self.values, dtype=float)

    def setting_variable(self, idx: int, value: float) -> DenseConstraint:
        """Eliminate variable ``idx`` by fixing it to ``value``.

        The fixed term moves into the right-hand side and the variable is removed
        from the row, so every later variable shifts down by one index.
        """
        self._check_index(idx)
        return DenseConstraint(
            values=self.values[:idx] + self.values[idx + 1 :],
            rhs=self.rhs - self.values[idx] * value,
        )

    def add_zero_coefficient(self) -> DenseConstraint:
        return DenseConstraint(values=self.values + (0.0,), rhs=self.rhs)


@dataclass(frozen=True)
class SparseConstraint(Constraint):
    """Equality constraint storing only its nonzero coefficients.

    Attributes:
        count: Declared total number of variables.
        coefficients: Mapping from variable index to nonzero coefficient.
        rhs: Right-hand side of the row.
    """

    count: int
    coefficients: Mapping[int, float] = field(hash=False)
    rhs: float = 0.0

    def __post_init__(self) -> None:
        coefficients = {int(k): float(v) for k, v in self.coefficients.items()}
        for idx in coefficients:
            if not 0 <= idx < self.count:
                raise InvalidProblemError(
                    f"Coefficient index {idx} is outside the declared {self.count} variables."
                )
        object.__setattr__(self, "coefficients", coefficients)
        object.__setattr__(self, "rhs", float(self.rhs))

    @property
    def coeff_count(self) -> int:
        return self.count

    @property
    def equals(self) -> float:
        return self.rhs

    def coeffs(self) -> np.ndarray:
        result = np.zeros(self.count, dtype=float)
        for idx, value in self.coefficients.items():
            result[idx] = value
        return result

    def setting_variable(self, idx: int, value: float) -> SparseConstraint:
        """Eliminate variable ``idx`` by fixing it to ``value`` (see DenseConstraint)."""
        self._check_index(idx)
        shifted = {
            (i if i < idx else i - 1): coeff for i, coeff in self.coefficients.items() if i != idx
        }
        return SparseConstraint(
            count=self.count - 1,
            coefficients=shifted,
            rhs=self.rhs - self.coefficients.get(idx, 0.0) * value,
        )

    def add_zero_coefficient(self) -> SparseConstraint:
        """Widen the row by one trailing variable with a zero coefficient."""
        return SparseConstraint(count=self.count + 1, coefficients=self.coefficients, rhs=self.rhs)


@dataclass
class ConstraintSystem:
    """Sparse equality rows sharing a separately tracked variable count.

    Adding a variable only bumps ``var_count``; rows are widened implicitly
    when they are materialised for a solver call.

    Attributes:
        var_count: Current number of variables.
        rows: (coefficient map, right-hand side) pairs.
    """

    var_count: int
    rows: list[tuple[dict[int, float], float]] = field(default_factory=list)

    def add_variable(self) -> int:
        """Append a variable with zero coefficient in every row, returning its index."""
        self.var_count += 1
        return self.var_count - 1

    def append(self, coefficients: Mapping[int, float], rhs: float) -> None:
        for idx in coefficients:
            if not 0 <= idx < self.var_count:
                raise InvalidProblemError(
                    f"Coefficient index {idx} is outside the {self.var_count} variables."
                )
        self.rows.append((dict(coefficients), float(rhs)))

    def setting_variable(self, idx: int, value: float) -> ConstraintSystem:
        """Return a copy of the system with variable ``idx`` fixed to ``value``."""
        rows = [
            (constraint.coefficients, constraint.rhs)
            for constraint in (c.setting_variable(idx, value) for c in self.constraints())
        ]
        return ConstraintSystem(var_count=self.var_count - 1, rows=rows)

    def constraints(self) -> list[SparseConstraint]:
        return [
            SparseConstraint(count=self.var_count, coefficients=coeffs, rhs=rhs)
            for coeffs, rhs in self.rows
        ]

    def copy(self) -> ConstraintSystem:
        return ConstraintSystem(var_count=self.var_count, rows=list(self.rows))

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class Solved:
    """Optimal vertex of a linear program.

    Attributes:
        solution: Value of every variable at the optimum.
        cost: Objective value ``objective . solution``.
    """

    solution: np.ndarray = field(compare=False)
    cost: float
    status: ClassVar[str] = "optimal"


@dataclass(frozen=True)
class Unbounded:
    """The objective decreases without limit over the feasible region."""

    status: ClassVar[str] = "unbounded"


@dataclass(frozen=True)
class Infeasible:
    """No point satisfies every constraint with non-negative variables."""

    status: ClassVar[str] = "infeasible"


Solution = Union[Solved, Unbounded, Infeasible]


class Cut(NamedTuple):
    """A vertex bipartition together with the total cost of its crossing edges."""

    side_a: frozenset
    side_b: frozenset
    cost: float


# Cost of the edge between two vertices; must be symmetric.
EdgeCost = Callable[[Hashable, Hashable], float]

# Receives human-readable progress lines from the tour searches.
TraceCallback = Callable[[str], None]


@dataclass
class SolverOptions:
    """Configuration options for the tour searches.

    Attributes:
        pivot_rule: Entering-variable rule used by the default simplex solver:
                    - "greedy_then_bland" (default): greedy until the objective stalls
                      for ``stall_window`` pivots, then Bland for the rest of the stage
                    - "bland": smallest improving column (anti-cycling, slow)
                    - "greedy": most negative reduced cost (fast, can cycle)
                    - "devex": approximate steepest edge
        stall_window: Number of pivots without strict improvement before
                      greedy_then_bland switches to Bland (default: 200).
        refactor_interval: Rebuild the tableau from the original constraints every
                           this many pivots. None disables refactorization.
        tolerance: Integrality and cut-violation tolerance (default: 1e-5).
        separate_blossoms: Search for violated blossom (odd-cut) inequalities when
                           no subtour cut exists (default: True).

    Examples:
        >>> # Default options
        >>> options = SolverOptions()

        >>> # Subtour cuts only, with periodic refactorization
        >>> options = SolverOptions(separate_blossoms=False, refactor_interval=50)
    """

    pivot_rule: str = "greedy_then_bland"
    stall_window: int = 200
    refactor_interval: int | None = None
    tolerance: float = 1e-5
    separate_blossoms: bool = True

    def __post_init__(self) -> None:
        from .simplex_pricing import PIVOT_RULES

        if self.pivot_rule not in PIVOT_RULES:
            raise SolverConfigurationError(
                f"Invalid pivot rule '{self.pivot_rule}'. Must be one of "
                f"{', '.join(sorted(PIVOT_RULES))}."
            )
        if self.stall_window <= 0:
            raise SolverConfigurationError(
                f"Stall window must be positive, got {self.stall_window}."
            )
        if self.refactor_interval is not None and self.refactor_interval <= 0:
            raise SolverConfigurationError(
                f"Refactor interval must be positive or None, got {self.refactor_interval}."
            )
        if self.tolerance <= 0:
            raise SolverConfigurationError(
                f"Tolerance must be positive, got {self.tolerance}. "
                f"Tolerance controls integrality and cut-violation checks."
            )


def dense_constraints(rows: Iterable[tuple[Iterable[float], float]]) -> list[DenseConstraint]:
    """Factory helper building dense constraints from (coefficients, rhs) pairs."""
    return [DenseConstraint(values=tuple(coeffs), rhs=rhs) for coeffs, rhs in rows]
