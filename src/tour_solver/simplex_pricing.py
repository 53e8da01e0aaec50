"""Pivot rules for tableau simplex entering-variable selection.

This module contains implementations of the pricing strategies used to select
the entering column during the simplex method. A strategy only decides which
non-basic column enters; the leaving row is always chosen by the minimum ratio
test in the tableau.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

from .exceptions import SolverConfigurationError

if TYPE_CHECKING:
    from .simplex import Tableau

# Constants for Devex weight bounds
DEVEX_WEIGHT_MIN = 1e-12  # Prevent division by zero or runaway weights
DEVEX_WEIGHT_MAX = 1e12  # Cap the Devex weight to avoid catastrophic scaling

DEFAULT_STALL_WINDOW = 200


class PricingStrategy(ABC):
    """Abstract base class for pivot rules.

    Per-solve state (cost history, Devex reference weights, the Bland switch)
    lives on the Tableau, so a strategy instance can be shared between solves.
    """

    name: str = ""

    @abstractmethod
    def select_entering(self, tableau: Tableau, tolerance: float) -> int | None:
        """Select the entering column for the next pivot.

        Args:
            tableau: Current simplex tableau.
            tolerance: Reduced costs must be below ``-tolerance`` to improve.

        Returns:
            Column index of the entering variable, or None if no column improves.
        """

    def before_pivot(self, tableau: Tableau, entering: int, row: int) -> None:
        """Hook called just before ``entering`` is pivoted in at ``row``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class BlandPricing(PricingStrategy):
    """Bland's rule: smallest column index with a negative reduced cost.

    Together with the smallest-index tie break in the ratio test this
    guarantees finite termination on degenerate problems.
    """

    name = "bland"

    def select_entering(self, tableau: Tableau, tolerance: float) -> int | None:
        candidates = np.flatnonzero(tableau.reduced_costs < -tolerance)
        if candidates.size == 0:
            return None
        return int(candidates[0])


class GreedyPricing(PricingStrategy):
    """Dantzig pricing: select the column with the most negative reduced cost."""

    name = "greedy"

    def select_entering(self, tableau: Tableau, tolerance: float) -> int | None:
        reduced = tableau.reduced_costs
        if reduced.size == 0:
            return None
        best = int(np.argmin(reduced))
        if reduced[best] < -tolerance:
            return best
        return None


class DevexPricing(PricingStrategy):
    """Devex pricing: approximate steepest edge with per-column reference weights.

    The merit of a column is ``|d_j| / sqrt(w_j)`` where ``w_j`` approximates the
    squared norm of the column in the current basis. Weights start at 1.0 and
    the entering column's weight is refreshed from the reference weights of the
    basic variables it displaces.
    """

    name = "devex"

    def select_entering(self, tableau: Tableau, tolerance: float) -> int | None:
        weights = tableau.ensure_devex_weights()
        reduced = tableau.reduced_costs
        candidates = np.flatnonzero(reduced < -tolerance)
        if candidates.size == 0:
            return None
        merit = np.abs(reduced[candidates]) / np.sqrt(weights[candidates])
        # argmax keeps the lowest column index among equal merits
        return int(candidates[int(np.argmax(merit))])

    def before_pivot(self, tableau: Tableau, entering: int, row: int) -> None:
        weights = tableau.ensure_devex_weights()
        column = tableau.values[:-1, entering]
        basic_weights = weights[tableau.basic_cols]
        weight = float(np.dot(column * column, basic_weights))
        if not math.isfinite(weight) or weight <= DEVEX_WEIGHT_MIN:
            weight = DEVEX_WEIGHT_MIN
        elif weight > DEVEX_WEIGHT_MAX:
            weight = DEVEX_WEIGHT_MAX
        weights[entering] = weight


class GreedyThenBlandPricing(PricingStrategy):
    """Greedy pricing until the objective stalls, then Bland's rule.

    The switch happens once the objective has not strictly improved over the
    last ``window`` pivots, and it is permanent for the rest of the stage.
    This keeps greedy speed on easy problems while retaining Bland's
    termination guarantee.

    Attributes:
        window: Number of pivots inspected for a strict improvement.
    """

    name = "greedy_then_bland"

    def __init__(self, window: int = DEFAULT_STALL_WINDOW):
        if window <= 0:
            raise SolverConfigurationError(f"Stall window must be positive, got {window}.")
        self.window = window
        self._greedy = GreedyPricing()
        self._bland = BlandPricing()

    def select_entering(self, tableau: Tableau, tolerance: float) -> int | None:
        if not tableau.switched_to_bland and self._stalled(tableau.cost_history):
            tableau.switched_to_bland = True
        if tableau.switched_to_bland:
            return self._bland.select_entering(tableau, tolerance)
        return self._greedy.select_entering(tableau, tolerance)

    def _stalled(self, history: list[float]) -> bool:
        return len(history) > self.window and history[-self.window] <= history[-1]

    def __repr__(self) -> str:
        return f"GreedyThenBlandPricing(window={self.window})"


PIVOT_RULES: dict[str, type[PricingStrategy]] = {
    "bland": BlandPricing,
    "greedy": GreedyPricing,
    "devex": DevexPricing,
    "greedy_then_bland": GreedyThenBlandPricing,
}


def resolve_pivot_rule(
    pivot_rule: str | PricingStrategy, stall_window: int = DEFAULT_STALL_WINDOW
) -> PricingStrategy:
    """Return a strategy instance for a rule name, passing instances through."""
    if isinstance(pivot_rule, PricingStrategy):
        return pivot_rule
    try:
        strategy_cls = PIVOT_RULES[pivot_rule]
    except KeyError:
        raise SolverConfigurationError(
            f"Unknown pivot rule '{pivot_rule}'. Valid options: {', '.join(sorted(PIVOT_RULES))}."
        ) from None
    if strategy_cls is GreedyThenBlandPricing:
        return GreedyThenBlandPricing(window=stall_window)
    return strategy_cls()
