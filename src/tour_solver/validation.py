"""Precondition checks for linear programs and tour problems.

This module validates caller input before the solvers start: constraint widths,
edge costs, and graph completeness. It also reports numeric properties of the
edge costs that are likely to hurt the simplex tolerances.
"""

from __future__ import annotations

import math
import warnings
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import InvalidProblemError
from .graphs import edge_key, require_complete

if TYPE_CHECKING:
    import networkx as nx

    from .data import Constraint


@dataclass
class NumericWarning:
    """Warning about numeric issues in a tour problem.

    Attributes:
        severity: Severity level ('low', 'medium', 'high')
        category: Category of warning ('range' or 'conditioning')
        message: Human-readable warning message
        recommendation: Suggested action to resolve the issue
    """

    severity: str
    category: str
    message: str
    recommendation: str


@dataclass
class CostAnalysis:
    """Results of numeric analysis on the edge costs of a tour problem.

    Attributes:
        is_well_conditioned: Whether the costs appear numerically safe
        warnings: List of numeric warnings detected
        cost_range: Ratio of max to min absolute non-zero cost
        has_negative_costs: Whether any edge cost is negative
    """

    is_well_conditioned: bool
    warnings: list[NumericWarning]
    cost_range: float
    has_negative_costs: bool


def validate_constraints(var_count: int, constraints: Sequence[Constraint]) -> None:
    """Check that every constraint covers exactly ``var_count`` variables."""
    for i, constraint in enumerate(constraints):
        if constraint.coeff_count != var_count:
            raise InvalidProblemError(
                f"Constraint {i} has {constraint.coeff_count} coefficients, but the "
                f"objective has {var_count} variables."
            )


def edge_costs(
    graph: nx.Graph, edges: Sequence[frozenset], edge_cost: Callable[[Hashable, Hashable], float]
) -> list[float]:
    """Evaluate ``edge_cost`` once per edge, rejecting non-finite values."""
    costs = []
    for edge in edges:
        u, v = tuple(edge)
        cost = float(edge_cost(u, v))
        if not math.isfinite(cost):
            raise InvalidProblemError(
                f"Edge ({u!r}, {v!r}) has non-finite cost {cost}. Edge costs must be finite."
            )
        costs.append(cost)
    return costs


def analyze_edge_costs(costs: Sequence[float]) -> CostAnalysis:
    """Analyze the spread of edge costs.

    Costs spanning many orders of magnitude make the fixed tableau epsilon
    either too loose for the small costs or too tight for the large ones.
    """
    warnings_list: list[NumericWarning] = []
    magnitudes = [abs(c) for c in costs if c != 0.0] or [1.0]
    cost_range = max(magnitudes) / min(magnitudes)
    has_negative = any(c < 0 for c in costs)

    if cost_range > 1e8:
        warnings_list.append(NumericWarning(
            severity="high",
            category="conditioning",
            message=f"Edge cost range is very wide: {cost_range:.2e} (max/min ratio)",
            recommendation="Scale or round the costs; tiny costs fall below the pivot tolerance.",
        ))
    elif cost_range > 1e6:
        warnings_list.append(NumericWarning(
            severity="medium",
            category="conditioning",
            message=f"Edge cost range is wide: {cost_range:.2e} (max/min ratio)",
            recommendation="Consider scaling costs to improve numerical stability",
        ))

    if max(magnitudes) > 1e10:
        warnings_list.append(NumericWarning(
            severity="medium",
            category="range",
            message=f"Largest edge cost is very large: {max(magnitudes):.2e}",
            recommendation="Consider scaling costs to range [0.01, 1e6]",
        ))

    is_well_conditioned = not any(w.severity in ("high", "medium") for w in warnings_list)
    return CostAnalysis(
        is_well_conditioned=is_well_conditioned,
        warnings=warnings_list,
        cost_range=cost_range,
        has_negative_costs=has_negative,
    )


def validate_tour_problem(
    graph: nx.Graph,
    edge_cost: Callable[[Hashable, Hashable], float],
    warn: bool = True,
) -> tuple[list[frozenset], list[float]]:
    """Validate a tour problem and return its edges with their costs.

    Args:
        graph: Undirected graph; must be complete.
        edge_cost: Symmetric cost of the edge between two vertices.
        warn: If True, emit a UserWarning for medium or high severity issues.

    Returns:
        (edges, costs) in the graph's edge iteration order.

    Raises:
        InvalidProblemError: If the graph is not complete or a cost is not finite.
    """
    require_complete(graph)
    edges = [edge_key(u, v) for u, v in graph.edges()]
    costs = edge_costs(graph, edges, edge_cost)

    if warn:
        analysis = analyze_edge_costs(costs)
        serious = [w for w in analysis.warnings if w.severity in ("high", "medium")]
        if serious:
            msg = "Numeric issues detected in edge costs:\n"
            for w in serious:
                msg += f"  - {w.message}\n    -> {w.recommendation}\n"
            warnings.warn(msg, UserWarning, stacklevel=3)
    return edges, costs
