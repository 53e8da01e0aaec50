"""Exact traveling salesman tours by depth-first branch-and-bound.

This is the simpler of the two tour searches. Rows are dense, every edge
variable is bounded by an explicit slack (``x_e + s_e = 1``), subtours are
separated with the global minimum cut, and subproblems are explored from an
explicit stack.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import networkx as nx
import numpy as np

from .branch_and_cut import SearchStats
from .cuts import min_cost_cut
from .data import DenseConstraint, EdgeCost, Infeasible, SolverOptions, TraceCallback, Unbounded
from .exceptions import SolverInvariantError
from .graphs import cut_set, edge_key, trace_tour
from .solver import LPSolver, SimplexLPSolver
from .validation import validate_tour_problem

logger = logging.getLogger(__name__)


@dataclass
class Subproblem:
    """A branch of the search with some edges fixed in or out of the tour.

    Attributes:
        free_edges: Edge index of each leading LP variable.
        constraints: Dense rows over the free edges and every slack.
        kept: Edges fixed into the tour.
        existing_cost: Total cost of the kept edges.
    """

    free_edges: tuple[int, ...]
    constraints: list[DenseConstraint]
    kept: frozenset = frozenset()
    existing_cost: float = 0.0


def branch_and_bound_tsp(
    graph: nx.Graph,
    edge_cost: EdgeCost,
    solver: LPSolver | None = None,
    trace_callback: TraceCallback | None = None,
    options: SolverOptions | None = None,
) -> list:
    """Find an optimal traveling salesman tour by branch-and-bound.

    Args:
        graph: Complete undirected networkx graph.
        edge_cost: Symmetric, finite cost of the edge between two vertices.
        solver: LP backend. Defaults to a SimplexLPSolver built from ``options``.
        trace_callback: Receives human-readable progress lines.
        options: Search and simplex settings. ``separate_blossoms`` is ignored.

    Returns:
        Closed tour starting and ending at the first vertex of the graph.

    Raises:
        InvalidProblemError: If the graph is not complete or a cost is not finite.
        SolverInvariantError: If a relaxation is unbounded or no tour is found.
    """
    options = options or SolverOptions()
    vertices = list(graph.nodes)
    if not vertices:
        return []
    if len(vertices) == 1:
        return [vertices[0]]

    edges, cost_list = validate_tour_problem(graph, edge_cost)
    if len(vertices) == 2:
        return [vertices[0], vertices[1], vertices[0]]

    if solver is None:
        solver = SimplexLPSolver(
            pivot_rule=options.pivot_rule,
            refactor_interval=options.refactor_interval,
            stall_window=options.stall_window,
        )
    tolerance = options.tolerance
    costs = np.asarray(cost_list, dtype=float)
    edge_index = {edge: i for i, edge in enumerate(edges)}
    edge_count = len(edges)

    def trace(message: str) -> None:
        if trace_callback is not None:
            trace_callback(message)

    root_rows = []
    for vertex in vertices:
        coeffs = [0.0] * (2 * edge_count)
        for other in graph[vertex]:
            coeffs[edge_index[edge_key(vertex, other)]] = 1.0
        root_rows.append(DenseConstraint(tuple(coeffs), 2.0))
    for i in range(edge_count):
        coeffs = [0.0] * (2 * edge_count)
        coeffs[i] = 1.0
        coeffs[edge_count + i] = 1.0
        root_rows.append(DenseConstraint(tuple(coeffs), 1.0))

    stats = SearchStats()
    best_cost = np.inf
    best_edges: list[frozenset] | None = None
    stack = [Subproblem(free_edges=tuple(range(edge_count)), constraints=root_rows)]

    while stack:
        sub = stack.pop()
        stats.nodes_explored += 1

        # Cutting loop: tighten this subproblem until no subtour remains.
        values = None
        while True:
            var_count = sub.constraints[0].coeff_count
            objective = np.zeros(var_count, dtype=float)
            objective[: len(sub.free_edges)] = costs[list(sub.free_edges)]
            result = solver.minimize(objective, sub.constraints)
            stats.lp_solves += 1
            if isinstance(result, Unbounded):
                raise SolverInvariantError("Tour relaxation is unbounded.")
            if isinstance(result, Infeasible):
                trace(f"found infeasible subproblem depth={edge_count - len(sub.free_edges)}")
                break
            if result.cost + sub.existing_cost >= best_cost - tolerance:
                stats.nodes_pruned += 1
                break

            current = np.zeros(edge_count, dtype=float)
            for edge in sub.kept:
                current[edge] = 1.0
            current[list(sub.free_edges)] = result.solution[: len(sub.free_edges)]

            cut = min_cost_cut(
                graph, lambda u, v: max(0.0, float(current[edge_index[edge_key(u, v)]]))
            )
            if cut.cost >= 2.0 - tolerance:
                values = current
                break

            positions = {edge: pos for pos, edge in enumerate(sub.free_edges)}
            rhs = 2.0
            row = [0.0] * (var_count + 1)
            for edge in cut_set(graph, cut.side_a):
                i = edge_index[edge]
                if i in positions:
                    row[positions[i]] = 1.0
                elif i in sub.kept:
                    rhs -= 1.0
            row[-1] = -1.0
            sub.constraints = [c.add_zero_coefficient() for c in sub.constraints]
            sub.constraints.append(DenseConstraint(tuple(row), rhs))
            stats.subtour_cuts += 1
            trace(f"added subtour cut cost={cut.cost:.6g} constraints={len(sub.constraints)}")

        if values is None:
            continue

        fractional = [e for e in sub.free_edges if min(values[e], 1.0 - values[e]) > tolerance]
        if not fractional:
            chosen = [edges[i] for i in np.flatnonzero(values > 0.5)]
            total = float(sum(costs[edge_index[e]] for e in chosen))
            trace_tour(vertices, chosen)
            trace(f"found solution cost={total:.6g}")
            if total < best_cost:
                best_cost = total
                best_edges = chosen
                stats.incumbents += 1
            continue

        edge = fractional[0]
        position = sub.free_edges.index(edge)
        remaining = sub.free_edges[:position] + sub.free_edges[position + 1 :]
        # The child matching the rounded value is explored first.
        order = (False, True) if values[edge] > 0.5 else (True, False)
        for keep in order:
            stack.append(
                Subproblem(
                    free_edges=remaining,
                    constraints=[
                        c.setting_variable(position, 1.0 if keep else 0.0)
                        for c in sub.constraints
                    ],
                    kept=(sub.kept | {edge}) if keep else sub.kept,
                    existing_cost=sub.existing_cost + (float(costs[edge]) if keep else 0.0),
                )
            )

    if best_edges is None:
        raise SolverInvariantError(
            "Branch-and-bound finished without finding a tour; did you pass invalid costs?"
        )

    logger.info(
        f"Branch-and-bound finished: cost={best_cost:.6g}",
        extra={
            "vertices": len(vertices),
            "nodes_explored": stats.nodes_explored,
            "nodes_pruned": stats.nodes_pruned,
            "lp_solves": stats.lp_solves,
            "subtour_cuts": stats.subtour_cuts,
        },
    )
    return trace_tour(vertices, best_edges)
