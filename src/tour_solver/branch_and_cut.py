"""Exact traveling salesman tours by branch-and-cut.

The relaxation has one variable per edge of the complete graph and one
degree-2 equality per vertex. Each search node is tightened with subtour and
blossom cuts until its LP optimum is integral or no violated cut remains,
and the search branches on the most fractional edge otherwise.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from collections.abc import Hashable
from dataclasses import dataclass, field

import networkx as nx
import numpy as np

from .data import ConstraintSystem, EdgeCost, Infeasible, SolverOptions, TraceCallback, Unbounded
from .exceptions import SolverInvariantError
from .gomory_hu import gomory_hu_tree
from .graphs import cut_set, edge_key, trace_tour
from .solver import LPSolver, SimplexLPSolver
from .validation import validate_tour_problem


@dataclass
class SearchNode:
    """One node of the branch-and-cut tree.

    Attributes:
        forced: Branching decisions, mapping edge index to its fixed value.
        free_edges: Edge index of each leading LP variable; cut slacks follow.
        system: Constraint rows over the free edges and the slacks.
        fixed_cost: Total cost of the edges forced into the tour.
        bound: Best known lower bound on any tour below this node.
        solution: Value of every edge once the node is solved without cuts.
    """

    forced: dict[int, bool]
    free_edges: tuple[int, ...]
    system: ConstraintSystem
    fixed_cost: float = 0.0
    bound: float = 0.0
    solution: np.ndarray | None = field(default=None, repr=False)

    @property
    def depth(self) -> int:
        return len(self.forced)

    @property
    def pending(self) -> bool:
        return self.solution is None

    def forced_key(self) -> frozenset:
        return frozenset(self.forced.items())

    def positions(self) -> dict[int, int]:
        return {edge: pos for pos, edge in enumerate(self.free_edges)}


@dataclass
class SearchStats:
    nodes_explored: int = 0
    nodes_pruned: int = 0
    lp_solves: int = 0
    subtour_cuts: int = 0
    blossom_cuts: int = 0
    incumbents: int = 0


class BranchAndCutSearch:
    """Best-bound branch-and-cut over the edges of a complete graph.

    The open nodes live in a heap keyed by (lower bound, deeper first,
    insertion order). The best tour found so far is the only state shared
    between nodes, and nodes whose bound cannot beat it are dropped.
    """

    def __init__(
        self,
        graph: nx.Graph,
        edges: list[frozenset],
        costs: list[float],
        solver: LPSolver,
        options: SolverOptions,
        trace_callback: TraceCallback | None = None,
    ):
        self.graph = graph
        self.vertices = list(graph.nodes)
        self.edges = edges
        self.edge_index = {edge: i for i, edge in enumerate(edges)}
        self.costs = np.asarray(costs, dtype=float)
        self.solver = solver
        self.options = options
        self.tolerance = options.tolerance
        self.trace_callback = trace_callback
        self.logger = logging.getLogger(__name__)
        self.stats = SearchStats()

        self.best_cost = np.inf
        self.best_edges: list[frozenset] | None = None

        self._heap: list[tuple[float, int, int, SearchNode]] = []
        self._counter = itertools.count()
        self._seen: set[frozenset] = set()

    def root(self) -> SearchNode:
        system = ConstraintSystem(var_count=len(self.edges))
        for vertex in self.vertices:
            row = {self.edge_index[edge_key(vertex, other)]: 1.0 for other in self.graph[vertex]}
            system.append(row, 2.0)
        return SearchNode(forced={}, free_edges=tuple(range(len(self.edges))), system=system)

    def run(self) -> list:
        start_time = time.time()
        self.push(self.root())
        while self._heap:
            self.process(self.pop())

        if self.best_edges is None:
            raise SolverInvariantError(
                "Branch-and-cut finished without finding a tour; the edge costs or the "
                "graph are malformed."
            )

        tour = trace_tour(self.vertices, self.best_edges)
        self.logger.info(
            f"Branch-and-cut finished: cost={self.best_cost:.6g}",
            extra={
                "vertices": len(self.vertices),
                "edges": len(self.edges),
                "nodes_explored": self.stats.nodes_explored,
                "nodes_pruned": self.stats.nodes_pruned,
                "lp_solves": self.stats.lp_solves,
                "subtour_cuts": self.stats.subtour_cuts,
                "blossom_cuts": self.stats.blossom_cuts,
                "elapsed_ms": (time.time() - start_time) * 1000,
            },
        )
        return tour

    # ============================================================================
    # Open node queue
    # ============================================================================

    def push(self, node: SearchNode) -> bool:
        """Queue a new node unless its forced-edge set was queued before.

        The memo matches branching decisions regardless of the order they were
        made in. Returns False when the node was skipped.
        """
        key = node.forced_key()
        if key in self._seen:
            return False
        self._seen.add(key)
        self._enqueue(node)
        return True

    def pop(self) -> SearchNode:
        """Remove the open node with the lowest bound, deeper nodes first on ties."""
        return heapq.heappop(self._heap)[-1]

    def _enqueue(self, node: SearchNode) -> None:
        heapq.heappush(self._heap, (node.bound, -node.depth, next(self._counter), node))

    def _prunable(self, bound: float) -> bool:
        return bound >= self.best_cost - self.tolerance

    def process(self, node: SearchNode) -> None:
        """Handle one popped node: prune, solve, requeue, accept or branch."""
        self.stats.nodes_explored += 1
        if self._prunable(node.bound):
            self.stats.nodes_pruned += 1
            return

        self._trace(
            f"working on node depth={node.depth} "
            f"constraints={len(node.system)} bound={node.bound:.6g}"
        )
        if node.pending and not self._solve_node(node):
            return
        if node.pending:
            # Cuts were added; the node goes back with its raised bound.
            if self._prunable(node.bound):
                self.stats.nodes_pruned += 1
            else:
                self._enqueue(node)
            return

        fractional = self._fractional_edges(node)
        if not fractional:
            self._accept(node)
            return

        edge = min(fractional, key=lambda e: (abs(node.solution[e] - 0.5), e))
        self._trace(
            f"branching on edge {edge} value={node.solution[edge]:.6g} "
            f"with {len(fractional)} fractional edges"
        )
        for value in (True, False):
            self.push(self._child(node, edge, value))

    # ============================================================================
    # Node solving
    # ============================================================================

    def _solve_node(self, node: SearchNode) -> bool:
        """Solve the node's LP once and add any violated cuts.

        Returns False when the node is infeasible. Otherwise the node's bound is
        updated, and its solution is stored only if no cut was added.
        """
        objective = np.zeros(node.system.var_count, dtype=float)
        objective[: len(node.free_edges)] = self.costs[list(node.free_edges)]
        result = self.solver.minimize(objective, node.system.constraints())
        self.stats.lp_solves += 1

        if isinstance(result, Unbounded):
            raise SolverInvariantError(
                "Tour relaxation is unbounded, which is impossible for degree constraints.",
            )
        if isinstance(result, Infeasible):
            self._trace("found infeasible problem")
            return False

        values = self._edge_values(node, result.solution)
        node.bound = result.cost + node.fixed_cost

        subtours = self._subtour_cuts(values)
        fractional = int(np.count_nonzero(np.minimum(values, 1.0 - values) > self.tolerance))
        blossoms: list[tuple[frozenset, list[int]]] = []
        if not subtours and fractional and self.options.separate_blossoms:
            blossoms = self._blossom_cuts(values)

        self._trace(
            f"solved LP: cycles={len(subtours)} blossom={len(blossoms)} "
            f"fractional={fractional} cost={node.bound:.6g}"
        )
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(
                "Solved node relaxation",
                extra={
                    "depth": node.depth,
                    "constraints": len(node.system),
                    "variables": node.system.var_count,
                    "bound": node.bound,
                    "subtour_cuts": len(subtours),
                    "blossom_cuts": len(blossoms),
                    "fractional": fractional,
                },
            )

        for side in subtours:
            boundary = {self.edge_index[e]: 1.0 for e in cut_set(self.graph, side)}
            self._add_cut(node, boundary, 2.0)
        for handle, teeth in blossoms:
            coeffs = {self.edge_index[e]: 1.0 for e in cut_set(self.graph, handle)}
            for tooth in teeth:
                coeffs[tooth] = -1.0
            self._add_cut(node, coeffs, 1.0 - len(teeth))
        self.stats.subtour_cuts += len(subtours)
        self.stats.blossom_cuts += len(blossoms)

        if not subtours and not blossoms:
            node.solution = values
        return True

    def _edge_values(self, node: SearchNode, solution: np.ndarray) -> np.ndarray:
        """Value of every original edge: forced values plus the LP values."""
        values = np.zeros(len(self.edges), dtype=float)
        for edge, value in node.forced.items():
            values[edge] = 1.0 if value else 0.0
        values[list(node.free_edges)] = solution[: len(node.free_edges)]
        return values

    def _add_cut(self, node: SearchNode, coeffs: dict[int, float], rhs: float) -> None:
        """Append ``coeffs . x - slack = rhs`` with a fresh slack variable.

        Forced edges are constants at this node and move to the right-hand side.
        """
        positions = node.positions()
        row: dict[int, float] = {}
        for edge, coeff in coeffs.items():
            if edge in node.forced:
                if node.forced[edge]:
                    rhs -= coeff
            else:
                row[positions[edge]] = coeff
        slack = node.system.add_variable()
        row[slack] = -1.0
        node.system.append(row, rhs)

    def _support_graph(self, values: np.ndarray) -> nx.Graph:
        support = nx.Graph()
        support.add_nodes_from(self.vertices)
        for i in np.flatnonzero(values > self.tolerance):
            u, v = tuple(self.edges[i])
            support.add_edge(u, v)
        return support

    def _value(self, values: np.ndarray, u: Hashable, v: Hashable) -> float:
        return float(values[self.edge_index[edge_key(u, v)]])

    def _subtour_cuts(self, values: np.ndarray) -> list[frozenset]:
        """Vertex sets whose boundary carries less than 2 units of the solution."""
        overweight = np.flatnonzero(values > 1.0 + self.tolerance)
        if overweight.size:
            # Bound single edges before looking for disconnected cycles.
            return [self.edges[i] for i in overweight]

        tree = gomory_hu_tree(self._support_graph(values), lambda u, v: self._value(values, u, v))
        return [cut.side_a for cut in tree.cuts() if cut.cost < 2.0 - self.tolerance]

    def _blossom_cuts(self, values: np.ndarray) -> list[tuple[frozenset, list[int]]]:
        """Violated blossom inequalities ``x(d(H) - T) - x(T) >= 1 - |T|``.

        Candidate handles come from a Gomory-Hu tree weighted by ``min(x, 1 - x)``;
        for each handle the heaviest boundary edges form odd teeth sets.
        """
        tree = gomory_hu_tree(
            self._support_graph(values),
            lambda u, v: max(0.0, min(self._value(values, u, v), 1.0 - self._value(values, u, v))),
        )
        result = []
        for cut in tree.cuts():
            boundary = sorted(
                (self.edge_index[e] for e in cut_set(self.graph, cut.side_a)),
                key=lambda i: (-values[i], i),
            )
            current = float(values[boundary].sum())
            for i, tooth in enumerate(boundary):
                current += 1.0 - 2.0 * values[tooth]
                if i > 0 and i % 2 == 0 and 1.0 - current > self.tolerance:
                    result.append((cut.side_a, boundary[: i + 1]))
        return result

    # ============================================================================
    # Branching and acceptance
    # ============================================================================

    def _fractional_edges(self, node: SearchNode) -> list[int]:
        values = node.solution
        return [e for e in node.free_edges if min(values[e], 1.0 - values[e]) > self.tolerance]

    def _child(self, node: SearchNode, edge: int, value: bool) -> SearchNode:
        position = node.positions()[edge]
        forced = dict(node.forced)
        forced[edge] = value
        return SearchNode(
            forced=forced,
            free_edges=node.free_edges[:position] + node.free_edges[position + 1 :],
            system=node.system.setting_variable(position, 1.0 if value else 0.0),
            fixed_cost=node.fixed_cost + (float(self.costs[edge]) if value else 0.0),
            bound=node.bound,
        )

    def _accept(self, node: SearchNode) -> None:
        chosen = [self.edges[i] for i in np.flatnonzero(node.solution > 0.5)]
        cost = float(sum(self.costs[self.edge_index[e]] for e in chosen))
        # Raises if the chosen edges are not a single Hamiltonian cycle.
        trace_tour(self.vertices, chosen)
        self._trace(f"found solution depth={node.depth} cost={cost:.6g}")
        if cost < self.best_cost:
            self.best_cost = cost
            self.best_edges = chosen
            self.stats.incumbents += 1
            self.logger.debug(
                "New incumbent tour",
                extra={
                    "cost": cost,
                    "depth": node.depth,
                    "nodes_explored": self.stats.nodes_explored,
                },
            )

    def _trace(self, message: str) -> None:
        if self.trace_callback is not None:
            self.trace_callback(message)


def branch_and_cut_tsp(
    graph: nx.Graph,
    edge_cost: EdgeCost,
    solver: LPSolver | None = None,
    trace_callback: TraceCallback | None = None,
    options: SolverOptions | None = None,
) -> list:
    """Find an optimal traveling salesman tour by branch-and-cut.

    This is the main entry point for exact tours. The search is a best-bound
    branch-and-cut: every node's LP relaxation is tightened with subtour and
    (optionally) blossom cuts, and fractional solutions are split on the edge
    closest to 0.5.

    Args:
        graph: Complete undirected networkx graph. Vertex order decides where
               the returned tour starts.
        edge_cost: Symmetric, finite cost of the edge between two vertices.
        solver: LP backend. Defaults to a SimplexLPSolver built from ``options``.
        trace_callback: Receives human-readable progress lines. It never
                        affects the search.
        options: Search and simplex settings (see SolverOptions).

    Returns:
        Closed tour: every vertex once, then the first vertex again. Graphs with
        no vertices give ``[]``, one vertex gives ``[v]``, and two vertices give
        ``[a, b, a]``.

    Raises:
        InvalidProblemError: If the graph is not complete or a cost is not finite.
        SolverInvariantError: If a relaxation is unbounded or no tour is found.

    Examples:
        >>> from tour_solver import complete_graph
        >>> graph = complete_graph(range(5))
        >>> tour = branch_and_cut_tsp(graph, lambda u, v: abs(u - v))
        >>> tour[0] == tour[-1]
        True

    See Also:
        - branch_and_bound_tsp: Simpler depth-first variant with dense rows.
    """
    options = options or SolverOptions()
    vertices = list(graph.nodes)
    if not vertices:
        return []
    if len(vertices) == 1:
        return [vertices[0]]

    edges, costs = validate_tour_problem(graph, edge_cost)
    if len(vertices) == 2:
        return [vertices[0], vertices[1], vertices[0]]

    if solver is None:
        solver = SimplexLPSolver(
            pivot_rule=options.pivot_rule,
            refactor_interval=options.refactor_interval,
            stall_window=options.stall_window,
        )
    logger = logging.getLogger(__name__)
    logger.info(
        "Starting branch-and-cut",
        extra={
            "vertices": len(vertices),
            "edges": len(edges),
            "solver": repr(solver),
            "separate_blossoms": options.separate_blossoms,
        },
    )
    search = BranchAndCutSearch(graph, edges, costs, solver, options, trace_callback)
    return search.run()
