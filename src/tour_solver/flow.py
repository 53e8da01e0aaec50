"""Maximum flow between two vertices of an undirected graph.

The default backend is networkx's Edmonds-Karp implementation. A second
backend formulates the flow as a linear program and solves it with the
tableau simplex, which is mainly useful for cross-checking the two.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable

import networkx as nx
from networkx.algorithms.flow import edmonds_karp

from .data import Solved, SparseConstraint
from .exceptions import InvalidProblemError, SolverConfigurationError, SolverInvariantError
from .simplex import minimize

FLOW_TOLERANCE = 1e-9  # Residual capacity below this counts as saturated.

MAX_FLOW_ALGORITHMS = ("edmonds_karp", "linear_program")

logger = logging.getLogger(__name__)

Capacity = Callable[[Hashable, Hashable], float]


class Flow:
    """A feasible flow from ``source`` to ``sink``.

    Flows are stored skew-symmetrically: ``flow(u, v) == -flow(v, u)``, so a
    positive value means flow travelling from ``u`` towards ``v``.
    """

    def __init__(
        self,
        graph: nx.Graph,
        source: Hashable,
        sink: Hashable,
        flows: dict[Hashable, dict[Hashable, float]],
        capacity: Capacity,
    ):
        self.graph = graph
        self.source = source
        self.sink = sink
        self.flows = flows
        self._capacity = capacity

    @property
    def value(self) -> float:
        return self.total_flow(self.source)

    def flow(self, u: Hashable, v: Hashable) -> float:
        return self.flows.get(u, {}).get(v, 0.0)

    def total_flow(self, vertex: Hashable) -> float:
        """Net flow out of ``vertex``."""
        return float(sum(self.flows.get(vertex, {}).values()))

    def residual_graph(self, tolerance: float = FLOW_TOLERANCE) -> nx.DiGraph:
        """Directed graph of the arcs that can still carry more flow.

        Each arc carries its remaining capacity in the ``"capacity"`` attribute.
        """
        residual = nx.DiGraph()
        residual.add_nodes_from(self.graph.nodes)
        for u, v in self.graph.edges():
            for a, b in ((u, v), (v, u)):
                remaining = self._capacity(a, b) - self.flow(a, b)
                if remaining > tolerance:
                    residual.add_edge(a, b, capacity=remaining)
        return residual

    def source_side(self, tolerance: float = FLOW_TOLERANCE) -> frozenset:
        """Vertices reachable from the source in the residual graph.

        For a maximum flow this is the source side of a minimum cut.

        Raises:
            SolverInvariantError: If the sink is still reachable, meaning the
                flow is not maximum.
        """
        residual = self.residual_graph(tolerance)
        side = frozenset(nx.descendants(residual, self.source) | {self.source})
        if self.sink in side:
            raise SolverInvariantError(
                "Sink is reachable in the residual graph; the flow is not maximum."
            )
        return side

    def __repr__(self) -> str:
        return f"Flow(source={self.source!r}, sink={self.sink!r}, value={self.value:.6g})"


def max_flow(
    graph: nx.Graph,
    source: Hashable,
    sink: Hashable,
    capacity: Capacity,
    algorithm: str = "edmonds_karp",
) -> Flow:
    """Compute a maximum flow from ``source`` to ``sink``.

    Args:
        graph: Undirected graph; every edge may carry flow in either direction.
        source: Vertex the flow leaves.
        sink: Vertex the flow enters.
        capacity: Capacity of the arc from the first vertex to the second.
                  Must be non-negative and finite.
        algorithm: "edmonds_karp" (default, networkx) or "linear_program"
                   (tableau simplex).

    Returns:
        Flow with ``value`` equal to the minimum source/sink cut cost.

    Raises:
        InvalidProblemError: If the endpoints are missing or equal, or a capacity
            is negative or non-finite.
        SolverConfigurationError: If ``algorithm`` is unknown.

    Examples:
        >>> graph = nx.Graph([(0, 1), (1, 2), (0, 2)])
        >>> max_flow(graph, 0, 2, lambda u, v: 1.0).value
        2.0
    """
    if source not in graph or sink not in graph:
        raise InvalidProblemError(
            f"Flow endpoints {source!r} and {sink!r} must both be vertices of the graph."
        )
    if source == sink:
        raise InvalidProblemError(f"Flow source and sink must differ, got {source!r} twice.")

    capacities: dict[tuple[Hashable, Hashable], float] = {}
    for u, v in graph.edges():
        if u == v:
            continue
        for a, b in ((u, v), (v, u)):
            cap = float(capacity(a, b))
            if not cap >= 0.0 or cap == float("inf"):
                raise InvalidProblemError(
                    f"Capacity of arc ({a!r}, {b!r}) must be finite and non-negative, got {cap}."
                )
            capacities[(a, b)] = cap

    if algorithm == "edmonds_karp":
        flows = _edmonds_karp_flows(graph, source, sink, capacities)
    elif algorithm == "linear_program":
        flows = _linear_program_flows(graph, source, sink, capacities)
    else:
        raise SolverConfigurationError(
            f"Unknown max flow algorithm '{algorithm}'. "
            f"Valid options: {', '.join(MAX_FLOW_ALGORITHMS)}."
        )
    return Flow(graph, source, sink, flows, lambda a, b: capacities.get((a, b), 0.0))


def _edmonds_karp_flows(
    graph: nx.Graph,
    source: Hashable,
    sink: Hashable,
    capacities: dict[tuple[Hashable, Hashable], float],
) -> dict[Hashable, dict[Hashable, float]]:
    network = nx.DiGraph()
    network.add_nodes_from(graph.nodes)
    for (a, b), cap in capacities.items():
        network.add_edge(a, b, capacity=cap)
    residual = edmonds_karp(network, source, sink, capacity="capacity")

    flows: dict[Hashable, dict[Hashable, float]] = {}
    for u, v in graph.edges():
        if u == v:
            continue
        # The residual network keeps one skew-symmetric flow per vertex pair.
        net = float(residual[u][v]["flow"]) if residual.has_edge(u, v) else 0.0
        flows.setdefault(u, {})[v] = net
        flows.setdefault(v, {})[u] = -net
    return flows


def _linear_program_flows(
    graph: nx.Graph,
    source: Hashable,
    sink: Hashable,
    capacities: dict[tuple[Hashable, Hashable], float],
) -> dict[Hashable, dict[Hashable, float]]:
    arcs = list(capacities)
    arc_index = {arc: i for i, arc in enumerate(arcs)}
    # Variables: one flow and one capacity slack per arc, then the source
    # injection and the sink withdrawal.
    var_count = 2 * len(arcs) + 2
    source_var = 2 * len(arcs)
    sink_var = source_var + 1

    constraints = []
    for i, arc in enumerate(arcs):
        constraints.append(
            SparseConstraint(
                count=var_count, coefficients={i: 1.0, len(arcs) + i: 1.0}, rhs=capacities[arc]
            )
        )
    for v in graph.nodes:
        coeffs: dict[int, float] = {}
        for w in graph.neighbors(v):
            if w == v:
                continue
            coeffs[arc_index[(v, w)]] = 1.0
            coeffs[arc_index[(w, v)]] = -1.0
        if v == source:
            coeffs[source_var] = -1.0
        elif v == sink:
            coeffs[sink_var] = 1.0
        constraints.append(SparseConstraint(count=var_count, coefficients=coeffs, rhs=0.0))

    objective = [0.0] * var_count
    objective[source_var] = -1.0
    result = minimize(objective, constraints, pivot_rule="bland")
    if not isinstance(result, Solved):
        raise SolverInvariantError(
            f"Max flow linear program must have an optimum, got {result.status}."
        )
    logger.debug(
        "Solved max flow linear program",
        extra={"arcs": len(arcs), "flow_value": -result.cost},
    )

    flows: dict[Hashable, dict[Hashable, float]] = {}
    solution = result.solution
    for u, v in graph.edges():
        if u == v:
            continue
        net = float(solution[arc_index[(u, v)]] - solution[arc_index[(v, u)]])
        flows.setdefault(u, {})[v] = net
        flows.setdefault(v, {})[u] = -net
    return flows
