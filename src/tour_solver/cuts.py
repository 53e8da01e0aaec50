"""Global minimum cut by maximum-adjacency merging (Stoer-Wagner)."""

from __future__ import annotations

import heapq
import logging
import math
from collections.abc import Callable, Hashable

import networkx as nx

from .data import Cut
from .exceptions import InvalidProblemError

logger = logging.getLogger(__name__)


def _weight_arena(
    graph: nx.Graph, vertices: list, edge_cost: Callable[[Hashable, Hashable], float]
) -> list[dict[int, float]]:
    """Adjacency weights keyed by integer vertex handles."""
    handle = {v: i for i, v in enumerate(vertices)}
    weights: list[dict[int, float]] = [{} for _ in vertices]
    for u, v in graph.edges():
        if u == v:
            continue
        cost = float(edge_cost(u, v))
        if not math.isfinite(cost) or cost < 0:
            raise InvalidProblemError(
                f"Edge ({u!r}, {v!r}) has cost {cost}; cut costs must be finite and non-negative."
            )
        i, j = handle[u], handle[v]
        weights[i][j] = weights[i].get(j, 0.0) + cost
        weights[j][i] = weights[j].get(i, 0.0) + cost
    return weights


def _maximum_adjacency_order(
    active: set[int], weights: list[dict[int, float]]
) -> tuple[list[int], float]:
    """Order the active handles by tightest connection to those already chosen.

    Returns the order and the connectivity of the last handle, which is the
    cost of the cut isolating it.
    """
    connectivity = {h: 0.0 for h in active}
    heap = [(0.0, h) for h in sorted(active)]
    heapq.heapify(heap)
    chosen: set[int] = set()
    order: list[int] = []
    while heap:
        neg_conn, h = heapq.heappop(heap)
        if h in chosen or -neg_conn != connectivity[h]:
            continue  # stale entry
        chosen.add(h)
        order.append(h)
        for other, weight in weights[h].items():
            if other not in chosen:
                connectivity[other] += weight
                heapq.heappush(heap, (-connectivity[other], other))
    return order, connectivity[order[-1]]


def min_cost_cut(graph: nx.Graph, edge_cost: Callable[[Hashable, Hashable], float]) -> Cut:
    """Find a global minimum cost cut of an undirected graph.

    Each phase grows a maximum-adjacency ordering of the merged vertices, records
    the cut that isolates the last vertex, then merges the last two vertices of
    the ordering. The cheapest recorded cut is a global minimum.

    Merged vertices are integer handles into an arena of member lists, so the
    graph's own vertices never need to be copied or wrapped.

    Args:
        graph: Undirected graph.
        edge_cost: Non-negative cost of the edge between two vertices.

    Returns:
        Cut(side_a, side_b, cost). ``side_a`` is the merged group isolated by
        the best phase. Graphs with fewer than two vertices give a zero-cost
        cut with an empty ``side_b``.

    Raises:
        InvalidProblemError: If an edge cost is negative or not finite.

    Examples:
        >>> graph = nx.cycle_graph(4)
        >>> min_cost_cut(graph, lambda u, v: 1.0).cost
        2.0
    """
    vertices = list(graph.nodes)
    if len(vertices) <= 1:
        return Cut(frozenset(vertices), frozenset(), 0.0)

    weights = _weight_arena(graph, vertices, edge_cost)
    members: list[list] = [[v] for v in vertices]
    active = set(range(len(vertices)))

    best_cost = math.inf
    best_side: frozenset = frozenset()
    phases = 0
    while len(active) > 1:
        order, phase_cost = _maximum_adjacency_order(active, weights)
        phases += 1
        last, prev = order[-1], order[-2]
        if phase_cost < best_cost:
            best_cost = phase_cost
            best_side = frozenset(members[last])

        # Merge ``last`` into ``prev``.
        members[prev].extend(members[last])
        members[last] = []
        for other, weight in weights[last].items():
            del weights[other][last]
            if other == prev:
                continue
            weights[prev][other] = weights[prev].get(other, 0.0) + weight
            weights[other][prev] = weights[other].get(prev, 0.0) + weight
        weights[last] = {}
        active.remove(last)

    side_b = frozenset(v for v in vertices if v not in best_side)
    logger.debug(
        "Found global minimum cut",
        extra={"vertices": len(vertices), "phases": phases, "cost": best_cost},
    )
    return Cut(best_side, side_b, float(best_cost))
