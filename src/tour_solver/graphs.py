"""Helpers over the networkx graph collaborator.

The searches treat a ``networkx.Graph`` as a plain undirected vertex and edge
store. Edges are identified by ``frozenset({u, v})`` keys so that an edge
has the same key regardless of the order its endpoints are listed in.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Hashable, Iterable
from typing import Any

import networkx as nx

from .exceptions import InvalidProblemError, SolverInvariantError


def edge_key(u: Hashable, v: Hashable) -> frozenset:
    return frozenset((u, v))


def edge_endpoints(edge: frozenset) -> tuple[Any, Any]:
    """Return the two endpoints of an edge key (a self loop is not an edge)."""
    u, v = tuple(edge)
    return u, v


def cut_set(graph: nx.Graph, vertices: Collection[Hashable]) -> set[frozenset]:
    """Edges with exactly one endpoint in ``vertices``.

    Vertices not in the graph are ignored.
    """
    inside = set(vertices)
    result: set[frozenset] = set()
    for u in inside:
        if u not in graph:
            continue
        for w in graph.neighbors(u):
            if w not in inside:
                result.add(edge_key(u, w))
    return result


def split_graph(
    graph: nx.Graph, vertices: Collection[Hashable]
) -> tuple[nx.Graph, nx.Graph, set[frozenset]]:
    """Cut the graph into the subgraph on ``vertices`` and the subgraph on the rest.

    Returns:
        (inside subgraph, outside subgraph, cut set). Both subgraphs are copies
        and keep their vertices even when they have no edges left.
    """
    inside_vertices = set(vertices) & set(graph.nodes)
    outside_vertices = [v for v in graph.nodes if v not in inside_vertices]
    inside = graph.subgraph(v for v in graph.nodes if v in inside_vertices).copy()
    outside = graph.subgraph(outside_vertices).copy()
    return inside, outside, cut_set(graph, inside_vertices)


def is_complete(graph: nx.Graph) -> bool:
    n = graph.number_of_nodes()
    if nx.number_of_selfloops(graph):
        return False
    return graph.number_of_edges() == n * (n - 1) // 2


def complete_graph(vertices: Iterable[Hashable]) -> nx.Graph:
    """Build the complete graph over ``vertices`` in the order given."""
    vertices = list(vertices)
    graph = nx.Graph()
    graph.add_nodes_from(vertices)
    for i, u in enumerate(vertices):
        for v in vertices[:i]:
            graph.add_edge(u, v)
    return graph


def trace_tour(vertices: Collection[Hashable], edges: Iterable[frozenset]) -> list:
    """Order a set of edges forming one Hamiltonian cycle into a closed tour.

    The walk starts at the first vertex and repeatedly follows an unvisited
    neighbour; the first vertex is repeated at the end.

    Raises:
        SolverInvariantError: If the edges are not exactly one cycle through
            every vertex.
    """
    vertices = list(vertices)
    if not vertices:
        return []
    adjacency: dict[Hashable, list] = {v: [] for v in vertices}
    edge_count = 0
    for edge in edges:
        u, v = edge_endpoints(edge)
        if u not in adjacency or v not in adjacency:
            raise SolverInvariantError(f"Tour edge {set(edge)} has an endpoint outside the graph.")
        adjacency[u].append(v)
        adjacency[v].append(u)
        edge_count += 1

    if edge_count != len(vertices) or any(len(nbrs) != 2 for nbrs in adjacency.values()):
        raise SolverInvariantError(
            "Selected edges do not form a single cycle: every vertex needs degree 2 "
            f"and {len(vertices)} edges are needed, got {edge_count}."
        )

    start = vertices[0]
    tour = [start]
    visited = {start}
    current = start
    while True:
        step = next((w for w in adjacency[current] if w not in visited), None)
        if step is None:
            break
        tour.append(step)
        visited.add(step)
        current = step

    if len(tour) != len(vertices):
        raise SolverInvariantError(
            f"Selected edges split into several cycles; the cycle through {start!r} "
            f"only covers {len(tour)} of {len(vertices)} vertices."
        )
    tour.append(start)
    return tour


def tour_length(tour: list, edge_cost: Callable[[Hashable, Hashable], float]) -> float:
    """Total cost of consecutive pairs along a closed tour."""
    return float(sum(edge_cost(u, v) for u, v in zip(tour, tour[1:])))


def require_complete(graph: nx.Graph) -> None:
    if graph.is_directed() or graph.is_multigraph():
        raise InvalidProblemError(
            f"Tour searches need a simple undirected graph, got {type(graph).__name__}."
        )
    if not is_complete(graph):
        n = graph.number_of_nodes()
        raise InvalidProblemError(
            f"Graph must be complete: {n} vertices need {n * (n - 1) // 2} edges "
            f"without self loops, got {graph.number_of_edges()}."
        )
