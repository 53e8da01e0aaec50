"""Tests for graph helpers: cut sets, completeness and tour tracing."""

import sys
from pathlib import Path

import networkx as nx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from tour_solver.exceptions import InvalidProblemError, SolverInvariantError  # noqa: E402
from tour_solver.graphs import (  # noqa: E402
    complete_graph,
    cut_set,
    edge_key,
    is_complete,
    require_complete,
    split_graph,
    tour_length,
    trace_tour,
)


def _two_paths():
    graph = nx.Graph()
    graph.add_nodes_from(range(5))
    graph.add_edges_from([(0, 1), (1, 2), (3, 4)])
    return graph


def test_edge_key_ignores_endpoint_order():
    assert edge_key(1, 2) == edge_key(2, 1)


class TestCutSet:
    def test_whole_component_has_empty_cut_set(self):
        assert cut_set(_two_paths(), [0, 1, 2]) == set()
        assert cut_set(_two_paths(), [3, 4]) == set()

    def test_single_vertex_cut_set(self):
        assert cut_set(_two_paths(), [1]) == {edge_key(0, 1), edge_key(1, 2)}
        assert cut_set(_two_paths(), [0]) == {edge_key(0, 1)}

    def test_unknown_vertices_are_ignored(self):
        assert cut_set(_two_paths(), [0, 1, "missing"]) == {edge_key(1, 2)}


def test_split_graph_returns_both_subgraphs():
    inside, outside, crossing = split_graph(_two_paths(), [0, 1])

    assert set(inside.nodes) == {0, 1}
    assert set(inside.edges) == {(0, 1)}
    assert set(outside.nodes) == {2, 3, 4}
    assert {edge_key(*e) for e in outside.edges} == {edge_key(3, 4)}
    assert crossing == {edge_key(1, 2)}


class TestCompleteness:
    def test_complete_graph_builder(self):
        graph = complete_graph("abcd")
        assert list(graph.nodes) == ["a", "b", "c", "d"]
        assert is_complete(graph)

    def test_missing_edge_is_not_complete(self):
        graph = complete_graph(range(4))
        graph.remove_edge(0, 3)
        assert not is_complete(graph)
        with pytest.raises(InvalidProblemError, match="complete"):
            require_complete(graph)

    def test_self_loop_is_not_complete(self):
        graph = complete_graph(range(3))
        graph.remove_edge(0, 1)
        graph.add_edge(2, 2)
        assert not is_complete(graph)

    def test_directed_graph_is_rejected(self):
        with pytest.raises(InvalidProblemError, match="undirected"):
            require_complete(nx.complete_graph(3, create_using=nx.DiGraph))


class TestTraceTour:
    def test_cycle_is_closed_and_starts_at_first_vertex(self):
        edges = [edge_key(0, 2), edge_key(2, 1), edge_key(1, 3), edge_key(3, 0)]

        tour = trace_tour([0, 1, 2, 3], edges)

        assert tour[0] == tour[-1] == 0
        assert sorted(tour[:-1]) == [0, 1, 2, 3]
        for u, v in zip(tour, tour[1:]):
            assert edge_key(u, v) in edges

    def test_two_cycles_raise(self):
        edges = [
            edge_key(0, 1), edge_key(1, 2), edge_key(2, 0),
            edge_key(3, 4), edge_key(4, 5), edge_key(5, 3),
        ]
        with pytest.raises(SolverInvariantError, match="several cycles"):
            trace_tour(range(6), edges)

    def test_wrong_degree_raises(self):
        with pytest.raises(SolverInvariantError, match="degree 2"):
            trace_tour([0, 1, 2], [edge_key(0, 1), edge_key(1, 2)])

    def test_empty_tour(self):
        assert trace_tour([], []) == []


def test_tour_length_sums_consecutive_pairs():
    assert tour_length([0, 1, 3, 0], lambda u, v: abs(u - v)) == pytest.approx(6.0)
