"""Tests for the global minimum cut."""

import sys
from itertools import combinations
from pathlib import Path

import networkx as nx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from tour_solver.cuts import min_cost_cut  # noqa: E402
from tour_solver.exceptions import InvalidProblemError  # noqa: E402
from tour_solver.flow import max_flow  # noqa: E402


def unit_cost(u, v):
    return 1.0


def _crossing_cost(graph, side, edge_cost):
    return sum(edge_cost(u, v) for u, v in graph.edges if (u in side) != (v in side))


def test_four_cycle():
    cut = min_cost_cut(nx.cycle_graph(4), unit_cost)

    assert cut.cost == pytest.approx(2.0)
    assert cut.side_a and cut.side_b
    assert cut.side_a | cut.side_b == frozenset(range(4))
    assert not cut.side_a & cut.side_b


def test_empty_and_single_vertex_graphs():
    assert min_cost_cut(nx.Graph(), unit_cost).cost == 0.0

    graph = nx.Graph()
    graph.add_node("x")
    cut = min_cost_cut(graph, unit_cost)
    assert cut.cost == 0.0
    assert cut.side_a == frozenset({"x"})
    assert cut.side_b == frozenset()


def test_disconnected_graph_has_free_cut():
    graph = nx.Graph([(0, 1), (2, 3)])

    cut = min_cost_cut(graph, unit_cost)

    assert cut.cost == 0.0
    assert _crossing_cost(graph, cut.side_a, unit_cost) == 0.0


def test_light_bridge_is_found():
    graph = nx.Graph()
    heavy = {frozenset(e) for e in combinations("abc", 2)} | {
        frozenset(e) for e in combinations("xyz", 2)
    }
    graph.add_edges_from(tuple(e) for e in heavy)
    graph.add_edge("a", "x")

    def cost(u, v):
        return 10.0 if frozenset((u, v)) in heavy else 0.25

    cut = min_cost_cut(graph, cost)

    assert cut.cost == pytest.approx(0.25)
    assert {cut.side_a, cut.side_b} == {frozenset("abc"), frozenset("xyz")}


@pytest.mark.parametrize("seed", range(6))
def test_reported_cost_matches_crossing_edges(seed):
    graph = nx.gnp_random_graph(9, 0.5, seed=seed)
    weights = {frozenset(e): float((3 * seed + sum(e)) % 7 + 1) for e in graph.edges}

    def cost(u, v):
        return weights[frozenset((u, v))]

    cut = min_cost_cut(graph, cost)

    assert cut.cost == pytest.approx(_crossing_cost(graph, cut.side_a, cost))
    if nx.is_connected(graph):
        expected, _ = nx.stoer_wagner(_weighted(graph, cost))
        assert cut.cost == pytest.approx(expected)
        # Any two vertices on opposite sides cannot be separated more cheaply.
        u, v = next(iter(cut.side_a)), next(iter(cut.side_b))
        assert max_flow(graph, u, v, cost).value == pytest.approx(cut.cost)


def _weighted(graph, cost):
    result = nx.Graph()
    for u, v in graph.edges:
        result.add_edge(u, v, weight=cost(u, v))
    return result


def test_negative_cost_raises():
    with pytest.raises(InvalidProblemError, match="non-negative"):
        min_cost_cut(nx.path_graph(3), lambda u, v: -1.0)
