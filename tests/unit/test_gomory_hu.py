"""Tests for Gomory-Hu cut tree construction and queries."""

import sys
from itertools import combinations
from pathlib import Path

import networkx as nx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from tour_solver.exceptions import InvalidProblemError  # noqa: E402
from tour_solver.gomory_hu import GomoryHuTree, gomory_hu_tree  # noqa: E402


def _weighted_graph(seed, n=8, p=0.6):
    graph = nx.gnp_random_graph(n, p, seed=seed)
    for u, v in graph.edges:
        graph[u][v]["weight"] = float((u * 7 + v * 3 + seed) % 5 + 1)
    return graph


def _cost(graph):
    return lambda u, v: graph[u][v]["weight"]


def test_path_graph_tree_matches_edge_costs():
    graph = nx.Graph()
    graph.add_edge("a", "b", weight=3.0)
    graph.add_edge("b", "c", weight=1.0)

    tree = gomory_hu_tree(graph, _cost(graph))

    assert sorted(tree.vertices) == ["a", "b", "c"]
    assert len(tree) == 3
    assert tree.min_cut("a", "b").cost == pytest.approx(3.0)
    assert tree.min_cut("a", "c").cost == pytest.approx(1.0)
    cut = tree.min_cut("c", "a")
    assert cut.side_a == frozenset({"c"})
    assert cut.side_b == frozenset({"a", "b"})


def test_empty_and_single_vertex_trees():
    assert len(gomory_hu_tree(nx.Graph(), lambda u, v: 1.0)) == 0

    graph = nx.Graph()
    graph.add_node(0)
    tree = gomory_hu_tree(graph, lambda u, v: 1.0)
    assert tree.vertices == [0]
    assert list(tree.cuts()) == []


@pytest.mark.parametrize("seed", range(5))
def test_min_cut_values_match_networkx(seed):
    graph = _weighted_graph(seed)
    tree = gomory_hu_tree(graph, _cost(graph))

    assert isinstance(tree, GomoryHuTree)
    assert nx.is_tree(tree.tree)
    assert set(tree.vertices) == set(graph.nodes)

    flow_graph = nx.Graph()
    flow_graph.add_nodes_from(graph.nodes)
    for u, v, w in graph.edges(data="weight"):
        flow_graph.add_edge(u, v, capacity=w)

    for u, v in combinations(graph.nodes, 2):
        cut = tree.min_cut(u, v)
        expected = nx.minimum_cut_value(flow_graph, u, v)
        assert cut.cost == pytest.approx(expected)
        assert u in cut.side_a and v in cut.side_b
        crossing = sum(
            w for a, b, w in graph.edges(data="weight") if (a in cut.side_a) != (b in cut.side_a)
        )
        assert crossing == pytest.approx(cut.cost)


def test_cuts_cover_every_tree_edge():
    graph = _weighted_graph(11)
    tree = gomory_hu_tree(graph, _cost(graph))

    cuts = list(tree.cuts())

    assert len(cuts) == graph.number_of_nodes() - 1
    for (u, v, weight), cut in zip(tree.edges, cuts):
        assert cut.cost == pytest.approx(weight)
        assert u in cut.side_a and v in cut.side_b
        assert cut.side_a | cut.side_b == frozenset(graph.nodes)


def test_invalid_min_cut_queries_raise():
    graph = nx.Graph()
    graph.add_edge(0, 1, weight=1.0)
    tree = gomory_hu_tree(graph, _cost(graph))

    with pytest.raises(InvalidProblemError, match="itself"):
        tree.min_cut(0, 0)
    with pytest.raises(InvalidProblemError, match="must both be in the tree"):
        tree.min_cut(0, 5)
