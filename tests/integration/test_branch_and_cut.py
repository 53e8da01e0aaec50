"""End-to-end tests for the branch-and-cut tour search."""

import math
import random
import sys
from itertools import permutations
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from tour_solver import (  # noqa: E402
    BranchAndCutSearch,
    InvalidProblemError,
    ScipyLPSolver,
    SimplexLPSolver,
    SolverOptions,
    branch_and_cut_tsp,
    complete_graph,
    tour_length,
)
from tour_solver.validation import validate_tour_problem  # noqa: E402

# TSPLIB burma14, GEO coordinates (latitude, longitude).
BURMA14 = [
    (16.47, 96.10),
    (16.47, 94.44),
    (20.09, 92.54),
    (22.39, 93.37),
    (25.23, 97.24),
    (22.00, 96.05),
    (20.47, 97.02),
    (17.20, 96.29),
    (16.30, 97.38),
    (14.05, 98.12),
    (16.53, 97.38),
    (21.52, 95.59),
    (19.41, 97.13),
    (20.09, 94.55),
]
BURMA14_OPTIMUM = 3323


def _geo_radians(x):
    degrees = int(x)
    minutes = x - degrees
    return 3.141592 * (degrees + 5.0 * minutes / 3.0) / 180.0


def geo_distance(i, j):
    lat_i, lon_i = (_geo_radians(c) for c in BURMA14[i])
    lat_j, lon_j = (_geo_radians(c) for c in BURMA14[j])
    q1 = math.cos(lon_i - lon_j)
    q2 = math.cos(lat_i - lat_j)
    q3 = math.cos(lat_i + lat_j)
    return float(int(6378.388 * math.acos(0.5 * ((1.0 + q1) * q2 - (1.0 - q1) * q3)) + 1.0))


def random_costs(n, seed):
    rng = random.Random(seed)
    table = {}
    for u in range(n):
        for v in range(u + 1, n):
            table[(u, v)] = table[(v, u)] = float(rng.randint(1, 30))
    return lambda u, v: table[(u, v)]


def brute_force_length(n, edge_cost):
    best = math.inf
    for rest in permutations(range(1, n)):
        tour = [0, *rest, 0]
        best = min(best, tour_length(tour, edge_cost))
    return best


def assert_is_tour(tour, vertices):
    assert tour[0] == tour[-1] == vertices[0]
    assert sorted(tour[:-1]) == sorted(vertices)


def test_burma14_optimum():
    graph = complete_graph(range(len(BURMA14)))

    tour = branch_and_cut_tsp(graph, geo_distance)

    assert_is_tour(tour, list(range(len(BURMA14))))
    assert tour_length(tour, geo_distance) == pytest.approx(BURMA14_OPTIMUM)


@pytest.mark.parametrize("seed", range(6))
@pytest.mark.parametrize("n", [5, 7])
def test_random_instances_match_brute_force(n, seed):
    edge_cost = random_costs(n, seed)
    graph = complete_graph(range(n))

    tour = branch_and_cut_tsp(graph, edge_cost)

    assert_is_tour(tour, list(range(n)))
    assert tour_length(tour, edge_cost) == pytest.approx(brute_force_length(n, edge_cost))


@pytest.mark.parametrize(
    "solver, options",
    [
        (ScipyLPSolver(), None),
        (None, SolverOptions(separate_blossoms=False)),
        (SimplexLPSolver(pivot_rule="devex", refactor_interval=10), None),
        (None, SolverOptions(pivot_rule="bland", tolerance=1e-6)),
    ],
    ids=["scipy", "no-blossoms", "devex-refactor", "bland"],
)
def test_backends_and_options_reach_same_optimum(solver, options):
    edge_cost = random_costs(7, seed=42)
    graph = complete_graph(range(7))

    tour = branch_and_cut_tsp(graph, edge_cost, solver=solver, options=options)

    assert_is_tour(tour, list(range(7)))
    assert tour_length(tour, edge_cost) == pytest.approx(brute_force_length(7, edge_cost))


def test_repeated_solves_return_same_tour():
    edge_cost = random_costs(8, seed=3)
    graph = complete_graph(range(8))

    assert branch_and_cut_tsp(graph, edge_cost) == branch_and_cut_tsp(graph, edge_cost)


def test_string_vertices_start_at_first_vertex():
    names = ["d", "a", "c", "b", "e"]
    positions = {name: i for i, name in enumerate(names)}
    graph = complete_graph(names)

    tour = branch_and_cut_tsp(graph, lambda u, v: float((positions[u] - positions[v]) ** 2))

    assert_is_tour(tour, names)


def test_trace_callback_receives_progress_lines():
    lines = []
    graph = complete_graph(range(6))

    branch_and_cut_tsp(graph, random_costs(6, seed=9), trace_callback=lines.append)

    assert lines
    assert all(isinstance(line, str) for line in lines)
    assert any(line.startswith("working on node") for line in lines)
    assert any(line.startswith("solved LP") for line in lines)
    assert any(line.startswith("found solution") for line in lines)


class TestTinyGraphs:
    def test_empty_graph(self):
        assert branch_and_cut_tsp(complete_graph([]), lambda u, v: 1.0) == []

    def test_single_vertex(self):
        assert branch_and_cut_tsp(complete_graph(["x"]), lambda u, v: 1.0) == ["x"]

    def test_two_vertices(self):
        assert branch_and_cut_tsp(complete_graph(["x", "y"]), lambda u, v: 4.0) == ["x", "y", "x"]

    def test_triangle(self):
        tour = branch_and_cut_tsp(complete_graph(range(3)), lambda u, v: 1.0)
        assert_is_tour(tour, [0, 1, 2])


def test_incomplete_graph_raises():
    graph = complete_graph(range(5))
    graph.remove_edge(1, 3)

    with pytest.raises(InvalidProblemError, match="complete"):
        branch_and_cut_tsp(graph, lambda u, v: 1.0)


def run_search(graph, edge_cost, options=None):
    options = options or SolverOptions()
    edges, costs = validate_tour_problem(graph, edge_cost)
    solver = SimplexLPSolver(
        pivot_rule=options.pivot_rule,
        refactor_interval=options.refactor_interval,
        stall_window=options.stall_window,
    )
    search = BranchAndCutSearch(graph, edges, costs, solver, options)
    return search.run(), search.stats


def prism_cost(u, v):
    # Triangles {0, 1, 2} and {3, 4, 5} joined by free connectors (i, i + 3).
    if abs(u - v) == 3:
        return 0.0
    if (u < 3) == (v < 3):
        return 1.0
    return 10.0


def test_prism_needs_blossom_cut():
    graph = complete_graph(range(6))

    tour, stats = run_search(graph, prism_cost)

    assert_is_tour(tour, list(range(6)))
    assert tour_length(tour, prism_cost) == pytest.approx(4.0)
    assert stats.blossom_cuts >= 1


def test_prism_without_blossoms_still_optimal():
    graph = complete_graph(range(6))

    tour, stats = run_search(graph, prism_cost, SolverOptions(separate_blossoms=False))

    assert tour_length(tour, prism_cost) == pytest.approx(4.0)
    assert stats.blossom_cuts == 0


def test_tied_costs_prune_nodes():
    rng = random.Random(6)
    table = {}
    for u in range(9):
        for v in range(u + 1, 9):
            table[(u, v)] = table[(v, u)] = float(rng.choice([1, 1, 2, 2, 3, 5, 8]))

    def edge_cost(u, v):
        return table[(u, v)]

    tour, stats = run_search(complete_graph(range(9)), edge_cost)

    assert tour_length(tour, edge_cost) == pytest.approx(brute_force_length(9, edge_cost))
    assert stats.nodes_pruned > 0
    assert stats.nodes_pruned < stats.nodes_explored
