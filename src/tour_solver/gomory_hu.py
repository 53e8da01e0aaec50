"""Gomory-Hu cut trees.

A Gomory-Hu tree over the vertices of an undirected graph has the property
that, for every pair of vertices, the lightest tree edge on the path between
them has the cost of their minimum cut in the graph, and removing that edge
splits the tree into the two sides of such a cut.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterator

import networkx as nx

from .data import Cut
from .exceptions import InvalidProblemError
from .flow import max_flow

logger = logging.getLogger(__name__)


class GomoryHuTree:
    """Immutable cut tree over the original vertices of a graph.

    Attributes:
        tree: networkx Graph whose edges carry the cut cost in ``"weight"``.
    """

    def __init__(self, tree: nx.Graph):
        self.tree = tree

    @property
    def vertices(self) -> list:
        return list(self.tree.nodes)

    @property
    def edges(self) -> list[tuple[Hashable, Hashable, float]]:
        return [(u, v, float(w)) for u, v, w in self.tree.edges(data="weight")]

    def cuts(self) -> Iterator[Cut]:
        """Yield the bipartition induced by every tree edge, with its cost.

        ``side_a`` is the component containing the edge's first endpoint.
        """
        for u, v, weight in self.tree.edges(data="weight"):
            side_a = self._side(u, (u, v))
            side_b = frozenset(x for x in self.tree.nodes if x not in side_a)
            yield Cut(side_a, side_b, float(weight))

    def min_cut(self, u: Hashable, v: Hashable) -> Cut:
        """Minimum cut separating ``u`` from ``v``, with ``u`` on ``side_a``.

        Raises:
            InvalidProblemError: If either vertex is missing or ``u == v``.
        """
        if u not in self.tree or v not in self.tree:
            raise InvalidProblemError(f"Vertices {u!r} and {v!r} must both be in the tree.")
        if u == v:
            raise InvalidProblemError(f"Cannot separate vertex {u!r} from itself.")
        path = nx.shortest_path(self.tree, u, v)
        lightest = min(
            zip(path, path[1:]), key=lambda pair: self.tree[pair[0]][pair[1]]["weight"]
        )
        side_a = self._side(u, lightest)
        side_b = frozenset(x for x in self.tree.nodes if x not in side_a)
        return Cut(side_a, side_b, float(self.tree[lightest[0]][lightest[1]]["weight"]))

    def _side(self, start: Hashable, removed: tuple[Hashable, Hashable]) -> frozenset:
        blocked = {removed, (removed[1], removed[0])}
        seen = {start}
        stack = [start]
        while stack:
            x = stack.pop()
            for y in self.tree.neighbors(x):
                if y not in seen and (x, y) not in blocked:
                    seen.add(y)
                    stack.append(y)
        return frozenset(seen)

    def __len__(self) -> int:
        return self.tree.number_of_nodes()

    def __repr__(self) -> str:
        return f"GomoryHuTree(vertices={len(self)}, edges={self.tree.number_of_edges()})"


def gomory_hu_tree(
    graph: nx.Graph, edge_cost: Callable[[Hashable, Hashable], float]
) -> GomoryHuTree:
    """Build a Gomory-Hu tree of an undirected graph.

    The tree starts as one super-vertex holding every vertex. A work stack
    holds the super-vertices that still contain two or more graph vertices.
    For each one, every component of the current tree hanging off it is
    contracted into a single proxy vertex, a minimum cut between two of its
    members is found with ``max_flow``, and the super-vertex is split along
    that cut. Components move to whichever half received their proxy.

    Original vertices and proxies are addressed by integer handles: vertex
    ``i`` of the graph is handle ``i`` and proxies take handles from ``n`` up.

    Args:
        graph: Undirected graph.
        edge_cost: Non-negative cost of the edge between two vertices.

    Returns:
        GomoryHuTree over exactly the vertices of ``graph``.

    Examples:
        >>> graph = nx.path_graph(3)
        >>> tree = gomory_hu_tree(graph, lambda u, v: 1.0)
        >>> tree.min_cut(0, 2).cost
        1.0
    """
    vertices = list(graph.nodes)
    n = len(vertices)
    handle = {v: i for i, v in enumerate(vertices)}
    weighted_edges = [
        (handle[u], handle[v], float(edge_cost(u, v))) for u, v in graph.edges() if u != v
    ]

    # Super-vertex arena: members and tree adjacency, keyed by super-vertex id.
    groups: list[list[int]] = [list(range(n))]
    tree_adj: list[dict[int, float]] = [{}]

    work = [0] if n >= 2 else []
    flows = 0
    while work:
        group = work.pop()
        members = groups[group]
        source, sink = members[0], members[1]

        # Contract every tree component hanging off ``group`` into one proxy.
        owner = {h: h for h in members}
        proxies: dict[int, int] = {}
        for offset, neighbor in enumerate(tree_adj[group]):
            proxy = n + offset
            proxies[neighbor] = proxy
            for other in _tree_component(tree_adj, neighbor, group):
                for h in groups[other]:
                    owner[h] = proxy

        contracted = nx.Graph()
        contracted.add_nodes_from(members)
        contracted.add_nodes_from(proxies.values())
        for a, b, cost in weighted_edges:
            x, y = owner[a], owner[b]
            if x == y:
                continue
            if contracted.has_edge(x, y):
                contracted[x][y]["weight"] += cost
            else:
                contracted.add_edge(x, y, weight=cost)

        flow = max_flow(
            contracted, source, sink, capacity=lambda x, y: contracted[x][y]["weight"]
        )
        flows += 1
        source_side = flow.source_side()

        # Split the super-vertex; the sink half gets a new id.
        new_group = len(groups)
        groups.append([h for h in members if h not in source_side])
        groups[group] = [h for h in members if h in source_side]
        tree_adj.append({})

        for neighbor, proxy in proxies.items():
            if proxy in source_side:
                continue
            weight = tree_adj[group].pop(neighbor)
            del tree_adj[neighbor][group]
            tree_adj[new_group][neighbor] = weight
            tree_adj[neighbor][new_group] = weight

        tree_adj[group][new_group] = flow.value
        tree_adj[new_group][group] = flow.value

        for g in (group, new_group):
            if len(groups[g]) >= 2:
                work.append(g)

    tree = nx.Graph()
    tree.add_nodes_from(vertices)
    for group, adjacency in enumerate(tree_adj):
        for other, weight in adjacency.items():
            if group < other:
                tree.add_edge(vertices[groups[group][0]], vertices[groups[other][0]], weight=weight)

    logger.debug(
        "Built Gomory-Hu tree",
        extra={"vertices": n, "edges": len(weighted_edges), "max_flows": flows},
    )
    return GomoryHuTree(tree)


def _tree_component(tree_adj: list[dict[int, float]], start: int, blocked: int) -> list[int]:
    """Super-vertices reachable from ``start`` without passing through ``blocked``."""
    seen = {start, blocked}
    stack = [start]
    result = []
    while stack:
        g = stack.pop()
        result.append(g)
        for other in tree_adj[g]:
            if other not in seen:
                seen.add(other)
                stack.append(other)
    return result
