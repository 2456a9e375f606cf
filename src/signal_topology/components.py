"""Component partitioner: split the graph into weakly-connected components."""

from __future__ import annotations

from collections.abc import Sequence

import networkx as nx

from signal_topology.types import Component, Edge, Node


def undirected_adjacency(nodes: Sequence[Node], edges: Sequence[Edge]) -> nx.MultiGraph:
    """Undirected multigraph view of ``edges``: every edge is walkable both ways."""
    g: nx.MultiGraph = nx.MultiGraph()
    g.add_nodes_from(n.id for n in nodes)
    for edge in edges:
        if edge.source in g and edge.target in g:
            g.add_edge(edge.source, edge.target, key=edge.label)
    return g


def find_components(nodes: Sequence[Node], edges: Sequence[Edge]) -> list[Component]:
    """Partition ``nodes`` into components in discovery order.

    Traversal is an iterative depth-first search with an explicit stack, so
    component size never bounds recursion depth. Each component lists its
    nodes in visit order and keeps exactly the edges with both endpoints
    inside it. Isolated nodes become singleton components.
    """
    adjacency = undirected_adjacency(nodes, edges)
    by_id: dict[str, Node] = {}
    for node in nodes:
        by_id.setdefault(node.id, node)

    visited: set[str] = set()
    groups: list[list[str]] = []

    for node in nodes:
        if node.id in visited:
            continue
        group: list[str] = []
        stack = [node.id]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            group.append(current)
            # Reverse so neighbours are visited in adjacency order.
            for neighbour in reversed(list(adjacency.neighbors(current))):
                if neighbour not in visited:
                    stack.append(neighbour)
        groups.append(group)

    membership: dict[str, int] = {}
    for idx, group in enumerate(groups):
        for node_id in group:
            membership[node_id] = idx

    components = [Component(nodes=[by_id[nid] for nid in group]) for group in groups]
    for edge in edges:
        src_idx = membership.get(edge.source)
        if src_idx is not None and src_idx == membership.get(edge.target):
            components[src_idx].edges.append(edge)
    return components
