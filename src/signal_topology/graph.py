"""Graph IR: the deduplicated node/edge graph the builder produces.

Backed by a ``networkx.MultiDiGraph`` whose edge keys are signal labels, so
``(source, target, label)`` is unique by construction and parallel edges
between the same pair of nodes (different signals) coexist.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import networkx as nx

from signal_topology.types import DEFAULT_EDGE_WEIGHT, Edge, Node


@dataclass
class TopologyGraph:
    """Nodes carry ``data=Node``; edges carry ``data=Edge`` and a sequence number.

    Iteration order of ``nodes`` / ``edges`` is insertion order, which the
    partitioner and the router rely on for determinism.
    """

    digraph: nx.MultiDiGraph = field(default_factory=nx.MultiDiGraph)
    _edge_seq: int = field(default=0, init=False, repr=False)

    def __len__(self) -> int:
        return self.digraph.number_of_nodes()

    def add_node(self, node: Node) -> bool:
        """Add ``node`` unless its id is already present. Returns True if added."""
        if node.id in self.digraph:
            return False
        self.digraph.add_node(node.id, data=node)
        return True

    def has_node(self, node_id: str) -> bool:
        return node_id in self.digraph

    def node(self, node_id: str) -> Node:
        return self.digraph.nodes[node_id]["data"]

    @property
    def nodes(self) -> list[Node]:
        return [attrs["data"] for _, attrs in self.digraph.nodes(data=True)]

    def upsert_edge(self, source: str, target: str, label: str) -> Edge:
        """Insert ``(source, target, label)`` with count 1, or increment its count.

        The caller guarantees both endpoints exist and differ.
        """
        if self.digraph.has_edge(source, target, key=label):
            edge: Edge = self.digraph.edges[source, target, label]["data"]
            edge.count += 1
            return edge
        edge = Edge(source=source, target=target, label=label, weight=DEFAULT_EDGE_WEIGHT, count=1)
        self.digraph.add_edge(source, target, key=label, data=edge, seq=self._edge_seq)
        self._edge_seq += 1
        return edge

    @property
    def edges(self) -> list[Edge]:
        ordered = sorted(self.digraph.edges(keys=True, data=True), key=lambda e: e[3]["seq"])
        return [attrs["data"] for _, _, _, attrs in ordered]
