"""Topology builder: entity collections → deduplicated node/edge graph.

Passes:
  1. Node ingestion (dedupe by id, input order kept)
  2. Ownership resolution (signal → owning node)
  3. Static edge pass (owner → every listener of the signal)
  4. Causal enrichment pass (edges implied by response events)
  5. Activity metric (distinct events touching each node)
  6. Role assignment (pluggable classifier)

Nothing here raises on bad data: unresolvable references are dropped and
logged at WARNING.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from signal_topology.entities import EntitySet, canonical_signal_name
from signal_topology.graph import TopologyGraph
from signal_topology.roles import PositionalRoleClassifier, RoleClassifier
from signal_topology.types import UNKNOWN_OWNER, CausalEvent, ListenerBinding, Node, SignalOwnership

logger = logging.getLogger(__name__)

# ─── Signal Indexes ───────────────────────────────────────────────────────────


def resolve_ownership(ownerships: Iterable[SignalOwnership]) -> dict[str, str]:
    """Map bare signal name → owner node id, skipping invalid owners."""
    owners: dict[str, str] = {}
    for entry in ownerships:
        bare = canonical_signal_name(entry.signal_name)
        if bare is None:
            continue
        if not entry.is_valid:
            logger.warning(
                "Skipping signal %r with invalid owner %r",
                entry.signal_name,
                entry.owner_neuron_id,
            )
            continue
        owners[bare] = entry.owner_neuron_id
    return owners


def index_listeners(bindings: Iterable[ListenerBinding]) -> dict[str, list[str]]:
    """Map bare signal name → listener node ids (unique, first-seen order)."""
    listeners: dict[str, dict[str, None]] = {}
    for binding in bindings:
        bare = canonical_signal_name(binding.watched_signal_name)
        if bare is None:
            continue
        listeners.setdefault(bare, {})[binding.owner_neuron_id] = None
    return {name: list(ids) for name, ids in listeners.items()}


@dataclass
class SignalIndex:
    """The two lookups every pass matches against, built once per run."""

    owners: dict[str, str] = field(default_factory=dict)
    listeners: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_entities(cls, entities: EntitySet) -> SignalIndex:
        return cls(owners=resolve_ownership(entities.ownerships), listeners=index_listeners(entities.bindings))


# ─── Edge Passes ──────────────────────────────────────────────────────────────


def _connect(graph: TopologyGraph, source: str, target: str, label: str) -> bool:
    """Upsert ``source → target`` labelled ``label`` after the self-loop and endpoint guards."""
    if source == target:
        logger.warning("Skipping self-connection %s -> %s via %r", source, target, label)
        return False
    for endpoint in (source, target):
        if not graph.has_node(endpoint):
            logger.warning("Skipping edge %s -> %s via %r: unknown node %r", source, target, label, endpoint)
            return False
    graph.upsert_edge(source, target, label)
    return True


def add_static_edges(graph: TopologyGraph, index: SignalIndex) -> int:
    """Connect each signal's owner to every node listening to it. Returns edges upserted."""
    added = 0
    for signal, listener_ids in index.listeners.items():
        owner = index.owners.get(signal)
        if owner is None:
            logger.debug("No owner for signal %r (listeners: %s)", signal, ", ".join(listener_ids))
            continue
        for listener in listener_ids:
            if _connect(graph, owner, listener, signal):
                added += 1
    return added


def add_causal_edges(graph: TopologyGraph, index: SignalIndex, events: Iterable[CausalEvent]) -> int:
    """Upsert the edges implied by each response event. Returns edges upserted."""
    added = 0
    for event in events:
        in_signal = canonical_signal_name(event.input_signal_name)
        out_signal = canonical_signal_name(event.output_signal_name)

        if out_signal is not None:
            owner = index.owners.get(out_signal)
            if owner is None:
                logger.warning("Event %s: no owner for output signal %r", event.id, out_signal)
            else:
                for listener in index.listeners.get(out_signal, ()):
                    if _connect(graph, owner, listener, out_signal):
                        added += 1

        if in_signal is not None:
            producer = event.producing_neuron_id
            if not producer or producer == UNKNOWN_OWNER:
                logger.warning("Event %s: invalid producing node %r", event.id, producer)
                continue
            for listener in index.listeners.get(in_signal, ()):
                if _connect(graph, producer, listener, in_signal):
                    added += 1
    return added


# ─── Activity & Roles ─────────────────────────────────────────────────────────


def compute_activity(node_ids: Iterable[str], index: SignalIndex, events: Iterable[CausalEvent]) -> dict[str, int]:
    """Count distinct events each node produced (owns the output) or listened to (binds the input)."""
    touched: dict[str, set[str]] = {node_id: set() for node_id in node_ids}
    for event in events:
        out_signal = canonical_signal_name(event.output_signal_name)
        in_signal = canonical_signal_name(event.input_signal_name)
        if out_signal is not None:
            owner = index.owners.get(out_signal)
            if owner in touched:
                touched[owner].add(event.id)
        if in_signal is not None:
            for listener in index.listeners.get(in_signal, ()):
                if listener in touched:
                    touched[listener].add(event.id)
    return {node_id: len(ids) for node_id, ids in touched.items()}


def assign_roles(graph: TopologyGraph, classifier: RoleClassifier) -> None:
    nodes = graph.nodes
    roles = classifier.classify([n.id for n in nodes], graph.edges)
    for node in nodes:
        node.role = roles.get(node.id, node.role)


# ─── Full Build ───────────────────────────────────────────────────────────────


def build_topology(entities: EntitySet, classifier: RoleClassifier | None = None) -> TopologyGraph:
    """Run every builder pass over ``entities`` and return the finished graph."""
    graph = TopologyGraph()
    for record in entities.nodes:
        if not graph.add_node(Node(id=record.id, name=record.name)):
            logger.debug("Duplicate node record %r ignored", record.id)

    if len(graph) == 0:
        return graph

    index = SignalIndex.from_entities(entities)
    static = add_static_edges(graph, index)
    causal = add_causal_edges(graph, index, entities.events)

    activity = compute_activity([n.id for n in graph.nodes], index, entities.events)
    for node in graph.nodes:
        node.activity_count = activity[node.id]

    assign_roles(graph, classifier or PositionalRoleClassifier())

    logger.debug(
        "Built topology: %d nodes, %d edges (%d static, %d causal upserts)",
        len(graph),
        len(graph.edges),
        static,
        causal,
    )
    return graph
