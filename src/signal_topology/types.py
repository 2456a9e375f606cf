"""Data model shared by every phase of the topology pipeline.

Input records mirror the entity collections the monitored runtime publishes
(neurons, dendrites, collaterals, responses); output records are what the
derived-state sink stores for the presentation layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

UNKNOWN_OWNER = "unknown"
DEFAULT_EDGE_WEIGHT = 0.5

# ─── Roles ────────────────────────────────────────────────────────────────────


class Role(Enum):
    """Column a node is placed in by the layout engine."""

    Input = "input"
    Processing = "processing"
    Output = "output"


# ─── Input Records ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NodeRecord:
    """A neuron as published by the runtime."""

    id: str
    name: str
    app_id: str = ""


@dataclass(frozen=True)
class ListenerBinding:
    """A dendrite: ``owner_neuron_id`` reacts to ``watched_signal_name``."""

    owner_neuron_id: str
    watched_signal_name: str
    id: str = ""
    app_id: str = ""


@dataclass(frozen=True)
class SignalOwnership:
    """A collateral: ``signal_name`` is emitted by ``owner_neuron_id``."""

    signal_name: str
    owner_neuron_id: str
    app_id: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.owner_neuron_id) and self.owner_neuron_id != UNKNOWN_OWNER


@dataclass(frozen=True)
class CausalEvent:
    """A response: one node reacting to an input signal, maybe emitting another."""

    id: str
    producing_neuron_id: str
    input_signal_name: str | None = None
    output_signal_name: str | None = None
    app_id: str = ""


# ─── Derived Graph ────────────────────────────────────────────────────────────


@dataclass
class Node:
    """A node of the derived topology graph."""

    id: str
    name: str
    role: Role = Role.Processing
    activity_count: int = 0


@dataclass
class Edge:
    """An inferred connection, unique by ``(source, target, label)``.

    ``count`` is the number of source records (static bindings plus causal
    events) the connection was derived from.
    """

    source: str
    target: str
    label: str
    weight: float = DEFAULT_EDGE_WEIGHT
    count: int = 1

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source, self.target, self.label)


@dataclass
class Component:
    """A maximal weakly-connected subgraph."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    @property
    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}


# ─── Sink Records ─────────────────────────────────────────────────────────────


def layout_pk(app_id: str, node_id: str) -> str:
    return f"{app_id}::{node_id}"


def edge_pk(app_id: str, source: str, target: str, label: str) -> str:
    return f"{app_id}::{source}->{target}::{label}"


@dataclass(frozen=True)
class LayoutRecord:
    """Persisted position of one node."""

    app_id: str
    node_id: str
    x: float
    y: float
    activity_count: int

    @property
    def pk(self) -> str:
        return layout_pk(self.app_id, self.node_id)


@dataclass(frozen=True)
class EdgeRecord:
    """Persisted aggregate of one edge."""

    app_id: str
    source: str
    target: str
    label: str
    count: int

    @property
    def pk(self) -> str:
        return edge_pk(self.app_id, self.source, self.target, self.label)
