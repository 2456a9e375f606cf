"""Role classifiers: decide which layout column each node goes in.

Roles are a visualisation heuristic, not a structural property of the
network. The positional classifier is the default.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from signal_topology.types import Edge, Role


class RoleClassifier(Protocol):
    """Protocol that all role classifiers must implement."""

    def classify(self, node_ids: Sequence[str], edges: Sequence[Edge]) -> dict[str, Role]:
        """Map every id in ``node_ids`` to a role."""
        ...


class PositionalRoleClassifier:
    """First node is the input, last node the output, everything else processing."""

    def classify(self, node_ids: Sequence[str], edges: Sequence[Edge]) -> dict[str, Role]:
        roles: dict[str, Role] = {}
        last = len(node_ids) - 1
        for index, node_id in enumerate(node_ids):
            if index == 0:
                roles[node_id] = Role.Input
            elif index == last:
                roles[node_id] = Role.Output
            else:
                roles[node_id] = Role.Processing
        return roles


class TopologicalRoleClassifier:
    """Sources are inputs, sinks are outputs; isolated nodes count as inputs."""

    def classify(self, node_ids: Sequence[str], edges: Sequence[Edge]) -> dict[str, Role]:
        has_in = {e.target for e in edges}
        has_out = {e.source for e in edges}
        roles: dict[str, Role] = {}
        for node_id in node_ids:
            if node_id not in has_in:
                roles[node_id] = Role.Input
            elif node_id not in has_out:
                roles[node_id] = Role.Output
            else:
                roles[node_id] = Role.Processing
        return roles
