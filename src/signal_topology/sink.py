"""Derived-state sink: indexed storage of node positions and edge aggregates.

One producer (the pipeline) writes; any number of observers read. Writes are
record-level upserts keyed by stable composite primary keys, so readers never
see a half-written record but may see the previous run's snapshot until the
next run completes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from signal_topology.layout import LayoutResult
from signal_topology.types import Edge, EdgeRecord, LayoutRecord, Node, edge_pk, layout_pk

logger = logging.getLogger(__name__)

Observer = Callable[[str], None]


class TopologySink(Protocol):
    """Protocol that all derived-state sinks must implement."""

    def write(self, app_id: str, nodes: Sequence[Node], edges: Sequence[Edge], layout: LayoutResult) -> None:
        """Persist one run's nodes and edges for ``app_id``."""
        ...


class TopologyStore:
    """In-process sink with an app-id index over both record collections."""

    def __init__(self, prune_stale: bool = True) -> None:
        self.prune_stale = prune_stale
        self.layouts: dict[str, LayoutRecord] = {}
        self.edges: dict[str, EdgeRecord] = {}
        self.layout_index: dict[str, set[str]] = {}
        self.edge_index: dict[str, set[str]] = {}
        self._observers: list[Observer] = []

    # ── writes ──

    def upsert_layout(self, record: LayoutRecord) -> str:
        pk = record.pk
        self.layouts[pk] = record
        self.layout_index.setdefault(record.app_id, set()).add(pk)
        return pk

    def upsert_edge(self, record: EdgeRecord) -> str:
        pk = record.pk
        self.edges[pk] = record
        self.edge_index.setdefault(record.app_id, set()).add(pk)
        return pk

    def write(self, app_id: str, nodes: Sequence[Node], edges: Sequence[Edge], layout: LayoutResult) -> None:
        """Upsert one record per node and per edge, then prune what the run no longer produced."""
        positions = layout.positions
        written_layouts: set[str] = set()
        for node in nodes:
            pos = positions.get(node.id)
            if pos is None:
                logger.warning("No position for node %r; layout record not written", node.id)
                continue
            written_layouts.add(
                self.upsert_layout(
                    LayoutRecord(app_id=app_id, node_id=node.id, x=pos[0], y=pos[1], activity_count=node.activity_count)
                )
            )

        written_edges: set[str] = set()
        for edge in edges:
            written_edges.add(
                self.upsert_edge(
                    EdgeRecord(app_id=app_id, source=edge.source, target=edge.target, label=edge.label, count=edge.count)
                )
            )

        if self.prune_stale:
            self._prune(app_id, written_layouts, written_edges)

        logger.debug("Stored %d layouts and %d edges for app %r", len(written_layouts), len(written_edges), app_id)
        self._notify(app_id)

    def _prune(self, app_id: str, keep_layouts: set[str], keep_edges: set[str]) -> None:
        for pk in self.layout_index.get(app_id, set()) - keep_layouts:
            del self.layouts[pk]
        for pk in self.edge_index.get(app_id, set()) - keep_edges:
            del self.edges[pk]
        self.layout_index[app_id] = set(keep_layouts)
        self.edge_index[app_id] = set(keep_edges)

    # ── reads ──

    def get_layout(self, app_id: str, node_id: str) -> LayoutRecord | None:
        return self.layouts.get(layout_pk(app_id, node_id))

    def get_edge(self, app_id: str, source: str, target: str, label: str) -> EdgeRecord | None:
        return self.edges.get(edge_pk(app_id, source, target, label))

    def layouts_for_app(self, app_id: str) -> list[LayoutRecord]:
        return [self.layouts[pk] for pk in sorted(self.layout_index.get(app_id, ()))]

    def edges_for_app(self, app_id: str) -> list[EdgeRecord]:
        return [self.edges[pk] for pk in sorted(self.edge_index.get(app_id, ()))]

    # ── observers ──

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer(app_id)``; returns a callable that unsubscribes it."""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, app_id: str) -> None:
        for observer in list(self._observers):
            observer(app_id)
