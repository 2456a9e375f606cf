"""Public entry points: the pure pipeline, its memoizing runner, and the scheduler."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from signal_topology.builder import build_topology
from signal_topology.components import find_components
from signal_topology.config import LayoutConfig, RouteConfig
from signal_topology.entities import EntitySet
from signal_topology.layout import LayoutResult, layout_components
from signal_topology.roles import RoleClassifier
from signal_topology.routing import RoutedEdge, route_edges
from signal_topology.sink import TopologySink
from signal_topology.types import Component, Edge, Node

logger = logging.getLogger(__name__)

EntitySource = Callable[[str], EntitySet]


@dataclass
class TopologyResult:
    """Everything one pipeline run derives from an entity set."""

    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    components: list[Component] = field(default_factory=list)
    layout: LayoutResult = field(default_factory=LayoutResult)
    routes: list[RoutedEdge] = field(default_factory=list)


def compute_topology(
    entities: EntitySet,
    config: LayoutConfig | None = None,
    classifier: RoleClassifier | None = None,
    route_config: RouteConfig | None = None,
) -> TopologyResult:
    """Run builder → partitioner → layout → router over ``entities``.

    Pure: the same entity set and configuration always give the same result.
    """
    graph = build_topology(entities, classifier)
    nodes = graph.nodes
    edges = graph.edges
    components = find_components(nodes, edges)
    layout = layout_components(components, config)
    routes = route_edges(edges, layout.positions, route_config)
    return TopologyResult(nodes=nodes, edges=edges, components=components, layout=layout, routes=routes)


class TopologyPipeline:
    """Runs ``compute_topology`` for one app and writes the result to a sink.

    Results are memoized per app by the entity-set fingerprint, so a change
    notification that leaves the entities unchanged costs one hash.
    """

    def __init__(
        self,
        sink: TopologySink,
        source: EntitySource,
        config: LayoutConfig | None = None,
        classifier: RoleClassifier | None = None,
        route_config: RouteConfig | None = None,
    ) -> None:
        self.sink = sink
        self.source = source
        self.config = config or LayoutConfig()
        self.classifier = classifier
        self.route_config = route_config or RouteConfig()
        self._memo: dict[str, tuple[str, TopologyResult]] = {}
        self.runs = 0

    def run(self, app_id: str) -> TopologyResult:
        entities = self.source(app_id)
        fingerprint = entities.fingerprint()
        cached = self._memo.get(app_id)
        if cached is not None and cached[0] == fingerprint:
            logger.debug("Entities for app %r unchanged; reusing topology", app_id)
            return cached[1]

        result = compute_topology(entities, self.config, self.classifier, self.route_config)
        # Memoize only once the sink holds the result, so a failed write is retried.
        self.sink.write(app_id, result.nodes, result.edges, result.layout)
        self._memo[app_id] = (fingerprint, result)
        self.runs += 1
        logger.info(
            "Recomputed topology for app %r: %d nodes, %d edges, %d components",
            app_id,
            len(result.nodes),
            len(result.edges),
            len(result.components),
        )
        return result

    def latest(self, app_id: str) -> TopologyResult | None:
        cached = self._memo.get(app_id)
        return cached[1] if cached is not None else None


class RecomputeScheduler:
    """Coalesces entity-change notifications into one pipeline run per app.

    ``notify`` only marks an app dirty. Inside a running asyncio loop the
    first notification schedules a ``flush`` with ``call_soon``; everything
    notified before that callback runs shares the same recomputation. Without
    a loop, callers drive ``flush`` themselves.
    """

    def __init__(self, pipeline: TopologyPipeline) -> None:
        self.pipeline = pipeline
        self._pending: dict[str, None] = {}
        self._scheduled = False
        self._running = False

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    def notify(self, app_id: str) -> None:
        self._pending[app_id] = None
        if self._scheduled or self._running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._scheduled = True
        loop.call_soon(self._flush_scheduled)

    def _flush_scheduled(self) -> None:
        self._scheduled = False
        self.flush()

    def flush(self) -> int:
        """Run the pipeline for every pending app; returns the number of runs.

        Apps notified while a run is in progress are picked up before
        returning. If a run raises, its app stays pending for the next flush
        and the exception propagates.
        """
        if self._running:
            return 0
        self._running = True
        runs = 0
        try:
            while self._pending:
                app_id = next(iter(self._pending))
                del self._pending[app_id]
                try:
                    self.pipeline.run(app_id)
                except Exception:
                    logger.warning("Topology run for app %r failed; keeping it pending", app_id)
                    self._pending.setdefault(app_id, None)
                    raise
                runs += 1
        finally:
            self._running = False
        return runs
