"""Edge routing — fan-out-aware quadratic curves with arrowheads.

Every edge becomes a quadratic curve from its source center to its target
center. The control point is the chord midpoint pushed along the chord's
normal; edges leaving the same source (or entering the same target) get
different offsets so parallel edges between busy nodes separate visually.

Routing is a pure function of the edges and the resolved positions. Animated
indicator markers are presentational state kept in ``MarkerBoard``, outside
the graph.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from signal_topology.config import RouteConfig
from signal_topology.types import Edge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Point:
    """A 2D point in canvas coordinates."""

    x: float
    y: float


def point_on_quadratic(t: float, p0: Point, p1: Point, p2: Point) -> Point:
    u = 1 - t
    return Point(
        x=u * u * p0.x + 2 * u * t * p1.x + t * t * p2.x,
        y=u * u * p0.y + 2 * u * t * p1.y + t * t * p2.y,
    )


def control_point(a: Point, b: Point, offset: float) -> Point:
    """Chord midpoint displaced by ``offset`` along the unit normal (-dy, dx)."""
    dx = b.x - a.x
    dy = b.y - a.y
    length = math.hypot(dx, dy) or 1.0
    return Point(x=(a.x + b.x) / 2 + (-dy / length) * offset, y=(a.y + b.y) / 2 + (dx / length) * offset)


# ─── Fan Indexes ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FanSlot:
    """Position of an edge among its siblings at one endpoint."""

    index: int
    size: int

    @property
    def median(self) -> float:
        return (self.size - 1) / 2

    @property
    def spread(self) -> float:
        return self.index - self.median


def fan_slots(edges: Sequence[Edge]) -> tuple[list[FanSlot], list[FanSlot]]:
    """(fan-out slot, fan-in slot) for every edge, in edge-list order."""
    out_groups: dict[str, list[int]] = {}
    in_groups: dict[str, list[int]] = {}
    for i, edge in enumerate(edges):
        out_groups.setdefault(edge.source, []).append(i)
        in_groups.setdefault(edge.target, []).append(i)

    fan_out: list[FanSlot] = [FanSlot(0, 1)] * len(edges)
    fan_in: list[FanSlot] = [FanSlot(0, 1)] * len(edges)
    for group in out_groups.values():
        for index, edge_idx in enumerate(group):
            fan_out[edge_idx] = FanSlot(index, len(group))
    for group in in_groups.values():
        for index, edge_idx in enumerate(group):
            fan_in[edge_idx] = FanSlot(index, len(group))
    return fan_out, fan_in


def curve_offset(fan_out: FanSlot, fan_in: FanSlot, config: RouteConfig) -> float:
    return config.base_offset + fan_out.spread * config.fan_step + fan_in.spread * config.fan_step


# ─── Arrowheads & Markers ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Arrowhead:
    """Tip and the two wing end points of an open arrowhead."""

    tip: Point
    left: Point
    right: Point


def arrowhead(p0: Point, ctrl: Point, p2: Point, config: RouteConfig) -> Arrowhead:
    """Arrowhead oriented along the curve tangent sampled just before ``arrow_t``."""
    prev = point_on_quadratic(config.arrow_t - config.arrow_dt, p0, ctrl, p2)
    end = point_on_quadratic(config.arrow_t, p0, ctrl, p2)
    dx = end.x - prev.x
    dy = end.y - prev.y
    length = math.hypot(dx, dy) or 1.0
    ux = dx / length
    uy = dy / length
    tip = Point(end.x - ux * config.arrow_setback, end.y - uy * config.arrow_setback)
    size = config.arrow_size
    return Arrowhead(
        tip=tip,
        left=Point(tip.x - ux * size - uy * size, tip.y - uy * size + ux * size),
        right=Point(tip.x - ux * size + uy * size, tip.y - uy * size - ux * size),
    )


def marker_count(count: int, config: RouteConfig) -> int:
    activity = max(1, min(config.marker_activity_max, count))
    return max(config.marker_min, math.ceil(activity / config.marker_activity_per_marker))


def marker_speed(count: int, config: RouteConfig) -> float:
    activity = max(1, min(config.marker_activity_max, count))
    return config.marker_base_speed + min(config.marker_speed_max_boost, activity / config.marker_speed_divisor)


# ─── Routing ──────────────────────────────────────────────────────────────────


def route_key(edge: Edge) -> str:
    return f"{edge.source}->{edge.target}::{edge.label}"


@dataclass(frozen=True)
class RoutedEdge:
    """Geometry of one edge, ready for any renderer."""

    source: str
    target: str
    label: str
    count: int
    start: Point
    control: Point
    end: Point
    offset: float
    arrow: Arrowhead
    label_anchor: Point
    markers: int
    marker_speed: float

    @property
    def key(self) -> str:
        return f"{self.source}->{self.target}::{self.label}"

    def point_at(self, t: float) -> Point:
        return point_on_quadratic(t, self.start, self.control, self.end)


def route_edges(
    edges: Sequence[Edge],
    positions: Mapping[str, tuple[float, float]],
    config: RouteConfig | None = None,
) -> list[RoutedEdge]:
    """Route every edge whose endpoints both have a position.

    Fan slots are computed over the full edge list, so skipping an edge with
    a missing endpoint does not shift its siblings' offsets.
    """
    config = config or RouteConfig()
    fan_out, fan_in = fan_slots(edges)
    routes: list[RoutedEdge] = []

    for i, edge in enumerate(edges):
        src = positions.get(edge.source)
        tgt = positions.get(edge.target)
        if src is None or tgt is None:
            missing = edge.source if src is None else edge.target
            logger.warning("Not routing %s: no position for %r", route_key(edge), missing)
            continue

        p0 = Point(*src)
        p2 = Point(*tgt)
        offset = curve_offset(fan_out[i], fan_in[i], config)
        ctrl = control_point(p0, p2, offset)
        mid = point_on_quadratic(0.5, p0, ctrl, p2)

        routes.append(
            RoutedEdge(
                source=edge.source,
                target=edge.target,
                label=edge.label,
                count=edge.count,
                start=p0,
                control=ctrl,
                end=p2,
                offset=offset,
                arrow=arrowhead(p0, ctrl, p2, config),
                label_anchor=Point(mid.x, mid.y - config.label_lift),
                markers=marker_count(edge.count, config),
                marker_speed=marker_speed(edge.count, config),
            )
        )

    return routes


# ─── Indicator Markers ────────────────────────────────────────────────────────


@dataclass
class IndicatorTrack:
    """Progress parameters of the markers travelling along one edge."""

    speed: float
    positions: list[float] = field(default_factory=list)

    @classmethod
    def seeded(cls, count: int, speed: float) -> IndicatorTrack:
        """Markers evenly spaced over [0, 1)."""
        return cls(speed=speed, positions=[i / count for i in range(count)])

    def advance(self, steps: int = 1) -> list[float]:
        """Move every marker forward; ``t`` wraps back into [0, 1) on overflow."""
        self.positions = [(t + self.speed * steps) % 1.0 for t in self.positions]
        return self.positions

    def resize(self, count: int) -> None:
        if count < len(self.positions):
            del self.positions[count:]
        elif count > len(self.positions):
            self.positions.extend(i / count for i in range(len(self.positions), count))


class MarkerBoard:
    """Marker tracks keyed by edge, kept across recomputations.

    Edges that survive a recomputation keep their marker progress; new edges
    get seeded tracks; vanished edges are dropped.
    """

    def __init__(self) -> None:
        self.tracks: dict[str, IndicatorTrack] = {}

    def sync(self, routes: Sequence[RoutedEdge]) -> None:
        live: dict[str, IndicatorTrack] = {}
        for route in routes:
            track = self.tracks.get(route.key)
            if track is None:
                track = IndicatorTrack.seeded(route.markers, route.marker_speed)
            else:
                track.speed = route.marker_speed
                track.resize(route.markers)
            live[route.key] = track
        self.tracks = live

    def tick(self, steps: int = 1) -> None:
        for track in self.tracks.values():
            track.advance(steps)

    def marker_points(self, route: RoutedEdge) -> list[Point]:
        track = self.tracks.get(route.key)
        if track is None:
            return []
        return [route.point_at(t) for t in track.positions]
