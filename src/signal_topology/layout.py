"""Layout module — band/column placement with iterative collision resolution.

Phases (per component, in discovery order):
  1. Band reservation  (vertical strip starting at a running cursor)
  2. Column placement  (input / processing / output columns, fanned when busy)
  3. Collision resolution (pairwise push-apart until no padded boxes overlap)
  4. Band clamping     (keep nodes inside the band and the canvas)

After all components: content bounds for viewport/scroll indicators.

The result is deterministic and collision-free when every component
converges; it is not crossing-minimal.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from signal_topology.config import LayoutConfig
from signal_topology.types import Component, Node, Role

logger = logging.getLogger(__name__)

# ─── Geometry ─────────────────────────────────────────────────────────────────


@dataclass
class PlacedNode:
    """A node with its center position and block size (unpadded)."""

    id: str
    name: str
    role: Role
    activity_count: int
    x: float
    y: float
    width: float
    height: float


@dataclass
class Box:
    """Axis-aligned box given by its top-left corner."""

    x: float
    y: float
    width: float
    height: float


def block_size(name: str, role: Role, config: LayoutConfig) -> tuple[float, float]:
    """Compute (width, height) of a node block; long labels widen the block up to a cap."""
    base = config.processing_block_width if role is Role.Processing else config.block_width
    extra = min(config.label_extra_max, max(0, len(name) - config.label_free_chars) * config.label_char_width)
    return (base + extra, config.block_height)


def padded_box(node: PlacedNode, config: LayoutConfig) -> Box:
    pad = config.box_padding
    return Box(
        x=node.x - node.width / 2 - pad,
        y=node.y - node.height / 2 - pad,
        width=node.width + pad * 2,
        height=node.height + pad * 2,
    )


def boxes_overlap(a: Box, b: Box) -> bool:
    """True if the boxes share interior area (touching edges do not count)."""
    return not (
        a.x + a.width <= b.x or b.x + b.width <= a.x or a.y + a.height <= b.y or b.y + b.height <= a.y
    )


def find_overlaps(nodes: Sequence[PlacedNode], config: LayoutConfig) -> list[tuple[str, str]]:
    """All (id, id) pairs whose padded boxes overlap."""
    boxes = [padded_box(n, config) for n in nodes]
    pairs: list[tuple[str, str]] = []
    for i in range(len(nodes)):
        for j in range(i + 1, len(nodes)):
            if boxes_overlap(boxes[i], boxes[j]):
                pairs.append((nodes[i].id, nodes[j].id))
    return pairs


# ─── Bands & Columns ──────────────────────────────────────────────────────────


@dataclass
class Band:
    """Vertical strip reserved for one component."""

    top: float
    height: float
    converged: bool = True
    iterations: int = 0

    @property
    def bottom(self) -> float:
        return self.top + self.height


def band_height(column_counts: Sequence[int], config: LayoutConfig) -> float:
    """Initial band height from the busiest column; dense columns pack tighter."""
    busiest = max(column_counts, default=0)
    per_node = config.dense_node_height if busiest > config.dense_column_threshold else config.node_height
    return max(config.base_height, busiest * per_node + config.band_margin)


def column_x(role: Role, config: LayoutConfig) -> float:
    center = config.canvas_width / 2
    if role is Role.Input:
        return max(config.column_edge_min, center - config.column_offset)
    if role is Role.Output:
        return min(config.canvas_width - config.column_edge_min, center + config.column_offset)
    return center


def place_column(column: Sequence[PlacedNode], x: float, y_base: float, config: LayoutConfig) -> None:
    """Stack a column downward from ``y_base``, fanning multi-node columns horizontally.

    The horizontal offset is proportional to each node's distance from the
    column's center index, so same-column labels don't sit exactly on top of
    each other.
    """
    n = len(column)
    if n == 1:
        column[0].x = x
        column[0].y = y_base + config.node_top_offset
        return
    center_index = (n - 1) / 2
    step = config.spread_x / max(1, n - 1)
    for i, node in enumerate(column):
        node.x = x + (i - center_index) * step
        node.y = y_base + config.node_top_offset + i * config.spread_y


# ─── Collision Resolution ─────────────────────────────────────────────────────


@dataclass
class Limits:
    """Region a node center may occupy while collisions are resolved."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float = math.inf

    def clamp(self, node: PlacedNode) -> bool:
        """Pull ``node`` inside the limits. Returns True if its x had to move."""
        x = max(self.min_x, min(self.max_x, node.x))
        clamped_x = x != node.x
        node.x = x
        node.y = max(self.min_y, min(self.max_y, node.y))
        return clamped_x


def _required_separation(ux: float, uy: float, a: Box, b: Box, config: LayoutConfig) -> float:
    """Center distance two overlapping boxes must reach along direction (ux, uy).

    Starts from the sum of half-widths plus the separation buffer and is raised
    to the distance at which the boxes stop overlapping along the center line,
    so every overlapping pair is pushed.
    """
    half_w = (a.width + b.width) / 2
    half_h = (a.height + b.height) / 2
    clear_x = half_w / abs(ux) if ux else math.inf
    clear_y = half_h / abs(uy) if uy else math.inf
    return max(half_w + config.separation_buffer, min(clear_x, clear_y))


def _deflect_down(a: PlacedNode, b: PlacedNode, box_a: Box, box_b: Box, config: LayoutConfig) -> None:
    """Drop the lower node of a pair below the upper one; ties move ``b``."""
    upper, lower = (a, b) if b.y >= a.y else (b, a)
    lower.y = upper.y + (box_a.height + box_b.height) / 2 + config.push_buffer


def resolve_collisions(
    nodes: Sequence[PlacedNode],
    config: LayoutConfig,
    limits: Limits | None = None,
) -> tuple[bool, int]:
    """Push overlapping nodes apart in place.

    Each iteration is a full O(n²) pass over node pairs. For an overlapping
    pair the second node is pushed along the center vector and the first
    against it, each by half the separation deficit plus ``push_buffer``.
    Coincident centers get a fixed ``tie_break_offset`` on the second node.
    When ``limits`` pull a pushed node back in x and the pair still overlaps,
    the lower node drops below the upper one instead; ``max_y`` is unbounded
    while resolving, so the band can grow to hold it.

    Returns (converged, passes): ``converged`` is False when the iteration cap
    was reached with overlaps remaining; positions are then best-effort.
    """
    for iteration in range(config.max_collision_iterations):
        collided = False
        for i in range(len(nodes)):
            for j in range(i + 1, len(nodes)):
                a, b = nodes[i], nodes[j]
                box_a = padded_box(a, config)
                box_b = padded_box(b, config)
                if not boxes_overlap(box_a, box_b):
                    continue
                collided = True

                dx = b.x - a.x
                dy = b.y - a.y
                distance = math.hypot(dx, dy)
                if distance == 0:
                    b.x += config.tie_break_offset
                    b.y += config.tie_break_offset
                    if limits is not None:
                        limits.clamp(b)
                    continue

                ux = dx / distance
                uy = dy / distance
                required = _required_separation(ux, uy, box_a, box_b, config)
                if distance >= required:
                    continue
                move = (required - distance) / 2 + config.push_buffer
                a.x -= ux * move
                a.y -= uy * move
                b.x += ux * move
                b.y += uy * move
                if limits is None:
                    continue
                # A push the canvas edge swallowed is redirected into the band below.
                absorbed = limits.clamp(a) | limits.clamp(b)
                if absorbed and boxes_overlap(padded_box(a, config), padded_box(b, config)):
                    _deflect_down(a, b, box_a, box_b, config)

        if not collided:
            logger.debug("Collision resolution converged after %d iterations", iteration)
            return True, iteration

    logger.warning(
        "Collision resolution did not converge within %d iterations (%d nodes)",
        config.max_collision_iterations,
        len(nodes),
    )
    return False, config.max_collision_iterations


# ─── Content Bounds ───────────────────────────────────────────────────────────


@dataclass
class Bounds:
    """Bounding box of all node centers, widened by the bounds margins."""

    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


def content_bounds(nodes: Sequence[PlacedNode], config: LayoutConfig) -> Bounds:
    if not nodes:
        return Bounds()
    return Bounds(
        min_x=min(n.x for n in nodes) - config.bounds_margin_x,
        min_y=min(n.y for n in nodes) - config.bounds_margin_y,
        max_x=max(n.x for n in nodes) + config.bounds_margin_x,
        max_y=max(n.y for n in nodes) + config.bounds_margin_y,
    )


# ─── Full Layout Pipeline ─────────────────────────────────────────────────────


@dataclass
class LayoutResult:
    """Positioned nodes (in component order), one band per component, and bounds."""

    nodes: list[PlacedNode] = field(default_factory=list)
    bands: list[Band] = field(default_factory=list)
    bounds: Bounds = field(default_factory=Bounds)

    @property
    def converged(self) -> bool:
        return all(band.converged for band in self.bands)

    @property
    def positions(self) -> dict[str, tuple[float, float]]:
        return {n.id: (n.x, n.y) for n in self.nodes}

    def node(self, node_id: str) -> PlacedNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None


def _to_placed(node: Node, config: LayoutConfig) -> PlacedNode:
    width, height = block_size(node.name, node.role, config)
    return PlacedNode(
        id=node.id,
        name=node.name,
        role=node.role,
        activity_count=node.activity_count,
        x=0.0,
        y=0.0,
        width=width,
        height=height,
    )


def layout_component(component: Component, top: float, config: LayoutConfig) -> tuple[list[PlacedNode], Band]:
    """Place one component in a band starting at ``top``.

    Nodes keep their padded boxes inside the band: the inset from either band
    edge is ``band_edge_margin`` or half the tallest padded box, whichever is
    larger. The band grows downward to contain the resolved positions, so
    clamping into it never re-introduces an overlap, and bands separated by
    ``component_padding`` never overlap each other.
    """
    placed = [_to_placed(n, config) for n in component.nodes]
    columns: dict[Role, list[PlacedNode]] = {Role.Input: [], Role.Processing: [], Role.Output: []}
    for node in placed:
        columns[node.role].append(node)

    height = band_height([len(c) for c in columns.values()], config)
    for role, column in columns.items():
        if column:
            place_column(column, column_x(role, config), top, config)

    inset = max(config.band_edge_margin, max((padded_box(n, config).height for n in placed), default=0.0) / 2)
    limits = Limits(
        min_x=config.canvas_edge_margin,
        max_x=config.canvas_width - config.canvas_edge_margin,
        min_y=top + inset,
    )
    for node in placed:
        limits.clamp(node)
    converged, iterations = resolve_collisions(placed, config, limits)

    lowest = max((n.y for n in placed), default=top)
    height = max(height, lowest - top + inset)
    band = Band(top=top, height=height, converged=converged, iterations=iterations)

    final = Limits(
        min_x=config.canvas_edge_margin,
        max_x=config.canvas_width - config.canvas_edge_margin,
        min_y=top + inset,
        max_y=band.bottom - inset,
    )
    for node in placed:
        final.clamp(node)
    return placed, band


def layout_components(components: Sequence[Component], config: LayoutConfig | None = None) -> LayoutResult:
    """Lay out every component in its own band, top to bottom."""
    config = config or LayoutConfig()
    result = LayoutResult()
    current_y = config.start_y

    for index, component in enumerate(components):
        placed, band = layout_component(component, current_y, config)
        if not band.converged:
            logger.warning("Component %d (%d nodes) kept a best-effort layout", index, len(placed))
        result.nodes.extend(placed)
        result.bands.append(band)
        current_y = band.bottom + config.component_padding

    result.bounds = content_bounds(result.nodes, config)
    return result
