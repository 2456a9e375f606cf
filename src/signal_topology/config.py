"""Tunable geometry for the layout engine and the edge router.

All distances are in canvas pixels. The module-level constants are the
defaults; ``LayoutConfig`` / ``RouteConfig`` carry them through the pipeline so
callers can override any of them without touching the algorithms.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

logger = logging.getLogger(__name__)

# ─── Canvas & Bands ───────────────────────────────────────────────────────────

CANVAS_WIDTH: float = 800.0
START_Y: float = 40.0  # top of the first component band
COMPONENT_PADDING: float = 40.0  # vertical gap between component bands
BASE_HEIGHT: float = 150.0  # minimum band height
NODE_HEIGHT: float = 100.0  # band height reserved per node in a sparse column
DENSE_NODE_HEIGHT: float = 70.0  # ... and in a dense column
DENSE_COLUMN_THRESHOLD: int = 3  # columns above this many nodes count as dense
BAND_MARGIN: float = 100.0
BAND_EDGE_MARGIN: float = 20.0  # nodes stay this far inside their band
CANVAS_EDGE_MARGIN: float = 50.0  # nodes stay this far inside the canvas

# ─── Columns ──────────────────────────────────────────────────────────────────

COLUMN_OFFSET: float = 150.0  # input/output column distance from center
COLUMN_EDGE_MIN: float = 80.0
NODE_TOP_OFFSET: float = 100.0  # first node of a column sits this far below the band top
SPREAD_X: float = 200.0  # total horizontal fan of a multi-node column
SPREAD_Y: float = 140.0  # vertical step between nodes of one column

# ─── Node Blocks ──────────────────────────────────────────────────────────────

BLOCK_WIDTH: float = 180.0
PROCESSING_BLOCK_WIDTH: float = 200.0
BLOCK_HEIGHT: float = 80.0
LABEL_FREE_CHARS: int = 14  # label length that fits the base block
LABEL_CHAR_WIDTH: float = 7.0
LABEL_EXTRA_MAX: float = 160.0
BOX_PADDING: float = 24.0

# ─── Collision Resolution ─────────────────────────────────────────────────────

MAX_COLLISION_ITERATIONS: int = 50
SEPARATION_BUFFER: float = 30.0
PUSH_BUFFER: float = 5.0
TIE_BREAK_OFFSET: float = 50.0

# ─── Content Bounds ───────────────────────────────────────────────────────────

BOUNDS_MARGIN_X: float = 100.0
BOUNDS_MARGIN_Y: float = 50.0

# ─── Edge Routing ─────────────────────────────────────────────────────────────

BASE_CURVE_OFFSET: float = 24.0
FAN_STEP: float = 14.0
ARROW_T: float = 0.92
ARROW_DT: float = 0.02
ARROW_SETBACK: float = 8.0
ARROW_SIZE: float = 4.0
LABEL_LIFT: float = 12.0
MARKER_ACTIVITY_MAX: int = 30
MARKER_ACTIVITY_PER_MARKER: int = 4
MARKER_MIN: int = 2
MARKER_BASE_SPEED: float = 0.004
MARKER_SPEED_MAX_BOOST: float = 0.02
MARKER_SPEED_DIVISOR: float = 3000.0


def _from_mapping(cls: type, values: Mapping[str, Any]) -> Any:
    known = {f.name for f in fields(cls)}
    kwargs: dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            logger.warning("Ignoring unknown %s option %r", cls.__name__, key)
            continue
        kwargs[key] = value
    return cls(**kwargs)


@dataclass(frozen=True)
class LayoutConfig:
    """Spacing constants and the collision iteration cap."""

    canvas_width: float = CANVAS_WIDTH
    start_y: float = START_Y
    component_padding: float = COMPONENT_PADDING
    base_height: float = BASE_HEIGHT
    node_height: float = NODE_HEIGHT
    dense_node_height: float = DENSE_NODE_HEIGHT
    dense_column_threshold: int = DENSE_COLUMN_THRESHOLD
    band_margin: float = BAND_MARGIN
    band_edge_margin: float = BAND_EDGE_MARGIN
    canvas_edge_margin: float = CANVAS_EDGE_MARGIN
    column_offset: float = COLUMN_OFFSET
    column_edge_min: float = COLUMN_EDGE_MIN
    node_top_offset: float = NODE_TOP_OFFSET
    spread_x: float = SPREAD_X
    spread_y: float = SPREAD_Y
    block_width: float = BLOCK_WIDTH
    processing_block_width: float = PROCESSING_BLOCK_WIDTH
    block_height: float = BLOCK_HEIGHT
    label_free_chars: int = LABEL_FREE_CHARS
    label_char_width: float = LABEL_CHAR_WIDTH
    label_extra_max: float = LABEL_EXTRA_MAX
    box_padding: float = BOX_PADDING
    max_collision_iterations: int = MAX_COLLISION_ITERATIONS
    separation_buffer: float = SEPARATION_BUFFER
    push_buffer: float = PUSH_BUFFER
    tie_break_offset: float = TIE_BREAK_OFFSET
    bounds_margin_x: float = BOUNDS_MARGIN_X
    bounds_margin_y: float = BOUNDS_MARGIN_Y

    def __post_init__(self) -> None:
        if self.max_collision_iterations < 1:
            raise ValueError("max_collision_iterations must be at least 1")
        if self.canvas_width <= 2 * self.canvas_edge_margin:
            raise ValueError("canvas_width must leave room inside canvas_edge_margin")
        if self.spread_y < 0 or self.spread_x < 0:
            raise ValueError("column spreads must be non-negative")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> LayoutConfig:
        """Build a config from a plain mapping; unknown keys are logged and ignored."""
        return _from_mapping(cls, values)


@dataclass(frozen=True)
class RouteConfig:
    """Curve, arrowhead and indicator-marker constants."""

    base_offset: float = BASE_CURVE_OFFSET
    fan_step: float = FAN_STEP
    arrow_t: float = ARROW_T
    arrow_dt: float = ARROW_DT
    arrow_setback: float = ARROW_SETBACK
    arrow_size: float = ARROW_SIZE
    label_lift: float = LABEL_LIFT
    marker_activity_max: int = MARKER_ACTIVITY_MAX
    marker_activity_per_marker: int = MARKER_ACTIVITY_PER_MARKER
    marker_min: int = MARKER_MIN
    marker_base_speed: float = MARKER_BASE_SPEED
    marker_speed_max_boost: float = MARKER_SPEED_MAX_BOOST
    marker_speed_divisor: float = MARKER_SPEED_DIVISOR

    def __post_init__(self) -> None:
        if not 0.0 < self.arrow_dt < self.arrow_t <= 1.0:
            raise ValueError("arrow sample must satisfy 0 < arrow_dt < arrow_t <= 1")
        if self.marker_activity_per_marker < 1:
            raise ValueError("marker_activity_per_marker must be at least 1")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> RouteConfig:
        return _from_mapping(cls, values)
