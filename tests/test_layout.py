"""Tests for layout.py — column placement, collision resolution, bands and bounds.

Scenario tests:
  - A: three-node chain laid out in one converged band
  - C: two long-label nodes whose naive placement overlaps
  - E: two disconnected pairs in separate, non-overlapping bands
"""

from __future__ import annotations

import logging
import math

import pytest

from signal_topology.config import (
    BASE_HEIGHT,
    MAX_COLLISION_ITERATIONS,
    SEPARATION_BUFFER,
    LayoutConfig,
)
from signal_topology.layout import (
    Band,
    Box,
    Limits,
    PlacedNode,
    band_height,
    block_size,
    boxes_overlap,
    column_x,
    content_bounds,
    find_overlaps,
    layout_components,
    padded_box,
    place_column,
    resolve_collisions,
)
from signal_topology.types import Component, Edge, Node, Role

CONFIG = LayoutConfig()

# ─── Helpers ──────────────────────────────────────────────────────────────────


def make_placed(node_id: str, x: float, y: float, name: str = "", role: Role = Role.Input) -> PlacedNode:
    """Create a PlacedNode sized from its label like the layout engine does."""
    label = name or node_id
    width, height = block_size(label, role, CONFIG)
    return PlacedNode(id=node_id, name=label, role=role, activity_count=0, x=x, y=y, width=width, height=height)


def make_component(nodes: list[tuple[str, Role]], edges: list[tuple[str, str]] = ()) -> Component:
    return Component(
        nodes=[Node(id=i, name=i, role=r) for i, r in nodes],
        edges=[Edge(source=s, target=t, label="sig") for s, t in edges],
    )


def padded_half_width_sum(a: PlacedNode, b: PlacedNode) -> float:
    return (padded_box(a, CONFIG).width + padded_box(b, CONFIG).width) / 2


# ─── Geometry ─────────────────────────────────────────────────────────────────


class TestBlockSize:
    def test_short_label_uses_base_width(self):
        assert block_size("intake", Role.Input, CONFIG) == (180.0, 80.0)

    def test_processing_blocks_are_wider(self):
        assert block_size("intake", Role.Processing, CONFIG) == (200.0, 80.0)

    def test_long_label_widens_block(self):
        # 20 chars → 6 over the free length → 42px extra
        assert block_size("x" * 20, Role.Output, CONFIG) == (222.0, 80.0)

    def test_extra_width_capped(self):
        assert block_size("x" * 200, Role.Input, CONFIG) == (340.0, 80.0)


class TestBoxes:
    def test_padded_box_surrounds_block(self):
        box = padded_box(make_placed("A", 100, 100), CONFIG)
        assert box == Box(x=100 - 90 - 24, y=100 - 40 - 24, width=228, height=128)

    def test_overlap(self):
        assert boxes_overlap(Box(0, 0, 10, 10), Box(5, 5, 10, 10))

    def test_touching_edges_do_not_overlap(self):
        assert not boxes_overlap(Box(0, 0, 10, 10), Box(10, 0, 10, 10))

    def test_disjoint(self):
        assert not boxes_overlap(Box(0, 0, 10, 10), Box(0, 50, 10, 10))


# ─── Bands & Columns ──────────────────────────────────────────────────────────


class TestBandsAndColumns:
    def test_band_minimum_height(self):
        assert band_height([0, 0, 0], CONFIG) == BASE_HEIGHT

    def test_base_height_floors_small_columns(self):
        tight = LayoutConfig(node_height=10, band_margin=10)
        assert band_height([1, 0, 0], tight) == BASE_HEIGHT

    def test_single_node_band(self):
        assert band_height([1, 0, 0], CONFIG) == 1 * 100 + 100

    def test_sparse_column_height(self):
        assert band_height([3, 1, 1], CONFIG) == 3 * 100 + 100

    def test_dense_column_packs_tighter(self):
        assert band_height([0, 5, 0], CONFIG) == 5 * 70 + 100

    def test_column_positions(self):
        assert column_x(Role.Input, CONFIG) == 250
        assert column_x(Role.Processing, CONFIG) == 400
        assert column_x(Role.Output, CONFIG) == 550

    def test_columns_respect_edge_minimum_on_narrow_canvas(self):
        narrow = LayoutConfig(canvas_width=200)
        assert column_x(Role.Input, narrow) == 80
        assert column_x(Role.Output, narrow) == 120

    def test_single_node_column(self):
        column = [make_placed("A", 0, 0)]
        place_column(column, 250, 40, CONFIG)
        assert (column[0].x, column[0].y) == (250, 140)

    def test_multi_node_column_fans_out(self):
        column = [make_placed(i, 0, 0) for i in "ABC"]
        place_column(column, 400, 40, CONFIG)
        assert [n.x for n in column] == [300, 400, 500]
        assert [n.y for n in column] == [140, 280, 420]


# ─── Collision Resolution ─────────────────────────────────────────────────────


class TestResolveCollisions:
    def test_scenario_c_long_labels(self):
        """Two long-label nodes 300px apart overlap; resolution separates them past the minimum."""
        a = make_placed("A", 250, 140, name="a-really-long-neuron-name-for-the-intake")
        b = make_placed("B", 550, 140, name="another-long-neuron-name-for-the-output", role=Role.Output)
        assert find_overlaps([a, b], CONFIG) == [("A", "B")]

        converged, _ = resolve_collisions([a, b], CONFIG)

        assert converged
        distance = math.hypot(b.x - a.x, b.y - a.y)
        assert distance >= padded_half_width_sum(a, b) + SEPARATION_BUFFER
        assert find_overlaps([a, b], CONFIG) == []

    def test_identical_positions_tie_break(self):
        a = make_placed("A", 400, 300)
        b = make_placed("B", 400, 300)
        converged, _ = resolve_collisions([a, b], CONFIG)
        assert converged
        assert (a.x, a.y) != (b.x, b.y)
        assert find_overlaps([a, b], CONFIG) == []

    def test_tie_break_is_deterministic(self):
        runs = []
        for _ in range(2):
            nodes = [make_placed(i, 400, 300) for i in "ABC"]
            resolve_collisions(nodes, CONFIG)
            runs.append([(n.x, n.y) for n in nodes])
        assert runs[0] == runs[1]

    def test_no_collisions_returns_immediately(self):
        nodes = [make_placed("A", 100, 100), make_placed("B", 600, 600)]
        assert resolve_collisions(nodes, CONFIG) == (True, 0)
        assert (nodes[0].x, nodes[1].x) == (100, 600)

    def test_cap_reached_warns(self, caplog):
        caplog.set_level(logging.WARNING)
        config = LayoutConfig(max_collision_iterations=1)
        nodes = [make_placed(i, 400, 300) for i in "ABC"]
        converged, passes = resolve_collisions(nodes, config)
        assert not converged
        assert passes == 1
        assert any("did not converge" in r.getMessage() for r in caplog.records)

    def test_limits_clamp_pushes(self):
        limits = Limits(min_x=50, max_x=750, min_y=60)
        a = make_placed("A", 60, 100)
        b = make_placed("B", 120, 100)
        resolve_collisions([a, b], CONFIG, limits)
        for n in (a, b):
            assert 50 <= n.x <= 750
            assert n.y >= 60

    def test_push_absorbed_by_canvas_edge_deflects_down(self):
        """A pair on one row whose left node is pinned at min_x separates vertically."""
        limits = Limits(min_x=50, max_x=750, min_y=60)
        a = make_placed("A", 50, 140, name="a" * 36)
        b = make_placed("B", 150, 140, name="b" * 36, role=Role.Processing)
        converged, _ = resolve_collisions([a, b], CONFIG, limits)
        assert converged
        assert a.x == 50
        assert b.y > a.y
        assert find_overlaps([a, b], CONFIG) == []

    def test_limits_clamp_reports_x_moves(self):
        limits = Limits(min_x=0, max_x=100, min_y=0)
        assert limits.clamp(make_placed("A", 150, 10))
        assert not limits.clamp(make_placed("B", 50, -10))

    def test_limits_clamp(self):
        node = make_placed("A", -10, 5000)
        Limits(min_x=0, max_x=100, min_y=0, max_y=200).clamp(node)
        assert (node.x, node.y) == (0, 200)

    def test_default_cap(self):
        assert CONFIG.max_collision_iterations == MAX_COLLISION_ITERATIONS == 50


# ─── Full Layout ──────────────────────────────────────────────────────────────


class TestLayoutComponents:
    def test_scenario_a_converges_without_overlap(self):
        component = make_component(
            [("A", Role.Input), ("B", Role.Processing), ("C", Role.Output)], [("A", "B"), ("B", "C")]
        )
        result = layout_components([component], CONFIG)
        assert result.converged
        assert find_overlaps(result.nodes, CONFIG) == []
        xs = {n.id: n.x for n in result.nodes}
        assert xs["A"] < xs["B"] < xs["C"]

    def test_long_label_chain_converges(self):
        """Three wide blocks on one row cannot fit the canvas side by side; the band grows instead."""
        component = Component(
            nodes=[
                Node(id="in", name="input-" + "x" * 30, role=Role.Input),
                Node(id="proc", name="proc-" + "y" * 30, role=Role.Processing),
                Node(id="out", name="out-" + "z" * 30, role=Role.Output),
            ],
            edges=[Edge("in", "proc", "a"), Edge("proc", "out", "b")],
        )
        result = layout_components([component], CONFIG)
        assert result.converged
        assert find_overlaps(result.nodes, CONFIG) == []
        band = result.bands[0]
        for node in result.nodes:
            assert CONFIG.canvas_edge_margin <= node.x <= CONFIG.canvas_width - CONFIG.canvas_edge_margin
            assert band.top + CONFIG.band_edge_margin <= node.y <= band.bottom - CONFIG.band_edge_margin

    def test_scenario_e_separate_bands(self):
        first = make_component([("A", Role.Input), ("B", Role.Processing)], [("A", "B")])
        second = make_component([("C", Role.Processing), ("D", Role.Output)], [("C", "D")])
        result = layout_components([first, second], CONFIG)

        assert len(result.bands) == 2
        top, bottom = result.bands
        assert top.top == CONFIG.start_y
        assert bottom.top == top.bottom + CONFIG.component_padding
        for band, ids in ((top, "AB"), (bottom, "CD")):
            for node_id in ids:
                node = result.node(node_id)
                assert band.top + CONFIG.band_edge_margin <= node.y <= band.bottom - CONFIG.band_edge_margin
        assert find_overlaps(result.nodes, CONFIG) == []

    def test_padded_boxes_stay_inside_their_band(self):
        """Nodes pushed toward a band edge never reach into the neighbouring band."""
        dense = make_component([(f"p{i}", Role.Processing) for i in range(4)])
        crowded = Component(
            nodes=[
                Node(id="in", name="in-" + "x" * 30, role=Role.Input),
                Node(id="q1", name="q1-" + "y" * 30, role=Role.Processing),
                Node(id="q2", name="q2-" + "z" * 30, role=Role.Processing),
            ]
        )
        components = [dense, crowded, dense]
        result = layout_components(components, CONFIG)
        start = 0
        for band, component in zip(result.bands, components):
            members = result.nodes[start : start + len(component.nodes)]
            start += len(component.nodes)
            for node in members:
                box = padded_box(node, CONFIG)
                assert band.top <= box.y
                assert box.y + box.height <= band.bottom
        if result.converged:
            assert find_overlaps(result.nodes, CONFIG) == []

    def test_nodes_stay_inside_canvas(self):
        component = make_component([(f"n{i}", Role.Processing) for i in range(6)])
        result = layout_components([component], CONFIG)
        for node in result.nodes:
            assert CONFIG.canvas_edge_margin <= node.x <= CONFIG.canvas_width - CONFIG.canvas_edge_margin

    def test_converged_layout_is_collision_free(self, caplog):
        caplog.set_level(logging.WARNING)
        nodes = [("in", Role.Input)] + [(f"worker-{i}", Role.Processing) for i in range(5)] + [("out", Role.Output)]
        result = layout_components([make_component(nodes)], CONFIG)
        if result.converged:
            assert find_overlaps(result.nodes, CONFIG) == []
        else:
            assert any("did not converge" in r.getMessage() for r in caplog.records)

    def test_band_grows_to_fit_resolved_nodes(self):
        component = make_component([(f"n{i}", Role.Processing) for i in range(4)])
        result = layout_components([component], CONFIG)
        band = result.bands[0]
        lowest = max(n.y for n in result.nodes)
        assert band.height >= band_height([0, 4, 0], CONFIG)
        assert lowest <= band.bottom - CONFIG.band_edge_margin

    def test_scenario_d_empty(self):
        result = layout_components([], CONFIG)
        assert result.nodes == []
        assert result.bands == []
        assert (result.bounds.width, result.bounds.height) == (0, 0)
        assert result.converged

    def test_deterministic(self):
        def run():
            component = make_component([(i, Role.Processing) for i in "ABCDE"])
            return layout_components([component], CONFIG).positions

        assert run() == run()


class TestContentBounds:
    def test_bounds_widen_by_margins(self):
        nodes = [make_placed("A", 100, 200), make_placed("B", 300, 500)]
        bounds = content_bounds(nodes, CONFIG)
        assert (bounds.min_x, bounds.max_x) == (0, 400)
        assert (bounds.min_y, bounds.max_y) == (150, 550)
        assert (bounds.width, bounds.height) == (400, 400)


class TestLayoutConfig:
    def test_rejects_zero_iteration_cap(self):
        with pytest.raises(ValueError):
            LayoutConfig(max_collision_iterations=0)

    def test_from_mapping_ignores_unknown_keys(self, caplog):
        caplog.set_level(logging.WARNING)
        config = LayoutConfig.from_mapping({"canvas_width": 1200, "colour": "red"})
        assert config.canvas_width == 1200
        assert any("colour" in r.getMessage() for r in caplog.records)

    def test_band_defaults(self):
        assert Band(top=10, height=5).bottom == 15
