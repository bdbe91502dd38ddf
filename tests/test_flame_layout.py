"""Tests for flame graph layout, projection and hit-testing."""
from __future__ import annotations

import pytest

from conftest import make_span
from traceviz.diagrams.flame_layout import (
    MIN_PIXEL_WIDTH,
    PADDING,
    ROW_GAP,
    ROW_HEIGHT,
    FlameLayout,
    label_for,
    project,
    row_y,
)
from traceviz.diagrams.viewport import ViewportState
from traceviz.trace.span_model import Span, SpanStatus
from traceviz.trace.span_tree import SpanTree, build_span_tree
from traceviz.trace.trace_model import build_trace_from_spans

# 1000px of drawable width inside the padding
STATE = ViewportState(container_width=1000 + 2 * PADDING, padding=PADDING)


def _layout(spans: list[Span]) -> FlameLayout:
    return FlameLayout(build_span_tree(spans), build_trace_from_spans(spans))


# ============================================================================
# Normalized layout
# ============================================================================


class TestFlameNodes:
    def test_percent_intervals(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)

        intervals = {n.span_id: (n.start_percent, n.width_percent, n.depth) for n in layout.nodes}

        assert intervals == {
            "root": (0, 100, 0),
            "a": (0, 80, 1),
            "b": (80, 20, 2),
        }

    def test_depth_first_order(self, fork_spans: list[Span]) -> None:
        assert [n.span_id for n in _layout(fork_spans).nodes] == ["root", "a", "b"]

    def test_rows_and_height(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)

        assert layout.row_count == 3
        assert layout.height == 3 * (ROW_HEIGHT + ROW_GAP) + PADDING * 2 + 20

    def test_empty(self) -> None:
        layout = _layout([])

        assert len(layout) == 0
        assert layout.project_all(STATE) == []
        assert layout.hit_test(100, 20, STATE) is None

    def test_zero_duration_trace_has_finite_geometry(self) -> None:
        layout = _layout([make_span("a", None, 5, 5), make_span("b", "a", 5, 5)])

        for rect in layout.project_all(STATE):
            assert rect.x == PADDING
            assert rect.width == 1000


# ============================================================================
# Projection
# ============================================================================


class TestProjection:
    def test_projection_at_zoom_one(self, chain_spans: list[Span]) -> None:
        rect = project(_layout(chain_spans).find("b"), STATE)

        assert rect.x == pytest.approx(PADDING + 800)
        assert rect.width == pytest.approx(200)
        assert rect.y == row_y(2)
        assert rect.height == ROW_HEIGHT

    def test_zoom_and_pan(self, chain_spans: list[Span]) -> None:
        state = ViewportState(zoom_level=2, pan_offset=300, container_width=STATE.container_width)

        rect = project(_layout(chain_spans).find("b"), state)

        assert rect.x == pytest.approx(PADDING + 1600 - 300)
        assert rect.width == pytest.approx(400)

    def test_min_pixel_width(self) -> None:
        spans = [make_span("root", None, 0, 1_000_000), make_span("tiny", "root", 10, 10.001)]
        layout = _layout(spans)

        for rect in layout.project_all(STATE, cull=False):
            assert rect.width >= MIN_PIXEL_WIDTH
        assert project(layout.find("tiny"), STATE).width == MIN_PIXEL_WIDTH

    def test_projection_is_idempotent(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)

        assert layout.project_all(STATE) == layout.project_all(STATE)

    def test_culling(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)
        state = ViewportState(zoom_level=10, pan_offset=0, container_width=STATE.container_width)

        culled = {r.span_id for r in layout.project_all(state)}

        assert "b" not in culled
        assert len(layout.project_all(state, cull=False)) == 3

    def test_labels(self, chain_spans: list[Span]) -> None:
        node = _layout(chain_spans).find("b")

        assert label_for(node, 120) == "op.b  20.00ms"
        assert label_for(node, 30) == "20.00ms"
        assert label_for(node, 10) is None


# ============================================================================
# Hit-testing
# ============================================================================


class TestHitTest:
    def test_point_inside_rect(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)
        rect = project(layout.find("b"), STATE)

        found = layout.hit_test(rect.x + rect.width / 2, rect.y + rect.height / 2, STATE)

        assert found.span_id == "b"

    def test_every_rect_center_hits_its_node(self, otel_spans_tree: SpanTree) -> None:
        layout = FlameLayout(otel_spans_tree, build_trace_from_spans([n.span for n in otel_spans_tree.preorder()]))

        for rect in layout.project_all(STATE):
            cx, cy = rect.x + rect.width / 2, rect.y + rect.height / 2
            assert layout.hit_test(cx, cy, STATE).span_id == rect.span_id

    def test_inter_row_gap_misses(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)
        gap_y = row_y(0) + ROW_HEIGHT + ROW_GAP / 2

        assert layout.hit_test(PADDING + 10, gap_y, STATE) is None

    def test_padding_misses(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)

        assert layout.hit_test(PADDING + 10, PADDING / 2, STATE) is None

    def test_hit_respects_pan(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)
        state = ViewportState(zoom_level=2, pan_offset=1000, container_width=STATE.container_width)

        # b spans content x 1600..2000, screen x 616..1016
        assert layout.hit_test(PADDING + 700, row_y(2) + 5, state).span_id == "b"
        assert layout.hit_test(PADDING + 100, row_y(2) + 5, state) is None


# ============================================================================
# Ruler, colors and tooltips
# ============================================================================


class TestDecorations:
    def test_ruler_ticks(self, chain_spans: list[Span]) -> None:
        ticks = _layout(chain_spans).ruler(STATE)

        assert [t.x for t in ticks] == [PADDING + v for v in (0, 250, 500, 750, 1000)]
        assert [t.time_ms for t in ticks] == [0, 25, 50, 75, 100]
        assert ticks[-1].label == "100.00ms"

    def test_ruler_follows_zoom_and_pan(self, chain_spans: list[Span]) -> None:
        state = ViewportState(zoom_level=2, pan_offset=1000, container_width=STATE.container_width)

        ticks = _layout(chain_spans).ruler(state)

        assert ticks[0].time_ms == pytest.approx(50)
        assert ticks[-1].time_ms == pytest.approx(100)

    def test_fill_color(self) -> None:
        spans = [make_span("e", None, 0, 10, status=SpanStatus.ERROR)]
        layout = _layout(spans)
        node = layout.find("e")

        assert layout.fill_color(node, STATE) == "#F85149"
        assert layout.fill_color(node, STATE, selected_span_id="e") == "#F3F724"

    def test_tooltip(self, chain_spans: list[Span]) -> None:
        layout = _layout(chain_spans)

        tip = layout.tooltip(layout.find("a"))

        assert tip["span_id"] == "a"
        assert tip["service"] == "op"
        assert tip["duration"] == "80.00ms"
        assert tip["self_time"] == "60.00ms"
        assert tip["percent_of_trace"] == 80.0
        assert tip["child_count"] == 1
