"""Flame layout: one row per depth, bars positioned by time offset.

Geometry is a pure function of (node, viewport state): nodes are laid out as
percentages of the trace once, then projected into pixels for the current
zoom, pan and container width.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from traceviz.diagrams.colors import span_color
from traceviz.diagrams.viewport import ViewportState
from traceviz.trace.span_model import display_service_name
from traceviz.trace.span_tree import SpanNode, SpanTree
from traceviz.trace.stats import format_duration
from traceviz.trace.trace_model import Trace

# Flame layout constants
ROW_HEIGHT = 26
ROW_GAP = 2
PADDING = 16
MIN_PIXEL_WIDTH = 2  # Keeps sub-pixel spans visible and clickable
MINIMAP_HEIGHT = 32
RULER_TICKS = 4
FULL_LABEL_MIN_WIDTH = 50
DURATION_LABEL_MIN_WIDTH = 20


@dataclass(frozen=True)
class FlameNode:
    """A tree node with its normalized horizontal interval."""

    node: SpanNode
    start_percent: float
    width_percent: float

    @property
    def depth(self) -> int:
        return self.node.depth

    @property
    def span_id(self) -> str:
        return self.node.span_id


@dataclass(frozen=True)
class FlameRect:
    """Screen-space rectangle for one flame node."""

    flame_node: FlameNode
    x: float
    y: float
    width: float
    height: float

    @property
    def span_id(self) -> str:
        return self.flame_node.span_id

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def is_visible(self, container_width: float) -> bool:
        return not (self.x + self.width < 0 or self.x > container_width)

    def to_dict(self) -> dict[str, Any]:
        return {
            "span_id": self.span_id,
            "name": self.flame_node.node.span.name,
            "depth": self.flame_node.depth,
            "x": round(self.x, 3),
            "y": self.y,
            "width": round(self.width, 3),
            "height": self.height,
            "is_critical_path": self.flame_node.node.is_critical_path,
        }


@dataclass(frozen=True)
class RulerTick:
    x: float
    time_ms: float

    @property
    def label(self) -> str:
        return format_duration(self.time_ms)


def row_y(depth: int) -> float:
    return PADDING + depth * (ROW_HEIGHT + ROW_GAP)


def project(flame_node: FlameNode, state: ViewportState) -> FlameRect:
    """Project a flame node into pixels for the given viewport."""
    content_width = state.content_width
    x = state.padding + (flame_node.start_percent / 100) * content_width - state.pan_offset
    width = max(MIN_PIXEL_WIDTH, (flame_node.width_percent / 100) * content_width)
    return FlameRect(
        flame_node=flame_node,
        x=x,
        y=row_y(flame_node.depth),
        width=width,
        height=ROW_HEIGHT,
    )


def label_for(flame_node: FlameNode, width: float) -> Optional[str]:
    """Text drawn inside a bar of the given pixel width, if any fits."""
    duration = format_duration(flame_node.node.duration_ms)
    if width > FULL_LABEL_MIN_WIDTH:
        return f"{flame_node.node.span.name}  {duration}"
    if width > DURATION_LABEL_MIN_WIDTH:
        return duration
    return None


class FlameLayout:
    """Percentage layout of a span tree, in depth-first order."""

    def __init__(self, tree: SpanTree, trace: Trace) -> None:
        self.trace = trace
        self.nodes: list[FlameNode] = [
            FlameNode(
                node=node,
                start_percent=trace.start_percent(node.span),
                width_percent=trace.width_percent(node.span),
            )
            for node in tree.preorder()
        ]
        self.row_count = tree.max_depth + 1 if tree.nodes else 0

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def height(self) -> float:
        """Canvas height: rows, padding, and the time ruler strip."""
        return max(self.row_count, 1) * (ROW_HEIGHT + ROW_GAP) + PADDING * 2 + 20

    def project_all(self, state: ViewportState, cull: bool = True) -> list[FlameRect]:
        """Rectangles for every node, dropping those outside the container when ``cull``."""
        rects = [project(n, state) for n in self.nodes]
        if cull:
            rects = [r for r in rects if r.is_visible(state.container_width)]
        return rects

    def hit_test(self, px: float, py: float, state: ViewportState) -> Optional[FlameNode]:
        """First node whose projected rectangle contains the point."""
        for flame_node in self.nodes:
            if project(flame_node, state).contains(px, py):
                return flame_node
        return None

    def find(self, span_id: Optional[str]) -> Optional[FlameNode]:
        if span_id is None:
            return None
        return next((n for n in self.nodes if n.span_id == span_id), None)

    def ruler(self, state: ViewportState) -> list[RulerTick]:
        """Evenly spaced time ticks across the visible width."""
        total = self.trace.total_duration_ms
        visible = state.visible_width
        content = state.content_width
        pan_ms = state.pan_offset / content * total if content > 0 else 0.0
        ticks = []
        for i in range(RULER_TICKS + 1):
            fraction = i / RULER_TICKS
            ticks.append(
                RulerTick(
                    x=state.padding + visible * fraction,
                    time_ms=total / state.zoom_level * fraction + pan_ms,
                )
            )
        return ticks

    def fill_color(self, flame_node: FlameNode, state: ViewportState, selected_span_id: Optional[str] = None) -> str:
        return span_color(
            flame_node.node.span,
            color_by=state.color_by,
            hovered=state.hovered_span_id == flame_node.span_id,
            selected=selected_span_id == flame_node.span_id,
        )

    def tooltip(self, flame_node: FlameNode) -> dict[str, Any]:
        """Hover details for a node."""
        span = flame_node.node.span
        return {
            "span_id": span.span_id,
            "name": span.name,
            "service": display_service_name(span),
            "duration": format_duration(span.duration_ms),
            "self_time": format_duration(flame_node.node.self_time_ms),
            "percent_of_trace": round(self.trace.percent_of_trace(span), 1),
            "status": span.status.value,
            "child_count": len(flame_node.node.children),
        }
