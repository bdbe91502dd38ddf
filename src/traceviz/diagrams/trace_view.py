"""One visualization instance: a loaded trace plus its view state.

Every instance owns its own viewport, expand set and listeners; nothing is
shared between instances.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from traceviz.diagrams.events import EventChannel, FrameThrottle, SpanHovered, SpanSelected
from traceviz.diagrams.flame_layout import PADDING, FlameLayout, FlameNode, FlameRect
from traceviz.diagrams.viewport import SetColorBy, SetHovered, ViewportController, WheelEvent
from traceviz.diagrams.waterfall_layout import WaterfallLayout, WaterfallRow
from traceviz.prefs import PreferenceStore
from traceviz.trace.critical_path import resolve_critical_path
from traceviz.trace.span_model import Span
from traceviz.trace.span_tree import ChildOrder, SpanTree, build_span_tree
from traceviz.trace.trace_model import Trace, build_trace_from_spans


class TraceView:
    """Builds derived state for a span list and handles pointer input."""

    def __init__(
        self,
        container_width: float = 0.0,
        child_order: ChildOrder = ChildOrder.START_TIME,
        prefs: Optional[PreferenceStore] = None,
        color_by: str = "status",
    ) -> None:
        self.child_order = child_order
        self.prefs = prefs
        self.viewport = ViewportController(container_width=container_width, padding=PADDING)
        self.viewport.dispatch(SetColorBy(color_by))
        self.selection: EventChannel[SpanSelected] = EventChannel()
        self.hover: EventChannel[SpanHovered] = EventChannel()
        self._resize = FrameThrottle(self.viewport.set_container_width)
        self.selected_span_id: Optional[str] = None
        self.closed = False
        self.load([])

    # Loading

    def load(
        self,
        spans: list[Span],
        total_duration_ms: Optional[float] = None,
        span_count: Optional[int] = None,
    ) -> None:
        """Rebuild everything for a new span set and reset view state."""
        self.trace: Trace = build_trace_from_spans(
            spans, total_duration_ms=total_duration_ms, span_count=span_count
        )
        self.tree: SpanTree = build_span_tree(spans, child_order=self.child_order)
        resolve_critical_path(self.tree.roots)
        self.flame = FlameLayout(self.tree, self.trace)
        self.waterfall = WaterfallLayout(self.tree, self.trace, prefs=self.prefs)
        self.viewport.reset()
        self._resize.cancel()
        self.selected_span_id = None

    @property
    def is_empty(self) -> bool:
        return len(self.tree) == 0

    # Geometry

    def flame_rects(self) -> list[FlameRect]:
        return self.flame.project_all(self.viewport.state)

    def waterfall_rows(self) -> list[WaterfallRow]:
        return self.waterfall.rows(selected_span_id=self.selected_span_id)

    def resize(self, container_width: float) -> None:
        """Queue a container resize; applied on the next :meth:`frame`."""
        self._resize.request(container_width)

    def frame(self) -> bool:
        """Run throttled work for one animation frame."""
        resized = self._resize.tick()
        dragged = self.waterfall.column.frame()
        return resized or dragged

    # Pointer input

    def pointer_move(self, x: float, y: float, client_x: Optional[float] = None, client_y: Optional[float] = None) -> Optional[FlameNode]:
        """Hit-test the flame view and publish hover changes."""
        found = self.flame.hit_test(x, y, self.viewport.state)
        span_id = found.span_id if found is not None else None
        tooltip_x = x if client_x is None else client_x
        tooltip_y = y if client_y is None else client_y
        previous = self.viewport.state.hovered_span_id
        self.viewport.dispatch(SetHovered(span_id, tooltip_x, tooltip_y))
        if span_id != previous or found is not None:
            self.hover.emit(SpanHovered(found.node.span if found else None, tooltip_x, tooltip_y))
        return found

    def pointer_leave(self) -> None:
        had_hover = self.viewport.state.hovered_span_id is not None
        self.viewport.dispatch(SetHovered(None, 0, 0))
        if had_hover:
            self.hover.emit(SpanHovered(None))

    def click(self) -> Optional[Span]:
        """Select the hovered span, if any."""
        node = self.flame.find(self.viewport.state.hovered_span_id)
        if node is None:
            return None
        return self.select(node.span_id)

    def select(self, span_id: str) -> Optional[Span]:
        """Select a span by id (e.g. a waterfall row click)."""
        node = self.tree.get(span_id)
        if node is None:
            return None
        self.selected_span_id = span_id
        self.selection.emit(SpanSelected(node.span))
        return node.span

    def wheel(self, event: WheelEvent) -> None:
        self.viewport.on_wheel(event)

    def tooltip(self) -> Optional[dict[str, Any]]:
        node = self.flame.find(self.viewport.state.hovered_span_id)
        if node is None:
            return None
        details = self.flame.tooltip(node)
        details["x"] = self.viewport.state.tooltip_x
        details["y"] = self.viewport.state.tooltip_y
        return details

    # Listeners

    def on_select(self, listener: Callable[[SpanSelected], Any]) -> Callable[[], None]:
        return self.selection.subscribe(listener)

    def on_hover(self, listener: Callable[[SpanHovered], Any]) -> Callable[[], None]:
        return self.hover.subscribe(listener)

    def close(self) -> None:
        """Deregister all listeners and drop pending frame work."""
        self.selection.clear()
        self.hover.clear()
        self._resize.cancel()
        self.waterfall.column.end_drag()
        self.closed = True

    def __enter__(self) -> TraceView:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
