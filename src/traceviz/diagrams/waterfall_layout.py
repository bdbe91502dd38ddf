"""Waterfall layout: spans listed in tree order, one per row.

Expansion is tracked as a set of span ids kept apart from the tree, so
collapsing a parent leaves its descendants' own expansion untouched and
re-expanding restores the previous nested view.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional, Union

from traceviz.diagrams.events import FrameThrottle
from traceviz.prefs import PreferenceStore
from traceviz.trace.span_tree import SpanNode, SpanTree
from traceviz.trace.stats import format_duration
from traceviz.trace.trace_model import Trace

logger = logging.getLogger(__name__)

# Waterfall layout constants
ROW_HEIGHT = 32
INDENT_WIDTH = 16
MIN_BAR_PERCENT = 0.5
RULER_PERCENTS = (0, 25, 50, 75, 100)
MINIMAP_HEIGHT = 80
MIN_THUMB_HEIGHT = 20

SPAN_COL_WIDTH_KEY = "traceviz-span-col-width"
DEFAULT_SPAN_COL_WIDTH = 300
MIN_SPAN_COL_WIDTH = 150
MAX_SPAN_COL_WIDTH = 600


def flatten(roots: list[SpanNode], expanded_ids: Iterable[str]) -> list[SpanNode]:
    """Pre-order walk that only descends into expanded nodes."""
    expanded = expanded_ids if isinstance(expanded_ids, (set, frozenset)) else set(expanded_ids)
    result: list[SpanNode] = []
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        result.append(node)
        if node.span_id in expanded:
            stack.extend(reversed(node.children))
    return result


# Display state


@dataclass(frozen=True)
class WaterfallState:
    expanded_ids: frozenset[str] = frozenset()
    show_critical_path: bool = False
    hovered_span_id: Optional[str] = None
    scroll_position: float = 0.0


@dataclass(frozen=True)
class ToggleSpan:
    span_id: str


@dataclass(frozen=True)
class SetAllExpanded:
    ids: frozenset[str]


@dataclass(frozen=True)
class SetCriticalPath:
    value: bool


@dataclass(frozen=True)
class SetHoveredSpan:
    span_id: Optional[str]


@dataclass(frozen=True)
class SetScroll:
    position: float


WaterfallAction = Union[ToggleSpan, SetAllExpanded, SetCriticalPath, SetHoveredSpan, SetScroll]


def reduce_waterfall(state: WaterfallState, action: WaterfallAction) -> WaterfallState:
    """Apply one action and return the new state."""
    if isinstance(action, ToggleSpan):
        return replace(state, expanded_ids=state.expanded_ids ^ {action.span_id})
    if isinstance(action, SetAllExpanded):
        return replace(state, expanded_ids=frozenset(action.ids))
    if isinstance(action, SetCriticalPath):
        return replace(state, show_critical_path=action.value)
    if isinstance(action, SetHoveredSpan):
        return replace(state, hovered_span_id=action.span_id)
    if isinstance(action, SetScroll):
        return replace(state, scroll_position=max(0.0, action.position))
    raise TypeError(f"Unknown waterfall action: {action!r}")


@dataclass(frozen=True)
class WaterfallRow:
    """Everything needed to draw one waterfall row."""

    node: SpanNode
    depth: int
    has_children: bool
    is_expanded: bool
    is_critical: bool
    is_selected: bool
    is_hovered: bool
    left_percent: float
    width_percent: float

    @property
    def span_id(self) -> str:
        return self.node.span_id

    @property
    def indent_px(self) -> int:
        return self.depth * INDENT_WIDTH

    def to_dict(self) -> dict[str, Any]:
        return {
            "span_id": self.span_id,
            "name": self.node.span.name,
            "depth": self.depth,
            "duration": format_duration(self.node.duration_ms),
            "has_children": self.has_children,
            "is_expanded": self.is_expanded,
            "is_critical": self.is_critical,
            "left_percent": round(self.left_percent, 3),
            "width_percent": round(self.width_percent, 3),
        }


@dataclass(frozen=True)
class RulerMark:
    percent: int
    label: str


@dataclass(frozen=True)
class ScrollMinimap:
    thumb_height: float
    thumb_position: float
    shown: bool


class SpanColumnWidth:
    """Resizable label-column width, persisted in a preference store."""

    def __init__(self, store: Optional[PreferenceStore] = None) -> None:
        self._store = store
        self._drag_start: Optional[tuple[float, int]] = None
        self._throttle = FrameThrottle(self._apply_drag)
        self.width = self._load()

    @staticmethod
    def clamp(width: float) -> int:
        return int(min(max(width, MIN_SPAN_COL_WIDTH), MAX_SPAN_COL_WIDTH))

    def _load(self) -> int:
        if self._store is None:
            return DEFAULT_SPAN_COL_WIDTH
        saved = self._store.get(SPAN_COL_WIDTH_KEY)
        if saved is None:
            return DEFAULT_SPAN_COL_WIDTH
        try:
            return self.clamp(int(saved))
        except ValueError:
            logger.debug("Ignoring invalid saved column width %r", saved)
            return DEFAULT_SPAN_COL_WIDTH

    def set(self, width: float) -> int:
        self.width = self.clamp(width)
        if self._store is not None:
            self._store.set(SPAN_COL_WIDTH_KEY, str(self.width))
        return self.width

    def reset(self) -> int:
        return self.set(DEFAULT_SPAN_COL_WIDTH)

    @property
    def dragging(self) -> bool:
        return self._drag_start is not None

    def begin_drag(self, pointer_x: float) -> None:
        self._drag_start = (pointer_x, self.width)

    def drag_to(self, pointer_x: float) -> None:
        """Queue a resize; applied on the next :meth:`frame`."""
        if self._drag_start is None:
            return
        self._throttle.request(pointer_x)

    def frame(self) -> bool:
        return self._throttle.tick()

    def end_drag(self) -> None:
        self._throttle.cancel()
        self._drag_start = None

    def _apply_drag(self, pointer_x: float) -> None:
        if self._drag_start is None:
            return
        start_x, start_width = self._drag_start
        self.set(start_width + (pointer_x - start_x))


class WaterfallLayout:
    """Visible rows of a span tree under the current expand/collapse state."""

    def __init__(self, tree: SpanTree, trace: Trace, prefs: Optional[PreferenceStore] = None) -> None:
        self.tree = tree
        self.trace = trace
        self.column = SpanColumnWidth(prefs)
        self.state = WaterfallState(expanded_ids=frozenset(tree.nodes))
        self._sync_node_flags()

    def dispatch(self, action: WaterfallAction) -> WaterfallState:
        self.state = reduce_waterfall(self.state, action)
        if isinstance(action, (ToggleSpan, SetAllExpanded)):
            self._sync_node_flags()
        return self.state

    def _sync_node_flags(self) -> None:
        for span_id, node in self.tree.nodes.items():
            node.is_expanded = span_id in self.state.expanded_ids

    @property
    def expanded_ids(self) -> frozenset[str]:
        return self.state.expanded_ids

    def toggle(self, span_id: str) -> None:
        self.dispatch(ToggleSpan(span_id))

    def expand_all(self) -> None:
        self.dispatch(SetAllExpanded(frozenset(self.tree.nodes)))

    def collapse_all(self) -> None:
        self.dispatch(SetAllExpanded(frozenset()))

    def set_show_critical_path(self, value: bool) -> None:
        self.dispatch(SetCriticalPath(value))

    def set_hovered(self, span_id: Optional[str]) -> None:
        self.dispatch(SetHoveredSpan(span_id))

    def set_scroll(self, position: float) -> None:
        self.dispatch(SetScroll(position))

    def visible_nodes(self) -> list[SpanNode]:
        return flatten(self.tree.roots, self.state.expanded_ids)

    def rows(self, selected_span_id: Optional[str] = None) -> list[WaterfallRow]:
        state = self.state
        return [
            WaterfallRow(
                node=node,
                depth=node.depth,
                has_children=bool(node.children),
                is_expanded=node.span_id in state.expanded_ids,
                is_critical=state.show_critical_path and node.is_critical_path,
                is_selected=selected_span_id == node.span_id,
                is_hovered=state.hovered_span_id == node.span_id,
                left_percent=self.trace.start_percent(node.span),
                width_percent=max(MIN_BAR_PERCENT, self.trace.width_percent(node.span)),
            )
            for node in self.visible_nodes()
        ]

    def ruler_marks(self) -> list[RulerMark]:
        total = self.trace.safe_total_ms
        return [RulerMark(pct, format_duration(total * pct / 100)) for pct in RULER_PERCENTS]

    def scroll_minimap(self, viewport_height: float) -> ScrollMinimap:
        """Overview thumb for the vertical scroll position."""
        content_height = len(self.visible_nodes()) * ROW_HEIGHT
        if content_height <= 0:
            return ScrollMinimap(thumb_height=MINIMAP_HEIGHT, thumb_position=0.0, shown=False)
        ratio = viewport_height / content_height
        return ScrollMinimap(
            thumb_height=max(MIN_THUMB_HEIGHT, MINIMAP_HEIGHT * ratio),
            thumb_position=self.state.scroll_position / content_height * MINIMAP_HEIGHT,
            shown=content_height > viewport_height,
        )

    def summary(self) -> str:
        return f"{len(self.visible_nodes())} of {self.trace.span_count} spans"
