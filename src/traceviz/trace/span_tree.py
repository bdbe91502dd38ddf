"""Span tree builder - reconstructs hierarchy from a flat span list."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from traceviz.trace.span_model import Span

logger = logging.getLogger(__name__)


class ChildOrder(str, Enum):
    """How children (and roots) are ordered in the built tree."""

    INPUT = "input"
    START_TIME = "start_time"


@dataclass(eq=False)
class SpanNode:
    """A span plus its children and derived presentation attributes.

    ``is_critical_path`` and ``is_expanded`` are view flags set by downstream
    components; they are not structural.
    """

    span: Span
    children: list[SpanNode] = field(default_factory=list)
    depth: int = 0
    self_time_ms: float = 0.0
    is_critical_path: bool = False
    is_expanded: bool = True

    @property
    def span_id(self) -> str:
        return self.span.span_id

    @property
    def duration_ms(self) -> float:
        return self.span.duration_ms

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def __repr__(self) -> str:
        return f"SpanNode({self.span_id!r}, children={len(self.children)})"


@dataclass
class SpanTree:
    """Roots of a span forest plus an id-keyed index of every node."""

    roots: list[SpanNode]
    nodes: dict[str, SpanNode]

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, span_id: str) -> Optional[SpanNode]:
        return self.nodes.get(span_id)

    def preorder(self) -> Iterator[SpanNode]:
        return iter_preorder(self.roots)

    @property
    def max_depth(self) -> int:
        """Deepest row index; 0 for an empty tree."""
        return max((n.depth for n in self.nodes.values()), default=0)


def iter_preorder(roots: list[SpanNode]) -> Iterator[SpanNode]:
    """Depth-first pre-order walk, children in stored order."""
    stack = list(reversed(roots))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def iter_postorder(roots: list[SpanNode]) -> Iterator[SpanNode]:
    """Depth-first post-order walk (children before their parent)."""
    stack: list[tuple[SpanNode, bool]] = [(r, False) for r in reversed(roots)]
    while stack:
        node, visited = stack.pop()
        if visited:
            yield node
            continue
        stack.append((node, True))
        stack.extend((c, False) for c in reversed(node.children))


def compute_self_time(node: SpanNode) -> float:
    """Duration not attributable to any child, clamped at zero."""
    children_ms = sum(c.duration_ms for c in node.children)
    return max(0.0, node.duration_ms - children_ms)


def _index_spans(spans: list[Span]) -> dict[str, SpanNode]:
    nodes: dict[str, SpanNode] = {}
    for span in spans:
        if span.span_id in nodes:
            logger.debug("Duplicate span_id %r, later occurrence wins", span.span_id)
            # Re-insert so the winning record takes its own input position
            del nodes[span.span_id]
        nodes[span.span_id] = SpanNode(span=span)
    return nodes


def _break_cycles(nodes: dict[str, SpanNode], roots: list[SpanNode]) -> None:
    """Promote nodes stranded in parent cycles to roots."""
    reachable = {id(n) for n in iter_preorder(roots)}
    if len(reachable) == len(nodes):
        return

    parents = {id(c): p for p in nodes.values() for c in p.children}
    for node in nodes.values():
        if id(node) in reachable:
            continue
        logger.debug("Span %r is part of a parent cycle, treating as root", node.span_id)
        parent = parents.get(id(node))
        if parent is not None:
            parent.children.remove(node)
        roots.append(node)
        reachable.update(id(n) for n in iter_preorder([node]))


def build_span_tree(spans: list[Span], child_order: ChildOrder = ChildOrder.START_TIME) -> SpanTree:
    """Build a span forest from a flat span list.

    - Spans whose parent id is absent or does not resolve become roots
    - Duplicate span ids: the later occurrence replaces the earlier one
    - Children keep input order, or are stably sorted by start time
    - Every node gets its depth and self-time
    """
    nodes = _index_spans(spans)
    roots: list[SpanNode] = []

    for node in nodes.values():
        parent_id = node.span.parent_span_id
        parent = nodes.get(parent_id) if parent_id and parent_id != node.span_id else None
        if parent is None:
            if parent_id:
                logger.debug("Parent %r of span %r not found, treating as root", parent_id, node.span_id)
            roots.append(node)
        else:
            parent.children.append(node)

    _break_cycles(nodes, roots)

    if child_order == ChildOrder.START_TIME:
        roots.sort(key=lambda n: n.span.start_ms)
        for node in nodes.values():
            node.children.sort(key=lambda n: n.span.start_ms)

    stack = [(r, 0) for r in roots]
    while stack:
        node, depth = stack.pop()
        node.depth = depth
        node.self_time_ms = compute_self_time(node)
        stack.extend((c, depth + 1) for c in node.children)

    return SpanTree(roots=roots, nodes=nodes)
