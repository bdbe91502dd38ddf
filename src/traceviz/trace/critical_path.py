"""Critical path marking over a span forest.

At each branch the child whose chain (own duration plus its best descendant
chain) is longest stays on the critical path; every sibling subtree is
unmarked. When every child chain is zero-length no child is marked. Each root
is always on its own critical path.
"""
from __future__ import annotations

from typing import Optional

from traceviz.trace.span_tree import SpanNode, iter_postorder, iter_preorder


def _best_child(node: SpanNode, chains: dict[int, float]) -> Optional[SpanNode]:
    # First child wins ties; zero-length chains are never chosen
    best: Optional[SpanNode] = None
    best_chain = 0.0
    for child in node.children:
        chain = chains[id(child)]
        if chain > best_chain:
            best = child
            best_chain = chain
    return best


def resolve_critical_path(roots: list[SpanNode]) -> list[float]:
    """Mark ``is_critical_path`` on every node under ``roots``.

    Returns the chain length of each root, in root order. Runs without
    recursion so arbitrarily deep traces are safe.
    """
    chains: dict[int, float] = {}
    best: dict[int, Optional[SpanNode]] = {}

    for node in iter_postorder(roots):
        choice = _best_child(node, chains)
        best[id(node)] = choice
        chains[id(node)] = node.duration_ms + (chains[id(choice)] if choice is not None else 0.0)

    for root in roots:
        root.is_critical_path = True
        for node in iter_preorder([root]):
            chosen = best[id(node)]
            for child in node.children:
                child.is_critical_path = node.is_critical_path and child is chosen

    return [chains[id(r)] for r in roots]


def critical_chain(root: SpanNode) -> list[SpanNode]:
    """The marked path from ``root`` down to a leaf.

    Call after :func:`resolve_critical_path`.
    """
    chain = [root] if root.is_critical_path else []
    node = root
    while chain:
        node = next((c for c in node.children if c.is_critical_path), None)
        if node is None:
            break
        chain.append(node)
    return chain
