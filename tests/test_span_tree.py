"""Tests for span tree construction and traversal."""
from __future__ import annotations

from conftest import make_span
from traceviz.trace.span_model import Span
from traceviz.trace.span_tree import (
    ChildOrder,
    build_span_tree,
    iter_postorder,
    iter_preorder,
)


def _ids(nodes) -> list[str]:
    return [n.span_id for n in nodes]


# ============================================================================
# Roots and parents
# ============================================================================


class TestRoots:
    """Spans without a resolvable parent become roots."""

    def test_absent_parent_is_root(self) -> None:
        tree = build_span_tree([make_span("a"), make_span("b", "a")])

        assert _ids(tree.roots) == ["a"]

    def test_unresolved_parent_is_root(self) -> None:
        tree = build_span_tree([make_span("a"), make_span("orphan", "missing")])

        assert sorted(_ids(tree.roots)) == ["a", "orphan"]
        assert tree.get("orphan").depth == 0

    def test_self_parent_is_root(self) -> None:
        tree = build_span_tree([make_span("a", "a", 0, 10)])

        assert _ids(tree.roots) == ["a"]
        assert tree.get("a").children == []

    def test_parent_cycle_does_not_lose_spans(self) -> None:
        tree = build_span_tree([make_span("a", "b", 0, 10), make_span("b", "a", 1, 5)])

        assert len(list(tree.preorder())) == 2
        assert len(tree.roots) == 1

    def test_empty_input(self) -> None:
        tree = build_span_tree([])

        assert tree.roots == []
        assert len(tree) == 0
        assert list(tree.preorder()) == []
        assert tree.max_depth == 0


class TestDuplicates:
    def test_later_occurrence_wins(self) -> None:
        tree = build_span_tree([
            make_span("a", None, 0, 10, name="first"),
            make_span("a", None, 0, 20, name="second"),
        ])

        assert len(tree) == 1
        assert tree.get("a").span.name == "second"
        assert tree.get("a").duration_ms == 20

    def test_children_attach_to_winner(self) -> None:
        tree = build_span_tree([
            make_span("p", None, 0, 10),
            make_span("c", "p", 1, 2),
            make_span("p", None, 0, 50),
        ])

        assert len(tree.roots) == 1
        assert tree.roots[0].duration_ms == 50
        assert _ids(tree.roots[0].children) == ["c"]


# ============================================================================
# Child ordering
# ============================================================================


class TestChildOrder:
    def _spans(self) -> list[Span]:
        return [
            make_span("root", None, 0, 100),
            make_span("late", "root", 60, 70),
            make_span("early", "root", 10, 20),
            make_span("mid", "root", 30, 40),
        ]

    def test_start_time_is_default(self) -> None:
        tree = build_span_tree(self._spans())

        assert _ids(tree.roots[0].children) == ["early", "mid", "late"]

    def test_input_order(self) -> None:
        tree = build_span_tree(self._spans(), child_order=ChildOrder.INPUT)

        assert _ids(tree.roots[0].children) == ["late", "early", "mid"]

    def test_start_time_sort_is_stable(self) -> None:
        spans = [
            make_span("root", None, 0, 10),
            make_span("x", "root", 5, 6),
            make_span("y", "root", 5, 7),
        ]

        assert _ids(build_span_tree(spans).roots[0].children) == ["x", "y"]

    def test_roots_sorted_by_start(self) -> None:
        tree = build_span_tree([make_span("b", None, 50, 60), make_span("a", None, 0, 10)])

        assert _ids(tree.roots) == ["a", "b"]


# ============================================================================
# Depth and self-time
# ============================================================================


class TestSelfTime:
    def test_chain_self_times(self, chain_spans: list[Span]) -> None:
        tree = build_span_tree(chain_spans)

        assert tree.get("root").self_time_ms == 20
        assert tree.get("a").self_time_ms == 60
        assert tree.get("b").self_time_ms == 20

    def test_leaf_self_time_equals_duration(self, fork_spans: list[Span]) -> None:
        tree = build_span_tree(fork_spans)

        for span_id in ("a", "b"):
            node = tree.get(span_id)
            assert node.is_leaf
            assert node.self_time_ms == node.duration_ms

    def test_overlapping_children_clamp_to_zero(self) -> None:
        tree = build_span_tree([
            make_span("p", None, 0, 10),
            make_span("c1", "p", 0, 8),
            make_span("c2", "p", 0, 8),
        ])

        assert tree.get("p").self_time_ms == 0

    def test_malformed_child_counts_as_zero(self) -> None:
        tree = build_span_tree([
            make_span("p", None, 0, 10),
            make_span("c", "p", 8, 2),
        ])

        assert tree.get("p").self_time_ms == 10

    def test_depths(self, chain_spans: list[Span]) -> None:
        tree = build_span_tree(chain_spans)

        assert [tree.get(i).depth for i in ("root", "a", "b")] == [0, 1, 2]
        assert tree.max_depth == 2


class TestTraversal:
    def test_preorder_and_postorder(self) -> None:
        tree = build_span_tree([
            make_span("r", None, 0, 10),
            make_span("a", "r", 1, 2),
            make_span("a1", "a", 1, 2),
            make_span("b", "r", 3, 4),
        ])

        assert _ids(iter_preorder(tree.roots)) == ["r", "a", "a1", "b"]
        assert _ids(iter_postorder(tree.roots)) == ["a1", "a", "b", "r"]

    def test_deep_chain_does_not_recurse(self) -> None:
        depth = 5000
        spans = [make_span("n0", None, 0, depth)]
        spans += [make_span(f"n{i}", f"n{i - 1}", i, depth) for i in range(1, depth)]

        tree = build_span_tree(spans)

        assert tree.max_depth == depth - 1
        assert len(list(iter_postorder(tree.roots))) == depth
