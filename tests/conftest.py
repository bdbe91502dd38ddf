"""traceviz test configuration and fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add src to path for imports
SRC_DIR = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))

from traceviz.trace.critical_path import resolve_critical_path  # noqa: E402
from traceviz.trace.ingest import load_spans  # noqa: E402
from traceviz.trace.span_model import Span, SpanStatus  # noqa: E402
from traceviz.trace.span_tree import SpanTree, build_span_tree  # noqa: E402


def make_span(
    span_id: str,
    parent: str | None = None,
    start: float = 0.0,
    end: float = 0.0,
    name: str | None = None,
    service: str | None = None,
    status: SpanStatus = SpanStatus.UNSET,
    trace_id: str | None = "trace-1",
) -> Span:
    """Build a Span with millisecond timestamps."""
    return Span(
        span_id=span_id,
        parent_span_id=parent,
        name=name or f"op.{span_id}",
        service_name=service,
        trace_id=trace_id,
        start_ms=start,
        end_ms=end,
        status=status,
    )


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def otel_trace_path(fixtures_dir: Path) -> Path:
    """Two traces in OTel form with nanosecond timestamps."""
    return fixtures_dir / "otel_trace.json"


@pytest.fixture
def compact_trace_path(fixtures_dir: Path) -> Path:
    """The checkout trace as compact JSONL records."""
    return fixtures_dir / "compact_trace.jsonl"


@pytest.fixture
def chain_spans() -> list[Span]:
    """root (0-100) -> a (0-80) -> b (80-100)."""
    return [
        make_span("root", None, 0, 100),
        make_span("a", "root", 0, 80),
        make_span("b", "a", 80, 100),
    ]


@pytest.fixture
def fork_spans() -> list[Span]:
    """root (0-100) with leaf children a (50ms) and b (30ms)."""
    return [
        make_span("root", None, 0, 100),
        make_span("a", "root", 0, 50),
        make_span("b", "root", 50, 80),
    ]


@pytest.fixture
def otel_spans_tree(otel_trace_path: Path) -> SpanTree:
    """Span tree of the checkout trace with critical path resolved."""
    tree = build_span_tree(load_spans(otel_trace_path, trace_id="trace-checkout"))
    resolve_critical_path(tree.roots)
    return tree
