"""Trace model: the full span set of one trace plus its time bounds."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from traceviz.trace.span_model import Span


@dataclass(frozen=True)
class Trace:
    """All spans sharing a trace id, with precomputed totals.

    ``total_duration_ms`` and ``span_count`` may be supplied by an external
    fetcher; otherwise they are derived from the spans.
    """

    spans: list[Span]
    trace_id: Optional[str] = None
    min_start_ms: float = 0.0
    total_duration_ms: float = 0.0
    span_count: int = 0

    @property
    def safe_total_ms(self) -> float:
        """Total duration usable as a divisor."""
        return self.total_duration_ms or 1.0

    def start_percent(self, span: Span) -> float:
        if self.total_duration_ms <= 0:
            return 0.0
        return (span.start_ms - self.min_start_ms) / self.total_duration_ms * 100

    def width_percent(self, span: Span) -> float:
        if self.total_duration_ms <= 0:
            return 100.0
        return span.duration_ms / self.total_duration_ms * 100

    def percent_of_trace(self, span: Span) -> float:
        return span.duration_ms / self.safe_total_ms * 100


def _finite(values: list[float]) -> list[float]:
    return [v for v in values if math.isfinite(v)]


def build_trace_from_spans(
    spans: list[Span],
    trace_id: Optional[str] = None,
    total_duration_ms: Optional[float] = None,
    span_count: Optional[int] = None,
) -> Trace:
    """Build a Trace from spans, preserving input order.

    Duplicate ids stay in ``spans`` and count towards ``span_count``; only the
    tree builder resolves them.
    """
    starts = _finite([s.start_ms for s in spans])
    ends = _finite([s.end_ms for s in spans])

    min_start = min(starts) if starts else 0.0
    derived_total = max(ends) - min_start if starts and ends else 0.0
    if not math.isfinite(derived_total) or derived_total < 0:
        derived_total = 0.0

    if trace_id is None:
        trace_id = next((s.trace_id for s in spans if s.trace_id), None)

    return Trace(
        spans=list(spans),
        trace_id=trace_id,
        min_start_ms=min_start,
        total_duration_ms=derived_total if total_duration_ms is None else total_duration_ms,
        span_count=len(spans) if span_count is None else span_count,
    )
