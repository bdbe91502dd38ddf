"""Per-service breakdown and duration percentiles for a trace."""
from __future__ import annotations

import math
from dataclasses import dataclass

from traceviz.diagrams.colors import service_color
from traceviz.trace.span_model import display_service_name
from traceviz.trace.trace_model import Trace


@dataclass
class ServiceStats:
    name: str
    color: str
    span_count: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0
    percentage: float = 0.0


@dataclass(frozen=True)
class DurationPercentiles:
    p50: float
    p95: float
    p99: float
    max: float


def calculate_percentile(values: list[float], percentile: float) -> float:
    """Nearest-rank percentile; 0 for an empty list."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = math.ceil(percentile / 100 * len(ordered)) - 1
    return ordered[max(0, index)]


def _finite_durations(trace: Trace) -> list[float]:
    durations = []
    for span in trace.spans:
        raw = span.end_ms - span.start_ms
        if math.isfinite(raw) and raw >= 0:
            durations.append(raw)
    return durations


def service_breakdown(trace: Trace) -> list[ServiceStats]:
    """Group spans by service, sorted by total duration descending."""
    by_service: dict[str, ServiceStats] = {}
    for span in trace.spans:
        name = display_service_name(span)
        stats = by_service.get(name)
        if stats is None:
            stats = by_service[name] = ServiceStats(name=name, color=service_color(name))
        stats.span_count += 1
        stats.total_duration_ms += span.duration_ms
        if span.is_error:
            stats.error_count += 1

    for stats in by_service.values():
        stats.percentage = stats.total_duration_ms / trace.safe_total_ms * 100

    return sorted(by_service.values(), key=lambda s: s.total_duration_ms, reverse=True)


def duration_percentiles(trace: Trace) -> DurationPercentiles:
    """p50/p95/p99/max over spans with a finite, non-negative duration."""
    durations = _finite_durations(trace)
    return DurationPercentiles(
        p50=calculate_percentile(durations, 50),
        p95=calculate_percentile(durations, 95),
        p99=calculate_percentile(durations, 99),
        max=max(durations) if durations else 0.0,
    )


def format_duration(ms: float) -> str:
    """Human-readable duration: microseconds, milliseconds or seconds."""
    if ms < 0.001:
        return "0us"
    if ms < 1:
        return f"{ms * 1000:.0f}us"
    if ms < 1000:
        return f"{ms:.2f}ms"
    return f"{ms / 1000:.2f}s"
