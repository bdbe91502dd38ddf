from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SpanStatus(str, Enum):
    """Normalized span status."""

    OK = "ok"
    ERROR = "error"
    UNSET = "unset"


def normalize_status(raw: Any) -> SpanStatus:
    """Map a raw status value (string or OTel numeric code) to a SpanStatus."""
    if raw is None:
        return SpanStatus.UNSET
    if isinstance(raw, SpanStatus):
        return raw
    value = str(raw).strip().lower()
    if value in ("error", "2"):
        return SpanStatus.ERROR
    if value in ("ok", "0"):
        return SpanStatus.OK
    return SpanStatus.UNSET


@dataclass(frozen=True)
class Span:
    """One traced unit of work, normalized to millisecond timestamps."""

    span_id: str
    parent_span_id: Optional[str]

    # Identity
    name: str
    service_name: Optional[str] = None
    trace_id: Optional[str] = None

    # Timing (milliseconds since epoch, or any shared origin)
    start_ms: float = 0.0
    end_ms: float = 0.0

    status: SpanStatus = SpanStatus.UNSET

    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        """Wall-clock duration; zero when the span is malformed."""
        duration = self.end_ms - self.start_ms
        if not math.isfinite(duration) or duration < 0:
            return 0.0
        return duration

    @property
    def is_error(self) -> bool:
        return self.status == SpanStatus.ERROR


def display_service_name(span: Span) -> str:
    """Service name used for coloring and grouping.

    Falls back to the first dotted segment of the span name when the span
    carries no service name of its own.
    """
    return span.service_name or span.name.split(".")[0]
