"""Deterministic colors for spans, keyed by service name or status."""
from __future__ import annotations

from traceviz.trace.span_model import Span, SpanStatus, display_service_name

SERVICE_COLORS = (
    "#632CA6",  # purple
    "#4A90D9",  # blue
    "#27AE60",  # green
    "#E67E22",  # orange
    "#16A085",  # teal
    "#E91E63",  # pink
    "#5C6BC0",  # indigo
    "#FFA000",  # amber
    "#00BCD4",  # cyan
    "#E53935",  # red
)

SPAN_STATUS_COLORS = {
    SpanStatus.OK: {"bg": "#3FB950", "hover": "#4ade80"},
    SpanStatus.ERROR: {"bg": "#F85149", "hover": "#f87171"},
    SpanStatus.UNSET: {"bg": "#6E7681", "hover": "#9ca3af"},
}

SELECTED_COLOR = "#F3F724"
FALLBACK_COLOR = "#6e7681"


def string_hash(value: str) -> int:
    """32-bit rolling hash (h * 31 + c), returned as an absolute value."""
    h = 0
    for ch in value:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def service_color(service_name: str | None) -> str:
    """Palette color for a service. Empty or missing names get the first entry."""
    if not service_name:
        return SERVICE_COLORS[0]
    return SERVICE_COLORS[string_hash(service_name) % len(SERVICE_COLORS)]


def status_color(status: SpanStatus, hovered: bool = False) -> str:
    colors = SPAN_STATUS_COLORS.get(status, SPAN_STATUS_COLORS[SpanStatus.UNSET])
    return colors["hover"] if hovered else colors["bg"]


def span_color(span: Span, color_by: str = "status", hovered: bool = False, selected: bool = False) -> str:
    """Fill color for a span bar.

    ``color_by`` is ``"status"`` or ``"service"``. Non-hovered service colors get
    an ``cc`` alpha suffix.
    """
    if selected:
        return SELECTED_COLOR
    if color_by == "service":
        color = service_color(display_service_name(span))
        return color if hovered else f"{color}cc"
    return status_color(span.status, hovered)
