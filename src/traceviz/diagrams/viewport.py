"""Zoom/pan view state for the flame view.

State lives in one immutable record; every change goes through
:func:`reduce_viewport` with one of the action types below. The reducer
re-clamps zoom to ``[MIN_ZOOM, MAX_ZOOM]`` and pan to ``[0, max_pan]`` on every
transition, so both bounds hold whichever action ran.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Union

MIN_ZOOM = 1.0
MAX_ZOOM = 20.0
WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9
BUTTON_ZOOM_STEP = 1.3
DEFAULT_PADDING = 16


@dataclass(frozen=True)
class ViewportState:
    zoom_level: float = MIN_ZOOM
    pan_offset: float = 0.0
    container_width: float = 0.0
    padding: float = DEFAULT_PADDING
    hovered_span_id: Optional[str] = None
    tooltip_x: float = 0.0
    tooltip_y: float = 0.0
    color_by: str = "status"

    @property
    def visible_width(self) -> float:
        """Width of the drawable area inside the padding."""
        return max(0.0, self.container_width - 2 * self.padding)

    @property
    def content_width(self) -> float:
        return self.visible_width * self.zoom_level

    @property
    def max_pan(self) -> float:
        return max(0.0, self.content_width - self.visible_width)


# Actions


@dataclass(frozen=True)
class SetZoom:
    zoom_level: float


@dataclass(frozen=True)
class SetPan:
    pan_offset: float


@dataclass(frozen=True)
class ResetView:
    pass


@dataclass(frozen=True)
class SetContainerWidth:
    width: float


@dataclass(frozen=True)
class SetHovered:
    span_id: Optional[str]
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class SetColorBy:
    color_by: str


ViewportAction = Union[SetZoom, SetPan, ResetView, SetContainerWidth, SetHovered, SetColorBy]


def clamp_zoom(level: float) -> float:
    if level != level:  # NaN
        return MIN_ZOOM
    return max(MIN_ZOOM, min(MAX_ZOOM, level))


def clamp_pan(state: ViewportState, offset: float) -> float:
    if offset != offset:
        return 0.0
    return max(0.0, min(state.max_pan, offset))


def _clamped(state: ViewportState) -> ViewportState:
    state = replace(state, zoom_level=clamp_zoom(state.zoom_level))
    return replace(state, pan_offset=clamp_pan(state, state.pan_offset))


def reduce_viewport(state: ViewportState, action: ViewportAction) -> ViewportState:
    """Apply one action and return the new, clamped state."""
    if isinstance(action, SetZoom):
        return _clamped(replace(state, zoom_level=action.zoom_level))
    if isinstance(action, SetPan):
        return _clamped(replace(state, pan_offset=action.pan_offset))
    if isinstance(action, ResetView):
        return replace(state, zoom_level=MIN_ZOOM, pan_offset=0.0)
    if isinstance(action, SetContainerWidth):
        return _clamped(replace(state, container_width=max(0.0, action.width)))
    if isinstance(action, SetHovered):
        return replace(state, hovered_span_id=action.span_id, tooltip_x=action.x, tooltip_y=action.y)
    if isinstance(action, SetColorBy):
        if action.color_by not in ("status", "service"):
            raise ValueError(f"Unknown color_by: {action.color_by!r}")
        return replace(state, color_by=action.color_by)
    raise TypeError(f"Unknown viewport action: {action!r}")


@dataclass(frozen=True)
class WheelEvent:
    delta_y: float
    ctrl_key: bool = False
    meta_key: bool = False

    @property
    def has_zoom_modifier(self) -> bool:
        return self.ctrl_key or self.meta_key


@dataclass(frozen=True)
class MinimapDescriptor:
    """Visible window of the full trace, as fractions of the content width."""

    visible_fraction: float
    offset_fraction: float
    shown: bool


class ViewportController:
    """Owns one visualization's zoom/pan state and turns input into actions."""

    def __init__(self, container_width: float = 0.0, padding: float = DEFAULT_PADDING) -> None:
        self._initial = ViewportState(container_width=max(0.0, container_width), padding=padding)
        self.state = self._initial

    def dispatch(self, action: ViewportAction) -> ViewportState:
        self.state = reduce_viewport(self.state, action)
        return self.state

    @property
    def zoom_level(self) -> float:
        return self.state.zoom_level

    @property
    def pan_offset(self) -> float:
        return self.state.pan_offset

    def set_zoom(self, level: float) -> ViewportState:
        return self.dispatch(SetZoom(level))

    def set_pan(self, offset: float) -> ViewportState:
        return self.dispatch(SetPan(offset))

    def reset_view(self) -> ViewportState:
        return self.dispatch(ResetView())

    def reset(self) -> None:
        """Return to defaults for a new trace, keeping container geometry."""
        self.state = replace(
            self._initial,
            container_width=self.state.container_width,
            color_by=self.state.color_by,
        )

    def set_container_width(self, width: float) -> ViewportState:
        return self.dispatch(SetContainerWidth(width))

    def zoom_in(self) -> ViewportState:
        return self.set_zoom(self.state.zoom_level * BUTTON_ZOOM_STEP)

    def zoom_out(self) -> ViewportState:
        return self.set_zoom(self.state.zoom_level / BUTTON_ZOOM_STEP)

    def on_wheel(self, event: WheelEvent) -> ViewportState:
        """Modifier + scroll zooms; plain scroll pans by the vertical delta."""
        if event.has_zoom_modifier:
            factor = WHEEL_ZOOM_OUT if event.delta_y > 0 else WHEEL_ZOOM_IN
            return self.set_zoom(self.state.zoom_level * factor)
        return self.set_pan(self.state.pan_offset + event.delta_y)

    def center_on_minimap(self, click_x: float) -> ViewportState:
        """Center the viewport on a click in the minimap strip."""
        visible = self.state.visible_width
        if visible <= 0:
            return self.state
        fraction = (click_x - self.state.padding) / visible
        return self.set_pan(fraction * self.state.content_width - visible / 2)

    def minimap(self) -> MinimapDescriptor:
        content = self.state.content_width
        return MinimapDescriptor(
            visible_fraction=1 / self.state.zoom_level,
            offset_fraction=self.state.pan_offset / content if content > 0 else 0.0,
            shown=self.state.zoom_level > MIN_ZOOM,
        )
