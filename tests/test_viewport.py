"""Tests for zoom/pan state and the viewport controller."""
from __future__ import annotations

import math

import pytest

from traceviz.diagrams.viewport import (
    MAX_ZOOM,
    MIN_ZOOM,
    ResetView,
    SetColorBy,
    SetContainerWidth,
    SetHovered,
    SetPan,
    SetZoom,
    ViewportController,
    ViewportState,
    WheelEvent,
    reduce_viewport,
)


# ============================================================================
# Reducer
# ============================================================================


class TestViewportState:
    def test_geometry(self) -> None:
        state = ViewportState(zoom_level=2, container_width=1032, padding=16)

        assert state.visible_width == 1000
        assert state.content_width == 2000
        assert state.max_pan == 1000

    def test_narrow_container(self) -> None:
        state = ViewportState(container_width=10, padding=16)

        assert state.visible_width == 0
        assert state.max_pan == 0


class TestReduceViewport:
    """Every transition leaves zoom and pan inside their bounds."""

    @pytest.mark.parametrize("level", [-5, 0, 0.5, 1, 7.5, 20, 21, 1e9, math.inf, math.nan])
    def test_zoom_always_clamped(self, level: float) -> None:
        state = reduce_viewport(ViewportState(container_width=1032), SetZoom(level))

        assert MIN_ZOOM <= state.zoom_level <= MAX_ZOOM

    @pytest.mark.parametrize("offset", [-100, 0, 250, 999, 5000, math.inf, math.nan])
    def test_pan_always_clamped(self, offset: float) -> None:
        start = ViewportState(zoom_level=2, container_width=1032)

        state = reduce_viewport(start, SetPan(offset))

        assert 0 <= state.pan_offset <= state.max_pan

    def test_pan_is_zero_at_min_zoom(self) -> None:
        state = reduce_viewport(ViewportState(container_width=1032), SetPan(300))

        assert state.pan_offset == 0

    def test_zoom_out_reclamps_pan(self) -> None:
        state = ViewportState(zoom_level=4, pan_offset=2500, container_width=1032)

        state = reduce_viewport(state, SetZoom(2))

        assert state.pan_offset == 1000

    def test_shrinking_container_reclamps_pan(self) -> None:
        state = ViewportState(zoom_level=2, pan_offset=1000, container_width=1032)

        state = reduce_viewport(state, SetContainerWidth(532))

        assert state.pan_offset == 500

    def test_reset_view(self) -> None:
        state = ViewportState(zoom_level=5, pan_offset=300, container_width=1032)

        state = reduce_viewport(state, ResetView())

        assert (state.zoom_level, state.pan_offset) == (1, 0)
        assert state.container_width == 1032

    def test_hover_and_color(self) -> None:
        state = reduce_viewport(ViewportState(), SetHovered("s1", 10, 20))
        state = reduce_viewport(state, SetColorBy("service"))

        assert state.hovered_span_id == "s1"
        assert (state.tooltip_x, state.tooltip_y) == (10, 20)
        assert state.color_by == "service"

    def test_unknown_color_mode(self) -> None:
        with pytest.raises(ValueError):
            reduce_viewport(ViewportState(), SetColorBy("rainbow"))

    def test_unknown_action(self) -> None:
        with pytest.raises(TypeError):
            reduce_viewport(ViewportState(), object())  # type: ignore[arg-type]


# ============================================================================
# Controller
# ============================================================================


class TestViewportController:
    def _controller(self) -> ViewportController:
        return ViewportController(container_width=1032, padding=16)

    def test_wheel_with_modifier_zooms(self) -> None:
        vc = self._controller()
        vc.set_zoom(2)

        vc.on_wheel(WheelEvent(delta_y=-100, ctrl_key=True))
        assert vc.zoom_level == pytest.approx(2.2)

        vc.on_wheel(WheelEvent(delta_y=100, meta_key=True))
        assert vc.zoom_level == pytest.approx(1.98)

    def test_wheel_zoom_out_stops_at_one(self) -> None:
        vc = self._controller()

        vc.on_wheel(WheelEvent(delta_y=100, ctrl_key=True))

        assert vc.zoom_level == 1

    def test_plain_wheel_pans(self) -> None:
        vc = self._controller()
        vc.set_zoom(3)

        vc.on_wheel(WheelEvent(delta_y=120))
        vc.on_wheel(WheelEvent(delta_y=30))

        assert vc.pan_offset == 150

    def test_zoom_does_not_recenter(self) -> None:
        vc = self._controller()
        vc.set_zoom(4)
        vc.set_pan(400)

        vc.set_zoom(5)

        assert vc.pan_offset == 400

    def test_zoom_buttons(self) -> None:
        vc = self._controller()

        vc.zoom_in()
        assert vc.zoom_level == pytest.approx(1.3)
        vc.zoom_out()
        assert vc.zoom_level == pytest.approx(1.0)
        vc.zoom_out()
        assert vc.zoom_level == 1

    def test_reset_keeps_container(self) -> None:
        vc = ViewportController(container_width=500)
        vc.set_container_width(1032)
        vc.set_zoom(6)
        vc.set_pan(100)

        vc.reset()

        assert vc.state.container_width == 1032
        assert (vc.zoom_level, vc.pan_offset) == (1, 0)

    def test_minimap_descriptor(self) -> None:
        vc = self._controller()
        assert not vc.minimap().shown

        vc.set_zoom(4)
        vc.set_pan(1000)
        minimap = vc.minimap()

        assert minimap.shown
        assert minimap.visible_fraction == pytest.approx(0.25)
        assert minimap.offset_fraction == pytest.approx(0.25)

    def test_center_on_minimap(self) -> None:
        vc = self._controller()
        vc.set_zoom(4)

        # Click at the middle of the strip
        vc.center_on_minimap(16 + 500)

        assert vc.pan_offset == pytest.approx(2000 - 500)

    def test_instances_do_not_share_state(self) -> None:
        first = self._controller()
        second = self._controller()

        first.set_zoom(10)

        assert second.zoom_level == 1
