"""Tests for OverlayRenderer frames recorded on a RecordingSurface."""

import dataclasses

import pytest

from conftest import MONDAY_2024_01_01, make_series
from replay.models import Annotation, AnnotationType, DrawingPoint, Interval, MondayRange
from replay.overlay.interaction import Guide, HandleDrag, InteractionState, PositionHandle, Tool
from replay.overlay.mapper import CoordinateMapper
from replay.overlay.renderer import OverlayRenderer, SELECTED_COLOR, PREVIEW_COLOR
from replay.overlay.surface import RecordingSurface
from replay.overlay.viewport import LinearViewport

STEP = Interval.M15.step_ms


def _t(index: int) -> int:
    return MONDAY_2024_01_01 + index * STEP


def _renderer(with_price_axis: bool = True) -> OverlayRenderer:
    candles = make_series(10)
    viewport = LinearViewport(width=1000, height=500)
    viewport.auto_scale = False
    viewport.set_data(candles)
    viewport.set_visible_logical_range(0, 10)
    if with_price_axis:
        viewport.set_price_range(0, 500)
    mapper = CoordinateMapper(viewport, Interval.M15)
    mapper.set_series(candles, candles)
    return OverlayRenderer(mapper)


def _rect(annotation_id: int = 1, low: float = 100.0) -> Annotation:
    return Annotation(
        id=annotation_id,
        symbol="BTCUSDT",
        type=AnnotationType.RECT,
        points=(DrawingPoint(_t(2), low), DrawingPoint(_t(5), 200.0)),
        style={"color": "#ff0000", "lineWidth": 2, "fillColor": "rgba(1, 2, 3, 0.5)"},
    )


def _long_plan(annotation_id: int = 3) -> Annotation:
    return Annotation(
        id=annotation_id,
        symbol="BTCUSDT",
        type=AnnotationType.LONG_POSITION,
        points=(
            DrawingPoint(_t(2), 200.0),
            DrawingPoint(_t(2), 180.0),
            DrawingPoint(_t(2), 230.0),
            DrawingPoint(_t(8), 200.0),
        ),
        style={"mode": "position"},
    )


class TestShapes:
    """Per-variant drawing."""

    def test_rect_geometry_and_style(self) -> None:
        surface = RecordingSurface()
        _renderer().render(surface, [_rect()], InteractionState())
        [rect] = surface.of_kind("rect")
        assert rect.params["left"] == pytest.approx(200)
        assert rect.params["top"] == pytest.approx(300)
        assert rect.params["width"] == pytest.approx(300)
        assert rect.params["height"] == pytest.approx(100)
        assert rect.params["fill"] == "rgba(1, 2, 3, 0.5)"
        assert rect.params["stroke"]["color"] == "#ff0000"

    def test_patched_rect_renders_new_geometry(self) -> None:
        surface = RecordingSurface()
        _renderer().render(surface, [_rect(low=150.0)], InteractionState())
        [rect] = surface.of_kind("rect")
        assert rect.params["height"] == pytest.approx(50)

    def test_hline_spans_full_width(self) -> None:
        hline = Annotation(1, "BTCUSDT", AnnotationType.HLINE, (DrawingPoint(_t(0), 250.0),))
        surface = RecordingSurface()
        _renderer().render(surface, [hline], InteractionState())
        [line] = surface.of_kind("line")
        assert (line.params["x1"], line.params["x2"]) == (0, 1000)
        assert line.params["y1"] == pytest.approx(250)

    def test_fibo_draws_one_row_per_level_with_labels(self) -> None:
        fibo = Annotation(
            1,
            "BTCUSDT",
            AnnotationType.FIBO,
            (DrawingPoint(_t(2), 300.0), DrawingPoint(_t(6), 100.0)),
            {"levels": [0, 0.5, 1]},
        )
        surface = RecordingSurface()
        _renderer().render(surface, [fibo], InteractionState())
        assert len(surface.of_kind("line")) == 3
        assert [t.params["text"] for t in surface.of_kind("text")] == ["0.00", "0.50", "1.00"]

    def test_price_range_label(self) -> None:
        pr = Annotation(
            1,
            "BTCUSDT",
            AnnotationType.PRICE_RANGE,
            (DrawingPoint(_t(2), 200.0), DrawingPoint(_t(5), 210.0)),
        )
        surface = RecordingSurface()
        _renderer().render(surface, [pr], InteractionState())
        assert "+10.00 (+5.00%)" in [t.params["text"] for t in surface.of_kind("text")]

    def test_position_zones_label_and_no_handles_when_unselected(self) -> None:
        surface = RecordingSurface()
        _renderer().render(surface, [_long_plan()], InteractionState())
        fills = [r.params["fill"] for r in surface.of_kind("rect")]
        assert "rgba(34, 197, 94, 0.28)" in fills
        assert "rgba(239, 68, 68, 0.28)" in fills
        assert "15.00% | R:R 1.50" in [t.params["text"] for t in surface.of_kind("text")]
        assert surface.of_kind("circle") == []

    def test_unresolvable_geometry_is_skipped(self) -> None:
        surface = RecordingSurface()
        _renderer(with_price_axis=False).render(surface, [_rect(), _long_plan()], InteractionState())
        assert surface.commands == []


class TestSelection:
    """Highlighting, handles and the toolbar anchor."""

    def test_selected_shape_is_highlighted(self) -> None:
        surface = RecordingSurface()
        _renderer().render(surface, [_rect()], InteractionState(selected_id=1))
        [rect] = surface.of_kind("rect")
        assert rect.params["stroke"]["color"] == SELECTED_COLOR
        assert rect.params["stroke"]["width"] == 3

    def test_selected_anchor_for_box(self) -> None:
        result = _renderer().render(RecordingSurface(), [_rect()], InteractionState(selected_id=1))
        assert result.selected_anchor is not None
        assert result.selected_anchor.x == pytest.approx(508)
        assert result.selected_anchor.y == pytest.approx(274)

    def test_no_anchor_without_selection(self) -> None:
        result = _renderer().render(RecordingSurface(), [_rect()], InteractionState())
        assert result.selected_anchor is None

    def test_selected_position_shows_three_handles(self) -> None:
        surface = RecordingSurface()
        _renderer().render(surface, [_long_plan()], InteractionState(selected_id=3))
        circles = surface.of_kind("circle")
        assert len(circles) == 3
        assert all(c.params["x"] == pytest.approx(800) for c in circles)


class TestInteractionLayers:
    """Drag previews, pending shapes, guide, dim region and Monday bands."""

    def test_drag_preview_replaces_stored_points(self) -> None:
        plan = _long_plan()
        preview = list(plan.points)
        preview[2] = DrawingPoint(preview[2].time, 260.0)  # y 240
        state = InteractionState(
            selected_id=3,
            handle_drag=HandleDrag(3, PositionHandle.TAKE_PROFIT, plan.points, tuple(preview)),
        )
        surface = RecordingSurface()
        _renderer().render(surface, [plan], state)
        ys = {round(c.params["y"]) for c in surface.of_kind("circle")}
        assert 240 in ys
        assert 270 not in ys

    def test_pending_two_click_preview(self) -> None:
        state = InteractionState(
            tool=Tool.RECT,
            pending_point=DrawingPoint(_t(1), 100.0),
            hover_point=DrawingPoint(_t(3), 150.0),
        )
        surface = RecordingSurface()
        _renderer().render(surface, [], state)
        [rect] = surface.of_kind("rect")
        assert rect.params["stroke"]["color"] == PREVIEW_COLOR

    def test_no_preview_for_single_click_tools(self) -> None:
        state = InteractionState(
            tool=Tool.HLINE,
            pending_point=DrawingPoint(_t(1), 100.0),
            hover_point=DrawingPoint(_t(3), 150.0),
        )
        surface = RecordingSurface()
        _renderer().render(surface, [], state)
        assert surface.commands == []

    def test_guide_crosshair(self) -> None:
        surface = RecordingSurface()
        _renderer().render(surface, [], InteractionState(guide=Guide(120, 80)))
        lines = surface.of_kind("line")
        assert len(lines) == 2
        assert lines[0].params["x1"] == 120
        assert lines[1].params["y1"] == 80

    def test_dim_region_only_while_prepared(self) -> None:
        prepared = InteractionState(replay_start_time_ms=_t(4), replay_in_progress=False)
        surface = RecordingSurface()
        _renderer().render(surface, [], prepared)
        [dim] = surface.of_kind("rect")
        assert dim.params["left"] == pytest.approx(400)
        assert dim.params["width"] == pytest.approx(600)

        running = dataclasses.replace(prepared, replay_in_progress=True)
        _renderer().render(surface, [], running)
        assert surface.of_kind("rect") == []

    def test_monday_bands_only_when_enabled(self) -> None:
        band = MondayRange(_t(0), _t(9), monday_high=300.0, monday_low=100.0)
        surface = RecordingSurface()
        _renderer().render(surface, [], InteractionState(), [band])
        assert surface.commands == []

        _renderer().render(surface, [], InteractionState(show_monday_levels=True), [band])
        high, low = surface.of_kind("line")
        assert high.params["y1"] == pytest.approx(200)
        assert low.params["y1"] == pytest.approx(400)
