"""Tests for style defaults, trade-plan construction, handle drags and labels."""

import pytest

from replay.models import FIB_LEVELS, AnnotationType, DrawingPoint
from replay.overlay.interaction import (
    PositionHandle,
    Tool,
    apply_handle_drag,
    build_trade_plan,
    clamp_toolbar_position,
    position_label,
    position_metrics,
    price_range_label,
)
from replay.overlay.styles import (
    clamp_line_width,
    default_style,
    fibo_levels,
    hex_to_rgba,
    parse_fibo_levels,
    rgba_to_hex_opacity,
)

STEP = 900_000


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------


class TestDefaultStyle:
    """Style bag assigned when a drawing is created."""

    def test_common_keys(self) -> None:
        style = default_style(AnnotationType.HLINE)
        assert style == {"color": "#60a5fa", "lineWidth": 2, "lineStyle": "solid"}

    def test_rect_gets_translucent_fill(self) -> None:
        assert default_style(AnnotationType.RECT)["fillColor"] == "rgba(96, 165, 250, 0.2)"

    def test_fibo_gets_canonical_levels(self) -> None:
        assert default_style(AnnotationType.FIBO)["levels"] == [0.0, 0.25, 0.5, 0.75, 1.0]

    def test_mode_tags(self) -> None:
        assert default_style(AnnotationType.PRICE_RANGE)["mode"] == "tv"
        assert default_style(AnnotationType.LONG_POSITION)["mode"] == "position"
        assert default_style(AnnotationType.SHORT_POSITION)["mode"] == "position"


class TestColorHelpers:
    """hex <-> rgba conversions used by the fill editor."""

    def test_hex_to_rgba(self) -> None:
        assert hex_to_rgba("#ff0080", 0.5) == "rgba(255, 0, 128, 0.5)"

    def test_hex_to_rgba_clamps_alpha_and_falls_back(self) -> None:
        assert hex_to_rgba("#000000", 3) == "rgba(0, 0, 0, 1)"
        assert hex_to_rgba("nonsense", 0.3) == "rgba(96, 165, 250, 0.3)"

    def test_rgba_to_hex_opacity(self) -> None:
        assert rgba_to_hex_opacity("rgba(255, 0, 128, 0.4)") == ("#ff0080", 0.4)
        assert rgba_to_hex_opacity("rgb(1,2,3)") == ("#010203", 1.0)

    def test_rgba_to_hex_opacity_fallback(self) -> None:
        assert rgba_to_hex_opacity("red") == ("#60a5fa", 0.2)


class TestLevelsAndWidths:
    """Fibonacci level parsing and line width clamping."""

    def test_parse_fibo_levels_dedupes_and_sorts(self) -> None:
        assert parse_fibo_levels("1, 0.5,x,0.5, 0") == [0.0, 0.5, 1.0]

    def test_parse_fibo_levels_empty_gives_canonical(self) -> None:
        assert parse_fibo_levels(" , ") == list(FIB_LEVELS)

    def test_fibo_levels_from_style(self) -> None:
        assert fibo_levels({"levels": [0, 0.618, "x", 1]}) == [0.0, 0.618, 1.0]
        assert fibo_levels({}) == list(FIB_LEVELS)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0, 1), (-2, 1), (3, 3), (20, 8), (float("nan"), 1)],
    )
    def test_clamp_line_width(self, value: float, expected: float) -> None:
        assert clamp_line_width(value) == expected


# ---------------------------------------------------------------------------
# Tools and trade plans
# ---------------------------------------------------------------------------


class TestTool:
    """Tool -> drawing variant."""

    def test_drawing_tools_map_to_types(self) -> None:
        assert Tool.RECT.annotation_type is AnnotationType.RECT
        assert Tool.LONG_POSITION.annotation_type is AnnotationType.LONG_POSITION

    def test_non_drawing_tools(self) -> None:
        assert Tool.NONE.annotation_type is None
        assert Tool.REPLAY_START.annotation_type is None


class TestBuildTradePlan:
    """Default trade plan for a click at the entry."""

    def test_long_plan(self) -> None:
        entry = DrawingPoint(time=1_000, price=200.0)
        points = build_trade_plan(AnnotationType.LONG_POSITION, entry, STEP)
        assert points == [
            DrawingPoint(1_000, 200.0),
            DrawingPoint(1_000, 198.0),
            DrawingPoint(1_000, 202.0),
            DrawingPoint(1_000 + 40 * STEP, 200.0),
        ]

    def test_short_plan_mirrors(self) -> None:
        entry = DrawingPoint(time=0, price=100.0)
        points = build_trade_plan(AnnotationType.SHORT_POSITION, entry, STEP)
        assert points[1].price == pytest.approx(101.0)
        assert points[2].price == pytest.approx(99.0)


class TestApplyHandleDrag:
    """Handle drags are computed from the origin snapshot."""

    ORIGIN = (
        DrawingPoint(0, 100.0),
        DrawingPoint(0, 99.0),
        DrawingPoint(0, 101.0),
        DrawingPoint(40 * STEP, 100.0),
    )

    def test_take_profit_moves_price_only(self) -> None:
        result = apply_handle_drag(self.ORIGIN, PositionHandle.TAKE_PROFIT, DrawingPoint(999, 105.0), STEP)
        assert result[2] == DrawingPoint(0, 105.0)
        assert result[:2] == self.ORIGIN[:2]
        assert result[3] == self.ORIGIN[3]

    def test_stop_loss_moves_price_only(self) -> None:
        result = apply_handle_drag(self.ORIGIN, PositionHandle.STOP_LOSS, DrawingPoint(999, 97.0), STEP)
        assert result[1] == DrawingPoint(0, 97.0)

    def test_time_handle_never_before_entry_plus_one_step(self) -> None:
        result = apply_handle_drag(self.ORIGIN, PositionHandle.TIME, DrawingPoint(-5 * STEP, 50.0), STEP)
        assert result[3] == DrawingPoint(STEP, 100.0)

    def test_repeated_moves_do_not_accumulate(self) -> None:
        first = apply_handle_drag(self.ORIGIN, PositionHandle.TIME, DrawingPoint(10 * STEP, 0), STEP)
        second = apply_handle_drag(self.ORIGIN, PositionHandle.TIME, DrawingPoint(12 * STEP, 0), STEP)
        assert first[3].time == 10 * STEP
        assert second[3].time == 12 * STEP


class TestLabels:
    """Position metrics and price range labels."""

    def test_position_metrics(self) -> None:
        points = (DrawingPoint(0, 100.0), DrawingPoint(0, 98.0), DrawingPoint(0, 106.0), DrawingPoint(1, 100.0))
        pct, rr = position_metrics(points)
        assert pct == pytest.approx(6.0)
        assert rr == pytest.approx(3.0)
        assert position_label(points) == "6.00% | R:R 3.00"

    def test_zero_risk_gives_zero_ratio(self) -> None:
        points = (DrawingPoint(0, 100.0), DrawingPoint(0, 100.0), DrawingPoint(0, 110.0), DrawingPoint(1, 100.0))
        assert position_metrics(points)[1] == 0.0

    def test_price_range_label(self) -> None:
        assert price_range_label(DrawingPoint(0, 200.0), DrawingPoint(1, 210.0)) == "+10.00 (+5.00%)"
        assert price_range_label(DrawingPoint(0, 200.0), DrawingPoint(1, 190.0)) == "-10.00 (-5.00%)"


class TestClampToolbarPosition:
    """Floating toolbar stays inside the chart area."""

    def test_inside_is_unchanged(self) -> None:
        assert clamp_toolbar_position(100, 100, 1000, 500) == (100, 100)

    def test_clamped_to_edges(self) -> None:
        assert clamp_toolbar_position(-50, 900, 1000, 500) == (8, 500 - 42 - 8)
        assert clamp_toolbar_position(990, 0, 1000, 500) == (1000 - 420 - 8, 8)
