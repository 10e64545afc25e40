"""Tests for CoordinateMapper: time <-> logical <-> pixel conversions.

Fixture geometry: 10 candles at 15m, viewport 1000x500 showing logical
[0, 10] and prices [0, 500], so x = logical * 100 and y = 500 - price.
"""

import pytest

from conftest import MONDAY_2024_01_01, make_series
from replay.models import DrawingPoint, Interval
from replay.overlay.mapper import CoordinateMapper
from replay.overlay.viewport import LinearViewport

STEP = Interval.M15.step_ms
START = MONDAY_2024_01_01


def _mapper(count: int = 10, displayed: int | None = None) -> CoordinateMapper:
    candles = make_series(count)
    shown = candles if displayed is None else candles[:displayed]
    viewport = LinearViewport(width=1000, height=500)
    viewport.set_data(shown)
    viewport.set_visible_logical_range(0, 10)
    viewport.set_price_range(0, 500)
    mapper = CoordinateMapper(viewport, Interval.M15)
    mapper.set_series(candles, shown)
    return mapper


class TestEmptySeries:
    """No candles loaded: every mapping answers None."""

    def test_no_geometric_answer(self) -> None:
        mapper = CoordinateMapper(LinearViewport(), Interval.M15)
        assert mapper.logical_to_time_ms(0) is None
        assert mapper.time_ms_to_logical(START) is None
        assert mapper.time_to_pixel_x(START) is None
        assert mapper.price_to_pixel_y(100.0) is None
        assert mapper.pixel_to_point(10, 10) is None

    def test_non_finite_logical(self) -> None:
        mapper = _mapper()
        assert mapper.logical_to_time_ms(float("nan")) is None


class TestLogicalToTime:
    """logical index -> open time, exact inside the array, extrapolated outside."""

    def test_inside_array_returns_exact_open_time(self) -> None:
        mapper = _mapper()
        assert mapper.logical_to_time_ms(2.4) == START + 2 * STEP
        assert mapper.logical_to_time_ms(8.6) == START + 9 * STEP

    def test_half_index_rounds_up(self) -> None:
        mapper = _mapper()
        assert mapper.logical_to_time_ms(2.5) == START + 3 * STEP
        assert mapper.logical_to_time_ms(-1.5) == START - STEP
        assert mapper.logical_to_time_ms(-0.5) == START

    def test_before_first_extrapolates_from_first(self) -> None:
        mapper = _mapper()
        assert mapper.logical_to_time_ms(-3) == START - 3 * STEP

    def test_beyond_last_displayed_extrapolates(self) -> None:
        # Replay shows 5 bars; index 12 is beyond the whole array
        mapper = _mapper(displayed=5)
        assert mapper.logical_to_time_ms(12) == START + 4 * STEP + (12 - 4) * STEP

    def test_index_inside_full_array_past_displayed_is_exact(self) -> None:
        mapper = _mapper(displayed=5)
        assert mapper.logical_to_time_ms(7) == START + 7 * STEP


class TestTimeToLogical:
    """open time -> logical index."""

    def test_before_first(self) -> None:
        mapper = _mapper()
        assert mapper.time_ms_to_logical(START - 2 * STEP) == pytest.approx(-2.0)

    def test_after_last(self) -> None:
        mapper = _mapper()
        assert mapper.time_ms_to_logical(START + 12 * STEP) == pytest.approx(12.0)

    def test_inside_returns_nearest_index(self) -> None:
        mapper = _mapper()
        assert mapper.time_ms_to_logical(START + 2 * STEP + 100) == 2.0
        assert mapper.time_ms_to_logical(START + 3 * STEP - 100) == 3.0

    @pytest.mark.parametrize(
        "offset_steps",
        [-500, -37, -1, 0, 9, 10, 55, 1000],
    )
    def test_round_trip_outside_loaded_range(self, offset_steps: int) -> None:
        """logical_to_time_ms(time_ms_to_logical(t)) lands within one step of t."""
        mapper = _mapper()
        t = START + offset_steps * STEP + 1234
        logical = mapper.time_ms_to_logical(t)
        assert logical is not None
        back = mapper.logical_to_time_ms(logical)
        assert back is not None
        assert abs(back - t) <= STEP


class TestPixels:
    """Pixel conversions through the viewport."""

    def test_time_to_pixel_direct_hit(self) -> None:
        mapper = _mapper()
        assert mapper.time_to_pixel_x(START + 3 * STEP) == pytest.approx(300)

    def test_time_to_pixel_future_falls_back_to_logical(self) -> None:
        mapper = _mapper()
        assert mapper.time_to_pixel_x(START + 14 * STEP) == pytest.approx(1400)

    def test_time_to_pixel_between_bars_uses_nearest(self) -> None:
        mapper = _mapper()
        assert mapper.time_to_pixel_x(START + 5 * STEP + 60_000) == pytest.approx(500)

    def test_price_round_trip(self) -> None:
        mapper = _mapper()
        y = mapper.price_to_pixel_y(321.5)
        assert y == pytest.approx(178.5)
        assert mapper.pixel_y_to_price(y) == pytest.approx(321.5)

    def test_pixel_to_point_on_loaded_bar(self) -> None:
        mapper = _mapper()
        assert mapper.pixel_to_point(310, 100) == DrawingPoint(time=START + 3 * STEP, price=400.0)

    def test_pixel_to_point_past_right_edge(self) -> None:
        mapper = _mapper(displayed=5)
        point = mapper.pixel_to_point(1500, 250)
        assert point is not None
        assert point.time == START + 4 * STEP + (15 - 4) * STEP
        assert point.price == pytest.approx(250.0)
