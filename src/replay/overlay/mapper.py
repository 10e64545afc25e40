"""Coordinate mapping between wall-clock time, logical bar index and pixels.

Three spaces are involved:
- time: Unix milliseconds, as stored in DrawingPoint.time
- logical index: real-valued bar position; integers address loaded
  candles, anything else is extrapolated with the interval's fixed step
- pixels: x/y on the overlay surface, owned by the ChartViewport

Annotations may sit outside the loaded data (a trade plan reaching into
the future, or a shape drawn before the first bar), so time -> x falls
back to logical extrapolation when the time axis has no bar at that time.

Every method returns None when no geometric answer exists; callers skip
drawing rather than render at (0, 0).
"""

import math
from collections.abc import Sequence

from replay.models import Candle, DrawingPoint, Interval
from replay.overlay.viewport import ChartViewport, nearest_candle_index, round_half_up


class CoordinateMapper:
    """Read-only translator over the viewport's current axis state.

    ``candles`` is the full loaded series; ``displayed`` is what the chart
    currently shows (a prefix of ``candles`` while replay is in progress).
    """

    def __init__(self, viewport: ChartViewport, interval: Interval) -> None:
        self._viewport = viewport
        self._interval = interval
        self._candles: list[Candle] = []
        self._open_times: list[int] = []
        self._displayed: list[Candle] = []

    @property
    def viewport(self) -> ChartViewport:
        return self._viewport

    @property
    def interval(self) -> Interval:
        return self._interval

    def set_series(
        self,
        candles: Sequence[Candle],
        displayed: Sequence[Candle],
        interval: Interval | None = None,
    ) -> None:
        self._candles = list(candles)
        self._open_times = [c.open_time for c in self._candles]
        self._displayed = list(displayed)
        if interval is not None:
            self._interval = interval

    # ──────────────────────────────────────────────
    # Time <-> logical
    # ──────────────────────────────────────────────

    def logical_to_time_ms(self, logical: float) -> int | None:
        """Open time at a logical index, extrapolated outside the loaded data.

        Before index 0: ``first + index * step``. Past the last displayed
        bar: ``last_displayed + (index - last_displayed_index) * step``.
        """
        if not math.isfinite(logical):
            return None

        rounded = round_half_up(logical)
        step = self._interval.step_ms

        if 0 <= rounded < len(self._candles):
            return self._candles[rounded].open_time

        if not self._displayed:
            return None

        if rounded < 0:
            return self._displayed[0].open_time + rounded * step

        last_index = len(self._displayed) - 1
        return self._displayed[last_index].open_time + (rounded - last_index) * step

    def time_ms_to_logical(self, time_ms: float) -> float | None:
        """Logical index for a time.

        At or beyond either end of the loaded series the offset is divided by
        the interval step; inside it, the nearest bar's index is returned.
        """
        if not self._candles or not math.isfinite(time_ms):
            return None

        step = self._interval.step_ms
        first_time = self._open_times[0]
        last_time = self._open_times[-1]

        if time_ms <= first_time:
            return (time_ms - first_time) / step
        if time_ms >= last_time:
            return len(self._candles) - 1 + (time_ms - last_time) / step

        idx = nearest_candle_index(self._open_times, int(time_ms))
        return float(idx) if idx is not None else None

    def nearest_index(self, time_ms: int) -> int | None:
        """Index of the loaded candle nearest to ``time_ms``."""
        return nearest_candle_index(self._open_times, time_ms)

    # ──────────────────────────────────────────────
    # Pixels
    # ──────────────────────────────────────────────

    def time_to_pixel_x(self, time_ms: int) -> float | None:
        direct = self._viewport.time_to_coordinate(time_ms)
        if direct is not None:
            return direct

        logical = self.time_ms_to_logical(time_ms)
        if logical is None:
            return None
        return self._viewport.logical_to_coordinate(logical)

    def price_to_pixel_y(self, price: float) -> float | None:
        return self._viewport.price_to_coordinate(price)

    def pixel_y_to_price(self, y: float) -> float | None:
        return self._viewport.coordinate_to_price(y)

    def pixel_x_to_time(self, x: float) -> int | None:
        direct = self._viewport.coordinate_to_time(x)
        if direct is not None:
            return direct

        logical = self._viewport.coordinate_to_logical(x)
        if logical is None:
            return None
        return self.logical_to_time_ms(logical)

    def pixel_to_point(self, x: float, y: float) -> DrawingPoint | None:
        """Domain point under a pixel, or None when either axis cannot answer."""
        price = self.pixel_y_to_price(y)
        time_ms = self.pixel_x_to_time(x)
        if price is None or time_ms is None:
            return None
        return DrawingPoint(time=time_ms, price=price)
