"""Chart viewport abstraction: the time and price axes the overlay draws against.

The overlay never owns the chart's axes. It reads them through
ChartViewport, whose coordinate system changes every time the user pans,
zooms or the chart auto-sizes. Every lookup returns None when the axis
cannot answer (no data, no visible range yet) rather than a default value.
"""

import math
from abc import ABC, abstractmethod
from bisect import bisect_left, bisect_right
from collections.abc import Sequence

from replay.models import Candle


class ChartViewport(ABC):
    """Abstract chart axes for one candle series."""

    @property
    @abstractmethod
    def width(self) -> float: ...

    @property
    @abstractmethod
    def height(self) -> float: ...

    @abstractmethod
    def set_data(self, candles: Sequence[Candle]) -> None:
        """Replace the series the time axis is built from."""
        ...

    @abstractmethod
    def time_to_coordinate(self, time_ms: int) -> float | None:
        """X of a bar whose open time is exactly ``time_ms``; None if no such bar is loaded."""
        ...

    @abstractmethod
    def coordinate_to_time(self, x: float) -> int | None:
        """Open time of the loaded bar under ``x``; None outside the series."""
        ...

    @abstractmethod
    def logical_to_coordinate(self, logical: float) -> float | None: ...

    @abstractmethod
    def coordinate_to_logical(self, x: float) -> float | None: ...

    @abstractmethod
    def price_to_coordinate(self, price: float) -> float | None: ...

    @abstractmethod
    def coordinate_to_price(self, y: float) -> float | None: ...

    @abstractmethod
    def set_visible_logical_range(self, start: float, end: float) -> None: ...

    @abstractmethod
    def fit_content(self) -> None:
        """Show the whole series."""
        ...


class LinearViewport(ChartViewport):
    """In-memory viewport with linear axes.

    The visible logical range maps linearly onto [0, width] and the price
    range onto [height, 0] (higher prices are higher on screen). While
    ``auto_scale`` is on, the price range follows the highs and lows of the
    bars inside the visible logical range, padded by ``price_margin``.
    """

    def __init__(
        self,
        width: float = 1200.0,
        height: float = 600.0,
        price_margin: float = 0.1,
    ) -> None:
        self._width = width
        self._height = height
        self._price_margin = price_margin
        self._candles: list[Candle] = []
        self._open_times: list[int] = []
        self._logical_range: tuple[float, float] | None = None
        self._price_range: tuple[float, float] | None = None
        self.auto_scale = True

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def visible_logical_range(self) -> tuple[float, float] | None:
        return self._logical_range

    @property
    def price_range(self) -> tuple[float, float] | None:
        return self._price_range

    def set_data(self, candles: Sequence[Candle]) -> None:
        self._candles = list(candles)
        self._open_times = [c.open_time for c in self._candles]
        if self.auto_scale:
            self._autoscale_price()

    # ──────────────────────────────────────────────
    # Time axis
    # ──────────────────────────────────────────────

    def time_to_coordinate(self, time_ms: int) -> float | None:
        idx = bisect_left(self._open_times, time_ms)
        if idx >= len(self._open_times) or self._open_times[idx] != time_ms:
            return None
        return self.logical_to_coordinate(idx)

    def coordinate_to_time(self, x: float) -> int | None:
        logical = self.coordinate_to_logical(x)
        if logical is None:
            return None
        idx = round_half_up(logical)
        if 0 <= idx < len(self._open_times):
            return self._open_times[idx]
        return None

    def logical_to_coordinate(self, logical: float) -> float | None:
        if self._logical_range is None:
            return None
        start, end = self._logical_range
        return (logical - start) / (end - start) * self._width

    def coordinate_to_logical(self, x: float) -> float | None:
        if self._logical_range is None:
            return None
        start, end = self._logical_range
        return start + x / self._width * (end - start)

    def set_visible_logical_range(self, start: float, end: float) -> None:
        if end <= start:
            raise ValueError(f"Empty logical range: [{start}, {end}]")
        self._logical_range = (start, end)
        if self.auto_scale:
            self._autoscale_price()

    def fit_content(self) -> None:
        if not self._candles:
            return
        self.set_visible_logical_range(-0.5, len(self._candles) - 0.5)

    def scroll(self, bars: float) -> None:
        """Pan by ``bars`` logical units (positive moves the view right)."""
        if self._logical_range is None:
            return
        start, end = self._logical_range
        self.set_visible_logical_range(start + bars, end + bars)

    def zoom(self, factor: float, anchor_x: float | None = None) -> None:
        """Scale the visible range by ``factor`` (< 1 zooms in) around ``anchor_x``."""
        if self._logical_range is None or factor <= 0:
            return
        start, end = self._logical_range
        anchor = self.coordinate_to_logical(anchor_x if anchor_x is not None else self._width / 2)
        if anchor is None:
            return
        self.set_visible_logical_range(
            anchor - (anchor - start) * factor,
            anchor + (end - anchor) * factor,
        )

    # ──────────────────────────────────────────────
    # Price axis
    # ──────────────────────────────────────────────

    def price_to_coordinate(self, price: float) -> float | None:
        if self._price_range is None:
            return None
        low, high = self._price_range
        return (high - price) / (high - low) * self._height

    def coordinate_to_price(self, y: float) -> float | None:
        if self._price_range is None:
            return None
        low, high = self._price_range
        return high - y / self._height * (high - low)

    def set_price_range(self, low: float, high: float) -> None:
        """Pin the price axis. Turns auto-scale off."""
        if high <= low:
            raise ValueError(f"Empty price range: [{low}, {high}]")
        self.auto_scale = False
        self._price_range = (low, high)

    def _autoscale_price(self) -> None:
        visible = self._visible_candles()
        if not visible:
            return
        low = min(c.low for c in visible)
        high = max(c.high for c in visible)
        pad = (high - low) * self._price_margin
        if pad <= 0:
            pad = abs(high) * 0.01 or 1.0
        self._price_range = (low - pad, high + pad)

    def _visible_candles(self) -> list[Candle]:
        if self._logical_range is None:
            return self._candles
        start, end = self._logical_range
        lo = max(0, int(start))
        hi = min(len(self._candles), int(end) + 1)
        return self._candles[lo:hi]


def nearest_candle_index(open_times: Sequence[int], target_ms: int) -> int | None:
    """Index of the open time closest to ``target_ms``; earlier index wins ties.

    ``open_times`` must be sorted ascending. None for an empty sequence.
    """
    if not open_times:
        return None
    idx = bisect_right(open_times, target_ms)
    if idx == 0:
        return 0
    if idx == len(open_times):
        return len(open_times) - 1
    before, after = open_times[idx - 1], open_times[idx]
    return idx - 1 if target_ms - before <= after - target_ms else idx


def round_half_up(logical: float) -> int:
    """Nearest bar index; halves round towards +inf (2.5 -> 3, -1.5 -> -1)."""
    return math.floor(logical + 0.5)
