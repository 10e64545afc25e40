"""Derived series over the displayed candle window: EMAs and Monday bands.

Both are recomputed from scratch on every change of the displayed window
(each replay tick, each reload). Windows are bounded by the two-year
lookback, so no incremental state is carried between calls.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from replay.models import DAY_MS, WEEK_MS, Candle, EmaPoint, Interval, MondayRange

#: Intervals whose bars are too coarse to isolate a Monday.
_NO_MONDAY_BANDS = frozenset({Interval.W1, Interval.MN1})


def parse_periods(raw: str) -> list[int]:
    """Parse a comma-separated period list, keeping positive numbers floored to int.

    >>> parse_periods("20, 50,abc,-3,12.7")
    [20, 50, 12]
    """
    periods: list[int] = []
    for part in raw.split(","):
        try:
            value = float(part.strip())
        except ValueError:
            continue
        if value > 0 and value != float("inf"):
            periods.append(int(value))
    return periods


def compute_ema(candles: Sequence[Candle], period: int) -> list[EmaPoint]:
    """Exponential moving average of closes, seeded with the first close.

    multiplier = 2 / (period + 1)
    ema = (close - ema) * multiplier + ema

    Each emitted value is rounded to 4 decimal places; the running value
    is not, so rounding never compounds.
    """
    if not candles or period <= 0:
        return []

    multiplier = 2 / (period + 1)
    ema = candles[0].close
    result: list[EmaPoint] = []
    for candle in candles:
        ema = (candle.close - ema) * multiplier + ema
        result.append(EmaPoint(time=candle.open_time, value=round(ema, 4)))
    return result


def compute_ema_series(
    candles: Sequence[Candle], periods: Iterable[int]
) -> dict[int, list[EmaPoint]]:
    return {period: compute_ema(candles, period) for period in periods}


def start_of_utc_monday(time_ms: int) -> int:
    """Midnight UTC of the most recent Monday at or before ``time_ms``."""
    dt = datetime.fromtimestamp(time_ms / 1000, tz=timezone.utc)
    midnight = dt.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000) - dt.weekday() * DAY_MS


def _is_utc_monday(time_ms: int) -> bool:
    return datetime.fromtimestamp(time_ms / 1000, tz=timezone.utc).weekday() == 0


def compute_monday_ranges(candles: Sequence[Candle], interval: Interval) -> list[MondayRange]:
    """Monday high/low per UTC week, from Monday bars only.

    Weeks without a Monday bar are omitted. Each band spans
    ``[week_start, week_start + 7 days - step]``. Weekly and monthly bars
    rarely open on a Monday inside their own bucket, so those intervals
    produce no bands at all.
    """
    if not candles or interval in _NO_MONDAY_BANDS:
        return []

    mondays: dict[int, list[Candle]] = {}
    for candle in candles:
        if not _is_utc_monday(candle.open_time):
            continue
        mondays.setdefault(start_of_utc_monday(candle.open_time), []).append(candle)

    step = interval.step_ms
    ranges = [
        MondayRange(
            week_start_ms=week_start,
            week_end_ms=week_start + WEEK_MS - step,
            monday_high=max(c.high for c in bucket),
            monday_low=min(c.low for c in bucket),
        )
        for week_start, bucket in mondays.items()
    ]
    ranges.sort(key=lambda r: r.week_start_ms)
    return ranges
