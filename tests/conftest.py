"""Shared test fixtures for the candle replay service and chart engine."""

import pytest

from replay.config import AppSettings, ChartSettings, DatabaseSettings, MarketDataSettings
from replay.models import Candle, Interval

#: 2024-01-01 00:00:00 UTC, a Monday.
MONDAY_2024_01_01 = 1_704_067_200_000


def make_candle(
    open_time: int,
    close: float = 100.0,
    high: float | None = None,
    low: float | None = None,
    interval: Interval = Interval.M15,
    symbol: str = "BTCUSDT",
) -> Candle:
    """Create a test Candle; high/low default to close +/- 1."""
    return Candle(
        symbol=symbol,
        interval=interval,
        open_time=open_time,
        close_time=open_time + interval.step_ms - 1,
        open=close,
        high=high if high is not None else close + 1,
        low=low if low is not None else close - 1,
        close=close,
        volume=10.0,
    )


def make_series(
    count: int,
    start: int = MONDAY_2024_01_01,
    interval: Interval = Interval.M15,
    base: float = 100.0,
) -> list[Candle]:
    """``count`` consecutive candles with closes base, base+1, ..."""
    return [
        make_candle(start + i * interval.step_ms, close=base + i, interval=interval)
        for i in range(count)
    ]


class FakeTimer:
    """Replay timer that only fires when told to."""

    def __init__(self, interval: float, callback) -> None:
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        assert not self.cancelled
        self.callback()


class FakeTimerFactory:
    """Records every timer a ReplayController creates."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, callback) -> FakeTimer:
        timer = FakeTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]


@pytest.fixture
def chart_settings() -> ChartSettings:
    return ChartSettings(symbol="BTCUSDT", default_interval="15m", ema_periods="1,3")


@pytest.fixture
def market_settings() -> MarketDataSettings:
    """Backfill settings with no retry delay and a small page size."""
    return MarketDataSettings(page_limit=3, lookback_days=1, max_retries=2, retry_base_delay=0.0)


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """Return AppSettings with a throwaway SQLite path."""
    return AppSettings(
        log_level="DEBUG",
        database=DatabaseSettings(path=str(tmp_path / "replay.db")),
        market=MarketDataSettings(retry_base_delay=0.0),
    )
