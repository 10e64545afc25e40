"""Binance market-data client implementation via ccxt async.

Wraps ccxt.async_support.binance with market loading, interval mapping,
bounded request timeouts, and async cleanup. Only public kline endpoints
are used, so no API keys are required.
"""

import ccxt.async_support as ccxt_async

from replay.config import MarketDataSettings
from replay.exceptions import UpstreamError
from replay.exchange.client import MarketDataClient
from replay.logging import get_logger
from replay.models import Candle, Interval

logger = get_logger(__name__)

#: Chart interval -> ccxt timeframe string.
TIMEFRAMES: dict[Interval, str] = {
    Interval.M5: "5m",
    Interval.M15: "15m",
    Interval.H1: "1h",
    Interval.H4: "4h",
    Interval.D1: "1d",
    Interval.W1: "1w",
    Interval.MN1: "1M",
}


class BinanceClient(MarketDataClient):
    """Concrete Binance spot kline client using ccxt async."""

    def __init__(self, settings: MarketDataSettings) -> None:
        self._settings = settings
        exchange_class = getattr(ccxt_async, settings.exchange_id)
        self._exchange = exchange_class(
            {
                "enableRateLimit": True,
                "timeout": settings.timeout_ms,
                "options": {"defaultType": "spot"},
            }
        )
        self._markets: dict = {}

    async def connect(self) -> None:
        """Initialize connection by loading markets."""
        logger.info("connecting_to_exchange", exchange=self._settings.exchange_id)
        try:
            self._markets = await self._exchange.load_markets()
        except ccxt_async.BaseError as e:
            raise UpstreamError(f"Failed to load markets: {e}") from e
        logger.info("exchange_connected", market_count=len(self._markets))

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        await self._exchange.close()
        logger.info("exchange_connection_closed")

    async def fetch_bars(
        self,
        symbol: str,
        interval: Interval,
        start_ms: int,
        end_ms: int,
        limit: int = 1000,
    ) -> list[Candle]:
        """Fetch one page of klines starting at ``start_ms``.

        ``symbol`` may be an exchange id ("BTCUSDT") or a ccxt unified
        symbol ("BTC/USDT"); ccxt resolves either once markets are loaded.
        Binance omits close time from ccxt rows, so it is reconstructed as
        ``open_time + step - 1``.
        """
        step = interval.step_ms
        try:
            if not self._markets:
                self._markets = await self._exchange.load_markets()
            unified = self._exchange.market(symbol)["symbol"]
            rows = await self._exchange.fetch_ohlcv(
                unified,
                timeframe=TIMEFRAMES[interval],
                since=start_ms,
                limit=limit,
                params={"endTime": end_ms},
            )
        except ccxt_async.BaseError as e:
            logger.warning(
                "fetch_bars_failed",
                symbol=symbol,
                interval=interval.value,
                start_ms=start_ms,
                error=str(e),
            )
            raise UpstreamError(f"Kline fetch failed for {symbol} {interval.value}: {e}") from e

        candles = [
            Candle(
                symbol=symbol,
                interval=interval,
                open_time=int(row[0]),
                close_time=int(row[0]) + step - 1,
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[5]),
            )
            for row in rows
        ]
        candles.sort(key=lambda c: c.open_time)
        return candles
