"""Market-data client abstraction and the ccxt-backed Binance implementation."""

from replay.exchange.binance_client import BinanceClient
from replay.exchange.client import MarketDataClient

__all__ = ["BinanceClient", "MarketDataClient"]
