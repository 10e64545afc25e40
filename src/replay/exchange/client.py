"""Abstract market-data client interface.

Defines the contract the backfill engine depends on, keeping
exchange-specific details isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod

from replay.models import Candle, Interval


class MarketDataClient(ABC):
    """Abstract base class for historical bar sources."""

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection and load markets."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources (CRITICAL for ccxt async)."""
        ...

    @abstractmethod
    async def fetch_bars(
        self,
        symbol: str,
        interval: Interval,
        start_ms: int,
        end_ms: int,
        limit: int = 1000,
    ) -> list[Candle]:
        """Fetch up to ``limit`` bars with ``start_ms <= open_time <= end_ms``.

        Returns candles ordered by open_time ascending.
        Pagination is NOT handled here -- callers advance their own cursor.

        Raises:
            UpstreamError: Timeout or transport failure.
        """
        ...
