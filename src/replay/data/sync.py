"""Incremental candle backfill with per-page transactions and retry.

Fills the gap between the last persisted bar and "now" for one
(symbol, interval) key, storing pages via ChartDataStore.

Implementation notes:
- The cursor restarts one interval BEFORE the last persisted bar, so the
  trailing bar is re-fetched every run. This heals a boundary gap between
  runs; the overlapping row is ignored by INSERT OR IGNORE.
- Pages walk FORWARD from the cursor (Binance klines are oldest-first).
- Each page is one transaction. A failure stops the sync but leaves every
  previously committed page in place, so re-running is always safe.
- Upstream revisions of an already persisted bar are NOT applied
  (insert-or-ignore never overwrites).
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

from replay.config import MarketDataSettings
from replay.data.store import ChartDataStore
from replay.exceptions import UpstreamError
from replay.exchange.client import MarketDataClient
from replay.logging import get_logger
from replay.models import DAY_MS, Candle, Interval

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SyncResult:
    """Outcome of one backfill run."""

    symbol: str
    interval: Interval
    inserted: int
    pages: int

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "inserted": self.inserted,
            "symbol": self.symbol,
            "interval": self.interval.value,
        }


class BackfillSync:
    """Fetches missing bars from the market-data client and persists them.

    Usage:
        sync = BackfillSync(client, store, settings)
        result = await sync.run("BTCUSDT", Interval.M15)
    """

    def __init__(
        self,
        client: MarketDataClient,
        store: ChartDataStore,
        settings: MarketDataSettings,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._client = client
        self._store = store
        self._settings = settings
        self._clock = clock

    async def initial_cursor(self, symbol: str, interval: Interval, now_ms: int) -> int:
        """Start of the fetch window: one step before the last bar, never older than the lookback."""
        lookback_start = now_ms - self._settings.lookback_days * DAY_MS
        last_open_time = await self._store.get_last_open_time(symbol, interval)
        if last_open_time is None:
            return lookback_start
        return max(lookback_start, last_open_time - interval.step_ms)

    async def run(self, symbol: str, interval: Interval) -> SyncResult:
        """Backfill one key up to now. Blocks until complete.

        Raises:
            UpstreamError: The market-data source failed after retries.
            PersistenceError: A page transaction failed and was rolled back.
        """
        start_time = time.monotonic()
        now_ms = self._clock()
        step = interval.step_ms
        page_limit = self._settings.page_limit

        cursor = await self.initial_cursor(symbol, interval, now_ms)
        logger.info(
            "sync_started",
            symbol=symbol,
            interval=interval.value,
            cursor=cursor,
            now_ms=now_ms,
        )

        inserted = 0
        pages = 0
        while cursor < now_ms:
            batch = await self._fetch_with_retry(symbol, interval, cursor, now_ms, page_limit)
            if not batch:
                break

            page_inserted = await self._store.upsert_candles(batch)
            inserted += page_inserted
            pages += 1

            last_open_time = batch[-1].open_time
            logger.debug(
                "sync_page_committed",
                symbol=symbol,
                page=pages,
                fetched=len(batch),
                inserted=page_inserted,
                last_open_time=last_open_time,
            )

            next_cursor = last_open_time + step
            if next_cursor <= cursor:
                break  # No progress guard

            cursor = next_cursor
            if len(batch) < page_limit:
                break

        logger.info(
            "sync_complete",
            symbol=symbol,
            interval=interval.value,
            pages=pages,
            inserted=inserted,
            duration_seconds=round(time.monotonic() - start_time, 2),
        )
        return SyncResult(symbol=symbol, interval=interval, inserted=inserted, pages=pages)

    # ──────────────────────────────────────────────
    # Retry wrapper
    # ──────────────────────────────────────────────

    async def _fetch_with_retry(
        self,
        symbol: str,
        interval: Interval,
        start_ms: int,
        end_ms: int,
        limit: int,
    ) -> list[Candle]:
        """Fetch one page with exponential backoff.

        Delays are retry_base_delay * 2**attempt between attempts. Re-raises
        the UpstreamError from the final attempt.
        """
        max_retries = max(1, self._settings.max_retries)
        base_delay = self._settings.retry_base_delay

        for attempt in range(max_retries):
            try:
                return await self._client.fetch_bars(symbol, interval, start_ms, end_ms, limit)
            except UpstreamError as e:
                if attempt == max_retries - 1:
                    logger.error(
                        "fetch_failed_permanently",
                        symbol=symbol,
                        error=str(e),
                        attempts=max_retries,
                    )
                    raise

                delay = base_delay * (2**attempt)
                logger.warning(
                    "fetch_retry",
                    symbol=symbol,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        return []  # Unreachable, but satisfies type checker
