"""Candle and drawing persistence layer.

Provides SQLite database management, the typed read/write store, and the
incremental backfill engine that fills candle history from the exchange.
"""

from replay.data.database import ChartDatabase
from replay.data.store import ChartDataStore
from replay.data.sync import BackfillSync, SyncResult

__all__ = [
    "BackfillSync",
    "ChartDataStore",
    "ChartDatabase",
    "SyncResult",
]
