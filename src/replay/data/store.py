"""Typed SQLite read/write abstraction for candles and drawings.

Provides ChartDataStore with typed methods for upserting and querying
candles and for the drawing CRUD used by the HTTP API. All SQL is
isolated behind this interface.

Writes share one connection, so every write transaction runs under a
single asyncio lock: a backfill page and a drawing update never end up
in the same transaction.
"""

import asyncio
import json
from collections.abc import Sequence

import aiosqlite

from replay.data.database import ChartDatabase
from replay.exceptions import AnnotationNotFound, AnnotationValidationError, PersistenceError
from replay.logging import get_logger
from replay.models import Annotation, AnnotationType, Candle, DrawingPoint, Interval, validate_points

logger = get_logger(__name__)

_DRAWING_COLUMNS = "id, symbol, type, points, style, created_at, updated_at"
_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


def _row_to_annotation(row: Sequence) -> Annotation:
    return Annotation(
        id=row[0],
        symbol=row[1],
        type=AnnotationType(row[2]),
        points=tuple(DrawingPoint.from_dict(p) for p in json.loads(row[3])),
        style=json.loads(row[4]),
        created_at=row[5],
        updated_at=row[6],
    )


class ChartDataStore:
    """Async SQLite store for candles and drawings.

    Usage:
        async with ChartDatabase("data/replay.db") as database:
            store = ChartDataStore(database)
            inserted = await store.upsert_candles(candles)
    """

    def __init__(self, database: ChartDatabase) -> None:
        self._database = database
        self._write_lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Candles
    # ──────────────────────────────────────────────

    async def upsert_candles(self, candles: Sequence[Candle]) -> int:
        """Insert a page of candles atomically, ignoring duplicate keys.

        The whole page commits or none of it does. Returns the number of
        rows actually inserted (ignored duplicates are not counted).

        Raises:
            PersistenceError: The transaction failed and was rolled back.
        """
        if not candles:
            return 0

        data = [
            (
                c.symbol,
                c.interval.value,
                c.open_time,
                c.close_time,
                c.open,
                c.high,
                c.low,
                c.close,
                c.volume,
            )
            for c in candles
        ]

        db = self._database.db
        async with self._write_lock:
            try:
                cursor = await db.executemany(
                    "INSERT OR IGNORE INTO candles "
                    "(symbol, interval, open_time, close_time, open, high, low, close, volume) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    data,
                )
                inserted = cursor.rowcount
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                logger.error("candle_page_rolled_back", total=len(candles), error=str(e))
                raise PersistenceError(f"Candle page write failed: {e}") from e

        logger.debug("upserted_candles", total=len(candles), inserted=inserted)
        return inserted

    async def get_last_open_time(self, symbol: str, interval: Interval) -> int | None:
        """Latest persisted open_time for the key, or None when nothing is stored."""
        cursor = await self._database.db.execute(
            "SELECT MAX(open_time) FROM candles WHERE symbol = ? AND interval = ?",
            (symbol, interval.value),
        )
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def list_candles(
        self,
        symbol: str,
        interval: Interval,
        from_ms: int,
        to_ms: int,
    ) -> list[Candle]:
        """Candles with ``from_ms <= open_time <= to_ms``, ordered by open_time ASC."""
        cursor = await self._database.db.execute(
            "SELECT symbol, interval, open_time, close_time, open, high, low, close, volume "
            "FROM candles WHERE symbol = ? AND interval = ? AND open_time >= ? AND open_time <= ? "
            "ORDER BY open_time ASC",
            (symbol, interval.value, from_ms, to_ms),
        )
        rows = await cursor.fetchall()
        return [
            Candle(
                symbol=row[0],
                interval=Interval(row[1]),
                open_time=row[2],
                close_time=row[3],
                open=row[4],
                high=row[5],
                low=row[6],
                close=row[7],
                volume=row[8],
            )
            for row in rows
        ]

    async def count_candles(self, symbol: str, interval: Interval) -> int:
        cursor = await self._database.db.execute(
            "SELECT COUNT(*) FROM candles WHERE symbol = ? AND interval = ?",
            (symbol, interval.value),
        )
        return (await cursor.fetchone())[0]

    # ──────────────────────────────────────────────
    # Drawings
    # ──────────────────────────────────────────────

    async def list_annotations(self, symbol: str) -> list[Annotation]:
        """All drawings for a symbol in creation order."""
        cursor = await self._database.db.execute(
            f"SELECT {_DRAWING_COLUMNS} FROM drawings WHERE symbol = ? "
            "ORDER BY created_at ASC, id ASC",
            (symbol,),
        )
        rows = await cursor.fetchall()
        return [_row_to_annotation(row) for row in rows]

    async def get_annotation(self, annotation_id: int) -> Annotation:
        cursor = await self._database.db.execute(
            f"SELECT {_DRAWING_COLUMNS} FROM drawings WHERE id = ?",
            (annotation_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            raise AnnotationNotFound(annotation_id)
        return _row_to_annotation(row)

    async def create_annotation(
        self,
        symbol: str,
        annotation_type: AnnotationType,
        points: Sequence[DrawingPoint],
        style: dict,
    ) -> Annotation:
        """Insert a drawing and return it with its server-assigned id and timestamps."""
        points = validate_points(annotation_type, list(points))

        db = self._database.db
        async with self._write_lock:
            try:
                cursor = await db.execute(
                    "INSERT INTO drawings (symbol, type, points, style) VALUES (?, ?, ?, ?)",
                    (
                        symbol,
                        annotation_type.value,
                        json.dumps([p.to_dict() for p in points]),
                        json.dumps(style),
                    ),
                )
                new_id = cursor.lastrowid
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise PersistenceError(f"Drawing insert failed: {e}") from e

        annotation = await self.get_annotation(new_id)
        logger.info(
            "annotation_created",
            annotation_id=annotation.id,
            symbol=symbol,
            type=annotation_type.value,
        )
        return annotation

    async def update_annotation(
        self,
        annotation_id: int,
        points: Sequence[DrawingPoint] | None = None,
        style: dict | None = None,
    ) -> Annotation:
        """Replace points and/or style of a drawing. Type and symbol are immutable.

        Raises:
            AnnotationValidationError: Nothing to update, or wrong point count.
            AnnotationNotFound: No drawing with this id.
        """
        if points is None and style is None:
            raise AnnotationValidationError("Nothing to update")

        sets: list[str] = []
        values: list = []

        if points is not None:
            existing = await self.get_annotation(annotation_id)
            points = validate_points(existing.type, list(points))
            sets.append("points = ?")
            values.append(json.dumps([p.to_dict() for p in points]))

        if style is not None:
            sets.append("style = ?")
            values.append(json.dumps(style))

        values.append(annotation_id)

        db = self._database.db
        async with self._write_lock:
            try:
                cursor = await db.execute(
                    f"UPDATE drawings SET {', '.join(sets)}, updated_at = {_NOW_SQL} "
                    "WHERE id = ?",
                    values,
                )
                updated = cursor.rowcount
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise PersistenceError(f"Drawing update failed: {e}") from e

        if updated == 0:
            raise AnnotationNotFound(annotation_id)

        logger.debug("annotation_updated", annotation_id=annotation_id, fields=len(sets))
        return await self.get_annotation(annotation_id)

    async def delete_annotation(self, annotation_id: int) -> None:
        """Delete a drawing.

        Raises:
            AnnotationNotFound: No drawing with this id.
        """
        db = self._database.db
        async with self._write_lock:
            try:
                cursor = await db.execute("DELETE FROM drawings WHERE id = ?", (annotation_id,))
                deleted = cursor.rowcount
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise PersistenceError(f"Drawing delete failed: {e}") from e

        if deleted == 0:
            raise AnnotationNotFound(annotation_id)
        logger.info("annotation_deleted", annotation_id=annotation_id)
