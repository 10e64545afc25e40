"""JSON API endpoints: candles, backfill sync, drawings CRUD and health."""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Query, Request, Response
from fastapi.responses import JSONResponse

from replay.api.schemas import (
    DEFAULT_SYMBOL,
    CreateDrawingRequest,
    SyncRequest,
    UpdateDrawingRequest,
)
from replay.models import Interval

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def get_health(request: Request) -> JSONResponse:
    """Liveness plus a database round-trip check."""
    database = request.app.state.database
    try:
        db_ok = await database.ping()
    except Exception as e:
        log.error("health_db_check_failed", error=str(e))
        db_ok = False
    return JSONResponse(content={"ok": True, "db": db_ok})


@router.get("/candles")
async def get_candles(
    request: Request,
    interval: Interval,
    symbol: str = DEFAULT_SYMBOL,
    from_ms: int = Query(0, alias="from"),
    to_ms: int | None = Query(None, alias="to"),
) -> JSONResponse:
    """Candles for one key within [from, to], ascending by open time."""
    store = request.app.state.store
    if to_ms is None:
        to_ms = int(time.time() * 1000)
    candles = await store.list_candles(symbol, interval, from_ms, to_ms)
    return JSONResponse(content=[c.to_dict() for c in candles])


@router.post("/sync")
async def post_sync(request: Request, body: SyncRequest) -> JSONResponse:
    """Run the backfill for one key and return once it has completed."""
    sync = request.app.state.sync
    structlog.contextvars.bind_contextvars(symbol=body.symbol, interval=body.interval.value)
    try:
        result = await sync.run(body.symbol, body.interval)
    finally:
        structlog.contextvars.unbind_contextvars("symbol", "interval")
    return JSONResponse(content=result.to_dict())


@router.get("/drawings")
async def get_drawings(request: Request, symbol: str = DEFAULT_SYMBOL) -> JSONResponse:
    store = request.app.state.store
    annotations = await store.list_annotations(symbol)
    return JSONResponse(content=[a.to_dict() for a in annotations])


@router.post("/drawings")
async def post_drawing(request: Request, body: CreateDrawingRequest) -> JSONResponse:
    store = request.app.state.store
    annotation = await store.create_annotation(
        body.symbol,
        body.type,
        [p.to_point() for p in body.points],
        body.style,
    )
    return JSONResponse(content=annotation.to_dict(), status_code=201)


@router.put("/drawings/{drawing_id}")
async def put_drawing(
    request: Request, drawing_id: int, body: UpdateDrawingRequest
) -> JSONResponse:
    """Patch points and/or style. An empty patch set is a 400."""
    store = request.app.state.store
    annotation = await store.update_annotation(
        drawing_id,
        points=[p.to_point() for p in body.points] if body.points is not None else None,
        style=body.style,
    )
    return JSONResponse(content=annotation.to_dict())


@router.delete("/drawings/{drawing_id}")
async def delete_drawing(request: Request, drawing_id: int) -> Response:
    store = request.app.state.store
    await store.delete_annotation(drawing_id)
    return Response(status_code=204)
