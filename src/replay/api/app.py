"""FastAPI application factory and error mapping."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from replay.api import routes
from replay.exceptions import (
    AnnotationNotFound,
    AnnotationValidationError,
    PersistenceError,
    ReplayError,
    UpstreamError,
)

log = structlog.get_logger(__name__)

#: Most specific first; the first isinstance match wins.
_ERROR_STATUS: list[tuple[type[ReplayError], int]] = [
    (AnnotationValidationError, 400),
    (AnnotationNotFound, 404),
    (UpstreamError, 502),
    (PersistenceError, 500),
]


def _field_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    """Group pydantic errors by dotted field path, without the body/query/path prefix."""
    grouped: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        grouped.setdefault(".".join(loc) or "body", []).append(err.get("msg", "invalid"))
    return grouped


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": {"fieldErrors": _field_errors(exc)}})


async def _replay_error_handler(request: Request, exc: ReplayError) -> JSONResponse:
    status = 500
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            status = code
            break
    if status >= 500:
        log.error("request_failed", path=request.url.path, status=status, error=str(exc))
    return JSONResponse(status_code=status, content={"error": str(exc)})


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for startup/shutdown.
                  main.py uses it to open the database and exchange client
                  and to place ``database``, ``store`` and ``sync`` on app.state.

    Returns:
        Configured FastAPI application with routes under ``/api``.
    """
    app = FastAPI(title="Candle Replay", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ReplayError, _replay_error_handler)  # type: ignore[arg-type]

    app.include_router(routes.router, prefix="/api")

    return app
