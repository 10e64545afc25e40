"""Async HTTP client for the candle replay backend.

Implements the AnnotationBackend the chart session's store persists
through, plus candle loading and the backfill trigger.

Usage:
    async with ChartApiClient("http://localhost:3001") as api:
        candles = await api.list_candles("BTCUSDT", Interval.M15, from_ms, to_ms)
        drawings = await api.list_annotations("BTCUSDT")
"""

from collections.abc import Sequence
from typing import Any

import httpx

from replay.config import ChartSettings
from replay.exceptions import AnnotationNotFound, BackendRequestError
from replay.logging import get_logger
from replay.models import Annotation, AnnotationType, Candle, DrawingPoint, Interval
from replay.overlay.annotations import AnnotationBackend

logger = get_logger(__name__)


class ChartApiClient(AnnotationBackend):
    """httpx-based client for the ``/api`` surface.

    Args:
        base_url: Backend root, e.g. ``http://localhost:3001``.
        timeout: Per-request timeout in seconds. Sync calls run the whole
            backfill before answering, so this should be generous.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/api",
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: ChartSettings) -> "ChartApiClient":
        return cls(settings.api_url, timeout=settings.request_timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChartApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        annotation_id: int | None = None,
        **kwargs: Any,
    ) -> Any:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code == 404 and annotation_id is not None:
            raise AnnotationNotFound(annotation_id)
        if response.is_error:
            try:
                payload: object = response.json()
            except ValueError:
                payload = response.text
            logger.warning(
                "backend_request_failed",
                method=method,
                path=path,
                status=response.status_code,
            )
            raise BackendRequestError(response.status_code, payload)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ──────────────────────────────────────────────
    # Candles and sync
    # ──────────────────────────────────────────────

    async def list_candles(
        self, symbol: str, interval: Interval, from_ms: int, to_ms: int
    ) -> list[Candle]:
        data = await self._request(
            "GET",
            "/candles",
            params={"symbol": symbol, "interval": interval.value, "from": from_ms, "to": to_ms},
        )
        return [Candle.from_dict(row) for row in data]

    async def sync(self, symbol: str, interval: Interval) -> dict[str, Any]:
        """Run the backend backfill and return ``{ok, inserted, symbol, interval}``."""
        return await self._request(
            "POST", "/sync", json={"symbol": symbol, "interval": interval.value}
        )

    # ──────────────────────────────────────────────
    # AnnotationBackend
    # ──────────────────────────────────────────────

    async def list_annotations(self, symbol: str) -> list[Annotation]:
        data = await self._request("GET", "/drawings", params={"symbol": symbol})
        return [Annotation.from_dict(row) for row in data]

    async def create_annotation(
        self,
        symbol: str,
        annotation_type: AnnotationType,
        points: Sequence[DrawingPoint],
        style: dict[str, Any],
    ) -> Annotation:
        body = {
            "symbol": symbol,
            "type": annotation_type.value,
            "points": [p.to_dict() for p in points],
            "style": style,
        }
        return Annotation.from_dict(await self._request("POST", "/drawings", json=body))

    async def update_annotation(
        self,
        annotation_id: int,
        points: Sequence[DrawingPoint] | None = None,
        style: dict[str, Any] | None = None,
    ) -> Annotation:
        body: dict[str, Any] = {}
        if points is not None:
            body["points"] = [p.to_dict() for p in points]
        if style is not None:
            body["style"] = style
        data = await self._request(
            "PUT", f"/drawings/{annotation_id}", annotation_id=annotation_id, json=body
        )
        return Annotation.from_dict(data)

    async def delete_annotation(self, annotation_id: int) -> None:
        await self._request("DELETE", f"/drawings/{annotation_id}", annotation_id=annotation_id)
