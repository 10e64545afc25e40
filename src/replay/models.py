"""Shared data models for candles, drawings and replay state.

Prices are floats here: every price eventually meets a pixel coordinate,
and the chart geometry is float arithmetic end to end.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from replay.exceptions import AnnotationValidationError

MINUTE_MS = 60 * 1000
DAY_MS = 24 * 60 * MINUTE_MS
WEEK_MS = 7 * DAY_MS


class Interval(str, Enum):
    """Supported bar intervals."""

    M5 = "5m"
    M15 = "15m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1D"
    W1 = "1W"
    MN1 = "1M"

    @property
    def step_ms(self) -> int:
        """Fixed bar duration used for extrapolation and gap detection."""
        return INTERVAL_MS[self]


INTERVAL_MS: dict[Interval, int] = {
    Interval.M5: 5 * MINUTE_MS,
    Interval.M15: 15 * MINUTE_MS,
    Interval.H1: 60 * MINUTE_MS,
    Interval.H4: 4 * 60 * MINUTE_MS,
    Interval.D1: DAY_MS,
    Interval.W1: WEEK_MS,
    Interval.MN1: 30 * DAY_MS,  # nominal month
}


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar, keyed by (symbol, interval, open_time)."""

    symbol: str
    interval: Interval
    open_time: int  # Unix milliseconds
    close_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "interval": self.interval.value,
            "openTime": self.open_time,
            "closeTime": self.close_time,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Candle":
        return cls(
            symbol=data["symbol"],
            interval=Interval(data["interval"]),
            open_time=int(data["openTime"]),
            close_time=int(data["closeTime"]),
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=float(data["volume"]),
        )


@dataclass(frozen=True)
class DrawingPoint:
    """A (time, price) anchor on the chart."""

    time: int  # Unix milliseconds
    price: float

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time, "price": self.price}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DrawingPoint":
        return cls(time=int(data["time"]), price=float(data["price"]))


class AnnotationType(str, Enum):
    """Drawing tool variants."""

    HLINE = "hline"
    RECT = "rect"
    FIBO = "fibo"
    PRICE_RANGE = "pricerange"
    LONG_POSITION = "longpos"
    SHORT_POSITION = "shortpos"

    @property
    def point_count(self) -> int:
        return POINT_COUNTS[self]

    @property
    def is_position(self) -> bool:
        return self in (AnnotationType.LONG_POSITION, AnnotationType.SHORT_POSITION)

    @property
    def is_two_click(self) -> bool:
        return self in (AnnotationType.RECT, AnnotationType.FIBO, AnnotationType.PRICE_RANGE)


#: hline: 1 point; rect/fibo/pricerange: opposite corners;
#: positions: entry, stop-loss, take-profit, time extent.
POINT_COUNTS: dict[AnnotationType, int] = {
    AnnotationType.HLINE: 1,
    AnnotationType.RECT: 2,
    AnnotationType.FIBO: 2,
    AnnotationType.PRICE_RANGE: 2,
    AnnotationType.LONG_POSITION: 4,
    AnnotationType.SHORT_POSITION: 4,
}

#: Canonical fibonacci level set.
FIB_LEVELS: tuple[float, ...] = (0.0, 0.25, 0.5, 0.75, 1.0)


def validate_points(
    annotation_type: AnnotationType, points: tuple[DrawingPoint, ...] | list[DrawingPoint]
) -> tuple[DrawingPoint, ...]:
    """Return ``points`` as a tuple, raising if the count does not fit the variant."""
    expected = annotation_type.point_count
    if len(points) != expected:
        raise AnnotationValidationError(
            f"{annotation_type.value} requires {expected} point(s), got {len(points)}"
        )
    return tuple(points)


@dataclass(frozen=True)
class Annotation:
    """A persisted drawing object.

    Identity is the server-assigned ``id``; ``type`` and ``symbol`` never
    change after creation. Point count is checked at construction.
    """

    id: int
    symbol: str
    type: AnnotationType
    points: tuple[DrawingPoint, ...]
    style: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", validate_points(self.type, self.points))

    # Named accessors for trade-plan points

    @property
    def entry(self) -> DrawingPoint:
        return self.points[0]

    @property
    def stop_loss(self) -> DrawingPoint:
        return self.points[1]

    @property
    def take_profit(self) -> DrawingPoint:
        return self.points[2]

    @property
    def time_extent(self) -> DrawingPoint:
        return self.points[3]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "type": self.type.value,
            "points": [p.to_dict() for p in self.points],
            "style": dict(self.style),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Annotation":
        try:
            annotation_type = AnnotationType(data["type"])
        except ValueError as e:
            raise AnnotationValidationError(f"Unknown drawing type: {data['type']}") from e
        return cls(
            id=int(data["id"]),
            symbol=data["symbol"],
            type=annotation_type,
            points=tuple(DrawingPoint.from_dict(p) for p in data["points"]),
            style=dict(data.get("style") or {}),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass(frozen=True)
class MondayRange:
    """Monday high/low band for one UTC week. Derived, never persisted."""

    week_start_ms: int
    week_end_ms: int
    monday_high: float
    monday_low: float


@dataclass(frozen=True)
class EmaPoint:
    """One value of an exponential moving average series."""

    time: int
    value: float
