"""Request bodies for the JSON API, validated by pydantic."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from replay.models import AnnotationType, DrawingPoint, Interval

DEFAULT_SYMBOL = "BTCUSDT"


class PointIn(BaseModel):
    time: int
    price: float

    def to_point(self) -> DrawingPoint:
        return DrawingPoint(time=self.time, price=self.price)


class SyncRequest(BaseModel):
    symbol: str = DEFAULT_SYMBOL
    interval: Interval


class CreateDrawingRequest(BaseModel):
    symbol: str = DEFAULT_SYMBOL
    type: AnnotationType
    points: list[PointIn] = Field(min_length=1)
    style: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_point_count(self) -> "CreateDrawingRequest":
        expected = self.type.point_count
        if len(self.points) != expected:
            raise ValueError(
                f"{self.type.value} requires {expected} point(s), got {len(self.points)}"
            )
        return self


class UpdateDrawingRequest(BaseModel):
    """Partial update. ``type`` and ``symbol`` are immutable and ignored if sent."""

    model_config = ConfigDict(extra="ignore")

    points: list[PointIn] | None = Field(default=None, min_length=1)
    style: dict[str, Any] | None = None
