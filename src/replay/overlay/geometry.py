"""Pixel geometry of annotations, shared by the hit-tester and the renderer.

Both consumers resolve shapes through these functions, so what is hit is
exactly what is drawn. Any unresolvable coordinate yields None.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from replay.models import DrawingPoint
from replay.overlay.mapper import CoordinateMapper


@dataclass(frozen=True)
class Box:
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def contains(self, x: float, y: float, pad: float = 0.0) -> bool:
        return (
            self.left - pad <= x <= self.right + pad
            and self.top - pad <= y <= self.bottom + pad
        )


@dataclass(frozen=True)
class PositionGeometry:
    """Resolved pixel rows and columns of a trade plan."""

    x_start: float
    x_end: float
    y_entry: float
    y_sl: float
    y_tp: float

    @property
    def left(self) -> float:
        return min(self.x_start, self.x_end)

    @property
    def right(self) -> float:
        return max(self.x_start, self.x_end)

    @property
    def box(self) -> Box:
        return Box(
            left=self.left,
            top=min(self.y_entry, self.y_sl, self.y_tp),
            right=self.right,
            bottom=max(self.y_entry, self.y_sl, self.y_tp),
        )


def corner_box(mapper: CoordinateMapper, p1: DrawingPoint, p2: DrawingPoint) -> Box | None:
    """Bounding box of two opposite corners."""
    x1 = mapper.time_to_pixel_x(p1.time)
    y1 = mapper.price_to_pixel_y(p1.price)
    x2 = mapper.time_to_pixel_x(p2.time)
    y2 = mapper.price_to_pixel_y(p2.price)
    if x1 is None or y1 is None or x2 is None or y2 is None:
        return None
    return Box(left=min(x1, x2), top=min(y1, y2), right=max(x1, x2), bottom=max(y1, y2))


def position_geometry(
    mapper: CoordinateMapper, points: Sequence[DrawingPoint]
) -> PositionGeometry | None:
    """Entry/SL/TP rows and entry/exit columns of a 4-point trade plan."""
    entry, sl, tp, end = points[0], points[1], points[2], points[3]
    x_start = mapper.time_to_pixel_x(entry.time)
    x_end = mapper.time_to_pixel_x(end.time)
    y_entry = mapper.price_to_pixel_y(entry.price)
    y_sl = mapper.price_to_pixel_y(sl.price)
    y_tp = mapper.price_to_pixel_y(tp.price)
    if x_start is None or x_end is None or y_entry is None or y_sl is None or y_tp is None:
        return None
    return PositionGeometry(x_start=x_start, x_end=x_end, y_entry=y_entry, y_sl=y_sl, y_tp=y_tp)


def fibo_level_rows(
    mapper: CoordinateMapper,
    p1: DrawingPoint,
    p2: DrawingPoint,
    levels: Sequence[float],
) -> list[tuple[float, float]]:
    """(level, y) for every level whose price maps to a pixel row.

    Level price = low + (high - low) * level.
    """
    low = min(p1.price, p2.price)
    high = max(p1.price, p2.price)
    rows: list[tuple[float, float]] = []
    for level in levels:
        y = mapper.price_to_pixel_y(low + (high - low) * level)
        if y is not None:
            rows.append((level, y))
    return rows
