"""Pixel hit-testing against annotations and trade-plan handles.

Candidates are evaluated topmost-first (last created wins on overlap).
A candidate whose geometry cannot be resolved is skipped, never matched.
"""

from collections.abc import Sequence

from replay.models import Annotation, AnnotationType
from replay.overlay.geometry import corner_box, fibo_level_rows, position_geometry
from replay.overlay.interaction import PositionHandle
from replay.overlay.mapper import CoordinateMapper
from replay.overlay.styles import fibo_levels

#: Pixel tolerance for lines and shapes.
SHAPE_TOLERANCE = 7.0
#: Pixel tolerance for trade-plan drag handles.
HANDLE_TOLERANCE = 10.0


class HitTester:
    """Resolves the annotation under a pixel.

    Args:
        mapper: Coordinate mapper over the chart's current axes.
        tolerance: Shape tolerance in pixels.
        handle_tolerance: Handle tolerance in pixels.
    """

    def __init__(
        self,
        mapper: CoordinateMapper,
        tolerance: float = SHAPE_TOLERANCE,
        handle_tolerance: float = HANDLE_TOLERANCE,
    ) -> None:
        self._mapper = mapper
        self._tolerance = tolerance
        self._handle_tolerance = handle_tolerance

    def hit_test(self, annotations: Sequence[Annotation], x: float, y: float) -> Annotation | None:
        """Topmost annotation within tolerance of (x, y), or None."""
        for annotation in reversed(annotations):
            if self._hits(annotation, x, y):
                return annotation
        return None

    def _hits(self, annotation: Annotation, x: float, y: float) -> bool:
        tol = self._tolerance
        points = annotation.points

        if annotation.type is AnnotationType.HLINE:
            y_line = self._mapper.price_to_pixel_y(points[0].price)
            return y_line is not None and abs(y - y_line) <= tol

        if annotation.type.is_position:
            geometry = position_geometry(self._mapper, points)
            return geometry is not None and geometry.box.contains(x, y, tol)

        box = corner_box(self._mapper, points[0], points[1])
        if box is None:
            return False

        if annotation.type in (AnnotationType.RECT, AnnotationType.PRICE_RANGE):
            return box.contains(x, y, tol)

        # Fibonacci: near any level row, within the horizontal span
        if not box.left - tol <= x <= box.right + tol:
            return False
        rows = fibo_level_rows(self._mapper, points[0], points[1], fibo_levels(annotation.style))
        return any(abs(y - y_level) <= tol for _, y_level in rows)

    def hit_test_handle(
        self, annotation: Annotation | None, x: float, y: float
    ) -> PositionHandle | None:
        """Handle of a selected trade plan under (x, y).

        Handles sit on the trailing edge at the TP, SL and entry rows; the
        entry-row handle drags the time extent. Non-position annotations
        have no handles.
        """
        if annotation is None or not annotation.type.is_position:
            return None

        geometry = position_geometry(self._mapper, annotation.points)
        if geometry is None:
            return None

        tol = self._handle_tolerance
        if abs(x - geometry.x_end) > tol:
            return None
        if abs(y - geometry.y_tp) <= tol:
            return PositionHandle.TAKE_PROFIT
        if abs(y - geometry.y_sl) <= tol:
            return PositionHandle.STOP_LOSS
        if abs(y - geometry.y_entry) <= tol:
            return PositionHandle.TIME
        return None
