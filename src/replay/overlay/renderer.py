"""Overlay renderer.

Paints one frame of the annotation overlay onto a Surface from explicit
inputs: the annotations, the InteractionState and the Monday bands. The
renderer holds no state of its own between frames; the chart session
calls ``render`` after every transition that can move geometry.

Draw order:
1. Monday high/low bands (when enabled)
2. Dim region right of the replay start (prepared, not yet in progress)
3. Annotations in creation order, with drag previews substituted
4. Pending two-click preview
5. Crosshair guide
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from replay.models import Annotation, AnnotationType, DrawingPoint, MondayRange
from replay.overlay.geometry import Box, corner_box, fibo_level_rows, position_geometry
from replay.overlay.interaction import InteractionState, position_label, price_range_label
from replay.overlay.mapper import CoordinateMapper
from replay.overlay.styles import DEFAULT_COLOR, clamp_line_width, fibo_levels
from replay.overlay.surface import Stroke, Surface

SELECTED_COLOR = "#facc15"
PREVIEW_COLOR = "#fde047"
MONDAY_HIGH_COLOR = "rgba(34, 197, 94, 0.95)"
MONDAY_LOW_COLOR = "rgba(239, 68, 68, 0.95)"
REWARD_FILL = "rgba(34, 197, 94, 0.28)"
RISK_FILL = "rgba(239, 68, 68, 0.28)"
RANGE_FILL = "rgba(185, 197, 209, 0.5)"
EDGE_COLOR = "rgba(0, 0, 0, 0.95)"
LABEL_FILL = "rgba(33, 133, 224, 0.98)"
HANDLE_FILL = "#1d4ed8"
GUIDE_COLOR = "rgba(190, 210, 255, 0.65)"
DIM_FILL = "rgba(0, 0, 0, 0.35)"
DEFAULT_FILL = "rgba(96, 165, 250, 0.2)"

LABEL_FONT = "600 12px sans-serif"
HANDLE_RADIUS = 6.0
DASH_PATTERN = (8.0, 4.0)

# Selection anchor placement relative to the shape's top-right corner
_ANCHOR_RIGHT_INSET = 34.0
_ANCHOR_OFFSET_X = 8.0
_ANCHOR_OFFSET_Y = 26.0
_ANCHOR_MIN_Y = 8.0


@dataclass(frozen=True)
class Anchor:
    x: float
    y: float


@dataclass(frozen=True)
class RenderResult:
    """Frame outputs the session needs besides the pixels themselves."""

    selected_anchor: Anchor | None = None


class OverlayRenderer:
    """Draws annotations through a CoordinateMapper onto a Surface."""

    def __init__(self, mapper: CoordinateMapper) -> None:
        self._mapper = mapper

    def render(
        self,
        surface: Surface,
        annotations: Sequence[Annotation],
        state: InteractionState,
        monday_ranges: Sequence[MondayRange] = (),
    ) -> RenderResult:
        viewport = self._mapper.viewport
        width, height = viewport.width, viewport.height
        surface.clear(width, height)

        if state.show_monday_levels:
            self._draw_monday_bands(surface, monday_ranges)

        if state.replay_start_time_ms is not None and not state.replay_in_progress:
            self._draw_dim_region(surface, state.replay_start_time_ms, width, height)

        drag = state.handle_drag
        anchor: Anchor | None = None
        for annotation in annotations:
            points = annotation.points
            if drag is not None and drag.annotation_id == annotation.id:
                points = drag.preview_points

            selected = annotation.id == state.selected_id
            self._draw_shape(surface, annotation.type, points, annotation.style, selected=selected)
            if selected:
                anchor = self._selection_anchor(annotation.type, points, width)

        pending_type = state.tool.annotation_type
        if (
            state.pending_point is not None
            and state.hover_point is not None
            and pending_type is not None
            and pending_type.is_two_click
        ):
            self._draw_shape(
                surface,
                pending_type,
                (state.pending_point, state.hover_point),
                {"color": PREVIEW_COLOR},
                preview=True,
            )

        if state.guide is not None:
            stroke = Stroke(GUIDE_COLOR, 1.0, (4.0, 4.0))
            surface.line(state.guide.x, 0, state.guide.x, height, stroke)
            surface.line(0, state.guide.y, width, state.guide.y, stroke)

        return RenderResult(selected_anchor=anchor)

    # ──────────────────────────────────────────────
    # Background layers
    # ──────────────────────────────────────────────

    def _draw_monday_bands(self, surface: Surface, ranges: Sequence[MondayRange]) -> None:
        for band in ranges:
            x_start = self._mapper.time_to_pixel_x(band.week_start_ms)
            x_end = self._mapper.time_to_pixel_x(band.week_end_ms)
            y_high = self._mapper.price_to_pixel_y(band.monday_high)
            y_low = self._mapper.price_to_pixel_y(band.monday_low)
            if x_start is None or x_end is None or y_high is None or y_low is None:
                continue

            left, right = min(x_start, x_end), max(x_start, x_end)
            surface.line(left, y_high, right, y_high, Stroke(MONDAY_HIGH_COLOR, 1.5))
            surface.line(left, y_low, right, y_low, Stroke(MONDAY_LOW_COLOR, 1.5))

    def _draw_dim_region(self, surface: Surface, start_ms: int, width: float, height: float) -> None:
        x = self._mapper.viewport.time_to_coordinate(start_ms)
        if x is None:
            return
        left = max(0.0, x)
        if left < width:
            surface.rect(left, 0, width - left, height, fill=DIM_FILL)

    # ──────────────────────────────────────────────
    # Shapes
    # ──────────────────────────────────────────────

    def _draw_shape(
        self,
        surface: Surface,
        annotation_type: AnnotationType,
        points: Sequence[DrawingPoint],
        style: dict[str, Any],
        selected: bool = False,
        preview: bool = False,
    ) -> None:
        color = str(style.get("color", PREVIEW_COLOR if preview else DEFAULT_COLOR))
        base_width = _as_float(style.get("lineWidth"), 1.5 if preview else 2.0)
        dash = DASH_PATTERN if style.get("lineStyle") == "dashed" else ()
        stroke = Stroke(
            SELECTED_COLOR if selected else color,
            clamp_line_width(base_width + (1 if selected else 0)),
            dash,
        )

        if annotation_type is AnnotationType.HLINE:
            y = self._mapper.price_to_pixel_y(points[0].price)
            if y is not None:
                surface.line(0, y, self._mapper.viewport.width, y, stroke)
            return

        if annotation_type.is_position:
            self._draw_position(surface, points, selected=selected, preview=preview)
            return

        box = corner_box(self._mapper, points[0], points[1])
        if box is None:
            return

        if annotation_type is AnnotationType.RECT:
            fill = str(style.get("fillColor", DEFAULT_FILL))
            surface.rect(box.left, box.top, box.width, box.height, fill=fill, stroke=stroke)
        elif annotation_type is AnnotationType.PRICE_RANGE:
            self._draw_price_range(surface, box, points[0], points[1], preview=preview)
        else:
            for level, y in fibo_level_rows(self._mapper, points[0], points[1], fibo_levels(style)):
                surface.line(box.left, y, box.right, y, stroke)
                surface.text(box.right + 6, y + 4, f"{level:.2f}", color)

    def _draw_price_range(
        self, surface: Surface, box: Box, p1: DrawingPoint, p2: DrawingPoint, preview: bool
    ) -> None:
        surface.rect(box.left, box.top, box.width, box.height, fill=RANGE_FILL)
        edge = Stroke(EDGE_COLOR, 2.5)
        surface.line(box.left, box.top, box.right, box.top, edge)
        surface.line(box.left, box.bottom, box.right, box.bottom, edge)
        mid_x = (box.left + box.right) / 2
        surface.line(mid_x, box.top, mid_x, box.bottom, Stroke(EDGE_COLOR, 1.5))

        if preview:
            return
        label = price_range_label(p1, p2)
        pad_x, label_h = 10.0, 30.0
        label_w = surface.measure_text(label, LABEL_FONT) + pad_x * 2
        label_x = min(max(box.left, mid_x - label_w / 2), max(box.left, box.right - label_w))
        label_y = max(6.0, box.top - label_h - 8)
        surface.rect(label_x, label_y, label_w, label_h, fill=LABEL_FILL, radius=8)
        surface.text(label_x + pad_x, label_y + 19, label, "#ffffff", LABEL_FONT)

    def _draw_position(
        self, surface: Surface, points: Sequence[DrawingPoint], selected: bool, preview: bool
    ) -> None:
        geometry = position_geometry(self._mapper, points)
        if geometry is None:
            return

        left, right = geometry.left, geometry.right
        span = right - left
        y_entry, y_sl, y_tp = geometry.y_entry, geometry.y_sl, geometry.y_tp

        surface.rect(left, min(y_entry, y_tp), span, abs(y_tp - y_entry), fill=REWARD_FILL)
        surface.rect(left, min(y_entry, y_sl), span, abs(y_sl - y_entry), fill=RISK_FILL)

        edge = Stroke(EDGE_COLOR, 2.0)
        for y in (y_tp, y_entry, y_sl):
            surface.line(left, y, right, y, edge)

        if not preview:
            label = position_label(tuple(points))
            label_w = surface.measure_text(label, LABEL_FONT) + 16
            label_h = 28.0
            label_x = max(left + 4, right - label_w - 6)
            label_y = max(6.0, geometry.box.top - label_h - 6)
            surface.rect(label_x, label_y, label_w, label_h, fill=LABEL_FILL, radius=8)
            surface.text(label_x + 8, label_y + 18, label, "#fff", LABEL_FONT)

        if selected:
            for y in (y_tp, y_sl, y_entry):
                surface.circle(right, y, HANDLE_RADIUS, HANDLE_FILL)

    # ──────────────────────────────────────────────
    # Selection anchor
    # ──────────────────────────────────────────────

    def _selection_anchor(
        self, annotation_type: AnnotationType, points: Sequence[DrawingPoint], width: float
    ) -> Anchor | None:
        if annotation_type is AnnotationType.HLINE:
            y = self._mapper.price_to_pixel_y(points[0].price)
            if y is None:
                return None
            return Anchor(width - _ANCHOR_RIGHT_INSET, max(_ANCHOR_MIN_Y, y - _ANCHOR_OFFSET_Y))

        if annotation_type.is_position:
            x_end = self._mapper.time_to_pixel_x(points[3].time)
            y_tp = self._mapper.price_to_pixel_y(points[2].price)
            if x_end is None or y_tp is None:
                return None
            return Anchor(
                min(width - _ANCHOR_RIGHT_INSET, x_end + _ANCHOR_OFFSET_X),
                max(_ANCHOR_MIN_Y, y_tp - _ANCHOR_OFFSET_Y),
            )

        box = corner_box(self._mapper, points[0], points[1])
        if box is None:
            return None
        return Anchor(
            min(width - _ANCHOR_RIGHT_INSET, box.right + _ANCHOR_OFFSET_X),
            max(_ANCHOR_MIN_Y, box.top - _ANCHOR_OFFSET_Y),
        )


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)
