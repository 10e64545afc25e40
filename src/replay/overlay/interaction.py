"""Interaction state passed into the renderer and hit-tester.

The pending point, hover point, crosshair guide, selection, active tool
and any in-flight drag live together in one immutable InteractionState.
Changes go through dataclasses.replace, so a render never sees a
half-applied update.
"""

from dataclasses import dataclass
from enum import Enum

from replay.models import AnnotationType, DrawingPoint


class Tool(str, Enum):
    """Active chart tool."""

    NONE = "none"
    HLINE = "hline"
    RECT = "rect"
    FIBO = "fibo"
    PRICE_RANGE = "pricerange"
    LONG_POSITION = "longpos"
    SHORT_POSITION = "shortpos"
    REPLAY_START = "replay-start"

    @property
    def annotation_type(self) -> AnnotationType | None:
        """The drawing variant this tool creates, if any."""
        try:
            return AnnotationType(self.value)
        except ValueError:
            return None


class PositionHandle(str, Enum):
    """Draggable handles on the trailing edge of a selected trade plan."""

    TAKE_PROFIT = "tp"
    STOP_LOSS = "sl"
    TIME = "time"


@dataclass(frozen=True)
class Guide:
    """Crosshair guide position in pixels."""

    x: float
    y: float


@dataclass(frozen=True)
class HandleDrag:
    """Active trade-plan handle drag.

    ``origin_points`` is the snapshot taken on pointer-down; every move
    recomputes ``preview_points`` from it, so deltas never accumulate.
    """

    annotation_id: int
    handle: PositionHandle
    origin_points: tuple[DrawingPoint, ...]
    preview_points: tuple[DrawingPoint, ...]


@dataclass(frozen=True)
class ToolbarDrag:
    """Active drag of the floating style toolbar, in pixels."""

    start_x: float
    start_y: float
    origin_x: float
    origin_y: float


@dataclass(frozen=True)
class InteractionState:
    tool: Tool = Tool.NONE
    pending_point: DrawingPoint | None = None
    hover_point: DrawingPoint | None = None
    selected_id: int | None = None
    guide: Guide | None = None
    handle_drag: HandleDrag | None = None
    show_monday_levels: bool = False
    replay_start_time_ms: int | None = None
    replay_in_progress: bool = False


def build_trade_plan(
    annotation_type: AnnotationType,
    entry: DrawingPoint,
    step_ms: int,
    risk_pct: float = 0.01,
    bars: int = 40,
) -> list[DrawingPoint]:
    """Default points for a new long/short plan clicked at ``entry``.

    Stop-loss and take-profit sit ``risk_pct`` of the entry price away
    (below/above for a long, mirrored for a short); the time extent
    reaches ``bars`` intervals to the right.
    """
    risk = entry.price * risk_pct
    if annotation_type is AnnotationType.LONG_POSITION:
        sl_price, tp_price = entry.price - risk, entry.price + risk
    else:
        sl_price, tp_price = entry.price + risk, entry.price - risk
    return [
        DrawingPoint(time=entry.time, price=entry.price),
        DrawingPoint(time=entry.time, price=sl_price),
        DrawingPoint(time=entry.time, price=tp_price),
        DrawingPoint(time=entry.time + step_ms * bars, price=entry.price),
    ]


def apply_handle_drag(
    origin_points: tuple[DrawingPoint, ...],
    handle: PositionHandle,
    pointer: DrawingPoint,
    step_ms: int,
) -> tuple[DrawingPoint, ...]:
    """Trade-plan points after moving ``handle`` to ``pointer``.

    TP and SL handles move only their price. The time handle moves the time
    extent, which may not come earlier than one step after the entry.
    """
    points = list(origin_points)
    if handle is PositionHandle.TAKE_PROFIT:
        points[2] = DrawingPoint(time=points[2].time, price=pointer.price)
    elif handle is PositionHandle.STOP_LOSS:
        points[1] = DrawingPoint(time=points[1].time, price=pointer.price)
    else:
        min_time = points[0].time + step_ms
        points[3] = DrawingPoint(time=max(min_time, pointer.time), price=points[3].price)
    return tuple(points)


def position_metrics(points: tuple[DrawingPoint, ...]) -> tuple[float, float]:
    """(reward as % of entry, reward/risk) for a trade plan. Zero-safe."""
    entry, sl, tp = points[0].price, points[1].price, points[2].price
    risk = abs(entry - sl)
    reward = abs(tp - entry)
    rr = reward / risk if risk > 0 else 0.0
    pct = reward / abs(entry) * 100 if entry != 0 else 0.0
    return pct, rr


def position_label(points: tuple[DrawingPoint, ...]) -> str:
    pct, rr = position_metrics(points)
    return f"{pct:.2f}% | R:R {rr:.2f}"


def price_range_label(p1: DrawingPoint, p2: DrawingPoint) -> str:
    """Signed price delta and percent from the first to the second corner."""
    diff = p2.price - p1.price
    base = p1.price if p1.price != 0 else 1.0
    pct = diff / base * 100
    return f"{'+' if diff >= 0 else ''}{diff:.2f} ({'+' if pct >= 0 else ''}{pct:.2f}%)"


def clamp_toolbar_position(
    x: float,
    y: float,
    area_width: float,
    area_height: float,
    toolbar_width: float = 420.0,
    toolbar_height: float = 42.0,
    pad: float = 8.0,
) -> tuple[float, float]:
    """Keep the floating style toolbar inside the chart area."""
    return (
        min(max(pad, x), max(pad, area_width - toolbar_width - pad)),
        min(max(pad, y), max(pad, area_height - toolbar_height - pad)),
    )
