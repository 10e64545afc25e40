"""Chart session -- the single-threaded controller behind one chart.

Wires user input (click, move, leave, pointer down/up, toolbar drag),
the active tool, the annotation store, the hit-tester, the replay
controller and the renderer together. After every transition that can
affect rendered geometry the session calls ``redraw()`` explicitly:

    displayed candles -> viewport/mapper -> EMAs + Monday bands
    -> selection pruning -> render -> toolbar placement

Network calls (loading, persisting a mutation, triggering a sync) are
awaited; their completions re-enter the same flow, so the store and the
replay state are only ever touched from the event loop thread.
"""

import asyncio
import dataclasses
import time
from collections.abc import Callable
from typing import Any

from replay.config import ChartSettings
from replay.logging import get_logger
from replay.models import DAY_MS, Annotation, AnnotationType, Candle, EmaPoint, Interval, MondayRange
from replay.overlay.annotations import AnnotationStore, prune_selection
from replay.overlay.client import ChartApiClient
from replay.overlay.hit_test import HitTester
from replay.overlay.interaction import (
    Guide,
    HandleDrag,
    InteractionState,
    PositionHandle,
    Tool,
    ToolbarDrag,
    apply_handle_drag,
    build_trade_plan,
    clamp_toolbar_position,
)
from replay.overlay.mapper import CoordinateMapper
from replay.overlay.renderer import Anchor, OverlayRenderer
from replay.overlay.replay import AsyncioTimer, ReplayController, ReplayState, TimerFactory
from replay.overlay.series import compute_ema_series, compute_monday_ranges, parse_periods
from replay.overlay.styles import (
    DEFAULT_COLOR,
    DEFAULT_FILL_OPACITY,
    LINE_STYLES,
    clamp_line_width,
    hex_to_rgba,
    parse_fibo_levels,
    rgba_to_hex_opacity,
)
from replay.overlay.surface import RecordingSurface, Surface
from replay.overlay.viewport import ChartViewport

logger = get_logger(__name__)

#: Candle history requested on load: two years.
LOOKBACK_MS = 2 * 365 * DAY_MS


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChartSession:
    """One symbol's chart: data, drawings, replay and overlay.

    Args:
        api: Backend client (candles, sync, and the annotation backend).
        viewport: The chart's axes.
        settings: Chart settings; defaults are loaded from the environment.
        surface: Where frames are painted. Defaults to a RecordingSurface.
        timer_factory: Replay timer factory, injectable for tests.
        clock: Returns the current time in ms.
    """

    def __init__(
        self,
        api: ChartApiClient,
        viewport: ChartViewport,
        settings: ChartSettings | None = None,
        surface: Surface | None = None,
        timer_factory: TimerFactory = AsyncioTimer,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._settings = settings or ChartSettings()
        self._api = api
        self._viewport = viewport
        self._surface = surface or RecordingSurface()
        self._clock = clock

        self._interval = Interval(self._settings.default_interval)
        self._candles: list[Candle] = []
        self._ema_periods = parse_periods(self._settings.ema_periods)
        self._ema_series: dict[int, list[EmaPoint]] = {}
        self._monday_ranges: list[MondayRange] = []
        self._did_initial_fit = False

        self._state = InteractionState()
        self._selected_anchor: Anchor | None = None
        self._toolbar_position: tuple[float, float] | None = None
        self._manual_toolbar_position: tuple[float, float] | None = None
        self._toolbar_drag: ToolbarDrag | None = None

        self.store = AnnotationStore(api, self._settings.symbol)
        self.mapper = CoordinateMapper(viewport, self._interval)
        self.hit_tester = HitTester(
            self.mapper,
            tolerance=self._settings.hit_tolerance_px,
            handle_tolerance=self._settings.handle_tolerance_px,
        )
        self.renderer = OverlayRenderer(self.mapper)
        self.replay = ReplayController(
            last_index=lambda: len(self._candles) - 1,
            timer_factory=timer_factory,
            on_change=self._on_replay_change,
            on_follow=self._on_replay_follow,
            on_pause=self._on_replay_pause,
            on_reset=self._on_replay_reset,
            speed=self._settings.default_speed,
            follow_half_window=self._settings.follow_half_window,
        )

    # ──────────────────────────────────────────────
    # Read-only views
    # ──────────────────────────────────────────────

    @property
    def interval(self) -> Interval:
        return self._interval

    @property
    def candles(self) -> list[Candle]:
        return self._candles

    @property
    def displayed_candles(self) -> list[Candle]:
        """``candles[0..current_index]`` while replay is in progress, else all."""
        current = self.replay.state.current_index
        if current is None:
            return self._candles
        return self._candles[: current + 1]

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def ema_series(self) -> dict[int, list[EmaPoint]]:
        return self._ema_series

    @property
    def ema_periods(self) -> list[int]:
        return list(self._ema_periods)

    @property
    def monday_ranges(self) -> list[MondayRange]:
        return self._monday_ranges

    @property
    def selected(self) -> Annotation | None:
        return self.store.get(self._state.selected_id)

    @property
    def selected_anchor(self) -> Anchor | None:
        return self._selected_anchor

    @property
    def toolbar_position(self) -> tuple[float, float] | None:
        return self._toolbar_position

    @property
    def surface(self) -> Surface:
        return self._surface

    # ──────────────────────────────────────────────
    # Data loading
    # ──────────────────────────────────────────────

    async def load(self, interval: Interval | None = None) -> None:
        """Load two years of candles and the symbol's drawings.

        Switching interval resets replay and selection and re-fits the
        chart once the new data is shown.
        """
        if interval is not None:
            self._interval = interval
        now = self._clock()
        candles, _ = await asyncio.gather(
            self._api.list_candles(self._settings.symbol, self._interval, now - LOOKBACK_MS, now),
            self.store.load(),
        )
        self._candles = candles
        self._did_initial_fit = False
        self._state = dataclasses.replace(
            self._state, pending_point=None, hover_point=None, handle_drag=None, selected_id=None
        )
        self.replay.reset()
        logger.info(
            "chart_loaded",
            symbol=self._settings.symbol,
            interval=self._interval.value,
            candles=len(candles),
            drawings=len(self.store),
        )

    async def sync(self) -> dict[str, Any]:
        """Run the backend backfill for the current interval and re-read candles."""
        result = await self._api.sync(self._settings.symbol, self._interval)
        now = self._clock()
        self._candles = await self._api.list_candles(
            self._settings.symbol, self._interval, now - LOOKBACK_MS, now
        )
        logger.info("chart_synced", inserted=result.get("inserted"), candles=len(self._candles))
        self.redraw()
        return result

    # ──────────────────────────────────────────────
    # Redraw
    # ──────────────────────────────────────────────

    def redraw(self) -> None:
        displayed = self.displayed_candles
        self._viewport.set_data(displayed)
        self.mapper.set_series(self._candles, displayed, self._interval)
        if not self._did_initial_fit and displayed:
            self._viewport.fit_content()
            self._did_initial_fit = True

        self._ema_series = compute_ema_series(displayed, self._ema_periods)
        self._monday_ranges = compute_monday_ranges(displayed, self._interval)

        replay_state = self.replay.state
        start_time = None
        if replay_state.start_index is not None and replay_state.start_index < len(self._candles):
            start_time = self._candles[replay_state.start_index].open_time
        self._state = dataclasses.replace(
            self._state,
            selected_id=prune_selection(self.store, self._state.selected_id),
            replay_start_time_ms=start_time,
            replay_in_progress=replay_state.in_progress,
        )

        result = self.renderer.render(
            self._surface, self.store.annotations, self._state, self._monday_ranges
        )
        self._selected_anchor = result.selected_anchor
        self._place_toolbar()

    def _place_toolbar(self) -> None:
        if self._selected_anchor is None or self._state.tool is not Tool.NONE:
            self._toolbar_position = None
            return
        base = self._manual_toolbar_position or (self._selected_anchor.x, self._selected_anchor.y)
        self._toolbar_position = clamp_toolbar_position(
            base[0], base[1], self._viewport.width, self._viewport.height
        )

    # ──────────────────────────────────────────────
    # Pointer input
    # ──────────────────────────────────────────────

    async def click(self, x: float, y: float) -> Annotation | None:
        """Handle a click at pixel (x, y) for the active tool.

        Returns the selected annotation (no tool) or the created one.
        """
        tool = self._state.tool
        if tool is Tool.NONE:
            hit = self.hit_tester.hit_test(self.store.annotations, x, y)
            self.select(hit.id if hit is not None else None)
            return hit

        point = self.mapper.pixel_to_point(x, y)
        if point is None:
            return None

        if tool is Tool.REPLAY_START:
            index = self.mapper.nearest_index(point.time)
            if index is not None:
                self.replay.set_start(index)
                self.center_on(index)
            return None

        annotation_type = tool.annotation_type
        if annotation_type is None:
            return None

        if annotation_type is AnnotationType.HLINE:
            return await self._create(annotation_type, [point])

        if annotation_type.is_position:
            points = build_trade_plan(
                annotation_type,
                point,
                self._interval.step_ms,
                risk_pct=self._settings.trade_plan_risk_pct,
                bars=self._settings.trade_plan_bars,
            )
            return await self._create(annotation_type, points)

        pending = self._state.pending_point
        if pending is None:
            self._state = dataclasses.replace(self._state, pending_point=point)
            self.redraw()
            return None
        return await self._create(annotation_type, [pending, point])

    async def _create(self, annotation_type: AnnotationType, points: list) -> Annotation:
        created = await self.store.create(annotation_type, points)
        self._state = dataclasses.replace(
            self._state,
            tool=Tool.NONE,
            pending_point=None,
            hover_point=None,
            selected_id=created.id,
        )
        self._manual_toolbar_position = None
        self.redraw()
        return created

    def move(self, x: float, y: float) -> None:
        """Pointer moved over the chart: guide, drag preview, two-click hover."""
        self._state = dataclasses.replace(self._state, guide=Guide(x, y))

        drag = self._state.handle_drag
        if drag is not None:
            pointer = self.mapper.pixel_to_point(x, y)
            if pointer is not None:
                preview = apply_handle_drag(
                    drag.origin_points, drag.handle, pointer, self._interval.step_ms
                )
                self._state = dataclasses.replace(
                    self._state, handle_drag=dataclasses.replace(drag, preview_points=preview)
                )
            self.redraw()
            return

        annotation_type = self._state.tool.annotation_type
        if (
            self._state.pending_point is not None
            and annotation_type is not None
            and annotation_type.is_two_click
        ):
            hover = self.mapper.pixel_to_point(x, y)
            if hover is not None:
                self._state = dataclasses.replace(self._state, hover_point=hover)
        self.redraw()

    def leave(self) -> None:
        self._state = dataclasses.replace(self._state, guide=None)
        self.redraw()

    def pointer_down(self, x: float, y: float) -> PositionHandle | None:
        """Start a handle drag if (x, y) is on a selected trade plan's handle."""
        selected = self.selected
        if self._state.tool is not Tool.NONE or selected is None:
            return None
        handle = self.hit_tester.hit_test_handle(selected, x, y)
        if handle is None:
            return None
        self._state = dataclasses.replace(
            self._state,
            handle_drag=HandleDrag(
                annotation_id=selected.id,
                handle=handle,
                origin_points=selected.points,
                preview_points=selected.points,
            ),
        )
        return handle

    async def pointer_up(self) -> Annotation | None:
        """End a handle drag, persisting the previewed points."""
        drag = self._state.handle_drag
        if drag is None:
            return None
        try:
            if drag.preview_points == drag.origin_points:
                return None
            return await self.store.patch_points(drag.annotation_id, drag.preview_points)
        finally:
            self._state = dataclasses.replace(self._state, handle_drag=None)
            self.redraw()

    # ──────────────────────────────────────────────
    # Style toolbar
    # ──────────────────────────────────────────────

    def begin_toolbar_drag(self, x: float, y: float) -> None:
        if self._toolbar_position is None:
            return
        origin_x, origin_y = self._toolbar_position
        self._toolbar_drag = ToolbarDrag(start_x=x, start_y=y, origin_x=origin_x, origin_y=origin_y)

    def move_toolbar(self, x: float, y: float) -> None:
        drag = self._toolbar_drag
        if drag is None:
            return
        position = clamp_toolbar_position(
            drag.origin_x + (x - drag.start_x),
            drag.origin_y + (y - drag.start_y),
            self._viewport.width,
            self._viewport.height,
        )
        self._manual_toolbar_position = position
        self._toolbar_position = position

    def end_toolbar_drag(self) -> None:
        self._toolbar_drag = None

    # ──────────────────────────────────────────────
    # Tools, display and selection
    # ──────────────────────────────────────────────

    def set_tool(self, tool: Tool) -> None:
        self._state = dataclasses.replace(
            self._state, tool=tool, pending_point=None, hover_point=None
        )
        self.redraw()

    def set_ema_periods(self, raw: str) -> list[int]:
        self._ema_periods = parse_periods(raw)
        self.redraw()
        return self.ema_periods

    def toggle_monday_levels(self) -> bool:
        self._state = dataclasses.replace(
            self._state, show_monday_levels=not self._state.show_monday_levels
        )
        self.redraw()
        return self._state.show_monday_levels

    def select(self, annotation_id: int | None) -> None:
        if annotation_id != self._state.selected_id:
            self._manual_toolbar_position = None
        self._state = dataclasses.replace(self._state, selected_id=annotation_id)
        self.redraw()

    async def patch_selected_style(self, partial: dict[str, Any]) -> Annotation | None:
        selected_id = self._state.selected_id
        if selected_id is None:
            return None
        updated = await self.store.patch_style(selected_id, partial)
        self.redraw()
        return updated

    # ──────────────────────────────────────────────
    # Style editor
    # ──────────────────────────────────────────────

    def selected_fill(self) -> tuple[str, float]:
        """``(hex, opacity)`` of the selected drawing's fill, to seed the editor."""
        selected = self.selected
        fill = selected.style.get("fillColor") if selected is not None else None
        if not isinstance(fill, str):
            return DEFAULT_COLOR, DEFAULT_FILL_OPACITY
        return rgba_to_hex_opacity(fill)

    async def set_selected_color(self, color: str) -> Annotation | None:
        return await self.patch_selected_style({"color": color})

    async def set_selected_line_width(self, width: float) -> Annotation | None:
        return await self.patch_selected_style({"lineWidth": clamp_line_width(width)})

    async def set_selected_line_style(self, line_style: str) -> Annotation | None:
        if line_style not in LINE_STYLES:
            raise ValueError(f"Unsupported line style: {line_style}")
        return await self.patch_selected_style({"lineStyle": line_style})

    async def set_selected_fill(
        self, hex_color: str | None = None, opacity: float | None = None
    ) -> Annotation | None:
        """Rebuild ``fillColor`` from a colour and opacity; omitted parts keep their value."""
        current_hex, current_opacity = self.selected_fill()
        fill = hex_to_rgba(
            hex_color if hex_color is not None else current_hex,
            opacity if opacity is not None else current_opacity,
        )
        return await self.patch_selected_style({"fillColor": fill})

    async def set_selected_fibo_levels(self, raw: str) -> Annotation | None:
        return await self.patch_selected_style({"levels": parse_fibo_levels(raw)})

    async def delete_selected(self) -> bool:
        selected_id = self._state.selected_id
        if selected_id is None:
            return False
        await self.store.delete(selected_id)
        self.select(None)
        return True

    def center_on(self, index: int) -> None:
        half = self._settings.follow_half_window
        self._viewport.set_visible_logical_range(index - half, index + half)
        self.redraw()

    # ──────────────────────────────────────────────
    # Replay callbacks
    # ──────────────────────────────────────────────

    def _on_replay_change(self, _state: ReplayState) -> None:
        self.redraw()

    def _on_replay_follow(self, start: float, end: float) -> None:
        self._viewport.set_visible_logical_range(start, end)
        self.redraw()

    def _on_replay_pause(self) -> None:
        self._state = dataclasses.replace(
            self._state, tool=Tool.NONE, pending_point=None, hover_point=None
        )
        self.redraw()

    def _on_replay_reset(self) -> None:
        self.select(None)
