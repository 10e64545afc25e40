"""Overlay engine -- annotations, hit-testing and replay over a moving chart viewport."""

from replay.overlay.annotations import AnnotationBackend, AnnotationStore
from replay.overlay.client import ChartApiClient
from replay.overlay.hit_test import HitTester
from replay.overlay.interaction import InteractionState, PositionHandle, Tool
from replay.overlay.mapper import CoordinateMapper
from replay.overlay.renderer import OverlayRenderer, RenderResult
from replay.overlay.replay import ReplayController, ReplayPhase, ReplayState
from replay.overlay.session import ChartSession
from replay.overlay.surface import RecordingSurface, Surface
from replay.overlay.viewport import ChartViewport, LinearViewport

__all__ = [
    "AnnotationBackend",
    "AnnotationStore",
    "ChartApiClient",
    "ChartSession",
    "ChartViewport",
    "CoordinateMapper",
    "HitTester",
    "InteractionState",
    "LinearViewport",
    "OverlayRenderer",
    "PositionHandle",
    "RecordingSurface",
    "RenderResult",
    "ReplayController",
    "ReplayPhase",
    "ReplayState",
    "Surface",
    "Tool",
]
