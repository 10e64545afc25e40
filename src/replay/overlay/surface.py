"""Immediate-mode drawing surface the overlay renderer paints onto.

Surface is the seam to whatever actually rasterizes (a browser canvas fed
over a socket, a Qt painter, an image). RecordingSurface keeps the frame
as a list of plain draw commands, which is what the chart session hands
to its front end and what tests assert against.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any

#: Average glyph advance used when no font metrics are available.
_CHAR_WIDTH_PX = 7.0


@dataclass(frozen=True)
class Stroke:
    color: str
    width: float = 1.0
    dash: tuple[float, ...] = ()


@dataclass(frozen=True)
class DrawCommand:
    kind: str
    params: dict[str, Any] = field(default_factory=dict)


class Surface(ABC):
    """Abstract immediate-mode 2D surface in CSS pixels."""

    @abstractmethod
    def clear(self, width: float, height: float) -> None: ...

    @abstractmethod
    def line(self, x1: float, y1: float, x2: float, y2: float, stroke: Stroke) -> None: ...

    @abstractmethod
    def rect(
        self,
        left: float,
        top: float,
        width: float,
        height: float,
        fill: str | None = None,
        stroke: Stroke | None = None,
        radius: float = 0.0,
    ) -> None: ...

    @abstractmethod
    def circle(self, x: float, y: float, radius: float, fill: str) -> None: ...

    @abstractmethod
    def text(self, x: float, y: float, text: str, color: str, font: str = "12px sans-serif") -> None: ...

    def measure_text(self, text: str, font: str = "12px sans-serif") -> float:
        return len(text) * _CHAR_WIDTH_PX


class RecordingSurface(Surface):
    """Surface that records the current frame as DrawCommands."""

    def __init__(self) -> None:
        self.commands: list[DrawCommand] = []
        self.width = 0.0
        self.height = 0.0

    def clear(self, width: float, height: float) -> None:
        self.commands = []
        self.width = width
        self.height = height

    def line(self, x1: float, y1: float, x2: float, y2: float, stroke: Stroke) -> None:
        self.commands.append(
            DrawCommand("line", {"x1": x1, "y1": y1, "x2": x2, "y2": y2, "stroke": asdict(stroke)})
        )

    def rect(
        self,
        left: float,
        top: float,
        width: float,
        height: float,
        fill: str | None = None,
        stroke: Stroke | None = None,
        radius: float = 0.0,
    ) -> None:
        self.commands.append(
            DrawCommand(
                "rect",
                {
                    "left": left,
                    "top": top,
                    "width": width,
                    "height": height,
                    "fill": fill,
                    "stroke": asdict(stroke) if stroke is not None else None,
                    "radius": radius,
                },
            )
        )

    def circle(self, x: float, y: float, radius: float, fill: str) -> None:
        self.commands.append(DrawCommand("circle", {"x": x, "y": y, "radius": radius, "fill": fill}))

    def text(self, x: float, y: float, text: str, color: str, font: str = "12px sans-serif") -> None:
        self.commands.append(
            DrawCommand("text", {"x": x, "y": y, "text": text, "color": color, "font": font})
        )

    def of_kind(self, kind: str) -> list[DrawCommand]:
        return [c for c in self.commands if c.kind == kind]
