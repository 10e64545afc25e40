"""Drawing style defaults and color/level parsing helpers."""

import math
import re
from typing import Any

from replay.models import FIB_LEVELS, AnnotationType

DEFAULT_COLOR = "#60a5fa"
DEFAULT_LINE_WIDTH = 2
DEFAULT_FILL_OPACITY = 0.2
MIN_LINE_WIDTH = 1
MAX_LINE_WIDTH = 8
LINE_STYLES = ("solid", "dashed")

_HEX_RE = re.compile(r"^[0-9a-fA-F]{6}$")
_RGBA_RE = re.compile(r"^rgba?\((\d+),(\d+),(\d+)(?:,([0-9.]+))?\)$", re.IGNORECASE)


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def hex_to_rgba(hex_color: str, alpha: float) -> str:
    """``#rrggbb`` + alpha -> ``rgba(r, g, b, a)``; malformed input falls back to the default blue."""
    sanitized = hex_color.replace("#", "")
    if not _HEX_RE.match(sanitized):
        return f"rgba(96, 165, 250, {alpha})"
    r = int(sanitized[0:2], 16)
    g = int(sanitized[2:4], 16)
    b = int(sanitized[4:6], 16)
    return f"rgba({r}, {g}, {b}, {_clamp(alpha, 0, 1)})"


def rgba_to_hex_opacity(value: str) -> tuple[str, float]:
    """Inverse of hex_to_rgba, used to seed the fill editor from a stored style."""
    match = _RGBA_RE.match(re.sub(r"\s+", "", value))
    if not match:
        return DEFAULT_COLOR, DEFAULT_FILL_OPACITY

    r, g, b = (int(_clamp(int(match.group(i)), 0, 255)) for i in (1, 2, 3))
    alpha = float(match.group(4)) if match.group(4) is not None else 1.0
    opacity = _clamp(alpha, 0, 1) if math.isfinite(alpha) else DEFAULT_FILL_OPACITY
    return f"#{r:02x}{g:02x}{b:02x}", opacity


def parse_fibo_levels(raw: str) -> list[float]:
    """Comma-separated levels, de-duplicated and sorted; empty input gives the canonical set."""
    parsed: set[float] = set()
    for part in raw.split(","):
        try:
            value = float(part.strip())
        except ValueError:
            continue
        if math.isfinite(value):
            parsed.add(value)
    if not parsed:
        return list(FIB_LEVELS)
    return sorted(parsed)


def fibo_levels(style: dict[str, Any]) -> list[float]:
    """Levels configured on a fibonacci style, or the canonical set."""
    levels = style.get("levels")
    if not isinstance(levels, list):
        return list(FIB_LEVELS)
    return [
        float(v)
        for v in levels
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
    ]


def clamp_line_width(value: float) -> float:
    if not math.isfinite(value) or value <= 0:
        return MIN_LINE_WIDTH
    return _clamp(value, MIN_LINE_WIDTH, MAX_LINE_WIDTH)


def default_style(annotation_type: AnnotationType) -> dict[str, Any]:
    """Style bag assigned at creation time."""
    style: dict[str, Any] = {
        "color": DEFAULT_COLOR,
        "lineWidth": DEFAULT_LINE_WIDTH,
        "lineStyle": "solid",
    }
    if annotation_type is AnnotationType.RECT:
        style["fillColor"] = hex_to_rgba(DEFAULT_COLOR, DEFAULT_FILL_OPACITY)
    elif annotation_type is AnnotationType.FIBO:
        style["levels"] = list(FIB_LEVELS)
    elif annotation_type is AnnotationType.PRICE_RANGE:
        style["mode"] = "tv"
    elif annotation_type.is_position:
        style["mode"] = "position"
    return style
