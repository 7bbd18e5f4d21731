"""Path strings for connector lines, annotation leaders and marker symbols."""

from __future__ import annotations

import math
from typing import Callable, Sequence

from .util import fmt_num, fmt_point


ProjectFn = Callable[[Sequence[float]], tuple[float, float] | None]

# Control point offset as a share of the segment length at curve == 1.
LINE_CURVE_FACTOR = 0.3


def line_path(
    project: ProjectFn,
    start: Sequence[float],
    end: Sequence[float],
    curve: float = 0.0,
) -> str:
    """Straight or bowed path between two lon/lat points.

    Returns an empty string when either endpoint does not project. The bow
    offset scales with the projected segment length, so short and long
    connections curve proportionally.
    """
    start_xy = project(start)
    end_xy = project(end)
    if start_xy is None or end_xy is None:
        return ""

    x1, y1 = start_xy
    x2, y2 = end_xy
    if curve == 0:
        return f"M{fmt_point(x1, y1)} L{fmt_point(x2, y2)}"

    mid_x = (x1 + x2) / 2
    mid_y = (y1 + y2) / 2
    dx = x2 - x1
    dy = y2 - y1
    dist = math.hypot(dx, dy)
    if dist == 0:
        perp_x = perp_y = 0.0
    else:
        perp_x = -dy / dist
        perp_y = dx / dist

    offset = dist * curve * LINE_CURVE_FACTOR
    ctrl_x = mid_x + perp_x * offset
    ctrl_y = mid_y + perp_y * offset
    return f"M{fmt_point(x1, y1)} Q{fmt_point(ctrl_x, ctrl_y)} {fmt_point(x2, y2)}"


def annotation_path(x: float, y: float, dx: float, dy: float, curve: float = 0.0) -> str:
    """Leader from a subject point to its label offset, in screen space.

    The control point ``(x + dx*curve, y + dy*(1-curve))`` gives a hook shape
    and is deliberately not the perpendicular offset used by ``line_path``.
    """
    end_x = x + dx
    end_y = y + dy
    if curve <= 0:
        return f"M{fmt_point(x, y)} L{fmt_point(end_x, end_y)}"
    ctrl_x = x + dx * curve
    ctrl_y = y + dy * (1 - curve)
    return f"M{fmt_point(x, y)} Q{fmt_point(ctrl_x, ctrl_y)} {fmt_point(end_x, end_y)}"


def marker_path(shape: str, size: float) -> str:
    """Symbol outline centred on the origin; empty for circles."""
    if shape == "diamond":
        return (
            f"M0,{fmt_num(-size)} L{fmt_num(size * 0.7)},0 "
            f"L0,{fmt_num(size)} L{fmt_num(-size * 0.7)},0 Z"
        )
    if shape == "pin":
        pin_h = size * 2.5
        edge = size * 1.2
        return (
            f"M0,{fmt_num(-pin_h)} "
            f"C{fmt_point(-size, -pin_h)} {fmt_point(-edge, -pin_h * 0.6)} {fmt_point(-edge, -pin_h * 0.4)} "
            f"C{fmt_point(-edge, -pin_h * 0.2)} 0,0 0,0 "
            f"C0,0 {fmt_point(edge, -pin_h * 0.2)} {fmt_point(edge, -pin_h * 0.4)} "
            f"C{fmt_point(edge, -pin_h * 0.6)} {fmt_point(size, -pin_h)} 0,{fmt_num(-pin_h)} Z"
        )
    if shape == "star":
        points = 5
        inner = size * 0.4
        parts: list[str] = []
        for idx in range(points * 2):
            radius = size if idx % 2 == 0 else inner
            angle = (math.pi / points) * idx - math.pi / 2
            command = "M" if idx == 0 else "L"
            parts.append(f"{command}{fmt_point(radius * math.cos(angle), radius * math.sin(angle))}")
        return "".join(parts) + "Z"
    return ""
