"""Stepped value-to-color mapping for choropleth fills."""

from __future__ import annotations

import math
from typing import Any, Mapping

from .models import ChoroplethSpec


def _finite_values(value_map: Mapping[str, float]) -> list[float]:
    return [float(value) for value in value_map.values() if math.isfinite(float(value))]


def value_range(value_map: Mapping[str, float], spec: ChoroplethSpec) -> tuple[float, float] | None:
    """Effective (min, max): explicit bounds win over observed extremes."""
    observed = _finite_values(value_map)
    low = spec.min_value if spec.min_value is not None else (min(observed) if observed else None)
    high = spec.max_value if spec.max_value is not None else (max(observed) if observed else None)
    if low is None or high is None:
        return None
    return (low, high)


def color_for(key: str, value_map: Mapping[str, float], spec: ChoroplethSpec) -> str | None:
    """Pick the color stop for ``value_map[key]``.

    Buckets are discrete: the normalized value selects one of the stops with
    ``floor(t * n)`` clipped to the stop range, no blending between stops.
    """
    if key not in value_map:
        return spec.null_color
    value = float(value_map[key])
    if not math.isfinite(value):
        return spec.null_color
    bounds = value_range(value_map, spec)
    if bounds is None:
        return spec.null_color
    low, high = bounds

    stops = spec.colors
    if high == low:
        return stops[len(stops) // 2]

    t = (value - low) / (high - low)
    index = min(max(math.floor(t * len(stops)), 0), len(stops) - 1)
    return stops[index]


def fill_for(
    properties: Mapping[str, Any],
    value_map: Mapping[str, float],
    spec: ChoroplethSpec,
) -> str | None:
    """Color for a feature, joined on ``spec.match_key``."""
    join_value = properties.get(spec.match_key)
    if join_value is None:
        return spec.null_color
    return color_for(str(join_value), value_map, spec)


def legend(value_map: Mapping[str, float], spec: ChoroplethSpec) -> list[tuple[float, float, str]]:
    """Per-stop ``(lower, upper, color)`` value ranges."""
    bounds = value_range(value_map, spec)
    if bounds is None:
        return []
    low, high = bounds
    count = len(spec.colors)
    width = (high - low) / count
    return [(low + idx * width, low + (idx + 1) * width, color) for idx, color in enumerate(spec.colors)]
