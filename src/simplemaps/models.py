"""Domain models shared across engine modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence


DEFAULT_CHOROPLETH_COLORS = ("#E3F2FD", "#90CAF9", "#42A5F5", "#1E88E5", "#1565C0")
MARKER_SHAPES = frozenset({"circle", "diamond", "pin", "star"})


def _require_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    return _require_str(value, field_name)


def _number(value: Any, field_name: str) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Expected numeric value for '{field_name}'")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Expected finite numeric value for '{field_name}'")
    return number


def _optional_number(value: Any, field_name: str) -> float | None:
    if value is None:
        return None
    return _number(value, field_name)


def _number_tuple(value: Any, field_name: str, sizes: Sequence[int]) -> tuple[float, ...]:
    if not isinstance(value, (list, tuple)) or len(value) not in sizes:
        expected = " or ".join(str(size) for size in sizes)
        raise ValueError(f"Expected list of {expected} numbers for '{field_name}'")
    return tuple(_number(item, f"{field_name}[{idx}]") for idx, item in enumerate(value))


def _lon_lat(value: Any, field_name: str) -> tuple[float, float]:
    lon, lat = _number_tuple(value, field_name, (2,))
    return (lon, lat)


@dataclass(frozen=True, slots=True)
class Viewport:
    """Logical drawing box in pixels."""

    width: float = 800.0
    height: float = 400.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport size must be positive, got {self.width}x{self.height}")

    @property
    def center(self) -> tuple[float, float]:
        return (self.width / 2, self.height / 2)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> Viewport:
        return cls(
            width=_number(raw.get("width", 800), "viewport.width"),
            height=_number(raw.get("height", 400), "viewport.height"),
        )


@dataclass(frozen=True, slots=True)
class ProjectionSpec:
    """Projection family plus the optional tunables applied on top of it."""

    family: str = "geoEqualEarth"
    rotate: tuple[float, float, float] | None = None
    center: tuple[float, float] | None = None
    scale: float | None = None
    parallels: tuple[float, float] | None = None
    translate: tuple[float, float] | None = None
    precision: float | None = None
    clip_angle: float | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ProjectionSpec:
        rotate_raw = raw.get("rotate")
        rotate: tuple[float, float, float] | None = None
        if rotate_raw is not None:
            values = _number_tuple(rotate_raw, "projection.rotate", (2, 3))
            rotate = (values[0], values[1], values[2] if len(values) == 3 else 0.0)

        def _pair(key: str) -> tuple[float, float] | None:
            value = raw.get(key)
            if value is None:
                return None
            first, second = _number_tuple(value, f"projection.{key}", (2,))
            return (first, second)

        # both spellings show up in hand-written configs
        clip_raw = raw.get("clip_angle", raw.get("clipAngle"))
        return cls(
            family=_require_str(raw.get("family", "geoEqualEarth"), "projection.family"),
            rotate=rotate,
            center=_pair("center"),
            scale=_optional_number(raw.get("scale"), "projection.scale"),
            parallels=_pair("parallels"),
            translate=_pair("translate"),
            precision=_optional_number(raw.get("precision"), "projection.precision"),
            clip_angle=_optional_number(clip_raw, "projection.clip_angle"),
        )


@dataclass(frozen=True, slots=True)
class ChoroplethSpec:
    """Stepped color scale settings for data-driven fills."""

    match_key: str = "name"
    colors: tuple[str, ...] = DEFAULT_CHOROPLETH_COLORS
    min_value: float | None = None
    max_value: float | None = None
    null_color: str | None = None

    def __post_init__(self) -> None:
        if not self.colors:
            raise ValueError("Choropleth colors must contain at least one color stop")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ChoroplethSpec:
        colors_raw = raw.get("colors")
        colors = DEFAULT_CHOROPLETH_COLORS
        if colors_raw is not None:
            if not isinstance(colors_raw, list) or not colors_raw:
                raise ValueError("Expected non-empty list for 'choropleth.colors'")
            colors = tuple(
                _require_str(item, f"choropleth.colors[{idx}]") for idx, item in enumerate(colors_raw)
            )
        return cls(
            match_key=_require_str(raw.get("match_key", "name"), "choropleth.match_key"),
            colors=colors,
            min_value=_optional_number(raw.get("min_value"), "choropleth.min_value"),
            max_value=_optional_number(raw.get("max_value"), "choropleth.max_value"),
            null_color=_optional_str(raw.get("null_color"), "choropleth.null_color"),
        )


@dataclass(frozen=True, slots=True)
class GraticuleSpec:
    show: bool = False
    step: tuple[float, float] = (10.0, 10.0)
    color: str = "#ccc"
    stroke_width: float = 0.5
    opacity: float = 0.5

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> GraticuleSpec:
        show = raw.get("show", False)
        if not isinstance(show, bool):
            raise ValueError("Expected bool for 'graticule.show'")
        step_raw = raw.get("step")
        step = (10.0, 10.0)
        if step_raw is not None:
            step_x, step_y = _number_tuple(step_raw, "graticule.step", (2,))
            if step_x <= 0 or step_y <= 0:
                raise ValueError("graticule.step values must be > 0")
            step = (step_x, step_y)
        return cls(
            show=show,
            step=step,
            color=_require_str(raw.get("color", "#ccc"), "graticule.color"),
            stroke_width=_number(raw.get("stroke_width", 0.5), "graticule.stroke_width"),
            opacity=_number(raw.get("opacity", 0.5), "graticule.opacity"),
        )


@dataclass(frozen=True, slots=True)
class MapStyle:
    fill: str = "#ECEFF1"
    stroke: str = "#607D8B"
    stroke_width: float = 0.5
    hover_fill: str | None = None
    marker_color: str = "#FF5533"
    marker_size: float = 6.0
    line_color: str = "#FF5533"
    line_stroke_width: float = 2.0
    show_labels: bool = False
    label_min_zoom: float = 1.0
    label_font_size: float = 12.0
    label_color: str = "#333"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapStyle:
        defaults = cls()
        show_labels = raw.get("show_labels", defaults.show_labels)
        if not isinstance(show_labels, bool):
            raise ValueError("Expected bool for 'style.show_labels'")
        return cls(
            fill=_require_str(raw.get("fill", defaults.fill), "style.fill"),
            stroke=_require_str(raw.get("stroke", defaults.stroke), "style.stroke"),
            stroke_width=_number(raw.get("stroke_width", defaults.stroke_width), "style.stroke_width"),
            hover_fill=_optional_str(raw.get("hover_fill"), "style.hover_fill"),
            marker_color=_require_str(raw.get("marker_color", defaults.marker_color), "style.marker_color"),
            marker_size=_number(raw.get("marker_size", defaults.marker_size), "style.marker_size"),
            line_color=_require_str(raw.get("line_color", defaults.line_color), "style.line_color"),
            line_stroke_width=_number(
                raw.get("line_stroke_width", defaults.line_stroke_width), "style.line_stroke_width"
            ),
            show_labels=show_labels,
            label_min_zoom=_number(raw.get("label_min_zoom", defaults.label_min_zoom), "style.label_min_zoom"),
            label_font_size=_number(
                raw.get("label_font_size", defaults.label_font_size), "style.label_font_size"
            ),
            label_color=_require_str(raw.get("label_color", defaults.label_color), "style.label_color"),
        )


@dataclass(frozen=True, slots=True)
class MapMarker:
    """Point symbol placed at a lon/lat coordinate."""

    coordinates: tuple[float, float]
    label: str | None = None
    color: str | None = None
    stroke: str | None = None
    size: float | None = None
    shape: str = "circle"
    data: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapMarker:
        shape = _require_str(raw.get("shape", "circle"), "marker.shape").casefold()
        if shape not in MARKER_SHAPES:
            raise ValueError(
                "marker.shape must be one of: " + ", ".join(sorted(MARKER_SHAPES))
            )
        data = raw.get("data") or {}
        if not isinstance(data, Mapping):
            raise ValueError("Expected mapping for 'marker.data'")
        return cls(
            coordinates=_lon_lat(raw.get("coordinates"), "marker.coordinates"),
            label=_optional_str(raw.get("label"), "marker.label"),
            color=_optional_str(raw.get("color"), "marker.color"),
            stroke=_optional_str(raw.get("stroke"), "marker.stroke"),
            size=_optional_number(raw.get("size"), "marker.size"),
            shape=shape,
            data=dict(data),
        )


@dataclass(frozen=True, slots=True)
class MapLine:
    """Connector between two lon/lat coordinates, optionally bowed."""

    start: tuple[float, float]
    end: tuple[float, float]
    color: str | None = None
    stroke_width: float | None = None
    curve: float = 0.0
    dashed: bool = False

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapLine:
        dashed = raw.get("dashed", False)
        if not isinstance(dashed, bool):
            raise ValueError("Expected bool for 'line.dashed'")
        return cls(
            start=_lon_lat(raw.get("from"), "line.from"),
            end=_lon_lat(raw.get("to"), "line.to"),
            color=_optional_str(raw.get("color"), "line.color"),
            stroke_width=_optional_number(raw.get("stroke_width"), "line.stroke_width"),
            curve=_number(raw.get("curve", 0), "line.curve"),
            dashed=dashed,
        )


@dataclass(frozen=True, slots=True)
class MapAnnotation:
    """Text label offset from a subject point with a connector."""

    coordinates: tuple[float, float]
    text: str
    dx: float = 30.0
    dy: float = -30.0
    curve: float = 0.0
    color: str | None = None
    font_size: float = 14.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> MapAnnotation:
        return cls(
            coordinates=_lon_lat(raw.get("coordinates"), "annotation.coordinates"),
            text=_require_str(raw.get("text"), "annotation.text"),
            dx=_number(raw.get("dx", 30), "annotation.dx"),
            dy=_number(raw.get("dy", -30), "annotation.dy"),
            curve=_number(raw.get("curve", 0), "annotation.curve"),
            color=_optional_str(raw.get("color"), "annotation.color"),
            font_size=_number(raw.get("font_size", 14), "annotation.font_size"),
        )
