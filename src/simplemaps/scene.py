"""Assemble one render pass: projected, styled draw items grouped in layers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .choropleth import fill_for, legend
from .config import MapConfig
from .continents import filter_by_continents
from .features import GeographyFeature
from .paths import annotation_path, line_path, marker_path
from .projection import build_projection
from .provider import Projection, graticule_lines


_LOGGER = logging.getLogger("simplemaps.scene")

LINE_DOT_RADIUS = 3.0
ANNOTATION_DOT_RADIUS = 4.0
DASH_PATTERN = "5,3"
MARKER_STROKE = "#FFFFFF"
MARKER_STROKE_WIDTH = 2.0
ANNOTATION_COLOR = "#FF5533"
ANNOTATION_TEXT_COLOR = "#000"


@dataclass(frozen=True, slots=True)
class PathItem:
    d: str
    fill: str | None = None
    stroke: str | None = None
    stroke_width: float | None = None
    opacity: float | None = None
    dasharray: str | None = None
    key: str | None = None


@dataclass(frozen=True, slots=True)
class CircleItem:
    cx: float
    cy: float
    r: float
    fill: str
    stroke: str | None = None
    stroke_width: float | None = None


@dataclass(frozen=True, slots=True)
class MarkerItem:
    """Symbol drawn at a projected point; ``d`` is empty for circles."""

    x: float
    y: float
    shape: str
    size: float
    d: str
    fill: str
    stroke: str
    label: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TextItem:
    x: float
    y: float
    text: str
    font_size: float
    fill: str
    anchor: str = "middle"
    dy: str | None = None


@dataclass(frozen=True, slots=True)
class Layer:
    name: str
    items: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class Scene:
    width: float
    height: float
    projection: Projection
    layers: tuple[Layer, ...]
    features: tuple[GeographyFeature, ...] = ()
    legend: tuple[tuple[float, float, str], ...] = ()
    skipped: Mapping[str, int] = field(default_factory=dict)
    hover_fill: str | None = None

    def layer(self, name: str) -> Layer | None:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None


def build_scene(
    cfg: MapConfig,
    features: Sequence[GeographyFeature],
    values: Mapping[str, float] | None = None,
    *,
    zoom_scale: float | None = None,
    projection: Projection | None = None,
    continents: Sequence[str] | None = None,
) -> Scene:
    """Project and style everything the config and features describe.

    Items that cannot be projected are skipped one at a time; the counts end
    up in ``Scene.skipped``. ``continents`` replaces the configured continent
    filter when given.
    """
    width, height = cfg.viewport.width, cfg.viewport.height
    proj = projection or build_projection(cfg.projection.family, cfg.projection, width, height)
    value_map = dict(values if values is not None else cfg.values)
    scale = zoom_scale if zoom_scale is not None else cfg.zoom.initial_zoom
    skipped: dict[str, int] = {}

    selected = list(features)
    wanted = list(continents) if continents is not None else list(cfg.continents)
    if wanted:
        selected = filter_by_continents(selected, wanted)
        _LOGGER.info("Continent filter %s kept %d of %d features", wanted, len(selected), len(features))

    layers = [
        _graticule_layer(cfg, proj),
        _geography_layer(cfg, proj, selected, value_map, skipped),
        _line_layer(cfg, proj, skipped),
        _marker_layer(cfg, proj, skipped),
        _annotation_layer(cfg, proj, skipped),
        _label_layer(cfg, proj, selected, scale, skipped),
    ]
    for kind, count in sorted(skipped.items()):
        _LOGGER.info("Skipped %d unprojectable %s", count, kind)

    legend_rows: tuple[tuple[float, float, str], ...] = ()
    if cfg.choropleth is not None and value_map:
        legend_rows = tuple(legend(value_map, cfg.choropleth))

    return Scene(
        width=width,
        height=height,
        projection=proj,
        layers=tuple(layer for layer in layers if layer is not None),
        features=tuple(selected),
        legend=legend_rows,
        skipped=skipped,
        hover_fill=cfg.style.hover_fill,
    )


def _skip(skipped: dict[str, int], kind: str, what: Any) -> None:
    skipped[kind] = skipped.get(kind, 0) + 1
    _LOGGER.debug("Skipping unprojectable %s: %s", kind, what)


def _graticule_layer(cfg: MapConfig, proj: Projection) -> Layer | None:
    spec = cfg.graticule
    if not spec.show:
        return None
    items: list[PathItem] = []
    for line in graticule_lines(spec.step).geoms:
        d = proj.path_for(line)
        if d:
            items.append(
                PathItem(d=d, fill="none", stroke=spec.color, stroke_width=spec.stroke_width, opacity=spec.opacity)
            )
    outline = getattr(proj, "outline_path", None)
    if outline is not None:
        d = outline()
        if d:
            items.append(
                PathItem(
                    d=d,
                    fill="none",
                    stroke=spec.color,
                    stroke_width=spec.stroke_width * 2,
                    opacity=spec.opacity * 0.3,
                )
            )
    return Layer("graticule", tuple(items))


def _geography_layer(
    cfg: MapConfig,
    proj: Projection,
    features: Sequence[GeographyFeature],
    value_map: Mapping[str, float],
    skipped: dict[str, int],
) -> Layer:
    style = cfg.style
    items: list[PathItem] = []
    for feature in features:
        d = proj.path_for(feature.geometry)
        if not d:
            _skip(skipped, "geography", feature.key)
            continue
        fill = style.fill
        if cfg.choropleth is not None:
            # choropleth color wins; a null result keeps the base fill
            fill = fill_for(feature.properties, value_map, cfg.choropleth) or style.fill
        items.append(
            PathItem(d=d, fill=fill, stroke=style.stroke, stroke_width=style.stroke_width, key=feature.key)
        )
    return Layer("geographies", tuple(items))


def _line_layer(cfg: MapConfig, proj: Projection, skipped: dict[str, int]) -> Layer:
    style = cfg.style
    items: list[Any] = []
    for line in cfg.lines:
        d = line_path(proj, line.start, line.end, line.curve)
        if not d:
            _skip(skipped, "line", (line.start, line.end))
            continue
        color = line.color or style.line_color
        items.append(
            PathItem(
                d=d,
                fill="none",
                stroke=color,
                stroke_width=line.stroke_width or style.line_stroke_width,
                dasharray=DASH_PATTERN if line.dashed else None,
            )
        )
        for endpoint in (line.start, line.end):
            projected = proj(endpoint)
            if projected is not None:
                items.append(CircleItem(projected[0], projected[1], LINE_DOT_RADIUS, color))
    return Layer("lines", tuple(items))


def _marker_layer(cfg: MapConfig, proj: Projection, skipped: dict[str, int]) -> Layer:
    style = cfg.style
    items: list[MarkerItem] = []
    for marker in cfg.markers:
        projected = proj(marker.coordinates)
        if projected is None:
            _skip(skipped, "marker", marker.coordinates)
            continue
        size = marker.size or style.marker_size
        items.append(
            MarkerItem(
                x=projected[0],
                y=projected[1],
                shape=marker.shape,
                size=size,
                d=marker_path(marker.shape, size),
                fill=marker.color or style.marker_color,
                stroke=marker.stroke or MARKER_STROKE,
                label=marker.label,
                data=dict(marker.data),
            )
        )
    return Layer("markers", tuple(items))


def _annotation_layer(cfg: MapConfig, proj: Projection, skipped: dict[str, int]) -> Layer:
    items: list[Any] = []
    for annotation in cfg.annotations:
        projected = proj(annotation.coordinates)
        if projected is None:
            _skip(skipped, "annotation", annotation.text)
            continue
        x, y = projected
        color = annotation.color or ANNOTATION_COLOR
        items.append(
            PathItem(
                d=annotation_path(x, y, annotation.dx, annotation.dy, annotation.curve),
                fill="none",
                stroke=color,
                stroke_width=1.0,
            )
        )
        items.append(CircleItem(x, y, ANNOTATION_DOT_RADIUS, color))
        items.append(
            TextItem(
                x=x + annotation.dx,
                y=y + annotation.dy,
                text=annotation.text,
                font_size=annotation.font_size,
                fill=annotation.color or ANNOTATION_TEXT_COLOR,
                anchor="start" if annotation.dx > 0 else "end",
                dy="-5",
            )
        )
    return Layer("annotations", tuple(items))


def _label_layer(
    cfg: MapConfig,
    proj: Projection,
    features: Sequence[GeographyFeature],
    scale: float,
    skipped: dict[str, int],
) -> Layer | None:
    style = cfg.style
    if not style.show_labels or scale < style.label_min_zoom:
        return None
    items: list[TextItem] = []
    for feature in features:
        name = feature.label
        if not name:
            continue
        centroid = feature.centroid()
        projected = proj(centroid) if centroid is not None else None
        if projected is None:
            _skip(skipped, "label", feature.key)
            continue
        items.append(
            TextItem(
                x=projected[0],
                y=projected[1],
                text=name,
                font_size=style.label_font_size,
                fill=style.label_color,
            )
        )
    return Layer("labels", tuple(items))
