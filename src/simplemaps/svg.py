"""SVG serialization of a scene, with optional PNG conversion."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any
from xml.dom import minidom

from .scene import CircleItem, Layer, MarkerItem, PathItem, Scene, TextItem
from .util import fmt_num
from .zoom import AffineTransform


_LOGGER = logging.getLogger("simplemaps.svg")

SVG_NS = "http://www.w3.org/2000/svg"
LEGEND_SWATCH = 14.0
LEGEND_MARGIN = 10.0


def _attr_value(value: Any) -> str:
    if isinstance(value, float):
        return fmt_num(value)
    return str(value)


class SvgDocument:
    """Thin helper over a minidom document: ``node()`` creates, attaches and sets attributes."""

    def __init__(self, **attrs: Any) -> None:
        impl = minidom.getDOMImplementation("")
        self.doc = impl.createDocument(SVG_NS, "svg", None)
        self.root = self.doc.documentElement
        self.root.setAttribute("xmlns", SVG_NS)
        self.root.setAttribute("version", "1.1")
        self._set(self.root, attrs)

    @staticmethod
    def _set(element: Any, attrs: dict[str, Any]) -> None:
        for name, value in attrs.items():
            if value is None:
                continue
            element.setAttribute(name.replace("_", "-"), _attr_value(value))

    def node(self, name: str, parent: Any | None = None, text: str | None = None, **attrs: Any) -> Any:
        element = self.doc.createElement(name)
        self._set(element, attrs)
        if text is not None:
            element.appendChild(self.doc.createTextNode(text))
        (self.root if parent is None else parent).appendChild(element)
        return element

    def tostring(self, pretty_print: bool = False) -> str:
        if pretty_print:
            return self.doc.toprettyxml(indent="  ")
        return self.doc.toxml()


def render_svg(
    scene: Scene,
    transform: AffineTransform | None = None,
    *,
    background: str | None = None,
    pretty_print: bool = False,
) -> str:
    """Serialize a scene; map layers sit in one group carrying the zoom transform."""
    width, height = scene.width, scene.height
    svg = SvgDocument(
        width=width,
        height=height,
        viewBox=f"0 0 {fmt_num(width)} {fmt_num(height)}",
    )
    if scene.hover_fill:
        svg.node("style", text=f".geographies path:hover {{ fill: {scene.hover_fill}; }}")
    if background is not None:
        svg.node("rect", width=width, height=height, fill=background)

    group = svg.node("g", id="zoom", transform=transform.to_svg() if transform is not None else None)
    for layer in scene.layers:
        _render_layer(svg, group, layer)
    if scene.legend:
        _render_legend(svg, scene)
    return svg.tostring(pretty_print)


def _render_layer(svg: SvgDocument, parent: Any, layer: Layer) -> None:
    group = svg.node("g", parent, **{"class": layer.name})
    for item in layer.items:
        if isinstance(item, PathItem):
            svg.node(
                "path",
                group,
                d=item.d,
                fill=item.fill,
                stroke=item.stroke,
                stroke_width=item.stroke_width,
                opacity=item.opacity,
                stroke_dasharray=item.dasharray,
                data_key=item.key,
            )
        elif isinstance(item, CircleItem):
            svg.node(
                "circle",
                group,
                cx=item.cx,
                cy=item.cy,
                r=item.r,
                fill=item.fill,
                stroke=item.stroke,
                stroke_width=item.stroke_width,
            )
        elif isinstance(item, MarkerItem):
            _render_marker(svg, group, item)
        elif isinstance(item, TextItem):
            svg.node(
                "text",
                group,
                text=item.text,
                x=item.x,
                y=item.y,
                dy=item.dy,
                fill=item.fill,
                font_size=item.font_size,
                font_family="sans-serif",
                text_anchor=item.anchor,
            )
        else:
            raise TypeError(f"Unsupported scene item: {type(item).__name__}")


def _render_marker(svg: SvgDocument, parent: Any, item: MarkerItem) -> None:
    group = svg.node(
        "g",
        parent,
        transform=f"translate({fmt_num(item.x)}, {fmt_num(item.y)})",
        **_data_attributes(item.data),
    )
    if item.d:
        svg.node("path", group, d=item.d, fill=item.fill, stroke=item.stroke, stroke_width=2.0)
    else:
        svg.node("circle", group, r=item.size, fill=item.fill, stroke=item.stroke, stroke_width=2.0)
    if item.label:
        svg.node("title", group, text=item.label)


def _data_attributes(data: Any) -> dict[str, str]:
    attrs = {}
    for key, value in data.items():
        name = re.sub(r"[^a-z0-9]+", "-", str(key).lower()).strip("-")
        if name and value is not None:
            attrs[f"data-{name}"] = str(value)
    return attrs


def _render_legend(svg: SvgDocument, scene: Scene) -> None:
    group = svg.node("g", **{"class": "legend"})
    top = scene.height - LEGEND_MARGIN - LEGEND_SWATCH * len(scene.legend)
    for idx, (lower, upper, color) in enumerate(scene.legend):
        y = top + idx * LEGEND_SWATCH
        svg.node("rect", group, x=LEGEND_MARGIN, y=y, width=LEGEND_SWATCH, height=LEGEND_SWATCH, fill=color)
        svg.node(
            "text",
            group,
            text=f"{lower:g} - {upper:g}",
            x=LEGEND_MARGIN + LEGEND_SWATCH + 4,
            y=y + LEGEND_SWATCH - 3,
            font_size=10.0,
            font_family="sans-serif",
            fill="#333",
        )


def write_svg(path: Path, document: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document, encoding="utf-8")


def write_png(path: Path, document: str, width: int | None = None) -> None:
    """Rasterize an SVG document with cairosvg."""
    cairosvg = _require_cairosvg()
    path.parent.mkdir(parents=True, exist_ok=True)
    cairosvg.svg2png(bytestring=document.encode("utf-8"), write_to=str(path), output_width=width)
    _LOGGER.info("Wrote %s", path)


def _require_cairosvg() -> Any:
    try:
        import cairosvg  # type: ignore[import-untyped]
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("cairosvg is required for PNG output (pip install simplemaps[png])") from exc
    return cairosvg
