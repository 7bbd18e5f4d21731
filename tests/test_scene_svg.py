from __future__ import annotations

from pathlib import Path
from xml.dom import minidom

import pytest

from simplemaps.config import MapConfig, load_config
from simplemaps.features import load_features
from simplemaps.models import Viewport
from simplemaps.scene import CircleItem, MarkerItem, PathItem, TextItem, build_scene
from simplemaps.svg import SvgDocument, render_svg, write_png, write_svg
from simplemaps.zoom import ZoomComposer


OVERLAYS = {
    "choropleth": {"match_key": "name", "values": {"France": 10, "Brazil": 20}},
    "markers": [
        {"coordinates": [2, 47], "label": "Centre", "shape": "diamond"},
        {"coordinates": [0, 85]},
    ],
    "lines": [
        {"from": [0, 0], "to": [10, 0], "dashed": True},
        {"from": [0, 85], "to": [0, 0]},
    ],
    "annotations": [
        {"coordinates": [2, 47], "text": "Here", "dx": 20},
        {"coordinates": [0, 88], "text": "Pole"},
    ],
    "style": {"show_labels": True, "label_min_zoom": 2},
}


@pytest.fixture
def overlay_scene(planar_projection, europe_features):
    cfg = MapConfig.from_mapping(OVERLAYS)
    return build_scene(cfg, europe_features, zoom_scale=1, projection=planar_projection)


def test_layer_order_and_skips(overlay_scene) -> None:
    assert [layer.name for layer in overlay_scene.layers] == ["geographies", "lines", "markers", "annotations"]
    assert overlay_scene.skipped == {"marker": 1, "line": 1, "annotation": 1}


def test_choropleth_fill_with_base_fallback(overlay_scene) -> None:
    fills = {item.key: item.fill for item in overlay_scene.layer("geographies").items}
    assert fills["FRA"] == "#E3F2FD"
    assert fills["BRA"] == "#1565C0"
    # no value, or no join property: base fill
    assert fills["CZE"] == "#ECEFF1"
    assert fills["CZ2"] == "#ECEFF1"


def test_line_layer_has_dashed_path_and_endpoint_dots(overlay_scene) -> None:
    items = overlay_scene.layer("lines").items
    path, *dots = items
    assert isinstance(path, PathItem)
    assert path.d == "M400,200 L410,200"
    assert path.dasharray == "5,3"
    assert [(dot.cx, dot.cy, dot.r) for dot in dots] == [(400, 200, 3.0), (410, 200, 3.0)]
    assert all(isinstance(dot, CircleItem) for dot in dots)


def test_marker_and_annotation_items(overlay_scene) -> None:
    (marker,) = overlay_scene.layer("markers").items
    assert isinstance(marker, MarkerItem)
    assert (marker.x, marker.y) == (402, 153)
    assert marker.shape == "diamond"
    assert marker.stroke == "#FFFFFF"
    connector, dot, text = overlay_scene.layer("annotations").items
    assert connector.d == "M402,153 L422,123"
    assert dot.r == 4.0
    assert isinstance(text, TextItem)
    assert text.anchor == "start"
    assert (text.x, text.y) == (422, 123)


def test_labels_gated_by_zoom(planar_projection, europe_features) -> None:
    cfg = MapConfig.from_mapping(OVERLAYS)
    zoomed = build_scene(cfg, europe_features, zoom_scale=2, projection=planar_projection)
    labels = zoomed.layer("labels")
    assert labels is not None
    assert {item.text for item in labels.items} == {"France", "Czechia", "Czech Republic", "Brazil", "Atlantis"}


def test_legend_rows(overlay_scene) -> None:
    assert len(overlay_scene.legend) == 5
    lower, upper, color = overlay_scene.legend[0]
    assert (lower, upper, color) == (10.0, 12.0, "#E3F2FD")


def test_continent_filter(planar_projection, europe_features) -> None:
    cfg = MapConfig.from_mapping({"continents": ["South America"]})
    scene = build_scene(cfg, europe_features, projection=planar_projection)
    assert [feature.key for feature in scene.features] == ["BRA"]
    assert [item.key for item in scene.layer("geographies").items] == ["BRA"]


def test_svg_structure(overlay_scene) -> None:
    composer = ZoomComposer(Viewport(800, 400))
    composer.set_zoom(2)
    document = render_svg(overlay_scene, composer.transform, background="#fff")
    root = minidom.parseString(document).documentElement
    assert root.tagName == "svg"
    assert root.getAttribute("viewBox") == "0 0 800 400"

    zoom_group = next(node for node in root.getElementsByTagName("g") if node.getAttribute("id") == "zoom")
    assert zoom_group.getAttribute("transform") == "translate(400, 200) scale(2) translate(-400, -200)"
    classes = [node.getAttribute("class") for node in zoom_group.childNodes]
    assert classes == ["geographies", "lines", "markers", "annotations"]

    keyed = [path.getAttribute("data-key") for path in zoom_group.getElementsByTagName("path") if path.getAttribute("data-key")]
    assert keyed == ["FRA", "CZE", "CZ2", "BRA", "XXX"]
    dashed = [path for path in root.getElementsByTagName("path") if path.getAttribute("stroke-dasharray")]
    assert len(dashed) == 1
    titles = [title.firstChild.data for title in root.getElementsByTagName("title")]
    assert titles == ["Centre"]

    legend = next(node for node in root.getElementsByTagName("g") if node.getAttribute("class") == "legend")
    assert legend.parentNode is root
    assert len(legend.getElementsByTagName("rect")) == 5


def test_svg_document_node_attributes() -> None:
    svg = SvgDocument(width=10.0, height=5.0)
    svg.node("circle", r=2.5, stroke_width=1.0, fill=None)
    document = svg.tostring()
    circle = minidom.parseString(document).getElementsByTagName("circle")[0]
    assert circle.getAttribute("r") == "2.5"
    assert circle.getAttribute("stroke-width") == "1"
    assert not circle.hasAttribute("fill")


def test_real_projection_scene_with_graticule(map_dir: Path, tmp_path: Path) -> None:
    cfg = load_config(map_dir / "map.yaml")
    features = load_features(cfg.paths.geography)
    scene = build_scene(cfg, features, {"France": 10.0, "Brazil": 20.0})
    graticule = scene.layer("graticule")
    assert graticule is not None and graticule.items
    outline = graticule.items[-1]
    assert outline.stroke_width == pytest.approx(1.0)
    assert outline.opacity == pytest.approx(0.15)
    assert len(scene.layer("geographies").items) == 2
    assert len(scene.layer("markers").items) == 1

    out = tmp_path / "nested" / "map.svg"
    write_svg(out, render_svg(scene, pretty_print=True))
    parsed = minidom.parse(str(out))
    assert parsed.documentElement.tagName == "svg"


def test_write_png(overlay_scene, tmp_path: Path) -> None:
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError):
        pytest.skip("cairosvg is not usable here")
    out = tmp_path / "png" / "map.png"
    write_png(out, render_svg(overlay_scene), width=400)
    assert out.read_bytes().startswith(b"\x89PNG")


def test_choropleth_null_color_without_values(planar_projection, europe_features) -> None:
    cfg = MapConfig.from_mapping({"choropleth": {"null_color": "#999999", "values": {}}})
    scene = build_scene(cfg, europe_features, projection=planar_projection)
    fills = {item.fill for item in scene.layer("geographies").items}
    assert fills == {"#999999"}
    assert scene.legend == ()


def test_continents_argument_replaces_configured_filter(planar_projection, europe_features) -> None:
    cfg = MapConfig.from_mapping({"continents": ["South America"]})
    scene = build_scene(cfg, europe_features, projection=planar_projection, continents=["Europe"])
    assert "BRA" not in [feature.key for feature in scene.features]
    assert "FRA" in [feature.key for feature in scene.features]


def test_hover_fill_and_marker_data_reach_the_svg(planar_projection, europe_features) -> None:
    cfg = MapConfig.from_mapping(
        {
            "style": {"hover_fill": "#FFAB00"},
            "markers": [{"coordinates": [2, 47], "data": {"population": 67, "Capital City": "Paris"}}],
        }
    )
    scene = build_scene(cfg, europe_features, projection=planar_projection)
    assert scene.hover_fill == "#FFAB00"
    (marker,) = scene.layer("markers").items
    assert marker.data == {"population": 67, "Capital City": "Paris"}

    root = minidom.parseString(render_svg(scene)).documentElement
    (style,) = root.getElementsByTagName("style")
    assert style.firstChild.data == ".geographies path:hover { fill: #FFAB00; }"
    group = next(node for node in root.getElementsByTagName("g") if node.hasAttribute("data-population"))
    assert group.getAttribute("data-population") == "67"
    assert group.getAttribute("data-capital-city") == "Paris"


def test_no_style_element_without_hover_fill(overlay_scene) -> None:
    root = minidom.parseString(render_svg(overlay_scene)).documentElement
    assert not root.getElementsByTagName("style")
