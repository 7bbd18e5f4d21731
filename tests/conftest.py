from __future__ import annotations

import json
from pathlib import Path

import pytest
from shapely.geometry import Polygon, box

from simplemaps.features import GeographyFeature


class PlanarProjection:
    """Equirectangular stand-in: x = lon + 400, y = 200 - lat.

    Points with a latitude above 80 are reported as unprojectable.
    """

    def __call__(self, point):
        lon, lat = point
        if lat > 80:
            return None
        return (lon + 400.0, 200.0 - lat)

    def path_for(self, geometry):
        if geometry is None or geometry.is_empty:
            return ""
        coords = list(geometry.exterior.coords)
        return "M" + "L".join(f"{x + 400},{200 - y}" for x, y in coords) + "Z"


@pytest.fixture
def planar_projection() -> PlanarProjection:
    return PlanarProjection()


@pytest.fixture
def europe_features() -> list[GeographyFeature]:
    return [
        GeographyFeature("FRA", box(-4, 43, 8, 51), {"name": "France", "ISO_A3": "FRA"}, "FRA"),
        GeographyFeature("CZE", box(12, 48, 18, 51), {"name": "Czechia"}, None),
        GeographyFeature("CZ2", box(12, 48, 18, 51), {"NAME": "Czech Republic"}, None),
        GeographyFeature("BRA", box(-70, -30, -40, 0), {"name": "Brazil", "ISO_A3": "BRA"}, "BRA"),
        GeographyFeature("XXX", box(0, 0, 1, 1), {"name": "Atlantis"}, None),
    ]


@pytest.fixture
def triangle() -> Polygon:
    return Polygon([(0, 0), (10, 0), (0, 10)])


SAMPLE_GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "id": "FRA",
            "properties": {"name": "France", "ISO_A3": "FRA"},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-4.0, 43.0], [8.0, 43.0], [8.0, 51.0], [-4.0, 51.0], [-4.0, 43.0]]],
            },
        },
        {
            "type": "Feature",
            "properties": {"name": "Brazil", "ISO_A3": "BRA"},
            "geometry": {
                "type": "Polygon",
                "coordinates": [[[-70.0, -30.0], [-40.0, -30.0], [-40.0, 0.0], [-70.0, 0.0], [-70.0, -30.0]]],
            },
        },
    ],
}


@pytest.fixture
def map_dir(tmp_path: Path) -> Path:
    """A directory holding a small GeoJSON file and a matching map.yaml."""
    (tmp_path / "world.geojson").write_text(json.dumps(SAMPLE_GEOJSON), encoding="utf-8")
    (tmp_path / "values.yaml").write_text("France: 10\nBrazil: 20\n", encoding="utf-8")
    (tmp_path / "map.yaml").write_text(
        "\n".join(
            [
                "viewport: {width: 800, height: 400}",
                "projection: {family: geoEqualEarth}",
                "choropleth: {match_key: name}",
                "graticule: {show: true, step: [30, 30]}",
                "paths:",
                "  geography: world.geojson",
                "  values: values.yaml",
                "  output_svg: out/map.svg",
                "markers:",
                "  - {coordinates: [2.35, 48.86], label: Paris, shape: star}",
                "lines:",
                "  - {from: [2.35, 48.86], to: [-47.9, -15.8], curve: 0.5}",
                "annotations:",
                "  - {coordinates: [2.35, 48.86], text: Paris, dx: -20}",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return tmp_path
