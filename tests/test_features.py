from __future__ import annotations

import json

import pytest
from shapely.geometry import GeometryCollection, MultiPolygon, Point, Polygon, box

from simplemaps.features import (
    GeographyFeature,
    feature_key,
    features_from_geojson,
    features_from_records,
    find_feature,
    load_features,
    spherical_centroid,
)


def test_feature_key_precedence() -> None:
    assert feature_key("FRA", {"name": "France"}, 0) == "FRA"
    assert feature_key(7, {}, 0) == "7"
    assert feature_key(None, {"name": "France"}, 3) == "France"
    assert feature_key(None, {"NAME": "Spain"}, 3) == "Spain"
    assert feature_key(None, {}, 4) == "geography-4"
    assert feature_key(None, None, 5) == "geography-5"


def test_features_from_feature_collection(map_dir) -> None:
    payload = json.loads((map_dir / "world.geojson").read_text(encoding="utf-8"))
    features = features_from_geojson(payload)
    assert [feature.key for feature in features] == ["FRA", "Brazil"]
    assert features[0].id == "FRA"
    assert features[1].id is None
    assert features[0].centroid() == pytest.approx((2.0, 47.0))


def test_feature_without_geometry_keeps_positional_keys() -> None:
    payload = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": None, "properties": {}},
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [1, 2]}, "properties": {}},
        ],
    }
    features = features_from_geojson(payload)
    assert [feature.key for feature in features] == ["geography-1"]


def test_single_feature_and_bare_geometry() -> None:
    single = features_from_geojson(
        {"type": "Feature", "id": "P", "geometry": {"type": "Point", "coordinates": [1, 2]}, "properties": None}
    )
    assert single[0].key == "P"
    assert single[0].properties == {}
    bare = features_from_geojson({"type": "Point", "coordinates": [3, 4]})
    assert bare[0].key == "geography-0"
    assert bare[0].centroid() == pytest.approx((3.0, 4.0))


@pytest.mark.parametrize(
    "payload",
    [{}, {"type": "FeatureCollection"}, {"type": "FeatureCollection", "features": [1]}],
)
def test_malformed_geojson_rejected(payload) -> None:
    with pytest.raises(ValueError):
        features_from_geojson(payload)


def test_features_from_records() -> None:
    features = features_from_records([(box(0, 0, 1, 1), {"NAME": "Square"}, None), (Point(0, 0), {}, 9)])
    assert [feature.key for feature in features] == ["Square", "9"]
    assert features[0].label == "Square"
    assert features[1].label is None


def test_empty_geometry_has_no_centroid() -> None:
    assert GeographyFeature("empty", Point(), {}).centroid() is None


def test_centroid_of_parts_split_at_antimeridian() -> None:
    islands = MultiPolygon([box(177, -19, 180, -16), box(-180, -19, -179, -16)])
    lon, lat = GeographyFeature("FJI", islands, {}).centroid()
    # planar centroid would land near lon 88
    assert lon == pytest.approx(179.0, abs=0.05)
    assert lat == pytest.approx(-17.5, abs=0.05)


def test_centroid_of_ring_crossing_antimeridian() -> None:
    ring = Polygon([(178, 0), (-178, 0), (-178, 2), (178, 2)])
    lon, lat = spherical_centroid(ring)
    assert abs(lon) == pytest.approx(180.0, abs=1e-6)
    assert lat == pytest.approx(1.0, abs=0.01)


def test_centroid_ignores_lower_dimension_parts() -> None:
    mixed = GeometryCollection([box(10, 10, 12, 12), Point(-100, -60)])
    assert spherical_centroid(mixed) == pytest.approx((11.0, 11.0), abs=0.01)


def test_load_features_reads_geojson(map_dir) -> None:
    features = load_features(map_dir / "world.geojson")
    assert len(features) == 2
    with pytest.raises(FileNotFoundError):
        load_features(map_dir / "missing.geojson")


def test_load_features_rejects_non_object(tmp_path) -> None:
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_features(path)


def test_find_feature_by_key_or_label(europe_features) -> None:
    assert find_feature(europe_features, "fra").key == "FRA"
    assert find_feature(europe_features, " czech republic ").key == "CZ2"
    assert find_feature(europe_features, "Brazil").key == "BRA"
    assert find_feature(europe_features, "Narnia") is None
