from __future__ import annotations

import math
import re

import pytest
from shapely.geometry import LineString, Point, Polygon, box

from simplemaps.provider import (
    FAMILY_DEFINITIONS,
    GeoProjection,
    ProjectionFitError,
    UnsupportedTunableError,
    graticule_lines,
    rotate_point,
)


def test_mercator_fit_fills_box() -> None:
    projection = GeoProjection("geoMercator")
    projection.set_clip_extent(None)
    projection.fit_size(800, 400)
    assert projection.scale > 0
    assert math.isclose(projection.scale, 400 / (2 * math.pi), rel_tol=1e-6)
    tx, ty = projection.translate
    assert math.isclose(tx, 400, abs_tol=1e-6)
    assert math.isclose(ty, 200, abs_tol=1e-6)
    x, y = projection((0, 0))
    assert math.isclose(x, 400, abs_tol=1e-6)
    assert math.isclose(y, 200, abs_tol=1e-6)


def test_equal_earth_fit_keeps_outline_inside_box() -> None:
    projection = GeoProjection("geoEqualEarth")
    projection.fit_size(800, 400)
    east = projection((180, 0))
    north = projection((0, 90))
    south = projection((0, -90))
    assert east[0] <= 800 + 1e-6
    assert north[1] >= -1e-6
    assert south[1] <= 400 + 1e-6
    # wider than tall, so the width is the binding constraint
    assert math.isclose(east[0], 800, abs_tol=1e-3)


def test_north_is_up() -> None:
    projection = GeoProjection("geoEquirectangular")
    projection.set_translate((0, 0))
    projection.set_scale(100)
    x, y = projection((0, 10))
    assert x == pytest.approx(0)
    assert y == pytest.approx(-100 * math.radians(10))


def test_orthographic_far_side_is_unprojectable() -> None:
    projection = GeoProjection("geoOrthographic")
    projection.fit_size(400, 400)
    assert projection((0, 0)) is not None
    assert projection((180, 0)) is None
    assert projection((120, 10)) is None


def test_rotation_brings_point_to_centre() -> None:
    projection = GeoProjection("geoOrthographic")
    projection.set_translate((200, 200))
    projection.set_scale(100)
    projection.set_rotate((-90, 0))
    x, y = projection((90, 0))
    assert x == pytest.approx(200)
    assert y == pytest.approx(200)
    assert projection((-90, 0)) is None


def test_rotate_point() -> None:
    assert rotate_point(10, 20, (0, 0, 0)) == pytest.approx((10, 20))
    assert rotate_point(170, 0, (20, 0, 0)) == pytest.approx((-170, 0))
    lon, lat = rotate_point(0, 0, (0, 90, 0))
    assert lat == pytest.approx(90)


def test_center_shifts_projection_origin() -> None:
    projection = GeoProjection("geoEquirectangular")
    projection.set_translate((0, 0))
    projection.set_scale(1)
    projection.set_center((10, 20))
    x, y = projection((10, 20))
    assert x == pytest.approx(0)
    assert y == pytest.approx(0)


def test_tunable_support_by_family() -> None:
    assert GeoProjection("geoConicConformal").supports("parallels")
    assert not GeoProjection("geoEqualEarth").supports("parallels")
    usa = GeoProjection("geoAlbersUsa")
    assert not usa.supports("rotate")
    with pytest.raises(UnsupportedTunableError):
        usa.set_rotate((0, 0, 0))
    with pytest.raises(UnsupportedTunableError):
        GeoProjection("geoMercator").set_parallels((10, 20))


def test_conic_parallels_change_proj_string() -> None:
    projection = GeoProjection("geoConicEqualArea")
    projection.set_parallels((20, 50))
    assert "+lat_1=20" in projection.proj_string
    assert "+lat_2=50" in projection.proj_string


def test_unknown_family_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown projection family"):
        GeoProjection("geoNope")


def test_fit_size_rejects_empty_box() -> None:
    with pytest.raises(ProjectionFitError):
        GeoProjection("geoEqualEarth").fit_size(0, 400)


def test_mercator_has_automatic_clip_extent_until_cleared() -> None:
    projection = GeoProjection("geoMercator")
    assert projection.clip_extent is not None
    projection.set_clip_extent(None)
    assert projection.clip_extent is None


def test_path_for_polygon_and_mapping() -> None:
    projection = GeoProjection("geoEqualEarth")
    projection.fit_size(800, 400)
    d = projection.path_for(box(-4, 43, 8, 51))
    assert d.startswith("M") and d.endswith("Z")
    same = projection.path_for(
        {"type": "Polygon", "coordinates": [[[-4, 43], [8, 43], [8, 51], [-4, 51], [-4, 43]]]}
    )
    assert same.startswith("M") and same.endswith("Z")
    assert same.count("L") == d.count("L") == 4
    assert projection.path_for(None) == ""


def test_path_splits_at_antimeridian() -> None:
    projection = GeoProjection("geoEqualEarth")
    projection.fit_size(800, 400)
    d = projection.path_for(LineString([(170, 0), (179, 0), (-179, 0), (-170, 0)]))
    assert d.count("M") == 2
    assert "Z" not in d


def test_path_drops_hidden_parts() -> None:
    projection = GeoProjection("geoOrthographic")
    projection.fit_size(400, 400)
    assert projection.path_for(box(170, -10, 179, 10)) == ""
    visible = projection.path_for(Point(0, 0))
    assert visible.startswith("M") and visible.endswith("Z")


def _path_points(d: str) -> list[tuple[float, float]]:
    return [(float(x), float(y)) for x, y in re.findall(r"[ML]\s*(-?[\d.e+-]+),(-?[\d.e+-]+)", d)]


def test_polygon_crossing_horizon_is_closed_along_it() -> None:
    projection = GeoProjection("geoOrthographic")
    projection.fit_size(400, 400)
    d = projection.path_for(box(-120, -10, 60, 10))
    assert d.count("M") == 1
    assert d.endswith("Z")
    xs = [x for x, _ in _path_points(d)]
    # visible band runs from the western horizon to lon 60
    assert min(xs) == pytest.approx(0.0, abs=0.5)
    assert max(xs) == pytest.approx(200 + 200 * math.sin(math.radians(60)), abs=0.5)
    assert len(xs) > 100


def test_polygon_with_hole_keeps_hole_inside_cap() -> None:
    projection = GeoProjection("geoOrthographic")
    projection.fit_size(400, 400)
    ring = box(-120, -40, 60, 40).exterior.coords
    hole = box(-10, -10, 10, 10).exterior.coords
    d = projection.path_for(Polygon(ring, [hole]))
    assert d.count("M") == 2
    assert d.count("Z") == 2


def test_closed_ring_split_at_antimeridian_rejoins_its_seam() -> None:
    projection = GeoProjection("geoEqualEarth")
    projection.fit_size(800, 400)
    ring = Polygon([(176, -10), (178, -10), (-175, -10), (-175, 10), (175, 10), (175, -10), (176, -10)])
    d = projection.path_for(ring)
    assert d.count("M") == 2
    assert "Z" not in d


def test_precision_densifies_paths() -> None:
    projection = GeoProjection("geoEqualEarth")
    projection.fit_size(800, 400)
    coarse = projection.path_for(LineString([(0, 0), (40, 40)]))
    projection.set_precision(1.0)
    fine = projection.path_for(LineString([(0, 0), (40, 40)]))
    assert fine.count("L") > coarse.count("L")


def test_outline_path_closes() -> None:
    projection = GeoProjection("geoOrthographic")
    projection.fit_size(400, 400)
    outline = projection.outline_path()
    assert outline.startswith("M") and outline.endswith("Z")


def test_graticule_line_counts() -> None:
    lines = graticule_lines((10, 10))
    # 36 meridians plus parallels from -80 to 80
    assert len(lines.geoms) == 36 + 17
    assert len(graticule_lines((30, 30)).geoms) == 12 + 5


def test_every_family_fits() -> None:
    for name in FAMILY_DEFINITIONS:
        projection = GeoProjection(name)
        projection.set_clip_extent(None)
        projection.fit_size(800, 400)
        assert projection.scale > 0, name
