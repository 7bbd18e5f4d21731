"""Default projection provider backed by pyproj and shapely.

Raw planar math for every family is delegated to PROJ on a unit sphere.
This module only adds the screen-space conventions the engine relies on:
spherical rotation, a small-circle clip around the rotated origin, re-centering,
scale and translate (y grows downward), sphere fitting, and SVG path output.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Mapping, Protocol, Sequence

from pyproj import CRS, Transformer
from shapely import segmentize
from shapely.geometry import LineString, MultiLineString, Point, Polygon, box, shape

from .util import fmt_num, fmt_point


_LOGGER = logging.getLogger("simplemaps.provider")

_SOURCE_CRS = "+proj=longlat +R=1 +no_defs +type=crs"
_MERCATOR_MAX_LAT = math.degrees(2 * math.atan(math.exp(math.pi)) - math.pi / 2)
_POINT_RADIUS = 4.5
_CLIP_EPSILON = 1e-9
_FIT_REFERENCE_SCALE = 150.0
_CAP_STEP = 1.0
_CAP_QUAD_SEGS = 90

BASE_TUNABLES = frozenset({"rotate", "center", "precision", "clip_angle", "clip_extent"})
CONIC_TUNABLES = BASE_TUNABLES | {"parallels"}


class ProjectionFitError(RuntimeError):
    """The projection cannot size itself to the requested box."""


class UnsupportedTunableError(ValueError):
    """A tunable was set on a family that does not have it."""


class Projection(Protocol):
    """What the configurator needs from a projection provider."""

    def supports(self, tunable: str) -> bool: ...

    def set_rotate(self, rotate: Sequence[float]) -> None: ...

    def set_center(self, center: Sequence[float]) -> None: ...

    def set_translate(self, translate: Sequence[float]) -> None: ...

    def set_scale(self, scale: float) -> None: ...

    def set_parallels(self, parallels: Sequence[float]) -> None: ...

    def set_precision(self, precision: float) -> None: ...

    def set_clip_angle(self, angle: float | None) -> None: ...

    def set_clip_extent(self, extent: Sequence[Sequence[float]] | None) -> None: ...

    def fit_size(self, width: float, height: float) -> None: ...

    def __call__(self, point: Sequence[float]) -> tuple[float, float] | None: ...

    def path_for(self, geometry: Any) -> str: ...


@dataclass(frozen=True, slots=True)
class FamilyDefinition:
    """PROJ id plus the presets a family starts from."""

    name: str
    proj: str
    tunables: frozenset[str] = BASE_TUNABLES
    rotate: tuple[float, float, float] = (0.0, 0.0, 0.0)
    center: tuple[float, float] = (0.0, 0.0)
    parallels: tuple[float, float] | None = None
    clip_angle: float | None = None
    max_lat: float | None = None
    auto_clip_extent: bool = False


FAMILY_DEFINITIONS: dict[str, FamilyDefinition] = {
    definition.name: definition
    for definition in (
        FamilyDefinition("geoEqualEarth", "eqearth"),
        FamilyDefinition(
            "geoAlbers",
            "aea",
            tunables=CONIC_TUNABLES,
            rotate=(96.0, 0.0, 0.0),
            center=(-0.6, 38.7),
            parallels=(29.5, 45.5),
        ),
        FamilyDefinition(
            "geoAlbersUsa",
            "aea",
            tunables=frozenset({"precision", "clip_extent"}),
            rotate=(96.0, 0.0, 0.0),
            center=(-0.6, 38.7),
            parallels=(29.5, 45.5),
        ),
        FamilyDefinition("geoAzimuthalEqualArea", "laea", clip_angle=179.999),
        FamilyDefinition("geoAzimuthalEquidistant", "aeqd", clip_angle=179.999),
        FamilyDefinition("geoConicConformal", "lcc", tunables=CONIC_TUNABLES, parallels=(30.0, 30.0)),
        FamilyDefinition(
            "geoConicEqualArea",
            "aea",
            tunables=CONIC_TUNABLES,
            center=(0.0, 33.6442),
            parallels=(0.0, 60.0),
        ),
        FamilyDefinition(
            "geoConicEquidistant",
            "eqdc",
            tunables=CONIC_TUNABLES,
            center=(0.0, 13.9389),
            parallels=(0.0, 60.0),
        ),
        FamilyDefinition("geoEquirectangular", "eqc"),
        FamilyDefinition("geoGnomonic", "gnom", clip_angle=60.0),
        FamilyDefinition("geoMercator", "merc", max_lat=_MERCATOR_MAX_LAT, auto_clip_extent=True),
        FamilyDefinition("geoNaturalEarth1", "natearth"),
        FamilyDefinition("geoOrthographic", "ortho", clip_angle=90.0),
        FamilyDefinition("geoStereographic", "stere", clip_angle=142.0),
        FamilyDefinition("geoTransverseMercator", "tmerc"),
    )
}


@lru_cache(maxsize=64)
def _raw_transformer(proj_string: str) -> Transformer:
    return Transformer.from_crs(CRS.from_proj4(_SOURCE_CRS), CRS.from_proj4(proj_string), always_xy=True)


def rotate_point(
    lon: float,
    lat: float,
    rotate: Sequence[float],
) -> tuple[float, float]:
    """Rotate a lon/lat point by (lambda, phi, gamma) degrees."""
    d_lambda, d_phi, d_gamma = (math.radians(value) for value in rotate)
    lam = math.radians(lon) + d_lambda
    # wrap into [-pi, pi]
    if lam > math.pi:
        lam -= 2 * math.pi
    elif lam < -math.pi:
        lam += 2 * math.pi
    phi = math.radians(lat)
    if d_phi == 0 and d_gamma == 0:
        return (math.degrees(lam), math.degrees(phi))

    cos_dphi, sin_dphi = math.cos(d_phi), math.sin(d_phi)
    cos_dgamma, sin_dgamma = math.cos(d_gamma), math.sin(d_gamma)
    cos_phi = math.cos(phi)
    x = math.cos(lam) * cos_phi
    y = math.sin(lam) * cos_phi
    z = math.sin(phi)
    k = z * cos_dphi + x * sin_dphi
    out_lam = math.atan2(y * cos_dgamma - k * sin_dgamma, x * cos_dphi - z * sin_dphi)
    out_phi = math.asin(max(-1.0, min(1.0, k * cos_dgamma + y * sin_dgamma)))
    return (math.degrees(out_lam), math.degrees(out_phi))


def _destination(distance_deg: float, bearing_deg: float) -> tuple[float, float]:
    """Point at an angular distance and bearing from (0, 0)."""
    c = math.radians(distance_deg)
    b = math.radians(bearing_deg)
    lat = math.asin(max(-1.0, min(1.0, math.sin(c) * math.cos(b))))
    lon = math.atan2(math.sin(b) * math.sin(c), math.cos(c))
    return (math.degrees(lon), math.degrees(lat))


def _to_cap_plane(lon: float, lat: float) -> tuple[float, float]:
    """Azimuthal equidistant plane around (0, 0), in degrees of arc."""
    lam, phi = math.radians(lon), math.radians(lat)
    c = math.degrees(math.acos(max(-1.0, min(1.0, math.cos(phi) * math.cos(lam)))))
    bearing = math.atan2(math.sin(lam) * math.cos(phi), math.sin(phi))
    return (c * math.sin(bearing), c * math.cos(bearing))


def _from_cap_plane(x: float, y: float) -> tuple[float, float]:
    return _destination(math.hypot(x, y), math.degrees(math.atan2(x, y)))


def _frange(start: float, stop: float, step: float) -> list[float]:
    count = int(math.floor((stop - start) / step + 1e-9))
    values = [start + idx * step for idx in range(count + 1)]
    if values[-1] < stop:
        values.append(stop)
    return values


class GeoProjection:
    """One configured projection: callable on lon/lat, renders SVG paths."""

    def __init__(self, family: str | FamilyDefinition) -> None:
        definition = family if isinstance(family, FamilyDefinition) else FAMILY_DEFINITIONS.get(family)
        if definition is None:
            raise ValueError(f"Unknown projection family: {family}")
        self.family = definition
        self._rotate = definition.rotate
        self._center = definition.center
        self._parallels = definition.parallels
        self._clip_angle = definition.clip_angle
        self._precision: float | None = None
        self._scale = _FIT_REFERENCE_SCALE
        self._translate = (480.0, 250.0)
        self._clip_extent: tuple[tuple[float, float], tuple[float, float]] | None = None
        self._auto_clip_extent = definition.auto_clip_extent
        self._center_raw = (0.0, 0.0)
        self._recenter()

    # -- tunables -----------------------------------------------------------

    def supports(self, tunable: str) -> bool:
        return tunable in self.family.tunables

    def _require(self, tunable: str) -> None:
        if not self.supports(tunable):
            raise UnsupportedTunableError(f"{self.family.name} does not support '{tunable}'")

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def translate(self) -> tuple[float, float]:
        return self._translate

    @property
    def rotate(self) -> tuple[float, float, float]:
        return self._rotate

    @property
    def clip_angle(self) -> float | None:
        return self._clip_angle

    @property
    def clip_extent(self) -> tuple[tuple[float, float], tuple[float, float]] | None:
        if self._clip_extent is not None:
            return self._clip_extent
        if self._auto_clip_extent:
            k = math.pi * self._scale
            tx, ty = self._translate
            return ((tx - k, ty - k), (tx + k, ty + k))
        return None

    def set_rotate(self, rotate: Sequence[float]) -> None:
        self._require("rotate")
        values = [float(value) for value in rotate]
        if len(values) == 2:
            values.append(0.0)
        if len(values) != 3:
            raise ValueError("rotate expects 2 or 3 angles")
        self._rotate = (values[0], values[1], values[2])

    def set_center(self, center: Sequence[float]) -> None:
        self._require("center")
        lon, lat = (float(value) for value in center)
        self._center = (lon, lat)
        self._recenter()

    def set_translate(self, translate: Sequence[float]) -> None:
        tx, ty = (float(value) for value in translate)
        self._translate = (tx, ty)

    def set_scale(self, scale: float) -> None:
        if not math.isfinite(scale) or scale <= 0:
            raise ValueError(f"scale must be a positive number, got {scale!r}")
        self._scale = float(scale)

    def set_parallels(self, parallels: Sequence[float]) -> None:
        self._require("parallels")
        first, second = (float(value) for value in parallels)
        self._parallels = (first, second)
        self._recenter()

    def set_precision(self, precision: float) -> None:
        self._require("precision")
        self._precision = float(precision) if precision > 0 else None

    def set_clip_angle(self, angle: float | None) -> None:
        self._require("clip_angle")
        self._clip_angle = None if angle is None or angle <= 0 else float(angle)

    def set_clip_extent(self, extent: Sequence[Sequence[float]] | None) -> None:
        self._require("clip_extent")
        # an explicit call replaces the family's automatic extent, including with None
        self._auto_clip_extent = False
        if extent is None:
            self._clip_extent = None
            return
        (x0, y0), (x1, y1) = extent
        self._clip_extent = ((float(x0), float(y0)), (float(x1), float(y1)))

    # -- raw projection -----------------------------------------------------

    @property
    def proj_string(self) -> str:
        parts = [f"+proj={self.family.proj}", "+R=1", "+lon_0=0"]
        if self._parallels is not None:
            parts.extend(
                [f"+lat_1={fmt_num(self._parallels[0])}", f"+lat_2={fmt_num(self._parallels[1])}", "+lat_0=0"]
            )
        parts.extend(["+no_defs", "+type=crs"])
        return " ".join(parts)

    def _raw_many(self, lons: Sequence[float], lats: Sequence[float]) -> list[tuple[float, float] | None]:
        if not lons:
            return []
        xs, ys = _raw_transformer(self.proj_string).transform(list(lons), list(lats))
        out: list[tuple[float, float] | None] = []
        for x, y in zip(xs, ys):
            x = float(x)
            y = float(y)
            out.append((x, y) if math.isfinite(x) and math.isfinite(y) else None)
        return out

    def _recenter(self) -> None:
        raw = self._raw_many([self._center[0]], [self._center[1]])[0]
        self._center_raw = raw if raw is not None else (0.0, 0.0)

    def _visible(self, lon_r: float, lat_r: float) -> bool:
        if self._clip_angle is None:
            return True
        cos_c = math.cos(math.radians(lat_r)) * math.cos(math.radians(lon_r))
        return cos_c >= math.cos(math.radians(self._clip_angle)) - _CLIP_EPSILON

    def _to_screen(self, raw: tuple[float, float]) -> tuple[float, float]:
        tx, ty = self._translate
        return (
            tx + self._scale * (raw[0] - self._center_raw[0]),
            ty - self._scale * (raw[1] - self._center_raw[1]),
        )

    def _project_rotated(self, points: Sequence[tuple[float, float]]) -> list[tuple[float, float] | None]:
        """Project points already expressed in the rotated frame."""
        keep = [idx for idx, (lon_r, lat_r) in enumerate(points) if self._visible(lon_r, lat_r)]
        raw = self._raw_many([points[idx][0] for idx in keep], [points[idx][1] for idx in keep])
        out: list[tuple[float, float] | None] = [None] * len(points)
        for idx, raw_point in zip(keep, raw):
            if raw_point is not None:
                out[idx] = self._to_screen(raw_point)
        return out

    def project_many(self, points: Iterable[Sequence[float]]) -> list[tuple[float, float] | None]:
        rotated: list[tuple[float, float]] = []
        for point in points:
            lon, lat = float(point[0]), float(point[1])
            if not (math.isfinite(lon) and math.isfinite(lat)):
                # NaN stays invisible through the clip test and PROJ
                rotated.append((math.nan, math.nan))
                continue
            rotated.append(rotate_point(lon, lat, self._rotate))
        return self._project_rotated(rotated)

    def __call__(self, point: Sequence[float]) -> tuple[float, float] | None:
        if point is None or len(point) < 2:
            return None
        return self.project_many([point])[0]

    project = __call__

    # -- fitting ------------------------------------------------------------

    def _sphere_samples(self) -> list[tuple[float, float]]:
        limit = self.family.max_lat or 90.0
        samples = [
            (lon, lat)
            for lon in _frange(-180.0, 180.0, 2.0)
            for lat in _frange(-limit, limit, 2.0)
        ]
        samples.extend(self._outline_ring())
        return samples

    def _outline_ring(self) -> list[tuple[float, float]]:
        if self._clip_angle is not None and self._clip_angle < 180.0:
            return [_destination(self._clip_angle, bearing) for bearing in _frange(0.0, 360.0, 0.5)]
        limit = self.family.max_lat or 90.0
        ring = [(-180.0, lat) for lat in _frange(-limit, limit, 0.5)]
        ring.extend((lon, limit) for lon in _frange(-180.0, 180.0, 0.5))
        ring.extend((180.0, lat) for lat in reversed(_frange(-limit, limit, 0.5)))
        ring.extend((lon, -limit) for lon in reversed(_frange(-180.0, 180.0, 0.5)))
        return ring

    def fit_size(self, width: float, height: float) -> None:
        """Scale and translate so the sphere outline fills ``width`` x ``height``."""
        if width <= 0 or height <= 0:
            raise ProjectionFitError(f"Cannot fit into a {width}x{height} box")
        saved = (self._scale, self._translate)
        self._scale = _FIT_REFERENCE_SCALE
        self._translate = (0.0, 0.0)
        try:
            projected = [point for point in self._project_rotated(self._sphere_samples()) if point is not None]
        finally:
            self._scale, self._translate = saved
        if not projected:
            raise ProjectionFitError(f"{self.family.name} sphere outline does not project")
        xs = [point[0] for point in projected]
        ys = [point[1] for point in projected]
        x0, x1, y0, y1 = min(xs), max(xs), min(ys), max(ys)
        span_x, span_y = x1 - x0, y1 - y0
        if not (math.isfinite(span_x) and math.isfinite(span_y)) or span_x <= 0 or span_y <= 0:
            raise ProjectionFitError(f"{self.family.name} sphere outline has degenerate bounds")

        k = min(width / span_x, height / span_y)
        self._scale = _FIT_REFERENCE_SCALE * k
        self._translate = ((width - k * (x1 + x0)) / 2, (height - k * (y1 + y0)) / 2)
        _LOGGER.debug(
            "Fitted %s to %sx%s: scale=%.4f translate=%s",
            self.family.name,
            width,
            height,
            self._scale,
            self._translate,
        )

    # -- paths --------------------------------------------------------------

    def path_for(self, geometry: Any) -> str:
        """SVG path data for shapely geometry or a GeoJSON geometry mapping."""
        if geometry is None:
            return ""
        if isinstance(geometry, Mapping):
            if geometry.get("type") == "Feature":
                geometry = geometry.get("geometry")
                if geometry is None:
                    return ""
            geometry = shape(geometry)
        if geometry.is_empty:
            return ""
        if self._precision is not None:
            geometry = segmentize(geometry, max_segment_length=self._precision)
        return "".join(self._geometry_parts(geometry))

    def _geometry_parts(self, geometry: Any) -> list[str]:
        geom_type = geometry.geom_type
        if geom_type == "Point":
            return self._point_parts([geometry])
        if geom_type == "MultiPoint":
            return self._point_parts(list(geometry.geoms))
        if geom_type == "LineString":
            return self._run_parts(list(geometry.coords), closed=False)
        if geom_type == "LinearRing":
            return self._run_parts(list(geometry.coords), closed=True)
        if geom_type == "Polygon":
            return self._polygon_parts(geometry)
        if geom_type in {"MultiLineString", "MultiPolygon", "GeometryCollection"}:
            parts: list[str] = []
            for part in geometry.geoms:
                parts.extend(self._geometry_parts(part))
            return parts
        _LOGGER.debug("Unsupported geometry type for path rendering: %s", geom_type)
        return []

    def _point_parts(self, points: Sequence[Any]) -> list[str]:
        parts: list[str] = []
        r = _POINT_RADIUS
        for projected in self.project_many([(point.x, point.y) for point in points]):
            if projected is None:
                continue
            x, y = projected
            parts.append(
                f"M{fmt_point(x, y - r)}a{fmt_num(r)},{fmt_num(r)} 0 1,1 0,{fmt_num(2 * r)}"
                f"a{fmt_num(r)},{fmt_num(r)} 0 1,1 0,{fmt_num(-2 * r)}Z"
            )
        return parts

    def _polygon_parts(self, polygon: Any) -> list[str]:
        rings = [polygon.exterior, *polygon.interiors]
        if self._clip_angle is None or all(self._ring_visible(ring.coords) for ring in rings):
            parts: list[str] = []
            for ring in rings:
                parts.extend(self._run_parts(list(ring.coords), closed=True))
            return parts
        return self._cap_parts(polygon)

    def _ring_visible(self, coords: Iterable[Sequence[float]]) -> bool:
        return all(self._visible(*rotate_point(float(point[0]), float(point[1]), self._rotate)) for point in coords)

    def _cap_parts(self, polygon: Any) -> list[str]:
        """Clip a polygon to the visible cap and close it along the horizon.

        Rings are mapped to an azimuthal equidistant plane around the rotated
        origin. The cap is a disk there, so the clip is a planar intersection
        and the cut edges follow the horizon circle.
        """
        plane = Polygon(
            self._cap_plane_ring(polygon.exterior.coords),
            [self._cap_plane_ring(ring.coords) for ring in polygon.interiors],
        )
        if not plane.is_valid:
            plane = plane.buffer(0)
        cap = Point(0.0, 0.0).buffer(self._clip_angle, quad_segs=_CAP_QUAD_SEGS)
        parts: list[str] = []
        for piece in _polygons(plane.intersection(cap)):
            for ring in [piece.exterior, *piece.interiors]:
                rotated = [_from_cap_plane(x, y) for x, y in ring.coords]
                parts.extend(self._emit_runs(self._project_rotated(rotated), closed=True))
        return parts

    def _cap_plane_ring(self, coords: Iterable[Sequence[float]]) -> list[tuple[float, float]]:
        rotated: list[tuple[float, float]] = []
        for point in coords:
            lon, lat = rotate_point(float(point[0]), float(point[1]), self._rotate)
            if rotated:
                # unwrap so densifying never takes the long way round
                lon += 360.0 * round((rotated[-1][0] - lon) / 360.0)
            rotated.append((lon, lat))
        dense = segmentize(LineString(rotated), max_segment_length=_CAP_STEP)
        return [_to_cap_plane(lon, lat) for lon, lat in dense.coords]

    def _run_parts(self, coords: Sequence[Sequence[float]], *, closed: bool) -> list[str]:
        return self._emit_runs(self.project_many(coords), closed=closed)

    def _emit_runs(self, projected: Sequence[tuple[float, float] | None], *, closed: bool) -> list[str]:
        runs = self._split_runs(projected)
        whole = closed and len(runs) == 1 and len(runs[0]) == len(projected)
        if closed and not whole and len(runs) > 1 and projected[0] is not None and runs[0][0] == runs[-1][-1]:
            # the ring's seam is visible: its last run continues into the first
            runs = [runs[-1] + runs[0][1:], *runs[1:-1]]
        parts: list[str] = []
        for run in self._clip_runs(runs, closed=whole):
            if len(run) < 2:
                continue
            text = "M" + "L".join(fmt_point(x, y) for x, y in run)
            parts.append(text + "Z" if whole else text)
        return parts

    def _split_runs(self, projected: Sequence[tuple[float, float] | None]) -> list[list[tuple[float, float]]]:
        """Break a projected ring at invisible points and antimeridian jumps."""
        threshold = self._scale * math.pi / 2
        runs: list[list[tuple[float, float]]] = []
        current: list[tuple[float, float]] = []
        for point in projected:
            if point is None:
                if current:
                    runs.append(current)
                current = []
                continue
            if current and math.hypot(point[0] - current[-1][0], point[1] - current[-1][1]) > threshold:
                runs.append(current)
                current = []
            current.append(point)
        if current:
            runs.append(current)
        return [run for run in runs if len(run) >= 2]

    def _clip_runs(
        self,
        runs: list[list[tuple[float, float]]],
        *,
        closed: bool,
    ) -> list[list[tuple[float, float]]]:
        extent = self.clip_extent
        if extent is None:
            return runs
        (x0, y0), (x1, y1) = extent
        window = box(min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))
        clipped: list[list[tuple[float, float]]] = []
        for run in runs:
            if closed and len(run) >= 4:
                result = Polygon(run).buffer(0).intersection(window)
                rings = [list(poly.exterior.coords) for poly in _polygons(result)]
            else:
                result = LineString(run).intersection(window)
                rings = [list(line.coords) for line in _lines(result)]
            clipped.extend([[(float(x), float(y)) for x, y in ring] for ring in rings])
        return clipped

    # -- reference geometry -------------------------------------------------

    def outline_path(self) -> str:
        """Path of the visible sphere outline."""
        ring = self._outline_ring()
        projected = self._project_rotated(ring)
        points = [point for point in projected if point is not None]
        if len(points) < 3:
            return ""
        return "M" + "L".join(fmt_point(x, y) for x, y in points) + "Z"


def _polygons(geometry: Any) -> list[Any]:
    if geometry.is_empty:
        return []
    if geometry.geom_type == "Polygon":
        return [geometry]
    if hasattr(geometry, "geoms"):
        return [part for item in geometry.geoms for part in _polygons(item)]
    return []


def _lines(geometry: Any) -> list[Any]:
    if geometry.is_empty:
        return []
    if geometry.geom_type == "LineString":
        return [geometry]
    if hasattr(geometry, "geoms"):
        return [part for item in geometry.geoms for part in _lines(item)]
    return []


def graticule_lines(step: Sequence[float] = (10.0, 10.0), precision: float = 2.5) -> MultiLineString:
    """Meridians and parallels every ``step`` degrees as a MultiLineString.

    Minor meridians stop at +/-80 degrees; meridians on multiples of 90 run
    pole to pole.
    """
    step_x, step_y = float(step[0]), float(step[1])
    if step_x <= 0 or step_y <= 0:
        raise ValueError("Graticule steps must be positive")
    lines: list[list[tuple[float, float]]] = []
    for idx in range(int(math.ceil(360.0 / step_x - 1e-9))):
        lon = -180.0 + idx * step_x
        extent = 90.0 if lon % 90 == 0 else 80.0
        lines.append([(lon, lat) for lat in _frange(-extent, extent, precision)])
    first = math.ceil(-80.0 / step_y - 1e-9)
    last = math.floor(80.0 / step_y + 1e-9)
    for idx in range(first, last + 1):
        lat = idx * step_y
        lines.append([(lon, lat) for lon in _frange(-180.0, 180.0, precision)])
    return MultiLineString(lines)
