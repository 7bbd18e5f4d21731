"""Geography features: normalized geometry records with stable identity keys."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from shapely.geometry import LineString, Point, Polygon, shape


_LOGGER = logging.getLogger("simplemaps.features")

_KEY_NAME_FIELDS = ("name", "NAME")
_LABEL_NAME_FIELDS = ("name", "NAME", "name_en")


@dataclass(frozen=True, slots=True)
class GeographyFeature:
    """One drawable region: shapely geometry, property bag and identity key."""

    key: str
    geometry: Any
    properties: Mapping[str, Any] = field(default_factory=dict)
    id: str | int | None = None

    def centroid(self) -> tuple[float, float] | None:
        """Spherical centroid in lon/lat, or None for empty geometry."""
        return spherical_centroid(self.geometry)

    @property
    def label(self) -> str | None:
        for name in _LABEL_NAME_FIELDS:
            value = self.properties.get(name)
            if value:
                return str(value)
        return None


def feature_key(feature_id: Any, properties: Mapping[str, Any] | None, index: int) -> str:
    """Identity key: feature id, then a name-like property, then position."""
    if feature_id is not None:
        return str(feature_id)
    if properties:
        for name in _KEY_NAME_FIELDS:
            if properties.get(name):
                return str(properties[name])
    return f"geography-{index}"


def spherical_centroid(geometry: Any) -> tuple[float, float] | None:
    """Centroid on the sphere, in lon/lat.

    Parts are reduced to planar centroids with their longitudes unwrapped, then
    averaged as unit vectors weighted by area, length or count. Only parts of
    the highest dimension present contribute, so a country split at the
    antimeridian gets a centroid near 180 instead of near 0.
    """
    if geometry is None or geometry.is_empty:
        return None
    parts = [part for part in _parts(geometry) if not part.is_empty]
    if not parts:
        return None
    dimension = max(_dimension(part) for part in parts)
    x = y = z = 0.0
    for part in parts:
        if _dimension(part) != dimension:
            continue
        unwrapped = _unwrap(part)
        point = unwrapped.centroid
        if point.is_empty:
            continue
        lam, phi = math.radians(point.x), math.radians(point.y)
        if dimension == 2:
            weight = unwrapped.area * math.cos(phi)
        elif dimension == 1:
            weight = unwrapped.length
        else:
            weight = 1.0
        x += weight * math.cos(phi) * math.cos(lam)
        y += weight * math.cos(phi) * math.sin(lam)
        z += weight * math.sin(phi)
    norm = math.hypot(x, y, z)
    if norm < 1e-12:
        # degenerate or antipodal parts
        point = geometry.centroid
        return None if point.is_empty else (float(point.x), float(point.y))
    return (math.degrees(math.atan2(y, x)), math.degrees(math.asin(max(-1.0, min(1.0, z / norm)))))


def _parts(geometry: Any) -> list[Any]:
    members = getattr(geometry, "geoms", None)
    if members is None:
        return [geometry]
    parts: list[Any] = []
    for member in members:
        parts.extend(_parts(member))
    return parts


def _dimension(part: Any) -> int:
    if part.geom_type == "Polygon":
        return 2
    if part.geom_type in ("LineString", "LinearRing"):
        return 1
    return 0


def _unwrap_coords(coords: Iterable[Sequence[float]], anchor: float | None = None) -> list[tuple[float, float]]:
    # consecutive longitudes stay within 180 degrees of each other
    unwrapped = []
    previous = anchor
    for point in coords:
        lon, lat = float(point[0]), float(point[1])
        if previous is not None:
            lon += 360.0 * round((previous - lon) / 360.0)
        unwrapped.append((lon, lat))
        previous = lon
    return unwrapped


def _unwrap(part: Any) -> Any:
    if part.geom_type == "Polygon":
        shell = _unwrap_coords(part.exterior.coords)
        holes = [_unwrap_coords(ring.coords, shell[0][0]) for ring in part.interiors]
        return Polygon(shell, holes)
    if part.geom_type in ("LineString", "LinearRing"):
        return LineString(_unwrap_coords(part.coords))
    return Point(part.x, part.y)


def features_from_geojson(payload: Mapping[str, Any]) -> list[GeographyFeature]:
    """Build features from a GeoJSON FeatureCollection, Feature or bare geometry."""
    kind = payload.get("type")
    if kind == "FeatureCollection":
        raw_features = payload.get("features")
        if not isinstance(raw_features, list):
            raise ValueError("FeatureCollection is missing a 'features' list")
    elif kind == "Feature":
        raw_features = [payload]
    elif isinstance(kind, str):
        raw_features = [{"type": "Feature", "geometry": payload, "properties": {}}]
    else:
        raise ValueError("Expected a GeoJSON object with a 'type' member")

    features: list[GeographyFeature] = []
    for index, raw in enumerate(raw_features):
        if not isinstance(raw, Mapping):
            raise ValueError(f"Expected mapping at features[{index}]")
        geometry_raw = raw.get("geometry")
        if geometry_raw is None:
            # positional keys stay stable because the index still advances
            _LOGGER.debug("Skipping feature %d without geometry", index)
            continue
        properties = dict(raw.get("properties") or {})
        feature_id = raw.get("id")
        features.append(
            GeographyFeature(
                key=feature_key(feature_id, properties, index),
                geometry=shape(geometry_raw),
                properties=properties,
                id=feature_id,
            )
        )
    return features


def features_from_records(records: Iterable[tuple[Any, Mapping[str, Any], Any]]) -> list[GeographyFeature]:
    """Build features from ``(geometry, properties, id)`` triples."""
    features: list[GeographyFeature] = []
    for index, (geometry, properties, feature_id) in enumerate(records):
        props = dict(properties)
        features.append(
            GeographyFeature(
                key=feature_key(feature_id, props, index),
                geometry=geometry,
                properties=props,
                id=feature_id,
            )
        )
    return features


def load_features(path: Path) -> list[GeographyFeature]:
    """Load features from GeoJSON directly or any GeoPandas-readable dataset."""
    if not path.exists():
        raise FileNotFoundError(f"Geography file not found: {path}")
    if path.suffix.casefold() in {".json", ".geojson"}:
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, Mapping):
            raise ValueError(f"Expected GeoJSON object in {path}")
        return features_from_geojson(payload)

    gpd = _require_geopandas()
    frame = gpd.read_file(path)
    if frame.crs is not None and not frame.crs.is_geographic:
        frame = frame.to_crs("EPSG:4326")
    geometry_col = frame.geometry.name
    records = []
    for row in frame.to_dict("records"):
        geometry = row.pop(geometry_col, None)
        if geometry is None:
            continue
        records.append((geometry, row, None))
    return features_from_records(records)


def find_feature(features: Sequence[GeographyFeature], name: str) -> GeographyFeature | None:
    """Find a feature by key or label, case-insensitively."""
    wanted = name.strip().casefold()
    for feature in features:
        if feature.key.casefold() == wanted:
            return feature
        label = feature.label
        if label is not None and label.casefold() == wanted:
            return feature
    return None


def _require_geopandas() -> Any:
    try:
        import geopandas as gpd
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("geopandas is required for reading non-GeoJSON geography files") from exc
    return gpd
