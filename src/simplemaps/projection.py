"""Build a ready-to-use base projection from a family name and tunables."""

from __future__ import annotations

import logging
from typing import Any, Callable

from .models import ProjectionSpec
from .provider import GeoProjection, Projection


_LOGGER = logging.getLogger("simplemaps.projection")

DEFAULT_FAMILY = "geoEqualEarth"
DEFAULT_SCALE = 150.0

FAMILIES: tuple[str, ...] = (
    "geoAlbers",
    "geoAlbersUsa",
    "geoAzimuthalEqualArea",
    "geoAzimuthalEquidistant",
    "geoConicConformal",
    "geoConicEqualArea",
    "geoConicEquidistant",
    "geoEqualEarth",
    "geoEquirectangular",
    "geoGnomonic",
    "geoMercator",
    "geoNaturalEarth1",
    "geoOrthographic",
    "geoStereographic",
    "geoTransverseMercator",
)

ProjectionFactory = Callable[[str], Projection]


def resolve_family(family: str | None) -> str:
    """Known family name, or the default family with a warning."""
    if family in FAMILIES:
        return family
    _LOGGER.warning("Unknown projection family %r, falling back to %s", family, DEFAULT_FAMILY)
    return DEFAULT_FAMILY


def _supported(projection: Any, tunable: str) -> bool:
    supports = getattr(projection, "supports", None)
    if supports is None:
        return hasattr(projection, f"set_{tunable}")
    return bool(supports(tunable))


def build_projection(
    family: str | None,
    config: ProjectionSpec | None,
    width: float,
    height: float,
    *,
    factory: ProjectionFactory | None = None,
) -> Projection:
    """Configure a projection for a ``width`` x ``height`` viewport.

    Tunables the family lacks are skipped with a debug message. When no
    explicit scale is given the sphere outline is fitted to the box, falling
    back to a fixed scale if the family cannot be fitted.
    """
    spec = config or ProjectionSpec()
    make = factory or GeoProjection
    name = resolve_family(family if family is not None else spec.family)
    projection = make(name)

    def _apply(tunable: str, value: Any) -> None:
        if value is None:
            return
        if not _supported(projection, tunable):
            _LOGGER.debug("%s ignores '%s'", name, tunable)
            return
        getattr(projection, f"set_{tunable}")(value)

    _apply("rotate", spec.rotate)
    _apply("center", spec.center)
    projection.set_translate(spec.translate if spec.translate is not None else (width / 2, height / 2))
    _apply("parallels", spec.parallels)
    _apply("precision", spec.precision)
    _apply("clip_angle", spec.clip_angle)
    if _supported(projection, "clip_extent"):
        projection.set_clip_extent(None)

    if spec.scale is not None:
        try:
            projection.set_scale(spec.scale)
            return projection
        except ValueError as exc:
            _LOGGER.warning("Ignoring scale for %s: %s", name, exc)

    try:
        projection.fit_size(width, height)
    except Exception as exc:
        _LOGGER.warning("Auto-fit failed for %s (%s), using scale %s", name, exc, DEFAULT_SCALE)
        projection.set_scale(DEFAULT_SCALE)
    return projection
