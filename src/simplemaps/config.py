"""Typed configuration loader for `map.yaml`."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import (
    ChoroplethSpec,
    GraticuleSpec,
    MapAnnotation,
    MapLine,
    MapMarker,
    MapStyle,
    ProjectionSpec,
    Viewport,
    _require_str,
)


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _list(value: Any, field_name: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Expected list for '{field_name}'")
    return value


def _str_list(value: Any, field_name: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (_require_str(value, field_name),)
    return tuple(_require_str(item, f"{field_name}[{idx}]") for idx, item in enumerate(_list(value, field_name)))


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path | None:
    if value is None:
        return None
    p = Path(_require_str(value, field_name))
    return p if p.is_absolute() else root_dir / p


def _values(value: Any, field_name: str) -> dict[str, float]:
    out: dict[str, float] = {}
    for key, item in _mapping(value, field_name).items():
        if item is None:
            continue
        out[str(key)] = _float(item, f"{field_name}.{key}")
    return out


@dataclass(frozen=True, slots=True)
class PathsConfig:
    geography: Path | None = None
    values: Path | None = None
    output_svg: Path | None = None
    output_png: Path | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> PathsConfig:
        return cls(
            geography=_path_from_cfg(raw.get("geography"), "paths.geography", root_dir),
            values=_path_from_cfg(raw.get("values"), "paths.values", root_dir),
            output_svg=_path_from_cfg(raw.get("output_svg"), "paths.output_svg", root_dir),
            output_png=_path_from_cfg(raw.get("output_png"), "paths.output_png", root_dir),
        )


@dataclass(frozen=True, slots=True)
class ZoomConfig:
    min_zoom: float = 1.0
    max_zoom: float = 8.0
    initial_zoom: float = 1.0
    center: tuple[float, float] = (0.0, 0.0)
    sensitivity: float = 0.001
    animation_ms: float = 800.0
    feature_zoom: float = 4.0

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ZoomConfig:
        defaults = cls()
        center = defaults.center
        if raw.get("center") is not None:
            center_raw = _list(raw.get("center"), "zoom.center")
            if len(center_raw) != 2:
                raise ValueError("Expected list of 2 numbers for 'zoom.center'")
            center = (_float(center_raw[0], "zoom.center[0]"), _float(center_raw[1], "zoom.center[1]"))
        cfg = cls(
            min_zoom=_float(raw.get("min_zoom", defaults.min_zoom), "zoom.min_zoom"),
            max_zoom=_float(raw.get("max_zoom", defaults.max_zoom), "zoom.max_zoom"),
            initial_zoom=_float(raw.get("initial_zoom", defaults.initial_zoom), "zoom.initial_zoom"),
            center=center,
            sensitivity=_float(raw.get("sensitivity", defaults.sensitivity), "zoom.sensitivity"),
            animation_ms=_float(raw.get("animation_ms", defaults.animation_ms), "zoom.animation_ms"),
            feature_zoom=_float(raw.get("feature_zoom", defaults.feature_zoom), "zoom.feature_zoom"),
        )
        if cfg.min_zoom <= 0 or cfg.min_zoom > cfg.max_zoom:
            raise ValueError("zoom.min_zoom must be > 0 and <= zoom.max_zoom")
        if cfg.animation_ms < 0:
            raise ValueError("zoom.animation_ms must be >= 0")
        return cfg


@dataclass(frozen=True, slots=True)
class MapConfig:
    source_path: Path | None
    viewport: Viewport = field(default_factory=Viewport)
    projection: ProjectionSpec = field(default_factory=ProjectionSpec)
    zoom: ZoomConfig = field(default_factory=ZoomConfig)
    choropleth: ChoroplethSpec | None = None
    values: Mapping[str, float] = field(default_factory=dict)
    graticule: GraticuleSpec = field(default_factory=GraticuleSpec)
    style: MapStyle = field(default_factory=MapStyle)
    paths: PathsConfig = field(default_factory=PathsConfig)
    markers: tuple[MapMarker, ...] = ()
    lines: tuple[MapLine, ...] = ()
    annotations: tuple[MapAnnotation, ...] = ()
    continents: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path | None = None) -> MapConfig:
        root_dir = source_path.parent.resolve() if source_path is not None else Path.cwd()
        choropleth_raw = raw.get("choropleth")
        choropleth = None
        values: dict[str, float] = {}
        if choropleth_raw is not None:
            section = _mapping(choropleth_raw, "choropleth")
            choropleth = ChoroplethSpec.from_mapping(section)
            values = _values(section.get("values"), "choropleth.values")
        return cls(
            source_path=source_path.resolve() if source_path is not None else None,
            viewport=Viewport.from_mapping(_mapping(raw.get("viewport"), "viewport")),
            projection=ProjectionSpec.from_mapping(_mapping(raw.get("projection"), "projection")),
            zoom=ZoomConfig.from_mapping(_mapping(raw.get("zoom"), "zoom")),
            choropleth=choropleth,
            values=values,
            graticule=GraticuleSpec.from_mapping(_mapping(raw.get("graticule"), "graticule")),
            style=MapStyle.from_mapping(_mapping(raw.get("style"), "style")),
            paths=PathsConfig.from_mapping(_mapping(raw.get("paths"), "paths"), root_dir),
            markers=tuple(
                MapMarker.from_mapping(_mapping(item, f"markers[{idx}]"))
                for idx, item in enumerate(_list(raw.get("markers"), "markers"))
            ),
            lines=tuple(
                MapLine.from_mapping(_mapping(item, f"lines[{idx}]"))
                for idx, item in enumerate(_list(raw.get("lines"), "lines"))
            ),
            annotations=tuple(
                MapAnnotation.from_mapping(_mapping(item, f"annotations[{idx}]"))
                for idx, item in enumerate(_list(raw.get("annotations"), "annotations"))
            ),
            continents=_str_list(raw.get("continents"), "continents"),
        )


def load_config(path: str | Path) -> MapConfig:
    """Load and validate the YAML map config into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return MapConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)


def load_values(path: Path) -> dict[str, float]:
    """Read a flat ``key: number`` mapping from YAML or JSON.

    Non-numeric and non-finite entries are dropped; the choropleth treats
    those keys as missing.
    """
    if not path.exists():
        raise FileNotFoundError(f"Values file not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        # JSON is a YAML subset
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping of key -> number in {path}")
    out: dict[str, float] = {}
    for key, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if math.isfinite(float(value)):
            out[str(key)] = float(value)
    return out
