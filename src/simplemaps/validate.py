"""Validation layer for map configs and their input files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from .config import MapConfig, load_values
from .continents import CONTINENTS, classify
from .features import GeographyFeature, load_features
from .projection import FAMILIES, build_projection
from .provider import FAMILY_DEFINITIONS


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


_TUNABLE_FIELDS = ("rotate", "center", "parallels", "precision", "clip_angle")


class MapValidator:
    """Checks a loaded config against its inputs without rendering anything."""

    def __init__(self, cfg: MapConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        self._validate_projection(report)
        self._validate_continents(report)
        features = self._validate_geography(report)
        values = self._validate_values(report)
        if features:
            self._validate_choropleth_join(report, features, values)
            self._validate_classification(report, features)
        self._validate_overlays(report)
        return report

    def _validate_projection(self, report: ValidationReport) -> None:
        spec = self.cfg.projection
        if spec.family not in FAMILIES:
            report.add_warning(f"Unknown projection family '{spec.family}'; the default family will be used")
            return
        definition = FAMILY_DEFINITIONS[spec.family]
        for attr in _TUNABLE_FIELDS:
            if getattr(spec, attr) is not None and attr not in definition.tunables:
                report.add_warning(f"{spec.family} ignores projection.{attr}")
        report.add_info(f"Projection: {spec.family}")

    def _validate_continents(self, report: ValidationReport) -> None:
        known = {label.casefold() for label in CONTINENTS}
        for item in self.cfg.continents:
            if item.casefold() not in known:
                report.add_error(f"Unknown continent '{item}'; expected one of: {', '.join(CONTINENTS)}")

    def _validate_geography(self, report: ValidationReport) -> list[GeographyFeature]:
        path = self.cfg.paths.geography
        if path is None:
            report.add_error("Missing paths.geography")
            return []
        if not path.exists():
            report.add_error(f"Missing geography file: {path}")
            return []
        try:
            features = load_features(path)
        except Exception as exc:
            report.add_error(f"Failed reading geography file '{path}': {exc}")
            return []
        if not features:
            report.add_warning(f"No features with geometry in {path}")
        keys = [feature.key for feature in features]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            report.add_warning(f"Duplicate feature keys: {', '.join(duplicates[:10])}")
        report.add_info(f"Geography features: {len(features)}")
        return features

    def _validate_values(self, report: ValidationReport) -> dict[str, float]:
        values = dict(self.cfg.values)
        path = self.cfg.paths.values
        if path is not None:
            try:
                values.update(load_values(path))
            except Exception as exc:
                report.add_error(f"Failed reading values file '{path}': {exc}")
        if values and self.cfg.choropleth is None:
            report.add_warning("Values are configured but there is no choropleth section")
        return values

    def _validate_choropleth_join(
        self,
        report: ValidationReport,
        features: Sequence[GeographyFeature],
        values: Mapping[str, float],
    ) -> None:
        spec = self.cfg.choropleth
        if spec is None or not values:
            return
        join_keys = {
            str(feature.properties[spec.match_key])
            for feature in features
            if feature.properties.get(spec.match_key) is not None
        }
        unmatched = sorted(key for key in values if key not in join_keys)
        if unmatched:
            report.add_warning(
                f"{len(unmatched)} value keys match no feature on '{spec.match_key}': {', '.join(unmatched[:10])}"
            )
        report.add_info(f"Choropleth values matched: {len(values) - len(unmatched)}/{len(values)}")

    def _validate_classification(self, report: ValidationReport, features: Iterable[GeographyFeature]) -> None:
        unclassified = [feature.key for feature in features if classify(feature) is None]
        if unclassified and self.cfg.continents:
            report.add_warning(
                f"{len(unclassified)} features have no continent and will be dropped by the filter"
            )

    def _validate_overlays(self, report: ValidationReport) -> None:
        cfg = self.cfg
        projection = build_projection(cfg.projection.family, cfg.projection, cfg.viewport.width, cfg.viewport.height)
        for idx, marker in enumerate(cfg.markers):
            if projection(marker.coordinates) is None:
                report.add_warning(f"markers[{idx}] at {marker.coordinates} is not visible in this projection")
        for idx, line in enumerate(cfg.lines):
            if projection(line.start) is None or projection(line.end) is None:
                report.add_warning(f"lines[{idx}] has an endpoint that is not visible in this projection")
        for idx, annotation in enumerate(cfg.annotations):
            if projection(annotation.coordinates) is None:
                report.add_warning(f"annotations[{idx}] '{annotation.text}' is not visible in this projection")


def format_report_lines(report: ValidationReport) -> Iterable[str]:
    for info in report.infos:
        yield f"[INFO] {info}"
    for warning in report.warnings:
        yield f"[WARN] {warning}"
    for error in report.errors:
        yield f"[ERROR] {error}"
    if report.ok:
        yield "[OK] Validation completed with no errors."
