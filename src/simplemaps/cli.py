"""CLI entrypoint for simplemaps."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .config import MapConfig, load_config, load_values
from .continents import classify, continent_counts
from .features import GeographyFeature, find_feature, load_features
from .projection import build_projection
from .scene import build_scene
from .svg import render_svg, write_png, write_svg
from .util import setup_logging, write_json
from .validate import MapValidator, format_report_lines
from .zoom import ZoomComposer

LOGGER = logging.getLogger("simplemaps.cli")

DEFAULT_OUTPUT = Path("map.svg")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simplemaps",
        description="Render projected, zoomable SVG maps from geographic features.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="map.yaml", help="Path to YAML map config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")
        p.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")

    render_p = subparsers.add_parser("render", help="Render the configured map to SVG.")
    add_common(render_p)
    render_p.add_argument("--output", type=Path, default=None, help="SVG output path.")
    render_p.add_argument("--png", type=Path, default=None, help="Also write a PNG (needs cairosvg).")
    render_p.add_argument(
        "--continent",
        action="append",
        default=[],
        help="Only draw features on this continent. Can be repeated.",
    )
    render_p.add_argument("--zoom-to", default=None, help="Centre and zoom on the named feature.")
    render_p.add_argument("--zoom-level", type=float, default=None, help="Zoom level used with --zoom-to.")
    render_p.add_argument("--pretty", action="store_true", help="Indent the SVG output.")

    classify_p = subparsers.add_parser("classify", help="Report the continent of every feature.")
    add_common(classify_p)
    classify_p.add_argument("--output", type=Path, default=None, help="Write key -> continent JSON here.")

    validate_p = subparsers.add_parser("validate", help="Validate config and input files.")
    add_common(validate_p)

    return parser


def _load_features(cfg: MapConfig) -> list[GeographyFeature]:
    if cfg.paths.geography is None:
        raise ValueError("Config has no paths.geography")
    features = load_features(cfg.paths.geography)
    LOGGER.info("Loaded %d features from %s", len(features), cfg.paths.geography)
    return features


def _load_values(cfg: MapConfig) -> dict[str, float]:
    values = dict(cfg.values)
    if cfg.paths.values is not None:
        values.update(load_values(cfg.paths.values))
    return values


def _run_render(
    cfg: MapConfig,
    *,
    output: Path | None,
    png: Path | None,
    continents: Sequence[str],
    zoom_to: str | None,
    zoom_level: float | None,
    pretty: bool,
) -> int:
    features = _load_features(cfg)

    viewport = cfg.viewport
    projection = build_projection(cfg.projection.family, cfg.projection, viewport.width, viewport.height)
    zoom = cfg.zoom
    composer = ZoomComposer(
        viewport,
        min_zoom=zoom.min_zoom,
        max_zoom=zoom.max_zoom,
        initial_zoom=zoom.initial_zoom,
        center=zoom.center,
        sensitivity=zoom.sensitivity,
        animation_ms=zoom.animation_ms,
        feature_zoom=zoom.feature_zoom,
        projection=projection,
    )
    if zoom_to is not None:
        target = find_feature(features, zoom_to)
        if target is None:
            LOGGER.error("No feature named '%s'", zoom_to)
            return 1
        if composer.zoom_to_feature(target, zoom_level):
            # a static render only needs the settled end state
            composer.advance(float("inf"))
            LOGGER.info("Zoomed to %s at scale %.3f", target.key, composer.state.scale)

    scene = build_scene(
        cfg,
        features,
        _load_values(cfg),
        zoom_scale=composer.state.scale,
        projection=projection,
        continents=continents or None,
    )
    document = render_svg(scene, composer.transform, pretty_print=pretty)

    svg_path = output or cfg.paths.output_svg or DEFAULT_OUTPUT
    write_svg(svg_path, document)
    LOGGER.info("Wrote %s", svg_path)

    png_path = png or cfg.paths.output_png
    if png_path is not None:
        write_png(png_path, document, width=int(viewport.width))
    return 0


def _run_classify(cfg: MapConfig, *, output: Path | None) -> int:
    features = _load_features(cfg)
    for continent, count in continent_counts(features).items():
        LOGGER.info("%s: %d", continent, count)
    if output is not None:
        write_json(output, {feature.key: classify(feature) for feature in features})
        LOGGER.info("Wrote %s", output)
    return 0


def _run_validate(cfg: MapConfig) -> int:
    report = MapValidator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _dispatch(args: argparse.Namespace) -> int:
    setup_logging(args.log_file, verbose=args.verbose)
    try:
        cfg = load_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        LOGGER.error("Invalid config: %s", exc)
        return 1

    command = str(args.command)
    if command == "render":
        return _run_render(
            cfg,
            output=args.output,
            png=args.png,
            continents=[str(item) for item in args.continent],
            zoom_to=args.zoom_to,
            zoom_level=args.zoom_level,
            pretty=bool(args.pretty),
        )
    if command == "classify":
        return _run_classify(cfg, output=args.output)
    if command == "validate":
        return _run_validate(cfg)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
