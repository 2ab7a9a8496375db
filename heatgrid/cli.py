"""Command-line interface for heatgrid."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys

from .config import PRESETS, HeatmapConfig
from .layer import HeatmapLayer
from .points import generate_synthetic_points, load_points_csv, save_points_csv
from .report import CELL_FIELDS, build_grid_report, cells_to_rows, validate_grid_report
from .surface import WebMercatorSurface

CONFIG_OPTIONS = ("max", "radius", "max_zoom", "min_opacity", "blur")


def _cmd_generate(args: argparse.Namespace) -> int:
    rows = generate_synthetic_points(
        count=args.count,
        seed=args.seed,
        center=(args.lat, args.lng),
        spread=args.spread,
        clusters=args.clusters,
    )
    save_points_csv(args.out, rows)
    print(f"Saved {len(rows)} points to {args.out}")
    return 0


def _config_from_args(args: argparse.Namespace) -> HeatmapConfig:
    overrides = {
        name: getattr(args, name)
        for name in CONFIG_OPTIONS
        if getattr(args, name) is not None
    }
    return HeatmapConfig.from_dict(overrides, preset=args.preset)


def _write_rows(handle, rows: list, header: bool) -> None:
    writer = csv.DictWriter(handle, fieldnames=CELL_FIELDS)
    if header:
        writer.writeheader()
    writer.writerows(rows)


def _write_output(report: dict, rows: list, args: argparse.Namespace) -> None:
    """Writes the report (json, jsonl) or its cell rows (csv) to --out or stdout."""
    out_format = args.out_format
    if out_format not in ("json", "jsonl", "csv"):
        raise ValueError(f"Unsupported out-format: {out_format}")
    mode = "a" if args.append and out_format != "json" else "w"

    if out_format == "csv":
        if args.out:
            with open(args.out, mode, newline="") as handle:
                _write_rows(handle, rows, header=mode == "w")
        else:
            _write_rows(sys.stdout, rows, header=True)
    else:
        text = json.dumps(report, indent=2) if out_format == "json" else json.dumps(report)
        if args.out:
            with open(args.out, mode) as handle:
                handle.write(text + "\n")
        print(text)

    if args.out:
        print(f"Report saved to {args.out}")


def _cmd_grid(args: argparse.Namespace) -> int:
    points = load_points_csv(args.input)
    config = _config_from_args(args)
    args.validate = not args.no_validate

    surface = WebMercatorSurface(
        center=(args.lat, args.lng),
        zoom=args.zoom,
        size=(args.width, args.height),
        max_zoom=args.surface_max_zoom,
    )
    layer = HeatmapLayer(points, config=config, fit_bounds_on_load=args.fit_bounds)
    with layer.attached(surface):
        result = layer.last_result
        center = surface.center()

    report = build_grid_report(result, config, center=center)
    if args.validate:
        validate_grid_report(report)

    _write_output(report, cells_to_rows(result.cells), args)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="heatgrid")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate synthetic weighted points")
    gen.add_argument("--count", type=int, default=500, help="Number of points")
    gen.add_argument("--seed", type=int, default=0, help="RNG seed")
    gen.add_argument("--lat", type=float, default=51.505, help="Latitude of the cluster area")
    gen.add_argument("--lng", type=float, default=-0.09, help="Longitude of the cluster area")
    gen.add_argument("--spread", type=float, default=0.05, help="Cluster scatter in degrees")
    gen.add_argument("--clusters", type=int, default=3, help="Number of clusters")
    gen.add_argument("--out", required=True, help="Output CSV path")
    gen.set_defaults(func=_cmd_generate)

    grid = sub.add_parser("grid", help="Bin points into heatmap cells for one map view")
    grid.add_argument("--input", required=True, help="Input CSV path (lat, lng, intensity)")
    grid.add_argument("--lat", type=float, default=0.0, help="Map centre latitude")
    grid.add_argument("--lng", type=float, default=0.0, help="Map centre longitude")
    grid.add_argument("--zoom", type=float, default=2, help="Map zoom")
    grid.add_argument("--width", type=int, default=800, help="Viewport width in pixels")
    grid.add_argument("--height", type=int, default=600, help="Viewport height in pixels")
    grid.add_argument("--surface-max-zoom", type=float, default=18, help="Maximum zoom of the map")
    grid.add_argument("--fit-bounds", action="store_true", help="Fit the view to the points first")
    grid.add_argument("--preset", choices=sorted(PRESETS), default="default", help="Config defaults")
    grid.add_argument("--max", type=float, default=None, help="Intensity cap per cell")
    grid.add_argument("--radius", type=float, default=None, help="Point radius in pixels")
    grid.add_argument("--max-zoom", type=float, default=None, help="Zoom with full point intensity")
    grid.add_argument("--min-opacity", type=float, default=None, help="Minimum heat opacity")
    grid.add_argument("--blur", type=float, default=None, help="Blur in pixels")
    grid.add_argument("--out", help="Output path")
    grid.add_argument("--out-format", choices=["json", "jsonl", "csv"], default="json", help="Output format")
    grid.add_argument("--append", action="store_true", help="Append to output file for jsonl/csv")
    grid.add_argument("--no-validate", action="store_true", help="Disable schema validation")
    grid.set_defaults(func=_cmd_grid)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
