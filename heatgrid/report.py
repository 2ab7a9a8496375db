"""
Grid report generation utilities.

A report captures one redraw pass: the view it was computed for, the config,
how many points made it into the grid, the finalized cells and their count
statistics. Reports are plain JSON-able dicts checked against a packaged
schema.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional

from jsonschema import validate as _jsonschema_validate

from .config import HeatmapConfig, load_schema
from .grid import OutputCell
from .layer import RedrawResult

REPORT_VERSION = "0.1"
REPORT_SCHEMA = "grid-report-0.1.schema.json"

CELL_FIELDS = ["x", "y", "intensity", "count"]


def _finite_stats(stats: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
    # The empty-grid seed (+inf/-inf) is not representable in JSON.
    if not stats or not all(math.isfinite(v) for v in stats.values()):
        return None
    return {"min": float(stats["min"]), "max": float(stats["max"])}


def cells_to_rows(cells: Iterable[OutputCell]) -> List[Dict[str, Any]]:
    """
    Flattens output cells into dicts suitable for CSV.
    """
    return [dict(zip(CELL_FIELDS, cell)) for cell in cells]


def build_grid_report(
    result: RedrawResult,
    config: HeatmapConfig,
    center: Optional[Iterable[float]] = None,
    notes: Optional[List[str]] = None,
) -> Dict[str, Any]:
    view: Dict[str, Any] = {
        "zoom": float(result.zoom),
        "max_zoom": float(result.max_zoom),
        "size": [float(result.size.x), float(result.size.y)],
        "pane_position": [
            float(result.context.pane_offset.x),
            float(result.context.pane_offset.y),
        ],
        "decay_weight": float(result.context.decay_weight),
    }
    if center is not None:
        view["center"] = [float(v) for v in center]

    report = {
        "report_version": REPORT_VERSION,
        "notes": notes or [],
        "view": view,
        "config": config.to_dict(),
        "sampling": {
            "points": int(result.points),
            "binned": int(result.binned),
            "cells": len(result.cells),
        },
        "cells": [
            [int(cell.x), int(cell.y), float(cell.intensity), int(cell.count)]
            for cell in result.cells
        ],
        "stats": _finite_stats(result.stats),
    }
    return report


def load_grid_report_schema() -> Dict[str, Any]:
    return load_schema(REPORT_SCHEMA)


def validate_grid_report(report: Dict[str, Any], schema: Optional[Dict[str, Any]] = None) -> None:
    schema_obj = schema or load_grid_report_schema()
    _jsonschema_validate(instance=report, schema=schema_obj)
