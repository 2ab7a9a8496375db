"""
heatgrid: screen-space binning for map heatmaps

Turns a list of geolocated, weighted points into a small set of pixel cells
for a heat renderer:
- Zoom decay: points weigh less as the view zooms out past a reference zoom
- Viewport culling: only points within a radius of the visible area count
- Pane-aligned grid: cells of half the radius that stay put while panning
- Weighted centroids: each cell sits at the intensity-weighted mean position

"Recompute every frame, cache nothing."
"""

from .grid import (
    Bounds,
    Extractors,
    GridCell,
    GridContext,
    OutputCell,
    accumulate,
    cell_index,
    collect_stats,
    decay_weight,
    field_extractors,
    finalize,
    is_invalid,
    viewport_bounds,
)
from .config import HeatmapConfig, HeatmapConfigError, PRESETS
from .surface import Point, RecordingSink, WebMercatorSurface
from .layer import HeatmapLayer, LayerState, RedrawResult
from .points import (
    generate_synthetic_points,
    load_points_csv,
    save_points_csv,
)
from .report import build_grid_report, cells_to_rows, validate_grid_report
from .utils import validate_implementation

version = "0.1.0"

__all__ = [
    "Bounds",
    "Extractors",
    "GridCell",
    "GridContext",
    "OutputCell",
    "accumulate",
    "cell_index",
    "collect_stats",
    "decay_weight",
    "field_extractors",
    "finalize",
    "is_invalid",
    "viewport_bounds",
    "HeatmapConfig",
    "HeatmapConfigError",
    "PRESETS",
    "Point",
    "RecordingSink",
    "WebMercatorSurface",
    "HeatmapLayer",
    "LayerState",
    "RedrawResult",
    "generate_synthetic_points",
    "load_points_csv",
    "save_points_csv",
    "build_grid_report",
    "cells_to_rows",
    "validate_grid_report",
    "validate_implementation",
    "version"
]


def info():
    """
    Returns package version and a one-line summary.
    """
    return f"""
    heatgrid v{version}
    Screen-space binning of weighted map points for heatmap renderers.
    "Recompute every frame, cache nothing."
    """
