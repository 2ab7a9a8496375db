"""
Screen-space binning of weighted points for heatmap rendering.

Points are projected into container pixels, culled against the viewport,
bucketed into a pane-aligned grid of half-radius cells and merged into a
running weighted centroid per cell. The finalized cells are small enough to
hand to a pixel renderer on every redraw.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Tuple

from .surface import Point

# Decay stops halving after this many zoom levels below the reference zoom.
MAX_ZOOM_DELTA = 12

# Cell indices are shifted so the partially visible first column/row is >= 0.
INDEX_OFFSET = 2


class Extractors(NamedTuple):
    latitude: Callable[[Any], Any]
    longitude: Callable[[Any], Any]
    intensity: Callable[[Any], Any]


class OutputCell(NamedTuple):
    x: int
    y: int
    intensity: float
    count: int


@dataclass
class GridCell:
    x: float
    y: float
    weight: float
    count: int = 1

    def merge(self, x: float, y: float, k: float) -> None:
        total = self.weight + k
        if total != 0:
            self.x = (self.x * self.weight + x * k) / total
            self.y = (self.y * self.weight + y * k) / total
        self.weight = total
        self.count += 1


Grid = Dict[Tuple[int, int], GridCell]


@dataclass(frozen=True)
class Bounds:
    min: Point
    max: Point

    def contains(self, point: Point) -> bool:
        return (
            self.min.x <= point.x <= self.max.x
            and self.min.y <= point.y <= self.max.y
        )


@dataclass(frozen=True)
class GridContext:
    bounds: Bounds
    cell_size: float
    pane_offset: Point
    decay_weight: float
    extractors: Extractors


def field_extractors(lat: str = "lat", lng: str = "lng", intensity: str = "intensity") -> Extractors:
    """
    Extractors for mapping-like points, e.g. rows from `load_points_csv`.
    """
    return Extractors(
        latitude=lambda p: p[lat],
        longitude=lambda p: p[lng],
        intensity=lambda p: p[intensity],
    )


def decay_weight(current_zoom: float, max_zoom: float) -> float:
    """
    Per-point contribution factor for the current zoom.

    Halves every two zoom levels below `max_zoom`, floored at 2**-6.
    """
    delta = max(0.0, min(float(max_zoom) - float(current_zoom), MAX_ZOOM_DELTA))
    return 1.0 / math.pow(2.0, delta / 2.0)


def viewport_bounds(size: Point, radius: float) -> Bounds:
    return Bounds(
        min=Point(-radius, -radius),
        max=Point(size.x + radius, size.y + radius),
    )


def is_invalid(value: Any) -> bool:
    """Missing, zero or NaN coordinates count as invalid."""
    if isinstance(value, numbers.Real) and math.isnan(value):
        return True
    return not value


def should_skip(lat: Any, lng: Any) -> bool:
    # Only a point with neither coordinate set is dropped.
    return is_invalid(lat) and is_invalid(lng)


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)


def _as_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise TypeError(f"{name} extractor returned a non-numeric value: {value!r}")
    return float(value)


def _as_intensity(value: Any) -> float:
    k = _as_number(value, "intensity")
    if not math.isfinite(k) or k < 0:
        raise ValueError(f"intensity must be a finite number >= 0, got {value!r}")
    return k


def cell_index(point: Point, cell_size: float, pane_offset: Point) -> Tuple[int, int]:
    """
    Returns the (row, col) of the grid cell holding `point`.

    The grid is aligned to the map pane (truncated remainder, keeping the sign
    of the pane offset) so cell edges move with the map while it is dragged.
    """
    offset_x = math.fmod(pane_offset.x, cell_size)
    offset_y = math.fmod(pane_offset.y, cell_size)
    col = math.floor((point.x - offset_x) / cell_size) + INDEX_OFFSET
    row = math.floor((point.y - offset_y) / cell_size) + INDEX_OFFSET
    return int(row), int(col)


def accumulate(
    points: Iterable[Any],
    context: GridContext,
    project: Callable[[float, float], Point],
) -> Grid:
    """
    Buckets `points` into grid cells.

    Each cell keeps the weighted centroid of its points, the sum of their
    decayed intensities and how many were merged. Invalid and off-screen
    points never touch the grid.
    """
    grid: Grid = {}
    ex = context.extractors
    for point in points:
        lat = ex.latitude(point)
        lng = ex.longitude(point)
        if should_skip(lat, lng):
            continue

        projected = project(_as_number(lat, "latitude"), _as_number(lng, "longitude"))
        if not context.bounds.contains(projected):
            continue

        key = cell_index(projected, context.cell_size, context.pane_offset)
        k = _as_intensity(ex.intensity(point)) * context.decay_weight

        cell = grid.get(key)
        if cell is None:
            grid[key] = GridCell(x=float(projected.x), y=float(projected.y), weight=k)
        else:
            cell.merge(projected.x, projected.y, k)
    return grid


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def finalize(grid: Grid, max_intensity: float) -> List[OutputCell]:
    return [
        OutputCell(
            x=_round_half_up(cell.x),
            y=_round_half_up(cell.y),
            intensity=min(cell.weight, max_intensity),
            count=cell.count,
        )
        for cell in grid.values()
    ]


def collect_stats(cells: Iterable[OutputCell]) -> Dict[str, float]:
    """
    Min/max of the per-cell point counts.

    An empty input returns the +inf/-inf seed unchanged.
    """
    counts = [cell.count for cell in cells]
    if not counts:
        return {"min": math.inf, "max": -math.inf}
    return {"min": float(min(counts)), "max": float(max(counts))}
