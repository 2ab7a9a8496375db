"""
Heatmap layer lifecycle and redraw scheduling.

A `HeatmapLayer` owns its render sink from the moment it is added to a map
surface until it is removed. Every trigger (view change, new points, new
options) runs the whole bin -> finalize -> render pipeline synchronously;
nothing is cached between passes.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from .config import HeatmapConfig
from .grid import (
    Extractors,
    GridContext,
    OutputCell,
    accumulate,
    collect_stats,
    decay_weight,
    field_extractors,
    finalize,
    is_finite_number,
    is_invalid,
    should_skip,
    viewport_bounds,
)
from .surface import ORIGIN, VIEW_EVENTS, MapSurface, Point, RecordingSink, RenderSink

logger = logging.getLogger(__name__)

StatsCallback = Callable[[Dict[str, float]], None]


class LayerState(Enum):
    UNINITIALIZED = "uninitialized"
    MOUNTED = "mounted"
    IDLE = "idle"
    REDRAWING = "redrawing"
    UNMOUNTED = "unmounted"


@dataclass
class RedrawResult:
    cells: List[OutputCell]
    stats: Optional[Dict[str, float]]
    context: GridContext
    zoom: float
    max_zoom: float
    size: Point
    points: int

    @property
    def binned(self) -> int:
        return sum(cell.count for cell in self.cells)


def _point_or_origin(value: Optional[Point]) -> Point:
    if value is None:
        return ORIGIN
    return Point(float(value[0]), float(value[1]))


def surface_size(surface: Optional[MapSurface]) -> Point:
    """Viewport size, or a zero size when there is no surface to ask."""
    if surface is None:
        return ORIGIN
    return _point_or_origin(surface.size())


def surface_pane_position(surface: Optional[MapSurface]) -> Point:
    if surface is None:
        return ORIGIN
    return _point_or_origin(surface.pane_position())


class HeatmapLayer:
    """
    Heatmap overlay for a map surface.

    Args:
        points: Opaque points; read only through `extractors`.
        extractors: Latitude, longitude and intensity extractors. Defaults to
            `field_extractors()` (dict points with lat/lng/intensity keys).
        config: `HeatmapConfig` or a mapping accepted by `HeatmapConfig.from_dict`.
        sink_factory: Builds the render sink when the layer is added.
        on_stats: Called with min/max point counts after each non-empty redraw.
        fit_bounds_on_load: Fit the map to the points when the layer is added.
        fit_bounds_on_update: Fit the map to the points after every update.
    """

    def __init__(
        self,
        points: Optional[Iterable[Any]] = None,
        extractors: Optional[Extractors] = None,
        config: Union[HeatmapConfig, Mapping[str, Any], None] = None,
        sink_factory: Callable[[], RenderSink] = RecordingSink,
        on_stats: Optional[StatsCallback] = None,
        fit_bounds_on_load: bool = False,
        fit_bounds_on_update: bool = False,
    ):
        self._points: List[Any] = list(points or [])
        self._extractors = extractors or field_extractors()
        self._config = self._coerce_config(config)
        self._sink_factory = sink_factory
        self._on_stats = on_stats
        self.fit_bounds_on_load = fit_bounds_on_load
        self.fit_bounds_on_update = fit_bounds_on_update

        self._state = LayerState.UNINITIALIZED
        self._surface: Optional[MapSurface] = None
        self._sink: Optional[RenderSink] = None
        self._pending = False
        self.last_result: Optional[RedrawResult] = None

    @staticmethod
    def _coerce_config(config: Union[HeatmapConfig, Mapping[str, Any], None]) -> HeatmapConfig:
        if config is None:
            return HeatmapConfig()
        if isinstance(config, HeatmapConfig):
            return config
        return HeatmapConfig.from_dict(config)

    @property
    def state(self) -> LayerState:
        return self._state

    @property
    def sink(self) -> Optional[RenderSink]:
        return self._sink

    @property
    def config(self) -> HeatmapConfig:
        return self._config

    @property
    def extractors(self) -> Extractors:
        return self._extractors

    @property
    def points(self) -> List[Any]:
        return list(self._points)

    @property
    def on_map(self) -> bool:
        return self._surface is not None and self._sink is not None

    # -- lifecycle ----------------------------------------------------------

    def add_to(self, surface: MapSurface) -> "HeatmapLayer":
        if self._state is not LayerState.UNINITIALIZED:
            raise RuntimeError(f"Cannot add a layer in state {self._state.value}")

        self._surface = surface
        self._sink = self._sink_factory()
        surface.add_overlay(self._sink)
        self._state = LayerState.MOUNTED
        logger.info("Heatmap layer added with %d points", len(self._points))

        self._apply_sink_options()
        if self.fit_bounds_on_load:
            self.fit_bounds()
        for event in VIEW_EVENTS:
            surface.on(event, self._on_view_change)
        self._reset()
        return self

    def remove(self) -> None:
        if self._state is LayerState.UNMOUNTED:
            return
        if self._state is LayerState.UNINITIALIZED:
            raise RuntimeError("Layer was never added to a map")

        surface, sink = self._surface, self._sink
        for event in VIEW_EVENTS:
            surface.off(event, self._on_view_change)
        # The host may already have dropped the overlay.
        if surface.has_overlay(sink):
            surface.remove_overlay(sink)

        self._surface = None
        self._sink = None
        self._pending = False
        self._state = LayerState.UNMOUNTED
        logger.info("Heatmap layer removed")

    @contextmanager
    def attached(self, surface: MapSurface) -> Iterator["HeatmapLayer"]:
        self.add_to(surface)
        try:
            yield self
        finally:
            self.remove()

    # -- updates ------------------------------------------------------------

    def update(
        self,
        points: Optional[Iterable[Any]] = None,
        config: Union[HeatmapConfig, Mapping[str, Any], None] = None,
        extractors: Optional[Extractors] = None,
    ) -> Optional[RedrawResult]:
        """
        Replaces any of points, config and extractors, then redraws.

        Arguments left as None keep their current value. A rejected config
        leaves the layer untouched.
        """
        new_config = self._config if config is None else self._coerce_config(config)
        new_points = self._points if points is None else list(points)

        self._config = new_config
        self._points = new_points
        if extractors is not None:
            self._extractors = extractors

        if not self.on_map:
            return None
        self._apply_sink_options()
        if self.fit_bounds_on_update:
            self.fit_bounds()
        return self._reset()

    def set_points(self, points: Iterable[Any]) -> Optional[RedrawResult]:
        return self.update(points=points)

    def add_point(self, point: Any) -> Optional[RedrawResult]:
        self._points.append(point)
        if not self.on_map:
            return None
        return self.redraw()

    def set_options(self, **options: Any) -> Optional[RedrawResult]:
        return self.update(config=self._config.replace(**options))

    def fit_bounds(self) -> bool:
        """
        Fits the map view to the bounding box of the points.

        Points with neither coordinate set are left out. Skipped when no
        point remains, a coordinate is not a finite number, or a corner of
        the box has an invalid coordinate.
        """
        if not self.on_map:
            return False
        lats: List[float] = []
        lngs: List[float] = []
        for point in self._points:
            lat = self._extractors.latitude(point)
            lng = self._extractors.longitude(point)
            if should_skip(lat, lng):
                continue
            if not (is_finite_number(lat) and is_finite_number(lng)):
                logger.debug("Skipping fit bounds: unusable coordinate (%r, %r)", lat, lng)
                return False
            lats.append(lat)
            lngs.append(lng)
        if not lats:
            return False
        south_west = (min(lats), min(lngs))
        north_east = (max(lats), max(lngs))
        for lat, lng in (south_west, north_east):
            if is_invalid(lat) or is_invalid(lng):
                logger.debug("Skipping fit bounds: invalid corner (%r, %r)", lat, lng)
                return False
        self._surface.fit_bounds(south_west, north_east)
        return True

    # -- redraw -------------------------------------------------------------

    def _apply_sink_options(self) -> None:
        config = self._config
        self._sink.set_radius(config.radius, config.blur)
        if config.gradient:
            self._sink.set_gradient(config.gradient)
        self._sink.set_max(config.max)

    def _on_view_change(self, event: Dict[str, Any]) -> None:
        logger.debug("View change: %s", event.get("type"))
        self._reset()

    def _reset(self) -> Optional[RedrawResult]:
        size = surface_size(self._surface)
        self._sink.resize(int(size.x), int(size.y))
        return self.redraw()

    def redraw(self) -> Optional[RedrawResult]:
        """
        Runs one full redraw pass.

        A redraw requested while another is running is replayed once the
        current pass returns. Without a map this is a no-op.
        """
        if not self.on_map:
            logger.debug("Redraw skipped: layer is not on a map")
            return None
        if self._state is LayerState.REDRAWING:
            self._pending = True
            return None

        self._state = LayerState.REDRAWING
        try:
            result = self._run_pipeline()
            while self._pending and self.on_map:
                self._pending = False
                result = self._run_pipeline()
        finally:
            self._pending = False
            if self._state is LayerState.REDRAWING:
                self._state = LayerState.IDLE
        return result

    def _run_pipeline(self) -> RedrawResult:
        surface, sink, config = self._surface, self._sink, self._config

        size = surface_size(surface)
        zoom = float(surface.zoom())
        max_zoom = config.resolve_max_zoom(surface.max_zoom())
        context = GridContext(
            bounds=viewport_bounds(size, config.radius),
            cell_size=config.cell_size,
            pane_offset=surface_pane_position(surface),
            decay_weight=decay_weight(zoom, max_zoom),
            extractors=self._extractors,
        )
        grid = accumulate(self._points, context, surface.project)
        cells = finalize(grid, config.max)

        sink.clear()
        sink.set_data(cells)
        sink.draw(config.min_opacity)

        stats = None
        if cells:
            stats = collect_stats(cells)
            if self._on_stats is not None:
                self._on_stats(stats)

        result = RedrawResult(
            cells=cells,
            stats=stats,
            context=context,
            zoom=zoom,
            max_zoom=max_zoom,
            size=size,
            points=len(self._points),
        )
        self.last_result = result
        logger.debug(
            "Redraw at zoom %.2f: %d points -> %d cells (%d binned)",
            zoom, result.points, len(cells), result.binned,
        )
        return result
