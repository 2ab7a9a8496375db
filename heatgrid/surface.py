"""
Map surface and render sink boundary.

The heatmap core never projects coordinates or paints pixels itself. It talks
to a map surface (projection, zoom, viewport size, pane offset, view-change
events, overlay pane) and to a render sink (the pixel-level heat renderer).
Both are described here as protocols, together with two in-memory
implementations used by the CLI and the tests.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Protocol, Sequence, Tuple


VIEW_EVENTS = ("viewreset", "moveend")

# Web Mercator is undefined at the poles.
MAX_LATITUDE = 85.0511287798


class Point(NamedTuple):
    x: float
    y: float


ORIGIN = Point(0.0, 0.0)


class MapSurface(Protocol):
    def project(self, lat: float, lng: float) -> Point: ...

    def zoom(self) -> float: ...

    def max_zoom(self) -> float: ...

    def size(self) -> Optional[Point]: ...

    def pane_position(self) -> Optional[Point]: ...

    def on(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None: ...

    def off(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None: ...

    def fit_bounds(self, south_west: Tuple[float, float], north_east: Tuple[float, float]) -> None: ...

    def add_overlay(self, overlay: Any) -> None: ...

    def remove_overlay(self, overlay: Any) -> None: ...

    def has_overlay(self, overlay: Any) -> bool: ...


class RenderSink(Protocol):
    def clear(self) -> None: ...

    def set_data(self, cells: Sequence[Any]) -> None: ...

    def draw(self, min_opacity: float) -> None: ...

    def set_radius(self, radius: float, blur: float) -> None: ...

    def set_gradient(self, gradient: Sequence[Tuple[float, str]]) -> None: ...

    def set_max(self, max_intensity: float) -> None: ...

    def resize(self, width: int, height: int) -> None: ...


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class WebMercatorSurface:
    """
    In-memory slippy map using the spherical Web Mercator projection.

    Container points are computed the way tiled web maps do it: a pixel
    origin is fixed whenever the view is reset, and panning only moves the
    map pane, so `pane_position()` drifts while the origin stays put.
    """

    def __init__(
        self,
        center: Tuple[float, float] = (0.0, 0.0),
        zoom: float = 0,
        size: Optional[Tuple[int, int]] = (800, 600),
        min_zoom: float = 0,
        max_zoom: float = 18,
        tile_size: int = 256,
    ):
        if tile_size <= 0:
            raise ValueError("tile_size must be positive")
        self._min_zoom = float(min_zoom)
        self._max_zoom = float(max_zoom)
        self._tile_size = int(tile_size)
        self._size = Point(float(size[0]), float(size[1])) if size else None
        self._handlers: Dict[str, List[Callable[[Dict[str, Any]], None]]] = {}
        self._overlays: List[Any] = []
        self._zoom = 0.0
        self._pixel_origin = ORIGIN
        self._pane = ORIGIN
        self._reset_view(center, zoom)

    # -- projection ---------------------------------------------------------

    def _world_size(self, zoom: float) -> float:
        return self._tile_size * math.pow(2.0, zoom)

    def project_world(self, lat: float, lng: float, zoom: Optional[float] = None) -> Point:
        """Projects a coordinate to absolute world pixels at `zoom`."""
        world = self._world_size(self._zoom if zoom is None else zoom)
        lat = _clamp(float(lat), -MAX_LATITUDE, MAX_LATITUDE)
        sin_lat = math.sin(math.radians(lat))
        x = (float(lng) + 180.0) / 360.0 * world
        y = (0.5 - math.log((1.0 + sin_lat) / (1.0 - sin_lat)) / (4.0 * math.pi)) * world
        return Point(x, y)

    def unproject_world(self, point: Point, zoom: Optional[float] = None) -> Tuple[float, float]:
        world = self._world_size(self._zoom if zoom is None else zoom)
        lng = point.x / world * 360.0 - 180.0
        n = math.pi - 2.0 * math.pi * point.y / world
        lat = math.degrees(math.atan(math.sinh(n)))
        return lat, lng

    def project(self, lat: float, lng: float) -> Point:
        world = self.project_world(lat, lng)
        return Point(
            world.x - self._pixel_origin.x + self._pane.x,
            world.y - self._pixel_origin.y + self._pane.y,
        )

    # -- view state ---------------------------------------------------------

    def zoom(self) -> float:
        return self._zoom

    def max_zoom(self) -> float:
        return self._max_zoom

    def size(self) -> Optional[Point]:
        return self._size

    def pane_position(self) -> Point:
        return self._pane

    def center(self) -> Tuple[float, float]:
        size = self._size or ORIGIN
        world_center = Point(
            self._pixel_origin.x - self._pane.x + size.x / 2.0,
            self._pixel_origin.y - self._pane.y + size.y / 2.0,
        )
        return self.unproject_world(world_center)

    def _reset_view(self, center: Tuple[float, float], zoom: float) -> None:
        self._zoom = _clamp(float(zoom), self._min_zoom, self._max_zoom)
        size = self._size or ORIGIN
        world = self.project_world(center[0], center[1])
        self._pixel_origin = Point(
            float(round(world.x - size.x / 2.0)),
            float(round(world.y - size.y / 2.0)),
        )
        self._pane = ORIGIN

    def set_view(self, center: Tuple[float, float], zoom: Optional[float] = None) -> None:
        self._reset_view(center, self._zoom if zoom is None else zoom)
        self.fire("viewreset")
        self.fire("moveend")

    def set_size(self, width: int, height: int) -> None:
        center = self.center()
        self._size = Point(float(width), float(height))
        self.set_view(center)

    def pan_by(self, dx: float, dy: float) -> None:
        self._pane = Point(self._pane.x - dx, self._pane.y - dy)
        self.fire("moveend")

    def bounds_zoom(
        self,
        south_west: Tuple[float, float],
        north_east: Tuple[float, float],
        padding: float = 0.0,
    ) -> float:
        """Largest whole zoom at which the bounds fit inside the viewport."""
        size = self._size or ORIGIN
        avail_x = size.x - 2.0 * padding
        avail_y = size.y - 2.0 * padding
        zoom = self._max_zoom
        while zoom > self._min_zoom:
            sw = self.project_world(south_west[0], south_west[1], zoom)
            ne = self.project_world(north_east[0], north_east[1], zoom)
            if abs(ne.x - sw.x) <= avail_x and abs(sw.y - ne.y) <= avail_y:
                break
            zoom -= 1
        return max(zoom, self._min_zoom)

    def fit_bounds(
        self,
        south_west: Tuple[float, float],
        north_east: Tuple[float, float],
        padding: float = 0.0,
    ) -> None:
        zoom = self.bounds_zoom(south_west, north_east, padding=padding)
        sw = self.project_world(south_west[0], south_west[1], zoom)
        ne = self.project_world(north_east[0], north_east[1], zoom)
        middle = Point((sw.x + ne.x) / 2.0, (sw.y + ne.y) / 2.0)
        self.set_view(self.unproject_world(middle, zoom), zoom)

    # -- events -------------------------------------------------------------

    def on(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listens(self, event: str) -> bool:
        return bool(self._handlers.get(event))

    def fire(self, event: str) -> None:
        payload = {"type": event, "target": self}
        for handler in list(self._handlers.get(event, [])):
            handler(payload)

    # -- overlay pane -------------------------------------------------------

    def add_overlay(self, overlay: Any) -> None:
        if overlay not in self._overlays:
            self._overlays.append(overlay)

    def remove_overlay(self, overlay: Any) -> None:
        self._overlays.remove(overlay)

    def has_overlay(self, overlay: Any) -> bool:
        return overlay in self._overlays


class RecordingSink:
    """
    Render sink that keeps everything it is given instead of painting it.

    Useful for headless runs: the CLI reads the final cell list from it and
    the tests inspect the call history.
    """

    def __init__(self) -> None:
        self.radius: Optional[float] = None
        self.blur: Optional[float] = None
        self.gradient: Tuple[Tuple[float, str], ...] = ()
        self.max: Optional[float] = None
        self.width = 0
        self.height = 0
        self.data: List[Any] = []
        self.clears = 0
        self.draws: List[Tuple[float, List[Any]]] = []

    def clear(self) -> None:
        self.clears += 1
        self.data = []

    def set_data(self, cells: Sequence[Any]) -> None:
        self.data = list(cells)

    def draw(self, min_opacity: float) -> None:
        self.draws.append((min_opacity, list(self.data)))

    def set_radius(self, radius: float, blur: float) -> None:
        self.radius = radius
        self.blur = blur

    def set_gradient(self, gradient: Sequence[Tuple[float, str]]) -> None:
        self.gradient = tuple(gradient)

    def set_max(self, max_intensity: float) -> None:
        self.max = max_intensity

    def resize(self, width: int, height: int) -> None:
        self.width = int(width)
        self.height = int(height)
