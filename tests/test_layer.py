"""
Heatmap layer lifecycle and redraw tests.
"""

import pytest

from heatgrid.config import HeatmapConfig, HeatmapConfigError
from heatgrid.layer import HeatmapLayer, LayerState, surface_pane_position, surface_size
from heatgrid.surface import Point, RecordingSink, WebMercatorSurface


class FlatSurface:
    """Surface whose container pixels are (lng, lat) shifted by the pane."""

    def __init__(self, size=(400, 400), zoom=18, max_zoom=18, pane=(0, 0)):
        self._size = None if size is None else Point(*size)
        self._zoom = zoom
        self._max_zoom = max_zoom
        self.pane = Point(*pane)
        self.handlers = {}
        self.overlays = []
        self.fitted = []

    def project(self, lat, lng):
        return Point(lng + self.pane.x, lat + self.pane.y)

    def zoom(self):
        return self._zoom

    def max_zoom(self):
        return self._max_zoom

    def size(self):
        return self._size

    def pane_position(self):
        return self.pane

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event, handler):
        self.handlers.get(event, []).remove(handler)

    def fire(self, event):
        for handler in list(self.handlers.get(event, [])):
            handler({"type": event})

    def fit_bounds(self, south_west, north_east):
        self.fitted.append((south_west, north_east))

    def add_overlay(self, overlay):
        self.overlays.append(overlay)

    def remove_overlay(self, overlay):
        self.overlays.remove(overlay)

    def has_overlay(self, overlay):
        return overlay in self.overlays


def _pt(x, y, intensity=1.0):
    return {"lat": y, "lng": x, "intensity": intensity}


def test_add_to_mounts_and_draws_once():
    surface = FlatSurface(size=(320, 240))
    layer = HeatmapLayer([_pt(100, 100)], config={"radius": 20, "blur": 5, "max": 2})
    assert layer.state is LayerState.UNINITIALIZED

    layer.add_to(surface)
    sink = layer.sink
    assert layer.state is LayerState.IDLE
    assert surface.has_overlay(sink)
    assert (sink.radius, sink.blur, sink.max) == (20, 5, 2)
    assert (sink.width, sink.height) == (320, 240)
    assert len(sink.draws) == 1
    assert sink.draws[0][0] == 0.01
    assert len(surface.handlers["viewreset"]) == 1
    assert len(surface.handlers["moveend"]) == 1


def test_scenario_two_points_one_cell():
    surface = FlatSurface(pane=(10, 10))
    stats = []
    layer = HeatmapLayer(
        [_pt(90, 90), _pt(95, 95)],
        config={"radius": 30},
        on_stats=stats.append,
    )
    layer.add_to(surface)
    cells = layer.sink.data
    assert len(cells) == 1
    assert cells[0].count == 2
    assert (cells[0].x, cells[0].y) == (103, 103)
    assert stats == [{"min": 2.0, "max": 2.0}]


def test_view_change_triggers_redraw():
    surface = FlatSurface()
    layer = HeatmapLayer([_pt(100, 100)]).add_to(surface)
    surface.fire("moveend")
    surface.fire("viewreset")
    assert len(layer.sink.draws) == 3


def test_empty_points_clear_and_draw_without_stats():
    surface = FlatSurface()
    stats = []
    layer = HeatmapLayer([_pt(100, 100)], on_stats=stats.append).add_to(surface)
    assert len(stats) == 1

    result = layer.set_points([])
    assert result.cells == []
    assert result.stats is None
    assert layer.sink.data == []
    assert layer.sink.draws[-1] == (0.01, [])
    assert layer.sink.clears == 2
    assert len(stats) == 1


def test_invalid_points_produce_no_stats():
    stats = []
    layer = HeatmapLayer([{"lat": 0, "lng": 0, "intensity": 0}], on_stats=stats.append)
    layer.add_to(FlatSurface())
    assert layer.last_result.cells == []
    assert stats == []


def test_decay_uses_surface_zoom_and_max_zoom():
    surface = FlatSurface(zoom=12, max_zoom=14)
    layer = HeatmapLayer([_pt(50, 50, 4.0)], config={"max": 10})
    layer.add_to(surface)
    assert layer.sink.data[0].intensity == 0.5

    layer.set_options(max_zoom=None)
    assert layer.last_result.max_zoom == 14
    assert layer.sink.data[0].intensity == 2.0


def test_intensity_capped_at_config_max():
    points = [_pt(100, 100, 2.5), _pt(101, 101, 2.5)]
    layer = HeatmapLayer(points, config={"max": 3}).add_to(FlatSurface())
    assert layer.sink.data[0].intensity == 3


def test_update_replaces_config_and_pushes_to_sink():
    layer = HeatmapLayer([_pt(100, 100)]).add_to(FlatSurface())
    layer.update(config=HeatmapConfig(radius=40, blur=10, gradient={0.5: "lime", 1: "red"}))
    assert (layer.sink.radius, layer.sink.blur) == (40, 10)
    assert layer.sink.gradient == ((0.5, "lime"), (1.0, "red"))
    assert layer.last_result.context.cell_size == 20

    with pytest.raises(HeatmapConfigError):
        layer.set_options(radius=0)
    assert layer.config.radius == 40


def test_rejected_update_keeps_points_and_config():
    layer = HeatmapLayer([_pt(100, 100)]).add_to(FlatSurface())
    draws = len(layer.sink.draws)
    with pytest.raises(HeatmapConfigError):
        layer.update(points=[], config={"radius": 0})
    assert layer.points == [_pt(100, 100)]
    assert layer.config.radius == 30
    assert len(layer.sink.draws) == draws


def test_add_point_redraws():
    layer = HeatmapLayer().add_to(FlatSurface())
    layer.add_point(_pt(10, 10))
    layer.add_point(_pt(300, 300))
    assert len(layer.sink.draws) == 3
    assert sum(cell.count for cell in layer.sink.data) == 2


def test_redraw_before_add_is_noop():
    layer = HeatmapLayer([_pt(1, 1)])
    assert layer.redraw() is None
    assert layer.update(points=[_pt(2, 2)]) is None
    assert layer.points == [_pt(2, 2)]


def test_reentrant_trigger_replays_after_current_pass():
    surface = FlatSurface()
    runs = []

    def on_stats(stats):
        runs.append(stats)
        if len(runs) == 2:
            surface.fire("moveend")
            assert layer.state is LayerState.REDRAWING

    layer = HeatmapLayer([_pt(100, 100)], on_stats=on_stats)
    layer.add_to(surface)
    assert len(runs) == 1
    layer.redraw()
    assert len(runs) == 3
    assert layer.state is LayerState.IDLE


def test_pipeline_error_leaves_layer_idle():
    layer = HeatmapLayer([_pt(100, 100)]).add_to(FlatSurface())
    with pytest.raises(TypeError):
        layer.set_points([_pt(100, 100, "hot")])
    assert layer.state is LayerState.IDLE


def test_remove_releases_sink_and_listeners():
    surface = FlatSurface()
    layer = HeatmapLayer([_pt(100, 100)]).add_to(surface)
    sink = layer.sink
    layer.remove()
    assert layer.state is LayerState.UNMOUNTED
    assert layer.sink is None
    assert not surface.has_overlay(sink)
    assert surface.handlers["moveend"] == []
    layer.remove()


def test_remove_tolerates_overlay_already_gone():
    surface = FlatSurface()
    layer = HeatmapLayer().add_to(surface)
    surface.remove_overlay(layer.sink)
    layer.remove()
    assert layer.state is LayerState.UNMOUNTED


def test_lifecycle_misuse():
    layer = HeatmapLayer()
    with pytest.raises(RuntimeError):
        layer.remove()
    layer.add_to(FlatSurface())
    with pytest.raises(RuntimeError):
        layer.add_to(FlatSurface())
    layer.remove()
    with pytest.raises(RuntimeError):
        layer.add_to(FlatSurface())


def test_attached_releases_on_error():
    surface = FlatSurface()
    layer = HeatmapLayer([_pt(100, 100)])
    with pytest.raises(KeyError):
        with layer.attached(surface):
            assert layer.state is LayerState.IDLE
            raise KeyError("boom")
    assert layer.state is LayerState.UNMOUNTED
    assert surface.overlays == []


def test_sink_factory_used_per_mount():
    made = []

    def factory():
        sink = RecordingSink()
        made.append(sink)
        return sink

    layer = HeatmapLayer(sink_factory=factory)
    layer.add_to(FlatSurface())
    assert made == [layer.sink]


def test_fit_bounds_on_load_and_update():
    surface = FlatSurface()
    layer = HeatmapLayer(
        [_pt(10, 20), _pt(30, 5)],
        fit_bounds_on_load=True,
        fit_bounds_on_update=True,
    )
    layer.add_to(surface)
    assert surface.fitted == [((5, 10), (20, 30))]
    layer.set_points([_pt(1, 2), _pt(3, 4)])
    assert surface.fitted[-1] == ((2, 1), (4, 3))


def test_fit_bounds_skipped_for_invalid_corner():
    surface = FlatSurface()
    layer = HeatmapLayer([_pt(0, 20), _pt(30, 5)], fit_bounds_on_load=True)
    layer.add_to(surface)
    assert surface.fitted == []
    assert HeatmapLayer().fit_bounds() is False


def test_fit_bounds_ignores_points_without_coordinates():
    surface = FlatSurface()
    points = [
        {"lat": None, "lng": None, "intensity": 1},
        {"lat": "", "lng": "", "intensity": 1},
        _pt(10, 10),
        _pt(20, 30),
    ]
    layer = HeatmapLayer(points, fit_bounds_on_load=True).add_to(surface)
    assert surface.fitted == [((10, 10), (30, 20))]
    assert layer.state is LayerState.IDLE


def test_fit_bounds_skipped_for_non_numeric_coordinate():
    surface = FlatSurface()
    layer = HeatmapLayer([_pt(10, 10)]).add_to(surface)
    with pytest.raises(TypeError):
        layer.set_points([_pt(10, 10), {"lat": "north", "lng": 5, "intensity": 1}])
    assert layer.fit_bounds() is False
    assert surface.fitted == []


def test_fit_bounds_skipped_when_no_point_has_coordinates():
    surface = FlatSurface()
    HeatmapLayer([{"lat": None, "lng": None, "intensity": 1}], fit_bounds_on_load=True).add_to(surface)
    assert surface.fitted == []


def test_missing_size_degrades_to_zero():
    surface = FlatSurface(size=None)
    surface.pane = None
    assert surface_size(surface) == Point(0, 0)
    assert surface_pane_position(surface) == Point(0, 0)
    assert surface_size(None) == Point(0, 0)

    layer = HeatmapLayer([_pt(10, 10), _pt(200, 200)], config={"radius": 30})
    surface.pane = Point(0, 0)
    layer.add_to(surface)
    assert (layer.sink.width, layer.sink.height) == (0, 0)
    assert sum(cell.count for cell in layer.sink.data) == 1


def test_web_mercator_pan_keeps_cell_count():
    surface = WebMercatorSurface(center=(51.5, -0.09), zoom=13, size=(800, 600))
    points = [
        {"lat": 51.5 + i * 0.001, "lng": -0.09 + i * 0.001, "intensity": 1.0}
        for i in range(-5, 6)
    ]
    with HeatmapLayer(points).attached(surface) as layer:
        before = layer.last_result
        surface.pan_by(15, 15)
        after = layer.last_result
        assert after is not before
        assert after.binned == before.binned == len(points)
        assert len(after.cells) == len(before.cells)
