"""
Live view example: pans and zooms a map and reports each redraw.
"""

import logging
import time

from heatgrid import HeatmapLayer, WebMercatorSurface, generate_synthetic_points

logging.basicConfig(level=logging.DEBUG, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

points = generate_synthetic_points(count=5000, seed=11, center=(40.7128, -74.006), spread=0.08)
surface = WebMercatorSurface(center=(40.7128, -74.006), zoom=11, size=(800, 600))


def show(stats):
    timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] zoom={surface.zoom():.0f} points per cell min={stats['min']:.0f} max={stats['max']:.0f}")


print("Starting live view...\n")

layer = HeatmapLayer(points, on_stats=show, fit_bounds_on_load=True)
with layer.attached(surface):
    try:
        step = 0
        while True:
            if step % 4 == 3:
                surface.set_view(surface.center(), 10 + step % 8)
            else:
                surface.pan_by(40, 25)
            step += 1
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nLive view stopped by user.")
