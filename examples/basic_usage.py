"""
Basic usage example for heatgrid.
Generates synthetic points and bins them for one map view.
"""

from heatgrid import (
    HeatmapLayer,
    WebMercatorSurface,
    build_grid_report,
    generate_synthetic_points,
)

# Step 1: Generate clustered points around central London
points = generate_synthetic_points(count=1000, seed=7, center=(51.505, -0.09))

# Step 2: Build a map view
surface = WebMercatorSurface(center=(51.505, -0.09), zoom=12, size=(1024, 768))

# Step 3: Add the heatmap layer and read back the first redraw
layer = HeatmapLayer(points, config={"radius": 25, "max": 2}, on_stats=print)
with layer.attached(surface):
    result = layer.last_result
    report = build_grid_report(result, layer.config, center=surface.center())

print(f"{result.points} points -> {len(result.cells)} cells")
print("Sampling:")
print(report["sampling"])
