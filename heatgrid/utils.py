"""
Utility functions for validation.
"""

from .grid import Bounds, GridCell, GridContext, accumulate, decay_weight, field_extractors, finalize
from .surface import Point


def validate_implementation() -> bool:
    """
    Runs the binning pipeline against known reference values.

    Checks:
    - Decay weight at and below the reference zoom
    - Centroid and weight of merged points
    - Intensity cap applied by the finalizer
    - Points with no coordinates are dropped
    """
    checks = []

    checks.append(("decay at max zoom", decay_weight(18, 18) == 1.0))
    checks.append(("decay six levels out", decay_weight(12, 18) == 0.125))
    checks.append(("decay clamp", decay_weight(0, 18) == decay_weight(-10, 18)))

    context = GridContext(
        bounds=Bounds(Point(-30, -30), Point(230, 230)),
        cell_size=15.0,
        pane_offset=Point(0, 0),
        decay_weight=1.0,
        extractors=field_extractors(),
    )
    points = [
        {"lat": 100.0, "lng": 91.0, "intensity": 1.0},
        {"lat": 104.0, "lng": 95.0, "intensity": 3.0},
        {"lat": 0, "lng": 0, "intensity": 1.0},
    ]
    grid = accumulate(points, context, lambda lat, lng: Point(lng, lat))
    cells = list(grid.values())
    checks.append(("invalid point dropped", sum(c.count for c in cells) == 2))
    checks.append(("merged into one cell", len(cells) == 1))
    merged = cells[0] if cells else GridCell(0.0, 0.0, 0.0)
    checks.append(("weighted centroid", (merged.x, merged.y) == (94.0, 103.0)))

    capped = finalize({(0, 0): GridCell(x=1.4, y=2.5, weight=5.0)}, max_intensity=3)
    checks.append(("intensity cap", capped[0].intensity == 3))

    print("Running heatgrid implementation validation...")
    ok = True
    for name, passed in checks:
        print(f"  [{'ok' if passed else 'FAIL'}] {name}")
        ok = ok and passed
    return ok
