"""
Point ingestion and synthetic dataset generation utilities.

Points are plain dicts with `lat`, `lng` and `intensity` keys, which is what
`field_extractors()` reads by default.
"""

from __future__ import annotations

import csv
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

LAT_COLUMNS = ("lat", "latitude")
LNG_COLUMNS = ("lng", "lon", "longitude")
INTENSITY_COLUMNS = ("intensity", "weight", "value")


def _pick_column(fieldnames: Sequence[str], candidates: Sequence[str], required: bool = True) -> Optional[str]:
    lowered = {name.strip().lower(): name for name in fieldnames}
    for candidate in candidates:
        if candidate in lowered:
            return lowered[candidate]
    if required:
        raise ValueError(f"CSV is missing a column; expected one of: {', '.join(candidates)}")
    return None


def _parse_float(value, default: float = 0.0) -> float:
    text = "" if value is None else str(value).strip()
    if not text:
        return default
    return float(text)


def generate_synthetic_points(
    count: int = 500,
    seed: int = 0,
    center: Tuple[float, float] = (51.505, -0.09),
    spread: float = 0.05,
    clusters: int = 3,
) -> List[Dict[str, float]]:
    """
    Generates a reproducible set of clustered, weighted points.

    Args:
        count: Number of points to generate.
        seed: RNG seed for reproducibility.
        center: (lat, lng) the cluster centres are scattered around.
        spread: Standard deviation of the cluster scatter, in degrees.
        clusters: Number of gaussian clusters.

    Returns:
        List of dicts with keys: lat, lng, intensity.
    """
    if count < 0:
        raise ValueError("count must be non-negative")
    if clusters <= 0:
        raise ValueError("clusters must be positive")

    rng = np.random.default_rng(seed)
    centres = rng.normal(loc=center, scale=spread, size=(clusters, 2))
    owners = rng.integers(0, clusters, count)
    offsets = rng.normal(scale=spread / 4.0, size=(count, 2))
    intensities = rng.uniform(0.1, 1.0, count)

    rows: List[Dict[str, float]] = []
    for owner, offset, intensity in zip(owners, offsets, intensities):
        lat, lng = centres[owner] + offset
        rows.append({
            "lat": round(float(lat), 6),
            "lng": round(float(lng), 6),
            "intensity": round(float(intensity), 4),
        })
    return rows


def save_points_csv(path: str, points: Iterable[Dict[str, float]]) -> None:
    """
    Saves points to CSV. Columns: lat, lng, intensity.
    """
    with open(path, "w", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=["lat", "lng", "intensity"])
        writer.writeheader()
        for point in points:
            writer.writerow({
                "lat": point["lat"],
                "lng": point["lng"],
                "intensity": point.get("intensity", 1.0),
            })


def load_points_csv(path: str) -> List[Dict[str, float]]:
    """
    Loads points from a CSV with latitude, longitude and optional intensity
    columns. Blank coordinates load as 0.0; a missing intensity defaults to 1.0.
    """
    rows: List[Dict[str, float]] = []
    with open(path, newline="") as handle:
        reader = csv.DictReader(handle)
        fieldnames = reader.fieldnames or []
        lat_col = _pick_column(fieldnames, LAT_COLUMNS)
        lng_col = _pick_column(fieldnames, LNG_COLUMNS)
        intensity_col = _pick_column(fieldnames, INTENSITY_COLUMNS, required=False)
        for line, row in enumerate(reader, start=2):
            try:
                rows.append({
                    "lat": _parse_float(row[lat_col]),
                    "lng": _parse_float(row[lng_col]),
                    "intensity": _parse_float(row[intensity_col], default=1.0) if intensity_col else 1.0,
                })
            except ValueError as exc:
                raise ValueError(f"{path}:{line}: {exc}") from exc
    return rows
