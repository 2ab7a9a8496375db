"""
Heatmap layer configuration.

Every recognized option is a field of `HeatmapConfig`; anything else is
rejected. Values are checked against the packaged JSON schema when the
config is built, so a bad radius never reaches a redraw.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace as _dc_replace
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, Mapping, Optional, Tuple

from jsonschema import ValidationError, validate as _jsonschema_validate

CONFIG_SCHEMA = "heatmap-config-0.1.schema.json"

PRESETS: Dict[str, Dict[str, Any]] = {
    "default": {
        "max": 3.0,
        "radius": 30.0,
        "max_zoom": 18.0,
        "min_opacity": 0.01,
        "blur": 15.0,
        "gradient": {},
    },
    # leaflet.heat defaults
    "classic": {
        "max": 1.0,
        "radius": 25.0,
        "max_zoom": 18.0,
        "min_opacity": 0.05,
        "blur": 15.0,
        "gradient": {},
    },
}


class HeatmapConfigError(ValueError):
    """Raised for configuration the heatmap cannot be drawn with."""


@lru_cache(maxsize=None)
def _load_schema_text(name: str) -> str:
    schema_path = resources.files("heatgrid").joinpath(f"schemas/{name}")
    with schema_path.open("r", encoding="utf-8") as handle:
        return handle.read()


def load_schema(name: str) -> Dict[str, Any]:
    return json.loads(_load_schema_text(name))


def load_config_schema() -> Dict[str, Any]:
    return load_schema(CONFIG_SCHEMA)


def _normalize_gradient(gradient: Any) -> Tuple[Tuple[float, str], ...]:
    if gradient is None:
        return ()
    items = gradient.items() if isinstance(gradient, Mapping) else gradient
    stops = []
    for stop, color in items:
        try:
            value = float(stop)
        except (TypeError, ValueError) as exc:
            raise HeatmapConfigError(f"gradient stop must be a number, got {stop!r}") from exc
        if not 0.0 <= value <= 1.0:
            raise HeatmapConfigError(f"gradient stop {value} is outside [0, 1]")
        stops.append((value, color))
    return tuple(sorted(stops, key=lambda pair: pair[0]))


def validate_config(data: Mapping[str, Any], schema: Optional[Dict[str, Any]] = None) -> None:
    """
    Checks a config mapping against the schema.

    Unknown keys, a non-positive radius or max, an opacity outside [0, 1] or a
    negative blur raise `HeatmapConfigError`.
    """
    instance = dict(data)
    if "gradient" in instance:
        instance["gradient"] = {
            str(stop): color for stop, color in _normalize_gradient(instance["gradient"])
        }
    try:
        _jsonschema_validate(instance=instance, schema=schema or load_config_schema())
    except ValidationError as exc:
        where = ".".join(str(part) for part in exc.absolute_path) or "config"
        raise HeatmapConfigError(f"{where}: {exc.message}") from exc


@dataclass(frozen=True)
class HeatmapConfig:
    max: float = 3.0
    radius: float = 30.0
    max_zoom: Optional[float] = 18.0
    min_opacity: float = 0.01
    blur: float = 15.0
    gradient: Tuple[Tuple[float, str], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "gradient", _normalize_gradient(self.gradient))
        validate_config(self.to_dict())

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None, preset: str = "default") -> "HeatmapConfig":
        if preset not in PRESETS:
            raise HeatmapConfigError(f"Unknown preset: {preset}")
        values = dict(PRESETS[preset])
        values.update(data or {})
        validate_config(values)
        return cls(**values)

    @property
    def cell_size(self) -> float:
        return self.radius / 2.0

    def resolve_max_zoom(self, surface_max_zoom: float) -> float:
        return float(surface_max_zoom) if self.max_zoom is None else float(self.max_zoom)

    def replace(self, **changes: Any) -> "HeatmapConfig":
        unknown = set(changes) - set(PRESETS["default"])
        if unknown:
            raise HeatmapConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return _dc_replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["gradient"] = {str(stop): color for stop, color in self.gradient}
        return data
