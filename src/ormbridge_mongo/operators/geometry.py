"""Geo operator -> $near with a GeoJSON point (2dsphere)."""

from __future__ import annotations

from typing import Any

from ..exceptions import MongoQueryError
from .tags import FilterOperator

_METERS_PER_UNIT: dict[str, float] = {
    "meters": 1.0,
    "kilometers": 1000.0,
    "miles": 1609.34,
    "feet": 0.3048,
}


def point_coordinates(val: Any) -> list[float]:
    """Return ``[lng, lat]`` for a geo point.

    Accepts ``{"lat": .., "lng": ..}``, a GeoJSON point, an object with
    ``lat``/``lng`` attributes, or an already ordered ``[lng, lat]`` pair.
    """
    if isinstance(val, dict):
        if "coordinates" in val:
            return list(val["coordinates"])
        if "lat" in val and "lng" in val:
            return [val["lng"], val["lat"]]
    elif isinstance(val, (list, tuple)) and len(val) == 2:
        return list(val)
    elif hasattr(val, "lat") and hasattr(val, "lng"):
        return [val.lng, val.lat]
    raise MongoQueryError(f"near requires a geo point, got {val!r}")


def _distance(value: Any, unit: str | None) -> Any:
    # radians/degrees have no metric equivalent for $near; keep as given
    if unit in _METERS_PER_UNIT:
        return value * _METERS_PER_UNIT[unit]
    return value


def compile_geometry(
    field: str, op: str, val: Any, modifiers: dict[str, Any]
) -> dict[str, Any] | None:
    """Compile ``near``. Returns ``None`` for any other operator."""
    try:
        filter_op = FilterOperator(op)
    except ValueError:
        return None
    if filter_op != FilterOperator.NEAR:
        return None
    near: dict[str, Any] = {
        "$geometry": {"type": "Point", "coordinates": point_coordinates(val)}
    }
    unit = modifiers.get("unit")
    if modifiers.get("maxDistance") is not None:
        near["$maxDistance"] = _distance(modifiers["maxDistance"], unit)
    if modifiers.get("minDistance") is not None:
        near["$minDistance"] = _distance(modifiers["minDistance"], unit)
    return {field: {"$near": near}}
