"""Model data <-> storage document shape (field names, _id, geo points)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .operators.geometry import point_coordinates
from .schema import PropertyKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .schema import ModelDescriptor


def _to_geojson(value: Any) -> Any:
    if value is None or (isinstance(value, dict) and value.get("type") == "Point"):
        return value
    return {"type": "Point", "coordinates": point_coordinates(value)}


def _from_geojson(value: Any) -> Any:
    if isinstance(value, dict) and value.get("type") == "Point":
        lng, lat = value["coordinates"][:2]
        return {"lat": lat, "lng": lng}
    return value


def to_storage(model: ModelDescriptor, data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert model data to a storage document.

    Property names become storage field names and geo points become
    GeoJSON. The id is not touched; callers place it under ``_id``.
    """
    doc: dict[str, Any] = {}
    for key, value in data.items():
        definition = model.properties.get(key)
        if definition is not None and definition.kind is PropertyKind.GEOPOINT:
            value = _to_geojson(value)
        doc[model.column_name(key)] = value
    return doc


def from_storage(
    model: ModelDescriptor,
    doc: Mapping[str, Any],
    *,
    include_id: bool = True,
) -> dict[str, Any]:
    """Convert a storage document back to model data.

    Maps ``_id`` to the declared id name; drops it when ``include_id`` is
    False (the projection excluded the id).
    """
    data: dict[str, Any] = {}
    id_name = model.id_name()
    for column, value in doc.items():
        if column == "_id":
            if include_id:
                data[id_name] = value
            continue
        prop = model.property_name(column)
        definition = model.properties.get(prop)
        if definition is not None and definition.kind is PropertyKind.GEOPOINT:
            value = _from_geojson(value)
        data[prop] = value
    return data
