"""Value coercion into storage-native BSON types."""

from __future__ import annotations

from .document import coerce_document, coerce_value, is_decimal_property, to_decimal128
from .object_id import (
    OBJECT_ID_PATTERN,
    coerce_reference_id,
    is_declared_object_id,
    is_object_id_property,
    is_object_id_string,
    is_object_id_type,
    object_id,
)

__all__ = [
    "OBJECT_ID_PATTERN",
    "coerce_document",
    "coerce_reference_id",
    "coerce_value",
    "is_decimal_property",
    "is_declared_object_id",
    "is_object_id_property",
    "is_object_id_string",
    "is_object_id_type",
    "object_id",
    "to_decimal128",
]
