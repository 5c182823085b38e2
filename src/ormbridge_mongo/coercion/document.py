"""Schema-driven coercion of documents into storage-native types."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from bson.decimal128 import Decimal128

from ..exceptions import FormatError
from ..schema import DECIMAL_MARKER, ModelDescriptor, PropertyKind
from .object_id import coerce_reference_id, is_declared_object_id

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..schema import PropertyDefinition

_NUMERIC_PATTERN = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")


def is_decimal_property(definition: PropertyDefinition | None) -> bool:
    if definition is None:
        return False
    data_type = definition.data_type
    return isinstance(data_type, str) and data_type.lower() == DECIMAL_MARKER


def to_decimal128(value: Any) -> Any:
    """Convert a numeric string (or ``Decimal``) to ``Decimal128``."""
    if isinstance(value, Decimal128):
        return value
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, str):
        if not _NUMERIC_PATTERN.match(value.strip()):
            raise FormatError(f"{value!r} is not a valid decimal string")
        return Decimal128(value.strip())
    return value


def coerce_value(
    definition: PropertyDefinition | None, value: Any, strict: bool = False
) -> Any:
    """Apply the per-property visitor to a single value.

    Falsy values are returned untouched, except zero ``Decimal`` values,
    which BSON can only store as ``Decimal128``.
    """
    if not value and not isinstance(value, Decimal):
        return value
    if is_decimal_property(definition):
        if isinstance(value, (list, tuple)):
            return [to_decimal128(v) for v in value]
        return to_decimal128(value)
    if is_declared_object_id(definition):
        return coerce_reference_id(definition, value, strict)
    if isinstance(value, str):
        return coerce_reference_id(definition, value, strict)
    return value


def _coerce_nested(
    value: Any, schema: Mapping[str, PropertyDefinition], strict: bool
) -> Any:
    if isinstance(value, dict):
        return _coerce_mapping(value, schema, strict)
    if isinstance(value, list):
        return [_coerce_nested(item, schema, strict) for item in value]
    return value


def _coerce_mapping(
    document: Mapping[str, Any],
    schema: Mapping[str, PropertyDefinition],
    strict: bool,
) -> dict[str, Any]:
    # Schema-only keys carry no value to coerce.
    result = dict(document)
    for key, value in document.items():
        definition = schema.get(key)
        nested = definition.nested_schema if definition is not None else None
        if nested is not None and definition is not None:
            if definition.kind is PropertyKind.ARRAY and not isinstance(value, list):
                result[key] = value
            else:
                result[key] = _coerce_nested(value, nested, strict)
            continue
        result[key] = coerce_value(definition, value, strict)
    return result


def coerce_document(
    document: Mapping[str, Any],
    model: ModelDescriptor | Mapping[str, PropertyDefinition],
    strict: bool = False,
) -> dict[str, Any]:
    """Return a copy of ``document`` with storage-native values.

    Walks the document against the model schema, recursing into nested
    object schemas and arrays of them. Properties marked ``decimal128``
    become ``Decimal128``; ObjectID-typed properties must hold ObjectID
    values; everything else goes through default ObjectID coercion.
    """
    schema = model.properties if isinstance(model, ModelDescriptor) else model
    return _coerce_mapping(document, schema, strict)
