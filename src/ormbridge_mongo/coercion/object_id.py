"""ObjectID coercion rules.

Three modes decide whether a value becomes a native ``ObjectId``:

- the property declares the ObjectID storage type: the value must convert,
  otherwise :class:`TypeMismatchError` is raised;
- strict coercion is enabled: strings are left alone, only values that are
  already ``ObjectId`` instances pass as ObjectIDs;
- default mode: any string of exactly 24 hex characters is converted, even
  without a declared type. Existing data depends on this, keep it as is.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from bson import ObjectId

from ..exceptions import TypeMismatchError
from ..schema import OBJECT_ID_MARKER, PropertyKind

if TYPE_CHECKING:
    from ..schema import PropertyDefinition

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

_OBJECT_ID_TYPE_NAMES = frozenset({OBJECT_ID_MARKER, f"[{OBJECT_ID_MARKER}]"})


def is_object_id_string(value: Any) -> bool:
    return isinstance(value, str) and OBJECT_ID_PATTERN.match(value) is not None


def object_id(value: Any) -> Any:
    """Convert ``value`` to ``ObjectId`` when it is ObjectID-like.

    Anything else (numbers, ``"line-by-line"``, ...) is returned unchanged.
    """
    if isinstance(value, ObjectId):
        return value
    if is_object_id_string(value):
        return ObjectId(value)
    return value


def is_object_id_type(data_type: Any) -> bool:
    """Case-insensitive match of the ObjectID marker and its array form."""
    return isinstance(data_type, str) and data_type.lower() in _OBJECT_ID_TYPE_NAMES


def is_declared_object_id(definition: PropertyDefinition | None) -> bool:
    """True when the property is explicitly typed as ObjectID."""
    if definition is None:
        return False
    if is_object_id_type(definition.data_type) or is_object_id_type(definition.type):
        return True
    if definition.kind is PropertyKind.REFERENCE:
        return True
    return (
        definition.kind is PropertyKind.ARRAY
        and definition.items is not None
        and definition.items.kind is PropertyKind.REFERENCE
    )


def is_object_id_property(
    definition: PropertyDefinition | None, value: Any, strict: bool = False
) -> bool:
    """Decide whether ``value`` should be stored as an ObjectID."""
    if is_declared_object_id(definition):
        return True
    if isinstance(value, ObjectId):
        return True
    if not isinstance(value, str) or strict:
        return False
    return is_object_id_string(value)


def _strict_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if is_object_id_string(value):
        return ObjectId(value)
    raise TypeMismatchError(f"{value!r} is not an ObjectID string")


def coerce_reference_id(
    definition: PropertyDefinition | None, value: Any, strict: bool = False
) -> Any:
    """Coerce ``value`` according to the property's ObjectID rules."""
    if is_declared_object_id(definition):
        if isinstance(value, (list, tuple)):
            return [_strict_object_id(v) for v in value]
        return _strict_object_id(value)
    if is_object_id_property(definition, value, strict):
        return object_id(value)
    return value
