"""Update payload parsing: plain data vs. extended update operators."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .coercion import coerce_document, coerce_value
from .schema import PropertyKind
from .serialization import to_storage
from .settings import resolve_setting

if TYPE_CHECKING:
    from .schema import ModelDescriptor, PropertyDefinition
    from .settings import ConnectorSettings

FIELD_OPERATORS = (
    "$currentDate",
    "$inc",
    "$max",
    "$min",
    "$mul",
    "$rename",
    "$setOnInsert",
    "$set",
    "$unset",
)
ARRAY_OPERATORS = ("$addToSet", "$pop", "$pullAll", "$pull", "$push")
BITWISE_OPERATORS = ("$bit",)

EXTENDED_OPERATORS = FIELD_OPERATORS + ARRAY_OPERATORS + BITWISE_OPERATORS

# Operands of these name fields or carry flags; their values are not data.
_NAME_ONLY_OPERATORS = ("$currentDate", "$unset", "$pop", "$bit")
# Operands of these are array elements rather than whole property values.
_ELEMENT_OPERATORS = ("$addToSet", "$pull", "$push")


def extended_operators_enabled(
    model: ModelDescriptor,
    settings: ConnectorSettings,
    options: Mapping[str, Any] | None = None,
) -> bool:
    """Resolve ``allow_extended_operators``: call, then model, then connector."""
    options = options or {}
    enabled = resolve_setting(
        options.get("allow_extended_operators"),
        model.settings.allow_extended_operators,
        settings.allow_extended_operators,
        default=False,
    )
    return enabled is True


def parse_update_data(
    model: ModelDescriptor,
    data: Mapping[str, Any],
    settings: ConnectorSettings,
    options: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Turn an update payload into a MongoDB update document.

    With extended operators enabled, recognised operators are kept verbatim
    and any other top-level key is dropped; a payload without operators is
    wrapped in ``$set``. With them disabled, the payload is always wrapped.
    """
    if not extended_operators_enabled(model, settings, options):
        return {"$set": dict(data)}
    parsed = {op: data[op] for op in EXTENDED_OPERATORS if data.get(op)}
    if not parsed:
        return {"$set": dict(data)}
    return parsed


def _storage_path(model: ModelDescriptor, path: str) -> str:
    head, dot, rest = path.partition(".")
    return model.column_name(head) + dot + rest


def _coerce_one(
    definition: PropertyDefinition | None, value: Any, strict: bool
) -> Any:
    if definition is None:
        return coerce_value(None, value, strict)
    return coerce_document({"value": value}, {"value": definition}, strict)["value"]


def _coerce_item(definition: PropertyDefinition, value: Any, strict: bool) -> Any:
    if definition.data_type is not None or definition.items is None:
        return coerce_value(definition, value, strict)
    return _coerce_one(definition.items, value, strict)


def _coerce_element(
    definition: PropertyDefinition | None, value: Any, strict: bool
) -> Any:
    if definition is None or definition.kind is not PropertyKind.ARRAY:
        return _coerce_one(definition, value, strict)
    if isinstance(value, Mapping) and "$each" in value:
        each = [_coerce_item(definition, v, strict) for v in value["$each"]]
        return {**value, "$each": each}
    return _coerce_item(definition, value, strict)


def _rename_target(model: ModelDescriptor, target: Any) -> Any:
    return _storage_path(model, target) if isinstance(target, str) else target


def _operand_to_storage(
    model: ModelDescriptor, operator: str, operand: Mapping[str, Any], strict: bool
) -> dict[str, Any]:
    id_name = model.id_name()
    body = {k: v for k, v in operand.items() if k != id_name}
    if operator == "$rename":
        return {
            _storage_path(model, k): _rename_target(model, v) for k, v in body.items()
        }
    if operator in _NAME_ONLY_OPERATORS:
        return {_storage_path(model, k): v for k, v in body.items()}
    if operator in _ELEMENT_OPERATORS:
        return {
            _storage_path(model, k): _coerce_element(model.property_at(k), v, strict)
            for k, v in body.items()
        }

    top = {k: v for k, v in body.items() if "." not in k}
    doc = to_storage(model, coerce_document(top, model, strict))
    for path, value in body.items():
        if "." in path:
            doc[_storage_path(model, path)] = _coerce_one(
                model.property_at(path), value, strict
            )
    return doc


def update_to_storage(
    model: ModelDescriptor, update: Mapping[str, Any], strict: bool = False
) -> dict[str, Any]:
    """Coerce every operator's operand and map its fields to storage names.

    Applied after :func:`parse_update_data`, so the operands are still keyed
    by logical property names.
    """
    result: dict[str, Any] = {}
    for operator, operand in update.items():
        if isinstance(operand, Mapping):
            result[operator] = _operand_to_storage(model, operator, operand, strict)
        else:
            result[operator] = operand
    return result
