"""Mongo query builder: abstract where/order/fields -> native documents."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from .coercion import coerce_value
from .operators import (
    MODIFIER_KEYS,
    FilterOperator,
    compile_geometry,
    compile_passthrough,
    compile_set,
    compile_standard,
    compile_string,
)
from .settings import ConnectorSettings, resolve_setting

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .schema import ModelDescriptor, PropertyDefinition

ID_FIELD = "_id"

# BSON type number for null.
NULL_TYPE = 10

LOGICAL_OPERATORS = ("and", "or", "nor")

# Server-side code execution is never accepted from a caller's filter.
FORBIDDEN_KEYS = frozenset({"$where", "mapReduce", "$mapReduce"})

_COMPILERS = [
    compile_standard,
    compile_set,
    compile_string,
    compile_geometry,
]

# Operands that are patterns or geometry, not property values.
_UNCOERCED_OPERATORS = frozenset(
    {
        FilterOperator.LIKE.value,
        FilterOperator.NLIKE.value,
        FilterOperator.REGEXP.value,
        FilterOperator.NEAR.value,
    }
)

_DIRECTION = re.compile(r"\s+(A|DE)SC$", re.IGNORECASE)


def sanitize_query(where: dict[str, Any]) -> dict[str, Any]:
    """Strip server-side code execution keys from ``where`` in place."""
    for key in FORBIDDEN_KEYS.intersection(where):
        del where[key]
    return where


def id_included(fields: Any, id_name: str) -> bool:
    """Decide whether the id survives a ``fields`` projection."""
    if not fields:
        return True
    if isinstance(fields, (list, tuple)):
        return id_name in fields
    if fields.get(id_name):
        return True
    if id_name in fields:
        return False
    # Exclusion-only projections keep the id.
    for value in fields.values():
        return not value
    return True


def _operator_spec(
    definition: PropertyDefinition | None, cond: Any
) -> tuple[str, Any, dict[str, Any]] | None:
    """Split ``{"op": operand, <modifiers>}`` into its parts.

    A dict value is read as an operator spec when exactly one of its keys is
    not a modifier, unless the property itself is declared object-shaped.
    A single-key literal document on an undeclared property is therefore
    read as an operator.
    """
    if not isinstance(cond, dict):
        return None
    if definition is not None and definition.is_object_shaped:
        return None
    ops = [k for k in cond if k not in MODIFIER_KEYS]
    if len(ops) != 1:
        return None
    op = ops[0]
    modifiers = {k: v for k, v in cond.items() if k in MODIFIER_KEYS}
    return op, cond[op], modifiers


class MongoQueryBuilder:
    """Compiles the framework's filter grammar to MongoDB query documents."""

    def __init__(self, settings: ConnectorSettings | None = None) -> None:
        self._settings = settings or ConnectorSettings()

    def strict_coercion(
        self, model: ModelDescriptor, options: Mapping[str, Any] | None = None
    ) -> bool:
        """Strict ObjectID coercion: entity, then connector, then call option."""
        options = options or {}
        return bool(
            resolve_setting(
                model.settings.strict_object_id_coercion,
                self._settings.strict_object_id_coercion,
                options.get("strict_object_id_coercion"),
                default=False,
            )
        )

    def field_name(self, model: ModelDescriptor, prop: str) -> str:
        """Storage field for a property name or dotted path."""
        if prop == model.id_name() or prop == ID_FIELD:
            return ID_FIELD
        head, sep, rest = prop.partition(".")
        return model.column_name(head) + sep + rest

    def build_where(
        self,
        model: ModelDescriptor,
        where: Any,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build a MongoDB query document from a ``where`` filter.

        Returns ``{}`` for ``None`` or non-dict input.
        """
        if not isinstance(where, dict):
            return {}
        return self._compile(model, where, self.strict_coercion(model, options))

    def _compile(
        self, model: ModelDescriptor, where: dict[str, Any], strict: bool
    ) -> dict[str, Any]:
        sanitize_query(where)
        query: dict[str, Any] = {}
        for key, cond in where.items():
            if key in LOGICAL_OPERATORS and isinstance(cond, (list, tuple)):
                query[f"${key}"] = [
                    self._compile(model, sub, strict) if isinstance(sub, dict) else {}
                    for sub in cond
                ]
                continue
            query.update(self._compile_leaf(model, key, cond, strict))
        return query

    def _compile_leaf(
        self, model: ModelDescriptor, key: str, cond: Any, strict: bool
    ) -> dict[str, Any]:
        field = self.field_name(model, key)
        if field == ID_FIELD:
            definition: PropertyDefinition | None = model.id_property()
        else:
            definition = model.property_at(key)

        spec = _operator_spec(definition, cond)
        if spec is not None:
            op, operand, modifiers = spec
            if op not in _UNCOERCED_OPERATORS:
                operand = self._coerce_operand(definition, operand, strict)
            for compiler in _COMPILERS:
                result = compiler(field, op, operand, modifiers)
                if result is not None:
                    return result
            return compile_passthrough(field, op, operand, modifiers)

        if cond is None:
            if self._settings.null_as_absent:
                return {field: None}
            return {field: {"$type": NULL_TYPE}}
        return {field: coerce_value(definition, cond, strict)}

    @staticmethod
    def _coerce_operand(
        definition: PropertyDefinition | None, operand: Any, strict: bool
    ) -> Any:
        if isinstance(operand, (list, tuple)):
            return [coerce_value(definition, item, strict) for item in operand]
        return coerce_value(definition, operand, strict)

    def build_sort(
        self,
        model: ModelDescriptor,
        order: Any,
        options: Mapping[str, Any] | None = None,
    ) -> list[tuple[str, int]]:
        """Build MongoDB sort tuples.

        Accepts ``"title DESC,name"`` or ``["title DESC", "name"]``; the
        direction suffix is case-insensitive and defaults to ascending.
        Without an order, sorts by id unless the default sort is disabled.
        """
        result: list[tuple[str, int]] = []
        keys = order.split(",") if isinstance(order, str) else list(order or [])
        for item in keys:
            if isinstance(item, tuple):
                name, direction = item[0], item[1]
                sign = -1 if str(direction).lower() == "desc" else 1
                result.append((self.field_name(model, name), sign))
                continue
            key = str(item).strip()
            if not key:
                continue
            match = _DIRECTION.search(key)
            name = _DIRECTION.sub("", key).strip()
            sign = -1 if match and match.group(1).upper() == "DE" else 1
            result.append((self.field_name(model, name), sign))
        if result:
            return result

        options = options or {}
        disabled = resolve_setting(
            options.get("disable_default_sort"),
            model.settings.disable_default_sort,
            self._settings.disable_default_sort,
            default=False,
        )
        return [] if disabled else [(ID_FIELD, 1)]

    def build_projection(
        self, model: ModelDescriptor, fields: Any
    ) -> dict[str, int] | None:
        """Build a projection: ``{field: 1|0}``. None means no projection."""
        if not fields:
            return None
        if isinstance(fields, (list, tuple)):
            return {self.field_name(model, f): 1 for f in fields}
        return {self.field_name(model, f): 1 if v else 0 for f, v in fields.items()}
