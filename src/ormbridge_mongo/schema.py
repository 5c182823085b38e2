"""Model descriptors: typed property schema, model settings and registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from bson import ObjectId

from .exceptions import ModelNotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_ID_NAME = "id"

OBJECT_ID_MARKER = "objectid"
DECIMAL_MARKER = "decimal128"

_TYPE_NAMES: dict[Any, str] = {
    str: "string",
    int: "number",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
    bytes: "buffer",
    Decimal: "number",
    ObjectId: OBJECT_ID_MARKER,
}


class PropertyKind(str, Enum):
    """Shape of a declared property."""

    SCALAR = "scalar"
    OBJECT = "object"
    ARRAY = "array"
    REFERENCE = "reference"
    GEOPOINT = "geopoint"


def _type_name(raw: Any) -> str:
    if isinstance(raw, str):
        return raw.lower()
    if isinstance(raw, type) and raw in _TYPE_NAMES:
        return _TYPE_NAMES[raw]
    return getattr(raw, "__name__", "any").lower()


@dataclass(frozen=True)
class PropertyDefinition:
    """One node of a model's schema tree."""

    name: str
    kind: PropertyKind = PropertyKind.SCALAR
    type: str = "any"
    data_type: str | None = None
    field_name: str | None = None
    id: bool | int = False
    generated: bool = False
    index: bool = False
    unique: bool = False
    items: PropertyDefinition | None = None
    properties: Mapping[str, PropertyDefinition] | None = None

    @property
    def column(self) -> str:
        return self.field_name or self.name

    @property
    def is_object_shaped(self) -> bool:
        """True when values of this property are documents, not operator specs."""
        return self.kind is PropertyKind.OBJECT

    @property
    def nested_schema(self) -> Mapping[str, PropertyDefinition] | None:
        """Nested property definitions for objects and arrays of objects."""
        if self.kind is PropertyKind.OBJECT:
            return self.properties or None
        if self.kind is PropertyKind.ARRAY and self.items is not None:
            return self.items.nested_schema
        return None

    @classmethod
    def from_dict(
        cls,
        name: str,
        raw: Any,
        models: Mapping[str, ModelDescriptor] | None = None,
    ) -> PropertyDefinition:
        """Parse a framework property declaration.

        Accepted forms: a type name or class (``"string"``, ``str``), a list
        holding the element declaration (``["string"]``,
        ``[{"unitPrice": {...}}]``), a declaration dict with ``type`` and an
        optional ``mongodb`` section, or a bare dict of nested properties.
        A :class:`ModelDescriptor`, or the name of one found in ``models``,
        declares a nested model.
        """
        if isinstance(raw, PropertyDefinition):
            return raw
        if isinstance(raw, list):
            items = cls.from_dict(name, raw[0], models) if raw else None
            return cls(name=name, kind=PropertyKind.ARRAY, type="array", items=items)
        if not isinstance(raw, dict):
            return cls._from_type(name, raw, models)
        if "type" not in raw:
            nested = {k: cls.from_dict(k, v, models) for k, v in raw.items()}
            return cls(
                name=name, kind=PropertyKind.OBJECT, type="object", properties=nested
            )

        base = cls._from_type(name, raw["type"], models)
        mongo = raw.get("mongodb") or {}
        data_type = mongo.get("dataType")
        kind = base.kind
        if (
            isinstance(data_type, str)
            and data_type.lower() == OBJECT_ID_MARKER
            and kind is PropertyKind.SCALAR
        ):
            kind = PropertyKind.REFERENCE
        index = raw.get("index", False)
        return cls(
            name=name,
            kind=kind,
            type=base.type,
            data_type=data_type,
            field_name=mongo.get("fieldName") or mongo.get("column"),
            id=raw.get("id", False),
            generated=bool(raw.get("generated", False)),
            index=bool(index),
            unique=bool(raw.get("unique", False)),
            items=base.items,
            properties=base.properties,
        )

    @classmethod
    def _from_model(cls, name: str, model: ModelDescriptor) -> PropertyDefinition:
        # Embedded documents carry no generated id of their own.
        properties = {
            k: v for k, v in model.properties.items() if not (v.id and v.generated)
        }
        return cls(
            name=name, kind=PropertyKind.OBJECT, type=model.name, properties=properties
        )

    @classmethod
    def _from_type(
        cls,
        name: str,
        raw: Any,
        models: Mapping[str, ModelDescriptor] | None = None,
    ) -> PropertyDefinition:
        if isinstance(raw, (list, dict)):
            return cls.from_dict(name, raw, models)
        if isinstance(raw, ModelDescriptor):
            return cls._from_model(name, raw)
        if isinstance(raw, str) and models:
            bare = raw[1:-1] if raw.startswith("[") and raw.endswith("]") else raw
            if bare in models:
                nested = cls._from_model(name, models[bare])
                if bare == raw:
                    return nested
                return cls(
                    name=name, kind=PropertyKind.ARRAY, type="array", items=nested
                )
        type_name = _type_name(raw)
        if type_name.startswith("[") and type_name.endswith("]"):
            items = cls._from_type(name, type_name[1:-1])
            return cls(name=name, kind=PropertyKind.ARRAY, type="array", items=items)
        if type_name == OBJECT_ID_MARKER:
            kind = PropertyKind.REFERENCE
        elif type_name == "geopoint":
            kind = PropertyKind.GEOPOINT
        elif type_name == "object":
            kind = PropertyKind.OBJECT
        elif type_name == "array":
            kind = PropertyKind.ARRAY
        else:
            kind = PropertyKind.SCALAR
        return cls(name=name, kind=kind, type=type_name)


@dataclass(frozen=True)
class ModelSettings:
    """Entity-level settings relevant to the connector."""

    collection: str | None = None
    strict_object_id_coercion: bool | None = None
    allow_extended_operators: bool | None = None
    disable_default_sort: bool | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any] | None) -> ModelSettings:
        raw = raw or {}
        mongo = raw.get("mongodb") or {}
        disable_default_sort = mongo.get("disableDefaultSort")
        if disable_default_sort is None:
            disable_default_sort = raw.get("disableDefaultSort")
        return cls(
            collection=mongo.get("collection"),
            strict_object_id_coercion=raw.get("strictObjectIDCoercion"),
            allow_extended_operators=mongo.get("allowExtendedOperators"),
            disable_default_sort=disable_default_sort,
        )


@dataclass
class ModelDescriptor:
    """Per-model metadata read by the connector."""

    name: str
    properties: dict[str, PropertyDefinition] = field(default_factory=dict)
    settings: ModelSettings = field(default_factory=ModelSettings)

    def __post_init__(self) -> None:
        if not any(p.id for p in self.properties.values()):
            self.properties[DEFAULT_ID_NAME] = PropertyDefinition(
                name=DEFAULT_ID_NAME, id=True, generated=True
            )

    def id_names(self) -> list[str]:
        ids = [p for p in self.properties.values() if p.id]
        ids.sort(key=lambda p: p.id if isinstance(p.id, int) else 1)
        return [p.name for p in ids]

    def id_name(self) -> str:
        return self.id_names()[0]

    def id_property(self) -> PropertyDefinition:
        return self.properties[self.id_name()]

    def collection_name(self) -> str:
        return self.settings.collection or self.name

    def column_name(self, prop: str) -> str:
        """Storage field name for a logical property name."""
        definition = self.properties.get(prop)
        return definition.column if definition else prop

    def property_name(self, column: str) -> str:
        """Logical property name for a storage field name."""
        for definition in self.properties.values():
            if definition.field_name == column:
                return definition.name
        return column

    def property_at(self, path: str) -> PropertyDefinition | None:
        """Resolve a dotted path (``summary.totalValue``, ``lines.0.price``)."""
        if path == "_id":
            return self.id_property()
        parts = path.split(".")
        schema: Mapping[str, PropertyDefinition] | None = self.properties
        definition: PropertyDefinition | None = None
        for part in parts:
            if definition is not None and definition.kind is PropertyKind.ARRAY:
                if part.isdigit():
                    definition = definition.items
                    continue
                schema = definition.nested_schema
            if schema is None:
                return None
            definition = schema.get(part)
            if definition is None:
                return None
            schema = definition.nested_schema
        return definition


class ModelRegistry:
    """In-process registry of model descriptors keyed by model name."""

    def __init__(self) -> None:
        self._models: dict[str, ModelDescriptor] = {}

    def define(
        self,
        name: str,
        properties: Mapping[str, Any] | None = None,
        settings: Mapping[str, Any] | ModelSettings | None = None,
    ) -> ModelDescriptor:
        """Register (or replace) a model from framework-style declarations."""
        parsed = {
            k: PropertyDefinition.from_dict(k, v, self._models)
            for k, v in (properties or {}).items()
        }
        model_settings = (
            settings
            if isinstance(settings, ModelSettings)
            else ModelSettings.from_dict(settings)
        )
        descriptor = ModelDescriptor(
            name=name, properties=parsed, settings=model_settings
        )
        self._models[name] = descriptor
        return descriptor

    def get(self, name: str) -> ModelDescriptor:
        try:
            return self._models[name]
        except KeyError:
            raise ModelNotFoundError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._models
