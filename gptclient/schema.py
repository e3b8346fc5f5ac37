"""JSON schema nodes for tool parameters and structured outputs.

Each node is an immutable value. Object schemas grow through ``with_property``,
which returns a new node, so a schema can be shared between tools and requests
without anything mutating it behind their back::

    event = (
        ObjectSchema()
        .with_property("name", StringSchema("Name of the event"))
        .with_property("participants", ArraySchema(StringSchema("A participant")))
        .with_property("kind", EnumSchema(("meeting", "call"), "Kind of event"), required=False)
    )
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple, Union


def _with_description(node: Dict[str, Any], description: Optional[str]) -> Dict[str, Any]:
    if description and description.strip():
        node["description"] = description
    return node


@dataclass(frozen=True)
class StringSchema:
    description: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return _with_description({"type": "string"}, self.description)


@dataclass(frozen=True)
class NumberSchema:
    description: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return _with_description({"type": "number"}, self.description)


@dataclass(frozen=True)
class IntegerSchema:
    description: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return _with_description({"type": "integer"}, self.description)


@dataclass(frozen=True)
class BooleanSchema:
    description: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return _with_description({"type": "boolean"}, self.description)


@dataclass(frozen=True)
class EnumSchema:
    values: Tuple[str, ...]
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.values:
            raise ValueError("EnumSchema needs at least one value")
        object.__setattr__(self, "values", tuple(self.values))

    def to_json(self) -> Dict[str, Any]:
        return _with_description({"type": "string", "enum": list(self.values)}, self.description)


@dataclass(frozen=True)
class ArraySchema:
    items: "Schema"
    description: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return _with_description({"type": "array", "items": self.items.to_json()}, self.description)


@dataclass(frozen=True)
class Property:
    name: str
    schema: "Schema"
    required: bool = True


@dataclass(frozen=True)
class ObjectSchema:
    properties: Tuple[Property, ...] = ()
    additional_properties: bool = False
    description: Optional[str] = None

    def with_property(self, name: str, schema: "Schema", required: bool = True) -> "ObjectSchema":
        kept = tuple(prop for prop in self.properties if prop.name != name)
        return replace(self, properties=kept + (Property(name, schema, required),))

    def allow_additional_properties(self, allowed: bool = True) -> "ObjectSchema":
        return replace(self, additional_properties=allowed)

    @property
    def required_names(self) -> Tuple[str, ...]:
        return tuple(prop.name for prop in self.properties if prop.required)

    def to_json(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {"type": "object"}
        if self.properties:
            node["properties"] = {prop.name: prop.schema.to_json() for prop in self.properties}
        if self.required_names:
            node["required"] = list(self.required_names)
        node["additionalProperties"] = self.additional_properties
        return _with_description(node, self.description)


@dataclass(frozen=True)
class AnyOfSchema:
    variants: Tuple["Schema", ...] = field(default_factory=tuple)
    description: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "variants", tuple(self.variants))

    def to_json(self) -> Dict[str, Any]:
        return _with_description({"anyOf": [variant.to_json() for variant in self.variants]}, self.description)


Schema = Union[StringSchema, NumberSchema, IntegerSchema, BooleanSchema, EnumSchema, ArraySchema, ObjectSchema, AnyOfSchema]
