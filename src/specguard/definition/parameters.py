"""Parameter definitions and their per-location collections."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Any, Optional

from referencing import Registry

from specguard.models import ParameterLocation
from specguard.parser.resolver import RefNode
from specguard.schema.compiler import WRITE, PropertyHook, Schema

_DEFAULT_STYLES = {
    ParameterLocation.QUERY: "form",
    ParameterLocation.PATH: "simple",
    ParameterLocation.HEADER: "simple",
    ParameterLocation.COOKIE: "form",
}


def schema_type(node: Optional[RefNode]) -> Optional[str]:
    """The primary JSON type a schema declares, looking into ``allOf``/``anyOf``/``oneOf``."""
    if node is None:
        return None
    value = node.value
    if not isinstance(value, dict):
        return None
    declared = value.get("type")
    if isinstance(declared, list):
        declared = next((t for t in declared if t != "null"), None)
    if isinstance(declared, str):
        return declared
    for keyword in ("allOf", "anyOf", "oneOf"):
        if keyword in value:
            for child in node[keyword]:
                found = schema_type(child)
                if found is not None:
                    return found
    if "properties" in value:
        return "object"
    if "items" in value:
        return "array"
    return None


@dataclass(frozen=True)
class Parameter:
    """One declared parameter.

    ``schema_type``, ``item_type`` and ``property_types`` are what the
    parameter codec needs to unpack and coerce serialized values.
    """

    name: str
    location: ParameterLocation
    required: bool = False
    style: str = "form"
    explode: bool = True
    schema: Optional[RefNode] = None
    content_type: Optional[str] = None
    schema_type: Optional[str] = None
    item_type: Optional[str] = None
    property_types: Mapping[str, Optional[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    deprecated: bool = False

    @classmethod
    def from_node(cls, node: RefNode) -> "Parameter":
        """Build a parameter from a (possibly referenced) parameter object."""
        node = node.resolve()
        raw = node.value
        return cls._build(raw["name"], ParameterLocation(raw["in"]), node)

    @classmethod
    def from_header(cls, name: str, node: RefNode) -> "Parameter":
        """Build a header parameter from a response header object."""
        return cls._build(name, ParameterLocation.HEADER, node.resolve())

    @classmethod
    def _build(cls, name: str, location: ParameterLocation, node: RefNode) -> "Parameter":
        raw = node.value
        style = raw.get("style") or _DEFAULT_STYLES[location]

        schema = node["schema"] if "schema" in raw else None
        content_type = None
        content = raw.get("content")
        if schema is None and isinstance(content, dict) and content:
            content_type = next(iter(content))
            media = node["content"][content_type]
            schema = media["schema"] if "schema" in media else None

        item_type = None
        property_types: dict[str, Optional[str]] = {}
        if schema is not None:
            if "items" in schema:
                item_type = schema_type(schema["items"])
            if "properties" in schema:
                property_types = {
                    key: schema_type(child) for key, child in schema["properties"].items()
                }

        return cls(
            name=name,
            location=location,
            # Path parameters are always required
            required=location is ParameterLocation.PATH or raw.get("required") is True,
            style=style,
            explode=raw.get("explode", style == "form"),
            schema=schema,
            content_type=content_type,
            schema_type=schema_type(schema),
            item_type=item_type,
            property_types=MappingProxyType(property_types),
            deprecated=raw.get("deprecated") is True,
        )

    @property
    def key(self) -> tuple[str, str]:
        return self.name, self.location.value

    def as_template_parameter(self) -> dict[str, Any]:
        """Plain ``{name, schema}`` mapping as used by :class:`~specguard.router.path_template.PathTemplate`."""
        schema = self.schema.value if self.schema is not None else None
        return {"name": self.name, "schema": schema if isinstance(schema, dict) else None}


def merge_parameters(
    path_item_parameters: Optional[RefNode], operation_parameters: Optional[RefNode]
) -> list[Parameter]:
    """Combine path-item and operation parameters.

    An operation parameter replaces a path-item parameter with the same
    ``(name, in)``; otherwise path-item parameters come first.
    """
    merged: dict[tuple[str, str], Parameter] = {}
    for source in (path_item_parameters, operation_parameters):
        if source is None:
            continue
        for node in source:
            parameter = Parameter.from_node(node)
            merged[parameter.key] = parameter
    return list(merged.values())


class ParameterCollection:
    """The parameters of one location on one operation (or one response's headers).

    The composite object schema is compiled on first use::

        {"type": "object",
         "properties": {name: {"$ref": <declared schema location>}},
         "required": [names of required parameters]}
    """

    def __init__(
        self,
        location: ParameterLocation,
        parameters: Iterable[Parameter],
        registry: Registry,
        openapi_version: str,
        access_mode: str = WRITE,
        insert_defaults: bool = True,
        after_property_validation: Optional[PropertyHook] = None,
    ):
        self._location = location
        self._parameters = tuple(parameters)
        self._registry = registry
        self._openapi_version = openapi_version
        self._access_mode = access_mode
        self._insert_defaults = insert_defaults
        self._after_property_validation = after_property_validation

    def __repr__(self) -> str:
        names = ", ".join(p.name for p in self._parameters)
        return f"ParameterCollection({self._location.value}: {names})"

    def __iter__(self):
        return iter(self._parameters)

    def __len__(self) -> int:
        return len(self._parameters)

    def __bool__(self) -> bool:
        return bool(self._parameters)

    @property
    def location(self) -> ParameterLocation:
        return self._location

    @property
    def parameters(self) -> tuple[Parameter, ...]:
        return self._parameters

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self._parameters)

    @property
    def required(self) -> tuple[str, ...]:
        return tuple(p.name for p in self._parameters if p.required)

    def schema_definition(self) -> dict[str, Any]:
        """The synthesised composite schema (parameters without a schema are omitted)."""
        properties = {
            p.name: {"$ref": p.schema.location}
            for p in self._parameters
            if p.schema is not None
        }
        return {"type": "object", "properties": properties, "required": list(self.required)}

    @cached_property
    def schema(self) -> Schema:
        return Schema(
            self.schema_definition(),
            self._registry,
            openapi_version=self._openapi_version,
            access_mode=self._access_mode,
            insert_defaults=self._insert_defaults,
            after_property_validation=self._after_property_validation,
        )

