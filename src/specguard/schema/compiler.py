"""Compile contract schemas into configured ``jsonschema`` validators.

The JSON Schema algorithm itself is delegated to :mod:`jsonschema`; this
module only *configures* it for OpenAPI:

* **Dialect** -- OpenAPI 3.1 uses Draft 2020-12, OpenAPI 3.0 uses Draft 4 plus
  the ``nullable`` keyword.
* **Access mode** -- ``"write"`` (requests) rejects ``readOnly`` properties
  and does not require them; ``"read"`` (responses) does the same for
  ``writeOnly``.
* **Defaults** -- missing properties that declare a ``default`` are inserted
  into the validated data.
* **Property hooks** -- before a property is validated, multipart
  :class:`~specguard.validation.body_parser.UploadedFile` placeholders are
  replaced by their raw bytes; after it is validated, an optional callback
  can inspect or mutate it in place.

Schemas reference the contract by URI (see
:attr:`specguard.parser.resolver.RefNode.location`) and are resolved through
the document store's :class:`referencing.Registry`, so cycles and cross-file
references behave exactly as they were declared.
"""

from __future__ import annotations

import copy
import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Optional

from jsonschema import Draft4Validator, Draft202012Validator, validators
from jsonschema.exceptions import ValidationError
from referencing import Registry
from referencing.exceptions import Unresolvable

from specguard.schema.result import SchemaError, SchemaResult
from specguard.validation.body_parser import UploadedFile

PropertyHook = Callable[[dict, str, dict, Any], None]
"""Signature of an after-property callback: ``(data, property, property_schema, parent_schema)``."""

WRITE = "write"
READ = "read"

_BASE_VALIDATORS = {"3.0": Draft4Validator, "3.1": Draft202012Validator}
_MAX_REF_HOPS = 32
_SCOPE_CACHE_SIZE = 16


def _is_string(checker: Any, instance: Any) -> bool:
    return isinstance(instance, (str, bytes))


class _Scopes:
    """Maps every schema object held in *registry* to the URI of its file.

    Relative ``$ref`` values are resolved against that URI.
    """

    def __init__(self, registry: Registry):
        self.registry = registry
        self._uris: dict[int, str] = {}
        for uri in registry:
            self._index(registry[uri].contents, uri)

    def _index(self, contents: Any, uri: str) -> None:
        stack = [contents]
        while stack:
            current = stack.pop()
            if isinstance(current, dict):
                self._uris.setdefault(id(current), uri)
                stack.extend(current.values())
            elif isinstance(current, list):
                stack.extend(current)

    def resolver(self, schema: Any) -> Any:
        return self.registry.resolver(base_uri=self._uris.get(id(schema), ""))


_scope_cache: "OrderedDict[int, _Scopes]" = OrderedDict()
_scope_lock = threading.Lock()


def _scopes(registry: Registry) -> _Scopes:
    with _scope_lock:
        scopes = _scope_cache.get(id(registry))
        if scopes is None or scopes.registry is not registry:
            scopes = _Scopes(registry)
            _scope_cache[id(registry)] = scopes
            while len(_scope_cache) > _SCOPE_CACHE_SIZE:
                _scope_cache.popitem(last=False)
        return scopes


def _resolved(resolver: Any, subschema: Any) -> dict:
    """Follow ``$ref`` hops of *subschema*, starting from *resolver*."""
    hops = 0
    while isinstance(subschema, dict) and "$ref" in subschema and hops < _MAX_REF_HOPS:
        try:
            resolved = resolver.lookup(subschema["$ref"])
        except Unresolvable:
            break
        subschema, resolver = resolved.contents, resolved.resolver
        hops += 1
    return subschema if isinstance(subschema, dict) else {}



def _forbidden_flag(access_mode: str) -> str:
    return "readOnly" if access_mode == WRITE else "writeOnly"


def _unpack_upload(value: Any) -> Any:
    if isinstance(value, UploadedFile):
        return value.content
    if isinstance(value, list) and any(isinstance(item, UploadedFile) for item in value):
        return [_unpack_upload(item) for item in value]
    return value


def _build_validator_class(
    openapi_version: str,
    registry: Registry,
    access_mode: str,
    insert_defaults: bool,
    after_property: Optional[PropertyHook],
) -> type:
    base = _BASE_VALIDATORS[openapi_version]
    original_type = base.VALIDATORS["type"]
    original_enum = base.VALIDATORS["enum"]
    original_pattern = base.VALIDATORS["pattern"]
    forbidden = _forbidden_flag(access_mode)

    def resolved(parent: Any, subschema: Any) -> dict:
        if isinstance(subschema, dict) and "$ref" in subschema:
            return _resolved(_scopes(registry).resolver(parent), subschema)
        return subschema if isinstance(subschema, dict) else {}

    def properties(validator, properties, instance, schema):
        if not validator.is_type(instance, "object"):
            return
        for name, subschema in properties.items():
            if name not in instance:
                if not insert_defaults or not isinstance(subschema, dict):
                    continue
                target = resolved(schema, subschema)
                if "default" not in target or target.get(forbidden) is True:
                    continue
                instance[name] = copy.deepcopy(target["default"])
            instance[name] = _unpack_upload(instance[name])
            yield from validator.descend(
                instance[name], subschema, path=name, schema_path=name
            )
            if after_property is not None:
                after_property(instance, name, subschema, schema)

    def required(validator, required, instance, schema):
        if not validator.is_type(instance, "object"):
            return
        declared = schema.get("properties", {})
        for name in required:
            if name in instance:
                continue
            if resolved(schema, declared.get(name)).get(forbidden) is True:
                continue
            yield ValidationError(f"{name!r} is a required property", path=[name])

    def forbidden_property(validator, flag, instance, schema):
        if flag is True:
            yield ValidationError(
                f"{forbidden} property is not allowed in "
                f"{'request' if access_mode == WRITE else 'response'}"
            )

    def pattern(validator, patrn, instance, schema):
        if isinstance(instance, bytes):
            return
        yield from original_pattern(validator, patrn, instance, schema)

    keywords: dict[str, Any] = {
        "properties": properties,
        "required": required,
        forbidden: forbidden_property,
        "pattern": pattern,
    }

    if openapi_version == "3.0":

        def nullable_type(validator, types, instance, schema):
            if instance is None and schema.get("nullable") is True:
                return
            yield from original_type(validator, types, instance, schema)

        def nullable_enum(validator, enums, instance, schema):
            if instance is None and schema.get("nullable") is True:
                return
            yield from original_enum(validator, enums, instance, schema)

        keywords["type"] = nullable_type
        keywords["enum"] = nullable_enum

    return validators.extend(
        base,
        validators=keywords,
        type_checker=base.TYPE_CHECKER.redefine("string", _is_string),
    )


class Schema:
    """A compiled schema bound to one access mode.

    Args:
        schema: The JSON Schema (usually ``{"$ref": "<file uri>#<pointer>"}``
            or a synthesised parameter object schema).
        registry: Registry holding every document file (see
            :meth:`~specguard.parser.resolver.DocumentStore.registry`).
        openapi_version: ``"3.0"`` or ``"3.1"``.
        access_mode: ``"write"`` for requests, ``"read"`` for responses.
        insert_defaults: Insert declared defaults for missing properties.
        after_property_validation: Optional callback invoked after each
            object property has been validated.
    """

    def __init__(
        self,
        schema: dict[str, Any],
        registry: Registry,
        openapi_version: str = "3.1",
        access_mode: str = WRITE,
        insert_defaults: bool = True,
        after_property_validation: Optional[PropertyHook] = None,
    ):
        if access_mode not in (WRITE, READ):
            raise ValueError(f"access_mode must be 'write' or 'read', got {access_mode!r}")
        self._schema = schema
        self._access_mode = access_mode
        cls = _build_validator_class(
            openapi_version, registry, access_mode, insert_defaults, after_property_validation
        )
        self._validator = cls(
            schema, registry=registry, format_checker=cls.FORMAT_CHECKER
        )

    @property
    def schema(self) -> dict[str, Any]:
        return self._schema

    @property
    def access_mode(self) -> str:
        return self._access_mode

    def validate(self, data: Any) -> SchemaResult:
        """Validate *data* (which may be mutated by default insertion)."""
        errors = tuple(
            SchemaError.from_validation_error(error)
            for error in self._validator.iter_errors(data)
        )
        return SchemaResult(errors)
