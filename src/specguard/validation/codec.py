"""Unpack serialized parameter values according to their OpenAPI style.

Each ``unpack_*`` function takes the declared parameters of one location
and the raw values of the request, and returns a dict holding only the
declared parameters that were present. Values are coerced to the primitive
type their schema declares (``integer``, ``number``, ``boolean``), so the
schema engine checks ``?limit=10`` as the integer ``10``. Values that do
not coerce are passed through unchanged and left for the schema to reject.

Supported styles:

* query: ``form`` (default), ``spaceDelimited``, ``pipeDelimited``,
  ``deepObject``;
* path: ``simple`` (default), ``label``, ``matrix``;
* header: ``simple``;
* cookie: ``form``.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Protocol
from urllib.parse import parse_qsl, unquote

_DEEP_OBJECT_KEY = re.compile(r"^([^\[\]]+)\[([^\[\]]*)\]$")
_INTEGER = re.compile(r"[-+]?[0-9]+")
_NUMBER = re.compile(r"[-+]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][-+]?[0-9]+)?")
_TRUE = "true"
_FALSE = "false"


class ParameterSpec(Protocol):
    """What the codec needs to know about one declared parameter."""

    name: str
    style: str
    explode: bool
    schema_type: Optional[str]
    item_type: Optional[str]
    property_types: Mapping[str, Optional[str]]
    content_type: Optional[str]


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def coerce(value: Any, type_: Optional[str]) -> Any:
    """Convert one serialized primitive to *type_*; return it unchanged if it does not convert."""
    if not isinstance(value, str):
        return value
    if type_ == "integer":
        return int(value) if _INTEGER.fullmatch(value) else value
    if type_ == "number":
        if _INTEGER.fullmatch(value):
            return int(value)
        return float(value) if _NUMBER.fullmatch(value) else value
    if type_ == "boolean":
        if value == _TRUE:
            return True
        if value == _FALSE:
            return False
    return value


def _coerce_object(pairs: Iterable[tuple[str, str]], parameter: ParameterSpec) -> dict:
    return {
        key: coerce(value, parameter.property_types.get(key))
        for key, value in pairs
    }


def _pairs(items: list[str]) -> list[tuple[str, str]]:
    return list(zip(items[::2], items[1::2]))


def _split_value(parameter: ParameterSpec, raw: str, separator: str) -> Any:
    """Decode one value that carries a whole array or object."""
    if parameter.schema_type == "array":
        items = raw.split(separator) if raw != "" else []
        return [coerce(item, parameter.item_type) for item in items]
    if parameter.schema_type == "object":
        if parameter.explode:
            pairs = [item.partition("=")[::2] for item in raw.split(separator) if item]
        else:
            pairs = _pairs(raw.split(separator))
        return _coerce_object(pairs, parameter)
    return coerce(raw, parameter.schema_type)


def _content_value(parameter: ParameterSpec, raw: str) -> Any:
    if parameter.content_type and "json" in parameter.content_type.lower():
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw
    return raw


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


def unpack_query(parameters: Iterable[ParameterSpec], query_string: str) -> dict[str, Any]:
    pairs = parse_qsl(query_string or "", keep_blank_values=True)
    by_name: dict[str, list[str]] = {}
    for key, value in pairs:
        by_name.setdefault(key, []).append(value)

    result: dict[str, Any] = {}
    for parameter in parameters:
        value = _unpack_query_parameter(parameter, by_name)
        if value is not _MISSING:
            result[parameter.name] = value
    return result


_MISSING = object()


def _unpack_query_parameter(parameter: ParameterSpec, by_name: dict[str, list[str]]) -> Any:
    name = parameter.name

    if parameter.content_type is not None:
        values = by_name.get(name)
        return _content_value(parameter, values[-1]) if values else _MISSING

    if parameter.style == "deepObject":
        pairs = []
        for key, values in by_name.items():
            found = _DEEP_OBJECT_KEY.match(key)
            if found and found.group(1) == name:
                pairs.extend((found.group(2), value) for value in values)
        return _coerce_object(pairs, parameter) if pairs else _MISSING

    if parameter.schema_type == "object" and parameter.explode and parameter.style == "form":
        pairs = [
            (key, values[-1])
            for key, values in by_name.items()
            if key in parameter.property_types
        ]
        return _coerce_object(pairs, parameter) if pairs else _MISSING

    values = by_name.get(name)
    if values is None:
        return _MISSING

    if parameter.schema_type == "array":
        if parameter.style == "spaceDelimited":
            return _split_value(parameter, values[-1], " ")
        if parameter.style == "pipeDelimited":
            return _split_value(parameter, values[-1], "|")
        if parameter.explode:
            return [coerce(value, parameter.item_type) for value in values]
        return _split_value(parameter, values[-1], ",")

    return _split_value(parameter, values[-1], ",")


# ---------------------------------------------------------------------------
# Path
# ---------------------------------------------------------------------------


def unpack_path(parameters: Iterable[ParameterSpec], raw: Mapping[str, str]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for parameter in parameters:
        if parameter.name not in raw:
            continue
        value = unquote(raw[parameter.name])
        if parameter.content_type is not None:
            result[parameter.name] = _content_value(parameter, value)
        elif parameter.style == "label":
            separator = "." if parameter.explode else ","
            result[parameter.name] = _split_value(parameter, value.removeprefix("."), separator)
        elif parameter.style == "matrix":
            result[parameter.name] = _unpack_matrix(parameter, value)
        else:
            result[parameter.name] = _split_value(parameter, value, ",")
    return result


def _unpack_matrix(parameter: ParameterSpec, value: str) -> Any:
    prefix = f";{parameter.name}="
    if parameter.schema_type == "array" and parameter.explode:
        items = [item[len(prefix):] for item in re.findall(rf";{re.escape(parameter.name)}=[^;]*", value)]
        return [coerce(item, parameter.item_type) for item in items]
    if parameter.schema_type == "object" and parameter.explode:
        return _split_value(parameter, value.lstrip(";"), ";")
    return _split_value(parameter, value.removeprefix(prefix), ",")


# ---------------------------------------------------------------------------
# Header and cookie
# ---------------------------------------------------------------------------


def unpack_headers(parameters: Iterable[ParameterSpec], headers: Mapping[str, str]) -> dict[str, Any]:
    """Unpack header parameters; *headers* must be case-insensitive (``httpx.Headers``)."""
    result: dict[str, Any] = {}
    for parameter in parameters:
        value = headers.get(parameter.name)
        if value is None:
            continue
        if parameter.content_type is not None:
            result[parameter.name] = _content_value(parameter, value)
        else:
            result[parameter.name] = _split_value(parameter, value.strip(), ",")
    return result


def parse_cookie_header(header: Optional[str]) -> dict[str, str]:
    """Split a ``Cookie`` header into a name/value mapping (first occurrence wins)."""
    cookies: dict[str, str] = {}
    if not header:
        return cookies
    for chunk in header.split(";"):
        name, separator, value = chunk.strip().partition("=")
        if not separator or not name:
            continue
        cookies.setdefault(name, unquote(value.strip().strip('"')))
    return cookies


def unpack_cookies(parameters: Iterable[ParameterSpec], cookies: Mapping[str, str]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for parameter in parameters:
        if parameter.name not in cookies:
            continue
        value = cookies[parameter.name]
        if parameter.content_type is not None:
            result[parameter.name] = _content_value(parameter, value)
        else:
            result[parameter.name] = _split_value(parameter, value, ",")
    return result
