"""Turn raw request and response bodies into values the schema engine can check.

Parsers are selected by content type, first match wins:

========================================  ==============================
``*json*`` (case-insensitive)             :func:`parse_json`
``multipart/form-data``                   :func:`parse_multipart`
``application/x-www-form-urlencoded``     :func:`parse_form`
anything else                             :func:`parse_raw`
========================================  ==============================

A parser signals malformed input with :class:`BodyParseError`; the
validation pipeline turns that into an ``invalid_body`` (or
``invalid_response_body``) failure.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from email.parser import BytesParser
from email.policy import HTTP
from typing import Any, Optional, Union
from urllib.parse import parse_qsl

logger = logging.getLogger(__name__)

Body = Union[bytes, str, None]


class BodyParseError(ValueError):
    """Raised when a body cannot be parsed for its declared content type."""


@dataclass(frozen=True)
class UploadedFile:
    """One file part of a multipart body.

    The schema engine sees :attr:`content` (raw bytes) in its place.
    """

    filename: str
    content_type: str
    content: bytes

    def __repr__(self) -> str:
        return (
            f"UploadedFile({self.filename!r}, {self.content_type!r}, "
            f"{len(self.content)} bytes)"
        )


def _as_bytes(body: Body) -> bytes:
    if body is None:
        return b""
    if isinstance(body, str):
        return body.encode("utf-8")
    return bytes(body)


def _as_text(body: Body) -> str:
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    return bytes(body).decode("utf-8")


def parse_json(body: Body, content_type: str = "", encoding: Optional[Mapping] = None) -> Any:
    """Parse a JSON body. An empty body parses to ``None``."""
    raw = _as_bytes(body)
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BodyParseError("Failed to parse request body as JSON") from None


def parse_form(body: Body, content_type: str = "", encoding: Optional[Mapping] = None) -> dict:
    """Parse ``application/x-www-form-urlencoded``. Repeated keys collect into lists."""
    try:
        pairs = parse_qsl(_as_text(body), keep_blank_values=True, strict_parsing=False)
    except UnicodeDecodeError:
        raise BodyParseError("Failed to parse request body as form data") from None
    result: dict[str, Any] = {}
    for key, value in pairs:
        _collect(result, key, value)
    return result


def parse_multipart(
    body: Body, content_type: str = "", encoding: Optional[Mapping] = None
) -> dict:
    """Parse ``multipart/form-data``.

    File parts become :class:`UploadedFile`; other parts become strings,
    decoded as JSON where the operation's ``encoding`` says the part is JSON.
    """
    if "boundary=" not in content_type:
        raise BodyParseError("Failed to parse multipart body: missing boundary")
    header = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=HTTP).parsebytes(header + _as_bytes(body))
    if not message.is_multipart():
        raise BodyParseError("Failed to parse multipart body")

    encoding = encoding or {}
    result: dict[str, Any] = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        payload = part.get_payload(decode=True) or b""
        filename = part.get_filename()
        if filename is not None:
            value: Any = UploadedFile(filename, part.get_content_type(), payload)
        else:
            value = payload.decode(part.get_content_charset() or "utf-8", errors="replace")
            part_type = (encoding.get(name) or {}).get("contentType")
            if part_type and "json" in part_type.lower():
                value = _json_part(name, value)
        _collect(result, name, value)
    return result


def _json_part(name: str, value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        logger.warning("Multipart field %r is not valid JSON, keeping text: %s", name, exc)
        return value


def _collect(result: dict[str, Any], key: str, value: Any) -> None:
    if key not in result:
        result[key] = value
    elif isinstance(result[key], list):
        result[key].append(value)
    else:
        result[key] = [result[key], value]


def parse_raw(body: Body, content_type: str = "", encoding: Optional[Mapping] = None) -> Any:
    """Pass the body through; text that decodes as UTF-8 becomes ``str``."""
    if isinstance(body, (bytes, bytearray)):
        try:
            return bytes(body).decode("utf-8")
        except UnicodeDecodeError:
            return bytes(body)
    return body


Parser = Callable[[Body, str, Optional[Mapping]], Any]

REQUEST_BODY_PARSERS: list[tuple[re.Pattern, Parser]] = [
    (re.compile(r"json", re.IGNORECASE), parse_json),
    (re.compile(r"^multipart/form-data", re.IGNORECASE), parse_multipart),
    (re.compile(r"^application/x-www-form-urlencoded", re.IGNORECASE), parse_form),
]


def parser_for(content_type: Optional[str]) -> Parser:
    """Return the request body parser registered for *content_type*."""
    if content_type:
        for pattern, parser in REQUEST_BODY_PARSERS:
            if pattern.search(content_type):
                return parser
    return parse_raw


def is_empty(body: Body) -> bool:
    return body is None or len(body) == 0


def parse_request_body(
    body: Body, content_type: Optional[str], encoding: Optional[Mapping] = None
) -> Any:
    """Parse a request body. An empty body is ``None`` whatever its type."""
    if is_empty(body):
        return None
    return parser_for(content_type)(body, content_type or "", encoding)


def parse_response_body(body: Body, content_type: Optional[str]) -> Any:
    """Parse a response body: JSON under a JSON content type, passthrough otherwise."""
    if content_type and re.search(r"json", content_type, re.IGNORECASE):
        raw = _as_bytes(body)
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise BodyParseError("Failed to parse response body as JSON") from None
    if is_empty(body):
        return None
    return parse_raw(body)
