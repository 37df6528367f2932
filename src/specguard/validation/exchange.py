"""Framework-neutral request and response values.

The validation pipeline only ever sees :class:`RawRequest` and
:class:`RawResponse`. :func:`normalize_request` and :func:`normalize_response`
accept those, or the ``httpx`` equivalents, and convert as needed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union
from urllib.parse import urlsplit

import httpx

from specguard.validation.codec import parse_cookie_header

HeadersInput = Union[httpx.Headers, Mapping[str, str], None]


def _headers(value: HeadersInput) -> httpx.Headers:
    return value if isinstance(value, httpx.Headers) else httpx.Headers(value or {})


def _body(value: Union[bytes, str, None]) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


@dataclass(frozen=True)
class RawRequest:
    """A request as the validator sees it.

    ``headers`` may be any mapping; it is stored as case-insensitive
    :class:`httpx.Headers`. A ``str`` body is UTF-8 encoded.
    """

    method: str
    path: str
    query_string: str = ""
    headers: Any = field(default_factory=httpx.Headers)
    body: Any = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", _headers(self.headers))
        object.__setattr__(self, "body", _body(self.body))

    @classmethod
    def from_url(
        cls,
        method: str,
        url: str,
        headers: HeadersInput = None,
        body: Union[bytes, str, None] = None,
    ) -> "RawRequest":
        """Build a request from a path or URL with an optional query string."""
        parts = urlsplit(url)
        return cls(method, parts.path or "/", parts.query, headers or {}, body)

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def cookies(self) -> dict[str, str]:
        return parse_cookie_header(self.headers.get("cookie"))


@dataclass(frozen=True)
class RawResponse:
    """A response as the validator sees it."""

    status: int
    headers: Any = field(default_factory=httpx.Headers)
    body: Any = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", int(self.status))
        object.__setattr__(self, "headers", _headers(self.headers))
        object.__setattr__(self, "body", _body(self.body))

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")


def normalize_request(request: Any) -> RawRequest:
    """Return *request* as a :class:`RawRequest`.

    Raises:
        TypeError: For objects that are neither ``RawRequest`` nor ``httpx.Request``.
    """
    if isinstance(request, RawRequest):
        return request
    if isinstance(request, httpx.Request):
        content = request.read()
        return RawRequest(
            method=request.method,
            path=request.url.raw_path.decode("ascii").partition("?")[0],
            query_string=request.url.query.decode("ascii"),
            headers=request.headers,
            body=content,
        )
    raise TypeError(f"Cannot validate request of type {type(request).__name__}")


def normalize_response(response: Any) -> RawResponse:
    """Return *response* as a :class:`RawResponse`.

    Raises:
        TypeError: For objects that are neither ``RawResponse`` nor ``httpx.Response``.
    """
    if isinstance(response, RawResponse):
        return response
    if isinstance(response, httpx.Response):
        content = response.read()
        return RawResponse(
            status=response.status_code,
            headers=response.headers,
            body=content,
        )
    raise TypeError(f"Cannot validate response of type {type(response).__name__}")
