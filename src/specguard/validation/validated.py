"""Immutable results of request and response validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Optional

from specguard.validation.exchange import RawRequest, RawResponse
from specguard.validation.failure import Failure

if TYPE_CHECKING:
    from specguard.definition.operation import Operation
    from specguard.definition.request import RequestVariant
    from specguard.definition.response import ResponseVariant

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _frozen(value: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if value is None:
        return _EMPTY
    if isinstance(value, MappingProxyType):
        return value
    return MappingProxyType(dict(value))


@dataclass(frozen=True)
class ParsedRequest:
    """Parameter values and body as unpacked from a request."""

    path: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    query: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    headers: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    cookies: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    body: Any = None

    def __post_init__(self) -> None:
        for name in ("path", "query", "headers", "cookies"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))


@dataclass(frozen=True)
class ParsedResponse:
    headers: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    body: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _frozen(self.headers))


@dataclass(frozen=True)
class ValidatedRequest:
    """A request plus the outcome of validating it.

    ``valid`` is True exactly when ``error`` is ``None``. ``variant`` is
    ``None`` when routing failed.
    ``request`` is the normalized view; ``original`` is the object the
    caller passed in, such as an ``httpx.Request``.
    """

    request: RawRequest
    error: Optional[Failure] = None
    variant: Optional["RequestVariant"] = None
    parsed: ParsedRequest = field(default_factory=ParsedRequest)
    original: Any = None

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def known(self) -> bool:
        """True when the request was routed to a declared variant."""
        return self.variant is not None

    @property
    def operation(self) -> Optional["Operation"]:
        return self.variant.operation if self.variant is not None else None

    @property
    def operation_id(self) -> Optional[str]:
        operation = self.operation
        return operation.operation_id if operation is not None else None

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def content_type(self) -> Optional[str]:
        return self.request.content_type

    @property
    def path_parameters(self) -> Mapping[str, Any]:
        return self.parsed.path

    @property
    def query(self) -> Mapping[str, Any]:
        return self.parsed.query

    @property
    def headers(self) -> Mapping[str, Any]:
        return self.parsed.headers

    @property
    def cookies(self) -> Mapping[str, Any]:
        return self.parsed.cookies

    @property
    def body(self) -> Any:
        return self.parsed.body

    @property
    def params(self) -> Mapping[str, Any]:
        """Query and path parameters merged; path values win."""
        return MappingProxyType({**self.parsed.query, **self.parsed.path})

    def raise_error(self) -> None:
        """Raise the failure's exception; do nothing when valid."""
        if self.error is not None:
            self.error.raise_error(self)


@dataclass(frozen=True)
class ValidatedResponse:
    """A response plus the outcome of validating it.

    ``original`` is the response object the caller passed in.
    """

    response: RawResponse
    error: Optional[Failure] = None
    variant: Optional["ResponseVariant"] = None
    parsed: ParsedResponse = field(default_factory=ParsedResponse)
    original: Any = None

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def known(self) -> bool:
        """True when the status and content type are declared."""
        return self.variant is not None

    @property
    def status(self) -> int:
        return self.response.status

    @property
    def content_type(self) -> Optional[str]:
        return self.response.content_type

    @property
    def headers(self) -> Mapping[str, Any]:
        return self.parsed.headers

    @property
    def body(self) -> Any:
        return self.parsed.body

    def raise_error(self) -> None:
        if self.error is not None:
            self.error.raise_error(self)
