"""Render request failures as HTTP error responses.

Two renderers ship with the package and more can be registered by name:

* ``default`` -- ``application/problem+json`` (RFC 9457) with an ``errors``
  list describing each schema violation.
* ``jsonapi`` -- ``application/vnd.api+json`` with a JSON:API ``errors``
  array.

Example::

    status, headers, body = render(validated.error, "default")
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from specguard.exceptions import ConfigError
from specguard.validation.failure import Failure, FailureKind

_SOURCE_KEYS = {
    FailureKind.INVALID_BODY: "pointer",
    FailureKind.INVALID_QUERY: "parameter",
    FailureKind.INVALID_PATH: "parameter",
    FailureKind.INVALID_HEADER: "header",
    FailureKind.INVALID_COOKIE: "cookie",
}


class ErrorResponse(ABC):
    """Base class of error renderers.

    Subclasses implement :attr:`content_type` and :meth:`body`.
    """

    name: str = ""

    def __init__(self, failure: Failure):
        self.failure = failure

    @property
    def status(self) -> int:
        return self.failure.status

    @property
    def message(self) -> str:
        return self.failure.exception_message

    @property
    def source_key(self) -> Optional[str]:
        return _SOURCE_KEYS.get(self.failure.kind)

    def source_value(self, data_pointer: str) -> str:
        """Body errors keep the JSON pointer; parameters use the bare name."""
        if self.failure.kind == FailureKind.INVALID_BODY:
            return data_pointer
        return data_pointer.removeprefix("/")

    @property
    @abstractmethod
    def content_type(self) -> str: ...

    @abstractmethod
    def body(self) -> dict[str, Any]: ...

    def render(self) -> tuple[int, dict[str, str], bytes]:
        """Return ``(status, headers, body)``."""
        payload = json.dumps(self.body()).encode("utf-8")
        return self.status, {"Content-Type": self.content_type}, payload


class DefaultErrorResponse(ErrorResponse):
    name = "default"

    TITLES = {
        FailureKind.NOT_FOUND: "Not Found",
        FailureKind.METHOD_NOT_ALLOWED: "Request Method Not Allowed",
        FailureKind.UNSUPPORTED_MEDIA_TYPE: "Unsupported Media Type",
        FailureKind.INVALID_BODY: "Bad Request Body",
        FailureKind.INVALID_QUERY: "Bad Query Parameter",
        FailureKind.INVALID_HEADER: "Bad Request Header",
        FailureKind.INVALID_PATH: "Bad Request Path",
        FailureKind.INVALID_COOKIE: "Bad Request Cookie",
    }

    @property
    def content_type(self) -> str:
        return "application/problem+json"

    @property
    def title(self) -> str:
        return self.TITLES.get(self.failure.kind, "Bad Request")

    def body(self) -> dict[str, Any]:
        result: dict[str, Any] = {"title": self.title, "status": self.status}
        if self.failure.errors:
            result["errors"] = self.errors()
        return result

    def errors(self) -> list[dict[str, Any]]:
        key = self.source_key
        entries = []
        for error in self.failure.errors or ():
            entry: dict[str, Any] = {
                "title": self.title,
                "status": self.status,
                "message": error.message,
            }
            if key is not None:
                entry["source"] = {key: self.source_value(error.data_pointer)}
            entry["code"] = error.type
            entries.append(entry)
        return entries


class JsonApiErrorResponse(ErrorResponse):
    name = "jsonapi"

    @property
    def content_type(self) -> str:
        return "application/vnd.api+json"

    def body(self) -> dict[str, Any]:
        if not self.failure.errors:
            return {"errors": [{"status": str(self.status), "title": self.message}]}
        key = self.source_key
        entries = []
        for error in self.failure.errors:
            entry: dict[str, Any] = {"status": str(self.status), "title": error.message}
            if key is not None:
                entry["source"] = {key: self.source_value(error.data_pointer)}
            entry["code"] = error.type
            entries.append(entry)
        return {"errors": entries}


_RENDERERS: dict[str, type[ErrorResponse]] = {
    DefaultErrorResponse.name: DefaultErrorResponse,
    JsonApiErrorResponse.name: JsonApiErrorResponse,
}


def register_error_response(name: str, renderer: type[ErrorResponse]) -> None:
    """Make *renderer* available as ``settings.validation.error_response = name``."""
    _RENDERERS[name] = renderer


def find_error_response(name: str) -> type[ErrorResponse]:
    """Return the renderer registered as *name*.

    Raises:
        ConfigError: If no renderer has that name.
    """
    try:
        return _RENDERERS[name]
    except KeyError:
        known = ", ".join(sorted(_RENDERERS))
        raise ConfigError(f"Unknown error response {name!r}. Known: {known}") from None


def render(failure: Failure, name: str = "default") -> tuple[int, dict[str, str], bytes]:
    """Render *failure* with the renderer registered as *name*."""
    return find_error_response(name)(failure).render()
