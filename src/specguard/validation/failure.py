"""The failure model shared by routing, request and response validation.

A :class:`Failure` is an immutable value. Validation steps *return* one (or
``None``) and the pipeline stops at the first failure; nothing is thrown
until a caller asks for it with :meth:`Failure.raise_error`.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, NoReturn, Optional

from specguard.exceptions import (
    NotFoundError,
    RequestInvalidError,
    ResponseInvalidError,
    ResponseNotFoundError,
)
from specguard.schema.result import SchemaError

MAX_LISTED_ERRORS = 4


class FailureKind(str, enum.Enum):
    """Every way an exchange can fail to conform to the contract."""

    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    INVALID_BODY = "invalid_body"
    INVALID_QUERY = "invalid_query"
    INVALID_HEADER = "invalid_header"
    INVALID_PATH = "invalid_path"
    INVALID_COOKIE = "invalid_cookie"
    RESPONSE_NOT_FOUND = "response_not_found"
    INVALID_RESPONSE_BODY = "invalid_response_body"
    INVALID_RESPONSE_HEADER = "invalid_response_header"


# kind -> (exception class, message prefix, default HTTP status)
_KINDS: dict[FailureKind, tuple[type, str, int]] = {
    FailureKind.NOT_FOUND: (NotFoundError, "Request path is not defined.", 404),
    FailureKind.METHOD_NOT_ALLOWED: (
        RequestInvalidError,
        "Request method is not defined.",
        405,
    ),
    FailureKind.UNSUPPORTED_MEDIA_TYPE: (
        RequestInvalidError,
        "Request content type is not defined.",
        415,
    ),
    FailureKind.INVALID_BODY: (RequestInvalidError, "Request body invalid:", 400),
    FailureKind.INVALID_QUERY: (RequestInvalidError, "Query parameter is invalid:", 400),
    FailureKind.INVALID_HEADER: (RequestInvalidError, "Request header is invalid:", 400),
    FailureKind.INVALID_PATH: (RequestInvalidError, "Path segment is invalid:", 400),
    FailureKind.INVALID_COOKIE: (RequestInvalidError, "Cookie value is invalid:", 400),
    FailureKind.RESPONSE_NOT_FOUND: (
        ResponseNotFoundError,
        "Response is not defined.",
        500,
    ),
    FailureKind.INVALID_RESPONSE_BODY: (
        ResponseInvalidError,
        "Response body is invalid:",
        500,
    ),
    FailureKind.INVALID_RESPONSE_HEADER: (
        ResponseInvalidError,
        "Response header is invalid:",
        500,
    ),
}

_RESPONSE_KINDS = frozenset(
    {
        FailureKind.RESPONSE_NOT_FOUND,
        FailureKind.INVALID_RESPONSE_BODY,
        FailureKind.INVALID_RESPONSE_HEADER,
    }
)


@dataclass(frozen=True)
class Failure:
    """Why an exchange was rejected.

    Args:
        kind: A :class:`FailureKind` (or its string value).
        message: A generic message; when omitted the message is generated
            from *errors*.
        errors: Schema errors that caused the failure.

    Raises:
        ValueError: If *kind* is not a known failure kind.
    """

    kind: FailureKind
    message: Optional[str] = None
    errors: Optional[tuple[SchemaError, ...]] = None

    def __post_init__(self) -> None:
        try:
            kind = FailureKind(self.kind)
        except ValueError:
            known = ", ".join(k.value for k in FailureKind)
            raise ValueError(
                f"kind must be one of {known} but was {self.kind!r}"
            ) from None
        object.__setattr__(self, "kind", kind)
        if self.errors is not None and not isinstance(self.errors, tuple):
            object.__setattr__(self, "errors", tuple(self.errors))

    @classmethod
    def from_errors(cls, kind: FailureKind | str, errors: Iterable[SchemaError]) -> "Failure":
        return cls(kind, errors=tuple(errors))

    @property
    def status(self) -> int:
        """Default HTTP status for this kind of failure."""
        return _KINDS[self.kind][2]

    @property
    def is_response_failure(self) -> bool:
        return self.kind in _RESPONSE_KINDS

    @property
    def exception_class(self) -> type:
        return _KINDS[self.kind][0]

    @property
    def exception_message(self) -> str:
        prefix = _KINDS[self.kind][1]
        detail = self.message if self.message is not None else self._generate_message()
        return f"{prefix} {detail}" if detail else prefix

    def _generate_message(self) -> str:
        if not self.errors:
            return ""
        messages = [error.message for error in self.errors[:MAX_LISTED_ERRORS]]
        if len(self.errors) > MAX_LISTED_ERRORS:
            messages.append(f"... ({len(self.errors)} errors total)")
        return ". ".join(messages)

    def raise_error(self, subject: Any = None) -> NoReturn:
        """Raise the exception matching this failure.

        Args:
            subject: The validated request or response, attached to the
                exception as ``.request`` or ``.response``.
        """
        exception_class = self.exception_class
        if self.is_response_failure:
            raise exception_class(self.exception_message, response=subject)
        raise exception_class(self.exception_message, request=subject)
