"""Exception hierarchy for specguard.

All exceptions inherit from :class:`SpecguardError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specguard.exit_codes`.
The CLI entry point in :func:`specguard.app.main` catches ``SpecguardError``
and exits with the appropriate code.

Validation failures are normally returned as values (see
:class:`~specguard.validation.failure.Failure`); the request/response error
classes below are only raised in "raise" mode via
:meth:`~specguard.validation.failure.Failure.raise_error`.

Subclass hierarchy::

    SpecguardError (exit 1)
    +-- DocumentError                  (exit 7)
    |   +-- DocumentNotFoundError
    |   +-- ReferenceFileNotFoundError
    |   +-- DocumentParseError
    +-- RequestInvalidError            (exit 4)
    |   +-- NotFoundError
    +-- ResponseInvalidError           (exit 4)
    |   +-- ResponseNotFoundError
    +-- ConfigError                    (exit 3)
    +-- NotRegisteredError             (exit 3)
    +-- AlreadyRegisteredError         (exit 3)
    +-- HandlerNotFoundError           (exit 1)
"""

from __future__ import annotations

from typing import Any

from specguard.exit_codes import (
    EXIT_DOCUMENT_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_VALIDATION_FAILURE,
)


class SpecguardError(Exception):
    """Base exception for all specguard errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class DocumentError(SpecguardError):
    """Raised when a contract document cannot be used at all."""

    exit_code = EXIT_DOCUMENT_ERROR


class DocumentNotFoundError(DocumentError):
    """Raised when the root contract document does not exist."""


class ReferenceFileNotFoundError(DocumentError):
    """Raised when a ``$ref`` points at a file that does not exist.

    Attributes:
        referencing_file: The file that declares the reference.
        missing_path: The absolute path that could not be found.
    """

    def __init__(self, referencing_file: str, missing_path: str):
        super().__init__(
            f"File not found: {missing_path} (referenced in {referencing_file})"
        )
        self.referencing_file = referencing_file
        self.missing_path = missing_path


class DocumentParseError(DocumentError):
    """Raised when a document is malformed or a reference cannot be resolved."""


class RequestInvalidError(SpecguardError):
    """Raised in raise-mode when a request does not conform to the contract.

    Attributes:
        request: The :class:`~specguard.validation.validated.ValidatedRequest`.
    """

    exit_code = EXIT_VALIDATION_FAILURE

    def __init__(self, message: str, request: Any = None):
        super().__init__(message)
        self.request = request


class NotFoundError(RequestInvalidError):
    """Raised in raise-mode when no path of the contract matches the request."""


class ResponseInvalidError(SpecguardError):
    """Raised when a response does not conform to the contract.

    Attributes:
        response: The :class:`~specguard.validation.validated.ValidatedResponse`.
    """

    exit_code = EXIT_VALIDATION_FAILURE

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response


class ResponseNotFoundError(ResponseInvalidError):
    """Raised when the response status or content-type is not declared."""


class ConfigError(SpecguardError):
    """Raised for configuration problems (invalid project file, bad env values)."""

    exit_code = EXIT_INVALID_USAGE


class NotRegisteredError(SpecguardError):
    """Raised when a document name is looked up in the test registry but was never registered."""

    exit_code = EXIT_INVALID_USAGE


class AlreadyRegisteredError(SpecguardError):
    """Raised when registering a second document under an occupied name."""

    exit_code = EXIT_INVALID_USAGE


class HandlerNotFoundError(SpecguardError):
    """Raised when no handler is registered for an operation id."""
