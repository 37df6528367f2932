"""Validate a routed request against its variant.

Parameters are unpacked first. Then each step returns a :class:`Failure`
or ``None``, in a fixed order: query, path, header, cookie, body. The first
failure ends validation.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Optional

from specguard.models import ParameterLocation
from specguard.validation import codec
from specguard.validation.body_parser import BodyParseError, is_empty, parse_request_body
from specguard.validation.exchange import RawRequest
from specguard.validation.failure import Failure, FailureKind
from specguard.validation.validated import ParsedRequest, ValidatedRequest

if TYPE_CHECKING:
    from specguard.definition.parameters import ParameterCollection
    from specguard.definition.request import RequestVariant

_PARAMETER_FAILURES = {
    ParameterLocation.QUERY: FailureKind.INVALID_QUERY,
    ParameterLocation.PATH: FailureKind.INVALID_PATH,
    ParameterLocation.HEADER: FailureKind.INVALID_HEADER,
    ParameterLocation.COOKIE: FailureKind.INVALID_COOKIE,
}

Step = Callable[[dict[str, Any]], Optional[Failure]]


class RequestValidator:
    """Validates requests for one :class:`~specguard.definition.request.RequestVariant`."""

    def __init__(self, variant: "RequestVariant"):
        self._variant = variant
        self._steps: tuple[Step, ...] = (
            self._parameter_step(ParameterLocation.QUERY),
            self._parameter_step(ParameterLocation.PATH),
            self._parameter_step(ParameterLocation.HEADER),
            self._parameter_step(ParameterLocation.COOKIE),
            self._validate_body,
        )

    def validate(self, request: RawRequest, path_params: Mapping[str, str]) -> ValidatedRequest:
        values = self._unpack(request, path_params)
        error = None
        for step in self._steps:
            error = step(values)
            if error is not None:
                break
        parsed = ParsedRequest(
            path=values[ParameterLocation.PATH],
            query=values[ParameterLocation.QUERY],
            headers=values[ParameterLocation.HEADER],
            cookies=values[ParameterLocation.COOKIE],
            body=values.get("body"),
        )
        return ValidatedRequest(request, error, self._variant, parsed)

    def _unpack(self, request: RawRequest, path_params: Mapping[str, str]) -> dict[Any, Any]:
        parameters = self._variant.operation.parameters
        return {
            ParameterLocation.QUERY: codec.unpack_query(
                parameters[ParameterLocation.QUERY], request.query_string
            ),
            ParameterLocation.PATH: codec.unpack_path(
                parameters[ParameterLocation.PATH], path_params
            ),
            ParameterLocation.HEADER: codec.unpack_headers(
                parameters[ParameterLocation.HEADER], request.headers
            ),
            ParameterLocation.COOKIE: codec.unpack_cookies(
                parameters[ParameterLocation.COOKIE], request.cookies
            ),
            "request": request,
        }

    def _parameter_step(self, location: ParameterLocation) -> Step:
        def step(values: dict[Any, Any]) -> Optional[Failure]:
            collection: "ParameterCollection" = self._variant.operation.parameters[location]
            if not collection:
                return None
            result = collection.schema.validate(values[location])
            if result.valid:
                return None
            return Failure.from_errors(_PARAMETER_FAILURES[location], result.errors)

        return step

    def _validate_body(self, values: dict[Any, Any]) -> Optional[Failure]:
        request: RawRequest = values["request"]
        variant = self._variant
        if is_empty(request.body):
            if variant.required_body:
                return Failure(FailureKind.INVALID_BODY, "Request body is required")
            values["body"] = None
            return None

        try:
            body = parse_request_body(
                request.body, request.content_type or variant.content_type, variant.encoding
            )
        except BodyParseError as exc:
            return Failure(FailureKind.INVALID_BODY, str(exc))
        values["body"] = body

        schema = variant.content_schema
        if schema is None:
            return None
        result = schema.validate(body)
        if result.valid:
            return None
        return Failure.from_errors(FailureKind.INVALID_BODY, result.errors)
