"""Validate a response against its matched variant: headers, then body."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from specguard.validation import codec
from specguard.validation.body_parser import BodyParseError, parse_response_body
from specguard.validation.exchange import RawResponse
from specguard.validation.failure import Failure, FailureKind
from specguard.validation.validated import ParsedResponse, ValidatedResponse

if TYPE_CHECKING:
    from specguard.definition.response import ResponseVariant


class ResponseValidator:
    """Validates responses for one :class:`~specguard.definition.response.ResponseVariant`."""

    def __init__(self, variant: "ResponseVariant"):
        self._variant = variant

    def validate(self, response: RawResponse) -> ValidatedResponse:
        values: dict[str, Any] = {"response": response, "headers": {}, "body": None}
        error = self._validate_headers(values) or self._validate_body(values)
        parsed = ParsedResponse(headers=values["headers"], body=values["body"])
        return ValidatedResponse(response, error, self._variant, parsed)

    def _validate_headers(self, values: dict[str, Any]) -> Optional[Failure]:
        collection = self._variant.headers
        if not collection:
            return None
        headers = codec.unpack_headers(collection, values["response"].headers)
        values["headers"] = headers
        result = collection.schema.validate(headers)
        if result.valid:
            return None
        return Failure.from_errors(FailureKind.INVALID_RESPONSE_HEADER, result.errors)

    def _validate_body(self, values: dict[str, Any]) -> Optional[Failure]:
        response: RawResponse = values["response"]
        try:
            body = parse_response_body(
                response.body, response.content_type or self._variant.content_type
            )
        except BodyParseError as exc:
            return Failure(FailureKind.INVALID_RESPONSE_BODY, str(exc))
        values["body"] = body

        schema = self._variant.content_schema
        if schema is None:
            return None
        result = schema.validate(body)
        if result.valid:
            return None
        return Failure.from_errors(FailureKind.INVALID_RESPONSE_BODY, result.errors)
