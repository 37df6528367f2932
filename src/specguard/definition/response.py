"""Response variants: one operation, one declared status, one content type."""

from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING, Optional

from specguard.definition.parameters import Parameter, ParameterCollection
from specguard.hooks import AFTER_RESPONSE_BODY_PROPERTY_VALIDATION
from specguard.models import ParameterLocation, VariantKey
from specguard.parser.resolver import RefNode
from specguard.schema.compiler import READ, Schema
from specguard.validation.exchange import RawResponse
from specguard.validation.response_validator import ResponseValidator
from specguard.validation.validated import ValidatedResponse

if TYPE_CHECKING:
    from specguard.definition.operation import BuildContext, Operation


class ResponseVariant:
    """A declared response shape; ``content_type`` is ``None`` for a no-content response."""

    def __init__(
        self,
        operation: "Operation",
        status: str,
        content_type: Optional[str],
        response: RefNode,
        media_type: Optional[RefNode],
        context: "BuildContext",
    ):
        self._operation = operation
        self._status = status
        self._content_type = content_type
        self._response = response
        self._context = context
        self._schema_node = (
            media_type["schema"] if media_type is not None and "schema" in media_type else None
        )
        self._validator = ResponseValidator(self)

    def __repr__(self) -> str:
        return (
            f"ResponseVariant({self._operation.method.upper()} {self._operation.path} "
            f"{self._status} {self._content_type})"
        )

    @property
    def operation(self) -> "Operation":
        return self._operation

    @property
    def status(self) -> str:
        return self._status

    @property
    def content_type(self) -> Optional[str]:
        return self._content_type

    @property
    def description(self) -> Optional[str]:
        return self._response.value.get("description")

    @property
    def key(self) -> VariantKey:
        return VariantKey(
            self._operation.path, self._operation.method, self._content_type, self._status
        )

    @cached_property
    def headers(self) -> ParameterCollection:
        """Declared response headers; ``Content-Type`` is never validated as a header."""
        declared = self._response.get("headers")
        parameters = []
        if declared is not None:
            parameters = [
                Parameter.from_header(name, node)
                for name, node in declared.items()
                if name.lower() != "content-type"
            ]
        context = self._context
        return ParameterCollection(
            ParameterLocation.HEADER,
            parameters,
            context.registry,
            context.openapi_version,
            access_mode=READ,
            insert_defaults=False,
        )

    @cached_property
    def content_schema(self) -> Optional[Schema]:
        if self._schema_node is None:
            return None
        context = self._context
        return Schema(
            {"$ref": self._schema_node.location},
            context.registry,
            openapi_version=context.openapi_version,
            access_mode=READ,
            insert_defaults=False,
            after_property_validation=context.hooks.property_hook(
                AFTER_RESPONSE_BODY_PROPERTY_VALIDATION
            ),
        )

    def validate(self, response: RawResponse) -> ValidatedResponse:
        return self._validator.validate(response)
