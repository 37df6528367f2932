"""Request variants: one operation with one declared request content type."""

from __future__ import annotations

from collections.abc import Mapping
from functools import cached_property
from typing import TYPE_CHECKING, Any, Optional

from specguard.hooks import AFTER_REQUEST_BODY_PROPERTY_VALIDATION
from specguard.models import VariantKey
from specguard.parser.resolver import RefNode
from specguard.schema.compiler import WRITE, Schema
from specguard.validation.exchange import RawRequest
from specguard.validation.request_validator import RequestValidator
from specguard.validation.validated import ValidatedRequest

if TYPE_CHECKING:
    from specguard.definition.operation import BuildContext, Operation


class RequestVariant:
    """A declared request shape.

    ``content_type`` is ``None`` for the no-body variant, which exists
    exactly when the operation's request body is optional or absent.
    """

    def __init__(
        self,
        operation: "Operation",
        content_type: Optional[str],
        media_type: Optional[RefNode],
        required_body: bool,
        context: "BuildContext",
    ):
        self._operation = operation
        self._content_type = content_type
        self._required_body = required_body
        self._context = context
        self._schema_node = (
            media_type["schema"] if media_type is not None and "schema" in media_type else None
        )
        encoding = media_type.value.get("encoding") if media_type is not None else None
        self._encoding: Mapping[str, Any] = encoding if isinstance(encoding, dict) else {}
        self._validator = RequestValidator(self)

    def __repr__(self) -> str:
        return f"RequestVariant({self._operation.method.upper()} {self._operation.path} {self._content_type})"

    @property
    def operation(self) -> "Operation":
        return self._operation

    @property
    def path(self) -> str:
        return self._operation.path

    @property
    def method(self) -> str:
        return self._operation.method

    @property
    def content_type(self) -> Optional[str]:
        return self._content_type

    @property
    def required_body(self) -> bool:
        return self._required_body

    @property
    def encoding(self) -> Mapping[str, Any]:
        return self._encoding

    @property
    def schema_node(self) -> Optional[RefNode]:
        return self._schema_node

    @property
    def key(self) -> VariantKey:
        return VariantKey(self.path, self.method, self._content_type)

    @cached_property
    def content_schema(self) -> Optional[Schema]:
        if self._schema_node is None:
            return None
        context = self._context
        return Schema(
            {"$ref": self._schema_node.location},
            context.registry,
            openapi_version=context.openapi_version,
            access_mode=WRITE,
            insert_defaults=context.settings.validation.insert_property_defaults,
            after_property_validation=context.hooks.property_hook(
                AFTER_REQUEST_BODY_PROPERTY_VALIDATION
            ),
        )

    def validate(self, request: RawRequest, path_params: Mapping[str, str]) -> ValidatedRequest:
        return self._validator.validate(request, path_params)
