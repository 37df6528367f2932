"""Operations: one declared (path, method) and the variants it expands to."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

from referencing import Registry

from specguard.definition.parameters import Parameter, ParameterCollection, merge_parameters
from specguard.definition.request import RequestVariant
from specguard.definition.response import ResponseVariant
from specguard.hooks import AFTER_REQUEST_PARAMETER_PROPERTY_VALIDATION, HookRunner
from specguard.models import ParameterLocation, Settings
from specguard.parser.resolver import RefNode

# Header parameters OpenAPI says to ignore
IGNORED_HEADER_PARAMETERS = frozenset({"accept", "content-type", "authorization"})


@dataclass(frozen=True)
class BuildContext:
    """What every variant of one document needs to compile its schemas."""

    registry: Registry
    openapi_version: str
    settings: Settings
    hooks: HookRunner


class Operation:
    """One (path, method) of the contract.

    Operation-level parameters replace path-item parameters with the same
    ``(name, in)``. Header parameters named ``Accept``, ``Content-Type`` or
    ``Authorization`` are ignored.
    """

    def __init__(
        self,
        path: str,
        method: str,
        node: RefNode,
        path_item: RefNode,
        context: BuildContext,
    ):
        self._path = path
        self._method = method.lower()
        self._node = node.resolve()
        raw = self._node.value
        self._operation_id: Optional[str] = raw.get("operationId")
        self._summary: Optional[str] = raw.get("summary")
        self._tags: tuple[str, ...] = tuple(raw.get("tags") or ())

        parameters = [
            p
            for p in merge_parameters(path_item.get("parameters"), self._node.get("parameters"))
            if not (
                p.location is ParameterLocation.HEADER
                and p.name.lower() in IGNORED_HEADER_PARAMETERS
            )
        ]
        parameter_hook = context.hooks.property_hook(AFTER_REQUEST_PARAMETER_PROPERTY_VALIDATION)
        self._parameters: Mapping[ParameterLocation, ParameterCollection] = MappingProxyType(
            {
                location: ParameterCollection(
                    location,
                    [p for p in parameters if p.location is location],
                    context.registry,
                    context.openapi_version,
                    insert_defaults=context.settings.validation.insert_property_defaults,
                    after_property_validation=parameter_hook,
                )
                for location in ParameterLocation
            }
        )

        self._required_body = False
        self._requests = tuple(self._build_requests(context))
        self._responses = tuple(self._build_responses(context))

    def __repr__(self) -> str:
        return f"Operation({self.name})"

    def _build_requests(self, context: BuildContext) -> list[RequestVariant]:
        body = self._node.get("requestBody")
        variants = []
        if body is not None:
            body = body.resolve()
            self._required_body = body.value.get("required") is True
            content = body.get("content")
            if content is not None:
                for content_type, media_type in content.items():
                    variants.append(
                        RequestVariant(self, content_type, media_type, self._required_body, context)
                    )
        if not self._required_body:
            variants.append(RequestVariant(self, None, None, False, context))
        return variants

    def _build_responses(self, context: BuildContext) -> list[ResponseVariant]:
        responses = self._node.get("responses")
        variants = []
        if responses is None:
            return variants
        for status, response in responses.items():
            response = response.resolve()
            content = response.get("content")
            if content is None or len(content) == 0:
                variants.append(ResponseVariant(self, status, None, response, None, context))
                continue
            for content_type, media_type in content.items():
                variants.append(
                    ResponseVariant(self, status, content_type, response, media_type, context)
                )
        return variants

    @property
    def path(self) -> str:
        return self._path

    @property
    def method(self) -> str:
        """Lower-case HTTP method."""
        return self._method

    @property
    def operation_id(self) -> Optional[str]:
        return self._operation_id

    @property
    def summary(self) -> Optional[str]:
        return self._summary

    @property
    def tags(self) -> tuple[str, ...]:
        return self._tags

    @property
    def name(self) -> str:
        name = f"{self._method.upper()} {self._path}"
        if self._operation_id:
            name += f" ({self._operation_id})"
        return name

    @property
    def node(self) -> RefNode:
        """The operation object in the contract."""
        return self._node

    @property
    def parameters(self) -> Mapping[ParameterLocation, ParameterCollection]:
        return self._parameters

    @property
    def path_parameters(self) -> tuple[Parameter, ...]:
        return self._parameters[ParameterLocation.PATH].parameters

    @property
    def required_body(self) -> bool:
        return self._required_body

    @property
    def requests(self) -> tuple[RequestVariant, ...]:
        return self._requests

    @property
    def responses(self) -> tuple[ResponseVariant, ...]:
        return self._responses

    @property
    def statuses(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(r.status for r in self._responses))
