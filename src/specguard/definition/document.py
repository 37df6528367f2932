"""The loaded contract: operations, routing and validation entry points."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Callable, Optional

from specguard.definition.operation import BuildContext, Operation
from specguard.error_response import render
from specguard.hooks import (
    AFTER_REQUEST_VALIDATION,
    AFTER_RESPONSE_VALIDATION,
    Configuration,
    HookRunner,
)
from specguard.hooks import configuration as global_configuration
from specguard.models import HTTPMethod, ParameterLocation, Settings
from specguard.parser.loader import validate_openapi_version
from specguard.parser.resolver import RefNode, uri_to_path
from specguard.router.router import RequestMatch, Router
from specguard.validation.exchange import normalize_request, normalize_response
from specguard.validation.failure import Failure, FailureKind
from specguard.validation.validated import ValidatedRequest, ValidatedResponse

logger = logging.getLogger(__name__)


class Document:
    """A contract document, built once and read-only afterwards.

    Args:
        root: Node of the root document (see
            :meth:`~specguard.parser.resolver.DocumentStore.open`).
        filepath: Path the document was loaded from, if any.
        configuration: Parent configuration; the document works on a
            frozen child of it. Defaults to the global configuration.
        settings: Settings for this document, overriding the parent's.
        configure: Called with the document's configuration before it is
            frozen; use it to register document-only hooks.

    Raises:
        DocumentParseError: If the document is not an OpenAPI 3.0/3.1
            document or a reference cannot be resolved.
        ReferenceFileNotFoundError: If a referenced file is missing.
        ConfigError: If the settings in ``specguard.json`` or the
            environment are invalid.
    """

    def __init__(
        self,
        root: RefNode,
        filepath: Optional[str] = None,
        configuration: Optional[Configuration] = None,
        settings: Optional[Settings] = None,
        configure: Optional[Callable[[Configuration], None]] = None,
    ):
        self._root = root
        self._filepath = filepath
        self._openapi_version = validate_openapi_version(root.value)
        root.store.prefetch(root.uri)

        self._configuration = (configuration or global_configuration).child(settings)
        if configure is not None:
            configure(self._configuration)
        self._hooks = HookRunner(self._configuration)
        validation = self._configuration.settings.validation
        context = BuildContext(
            registry=root.store.registry(self._openapi_version),
            openapi_version=self._openapi_version,
            settings=self._configuration.settings,
            hooks=self._hooks,
        )

        self._router = Router(use_patterns=validation.path_parameter_pattern_matching)
        operations = []
        paths = root["paths"]
        for path, path_item in paths.items():
            for method in HTTPMethod:
                if method.value not in path_item:
                    continue
                operation = Operation(path, method.value, path_item[method.value], path_item, context)
                self._register(operation)
                operations.append(operation)

        self._operations = tuple(operations)
        self._paths = tuple(paths.keys())
        self._operations_by_id: Mapping[str, Operation] = MappingProxyType(
            {op.operation_id: op for op in operations if op.operation_id}
        )
        self._configuration.freeze()
        logger.debug(
            "Built %s: %d operations, %d request variants, %d response variants",
            self.key,
            len(self._operations),
            sum(len(op.requests) for op in self._operations),
            sum(len(op.responses) for op in self._operations),
        )

    def _register(self, operation: Operation) -> None:
        template_parameters = [
            p.as_template_parameter()
            for p in operation.parameters[ParameterLocation.PATH]
        ]
        for variant in operation.requests:
            self._router.add_request(
                variant,
                operation.method,
                operation.path,
                variant.content_type,
                path_parameters=template_parameters,
            )
        for variant in operation.responses:
            self._router.add_response(
                variant, operation.method, operation.path, variant.status, variant.content_type
            )

    def __repr__(self) -> str:
        return f"Document({self.key!r})"

    # -- read-only surface ---------------------------------------------

    @property
    def filepath(self) -> Optional[str]:
        return self._filepath

    @property
    def key(self) -> str:
        """Identity used by the coverage tracker: the file path, or the root URI."""
        return self._filepath or uri_to_path(self._root.uri)

    @property
    def openapi_version(self) -> str:
        """``"3.0"`` or ``"3.1"``."""
        return self._openapi_version

    @property
    def root(self) -> RefNode:
        return self._root

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    @property
    def settings(self) -> Settings:
        return self._configuration.settings

    @property
    def paths(self) -> tuple[str, ...]:
        return self._paths

    @property
    def operations(self) -> tuple[Operation, ...]:
        return self._operations

    @property
    def routes(self) -> tuple[Operation, ...]:
        """Alias of :attr:`operations`, grouping request and response variants per route."""
        return self._operations

    def operation(self, operation_id: str) -> Optional[Operation]:
        return self._operations_by_id.get(operation_id)

    def render_error(self, failure: Failure) -> tuple[int, dict[str, str], bytes]:
        """Render *failure* with the renderer named by ``settings.validation.error_response``."""
        return render(failure, self.settings.validation.error_response)

    # -- routing and validation ------------------------------------------

    def match(
        self,
        method: str,
        path: str,
        content_type: Optional[str] = None,
        has_body: bool = True,
    ) -> RequestMatch:
        """Route a request without validating it."""
        return self._router.match(method, path, content_type, has_body=has_body)

    def validate_request(self, request: Any, raise_error: Optional[bool] = None) -> ValidatedRequest:
        """Route and validate *request* (``httpx.Request`` or :class:`RawRequest`).

        Args:
            request: The request to validate.
            raise_error: Raise instead of returning a failure. Defaults to
                ``settings.validation.request_raise_error``.

        Raises:
            RequestInvalidError: In raise mode, if the request is invalid.
        """
        raw = normalize_request(request)
        match = self._router.match(
            raw.method, raw.path, raw.content_type, has_body=bool(raw.body)
        )
        if match.error is not None:
            validated = ValidatedRequest(raw, match.error)
        else:
            validated = match.variant.validate(raw, match.params)
        validated = replace(validated, original=request)

        self._hooks.run(AFTER_REQUEST_VALIDATION, validated, self)
        if raise_error is None:
            raise_error = self.settings.validation.request_raise_error
        if raise_error:
            validated.raise_error()
        return validated

    def validate_response(
        self, request: Any, response: Any, raise_error: Optional[bool] = None
    ) -> Optional[ValidatedResponse]:
        """Validate *response* to *request*.

        Returns ``None`` when the request itself cannot be routed.

        Args:
            request: The request that produced *response*.
            response: ``httpx.Response`` or :class:`RawResponse`.
            raise_error: Raise instead of returning a failure. Defaults to
                ``settings.validation.response_raise_error``.

        Raises:
            ResponseNotFoundError: In raise mode, if the status or content
                type is not declared.
            ResponseInvalidError: In raise mode, if the response is invalid.
        """
        raw_request = normalize_request(request)
        raw_response = normalize_response(response)
        match = self._router.match(
            raw_request.method,
            raw_request.path,
            raw_request.content_type,
            has_body=bool(raw_request.body),
        )
        if match.error is not None:
            return None

        response_match = match.match_response(raw_response.status, raw_response.content_type)
        if response_match is None:
            validated = ValidatedResponse(
                raw_response,
                Failure(
                    FailureKind.RESPONSE_NOT_FOUND,
                    f"No responses are defined for {raw_request.method} {raw_request.path}.",
                ),
            )
        elif response_match.error is not None:
            validated = ValidatedResponse(raw_response, response_match.error)
        else:
            validated = response_match.variant.validate(raw_response)
        validated = replace(validated, original=response)

        self._hooks.run(AFTER_RESPONSE_VALIDATION, validated, raw_request, self)
        if raise_error is None:
            raise_error = self.settings.validation.response_raise_error
        if raise_error:
            validated.raise_error()
        return validated
