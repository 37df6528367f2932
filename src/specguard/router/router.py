"""Map requests and responses to the declared variants that describe them."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Optional

from specguard.router.content_matcher import ContentMatcher
from specguard.router.path_template import PathTemplate, is_template
from specguard.validation.failure import Failure, FailureKind

logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, str] = MappingProxyType({})


def _format_content_types(content_types: Iterable[Optional[str]]) -> str:
    return " or ".join(ct if ct is not None else "(no content)" for ct in content_types)


@dataclass(frozen=True)
class ResponseMatch:
    """Result of :meth:`ResponseMatcher.match`: a variant or an error."""

    variant: Any = None
    error: Optional[Failure] = None


class ResponseMatcher:
    """Declared responses of one operation, keyed by status then content type."""

    def __init__(self, path: str, method: str):
        self._path = path
        self._method = method.upper()
        self._responses: dict[str, ContentMatcher] = {}

    def add_response(self, status: str, content_type: Optional[str], variant: Any) -> None:
        self._responses.setdefault(str(status), ContentMatcher()).add(content_type, variant)

    @property
    def statuses(self) -> list[str]:
        return list(self._responses)

    def __iter__(self) -> Iterator[Any]:
        for contents in self._responses.values():
            yield from contents.values()

    def find_status(self, status: int) -> Optional[ContentMatcher]:
        """Look up *status* exactly, then as ``NXX``/``Nxx``, then ``default``."""
        family = int(status) // 100
        for key in (str(status), f"{family}XX", f"{family}xx", "default"):
            found = self._responses.get(key)
            if found is not None:
                return found
        return None

    def match(self, status: int, content_type: Optional[str]) -> ResponseMatch:
        contents = self.find_status(status)
        if contents is None:
            message = (
                f"Status {status} is not defined for {self._method} {self._path}. "
                f"Defined statuses are: {', '.join(self._responses)}."
            )
            return ResponseMatch(error=Failure(FailureKind.RESPONSE_NOT_FOUND, message))

        variant = contents.match(content_type)
        if variant is None:
            if not content_type:
                problem = "Response Content-Type must not be empty."
            else:
                problem = (
                    f"Response Content-Type {content_type} is not defined for "
                    f"{self._method} {self._path}."
                )
            message = (
                f"{problem} Content-Type should be "
                f"{_format_content_types(contents.defined_content_types)}."
            )
            return ResponseMatch(error=Failure(FailureKind.RESPONSE_NOT_FOUND, message))
        return ResponseMatch(variant=variant)


@dataclass(frozen=True)
class RequestMatch:
    """Result of :meth:`Router.match`.

    Either ``variant`` and ``params`` are set, or ``error`` is.
    """

    variant: Any = None
    params: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    error: Optional[Failure] = None
    responses: Optional[ResponseMatcher] = None

    def match_response(self, status: int, content_type: Optional[str]) -> Optional[ResponseMatch]:
        if self.responses is None:
            return None
        return self.responses.match(status, content_type)


NOT_FOUND = RequestMatch(error=Failure(FailureKind.NOT_FOUND))


class _Route:
    __slots__ = ("requests", "responses")

    def __init__(self) -> None:
        self.requests: Optional[ContentMatcher] = None
        self.responses: Optional[ResponseMatcher] = None


class Router:
    """Static paths are looked up first; templates are tried in declaration order.

    Args:
        use_patterns: Narrow template captures to the ``schema.pattern`` of
            path parameters (see :func:`~specguard.router.path_template.pattern_capture`).
    """

    def __init__(self, use_patterns: bool = False):
        self._use_patterns = use_patterns
        self._static: dict[str, dict[str, _Route]] = {}
        self._dynamic: dict[str, dict[str, _Route]] = {}
        self._templates: dict[str, PathTemplate] = {}

    def _route_at(
        self, path: str, method: str, path_parameters: Iterable[Any] = ()
    ) -> _Route:
        if is_template(path):
            if path not in self._templates:
                self._templates[path] = PathTemplate(
                    path, path_parameters, self._use_patterns
                )
            path_item = self._dynamic.setdefault(path, {})
        else:
            path_item = self._static.setdefault(path, {})
        return path_item.setdefault(method.upper(), _Route())

    def add_request(
        self,
        variant: Any,
        method: str,
        path: str,
        content_type: Optional[str] = None,
        path_parameters: Iterable[Any] = (),
    ) -> None:
        route = self._route_at(path, method, path_parameters)
        if route.requests is None:
            route.requests = ContentMatcher()
        route.requests.add(content_type, variant)

    def add_response(
        self,
        variant: Any,
        method: str,
        path: str,
        status: str,
        content_type: Optional[str] = None,
    ) -> None:
        route = self._route_at(path, method)
        if route.responses is None:
            route.responses = ResponseMatcher(path, method)
        route.responses.add_response(status, content_type, variant)

    def _find_path_item(self, path: str) -> Optional[tuple[dict[str, _Route], dict[str, str]]]:
        found = self._static.get(path)
        if found is None and len(path) > 1 and path.endswith("/"):
            found = self._static.get(path[:-1])
        if found is not None:
            return found, {}
        for template, path_item in self._dynamic.items():
            params = self._templates[template].match(path)
            if params is not None:
                return path_item, params
        return None

    def match(
        self,
        method: str,
        path: str,
        content_type: Optional[str] = None,
        has_body: bool = True,
    ) -> RequestMatch:
        """Find the request variant for one concrete request.

        A request without content type and without body that hits an
        operation requiring a body is routed to its first declared variant,
        so the missing body is reported as ``invalid_body``.
        """
        found = self._find_path_item(path)
        if found is None:
            logger.debug("No path matches %s", path)
            return NOT_FOUND
        path_item, params = found

        route = path_item.get(method.upper())
        if route is None or route.requests is None:
            logger.debug("Method %s is not defined for %s", method.upper(), path)
            return RequestMatch(error=Failure(FailureKind.METHOD_NOT_ALLOWED))

        variant = route.requests.match(content_type)
        if variant is None and not content_type and not has_body:
            variant = route.requests.values()[0]
        if variant is None:
            if not content_type:
                problem = "Content-Type must not be empty."
            else:
                problem = f"Content-Type {content_type} is not defined."
            message = (
                f"{problem} Content-Type should be "
                f"{_format_content_types(route.requests.defined_content_types)}."
            )
            logger.debug("Content-Type %r is not defined for %s %s", content_type, method, path)
            return RequestMatch(
                error=Failure(FailureKind.UNSUPPORTED_MEDIA_TYPE, message)
            )

        return RequestMatch(
            variant=variant,
            params=MappingProxyType(params),
            responses=route.responses,
        )
