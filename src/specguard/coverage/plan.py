"""Coverage plans: which declared request/response variants were exercised."""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Union

from specguard.models import VariantKey

if TYPE_CHECKING:
    from specguard.definition.document import Document
    from specguard.definition.response import ResponseVariant

SkipResponse = Callable[["ResponseVariant"], bool]


@dataclass
class _Task:
    key: VariantKey
    seen: bool = False
    any_valid: bool = False
    last_error_message: Optional[str] = None

    @property
    def path(self) -> str:
        return self.key.path

    @property
    def method(self) -> str:
        return self.key.method

    @property
    def content_type(self) -> Optional[str]:
        return self.key.content_type

    @property
    def finished(self) -> bool:
        return self.seen and self.any_valid

    def track(self, error_message: Optional[str]) -> None:
        self.seen = True
        if error_message is None:
            self.any_valid = True
        else:
            self.last_error_message = error_message


@dataclass
class RequestTask(_Task):
    """Tracking state of one request variant."""

    is_request = True


@dataclass
class ResponseTask(_Task):
    """Tracking state of one response variant."""

    is_request = False

    @property
    def status(self) -> str:
        return self.key.status or ""


@dataclass(frozen=True)
class RouteTask:
    """The request and response tasks of one operation, for reporting."""

    path: str
    method: str
    requests: tuple[RequestTask, ...] = field(default_factory=tuple)
    responses: tuple[ResponseTask, ...] = field(default_factory=tuple)

    @property
    def finished(self) -> bool:
        return all(t.finished for t in self.requests) and all(
            t.finished for t in self.responses
        )


def skip_statuses(patterns: Iterable[str]) -> Optional[SkipResponse]:
    """Build a *skip_response* predicate from status patterns like ``"5XX"``.

    ``X``/``x`` match any digit; patterns are compared against the status as
    declared in the contract.
    """
    compiled = [
        re.compile(re.sub("[Xx]", "[0-9Xx]", str(pattern)) + r"\Z")
        for pattern in patterns
    ]
    if not compiled:
        return None

    def skip(response: "ResponseVariant") -> bool:
        return any(regex.match(response.status) for regex in compiled)

    return skip


class Plan:
    """Coverage state of one document.

    A task is finished once it was seen at least once with a valid
    exchange. Tracking is monotonic: a later invalid exchange never
    unfinishes a task.
    """

    def __init__(self, key: str, routes: Iterable[RouteTask] = ()):
        self._key = key
        self._routes = tuple(routes)
        self._index: dict[VariantKey, _Task] = {}
        for route in self._routes:
            for task in (*route.requests, *route.responses):
                self._index[task.key] = task
        self._lock = threading.Lock()

    def __getstate__(self) -> dict:
        state = self.__dict__.copy()
        del state["_lock"]
        return state

    def __setstate__(self, state: dict) -> None:
        self.__dict__.update(state)
        self._lock = threading.Lock()

    @classmethod
    def for_document(
        cls,
        document: "Document",
        skip_response: Union[SkipResponse, Iterable[str], None] = None,
    ) -> "Plan":
        """Enumerate every request and response variant of *document*.

        Args:
            document: The loaded contract.
            skip_response: Predicate over response variants, or status
                patterns (``["5XX", "401"]``), to leave out of the plan.
        """
        if skip_response is not None and not callable(skip_response):
            skip_response = skip_statuses(skip_response)
        routes = []
        for operation in document.operations:
            routes.append(
                RouteTask(
                    path=operation.path,
                    method=operation.method,
                    requests=tuple(RequestTask(v.key) for v in operation.requests),
                    responses=tuple(
                        ResponseTask(v.key)
                        for v in operation.responses
                        if skip_response is None or not skip_response(v)
                    ),
                )
            )
        return cls(document.key, routes)

    @property
    def key(self) -> str:
        return self._key

    @property
    def routes(self) -> tuple[RouteTask, ...]:
        return self._routes

    @property
    def tasks(self) -> list[_Task]:
        return list(self._index.values())

    @property
    def requests(self) -> list[RequestTask]:
        return [t for t in self._index.values() if isinstance(t, RequestTask)]

    @property
    def responses(self) -> list[ResponseTask]:
        return [t for t in self._index.values() if isinstance(t, ResponseTask)]

    def __contains__(self, key: VariantKey) -> bool:
        return key in self._index

    def task(self, key: VariantKey) -> Optional[_Task]:
        return self._index.get(key)

    def _track(self, key: VariantKey, error_message: Optional[str]) -> bool:
        task = self._index.get(VariantKey(*key))
        if task is None:
            return False
        with self._lock:
            task.track(error_message)
        return True

    def track_request(self, key: VariantKey, error_message: Optional[str] = None) -> bool:
        """Record one request. Returns False if *key* is not part of the plan."""
        return self._track(key, error_message)

    def track_response(self, key: VariantKey, error_message: Optional[str] = None) -> bool:
        """Record one response. Returns False if *key* is not part of the plan."""
        return self._track(key, error_message)

    @property
    def done(self) -> bool:
        return all(task.finished for task in self._index.values())

    @property
    def finished_count(self) -> int:
        return sum(1 for task in self._index.values() if task.finished)

    @property
    def coverage(self) -> int:
        """Percentage of finished tasks, rounded; 0 for an empty plan."""
        total = len(self._index)
        if total == 0:
            return 0
        return round(100 * self.finished_count / total)

    @property
    def empty(self) -> bool:
        return not self._index
