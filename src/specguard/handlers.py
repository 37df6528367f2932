"""Explicit operation-id to handler registration.

Handlers are never looked up by reflection; an application registers each
one under the ``operationId`` it serves::

    handlers = HandlerRegistry()

    @handlers.handler("listPets")
    def list_pets(validated):
        ...

    handler = handlers.for_request(document.validate_request(request))
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Optional

from specguard.exceptions import AlreadyRegisteredError, HandlerNotFoundError

Handler = Callable[..., Any]


class HandlerRegistry:
    """Maps operation ids to callables."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._lock = threading.Lock()

    def register(self, operation_id: str, handler: Handler) -> Handler:
        """Register *handler* for *operation_id* and return it.

        Raises:
            AlreadyRegisteredError: If another handler is registered for
                *operation_id*.
        """
        with self._lock:
            existing = self._handlers.get(operation_id)
            if existing is not None and existing is not handler:
                raise AlreadyRegisteredError(
                    f"A handler is already registered for operation {operation_id!r}"
                )
            self._handlers[operation_id] = handler
        return handler

    def handler(self, operation_id: str) -> Callable[[Handler], Handler]:
        def decorator(func: Handler) -> Handler:
            return self.register(operation_id, func)

        return decorator

    def find(self, operation_id: str) -> Handler:
        """Raises HandlerNotFoundError if nothing is registered for *operation_id*."""
        try:
            return self._handlers[operation_id]
        except KeyError:
            raise HandlerNotFoundError(
                f"No handler registered for operation {operation_id!r}"
            ) from None

    def for_request(self, validated: Any) -> Optional[Handler]:
        """Return the handler for a validated request's operation.

        Returns ``None`` when the request was not routed or its operation
        declares no ``operationId``.

        Raises:
            HandlerNotFoundError: If the operation has an id but no handler.
        """
        operation_id = validated.operation_id
        if operation_id is None:
            return None
        return self.find(operation_id)

    def __contains__(self, operation_id: str) -> bool:
        return operation_id in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
