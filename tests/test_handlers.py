"""Tests for specguard.handlers."""

from __future__ import annotations

import pytest

from specguard.exceptions import AlreadyRegisteredError, HandlerNotFoundError
from specguard.handlers import HandlerRegistry
from specguard.validation.exchange import RawRequest


@pytest.fixture
def handlers() -> HandlerRegistry:
    return HandlerRegistry()


class TestRegistration:
    def test_decorator(self, handlers: HandlerRegistry) -> None:
        @handlers.handler("listPets")
        def list_pets(validated):
            return "pets"

        assert "listPets" in handlers
        assert len(handlers) == 1
        assert handlers.find("listPets") is list_pets

    def test_same_handler_twice(self, handlers: HandlerRegistry) -> None:
        def handler(validated):
            return None

        handlers.register("listPets", handler)
        handlers.register("listPets", handler)
        assert len(handlers) == 1

    def test_conflicting_handler(self, handlers: HandlerRegistry) -> None:
        handlers.register("listPets", lambda v: 1)
        with pytest.raises(AlreadyRegisteredError, match="listPets"):
            handlers.register("listPets", lambda v: 2)

    def test_not_found(self, handlers: HandlerRegistry) -> None:
        with pytest.raises(HandlerNotFoundError, match="No handler registered for operation 'showPet'"):
            handlers.find("showPet")


class TestForRequest:
    def test_dispatch_by_operation_id(self, handlers: HandlerRegistry, petstore) -> None:
        handlers.register("showPet", lambda validated: validated.path_parameters["petId"])
        validated = petstore.validate_request(RawRequest("GET", "/pets/5"))
        assert handlers.for_request(validated)(validated) == 5

    def test_operation_without_id(self, handlers: HandlerRegistry, petstore) -> None:
        validated = petstore.validate_request(RawRequest("DELETE", "/pets/5", headers={"X-Request-Id": "a"}))
        assert handlers.for_request(validated) is None

    def test_unrouted_request(self, handlers: HandlerRegistry, petstore) -> None:
        validated = petstore.validate_request(RawRequest("GET", "/owners"))
        assert handlers.for_request(validated) is None

    def test_missing_handler(self, handlers: HandlerRegistry, petstore) -> None:
        validated = petstore.validate_request(RawRequest("GET", "/pets"))
        with pytest.raises(HandlerNotFoundError):
            handlers.for_request(validated)
