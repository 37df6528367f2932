"""Tests for request validation through Document.validate_request."""

from __future__ import annotations

import json

import httpx
import pytest

import specguard
from specguard.exceptions import NotFoundError, RequestInvalidError
from specguard.hooks import AFTER_REQUEST_BODY_PROPERTY_VALIDATION
from specguard.models import Settings, ValidationSettings
from specguard.validation.exchange import RawRequest
from specguard.validation.failure import FailureKind

BOUNDARY = "----specguard"


def _json_request(method: str, path: str, body: object) -> RawRequest:
    return RawRequest.from_url(
        method, path, headers={"Content-Type": "application/json"}, body=json.dumps(body)
    )


def _multipart(fields: list[tuple[str, str, str]]) -> bytes:
    chunks = []
    for headers, _, value in fields:
        chunks.append(f"--{BOUNDARY}\r\n{headers}\r\n\r\n{value}\r\n")
    chunks.append(f"--{BOUNDARY}--\r\n")
    return "".join(chunks).encode("utf-8")


class TestRouting:
    def test_unknown_path(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest("GET", "/owners"))
        assert not validated.valid
        assert not validated.known
        assert validated.error.kind is FailureKind.NOT_FOUND
        assert validated.operation_id is None

    def test_unknown_path_raises_not_found(self, petstore) -> None:
        with pytest.raises(NotFoundError):
            petstore.validate_request(RawRequest("GET", "/owners"), raise_error=True)

    def test_method_not_allowed(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest("PATCH", "/pets"))
        assert validated.error.kind is FailureKind.METHOD_NOT_ALLOWED

    def test_unsupported_media_type(self, petstore) -> None:
        request = RawRequest("POST", "/pets", headers={"Content-Type": "text/plain"}, body="Rex")
        validated = petstore.validate_request(request)
        assert validated.error.kind is FailureKind.UNSUPPORTED_MEDIA_TYPE
        assert validated.error.exception_message == (
            "Request content type is not defined. Content-Type text/plain is not defined. "
            "Content-Type should be application/json."
        )


class TestQuery:
    def test_valid_and_coerced(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest.from_url("GET", "/pets?limit=10&tags=a,b"))
        assert validated.valid
        assert validated.query == {"limit": 10, "tags": ["a", "b"]}
        assert validated.operation_id == "listPets"

    def test_out_of_range(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest.from_url("GET", "/pets?limit=500"))
        assert validated.error.kind is FailureKind.INVALID_QUERY
        assert validated.error.status == 400
        (error,) = validated.error.errors
        assert error.type == "maximum"
        assert error.data_pointer == "/limit"

    def test_not_an_integer(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest.from_url("GET", "/pets?limit=ten"))
        assert validated.error.kind is FailureKind.INVALID_QUERY
        assert validated.error.exception_message.startswith("Query parameter is invalid:")

    @pytest.mark.parametrize("limit", ["1_0", "%201%20"])
    def test_loosely_written_integer(self, petstore, limit: str) -> None:
        validated = petstore.validate_request(RawRequest.from_url("GET", f"/pets?limit={limit}"))
        assert validated.error.kind is FailureKind.INVALID_QUERY

    def test_query_checked_before_path(self, make_document) -> None:
        document = make_document(
            {
                "/items/{id}": {
                    "get": {
                        "parameters": [
                            {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}},
                            {"name": "q", "in": "query", "required": True, "schema": {"type": "string"}},
                        ],
                        "responses": {"200": {"description": "ok"}},
                    }
                }
            }
        )
        validated = document.validate_request(RawRequest("GET", "/items/abc"))
        assert validated.error.kind is FailureKind.INVALID_QUERY


class TestPathCookieHeader:
    def test_path_parameter(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest("GET", "/pets/42"))
        assert validated.valid
        assert validated.path_parameters == {"petId": 42}
        assert validated.params == {"petId": 42}

    def test_invalid_path_parameter(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest("GET", "/pets/rex"))
        assert validated.error.kind is FailureKind.INVALID_PATH

    def test_cookie(self, petstore) -> None:
        request = RawRequest("GET", "/pets/1", headers={"Cookie": "debug=true; other=1"})
        validated = petstore.validate_request(request)
        assert validated.valid
        assert validated.cookies == {"debug": True}

    def test_invalid_cookie(self, petstore) -> None:
        request = RawRequest("GET", "/pets/1", headers={"Cookie": "debug=maybe"})
        assert petstore.validate_request(request).error.kind is FailureKind.INVALID_COOKIE

    def test_required_header_missing(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest("DELETE", "/pets/1"))
        assert validated.error.kind is FailureKind.INVALID_HEADER
        assert validated.error.errors[0].type == "required"

    def test_header_pattern(self, petstore) -> None:
        ok = RawRequest("DELETE", "/pets/1", headers={"x-request-id": "ab-12"})
        bad = RawRequest("DELETE", "/pets/1", headers={"X-Request-Id": "XYZ"})
        assert petstore.validate_request(ok).valid
        assert petstore.validate_request(bad).error.kind is FailureKind.INVALID_HEADER

    def test_path_pattern_matching(self, make_document) -> None:
        settings = Settings(validation=ValidationSettings(path_parameter_pattern_matching=True))
        document = make_document(
            {
                "/users/{id}": {
                    "get": {
                        "parameters": [
                            {"name": "id", "in": "path", "required": True, "schema": {"type": "string", "pattern": "^[0-9]+$"}}
                        ],
                        "responses": {"200": {"description": "ok"}},
                    }
                }
            },
            settings=settings,
        )
        assert document.validate_request(RawRequest("GET", "/users/12")).valid
        assert document.validate_request(RawRequest("GET", "/users/me")).error.kind is FailureKind.NOT_FOUND


class TestBody:
    def test_valid_json_body_gets_defaults(self, petstore) -> None:
        validated = petstore.validate_request(_json_request("POST", "/pets", {"name": "Rex"}))
        assert validated.valid
        assert validated.body == {"name": "Rex", "status": "available"}

    def test_read_only_property_rejected(self, petstore) -> None:
        validated = petstore.validate_request(_json_request("POST", "/pets", {"id": 1, "name": "Rex"}))
        assert validated.error.kind is FailureKind.INVALID_BODY
        assert validated.error.errors[0].type == "readOnly"

    def test_schema_violation(self, petstore) -> None:
        validated = petstore.validate_request(_json_request("POST", "/pets", {"name": ""}))
        assert validated.error.kind is FailureKind.INVALID_BODY
        assert validated.error.errors[0].data_pointer == "/name"

    def test_missing_required_body(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest("POST", "/pets"))
        assert validated.error.kind is FailureKind.INVALID_BODY
        assert validated.error.exception_message == "Request body invalid: Request body is required"

    def test_malformed_json(self, petstore) -> None:
        request = RawRequest("POST", "/pets", headers={"Content-Type": "application/json"}, body="{")
        validated = petstore.validate_request(request)
        assert validated.error.kind is FailureKind.INVALID_BODY
        assert "Failed to parse request body as JSON" in validated.error.exception_message

    def test_raise_mode(self, petstore) -> None:
        with pytest.raises(RequestInvalidError, match="Request body invalid") as excinfo:
            petstore.validate_request(_json_request("POST", "/pets", {}), raise_error=True)
        assert excinfo.value.request.operation_id == "createPet"

    def test_raise_mode_from_settings(self, petstore_path) -> None:
        settings = Settings(validation=ValidationSettings(request_raise_error=True))
        document = specguard.load(str(petstore_path), settings=settings)
        with pytest.raises(RequestInvalidError):
            document.validate_request(RawRequest("POST", "/pets"))

    def test_optional_body_absent(self, petstore) -> None:
        validated = petstore.validate_request(RawRequest("PUT", "/pets/1/photo"))
        assert validated.valid
        assert validated.variant.content_type is None
        assert validated.body is None

    def test_multipart_upload(self, petstore) -> None:
        body = _multipart(
            [
                ('Content-Disposition: form-data; name="file"; filename="rex.png"\r\nContent-Type: image/png', "file", "PNG"),
                ('Content-Disposition: form-data; name="meta"', "meta", '{"caption": "Rex"}'),
            ]
        )
        request = RawRequest(
            "PUT",
            "/pets/1/photo",
            headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
            body=body,
        )
        validated = petstore.validate_request(request)
        assert validated.valid, validated.error
        assert validated.body == {"file": b"PNG", "meta": {"caption": "Rex"}}

    def test_multipart_missing_file(self, petstore) -> None:
        body = _multipart([('Content-Disposition: form-data; name="meta"', "meta", "{}")])
        request = RawRequest(
            "PUT",
            "/pets/1/photo",
            headers={"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
            body=body,
        )
        validated = petstore.validate_request(request)
        assert validated.error.kind is FailureKind.INVALID_BODY
        assert validated.error.errors[0].data_pointer == "/file"

    def test_binary_body(self, petstore) -> None:
        request = RawRequest("PUT", "/pets/1/photo", headers={"Content-Type": "image/png"}, body=b"\x89PNG\r\n")
        validated = petstore.validate_request(request)
        assert validated.valid
        assert validated.variant.content_type == "image/*"
        assert validated.body == b"\x89PNG\r\n"

    def test_nullable_in_split_document(self, split_document) -> None:
        request = _json_request("POST", "/orders", {"item": "bone", "quantity": 2, "note": None})
        assert split_document.validate_request(request).valid

    def test_cross_file_schema_violation(self, split_document) -> None:
        request = _json_request("POST", "/orders", {"item": "", "quantity": 0})
        validated = split_document.validate_request(request)
        pointers = sorted(error.data_pointer for error in validated.error.errors)
        assert pointers == ["/item", "/quantity"]

    def test_body_property_hook(self, petstore_path) -> None:
        names = []
        document = specguard.load(
            str(petstore_path),
            configure=lambda c: c.register_hook(
                AFTER_REQUEST_BODY_PROPERTY_VALIDATION,
                lambda data, name, schema, parent: names.append(name),
            ),
        )
        document.validate_request(_json_request("POST", "/pets", {"name": "Rex", "tag": "dog"}))
        assert names == ["name", "tag", "status"]


class TestHttpxRequests:
    def test_json_request(self, petstore) -> None:
        request = httpx.Request("POST", "https://api.test/pets", json={"name": "Rex"})
        validated = petstore.validate_request(request)
        assert validated.valid
        assert validated.method == "POST"
        assert validated.path == "/pets"

    def test_query_string(self, petstore) -> None:
        request = httpx.Request("GET", "https://api.test/pets", params={"limit": "5"})
        assert petstore.validate_request(request).query == {"limit": 5}

    def test_keeps_original_request(self, petstore) -> None:
        request = httpx.Request("GET", "https://api.test/pets")
        validated = petstore.validate_request(request)
        assert validated.original is request
        assert isinstance(validated.request, RawRequest)

    def test_keeps_original_of_unknown_request(self, petstore) -> None:
        request = httpx.Request("GET", "https://api.test/unknown")
        validated = petstore.validate_request(request, raise_error=False)
        assert not validated.known
        assert validated.original is request

    def test_unsupported_type(self, petstore) -> None:
        with pytest.raises(TypeError, match="Cannot validate request"):
            petstore.validate_request({"method": "GET"})
