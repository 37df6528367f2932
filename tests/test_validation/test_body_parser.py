"""Tests for specguard.validation.body_parser."""

from __future__ import annotations

import pytest

from specguard.validation.body_parser import (
    BodyParseError,
    UploadedFile,
    parse_form,
    parse_json,
    parse_multipart,
    parse_raw,
    parse_request_body,
    parse_response_body,
    parser_for,
)

BOUNDARY = "XyZ"
CONTENT_TYPE = f"multipart/form-data; boundary={BOUNDARY}"


def _multipart(*parts: str) -> bytes:
    body = "".join(f"--{BOUNDARY}\r\n{part}\r\n" for part in parts) + f"--{BOUNDARY}--\r\n"
    return body.encode("utf-8")


class TestParserSelection:
    @pytest.mark.parametrize(
        ("content_type", "parser"),
        [
            ("application/json", parse_json),
            ("application/problem+json", parse_json),
            ("APPLICATION/JSON; charset=utf-8", parse_json),
            ("multipart/form-data; boundary=x", parse_multipart),
            ("application/x-www-form-urlencoded", parse_form),
            ("text/plain", parse_raw),
            (None, parse_raw),
        ],
    )
    def test_parser_for(self, content_type, parser) -> None:
        assert parser_for(content_type) is parser


class TestJson:
    def test_parses(self) -> None:
        assert parse_json(b'{"a": [1, 2]}') == {"a": [1, 2]}

    def test_blank_is_none(self) -> None:
        assert parse_json(b"  ") is None

    def test_invalid(self) -> None:
        with pytest.raises(BodyParseError, match="JSON"):
            parse_json("{nope")


class TestForm:
    def test_repeated_keys_collect(self) -> None:
        assert parse_form("a=1&b=2&a=3") == {"a": ["1", "3"], "b": "2"}

    def test_blank_values(self) -> None:
        assert parse_form(b"a=") == {"a": ""}


class TestMultipart:
    def test_fields_and_files(self) -> None:
        body = _multipart(
            'Content-Disposition: form-data; name="title"\r\n\r\nHello',
            'Content-Disposition: form-data; name="file"; filename="a.png"\r\n'
            "Content-Type: image/png\r\n\r\nPNGDATA",
        )
        result = parse_multipart(body, CONTENT_TYPE)
        assert result["title"] == "Hello"
        assert result["file"] == UploadedFile("a.png", "image/png", b"PNGDATA")

    def test_json_part_by_encoding(self) -> None:
        body = _multipart('Content-Disposition: form-data; name="meta"\r\n\r\n{"caption": "hi"}')
        result = parse_multipart(
            body, CONTENT_TYPE, encoding={"meta": {"contentType": "application/json"}}
        )
        assert result["meta"] == {"caption": "hi"}

    def test_invalid_json_part_kept_as_text(self) -> None:
        body = _multipart('Content-Disposition: form-data; name="meta"\r\n\r\n{oops')
        result = parse_multipart(
            body, CONTENT_TYPE, encoding={"meta": {"contentType": "application/json"}}
        )
        assert result["meta"] == "{oops"

    def test_missing_boundary(self) -> None:
        with pytest.raises(BodyParseError, match="boundary"):
            parse_multipart(b"x", "multipart/form-data")


class TestRaw:
    def test_utf8_becomes_text(self) -> None:
        assert parse_raw(b"hello") == "hello"

    def test_binary_stays_bytes(self) -> None:
        assert parse_raw(b"\xff\xfe") == b"\xff\xfe"


class TestRequestAndResponse:
    def test_empty_request_body_is_none(self) -> None:
        assert parse_request_body(b"", "application/json") is None
        assert parse_request_body(None, "multipart/form-data") is None

    def test_request_body(self) -> None:
        assert parse_request_body(b'{"a": 1}', "application/json") == {"a": 1}

    def test_response_json(self) -> None:
        assert parse_response_body(b"[1]", "application/vnd.api+json") == [1]

    def test_response_invalid_json(self) -> None:
        with pytest.raises(BodyParseError, match="response body"):
            parse_response_body(b"<html>", "application/json")

    def test_response_other(self) -> None:
        assert parse_response_body(b"", "text/plain") is None
        assert parse_response_body(b"ok", "text/plain") == "ok"
