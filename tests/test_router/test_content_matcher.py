"""Tests for specguard.router.content_matcher."""

from __future__ import annotations

from specguard.router.content_matcher import ContentMatcher, media_type


def _matcher(*content_types) -> ContentMatcher:
    matcher = ContentMatcher()
    for content_type in content_types:
        matcher.add(content_type, f"variant:{content_type}")
    return matcher


class TestMediaType:
    def test_strips_parameters(self) -> None:
        assert media_type("Application/JSON; charset=utf-8") == "application/json"


class TestMatch:
    def test_exact(self) -> None:
        matcher = _matcher("application/json", "text/plain")
        assert matcher.match("text/plain") == "variant:text/plain"

    def test_parameters_and_case_ignored(self) -> None:
        matcher = _matcher("application/json")
        assert matcher.match("Application/Json; charset=utf-8") == "variant:application/json"

    def test_declared_parameters_match_exactly(self) -> None:
        matcher = _matcher("text/plain; charset=utf-8", "text/plain")
        assert matcher.match("text/plain; charset=utf-8") == "variant:text/plain; charset=utf-8"
        assert matcher.match("text/plain; charset=latin-1") == "variant:text/plain"

    def test_type_wildcard(self) -> None:
        matcher = _matcher("image/*", "application/json")
        assert matcher.match("image/png") == "variant:image/*"

    def test_full_wildcard(self) -> None:
        matcher = _matcher("application/json", "*/*")
        assert matcher.match("text/csv") == "variant:*/*"

    def test_exact_then_type_wildcard_then_full_wildcard(self) -> None:
        matcher = _matcher("*/*", "application/*", "application/json")
        assert matcher.match("application/json; charset=utf-8") == "variant:application/json"
        assert matcher.match("application/xml") == "variant:application/*"
        assert matcher.match("text/plain") == "variant:*/*"

    def test_no_match(self) -> None:
        assert _matcher("application/json").match("text/csv") is None

    def test_empty_content_type_uses_none_key(self) -> None:
        matcher = _matcher(None, "application/json")
        assert matcher.match(None) == "variant:None"
        assert matcher.match("") == "variant:None"

    def test_none_is_fallback_only_when_alone(self) -> None:
        assert _matcher(None).match("text/csv") == "variant:None"
        assert _matcher(None, "application/json").match("text/csv") is None

    def test_defined_content_types_keep_order(self) -> None:
        matcher = _matcher("b/b", None, "a/a")
        assert matcher.defined_content_types == ["b/b", None, "a/a"]
        assert len(matcher) == 3
