"""Match concrete request paths against OpenAPI path templates.

Templates look like ``/pets/{petId}/photos/{photoId}``. Literal parts are
escaped, each ``{name}`` becomes one capture. By default a capture accepts
any run of characters except ``/``, ``?`` and ``#``. With pattern matching
enabled, a path parameter that declares ``schema.pattern`` narrows its
capture to that pattern.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any, Optional

TEMPLATE_EXPRESSION = re.compile(r"(\{[^{}]+\})")
TEMPLATE_EXPRESSION_NAME = re.compile(r"\{([^{}]+)\}")
ALLOWED_PARAMETER_CHARACTERS = r"([^/?#]+)"

_SEGMENT_WILDCARD = r"[^/?#]*"
_NAMED_GROUP = re.compile(r"\(\?P?<(?![=!])[^>]+>")


def is_template(path: str) -> bool:
    """Return True if *path* contains at least one ``{parameter}``."""
    return "{" in path


def _non_capturing(pattern: str) -> str:
    """Rewrite capturing and named groups as ``(?:``; character classes are copied as is."""
    out = []
    i, in_class = 0, False
    while i < len(pattern):
        char = pattern[i]
        if char == "\\":
            out.append(pattern[i : i + 2])
            i += 2
            continue
        if in_class:
            in_class = char != "]"
        elif char == "[":
            # a ] right after [ or [^ is a class member
            end = i + 1
            if pattern.startswith("^", end):
                end += 1
            if pattern.startswith("]", end):
                end += 1
            out.append(pattern[i:end])
            i, in_class = end, True
            continue
        elif char == "(":
            named = _NAMED_GROUP.match(pattern, i)
            if named is not None:
                out.append("(?:")
                i = named.end()
                continue
            if not pattern.startswith("?", i + 1):
                out.append("(?:")
                i += 1
                continue
        out.append(char)
        i += 1
    return "".join(out)


def pattern_capture(pattern: str) -> str:
    """Turn a parameter's ``schema.pattern`` into a single capturing group.

    Anchors are stripped; an unanchored side is padded with a segment
    wildcard so ``abc`` still matches ``xabcx`` the way an unanchored
    ``re.search`` would. Groups inside the pattern become non-capturing.
    """
    body = pattern
    anchored_start = anchored_end = False

    if body.startswith("^"):
        body, anchored_start = body[1:], True
    elif body.startswith("\\A"):
        body, anchored_start = body[2:], True

    if body.endswith(("\\Z", "\\z")) and not body.endswith(("\\\\Z", "\\\\z")):
        body, anchored_end = body[:-2], True
    elif body.endswith("$") and not body.endswith("\\$"):
        body, anchored_end = body[:-1], True

    body = _non_capturing(body)

    prefix = "" if anchored_start else _SEGMENT_WILDCARD
    suffix = "" if anchored_end else _SEGMENT_WILDCARD
    return f"({prefix}(?:{body}){suffix})"


class PathTemplate:
    """One compiled path template.

    Args:
        template: The declared path, e.g. ``/pets/{petId}``.
        path_parameters: Declared path parameter objects (mappings with
            ``name`` and optional ``schema``).
        use_patterns: Narrow captures to ``schema.pattern`` where declared.
    """

    def __init__(
        self,
        template: str,
        path_parameters: Iterable[Any] = (),
        use_patterns: bool = False,
    ):
        self._template = template
        self._names = TEMPLATE_EXPRESSION_NAME.findall(template)
        parameters = {p.get("name"): p for p in path_parameters}
        self._pattern = re.compile(self._build_pattern(parameters, use_patterns))

    def __str__(self) -> str:
        return self._template

    def __repr__(self) -> str:
        return f"PathTemplate({self._template!r})"

    @property
    def template(self) -> str:
        return self._template

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._names)

    def _build_pattern(self, parameters: dict[str, Any], use_patterns: bool) -> str:
        parts = []
        for part in TEMPLATE_EXPRESSION.split(self._template):
            if not part:
                continue
            if part.startswith("{") and part.endswith("}"):
                parts.append(self._capture(part[1:-1], parameters, use_patterns))
            else:
                parts.append(re.escape(part))
        return "".join(parts) + "/?"

    @staticmethod
    def _capture(name: str, parameters: dict[str, Any], use_patterns: bool) -> str:
        if use_patterns:
            parameter = parameters.get(name)
            schema = parameter.get("schema") if parameter is not None else None
            pattern = schema.get("pattern") if schema is not None else None
            if isinstance(pattern, str):
                return pattern_capture(pattern)
        return ALLOWED_PARAMETER_CHARACTERS

    def match(self, path: str) -> Optional[dict[str, str]]:
        """Return captured parameter values, or ``None`` if *path* does not match."""
        if not self._names:
            return {} if path.rstrip("/") == self._template.rstrip("/") else None
        found = self._pattern.fullmatch(path)
        if found is None:
            return None
        return dict(zip(self._names, found.groups()))
