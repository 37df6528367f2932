"""Pick the declared object that serves a concrete content type."""

from __future__ import annotations

from typing import Any, Optional


def media_type(content_type: str) -> str:
    """Strip ``;`` parameters and normalise case: ``Text/HTML; q=1`` -> ``text/html``."""
    return content_type.split(";", 1)[0].strip().lower()


class ContentMatcher:
    """Maps declared content types (or ``None`` for "no body") to objects.

    :meth:`match` tries, in order:

    1. the exact content-type string;
    2. the media type without parameters, case-insensitively;
    3. ``type/*``;
    4. ``*/*``;
    5. the ``None`` key, when the concrete type is empty or when ``None`` is
       the only declared key.
    """

    def __init__(self) -> None:
        self._results: dict[Optional[str], Any] = {}
        self._folded: dict[str, Any] = {}

    def add(self, content_type: Optional[str], obj: Any) -> None:
        self._results[content_type] = obj
        if content_type is not None:
            self._folded.setdefault(content_type.strip().lower(), obj)

    @property
    def defined_content_types(self) -> list[Optional[str]]:
        return list(self._results)

    def values(self) -> list[Any]:
        return list(self._results.values())

    def __len__(self) -> int:
        return len(self._results)

    def match(self, content_type: Optional[str]) -> Any:
        """Return the matching object, or ``None``."""
        if not content_type:
            return self._results.get(None)

        if content_type in self._results:
            return self._results[content_type]
        exact = self._folded.get(content_type.strip().lower())
        if exact is not None:
            return exact

        media = media_type(content_type)
        found = self._folded.get(media)
        if found is None:
            found = self._folded.get(f"{media.split('/', 1)[0]}/*")
        if found is None:
            found = self._folded.get("*/*")
        if found is None and list(self._results) == [None]:
            found = self._results[None]
        return found
