"""Lazy ``$ref`` resolution for contract documents split across files.

Unlike an eager resolver that deep-copies the tree and inlines every target,
this module dereferences *on access*. The raw parsed tree is never rewritten,
which gives two properties the rest of the package relies on:

* Cycles survive. A self-referencing schema (trees, discriminated unions)
  keeps its ``$ref`` at the cycle point; walking it simply follows the
  reference again.
* Relative references keep their *declaration* context. Every
  :class:`RefNode` remembers the file URI and JSON pointer it was declared
  at, so ``./schemas/pet.yaml`` inside ``schemas/order.yaml`` resolves
  relative to ``schemas/``, not to the root document.

The two public classes are:

* :class:`DocumentStore` -- caches parsed files by absolute URI (each file is
  parsed at most once per store), resolves references, prefetches external
  files at load time and exposes a :class:`referencing.Registry` so that the
  JSON Schema engine resolves ``$ref`` inside schemas with the same context.
* :class:`RefNode` -- a read-only view of one location in a document.

Example::

    store = DocumentStore()
    root = store.open("openapi.yaml")
    schema = root["paths"]["/pets"]["get"]["responses"]["200"]["content"][
        "application/json"
    ]["schema"]
    schema.location   # 'file:///.../schemas/pet.yaml#' -- where it was declared
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote, unquote, urldefrag, urljoin, urlparse
from urllib.request import url2pathname

from referencing import Registry, Resource
from referencing.jsonschema import DRAFT4, DRAFT202012

from specguard.exceptions import (
    DocumentNotFoundError,
    DocumentParseError,
    ReferenceFileNotFoundError,
)
from specguard.parser.loader import is_url, load_file, load_url

logger = logging.getLogger(__name__)

INLINE_DOCUMENT_NAME = "inline-document.json"
"""File name used as the base URI of documents that were not loaded from disk."""

_SPECIFICATIONS = {"3.0": DRAFT4, "3.1": DRAFT202012}


# ---------------------------------------------------------------------------
# JSON pointer helpers (RFC 6901)
# ---------------------------------------------------------------------------


def escape_segment(segment: Any) -> str:
    """Escape one JSON pointer reference token."""
    return str(segment).replace("~", "~0").replace("/", "~1")


def join_pointer(pointer: str, segment: Any) -> str:
    """Append *segment* to *pointer*."""
    return f"{pointer}/{escape_segment(segment)}"


def evaluate_pointer(document: Any, pointer: str) -> Any:
    """Return the value at *pointer* inside *document*.

    Raises:
        KeyError: If any segment does not exist.
    """
    if pointer in ("", "/"):
        return document
    if not pointer.startswith("/"):
        raise KeyError(pointer)

    current = document
    for raw in pointer[1:].split("/"):
        segment = raw.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                raise KeyError(pointer) from None
        else:
            raise KeyError(pointer)
    return current


def uri_to_path(uri: str) -> str:
    """Convert a ``file://`` URI back to a filesystem path (URLs pass through)."""
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return url2pathname(parsed.path)
    return uri


def source_to_uri(source: str | Path) -> str:
    """Turn a file path or URL into the absolute URI used as a cache key."""
    if isinstance(source, str) and is_url(source):
        return urldefrag(source)[0]
    return Path(source).expanduser().resolve().as_uri()


# ---------------------------------------------------------------------------
# DocumentStore
# ---------------------------------------------------------------------------


class DocumentStore:
    """Cache of parsed files plus reference resolution for one load session.

    Files are keyed by absolute URI. :meth:`load` parses a file at most once;
    :meth:`resolve` memoises every ``(base URI, $ref)`` pair it has seen so
    repeated access to the same reference does not re-walk the target file.
    """

    def __init__(self) -> None:
        self._files: dict[str, Any] = {}
        self._targets: dict[tuple[str, str], tuple[str, str]] = {}
        self._registries: dict[str, Registry] = {}
        self._lock = threading.RLock()

    # -- files ---------------------------------------------------------

    def add(self, uri: str, contents: Any) -> None:
        """Register already-parsed *contents* under *uri*."""
        with self._lock:
            self._files[uri] = contents
            self._registries.clear()

    def load(self, uri: str, referenced_from: Optional[str] = None) -> Any:
        """Return the parsed contents of *uri*, loading it on first use.

        Args:
            uri: Absolute ``file://`` or ``http(s)://`` URI without fragment.
            referenced_from: URI of the file declaring the reference; turns a
                missing file into :class:`ReferenceFileNotFoundError`.

        Raises:
            ReferenceFileNotFoundError: If a referenced file does not exist.
            DocumentNotFoundError: If a root file does not exist.
            DocumentParseError: If the file cannot be parsed.
        """
        with self._lock:
            if uri in self._files:
                return self._files[uri]
            try:
                if is_url(uri):
                    contents = load_url(uri)
                else:
                    contents = load_file(uri_to_path(uri))
            except DocumentNotFoundError:
                if referenced_from is None:
                    raise
                raise ReferenceFileNotFoundError(
                    uri_to_path(referenced_from), uri_to_path(uri)
                ) from None
            self._files[uri] = contents
            self._registries.clear()
            return contents

    def open(self, source: str | Path) -> "RefNode":
        """Load a root document and return a node for its top level."""
        return self.open_uri(source_to_uri(source))

    def open_uri(self, uri: str) -> "RefNode":
        """Return a node for the top level of the file at *uri*."""
        return RefNode(self.load(uri), uri, "", self)

    @property
    def uris(self) -> list[str]:
        """All URIs loaded so far, in load order."""
        return list(self._files)

    # -- references ----------------------------------------------------

    def target_of(self, ref: str, base_uri: str) -> tuple[str, str]:
        """Return ``(uri, pointer)`` that *ref* declared in *base_uri* points at."""
        key = (base_uri, ref)
        found = self._targets.get(key)
        if found is not None:
            return found

        file_part, _, fragment = ref.partition("#")
        uri = urljoin(base_uri, file_part) if file_part else base_uri
        uri = urldefrag(uri)[0]
        pointer = unquote(fragment)
        if file_part:
            self.load(uri, referenced_from=base_uri)
        self._targets[key] = (uri, pointer)
        return uri, pointer

    def resolve(self, ref: str, base_uri: str) -> "RefNode":
        """Resolve one ``$ref`` hop and return the node it points at.

        Raises:
            DocumentParseError: If the pointer does not exist in the target.
        """
        uri, pointer = self.target_of(ref, base_uri)
        document = self._files[uri]
        try:
            value = evaluate_pointer(document, pointer)
        except KeyError:
            raise DocumentParseError(
                f"Unknown reference {ref} in {uri_to_path(base_uri)}"
            ) from None
        return RefNode(value, uri, pointer, self)

    def prefetch(self, uri: str) -> None:
        """Load every file reachable from *uri* through external references.

        Missing files fail here, at load time, rather than in the middle of
        validating a request.
        """
        pending = [uri]
        visited: set[str] = set()
        while pending:
            current = pending.pop()
            if current in visited:
                continue
            visited.add(current)
            for ref in _external_refs(self.load(current)):
                target, _ = self.target_of(ref, current)
                if target not in visited:
                    logger.debug("Prefetching %s (referenced in %s)", target, current)
                    pending.append(target)

    # -- JSON Schema engine integration ----------------------------------

    def registry(self, openapi_version: str) -> Registry:
        """Return a :class:`referencing.Registry` holding every loaded file.

        Files that were not prefetched are retrieved lazily through the same
        cache.
        """
        with self._lock:
            cached = self._registries.get(openapi_version)
            if cached is not None:
                return cached
            specification = _SPECIFICATIONS[openapi_version]

            def retrieve(uri: str) -> Resource:
                return Resource(contents=self.load(uri), specification=specification)

            registry = Registry(retrieve=retrieve).with_resources(
                (uri, Resource(contents=contents, specification=specification))
                for uri, contents in self._files.items()
            )
            self._registries[openapi_version] = registry
            return registry


def _external_refs(value: Any) -> Iterator[str]:
    """Yield every ``$ref`` string in *value* that points at another file."""
    stack = [value]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            ref = current.get("$ref")
            if isinstance(ref, str) and not ref.startswith("#"):
                yield ref
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)


# ---------------------------------------------------------------------------
# RefNode
# ---------------------------------------------------------------------------


class RefNode:
    """Read-only view of one location in a (possibly multi-file) document.

    Indexing a node dereferences ``$ref`` on the fly: ``node["schema"]``
    returns the child of the *resolved* target. When a mapping carries
    ``$ref`` next to sibling keys the reference wins and the siblings are not
    exposed. :attr:`raw` always returns the untouched value, so a cyclic
    schema still shows its ``$ref`` marker.
    """

    __slots__ = ("_value", "_uri", "_pointer", "_store")

    def __init__(self, value: Any, uri: str, pointer: str, store: DocumentStore):
        self._value = value
        self._uri = uri
        self._pointer = pointer
        self._store = store

    def __repr__(self) -> str:
        return f"RefNode({self.location!r})"

    @property
    def raw(self) -> Any:
        """The value exactly as parsed, ``$ref`` included."""
        return self._value

    @property
    def uri(self) -> str:
        """URI of the file this node was declared in."""
        return self._uri

    @property
    def pointer(self) -> str:
        """JSON pointer of this node inside :attr:`uri`."""
        return self._pointer

    @property
    def location(self) -> str:
        """``uri#pointer``, URL-quoted so it can be handed to the schema engine."""
        return f"{self._uri}#{quote(self._pointer, safe='/~')}"

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def is_ref(self) -> bool:
        return isinstance(self._value, dict) and isinstance(self._value.get("$ref"), str)

    def resolve(self) -> "RefNode":
        """Follow ``$ref`` hops until a non-reference value is reached.

        Resolving an already-resolved node returns the node itself.

        Raises:
            DocumentParseError: If the reference chain loops back on itself.
        """
        node = self
        seen: set[tuple[str, str]] = set()
        while node.is_ref:
            key = (node._uri, node._pointer)
            if key in seen:
                raise DocumentParseError(f"Circular $ref chain at {node.location}")
            seen.add(key)
            node = self._store.resolve(node._value["$ref"], node._uri)
        return node

    @property
    def value(self) -> Any:
        """The resolved value (children may still contain ``$ref``)."""
        return self.resolve()._value

    def __getitem__(self, key: Any) -> "RefNode":
        target = self.resolve()
        container = target._value
        if isinstance(container, dict):
            child = container[key]
        elif isinstance(container, list):
            child = container[int(key)]
        else:
            raise KeyError(key)
        return RefNode(child, target._uri, join_pointer(target._pointer, key), self._store)

    def get(self, key: Any, default: Any = None) -> Any:
        """Return ``self[key]`` or *default* when the key is missing."""
        try:
            return self[key]
        except (KeyError, IndexError, ValueError):
            return default

    def __contains__(self, key: Any) -> bool:
        container = self.value
        return isinstance(container, dict) and key in container

    def __len__(self) -> int:
        container = self.value
        return len(container) if isinstance(container, (dict, list)) else 0

    def __bool__(self) -> bool:
        return True

    def keys(self) -> list[str]:
        container = self.value
        return list(container) if isinstance(container, dict) else []

    def items(self) -> Iterator[tuple[str, "RefNode"]]:
        """Iterate ``(key, child node)`` pairs of a mapping."""
        for key in self.keys():
            yield key, self[key]

    def __iter__(self) -> Iterator["RefNode"]:
        """Iterate child nodes of a list (or of mapping values)."""
        container = self.value
        if isinstance(container, list):
            for index in range(len(container)):
                yield self[index]
        elif isinstance(container, dict):
            for key in container:
                yield self[key]
