"""specguard -- OpenAPI 3.0/3.1 contracts as a runtime validation engine.

Load a contract once, then route and validate requests and responses
against it, and track which declared request/response shapes a test suite
actually exercised.

Typical usage::

    import specguard

    document = specguard.load("openapi.yaml")
    validated = document.validate_request(request)        # httpx.Request
    if not validated.valid:
        print(validated.error.exception_message)
    document.validate_response(request, response)          # raises by default

Modules:
    parser: Document loading and lazy ``$ref`` resolution.
    router: Path template and content-type matching.
    schema: ``jsonschema`` configured for OpenAPI.
    definition: Documents, operations and request/response variants.
    validation: The request/response validation pipeline and failure model.
    coverage: Coverage plans, tracking and reporting.
    testing: Helpers for test suites (registry, coverage, httpx transport).
    app: The ``specguard`` command-line interface.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional, Union

from specguard.definition.document import Document
from specguard.hooks import Configuration, configuration
from specguard.models import Settings
from specguard.parser.loader import is_url, stringify_keys
from specguard.parser.resolver import INLINE_DOCUMENT_NAME, DocumentStore, source_to_uri
from specguard.validation.exchange import RawRequest, RawResponse

__version__ = "0.4.0"

__all__ = [
    "Configuration",
    "Document",
    "RawRequest",
    "RawResponse",
    "Settings",
    "configuration",
    "load",
    "parse",
]


def load(
    source: Union[str, Path],
    settings: Optional[Settings] = None,
    configure: Optional[Callable[[Configuration], None]] = None,
) -> Document:
    """Load a contract from a file path or an ``http(s)`` URL.

    Raises:
        DocumentNotFoundError: If the file does not exist.
        ReferenceFileNotFoundError: If a referenced file does not exist.
        DocumentParseError: If the document cannot be parsed or is not an
            OpenAPI 3.0/3.1 document.
    """
    store = DocumentStore()
    root = store.open(source)
    filepath = str(source) if isinstance(source, str) and is_url(source) else str(Path(source).resolve())
    return Document(root, filepath=filepath, settings=settings, configure=configure)


def parse(
    contents: dict[str, Any],
    filepath: Optional[Union[str, Path]] = None,
    settings: Optional[Settings] = None,
    configure: Optional[Callable[[Configuration], None]] = None,
) -> Document:
    """Build a document from already-parsed *contents*.

    Relative ``$ref``s resolve against *filepath* when given, otherwise
    against the working directory.
    """
    store = DocumentStore()
    if filepath is not None:
        uri = source_to_uri(filepath)
    else:
        uri = (Path.cwd() / INLINE_DOCUMENT_NAME).as_uri()
    store.add(uri, stringify_keys(contents))
    root = store.open_uri(uri)
    return Document(
        root,
        filepath=str(filepath) if filepath is not None else None,
        settings=settings,
        configure=configure,
    )
