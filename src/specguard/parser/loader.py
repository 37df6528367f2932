"""Load contract documents from a local file or a URL.

This module handles all I/O for fetching raw OpenAPI documents (and the files
they reference) and converting them into Python objects. It supports both
JSON and YAML formats with automatic format detection, and validates that the
root document declares an OpenAPI version and a ``paths`` map.

The public functions are:

* :func:`load_file` -- Load and parse a local file.
* :func:`load_url` -- Fetch and parse a remote document.
* :func:`parse_content` -- Parse a JSON or YAML string.
* :func:`validate_openapi_version` -- Return the ``"3.0"``/``"3.1"`` version
  family of a root document.

Referenced files are loaded through :class:`~specguard.parser.resolver.DocumentStore`,
which caches each absolute path so that it is parsed at most once.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx
import yaml

from specguard.exceptions import DocumentNotFoundError, DocumentParseError

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS = ("3.0", "3.1")


def is_url(source: str) -> bool:
    """Return True if *source* is an ``http(s)`` URL."""
    return source.startswith(("http://", "https://"))


def load_file(path: str | Path) -> Any:
    """Load a JSON or YAML file from disk.

    Args:
        path: Path to the local file.

    Returns:
        The parsed content with all mapping keys converted to strings.

    Raises:
        DocumentNotFoundError: If the file does not exist.
        DocumentParseError: If the file cannot be read or parsed.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise DocumentNotFoundError(f"File not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DocumentParseError(f"Failed to read {path}: {exc}") from exc

    suffix = file_path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"

    logger.debug("Loaded %s (%d bytes)", file_path, len(content))
    return parse_content(content, hint=hint, source=str(path))


def load_url(url: str) -> Any:
    """Fetch a document from an ``http(s)`` URL.

    Raises:
        DocumentNotFoundError: If the server answers 404.
        DocumentParseError: For any other HTTP or network failure.
    """
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 404:
            raise DocumentNotFoundError(f"Document not found: {url}") from exc
        raise DocumentParseError(
            f"HTTP {exc.response.status_code} fetching document from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise DocumentParseError(f"Failed to fetch document from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    hint = ""
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"

    return parse_content(response.text, hint=hint, source=url)


def parse_content(content: str, hint: str = "", source: str = "<string>") -> Any:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is ``'yaml'``), then falls back to YAML.

    Args:
        content: The raw string content.
        hint: Optional format hint (``'json'`` or ``'yaml'``).
        source: Name used in error messages.

    Returns:
        The parsed value with mapping keys converted to strings.

    Raises:
        DocumentParseError: If the content is empty or cannot be parsed.
    """
    if not content.strip():
        raise DocumentParseError(f"Document is empty: {source}")

    json_error: Exception | None = None
    if hint != "yaml":
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise DocumentParseError(f"Invalid JSON in {source}: {exc}") from exc

    try:
        return stringify_keys(yaml.safe_load(content))
    except yaml.YAMLError as exc:
        msg = f"Failed to parse {source} as JSON or YAML"
        if json_error:
            msg += f"\n  JSON error: {json_error}"
        msg += f"\n  YAML error: {exc}"
        raise DocumentParseError(msg) from exc


def stringify_keys(value: Any) -> Any:
    """Recursively convert non-string mapping keys to strings.

    YAML turns unquoted response codes such as ``200:`` into integers, while
    JSON pointers and the router always address them as strings.
    """
    if isinstance(value, dict):
        return {str(key): stringify_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [stringify_keys(item) for item in value]
    return value


def validate_openapi_version(document: Any) -> str:
    """Validate a root document and return its version family.

    The ``openapi`` field selects behaviour; a ``swagger`` field is accepted
    for version detection only.

    Args:
        document: The parsed root document.

    Returns:
        ``"3.0"`` or ``"3.1"``.

    Raises:
        DocumentParseError: If the document is not an object, has no version,
            an unsupported version, or no ``paths`` map.
    """
    if not isinstance(document, dict):
        raise DocumentParseError(
            f"Document must be a JSON/YAML object (got {type(document).__name__})"
        )

    version = document.get("openapi") or document.get("swagger")
    if version is None:
        raise DocumentParseError(
            "Missing 'openapi' field. Is this an OpenAPI 3.x document?"
        )

    family = str(version)[:3]
    if family not in SUPPORTED_VERSIONS:
        raise DocumentParseError(
            f"Unsupported OpenAPI version: {version}. "
            "Only OpenAPI 3.0.x and 3.1.x are supported."
        )

    if not isinstance(document.get("paths"), dict):
        raise DocumentParseError("Document must contain a 'paths' map")

    return family
