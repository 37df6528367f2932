"""Document loading and lazy ``$ref`` resolution."""

from specguard.parser.loader import load_file, load_url, parse_content, validate_openapi_version
from specguard.parser.resolver import DocumentStore, RefNode

__all__ = [
    "DocumentStore",
    "RefNode",
    "load_file",
    "load_url",
    "parse_content",
    "validate_openapi_version",
]
