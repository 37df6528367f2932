"""OpenAPI-flavoured JSON Schema validation on top of :mod:`jsonschema`."""

from specguard.schema.compiler import READ, WRITE, Schema
from specguard.schema.result import SchemaError, SchemaResult

__all__ = ["READ", "WRITE", "Schema", "SchemaError", "SchemaResult"]
