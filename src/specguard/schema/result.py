"""Schema validation results returned by :meth:`specguard.schema.compiler.Schema.validate`."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from jsonschema.exceptions import ValidationError

from specguard.parser.resolver import escape_segment


@dataclass(frozen=True)
class SchemaError:
    """One violation reported by the JSON Schema engine.

    Attributes:
        message: Human-readable description.
        data_pointer: JSON pointer into the validated data. For ``required``
            errors this points at the missing property.
        schema_pointer: JSON pointer into the (synthesised) schema.
        type: The schema keyword that failed (``required``, ``pattern``, ...).
        value: The offending value, if any.
        details: Extra keyword-specific data (the keyword's schema value).
    """

    message: str
    data_pointer: str
    schema_pointer: str
    type: str
    value: Any = None
    details: Optional[dict[str, Any]] = None

    @classmethod
    def from_validation_error(cls, error: ValidationError) -> "SchemaError":
        return cls(
            message=error.message,
            data_pointer=_pointer(error.absolute_path),
            schema_pointer=_pointer(error.absolute_schema_path),
            type=str(error.validator),
            value=error.instance,
            details={"expected": error.validator_value},
        )


def _pointer(path: Any) -> str:
    return "".join(f"/{escape_segment(segment)}" for segment in path)


@dataclass(frozen=True)
class SchemaResult:
    """Outcome of validating one value against one schema."""

    errors: tuple[SchemaError, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def message(self) -> str:
        return ". ".join(error.message for error in self.errors)
