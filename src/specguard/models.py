"""Canonical Pydantic models and enumerations shared across specguard.

The models fall into two groups:

**Settings models** -- loaded from ``specguard.json`` and environment variables
by :func:`~specguard.config.resolve_settings`:
    :class:`ValidationSettings`, :class:`CoverageSettings`, :class:`Settings`.

**Contract enumerations** -- used by the definition, router and coverage
layers:
    :class:`HTTPMethod`, :class:`ParameterLocation`,
    :class:`VariantKey`.

All models use Pydantic v2. Settings are frozen once constructed so that a
:class:`~specguard.definition.document.Document` can share them between
threads without copying.
"""

from __future__ import annotations

import enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised by OpenAPI 3.x path-item objects."""

    GET = "get"
    HEAD = "head"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    TRACE = "trace"
    OPTIONS = "options"


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field.

    The declaration order is the order in which request parameters are
    validated.
    """

    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    COOKIE = "cookie"


class ValidationSettings(BaseModel):
    """Request and response validation behaviour.

    ``request_raise_error`` and ``response_raise_error`` are the defaults used
    when :meth:`~specguard.definition.document.Document.validate_request` or
    :meth:`~specguard.definition.document.Document.validate_response` is
    called without an explicit ``raise_error`` argument.
    """

    model_config = ConfigDict(frozen=True)

    request_raise_error: bool = Field(
        default=False, description="Raise instead of returning request failures"
    )
    response_raise_error: bool = Field(
        default=True, description="Raise instead of returning response failures"
    )
    path_parameter_pattern_matching: bool = Field(
        default=False,
        description="Use path parameter schema patterns when matching path templates",
    )
    insert_property_defaults: bool = Field(
        default=True,
        description="Fill in missing properties that declare a default value",
    )
    error_response: str = Field(
        default="default", description="Error response renderer: default, jsonapi"
    )


class CoverageSettings(BaseModel):
    """Coverage tracking and CI gating settings."""

    model_config = ConfigDict(frozen=True)

    minimum_coverage: int = Field(
        default=0, description="Fail with exit code 2 when coverage is below this"
    )
    skip_responses: list[str] = Field(
        default_factory=list,
        description="Response statuses excluded from plans, e.g. ['5XX', '401']",
    )
    event_log: Optional[str] = Field(
        default=None, description="Directory of a shared coverage event log"
    )

    @field_validator("minimum_coverage")
    @classmethod
    def _check_percentage(cls, value: int) -> int:
        if not 0 <= value <= 100:
            raise ValueError("minimum_coverage must be between 0 and 100")
        return value


class Settings(BaseModel):
    """Complete specguard settings as resolved by :func:`~specguard.config.resolve_settings`."""

    model_config = ConfigDict(frozen=True)

    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    coverage: CoverageSettings = Field(default_factory=CoverageSettings)


class VariantKey(NamedTuple):
    """Stable identity of one request or response variant.

    Request variants have ``status=None``. ``content_type`` is ``None`` for
    the no-body request variant and the no-content response variant.
    """

    path: str
    method: str
    content_type: Optional[str] = None
    status: Optional[str] = None

    @property
    def is_response(self) -> bool:
        return self.status is not None
