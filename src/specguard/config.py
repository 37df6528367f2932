"""Settings resolution with project file, environment, and explicit overrides.

Precedence (high to low):

1. Explicit overrides passed to :func:`resolve_settings` (CLI flags).
2. Environment variables (``SPECGUARD_MINIMUM_COVERAGE``,
   ``SPECGUARD_RESPONSE_RAISE_ERROR``, ``SPECGUARD_REQUEST_RAISE_ERROR``,
   ``SPECGUARD_EVENT_LOG``).
3. Project config (``./specguard.json``).
4. Defaults declared on :class:`~specguard.models.Settings`.

The project file mirrors the shape of :class:`~specguard.models.Settings`::

    {
      "validation": {"path_parameter_pattern_matching": true},
      "coverage": {"minimum_coverage": 80, "skip_responses": ["5XX"]}
    }
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from specguard.exceptions import ConfigError
from specguard.models import Settings

PROJECT_CONFIG_FILENAME = "specguard.json"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def load_project_config(directory: Optional[Path] = None) -> Optional[dict[str, Any]]:
    """Load ``specguard.json`` from *directory* (default: the working directory).

    Returns:
        The parsed JSON object, or ``None`` if no project file exists.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = (directory or Path.cwd()) / PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _env_bool(name: str) -> Optional[bool]:
    """Read a boolean environment variable, ``None`` when unset."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigError(f"Environment variable {name} must be a boolean, got '{raw}'")


def _env_int(name: str) -> Optional[int]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(
            f"Environment variable {name} must be an integer, got '{raw}'"
        ) from None


def _environment_overrides() -> dict[str, dict[str, Any]]:
    """Collect settings from ``SPECGUARD_*`` environment variables."""
    validation: dict[str, Any] = {}
    coverage: dict[str, Any] = {}

    request_raise = _env_bool("SPECGUARD_REQUEST_RAISE_ERROR")
    if request_raise is not None:
        validation["request_raise_error"] = request_raise
    response_raise = _env_bool("SPECGUARD_RESPONSE_RAISE_ERROR")
    if response_raise is not None:
        validation["response_raise_error"] = response_raise

    minimum = _env_int("SPECGUARD_MINIMUM_COVERAGE")
    if minimum is not None:
        coverage["minimum_coverage"] = minimum
    event_log = os.environ.get("SPECGUARD_EVENT_LOG")
    if event_log:
        coverage["event_log"] = event_log

    return {"validation": validation, "coverage": coverage}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge two settings dicts one section deep, *override* winning."""
    result = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for section, values in override.items():
        if isinstance(values, dict) and isinstance(result.get(section), dict):
            result[section].update(values)
        else:
            result[section] = values
    return result


def resolve_settings(
    minimum_coverage: Optional[int] = None,
    event_log: Optional[str] = None,
    directory: Optional[Path] = None,
) -> Settings:
    """Resolve settings with the full precedence chain.

    Args:
        minimum_coverage: CLI override for ``coverage.minimum_coverage``.
        event_log: CLI override for ``coverage.event_log``.
        directory: Where to look for ``specguard.json``.

    Returns:
        A frozen :class:`~specguard.models.Settings` instance.

    Raises:
        ConfigError: If any layer contains invalid values.
    """
    # 4 + 3. Defaults are applied by pydantic; layer in the project file
    data: dict[str, Any] = load_project_config(directory) or {}

    # 2. Environment variables
    data = _merge(data, _environment_overrides())

    # 1. Explicit overrides
    cli: dict[str, Any] = {}
    if minimum_coverage is not None:
        cli["minimum_coverage"] = minimum_coverage
    if event_log is not None:
        cli["event_log"] = event_log
    data = _merge(data, {"coverage": cli})

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid specguard settings: {exc}") from exc
