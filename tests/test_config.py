"""Tests for specguard.config -- project file, environment and override precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from specguard.config import PROJECT_CONFIG_FILENAME, load_project_config, resolve_settings
from specguard.exceptions import ConfigError
from specguard.models import Settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# Project config
# ---------------------------------------------------------------------------


class TestLoadProjectConfig:
    def test_missing_file(self, isolated_env: Path) -> None:
        assert load_project_config() is None

    def test_reads_working_directory(self, isolated_env: Path) -> None:
        _write_json(isolated_env / PROJECT_CONFIG_FILENAME, {"coverage": {"minimum_coverage": 80}})
        assert load_project_config() == {"coverage": {"minimum_coverage": 80}}

    def test_explicit_directory(self, tmp_path: Path) -> None:
        _write_json(tmp_path / "project" / PROJECT_CONFIG_FILENAME, {"validation": {}})
        assert load_project_config(tmp_path / "project") == {"validation": {}}

    def test_invalid_json(self, isolated_env: Path) -> None:
        (isolated_env / PROJECT_CONFIG_FILENAME).write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()

    def test_not_an_object(self, isolated_env: Path) -> None:
        _write_json(isolated_env / PROJECT_CONFIG_FILENAME, [1, 2])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveSettings:
    def test_defaults(self, isolated_env: Path) -> None:
        settings = resolve_settings()
        assert settings == Settings()
        assert settings.validation.response_raise_error is True
        assert settings.validation.request_raise_error is False
        assert settings.coverage.minimum_coverage == 0
        assert settings.coverage.event_log is None

    def test_project_file(self, isolated_env: Path) -> None:
        _write_json(
            isolated_env / PROJECT_CONFIG_FILENAME,
            {
                "validation": {"path_parameter_pattern_matching": True},
                "coverage": {"minimum_coverage": 70, "skip_responses": ["5XX"]},
            },
        )
        settings = resolve_settings()
        assert settings.validation.path_parameter_pattern_matching is True
        assert settings.coverage.minimum_coverage == 70
        assert settings.coverage.skip_responses == ["5XX"]

    def test_environment_beats_project_file(
        self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_json(isolated_env / PROJECT_CONFIG_FILENAME, {"coverage": {"minimum_coverage": 70}})
        monkeypatch.setenv("SPECGUARD_MINIMUM_COVERAGE", "90")
        monkeypatch.setenv("SPECGUARD_RESPONSE_RAISE_ERROR", "off")
        monkeypatch.setenv("SPECGUARD_REQUEST_RAISE_ERROR", "Yes")
        monkeypatch.setenv("SPECGUARD_EVENT_LOG", str(isolated_env / "events"))
        settings = resolve_settings()
        assert settings.coverage.minimum_coverage == 90
        assert settings.validation.response_raise_error is False
        assert settings.validation.request_raise_error is True
        assert settings.coverage.event_log == str(isolated_env / "events")

    def test_overrides_beat_environment(
        self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SPECGUARD_MINIMUM_COVERAGE", "90")
        monkeypatch.setenv("SPECGUARD_EVENT_LOG", "from-env")
        settings = resolve_settings(minimum_coverage=10, event_log="from-cli")
        assert settings.coverage.minimum_coverage == 10
        assert settings.coverage.event_log == "from-cli"

    def test_sections_merge_key_by_key(
        self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_json(
            isolated_env / PROJECT_CONFIG_FILENAME,
            {"coverage": {"minimum_coverage": 70, "skip_responses": ["401"]}},
        )
        settings = resolve_settings(minimum_coverage=20)
        assert settings.coverage.minimum_coverage == 20
        assert settings.coverage.skip_responses == ["401"]

    def test_empty_env_values_ignored(
        self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SPECGUARD_MINIMUM_COVERAGE", "")
        monkeypatch.setenv("SPECGUARD_RESPONSE_RAISE_ERROR", "")
        assert resolve_settings() == Settings()


class TestInvalidValues:
    def test_bad_boolean(self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECGUARD_REQUEST_RAISE_ERROR", "maybe")
        with pytest.raises(ConfigError, match="must be a boolean"):
            resolve_settings()

    def test_bad_integer(self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECGUARD_MINIMUM_COVERAGE", "lots")
        with pytest.raises(ConfigError, match="must be an integer"):
            resolve_settings()

    def test_percentage_out_of_range(self, isolated_env: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid specguard settings"):
            resolve_settings(minimum_coverage=150)

    def test_unknown_types_rejected(self, isolated_env: Path) -> None:
        _write_json(isolated_env / PROJECT_CONFIG_FILENAME, {"coverage": {"minimum_coverage": "high"}})
        with pytest.raises(ConfigError):
            resolve_settings()

    def test_settings_are_frozen(self) -> None:
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.coverage = None  # type: ignore[misc]
