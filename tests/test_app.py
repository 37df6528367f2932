"""Tests for the specguard command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from specguard import __version__
from specguard.app import app
from specguard.coverage.event_log import EventLog
from specguard.exit_codes import (
    EXIT_COVERAGE_BELOW_MINIMUM,
    EXIT_DOCUMENT_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_VALIDATION_FAILURE,
)
from specguard.models import VariantKey

PETSTORE = str(Path(__file__).parent / "fixtures" / "petstore.yaml")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def events(isolated_env: Path, petstore) -> Path:
    """An event log in which one request of the petstore was tracked."""
    directory = isolated_env / "events"
    log = EventLog(directory)
    log.track_request(petstore.key, VariantKey("/pets", "get"))
    log.track_request(petstore.key, VariantKey("/pets", "post", "application/json"), "bad body")
    log.close()
    return directory


class TestVersion:
    def test_version(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.strip() == f"specguard {__version__}"


class TestCheck:
    def test_plain_summary(self, runner):
        result = runner.invoke(app, ["--plain", "check", PETSTORE])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert "openapi\t3.1" in lines
        assert "paths\t4" in lines
        assert "operations\t6" in lines
        assert "request_variants\t8" in lines
        assert "response_variants\t8" in lines

    def test_json_summary(self, runner):
        result = runner.invoke(app, ["--json", "check", PETSTORE])
        assert result.exit_code == 0
        summary = json.loads(result.stdout)
        assert summary["document"] == str(Path(PETSTORE).resolve())
        assert summary["operations"] == 6

    def test_missing_document(self, runner, tmp_path):
        result = runner.invoke(app, ["check", str(tmp_path / "missing.yaml")])
        assert result.exit_code == EXIT_DOCUMENT_ERROR
        assert "File not found" in result.output

    def test_broken_reference(self, runner, tmp_path):
        path = tmp_path / "openapi.yaml"
        path.write_text(
            "openapi: 3.0.3\npaths: {}\ncomponents:\n  schemas:\n    A:\n      $ref: ./gone.yaml\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["check", str(path)])
        assert result.exit_code == EXIT_DOCUMENT_ERROR
        assert result.output.startswith("Error:")


class TestRoutes:
    def test_plain_rows(self, runner):
        result = runner.invoke(app, ["--plain", "routes", PETSTORE])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "Method\tPath\tOperation\tKind\tStatus\tContent-Type"
        assert "GET\t/pets\tlistPets\trequest\t\t-" in lines
        assert "GET\t/pets\tlistPets\tresponse\tdefault\tapplication/problem+json" in lines
        assert "PUT\t/pets/{petId}/photo\tuploadPhoto\trequest\t\timage/*" in lines
        assert "DELETE\t/pets/{petId}\t\tresponse\t204\t-" in lines
        assert len(lines) == 17

    def test_json_rows(self, runner):
        result = runner.invoke(app, ["--json", "routes", PETSTORE])
        rows = json.loads(result.stdout)
        assert rows[0] == {
            "Method": "GET",
            "Path": "/pets",
            "Operation": "listPets",
            "Kind": "request",
            "Status": "",
            "Content-Type": "-",
        }


class TestMatch:
    def test_matched(self, runner):
        result = runner.invoke(app, ["--json", "match", PETSTORE, "get", "/pets/42", "--no-body"])
        assert result.exit_code == 0
        match = json.loads(result.stdout)
        assert match["matched"] is True
        assert match["operation_id"] == "showPet"
        assert match["path_parameters"] == {"petId": "42"}

    def test_content_type(self, runner):
        result = runner.invoke(
            app, ["--json", "match", PETSTORE, "PUT", "/pets/1/photo", "-t", "image/png"]
        )
        assert json.loads(result.stdout)["content_type"] == "image/*"

    def test_not_found(self, runner):
        result = runner.invoke(app, ["--plain", "match", PETSTORE, "GET", "/owners"])
        assert result.exit_code == EXIT_VALIDATION_FAILURE
        lines = result.output.splitlines()
        assert "matched\tFalse" in lines
        assert "error\tnot_found" in lines
        assert "status\t404" in lines

    def test_unsupported_media_type(self, runner):
        result = runner.invoke(
            app, ["--json", "match", PETSTORE, "POST", "/pets", "-t", "text/plain"]
        )
        assert result.exit_code == EXIT_VALIDATION_FAILURE
        assert json.loads(result.stdout)["status"] == 415


class TestCoverage:
    def test_json_report(self, runner, events):
        result = runner.invoke(app, ["--json", "coverage", PETSTORE, "--events", str(events)])
        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["coverage"] == 6
        assert report["plans"][0]["coverage"] == 6
        assert len(report["plans"][0]["unfinished"]) == 15

    def test_plain_report(self, runner, events):
        result = runner.invoke(app, ["--plain", "coverage", PETSTORE, "--events", str(events)])
        assert result.exit_code == 0
        assert "API validation coverage for" in result.output
        assert "✓ GET /pets" in result.output

    def test_below_minimum(self, runner, events):
        result = runner.invoke(
            app, ["--json", "coverage", PETSTORE, "--events", str(events), "--minimum", "50"]
        )
        assert result.exit_code == EXIT_COVERAGE_BELOW_MINIMUM
        assert "API coverage fails with exit 2" in result.output

    def test_minimum_from_environment(self, runner, events, monkeypatch):
        monkeypatch.setenv("SPECGUARD_MINIMUM_COVERAGE", "50")
        result = runner.invoke(app, ["--json", "coverage", PETSTORE, "--events", str(events)])
        assert result.exit_code == EXIT_COVERAGE_BELOW_MINIMUM

    def test_event_log_from_project_file(self, runner, events):
        (events.parent / "specguard.json").write_text(
            json.dumps({"coverage": {"event_log": str(events)}}), encoding="utf-8"
        )
        result = runner.invoke(app, ["--json", "coverage", PETSTORE])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["coverage"] == 6

    def test_skip_response(self, runner, events):
        result = runner.invoke(
            app,
            ["--json", "coverage", PETSTORE, "--events", str(events), "--skip-response", "2XX"],
        )
        report = json.loads(result.stdout)
        # 8 requests plus the default and 404 responses
        assert len(report["plans"][0]["unfinished"]) == 9
        assert report["coverage"] == 10

    def test_no_event_log(self, runner, isolated_env):
        result = runner.invoke(app, ["coverage", PETSTORE])
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "No event log given" in result.output

    def test_empty_event_log_warns(self, runner, isolated_env):
        empty = isolated_env / "empty"
        EventLog(empty).close()
        result = runner.invoke(
            app, ["--plain", "--no-color", "coverage", PETSTORE, "--events", str(empty)]
        )
        assert result.exit_code == 0
        assert "Warning: No coverage events in" in result.output
