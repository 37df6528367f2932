"""Shared test fixtures for specguard.

Provides the fixture contracts (a single-file petstore and a contract split
across several files), a factory for inline documents, isolation of the
environment and of global state, and a CLI runner. Fixtures are discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import pytest

import specguard
from specguard import testing
from specguard.definition.document import Document
from specguard.output import OutputFormat, OutputManager, reset_output, set_output

FIXTURES_DIR = Path(__file__).parent / "fixtures"
PETSTORE = FIXTURES_DIR / "petstore.yaml"
SPLIT = FIXTURES_DIR / "split" / "openapi.yaml"


# ---------------------------------------------------------------------------
# Global state isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_testing_registry() -> None:
    """Forget registered documents and stop coverage after every test."""
    yield
    testing.clear()


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run in an empty working directory with no ``SPECGUARD_*`` variables."""
    for var in [
        "SPECGUARD_MINIMUM_COVERAGE",
        "SPECGUARD_RESPONSE_RAISE_ERROR",
        "SPECGUARD_REQUEST_RAISE_ERROR",
        "SPECGUARD_EVENT_LOG",
        "SPECGUARD_TRACKER_ADDRESS",
        "SPECGUARD_TRACKER_AUTHKEY",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_path() -> Path:
    return PETSTORE


@pytest.fixture
def petstore() -> Document:
    """The OpenAPI 3.1 petstore fixture."""
    return specguard.load(str(PETSTORE))


@pytest.fixture
def split_document() -> Document:
    """An OpenAPI 3.0 contract whose schemas live in separate files."""
    return specguard.load(str(SPLIT))


@pytest.fixture
def make_document() -> Callable[..., Document]:
    """Factory building a document from inline ``paths`` (and ``components``).

    Example::

        doc = make_document({"/a": {"get": {"responses": {"200": {"description": "ok"}}}}})
    """

    def factory(
        paths: dict[str, Any],
        components: Optional[dict[str, Any]] = None,
        openapi: str = "3.1.0",
        **kwargs: Any,
    ) -> Document:
        contents: dict[str, Any] = {
            "openapi": openapi,
            "info": {"title": "Inline", "version": "1"},
            "paths": paths,
        }
        if components is not None:
            contents["components"] = components
        return specguard.parse(contents, **kwargs)

    return factory


# ---------------------------------------------------------------------------
# Output and CLI
# ---------------------------------------------------------------------------


@pytest.fixture
def json_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
