"""Helpers for test suites: a document registry, coverage, and an httpx transport.

Typical ``conftest.py``::

    import pytest
    from specguard import testing

    def pytest_sessionstart(session):
        testing.register("openapi.yaml")
        testing.start_coverage()

    def pytest_sessionfinish(session, exitstatus):
        testing.report_coverage()
        code = testing.check_minimum_coverage()
        if code:
            session.exitstatus = code

    @pytest.fixture
    def client(app):
        transport = testing.ObservingTransport(httpx.WSGITransport(app=app))
        return httpx.Client(transport=transport, base_url="http://test")

Requests that went through :class:`ObservingTransport` or
:meth:`~specguard.definition.document.Document.validate_request` /
``validate_response`` are tracked while coverage is running.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional, Union

import httpx
from rich.console import Console

import specguard
from specguard.coverage.event_log import EventLog
from specguard.coverage.formatter import TerminalFormatter
from specguard.coverage.plan import SkipResponse
from specguard.coverage.remote import TrackerServer, connect_tracker, serve_tracker
from specguard.coverage.tracker import CoverageResult, Tracker
from specguard.definition.document import Document
from specguard.exceptions import AlreadyRegisteredError, NotRegisteredError
from specguard.exit_codes import EXIT_COVERAGE_BELOW_MINIMUM, EXIT_SUCCESS
from specguard.hooks import AFTER_REQUEST_VALIDATION, AFTER_RESPONSE_VALIDATION, configuration
from specguard.validation.exchange import normalize_request, normalize_response
from specguard.validation.validated import ValidatedRequest, ValidatedResponse

logger = logging.getLogger(__name__)

DEFAULT_NAME = "default"

_documents: dict[str, Document] = {}
_lock = threading.Lock()
_tracker: Optional[Tracker] = None
_sink: Any = None
_event_log: Optional[EventLog] = None

# Raised when a remote tracker went away
_SINK_ERRORS = (OSError, EOFError, ConnectionError)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def register(path_or_document: Union[str, Path, Document], name: str = DEFAULT_NAME) -> Document:
    """Register a document for testing and return it.

    Raises:
        AlreadyRegisteredError: If a document is already registered as
            ``"default"`` and no other *name* was given.
    """
    with _lock:
        if name == DEFAULT_NAME and name in _documents:
            raise AlreadyRegisteredError(
                f"{_documents[name].key!r} is already registered as 'default', so "
                f"{str(path_or_document)!r} needs a name of its own: "
                f"register({str(path_or_document)!r}, name='my_other_api')"
            )
        if isinstance(path_or_document, Document):
            document = path_or_document
        else:
            document = specguard.load(path_or_document)
        _documents[name] = document
    return document


def get(name: str = DEFAULT_NAME) -> Document:
    """Raises NotRegisteredError if nothing is registered as *name*."""
    try:
        return _documents[name]
    except KeyError:
        option = "" if name == DEFAULT_NAME else f", name={name!r}"
        raise NotRegisteredError(
            f"API description {name!r} not found. Call "
            f"specguard.testing.register('openapi.yaml'{option}) once before running tests."
        ) from None


def unregister(name: str = DEFAULT_NAME) -> None:
    with _lock:
        _documents.pop(name, None)


def documents() -> dict[str, Document]:
    return dict(_documents)


def clear() -> None:
    """Forget every registered document and stop coverage."""
    with _lock:
        _documents.clear()
    stop_coverage()


# ---------------------------------------------------------------------------
# Coverage
# ---------------------------------------------------------------------------


def _track_request(validated: ValidatedRequest, document: Document) -> None:
    sink = _sink
    if sink is None or not validated.known:
        return
    error = None if validated.valid else validated.error.exception_message
    try:
        sink.track_request(document.key, validated.variant.key, error)
    except _SINK_ERRORS as exc:
        logger.warning("Could not track request coverage: %s", exc)


def _track_response(validated: ValidatedResponse, request: Any, document: Document) -> None:
    sink = _sink
    if sink is None or not validated.known:
        return
    error = None if validated.valid else validated.error.exception_message
    try:
        sink.track_response(document.key, validated.variant.key, error)
    except _SINK_ERRORS as exc:
        logger.warning("Could not track response coverage: %s", exc)


def start_coverage(
    skip_response: Union[SkipResponse, Iterable[str], None] = None,
    event_log: Union[str, Path, None] = None,
    remote: bool = False,
) -> Optional[Tracker]:
    """Start tracking coverage of every registered document.

    Args:
        skip_response: Predicate or status patterns of responses to leave
            out; defaults to ``settings.coverage.skip_responses``.
        event_log: Append events to this shared directory instead of
            tracking in memory (for test workers); defaults to
            ``settings.coverage.event_log``.
        remote: Send events to a tracker served by another process (see
            :func:`serve_coverage`).

    Returns:
        The in-memory tracker, or ``None`` when events go to an event log
        or a remote tracker.

    Raises:
        NotRegisteredError: If no document is registered.
    """
    global _tracker, _sink, _event_log

    if not _documents:
        raise NotRegisteredError(
            "No API descriptions have been registered. "
            "Call specguard.testing.register('openapi.yaml') before starting coverage."
        )
    settings = configuration.settings.coverage
    if skip_response is None:
        skip_response = settings.skip_responses
    if event_log is None:
        event_log = settings.event_log

    _tracker = Tracker(_documents.values(), skip_response=skip_response)
    if remote:
        _sink = connect_tracker()
    elif event_log:
        _event_log = EventLog(event_log)
        _sink = _event_log
    else:
        _sink = _tracker

    configuration.register_hook(AFTER_REQUEST_VALIDATION, _track_request)
    configuration.register_hook(AFTER_RESPONSE_VALIDATION, _track_response)
    return _tracker if _sink is _tracker else None


def serve_coverage(
    skip_response: Union[SkipResponse, Iterable[str], None] = None,
) -> TrackerServer:
    """Serve a tracker for the registered documents to worker processes.

    The server address is exported to the environment, so workers started
    afterwards can call ``start_coverage(remote=True)``. Read the collected
    result with :meth:`TrackerServer.result` and pass it to
    :func:`report_coverage`.
    """
    if not _documents:
        raise NotRegisteredError(
            "No API descriptions have been registered. "
            "Call specguard.testing.register('openapi.yaml') before serving coverage."
        )
    if skip_response is None:
        skip_response = configuration.settings.coverage.skip_responses
    plans = Tracker(_documents.values(), skip_response=skip_response).plans
    server = serve_tracker(plans)
    server.export_environment()
    return server


def stop_coverage() -> None:
    """Stop tracking; the last result stays available from :func:`coverage_result`."""
    global _sink, _event_log, _tracker
    sink, _sink = _sink, None
    configuration.unregister_hook(AFTER_REQUEST_VALIDATION, _track_request)
    configuration.unregister_hook(AFTER_RESPONSE_VALIDATION, _track_response)
    if sink is not None and sink is not _tracker and sink is not _event_log:
        # keep a local copy of the remote result
        try:
            result = sink.result()
        except _SINK_ERRORS as exc:
            logger.warning("Could not fetch remote coverage: %s", exc)
        else:
            _tracker = Tracker()
            for plan in result.plans:
                _tracker.add_plan(plan)
    if _event_log is not None:
        if _tracker is not None:
            _event_log.replay(_tracker)
        _event_log.close()
        _event_log = None


def coverage_result() -> CoverageResult:
    """Coverage of the current run, including events from an event log."""
    if _tracker is None:
        return CoverageResult(plans=(), coverage=0)
    if _event_log is not None:
        _event_log.replay(_tracker)
        return _tracker.result()
    if _sink is not None and _sink is not _tracker:
        return _sink.result()
    return _tracker.result()


def report_coverage(
    console: Optional[Console] = None,
    verbose: bool = False,
    result: Optional[CoverageResult] = None,
) -> CoverageResult:
    """Print the coverage report and return the result it was built from."""
    result = result or coverage_result()
    console = console or Console(file=sys.stdout, highlight=False)
    if result.coverage == 0 and not any(t.seen for p in result.plans for t in p.tasks):
        console.print(
            "API coverage did not detect any API requests for the registered API descriptions"
        )
        return result
    TerminalFormatter(verbose=verbose).render(result, console)
    return result


def check_minimum_coverage(
    minimum: Optional[int] = None,
    result: Optional[CoverageResult] = None,
    console: Optional[Console] = None,
) -> int:
    """Return :data:`EXIT_COVERAGE_BELOW_MINIMUM` when coverage is below *minimum*.

    *minimum* defaults to ``settings.coverage.minimum_coverage``.
    """
    if minimum is None:
        minimum = configuration.settings.coverage.minimum_coverage
    result = result or coverage_result()
    if result.coverage >= minimum:
        return EXIT_SUCCESS
    console = console or Console(file=sys.stderr, highlight=False)
    console.print(
        f"API coverage fails with exit {EXIT_COVERAGE_BELOW_MINIMUM}, because API coverage "
        f"of {result.coverage}% is below minimum of {minimum}%!"
    )
    return EXIT_COVERAGE_BELOW_MINIMUM


# ---------------------------------------------------------------------------
# httpx integration
# ---------------------------------------------------------------------------


def _resolve_document(document: Union[Document, str]) -> Document:
    return document if isinstance(document, Document) else get(document)


class ObservingTransport(httpx.BaseTransport):
    """Wraps a transport and silently validates every exchange.

    Failures are never raised; they only feed coverage tracking and the
    ``after_*_validation`` hooks.

    Args:
        transport: The transport that actually handles requests.
        document: A document, or the name it was registered under.
    """

    def __init__(self, transport: httpx.BaseTransport, document: Union[Document, str] = DEFAULT_NAME):
        self._transport = transport
        self._document = document

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        document = _resolve_document(self._document)
        request.read()
        document.validate_request(request, raise_error=False)
        response = self._transport.handle_request(request)
        response.read()
        document.validate_response(request, response, raise_error=False)
        return response

    def close(self) -> None:
        self._transport.close()


class AsyncObservingTransport(httpx.AsyncBaseTransport):
    """The ``httpx.AsyncClient`` counterpart of :class:`ObservingTransport`."""

    def __init__(
        self, transport: httpx.AsyncBaseTransport, document: Union[Document, str] = DEFAULT_NAME
    ):
        self._transport = transport
        self._document = document

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        document = _resolve_document(self._document)
        await request.aread()
        document.validate_request(request, raise_error=False)
        response = await self._transport.handle_async_request(request)
        await response.aread()
        document.validate_response(request, response, raise_error=False)
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()


def assert_api_conform(
    request: Any,
    response: Any,
    status: Optional[int] = None,
    name: str = DEFAULT_NAME,
) -> None:
    """Assert that *request* and *response* conform to the registered document.

    Raises:
        AssertionError: If *status* is given and differs from the response's.
        RequestInvalidError: If the request does not conform.
        ResponseInvalidError: If the response does not conform.
    """
    document = get(name)
    raw_response = normalize_response(response)
    if status is not None and status != raw_response.status:
        raw_request = normalize_request(request)
        raise AssertionError(
            f"Expected status {status}, but got {raw_response.status} "
            f"from {raw_request.method} {raw_request.path}."
        )
    document.validate_request(request, raise_error=True)
    document.validate_response(request, response, raise_error=True)
