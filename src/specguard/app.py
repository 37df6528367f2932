"""Typer application and CLI entry point for specguard.

Commands:

* ``check`` -- load a contract and summarise it.
* ``routes`` -- list every request and response variant.
* ``match`` -- route one request and show what it matched.
* ``coverage`` -- replay a coverage event log and gate on a minimum.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. :class:`~specguard.exceptions.SpecguardError` instances
exit with their ``exit_code``.

See Also:
    :mod:`specguard.config`: Settings resolution used by ``coverage``.
    :mod:`specguard.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

import specguard
from specguard import __version__
from specguard.config import resolve_settings
from specguard.coverage.event_log import EventLog
from specguard.coverage.formatter import TerminalFormatter
from specguard.coverage.tracker import Tracker
from specguard.exceptions import ConfigError, SpecguardError
from specguard.exit_codes import EXIT_GENERIC_FAILURE, EXIT_VALIDATION_FAILURE
from specguard.output import (
    OutputFormat,
    OutputManager,
    get_output,
    print_data,
    print_json,
    print_table,
    set_output,
)
from specguard.testing import check_minimum_coverage

app = typer.Typer(
    name="specguard",
    help="Validate HTTP traffic against OpenAPI 3.0/3.1 contracts.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"specguard {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send ``specguard`` log records to stderr; DEBUG with ``--verbose``."""
    logger = logging.getLogger("specguard")
    logger.handlers.clear()
    handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=False)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Set up output and logging before every sub-command."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    set_output(OutputManager(format=fmt, no_color=no_color, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn a :class:`SpecguardError` into an error message and its exit code."""
    try:
        yield
    except SpecguardError as exc:
        get_output().error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _load(document: str, **kwargs: Any) -> specguard.Document:
    get_output().debug(f"Loading {document}")
    return specguard.load(document, **kwargs)


@app.command("check")
def check_command(
    document: str = typer.Argument(..., help="Path or URL of the contract."),
) -> None:
    """Load a contract, resolve every reference, and summarise it."""
    with _handle_errors():
        doc = _load(document)

    summary = {
        "document": doc.key,
        "openapi": doc.openapi_version,
        "paths": len(doc.paths),
        "operations": len(doc.operations),
        "request_variants": sum(len(op.requests) for op in doc.operations),
        "response_variants": sum(len(op.responses) for op in doc.operations),
    }
    if get_output().format == OutputFormat.JSON:
        print_json(summary)
        return
    for key, value in summary.items():
        print_data(f"{key}\t{value}")


@app.command("routes")
def routes_command(
    document: str = typer.Argument(..., help="Path or URL of the contract."),
) -> None:
    """List every request and response variant of a contract."""
    with _handle_errors():
        doc = _load(document)

    rows = []
    for operation in doc.operations:
        for request in operation.requests:
            rows.append(
                [
                    operation.method.upper(),
                    operation.path,
                    operation.operation_id or "",
                    "request",
                    "",
                    request.content_type or "-",
                ]
            )
        for response in operation.responses:
            rows.append(
                [
                    operation.method.upper(),
                    operation.path,
                    operation.operation_id or "",
                    "response",
                    response.status,
                    response.content_type or "-",
                ]
            )
    print_table(
        ["Method", "Path", "Operation", "Kind", "Status", "Content-Type"],
        rows,
        title=f"Routes of {doc.key}",
    )


@app.command("match")
def match_command(
    document: str = typer.Argument(..., help="Path or URL of the contract."),
    method: str = typer.Argument(..., help="HTTP method."),
    path: str = typer.Argument(..., help="Request path, e.g. /pets/42."),
    content_type: Optional[str] = typer.Option(
        None, "--content-type", "-t", help="Request Content-Type."
    ),
    no_body: bool = typer.Option(False, "--no-body", help="The request has no body."),
) -> None:
    """Route one request and show the variant it matched.

    Exits with code 4 when the request does not match the contract.
    """
    with _handle_errors():
        doc = _load(document)
    match = doc.match(method, path, content_type, has_body=not no_body)

    if match.error is not None:
        result: dict[str, Any] = {
            "matched": False,
            "error": match.error.kind.value,
            "status": match.error.status,
            "message": match.error.exception_message,
        }
    else:
        operation = match.variant.operation
        result = {
            "matched": True,
            "operation": operation.name,
            "operation_id": operation.operation_id,
            "content_type": match.variant.content_type,
            "path_parameters": dict(match.params),
        }

    if get_output().format == OutputFormat.JSON:
        print_json(result)
    else:
        for key, value in result.items():
            print_data(f"{key}\t{value}")
    if match.error is not None:
        raise typer.Exit(code=EXIT_VALIDATION_FAILURE)


@app.command("coverage")
def coverage_command(
    document: str = typer.Argument(..., help="Path or URL of the contract."),
    events: Optional[Path] = typer.Option(
        None, "--events", "-e", help="Coverage event log directory written by test workers."
    ),
    minimum: Optional[int] = typer.Option(
        None, "--minimum", "-m", help="Fail with exit code 2 below this percentage."
    ),
    skip_response: Optional[list[str]] = typer.Option(
        None, "--skip-response", help="Response status pattern to leave out, e.g. 5XX."
    ),
) -> None:
    """Report coverage from an event log and gate on a minimum percentage."""
    with _handle_errors():
        settings = resolve_settings(
            minimum_coverage=minimum,
            event_log=str(events) if events is not None else None,
        )
        if settings.coverage.event_log is None:
            raise ConfigError("No event log given; pass --events or set SPECGUARD_EVENT_LOG")
        doc = _load(document, settings=settings)

        skip = skip_response or settings.coverage.skip_responses
        tracker = Tracker([doc], skip_response=skip)
        log = EventLog(settings.coverage.event_log)
        try:
            replayed = log.replay(tracker)
        finally:
            log.close()
        get_output().debug(f"Replayed {replayed} coverage events")
        if not replayed:
            get_output().warning(f"No coverage events in {settings.coverage.event_log}")

    result = tracker.result()
    output = get_output()
    if output.format == OutputFormat.JSON:
        print_json(
            {
                "coverage": result.coverage,
                "plans": [
                    {
                        "document": plan.key,
                        "coverage": plan.coverage,
                        "unfinished": [
                            list(task.key) for task in plan.tasks if not task.finished
                        ],
                    }
                    for plan in result.plans
                ],
            }
        )
    else:
        TerminalFormatter(verbose=output.is_verbose).render(result, output.console)

    code = check_minimum_coverage(
        minimum=settings.coverage.minimum_coverage,
        result=result,
        console=Console(stderr=True, highlight=False),
    )
    if code:
        raise typer.Exit(code=code)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``specguard`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except SpecguardError as exc:
        get_output().error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        get_output().error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
