"""Human-readable coverage report rendered with :mod:`rich`."""

from __future__ import annotations

import io
from typing import Optional

from rich.console import Console
from rich.text import Text

from specguard.coverage.plan import Plan, RequestTask, ResponseTask
from specguard.coverage.tracker import CoverageResult


def request_label(task: RequestTask) -> str:
    label = f"{task.method.upper()} {task.path}"
    if task.content_type:
        label += f" ({task.content_type})"
    return label


def response_label(task: ResponseTask) -> str:
    label = task.status
    if task.content_type:
        label += f" ({task.content_type})"
    return label


def explain_request(task: RequestTask) -> str:
    if not task.seen:
        return "No requests tracked!"
    return "All requests invalid!"


def explain_response(task: ResponseTask) -> str:
    if not task.seen:
        return "No responses tracked!"
    return "All responses invalid!"


class TerminalFormatter:
    """Lists the unfinished routes of each plan, green for done and red for missing.

    Args:
        verbose: Also list routes that are fully covered, and show the last
            validation error of tasks whose exchanges were all invalid.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def render(self, result: CoverageResult, console: Console) -> None:
        for plan in result.plans:
            self._render_plan(plan, console)
        if len(result.plans) > 1:
            console.print()
            console.print(Text(f"Total API validation coverage: {result.coverage}%", style="bold"))

    def format(self, result: CoverageResult, color: bool = False) -> str:
        """Render to a string; colour codes are included only when *color* is set."""
        buffer = io.StringIO()
        console = Console(
            file=buffer,
            force_terminal=color,
            no_color=not color,
            width=120,
            highlight=False,
        )
        self.render(result, console)
        return buffer.getvalue()

    def _render_plan(self, plan: Plan, console: Console) -> None:
        console.print()
        console.print(
            Text(f"API validation coverage for {plan.key}: {plan.coverage}%", style="bold")
        )
        if plan.done and not self.verbose:
            return
        for route in plan.routes:
            if route.finished and not self.verbose:
                continue
            for task in route.requests:
                self._line(console, "", request_label(task), task.finished, explain_request(task), task.last_error_message)
            if not self.verbose and not any(task.seen for task in route.requests):
                continue
            for task in route.responses:
                self._line(console, "  ", response_label(task), task.finished, explain_response(task), task.last_error_message)

    def _line(
        self,
        console: Console,
        indent: str,
        label: str,
        finished: bool,
        explanation: str,
        last_error: Optional[str],
    ) -> None:
        if finished:
            console.print(Text(f"{indent}✓ {label}", style="green"))
            return
        console.print(Text(f"{indent}✗ {label}: {explanation}", style="red"))
        if self.verbose and last_error:
            console.print(Text(f"{indent}    {last_error}", style="dim"))
