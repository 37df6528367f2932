"""Tests for specguard.coverage.formatter."""

from __future__ import annotations

import io

from rich.console import Console

from specguard.coverage.formatter import TerminalFormatter
from specguard.coverage.tracker import Tracker
from specguard.models import VariantKey

LIST_PETS = VariantKey("/pets", "get")
CREATE_PET = VariantKey("/pets", "post", "application/json")


def _lines(output: str) -> list[str]:
    return [line.rstrip() for line in output.splitlines()]


class TestTerminalFormatter:
    def test_heading_per_plan(self, petstore) -> None:
        output = TerminalFormatter().format(Tracker([petstore]).result())
        assert f"API validation coverage for {petstore.key}: 0%" in output
        assert "Total API validation coverage" not in output

    def test_untracked_routes(self, petstore) -> None:
        lines = _lines(TerminalFormatter().format(Tracker([petstore]).result()))
        assert "✗ GET /pets: No requests tracked!" in lines
        assert "✗ POST /pets (application/json): No requests tracked!" in lines
        assert "✗ PUT /pets/{petId}/photo (image/*): No requests tracked!" in lines
        # responses are listed only once a request of the route was seen
        assert not any("No responses tracked!" in line for line in lines)

    def test_seen_route_lists_responses(self, petstore) -> None:
        tracker = Tracker([petstore])
        tracker.track_request(petstore.key, LIST_PETS)
        tracker.track_request(petstore.key, CREATE_PET, "request body has an error")
        lines = _lines(TerminalFormatter().format(tracker.result()))
        assert f"API validation coverage for {petstore.key}: 6%" in lines
        assert "✓ GET /pets" in lines
        assert "  ✗ 200 (application/json): No responses tracked!" in lines
        assert "  ✗ default (application/problem+json): No responses tracked!" in lines
        assert "✗ POST /pets (application/json): All requests invalid!" in lines
        assert "    request body has an error" not in lines

    def test_verbose_shows_last_error_and_finished_routes(self, petstore) -> None:
        tracker = Tracker([petstore])
        tracker.track_request(petstore.key, CREATE_PET, "request body has an error")
        for task in tracker.plan(petstore.key).routes[0].requests:
            task.track(None)
        for task in tracker.plan(petstore.key).routes[0].responses:
            task.track(None)
        lines = _lines(TerminalFormatter(verbose=True).format(tracker.result()))
        assert "✓ GET /pets" in lines
        assert "  ✓ 200 (application/json)" in lines
        assert "    request body has an error" in lines
        assert "  ✗ 201 (application/json): No responses tracked!" in lines

    def test_done_plan_prints_heading_only(self, petstore) -> None:
        tracker = Tracker([petstore])
        for task in tracker.plan(petstore.key).tasks:
            task.track(None)
        lines = [line for line in _lines(TerminalFormatter().format(tracker.result())) if line]
        assert lines == [f"API validation coverage for {petstore.key}: 100%"]

    def test_total_for_several_plans(self, petstore, split_document) -> None:
        output = TerminalFormatter().format(Tracker([petstore, split_document]).result())
        assert f"API validation coverage for {split_document.key}: 0%" in output
        assert "Total API validation coverage: 0%" in output

    def test_plain_output_has_no_colour_codes(self, petstore) -> None:
        assert "\x1b[" not in TerminalFormatter().format(Tracker([petstore]).result())

    def test_render_to_console(self, petstore) -> None:
        buffer = io.StringIO()
        console = Console(file=buffer, no_color=True, width=120)
        TerminalFormatter().render(Tracker([petstore]).result(), console)
        assert "No requests tracked!" in buffer.getvalue()
