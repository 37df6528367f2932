"""Tests for specguard.coverage.event_log."""

from __future__ import annotations

from pathlib import Path

import pytest

from specguard.coverage.event_log import REQUEST, RESPONSE, CoverageEvent, EventLog
from specguard.coverage.tracker import Tracker
from specguard.models import VariantKey

LIST_PETS = VariantKey("/pets", "get")
LIST_PETS_200 = VariantKey("/pets", "get", "application/json", "200")


@pytest.fixture
def event_log(tmp_path: Path) -> EventLog:
    log = EventLog(tmp_path / "events")
    yield log
    log.close()


class TestEventLog:
    def test_creates_directory(self, tmp_path: Path, event_log: EventLog) -> None:
        assert event_log.directory == tmp_path / "events"
        assert event_log.directory.is_dir()

    def test_appends_events_in_order(self, event_log: EventLog) -> None:
        event_log.track_request("api", LIST_PETS)
        event_log.track_response("api", LIST_PETS_200, "bad body")
        assert len(event_log) == 2
        assert list(event_log.events()) == [
            CoverageEvent(REQUEST, "api", LIST_PETS, None),
            CoverageEvent(RESPONSE, "api", LIST_PETS_200, "bad body"),
        ]

    def test_events_restore_variant_keys(self, event_log: EventLog) -> None:
        event_log.track_request("api", LIST_PETS)
        event = next(event_log.events())
        assert isinstance(event.key, VariantKey)
        assert event.key.method == "get"

    def test_shared_between_instances(self, tmp_path: Path, event_log: EventLog) -> None:
        other = EventLog(tmp_path / "events")
        try:
            other.track_request("api", LIST_PETS)
        finally:
            other.close()
        assert len(event_log) == 1

    def test_replay_into_tracker(self, petstore, event_log: EventLog) -> None:
        event_log.track_request(petstore.key, LIST_PETS)
        event_log.track_response(petstore.key, LIST_PETS_200, "bad body")
        tracker = Tracker([petstore])
        assert event_log.replay(tracker) == 2
        plan = tracker.plan(petstore.key)
        assert plan.task(LIST_PETS).finished
        response = plan.task(LIST_PETS_200)
        assert response.seen and not response.finished

    def test_clear(self, event_log: EventLog) -> None:
        event_log.track_request("api", LIST_PETS)
        event_log.clear()
        assert len(event_log) == 0
