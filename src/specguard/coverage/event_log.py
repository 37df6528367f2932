"""Append-only coverage event log shared through the filesystem.

Test workers that cannot reach a served tracker append tracking events to a
:class:`diskcache.Deque` in a shared directory; the collecting process
replays them into a :class:`~specguard.coverage.tracker.Tracker` when it
reports. ``diskcache`` handles locking between processes.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import NamedTuple, Optional

import diskcache

from specguard.coverage.tracker import Tracker
from specguard.models import VariantKey

REQUEST = "request"
RESPONSE = "response"


class CoverageEvent(NamedTuple):
    kind: str
    document_key: str
    key: VariantKey
    error_message: Optional[str] = None


class EventLog:
    """Tracker-compatible sink backed by a ``diskcache.Deque`` directory.

    Args:
        directory: Directory of the log; created if missing.

    Example::

        log = EventLog(".specguard-events")
        log.track_request(document.key, variant.key, None)

        # later, in the collecting process
        log.replay(tracker)
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._cache = diskcache.Cache(str(self._directory))
        self._deque = diskcache.Deque.fromcache(self._cache)

    @property
    def directory(self) -> Path:
        return self._directory

    def _append(self, kind: str, document_key: str, key: VariantKey, error_message: Optional[str]) -> None:
        self._deque.append((kind, document_key, tuple(key), error_message))

    def track_request(
        self, document_key: str, key: VariantKey, error_message: Optional[str] = None
    ) -> None:
        self._append(REQUEST, document_key, key, error_message)

    def track_response(
        self, document_key: str, key: VariantKey, error_message: Optional[str] = None
    ) -> None:
        self._append(RESPONSE, document_key, key, error_message)

    def events(self) -> Iterator[CoverageEvent]:
        for kind, document_key, key, error_message in self._deque:
            yield CoverageEvent(kind, document_key, VariantKey(*key), error_message)

    def __len__(self) -> int:
        return len(self._deque)

    def replay(self, tracker: Tracker) -> int:
        """Feed every logged event into *tracker*; returns the number of events."""
        count = 0
        for event in self.events():
            if event.kind == REQUEST:
                tracker.track_request(event.document_key, event.key, event.error_message)
            else:
                tracker.track_response(event.document_key, event.key, event.error_message)
            count += 1
        return count

    def clear(self) -> None:
        self._deque.clear()

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`."""
        self._cache.close()
