"""Share one :class:`~specguard.coverage.tracker.Tracker` across processes.

The collecting process starts a :class:`multiprocessing.managers.BaseManager`
server process holding a single tracker, and hands it the coverage plans.
Worker processes connect and get a proxy whose tracking calls run in that
server::

    server = serve_tracker(Tracker(documents).plans)
    server.export_environment()          # before starting workers

    # in a worker
    proxy = connect_tracker()
    proxy.track_request(document.key, variant.key, None)

    # back in the collector
    result = server.result()
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from multiprocessing.managers import BaseManager
from typing import Any, Optional

from specguard.coverage.plan import Plan
from specguard.coverage.tracker import CoverageResult, Tracker
from specguard.exceptions import ConfigError

logger = logging.getLogger(__name__)

ADDRESS_ENV = "SPECGUARD_TRACKER_ADDRESS"
AUTHKEY_ENV = "SPECGUARD_TRACKER_AUTHKEY"

_EXPOSED = ("track_request", "track_response", "result", "add_plan")

_shared: Optional[Tracker] = None


def _shared_tracker() -> Tracker:
    """The tracker living in the manager's server process."""
    global _shared
    if _shared is None:
        _shared = Tracker()
    return _shared


class TrackerManager(BaseManager):
    """Manager whose ``tracker()`` returns a proxy to the shared tracker."""


TrackerManager.register("tracker", callable=_shared_tracker, exposed=_EXPOSED)


class TrackerServer:
    """A manager server process holding the tracker for *plans*.

    Args:
        plans: Coverage plans to track, usually ``Tracker(documents).plans``.
        address: Host and port to listen on; port 0 picks a free one.
        authkey: Shared secret; random when omitted.
    """

    def __init__(
        self,
        plans: Iterable[Plan] = (),
        address: tuple[str, int] = ("127.0.0.1", 0),
        authkey: Optional[bytes] = None,
    ):
        self._plans = tuple(plans)
        self._authkey = authkey if authkey is not None else os.urandom(16)
        self._manager = TrackerManager(address=address, authkey=self._authkey)
        self._tracker: Any = None

    @property
    def tracker(self) -> Any:
        """Proxy of the served tracker; ``None`` before :meth:`start`."""
        return self._tracker

    @property
    def address(self) -> tuple[str, int]:
        return self._manager.address

    @property
    def authkey(self) -> bytes:
        return self._authkey

    def start(self) -> "TrackerServer":
        self._manager.start()
        self._tracker = self._manager.tracker()
        for plan in self._plans:
            self._tracker.add_plan(plan)
        logger.debug("Serving coverage tracker on %s:%s", *self.address)
        return self

    def result(self) -> CoverageResult:
        return self._tracker.result()

    def stop(self) -> None:
        self._tracker = None
        self._manager.shutdown()

    def export_environment(self, environ: Optional[dict[str, str]] = None) -> None:
        """Publish address and key so :func:`connect_tracker` works without arguments."""
        environ = os.environ if environ is None else environ
        host, port = self.address
        environ[ADDRESS_ENV] = f"{host}:{port}"
        environ[AUTHKEY_ENV] = self._authkey.hex()

    def __enter__(self) -> "TrackerServer":
        return self.start()

    def __exit__(self, *exc: Any) -> None:
        self.stop()


def serve_tracker(
    plans: Iterable[Plan] = (),
    address: tuple[str, int] = ("127.0.0.1", 0),
    authkey: Optional[bytes] = None,
) -> TrackerServer:
    """Start serving a tracker for *plans* and return the running server."""
    return TrackerServer(plans, address, authkey).start()


def _address_from_environment() -> tuple[tuple[str, int], bytes]:
    raw_address = os.environ.get(ADDRESS_ENV)
    raw_key = os.environ.get(AUTHKEY_ENV)
    if not raw_address or not raw_key:
        raise ConfigError(
            f"{ADDRESS_ENV} and {AUTHKEY_ENV} must be set to connect to a coverage tracker"
        )
    host, _, port = raw_address.rpartition(":")
    try:
        return (host, int(port)), bytes.fromhex(raw_key)
    except ValueError:
        raise ConfigError(f"Invalid coverage tracker address {raw_address!r}") from None


def connect_tracker(
    address: Optional[tuple[str, int]] = None, authkey: Optional[bytes] = None
) -> Any:
    """Connect to a served tracker and return a proxy for it.

    Without arguments the address and key are read from the environment
    (see :meth:`TrackerServer.export_environment`).

    Raises:
        ConfigError: If no address is given and none is in the environment.
        ConnectionError: If the server is not reachable.
    """
    if address is None or authkey is None:
        env_address, env_key = _address_from_environment()
        address = address or env_address
        authkey = authkey or env_key
    manager = TrackerManager(address=address, authkey=authkey)
    manager.connect()
    return manager.tracker()
