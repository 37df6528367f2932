"""Coverage tracking: which declared request/response variants a test run exercised."""

from specguard.coverage.event_log import EventLog
from specguard.coverage.formatter import TerminalFormatter
from specguard.coverage.plan import Plan, RequestTask, ResponseTask, RouteTask, skip_statuses
from specguard.coverage.remote import TrackerServer, connect_tracker, serve_tracker
from specguard.coverage.tracker import CoverageResult, Tracker, mean_coverage

__all__ = [
    "CoverageResult",
    "EventLog",
    "Plan",
    "RequestTask",
    "ResponseTask",
    "RouteTask",
    "TerminalFormatter",
    "Tracker",
    "TrackerServer",
    "connect_tracker",
    "mean_coverage",
    "serve_tracker",
    "skip_statuses",
]
