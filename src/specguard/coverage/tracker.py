"""Fan tracking calls out to the plan of the document they belong to."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from specguard.coverage.plan import Plan, SkipResponse
from specguard.models import VariantKey

if TYPE_CHECKING:
    from specguard.definition.document import Document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoverageResult:
    plans: tuple[Plan, ...]
    coverage: int


def mean_coverage(plans: Iterable[Plan]) -> int:
    """Mean coverage over non-empty *plans*; 0 when there are none."""
    counted = [plan.coverage for plan in plans if not plan.empty]
    if not counted:
        return 0
    return round(sum(counted) / len(counted))


class Tracker:
    """Coverage plans keyed by document key.

    Tracking calls for an unknown document key are ignored.
    """

    def __init__(
        self,
        documents: Iterable["Document"] = (),
        skip_response: Optional[SkipResponse | Iterable[str]] = None,
    ):
        self._plans: dict[str, Plan] = {}
        self._lock = threading.Lock()
        for document in documents:
            self.add_plan(Plan.for_document(document, skip_response=skip_response))

    def add_plan(self, plan: Plan) -> None:
        with self._lock:
            self._plans[plan.key] = plan

    def plan(self, document_key: str) -> Optional[Plan]:
        return self._plans.get(document_key)

    @property
    def plans(self) -> tuple[Plan, ...]:
        return tuple(self._plans.values())

    def track_request(
        self, document_key: str, key: VariantKey, error_message: Optional[str] = None
    ) -> None:
        plan = self._plans.get(document_key)
        if plan is None:
            logger.debug("Ignoring request for untracked document %s", document_key)
            return
        if not plan.track_request(key, error_message):
            logger.debug("Ignoring unknown request variant %s", key)

    def track_response(
        self, document_key: str, key: VariantKey, error_message: Optional[str] = None
    ) -> None:
        plan = self._plans.get(document_key)
        if plan is None:
            logger.debug("Ignoring response for untracked document %s", document_key)
            return
        if not plan.track_response(key, error_message):
            logger.debug("Ignoring unknown response variant %s", key)

    @property
    def coverage(self) -> int:
        return mean_coverage(self._plans.values())

    def result(self) -> CoverageResult:
        plans = self.plans
        return CoverageResult(plans=plans, coverage=mean_coverage(plans))
