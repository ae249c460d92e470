"""Fraud-check dispatchers: run inline, or hand off to a thread pool."""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from welfaregrid.domain.fraud_check import FraudCheckOutcome

type FraudCheckTarget = Callable[[UUID], FraudCheckOutcome]

log = getLogger(__name__)


class InlineFraudCheckDispatcher:
    """Run the check synchronously in the caller's thread."""

    def __init__(self, target: FraudCheckTarget) -> None:
        self._target = target

    def dispatch(self, claim_id: UUID) -> None:
        outcome = self._target(claim_id)
        log.debug("Fraud check for claim %s finished: %s", claim_id, outcome.result.value)


class ThreadPoolFraudCheckDispatcher:
    """Submit checks to a ``ThreadPoolExecutor``.

    Each check opens its own units of work, so workers share nothing but the engine.
    """

    def __init__(self, target: FraudCheckTarget, *, max_workers: int = 4) -> None:
        self._target = target
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="fraud-check"
        )
        self._pending: set[Future[FraudCheckOutcome]] = set()
        self._lock = threading.Lock()

    def dispatch(self, claim_id: UUID) -> None:
        future = self._executor.submit(self._target, claim_id)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        log.debug("Dispatched fraud check for claim %s", claim_id)

    def drain(self, timeout: float | None = None) -> list[FraudCheckOutcome]:
        """Wait for every dispatched check and return their outcomes."""
        with self._lock:
            futures = list(self._pending)
        return [future.result(timeout=timeout) for future in futures]

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _forget(self, future: Future[FraudCheckOutcome]) -> None:
        with self._lock:
            self._pending.discard(future)
