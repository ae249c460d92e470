"""Deferred fraud check: the only way out of AWAITING_FRAUD_CHECK besides cancel.

The check is dispatched after the claim commits and may be delivered more than
once. It applies its verdict only while the claim is still awaiting the check;
any other state (including a cancellation that raced it) is a recorded no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from welfaregrid.config import DEFAULT_FRAUD_CHECK_MAX_ATTEMPTS
from welfaregrid.domain.errors import NotFound
from welfaregrid.domain.model import AuditSubject, ClaimStatus, FraudCheckResult, utcnow

if TYPE_CHECKING:
    from uuid import UUID

    from welfaregrid.domain.model import Claim
    from welfaregrid.domain.ports import (
        AuditSink,
        FraudCheckDispatcher,
        RegistryRepositories,
        RegistryUnitOfWorkFactory,
    )
    from welfaregrid.domain.risk import RiskScorer, RiskVerdict
    from welfaregrid.domain.time_windows import Clock

log = getLogger(__name__)

SYSTEM_ACTOR = "system:fraud-check"


@dataclass(frozen=True, slots=True)
class FraudCheckOutcome:
    claim_id: UUID
    result: FraudCheckResult
    status: ClaimStatus | None = None
    verdict: RiskVerdict | None = None
    reason: str | None = None

    @property
    def applied(self) -> bool:
        return self.result is FraudCheckResult.APPLIED


class FraudCheckRunner:
    """Entry point for the asynchronous fraud-check task."""

    def __init__(
        self,
        *,
        unit_of_work: RegistryUnitOfWorkFactory,
        scorer: RiskScorer,
        audit: AuditSink,
        clock: Clock = utcnow,
    ) -> None:
        self._unit_of_work = unit_of_work
        self._scorer = scorer
        self._audit = audit
        self._clock = clock

    def run_fraud_check(self, claim_id: UUID) -> FraudCheckOutcome:
        try:
            outcome = self._run(claim_id)
        except Exception as exc:
            log.exception("Fraud check failed for claim %s", claim_id)
            self._audit.record(
                "claim.fraud_check_failed",
                (AuditSubject.CLAIM, claim_id),
                SYSTEM_ACTOR,
                {"error": type(exc).__name__, "message": str(exc)},
            )
            return FraudCheckOutcome(
                claim_id=claim_id, result=FraudCheckResult.FAILED, reason=str(exc)
            )

        if outcome.applied:
            verdict = outcome.verdict
            self._audit.record(
                "claim.fraud_checked",
                (AuditSubject.CLAIM, claim_id),
                SYSTEM_ACTOR,
                {
                    "from": ClaimStatus.AWAITING_FRAUD_CHECK.value,
                    "to": ClaimStatus.PENDING.value,
                    "risk_level": verdict.level.value if verdict else None,
                    "is_flagged": verdict.is_risky if verdict else False,
                },
            )
            log.info(
                "Fraud check applied to claim %s: %s",
                claim_id,
                verdict.level.value if verdict else "n/a",
            )
        else:
            self._audit.record(
                "claim.fraud_check_skipped",
                (AuditSubject.CLAIM, claim_id),
                SYSTEM_ACTOR,
                {"status": outcome.status.value if outcome.status else None},
            )
            log.info("Fraud check skipped for claim %s: %s", claim_id, outcome.reason)
        return outcome

    def _run(self, claim_id: UUID) -> FraudCheckOutcome:
        with self._unit_of_work() as uow:
            claim = uow.repositories.claims.get(claim_id)
            if claim is None:
                raise NotFound("claim", claim_id)
            if not claim.awaiting_fraud_check:
                self._complete_task(uow.repositories, claim_id, FraudCheckResult.SKIPPED)
                uow.commit()
                return self._skipped(claim)
            identity_id = claim.identity_id
            assistance_type = claim.assistance_type
            created_at = claim.created_at

        verdict = self._scorer.assess_risk(
            identity_id, assistance_type, as_of=created_at, claim_id=claim_id
        )

        with self._unit_of_work() as uow:
            repositories = uow.repositories
            claim = repositories.claims.lock(claim_id)
            if claim is None:
                raise NotFound("claim", claim_id)
            if not claim.awaiting_fraud_check:
                # state moved while scoring (usually a cancellation): fail closed
                self._complete_task(repositories, claim_id, FraudCheckResult.SKIPPED)
                uow.commit()
                return self._skipped(claim)

            now = self._clock()
            claim.status = ClaimStatus.PENDING
            claim.is_flagged = verdict.is_risky
            claim.flag_reason = verdict.details if verdict.is_risky else None
            claim.risk_assessment = verdict.snapshot()
            claim.fraud_checked_at = now
            claim.processed_by = SYSTEM_ACTOR
            claim.updated_at = now
            self._complete_task(repositories, claim_id, FraudCheckResult.APPLIED)
            uow.commit()

        return FraudCheckOutcome(
            claim_id=claim_id,
            result=FraudCheckResult.APPLIED,
            status=ClaimStatus.PENDING,
            verdict=verdict,
        )

    def _complete_task(
        self, repositories: RegistryRepositories, claim_id: UUID, result: FraudCheckResult
    ) -> None:
        task = repositories.outbox.for_claim(claim_id)
        if task is not None and not task.is_complete:
            task.complete(result.value, at=self._clock())

    @staticmethod
    def _skipped(claim: Claim) -> FraudCheckOutcome:
        return FraudCheckOutcome(
            claim_id=claim.id,
            result=FraudCheckResult.SKIPPED,
            status=claim.status,
            reason=f"claim is {claim.status.value}, not {ClaimStatus.AWAITING_FRAUD_CHECK.value}",
        )


def relay_pending_fraud_checks(
    *,
    unit_of_work: RegistryUnitOfWorkFactory,
    dispatcher: FraudCheckDispatcher,
    audit: AuditSink,
    limit: int = 100,
    max_attempts: int = DEFAULT_FRAUD_CHECK_MAX_ATTEMPTS,
    clock: Clock = utcnow,
) -> list[UUID]:
    """Re-dispatch outbox rows that never completed, oldest first.

    A row already relayed ``max_attempts`` times is closed as failed instead of
    being dispatched again. Its claim stays in AWAITING_FRAUD_CHECK for an officer
    to cancel or re-file.
    """

    with unit_of_work() as uow:
        outbox = uow.repositories.outbox
        now = clock()
        abandoned: list[tuple[UUID, int]] = []
        for task in outbox.exhausted(max_attempts=max_attempts):
            task.complete(FraudCheckResult.FAILED.value, at=now)
            abandoned.append((task.claim_id, task.attempts))
        tasks = outbox.pending(limit=limit, max_attempts=max_attempts)
        for task in tasks:
            task.attempts += 1
        claim_ids = [task.claim_id for task in tasks]
        uow.commit()

    for claim_id, attempts in abandoned:
        log.warning("Gave up on fraud check for claim %s after %d relays", claim_id, attempts)
        audit.record(
            "claim.fraud_check_abandoned",
            (AuditSubject.CLAIM, claim_id),
            SYSTEM_ACTOR,
            {"attempts": attempts},
        )
    for claim_id in claim_ids:
        dispatcher.dispatch(claim_id)
    if claim_ids:
        log.info("Relayed %d pending fraud check(s)", len(claim_ids))
    return claim_ids


__all__ = ["SYSTEM_ACTOR", "FraudCheckOutcome", "FraudCheckRunner", "relay_pending_fraud_checks"]
