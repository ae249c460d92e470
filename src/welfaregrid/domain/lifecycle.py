"""Claim state machine and the money-release gate.

::

    AWAITING_FRAUD_CHECK -> PENDING <-> UNDER_REVIEW -> APPROVED -> DISBURSED

REJECTED and CANCELLED are reachable from every non-terminal state, except that
``AWAITING_FRAUD_CHECK`` leaves only through the fraud check or cancellation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from welfaregrid.domain.errors import NotFound, TransitionRejected, ValidationFailure
from welfaregrid.domain.model import (
    AssistanceType,
    AuditSubject,
    Claim,
    ClaimAction,
    ClaimStatus,
    DisbursementProof,
    FraudCheckTask,
    utcnow,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from welfaregrid.domain.ports import (
        AuditSink,
        FraudCheckDispatcher,
        RegistryRepositories,
        RegistryUnitOfWorkFactory,
    )
    from welfaregrid.domain.time_windows import Clock

log = getLogger(__name__)

CENTS: Final[Decimal] = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class Transition:
    sources: frozenset[ClaimStatus]
    target: ClaimStatus
    rule: str
    requires_reason: bool = False


TRANSITIONS: Final[dict[ClaimAction, Transition]] = {
    ClaimAction.APPROVE: Transition(
        frozenset({ClaimStatus.PENDING, ClaimStatus.UNDER_REVIEW}),
        ClaimStatus.APPROVED,
        "only PENDING or UNDER_REVIEW claims may be approved",
    ),
    ClaimAction.REJECT: Transition(
        frozenset({ClaimStatus.PENDING, ClaimStatus.UNDER_REVIEW, ClaimStatus.APPROVED}),
        ClaimStatus.REJECTED,
        "only PENDING, UNDER_REVIEW or APPROVED claims may be rejected",
        requires_reason=True,
    ),
    ClaimAction.DISBURSE: Transition(
        frozenset({ClaimStatus.APPROVED}),
        ClaimStatus.DISBURSED,
        "only APPROVED claims may be disbursed",
    ),
    ClaimAction.CANCEL: Transition(
        frozenset(
            {
                ClaimStatus.AWAITING_FRAUD_CHECK,
                ClaimStatus.PENDING,
                ClaimStatus.UNDER_REVIEW,
                ClaimStatus.APPROVED,
            }
        ),
        ClaimStatus.CANCELLED,
        "terminal claims cannot be cancelled",
    ),
    ClaimAction.MARK_UNDER_REVIEW: Transition(
        frozenset({ClaimStatus.PENDING}),
        ClaimStatus.UNDER_REVIEW,
        "only PENDING claims may be put under review",
    ),
    ClaimAction.RETURN_TO_PENDING: Transition(
        frozenset({ClaimStatus.UNDER_REVIEW}),
        ClaimStatus.PENDING,
        "only UNDER_REVIEW claims may be returned to pending",
    ),
}

PROOF_REQUIRED_RULE: Final[str] = "proof of disbursement has not been recorded"


def normalize_amount(amount: Decimal | int | str) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationFailure(f"Invalid claim amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValidationFailure(f"Invalid claim amount: {amount!r}")
    value = value.quantize(CENTS, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise ValidationFailure(f"Claim amount must be positive, got {amount!r}")
    return value


def check_transition(claim: Claim, action: ClaimAction, reason: str | None) -> Transition:
    """Return the transition for ``action`` or raise ``TransitionRejected``."""

    transition = TRANSITIONS[action]
    if claim.status not in transition.sources:
        raise TransitionRejected(
            claim_id=claim.id, status=claim.status, action=action, rule=transition.rule
        )
    if transition.requires_reason and not (reason or "").strip():
        raise ValidationFailure(f"A reason is required to {action.value} a claim")
    return transition


def apply_transition(
    claim: Claim,
    transition: Transition,
    *,
    actor: str,
    at: datetime,
    reason: str | None = None,
) -> None:
    """Move ``claim`` to the transition target and keep its markers exclusive."""

    target = transition.target
    claim.status = target
    claim.processed_by = actor
    claim.updated_at = at
    if target is ClaimStatus.APPROVED:
        claim.approved_at = at
    elif target is ClaimStatus.DISBURSED:
        claim.approved_at = None
        claim.disbursed_at = at
    elif target in (ClaimStatus.REJECTED, ClaimStatus.CANCELLED):
        claim.approved_at = None
        claim.rejected_at = at
        claim.rejection_reason = (reason or "").strip() or None


class ClaimLifecycle:
    """Create claims and move them through the state machine.

    Every mutation happens under a row lock on the claim; disbursement also locks
    the paying jurisdiction so the budget ledger and the claim commit together.
    """

    def __init__(
        self,
        *,
        unit_of_work: RegistryUnitOfWorkFactory,
        audit: AuditSink,
        dispatcher: FraudCheckDispatcher | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._unit_of_work = unit_of_work
        self._audit = audit
        self._dispatcher = dispatcher
        self._clock = clock

    def create_claim(
        self,
        identity_id: UUID,
        jurisdiction_id: UUID,
        assistance_type: AssistanceType,
        amount: Decimal | int | str,
        *,
        actor: str,
        purpose: str | None = None,
    ) -> Claim:
        assistance_type = AssistanceType(assistance_type)
        value = normalize_amount(amount)
        now = self._clock()
        with self._unit_of_work() as uow:
            repositories = uow.repositories
            identity = repositories.identities.get(identity_id)
            if identity is None:
                raise NotFound("identity", identity_id)
            if not identity.is_active:
                raise ValidationFailure(f"Identity {identity_id} is inactive")
            jurisdiction = repositories.jurisdictions.get(jurisdiction_id)
            if jurisdiction is None:
                raise NotFound("jurisdiction", jurisdiction_id)

            claim = Claim(
                identity_id=identity_id,
                jurisdiction_id=jurisdiction_id,
                assistance_type=assistance_type,
                amount=value,
                purpose=(purpose or "").strip() or None,
                created_by=actor,
                created_at=now,
            )
            repositories.claims.add(claim)
            repositories.outbox.add(FraudCheckTask(claim_id=claim.id, enqueued_at=now))
            uow.commit()

        log.info(
            "Created %s claim %s for identity %s (%s)",
            assistance_type.value,
            claim.id,
            identity_id,
            value,
        )
        self._audit.record(
            "claim.created",
            (AuditSubject.CLAIM, claim.id),
            actor,
            {
                "status": claim.status.value,
                "assistance_type": assistance_type.value,
                "amount": str(value),
                "jurisdiction_id": str(jurisdiction_id),
            },
        )
        if self._dispatcher is not None:
            try:
                self._dispatcher.dispatch(claim.id)
            except Exception:
                # the outbox row stays pending and the relay picks it up
                log.exception("Fraud check dispatch failed for claim %s", claim.id)
        return claim

    def transition_claim(
        self,
        claim_id: UUID,
        action: ClaimAction,
        actor: str,
        reason: str | None = None,
    ) -> Claim:
        action = ClaimAction(action)
        if not (actor or "").strip():
            raise ValidationFailure("actor is required")
        now = self._clock()
        with self._unit_of_work() as uow:
            repositories = uow.repositories
            claim = repositories.claims.lock(claim_id)
            if claim is None:
                raise NotFound("claim", claim_id)
            previous = claim.status
            transition = check_transition(claim, action, reason)
            properties: dict[str, Any] = {"from": previous.value, "to": transition.target.value}
            if action is ClaimAction.DISBURSE:
                properties.update(self._disburse(repositories, claim))
            apply_transition(claim, transition, actor=actor, at=now, reason=reason)
            uow.commit()

        if reason:
            properties["reason"] = reason
        log.info("Claim %s: %s -> %s by %s", claim_id, previous.value, claim.status.value, actor)
        subject = (AuditSubject.CLAIM, claim_id)
        self._audit.record(f"claim.{action.value}", subject, actor, properties)
        return claim

    def record_disbursement_proof(
        self,
        claim_id: UUID,
        actor: str,
        reference: str,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> DisbursementProof:
        reference = (reference or "").strip()
        if not reference:
            raise ValidationFailure("A proof reference is required")
        with self._unit_of_work() as uow:
            repositories = uow.repositories
            claim = repositories.claims.lock(claim_id)
            if claim is None:
                raise NotFound("claim", claim_id)
            if claim.status is not ClaimStatus.APPROVED:
                raise ValidationFailure(
                    f"Proof can only be recorded for an APPROVED claim, {claim_id} is "
                    f"{claim.status.value}"
                )
            proof = DisbursementProof(
                claim_id=claim_id,
                reference=reference,
                captured_by=actor,
                captured_at=self._clock(),
                latitude=latitude,
                longitude=longitude,
            )
            repositories.proofs.add(proof)
            uow.commit()

        self._audit.record(
            "claim.proof_recorded",
            (AuditSubject.CLAIM, claim_id),
            actor,
            {"reference": reference, "proof_id": str(proof.id)},
        )
        return proof

    def list_flagged_claims(self, jurisdiction_id: UUID | None = None) -> list[Claim]:
        with self._unit_of_work() as uow:
            return uow.repositories.claims.flagged(jurisdiction_id=jurisdiction_id)

    def get_claim(self, claim_id: UUID) -> Claim:
        with self._unit_of_work() as uow:
            claim = uow.repositories.claims.get(claim_id)
        if claim is None:
            raise NotFound("claim", claim_id)
        return claim

    @staticmethod
    def _disburse(repositories: RegistryRepositories, claim: Claim) -> dict[str, Any]:
        if not repositories.proofs.for_claim(claim.id):
            raise TransitionRejected(
                claim_id=claim.id,
                status=claim.status,
                action=ClaimAction.DISBURSE,
                rule=PROOF_REQUIRED_RULE,
            )
        jurisdiction = repositories.jurisdictions.lock(claim.jurisdiction_id)
        if jurisdiction is None:
            raise NotFound("jurisdiction", claim.jurisdiction_id)
        jurisdiction.used_budget += claim.amount
        return {
            "jurisdiction_id": str(jurisdiction.id),
            "amount": str(claim.amount),
            "used_budget": str(jurisdiction.used_budget),
            "approved_at": claim.approved_at.isoformat() if claim.approved_at else None,
        }


__all__ = [
    "TRANSITIONS",
    "ClaimLifecycle",
    "Transition",
    "apply_transition",
    "check_transition",
    "normalize_amount",
]
