"""Claims for assistance and the records attached to their lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from welfaregrid.domain.model.entity import Entity, utcnow
from welfaregrid.domain.model.enums import ClaimStatus

if TYPE_CHECKING:
    from datetime import datetime
    from decimal import Decimal
    from uuid import UUID

    from welfaregrid.domain.model.enums import AssistanceType


@dataclass(eq=False, kw_only=True)
class Claim(Entity):
    """A request for assistance by one identity, paid by one jurisdiction.

    Mutated only through ``welfaregrid.domain.lifecycle``. At most one of
    ``approved_at``, ``rejected_at`` and ``disbursed_at`` is set at any time.
    ``risk_assessment`` is written once by the fraud check and never replaced.
    """

    identity_id: UUID
    jurisdiction_id: UUID
    assistance_type: AssistanceType
    amount: Decimal
    status: ClaimStatus = ClaimStatus.AWAITING_FRAUD_CHECK
    purpose: str | None = None

    is_flagged: bool = False
    flag_reason: str | None = None
    risk_assessment: dict[str, Any] | None = None
    fraud_checked_at: datetime | None = None

    created_by: str | None = None
    processed_by: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    approved_at: datetime | None = None
    disbursed_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def awaiting_fraud_check(self) -> bool:
        return self.status is ClaimStatus.AWAITING_FRAUD_CHECK

    def terminal_markers(self) -> tuple[datetime | None, datetime | None, datetime | None]:
        return (self.approved_at, self.rejected_at, self.disbursed_at)


@dataclass(eq=False, kw_only=True)
class DisbursementProof(Entity):
    """Metadata written by the proof-capture collaborator before disbursement."""

    claim_id: UUID
    reference: str
    captured_by: str
    captured_at: datetime = field(default_factory=utcnow)
    latitude: float | None = None
    longitude: float | None = None


@dataclass(eq=False, kw_only=True)
class FraudCheckTask(Entity):
    """Outbox row written in the same transaction as the claim it checks."""

    claim_id: UUID
    enqueued_at: datetime = field(default_factory=utcnow)
    attempts: int = 0
    completed_at: datetime | None = None
    outcome: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    def complete(self, outcome: str, *, at: datetime) -> None:
        self.outcome = outcome
        self.completed_at = at
