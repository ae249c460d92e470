"""Ports for persisting registry aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from welfaregrid.domain.model import (
    AuditEvent,
    Claim,
    DisbursementProof,
    FraudCheckTask,
    Identity,
    Jurisdiction,
    SystemSetting,
    VerifiedPair,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date, datetime
    from uuid import UUID

    from welfaregrid.domain.model import AuditSubject, PairStatus


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...

    def get(self, entity_id: UUID) -> TEntity | None: ...


@runtime_checkable
class LockingRepository[TEntity](Repository[TEntity], Protocol):
    """Repository that can take a row lock held until the unit of work ends."""

    def lock(self, entity_id: UUID) -> TEntity | None: ...


@runtime_checkable
class JurisdictionRepository(LockingRepository[Jurisdiction], Protocol):
    def get_by_code(self, code: str) -> Jurisdiction | None: ...


@runtime_checkable
class IdentityRepository(Repository[Identity], Protocol):
    """Persistence contract for Golden Record identities."""

    def lock_by_natural_key(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        *,
        lock_timeout_ms: int,
    ) -> Identity | None: ...

    def find_by_natural_key(
        self, first_name: str, last_name: str, birthdate: date
    ) -> Identity | None: ...

    def find_by_phonetic_code(self, code: str) -> list[Identity]: ...


@runtime_checkable
class ClaimRepository(LockingRepository[Claim], Protocol):
    """Persistence contract for claims."""

    def history_for_identity(self, identity_id: UUID, *, since: datetime) -> list[Claim]: ...

    def latest_activity(self, identity_ids: Iterable[UUID]) -> dict[UUID, datetime]: ...

    def flagged(self, *, jurisdiction_id: UUID | None = None) -> list[Claim]: ...


@runtime_checkable
class VerifiedPairRepository(LockingRepository[VerifiedPair], Protocol):
    """Persistence contract for the verified-pair whitelist.

    Callers pass ids already in canonical order.
    """

    def find_active(self, identity_a_id: UUID, identity_b_id: UUID) -> VerifiedPair | None: ...

    def lock_active(self, identity_a_id: UUID, identity_b_id: UUID) -> VerifiedPair | None: ...

    def for_identity(
        self, identity_id: UUID, *, status: PairStatus | None = None
    ) -> list[VerifiedPair]: ...

    def distinct_partners(self, identity_id: UUID) -> set[UUID]: ...


@runtime_checkable
class DisbursementProofRepository(Repository[DisbursementProof], Protocol):
    def for_claim(self, claim_id: UUID) -> list[DisbursementProof]: ...


@runtime_checkable
class FraudCheckOutboxRepository(Repository[FraudCheckTask], Protocol):
    def for_claim(self, claim_id: UUID) -> FraudCheckTask | None: ...

    def pending(self, *, limit: int, max_attempts: int) -> list[FraudCheckTask]: ...

    def exhausted(self, *, max_attempts: int) -> list[FraudCheckTask]: ...


@runtime_checkable
class AuditEventRepository(Repository[AuditEvent], Protocol):
    def for_subject(self, subject_type: AuditSubject, subject_id: str) -> list[AuditEvent]: ...


@runtime_checkable
class SystemSettingRepository(Protocol):
    def add(self, entity: SystemSetting) -> None: ...

    def get_by_key(self, key: str) -> SystemSetting | None: ...
