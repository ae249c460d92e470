"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from datetime import UTC
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select, text
from sqlalchemy.exc import OperationalError

from welfaregrid.adapters.sqlalchemy.mappings import (
    audit_event_table,
    claim_table,
    disbursement_proof_table,
    fraud_check_outbox_table,
    identity_table,
    jurisdiction_table,
    system_setting_table,
    verified_pair_table,
)
from welfaregrid.domain.errors import ResolutionConflict
from welfaregrid.domain.model import (
    AuditEvent,
    Claim,
    ClaimStatus,
    DisbursementProof,
    FraudCheckTask,
    Identity,
    Jurisdiction,
    PairStatus,
    SystemSetting,
    VerifiedPair,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable
    from datetime import date, datetime

    from sqlalchemy import Select
    from sqlalchemy.orm import Session

    from welfaregrid.domain.model import AuditSubject

# claims that no longer count towards an identity's history
_VOIDED_STATUSES = (ClaimStatus.REJECTED, ClaimStatus.CANCELLED)
_REVIEWABLE_STATUSES = (ClaimStatus.PENDING, ClaimStatus.UNDER_REVIEW)


class SqlAlchemyRepository[TEntity]:
    """Shared ``add``/``get``/``lock`` for aggregates keyed by UUID."""

    def __init__(self, session: Session, entity_cls: type[TEntity]) -> None:
        self.session = session
        self._entity_cls = entity_cls

    def add(self, entity: TEntity) -> None:
        self.session.add(entity)

    def get(self, entity_id: uuid.UUID) -> TEntity | None:
        return self.session.get(self._entity_cls, entity_id)

    def lock(self, entity_id: uuid.UUID) -> TEntity | None:
        """Load with ``SELECT ... FOR UPDATE``, held until the transaction ends."""
        return self.session.get(
            self._entity_cls,
            entity_id,
            with_for_update=True,
            populate_existing=True,
        )


class SqlAlchemyJurisdictionRepository(SqlAlchemyRepository[Jurisdiction]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Jurisdiction)

    def get_by_code(self, code: str) -> Jurisdiction | None:
        stmt = select(Jurisdiction).where(jurisdiction_table.c.code == code)
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyIdentityRepository(SqlAlchemyRepository[Identity]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Identity)

    def lock_by_natural_key(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        *,
        lock_timeout_ms: int,
    ) -> Identity | None:
        try:
            if self.session.get_bind().dialect.name == "postgresql":
                # SET cannot take bind parameters
                self.session.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))
            stmt = (
                self._natural_key_query(first_name, last_name, birthdate)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            return self.session.execute(stmt).scalar_one_or_none()
        except OperationalError as exc:
            raise ResolutionConflict(
                f"Timed out waiting for the identity lock on {first_name} {last_name} "
                f"({birthdate.isoformat()})"
            ) from exc

    def find_by_natural_key(
        self, first_name: str, last_name: str, birthdate: date
    ) -> Identity | None:
        stmt = self._natural_key_query(first_name, last_name, birthdate)
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_phonetic_code(self, code: str) -> list[Identity]:
        stmt = (
            select(Identity)
            .where(identity_table.c.phonetic_code == code)
            .where(identity_table.c.is_active)
            .order_by(identity_table.c.last_name, identity_table.c.first_name)
        )
        return list(self.session.execute(stmt).scalars())

    @staticmethod
    def _natural_key_query(
        first_name: str, last_name: str, birthdate: date
    ) -> Select[tuple[Identity]]:
        return (
            select(Identity)
            .where(identity_table.c.first_name == first_name)
            .where(identity_table.c.last_name == last_name)
            .where(identity_table.c.birthdate == birthdate)
        )


class SqlAlchemyClaimRepository(SqlAlchemyRepository[Claim]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Claim)

    def history_for_identity(self, identity_id: uuid.UUID, *, since: datetime) -> list[Claim]:
        stmt = (
            select(Claim)
            .where(claim_table.c.identity_id == identity_id)
            .where(claim_table.c.created_at >= since)
            .where(claim_table.c.status.not_in(_VOIDED_STATUSES))
            .order_by(claim_table.c.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def latest_activity(self, identity_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, datetime]:
        ids = list(identity_ids)
        if not ids:
            return {}
        latest = func.max(claim_table.c.created_at)
        stmt = (
            select(claim_table.c.identity_id, latest)
            .where(claim_table.c.identity_id.in_(ids))
            .group_by(claim_table.c.identity_id)
        )
        activity: dict[uuid.UUID, datetime] = {}
        for identity_id, created_at in self.session.execute(stmt):
            if created_at is not None:
                activity[identity_id] = _as_utc(created_at)
        return activity

    def flagged(self, *, jurisdiction_id: uuid.UUID | None = None) -> list[Claim]:
        stmt = (
            select(Claim)
            .where(claim_table.c.is_flagged)
            .where(claim_table.c.status.in_(_REVIEWABLE_STATUSES))
            .order_by(claim_table.c.created_at.desc())
        )
        if jurisdiction_id is not None:
            stmt = stmt.where(claim_table.c.jurisdiction_id == jurisdiction_id)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyVerifiedPairRepository(SqlAlchemyRepository[VerifiedPair]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, VerifiedPair)

    def find_active(
        self, identity_a_id: uuid.UUID, identity_b_id: uuid.UUID
    ) -> VerifiedPair | None:
        stmt = self._active_query(identity_a_id, identity_b_id)
        return self.session.execute(stmt).scalars().first()

    def lock_active(
        self, identity_a_id: uuid.UUID, identity_b_id: uuid.UUID
    ) -> VerifiedPair | None:
        stmt = (
            self._active_query(identity_a_id, identity_b_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalars().first()

    def for_identity(
        self, identity_id: uuid.UUID, *, status: PairStatus | None = None
    ) -> list[VerifiedPair]:
        stmt = (
            select(VerifiedPair)
            .where(
                or_(
                    verified_pair_table.c.identity_a_id == identity_id,
                    verified_pair_table.c.identity_b_id == identity_id,
                )
            )
            .order_by(verified_pair_table.c.verified_at.desc())
        )
        if status is not None:
            stmt = stmt.where(verified_pair_table.c.status == status)
        return list(self.session.execute(stmt).scalars())

    def distinct_partners(self, identity_id: uuid.UUID) -> set[uuid.UUID]:
        return {
            pair.other(identity_id)
            for pair in self.for_identity(identity_id, status=PairStatus.CONFIRMED_DISTINCT)
        }

    @staticmethod
    def _active_query(
        identity_a_id: uuid.UUID, identity_b_id: uuid.UUID
    ) -> Select[tuple[VerifiedPair]]:
        return (
            select(VerifiedPair)
            .where(verified_pair_table.c.identity_a_id == identity_a_id)
            .where(verified_pair_table.c.identity_b_id == identity_b_id)
            .where(verified_pair_table.c.status != PairStatus.REVOKED)
        )


class SqlAlchemyDisbursementProofRepository(SqlAlchemyRepository[DisbursementProof]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, DisbursementProof)

    def for_claim(self, claim_id: uuid.UUID) -> list[DisbursementProof]:
        stmt = (
            select(DisbursementProof)
            .where(disbursement_proof_table.c.claim_id == claim_id)
            .order_by(disbursement_proof_table.c.captured_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyFraudCheckOutboxRepository(SqlAlchemyRepository[FraudCheckTask]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, FraudCheckTask)

    def for_claim(self, claim_id: uuid.UUID) -> FraudCheckTask | None:
        stmt = select(FraudCheckTask).where(fraud_check_outbox_table.c.claim_id == claim_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def pending(self, *, limit: int, max_attempts: int) -> list[FraudCheckTask]:
        stmt = (
            select(FraudCheckTask)
            .where(fraud_check_outbox_table.c.completed_at.is_(None))
            .where(fraud_check_outbox_table.c.attempts < max_attempts)
            .order_by(fraud_check_outbox_table.c.enqueued_at)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def exhausted(self, *, max_attempts: int) -> list[FraudCheckTask]:
        stmt = (
            select(FraudCheckTask)
            .where(fraud_check_outbox_table.c.completed_at.is_(None))
            .where(fraud_check_outbox_table.c.attempts >= max_attempts)
            .order_by(fraud_check_outbox_table.c.enqueued_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyAuditEventRepository(SqlAlchemyRepository[AuditEvent]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, AuditEvent)

    def for_subject(self, subject_type: AuditSubject, subject_id: str) -> list[AuditEvent]:
        stmt = (
            select(AuditEvent)
            .where(audit_event_table.c.subject_type == subject_type)
            .where(audit_event_table.c.subject_id == subject_id)
            .order_by(audit_event_table.c.recorded_at)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemySystemSettingRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SystemSetting) -> None:
        self.session.add(entity)

    def get_by_key(self, key: str) -> SystemSetting | None:
        stmt = select(SystemSetting).where(system_setting_table.c.key == key)
        return self.session.execute(stmt).scalar_one_or_none()


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)
