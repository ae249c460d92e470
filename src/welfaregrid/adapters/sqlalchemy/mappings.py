"""SQLAlchemy mapping metadata for the registry domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    false,
    orm,
    text,
    true,
)
from sqlalchemy.orm import configure_mappers

from welfaregrid.domain.model import (
    AssistanceType,
    AuditEvent,
    AuditSubject,
    Claim,
    ClaimStatus,
    DisbursementProof,
    FraudCheckTask,
    Gender,
    Identity,
    Jurisdiction,
    PairStatus,
    SystemSetting,
    VerifiedPair,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]
MoneyType = Numeric(14, 2, asdecimal=True)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum(enum_cls: type) -> Enum:
    # store the enum value (e.g. "Disaster Relief"), not the member name
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Registry ---------------------------------------------------------------------

jurisdiction_table = Table(
    "jurisdiction",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String(255), nullable=False),
    Column("code", String(32), nullable=False, unique=True),
    Column("allocated_budget", MoneyType, nullable=False, server_default=text("0")),
    Column("used_budget", MoneyType, nullable=False, server_default=text("0")),
    Column("is_active", Boolean, nullable=False, server_default=true()),
)

identity_table = Table(
    "identity",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("first_name", String(255), nullable=False),
    Column("middle_name", String(255), nullable=True),
    Column("last_name", String(255), nullable=False),
    Column("suffix", String(32), nullable=True),
    Column("birthdate", Date, nullable=False),
    Column("gender", _enum(Gender), nullable=True),
    Column("phonetic_code", String(8), nullable=False),
    Column(
        "home_jurisdiction_id",
        UUIDColumnType,
        ForeignKey("jurisdiction.id"),
        nullable=False,
    ),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("created_by", String(255), nullable=True),
    UniqueConstraint("first_name", "last_name", "birthdate", name="uq_identity_natural_key"),
    Index("ix_identity_phonetic_code", "phonetic_code"),
)

# Claims -------------------------------------------------------------------------

claim_table = Table(
    "claim",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("identity_id", UUIDColumnType, ForeignKey("identity.id"), nullable=False),
    Column("jurisdiction_id", UUIDColumnType, ForeignKey("jurisdiction.id"), nullable=False),
    Column("assistance_type", _enum(AssistanceType), nullable=False),
    Column("amount", MoneyType, nullable=False),
    Column("purpose", Text, nullable=True),
    Column("status", _enum(ClaimStatus), nullable=False),
    Column("is_flagged", Boolean, nullable=False, server_default=false()),
    Column("flag_reason", Text, nullable=True),
    Column("risk_assessment", JSON(none_as_null=True), nullable=True),
    Column("fraud_checked_at", UTCDateTime(), nullable=True),
    Column("created_by", String(255), nullable=True),
    Column("processed_by", String(255), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    Column("approved_at", UTCDateTime(), nullable=True),
    Column("disbursed_at", UTCDateTime(), nullable=True),
    Column("rejected_at", UTCDateTime(), nullable=True),
    Column("rejection_reason", Text, nullable=True),
    Index("ix_claim_identity_created", "identity_id", "created_at"),
    Index("ix_claim_status_flagged", "status", "is_flagged"),
)

disbursement_proof_table = Table(
    "disbursement_proof",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("claim_id", UUIDColumnType, ForeignKey("claim.id", ondelete="CASCADE"), nullable=False),
    Column("reference", String(255), nullable=False),
    Column("captured_by", String(255), nullable=False),
    Column("captured_at", UTCDateTime(), nullable=False),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
    Index("ix_disbursement_proof_claim", "claim_id"),
)

fraud_check_outbox_table = Table(
    "fraud_check_outbox",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "claim_id",
        UUIDColumnType,
        ForeignKey("claim.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("enqueued_at", UTCDateTime(), nullable=False),
    Column("attempts", Integer, nullable=False, server_default=text("0")),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("outcome", String(16), nullable=True),
    Index("ix_fraud_check_outbox_pending", "completed_at", "enqueued_at"),
)

# Whitelist ----------------------------------------------------------------------

verified_pair_table = Table(
    "verified_pair",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("identity_a_id", UUIDColumnType, ForeignKey("identity.id"), nullable=False),
    Column("identity_b_id", UUIDColumnType, ForeignKey("identity.id"), nullable=False),
    Column("status", _enum(PairStatus), nullable=False),
    Column("similarity_score", Integer, nullable=True),
    Column("levenshtein_distance", Integer, nullable=True),
    Column("reason", Text, nullable=False),
    Column("notes", Text, nullable=True),
    Column("verified_by", String(255), nullable=False),
    Column("verified_at", UTCDateTime(), nullable=False),
    Column("revoked_by", String(255), nullable=True),
    Column("revoked_at", UTCDateTime(), nullable=True),
    Column("revocation_reason", Text, nullable=True),
    Index("ix_verified_pair_members", "identity_a_id", "identity_b_id"),
    Index(
        "uq_verified_pair_active",
        "identity_a_id",
        "identity_b_id",
        unique=True,
        sqlite_where=text("status != 'REVOKED'"),
        postgresql_where=text("status != 'REVOKED'"),
    ),
)

# Records ------------------------------------------------------------------------

audit_event_table = Table(
    "audit_event",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("event", String(64), nullable=False),
    Column("subject_type", _enum(AuditSubject), nullable=False),
    Column("subject_id", String(64), nullable=False),
    Column("actor", String(255), nullable=False),
    Column("properties", JSON, nullable=False),
    Column("recorded_at", UTCDateTime(), nullable=False),
    Index("ix_audit_event_subject", "subject_type", "subject_id"),
)

system_setting_table = Table(
    "system_setting",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("key", String(64), nullable=False, unique=True),
    Column("value", Text, nullable=False),
    Column("data_type", String(16), nullable=False, server_default=text("'integer'")),
    Column("description", Text, nullable=True),
    Column("updated_by", String(255), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=False),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Jurisdiction, jurisdiction_table)
    mapper_registry.map_imperatively(Identity, identity_table)
    mapper_registry.map_imperatively(Claim, claim_table)
    mapper_registry.map_imperatively(DisbursementProof, disbursement_proof_table)
    mapper_registry.map_imperatively(FraudCheckTask, fraud_check_outbox_table)
    mapper_registry.map_imperatively(VerifiedPair, verified_pair_table)
    mapper_registry.map_imperatively(AuditEvent, audit_event_table)
    mapper_registry.map_imperatively(SystemSetting, system_setting_table)

    configure_mappers()
    return mapper_registry

