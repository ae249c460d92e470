"""Initial registry schema with seeded fraud-detection thresholds.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 09:00:00
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

import sqlalchemy as sa
from alembic import op

from welfaregrid.config import THRESHOLDS

revision: str = "0001_initial"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_UUID = sa.Uuid()
_MONEY = sa.Numeric(14, 2, asdecimal=True)


def _timestamp(name: str, *, nullable: bool = True) -> sa.Column[datetime]:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "jurisdiction",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("allocated_budget", _MONEY, server_default=sa.text("0"), nullable=False),
        sa.Column("used_budget", _MONEY, server_default=sa.text("0"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_jurisdiction"),
        sa.UniqueConstraint("code", name="uq_jurisdiction_code"),
    )

    op.create_table(
        "identity",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("middle_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=False),
        sa.Column("suffix", sa.String(length=32), nullable=True),
        sa.Column("birthdate", sa.Date(), nullable=False),
        sa.Column("gender", sa.String(length=32), nullable=True),
        sa.Column("phonetic_code", sa.String(length=8), nullable=False),
        sa.Column("home_jurisdiction_id", _UUID, nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _timestamp("created_at", nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(
            ["home_jurisdiction_id"],
            ["jurisdiction.id"],
            name="fk_identity_home_jurisdiction_id_jurisdiction",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_identity"),
        sa.UniqueConstraint(
            "first_name", "last_name", "birthdate", name="uq_identity_natural_key"
        ),
    )
    op.create_index("ix_identity_phonetic_code", "identity", ["phonetic_code"])

    op.create_table(
        "claim",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("identity_id", _UUID, nullable=False),
        sa.Column("jurisdiction_id", _UUID, nullable=False),
        sa.Column("assistance_type", sa.String(length=32), nullable=False),
        sa.Column("amount", _MONEY, nullable=False),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("is_flagged", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("flag_reason", sa.Text(), nullable=True),
        sa.Column("risk_assessment", sa.JSON(), nullable=True),
        _timestamp("fraud_checked_at"),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("processed_by", sa.String(length=255), nullable=True),
        _timestamp("created_at", nullable=False),
        _timestamp("updated_at"),
        _timestamp("approved_at"),
        _timestamp("disbursed_at"),
        _timestamp("rejected_at"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["identity_id"], ["identity.id"], name="fk_claim_identity_id_identity"
        ),
        sa.ForeignKeyConstraint(
            ["jurisdiction_id"], ["jurisdiction.id"], name="fk_claim_jurisdiction_id_jurisdiction"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_claim"),
    )
    op.create_index("ix_claim_identity_created", "claim", ["identity_id", "created_at"])
    op.create_index("ix_claim_status_flagged", "claim", ["status", "is_flagged"])

    op.create_table(
        "disbursement_proof",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("claim_id", _UUID, nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=False),
        sa.Column("captured_by", sa.String(length=255), nullable=False),
        _timestamp("captured_at", nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(
            ["claim_id"],
            ["claim.id"],
            name="fk_disbursement_proof_claim_id_claim",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_disbursement_proof"),
    )
    op.create_index("ix_disbursement_proof_claim", "disbursement_proof", ["claim_id"])

    op.create_table(
        "fraud_check_outbox",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("claim_id", _UUID, nullable=False),
        _timestamp("enqueued_at", nullable=False),
        sa.Column("attempts", sa.Integer(), server_default=sa.text("0"), nullable=False),
        _timestamp("completed_at"),
        sa.Column("outcome", sa.String(length=16), nullable=True),
        sa.ForeignKeyConstraint(
            ["claim_id"],
            ["claim.id"],
            name="fk_fraud_check_outbox_claim_id_claim",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_fraud_check_outbox"),
        sa.UniqueConstraint("claim_id", name="uq_fraud_check_outbox_claim_id"),
    )
    op.create_index(
        "ix_fraud_check_outbox_pending", "fraud_check_outbox", ["completed_at", "enqueued_at"]
    )

    op.create_table(
        "verified_pair",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("identity_a_id", _UUID, nullable=False),
        sa.Column("identity_b_id", _UUID, nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("similarity_score", sa.Integer(), nullable=True),
        sa.Column("levenshtein_distance", sa.Integer(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("verified_by", sa.String(length=255), nullable=False),
        _timestamp("verified_at", nullable=False),
        sa.Column("revoked_by", sa.String(length=255), nullable=True),
        _timestamp("revoked_at"),
        sa.Column("revocation_reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["identity_a_id"], ["identity.id"], name="fk_verified_pair_identity_a_id_identity"
        ),
        sa.ForeignKeyConstraint(
            ["identity_b_id"], ["identity.id"], name="fk_verified_pair_identity_b_id_identity"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_verified_pair"),
    )
    op.create_index(
        "ix_verified_pair_members", "verified_pair", ["identity_a_id", "identity_b_id"]
    )
    op.create_index(
        "uq_verified_pair_active",
        "verified_pair",
        ["identity_a_id", "identity_b_id"],
        unique=True,
        sqlite_where=sa.text("status != 'REVOKED'"),
        postgresql_where=sa.text("status != 'REVOKED'"),
    )

    op.create_table(
        "audit_event",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("event", sa.String(length=64), nullable=False),
        sa.Column("subject_type", sa.String(length=32), nullable=False),
        sa.Column("subject_id", sa.String(length=64), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("properties", sa.JSON(), nullable=False),
        _timestamp("recorded_at", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_audit_event"),
    )
    op.create_index("ix_audit_event_subject", "audit_event", ["subject_type", "subject_id"])

    system_setting = op.create_table(
        "system_setting",
        sa.Column("id", _UUID, nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column(
            "data_type", sa.String(length=16), server_default=sa.text("'integer'"), nullable=False
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.String(length=255), nullable=True),
        _timestamp("updated_at", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_system_setting"),
        sa.UniqueConstraint("key", name="uq_system_setting_key"),
    )
    seeded_at = datetime.now(tz=UTC).replace(tzinfo=None)
    op.bulk_insert(
        system_setting,
        [
            {
                "id": uuid.uuid4(),
                "key": key.value,
                "value": str(spec.default),
                "data_type": "integer",
                "description": spec.description,
                "updated_by": "migration:0001_initial",
                "updated_at": seeded_at,
            }
            for key, spec in THRESHOLDS.items()
        ],
    )


def downgrade() -> None:
    op.drop_table("system_setting")
    op.drop_index("ix_audit_event_subject", table_name="audit_event")
    op.drop_table("audit_event")
    op.drop_index("uq_verified_pair_active", table_name="verified_pair")
    op.drop_index("ix_verified_pair_members", table_name="verified_pair")
    op.drop_table("verified_pair")
    op.drop_index("ix_fraud_check_outbox_pending", table_name="fraud_check_outbox")
    op.drop_table("fraud_check_outbox")
    op.drop_index("ix_disbursement_proof_claim", table_name="disbursement_proof")
    op.drop_table("disbursement_proof")
    op.drop_index("ix_claim_status_flagged", table_name="claim")
    op.drop_index("ix_claim_identity_created", table_name="claim")
    op.drop_table("claim")
    op.drop_index("ix_identity_phonetic_code", table_name="identity")
    op.drop_table("identity")
    op.drop_table("jurisdiction")
