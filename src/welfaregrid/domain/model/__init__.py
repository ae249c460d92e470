"""Public domain model surface."""

from __future__ import annotations

from welfaregrid.domain.model.claim import Claim, DisbursementProof, FraudCheckTask
from welfaregrid.domain.model.entity import Entity, new_id, utcnow
from welfaregrid.domain.model.enums import (
    AssistanceType,
    AuditSubject,
    ClaimAction,
    ClaimStatus,
    FraudCheckResult,
    Gender,
    PairStatus,
    RiskLevel,
    RiskRule,
)
from welfaregrid.domain.model.identity import Identity, Jurisdiction
from welfaregrid.domain.model.pair import VerifiedPair, canonical_pair
from welfaregrid.domain.model.records import AuditEvent, SystemSetting

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "new_id",
    "utcnow",
    # registry
    "Identity",
    "Jurisdiction",
    # claims
    "Claim",
    "DisbursementProof",
    "FraudCheckTask",
    # whitelist
    "VerifiedPair",
    "canonical_pair",
    # records
    "AuditEvent",
    "SystemSetting",
    # enums
    "AssistanceType",
    "AuditSubject",
    "ClaimAction",
    "ClaimStatus",
    "FraudCheckResult",
    "Gender",
    "PairStatus",
    "RiskLevel",
    "RiskRule",
]
