"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class AssistanceType(StrEnum):
    MEDICAL = "Medical"
    CASH = "Cash"
    BURIAL = "Burial"
    EDUCATIONAL = "Educational"
    FOOD = "Food"
    DISASTER_RELIEF = "Disaster Relief"


class Gender(StrEnum):
    MALE = "Male"
    FEMALE = "Female"


class ClaimStatus(StrEnum):
    AWAITING_FRAUD_CHECK = "AWAITING_FRAUD_CHECK"
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    DISBURSED = "DISBURSED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({ClaimStatus.DISBURSED, ClaimStatus.REJECTED, ClaimStatus.CANCELLED})


class ClaimAction(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"
    DISBURSE = "disburse"
    CANCEL = "cancel"
    MARK_UNDER_REVIEW = "mark_under_review"
    RETURN_TO_PENDING = "return_to_pending"


class PairStatus(StrEnum):
    CONFIRMED_DISTINCT = "CONFIRMED_DISTINCT"
    CONFIRMED_DUPLICATE = "CONFIRMED_DUPLICATE"
    UNDER_REVIEW = "UNDER_REVIEW"
    REVOKED = "REVOKED"

    @property
    def is_active(self) -> bool:
        return self is not PairStatus.REVOKED


class RiskLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskRule(StrEnum):
    DOUBLE_DIPPING = "double_dipping"
    HIGH_FREQUENCY = "high_frequency"


class FraudCheckResult(StrEnum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


class AuditSubject(StrEnum):
    """Typed-reference discriminator for audit records."""

    IDENTITY = "identity"
    CLAIM = "claim"
    VERIFIED_PAIR = "verified_pair"
    SYSTEM_SETTING = "system_setting"
    JURISDICTION = "jurisdiction"
