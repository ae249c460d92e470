"""SQLAlchemy adapter package for welfaregrid."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAuditEventRepository,
    SqlAlchemyClaimRepository,
    SqlAlchemyDisbursementProofRepository,
    SqlAlchemyFraudCheckOutboxRepository,
    SqlAlchemyIdentityRepository,
    SqlAlchemyJurisdictionRepository,
    SqlAlchemySystemSettingRepository,
    SqlAlchemyVerifiedPairRepository,
)
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    build_engine,
    configured_engine,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAuditEventRepository",
    "SqlAlchemyClaimRepository",
    "SqlAlchemyDisbursementProofRepository",
    "SqlAlchemyFraudCheckOutboxRepository",
    "SqlAlchemyIdentityRepository",
    "SqlAlchemyJurisdictionRepository",
    "SqlAlchemySystemSettingRepository",
    "SqlAlchemyUnitOfWork",
    "SqlAlchemyVerifiedPairRepository",
    "StartupError",
    "build_engine",
    "configured_engine",
    "mapper_registry",
    "shutdown",
    "startup",
]
