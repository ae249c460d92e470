"""Domain ports."""

from __future__ import annotations

from .persistence import (
    AuditEventRepository,
    ClaimRepository,
    DisbursementProofRepository,
    FraudCheckOutboxRepository,
    IdentityRepository,
    JurisdictionRepository,
    LockingRepository,
    Repository,
    SystemSettingRepository,
    VerifiedPairRepository,
)
from .services import AuditSink, FraudCheckDispatcher, SettingsStore, ThresholdProvider
from .unit_of_work import (
    RegistryRepositories,
    RegistryUnitOfWork,
    RegistryUnitOfWorkFactory,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "AuditEventRepository",
    "AuditSink",
    "ClaimRepository",
    "DisbursementProofRepository",
    "FraudCheckDispatcher",
    "FraudCheckOutboxRepository",
    "IdentityRepository",
    "JurisdictionRepository",
    "LockingRepository",
    "RegistryRepositories",
    "RegistryUnitOfWork",
    "RegistryUnitOfWorkFactory",
    "Repository",
    "RepositoryCollection",
    "SettingsStore",
    "SystemSettingRepository",
    "ThresholdProvider",
    "UnitOfWork",
    "VerifiedPairRepository",
]
