"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from welfaregrid.domain.ports.persistence import (
        AuditEventRepository,
        ClaimRepository,
        DisbursementProofRepository,
        FraudCheckOutboxRepository,
        IdentityRepository,
        JurisdictionRepository,
        SystemSettingRepository,
        VerifiedPairRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection.

    Leaving the block without ``commit()`` discards every change and releases any
    row locks taken inside it.
    """

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class RegistryRepositories(RepositoryCollection):
    """Repositories backing the registry core."""

    jurisdictions: JurisdictionRepository
    identities: IdentityRepository
    claims: ClaimRepository
    pairs: VerifiedPairRepository
    proofs: DisbursementProofRepository
    outbox: FraudCheckOutboxRepository
    audit_events: AuditEventRepository
    settings: SystemSettingRepository


type RegistryUnitOfWork = UnitOfWork[RegistryRepositories]
type RegistryUnitOfWorkFactory = Callable[[], RegistryUnitOfWork]
