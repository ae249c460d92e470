"""Golden Record resolution: exact find-or-create under a row lock."""

from __future__ import annotations

from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from welfaregrid.config import ResolverConfig
from welfaregrid.domain.errors import (
    DuplicateRecord,
    NotFound,
    ResolutionConflict,
    ValidationFailure,
)
from welfaregrid.domain.model import AuditSubject, Identity, utcnow
from welfaregrid.domain.phonetics import phonetic_code

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date, datetime
    from uuid import UUID

    from welfaregrid.domain.model import Gender
    from welfaregrid.domain.ports import AuditSink, RegistryUnitOfWorkFactory

log = getLogger(__name__)


def normalize_name(value: str | None) -> str:
    """Collapse runs of whitespace and trim."""
    if value is None:
        return ""
    return " ".join(value.split())


@dataclass(frozen=True, slots=True)
class IdentityFields:
    """Identifying fields submitted at intake."""

    first_name: str
    last_name: str
    birthdate: date
    home_jurisdiction_id: UUID
    middle_name: str | None = None
    suffix: str | None = None
    gender: Gender | None = None

    def normalized(self, *, today: date) -> IdentityFields:
        first_name = normalize_name(self.first_name)
        last_name = normalize_name(self.last_name)
        missing = [
            label
            for label, value in (("first_name", first_name), ("last_name", last_name))
            if not value
        ]
        if missing:
            raise ValidationFailure(f"Missing required identity field(s): {', '.join(missing)}")
        if self.birthdate > today:
            raise ValidationFailure(f"Birthdate {self.birthdate.isoformat()} is in the future")
        return replace(
            self,
            first_name=first_name,
            last_name=last_name,
            middle_name=normalize_name(self.middle_name) or None,
            suffix=normalize_name(self.suffix) or None,
        )


class IdentityResolver:
    """Find the identity for an exact (first, last, birthdate) triple or create it.

    One call is one attempt: lock contention surfaces as ``ResolutionConflict`` and
    retrying is left to the caller (see ``welfaregrid.app.resolve_identity``). Two
    identities that differ in any field of the triple are never merged here; that is
    what the verified-pair whitelist is for.
    """

    def __init__(
        self,
        *,
        unit_of_work: RegistryUnitOfWorkFactory,
        config: ResolverConfig | None = None,
        audit: AuditSink | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._unit_of_work = unit_of_work
        self._config = config or ResolverConfig()
        self._audit = audit
        self._clock = clock

    def resolve(self, fields: IdentityFields, *, actor: str | None = None) -> Identity:
        normalized = fields.normalized(today=self._clock().date())
        try:
            identity, created = self._find_or_create(normalized, actor)
        except DuplicateRecord:
            log.info(
                "Lost identity insert race for %s %s; re-reading the winner",
                normalized.first_name,
                normalized.last_name,
            )
            return self._reread(normalized)

        if created and self._audit is not None:
            self._audit.record(
                "identity.created",
                (AuditSubject.IDENTITY, identity.id),
                actor or "system",
                {"phonetic_code": identity.phonetic_code},
            )
        return identity

    def _find_or_create(self, fields: IdentityFields, actor: str | None) -> tuple[Identity, bool]:
        with self._unit_of_work() as uow:
            repositories = uow.repositories
            existing = repositories.identities.lock_by_natural_key(
                fields.first_name,
                fields.last_name,
                fields.birthdate,
                lock_timeout_ms=self._config.lock_timeout_ms,
            )
            if existing is not None:
                return existing, False

            if repositories.jurisdictions.get(fields.home_jurisdiction_id) is None:
                raise NotFound("jurisdiction", fields.home_jurisdiction_id)

            identity = Identity(
                first_name=fields.first_name,
                last_name=fields.last_name,
                birthdate=fields.birthdate,
                home_jurisdiction_id=fields.home_jurisdiction_id,
                middle_name=fields.middle_name,
                suffix=fields.suffix,
                gender=fields.gender,
                phonetic_code=phonetic_code(fields.last_name),
                created_at=self._clock(),
                created_by=actor,
            )
            repositories.identities.add(identity)
            uow.commit()
            log.info("Created identity %s (%s)", identity.id, identity.phonetic_code)
            return identity, True

    def _reread(self, fields: IdentityFields) -> Identity:
        with self._unit_of_work() as uow:
            winner = uow.repositories.identities.find_by_natural_key(
                fields.first_name, fields.last_name, fields.birthdate
            )
        if winner is None:
            raise ResolutionConflict(
                f"Identity insert for {fields.first_name} {fields.last_name} conflicted "
                "but no committed record was found"
            )
        return winner


__all__ = ["IdentityFields", "IdentityResolver", "normalize_name"]
