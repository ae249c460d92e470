"""Manually adjudicated identity pairs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from welfaregrid.domain.errors import PairConflict, ValidationFailure
from welfaregrid.domain.model.entity import Entity, utcnow
from welfaregrid.domain.model.enums import PairStatus

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


def canonical_pair(first: UUID, second: UUID) -> tuple[UUID, UUID]:
    """Order two identity ids so the lower key comes first.

    Applied before every pair write and lookup so ``(a, b)`` and ``(b, a)`` address
    the same row.
    """

    if first == second:
        raise ValidationFailure("A verified pair needs two distinct identities")
    return (first, second) if first < second else (second, first)


@dataclass(eq=False, kw_only=True)
class VerifiedPair(Entity):
    """Two identities a reviewer declared distinct or duplicate.

    The pair is stored in canonical order; constructing one out of order is a
    programming error. Status only ever moves to REVOKED after creation.
    """

    identity_a_id: UUID
    identity_b_id: UUID
    status: PairStatus
    reason: str
    verified_by: str
    verified_at: datetime = field(default_factory=utcnow)
    similarity_score: int | None = None
    levenshtein_distance: int | None = None
    notes: str | None = None

    revoked_by: str | None = None
    revoked_at: datetime | None = None
    revocation_reason: str | None = None

    def __post_init__(self) -> None:
        if canonical_pair(self.identity_a_id, self.identity_b_id) != (
            self.identity_a_id,
            self.identity_b_id,
        ):
            raise ValueError("VerifiedPair must be built from canonical_pair() order")

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def involves(self, identity_id: UUID) -> bool:
        return identity_id in (self.identity_a_id, self.identity_b_id)

    def other(self, identity_id: UUID) -> UUID:
        if identity_id == self.identity_a_id:
            return self.identity_b_id
        if identity_id == self.identity_b_id:
            return self.identity_a_id
        raise ValueError(f"Identity {identity_id} is not part of pair {self.id}")

    def revoke(self, *, actor: str, reason: str, at: datetime) -> None:
        if not self.is_active:
            raise PairConflict(f"Verified pair {self.id} is already revoked")
        self.status = PairStatus.REVOKED
        self.revoked_by = actor
        self.revoked_at = at
        self.revocation_reason = reason
