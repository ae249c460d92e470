"""Verified-pair whitelist: adjudicated identity pairs that override matching."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from welfaregrid.domain.errors import DuplicateRecord, NotFound, PairConflict, ValidationFailure
from welfaregrid.domain.model import AuditSubject, PairStatus, VerifiedPair, canonical_pair, utcnow

if TYPE_CHECKING:
    from uuid import UUID

    from welfaregrid.domain.ports import AuditSink, RegistryUnitOfWorkFactory
    from welfaregrid.domain.time_windows import Clock

log = getLogger(__name__)


def _require_text(label: str, value: str | None) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailure(f"{label} is required")
    return cleaned


class PairWhitelist:
    """Record, revoke and look up verified pairs.

    Pairs are addressed in canonical order; at most one active pair exists for any
    unordered pair of identities. Revocation is the only mutation after creation.
    """

    def __init__(
        self,
        *,
        unit_of_work: RegistryUnitOfWorkFactory,
        audit: AuditSink,
        clock: Clock = utcnow,
    ) -> None:
        self._unit_of_work = unit_of_work
        self._audit = audit
        self._clock = clock

    def verify_pair(
        self,
        identity_a: UUID,
        identity_b: UUID,
        status: PairStatus,
        reason: str,
        actor: str,
        *,
        similarity_score: int | None = None,
        distance: int | None = None,
        notes: str | None = None,
    ) -> VerifiedPair:
        status = PairStatus(status)
        if status is PairStatus.REVOKED:
            raise ValidationFailure("A pair cannot be created in REVOKED status")
        reason = _require_text("reason", reason)
        actor = _require_text("actor", actor)
        low, high = canonical_pair(identity_a, identity_b)

        try:
            with self._unit_of_work() as uow:
                repositories = uow.repositories
                for identity_id in (low, high):
                    if repositories.identities.get(identity_id) is None:
                        raise NotFound("identity", identity_id)
                existing = repositories.pairs.lock_active(low, high)
                if existing is not None:
                    raise PairConflict(
                        f"Identities {low} and {high} already have active pair {existing.id} "
                        f"({existing.status.value}); revoke it first"
                    )
                pair = VerifiedPair(
                    identity_a_id=low,
                    identity_b_id=high,
                    status=status,
                    reason=reason,
                    verified_by=actor,
                    verified_at=self._clock(),
                    similarity_score=similarity_score,
                    levenshtein_distance=distance,
                    notes=notes,
                )
                repositories.pairs.add(pair)
                uow.commit()
        except DuplicateRecord as exc:
            raise PairConflict(
                f"Identities {low} and {high} gained an active pair concurrently"
            ) from exc

        log.info("Pair %s recorded as %s by %s", pair.id, status.value, actor)
        self._audit.record(
            "pair.verified",
            (AuditSubject.VERIFIED_PAIR, pair.id),
            actor,
            {
                "identity_a_id": str(low),
                "identity_b_id": str(high),
                "status": status.value,
                "reason": reason,
                "similarity_score": similarity_score,
                "levenshtein_distance": distance,
            },
        )
        return pair

    def revoke_pair(self, pair_id: UUID, actor: str, reason: str) -> None:
        actor = _require_text("actor", actor)
        reason = _require_text("reason", reason)
        with self._unit_of_work() as uow:
            pair = uow.repositories.pairs.lock(pair_id)
            if pair is None:
                raise NotFound("verified pair", pair_id)
            previous = pair.status
            pair.revoke(actor=actor, reason=reason, at=self._clock())
            uow.commit()

        log.info("Pair %s revoked by %s", pair_id, actor)
        self._audit.record(
            "pair.revoked",
            (AuditSubject.VERIFIED_PAIR, pair_id),
            actor,
            {"previous_status": previous.value, "reason": reason},
        )

    def lookup_pair(self, identity_a: UUID, identity_b: UUID) -> VerifiedPair | None:
        low, high = canonical_pair(identity_a, identity_b)
        with self._unit_of_work() as uow:
            return uow.repositories.pairs.find_active(low, high)

    def pairs_for_identity(
        self, identity_id: UUID, status: PairStatus | None = None
    ) -> list[VerifiedPair]:
        with self._unit_of_work() as uow:
            return uow.repositories.pairs.for_identity(identity_id, status=status)


__all__ = ["PairWhitelist", "canonical_pair"]
