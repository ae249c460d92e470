"""Fuzzy duplicate search: Soundex pre-filter, edit-distance refinement, whitelist."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from rapidfuzz.distance import Levenshtein

from welfaregrid.config import ThresholdKey
from welfaregrid.domain.phonetics import phonetic_code

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID

    from welfaregrid.domain.model import Identity
    from welfaregrid.domain.ports import (
        RegistryRepositories,
        RegistryUnitOfWorkFactory,
        ThresholdProvider,
    )

log = getLogger(__name__)

_NO_ACTIVITY = datetime.min.replace(tzinfo=UTC)


def match_name(first_name: str, last_name: str) -> str:
    return " ".join(f"{first_name} {last_name}".split()).lower()


def name_distance(left: str, right: str) -> int:
    """Character-level edit distance (insert, delete, substitute)."""
    return Levenshtein.distance(left, right)


def similarity_score(distance: int) -> int:
    return max(0, 100 - distance * 10)


@dataclass(frozen=True, slots=True)
class CandidateMatch:
    identity: Identity
    distance: int
    score: int
    last_claim_at: datetime | None = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "identity_id": str(self.identity.id),
            "full_name": self.identity.full_name,
            "birthdate": self.identity.birthdate.isoformat(),
            "distance": self.distance,
            "score": self.score,
            "last_claim_at": self.last_claim_at.isoformat() if self.last_claim_at else None,
        }


def rank_candidates(
    repositories: RegistryRepositories,
    first_name: str,
    last_name: str,
    *,
    max_distance: int,
    exclude_identity_id: UUID | None = None,
) -> list[CandidateMatch]:
    """Rank stored identities against a name inside an already open unit of work."""

    code = phonetic_code(last_name)
    if not code:
        return []

    suppressed: set[UUID] = set()
    if exclude_identity_id is not None:
        suppressed = repositories.pairs.distinct_partners(exclude_identity_id)
        suppressed.add(exclude_identity_id)

    query = match_name(first_name, last_name)
    kept: list[tuple[Identity, int]] = []
    for identity in repositories.identities.find_by_phonetic_code(code):
        if identity.id in suppressed or not identity.is_active:
            continue
        distance = name_distance(query, match_name(identity.first_name, identity.last_name))
        if distance <= max_distance:
            kept.append((identity, distance))

    activity = repositories.claims.latest_activity(identity.id for identity, _ in kept)
    matches = [
        CandidateMatch(
            identity=identity,
            distance=distance,
            score=similarity_score(distance),
            last_claim_at=activity.get(identity.id),
        )
        for identity, distance in kept
    ]
    matches.sort(key=lambda match: match.last_claim_at or _NO_ACTIVITY, reverse=True)
    matches.sort(key=lambda match: match.score, reverse=True)
    log.debug("Ranked %d candidate(s) for phonetic code %s", len(matches), code)
    return matches


class HybridMatcher:
    """Read-only duplicate search over the identity registry."""

    def __init__(
        self,
        *,
        unit_of_work: RegistryUnitOfWorkFactory,
        thresholds: ThresholdProvider,
    ) -> None:
        self._unit_of_work = unit_of_work
        self._thresholds = thresholds

    def find_duplicate_candidates(
        self,
        first_name: str,
        last_name: str,
        birthdate: date,
        exclude_identity_id: UUID | None = None,
    ) -> list[CandidateMatch]:
        """Rank stored identities that sound and spell like the queried name.

        ``birthdate`` only identifies the query itself when it is already on file (so
        it is left out and its whitelisted partners are suppressed); it never narrows
        the candidates, since a mistyped birthdate must still surface the record.
        """

        max_distance = self._thresholds.get_int(ThresholdKey.LEVENSHTEIN_DISTANCE_THRESHOLD)
        with self._unit_of_work() as uow:
            repositories = uow.repositories
            if exclude_identity_id is None:
                itself = repositories.identities.find_by_natural_key(
                    " ".join(first_name.split()), " ".join(last_name.split()), birthdate
                )
                exclude_identity_id = itself.id if itself is not None else None
            return rank_candidates(
                repositories,
                first_name,
                last_name,
                max_distance=max_distance,
                exclude_identity_id=exclude_identity_id,
            )


__all__ = [
    "CandidateMatch",
    "HybridMatcher",
    "match_name",
    "name_distance",
    "rank_candidates",
    "similarity_score",
]
