"""Claim risk scoring: deterministic history rules plus similarity-derived level."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from logging import getLogger
from typing import TYPE_CHECKING, Any

from welfaregrid.config import ThresholdKey
from welfaregrid.domain.errors import NotFound
from welfaregrid.domain.matching import CandidateMatch, rank_candidates
from welfaregrid.domain.model import RiskLevel, RiskRule, utcnow
from welfaregrid.domain.time_windows import TimeWindow, ensure_aware

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from welfaregrid.domain.model import AssistanceType, Claim, ClaimStatus
    from welfaregrid.domain.ports import (
        RegistryRepositories,
        RegistryUnitOfWorkFactory,
        ThresholdProvider,
    )
    from welfaregrid.domain.time_windows import Clock

log = getLogger(__name__)

HIGH_SCORE = 90
MEDIUM_SCORE = 70
HIGH_MATCH_COUNT = 3
MEDIUM_MATCH_COUNT = 2
DETAIL_SEPARATOR = " | "
NO_RISK_DETAIL = "No fraud risk detected."


@dataclass(frozen=True, slots=True)
class RiskThresholds:
    lookback_days: int
    same_type_days: int
    high_frequency: int
    max_distance: int

    @classmethod
    def read(cls, provider: ThresholdProvider) -> RiskThresholds:
        return cls(
            lookback_days=provider.get_int(ThresholdKey.RISK_THRESHOLD_DAYS),
            same_type_days=provider.get_int(ThresholdKey.SAME_TYPE_THRESHOLD_DAYS),
            high_frequency=provider.get_int(ThresholdKey.HIGH_FREQUENCY_THRESHOLD),
            max_distance=provider.get_int(ThresholdKey.LEVENSHTEIN_DISTANCE_THRESHOLD),
        )

    def snapshot(self) -> dict[str, int]:
        return {
            ThresholdKey.RISK_THRESHOLD_DAYS.value: self.lookback_days,
            ThresholdKey.SAME_TYPE_THRESHOLD_DAYS.value: self.same_type_days,
            ThresholdKey.HIGH_FREQUENCY_THRESHOLD.value: self.high_frequency,
            ThresholdKey.LEVENSHTEIN_DISTANCE_THRESHOLD.value: self.max_distance,
        }


@dataclass(frozen=True, slots=True)
class RecentClaim:
    claim_id: UUID
    jurisdiction_id: UUID
    assistance_type: AssistanceType
    amount: Decimal
    status: ClaimStatus
    created_at: datetime

    @classmethod
    def from_claim(cls, claim: Claim) -> RecentClaim:
        return cls(
            claim_id=claim.id,
            jurisdiction_id=claim.jurisdiction_id,
            assistance_type=claim.assistance_type,
            amount=claim.amount,
            status=claim.status,
            created_at=claim.created_at,
        )

    def snapshot(self) -> dict[str, Any]:
        return {
            "claim_id": str(self.claim_id),
            "jurisdiction_id": str(self.jurisdiction_id),
            "assistance_type": self.assistance_type.value,
            "amount": str(self.amount),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class RiskVerdict:
    """Outcome of one assessment. Not re-derivable later: thresholds and history move."""

    level: RiskLevel
    is_risky: bool
    details: str
    thresholds: RiskThresholds
    assessed_at: datetime
    fired_rules: tuple[RiskRule, ...] = ()
    matches: tuple[CandidateMatch, ...] = ()
    recent_claims: tuple[RecentClaim, ...] = ()

    @property
    def best_score(self) -> int:
        return max((match.score for match in self.matches), default=0)

    def snapshot(self) -> dict[str, Any]:
        """JSON-safe payload embedded into the claim for audit."""
        return {
            "risk_level": self.level.value,
            "is_risky": self.is_risky,
            "details": self.details,
            "fired_rules": [rule.value for rule in self.fired_rules],
            "matches": [match.snapshot() for match in self.matches],
            "recent_claims": [claim.snapshot() for claim in self.recent_claims],
            "thresholds": self.thresholds.snapshot(),
            "assessed_at": self.assessed_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class RiskReport:
    identity_id: UUID
    lookback_days: int
    claim_count: int
    jurisdiction_ids: tuple[UUID, ...]
    assistance_types: tuple[AssistanceType, ...]
    total_amount: Decimal
    recent_claims: tuple[RecentClaim, ...] = ()


def derive_level(matches: Sequence[CandidateMatch], fired_rules: Sequence[RiskRule]) -> RiskLevel:
    best = max((match.score for match in matches), default=0)
    count = len(matches)
    if best >= HIGH_SCORE or count >= HIGH_MATCH_COUNT:
        level = RiskLevel.HIGH
    elif best >= MEDIUM_SCORE or count >= MEDIUM_MATCH_COUNT:
        level = RiskLevel.MEDIUM
    else:
        level = RiskLevel.LOW
    if fired_rules and level is RiskLevel.LOW:
        return RiskLevel.MEDIUM
    return level


class RiskScorer:
    """Assess a prospective or persisted claim for an identity.

    Thresholds are read from the provider on every call; nothing is cached here.
    """

    def __init__(
        self,
        *,
        unit_of_work: RegistryUnitOfWorkFactory,
        thresholds: ThresholdProvider,
        clock: Clock = utcnow,
    ) -> None:
        self._unit_of_work = unit_of_work
        self._thresholds = thresholds
        self._clock = clock

    def assess_risk(
        self,
        identity_id: UUID,
        assistance_type: AssistanceType,
        *,
        as_of: datetime | None = None,
        claim_id: UUID | None = None,
    ) -> RiskVerdict:
        thresholds = RiskThresholds.read(self._thresholds)
        anchor = ensure_aware(as_of) if as_of is not None else self._clock()
        lookback = TimeWindow.trailing(thresholds.lookback_days, end=anchor)
        same_type = TimeWindow.trailing(thresholds.same_type_days, end=anchor)

        with self._unit_of_work() as uow:
            repositories = uow.repositories
            identity = repositories.identities.get(identity_id)
            if identity is None:
                raise NotFound("identity", identity_id)

            history = [
                claim
                for claim in repositories.claims.history_for_identity(
                    identity_id, since=min(lookback.start, same_type.start)
                )
                if claim.id != claim_id and claim.created_at <= anchor
            ]
            citations: list[str] = []
            fired: list[RiskRule] = []

            repeats = [
                claim
                for claim in history
                if claim.assistance_type == assistance_type and same_type.contains(claim.created_at)
            ]
            if repeats:
                fired.append(RiskRule.DOUBLE_DIPPING)
                citations.append(self._double_dipping_citation(repositories, repeats[0], anchor))

            recent = [claim for claim in history if lookback.contains(claim.created_at)]
            # the claim under assessment counts towards frequency
            frequency = len(recent) + 1
            if frequency > thresholds.high_frequency:
                fired.append(RiskRule.HIGH_FREQUENCY)
                citations.append(
                    f"High frequency: {frequency} claims in the last "
                    f"{thresholds.lookback_days} days"
                )

            matches = rank_candidates(
                repositories,
                identity.first_name,
                identity.last_name,
                max_distance=thresholds.max_distance,
                exclude_identity_id=identity.id,
            )

        if matches:
            best = max(match.score for match in matches)
            noun = "identity" if len(matches) == 1 else "identities"
            citations.append(f"{len(matches)} similar {noun} on file (best score {best})")

        level = derive_level(matches, fired)
        is_risky = bool(fired) or level is not RiskLevel.LOW
        verdict = RiskVerdict(
            level=level,
            is_risky=is_risky,
            details=DETAIL_SEPARATOR.join(citations) if citations else NO_RISK_DETAIL,
            thresholds=thresholds,
            assessed_at=anchor,
            fired_rules=tuple(fired),
            matches=tuple(matches),
            recent_claims=tuple(RecentClaim.from_claim(claim) for claim in recent),
        )
        log.debug(
            "Assessed identity %s for %s: %s (rules=%s, matches=%d)",
            identity_id,
            assistance_type.value,
            level.value,
            [rule.value for rule in fired],
            len(matches),
        )
        return verdict

    def risk_report(self, identity_id: UUID, *, as_of: datetime | None = None) -> RiskReport:
        """Summarise an identity's claim activity inside the lookback window."""

        lookback_days = self._thresholds.get_int(ThresholdKey.RISK_THRESHOLD_DAYS)
        anchor = ensure_aware(as_of) if as_of is not None else self._clock()
        window = TimeWindow.trailing(lookback_days, end=anchor)
        with self._unit_of_work() as uow:
            repositories = uow.repositories
            if repositories.identities.get(identity_id) is None:
                raise NotFound("identity", identity_id)
            claims = [
                claim
                for claim in repositories.claims.history_for_identity(
                    identity_id, since=window.start
                )
                if window.contains(claim.created_at)
            ]

        return RiskReport(
            identity_id=identity_id,
            lookback_days=lookback_days,
            claim_count=len(claims),
            jurisdiction_ids=tuple(dict.fromkeys(claim.jurisdiction_id for claim in claims)),
            assistance_types=tuple(dict.fromkeys(claim.assistance_type for claim in claims)),
            total_amount=sum((claim.amount for claim in claims), Decimal("0.00")),
            recent_claims=tuple(RecentClaim.from_claim(claim) for claim in claims),
        )

    @staticmethod
    def _double_dipping_citation(
        repositories: RegistryRepositories, claim: Claim, anchor: datetime
    ) -> str:
        days_ago = (anchor - claim.created_at).days
        jurisdiction = repositories.jurisdictions.get(claim.jurisdiction_id)
        where = jurisdiction.name if jurisdiction is not None else "an unknown jurisdiction"
        return (
            f"Double-dipping: received {claim.assistance_type.value} assistance "
            f"{days_ago} days ago from {where}"
        )


__all__ = [
    "RecentClaim",
    "RiskReport",
    "RiskScorer",
    "RiskThresholds",
    "RiskVerdict",
    "derive_level",
]
