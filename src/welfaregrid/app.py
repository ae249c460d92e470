"""Application wiring and the registry core's entry points."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from logging import getLogger
from typing import TYPE_CHECKING

from welfaregrid.adapters.audit import SqlAlchemyAuditSink
from welfaregrid.adapters.dispatch import InlineFraudCheckDispatcher
from welfaregrid.adapters.settings import SqlAlchemySettingsStore
from welfaregrid.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from welfaregrid.config import (
    get_fraud_check_config,
    get_resolver_config,
    get_settings_cache_config,
)
from welfaregrid.domain.configuration import CachedThresholdProvider
from welfaregrid.domain.errors import ResolutionConflict, ValidationFailure
from welfaregrid.domain.fraud_check import FraudCheckRunner
from welfaregrid.domain.fraud_check import relay_pending_fraud_checks as relay_outbox
from welfaregrid.domain.identity_resolution import IdentityResolver
from welfaregrid.domain.lifecycle import CENTS, ClaimLifecycle
from welfaregrid.domain.matching import HybridMatcher
from welfaregrid.domain.model import AuditSubject, Jurisdiction
from welfaregrid.domain.risk import RiskScorer
from welfaregrid.domain.whitelist import PairWhitelist

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID

    from welfaregrid.adapters.dispatch import FraudCheckTarget
    from welfaregrid.config import FraudCheckConfig, ResolverConfig
    from welfaregrid.domain.fraud_check import FraudCheckOutcome
    from welfaregrid.domain.identity_resolution import IdentityFields
    from welfaregrid.domain.matching import CandidateMatch
    from welfaregrid.domain.model import (
        AssistanceType,
        Claim,
        ClaimAction,
        Identity,
        PairStatus,
        VerifiedPair,
    )
    from welfaregrid.domain.ports import (
        AuditSink,
        FraudCheckDispatcher,
        RegistryUnitOfWorkFactory,
        SettingsStore,
    )
    from welfaregrid.domain.risk import RiskVerdict

type DispatcherFactory = Callable[[FraudCheckTarget], FraudCheckDispatcher]

log = getLogger(__name__)


@dataclass(slots=True)
class Registry:
    """Every core service, wired against one unit-of-work factory."""

    unit_of_work: RegistryUnitOfWorkFactory
    audit: AuditSink
    thresholds: CachedThresholdProvider
    resolver_config: ResolverConfig
    resolver: IdentityResolver
    matcher: HybridMatcher
    scorer: RiskScorer
    whitelist: PairWhitelist
    lifecycle: ClaimLifecycle
    fraud_checks: FraudCheckRunner
    dispatcher: FraudCheckDispatcher
    fraud_check_config: FraudCheckConfig


def build_registry(
    *,
    unit_of_work: RegistryUnitOfWorkFactory | None = None,
    audit: AuditSink | None = None,
    settings_store: SettingsStore | None = None,
    dispatcher_factory: DispatcherFactory | None = None,
    resolver_config: ResolverConfig | None = None,
    settings_ttl_seconds: float | None = None,
    fraud_check_config: FraudCheckConfig | None = None,
) -> Registry:
    """Wire the core services. Defaults use the SQLAlchemy adapter and env config."""

    effective_uow = unit_of_work or SqlAlchemyUnitOfWork
    effective_audit = audit or SqlAlchemyAuditSink(effective_uow)
    config = resolver_config or get_resolver_config()
    ttl = (
        settings_ttl_seconds
        if settings_ttl_seconds is not None
        else get_settings_cache_config().ttl_seconds
    )
    thresholds = CachedThresholdProvider(
        settings_store or SqlAlchemySettingsStore(effective_uow), ttl_seconds=ttl
    )
    scorer = RiskScorer(unit_of_work=effective_uow, thresholds=thresholds)
    fraud_checks = FraudCheckRunner(
        unit_of_work=effective_uow, scorer=scorer, audit=effective_audit
    )
    dispatcher = (dispatcher_factory or InlineFraudCheckDispatcher)(fraud_checks.run_fraud_check)
    return Registry(
        unit_of_work=effective_uow,
        audit=effective_audit,
        thresholds=thresholds,
        resolver_config=config,
        resolver=IdentityResolver(unit_of_work=effective_uow, config=config, audit=effective_audit),
        matcher=HybridMatcher(unit_of_work=effective_uow, thresholds=thresholds),
        scorer=scorer,
        whitelist=PairWhitelist(unit_of_work=effective_uow, audit=effective_audit),
        lifecycle=ClaimLifecycle(
            unit_of_work=effective_uow, audit=effective_audit, dispatcher=dispatcher
        ),
        fraud_checks=fraud_checks,
        dispatcher=dispatcher,
        fraud_check_config=fraud_check_config or get_fraud_check_config(),
    )


_DEFAULT_REGISTRY: Registry | None = None


def default_registry() -> Registry:
    """Start the SQLAlchemy adapter if needed and return the shared registry."""

    global _DEFAULT_REGISTRY  # noqa: PLW0603
    if _DEFAULT_REGISTRY is None:
        config = get_resolver_config()
        if not is_started():
            startup(lock_timeout_ms=config.lock_timeout_ms)
        _DEFAULT_REGISTRY = build_registry(resolver_config=config)
    return _DEFAULT_REGISTRY


def resolve_identity(
    fields: IdentityFields,
    *,
    actor: str | None = None,
    registry: Registry | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Identity:
    """Resolve the Golden Record, retrying lock conflicts with exponential backoff."""

    registry = registry or default_registry()
    config = registry.resolver_config
    attempt = 1
    while True:
        try:
            return registry.resolver.resolve(fields, actor=actor)
        except ResolutionConflict:
            if attempt >= config.max_attempts:
                log.warning("Identity resolution gave up after %d attempt(s)", attempt)
                raise
            delay = config.backoff_for(attempt)
            log.warning(
                "Identity resolution conflict (attempt %d/%d), retrying in %.2fs",
                attempt,
                config.max_attempts,
                delay,
            )
            sleep(delay)
            attempt += 1


def find_duplicate_candidates(
    first_name: str,
    last_name: str,
    birthdate: date,
    exclude_identity_id: UUID | None = None,
    *,
    registry: Registry | None = None,
) -> list[CandidateMatch]:
    registry = registry or default_registry()
    return registry.matcher.find_duplicate_candidates(
        first_name, last_name, birthdate, exclude_identity_id
    )


def assess_risk(
    identity_id: UUID,
    assistance_type: AssistanceType,
    *,
    registry: Registry | None = None,
) -> RiskVerdict:
    registry = registry or default_registry()
    return registry.scorer.assess_risk(identity_id, assistance_type)


def create_claim(
    identity_id: UUID,
    jurisdiction_id: UUID,
    assistance_type: AssistanceType,
    amount: Decimal | int | str,
    *,
    actor: str,
    purpose: str | None = None,
    registry: Registry | None = None,
) -> Claim:
    registry = registry or default_registry()
    return registry.lifecycle.create_claim(
        identity_id, jurisdiction_id, assistance_type, amount, actor=actor, purpose=purpose
    )


def run_fraud_check(claim_id: UUID, *, registry: Registry | None = None) -> FraudCheckOutcome:
    registry = registry or default_registry()
    return registry.fraud_checks.run_fraud_check(claim_id)


def relay_pending_fraud_checks(limit: int = 100, *, registry: Registry | None = None) -> list[UUID]:
    registry = registry or default_registry()
    return relay_outbox(
        unit_of_work=registry.unit_of_work,
        dispatcher=registry.dispatcher,
        audit=registry.audit,
        limit=limit,
        max_attempts=registry.fraud_check_config.max_attempts,
    )


def transition_claim(
    claim_id: UUID,
    action: ClaimAction,
    actor: str,
    reason: str | None = None,
    *,
    registry: Registry | None = None,
) -> Claim:
    registry = registry or default_registry()
    return registry.lifecycle.transition_claim(claim_id, action, actor, reason)


def verify_pair(
    identity_a: UUID,
    identity_b: UUID,
    status: PairStatus,
    reason: str,
    actor: str,
    *,
    notes: str | None = None,
    registry: Registry | None = None,
) -> VerifiedPair:
    """Record an adjudication, capturing the current similarity for the record."""

    registry = registry or default_registry()
    similarity: CandidateMatch | None = None
    with registry.unit_of_work() as uow:
        identity = uow.repositories.identities.get(identity_a)
    if identity is not None:
        candidates = registry.matcher.find_duplicate_candidates(
            identity.first_name, identity.last_name, identity.birthdate, identity.id
        )
        similarity = next((c for c in candidates if c.identity.id == identity_b), None)
    return registry.whitelist.verify_pair(
        identity_a,
        identity_b,
        status,
        reason,
        actor,
        similarity_score=similarity.score if similarity else None,
        distance=similarity.distance if similarity else None,
        notes=notes,
    )


def revoke_pair(
    pair_id: UUID, actor: str, reason: str, *, registry: Registry | None = None
) -> None:
    registry = registry or default_registry()
    registry.whitelist.revoke_pair(pair_id, actor, reason)


def lookup_pair(
    identity_a: UUID, identity_b: UUID, *, registry: Registry | None = None
) -> VerifiedPair | None:
    registry = registry or default_registry()
    return registry.whitelist.lookup_pair(identity_a, identity_b)


def create_jurisdiction(
    name: str,
    code: str,
    *,
    actor: str,
    allocated_budget: Decimal | int | str = Decimal("0.00"),
    registry: Registry | None = None,
) -> Jurisdiction:
    registry = registry or default_registry()
    name, code = name.strip(), code.strip().upper()
    if not name or not code:
        raise ValidationFailure("A jurisdiction needs a name and a code")
    try:
        budget = Decimal(str(allocated_budget)).quantize(CENTS)
    except InvalidOperation as exc:
        raise ValidationFailure(f"Invalid budget: {allocated_budget!r}") from exc
    if budget.is_nan() or budget < 0:
        raise ValidationFailure("A jurisdiction budget cannot be negative")
    with registry.unit_of_work() as uow:
        jurisdictions = uow.repositories.jurisdictions
        if jurisdictions.get_by_code(code) is not None:
            raise ValidationFailure(f"Jurisdiction code {code} is already in use")
        jurisdiction = Jurisdiction(name=name, code=code, allocated_budget=budget)
        jurisdictions.add(jurisdiction)
        uow.commit()
    registry.audit.record(
        "jurisdiction.created",
        (AuditSubject.JURISDICTION, jurisdiction.id),
        actor,
        {"code": code, "allocated_budget": str(budget)},
    )
    return jurisdiction
