from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from welfaregrid import app
from welfaregrid.domain.errors import NotFound
from welfaregrid.domain.model import AssistanceType, ClaimStatus, RiskLevel, RiskRule
from welfaregrid.domain.risk import NO_RISK_DETAIL
from tests.helpers.registry import BASE_TIME, make_claim, make_identity

if TYPE_CHECKING:
    from collections.abc import Callable

    from welfaregrid.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from welfaregrid.app import Registry
    from welfaregrid.domain.model import Identity, Jurisdiction

    UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]

DAY_20 = BASE_TIME + timedelta(days=20)


def test_clean_history_is_low_risk(registry: Registry, juan: Identity) -> None:
    verdict = registry.scorer.assess_risk(juan.id, AssistanceType.MEDICAL, as_of=BASE_TIME)

    assert verdict.level is RiskLevel.LOW
    assert not verdict.is_risky
    assert verdict.fired_rules == ()
    assert verdict.details == NO_RISK_DETAIL


def test_double_dipping_across_jurisdictions(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    other_jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME)
    pending = make_claim(sqlite_unit_of_work, juan, other_jurisdiction, created_at=DAY_20)

    verdict = registry.scorer.assess_risk(
        juan.id, AssistanceType.MEDICAL, as_of=DAY_20, claim_id=pending.id
    )

    assert verdict.fired_rules == (RiskRule.DOUBLE_DIPPING,)
    assert verdict.level is RiskLevel.MEDIUM
    assert verdict.is_risky
    assert verdict.details == (
        "Double-dipping: received Medical assistance 20 days ago from Quezon City"
    )


def test_other_assistance_type_is_not_double_dipping(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME)

    verdict = registry.scorer.assess_risk(juan.id, AssistanceType.CASH, as_of=DAY_20)

    assert verdict.fired_rules == ()
    assert not verdict.is_risky


def test_same_type_window_boundary(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME)
    scorer = registry.scorer

    on_edge = scorer.assess_risk(
        juan.id, AssistanceType.MEDICAL, as_of=BASE_TIME + timedelta(days=30)
    )
    past_edge = scorer.assess_risk(
        juan.id, AssistanceType.MEDICAL, as_of=BASE_TIME + timedelta(days=30, seconds=1)
    )

    assert RiskRule.DOUBLE_DIPPING in on_edge.fired_rules
    assert RiskRule.DOUBLE_DIPPING not in past_edge.fired_rules


def test_high_frequency_counts_the_assessed_claim(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    for days_ago, kind in ((80, AssistanceType.FOOD), (50, AssistanceType.CASH)):
        make_claim(
            sqlite_unit_of_work,
            juan,
            jurisdiction,
            assistance_type=kind,
            created_at=BASE_TIME - timedelta(days=days_ago),
        )
    scorer = registry.scorer

    third = scorer.assess_risk(juan.id, AssistanceType.EDUCATIONAL, as_of=BASE_TIME)
    make_claim(
        sqlite_unit_of_work,
        juan,
        jurisdiction,
        assistance_type=AssistanceType.BURIAL,
        created_at=BASE_TIME - timedelta(days=10),
    )
    fourth = scorer.assess_risk(juan.id, AssistanceType.EDUCATIONAL, as_of=BASE_TIME)

    assert third.fired_rules == ()
    assert fourth.fired_rules == (RiskRule.HIGH_FREQUENCY,)
    assert fourth.details == "High frequency: 4 claims in the last 90 days"
    assert len(fourth.recent_claims) == 3


def test_rejected_and_later_claims_do_not_count(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    make_claim(
        sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME, status=ClaimStatus.REJECTED
    )
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=DAY_20 + timedelta(days=1))

    verdict = registry.scorer.assess_risk(juan.id, AssistanceType.MEDICAL, as_of=DAY_20)

    assert verdict.fired_rules == ()


def test_similar_identity_raises_level(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    make_identity(sqlite_unit_of_work, jurisdiction, "Juan", "Dela Crus")

    verdict = registry.scorer.assess_risk(juan.id, AssistanceType.MEDICAL, as_of=BASE_TIME)

    assert verdict.level is RiskLevel.HIGH
    assert verdict.is_risky
    assert verdict.best_score == 90
    assert verdict.details == "1 similar identity on file (best score 90)"


def test_two_weak_matches_are_medium(
    registry: Registry, sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction
) -> None:
    ana = make_identity(sqlite_unit_of_work, jurisdiction, "Ana", "Reyes")
    make_identity(sqlite_unit_of_work, jurisdiction, "Anabel", "Reyes")
    make_identity(sqlite_unit_of_work, jurisdiction, "Anita", "Reyes")

    verdict = registry.scorer.assess_risk(ana.id, AssistanceType.FOOD, as_of=BASE_TIME)

    assert [match.score for match in verdict.matches] == [80, 70]
    assert verdict.level is RiskLevel.MEDIUM


def test_thresholds_are_read_on_every_assessment(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME)

    registry.thresholds.set_int("SAME_TYPE_THRESHOLD_DAYS", 10, actor="admin")
    verdict = registry.scorer.assess_risk(juan.id, AssistanceType.MEDICAL, as_of=DAY_20)

    assert verdict.fired_rules == ()
    assert verdict.thresholds.same_type_days == 10
    assert verdict.snapshot()["thresholds"]["SAME_TYPE_THRESHOLD_DAYS"] == 10


def test_snapshot_is_json_ready(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME)

    snapshot = registry.scorer.assess_risk(
        juan.id, AssistanceType.MEDICAL, as_of=DAY_20
    ).snapshot()

    assert snapshot["risk_level"] == "MEDIUM"
    assert snapshot["fired_rules"] == ["double_dipping"]
    assert snapshot["recent_claims"][0]["amount"] == "1500.00"
    assert snapshot["assessed_at"] == DAY_20.isoformat()


def test_unknown_identity_is_not_found(registry: Registry) -> None:
    with pytest.raises(NotFound):
        app.assess_risk(uuid4(), AssistanceType.CASH, registry=registry)


def test_risk_report_summarises_lookback(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    other_jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME)
    make_claim(
        sqlite_unit_of_work,
        juan,
        other_jurisdiction,
        assistance_type=AssistanceType.CASH,
        amount=Decimal("500.00"),
        created_at=DAY_20,
    )
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME - timedelta(days=120))

    report = registry.scorer.risk_report(juan.id, as_of=DAY_20)

    assert report.claim_count == 2
    assert report.total_amount == Decimal("2000.00")
    assert set(report.jurisdiction_ids) == {jurisdiction.id, other_jurisdiction.id}
    assert set(report.assistance_types) == {AssistanceType.MEDICAL, AssistanceType.CASH}
