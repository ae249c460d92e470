from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

from welfaregrid import app
from welfaregrid.domain.model import PairStatus
from tests.helpers.registry import BASE_TIME, make_claim, make_identity

if TYPE_CHECKING:
    from collections.abc import Callable

    from welfaregrid.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from welfaregrid.app import Registry
    from welfaregrid.domain.model import Identity, Jurisdiction

    UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]

BIRTHDATE = date(1980, 5, 17)


def test_single_typo_is_a_candidate(registry: Registry, juan: Identity) -> None:
    matches = app.find_duplicate_candidates("Juan", "Dela Crus", BIRTHDATE, registry=registry)

    assert [(match.identity.id, match.distance, match.score) for match in matches] == [
        (juan.id, 1, 90)
    ]


def test_distance_threshold_is_inclusive(
    registry: Registry, sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction
) -> None:
    ana = make_identity(sqlite_unit_of_work, jurisdiction, "Ana", "Reyes")

    within = app.find_duplicate_candidates("Anabel", "Reyes", BIRTHDATE, registry=registry)
    beyond = app.find_duplicate_candidates("Anabela", "Reyes", BIRTHDATE, registry=registry)

    assert [(match.identity.id, match.distance) for match in within] == [(ana.id, 3)]
    assert beyond == []


def test_threshold_change_applies_after_invalidation(
    registry: Registry, sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction
) -> None:
    make_identity(sqlite_unit_of_work, jurisdiction, "Ana", "Reyes")

    registry.thresholds.set_int("LEVENSHTEIN_DISTANCE_THRESHOLD", 2, actor="admin")

    assert app.find_duplicate_candidates("Anabel", "Reyes", BIRTHDATE, registry=registry) == []


def test_phonetic_prefilter_is_a_hard_gate(registry: Registry, juan: Identity) -> None:
    _ = juan

    assert app.find_duplicate_candidates("Juan", "Cruz", BIRTHDATE, registry=registry) == []


def test_query_identity_is_excluded_by_natural_key(registry: Registry, juan: Identity) -> None:
    _ = juan

    assert app.find_duplicate_candidates("Juan", "Dela Cruz", BIRTHDATE, registry=registry) == []


def test_same_name_with_other_birthdate_is_still_surfaced(
    registry: Registry, juan: Identity
) -> None:
    matches = app.find_duplicate_candidates(
        "Juan", "Dela Cruz", date(1980, 5, 18), registry=registry
    )

    assert [(match.identity.id, match.score) for match in matches] == [(juan.id, 100)]


def test_confirmed_distinct_partner_is_suppressed(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    twin = make_identity(sqlite_unit_of_work, jurisdiction, "Juan", "Dela Crus")
    before = app.find_duplicate_candidates("Juan", "Dela Crus", BIRTHDATE, registry=registry)
    assert [match.identity.id for match in before] == [juan.id]

    pair = app.verify_pair(
        juan.id,
        twin.id,
        PairStatus.CONFIRMED_DISTINCT,
        "different parents",
        "reviewer",
        registry=registry,
    )

    assert app.find_duplicate_candidates("Juan", "Dela Crus", BIRTHDATE, registry=registry) == []
    assert app.find_duplicate_candidates(
        "Juan", "Dela Cruz", BIRTHDATE, twin.id, registry=registry
    ) == []

    app.revoke_pair(pair.id, "supervisor", "entered in error", registry=registry)

    matches = app.find_duplicate_candidates("Juan", "Dela Crus", BIRTHDATE, registry=registry)
    assert [match.identity.id for match in matches] == [juan.id]


def test_duplicate_verdict_does_not_suppress(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    twin = make_identity(sqlite_unit_of_work, jurisdiction, "Juan", "Dela Crus")
    app.verify_pair(
        juan.id,
        twin.id,
        PairStatus.CONFIRMED_DUPLICATE,
        "same person",
        "reviewer",
        registry=registry,
    )

    matches = app.find_duplicate_candidates("Juan", "Dela Crus", BIRTHDATE, registry=registry)

    assert [match.identity.id for match in matches] == [juan.id]


def test_ranking_prefers_score_then_recent_activity(
    registry: Registry,
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
) -> None:
    quiet = make_identity(
        sqlite_unit_of_work, jurisdiction, "Maria", "Santos", birthdate=date(1990, 1, 1)
    )
    busy = make_identity(
        sqlite_unit_of_work, jurisdiction, "Maria", "Santos", birthdate=date(1991, 1, 1)
    )
    close = make_identity(sqlite_unit_of_work, jurisdiction, "Marie", "Santos")
    make_claim(sqlite_unit_of_work, quiet, jurisdiction, created_at=BASE_TIME - timedelta(days=60))
    make_claim(sqlite_unit_of_work, busy, jurisdiction, created_at=BASE_TIME)
    make_claim(sqlite_unit_of_work, close, jurisdiction, created_at=BASE_TIME + timedelta(days=1))

    matches = app.find_duplicate_candidates("Maria", "Santos", date(2000, 1, 1), registry=registry)

    assert [match.identity.id for match in matches] == [busy.id, quiet.id, close.id]
    assert [match.score for match in matches] == [100, 100, 90]
    assert matches[0].last_claim_at == BASE_TIME


def test_inactive_identities_are_not_candidates(
    registry: Registry, sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction
) -> None:
    make_identity(sqlite_unit_of_work, jurisdiction, "Pedro", "Garcia", is_active=False)

    assert app.find_duplicate_candidates("Pedro", "Garcia", BIRTHDATE, registry=registry) == []
