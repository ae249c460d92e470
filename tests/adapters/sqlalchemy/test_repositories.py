from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from welfaregrid.domain.model import (
    AssistanceType,
    ClaimStatus,
    FraudCheckTask,
    PairStatus,
    VerifiedPair,
    canonical_pair,
)
from tests.helpers.registry import BASE_TIME, make_claim, make_identity

if TYPE_CHECKING:
    from collections.abc import Callable

    from welfaregrid.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from welfaregrid.domain.model import Identity, Jurisdiction

    UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]


def test_find_by_phonetic_code_skips_inactive(
    sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction, juan: Identity
) -> None:
    make_identity(sqlite_unit_of_work, jurisdiction, "Juana", "Dela Crus", is_active=False)
    make_identity(sqlite_unit_of_work, jurisdiction, "Pedro", "Santos")

    with sqlite_unit_of_work() as uow:
        found = uow.repositories.identities.find_by_phonetic_code("D426")

    assert [identity.id for identity in found] == [juan.id]


def test_natural_key_lookup_and_lock(
    sqlite_unit_of_work: UnitOfWorkFactory, juan: Identity
) -> None:
    with sqlite_unit_of_work() as uow:
        identities = uow.repositories.identities
        found = identities.find_by_natural_key("Juan", "Dela Cruz", juan.birthdate)
        locked = identities.lock_by_natural_key(
            "Juan", "Dela Cruz", juan.birthdate, lock_timeout_ms=100
        )
        missing = identities.find_by_natural_key("Juan", "Dela Cruz", juan.birthdate.replace(day=1))

    assert found is not None
    assert found.id == juan.id
    assert locked is not None
    assert locked.id == juan.id
    assert missing is None


def test_claim_history_excludes_voided_and_old_claims(
    sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction, juan: Identity
) -> None:
    recent = make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME)
    make_claim(
        sqlite_unit_of_work,
        juan,
        jurisdiction,
        created_at=BASE_TIME,
        status=ClaimStatus.REJECTED,
    )
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME - timedelta(days=200))

    with sqlite_unit_of_work() as uow:
        history = uow.repositories.claims.history_for_identity(
            juan.id, since=BASE_TIME - timedelta(days=90)
        )

    assert [claim.id for claim in history] == [recent.id]
    assert history[0].created_at == BASE_TIME


def test_latest_activity_per_identity(
    sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction, juan: Identity
) -> None:
    quiet = make_identity(sqlite_unit_of_work, jurisdiction, "Pedro", "Santos")
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME - timedelta(days=3))
    make_claim(sqlite_unit_of_work, juan, jurisdiction, created_at=BASE_TIME)

    with sqlite_unit_of_work() as uow:
        activity = uow.repositories.claims.latest_activity([juan.id, quiet.id])

    assert activity == {juan.id: BASE_TIME}


def test_flagged_lists_reviewable_claims_only(
    sqlite_unit_of_work: UnitOfWorkFactory,
    jurisdiction: Jurisdiction,
    other_jurisdiction: Jurisdiction,
    juan: Identity,
) -> None:
    flagged_here = make_claim(sqlite_unit_of_work, juan, jurisdiction)
    flagged_there = make_claim(sqlite_unit_of_work, juan, other_jurisdiction)
    approved = make_claim(sqlite_unit_of_work, juan, jurisdiction, status=ClaimStatus.APPROVED)
    make_claim(sqlite_unit_of_work, juan, jurisdiction)
    with sqlite_unit_of_work() as uow:
        for claim_id in (flagged_here.id, flagged_there.id, approved.id):
            claim = uow.repositories.claims.get(claim_id)
            assert claim is not None
            claim.is_flagged = True
        uow.commit()

    with sqlite_unit_of_work() as uow:
        everywhere = {claim.id for claim in uow.repositories.claims.flagged()}
        local = uow.repositories.claims.flagged(jurisdiction_id=jurisdiction.id)
        here = [claim.id for claim in local]

    assert everywhere == {flagged_here.id, flagged_there.id}
    assert here == [flagged_here.id]


def test_pair_queries_use_canonical_order(
    sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction, juan: Identity
) -> None:
    twin = make_identity(sqlite_unit_of_work, jurisdiction, "Juan", "Dela Crus")
    low, high = canonical_pair(juan.id, twin.id)
    with sqlite_unit_of_work() as uow:
        uow.repositories.pairs.add(
            VerifiedPair(
                identity_a_id=low,
                identity_b_id=high,
                status=PairStatus.CONFIRMED_DISTINCT,
                reason="different parents",
                verified_by="reviewer",
            )
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        pairs = uow.repositories.pairs
        assert pairs.find_active(low, high) is not None
        assert pairs.distinct_partners(juan.id) == {twin.id}
        assert pairs.distinct_partners(twin.id) == {juan.id}
        assert pairs.for_identity(juan.id, status=PairStatus.CONFIRMED_DUPLICATE) == []


def test_outbox_pending_is_oldest_first_and_skips_exhausted_rows(
    sqlite_unit_of_work: UnitOfWorkFactory, jurisdiction: Jurisdiction, juan: Identity
) -> None:
    older = make_claim(sqlite_unit_of_work, juan, jurisdiction, assistance_type=AssistanceType.FOOD)
    newer = make_claim(sqlite_unit_of_work, juan, jurisdiction, assistance_type=AssistanceType.CASH)
    done = make_claim(sqlite_unit_of_work, juan, jurisdiction)
    stuck = make_claim(sqlite_unit_of_work, juan, jurisdiction)
    with sqlite_unit_of_work() as uow:
        outbox = uow.repositories.outbox
        outbox.add(FraudCheckTask(claim_id=newer.id, enqueued_at=BASE_TIME + timedelta(minutes=5)))
        outbox.add(FraudCheckTask(claim_id=older.id, enqueued_at=BASE_TIME))
        finished = FraudCheckTask(claim_id=done.id, enqueued_at=BASE_TIME - timedelta(hours=1))
        finished.complete("applied", at=BASE_TIME)
        outbox.add(finished)
        stuck_task = FraudCheckTask(claim_id=stuck.id, enqueued_at=BASE_TIME - timedelta(hours=2))
        stuck_task.attempts = 3
        outbox.add(stuck_task)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        outbox = uow.repositories.outbox
        pending = [task.claim_id for task in outbox.pending(limit=10, max_attempts=3)]
        limited = outbox.pending(limit=1, max_attempts=3)
        exhausted = [task.claim_id for task in outbox.exhausted(max_attempts=3)]
        raised_cap = [task.claim_id for task in outbox.pending(limit=10, max_attempts=4)]

    assert pending == [older.id, newer.id]
    assert [task.claim_id for task in limited] == [older.id]
    assert exhausted == [stuck.id]
    assert raised_cap == [stuck.id, older.id, newer.id]


def test_seeded_settings_exist(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    with sqlite_unit_of_work() as uow:
        setting = uow.repositories.settings.get_by_key("HIGH_FREQUENCY_THRESHOLD")

    assert setting is not None
    assert setting.int_value() == 3
