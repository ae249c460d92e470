from __future__ import annotations

import threading
from datetime import date
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from welfaregrid import app
from welfaregrid.adapters.sqlalchemy.mappings import identity_table
from welfaregrid.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from welfaregrid.config import ResolverConfig
from welfaregrid.domain.errors import NotFound, ResolutionConflict, ValidationFailure
from welfaregrid.domain.identity_resolution import IdentityFields
from tests.helpers.registry import RecordingAuditSink, RecordingDispatcher, make_jurisdiction

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine

    from welfaregrid.app import Registry
    from welfaregrid.domain.model import Identity, Jurisdiction

BIRTHDATE = date(1980, 5, 17)


def _fields(
    jurisdiction: Jurisdiction, first: str = "Juan", last: str = "Dela Cruz"
) -> IdentityFields:
    return IdentityFields(
        first_name=first,
        last_name=last,
        birthdate=BIRTHDATE,
        home_jurisdiction_id=jurisdiction.id,
    )


def test_resolve_creates_then_finds(
    registry: Registry, jurisdiction: Jurisdiction, audit_log: RecordingAuditSink
) -> None:
    created = app.resolve_identity(_fields(jurisdiction), actor="intake-1", registry=registry)
    again = app.resolve_identity(
        _fields(jurisdiction, first=" Juan ", last="Dela  Cruz"),
        actor="intake-2",
        registry=registry,
    )

    assert again.id == created.id
    assert created.phonetic_code == "D426"
    assert created.created_by == "intake-1"
    assert audit_log.events() == ["identity.created"]


def test_resolve_never_merges_different_birthdates(
    registry: Registry, jurisdiction: Jurisdiction
) -> None:
    first = app.resolve_identity(_fields(jurisdiction), registry=registry)
    other = app.resolve_identity(
        IdentityFields(
            first_name="Juan",
            last_name="Dela Cruz",
            birthdate=date(1980, 5, 18),
            home_jurisdiction_id=jurisdiction.id,
        ),
        registry=registry,
    )

    assert first.id != other.id


def test_resolve_rejects_blank_names_and_future_birthdates(
    registry: Registry, jurisdiction: Jurisdiction
) -> None:
    with pytest.raises(ValidationFailure, match="last_name"):
        app.resolve_identity(_fields(jurisdiction, last="   "), registry=registry)

    with pytest.raises(ValidationFailure, match="future"):
        app.resolve_identity(
            IdentityFields(
                first_name="Juan",
                last_name="Dela Cruz",
                birthdate=date(2999, 1, 1),
                home_jurisdiction_id=jurisdiction.id,
            ),
            registry=registry,
        )


def test_resolve_requires_known_jurisdiction(registry: Registry) -> None:
    fields = IdentityFields(
        first_name="Juan", last_name="Dela Cruz", birthdate=BIRTHDATE, home_jurisdiction_id=uuid4()
    )

    with pytest.raises(NotFound):
        app.resolve_identity(fields, registry=registry)


class _FlakyResolver:
    def __init__(self, identity: Identity, failures: int) -> None:
        self.identity = identity
        self.failures = failures
        self.calls = 0

    def resolve(self, fields: IdentityFields, *, actor: str | None = None) -> Identity:
        _ = fields, actor
        self.calls += 1
        if self.calls <= self.failures:
            raise ResolutionConflict("lock timeout")
        return self.identity


def test_resolve_retries_conflicts_with_backoff(
    registry: Registry, jurisdiction: Jurisdiction, monkeypatch: pytest.MonkeyPatch
) -> None:
    identity = app.resolve_identity(_fields(jurisdiction), registry=registry)
    flaky = _FlakyResolver(identity, failures=2)
    monkeypatch.setattr(registry, "resolver", flaky)
    monkeypatch.setattr(
        registry, "resolver_config", ResolverConfig(max_attempts=3, backoff_seconds=0.1)
    )
    delays: list[float] = []

    resolved = app.resolve_identity(_fields(jurisdiction), registry=registry, sleep=delays.append)

    assert resolved is identity
    assert flaky.calls == 3
    assert delays == pytest.approx([0.1, 0.2])


def test_resolve_gives_up_after_max_attempts(
    registry: Registry, jurisdiction: Jurisdiction, monkeypatch: pytest.MonkeyPatch
) -> None:
    identity = app.resolve_identity(_fields(jurisdiction), registry=registry)
    flaky = _FlakyResolver(identity, failures=5)
    monkeypatch.setattr(registry, "resolver", flaky)
    delays: list[float] = []

    with pytest.raises(ResolutionConflict):
        app.resolve_identity(_fields(jurisdiction), registry=registry, sleep=delays.append)

    assert flaky.calls == registry.resolver_config.max_attempts
    assert len(delays) == registry.resolver_config.max_attempts - 1


@pytest.fixture
def file_registry(file_engine: Engine) -> Iterator[Registry]:
    startup(engine=file_engine, force=True)
    try:
        yield app.build_registry(
            unit_of_work=SqlAlchemyUnitOfWork,
            audit=RecordingAuditSink(),
            dispatcher_factory=RecordingDispatcher,
            resolver_config=ResolverConfig(lock_timeout_ms=10_000, backoff_seconds=0.01),
            settings_ttl_seconds=3600.0,
        )
    finally:
        shutdown()


@pytest.mark.slow
def test_concurrent_resolution_creates_one_identity(
    file_registry: Registry, file_engine: Engine
) -> None:
    jurisdiction = make_jurisdiction(SqlAlchemyUnitOfWork, code="QC", name="Quezon City")
    workers = 8
    barrier = threading.Barrier(workers)
    results: list[Identity] = []
    errors: list[BaseException] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            identity = app.resolve_identity(_fields(jurisdiction), registry=file_registry)
        except BaseException as exc:  # noqa: BLE001
            with lock:
                errors.append(exc)
            return
        with lock:
            results.append(identity)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert len({identity.id for identity in results}) == 1
    with file_engine.connect() as connection:
        count = connection.execute(select(func.count()).select_from(identity_table)).scalar_one()
    assert count == 1
