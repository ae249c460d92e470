from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.orm import sessionmaker

from welfaregrid.adapters.sqlalchemy import start_mappers
from welfaregrid.adapters.sqlalchemy.migrations import upgrade_head
from welfaregrid.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    build_engine,
    shutdown,
    startup,
)
from welfaregrid.app import Registry, build_registry
from welfaregrid.config import FraudCheckConfig, ResolverConfig
from welfaregrid.domain.model import Identity, Jurisdiction
from tests.helpers.registry import (
    RecordingAuditSink,
    RecordingDispatcher,
    make_identity,
    make_jurisdiction,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = build_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def file_engine(tmp_path: Path) -> Iterator[Engine]:
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'registry.db'}", lock_timeout_ms=10_000)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def audit_log() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def registry(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    audit_log: RecordingAuditSink,
) -> Registry:
    """Core services on in-memory SQLite; fraud checks are queued, not run."""

    return build_registry(
        unit_of_work=sqlite_unit_of_work,
        audit=audit_log,
        dispatcher_factory=RecordingDispatcher,
        resolver_config=ResolverConfig(max_attempts=3, backoff_seconds=0.0),
        settings_ttl_seconds=3600.0,
        fraud_check_config=FraudCheckConfig(max_attempts=3),
    )


@pytest.fixture
def jurisdiction(sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork]) -> Jurisdiction:
    return make_jurisdiction(sqlite_unit_of_work, code="QC", name="Quezon City")


@pytest.fixture
def other_jurisdiction(sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork]) -> Jurisdiction:
    return make_jurisdiction(sqlite_unit_of_work, code="MKT", name="Makati")


@pytest.fixture
def juan(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork], jurisdiction: Jurisdiction
) -> Identity:
    return make_identity(sqlite_unit_of_work, jurisdiction, "Juan", "Dela Cruz")
