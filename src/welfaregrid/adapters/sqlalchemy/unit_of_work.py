"""SQLAlchemy-backed unit of work for the registry core."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from welfaregrid.adapters.sqlalchemy.mappings import start_mappers
from welfaregrid.adapters.sqlalchemy.migrations import upgrade_head
from welfaregrid.adapters.sqlalchemy.repositories import (
    SqlAlchemyAuditEventRepository,
    SqlAlchemyClaimRepository,
    SqlAlchemyDisbursementProofRepository,
    SqlAlchemyFraudCheckOutboxRepository,
    SqlAlchemyIdentityRepository,
    SqlAlchemyJurisdictionRepository,
    SqlAlchemySystemSettingRepository,
    SqlAlchemyVerifiedPairRepository,
)
from welfaregrid.config import DatabaseConfig, ResolverConfig, get_database_uri
from welfaregrid.domain.errors import DuplicateRecord, ResolutionConflict
from welfaregrid.domain.ports import RegistryRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine, ExceptionContext

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """The adapter was used before ``startup()`` or configured twice."""


def _is_memory_database(database_uri: str) -> bool:
    return ":memory:" in database_uri or database_uri.rstrip("/") in {
        "sqlite:",
        "sqlite+pysqlite:",
    }


def build_engine(database_uri: str, *, lock_timeout_ms: int | None = None) -> Engine:
    """Create an engine for ``database_uri``.

    SQLite connections open every transaction with ``BEGIN IMMEDIATE`` so the
    first statement of a unit of work already holds the database write lock; this
    is what ``SELECT ... FOR UPDATE`` provides on PostgreSQL.
    Read-only units of work queue for that lock too, and a busy timeout surfaces
    as ``ResolutionConflict``.
    """

    if not DatabaseConfig(uri=database_uri).is_sqlite:
        return create_engine(database_uri, future=True)

    busy_seconds = (lock_timeout_ms or ResolverConfig().lock_timeout_ms) / 1000
    extra: dict[str, Any] = {}
    if _is_memory_database(database_uri):
        # one shared connection, otherwise every checkout sees an empty database
        extra["poolclass"] = StaticPool
    engine = create_engine(
        database_uri,
        future=True,
        connect_args={"check_same_thread": False, "timeout": busy_seconds},
        **extra,
    )

    @event.listens_for(engine, "connect")
    def _manual_transactions(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection: Connection) -> None:
        connection.exec_driver_sql("BEGIN IMMEDIATE")

    @event.listens_for(engine, "handle_error")
    def _busy_timeout(context: ExceptionContext) -> None:
        locked = "database is locked" in str(context.original_exception)
        if locked and isinstance(context.sqlalchemy_exception, OperationalError):
            raise ResolutionConflict(
                f"Timed out after {busy_seconds:g}s waiting for the SQLite write lock"
            ) from context.sqlalchemy_exception

    return engine


class _Adapter:
    """Process-wide engine binding shared by every unit of work."""

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self._sessions = None if engine is None else sessionmaker(
            bind=engine, expire_on_commit=False
        )

    def sessions(self) -> sessionmaker[Session]:
        if self._sessions is None:
            raise StartupError(
                "Registry database is not configured; call "
                "welfaregrid.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        return self._sessions


_ADAPTER = _Adapter()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
    lock_timeout_ms: int | None = None,
) -> None:
    """Bind the adapter to a database and migrate it to the current schema."""

    if _ADAPTER.engine is not None and not force:
        raise StartupError("Registry database already configured; pass force=True to rebind.")

    target = engine or build_engine(
        database_uri or get_database_uri(), lock_timeout_ms=lock_timeout_ms
    )
    start_mappers()
    upgrade_head(engine=target)
    _ADAPTER.bind(target)
    log.debug("Registry database bound to %s", target.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    return _ADAPTER.engine


def is_started() -> bool:
    return _ADAPTER.engine is not None


def shutdown() -> None:
    """Dispose the bound engine; a later ``startup()`` may bind a new one."""

    if _ADAPTER.engine is not None:
        _ADAPTER.engine.dispose()
    _ADAPTER.bind(None)


class SqlAlchemyUnitOfWork:
    """One database transaction over the registry repositories.

    Leaving the ``with`` block rolls back whatever was not committed, which also
    releases the write lock taken by ``BEGIN IMMEDIATE`` or ``FOR UPDATE``.
    """

    def __init__(self) -> None:
        self._sessions = _ADAPTER.sessions()
        self._session: Session | None = None
        self._repositories: RegistryRepositories | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        session = self._sessions()
        self._session = session
        self._repositories = RegistryRepositories(
            jurisdictions=SqlAlchemyJurisdictionRepository(session),
            identities=SqlAlchemyIdentityRepository(session),
            claims=SqlAlchemyClaimRepository(session),
            pairs=SqlAlchemyVerifiedPairRepository(session),
            proofs=SqlAlchemyDisbursementProofRepository(session),
            outbox=SqlAlchemyFraudCheckOutboxRepository(session),
            audit_events=SqlAlchemyAuditEventRepository(session),
            settings=SqlAlchemySystemSettingRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        return self._session

    @property
    def repositories(self) -> RegistryRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open")
        return self._repositories

    def commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateRecord(str(exc.orig)) from exc

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from welfaregrid.domain.ports import RegistryUnitOfWork

    _uow_check: RegistryUnitOfWork = SqlAlchemyUnitOfWork()
