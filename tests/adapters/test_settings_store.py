from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError

from welfaregrid.adapters.settings import SqlAlchemySettingsStore
from welfaregrid.domain.errors import ConfigurationUnavailable, ResolutionConflict

if TYPE_CHECKING:
    from collections.abc import Callable

    from welfaregrid.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork


def test_reads_seeded_defaults(sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork]) -> None:
    store = SqlAlchemySettingsStore(sqlite_unit_of_work)

    assert store.read("RISK_THRESHOLD_DAYS") == "90"
    assert store.read("SAME_TYPE_THRESHOLD_DAYS") == "30"
    assert store.read("UNKNOWN_KEY") is None


def test_write_updates_and_inserts(sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork]) -> None:
    store = SqlAlchemySettingsStore(sqlite_unit_of_work)

    store.write("RISK_THRESHOLD_DAYS", "60", actor="admin")
    store.write("NEW_FLAG", "1", actor="admin")

    assert store.read("RISK_THRESHOLD_DAYS") == "60"
    assert store.read("NEW_FLAG") == "1"
    with sqlite_unit_of_work() as uow:
        setting = uow.repositories.settings.get_by_key("RISK_THRESHOLD_DAYS")
    assert setting is not None
    assert setting.updated_by == "admin"
    assert setting.description is not None


class _BrokenUnitOfWork:
    def __enter__(self) -> _BrokenUnitOfWork:
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    def __exit__(self, *exc_info: object) -> bool:
        return False


def test_database_errors_become_configuration_unavailable() -> None:
    store = SqlAlchemySettingsStore(_BrokenUnitOfWork)  # type: ignore[arg-type]

    with pytest.raises(ConfigurationUnavailable, match="RISK_THRESHOLD_DAYS"):
        store.read("RISK_THRESHOLD_DAYS")
    with pytest.raises(ConfigurationUnavailable):
        store.write("RISK_THRESHOLD_DAYS", "10", actor="admin")


class _LockedUnitOfWork(_BrokenUnitOfWork):
    def __enter__(self) -> _LockedUnitOfWork:
        raise ResolutionConflict("Timed out after 0.05s waiting for the SQLite write lock")


def test_lock_timeouts_become_configuration_unavailable() -> None:
    store = SqlAlchemySettingsStore(_LockedUnitOfWork)  # type: ignore[arg-type]

    with pytest.raises(ConfigurationUnavailable, match="HIGH_FREQUENCY_THRESHOLD"):
        store.read("HIGH_FREQUENCY_THRESHOLD")
