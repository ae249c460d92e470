"""Alembic environment for the registry schema."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from alembic import context
from sqlalchemy import create_engine, pool

from welfaregrid.adapters.sqlalchemy import mapper_registry, start_mappers
from welfaregrid.config import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

config = context.config

start_mappers()
target_metadata = mapper_registry.metadata


def _run(**options: Any) -> None:
    # batch mode so SQLite can ALTER through table rebuilds
    context.configure(
        target_metadata=target_metadata,
        render_as_batch=True,
        compare_type=True,
        **options,
    )
    with context.begin_transaction():
        context.run_migrations()


def _url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_uri()


def run_migrations_online() -> None:
    shared: Connection | None = config.attributes.get("connection")
    if shared is not None:
        _run(connection=shared)
        return

    engine = create_engine(_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _run(connection=connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    _run(url=_url(), literal_binds=True)
else:
    run_migrations_online()
