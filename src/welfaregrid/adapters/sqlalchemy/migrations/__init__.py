"""Schema migrations for the registry database.

Revision scripts live in ``versions/`` beside this module. The alembic CLI finds
them through ``[tool.alembic]`` in pyproject.toml; the helpers here resolve them
from the package itself so an installed wheel can migrate without a checkout.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from welfaregrid.config import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent


def alembic_config(database_uri: str | None = None) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def head_revision() -> str | None:
    """Newest revision shipped with the package."""

    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    """Revision stamped in the database, or ``None`` for an empty schema."""

    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the registry schema up to :func:`head_revision`.

    With an ``engine`` the upgrade shares its connection, which is how in-memory
    SQLite databases survive the migration run.
    """

    if engine is None:
        command.upgrade(alembic_config(database_uri or get_database_uri()), "head")
        return

    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
