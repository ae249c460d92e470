"""Where the registry database lives.

``DATABASE_URI`` wins when set (PostgreSQL in production). Otherwise the registry
falls back to a SQLite file under ``WELFAREGRID_DATA_DIR`` or the platform data home.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "welfaregrid"
DEFAULT_DB_FILENAME: Final[str] = "registry.db"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
DATA_DIR_ENV: Final[str] = "WELFAREGRID_DATA_DIR"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Local SQLite fallback location."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    @property
    def database_path(self) -> Path:
        return self.data_dir / self.database_filename

    def sqlite_uri(self, *, create_dir: bool = True) -> str:
        if create_dir:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{self.database_path}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    override = os.getenv(DATA_DIR_ENV, "").strip()
    base = Path(override) if override else _platform_data_home() / APP_DIR_NAME
    return StorageConfig(data_dir=base.expanduser().resolve())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    uri = os.getenv(DATABASE_URI_ENV, "").strip()
    if uri:
        return DatabaseConfig(uri=uri)
    return DatabaseConfig(uri=(storage or get_storage_config()).sqlite_uri())


def get_database_uri() -> str:
    return get_database_config().uri
