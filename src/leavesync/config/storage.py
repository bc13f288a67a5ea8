"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from .env import env_float

APP_DIR_NAME: Final[str] = "leavesync"
DEFAULT_DB_FILENAME: Final[str] = "leavesync.db"
STAGING_DIR_NAME: Final[str] = "staging"
DB_TIMEOUT_ENV: Final[str] = "LEAVESYNC_DB_TIMEOUT"
DEFAULT_DB_TIMEOUT: Final[float] = 15.0


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    staging_dir_name: str = STAGING_DIR_NAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def database_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.database_filename

    def staging_dir(self, *, ensure: bool = True) -> Path:
        path = self.resolve_data_dir() / self.staging_dir_name
        if ensure:
            path.mkdir(parents=True, exist_ok=True)
        return path

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    timeout: float = DEFAULT_DB_TIMEOUT

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    def engine_options(self) -> dict[str, Any]:
        """Keyword arguments for ``create_engine``.

        Commits wait up to ``timeout`` seconds for the sqlite write lock that
        the per-date lock rows contend on.
        """

        if self.is_sqlite:
            return {"connect_args": {"timeout": self.timeout}}
        return {}


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("LEAVESYNC_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)


def get_database_config(
    *, storage: StorageConfig | None = None, uri: str | None = None
) -> DatabaseConfig:
    timeout = env_float(DB_TIMEOUT_ENV, DEFAULT_DB_TIMEOUT)
    explicit_uri = uri or os.getenv("DATABASE_URI")
    if explicit_uri:
        return DatabaseConfig(uri=explicit_uri, timeout=timeout)
    storage_config = storage or get_storage_config()
    return DatabaseConfig(uri=storage_config.database_uri(), timeout=timeout)


def get_database_uri() -> str:
    return get_database_config().uri
