"""Where the local snapshot database lives."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_bool

APP_DIR_NAME: Final[str] = "cruisesync"
DEFAULT_DB_FILENAME: Final[str] = "cruisesync.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def database_path(self, *, ensure: bool = True) -> Path:
        base = self.data_dir.expanduser().resolve()
        if ensure:
            base.mkdir(parents=True, exist_ok=True)
        return base / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False


def _platform_data_home() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        return Path(base) if base else Path.home() / "AppData" / "Local"
    base = os.getenv("XDG_DATA_HOME")
    return Path(base) if base else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("CRUISESYNC_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _platform_data_home() / APP_DIR_NAME
    return StorageConfig(
        data_dir=data_dir.expanduser().resolve(),
        database_filename=os.getenv("CRUISESYNC_DB_FILENAME") or DEFAULT_DB_FILENAME,
    )


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins over the file in the data directory."""

    echo = env_bool("CRUISESYNC_SQL_ECHO")
    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri, echo=echo)
    return DatabaseConfig(uri=(storage or get_storage_config()).database_uri(), echo=echo)
