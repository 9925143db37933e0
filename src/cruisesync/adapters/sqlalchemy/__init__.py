"""SQLAlchemy persistence adapter."""

from __future__ import annotations

from .mappings import SnapshotRow, create_all_tables, mapper_registry, start_mappers
from .store import SqlAlchemySnapshotStore
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    shutdown,
    startup,
)

__all__ = [
    "SnapshotRow",
    "SqlAlchemySnapshotStore",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
