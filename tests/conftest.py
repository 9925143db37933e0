from __future__ import annotations

import os
from datetime import date
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.pool import StaticPool

from cruisesync.adapters.memory import InMemorySnapshotStore
from cruisesync.adapters.sqlalchemy import create_all_tables, start_mappers
from cruisesync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from cruisesync.config import SessionConfig

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

TODAY = date(2026, 1, 10)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def fast_config() -> SessionConfig:
    return SessionConfig(
        stall_timeout_seconds=0.2,
        step_timeout_seconds=1.0,
        settle_seconds=0.0,
        max_bounces=1,
    )


@pytest.fixture
def memory_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    # One shared connection so worker threads see the same in-memory database.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    start_mappers()
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


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
