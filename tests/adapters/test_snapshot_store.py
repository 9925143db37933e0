from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from cruisesync.adapters.sqlalchemy import (
    SnapshotRow,
    SqlAlchemySnapshotStore,
    SqlAlchemyUnitOfWork,
    StartupError,
    shutdown,
)
from cruisesync.domain.model import EntityKind
from cruisesync.domain.ports import SnapshotWriteError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy.orm import Session

    from cruisesync.domain.model import Payload


@pytest.fixture
def store(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> SqlAlchemySnapshotStore:
    return SqlAlchemySnapshotStore(uow_factory=sqlite_unit_of_work)


def test_unit_of_work_requires_startup() -> None:
    shutdown()

    with pytest.raises(StartupError, match="not started"):
        SqlAlchemyUnitOfWork()


def test_unit_of_work_session_only_inside_block(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    uow = sqlite_unit_of_work()

    with pytest.raises(StartupError, match="outside its with block"):
        _ = uow.session
    with uow:
        assert uow.session.is_active
    with pytest.raises(StartupError):
        _ = uow.session


def test_roundtrip_preserves_order(store: SqlAlchemySnapshotStore) -> None:
    rows = [
        {"id": "b", "ship_name": "Wonder of the Seas"},
        {"id": "a", "ship_name": "Icon of the Seas", "extra_note": {"deck": 9}},
    ]

    store.write_snapshot_sync(EntityKind.CRUISES, rows)

    assert store.read_snapshot_sync(EntityKind.CRUISES) == rows
    assert store.read_snapshot_sync(EntityKind.OFFERS) == []


def test_write_replaces_only_that_kind(store: SqlAlchemySnapshotStore) -> None:
    store.write_snapshot_sync(EntityKind.OFFERS, [{"id": "ABC123", "offer_code": "ABC123"}])
    store.write_snapshot_sync(EntityKind.CRUISES, [{"id": "old"}])

    store.write_snapshot_sync(EntityKind.CRUISES, [{"id": "new"}])

    assert store.read_snapshot_sync(EntityKind.CRUISES) == [{"id": "new"}]
    assert store.read_snapshot_sync(EntityKind.OFFERS) == [
        {"id": "ABC123", "offer_code": "ABC123"}
    ]


def test_identity_key_column_is_populated(
    store: SqlAlchemySnapshotStore,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    store.write_snapshot_sync(
        EntityKind.BOOKED_CRUISES, [{"id": "1234567", "booking_id": "1234567"}]
    )

    with sqlite_unit_of_work() as uow:
        row = uow.session.scalars(select(SnapshotRow)).one()
        assert row.kind is EntityKind.BOOKED_CRUISES
        assert row.identity_key == "1234567"
        assert row.position == 0


def test_rows_with_odd_values_are_stored_with_best_effort_keys(
    store: SqlAlchemySnapshotStore,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    rows = [
        {"id": "cruise-1", "booking_id": 7654321},
        {"id": "cruise-2", "completion_state": "sometime"},
    ]

    store.write_snapshot_sync(EntityKind.BOOKED_CRUISES, rows)

    with sqlite_unit_of_work() as uow:
        keys = uow.session.scalars(select(SnapshotRow.identity_key)).all()
    assert sorted(keys, key=str) == ["7654321", None]
    assert store.read_snapshot_sync(EntityKind.BOOKED_CRUISES) == rows


def test_async_facade_writes_several_kinds(store: SqlAlchemySnapshotStore) -> None:
    async def scenario() -> dict[EntityKind, list[dict[str, object]]]:
        await store.write_snapshots(
            {
                EntityKind.OFFERS: [{"id": "ABC123", "offer_code": "ABC123"}],
                EntityKind.LOYALTY: [{"program": "Club Royale", "points": 4120}],
            }
        )
        return {
            kind: await store.read_snapshot(kind)
            for kind in (EntityKind.OFFERS, EntityKind.LOYALTY)
        }

    result = asyncio.run(scenario())

    assert result[EntityKind.LOYALTY] == [{"program": "Club Royale", "points": 4120}]
    assert len(result[EntityKind.OFFERS]) == 1


def test_failed_write_rolls_back_every_kind(
    store: SqlAlchemySnapshotStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    store.write_snapshot_sync(EntityKind.OFFERS, [{"id": "kept", "offer_code": "KEPT"}])
    original = SqlAlchemySnapshotStore._replace  # noqa: SLF001  # type: ignore[reportPrivateUsage]

    def failing_replace(session: Session, kind: EntityKind, records: Sequence[Payload]) -> None:
        if kind is EntityKind.CRUISES:
            raise SQLAlchemyError("disk full")
        original(session, kind, records)

    monkeypatch.setattr(SqlAlchemySnapshotStore, "_replace", staticmethod(failing_replace))

    with pytest.raises(SnapshotWriteError, match="Failed to write offers, cruises: disk full"):
        store.write_snapshots_sync(
            {
                EntityKind.OFFERS: [{"id": "new", "offer_code": "NEW"}],
                EntityKind.CRUISES: [{"id": "x"}],
            }
        )

    assert store.read_snapshot_sync(EntityKind.OFFERS) == [{"id": "kept", "offer_code": "KEPT"}]
