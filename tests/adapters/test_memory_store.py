from __future__ import annotations

import asyncio

import pytest

from cruisesync.adapters.memory import InMemorySnapshotStore
from cruisesync.domain.model import EntityKind
from cruisesync.domain.ports import SnapshotWriteError, TransactionalSnapshotStore


def test_reads_are_copies() -> None:
    store = InMemorySnapshotStore({EntityKind.OFFERS: [{"id": "A", "perks": ["x"]}]})

    rows = asyncio.run(store.read_snapshot(EntityKind.OFFERS))
    rows[0]["perks"].append("y")

    assert store.rows(EntityKind.OFFERS) == [{"id": "A", "perks": ["x"]}]


def test_failing_kind_is_not_written() -> None:
    store = InMemorySnapshotStore(fail_on=frozenset({EntityKind.LOYALTY}))

    async def scenario() -> None:
        await store.write_snapshot(EntityKind.OFFERS, [{"id": "A"}])
        with pytest.raises(SnapshotWriteError, match="Failed to write loyalty"):
            await store.write_snapshot(EntityKind.LOYALTY, [{"program": "Club Royale"}])

    asyncio.run(scenario())

    assert store.writes == [EntityKind.OFFERS]
    assert store.rows(EntityKind.LOYALTY) == []


def test_is_transactional() -> None:
    assert isinstance(InMemorySnapshotStore(), TransactionalSnapshotStore)
