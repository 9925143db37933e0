"""In-memory snapshot store for tests and dry runs."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

from cruisesync.domain.model import EntityKind
from cruisesync.domain.ports import SnapshotWriteError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from cruisesync.domain.model import Payload
    from cruisesync.domain.ports import TransactionalSnapshotStore


class InMemorySnapshotStore:
    def __init__(
        self,
        initial: Mapping[EntityKind, Sequence[Payload]] | None = None,
        *,
        fail_on: frozenset[EntityKind] = frozenset(),
    ) -> None:
        self._data: dict[EntityKind, list[Payload]] = {kind: [] for kind in EntityKind}
        for kind, rows in (initial or {}).items():
            self._data[kind] = copy.deepcopy(list(rows))
        self.fail_on = fail_on
        self.writes: list[EntityKind] = []

    async def read_snapshot(self, kind: EntityKind) -> list[Payload]:
        return copy.deepcopy(self._data[kind])

    async def write_snapshot(self, kind: EntityKind, records: Sequence[Payload]) -> None:
        if kind in self.fail_on:
            raise SnapshotWriteError(f"Failed to write {kind}")
        self._data[kind] = copy.deepcopy(list(records))
        self.writes.append(kind)

    async def write_snapshots(self, snapshots: Mapping[EntityKind, Sequence[Payload]]) -> None:
        failing = [kind for kind in snapshots if kind in self.fail_on]
        if failing:
            raise SnapshotWriteError(f"Failed to write {failing[0]}")
        for kind, records in snapshots.items():
            self._data[kind] = copy.deepcopy(list(records))
            self.writes.append(kind)

    def rows(self, kind: EntityKind) -> list[Payload]:
        return copy.deepcopy(self._data[kind])


if TYPE_CHECKING:
    _store_check: TransactionalSnapshotStore = InMemorySnapshotStore()
