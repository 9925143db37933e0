"""Ports for the persisted record store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from cruisesync.domain.model import EntityKind, Payload


class SnapshotWriteError(RuntimeError):
    """Raised when a store cannot persist a snapshot."""


@runtime_checkable
class SnapshotStore(Protocol):
    """Narrow read/write contract over the canonical dataset, one kind at a time."""

    async def read_snapshot(self, kind: EntityKind) -> list[Payload]: ...

    async def write_snapshot(self, kind: EntityKind, records: Sequence[Payload]) -> None: ...


@runtime_checkable
class TransactionalSnapshotStore(SnapshotStore, Protocol):
    """Store that can replace several kinds in one transaction."""

    async def write_snapshots(self, snapshots: Mapping[EntityKind, Sequence[Payload]]) -> None: ...
