"""Snapshot store persisting each kind as ordered rows in one table."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from cruisesync.domain.model import from_payload, identity_key, key_token
from cruisesync.domain.ports import SnapshotWriteError

from .mappings import SnapshotRow
from .unit_of_work import SqlAlchemyUnitOfWork

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from cruisesync.domain.model import EntityKind, Payload
    from cruisesync.domain.ports import TransactionalSnapshotStore

log = logging.getLogger(__name__)


def _row_key(kind: EntityKind, payload: Payload) -> str | None:
    try:
        key = identity_key(from_payload(kind, payload))
    except Exception:  # noqa: BLE001
        log.warning("Storing %s row without an identity key", kind, exc_info=True)
        return None
    return key_token(key) if key is not None else None


class SqlAlchemySnapshotStore:
    """Replaces a kind's rows wholesale on every write.

    Blocking session work runs in a worker thread so the async facade can be
    awaited from the ingestion loop.
    """

    def __init__(
        self, uow_factory: Callable[[], SqlAlchemyUnitOfWork] = SqlAlchemyUnitOfWork
    ) -> None:
        self._uow_factory = uow_factory

    def read_snapshot_sync(self, kind: EntityKind) -> list[Payload]:
        with self._uow_factory() as uow:
            statement = (
                select(SnapshotRow)
                .where(SnapshotRow.kind == kind)  # type: ignore[arg-type]
                .order_by(SnapshotRow.position)  # type: ignore[arg-type]
            )
            rows = uow.session.scalars(statement).all()
            return [dict(row.payload) for row in rows]

    def write_snapshots_sync(self, snapshots: Mapping[EntityKind, Sequence[Payload]]) -> None:
        try:
            with self._uow_factory() as uow:
                for kind, records in snapshots.items():
                    self._replace(uow.session, kind, records)
                uow.commit()
        except SQLAlchemyError as exc:
            kinds = ", ".join(str(kind) for kind in snapshots)
            raise SnapshotWriteError(f"Failed to write {kinds}: {exc}") from exc

    def write_snapshot_sync(self, kind: EntityKind, records: Sequence[Payload]) -> None:
        self.write_snapshots_sync({kind: records})

    async def read_snapshot(self, kind: EntityKind) -> list[Payload]:
        return await asyncio.to_thread(self.read_snapshot_sync, kind)

    async def write_snapshot(self, kind: EntityKind, records: Sequence[Payload]) -> None:
        await asyncio.to_thread(self.write_snapshot_sync, kind, records)

    async def write_snapshots(self, snapshots: Mapping[EntityKind, Sequence[Payload]]) -> None:
        await asyncio.to_thread(self.write_snapshots_sync, snapshots)

    @staticmethod
    def _replace(session: Session, kind: EntityKind, records: Sequence[Payload]) -> None:
        session.execute(delete(SnapshotRow).where(SnapshotRow.kind == kind))  # type: ignore[arg-type]
        session.add_all(
            SnapshotRow(
                kind=kind,
                position=position,
                payload=dict(record),
                identity_key=_row_key(kind, record),
            )
            for position, record in enumerate(records)
        )
        log.debug("Replaced %s snapshot with %d row(s)", kind, len(records))


if TYPE_CHECKING:
    _store_check: TransactionalSnapshotStore = SqlAlchemySnapshotStore()
