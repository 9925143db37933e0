"""SQLAlchemy mapping metadata for persisted snapshots."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    orm,
)

from cruisesync.domain.model import EntityKind

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from cruisesync.domain.model import Payload

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class PayloadType(TypeDecorator[dict[str, Any]]):
    """JSON object stored as text; key order is preserved."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: dict[str, Any] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(value, default=str)

    def process_result_value(self, value: str | None, dialect: Dialect) -> dict[str, Any]:
        _ = dialect
        if value is None:
            return {}
        loaded = json.loads(value)
        if not isinstance(loaded, dict):
            return {}
        return cast(dict[str, Any], loaded)


@dataclass(eq=False)
class SnapshotRow:
    """One stored record of a kind's snapshot, in snapshot order."""

    kind: EntityKind
    position: int
    payload: Payload
    identity_key: str | None = None
    written_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    id: int | None = None


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "pk": "pk_%(table_name)s",
}

snapshot_row_table = Table(
    "snapshot_records",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "kind",
        Enum(EntityKind, native_enum=False, values_callable=lambda kinds: [k.value for k in kinds]),
        nullable=False,
    ),
    Column("position", Integer, nullable=False),
    Column("identity_key", String(512), nullable=True),
    Column("payload", PayloadType(), nullable=False),
    Column("written_at", UTCDateTime(), nullable=False),
    Index("ix_snapshot_records_kind_position", "kind", "position"),
    Index("ix_snapshot_records_identity_key", "identity_key"),
)


@cache
def start_mappers() -> orm.registry:
    """Map the snapshot row dataclass onto its table."""

    log.info("Starting SQLAlchemy mappers")
    mapper_registry.map_imperatively(SnapshotRow, snapshot_row_table)
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
