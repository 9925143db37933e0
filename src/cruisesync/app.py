"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import date
from logging import getLogger
from typing import TYPE_CHECKING, cast

from cruisesync.adapters.remote_session import RemoteSessionNavigator
from cruisesync.adapters.replay import ReplayNavigator
from cruisesync.adapters.sqlalchemy import SqlAlchemySnapshotStore, startup
from cruisesync.config import get_remote_session_config, get_session_config
from cruisesync.domain.model import (
    CanonicalBookedCruise,
    CanonicalCruise,
    CanonicalOffer,
    EntityKind,
)
from cruisesync.domain.reconciliation import load_snapshot
from cruisesync.domain.repair import RepairSummary, repair_all
from cruisesync.domain.validation import (
    DataQualityScore,
    DatasetValidationSummary,
    calculate_data_quality,
    validate_dataset,
)
from cruisesync.ingestion import IngestionOrchestrator, SyncCounts, SyncOutcome

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from cruisesync.config import RemoteSessionConfig, SessionConfig
    from cruisesync.domain.model import CanonicalRecord
    from cruisesync.domain.ports import SnapshotStore
    from cruisesync.domain.reconciliation import SyncPreview

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class IngestResult:
    counts: SyncCounts | None = None
    preview: SyncPreview | None = None
    outcome: SyncOutcome | None = None

    @property
    def committed(self) -> bool:
        return self.outcome is not None and self.outcome.ok


@dataclass(frozen=True, slots=True, kw_only=True)
class QualityReport:
    validation: DatasetValidationSummary
    score: DataQualityScore


def build_snapshot_store() -> SqlAlchemySnapshotStore:
    """Start the SQLAlchemy adapter on the configured database and wrap it as a store."""

    startup()
    return SqlAlchemySnapshotStore()


async def _finish_run(
    orchestrator: IngestionOrchestrator, counts: SyncCounts | None, *, dry_run: bool
) -> IngestResult:
    if counts is None:
        return IngestResult()
    if dry_run:
        return IngestResult(counts=counts, preview=await orchestrator.build_preview())
    outcome = await orchestrator.sync_to_app()
    return IngestResult(counts=counts, preview=outcome.preview, outcome=outcome)


async def replay_session(
    path: Path | str,
    *,
    store: SnapshotStore | None = None,
    config: SessionConfig | None = None,
    dry_run: bool = False,
    today: Callable[[], date] = date.today,
) -> IngestResult:
    """Run a full session from a recorded extraction, then preview or commit it."""

    navigator = ReplayNavigator.from_path(path)
    effective_store = store or build_snapshot_store()
    # Recorded envelopes arrive synchronously; there is no page to settle.
    effective_config = config or replace(get_session_config(), settle_seconds=0.0)
    orchestrator = IngestionOrchestrator(
        navigator, effective_store, effective_config, today=today
    )
    navigator.bind(orchestrator.handle_message)
    delivered = navigator.replay_preamble()
    log.info("Replaying %s (%d preamble message(s))", path, delivered)

    counts = await orchestrator.run_ingestion()
    return await _finish_run(orchestrator, counts, dry_run=dry_run)


async def run_remote_session(
    *,
    remote_config: RemoteSessionConfig | None = None,
    store: SnapshotStore | None = None,
    config: SessionConfig | None = None,
    dry_run: bool = False,
    navigator_factory: Callable[[RemoteSessionConfig], RemoteSessionNavigator] = (
        RemoteSessionNavigator
    ),
) -> IngestResult:
    """Drive a remote sandbox session while its events are pumped into the orchestrator."""

    effective_remote = remote_config or get_remote_session_config()
    effective_store = store or build_snapshot_store()
    async with navigator_factory(effective_remote) as navigator:
        orchestrator = IngestionOrchestrator(
            navigator, effective_store, config or get_session_config()
        )
        logged_in = await navigator.is_logged_in()
        orchestrator.handle_message({"type": "auth_status", "loggedIn": logged_in})

        stop = asyncio.Event()
        pump = asyncio.create_task(navigator.pump_events(orchestrator.handle_message, stop=stop))
        try:
            counts = await orchestrator.run_ingestion()
        finally:
            stop.set()
            delivered = await pump
            log.info("Received %d event(s) from the remote session", delivered)
        return await _finish_run(orchestrator, counts, dry_run=dry_run)


async def load_stored_records(
    store: SnapshotStore,
) -> dict[EntityKind, list[CanonicalRecord]]:
    return {kind: load_snapshot(kind, await store.read_snapshot(kind)) for kind in EntityKind}


def _split(
    records: dict[EntityKind, list[CanonicalRecord]],
) -> tuple[list[CanonicalOffer], list[CanonicalCruise], list[CanonicalBookedCruise]]:
    return (
        cast(list[CanonicalOffer], records[EntityKind.OFFERS]),
        cast(list[CanonicalCruise], records[EntityKind.CRUISES]),
        cast(list[CanonicalBookedCruise], records[EntityKind.BOOKED_CRUISES]),
    )


async def quality_report(
    *, store: SnapshotStore | None = None, today: date | None = None
) -> QualityReport:
    offers, cruises, booked = _split(await load_stored_records(store or build_snapshot_store()))
    validation = validate_dataset(
        offers=offers, cruises=cruises, booked_cruises=booked, today=today
    )
    score = calculate_data_quality([*cruises, *booked], today=today)
    log.info(
        "Quality: %d record(s), %d error(s), overall score %d",
        validation.total_records,
        validation.total_errors,
        score.overall,
    )
    return QualityReport(validation=validation, score=score)


async def repair_report(
    *, store: SnapshotStore | None = None, today: date | None = None
) -> RepairSummary:
    """Report what the repairer would change in the stored records; nothing is written."""

    offers, cruises, booked = _split(await load_stored_records(store or build_snapshot_store()))
    return repair_all(offers=offers, cruises=cruises, booked_cruises=booked, today=today)
