"""Drive an extraction session step by step, then reconcile and commit on request.

The orchestrator owns the session. Extractor output reaches it only through
``handle_message``; navigation and store calls are awaited explicitly. A step that
stalls or hits its ceiling is not a failure: the run continues with whatever was
buffered. The only way a session ends in ``error`` is a failure while committing.

Writes during ``sync_to_app`` are best-effort per kind, not transactional across
kinds: if one kind fails, kinds already written stay written. Set
``SessionConfig.atomic_writes`` and use a store that implements ``write_snapshots``
to commit every kind in one transaction instead.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from cruisesync.config.session import SessionConfig
from cruisesync.domain.model import (
    CompletionState,
    CruiseStatus,
    EntityKind,
    identity_key,
    is_empty,
    to_payload,
)
from cruisesync.domain.ports import TransactionalSnapshotStore
from cruisesync.domain.reconciliation import (
    apply_sync_preview,
    build_sync_preview,
    load_snapshot,
    prepare_candidates,
)
from cruisesync.domain.translation import translate_booking, translate_offer

from .bridge import MessageBridge
from .errors import NotAuthenticatedError
from .protocol import BatchKind
from .session import (
    BOUNCE_STATUS,
    RUNNING_STATUS,
    SessionStatus,
    SyncCounts,
    SyncSession,
)
from .steps import STEPS, StepWaiters, WaitReason

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from cruisesync.domain.model import CanonicalRecord, Payload
    from cruisesync.domain.ports import Navigator, SnapshotStore
    from cruisesync.domain.reconciliation import SyncPreview

    from .protocol import Envelope
    from .session import SessionSnapshot
    from .steps import StepDefinition, StepOutcome

log = logging.getLogger(__name__)

BANNER_RULE = "=" * 40


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncOutcome:
    status: SessionStatus
    committed: tuple[EntityKind, ...] = ()
    failed_kind: EntityKind | None = None
    error: str | None = None
    preview: SyncPreview | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


def compute_counts(session: SyncSession) -> SyncCounts:
    """Unique offers, their sailings, upcoming cruises and holds in the buffers."""

    offer_keys: set[object] = set()
    sailing_keys: set[tuple[object, str, str]] = set()
    for row in session.buffer(BatchKind.OFFERS):
        try:
            offer = translate_offer(row)
        except Exception:  # noqa: BLE001
            log.exception("Not counting an offer row that could not be translated")
            continue
        key = identity_key(offer)
        if key is None:
            continue
        offer_keys.add(key)
        for sailing in offer.sailings:
            if is_empty(sailing.ship_name) or is_empty(sailing.sail_date):
                continue
            ship = " ".join(str(sailing.ship_name).lower().split())
            sailing_keys.add((key, ship, str(sailing.sail_date).strip()))

    bookings: dict[object, tuple[CruiseStatus | None, CompletionState | None]] = {}
    for index, row in enumerate(session.buffer(BatchKind.BOOKINGS)):
        try:
            booking = translate_booking(row)
        except Exception:  # noqa: BLE001
            log.exception("Not counting a booking row that could not be translated")
            continue
        key = identity_key(booking) or ("row", str(index))
        bookings[key] = (booking.status, booking.completion_state)

    holds = sum(1 for status, _ in bookings.values() if status is CruiseStatus.COURTESY_HOLD)
    upcoming = sum(
        1
        for status, completion in bookings.values()
        if status is CruiseStatus.BOOKED
        and completion in (None, CompletionState.UPCOMING)
    )
    return SyncCounts(
        offers=len(offer_keys),
        sailings=len(sailing_keys),
        upcoming_cruises=upcoming,
        courtesy_holds=holds,
    )


class IngestionOrchestrator:
    def __init__(
        self,
        navigator: Navigator,
        store: SnapshotStore,
        config: SessionConfig | None = None,
        *,
        session: SyncSession | None = None,
        today: Callable[[], date] = date.today,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._navigator = navigator
        self._store = store
        self._config = config or SessionConfig()
        self._session = session or SyncSession()
        self._today = today
        self._sleep = sleep
        self._waiters = StepWaiters(
            stall_timeout=self._config.stall_timeout_seconds,
            hard_timeout=self._config.step_timeout_seconds,
        )
        self._bridge = MessageBridge(
            self._session, self._waiters, fingerprint_prefix=self._config.fingerprint_prefix
        )
        self._generation = 0
        self._running = False

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    def snapshot(self) -> SessionSnapshot:
        return self._session.snapshot(log_tail=self._config.log_tail)

    def handle_message(self, raw: str | bytes | Mapping[str, object]) -> Envelope | None:
        return self._bridge.handle(raw)

    # Ingestion -------------------------------------------------------------------------

    async def run_ingestion(self) -> SyncCounts | None:
        """Run every step, bounce back for missing data, then await confirmation.

        Returns ``None`` when the run was cancelled or another run is in progress.
        """

        session = self._session
        if self._running:
            session.warning("Ingestion already running, ignoring duplicate call")
            return None
        if not session.logged_in:
            session.error("Cannot run ingestion: user not logged in")
            raise NotAuthenticatedError(session.status.value)

        session.transition(SessionStatus.RUNNING_STEP_1)
        session.reset_run()
        self._running = True
        self._generation += 1
        generation = self._generation
        try:
            session.info("Starting ingestion process...")
            for step in STEPS:
                if step.number > 1:
                    session.transition(RUNNING_STATUS[step.number])
                await self._run_step(step, generation)
                if generation != self._generation:
                    return None
            if not await self._bounce_missing(generation):
                return None
            return self._finish()
        except Exception as exc:
            session.last_error = str(exc)
            session.error(f"Ingestion failed: {exc}")
            session.transition(SessionStatus.ERROR)
            raise
        finally:
            self._running = False

    async def _run_step(self, step: StepDefinition, generation: int) -> StepOutcome | None:
        """Navigate, start the extractor and wait; ``None`` once the run is superseded."""

        session = self._session
        session.current_step = step.number
        session.info(f"Step {step.number}: {step.label}", step=step.number)
        try:
            await self._navigator.navigate(step.target)
        except Exception as exc:  # noqa: BLE001
            if generation == self._generation:
                session.error(f"Navigation to {step.target} failed: {exc}", step=step.number)
            return None
        if generation != self._generation:
            return None
        await self._sleep(self._config.settle_seconds)
        if generation != self._generation:
            return None

        waiter = self._waiters.open(step.number)
        try:
            await self._navigator.start_extractor(step.number)
        except Exception as exc:  # noqa: BLE001
            waiter.resolve(WaitReason.CANCELLED)
            if generation == self._generation:
                session.error(f"Could not start extractor: {exc}", step=step.number)
            return None
        if generation != self._generation:
            waiter.resolve(WaitReason.CANCELLED)
            return None

        outcome = await waiter.wait()
        if generation != self._generation:
            return None
        buffered = self._buffered(step.kind)
        if outcome.reason is WaitReason.STALLED:
            session.warning(
                f"No progress for {self._config.stall_timeout_seconds:.0f}s; "
                f"continuing with {buffered} buffered",
                step=step.number,
            )
        elif outcome.reason is WaitReason.TIMED_OUT:
            session.warning(
                f"Step exceeded {self._config.step_timeout_seconds:.0f}s; "
                f"continuing with {buffered} buffered",
                step=step.number,
            )
        return outcome

    async def _bounce_missing(self, generation: int) -> bool:
        session = self._session
        while True:
            missing = [step for step in STEPS if not session.has_data(step.kind)]
            if not missing:
                return True
            names = ", ".join(str(step.kind) for step in missing)
            if session.bounces >= self._config.max_bounces:
                session.warning(f"Still missing {names}; continuing with what was collected")
                return True
            session.bounces += 1
            session.warning(
                f"Missing {names}; revisiting (bounce {session.bounces}/"
                f"{self._config.max_bounces})"
            )
            for step in missing:
                session.transition(BOUNCE_STATUS[step.number])
                await self._run_step(step, generation)
                if generation != self._generation:
                    return False

    def _finish(self) -> SyncCounts:
        session = self._session
        counts = compute_counts(session)
        session.counts = counts
        session.current_step = None
        session.success("========== INGESTION COMPLETE ==========")
        session.success(f"Found {counts.offers} unique offers with {counts.sailings} sailings")
        session.success(f"Found {counts.upcoming_cruises} upcoming cruises")
        session.success(f"Found {counts.courtesy_holds} courtesy holds")
        for status in session.loyalty:
            points = "N/A" if status.points is None else status.points
            session.success(f"{status.program}: {status.tier or 'N/A'} ({points} points)")
        session.success(BANNER_RULE)
        session.transition(SessionStatus.AWAITING_CONFIRMATION)
        session.success("All data extracted successfully! Ready to sync to app.")
        return counts

    def _buffered(self, kind: BatchKind) -> int:
        if kind is BatchKind.LOYALTY:
            return len(self._session.loyalty)
        return len(self._session.buffer(kind))

    # Reconciliation ----------------------------------------------------------------------

    async def _read_snapshots(self) -> dict[EntityKind, list[CanonicalRecord]]:
        snapshots: dict[EntityKind, list[CanonicalRecord]] = {}
        for kind in EntityKind:
            snapshots[kind] = load_snapshot(kind, await self._store.read_snapshot(kind))
        return snapshots

    def _preview(self, snapshots: Mapping[EntityKind, list[CanonicalRecord]]) -> SyncPreview:
        session = self._session
        candidates = prepare_candidates(
            offers=session.buffer(BatchKind.OFFERS),
            bookings=session.buffer(BatchKind.BOOKINGS),
            loyalty=session.loyalty,
            today=self._today(),
        )
        preview = build_sync_preview(
            candidates, snapshots, authoritative_loyalty=session.authoritative_loyalty_seen
        )
        session.preview = preview
        return preview

    async def build_preview(self) -> SyncPreview:
        """Classify the buffered records against the store without writing anything."""

        preview = self._preview(await self._read_snapshots())
        for kind, counts in preview.counts.items():
            log.info(
                "Preview %s: %d new, %d updated, %d unchanged",
                kind,
                counts["new"],
                counts["updated"],
                counts["unchanged"],
            )
        return preview

    async def sync_to_app(self) -> SyncOutcome:
        """Reconcile the buffers and write the merged snapshot back.

        Never raises for store failures: the session moves to ``error`` with the
        message kept verbatim and the outcome lists the kinds already written.
        """

        session = self._session
        session.transition(SessionStatus.SYNCING)
        session.info("Syncing extracted data to app...")
        generation = self._generation
        committed: list[EntityKind] = []
        current: EntityKind | None = None
        preview: SyncPreview | None = None
        try:
            snapshots = await self._read_snapshots()
            if generation != self._generation:
                return self._sync_cancelled(committed, preview)
            preview = self._preview(snapshots)
            merged = apply_sync_preview(preview, snapshots)
            payloads: dict[EntityKind, list[Payload]] = {
                kind: [to_payload(record) for record in records]
                for kind, records in merged.items()
            }
            if self._config.atomic_writes and isinstance(
                self._store, TransactionalSnapshotStore
            ):
                await self._store.write_snapshots(payloads)
                committed.extend(payloads)
                if generation != self._generation:
                    return self._sync_cancelled(committed, preview)
            else:
                if self._config.atomic_writes:
                    session.warning("Store cannot write atomically; writing each kind in turn")
                for kind, rows in payloads.items():
                    current = kind
                    await self._store.write_snapshot(kind, rows)
                    committed.append(kind)
                    if generation != self._generation:
                        return self._sync_cancelled(committed, preview)
                    session.info(f"Saved {len(rows)} {kind}")
                current = None
        except Exception as exc:  # noqa: BLE001
            if generation != self._generation:
                log.debug("Sync failure after cancel", exc_info=True)
                return self._sync_cancelled(committed, preview)
            message = str(exc)
            log.debug("Sync failure detail", exc_info=True)
            session.last_error = message
            session.error(f"Sync failed: {message}")
            if committed:
                kept = ", ".join(str(kind) for kind in committed)
                session.warning(f"Already written and kept: {kept}")
            session.transition(SessionStatus.ERROR)
            return SyncOutcome(
                status=SessionStatus.ERROR,
                committed=tuple(committed),
                failed_kind=current,
                error=message,
                preview=preview,
            )

        session.last_sync_at = session.clock()
        session.transition(SessionStatus.COMPLETE)
        for kind, counts in preview.counts.items():
            if counts["new"] or counts["updated"]:
                session.success(
                    f"{kind}: {counts['new']} new, {counts['updated']} updated, "
                    f"{counts['unchanged']} unchanged"
                )
        session.success("Sync complete")
        return SyncOutcome(
            status=SessionStatus.COMPLETE, committed=tuple(committed), preview=preview
        )

    def _sync_cancelled(
        self, committed: list[EntityKind], preview: SyncPreview | None
    ) -> SyncOutcome:
        session = self._session
        if committed:
            kept = ", ".join(str(kind) for kind in committed)
            session.warning(f"Sync cancelled; already written and kept: {kept}")
        else:
            session.info("Sync cancelled before anything was written")
        return SyncOutcome(
            status=session.status,
            committed=tuple(committed),
            preview=preview,
            cancelled=True,
        )

    # Cancellation ------------------------------------------------------------------------

    def cancel(self) -> None:
        """Abort the run: drop pending waits and uncommitted buffers, return to idle.

        Writes that already reached the store are not rolled back; a sync in progress
        stops before its next write.
        """

        self._generation += 1
        self._waiters.cancel_all()
        self._session.reset_run()
        self._session.transition(SessionStatus.IDLE)
        self._session.info("Ingestion cancelled")


__all__ = ["IngestionOrchestrator", "SyncOutcome", "compute_counts"]
