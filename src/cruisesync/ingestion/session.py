"""Mutable session state owned by the orchestrator, and its read-only projection."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

from .errors import InvalidTransitionError
from .protocol import BatchKind, LogLevel

if TYPE_CHECKING:
    from collections.abc import Callable

    from cruisesync.domain.model import LoyaltyStatus
    from cruisesync.domain.reconciliation import SyncPreview

log = logging.getLogger(__name__)


class SessionStatus(StrEnum):
    IDLE = "idle"
    NOT_AUTHENTICATED = "not_authenticated"
    AUTHENTICATED = "authenticated"
    RUNNING_STEP_1 = "running_step_1"
    RUNNING_STEP_2 = "running_step_2"
    RUNNING_STEP_3 = "running_step_3"
    BOUNCE_STEP_1 = "bounce_step_1"
    BOUNCE_STEP_2 = "bounce_step_2"
    BOUNCE_STEP_3 = "bounce_step_3"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SYNCING = "syncing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_running(self) -> bool:
        return self.value.startswith(("running_step_", "bounce_step_"))

    @property
    def is_busy(self) -> bool:
        return self.is_running or self in (
            SessionStatus.SYNCING,
            SessionStatus.AWAITING_CONFIRMATION,
        )


RUNNING_STATUS: Final[dict[int, SessionStatus]] = {
    1: SessionStatus.RUNNING_STEP_1,
    2: SessionStatus.RUNNING_STEP_2,
    3: SessionStatus.RUNNING_STEP_3,
}
BOUNCE_STATUS: Final[dict[int, SessionStatus]] = {
    1: SessionStatus.BOUNCE_STEP_1,
    2: SessionStatus.BOUNCE_STEP_2,
    3: SessionStatus.BOUNCE_STEP_3,
}

_AUTH: Final = frozenset({SessionStatus.NOT_AUTHENTICATED, SessionStatus.AUTHENTICATED})
_BOUNCES: Final = frozenset(BOUNCE_STATUS.values())
_RUN_START: Final = frozenset({SessionStatus.RUNNING_STEP_1})

# ``idle`` and ``error`` are reachable from every state and are not listed.
ALLOWED_TRANSITIONS: Final[dict[SessionStatus, frozenset[SessionStatus]]] = {
    SessionStatus.IDLE: _AUTH | _RUN_START,
    SessionStatus.NOT_AUTHENTICATED: _AUTH,
    SessionStatus.AUTHENTICATED: _AUTH | _RUN_START,
    SessionStatus.RUNNING_STEP_1: frozenset({SessionStatus.RUNNING_STEP_2}),
    SessionStatus.RUNNING_STEP_2: frozenset({SessionStatus.RUNNING_STEP_3}),
    SessionStatus.RUNNING_STEP_3: _BOUNCES | {SessionStatus.AWAITING_CONFIRMATION},
    SessionStatus.BOUNCE_STEP_1: _BOUNCES | {SessionStatus.AWAITING_CONFIRMATION},
    SessionStatus.BOUNCE_STEP_2: _BOUNCES | {SessionStatus.AWAITING_CONFIRMATION},
    SessionStatus.BOUNCE_STEP_3: _BOUNCES | {SessionStatus.AWAITING_CONFIRMATION},
    SessionStatus.AWAITING_CONFIRMATION: _RUN_START | {SessionStatus.SYNCING},
    SessionStatus.SYNCING: frozenset({SessionStatus.COMPLETE}),
    SessionStatus.COMPLETE: _AUTH | _RUN_START,
    SessionStatus.ERROR: _AUTH | _RUN_START,
}

_ALWAYS_REACHABLE: Final = frozenset({SessionStatus.IDLE, SessionStatus.ERROR})
MAX_LOG_ENTRIES: Final[int] = 1000

_LOG_LEVELS: Final[dict[LogLevel, int]] = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in _ALWAYS_REACHABLE or target in ALLOWED_TRANSITIONS[current]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class LogEntry:
    timestamp: datetime
    level: LogLevel
    message: str
    step: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class Progress:
    current: int = 0
    total: int | None = None
    label: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncCounts:
    offers: int = 0
    sailings: int = 0
    upcoming_cruises: int = 0
    courtesy_holds: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class SessionSnapshot:
    """Read-only view of a session for progress display."""

    status: SessionStatus
    logged_in: bool
    current_step: int | None
    progress: Progress
    logs: tuple[LogEntry, ...]
    buffered: dict[BatchKind, int]
    loyalty: tuple[LoyaltyStatus, ...]
    counts: SyncCounts | None
    last_error: str | None
    last_sync_at: datetime | None
    bounces: int
    has_preview: bool


@dataclass(slots=True, kw_only=True)
class SyncSession:
    """State of one extraction session.

    Only the orchestrator mutates a session, through its message handling and run
    methods; readers take a ``snapshot``.
    """

    status: SessionStatus = SessionStatus.IDLE
    logged_in: bool = False
    current_step: int | None = None
    progress: Progress = field(default_factory=Progress)
    logs: deque[LogEntry] = field(default_factory=lambda: deque(maxlen=MAX_LOG_ENTRIES))
    buffers: dict[BatchKind, list[dict[str, Any]]] = field(
        default_factory=lambda: {BatchKind.OFFERS: [], BatchKind.BOOKINGS: []}
    )
    loyalty: tuple[LoyaltyStatus, ...] = ()
    authoritative_loyalty_seen: bool = False
    fingerprints: set[str] = field(default_factory=set[str])
    bounces: int = 0
    counts: SyncCounts | None = None
    preview: SyncPreview | None = None
    last_error: str | None = None
    last_sync_at: datetime | None = None
    clock: Callable[[], datetime] = _utcnow

    def transition(self, target: SessionStatus) -> None:
        if not can_transition(self.status, target):
            raise InvalidTransitionError(self.status.value, target.value)
        log.debug("Session %s -> %s", self.status, target)
        self.status = target

    def add_log(
        self, level: LogLevel, message: str, *, step: int | None = None
    ) -> LogEntry:
        entry = LogEntry(timestamp=self.clock(), level=level, message=message, step=step)
        self.logs.append(entry)
        if step is None:
            log.log(_LOG_LEVELS[level], "%s", message)
        else:
            log.log(_LOG_LEVELS[level], "[step %d] %s", step, message)
        return entry

    def info(self, message: str, *, step: int | None = None) -> LogEntry:
        return self.add_log(LogLevel.INFO, message, step=step)

    def success(self, message: str, *, step: int | None = None) -> LogEntry:
        return self.add_log(LogLevel.SUCCESS, message, step=step)

    def warning(self, message: str, *, step: int | None = None) -> LogEntry:
        return self.add_log(LogLevel.WARNING, message, step=step)

    def error(self, message: str, *, step: int | None = None) -> LogEntry:
        return self.add_log(LogLevel.ERROR, message, step=step)

    def buffer(self, kind: BatchKind) -> list[dict[str, Any]]:
        return self.buffers.setdefault(kind, [])

    def has_data(self, kind: BatchKind) -> bool:
        if kind is BatchKind.LOYALTY:
            return bool(self.loyalty)
        return bool(self.buffers.get(kind))

    def reset_run(self) -> None:
        """Drop everything collected by a previous run; keep login and history."""

        self.current_step = None
        self.progress = Progress()
        self.buffers = {BatchKind.OFFERS: [], BatchKind.BOOKINGS: []}
        self.loyalty = ()
        self.authoritative_loyalty_seen = False
        self.fingerprints = set()
        self.bounces = 0
        self.counts = None
        self.preview = None
        self.last_error = None

    def snapshot(self, *, log_tail: int = 50) -> SessionSnapshot:
        tail = tuple(self.logs)[-log_tail:] if log_tail > 0 else ()
        return SessionSnapshot(
            status=self.status,
            logged_in=self.logged_in,
            current_step=self.current_step,
            progress=self.progress,
            logs=tail,
            buffered={kind: len(rows) for kind, rows in self.buffers.items()}
            | {BatchKind.LOYALTY: len(self.loyalty)},
            loyalty=self.loyalty,
            counts=self.counts,
            last_error=self.last_error,
            last_sync_at=self.last_sync_at,
            bounces=self.bounces,
            has_preview=self.preview is not None,
        )


__all__ = [
    "ALLOWED_TRANSITIONS",
    "BOUNCE_STATUS",
    "MAX_LOG_ENTRIES",
    "RUNNING_STATUS",
    "LogEntry",
    "Progress",
    "SessionSnapshot",
    "SessionStatus",
    "SyncCounts",
    "SyncSession",
    "can_transition",
]
