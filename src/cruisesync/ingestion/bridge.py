"""Route extractor messages into session state.

The bridge never raises for bad input: malformed or unknown messages are logged on
the session and dropped, and a bad row inside a batch is skipped without losing the
rest of the batch.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast

from cruisesync.config.session import DEFAULT_FINGERPRINT_PREFIX
from cruisesync.domain.model import LoyaltySource
from cruisesync.domain.reconciliation import accept_loyalty
from cruisesync.domain.translation import translate_loyalty

from .decoders import DECODERS, decode_network_payload
from .errors import MalformedEnvelopeError, UnknownEnvelopeTypeError
from .protocol import (
    AuthStatusMessage,
    BatchKind,
    ErrorMessage,
    LogMessage,
    NetworkPayloadMessage,
    ProgressMessage,
    RecordBatchMessage,
    StepCompleteMessage,
    parse_envelope,
)
from .session import Progress, SessionStatus
from .steps import STEPS_BY_NUMBER, WaitReason

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cruisesync.domain.model import LoyaltyStatus

    from .decoders import PayloadDecoder
    from .protocol import Envelope
    from .session import SyncSession
    from .steps import StepWaiters

log = logging.getLogger(__name__)


def payload_fingerprint(
    endpoint: str, url: str, data: object, *, prefix: int = DEFAULT_FINGERPRINT_PREFIX
) -> str:
    """Hash of endpoint, source URL and the first ``prefix`` characters of the body."""

    body = json.dumps(data, sort_keys=True, default=str)[:prefix]
    digest = hashlib.sha256()
    for part in (endpoint, url, body):
        digest.update(part.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


class MessageBridge:
    def __init__(
        self,
        session: SyncSession,
        waiters: StepWaiters,
        *,
        fingerprint_prefix: int = DEFAULT_FINGERPRINT_PREFIX,
        decoders: tuple[PayloadDecoder, ...] = DECODERS,
    ) -> None:
        self._session = session
        self._waiters = waiters
        self._fingerprint_prefix = fingerprint_prefix
        self._decoders = decoders
        self._handlers: dict[type[Any], Callable[[Any], None]] = {
            LogMessage: self._on_log,
            ProgressMessage: self._on_progress,
            RecordBatchMessage: self._on_record_batch,
            NetworkPayloadMessage: self._on_network_payload,
            StepCompleteMessage: self._on_step_complete,
            ErrorMessage: self._on_error,
            AuthStatusMessage: self._on_auth_status,
        }

    def handle(self, raw: str | bytes | Mapping[str, object]) -> Envelope | None:
        """Apply one message to the session; returns the parsed envelope or ``None``."""

        try:
            message = parse_envelope(raw)
        except UnknownEnvelopeTypeError as exc:
            self._session.warning(f"Ignoring message with unknown type '{exc.message_type}'")
            return None
        except MalformedEnvelopeError as exc:
            self._session.warning(f"Dropped malformed message: {exc}")
            return None

        self._waiters.touch_active()
        self._handlers[type(message)](message)
        return message

    # Handlers ------------------------------------------------------------------------

    def _on_log(self, message: LogMessage) -> None:
        self._session.add_log(message.level, message.message, step=message.step)

    def _on_progress(self, message: ProgressMessage) -> None:
        self._session.progress = Progress(
            current=message.current, total=message.total, label=message.label
        )
        total = "?" if message.total is None else str(message.total)
        suffix = f": {message.label}" if message.label else ""
        self._session.info(f"Progress {message.current}/{total}{suffix}", step=message.step)

    def _on_record_batch(self, message: RecordBatchMessage) -> None:
        kind = self._batch_kind(message.kind, message.step)
        if kind is None:
            self._session.warning(
                "Dropped record batch without kind or known step", step=message.step
            )
            return
        added = self._buffer_rows(kind, message.data, step=message.step)
        final = " (final)" if message.is_final else ""
        self._session.info(
            f"Received {added} {kind} record(s){final}; {self._buffered(kind)} buffered",
            step=message.step,
        )

    def _on_network_payload(self, message: NetworkPayloadMessage) -> None:
        fingerprint = payload_fingerprint(
            message.endpoint, message.url, message.data, prefix=self._fingerprint_prefix
        )
        if fingerprint in self._session.fingerprints:
            self._session.info(
                f"Skipping duplicate {message.endpoint} payload", step=message.step
            )
            return
        self._session.fingerprints.add(fingerprint)

        decoded = decode_network_payload(message.data, decoders=self._decoders)
        if decoded is None:
            self._session.warning(
                f"Unrecognized {message.endpoint} payload shape; skipped", step=message.step
            )
            return

        if decoded.kind is BatchKind.LOYALTY:
            self._capture_loyalty(decoded.loyalty, authoritative=True, step=message.step)
            self._session.success(
                f"Captured {decoded.count} loyalty program(s) from {message.endpoint}",
                step=message.step,
            )
            return

        self._session.buffer(decoded.kind).extend(decoded.rows)
        self._session.success(
            f"Captured {decoded.count} {decoded.kind} record(s) from {message.endpoint} "
            f"({decoded.decoder})",
            step=message.step,
        )
        if decoded.skipped:
            self._session.warning(
                f"Skipped {decoded.skipped} malformed {decoded.kind} record(s) in "
                f"{message.endpoint} payload",
                step=message.step,
            )

    def _on_step_complete(self, message: StepCompleteMessage) -> None:
        if message.data:
            kind = self._batch_kind(message.kind, message.step)
            if kind is not None:
                self._buffer_rows(kind, message.data, step=message.step)
        total = message.total_count if message.total_count is not None else len(message.data)
        self._session.success(
            f"Step {message.step} completed with {total} item(s)", step=message.step
        )
        if not self._waiters.resolve(message.step, WaitReason.COMPLETED):
            log.debug("step_complete for step %d had no pending wait", message.step)

    def _on_error(self, message: ErrorMessage) -> None:
        self._session.last_error = message.message
        self._session.error(f"Extractor error: {message.message}", step=message.step)

    def _on_auth_status(self, message: AuthStatusMessage) -> None:
        if self._session.status.is_busy:
            self._session.info(
                f"Ignoring auth status while {self._session.status}", step=message.step
            )
            return
        self._session.logged_in = message.logged_in
        target = (
            SessionStatus.AUTHENTICATED if message.logged_in else SessionStatus.NOT_AUTHENTICATED
        )
        self._session.transition(target)
        self._session.info(
            "User logged in successfully" if message.logged_in else "User not logged in"
        )

    # Helpers -------------------------------------------------------------------------

    def _batch_kind(self, kind: BatchKind | None, step: int | None) -> BatchKind | None:
        if kind is not None:
            return kind
        if step is not None and step in STEPS_BY_NUMBER:
            return STEPS_BY_NUMBER[step].kind
        return None

    def _buffered(self, kind: BatchKind) -> int:
        if kind is BatchKind.LOYALTY:
            return len(self._session.loyalty)
        return len(self._session.buffer(kind))

    def _buffer_rows(self, kind: BatchKind, data: Sequence[object], *, step: int | None) -> int:
        rows: list[dict[str, Any]] = [
            dict(cast(Mapping[str, Any], item)) for item in data if isinstance(item, Mapping)
        ]
        skipped = len(data) - len(rows)
        if skipped:
            self._session.warning(f"Skipped {skipped} malformed {kind} row(s)", step=step)
        if kind is BatchKind.LOYALTY:
            statuses: list[LoyaltyStatus] = []
            for row in rows:
                try:
                    statuses.extend(translate_loyalty(row, source=LoyaltySource.PAGE))
                except Exception:  # noqa: BLE001
                    log.exception("Skipping loyalty row that could not be translated")
                    self._session.warning("Skipped 1 malformed loyalty row", step=step)
            self._capture_loyalty(statuses, authoritative=False, step=step)
            return len(statuses)
        self._session.buffer(kind).extend(rows)
        return len(rows)

    def _capture_loyalty(
        self, statuses: Sequence[LoyaltyStatus], *, authoritative: bool, step: int | None
    ) -> None:
        if not statuses:
            return
        capture = accept_loyalty(
            self._session.loyalty,
            statuses,
            authoritative=authoritative,
            authoritative_seen=self._session.authoritative_loyalty_seen,
        )
        if not capture.accepted:
            programs = ", ".join(status.program for status in statuses)
            self._session.warning(
                f"Ignored page loyalty figures ({programs}); account API figures take precedence",
                step=step,
            )
            return
        self._session.loyalty = capture.statuses
        self._session.authoritative_loyalty_seen = capture.authoritative_seen


__all__ = ["MessageBridge", "payload_fingerprint"]
