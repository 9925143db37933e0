"""Extraction session orchestration: message protocol, bridge, steps and state."""

from __future__ import annotations

from .bridge import MessageBridge, payload_fingerprint
from .decoders import DECODERS, DecodedPayload, decode_network_payload
from .errors import (
    IngestionError,
    InvalidTransitionError,
    MalformedEnvelopeError,
    NotAuthenticatedError,
    UnknownEnvelopeTypeError,
)
from .orchestrator import IngestionOrchestrator, SyncOutcome, compute_counts
from .protocol import BatchKind, Envelope, LogLevel, parse_envelope
from .session import (
    LogEntry,
    Progress,
    SessionSnapshot,
    SessionStatus,
    SyncCounts,
    SyncSession,
)
from .steps import STEPS, StepDefinition, StepOutcome, StepWaiter, StepWaiters, WaitReason

__all__ = [
    "DECODERS",
    "STEPS",
    "BatchKind",
    "DecodedPayload",
    "Envelope",
    "IngestionError",
    "IngestionOrchestrator",
    "InvalidTransitionError",
    "LogEntry",
    "LogLevel",
    "MalformedEnvelopeError",
    "MessageBridge",
    "NotAuthenticatedError",
    "Progress",
    "SessionSnapshot",
    "SessionStatus",
    "StepDefinition",
    "StepOutcome",
    "StepWaiter",
    "StepWaiters",
    "SyncCounts",
    "SyncOutcome",
    "SyncSession",
    "UnknownEnvelopeTypeError",
    "WaitReason",
    "compute_counts",
    "decode_network_payload",
    "parse_envelope",
    "payload_fingerprint",
]
