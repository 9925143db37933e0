"""Errors raised by the ingestion layer."""

from __future__ import annotations


class IngestionError(RuntimeError):
    """Base class for ingestion failures."""


class NotAuthenticatedError(IngestionError):
    """Raised when a run is requested before the remote session is logged in."""

    def __init__(self, status: str) -> None:
        super().__init__(f"Cannot run ingestion: user not logged in (status={status})")
        self.status = status


class InvalidTransitionError(IngestionError):
    """Raised for a session state change that the state machine does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Invalid session transition {current} -> {target}")
        self.current = current
        self.target = target


class MalformedEnvelopeError(IngestionError):
    """Raised when an inbound message cannot be parsed."""


class UnknownEnvelopeTypeError(MalformedEnvelopeError):
    """Raised for a parseable message whose ``type`` is not recognized."""

    def __init__(self, message_type: str) -> None:
        super().__init__(f"Unknown message type: {message_type}")
        self.message_type = message_type
