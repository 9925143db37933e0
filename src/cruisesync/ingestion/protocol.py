"""Pydantic models describing the envelopes the extractor posts to the bridge.

Envelopes arrive either flat (``{"type": "log", "message": ...}``) or wrapped
(``{"type": "log", "payload": {"message": ...}}``). Both forms parse to the same
model; fields on the wrapper win over fields inside ``payload``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from enum import StrEnum
from typing import Annotated, Any, Literal, cast

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .errors import MalformedEnvelopeError, UnknownEnvelopeTypeError


class BatchKind(StrEnum):
    OFFERS = "offers"
    BOOKINGS = "bookings"
    LOYALTY = "loyalty"


class LogLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class EnvelopeModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    step: int | None = None


class LogMessage(EnvelopeModel):
    type: Literal["log"]
    message: str
    level: LogLevel = Field(default=LogLevel.INFO, alias="logType")

    @field_validator("level", mode="before")
    @classmethod
    def _unknown_level_is_info(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                return LogLevel(value.strip().lower())
            except ValueError:
                return LogLevel.INFO
        return LogLevel.INFO


class ProgressMessage(EnvelopeModel):
    type: Literal["progress"]
    current: int = 0
    total: int | None = None
    label: str | None = Field(default=None, alias="stepName")

    _normalize_label = field_validator("label", mode="before")(_blank_to_none)


class RecordBatchMessage(EnvelopeModel):
    type: Literal["record_batch"]
    kind: BatchKind | None = None
    data: list[Any] = Field(default_factory=list)
    is_final: bool = Field(default=False, alias="isFinal")
    total_count: int | None = Field(default=None, alias="totalCount")


class NetworkPayloadMessage(EnvelopeModel):
    type: Literal["network_payload"]
    endpoint: str
    url: str = ""
    data: Any = None


class StepCompleteMessage(EnvelopeModel):
    type: Literal["step_complete"]
    step: int
    kind: BatchKind | None = None
    data: list[Any] = Field(default_factory=list)
    total_count: int | None = Field(default=None, alias="totalCount")


class ErrorMessage(EnvelopeModel):
    type: Literal["error"]
    message: str


class AuthStatusMessage(EnvelopeModel):
    type: Literal["auth_status"]
    logged_in: bool = Field(alias="loggedIn")


type Envelope = Annotated[
    LogMessage
    | ProgressMessage
    | RecordBatchMessage
    | NetworkPayloadMessage
    | StepCompleteMessage
    | ErrorMessage
    | AuthStatusMessage,
    Field(discriminator="type"),
]

ENVELOPE_TYPES: frozenset[str] = frozenset(
    {
        "log",
        "progress",
        "record_batch",
        "network_payload",
        "step_complete",
        "error",
        "auth_status",
    }
)

_ENVELOPE_ADAPTER: TypeAdapter[Envelope] = TypeAdapter(Envelope)


def _flatten(raw: Mapping[str, object]) -> dict[str, object]:
    payload = raw.get("payload")
    if not isinstance(payload, Mapping):
        return dict(raw)
    merged: dict[str, object] = dict(cast(Mapping[str, object], payload))
    merged.update((key, value) for key, value in raw.items() if key != "payload")
    return merged


def _decode(raw: str | bytes | Mapping[str, object]) -> Mapping[str, object]:
    if isinstance(raw, Mapping):
        return raw
    try:
        decoded = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedEnvelopeError(f"Envelope is not valid JSON: {exc}") from exc
    if not isinstance(decoded, Mapping):
        raise MalformedEnvelopeError(
            f"Envelope must be a JSON object, got {type(decoded).__name__}"
        )
    return cast(Mapping[str, object], decoded)


def parse_envelope(raw: str | bytes | Mapping[str, object]) -> Envelope:
    """Parse one inbound message.

    Raises ``UnknownEnvelopeTypeError`` for a well-formed message with an
    unrecognized ``type`` and ``MalformedEnvelopeError`` for anything else that
    cannot be parsed.
    """

    data = _flatten(_decode(raw))
    message_type = data.get("type")
    if not isinstance(message_type, str) or not message_type:
        raise MalformedEnvelopeError("Envelope has no type")
    if message_type not in ENVELOPE_TYPES:
        raise UnknownEnvelopeTypeError(message_type)
    try:
        return _ENVELOPE_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise MalformedEnvelopeError(
            f"Invalid {message_type} envelope: {exc.error_count()} error(s)"
        ) from exc


__all__ = [
    "ENVELOPE_TYPES",
    "AuthStatusMessage",
    "BatchKind",
    "Envelope",
    "EnvelopeModel",
    "ErrorMessage",
    "LogLevel",
    "LogMessage",
    "NetworkPayloadMessage",
    "ProgressMessage",
    "RecordBatchMessage",
    "StepCompleteMessage",
    "parse_envelope",
]
