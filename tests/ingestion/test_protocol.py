from __future__ import annotations

import json

import pytest

from cruisesync.ingestion import (
    BatchKind,
    LogLevel,
    MalformedEnvelopeError,
    UnknownEnvelopeTypeError,
    parse_envelope,
)
from cruisesync.ingestion.protocol import (
    AuthStatusMessage,
    LogMessage,
    ProgressMessage,
    RecordBatchMessage,
    StepCompleteMessage,
)


def test_flat_and_wrapped_forms_parse_alike() -> None:
    flat = parse_envelope({"type": "log", "message": "Loading offers", "logType": "success"})
    wrapped = parse_envelope(
        {"type": "log", "payload": {"message": "Loading offers", "logType": "success"}}
    )

    assert flat == wrapped
    assert isinstance(flat, LogMessage)
    assert flat.level is LogLevel.SUCCESS


def test_wrapper_fields_win_over_payload() -> None:
    envelope = parse_envelope(
        {"type": "progress", "current": 3, "payload": {"current": 1, "total": 10}}
    )

    assert isinstance(envelope, ProgressMessage)
    assert (envelope.current, envelope.total) == (3, 10)


def test_unknown_log_level_falls_back_to_info() -> None:
    envelope = parse_envelope({"type": "log", "message": "hi", "logType": "verbose"})

    assert isinstance(envelope, LogMessage)
    assert envelope.level is LogLevel.INFO


def test_record_batch_from_json_text() -> None:
    raw = json.dumps(
        {
            "type": "record_batch",
            "kind": "offers",
            "step": 1,
            "data": [{"offerCode": "ABC123"}],
            "totalCount": 4,
        }
    )

    envelope = parse_envelope(raw)

    assert isinstance(envelope, RecordBatchMessage)
    assert envelope.kind is BatchKind.OFFERS
    assert envelope.step == 1
    assert envelope.total_count == 4
    assert not envelope.is_final


def test_step_complete_carries_optional_data() -> None:
    envelope = parse_envelope({"type": "step_complete", "step": 2, "data": [{"bookingId": "1"}]})

    assert isinstance(envelope, StepCompleteMessage)
    assert envelope.step == 2
    assert envelope.data == [{"bookingId": "1"}]


def test_auth_status_alias() -> None:
    envelope = parse_envelope(b'{"type": "auth_status", "loggedIn": true}')

    assert isinstance(envelope, AuthStatusMessage)
    assert envelope.logged_in


def test_unknown_type_is_reported_separately() -> None:
    with pytest.raises(UnknownEnvelopeTypeError) as excinfo:
        parse_envelope({"type": "heartbeat"})

    assert excinfo.value.message_type == "heartbeat"


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        {"message": "no type"},
        {"type": "step_complete"},
        {"type": "auth_status", "loggedIn": "perhaps"},
    ],
)
def test_malformed_envelopes(raw: object) -> None:
    with pytest.raises(MalformedEnvelopeError) as excinfo:
        parse_envelope(raw)  # type: ignore[arg-type]

    assert not isinstance(excinfo.value, UnknownEnvelopeTypeError)
