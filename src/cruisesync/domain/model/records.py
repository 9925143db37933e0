"""Canonical record types and their persisted payload form."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import TYPE_CHECKING, Any

from .enums import (
    CompletionState,
    CruiseStatus,
    EntityKind,
    LoyaltySource,
    OfferType,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

type Payload = dict[str, Any]


@dataclass(frozen=True, slots=True, kw_only=True)
class Sailing:
    """One ship-and-date row eligible under an offer."""

    ship_name: str | None = None
    sail_date: str | None = None
    nights: int | None = None
    cabin_type: str | None = None
    departure_port: str | None = None
    itinerary_name: str | None = None
    price: float | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CanonicalOffer:
    id: str | None = None
    offer_code: str | None = None
    name: str | None = None
    offer_type: OfferType | None = None
    expiry_date: str | None = None
    trade_in_value: float | None = None
    free_play: float | None = None
    onboard_credit: float | None = None
    guests: int | None = None
    perks: tuple[str, ...] = ()
    sailings: tuple[Sailing, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class CanonicalCruise:
    id: str | None = None
    ship_name: str | None = None
    sail_date: str | None = None
    return_date: str | None = None
    nights: int | None = None
    departure_port: str | None = None
    destination: str | None = None
    itinerary_name: str | None = None
    cabin_type: str | None = None
    price: float | None = None
    price_per_night: float | None = None
    status: CruiseStatus | None = None
    offer_code: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class CanonicalBookedCruise(CanonicalCruise):
    booking_id: str | None = None
    cabin_number: str | None = None
    guests: int | None = None
    total_price: float | None = None
    retail_value: float | None = None
    deposit_paid: float | None = None
    balance_due: float | None = None
    hold_expiration: str | None = None
    completion_state: CompletionState | None = None
    earned_points: int | None = None
    casino_points: int | None = None
    winnings: float | None = None
    actual_spend: float | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class LoyaltyStatus:
    program: str
    tier: str | None = None
    points: int | None = None
    source: LoyaltySource = LoyaltySource.PAGE
    extra: Mapping[str, Any] = field(default_factory=dict)


type CanonicalRecord = CanonicalOffer | CanonicalCruise | CanonicalBookedCruise | LoyaltyStatus

RECORD_TYPE_BY_KIND: dict[EntityKind, type[CanonicalRecord]] = {
    EntityKind.OFFERS: CanonicalOffer,
    EntityKind.CRUISES: CanonicalCruise,
    EntityKind.BOOKED_CRUISES: CanonicalBookedCruise,
    EntityKind.LOYALTY: LoyaltyStatus,
}

_ENUM_FIELDS: dict[str, type[Any]] = {
    "offer_type": OfferType,
    "status": CruiseStatus,
    "completion_state": CompletionState,
    "source": LoyaltySource,
}


def is_empty(value: object) -> bool:
    """Return whether ``value`` carries no information (``0`` is information)."""

    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return not value
    return False


def record_fields(record: CanonicalRecord) -> tuple[str, ...]:
    return tuple(item.name for item in fields(record) if item.name != "extra")


def to_payload(record: CanonicalRecord) -> Payload:
    """Serialise a record into a JSON-compatible mapping."""

    payload = asdict(record)
    extra = payload.pop("extra", None) or {}
    for key, value in extra.items():
        payload.setdefault(key, value)
    if isinstance(record, CanonicalOffer):
        payload["perks"] = list(record.perks)
        payload["sailings"] = [asdict(sailing) for sailing in record.sailings]
    return payload


def from_payload(kind: EntityKind, payload: Mapping[str, Any]) -> CanonicalRecord:
    """Rebuild a canonical record; unknown keys are kept in ``extra``."""

    record_type = RECORD_TYPE_BY_KIND[kind]
    known = {item.name for item in fields(record_type)} - {"extra"}
    values: dict[str, Any] = {}
    extra: dict[str, Any] = dict(payload.get("extra") or {})
    for key, value in payload.items():
        if key == "extra":
            continue
        if key not in known:
            extra[key] = value
            continue
        values[key] = _coerce_field(key, value)
    return record_type(**values, extra=extra)


def _coerce_field(name: str, value: Any) -> Any:
    if value is None:
        return None
    enum_type = _ENUM_FIELDS.get(name)
    if enum_type is not None:
        return enum_type(value)
    if name == "sailings":
        return tuple(
            item if isinstance(item, Sailing) else Sailing(**dict(item)) for item in value
        )
    if name == "perks":
        return tuple(str(item) for item in value)
    return value
