"""Identity key computation, one function per entity kind."""

from __future__ import annotations

from functools import singledispatch
from typing import cast

from .records import (
    CanonicalBookedCruise,
    CanonicalCruise,
    CanonicalOffer,
    LoyaltyStatus,
    is_empty,
)

type IdentityKey = str | tuple[str, ...]


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


def _fold(value: object) -> str:
    return " ".join(_text(value).lower().split())


@singledispatch
def identity_key(record: object) -> IdentityKey | None:
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


@identity_key.register
def _(record: CanonicalOffer) -> IdentityKey | None:
    if not is_empty(record.offer_code):
        return _text(record.offer_code).upper()
    if not is_empty(record.name):
        return _fold(record.name)
    if not is_empty(record.id):
        return _text(record.id)
    return None


def _cruise_key(record: CanonicalCruise, booking_id: object) -> IdentityKey | None:
    """Booking id when there is one, else the (ship, sail date, cabin type) sailing.

    ``id`` is a stored label and never part of the key.
    """

    if not is_empty(booking_id):
        return _text(booking_id)
    if is_empty(record.ship_name) or is_empty(record.sail_date):
        return None
    return (_fold(record.ship_name), _text(record.sail_date), _fold(record.cabin_type))


@identity_key.register
def _(record: CanonicalCruise) -> IdentityKey | None:
    return _cruise_key(record, None)


@identity_key.register
def _(record: CanonicalBookedCruise) -> IdentityKey | None:
    return _cruise_key(record, record.booking_id)


@identity_key.register
def _(record: LoyaltyStatus) -> IdentityKey | None:
    return _text(record.program) or None


def sailing_key(record: CanonicalCruise) -> tuple[str, str, str] | None:
    """The (ship, sail date, cabin type) part of a cruise key, ignoring any booking id."""

    return cast(tuple[str, str, str] | None, _cruise_key(record, None))


def key_token(key: IdentityKey) -> str:
    """Flatten a key into a single string suitable for storage columns."""

    if isinstance(key, tuple):
        return "|".join(key)
    return key
