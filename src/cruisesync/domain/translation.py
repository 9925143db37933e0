"""Map loosely-typed extractor rows onto canonical records.

Rows come from page scraping and from decoded network payloads, so the same value can
arrive under several keys. Each canonical field lists the raw keys it accepts, in
priority order. Values are carried over as-is apart from identifiers, which become
text; cleaning them is the repairer's job.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Final

from .model import (
    CanonicalBookedCruise,
    CanonicalCruise,
    CanonicalOffer,
    CompletionState,
    CruiseStatus,
    LoyaltyProgram,
    LoyaltySource,
    LoyaltyStatus,
    OfferType,
    Sailing,
    is_empty,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

type RawRecord = Mapping[str, Any]

OFFER_ALIASES: Final[dict[str, tuple[str, ...]]] = {
    "id": ("id",),
    "offer_code": ("offerCode", "code", "offer_code"),
    "name": ("offerName", "name", "title"),
    "expiry_date": ("offerExpirationDate", "expiryDate", "expiry_date", "expires", "expiry"),
    "trade_in_value": ("tradeInValue", "trade_in_value", "value", "offerValue"),
    "guests": ("guests", "numberOfGuests"),
}

SAILING_ALIASES: Final[dict[str, tuple[str, ...]]] = {
    "ship_name": ("shipName", "ship_name", "ship"),
    "sail_date": ("sailingDate", "sailDate", "sail_date", "date"),
    "nights": ("nights", "numberOfNights", "duration"),
    "cabin_type": ("cabinType", "cabin_type", "roomType", "cabin"),
    "departure_port": ("departurePort", "departure_port", "port"),
    "itinerary_name": ("itinerary", "itineraryName", "itinerary_name"),
    "price": ("price", "cabinPrice"),
}

BOOKING_ALIASES: Final[dict[str, tuple[str, ...]]] = {
    "id": ("id",),
    "booking_id": ("bookingId", "booking_id", "reservationNumber"),
    "ship_name": ("shipName", "ship_name", "ship"),
    "sail_date": ("sailingStartDate", "sailDate", "sail_date", "date"),
    "return_date": ("sailingEndDate", "returnDate", "return_date"),
    "nights": ("numberOfNights", "nights"),
    "departure_port": ("departurePort", "departure_port", "port"),
    "destination": ("destination",),
    "itinerary_name": ("itinerary", "itineraryName", "itinerary_name"),
    "cabin_type": ("cabinType", "cabin_type", "stateroomType"),
    "cabin_number": ("cabinNumberOrGTY", "cabinNumber", "stateroomNumber"),
    "guests": ("numberOfGuests", "guests"),
    "price": ("price",),
    "total_price": ("totalPrice", "total_price", "paidAmount"),
    "retail_value": ("retailValue", "retail_value"),
    "deposit_paid": ("depositPaid", "depositAmountDue"),
    "balance_due": ("balanceDueAmount", "balanceDue", "balance_due"),
    "hold_expiration": ("holdExpiration", "offerExpirationDate", "hold_expiration"),
    "earned_points": ("earnedPoints", "earned_points", "loyaltyPoints"),
    "casino_points": ("casinoPoints", "casino_points"),
    "winnings": ("winnings",),
    "actual_spend": ("actualSpend", "actual_spend"),
    "offer_code": ("offerCode", "packageCode"),
}

_FREE_PLAY = re.compile(r"\$?([\d,]+)\s*(?:in\s+)?(?:free\s*play|freeplay)", re.IGNORECASE)
_ONBOARD_CREDIT = re.compile(r"\$?([\d,]+)\s*(?:in\s+)?(?:obc|onboard\s*credit)", re.IGNORECASE)
_FIRST_NUMBER = re.compile(r"(\d+)")
_TWO_PERSON = re.compile(r"\b(?:2|two)\s*(?:person|guest|people)|\bcouple", re.IGNORECASE)
_DISCOUNT = re.compile(r"discount|%|\boff\b", re.IGNORECASE)

# Identifiers and labels; APIs send some of them as bare numbers.
_TEXT_FIELDS: Final[frozenset[str]] = frozenset(
    {"id", "offer_code", "name", "booking_id", "cabin_number", "ship_name", "cabin_type"}
)
_HOLD_STATUSES: Final[frozenset[str]] = frozenset({"courtesy hold", "hold", "of", "offer"})
_COMPLETION_BY_STATUS: Final[dict[str, CompletionState]] = {
    "upcoming": CompletionState.UPCOMING,
    "booked": CompletionState.UPCOMING,
    "bk": CompletionState.UPCOMING,
    "completed": CompletionState.COMPLETED,
    "past": CompletionState.COMPLETED,
    "cancelled": CompletionState.CANCELLED,
    "canceled": CompletionState.CANCELLED,
    "cx": CompletionState.CANCELLED,
}


def _pick(raw: RawRecord, keys: Sequence[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if not is_empty(value):
            return value
    return None


def _apply_aliases(raw: RawRecord, aliases: Mapping[str, Sequence[str]]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, keys in aliases.items():
        value = _pick(raw, keys)
        if value is None:
            continue
        if name in _TEXT_FIELDS and not isinstance(value, str):
            value = str(value)
        values[name] = value
    return values


def _extras(
    raw: RawRecord,
    aliases: Iterable[Mapping[str, Sequence[str]]],
    *,
    also: Iterable[str] = (),
) -> dict[str, Any]:
    consumed = {key for table in aliases for keys in table.values() for key in keys}
    consumed.update(also)
    return {key: value for key, value in raw.items() if key not in consumed}


def _amount(pattern: re.Pattern[str], text: str) -> float | None:
    match = pattern.search(text)
    if match is None:
        return None
    return float(match.group(1).replace(",", ""))


def offer_type_for(perks_text: str) -> OfferType:
    lowered = perks_text.lower()
    if "free play" in lowered or "freeplay" in lowered:
        return OfferType.FREEPLAY
    if "obc" in lowered or "onboard credit" in lowered:
        return OfferType.OBC
    if _TWO_PERSON.search(perks_text):
        return OfferType.TWO_PERSON
    if _DISCOUNT.search(perks_text):
        return OfferType.DISCOUNT
    return OfferType.PACKAGE


def _perks(raw: RawRecord) -> tuple[str, ...]:
    value = raw.get("perks")
    if is_empty(value):
        return ()
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(item).strip() for item in value if not is_empty(item))
    return (str(value).strip(),)


def _sailing(raw: RawRecord) -> Sailing | None:
    values = _apply_aliases(raw, SAILING_ALIASES)
    if "ship_name" not in values and "sail_date" not in values:
        return None
    return Sailing(**values)


def translate_offer(raw: RawRecord) -> CanonicalOffer:
    values = _apply_aliases(raw, OFFER_ALIASES)
    perks = _perks(raw)
    perks_text = " ".join(perks)

    nested = raw.get("sailings")
    if isinstance(nested, list):
        sailings = tuple(
            sailing for item in nested if isinstance(item, dict) and (sailing := _sailing(item))
        )
    else:
        flat = _sailing(raw)
        sailings = (flat,) if flat is not None else ()

    guests = values.pop("guests", None)
    if isinstance(guests, str):
        match = _FIRST_NUMBER.search(guests)
        guests = int(match.group(1)) if match else None

    return CanonicalOffer(
        **values,
        offer_type=offer_type_for(perks_text) if perks_text else None,
        free_play=_amount(_FREE_PLAY, perks_text),
        onboard_credit=_amount(_ONBOARD_CREDIT, perks_text),
        guests=guests,
        perks=perks,
        sailings=sailings,
        extra=_extras(raw, (OFFER_ALIASES, SAILING_ALIASES), also=("perks", "sailings")),
    )


def translate_booking(raw: RawRecord) -> CanonicalBookedCruise:
    values = _apply_aliases(raw, BOOKING_ALIASES)
    status_text = str(_pick(raw, ("status", "bookingStatus")) or "").strip().lower()
    is_hold = status_text in _HOLD_STATUSES or bool(raw.get("isCourtesyHold"))

    cabin_number = values.get("cabin_number")
    if isinstance(cabin_number, str) and cabin_number.strip().upper() == "GTY":
        values.pop("cabin_number")

    completion = _COMPLETION_BY_STATUS.get(status_text)
    if is_hold:
        completion = CompletionState.UPCOMING

    return CanonicalBookedCruise(
        **values,
        status=CruiseStatus.COURTESY_HOLD if is_hold else CruiseStatus.BOOKED,
        completion_state=completion,
        extra=_extras(
            raw, (BOOKING_ALIASES,), also=("status", "bookingStatus", "isCourtesyHold")
        ),
    )


_FLAT_LOYALTY_FIELDS: Final[tuple[tuple[LoyaltyProgram, str, str], ...]] = (
    (LoyaltyProgram.CROWN_AND_ANCHOR, "crownAndAnchorLevel", "crownAndAnchorPoints"),
    (LoyaltyProgram.CLUB_ROYALE, "clubRoyaleTier", "clubRoyalePoints"),
    (LoyaltyProgram.CAPTAINS_CLUB, "captainsClubTier", "captainsClubPoints"),
    (LoyaltyProgram.BLUE_CHIP, "celebrityBlueChipTier", "celebrityBlueChipPoints"),
    (LoyaltyProgram.VENETIAN_SOCIETY, "venetianSocietyTier", "venetianSocietyPoints"),
)


def translate_loyalty(
    raw: RawRecord, *, source: LoyaltySource = LoyaltySource.PAGE
) -> list[LoyaltyStatus]:
    """Accept either one ``{program, tier, points}`` row or a flat per-program mapping."""

    program = _pick(raw, ("program", "programName"))
    if program is not None:
        return [
            LoyaltyStatus(
                program=str(program).strip(),
                tier=_pick(raw, ("tier", "level")),
                points=_pick(raw, ("points", "balance")),
                source=source,
            )
        ]

    statuses: list[LoyaltyStatus] = []
    for name, tier_key, points_key in _FLAT_LOYALTY_FIELDS:
        tier, points = raw.get(tier_key), raw.get(points_key)
        if is_empty(tier) and is_empty(points):
            continue
        statuses.append(
            LoyaltyStatus(
                program=name.value,
                tier=None if is_empty(tier) else tier,
                points=None if is_empty(points) else points,
                source=source,
            )
        )
    return statuses


def cruises_from_offers(offers: Sequence[CanonicalOffer]) -> list[CanonicalCruise]:
    """One available cruise per offered sailing."""

    cruises: list[CanonicalCruise] = []
    for offer in offers:
        for sailing in offer.sailings:
            if is_empty(sailing.ship_name) or is_empty(sailing.sail_date):
                continue
            cruises.append(
                CanonicalCruise(
                    ship_name=sailing.ship_name,
                    sail_date=sailing.sail_date,
                    nights=sailing.nights,
                    cabin_type=sailing.cabin_type,
                    departure_port=sailing.departure_port,
                    itinerary_name=sailing.itinerary_name,
                    price=sailing.price,
                    status=CruiseStatus.AVAILABLE,
                    offer_code=offer.offer_code,
                )
            )
    return cruises
