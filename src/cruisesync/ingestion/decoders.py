"""Ordered decoders for API responses intercepted during extraction.

The same logical records arrive under different key paths depending on which
endpoint produced them. Each decoder knows one shape: it either decodes the whole
payload or returns ``None`` so the next one can try. Adding a newly observed shape
means adding one function to ``DECODERS``.

Decoders emit rows in the same loose vocabulary page scraping uses, so they flow
through the normal translation and repair path afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, cast

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from cruisesync.domain.loyalty import crown_and_anchor_tier_for_nights, format_tier_name
from cruisesync.domain.model import LoyaltyProgram, LoyaltySource, LoyaltyStatus

from .protocol import BatchKind

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

SHIP_CODE_TO_NAME: Final[dict[str, str]] = {
    "AL": "Allure of the Seas",
    "AN": "Anthem of the Seas",
    "AD": "Adventure of the Seas",
    "BR": "Brilliance of the Seas",
    "EN": "Enchantment of the Seas",
    "EX": "Explorer of the Seas",
    "FR": "Freedom of the Seas",
    "GR": "Grandeur of the Seas",
    "HM": "Harmony of the Seas",
    "ID": "Independence of the Seas",
    "JW": "Jewel of the Seas",
    "LE": "Legend of the Seas",
    "LB": "Liberty of the Seas",
    "MA": "Mariner of the Seas",
    "NV": "Navigator of the Seas",
    "OA": "Oasis of the Seas",
    "OD": "Odyssey of the Seas",
    "OV": "Ovation of the Seas",
    "QN": "Quantum of the Seas",
    "RD": "Radiance of the Seas",
    "RH": "Rhapsody of the Seas",
    "SE": "Serenade of the Seas",
    "SP": "Spectrum of the Seas",
    "SY": "Symphony of the Seas",
    "UT": "Utopia of the Seas",
    "VI": "Vision of the Seas",
    "VY": "Voyager of the Seas",
    "WN": "Wonder of the Seas",
    "IC": "Icon of the Seas",
    "SG": "Star of the Seas",
}

STATEROOM_TYPE_MAP: Final[dict[str, str]] = {
    "I": "Interior",
    "O": "Oceanview",
    "B": "Balcony",
    "S": "Suite",
    "J": "Junior Suite",
    "G": "Grand Suite",
}

COURTESY_HOLD_STATUS: Final = "OF"


def ship_name_for_code(code: str) -> str:
    return SHIP_CODE_TO_NAME.get(code.strip().upper(), code)


def stateroom_type_name(code: str) -> str:
    return STATEROOM_TYPE_MAP.get(code.strip().upper(), code)


@dataclass(frozen=True, slots=True, kw_only=True)
class DecodedPayload:
    kind: BatchKind
    decoder: str
    rows: tuple[dict[str, Any], ...] = ()
    loyalty: tuple[LoyaltyStatus, ...] = ()
    skipped: int = 0

    @property
    def count(self) -> int:
        return len(self.loyalty) if self.kind is BatchKind.LOYALTY else len(self.rows)


class ApiModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, coerce_numbers_to_str=True
    )


# Loyalty -----------------------------------------------------------------------------


class LoyaltyInformation(ApiModel):
    crown_and_anchor_tier: str | None = Field(
        default=None, alias="crownAndAnchorSocietyLoyaltyTier"
    )
    crown_and_anchor_points: float | None = Field(
        default=None, alias="crownAndAnchorSocietyLoyaltyIndividualPoints"
    )
    club_royale_tier: str | None = Field(default=None, alias="clubRoyaleLoyaltyTier")
    club_royale_points: float | None = Field(
        default=None, alias="clubRoyaleLoyaltyIndividualPoints"
    )
    captains_club_tier: str | None = Field(default=None, alias="captainsClubLoyaltyTier")
    captains_club_points: float | None = Field(
        default=None, alias="captainsClubLoyaltyIndividualPoints"
    )
    blue_chip_tier: str | None = Field(default=None, alias="celebrityBlueChipLoyaltyTier")
    blue_chip_points: float | None = Field(
        default=None, alias="celebrityBlueChipLoyaltyIndividualPoints"
    )
    venetian_society_tier: str | None = Field(
        default=None, alias="venetianSocietyLoyaltyTier"
    )

    def statuses(self) -> list[LoyaltyStatus]:
        crown_tier = self.crown_and_anchor_tier
        if not crown_tier and self.crown_and_anchor_points is not None:
            crown_tier = crown_and_anchor_tier_for_nights(round(self.crown_and_anchor_points))
        programs: tuple[tuple[LoyaltyProgram, str | None, float | None], ...] = (
            (LoyaltyProgram.CROWN_AND_ANCHOR, crown_tier, self.crown_and_anchor_points),
            (LoyaltyProgram.CLUB_ROYALE, self.club_royale_tier, self.club_royale_points),
            (LoyaltyProgram.CAPTAINS_CLUB, self.captains_club_tier, self.captains_club_points),
            (LoyaltyProgram.BLUE_CHIP, self.blue_chip_tier, self.blue_chip_points),
            (LoyaltyProgram.VENETIAN_SOCIETY, self.venetian_society_tier, None),
        )
        return [
            LoyaltyStatus(
                program=program.value,
                tier=format_tier_name(tier),
                points=round(points) if points is not None else None,
                source=LoyaltySource.API,
            )
            for program, tier, points in programs
            if tier or points is not None
        ]


# Bookings ----------------------------------------------------------------------------


class ProfileBooking(ApiModel):
    booking_id: str = Field(alias="bookingId")
    booking_status: str = Field(default="", alias="bookingStatus")
    ship_code: str = Field(alias="shipCode")
    sail_date: str = Field(alias="sailDate")
    number_of_nights: int | None = Field(default=None, alias="numberOfNights")
    stateroom_type: str | None = Field(default=None, alias="stateroomType")
    stateroom_number: str | None = Field(default=None, alias="stateroomNumber")
    stateroom_category_code: str | None = Field(default=None, alias="stateroomCategoryCode")
    deck_number: str | None = Field(default=None, alias="deckNumber")
    balance_due_amount: float | None = Field(default=None, alias="balanceDueAmount")
    deposit_amount_due: float | None = Field(default=None, alias="depositAmountDue")
    offer_expiration_date: str | None = Field(default=None, alias="offerExpirationDate")
    package_code: str | None = Field(default=None, alias="packageCode")
    paid_in_full: bool | None = Field(default=None, alias="paidInFull")
    passengers: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def is_courtesy_hold(self) -> bool:
        return self.booking_status.strip().upper() == COURTESY_HOLD_STATUS

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "bookingId": self.booking_id,
            "shipName": ship_name_for_code(self.ship_code),
            "shipCode": self.ship_code,
            "sailDate": self.sail_date,
            "numberOfNights": self.number_of_nights,
            "cabinType": (
                stateroom_type_name(self.stateroom_type) if self.stateroom_type else None
            ),
            "cabinNumberOrGTY": self.stateroom_number or "GTY",
            "cabinCategory": self.stateroom_category_code,
            "deckNumber": self.deck_number,
            "numberOfGuests": len(self.passengers) or 1,
            "status": "Courtesy Hold" if self.is_courtesy_hold else "Upcoming",
            "balanceDueAmount": self.balance_due_amount,
            "depositAmountDue": self.deposit_amount_due,
            "holdExpiration": self.offer_expiration_date,
            "packageCode": self.package_code,
            "paidInFull": self.paid_in_full,
            "sourcePage": "API",
        }
        return {key: value for key, value in row.items() if value is not None}


# Casino offers -----------------------------------------------------------------------


class CasinoSailing(ApiModel):
    ship_name: str | None = Field(default=None, alias="shipName")
    ship_code: str | None = Field(default=None, alias="shipCode")
    sail_date: str | None = Field(default=None, alias="sailDate")
    departure_port: str | None = Field(default=None, alias="departurePortName")
    itinerary: str | None = Field(default=None, alias="itineraryDescription")
    room_type: str | None = Field(default=None, alias="roomType")
    is_gobo: bool = Field(default=False, alias="isGOBO")

    @model_validator(mode="before")
    @classmethod
    def _flatten_port(cls, value: object) -> object:
        if isinstance(value, Mapping):
            data = dict(cast(Mapping[str, object], value))
            port = data.get("departurePort")
            if isinstance(port, Mapping) and not data.get("departurePortName"):
                data["departurePortName"] = cast(Mapping[str, object], port).get("name")
            if not data.get("roomType") and data.get("stateroomType"):
                data["roomType"] = data["stateroomType"]
            return data
        return value

    def to_row(self) -> dict[str, Any]:
        ship = self.ship_name or (ship_name_for_code(self.ship_code) if self.ship_code else None)
        row = {
            "shipName": ship,
            "sailDate": self.sail_date,
            "departurePort": self.departure_port,
            "itinerary": self.itinerary,
            "cabinType": self.room_type,
        }
        return {key: value for key, value in row.items() if value}


class CampaignOffer(ApiModel):
    offer_code: str | None = Field(default=None, alias="offerCode")
    name: str | None = None
    reserve_by_date: str | None = Field(default=None, alias="reserveByDate")
    trade_in_value: float | None = Field(default=None, alias="tradeInValue")
    is_gobo: bool = Field(default=False, alias="isGOBO")
    sailings: list[CasinoSailing] = Field(default_factory=list["CasinoSailing"])


class CasinoOffer(ApiModel):
    campaign_offer: CampaignOffer = Field(alias="campaignOffer")

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_offer(cls, value: object) -> object:
        if isinstance(value, Mapping) and "campaignOffer" not in value:
            return {"campaignOffer": value}
        return value

    def to_row(self) -> dict[str, Any]:
        offer = self.campaign_offer
        solo = offer.is_gobo or any(sailing.is_gobo for sailing in offer.sailings)
        perks = [f"Trade-in value: ${offer.trade_in_value:.2f}"] if offer.trade_in_value else []
        row: dict[str, Any] = {
            "offerCode": offer.offer_code,
            "offerName": offer.name,
            "offerExpirationDate": offer.reserve_by_date,
            "tradeInValue": offer.trade_in_value,
            "numberOfGuests": 1 if solo else 2,
            "perks": perks,
            "sailings": [sailing.to_row() for sailing in offer.sailings],
            "sourcePage": "API",
        }
        return {key: value for key, value in row.items() if value is not None}


# Marketing offers --------------------------------------------------------------------


class MarketingPrice(ApiModel):
    value: float | None = None


class MarketingPerk(ApiModel):
    name: str | None = None
    description: list[str] = Field(default_factory=list)
    price: MarketingPrice | None = None


class MarketingOffer(ApiModel):
    title: str
    code: str | None = None
    coupon_code: str | None = Field(default=None, alias="marketingCouponCode")
    end_date: str | None = Field(default=None, alias="marketingEndDate")
    description: str | None = None
    category: str | None = Field(default=None, alias="type")
    perks: list[MarketingPerk] = Field(
        default_factory=list["MarketingPerk"], alias="marketingPerks"
    )

    def to_row(self) -> dict[str, Any]:
        trade_in = next(
            (perk.price.value for perk in self.perks if perk.price and perk.price.value), None
        )
        row: dict[str, Any] = {
            "offerCode": self.coupon_code or self.code,
            "offerName": self.title,
            "offerExpirationDate": self.end_date,
            "tradeInValue": trade_in,
            "perks": [line for perk in self.perks for line in perk.description if line.strip()],
            "description": self.description,
            "category": self.category,
            "sourcePage": "API",
        }
        return {key: value for key, value in row.items() if value is not None}


_LOYALTY_INFORMATION: TypeAdapter[LoyaltyInformation] = TypeAdapter(LoyaltyInformation)
_CASINO_OFFER: TypeAdapter[CasinoOffer] = TypeAdapter(CasinoOffer)
_MARKETING_OFFER: TypeAdapter[MarketingOffer] = TypeAdapter(MarketingOffer)
_PROFILE_BOOKING: TypeAdapter[ProfileBooking] = TypeAdapter(ProfileBooking)


def _validate[T](adapter: TypeAdapter[T], value: object, decoder: str) -> T | None:
    try:
        return adapter.validate_python(value)
    except ValidationError as exc:
        log.debug("Decoder %s rejected payload: %d error(s)", decoder, exc.error_count())
        return None


def _validate_items[T](
    adapter: TypeAdapter[T], items: list[object], decoder: str
) -> tuple[list[T], int] | None:
    """Validate each item on its own; ``None`` when the list is non-empty and none fit."""

    parsed: list[T] = []
    skipped = 0
    for index, item in enumerate(items):
        try:
            parsed.append(adapter.validate_python(item))
        except ValidationError as exc:
            skipped += 1
            log.warning(
                "Decoder %s skipped item %d: %d error(s)", decoder, index, exc.error_count()
            )
    if items and not parsed:
        return None
    return parsed, skipped


def _path(data: object, *keys: str) -> object | None:
    current = data
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = cast(Mapping[str, object], current).get(key)
    return current


def decode_loyalty_information(data: object) -> DecodedPayload | None:
    info = _path(data, "payload", "loyaltyInformation")
    if not isinstance(info, Mapping):
        return None
    parsed = _validate(_LOYALTY_INFORMATION, info, "loyaltyInformation")
    if parsed is None:
        return None
    return DecodedPayload(
        kind=BatchKind.LOYALTY, decoder="loyaltyInformation", loyalty=tuple(parsed.statuses())
    )


def decode_loyalty_summary(data: object) -> DecodedPayload | None:
    """Crown & Anchor from ``payload.totalNights``; the tier follows from the nights."""

    nights = _path(data, "payload", "totalNights")
    if isinstance(nights, bool) or not isinstance(nights, (int, float)) or nights < 0:
        return None
    total = round(nights)
    status = LoyaltyStatus(
        program=LoyaltyProgram.CROWN_AND_ANCHOR.value,
        tier=crown_and_anchor_tier_for_nights(total),
        points=total,
        source=LoyaltySource.API,
    )
    return DecodedPayload(kind=BatchKind.LOYALTY, decoder="loyaltySummary", loyalty=(status,))


def decode_profile_bookings(data: object) -> DecodedPayload | None:
    bookings = _path(data, "payload", "profileBookings")
    if not isinstance(bookings, list):
        return None
    result = _validate_items(_PROFILE_BOOKING, cast(list[object], bookings), "profileBookings")
    if result is None:
        return None
    parsed, skipped = result
    return DecodedPayload(
        kind=BatchKind.BOOKINGS,
        decoder="profileBookings",
        rows=tuple(booking.to_row() for booking in parsed),
        skipped=skipped,
    )


def decode_casino_offers(data: object) -> DecodedPayload | None:
    offers = _path(data, "payload", "casinoOffers")
    if offers is None:
        offers = _path(data, "casinoOffers")
    if not isinstance(offers, list):
        return None
    result = _validate_items(_CASINO_OFFER, cast(list[object], offers), "casinoOffers")
    if result is None:
        return None
    parsed, skipped = result
    return DecodedPayload(
        kind=BatchKind.OFFERS,
        decoder="casinoOffers",
        rows=tuple(offer.to_row() for offer in parsed),
        skipped=skipped,
    )


def decode_marketing_offers(data: object) -> DecodedPayload | None:
    offers = _path(data, "data", "getMarketingTargetedOffers", "marketingTargetedOfferResult")
    if not isinstance(offers, list):
        return None
    result = _validate_items(
        _MARKETING_OFFER, cast(list[object], offers), "marketingTargetedOffers"
    )
    if result is None:
        return None
    parsed, skipped = result
    return DecodedPayload(
        kind=BatchKind.OFFERS,
        decoder="marketingTargetedOffers",
        rows=tuple(offer.to_row() for offer in parsed),
        skipped=skipped,
    )


type PayloadDecoder = Callable[[object], DecodedPayload | None]

DECODERS: Final[tuple[PayloadDecoder, ...]] = (
    decode_loyalty_information,
    decode_loyalty_summary,
    decode_profile_bookings,
    decode_casino_offers,
    decode_marketing_offers,
)


def decode_network_payload(
    data: object, *, decoders: tuple[PayloadDecoder, ...] = DECODERS
) -> DecodedPayload | None:
    """First decoder that accepts ``data`` wins; ``None`` when none does."""

    for decoder in decoders:
        decoded = decoder(data)
        if decoded is not None:
            return decoded
    return None


__all__ = [
    "DECODERS",
    "SHIP_CODE_TO_NAME",
    "STATEROOM_TYPE_MAP",
    "DecodedPayload",
    "PayloadDecoder",
    "decode_casino_offers",
    "decode_loyalty_information",
    "decode_loyalty_summary",
    "decode_marketing_offers",
    "decode_network_payload",
    "decode_profile_bookings",
    "ship_name_for_code",
    "stateroom_type_name",
]
