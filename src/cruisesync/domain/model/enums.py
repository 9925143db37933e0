"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityKind(StrEnum):
    """Collections held by the persisted store."""

    OFFERS = "offers"
    CRUISES = "cruises"
    BOOKED_CRUISES = "booked_cruises"
    LOYALTY = "loyalty"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class RepairKind(StrEnum):
    NORMALIZE = "normalize"
    CALCULATE = "calculate"
    DEFAULT = "default"
    REMOVE = "remove"


class CruiseStatus(StrEnum):
    AVAILABLE = "available"
    BOOKED = "booked"
    COURTESY_HOLD = "courtesy_hold"


class CompletionState(StrEnum):
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OfferType(StrEnum):
    FREEPLAY = "freeplay"
    OBC = "obc"
    TWO_PERSON = "two_person"
    DISCOUNT = "discount"
    PACKAGE = "package"


class LoyaltySource(StrEnum):
    """Where a loyalty figure came from; ``API`` is the authoritative source."""

    API = "api"
    PAGE = "page"


class LoyaltyProgram(StrEnum):
    CROWN_AND_ANCHOR = "Crown & Anchor Society"
    CLUB_ROYALE = "Club Royale"
    CAPTAINS_CLUB = "Captain's Club"
    BLUE_CHIP = "Blue Chip Club"
    VENETIAN_SOCIETY = "Venetian Society"
