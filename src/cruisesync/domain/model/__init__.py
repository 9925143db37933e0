"""Canonical cruise, offer and loyalty records."""

from __future__ import annotations

from .enums import (
    CompletionState,
    CruiseStatus,
    EntityKind,
    LoyaltyProgram,
    LoyaltySource,
    OfferType,
    RepairKind,
    Severity,
)
from .identity import IdentityKey, identity_key, key_token, sailing_key
from .records import (
    RECORD_TYPE_BY_KIND,
    CanonicalBookedCruise,
    CanonicalCruise,
    CanonicalOffer,
    CanonicalRecord,
    LoyaltyStatus,
    Payload,
    Sailing,
    from_payload,
    is_empty,
    record_fields,
    to_payload,
)

__all__ = [
    "RECORD_TYPE_BY_KIND",
    "CanonicalBookedCruise",
    "CanonicalCruise",
    "CanonicalOffer",
    "CanonicalRecord",
    "CompletionState",
    "CruiseStatus",
    "EntityKind",
    "IdentityKey",
    "LoyaltyProgram",
    "LoyaltySource",
    "LoyaltyStatus",
    "OfferType",
    "Payload",
    "RepairKind",
    "Sailing",
    "Severity",
    "from_payload",
    "identity_key",
    "sailing_key",
    "is_empty",
    "key_token",
    "record_fields",
    "to_payload",
]
