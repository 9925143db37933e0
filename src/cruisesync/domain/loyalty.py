"""Loyalty tier vocabulary and helpers."""

from __future__ import annotations

import re
from typing import Final

from .model import LoyaltyProgram

CROWN_AND_ANCHOR_TIERS: Final[tuple[str, ...]] = (
    "Gold",
    "Platinum",
    "Emerald",
    "Diamond",
    "Diamond Plus",
    "Pinnacle",
)
CLUB_ROYALE_TIERS: Final[tuple[str, ...]] = (
    "Choice",
    "Select",
    "Select Plus",
    "Prime",
    "Prime Plus",
    "Signature",
    "Masters",
)
TIERS_BY_PROGRAM: Final[dict[str, tuple[str, ...]]] = {
    LoyaltyProgram.CROWN_AND_ANCHOR.value: CROWN_AND_ANCHOR_TIERS,
    LoyaltyProgram.CLUB_ROYALE.value: CLUB_ROYALE_TIERS,
}

_TIER_SEPARATORS: Final = re.compile(r"[_\s]+")

# Cruise-night thresholds, highest first.
_NIGHT_THRESHOLDS: Final[tuple[tuple[int, str], ...]] = (
    (700, "Pinnacle"),
    (175, "Diamond Plus"),
    (80, "Diamond"),
    (55, "Emerald"),
    (30, "Platinum"),
)


def format_tier_name(tier: str | None) -> str | None:
    """``DIAMOND_PLUS`` -> ``Diamond Plus``."""

    if not tier or not tier.strip():
        return None
    return " ".join(word.capitalize() for word in _TIER_SEPARATORS.split(tier.strip()) if word)


def crown_and_anchor_tier_for_nights(total_nights: int) -> str:
    for threshold, tier in _NIGHT_THRESHOLDS:
        if total_nights >= threshold:
            return tier
    return "Gold"


def tier_rank(program: str, tier: str | None) -> int | None:
    """Position of ``tier`` within its program ladder, or ``None`` if unknown."""

    ladder = TIERS_BY_PROGRAM.get(program)
    if ladder is None or tier is None:
        return None
    try:
        return ladder.index(tier)
    except ValueError:
        return None
