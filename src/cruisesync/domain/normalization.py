"""Field normalizers that map scraped values onto a fixed vocabulary.

Each normalizer is pure and returns a :class:`NormalizationResult`. Text lookups try
an exact lowercase match, then the first table key contained in the value, then fall
back to title-casing. The order of each table is therefore part of its behaviour.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .dates import format_date, parse_date

if TYPE_CHECKING:
    from collections.abc import Callable

_FLEET: Final[tuple[str, ...]] = (
    "Allure",
    "Anthem",
    "Brilliance",
    "Enchantment",
    "Explorer",
    "Freedom",
    "Grandeur",
    "Harmony",
    "Icon",
    "Independence",
    "Jewel",
    "Liberty",
    "Mariner",
    "Navigator",
    "Oasis",
    "Odyssey",
    "Ovation",
    "Quantum",
    "Radiance",
    "Rhapsody",
    "Serenade",
    "Spectrum",
    "Symphony",
    "Utopia",
    "Vision",
    "Voyager",
    "Wonder",
)

SHIP_NAMES: Final[tuple[tuple[str, str], ...]] = tuple(
    pair
    for short in _FLEET
    for pair in (
        (short.lower(), f"{short} of the Seas"),
        (f"{short.lower()} of the seas", f"{short} of the Seas"),
    )
)

PORT_NAMES: Final[tuple[tuple[str, str], ...]] = (
    ("ft. lauderdale", "Fort Lauderdale, FL"),
    ("ft lauderdale", "Fort Lauderdale, FL"),
    ("fort lauderdale", "Fort Lauderdale, FL"),
    ("port everglades", "Fort Lauderdale, FL"),
    ("everglades", "Fort Lauderdale, FL"),
    ("miami", "Miami, FL"),
    ("cape canaveral", "Cape Canaveral, FL"),
    ("port canaveral", "Cape Canaveral, FL"),
    ("canaveral", "Cape Canaveral, FL"),
    ("orlando", "Cape Canaveral, FL"),
    ("tampa", "Tampa, FL"),
    ("galveston", "Galveston, TX"),
    ("new orleans", "New Orleans, LA"),
    ("nola", "New Orleans, LA"),
    ("seattle", "Seattle, WA"),
    ("los angeles", "Los Angeles, CA"),
    ("san pedro", "Los Angeles, CA"),
    ("long beach", "Long Beach, CA"),
    ("san juan", "San Juan, PR"),
    ("puerto rico", "San Juan, PR"),
    ("bayonne", "Bayonne, NJ"),
    ("cape liberty", "Cape Liberty, NJ"),
    ("new jersey", "Cape Liberty, NJ"),
    ("new york", "Cape Liberty, NJ"),
    ("nyc", "Cape Liberty, NJ"),
    ("baltimore", "Baltimore, MD"),
    ("nassau", "Nassau, Bahamas"),
    ("cozumel", "Cozumel, Mexico"),
    ("costa maya", "Costa Maya, Mexico"),
    ("progreso", "Progreso, Mexico"),
    ("roatan", "Roatan, Honduras"),
    ("belize", "Belize City, Belize"),
    ("grand cayman", "George Town, Grand Cayman"),
    ("cayman", "George Town, Grand Cayman"),
    ("falmouth", "Falmouth, Jamaica"),
    ("jamaica", "Falmouth, Jamaica"),
    ("labadee", "Labadee, Haiti"),
    ("st. thomas", "St. Thomas, USVI"),
    ("st thomas", "St. Thomas, USVI"),
    ("charlotte amalie", "St. Thomas, USVI"),
    ("st. maarten", "Philipsburg, St. Maarten"),
    ("st maarten", "Philipsburg, St. Maarten"),
    ("sint maarten", "Philipsburg, St. Maarten"),
    ("philipsburg", "Philipsburg, St. Maarten"),
    ("san francisco", "San Francisco, CA"),
    ("honolulu", "Honolulu, HI"),
    ("vancouver", "Vancouver, BC"),
    ("barcelona", "Barcelona, Spain"),
    ("civitavecchia", "Civitavecchia (Rome), Italy"),
    ("rome", "Civitavecchia (Rome), Italy"),
    ("southampton", "Southampton, UK"),
    ("london", "Southampton, UK"),
)

# Abbreviations are exact-match only: "int" or "ov" would match far too much as substrings.
CABIN_TYPES: Final[tuple[tuple[str, str], ...]] = (
    ("interior", "Interior"),
    ("inside", "Interior"),
    ("int", "Interior"),
    ("oceanview", "Oceanview"),
    ("ocean view", "Oceanview"),
    ("outside", "Oceanview"),
    ("ov", "Oceanview"),
    ("balcony", "Balcony"),
    ("bal", "Balcony"),
    ("blc", "Balcony"),
    ("junior suite", "Junior Suite"),
    ("js", "Junior Suite"),
    ("grand suite", "Grand Suite"),
    ("gs", "Grand Suite"),
    ("owner's suite", "Owner's Suite"),
    ("owners suite", "Owner's Suite"),
    ("os", "Owner's Suite"),
    ("royal loft", "Royal Loft Suite"),
    ("royal loft suite", "Royal Loft Suite"),
    ("rl", "Royal Loft Suite"),
    ("suite", "Suite"),
    ("ste", "Suite"),
)
_CABIN_CONTAINMENT_MIN = 4

# Specific regions precede the generic ones they contain.
DESTINATIONS: Final[tuple[tuple[str, str], ...]] = (
    ("western caribbean", "Western Caribbean"),
    ("eastern caribbean", "Eastern Caribbean"),
    ("southern caribbean", "Southern Caribbean"),
    ("caribbean", "Caribbean"),
    ("bahamas", "Bahamas"),
    ("bermuda", "Bermuda"),
    ("alaska", "Alaska"),
    ("mexican riviera", "Mexican Riviera"),
    ("mexico", "Mexican Riviera"),
    ("mediterranean", "Mediterranean"),
    ("transatlantic", "Transatlantic"),
    ("europe", "Europe"),
    ("hawaii", "Hawaii"),
    ("pacific", "Pacific"),
    ("asia", "Asia"),
    ("new zealand", "Australia & New Zealand"),
    ("australia", "Australia"),
)

KNOWN_SHIPS: Final[frozenset[str]] = frozenset(
    {name for _, name in SHIP_NAMES} | {"Star of the Seas", "Legend of the Seas"}
)
KNOWN_CABIN_TYPES: Final[frozenset[str]] = frozenset(name for _, name in CABIN_TYPES)

_CURRENCY_NOISE = re.compile(r"[$€£¥,\s]")
_LEADING_NUMBER = re.compile(r"^\s*(-?\d+(?:\.\d+)?)(?![\d.])")
_WORD_START = re.compile(r"\b\w")


@dataclass(frozen=True, slots=True)
class NormalizationResult[T]:
    value: T
    was_normalized: bool
    original_value: object
    issues: tuple[str, ...] = ()


type Normalizer = Callable[[object], NormalizationResult[object]]


def title_case(text: str) -> str:
    return _WORD_START.sub(lambda match: match.group().upper(), text)


def _lookup(
    value: object,
    table: tuple[tuple[str, str], ...],
    *,
    label: str,
    exact_only: Callable[[str], bool] | None = None,
) -> NormalizationResult[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return NormalizationResult("", False, value, (f"Empty {label}",))

    text = str(value).strip()
    lowered = " ".join(text.lower().split())
    for key, canonical in table:
        if key == lowered:
            return NormalizationResult(canonical, canonical != text, value)
    for key, canonical in table:
        if exact_only is not None and exact_only(key):
            continue
        if key in lowered:
            return NormalizationResult(canonical, True, value)

    fallback = title_case(text)
    return NormalizationResult(fallback, fallback != text, value)


def normalize_ship_name(value: object) -> NormalizationResult[str]:
    return _lookup(value, SHIP_NAMES, label="ship name")


def normalize_port_name(value: object) -> NormalizationResult[str]:
    return _lookup(value, PORT_NAMES, label="port name", exact_only=lambda key: len(key) < 4)


def normalize_cabin_type(value: object) -> NormalizationResult[str]:
    return _lookup(
        value,
        CABIN_TYPES,
        label="cabin type",
        exact_only=lambda key: len(key) < _CABIN_CONTAINMENT_MIN,
    )


def normalize_destination(value: object) -> NormalizationResult[str]:
    return _lookup(value, DESTINATIONS, label="destination")


def normalize_date(value: object) -> NormalizationResult[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return NormalizationResult("", False, value, ("Empty date value",))
    text = str(value).strip() if isinstance(value, str) else value
    parsed = parse_date(text)
    if parsed is None:
        return NormalizationResult(
            str(value).strip(), False, value, (f"Could not parse date: {value}",)
        )
    canonical = format_date(parsed)
    return NormalizationResult(canonical, canonical != text, value)


def _parse_number(value: object) -> tuple[float | None, bool]:
    """Return the parsed number and whether characters had to be stripped."""

    if isinstance(value, bool):
        return None, False
    if isinstance(value, (int, float)):
        return (float(value), False) if math.isfinite(value) else (None, False)
    text = str(value).strip()
    cleaned = _CURRENCY_NOISE.sub("", text)
    try:
        number = float(cleaned)
    except ValueError:
        return None, True
    if not math.isfinite(number):
        return None, True
    return number, cleaned != text


def normalize_currency(value: object) -> NormalizationResult[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return NormalizationResult(0.0, False, value, ("Empty currency value",))
    number, stripped = _parse_number(value)
    if number is None:
        return NormalizationResult(0.0, True, value, (f"Invalid currency value: {value}",))
    rounded = round(number, 2)
    return NormalizationResult(rounded, stripped or not isinstance(value, (int, float)), value)


def normalize_count(value: object) -> NormalizationResult[int]:
    """Normalize a non-negative integer count such as nights or guests."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return NormalizationResult(0, False, value, ("Empty count value",))
    if isinstance(value, bool):
        return NormalizationResult(0, True, value, (f"Invalid count value: {value}",))
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or not float(value).is_integer():
            return NormalizationResult(0, True, value, (f"Invalid count value: {value}",))
        count = max(0, int(value))
        return NormalizationResult(count, count != value, value)
    match = _LEADING_NUMBER.match(str(value))
    number = float(match.group(1)) if match else None
    if number is None or not number.is_integer():
        return NormalizationResult(0, True, value, (f"Invalid count value: {value}",))
    return NormalizationResult(max(0, int(number)), True, value)


def normalize_points(value: object) -> NormalizationResult[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return NormalizationResult(0, False, value)
    number, _ = _parse_number(value)
    if number is None:
        return NormalizationResult(0, True, value, (f"Invalid points value: {value}",))
    points = max(0, round(number))
    return NormalizationResult(points, points != value, value)


CRUISE_FIELDS: Final[tuple[tuple[str, Normalizer], ...]] = (
    ("sail_date", normalize_date),
    ("return_date", normalize_date),
    ("ship_name", normalize_ship_name),
    ("departure_port", normalize_port_name),
    ("destination", normalize_destination),
    ("cabin_type", normalize_cabin_type),
    ("price", normalize_currency),
    ("nights", normalize_count),
)

BOOKED_CRUISE_FIELDS: Final[tuple[tuple[str, Normalizer], ...]] = (
    *CRUISE_FIELDS,
    ("hold_expiration", normalize_date),
    ("guests", normalize_count),
    ("total_price", normalize_currency),
    ("retail_value", normalize_currency),
    ("deposit_paid", normalize_currency),
    ("balance_due", normalize_currency),
    ("actual_spend", normalize_currency),
    ("winnings", normalize_currency),
    ("earned_points", normalize_points),
    ("casino_points", normalize_points),
)

OFFER_FIELDS: Final[tuple[tuple[str, Normalizer], ...]] = (
    ("expiry_date", normalize_date),
    ("trade_in_value", normalize_currency),
    ("free_play", normalize_currency),
    ("onboard_credit", normalize_currency),
    ("guests", normalize_count),
)

SAILING_FIELDS: Final[tuple[tuple[str, Normalizer], ...]] = (
    ("ship_name", normalize_ship_name),
    ("sail_date", normalize_date),
    ("cabin_type", normalize_cabin_type),
    ("departure_port", normalize_port_name),
    ("price", normalize_currency),
    ("nights", normalize_count),
)
