from __future__ import annotations

import pytest

from cruisesync.domain.normalization import (
    normalize_cabin_type,
    normalize_count,
    normalize_currency,
    normalize_date,
    normalize_destination,
    normalize_port_name,
    normalize_ship_name,
)


@pytest.mark.parametrize(
    ("raw", "expected", "changed"),
    [
        ("icon", "Icon of the Seas", True),
        ("ICON OF THE SEAS", "Icon of the Seas", True),
        ("Icon of the Seas", "Icon of the Seas", False),
        ("brand new utopia class ship", "Utopia of the Seas", True),
        ("mystery vessel", "Mystery Vessel", True),
    ],
)
def test_ship_names(raw: str, expected: str, *, changed: bool) -> None:
    result = normalize_ship_name(raw)

    assert result.value == expected
    assert result.was_normalized is changed
    assert result.original_value == raw


def test_empty_ship_name_reports_issue() -> None:
    result = normalize_ship_name("  ")

    assert result.value == ""
    assert result.was_normalized is False
    assert result.issues


def test_port_containment_follows_table_order() -> None:
    assert normalize_port_name("Port Everglades Terminal 18").value == "Fort Lauderdale, FL"
    assert normalize_port_name("nyc").value == "Cape Liberty, NJ"


def test_cabin_abbreviations_only_match_exactly() -> None:
    assert normalize_cabin_type("int").value == "Interior"
    assert normalize_cabin_type("Spacious interior stateroom").value == "Interior"
    assert normalize_cabin_type("junior suite deluxe").value == "Junior Suite"

    unrelated = normalize_cabin_type("Point")
    assert unrelated.value == "Point"
    assert unrelated.was_normalized is False


def test_specific_destination_wins_over_generic() -> None:
    assert normalize_destination("7 Night Western Caribbean Cruise").value == "Western Caribbean"
    assert normalize_destination("Perfect Day Bahamas").value == "Bahamas"


def test_dates_are_canonicalized() -> None:
    assert normalize_date("03-15-2026").was_normalized is False

    slashed = normalize_date("3/15/26")
    assert slashed.value == "03-15-2026"
    assert slashed.was_normalized is True

    garbage = normalize_date("sometime")
    assert garbage.issues
    assert garbage.was_normalized is False


def test_currency_strips_noise_and_never_raises() -> None:
    parsed = normalize_currency("$1,299.50")
    assert parsed.value == 1299.5
    assert parsed.was_normalized is True

    plain = normalize_currency(899)
    assert plain.value == 899.0
    assert plain.was_normalized is False

    invalid = normalize_currency("call for price")
    assert invalid.value == 0.0
    assert invalid.issues


def test_counts() -> None:
    assert normalize_count("7 nights").value == 7
    assert normalize_count(7).was_normalized is False
    assert normalize_count(-3).value == 0
    assert normalize_count("none").issues


@pytest.mark.parametrize(
    ("raw", "expected", "valid"),
    [
        ("7 nights", 7, True),
        ("  12", 12, True),
        ("7.0", 7, True),
        ("-3", 0, True),
        ("7.5", 0, False),
        (7.5, 0, False),
        ("1.2.3", 0, False),
        ("nights: 7", 0, False),
    ],
)
def test_count_parses_a_leading_integer(raw: object, expected: int, valid: bool) -> None:
    result = normalize_count(raw)

    assert result.value == expected
    assert result.was_normalized
    assert (not result.issues) is valid
