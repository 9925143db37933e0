from __future__ import annotations

import pytest

from cruisesync.domain.loyalty import (
    crown_and_anchor_tier_for_nights,
    format_tier_name,
    tier_rank,
)


def test_format_tier_name() -> None:
    assert format_tier_name("DIAMOND_PLUS") == "Diamond Plus"
    assert format_tier_name("prime") == "Prime"
    assert format_tier_name("Diamond Plus") == "Diamond Plus"
    assert format_tier_name("select  plus") == "Select Plus"
    assert format_tier_name("  ") is None
    assert format_tier_name(None) is None


@pytest.mark.parametrize(
    ("nights", "tier"),
    [
        (700, "Pinnacle"),
        (175, "Diamond Plus"),
        (80, "Diamond"),
        (55, "Emerald"),
        (30, "Platinum"),
        (29, "Gold"),
        (0, "Gold"),
    ],
)
def test_crown_and_anchor_thresholds(nights: int, tier: str) -> None:
    assert crown_and_anchor_tier_for_nights(nights) == tier


def test_tier_rank() -> None:
    assert tier_rank("Club Royale", "Signature") == 5
    assert tier_rank("Club Royale", "Unknown") is None
    assert tier_rank("Blue Chip Club", "Ruby") is None
