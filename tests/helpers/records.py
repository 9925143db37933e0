"""Raw extractor rows and envelopes used across ingestion tests."""

from __future__ import annotations

from typing import Any


def offer_row(code: str = "ABC123", **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "offerCode": code,
        "offerName": "Spring Sail",
        "offerExpirationDate": "2026-04-30",
        "perks": ["$250 Free Play"],
        "sailings": [
            {"shipName": "icon of the seas", "sailDate": "03/15/2026", "nights": 7},
            {"shipName": "Wonder", "sailDate": "2026-05-02", "nights": "4 nights"},
        ],
    }
    row.update(overrides)
    return row


def booking_row(booking_id: str = "1234567", **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "bookingId": booking_id,
        "shipName": "Harmony of the Seas",
        "sailDate": "2026-06-14",
        "numberOfNights": 7,
        "cabinType": "balcony",
        "status": "Upcoming",
    }
    row.update(overrides)
    return row


def batch(kind: str, rows: list[dict[str, Any]], *, step: int | None = None) -> dict[str, Any]:
    envelope: dict[str, Any] = {"type": "record_batch", "kind": kind, "data": rows}
    if step is not None:
        envelope["step"] = step
    return envelope


def step_complete(step: int, total: int = 0) -> dict[str, Any]:
    return {"type": "step_complete", "step": step, "totalCount": total}


def logged_in(value: bool = True) -> dict[str, Any]:  # noqa: FBT001, FBT002
    return {"type": "auth_status", "loggedIn": value}


def loyalty_api_payload(
    *, crown_tier: str = "DIAMOND_PLUS", crown_points: float = 210, club_points: float = 4120
) -> dict[str, Any]:
    return {
        "payload": {
            "loyaltyInformation": {
                "crownAndAnchorSocietyLoyaltyTier": crown_tier,
                "crownAndAnchorSocietyLoyaltyIndividualPoints": crown_points,
                "clubRoyaleLoyaltyTier": "PRIME",
                "clubRoyaleLoyaltyIndividualPoints": club_points,
            }
        }
    }


def network_payload(
    data: Any, *, endpoint: str = "/api/profile", url: str = "https://example.test/account"
) -> dict[str, Any]:
    return {"type": "network_payload", "endpoint": endpoint, "url": url, "data": data}


def full_run_scripts() -> dict[int, list[list[dict[str, Any]]]]:
    """One visit per step, each step delivering data and completing."""

    return {
        1: [[batch("offers", [offer_row()], step=1), step_complete(1, 1)]],
        2: [
            [
                batch(
                    "bookings",
                    [booking_row(), booking_row("7654321", status="Courtesy Hold")],
                    step=2,
                ),
                step_complete(2, 2),
            ]
        ],
        3: [[network_payload(loyalty_api_payload(), endpoint="/api/loyalty"), step_complete(3)]],
    }
