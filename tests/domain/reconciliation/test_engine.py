from __future__ import annotations

from datetime import date

from cruisesync.domain.model import (
    CanonicalBookedCruise,
    CanonicalCruise,
    CanonicalOffer,
    CompletionState,
    EntityKind,
    LoyaltySource,
    LoyaltyStatus,
    Sailing,
    identity_key,
)
from cruisesync.domain.reconciliation import (
    Candidate,
    apply_kind_preview,
    apply_sync_preview,
    build_sync_preview,
    prepare_candidates,
    preview_kind,
)
from cruisesync.domain.repair import repair
from tests.helpers.records import booking_row

TODAY = date(2026, 1, 10)
ICON = {"ship_name": "Icon of the Seas", "sail_date": "03-15-2026"}


def _candidate(record: CanonicalCruise) -> Candidate:
    return Candidate.from_repair(repair(record, today=TODAY))


def test_new_offer_against_empty_store() -> None:
    raw = {
        "code": "ABC123",
        "name": "Spring Sail",
        "sailings": [{"ship": "icon of the seas", "date": "03/15/2026"}],
    }
    candidates = prepare_candidates(offers=[raw], today=TODAY)

    preview = build_sync_preview(candidates, {})

    offers = preview.for_kind(EntityKind.OFFERS)
    assert offers.counts == {"new": 1, "updated": 0, "unchanged": 0}
    (offer,) = offers.new
    assert isinstance(offer, CanonicalOffer)
    assert identity_key(offer) == "ABC123"
    assert offer.sailings[0].ship_name == "Icon of the Seas"
    assert preview.for_kind(EntityKind.CRUISES).counts["new"] == 1
    assert preview.has_changes


def test_partial_update_preserves_price() -> None:
    existing = CanonicalCruise(id="X", **ICON, price=899.0, cabin_type="Balcony")
    incoming = CanonicalCruise(**ICON, cabin_type="balcony")

    preview = preview_kind(EntityKind.CRUISES, [_candidate(incoming)], [existing])

    (update,) = preview.updated
    (change,) = update.changes
    assert change.field == "cabin_type"
    assert change.new == "Balcony"
    assert change.is_noop
    (merged,) = apply_kind_preview(preview, [existing])
    assert isinstance(merged, CanonicalCruise)
    assert merged.price == 899.0
    assert merged.cabin_type == "Balcony"


def test_empty_incoming_never_clears_existing_fields() -> None:
    existing = CanonicalCruise(id="X", **ICON, price=899.0, departure_port="Miami, FL")
    incoming = Candidate(
        original=CanonicalCruise(id="X", **ICON, departure_port=""),
        record=CanonicalCruise(id="X", **ICON, departure_port=""),
    )

    preview = preview_kind(EntityKind.CRUISES, [incoming], [existing])

    assert preview.counts == {"new": 0, "updated": 0, "unchanged": 1}
    assert apply_kind_preview(preview, [existing]) == [existing]


def test_records_missing_from_batch_are_kept() -> None:
    kept = CanonicalCruise(id="old", ship_name="Wonder of the Seas", sail_date="05-02-2026")
    incoming = _candidate(CanonicalCruise(id="new", **ICON))

    preview = preview_kind(EntityKind.CRUISES, [incoming], [kept])
    merged = apply_kind_preview(preview, [kept])

    assert [record.id for record in merged] == ["old", "new"]


def test_reconciliation_is_idempotent() -> None:
    candidates = prepare_candidates(bookings=[booking_row()], today=TODAY)
    snapshot = {EntityKind.BOOKED_CRUISES: [CanonicalCruise(id="unrelated")]}

    first = build_sync_preview(candidates, snapshot)
    second = build_sync_preview(candidates, snapshot)

    assert first == second
    assert apply_sync_preview(first, snapshot) == apply_sync_preview(second, snapshot)


def test_identity_is_stable_in_either_order() -> None:
    detailed = booking_row()
    extra = {"bookingId": "1234567", "destination": "Western Caribbean", "price": 1200}

    forward = build_sync_preview(prepare_candidates(bookings=[detailed, extra], today=TODAY), {})
    backward = build_sync_preview(prepare_candidates(bookings=[extra, detailed], today=TODAY), {})

    (first,) = forward.for_kind(EntityKind.BOOKED_CRUISES).new
    (second,) = backward.for_kind(EntityKind.BOOKED_CRUISES).new
    assert first == second
    assert first.destination == "Western Caribbean"
    assert first.cabin_type == "Balcony"


def test_offer_sailings_are_unioned_on_update() -> None:
    existing = CanonicalOffer(
        id="ABC123",
        offer_code="ABC123",
        sailings=(Sailing(ship_name="Icon of the Seas", sail_date="03-15-2026"),),
    )
    incoming = CanonicalOffer(
        id="ABC123",
        offer_code="ABC123",
        sailings=(Sailing(ship_name="Wonder of the Seas", sail_date="05-02-2026"),),
    )

    preview = preview_kind(
        EntityKind.OFFERS, [Candidate(original=incoming, record=incoming)], [existing]
    )
    (merged,) = apply_kind_preview(preview, [existing])

    assert isinstance(merged, CanonicalOffer)
    assert [sailing.ship_name for sailing in merged.sailings] == [
        "Icon of the Seas",
        "Wonder of the Seas",
    ]


def test_loyalty_delta_block() -> None:
    stored = LoyaltyStatus(program="Club Royale", tier="Prime", points=4000)
    synced = LoyaltyStatus(
        program="Club Royale", tier="Prime", points=4120, source=LoyaltySource.API
    )
    candidates = {EntityKind.LOYALTY: [Candidate(original=synced, record=synced)]}

    preview = build_sync_preview(
        candidates, {EntityKind.LOYALTY: [stored]}, authoritative_loyalty=True
    )

    assert preview.loyalty is not None
    assert preview.loyalty.authoritative
    (delta,) = preview.loyalty.deltas
    assert (delta.current_points, delta.synced_points) == (4000, 4120)
    assert delta.changed


def test_stored_record_id_does_not_hide_a_matching_sailing() -> None:
    stored = CanonicalBookedCruise(id="cruise-1", **ICON, cabin_type="Balcony", price=1000.0)
    scraped = _candidate(CanonicalBookedCruise(**ICON, cabin_type="balcony", cabin_number="8246"))

    preview = preview_kind(EntityKind.BOOKED_CRUISES, [scraped], [stored])

    assert preview.counts["new"] == 0
    (merged,) = apply_kind_preview(preview, [stored])
    assert isinstance(merged, CanonicalBookedCruise)
    assert merged.id == "cruise-1"
    assert merged.cabin_number == "8246"
    assert merged.price == 1000.0


def test_booking_id_matches_whatever_the_stored_id_is() -> None:
    stored = CanonicalBookedCruise(
        id="cruise-1",
        booking_id="1234567",
        **ICON,
        completion_state=CompletionState.UPCOMING,
    )
    scraped = _candidate(CanonicalBookedCruise(booking_id="1234567", **ICON, guests=2))

    preview = preview_kind(EntityKind.BOOKED_CRUISES, [scraped], [stored])

    (update,) = preview.updated
    assert update.changed_fields == ("guests",)
    (merged,) = apply_kind_preview(preview, [stored])
    assert merged.id == "cruise-1"


def test_cabin_type_fills_a_stored_sailing_without_one() -> None:
    stored = CanonicalCruise(id="cruise-1", **ICON)
    scraped = _candidate(CanonicalCruise(**ICON, cabin_type="Interior", price=499.0))

    preview = preview_kind(EntityKind.CRUISES, [scraped], [stored])
    merged = apply_kind_preview(preview, [stored])

    assert preview.counts == {"new": 0, "updated": 1, "unchanged": 0}
    assert [(record.id, record.cabin_type, record.price) for record in merged] == [
        ("cruise-1", "Interior", 499.0)
    ]


def test_ambiguous_sailing_without_cabin_is_new() -> None:
    snapshot = [
        CanonicalCruise(id="a", **ICON, cabin_type="Interior"),
        CanonicalCruise(id="b", **ICON, cabin_type="Balcony"),
    ]
    scraped = _candidate(CanonicalCruise(**ICON, price=650.0))

    preview = preview_kind(EntityKind.CRUISES, [scraped], snapshot)

    assert preview.counts == {"new": 1, "updated": 0, "unchanged": 0}


def test_untranslatable_row_is_skipped_not_fatal() -> None:
    candidates = prepare_candidates(
        offers=[["not", "a", "row"], {"code": 4411}],  # type: ignore[list-item]
        bookings=[booking_row(bookingId=7654321)],
        today=TODAY,
    )

    (offer,) = candidates[EntityKind.OFFERS]
    assert identity_key(offer.record) == "4411"
    (booking,) = candidates[EntityKind.BOOKED_CRUISES]
    assert identity_key(booking.record) == "7654321"
