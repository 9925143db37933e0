"""Turn buffered raw rows into repaired reconciliation candidates."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from cruisesync.domain.model import CanonicalOffer, EntityKind, from_payload
from cruisesync.domain.repair import batch_repair
from cruisesync.domain.translation import (
    cruises_from_offers,
    translate_booking,
    translate_offer,
)

from .engine import Candidate

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from cruisesync.domain.model import CanonicalRecord, LoyaltyStatus, Payload
    from cruisesync.domain.repair import BatchRepairResult
    from cruisesync.domain.translation import RawRecord

log = logging.getLogger(__name__)


def _translate[TRecord](
    rows: Sequence[RawRecord], translator: Callable[[RawRecord], TRecord], kind: EntityKind
) -> list[TRecord]:
    records: list[TRecord] = []
    for row in rows:
        try:
            records.append(translator(row))
        except Exception:  # noqa: BLE001
            log.exception("Skipping %s row that could not be translated", kind)
    return records


def _candidates(batch: BatchRepairResult[CanonicalRecord]) -> list[Candidate]:
    return [Candidate.from_repair(item) for item in batch.items]


def prepare_candidates(
    *,
    offers: Sequence[RawRecord] = (),
    bookings: Sequence[RawRecord] = (),
    loyalty: Sequence[LoyaltyStatus] = (),
    today: date | None = None,
) -> dict[EntityKind, list[Candidate]]:
    """Translate and repair one session's buffers, per entity kind.

    Available cruises are derived from the repaired offers so they carry normalized
    ship names and dates.
    """

    effective = today or date.today()
    offer_batch = batch_repair(
        _translate(offers, translate_offer, EntityKind.OFFERS), today=effective
    )
    repaired_offers = [
        record for record in offer_batch.repaired if isinstance(record, CanonicalOffer)
    ]
    cruise_batch = batch_repair(cruises_from_offers(repaired_offers), today=effective)
    booking_batch = batch_repair(
        _translate(bookings, translate_booking, EntityKind.BOOKED_CRUISES), today=effective
    )
    loyalty_batch = batch_repair(list(loyalty), today=effective)

    for kind, batch in (
        (EntityKind.OFFERS, offer_batch),
        (EntityKind.CRUISES, cruise_batch),
        (EntityKind.BOOKED_CRUISES, booking_batch),
    ):
        log.info(
            "Repaired %s: %d valid, %d improved, %d unrepaired, %d failed",
            kind,
            batch.fully_repaired_count,
            batch.partially_repaired_count,
            batch.unrepaired_count,
            batch.failed,
        )

    return {
        EntityKind.OFFERS: _candidates(offer_batch),
        EntityKind.CRUISES: _candidates(cruise_batch),
        EntityKind.BOOKED_CRUISES: _candidates(booking_batch),
        EntityKind.LOYALTY: _candidates(loyalty_batch),
    }


def load_snapshot(kind: EntityKind, payloads: Sequence[Payload]) -> list[CanonicalRecord]:
    return [from_payload(kind, payload) for payload in payloads]


def load_snapshots(
    payloads: Mapping[EntityKind, Sequence[Payload]],
) -> dict[EntityKind, list[CanonicalRecord]]:
    return {kind: load_snapshot(kind, rows) for kind, rows in payloads.items()}
