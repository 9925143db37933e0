"""Preview and apply a merge of freshly repaired records onto a stored snapshot.

Reconciliation runs once per entity kind after the session buffers are final. The
preview classifies every incoming record as new, updated or unchanged. Applying the
preview only ever adds records or fills fields: an empty incoming value never
overwrites a populated one, and records missing from the batch are kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from cruisesync.domain.dates import parse_date
from cruisesync.domain.model import (
    CanonicalCruise,
    CanonicalOffer,
    EntityKind,
    LoyaltyStatus,
    Sailing,
    identity_key,
    is_empty,
    record_fields,
    sailing_key,
)

from .contracts import (
    FieldChange,
    KindPreview,
    LoyaltyDelta,
    LoyaltyPreview,
    SyncPreview,
    UpdatedRecord,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from cruisesync.domain.model import CanonicalRecord, IdentityKey
    from cruisesync.domain.repair import RepairResult

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Candidate:
    """A repaired record together with the values it was scraped with."""

    original: CanonicalRecord
    record: CanonicalRecord

    @classmethod
    def from_repair(cls, result: RepairResult[Any]) -> Candidate:
        return cls(original=result.original, record=result.repaired)


def _sailing_key(sailing: Sailing) -> tuple[str, str, str]:
    parsed = parse_date(sailing.sail_date)
    return (
        " ".join((sailing.ship_name or "").lower().split()),
        parsed.isoformat() if parsed else str(sailing.sail_date or ""),
        " ".join((sailing.cabin_type or "").lower().split()),
    )


def union_sailings(first: Sequence[Sailing], second: Sequence[Sailing]) -> tuple[Sailing, ...]:
    """Order-preserving union; a later duplicate fills gaps in the earlier row."""

    merged: dict[tuple[str, str, str], Sailing] = {}
    for sailing in (*first, *second):
        key = _sailing_key(sailing)
        previous = merged.get(key)
        merged[key] = sailing if previous is None else _fill(previous, sailing)
    return tuple(merged.values())


def _fill[TRecord](base: TRecord, incoming: TRecord) -> TRecord:
    updates = {
        name: value
        for name in record_fields(incoming)
        if not is_empty(value := getattr(incoming, name)) and value != getattr(base, name, None)
    }
    merged = replace(base, **updates) if updates else base
    if isinstance(merged, CanonicalOffer) and isinstance(base, CanonicalOffer):
        merged = replace(merged, sailings=union_sailings(base.sailings, incoming.sailings))
    extra = getattr(base, "extra", None)
    if extra is not None:
        new_extra = {k: v for k, v in incoming.extra.items() if not is_empty(v)}
        if new_extra and any(extra.get(k) != v for k, v in new_extra.items()):
            merged = replace(merged, extra={**extra, **new_extra})
    return merged


def fold_batch(candidates: Sequence[Candidate]) -> list[tuple[IdentityKey, Candidate]]:
    """Collapse candidates sharing an identity key, in first-seen order."""

    folded: dict[IdentityKey, Candidate] = {}
    for candidate in candidates:
        key = identity_key(candidate.record)
        if key is None:
            log.warning(
                "Skipping %s without an identity key", type(candidate.record).__name__
            )
            continue
        previous = folded.get(key)
        if previous is None:
            folded[key] = candidate
            continue
        folded[key] = Candidate(
            original=_fill(previous.original, candidate.original),
            record=_fill(previous.record, candidate.record),
        )
    return list(folded.items())


def diff_record(existing: CanonicalRecord, candidate: Candidate) -> tuple[FieldChange, ...]:
    """Fields whose non-empty incoming value differs from the stored one.

    A field also counts when only its scraped form differed; the change then carries
    the normalized value and reports itself as a no-op. A stored ``id`` is never
    replaced.
    """

    changes: list[FieldChange] = []
    incoming = candidate.record
    for name in record_fields(incoming):
        new = getattr(incoming, name)
        if is_empty(new):
            continue
        if name == "id" and not is_empty(getattr(existing, "id", None)):
            continue
        old = getattr(existing, name, None)
        if name == "sailings" and isinstance(existing, CanonicalOffer):
            union = union_sailings(existing.sailings, new)
            if union != existing.sailings:
                changes.append(FieldChange(name, existing.sailings, union))
            continue
        scraped = getattr(candidate.original, name, new)
        if new != old or (not is_empty(scraped) and scraped != old):
            changes.append(FieldChange(name, old, new))
    return tuple(changes)


def _compatible(left: object, right: object) -> bool:
    return is_empty(left) or is_empty(right) or left == right


def _loose_match(
    record: CanonicalRecord, snapshot: Sequence[CanonicalRecord], claimed: set[int]
) -> int | None:
    """Index of the one unclaimed stored cruise on the same ship and date as ``record``.

    Cabin types and booking ids only have to agree where both sides carry one.
    """

    if not isinstance(record, CanonicalCruise):
        return None
    wanted = sailing_key(record)
    if wanted is None:
        return None
    booking_id = getattr(record, "booking_id", None)
    matches = []
    for index, stored in enumerate(snapshot):
        if index in claimed or not isinstance(stored, CanonicalCruise):
            continue
        have = sailing_key(stored)
        if have is None or have[:2] != wanted[:2] or not _compatible(have[2], wanted[2]):
            continue
        if _compatible(getattr(stored, "booking_id", None), booking_id):
            matches.append(index)
    if len(matches) != 1:
        return None
    claimed.add(matches[0])
    return matches[0]


def preview_kind(
    kind: EntityKind,
    candidates: Sequence[Candidate],
    snapshot: Sequence[CanonicalRecord],
) -> KindPreview:
    """Classify ``candidates`` against ``snapshot`` without mutating either.

    A cruise with no exact key match still updates a stored cruise on the same ship
    and date when exactly one such record fits.
    """

    stored: dict[IdentityKey, int] = {}
    for index, record in enumerate(snapshot):
        key = identity_key(record)
        if key is not None:
            stored.setdefault(key, index)

    folded = fold_batch(candidates)
    claimed = {stored[key] for key, _ in folded if key in stored}
    new: list[CanonicalRecord] = []
    updated: list[UpdatedRecord] = []
    unchanged: list[CanonicalRecord] = []
    for key, candidate in folded:
        index = stored.get(key)
        if index is None:
            index = _loose_match(candidate.record, snapshot, claimed)
        if index is None:
            new.append(candidate.record)
            continue
        existing = snapshot[index]
        changes = diff_record(existing, candidate)
        if changes:
            updated.append(
                UpdatedRecord(
                    key=identity_key(existing) or key,
                    existing=existing,
                    incoming=candidate.record,
                    changes=changes,
                )
            )
        else:
            unchanged.append(existing)

    return KindPreview(
        kind=kind,
        new=tuple(new),
        updated=tuple(updated),
        unchanged=tuple(unchanged),
        skipped=sum(1 for candidate in candidates if identity_key(candidate.record) is None),
    )


def merge_updated(update: UpdatedRecord) -> CanonicalRecord:
    """Shallow-merge changed fields onto the stored record."""

    values = {change.field: change.new for change in update.changes}
    merged = replace(update.existing, **values)
    incoming_extra = {k: v for k, v in update.incoming.extra.items() if not is_empty(v)}
    if incoming_extra:
        merged = replace(merged, extra={**update.existing.extra, **incoming_extra})
    return merged


def apply_kind_preview(
    preview: KindPreview, snapshot: Sequence[CanonicalRecord]
) -> list[CanonicalRecord]:
    """Stored records in their original order, updated in place, then new ones."""

    merged_by_key = {update.key: merge_updated(update) for update in preview.updated}
    result: list[CanonicalRecord] = []
    applied: set[IdentityKey] = set()
    for record in snapshot:
        key = identity_key(record)
        if key is not None and key in merged_by_key and key not in applied:
            result.append(merged_by_key[key])
            applied.add(key)
        else:
            result.append(record)
    result.extend(preview.new)
    return result


def loyalty_preview(
    kind_preview: KindPreview,
    snapshot: Sequence[CanonicalRecord],
    *,
    authoritative: bool,
) -> LoyaltyPreview:
    current = {
        record.program: record for record in snapshot if isinstance(record, LoyaltyStatus)
    }
    synced: list[LoyaltyStatus] = [
        record for record in kind_preview.new if isinstance(record, LoyaltyStatus)
    ]
    synced.extend(
        merge_updated(update)
        for update in kind_preview.updated
        if isinstance(update.existing, LoyaltyStatus)
    )
    synced.extend(
        record for record in kind_preview.unchanged if isinstance(record, LoyaltyStatus)
    )
    deltas: list[LoyaltyDelta] = []
    for status in sorted(synced, key=lambda item: item.program):
        previous = current.get(status.program)
        deltas.append(
            LoyaltyDelta(
                program=status.program,
                current_tier=previous.tier if previous else None,
                synced_tier=status.tier,
                current_points=previous.points if previous else None,
                synced_points=status.points,
            )
        )
    return LoyaltyPreview(deltas=tuple(deltas), authoritative=authoritative)


def build_sync_preview(
    batches: Mapping[EntityKind, Sequence[Candidate]],
    snapshots: Mapping[EntityKind, Sequence[CanonicalRecord]],
    *,
    authoritative_loyalty: bool = False,
) -> SyncPreview:
    kinds = {
        kind: preview_kind(kind, batches.get(kind, ()), snapshots.get(kind, ()))
        for kind in EntityKind
    }
    loyalty = None
    if batches.get(EntityKind.LOYALTY):
        loyalty = loyalty_preview(
            kinds[EntityKind.LOYALTY],
            snapshots.get(EntityKind.LOYALTY, ()),
            authoritative=authoritative_loyalty,
        )
    return SyncPreview(kinds=kinds, loyalty=loyalty)


def apply_sync_preview(
    preview: SyncPreview,
    snapshots: Mapping[EntityKind, Sequence[CanonicalRecord]],
) -> dict[EntityKind, list[CanonicalRecord]]:
    """Merged snapshot per kind; pure, the caller decides when to write."""

    return {
        kind: apply_kind_preview(kind_preview, snapshots.get(kind, ()))
        for kind, kind_preview in preview.kinds.items()
    }
