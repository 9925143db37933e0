"""Deterministic repair of canonical records.

Repairs never guess: they normalize values through the field normalizers, derive
values that follow from other fields, and clamp impossible negatives. Every change is
recorded as a :class:`RepairAction` so the caller can show what happened.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date
from functools import singledispatch
from typing import TYPE_CHECKING, Any, Final

from .dates import add_days, days_between, is_past
from .loyalty import format_tier_name, tier_rank
from .model import (
    CanonicalBookedCruise,
    CanonicalCruise,
    CanonicalOffer,
    CanonicalRecord,
    CompletionState,
    LoyaltyStatus,
    RepairKind,
    Sailing,
    identity_key,
    is_empty,
)
from .normalization import (
    BOOKED_CRUISE_FIELDS,
    CRUISE_FIELDS,
    OFFER_FIELDS,
    SAILING_FIELDS,
    normalize_points,
)
from .validation import NIGHTS_TOLERANCE, ValidationReport, validate

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .normalization import Normalizer

log = logging.getLogger(__name__)

MAX_REPAIR_PASSES: Final[int] = 3
_CLAMPED_MONEY: Final[tuple[str, ...]] = (
    "price",
    "price_per_night",
    "total_price",
    "retail_value",
    "deposit_paid",
    "balance_due",
)
_OFFER_MONEY: Final[tuple[str, ...]] = ("trade_in_value", "free_play", "onboard_credit")


@dataclass(frozen=True, slots=True, kw_only=True)
class RepairAction:
    field: str
    original_value: object
    repaired_value: object
    kind: RepairKind
    description: str


@dataclass(frozen=True, slots=True, kw_only=True)
class RepairResult[TRecord]:
    original: TRecord
    repaired: TRecord
    actions: tuple[RepairAction, ...]
    remaining: ValidationReport

    @property
    def fully_repaired(self) -> bool:
        return self.remaining.is_valid


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchRepairResult[TRecord]:
    items: tuple[RepairResult[TRecord], ...] = ()
    failed: int = 0

    @property
    def total_actions(self) -> int:
        return sum(len(item.actions) for item in self.items)

    @property
    def fully_repaired_count(self) -> int:
        return sum(1 for item in self.items if item.fully_repaired)

    @property
    def partially_repaired_count(self) -> int:
        return sum(1 for item in self.items if item.actions and not item.fully_repaired)

    @property
    def unrepaired_count(self) -> int:
        return sum(1 for item in self.items if not item.actions and not item.fully_repaired)

    @property
    def repaired(self) -> tuple[TRecord, ...]:
        return tuple(item.repaired for item in self.items)


class _Draft[TRecord]:
    """Working copy of a record that logs each field change."""

    __slots__ = ("actions", "record")

    def __init__(self, record: TRecord) -> None:
        self.record = record
        self.actions: list[RepairAction] = []

    def get(self, name: str) -> object:
        return getattr(self.record, name)

    def set(self, name: str, value: object, kind: RepairKind, description: str) -> None:
        current = getattr(self.record, name)
        if current == value and type(current) is type(value):
            return
        self.record = replace(self.record, **{name: value})
        self.actions.append(
            RepairAction(
                field=name,
                original_value=current,
                repaired_value=value,
                kind=kind,
                description=description,
            )
        )


def _normalize_fields(draft: _Draft[Any], table: Sequence[tuple[str, Normalizer]]) -> None:
    for name, normalizer in table:
        value = draft.get(name)
        if is_empty(value):
            continue
        result = normalizer(value)
        if not result.was_normalized:
            continue
        if result.issues:
            draft.set(name, None, RepairKind.REMOVE, f"Removed unparseable {name}: {value!r}")
        else:
            draft.set(name, result.value, RepairKind.NORMALIZE, f"Normalized {name}")


def _clamp_negative(draft: _Draft[Any], names: Sequence[str]) -> None:
    for name in names:
        value = draft.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 0:
            draft.set(name, abs(value), RepairKind.NORMALIZE, f"Clamped negative {name}")


def _derive_dates(draft: _Draft[CanonicalCruise]) -> None:
    record = draft.record
    sail, back, nights = record.sail_date, record.return_date, record.nights
    has_nights = isinstance(nights, int) and nights > 0

    if not is_empty(sail) and is_empty(back) and has_nights:
        derived = add_days(str(sail), int(nights))
        if derived is not None:
            draft.set(
                "return_date",
                derived,
                RepairKind.CALCULATE,
                f"Calculated return date from sail date plus {nights} nights",
            )
    elif not is_empty(sail) and not is_empty(back) and is_empty(nights):
        span = days_between(sail, back)
        if span is not None and span > 0:
            draft.set("nights", span, RepairKind.CALCULATE, "Calculated nights from dates")
    elif is_empty(sail) and not is_empty(back) and has_nights:
        derived = add_days(str(back), -int(nights))
        if derived is not None:
            draft.set(
                "sail_date",
                derived,
                RepairKind.CALCULATE,
                f"Calculated sail date from return date minus {nights} nights",
            )


def _reconcile_nights(draft: _Draft[CanonicalCruise]) -> None:
    record = draft.record
    if not isinstance(record.nights, int):
        return
    span = days_between(record.sail_date, record.return_date)
    if span is None or span <= 0:
        return
    if abs(span - record.nights) > NIGHTS_TOLERANCE:
        draft.set(
            "nights",
            span,
            RepairKind.CALCULATE,
            f"Nights adjusted from {record.nights} to {span} to match the date range",
        )


def _price_per_night(draft: _Draft[CanonicalCruise]) -> None:
    record = draft.record
    if not is_empty(record.price_per_night):
        return
    if isinstance(record.price, (int, float)) and isinstance(record.nights, int):
        if record.price > 0 and record.nights > 0:
            draft.set(
                "price_per_night",
                round(record.price / record.nights, 2),
                RepairKind.CALCULATE,
                "Calculated price per night",
            )


def _ensure_cruise_identity(draft: _Draft[CanonicalCruise]) -> None:
    record = draft.record
    if not is_empty(record.id):
        return
    if isinstance(record, CanonicalBookedCruise) and not is_empty(record.booking_id):
        draft.set("id", record.booking_id, RepairKind.DEFAULT, "Used booking id as record id")
        return
    draft.set("id", uuid.uuid4().hex, RepairKind.DEFAULT, "Generated missing record identifier")


def _cruise_pass(draft: _Draft[CanonicalCruise], today: date) -> None:
    booked = isinstance(draft.record, CanonicalBookedCruise)
    _normalize_fields(draft, BOOKED_CRUISE_FIELDS if booked else CRUISE_FIELDS)
    _clamp_negative(draft, _CLAMPED_MONEY)
    _ensure_cruise_identity(draft)
    _derive_dates(draft)
    _reconcile_nights(draft)
    _price_per_night(draft)
    if booked:
        _booked_pass(draft, today)


def _booked_pass(draft: _Draft[CanonicalBookedCruise], today: date) -> None:
    record = draft.record
    past = is_past(record.sail_date, today=today)
    if record.completion_state is CompletionState.UPCOMING and past:
        draft.set(
            "completion_state",
            CompletionState.COMPLETED,
            RepairKind.CALCULATE,
            "Past sailing moved from upcoming to completed",
        )
    elif record.completion_state is None and not is_empty(record.sail_date):
        draft.set(
            "completion_state",
            CompletionState.COMPLETED if past else CompletionState.UPCOMING,
            RepairKind.DEFAULT,
            "Derived completion state from sail date",
        )


def _offer_pass(draft: _Draft[CanonicalOffer], today: date) -> None:
    _ = today
    _normalize_fields(draft, OFFER_FIELDS)
    _clamp_negative(draft, _OFFER_MONEY)
    _repair_sailings(draft)

    record = draft.record
    if is_empty(record.id):
        key = identity_key(record)
        generated = key if isinstance(key, str) else uuid.uuid4().hex
        draft.set("id", generated, RepairKind.DEFAULT, "Used offer code as offer id")


def _repair_sailings(draft: _Draft[CanonicalOffer]) -> None:
    sailings: list[Sailing] = []
    changed = False
    for index, sailing in enumerate(draft.record.sailings):
        inner: _Draft[Sailing] = _Draft(sailing)
        _normalize_fields(inner, SAILING_FIELDS)
        for action in inner.actions:
            draft.actions.append(replace(action, field=f"sailings[{index}].{action.field}"))
        changed = changed or bool(inner.actions)
        sailings.append(inner.record)
    if changed:
        draft.record = replace(draft.record, sailings=tuple(sailings))


def _loyalty_pass(draft: _Draft[LoyaltyStatus], today: date) -> None:
    _ = today
    if not is_empty(draft.record.points):
        result = normalize_points(draft.record.points)
        if result.was_normalized:
            draft.set("points", result.value, RepairKind.NORMALIZE, "Normalized points")

    program, tier = draft.record.program, draft.record.tier
    if is_empty(tier) or tier_rank(program, tier) is not None:
        return
    formatted = format_tier_name(str(tier))
    if tier_rank(program, formatted) is not None:
        draft.set("tier", formatted, RepairKind.NORMALIZE, "Normalized tier name")


def _repair_with(
    record: CanonicalRecord, step: Callable[[_Draft[Any], date], None], today: date
) -> RepairResult[CanonicalRecord]:
    draft: _Draft[CanonicalRecord] = _Draft(record)
    report = validate(record, today=today)
    for _ in range(MAX_REPAIR_PASSES):
        before = len(draft.actions)
        step(draft, today)
        report = validate(draft.record, today=today)
        if len(draft.actions) == before or not report.auto_fixable_count:
            break
    if draft.actions:
        log.debug("Repaired %s with %d action(s)", type(record).__name__, len(draft.actions))
    return RepairResult(
        original=record, repaired=draft.record, actions=tuple(draft.actions), remaining=report
    )


@singledispatch
def repair(record: object, *, today: date | None = None) -> RepairResult[CanonicalRecord]:
    raise TypeError(f"No repair rules for {type(record).__name__}")


@repair.register
def _(record: CanonicalCruise, *, today: date | None = None) -> RepairResult[CanonicalRecord]:
    return _repair_with(record, _cruise_pass, today or date.today())


@repair.register
def _(record: CanonicalOffer, *, today: date | None = None) -> RepairResult[CanonicalRecord]:
    return _repair_with(record, _offer_pass, today or date.today())


@repair.register
def _(record: LoyaltyStatus, *, today: date | None = None) -> RepairResult[CanonicalRecord]:
    return _repair_with(record, _loyalty_pass, today or date.today())


def batch_repair[TRecord: CanonicalRecord](
    records: Sequence[TRecord], *, today: date | None = None
) -> BatchRepairResult[TRecord]:
    """Repair each record on its own; one that raises is logged and left out."""

    effective = today or date.today()
    items: list[RepairResult[CanonicalRecord]] = []
    failed = 0
    for record in records:
        try:
            items.append(repair(record, today=effective))
        except Exception:  # noqa: BLE001
            failed += 1
            log.exception("Skipping %s that could not be repaired", type(record).__name__)
    return BatchRepairResult(items=tuple(items), failed=failed)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True, kw_only=True)
class RepairSummary:
    offers: BatchRepairResult[CanonicalOffer]
    cruises: BatchRepairResult[CanonicalCruise]
    booked_cruises: BatchRepairResult[CanonicalBookedCruise]

    @property
    def total_records(self) -> int:
        return sum(len(batch.items) for batch in self._batches())

    @property
    def total_actions(self) -> int:
        return sum(batch.total_actions for batch in self._batches())

    @property
    def success_rate(self) -> float:
        """Percentage of records that are valid after repair."""

        total = self.total_records
        if not total:
            return 100.0
        fully = sum(batch.fully_repaired_count for batch in self._batches())
        return round(fully / total * 100, 1)

    def _batches(self) -> tuple[BatchRepairResult[CanonicalRecord], ...]:
        return (self.offers, self.cruises, self.booked_cruises)  # type: ignore[return-value]


def repair_all(
    *,
    offers: Sequence[CanonicalOffer] = (),
    cruises: Sequence[CanonicalCruise] = (),
    booked_cruises: Sequence[CanonicalBookedCruise] = (),
    today: date | None = None,
) -> RepairSummary:
    effective = today or date.today()
    summary = RepairSummary(
        offers=batch_repair(offers, today=effective),
        cruises=batch_repair(cruises, today=effective),
        booked_cruises=batch_repair(booked_cruises, today=effective),
    )
    log.info(
        "Repaired %d record(s) with %d action(s), %.1f%% valid",
        summary.total_records,
        summary.total_actions,
        summary.success_rate,
    )
    return summary
