"""Rule-based validation of canonical records.

Each entity kind has a fixed, ordered tuple of checks. A check yields zero or more
:class:`ValidationIssue` objects; a report is simply the concatenation, so running it
twice over the same record yields the same report.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from functools import singledispatch
from typing import TYPE_CHECKING, Final

from .dates import days_between, days_in_past, is_canonical, is_past, parse_date
from .loyalty import TIERS_BY_PROGRAM, format_tier_name, tier_rank
from .model import (
    CanonicalBookedCruise,
    CanonicalCruise,
    CanonicalOffer,
    CompletionState,
    EntityKind,
    LoyaltyStatus,
    Severity,
    is_empty,
)
from .normalization import (
    KNOWN_CABIN_TYPES,
    KNOWN_SHIPS,
    normalize_cabin_type,
    normalize_ship_name,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence

MIN_NIGHTS: Final[int] = 1
MAX_NIGHTS: Final[int] = 365
NIGHTS_TOLERANCE: Final[int] = 1
MIN_PRICE_PER_NIGHT: Final[float] = 50.0
MAX_PRICE_PER_NIGHT: Final[float] = 10_000.0
MAX_PLAUSIBLE_WINNINGS: Final[float] = 100_000.0
_BOOKING_ID = re.compile(r"^[A-Z0-9-]{6,}$")


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidationIssue:
    field: str
    message: str
    severity: Severity
    value: object = None
    suggested: object = None
    auto_fixable: bool = False


@dataclass(frozen=True, slots=True)
class ValidationReport:
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def errors(self) -> tuple[ValidationIssue, ...]:
        return self._by_severity(Severity.ERROR)

    @property
    def warnings(self) -> tuple[ValidationIssue, ...]:
        return self._by_severity(Severity.WARNING)

    @property
    def infos(self) -> tuple[ValidationIssue, ...]:
        return self._by_severity(Severity.INFO)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def total_issues(self) -> int:
        return len(self.issues)

    @property
    def auto_fixable_count(self) -> int:
        return sum(1 for issue in self.issues if issue.auto_fixable)

    def for_field(self, name: str) -> tuple[ValidationIssue, ...]:
        return tuple(issue for issue in self.issues if issue.field == name)

    def _by_severity(self, severity: Severity) -> tuple[ValidationIssue, ...]:
        return tuple(issue for issue in self.issues if issue.severity is severity)


type Check[TRecord] = Callable[[TRecord, date], Iterable[ValidationIssue]]


def _number(value: object) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _not_numeric(name: str, value: object) -> ValidationIssue:
    return ValidationIssue(
        field=name,
        message=f"{name} is not a plain number: {value!r}",
        severity=Severity.WARNING,
        value=value,
        auto_fixable=True,
    )


def _non_negative(record: object, names: Sequence[str]) -> Iterator[ValidationIssue]:
    for name in names:
        value = getattr(record, name)
        if is_empty(value):
            continue
        number = _number(value)
        if number is None:
            yield _not_numeric(name, value)
        elif number < 0:
            yield ValidationIssue(
                field=name,
                message=f"{name} cannot be negative",
                severity=Severity.ERROR,
                value=value,
                suggested=0 if name.endswith("points") else abs(number),
                auto_fixable=True,
            )


# -- cruise checks -----------------------------------------------------------------


def _check_identity(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.id):
        yield ValidationIssue(
            field="id",
            message="Record identifier is missing",
            severity=Severity.ERROR,
            auto_fixable=True,
        )


def _check_ship(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.ship_name):
        yield ValidationIssue(
            field="ship_name", message="Ship name is required", severity=Severity.ERROR
        )
        return
    if record.ship_name in KNOWN_SHIPS:
        return
    suggestion = normalize_ship_name(record.ship_name).value
    fixable = suggestion in KNOWN_SHIPS
    yield ValidationIssue(
        field="ship_name",
        message=f"Unknown ship: {record.ship_name}",
        severity=Severity.INFO,
        value=record.ship_name,
        suggested=suggestion if fixable else None,
        auto_fixable=fixable,
    )


def _check_sail_date(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.sail_date):
        yield ValidationIssue(
            field="sail_date", message="Sail date is required", severity=Severity.ERROR
        )
        return
    if parse_date(record.sail_date) is None:
        yield ValidationIssue(
            field="sail_date",
            message=f"Invalid sail date: {record.sail_date}",
            severity=Severity.ERROR,
            value=record.sail_date,
        )
    elif not is_canonical(str(record.sail_date)):
        yield ValidationIssue(
            field="sail_date",
            message="Sail date is not in MM-DD-YYYY form",
            severity=Severity.INFO,
            value=record.sail_date,
            auto_fixable=True,
        )


def _check_return_date(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.return_date):
        return
    if parse_date(record.return_date) is None:
        yield ValidationIssue(
            field="return_date",
            message=f"Invalid return date: {record.return_date}",
            severity=Severity.ERROR,
            value=record.return_date,
        )
        return
    span = days_between(record.sail_date, record.return_date)
    if span is not None and span <= 0:
        yield ValidationIssue(
            field="return_date",
            message="Return date must be after sail date",
            severity=Severity.ERROR,
            value=record.return_date,
        )


def _check_nights(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    span = days_between(record.sail_date, record.return_date)
    if is_empty(record.nights):
        yield ValidationIssue(
            field="nights",
            message="Number of nights is missing",
            severity=Severity.WARNING,
            suggested=span if span and span > 0 else None,
            auto_fixable=bool(span and span > 0),
        )
        return
    nights = _number(record.nights)
    if nights is None or nights != int(nights):
        yield _not_numeric("nights", record.nights)
        return
    if not MIN_NIGHTS <= nights <= MAX_NIGHTS:
        yield ValidationIssue(
            field="nights",
            message=f"Unreasonable number of nights: {record.nights}",
            severity=Severity.WARNING,
            value=record.nights,
        )
    if span is not None and span > 0 and abs(span - nights) > NIGHTS_TOLERANCE:
        yield ValidationIssue(
            field="nights",
            message=f"Nights ({int(nights)}) disagree with the date range ({span} days)",
            severity=Severity.WARNING,
            value=record.nights,
            suggested=span,
            auto_fixable=True,
        )


def _check_port(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.departure_port):
        yield ValidationIssue(
            field="departure_port",
            message="Departure port is missing",
            severity=Severity.WARNING,
        )


def _check_destination(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.destination) and is_empty(record.itinerary_name):
        yield ValidationIssue(
            field="destination",
            message="Destination and itinerary are both missing",
            severity=Severity.INFO,
        )


def _check_price(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    yield from _non_negative(record, ("price", "price_per_night"))
    price = _number(record.price)
    nights = _number(record.nights)
    if not price or not nights or price < 0 or nights <= 0:
        return
    per_night = price / nights
    if not MIN_PRICE_PER_NIGHT <= per_night <= MAX_PRICE_PER_NIGHT:
        yield ValidationIssue(
            field="price",
            message=f"Price per night looks implausible: {per_night:.2f}",
            severity=Severity.WARNING,
            value=record.price,
        )


def _check_cabin_type(record: CanonicalCruise, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.cabin_type) or record.cabin_type in KNOWN_CABIN_TYPES:
        return
    suggestion = normalize_cabin_type(record.cabin_type).value
    fixable = suggestion in KNOWN_CABIN_TYPES
    yield ValidationIssue(
        field="cabin_type",
        message=f"Unknown cabin type: {record.cabin_type}",
        severity=Severity.INFO,
        value=record.cabin_type,
        suggested=suggestion if fixable else None,
        auto_fixable=fixable,
    )


CRUISE_CHECKS: Final[tuple[Check[CanonicalCruise], ...]] = (
    _check_identity,
    _check_ship,
    _check_sail_date,
    _check_return_date,
    _check_nights,
    _check_port,
    _check_destination,
    _check_price,
    _check_cabin_type,
)


# -- booked cruise checks ----------------------------------------------------------


def _check_booking_id(record: CanonicalBookedCruise, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.booking_id):
        yield ValidationIssue(
            field="booking_id",
            message="Booking id is missing",
            severity=Severity.WARNING,
        )
    elif not _BOOKING_ID.match(str(record.booking_id).strip()):
        yield ValidationIssue(
            field="booking_id",
            message=f"Booking id has an unexpected format: {record.booking_id}",
            severity=Severity.INFO,
            value=record.booking_id,
        )


def _check_booked_amounts(
    record: CanonicalBookedCruise, today: date
) -> Iterator[ValidationIssue]:
    yield from _non_negative(
        record,
        (
            "total_price",
            "retail_value",
            "deposit_paid",
            "balance_due",
            "earned_points",
            "casino_points",
        ),
    )


def _check_retail_value(record: CanonicalBookedCruise, today: date) -> Iterator[ValidationIssue]:
    retail = _number(record.retail_value)
    paid = _number(record.total_price)
    if retail is None or paid is None or retail <= 0:
        return
    if retail < paid:
        yield ValidationIssue(
            field="retail_value",
            message="Retail value is less than the amount paid",
            severity=Severity.WARNING,
            value=record.retail_value,
        )


def _check_winnings(record: CanonicalBookedCruise, today: date) -> Iterator[ValidationIssue]:
    winnings = _number(record.winnings)
    if winnings is not None and abs(winnings) > MAX_PLAUSIBLE_WINNINGS:
        yield ValidationIssue(
            field="winnings",
            message=f"Unusually large winnings: {record.winnings}",
            severity=Severity.WARNING,
            value=record.winnings,
        )


def _check_completion(record: CanonicalBookedCruise, today: date) -> Iterator[ValidationIssue]:
    if record.completion_state is not CompletionState.UPCOMING:
        return
    if is_past(record.sail_date, today=today):
        yield ValidationIssue(
            field="completion_state",
            message="Past sailing is still marked as upcoming",
            severity=Severity.WARNING,
            value=record.completion_state,
            suggested=CompletionState.COMPLETED,
            auto_fixable=True,
        )


BOOKED_CRUISE_CHECKS: Final[tuple[Check[CanonicalBookedCruise], ...]] = (
    _check_booking_id,
    _check_booked_amounts,
    _check_retail_value,
    _check_winnings,
    _check_completion,
)


# -- offer checks ------------------------------------------------------------------


def _check_offer_identity(record: CanonicalOffer, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.offer_code) and is_empty(record.name):
        yield ValidationIssue(
            field="offer_code",
            message="Offer has neither a code nor a name",
            severity=Severity.ERROR,
        )
    if is_empty(record.id):
        yield ValidationIssue(
            field="id",
            message="Offer identifier is missing",
            severity=Severity.WARNING,
            suggested=record.offer_code,
            auto_fixable=True,
        )


def _check_offer_expiry(record: CanonicalOffer, today: date) -> Iterator[ValidationIssue]:
    if is_empty(record.expiry_date):
        return
    if parse_date(record.expiry_date) is None:
        yield ValidationIssue(
            field="expiry_date",
            message=f"Invalid expiry date: {record.expiry_date}",
            severity=Severity.ERROR,
            value=record.expiry_date,
        )
        return
    if not is_canonical(str(record.expiry_date)):
        yield ValidationIssue(
            field="expiry_date",
            message="Expiry date is not in MM-DD-YYYY form",
            severity=Severity.INFO,
            value=record.expiry_date,
            auto_fixable=True,
        )
    if is_past(record.expiry_date, today=today):
        yield ValidationIssue(
            field="expiry_date",
            message="Offer has expired",
            severity=Severity.INFO,
            value=record.expiry_date,
        )


def _check_offer_values(record: CanonicalOffer, today: date) -> Iterator[ValidationIssue]:
    yield from _non_negative(record, ("trade_in_value", "free_play", "onboard_credit"))


def _check_sailings(record: CanonicalOffer, today: date) -> Iterator[ValidationIssue]:
    for index, sailing in enumerate(record.sailings):
        prefix = f"sailings[{index}]"
        if is_empty(sailing.ship_name):
            yield ValidationIssue(
                field=f"{prefix}.ship_name",
                message="Sailing has no ship",
                severity=Severity.WARNING,
            )
        if not is_empty(sailing.sail_date) and parse_date(sailing.sail_date) is None:
            yield ValidationIssue(
                field=f"{prefix}.sail_date",
                message=f"Invalid sailing date: {sailing.sail_date}",
                severity=Severity.WARNING,
                value=sailing.sail_date,
            )


OFFER_CHECKS: Final[tuple[Check[CanonicalOffer], ...]] = (
    _check_offer_identity,
    _check_offer_expiry,
    _check_offer_values,
    _check_sailings,
)


def _run[TRecord](
    record: TRecord, checks: Iterable[Check[TRecord]], today: date
) -> tuple[ValidationIssue, ...]:
    return tuple(issue for check in checks for issue in check(record, today))


def validate_cruise(record: CanonicalCruise, *, today: date | None = None) -> ValidationReport:
    return ValidationReport(_run(record, CRUISE_CHECKS, today or date.today()))


def validate_booked_cruise(
    record: CanonicalBookedCruise, *, today: date | None = None
) -> ValidationReport:
    """Base cruise checks followed by the booked-only checks."""

    effective = today or date.today()
    base = _run(record, CRUISE_CHECKS, effective)
    return ValidationReport(base + _run(record, BOOKED_CRUISE_CHECKS, effective))


def validate_offer(record: CanonicalOffer, *, today: date | None = None) -> ValidationReport:
    return ValidationReport(_run(record, OFFER_CHECKS, today or date.today()))


@singledispatch
def validate(record: object, *, today: date | None = None) -> ValidationReport:
    raise TypeError(f"No validation rules for {type(record).__name__}")


@validate.register
def _(record: CanonicalCruise, *, today: date | None = None) -> ValidationReport:
    return validate_cruise(record, today=today)


@validate.register
def _(record: CanonicalBookedCruise, *, today: date | None = None) -> ValidationReport:
    return validate_booked_cruise(record, today=today)


@validate.register
def _(record: CanonicalOffer, *, today: date | None = None) -> ValidationReport:
    return validate_offer(record, today=today)


@validate.register
def _(record: LoyaltyStatus, *, today: date | None = None) -> ValidationReport:
    _ = today
    if is_empty(record.program):
        return ValidationReport(
            (
                ValidationIssue(
                    field="program",
                    message="Loyalty program is required",
                    severity=Severity.ERROR,
                ),
            )
        )
    return ValidationReport((*_non_negative(record, ("points",)), *_check_tier(record)))


def _check_tier(record: LoyaltyStatus) -> Iterator[ValidationIssue]:
    if record.program not in TIERS_BY_PROGRAM or is_empty(record.tier):
        return
    if tier_rank(record.program, record.tier) is not None:
        return
    formatted = format_tier_name(str(record.tier))
    known = tier_rank(record.program, formatted) is not None
    yield ValidationIssue(
        field="tier",
        message=f"Unknown {record.program} tier: {record.tier}",
        severity=Severity.INFO,
        value=record.tier,
        suggested=formatted if known else None,
        auto_fixable=known,
    )


# -- dataset summary and quality score ---------------------------------------------


@dataclass(frozen=True, slots=True, kw_only=True)
class KindValidationSummary:
    total: int = 0
    valid: int = 0
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    auto_fixable: int = 0

    @property
    def invalid(self) -> int:
        return self.total - self.valid


@dataclass(frozen=True, slots=True)
class DatasetValidationSummary:
    kinds: dict[EntityKind, KindValidationSummary] = field(
        default_factory=dict[EntityKind, KindValidationSummary]
    )

    @property
    def total_records(self) -> int:
        return sum(summary.total for summary in self.kinds.values())

    @property
    def total_errors(self) -> int:
        return sum(summary.errors for summary in self.kinds.values())


def _summarize(reports: Sequence[ValidationReport]) -> KindValidationSummary:
    return KindValidationSummary(
        total=len(reports),
        valid=sum(1 for report in reports if report.is_valid),
        errors=sum(len(report.errors) for report in reports),
        warnings=sum(len(report.warnings) for report in reports),
        infos=sum(len(report.infos) for report in reports),
        auto_fixable=sum(report.auto_fixable_count for report in reports),
    )


def validate_dataset(
    *,
    offers: Sequence[CanonicalOffer] = (),
    cruises: Sequence[CanonicalCruise] = (),
    booked_cruises: Sequence[CanonicalBookedCruise] = (),
    today: date | None = None,
) -> DatasetValidationSummary:
    effective = today or date.today()
    return DatasetValidationSummary(
        {
            EntityKind.OFFERS: _summarize(
                [validate_offer(item, today=effective) for item in offers]
            ),
            EntityKind.CRUISES: _summarize(
                [validate_cruise(item, today=effective) for item in cruises]
            ),
            EntityKind.BOOKED_CRUISES: _summarize(
                [validate_booked_cruise(item, today=effective) for item in booked_cruises]
            ),
        }
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class DataQualityScore:
    overall: int = 0
    completeness: int = 0
    accuracy: int = 0
    consistency: int = 0
    timeliness: int = 0


_REQUIRED_FOR_COMPLETENESS: Final[tuple[str, ...]] = (
    "ship_name",
    "sail_date",
    "nights",
    "departure_port",
)


def _accuracy(record: CanonicalCruise) -> float:
    points = 100.0
    if not is_empty(record.ship_name) and record.ship_name not in KNOWN_SHIPS:
        points -= 20
    if not is_empty(record.sail_date) and parse_date(record.sail_date) is None:
        points -= 30
    nights = _number(record.nights)
    if nights and not MIN_NIGHTS <= nights <= MAX_NIGHTS:
        points -= 20
    return max(0.0, points)


def _consistency(record: CanonicalCruise) -> float:
    span = days_between(record.sail_date, record.return_date)
    nights = _number(record.nights)
    if span is not None and nights and abs(span - nights) > NIGHTS_TOLERANCE:
        return 70.0
    return 100.0


def _timeliness(record: CanonicalCruise, today: date) -> float:
    elapsed = days_in_past(record.sail_date, today=today)
    if elapsed is None or elapsed <= 0:
        return 100.0
    if elapsed > 365:
        return 50.0
    if elapsed > 180:
        return 70.0
    if elapsed > 90:
        return 85.0
    return 100.0


def calculate_data_quality(
    cruises: Sequence[CanonicalCruise], *, today: date | None = None
) -> DataQualityScore:
    """Score a cruise collection on four 0-100 axes; informational only."""

    if not cruises:
        return DataQualityScore()
    effective = today or date.today()
    total = len(cruises)

    completeness = (
        sum(
            sum(1 for name in _REQUIRED_FOR_COMPLETENESS if not is_empty(getattr(item, name)))
            / len(_REQUIRED_FOR_COMPLETENESS)
            * 100
            for item in cruises
        )
        / total
    )
    accuracy = sum(_accuracy(item) for item in cruises) / total
    consistency = sum(_consistency(item) for item in cruises) / total
    timeliness = sum(_timeliness(item, effective) for item in cruises) / total
    overall = (completeness + accuracy + consistency + timeliness) / 4

    return DataQualityScore(
        overall=round(overall),
        completeness=round(completeness),
        accuracy=round(accuracy),
        consistency=round(consistency),
        timeliness=round(timeliness),
    )
