"""Authoritative-source precedence for loyalty captures within one session.

Loyalty figures are a single snapshot, not a growing collection. Captures from the
account API are authoritative; figures carved out of the page are a fallback. Once
an authoritative capture has been seen, later fallback captures are refused.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cruisesync.domain.model import LoyaltyStatus


@dataclass(frozen=True, slots=True, kw_only=True)
class LoyaltyCapture:
    statuses: tuple[LoyaltyStatus, ...]
    authoritative_seen: bool
    accepted: bool


def _by_program(
    current: Sequence[LoyaltyStatus], incoming: Sequence[LoyaltyStatus]
) -> tuple[LoyaltyStatus, ...]:
    merged = {status.program: status for status in current}
    for status in incoming:
        merged[status.program] = status
    return tuple(merged.values())


def accept_loyalty(
    current: Sequence[LoyaltyStatus],
    incoming: Sequence[LoyaltyStatus],
    *,
    authoritative: bool,
    authoritative_seen: bool,
) -> LoyaltyCapture:
    """Decide what the loyalty buffer holds after ``incoming`` arrives.

    ``authoritative_seen`` is the session's flag; the returned capture carries its
    next value so the caller can store it back on the session.
    """

    if authoritative:
        base = current if authoritative_seen else ()
        return LoyaltyCapture(
            statuses=_by_program(base, incoming), authoritative_seen=True, accepted=True
        )
    if authoritative_seen:
        return LoyaltyCapture(statuses=tuple(current), authoritative_seen=True, accepted=False)
    return LoyaltyCapture(
        statuses=_by_program(current, incoming), authoritative_seen=False, accepted=True
    )
