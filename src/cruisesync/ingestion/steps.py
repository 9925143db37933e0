"""Extraction step table and single-resolution step waiters."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from .protocol import BatchKind

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class StepDefinition:
    number: int
    kind: BatchKind
    target: str
    label: str


STEPS: Final[tuple[StepDefinition, ...]] = (
    StepDefinition(
        number=1, kind=BatchKind.OFFERS, target="club-royale/offers", label="Club Royale offers"
    ),
    StepDefinition(
        number=2,
        kind=BatchKind.BOOKINGS,
        target="account/upcoming-cruises",
        label="Upcoming cruises and courtesy holds",
    ),
    StepDefinition(
        number=3,
        kind=BatchKind.LOYALTY,
        target="account/loyalty-programs",
        label="Loyalty programs",
    ),
)

STEPS_BY_NUMBER: Final[dict[int, StepDefinition]] = {step.number: step for step in STEPS}
STEP_FOR_KIND: Final[dict[BatchKind, StepDefinition]] = {step.kind: step for step in STEPS}


def step_definition(number: int) -> StepDefinition:
    try:
        return STEPS_BY_NUMBER[number]
    except KeyError as exc:
        raise ValueError(f"Unknown step number: {number}") from exc


class WaitReason(StrEnum):
    COMPLETED = "completed"
    STALLED = "stalled"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True, kw_only=True)
class StepOutcome:
    step: int
    reason: WaitReason
    elapsed_seconds: float

    @property
    def completed(self) -> bool:
        return self.reason is WaitReason.COMPLETED


class StepWaiter:
    """Awaitable outcome of one step, resolved exactly once.

    The stall timer restarts on every ``touch``; the ceiling timer never restarts.
    Whichever of completion, stall or ceiling comes first sets the outcome; later
    attempts are ignored and reported as ``False`` by ``resolve``.
    """

    def __init__(
        self,
        step: int,
        *,
        stall_timeout: float,
        hard_timeout: float,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.step = step
        self._loop = loop or asyncio.get_running_loop()
        self._stall_timeout = stall_timeout
        self._future: asyncio.Future[StepOutcome] = self._loop.create_future()
        self._started = self._loop.time()
        self._stall_handle = self._loop.call_later(stall_timeout, self.resolve, WaitReason.STALLED)
        self._ceiling_handle = self._loop.call_later(
            hard_timeout, self.resolve, WaitReason.TIMED_OUT
        )

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def touch(self) -> None:
        if self.resolved:
            return
        self._stall_handle.cancel()
        self._stall_handle = self._loop.call_later(
            self._stall_timeout, self.resolve, WaitReason.STALLED
        )

    def resolve(self, reason: WaitReason) -> bool:
        if self.resolved:
            log.debug("Step %d already resolved; ignoring %s", self.step, reason)
            return False
        self._stall_handle.cancel()
        self._ceiling_handle.cancel()
        outcome = StepOutcome(
            step=self.step,
            reason=reason,
            elapsed_seconds=self._loop.time() - self._started,
        )
        self._future.set_result(outcome)
        log.debug("Step %d resolved: %s after %.1fs", self.step, reason, outcome.elapsed_seconds)
        return True

    async def wait(self) -> StepOutcome:
        return await asyncio.shield(self._future)


class StepWaiters:
    """Pending step waits keyed by step number; at most one is active at a time."""

    def __init__(self, *, stall_timeout: float, hard_timeout: float) -> None:
        self._stall_timeout = stall_timeout
        self._hard_timeout = hard_timeout
        self._waiters: dict[int, StepWaiter] = {}
        self._active: int | None = None

    def open(self, step: int) -> StepWaiter:
        previous = self._waiters.get(step)
        if previous is not None:
            previous.resolve(WaitReason.CANCELLED)
        waiter = StepWaiter(
            step, stall_timeout=self._stall_timeout, hard_timeout=self._hard_timeout
        )
        self._waiters[step] = waiter
        self._active = step
        return waiter

    @property
    def active(self) -> StepWaiter | None:
        if self._active is None:
            return None
        return self._waiters.get(self._active)

    def get(self, step: int) -> StepWaiter | None:
        return self._waiters.get(step)

    def resolve(self, step: int, reason: WaitReason = WaitReason.COMPLETED) -> bool:
        waiter = self._waiters.get(step)
        if waiter is None:
            log.debug("No pending wait for step %d", step)
            return False
        return waiter.resolve(reason)

    def touch_active(self) -> None:
        waiter = self.active
        if waiter is not None:
            waiter.touch()

    def cancel_all(self) -> None:
        for waiter in self._waiters.values():
            waiter.resolve(WaitReason.CANCELLED)
        self._waiters.clear()
        self._active = None

    def __iter__(self) -> Iterator[StepWaiter]:
        return iter(self._waiters.values())

    def __len__(self) -> int:
        return len(self._waiters)


__all__ = [
    "STEPS",
    "STEPS_BY_NUMBER",
    "STEP_FOR_KIND",
    "StepDefinition",
    "StepOutcome",
    "StepWaiter",
    "StepWaiters",
    "WaitReason",
    "step_definition",
]
