"""Navigator that replays a recorded extraction session.

A recording is a JSON Lines file with one envelope per line, in the order the
extractor emitted them. Envelopes are grouped by their ``step``; lines without a
step belong to the last step seen, or to the preamble before the first one (login
status, typically). Starting the extractor for a step delivers that step's
envelopes to the bound handler. When a step's recording has no ``step_complete``,
one is delivered at the end, as an extractor that found nothing would.
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Mapping
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from cruisesync.domain.ports import Navigator

log = getLogger(__name__)

type Handler = Callable[[Mapping[str, object]], object]


class ReplayFormatError(ValueError):
    """Raised when a recording line is not a JSON object."""


def _step_of(envelope: Mapping[str, Any]) -> int | None:
    step = envelope.get("step")
    if step is None:
        payload = envelope.get("payload")
        if isinstance(payload, Mapping):
            step = cast(Mapping[str, Any], payload).get("step")
    if isinstance(step, int) and not isinstance(step, bool):
        return step
    if isinstance(step, str) and step.strip().isdigit():
        return int(step)
    return None


def read_recording(lines: Iterable[str]) -> list[dict[str, Any]]:
    envelopes: list[dict[str, Any]] = []
    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            value = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise ReplayFormatError(f"Line {number}: invalid JSON ({exc.msg})") from exc
        if not isinstance(value, dict):
            raise ReplayFormatError(f"Line {number}: expected a JSON object")
        envelopes.append(cast(dict[str, Any], value))
    return envelopes


class ReplayNavigator:
    def __init__(self, envelopes: Sequence[Mapping[str, Any]]) -> None:
        self._preamble: list[Mapping[str, Any]] = []
        self._by_step: dict[int, list[Mapping[str, Any]]] = defaultdict(list)
        current: int | None = None
        for envelope in envelopes:
            step = _step_of(envelope)
            if step is not None:
                current = step
            if current is None:
                self._preamble.append(envelope)
            else:
                self._by_step[current].append(envelope)
        self._handler: Handler | None = None
        self.visited: list[str] = []
        self.started: list[int] = []

    @classmethod
    def from_path(cls, path: Path | str) -> ReplayNavigator:
        with Path(path).open(encoding="utf-8") as handle:
            return cls(read_recording(handle))

    def bind(self, handler: Handler) -> None:
        self._handler = handler

    def replay_preamble(self) -> int:
        preamble, self._preamble = self._preamble, []
        return self._deliver(preamble)

    async def navigate(self, target: str) -> None:
        log.info("Replay: navigate to %s", target)
        self.visited.append(target)

    async def start_extractor(self, step: int) -> None:
        self.started.append(step)
        envelopes = self._by_step.pop(step, [])
        delivered = self._deliver(envelopes)
        if not any(envelope.get("type") == "step_complete" for envelope in envelopes):
            self._deliver([{"type": "step_complete", "step": step, "totalCount": 0}])
        log.info("Replay: delivered %d recorded message(s) for step %d", delivered, step)

    def _deliver(self, envelopes: Sequence[Mapping[str, Any]]) -> int:
        if self._handler is None:
            raise RuntimeError("Replay navigator has no message handler bound")
        for envelope in envelopes:
            self._handler(envelope)
        return len(envelopes)


if TYPE_CHECKING:

    def _navigator_check(navigator: ReplayNavigator) -> Navigator:
        return navigator
